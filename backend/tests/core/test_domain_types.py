"""Domain Types: phase visibility map and status helpers.

Tests:
    - Visibility table matches the three phase views exactly
    - phases_showing is the inverse of the map, in Phase order
    - Planned copies get PROPOSED, except in FUTURE
"""

from dctwin.core.domain_types import (
    Phase, Status4D, PHASE_VISIBILITY, PHYSICALLY_PRESENT_STATUSES,
    INGESTION_STATUSES, is_visible, phases_showing, proposed_status_for,
)


def test_as_is_shows_only_built_equipment():
    assert PHASE_VISIBILITY[Phase.AS_IS] == {
        Status4D.EXISTING_RETAINED, Status4D.EXISTING_REMOVED,
    }


def test_to_be_hides_removed_and_future():
    assert PHASE_VISIBILITY[Phase.TO_BE] == {
        Status4D.EXISTING_RETAINED, Status4D.PROPOSED, Status4D.MODIFIED,
    }


def test_future_is_superset_of_to_be():
    assert PHASE_VISIBILITY[Phase.TO_BE] < PHASE_VISIBILITY[Phase.FUTURE]
    assert Status4D.FUTURE in PHASE_VISIBILITY[Phase.FUTURE]


def test_is_visible_accepts_raw_strings():
    assert is_visible("EXISTING_REMOVED", "AS_IS")
    assert not is_visible("EXISTING_REMOVED", "TO_BE")


def test_phases_showing_inverts_the_map():
    assert phases_showing(Status4D.EXISTING_RETAINED) == (
        Phase.AS_IS, Phase.TO_BE, Phase.FUTURE,
    )
    assert phases_showing(Status4D.EXISTING_REMOVED) == (Phase.AS_IS,)
    assert phases_showing(Status4D.MODIFIED) == (Phase.TO_BE, Phase.FUTURE)
    assert phases_showing(Status4D.FUTURE) == (Phase.FUTURE,)


def test_proposed_status_for_phase():
    assert proposed_status_for(Phase.AS_IS) == Status4D.PROPOSED
    assert proposed_status_for(Phase.TO_BE) == Status4D.PROPOSED
    assert proposed_status_for(Phase.FUTURE) == Status4D.FUTURE


def test_present_and_ingestion_sets():
    assert PHYSICALLY_PRESENT_STATUSES == PHASE_VISIBILITY[Phase.AS_IS]
    assert Status4D.MODIFIED not in PHYSICALLY_PRESENT_STATUSES
    assert Status4D.PROPOSED not in PHYSICALLY_PRESENT_STATUSES
    assert INGESTION_STATUSES == {Status4D.PROPOSED, Status4D.EXISTING_RETAINED}


def test_enums_serialize_to_strings():
    assert Phase.TO_BE.value == "TO_BE"
    assert Status4D("MODIFIED") is Status4D.MODIFIED
