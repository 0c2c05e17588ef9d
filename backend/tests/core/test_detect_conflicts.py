"""Conflict Detector: phase-aware U-space collision checks.

Invariants:
    - Only active, non-excluded devices visible in the phase collide
    - Intervals are half-open: touching devices do not collide
    - Bounds violations raise, collisions are returned
"""

import pytest

from dctwin.core.detect_conflicts import (
    check_bounds, describe_conflicts, find_conflicts, find_conflicts_in_phases,
)
from dctwin.core.domain_types import Phase, Status4D
from dctwin.core.errors import PlacementOutOfBoundsError, InvalidRequestError
from dctwin.core.inventory_snapshot import DeviceSnapshot, RackSnapshot

RACK = RackSnapshot(id="R1", room_id="room-1", name="R1", u_height=42)


def _device(id, u_start, u_height=1, status=Status4D.EXISTING_RETAINED, **kw):
    return DeviceSnapshot(
        id=id, rack_id=kw.pop("rack_id", "R1"), name=f"dev-{id}",
        u_start=u_start, u_height=u_height, status_4d=status, **kw,
    )


# ─── Overlap ─────────────────────────────────────────────────────

def test_overlapping_device_is_reported():
    d1 = _device("D1", 10, 2)
    assert find_conflicts(RACK, [d1], 11, 1, Phase.AS_IS) == [d1]


def test_adjacent_devices_do_not_collide():
    d1 = _device("D1", 10, 2)  # occupies U10-U11
    assert find_conflicts(RACK, [d1], 12, 1, Phase.AS_IS) == []
    assert find_conflicts(RACK, [d1], 8, 2, Phase.AS_IS) == []


def test_device_invisible_in_phase_is_ignored():
    proposed = _device("P1", 5, 2, Status4D.PROPOSED)
    assert find_conflicts(RACK, [proposed], 5, 1, Phase.AS_IS) == []
    assert find_conflicts(RACK, [proposed], 5, 1, Phase.TO_BE) == [proposed]


def test_inactive_device_is_ignored():
    gone = _device("D1", 10, 2, is_active=False)
    assert find_conflicts(RACK, [gone], 10, 2, Phase.AS_IS) == []


def test_excluded_device_is_ignored():
    d1 = _device("D1", 10, 2)
    assert find_conflicts(RACK, [d1], 10, 2, Phase.AS_IS, ["D1"]) == []


def test_devices_in_other_racks_are_ignored():
    other = _device("D9", 10, 2, rack_id="R2")
    assert find_conflicts(RACK, [other], 10, 2, Phase.AS_IS) == []


def test_results_ordered_by_u_start_then_id():
    a = _device("B", 12)
    b = _device("A", 12)
    c = _device("C", 10)
    result = find_conflicts(RACK, [a, b, c], 10, 5, Phase.AS_IS)
    assert [d.id for d in result] == ["C", "A", "B"]


def test_multi_phase_union_is_deduplicated():
    retained = _device("D1", 10)
    future = _device("F1", 11, status=Status4D.FUTURE)
    result = find_conflicts_in_phases(
        RACK, [retained, future], 10, 2, [Phase.TO_BE, Phase.FUTURE],
    )
    assert [d.id for d in result] == ["D1", "F1"]


# ─── Bounds ──────────────────────────────────────────────────────

def test_top_of_rack_fits():
    check_bounds(RACK, 41, 2)


@pytest.mark.parametrize("u_start,u_height", [(0, 1), (42, 2), (1, 0), (-3, 1)])
def test_out_of_bounds_raises(u_start, u_height):
    with pytest.raises(PlacementOutOfBoundsError) as exc:
        check_bounds(RACK, u_start, u_height)
    assert isinstance(exc.value, InvalidRequestError)
    assert exc.value.kind == "validation"
    assert exc.value.to_response()["error"]["bounds"] == {"min_u": 1, "max_u": 42}


def test_describe_conflicts_uses_inclusive_end():
    payload = describe_conflicts([_device("D1", 10, 2)])
    assert payload == [{
        "device_id": "D1",
        "device_name": "dev-D1",
        "rack_id": "R1",
        "u_start": 10,
        "u_end": 11,
        "status_4d": "EXISTING_RETAINED",
    }]
