"""Domain Types: enums and the phase visibility map shared by every core component.

Invariants:
    - PHASE_VISIBILITY is the single source of truth for "which statuses exist in which phase"
    - PHYSICALLY_PRESENT_STATUSES equals the AS_IS view (what a field scan can observe)
    - All valid states encoded as Enums, no raw string matching

Design Decisions:
    - str Enums: serialize to JSON and to DB String columns without custom encoders
    - NewType identities over wrapper classes: zero runtime cost, type-checker support
"""

from enum import Enum
from typing import NewType


# ─── Identity Types ──────────────────────────────────────────────

SiteId = NewType("SiteId", str)
RackId = NewType("RackId", str)
DeviceId = NewType("DeviceId", str)


# ─── Enums ───────────────────────────────────────────────────────

class Phase(str, Enum):
    """Planning horizon controlling which device statuses are visible."""
    AS_IS = "AS_IS"
    TO_BE = "TO_BE"
    FUTURE = "FUTURE"


class Status4D(str, Enum):
    """Device lifecycle/visibility tag."""
    EXISTING_RETAINED = "EXISTING_RETAINED"
    EXISTING_REMOVED = "EXISTING_REMOVED"
    PROPOSED = "PROPOSED"
    FUTURE = "FUTURE"
    MODIFIED = "MODIFIED"


class MoveType(str, Enum):
    """MODIFIED moves in place; CREATE_PROPOSED forks a planned copy."""
    MODIFIED = "MODIFIED"
    CREATE_PROPOSED = "CREATE_PROPOSED"


class ModificationType(str, Enum):
    """Equipment history entry kinds."""
    MOVE = "move"
    ADD = "add"
    REMOVE = "remove"
    EDIT = "edit"


class DeviceCategory(str, Enum):
    RACK = "RACK"
    SERVER = "SERVER"
    SWITCH = "SWITCH"
    STORAGE = "STORAGE"
    NETWORK = "NETWORK"
    GPU_SERVER = "GPU_SERVER"
    PDU = "PDU"
    UPS = "UPS"
    BLADE = "BLADE"


class AnomalyType(str, Enum):
    """Discrepancy classes between a verification scan and the canonical model."""
    MISSING = "MISSING"
    UNEXPECTED = "UNEXPECTED"
    LOCATION_MISMATCH = "LOCATION_MISMATCH"
    STATUS_MISMATCH = "STATUS_MISMATCH"
    ATTRIBUTE_MISMATCH = "ATTRIBUTE_MISMATCH"


class Severity(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class AnomalyStatus(str, Enum):
    """Anomaly review workflow states."""
    OPEN = "OPEN"
    INVESTIGATING = "INVESTIGATING"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"
    FALSE_POSITIVE = "FALSE_POSITIVE"


class ResolutionAction(str, Enum):
    """How a reviewer closes an anomaly."""
    ACCEPT_ACTUAL = "ACCEPT_ACTUAL"
    UPDATE_SYSTEM_LATER = "UPDATE_SYSTEM_LATER"
    FALSE_POSITIVE = "FALSE_POSITIVE"


# ─── Phase Visibility ────────────────────────────────────────────

PHASE_VISIBILITY: dict[Phase, frozenset[Status4D]] = {
    Phase.AS_IS: frozenset({
        Status4D.EXISTING_RETAINED, Status4D.EXISTING_REMOVED,
    }),
    Phase.TO_BE: frozenset({
        Status4D.EXISTING_RETAINED, Status4D.PROPOSED, Status4D.MODIFIED,
    }),
    Phase.FUTURE: frozenset({
        Status4D.EXISTING_RETAINED, Status4D.PROPOSED,
        Status4D.FUTURE, Status4D.MODIFIED,
    }),
}

# Statuses a technician can physically find on the floor today
PHYSICALLY_PRESENT_STATUSES: frozenset[Status4D] = PHASE_VISIBILITY[Phase.AS_IS]

# Statuses a newly registered (ingested) device may carry
INGESTION_STATUSES: frozenset[Status4D] = frozenset({
    Status4D.PROPOSED, Status4D.EXISTING_RETAINED,
})

UNRESOLVED_ANOMALY_STATUSES: frozenset[AnomalyStatus] = frozenset({
    AnomalyStatus.OPEN, AnomalyStatus.INVESTIGATING,
})


def is_visible(status: Status4D | str, phase: Phase | str) -> bool:
    """True if a device with `status` is part of the `phase` view."""
    return Status4D(status) in PHASE_VISIBILITY[Phase(phase)]


def phases_showing(status: Status4D | str) -> tuple[Phase, ...]:
    """Phases (in declaration order) whose view includes `status`."""
    status = Status4D(status)
    return tuple(p for p in Phase if status in PHASE_VISIBILITY[p])


def proposed_status_for(phase: Phase) -> Status4D:
    """Status given to a planned copy created for `phase`."""
    if phase == Phase.FUTURE:
        return Status4D.FUTURE
    return Status4D.PROPOSED
