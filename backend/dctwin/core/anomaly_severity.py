"""Anomaly Severity: explicit, deterministic severity mapping per anomaly type.

Invariants:
    - Severity depends only on anomaly type and the magnitude of the discrepancy
    - UNEXPECTED is always HIGH (untracked equipment on the floor)
    - STATUS_MISMATCH is always MEDIUM

Design Decisions:
    - Thresholds are module constants, not settings: two deployments must grade the same
      scan identically
"""

from dctwin.core.domain_types import DeviceCategory, Severity

CRITICAL_CATEGORIES = frozenset({
    DeviceCategory.SWITCH, DeviceCategory.NETWORK, DeviceCategory.STORAGE,
    DeviceCategory.GPU_SERVER, DeviceCategory.PDU, DeviceCategory.UPS,
})
COMPUTE_CATEGORIES = frozenset({DeviceCategory.SERVER, DeviceCategory.BLADE})

MISSING_HIGH_POWER_KW = 5.0
MISSING_MEDIUM_POWER_KW = 1.0
LOCATION_MEDIUM_U_DELTA = 4
ATTRIBUTE_MEDIUM_POWER_DELTA_KW = 2.0

# Power readings within this band are treated as equal
POWER_TOLERANCE_KW = 0.1
POWER_TOLERANCE_RATIO = 0.10


def _category(value: str | None) -> DeviceCategory | None:
    try:
        return DeviceCategory(value) if value else None
    except ValueError:
        return None


def missing_severity(category: str | None, power_kw: float) -> Severity:
    """Criticality/power-driven severity for a device absent from the scan."""
    cat = _category(category)
    if cat in CRITICAL_CATEGORIES or power_kw >= MISSING_HIGH_POWER_KW:
        return Severity.HIGH
    if cat in COMPUTE_CATEGORIES or power_kw >= MISSING_MEDIUM_POWER_KW:
        return Severity.MEDIUM
    return Severity.LOW


def unexpected_severity() -> Severity:
    return Severity.HIGH


def status_mismatch_severity() -> Severity:
    return Severity.MEDIUM


def location_severity(rack_changed: bool, u_delta: int) -> Severity:
    if rack_changed:
        return Severity.HIGH
    if abs(u_delta) >= LOCATION_MEDIUM_U_DELTA:
        return Severity.MEDIUM
    return Severity.LOW


def power_differs(expected_kw: float, observed_kw: float) -> bool:
    """True if the observed draw is outside max(0.1 kW, 10 %) of the expected draw."""
    tolerance = max(POWER_TOLERANCE_KW, abs(expected_kw) * POWER_TOLERANCE_RATIO)
    return abs(observed_kw - expected_kw) > tolerance


def attribute_severity(
    type_changed: bool, height_changed: bool, power_delta_kw: float,
) -> Severity:
    if type_changed or height_changed or abs(power_delta_kw) >= ATTRIBUTE_MEDIUM_POWER_DELTA_KW:
        return Severity.MEDIUM
    return Severity.LOW
