"""Anomaly Detection: diffs a verification scan against the canonical inventory of a site.

Invariants:
    - detect_anomalies is PURE: identical (site_id, devices, records) give identical
      anomaly content; only created_at depends on the clock (injectable)
    - Identity key = logical equipment id when present, else rack_id + u_start
    - Every canonical group with a physically present member is matched or MISSING
    - Every scan record is matched, UNEXPECTED, or a duplicate (also UNEXPECTED)
    - Output order: (type rank, identity key, device id)

Design Decisions:
    - Devices sharing a logical id (a CREATE_PROPOSED fork) form one group; the present
      member represents the group, planned members only explain STATUS_MISMATCH
    - A MODIFIED member is installed hardware whose row already holds the planned slot;
      a record matching its group is accepted as is (no as-built slot to compare), a
      record reporting it absent is STATUS_MISMATCH
    - Records without a logical id fall back to location matching so scans taken with
      barcode-less tooling still reconcile against tagged inventory
    - Detection returns drafts; persistence is a separate step (preview without commit)
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone

from dctwin.core.domain_types import (
    AnomalyType, AnomalyStatus, Severity, Status4D, PHYSICALLY_PRESENT_STATUSES,
)
from dctwin.core.inventory_snapshot import DeviceSnapshot
from dctwin.core import anomaly_severity as sev

TYPE_RANK = {
    AnomalyType.MISSING: 0,
    AnomalyType.UNEXPECTED: 1,
    AnomalyType.LOCATION_MISMATCH: 2,
    AnomalyType.STATUS_MISMATCH: 3,
    AnomalyType.ATTRIBUTE_MISMATCH: 4,
}


@dataclass(frozen=True)
class VerificationRecord:
    """One normalized observation from a field scan."""
    rack_id: str
    u_start: int
    logical_equipment_id: str | None = None
    u_height: int | None = None
    device_type_id: str | None = None
    power_kw: float | None = None
    name: str | None = None
    serial_number: str | None = None
    observed_present: bool = True


@dataclass(frozen=True)
class DetectedAnomaly:
    anomaly_type: AnomalyType
    severity: Severity
    site_id: str
    identity_key: str
    notes: str
    device_id: str | None = None
    related_device_ids: tuple[str, ...] = ()
    rack_id: str | None = None
    expected_value: dict | None = None
    observed_value: dict | None = None
    status: AnomalyStatus = AnomalyStatus.OPEN
    created_at: datetime | None = None

    def content(self) -> tuple:
        """Everything except the timestamp: what purity is judged on."""
        return (
            self.anomaly_type, self.severity, self.site_id, self.identity_key,
            self.device_id, self.related_device_ids, self.rack_id, self.notes,
        )


@dataclass(frozen=True)
class AnomalyReport:
    anomalies: tuple[DetectedAnomaly, ...] = ()
    summary: dict = field(default_factory=dict)


# ─── Identity ────────────────────────────────────────────────────

def location_key(rack_id: str, u_start: int) -> str:
    return f"loc:{rack_id}:{u_start}"


def device_key(device: DeviceSnapshot) -> str:
    if device.logical_equipment_id:
        return f"logical:{device.logical_equipment_id}"
    return location_key(device.rack_id, device.u_start)


def record_key(record: VerificationRecord) -> str:
    if record.logical_equipment_id:
        return f"logical:{record.logical_equipment_id}"
    return location_key(record.rack_id, record.u_start)


def _representative(members: list[DeviceSnapshot]) -> DeviceSnapshot | None:
    present = [d for d in members if d.status_4d in PHYSICALLY_PRESENT_STATUSES]
    return min(present, key=lambda d: d.id) if present else None


def _where(rack_id: str, u_start: int) -> str:
    return f"rack {rack_id} U{u_start}"


def _expected(device: DeviceSnapshot) -> dict:
    return {
        "name": device.name,
        "rack_id": device.rack_id,
        "u_position": device.u_start,
        "u_height": device.u_height,
        "status_4d": device.status_4d.value,
        "device_type_id": device.device_type_id,
        "power_kw": device.power_kw,
        "serial_number": device.serial_number,
    }


def _observed(record: VerificationRecord) -> dict:
    return {
        "name": record.name,
        "rack_id": record.rack_id,
        "u_position": record.u_start,
        "u_height": record.u_height,
        "device_type_id": record.device_type_id,
        "power_kw": record.power_kw,
        "serial_number": record.serial_number,
        "observed_present": record.observed_present,
    }


# ─── Classification ──────────────────────────────────────────────

def _missing(site_id: str, key: str, device: DeviceSnapshot, members, now) -> DetectedAnomaly:
    return DetectedAnomaly(
        anomaly_type=AnomalyType.MISSING,
        severity=sev.missing_severity(device.category, device.power_kw),
        site_id=site_id,
        identity_key=key,
        device_id=device.id,
        related_device_ids=tuple(sorted(d.id for d in members)),
        rack_id=device.rack_id,
        expected_value=_expected(device),
        observed_value=None,
        notes=(
            f"Equipment '{device.name}' expected in "
            f"{_where(device.rack_id, device.u_start)} but not found during verification"
        ),
        created_at=now,
    )


def _unexpected(site_id: str, key: str, record: VerificationRecord, now, duplicate=False) -> DetectedAnomaly:
    label = record.name or record.logical_equipment_id or "unidentified equipment"
    notes = (
        f"Equipment '{label}' found in {_where(record.rack_id, record.u_start)} "
        "but not in system"
    )
    if duplicate:
        notes = (
            f"Equipment '{label}' reported again in "
            f"{_where(record.rack_id, record.u_start)}; identity already matched"
        )
    return DetectedAnomaly(
        anomaly_type=AnomalyType.UNEXPECTED,
        severity=sev.unexpected_severity(),
        site_id=site_id,
        identity_key=key,
        rack_id=record.rack_id,
        expected_value=None,
        observed_value=_observed(record),
        notes=notes,
        created_at=now,
    )


def _compare(
    site_id: str, key: str, members: list[DeviceSnapshot],
    record: VerificationRecord, now: datetime,
) -> DetectedAnomaly | None:
    rep = _representative(members)
    related = tuple(sorted(d.id for d in members))
    moved = sorted(
        (d for d in members if d.status_4d == Status4D.MODIFIED), key=lambda d: d.id,
    )

    if not record.observed_present:
        installed = rep or (moved[0] if moved else None)
        if installed is None:
            return None
        return DetectedAnomaly(
            anomaly_type=AnomalyType.STATUS_MISMATCH,
            severity=sev.status_mismatch_severity(),
            site_id=site_id, identity_key=key,
            device_id=installed.id, related_device_ids=related,
            rack_id=installed.rack_id,
            expected_value=_expected(installed), observed_value=_observed(record),
            notes=(
                f"Equipment '{installed.name}' is {installed.status_4d.value} "
                "(installed) but the scan reports it absent at "
                f"{_where(record.rack_id, record.u_start)}"
            ),
            created_at=now,
        )

    if rep is None:
        if moved:
            return None
        planned = min(members, key=lambda d: d.id)
        return DetectedAnomaly(
            anomaly_type=AnomalyType.STATUS_MISMATCH,
            severity=sev.status_mismatch_severity(),
            site_id=site_id, identity_key=key,
            device_id=planned.id, related_device_ids=related, rack_id=planned.rack_id,
            expected_value=_expected(planned), observed_value=_observed(record),
            notes=(
                f"Equipment '{planned.name}' is {planned.status_4d.value} (not yet "
                f"installed) but was observed at {_where(record.rack_id, record.u_start)}"
            ),
            created_at=now,
        )

    if rep.rack_id != record.rack_id or rep.u_start != record.u_start:
        rack_changed = rep.rack_id != record.rack_id
        return DetectedAnomaly(
            anomaly_type=AnomalyType.LOCATION_MISMATCH,
            severity=sev.location_severity(rack_changed, record.u_start - rep.u_start),
            site_id=site_id, identity_key=key,
            device_id=rep.id, related_device_ids=related, rack_id=rep.rack_id,
            expected_value=_expected(rep), observed_value=_observed(record),
            notes=(
                f"Equipment '{rep.name}' expected in {_where(rep.rack_id, rep.u_start)}, "
                f"observed in {_where(record.rack_id, record.u_start)}"
            ),
            created_at=now,
        )

    diffs: list[str] = []
    type_changed = bool(
        record.device_type_id and rep.device_type_id
        and record.device_type_id != rep.device_type_id
    )
    if type_changed:
        diffs.append(
            f"device type differs: expected {rep.device_type_id}, "
            f"observed {record.device_type_id}"
        )
    height_changed = record.u_height is not None and record.u_height != rep.u_height
    if height_changed:
        diffs.append(
            f"height differs: expected {rep.u_height}U, observed {record.u_height}U"
        )
    power_delta = 0.0
    if record.power_kw is not None and sev.power_differs(rep.power_kw, record.power_kw):
        power_delta = record.power_kw - rep.power_kw
        diffs.append(
            f"power differs by {power_delta:+.2f}kW: expected {rep.power_kw:.2f}kW, "
            f"observed {record.power_kw:.2f}kW"
        )
    if not diffs:
        return None
    return DetectedAnomaly(
        anomaly_type=AnomalyType.ATTRIBUTE_MISMATCH,
        severity=sev.attribute_severity(type_changed, height_changed, power_delta),
        site_id=site_id, identity_key=key,
        device_id=rep.id, related_device_ids=related, rack_id=rep.rack_id,
        expected_value=_expected(rep), observed_value=_observed(record),
        notes=f"Attribute mismatches for '{rep.name}': " + "; ".join(diffs),
        created_at=now,
    )


def summarize(anomalies: list[DetectedAnomaly] | tuple[DetectedAnomaly, ...]) -> dict:
    """Counts per type and per severity."""
    by_type = Counter(a.anomaly_type for a in anomalies)
    by_severity = Counter(a.severity for a in anomalies)
    summary = {"total": len(anomalies)}
    for t in AnomalyType:
        summary[t.value.lower()] = by_type.get(t, 0)
    for s in Severity:
        summary[f"{s.value.lower()}_severity"] = by_severity.get(s, 0)
    return summary


def detect_anomalies(
    site_id: str,
    canonical_devices: list[DeviceSnapshot],
    records: list[VerificationRecord],
    detected_at: datetime | None = None,
) -> AnomalyReport:
    """Classify every discrepancy between the site's active devices and a scan."""
    now = detected_at or datetime.now(timezone.utc)

    groups: dict[str, list[DeviceSnapshot]] = {}
    for device in sorted(canonical_devices, key=lambda d: d.id):
        if device.is_active:
            groups.setdefault(device_key(device), []).append(device)

    by_location: dict[str, str] = {}
    for key, members in sorted(groups.items()):
        rep = _representative(members)
        if rep is not None:
            by_location.setdefault(location_key(rep.rack_id, rep.u_start), key)

    matched: set[str] = set()
    found: list[DetectedAnomaly] = []

    for record in records:
        key = record_key(record)
        if key not in groups and not record.logical_equipment_id:
            fallback = by_location.get(key)
            if fallback is not None and fallback not in matched:
                key = fallback
        if key not in groups:
            found.append(_unexpected(site_id, key, record, now))
            continue
        if key in matched:
            found.append(_unexpected(site_id, key, record, now, duplicate=True))
            continue
        matched.add(key)
        anomaly = _compare(site_id, key, groups[key], record, now)
        if anomaly is not None:
            found.append(anomaly)

    for key, members in groups.items():
        rep = _representative(members)
        if rep is not None and key not in matched:
            found.append(_missing(site_id, key, rep, members, now))

    found.sort(key=lambda a: (TYPE_RANK[a.anomaly_type], a.identity_key, a.device_id or ""))
    return AnomalyReport(anomalies=tuple(found), summary=summarize(found))
