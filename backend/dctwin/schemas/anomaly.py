"""Anomaly Schemas: verification scan input and anomaly review models."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from dctwin.core.detect_anomalies import VerificationRecord
from dctwin.core.domain_types import AnomalyStatus, AnomalyType, Severity


class VerificationRecordIn(BaseModel):
    """One scan row, already mapped from the field tool's columns."""
    rack_id: str = Field(min_length=1, max_length=36)
    u_start: int
    logical_equipment_id: str | None = Field(None, max_length=100)
    u_height: int | None = Field(None, ge=1)
    device_type_id: str | None = None
    power_kw: float | None = Field(None, ge=0)
    name: str | None = None
    serial_number: str | None = None
    observed_present: bool = True

    def to_record(self) -> VerificationRecord:
        return VerificationRecord(**self.model_dump())


class VerificationScanRequest(BaseModel):
    records: list[VerificationRecordIn] = Field(default_factory=list, max_length=10_000)
    idempotency_key: str | None = Field(None, max_length=100)


class DetectedAnomalyOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    anomaly_type: AnomalyType
    severity: Severity
    status: AnomalyStatus
    identity_key: str
    device_id: str | None = None
    related_device_ids: list[str] = Field(default_factory=list)
    rack_id: str | None = None
    expected_value: dict | None = None
    observed_value: dict | None = None
    notes: str
    created_at: datetime | None = None


class DetectionResponse(BaseModel):
    success: bool = True
    site_id: str
    anomalies: list[DetectedAnomalyOut]
    summary: dict
    saved: bool
    saved_count: int = 0


class AnomalyResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    site_id: str
    anomaly_type: AnomalyType
    severity: Severity
    status: AnomalyStatus
    identity_key: str
    device_id: str | None = None
    related_device_ids: list[str] = Field(default_factory=list)
    rack_id: str | None = None
    expected_value: dict | None = None
    observed_value: dict | None = None
    notes: str | None = None
    assigned_to: str | None = None
    resolution: str | None = None
    resolution_action: str | None = None
    resolved_by: str | None = None
    resolved_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class AnomalyUpdate(BaseModel):
    status: str | None = None
    severity: str | None = None
    assigned_to: str | None = Field(None, max_length=100)
    notes: str | None = Field(None, max_length=5000)


class ResolveAnomalyRequest(BaseModel):
    action: str
    user_id: str | None = Field(None, max_length=100)
    notes: str | None = Field(None, max_length=5000)
