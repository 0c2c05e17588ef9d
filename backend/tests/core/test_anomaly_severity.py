"""Anomaly Severity: explicit thresholds per anomaly type."""

import pytest

from dctwin.core.anomaly_severity import (
    attribute_severity, location_severity, missing_severity, power_differs,
    status_mismatch_severity, unexpected_severity,
)
from dctwin.core.domain_types import Severity


@pytest.mark.parametrize("category,power,expected", [
    ("GPU_SERVER", 0.0, Severity.HIGH),
    ("PDU", 0.0, Severity.HIGH),
    (None, 5.0, Severity.HIGH),
    ("SERVER", 0.2, Severity.MEDIUM),
    (None, 1.0, Severity.MEDIUM),
    (None, 0.5, Severity.LOW),
    ("not-a-category", 0.5, Severity.LOW),
])
def test_missing_severity(category, power, expected):
    assert missing_severity(category, power) == expected


def test_fixed_severities():
    assert unexpected_severity() == Severity.HIGH
    assert status_mismatch_severity() == Severity.MEDIUM


def test_location_severity():
    assert location_severity(True, 0) == Severity.HIGH
    assert location_severity(False, -4) == Severity.MEDIUM
    assert location_severity(False, 3) == Severity.LOW


def test_power_tolerance_is_ten_percent_or_a_tenth_of_a_kilowatt():
    assert not power_differs(0.0, 0.1)
    assert power_differs(0.0, 0.2)
    assert not power_differs(10.0, 11.0)
    assert power_differs(10.0, 11.5)


def test_attribute_severity():
    assert attribute_severity(True, False, 0.0) == Severity.MEDIUM
    assert attribute_severity(False, True, 0.0) == Severity.MEDIUM
    assert attribute_severity(False, False, -2.0) == Severity.MEDIUM
    assert attribute_severity(False, False, 0.5) == Severity.LOW
