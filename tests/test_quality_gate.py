"""Tests for two-tier metric thresholds."""

import pytest

from dreamweaver.quality_gate import QualityGate, QualityGateError, Threshold
from dreamweaver.schemas import Severity


def test_latency_below_warn_is_silent(capsys):
    gate = QualityGate()

    assert gate.check_metric("LATENCY_MS", 500) is None
    assert capsys.readouterr().out == ""


def test_latency_between_warn_and_critical_logs_warning(capsys):
    gate = QualityGate()

    alert = gate.check_metric("LATENCY_MS", 2000)

    assert alert is not None
    assert alert.severity is Severity.WARNING
    assert alert.threshold == 1500
    assert "[QualityGate] WARNING Alert: LATENCY_MS is 2000 (Threshold: 1500)" in capsys.readouterr().out


def test_latency_above_critical_raises():
    gate = QualityGate()

    with pytest.raises(QualityGateError) as excinfo:
        gate.check_metric("LATENCY_MS", 4000)

    alert = excinfo.value.alert
    assert alert.severity is Severity.CRITICAL
    assert alert.metric == "LATENCY_MS"
    assert alert.current_value == 4000
    assert alert.threshold == 3000
    assert str(excinfo.value).startswith("Quality Gate Breach: LATENCY_MS")


def test_below_direction_raises_when_value_drops_under_critical():
    gate = QualityGate()

    with pytest.raises(QualityGateError):
        gate.check_metric("UCR", 0.60)

    assert gate.check_metric("UCR", 0.95) is None
    assert gate.check_metric("UCR", 0.80).severity is Severity.WARNING


def test_mtth_treats_short_time_to_human_as_breach():
    gate = QualityGate()

    assert gate.check_metric("MTTH", 900) is None
    assert gate.check_metric("MTTH", 120).severity is Severity.WARNING
    with pytest.raises(QualityGateError):
        gate.check_metric("MTTH", 30)


def test_unknown_metric_is_ignored(capsys):
    gate = QualityGate()

    assert gate.check_metric("NOT_A_METRIC", 1e9) is None
    assert capsys.readouterr().out == ""


def test_boundary_values_do_not_breach():
    gate = QualityGate()

    # Thresholds are strict: exactly at the limit is still healthy.
    assert gate.check_metric("ERROR_RATE", 0.05) is None
    assert gate.check_metric("ERROR_RATE", 0.10).severity is Severity.WARNING


def test_custom_threshold_table():
    gate = QualityGate({"QUEUE_DEPTH": Threshold(warn=10, critical=20, direction="above")})

    assert gate.check_metric("LATENCY_MS", 99999) is None
    assert gate.evaluate("QUEUE_DEPTH", 15).severity is Severity.WARNING
    assert gate.evaluate("QUEUE_DEPTH", 25).severity is Severity.CRITICAL
