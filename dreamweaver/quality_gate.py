"""Live quality thresholds.

``QualityGate.check_metric`` is the single place where a metric becomes a
control-flow event: WARNING breaches are logged, CRITICAL breaches raise
:class:`QualityGateError` carrying the alert.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Mapping

from dreamweaver.logging_utils import log_warning, log_error
from dreamweaver.schemas import QualityAlert, Severity


Direction = Literal["above", "below"]


@dataclass(frozen=True)
class Threshold:
    warn: float
    critical: float
    direction: Direction


# UCR: unique completion rate. ORR: onboarding return rate.
# MTTH: mean time to human, in seconds; longer is better.
DEFAULT_THRESHOLDS: Mapping[str, Threshold] = {
    "UCR": Threshold(warn=0.85, critical=0.70, direction="below"),
    "ORR": Threshold(warn=0.50, critical=0.20, direction="below"),
    "MTTH": Threshold(warn=300, critical=60, direction="below"),
    "LATENCY_MS": Threshold(warn=1500, critical=3000, direction="above"),
    "ERROR_RATE": Threshold(warn=0.05, critical=0.10, direction="above"),
}


class QualityGateError(RuntimeError):
    """Raised when a metric crosses its CRITICAL threshold."""

    def __init__(self, alert: QualityAlert):
        self.alert = alert
        super().__init__(
            f"Quality Gate Breach: {alert.metric} is {alert.current_value} "
            f"(Threshold: {alert.threshold})"
        )


def _breaches(value: float, limit: float, direction: Direction) -> bool:
    if direction == "above":
        return value > limit
    return value < limit


class QualityGate:
    """Stateless two-tier threshold evaluator."""

    def __init__(self, thresholds: Mapping[str, Threshold] | None = None):
        self.thresholds = dict(DEFAULT_THRESHOLDS if thresholds is None else thresholds)

    def evaluate(self, metric: str, value: float) -> QualityAlert | None:
        """Return the alert for ``value`` without side effects (None if healthy or unknown)."""
        config = self.thresholds.get(metric)
        if config is None:
            return None

        if _breaches(value, config.critical, config.direction):
            severity, threshold = Severity.CRITICAL, config.critical
        elif _breaches(value, config.warn, config.direction):
            severity, threshold = Severity.WARNING, config.warn
        else:
            return None

        return QualityAlert(
            metric=metric,
            current_value=value,
            threshold=threshold,
            severity=severity,
        )

    def check_metric(self, metric: str, value: float) -> QualityAlert | None:
        """Evaluate a metric, logging warnings and raising on critical breaches.

        Unknown metrics are ignored so new metrics can be reported before they
        have thresholds configured.
        """
        alert = self.evaluate(metric, value)
        if alert is None:
            return None

        message = (
            f"[QualityGate] {alert.severity.value} Alert: {alert.metric} is "
            f"{alert.current_value} (Threshold: {alert.threshold})"
        )
        if alert.severity is Severity.CRITICAL:
            log_error(message)
            raise QualityGateError(alert)

        log_warning(message)
        return alert
