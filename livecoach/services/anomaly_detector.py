"""
Heart-rate anomaly detection.

A pure function of a single sample: no smoothing, no history.
"""

from enum import Enum

from ..realtime.records import HeartRateSample


class AlertLevel(Enum):
    """Severity of a heart-rate sample."""

    NONE = "none"
    WARNING = "warning"
    CRITICAL = "critical"


class AnomalyDetector:
    """Classifies samples against fixed bpm thresholds."""

    def __init__(self, critical_above: int = 190, warning_above: int = 180, warning_below: int = 50) -> None:
        self.critical_above = critical_above
        self.warning_above = warning_above
        self.warning_below = warning_below

    def evaluate(self, sample: HeartRateSample) -> AlertLevel:
        if sample.bpm > self.critical_above:
            return AlertLevel.CRITICAL
        if sample.bpm > self.warning_above or sample.bpm < self.warning_below:
            return AlertLevel.WARNING
        return AlertLevel.NONE
