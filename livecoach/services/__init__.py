"""Domain services used by the message router."""

from .anomaly_detector import AlertLevel, AnomalyDetector
from .form_scoring import FormAnalysisResult, FormScoringService, HeuristicFormScorer

__all__ = ["AlertLevel", "AnomalyDetector", "FormAnalysisResult", "FormScoringService", "HeuristicFormScorer"]
