"""
Exercise form scoring.

Real scoring (pose estimation over camera frames) lives in an external
service. HeuristicFormScorer is the in-process stand-in used by this hub: it
scores joint-angle deviations reported by the client.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Protocol

from ..exceptions import ScoringError
from ..logging.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class FormAnalysisResult:
    """Outcome of scoring one set of form data."""

    exercise_id: str
    score: int
    feedback: str
    improvements: list[str] = field(default_factory=list)
    timestamp: float = field(default_factory=time.time)

    def __post_init__(self) -> None:
        if not 0 <= self.score <= 100:
            raise ValueError("score must be within [0, 100]")

    def to_dict(self) -> dict[str, Any]:
        return {
            "exerciseId": self.exercise_id,
            "score": self.score,
            "feedback": self.feedback,
            "improvements": list(self.improvements),
            "timestamp": self.timestamp,
        }


class FormScoringService(Protocol):
    """External form scoring interface."""

    async def score(self, exercise_id: str, form_payload: dict[str, Any]) -> FormAnalysisResult:
        """
        Score a form sample.

        Raises:
            ScoringError: If the sample cannot be scored
        """
        ...


class HeuristicFormScorer:
    """
    Scores reported joint-angle deviations.

    Payload shape: {"deviations": {"<joint>": <degrees>, ...}}. Each degree
    of absolute deviation costs one point; joints off by more than
    improvement_threshold degrees produce an improvement suggestion.
    """

    def __init__(self, improvement_threshold: float = 10.0) -> None:
        self.improvement_threshold = improvement_threshold

    async def score(self, exercise_id: str, form_payload: dict[str, Any]) -> FormAnalysisResult:
        deviations = form_payload.get("deviations", {})
        if not isinstance(deviations, dict):
            raise ScoringError("Form payload 'deviations' must be an object", details={"exercise_id": exercise_id})

        try:
            by_joint = {str(joint): abs(float(value)) for joint, value in deviations.items()}
        except (TypeError, ValueError) as e:
            raise ScoringError(f"Non-numeric deviation in form payload: {e}", details={"exercise_id": exercise_id}) from e

        score = max(0, min(100, round(100 - sum(by_joint.values()))))
        improvements = [
            f"Adjust your {joint} alignment (off by {degrees:.0f} degrees)"
            for joint, degrees in sorted(by_joint.items(), key=lambda item: item[1], reverse=True)
            if degrees > self.improvement_threshold
        ]

        if score >= 90:
            feedback = "Great form! Keep your core engaged."
        elif score >= 70:
            feedback = "Good form with minor deviations."
        else:
            feedback = "Form needs attention. Slow down and focus on control."

        logger.debug("Form scored", exercise_id=exercise_id, score=score, joints=len(by_joint))
        return FormAnalysisResult(exercise_id=exercise_id, score=score, feedback=feedback, improvements=improvements)
