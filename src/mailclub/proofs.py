"""Contract for the external photo proof verification service.

Results are advisory. They are stored on the task for the parent to read and
never change the task state or credit points.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol

from .models import Task, VerificationResult

FALLBACK_FEEDBACK = "Great job submitting your proof! Your parent will review it."
NO_PHOTO_FEEDBACK = "Photo received! Parent approval needed."


@dataclass(frozen=True, slots=True)
class ProofVerificationRequest:
    title: str
    description: str
    child_age: int
    photo_ref: str

    @classmethod
    def for_task(cls, task: Task, *, child_age: int, photo_ref: str) -> "ProofVerificationRequest":
        return cls(title=task.title, description=task.description, child_age=child_age, photo_ref=photo_ref)


class ProofVerifier(Protocol):
    def verify(self, request: ProofVerificationRequest) -> VerificationResult:
        ...


class NeutralProofVerifier:
    """Verifier used when no analysis service is configured."""

    def __init__(self, feedback: str = NO_PHOTO_FEEDBACK) -> None:
        self.feedback = feedback

    def verify(self, request: ProofVerificationRequest) -> VerificationResult:
        return fallback_result(self.feedback)


def fallback_result(feedback: str = FALLBACK_FEEDBACK) -> VerificationResult:
    return VerificationResult(is_verified=True, confidence=0.5, feedback=feedback, suggestions=())


def result_from_payload(payload: Mapping[str, Any]) -> VerificationResult:
    """Build a result from the service's ``{isVerified, confidence, feedback}`` JSON."""

    missing = [key for key in ("isVerified", "confidence", "feedback") if key not in payload]
    if missing:
        raise ValueError(f"Verification payload is missing {', '.join(missing)}.")
    suggestions: Optional[Any] = payload.get("suggestions") or ()
    return VerificationResult(
        is_verified=bool(payload["isVerified"]),
        confidence=float(payload["confidence"]),
        feedback=str(payload["feedback"]),
        suggestions=tuple(str(item) for item in suggestions),
    )


def result_to_payload(result: VerificationResult) -> dict:
    return {
        "isVerified": result.is_verified,
        "confidence": result.confidence,
        "feedback": result.feedback,
        "suggestions": list(result.suggestions),
    }


__all__ = [
    "FALLBACK_FEEDBACK",
    "NeutralProofVerifier",
    "ProofVerificationRequest",
    "ProofVerifier",
    "fallback_result",
    "result_from_payload",
    "result_to_payload",
]
