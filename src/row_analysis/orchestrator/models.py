"""Domain models for row analysis requests and outcomes."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum

PROCESSING_CLASS = -1


class OutcomeStatus(str, Enum):
    """Lifecycle state an outcome represents for its row."""

    COMPLETE = "complete"
    PROCESSING = "processing"
    ERROR = "error"


class FailureClass(str, Enum):
    """Normalized failure classes used by retry policy."""

    TIMEOUT = "timeout"
    NETWORK = "network"
    RATE_LIMITED = "rate_limited"
    SERVER_TRANSIENT = "server_transient"
    CLIENT_NON_RETRYABLE = "client_non_retryable"
    CONFIGURATION = "configuration"


@dataclass(frozen=True, slots=True)
class AnalysisRequest:
    """One row submitted for classification."""

    id: str
    primary_text: str = ""
    secondary_text: str = ""
    included: bool = True


@dataclass(frozen=True, slots=True)
class ClassificationResult:
    """Class index with the two class probabilities."""

    predicted_class: int
    probability0: float
    probability1: float

    @property
    def confidence(self) -> float:
        return max(self.probability0, self.probability1)


@dataclass(frozen=True, slots=True)
class AnalysisOutcome:
    """Result of processing one row; superseding outcomes are new objects."""

    id: str
    status: OutcomeStatus
    predicted_class: int
    probability0: float
    probability1: float
    raw_output: str
    processing_time: float
    error_message: str | None = None
    attempts: int = 0
    from_remote: bool = True

    @property
    def confidence(self) -> float:
        return max(self.probability0, self.probability1)

    def with_probabilities(self, probability0: float, probability1: float) -> AnalysisOutcome:
        return replace(self, probability0=probability0, probability1=probability1)

    def to_dict(self) -> dict[str, object]:
        """Serialize for JSON lines output."""

        return {
            "id": self.id,
            "status": self.status.value,
            "predicted_class": self.predicted_class,
            "probability0": self.probability0,
            "probability1": self.probability1,
            "raw_output": self.raw_output,
            "processing_time": round(self.processing_time, 3),
            "error_message": self.error_message,
            "attempts": self.attempts,
        }


def completed_outcome(
    *,
    request_id: str,
    result: ClassificationResult,
    raw_output: str,
    processing_time: float,
    attempts: int,
    from_remote: bool = True,
) -> AnalysisOutcome:
    return AnalysisOutcome(
        id=request_id,
        status=OutcomeStatus.COMPLETE,
        predicted_class=result.predicted_class,
        probability0=result.probability0,
        probability1=result.probability1,
        raw_output=raw_output,
        processing_time=max(0.0, processing_time),
        attempts=attempts,
        from_remote=from_remote,
    )


def processing_outcome(
    *,
    request_id: str,
    processing_time: float,
    attempts: int,
) -> AnalysisOutcome:
    return AnalysisOutcome(
        id=request_id,
        status=OutcomeStatus.PROCESSING,
        predicted_class=PROCESSING_CLASS,
        probability0=0.0,
        probability1=0.0,
        raw_output="Processing: request accepted by classifier endpoint",
        processing_time=max(0.0, processing_time),
        attempts=attempts,
    )


def error_outcome(
    *,
    request_id: str,
    message: str,
    processing_time: float,
    attempts: int,
) -> AnalysisOutcome:
    return AnalysisOutcome(
        id=request_id,
        status=OutcomeStatus.ERROR,
        predicted_class=0,
        probability0=0.5,
        probability1=0.5,
        raw_output=f"Error: {message}",
        processing_time=max(0.0, processing_time),
        error_message=message,
        attempts=attempts,
    )
