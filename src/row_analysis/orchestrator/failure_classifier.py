"""Deterministic failure classification for the per-row retry policy."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from row_analysis.orchestrator.models import FailureClass

FAILURE_CLASSIFIER_VERSION = 1

HTTP_ACCEPTED = 202
HTTP_TOO_MANY_REQUESTS = 429
HTTP_SERVER_ERROR_MIN = 500

_TIMEOUT_PATTERNS: tuple[str, ...] = (
    "timeout",
    "timed out",
)


class ResponseKind(str, Enum):
    """How the retry loop should treat one remote response."""

    SUCCESS = "success"
    ACCEPTED = "accepted"
    RETRYABLE = "retryable"
    FATAL = "fatal"


@dataclass(frozen=True, slots=True)
class ResponseClassification:
    """Normalized classification of one attempt's result."""

    kind: ResponseKind
    failure_class: FailureClass | None
    reason_code: str

    @property
    def retryable(self) -> bool:
        return self.kind is ResponseKind.RETRYABLE

    def to_event_details(self, *, status_code: int | None) -> dict[str, object]:
        """Serialize classifier diagnostics for log records."""

        return {
            "classifier_version": FAILURE_CLASSIFIER_VERSION,
            "status_code": status_code,
            "kind": self.kind.value,
            "failure_class": self.failure_class.value if self.failure_class else None,
            "reason_code": self.reason_code,
        }


def classify_http_status(status_code: int) -> ResponseClassification:
    """Classify an HTTP status into success, async acceptance, retryable or fatal."""

    if status_code >= HTTP_SERVER_ERROR_MIN:
        return ResponseClassification(
            kind=ResponseKind.RETRYABLE,
            failure_class=FailureClass.SERVER_TRANSIENT,
            reason_code=f"http_{status_code}_server_error",
        )
    if status_code == HTTP_TOO_MANY_REQUESTS:
        return ResponseClassification(
            kind=ResponseKind.RETRYABLE,
            failure_class=FailureClass.RATE_LIMITED,
            reason_code="http_429_rate_limited",
        )
    if status_code == HTTP_ACCEPTED:
        return ResponseClassification(
            kind=ResponseKind.ACCEPTED,
            failure_class=None,
            reason_code="http_202_accepted",
        )
    if 200 <= status_code < 300:  # noqa: PLR2004
        return ResponseClassification(
            kind=ResponseKind.SUCCESS,
            failure_class=None,
            reason_code=f"http_{status_code}_ok",
        )
    return ResponseClassification(
        kind=ResponseKind.FATAL,
        failure_class=FailureClass.CLIENT_NON_RETRYABLE,
        reason_code=f"http_{status_code}_non_retryable",
    )


def classify_transport_error(error: BaseException) -> ResponseClassification:
    """Classify a network-level failure; every transport failure is retryable."""

    if isinstance(error, TimeoutError) or _first_match(str(error).lower(), _TIMEOUT_PATTERNS):
        return ResponseClassification(
            kind=ResponseKind.RETRYABLE,
            failure_class=FailureClass.TIMEOUT,
            reason_code="transport_timeout",
        )
    return ResponseClassification(
        kind=ResponseKind.RETRYABLE,
        failure_class=FailureClass.NETWORK,
        reason_code="transport_network_error",
    )


def configuration_failure() -> ResponseClassification:
    return ResponseClassification(
        kind=ResponseKind.FATAL,
        failure_class=FailureClass.CONFIGURATION,
        reason_code="endpoint_not_configured",
    )


def _first_match(haystack: str, patterns: tuple[str, ...]) -> str | None:
    for pattern in patterns:
        if pattern in haystack:
            return pattern
    return None
