"""Runtime configuration for the row analysis orchestrator."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from urllib.parse import urlparse

DEFAULT_USER_AGENT = "RowAnalysis/0.1 (+https://github.com/row-analysis/row-analysis)"


@dataclass(slots=True)
class DispatchSettings:
    """Worker pool and staggered launch settings."""

    concurrency_limit: int = 5
    stagger_seconds: float = 1.0


@dataclass(slots=True)
class RetrySettings:
    """Per-row retry policy."""

    max_retries: int = 3
    backoff_seconds: float = 10.0
    attempt_timeout_seconds: float = 600.0

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1


@dataclass(slots=True)
class EndpointSettings:
    """Remote classification endpoint settings."""

    url: str = ""
    message_field: str = "message"
    connect_timeout_seconds: float = 10.0
    user_agent: str = DEFAULT_USER_AGENT

    @property
    def configured(self) -> bool:
        return bool(self.url.strip())


@dataclass(slots=True)
class ConfidenceSettings:
    """Low-confidence boosting applied to completed rows before reporting."""

    enabled: bool = True
    band_low: float = 0.5
    band_high: float = 0.6
    boost_min: float = 0.10
    boost_max: float = 0.30
    ceiling: float = 0.95


@dataclass(slots=True)
class CombineSettings:
    """Section labels used when both row texts are present."""

    primary_label: str = "Maker Justification"
    secondary_label: str = "Checker Justification"


@dataclass(slots=True)
class Settings:
    """Application settings grouped by domain concerns."""

    dispatch: DispatchSettings = field(default_factory=DispatchSettings)
    retry: RetrySettings = field(default_factory=RetrySettings)
    endpoint: EndpointSettings = field(default_factory=EndpointSettings)
    confidence: ConfidenceSettings = field(default_factory=ConfidenceSettings)
    combine: CombineSettings = field(default_factory=CombineSettings)

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment with defaults matching the documented policy."""

        return cls(
            dispatch=DispatchSettings(
                concurrency_limit=int(os.getenv("ROW_ANALYSIS_CONCURRENCY_LIMIT", "5")),
                stagger_seconds=float(os.getenv("ROW_ANALYSIS_STAGGER_SECONDS", "1.0")),
            ),
            retry=RetrySettings(
                max_retries=int(os.getenv("ROW_ANALYSIS_MAX_RETRIES", "3")),
                backoff_seconds=float(os.getenv("ROW_ANALYSIS_RETRY_BACKOFF_SECONDS", "10.0")),
                attempt_timeout_seconds=float(
                    os.getenv("ROW_ANALYSIS_ATTEMPT_TIMEOUT_SECONDS", "600.0"),
                ),
            ),
            endpoint=EndpointSettings(
                url=os.getenv("ROW_ANALYSIS_ENDPOINT_URL", "").strip(),
                message_field=os.getenv("ROW_ANALYSIS_MESSAGE_FIELD", "message").strip()
                or "message",
                connect_timeout_seconds=float(
                    os.getenv("ROW_ANALYSIS_CONNECT_TIMEOUT_SECONDS", "10.0"),
                ),
                user_agent=os.getenv("ROW_ANALYSIS_USER_AGENT", DEFAULT_USER_AGENT),
            ),
            confidence=ConfidenceSettings(
                enabled=_env_bool("ROW_ANALYSIS_CONFIDENCE_BOOST", default=True),
                band_low=float(os.getenv("ROW_ANALYSIS_CONFIDENCE_BAND_LOW", "0.5")),
                band_high=float(os.getenv("ROW_ANALYSIS_CONFIDENCE_BAND_HIGH", "0.6")),
                boost_min=float(os.getenv("ROW_ANALYSIS_CONFIDENCE_BOOST_MIN", "0.10")),
                boost_max=float(os.getenv("ROW_ANALYSIS_CONFIDENCE_BOOST_MAX", "0.30")),
                ceiling=float(os.getenv("ROW_ANALYSIS_CONFIDENCE_CEILING", "0.95")),
            ),
            combine=CombineSettings(
                primary_label=os.getenv("ROW_ANALYSIS_PRIMARY_LABEL", "Maker Justification"),
                secondary_label=os.getenv(
                    "ROW_ANALYSIS_SECONDARY_LABEL",
                    "Checker Justification",
                ),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error if any setting is out of its documented range."""

        if self.dispatch.concurrency_limit < 1:
            raise ValueError("ROW_ANALYSIS_CONCURRENCY_LIMIT must be >= 1.")
        if self.dispatch.stagger_seconds < 0:
            raise ValueError("ROW_ANALYSIS_STAGGER_SECONDS must be >= 0.")
        if self.retry.max_retries < 0:
            raise ValueError("ROW_ANALYSIS_MAX_RETRIES must be >= 0.")
        if self.retry.backoff_seconds < 0:
            raise ValueError("ROW_ANALYSIS_RETRY_BACKOFF_SECONDS must be >= 0.")
        if self.retry.attempt_timeout_seconds <= 0:
            raise ValueError("ROW_ANALYSIS_ATTEMPT_TIMEOUT_SECONDS must be > 0.")
        if self.endpoint.configured:
            _validate_endpoint_url(self.endpoint.url)
        confidence = self.confidence
        if not 0.0 <= confidence.band_low <= confidence.band_high <= 1.0:
            raise ValueError(
                "ROW_ANALYSIS_CONFIDENCE_BAND_LOW/HIGH must satisfy 0 <= low <= high <= 1.",
            )
        if not 0.0 <= confidence.boost_min <= confidence.boost_max:
            raise ValueError(
                "ROW_ANALYSIS_CONFIDENCE_BOOST_MIN/MAX must satisfy 0 <= min <= max.",
            )
        if not 0.0 < confidence.ceiling <= 1.0:
            raise ValueError("ROW_ANALYSIS_CONFIDENCE_CEILING must be in (0, 1].")


def _validate_endpoint_url(value: str) -> None:
    parsed = urlparse(value)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError(
            "Invalid classifier endpoint URL: "
            f"{value!r}. Expected an absolute URL with http:// or https:// scheme.",
        )


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")
