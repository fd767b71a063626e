"""Backend interface for remote classification calls."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


class BackendTransportError(RuntimeError):
    """Network-level failure or timeout; always retryable."""


class BackendConfigurationError(RuntimeError):
    """Backend cannot be called with the current configuration."""


@dataclass(frozen=True, slots=True)
class ClassifyRequest:
    """Inputs required to execute one classification attempt."""

    request_id: str
    text: str
    attempt: int
    timeout_seconds: float


@dataclass(frozen=True, slots=True)
class ClassifyResponse:
    """Status and body returned by the remote endpoint."""

    status_code: int
    text: str


class ClassifierBackend(Protocol):
    """Protocol implemented by remote classification transports."""

    async def classify(self, request: ClassifyRequest) -> ClassifyResponse:
        """Send one request and return status plus body, or raise a backend error."""
