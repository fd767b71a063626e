"""Classifier backend implementations."""

from row_analysis.orchestrator.backend.base import (
    BackendConfigurationError,
    BackendTransportError,
    ClassifierBackend,
    ClassifyRequest,
    ClassifyResponse,
)
from row_analysis.orchestrator.backend.echo_backend import EchoClassifierBackend
from row_analysis.orchestrator.backend.http_backend import HttpClassifierBackend

__all__ = [
    "BackendConfigurationError",
    "BackendTransportError",
    "ClassifierBackend",
    "ClassifyRequest",
    "ClassifyResponse",
    "EchoClassifierBackend",
    "HttpClassifierBackend",
]
