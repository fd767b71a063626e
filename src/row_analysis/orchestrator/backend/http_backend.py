"""Async HTTP transport to the remote classification endpoint."""

from __future__ import annotations

import logging

import httpx

from row_analysis.config import EndpointSettings
from row_analysis.orchestrator.backend.base import (
    BackendConfigurationError,
    BackendTransportError,
    ClassifyRequest,
    ClassifyResponse,
)

logger = logging.getLogger(__name__)


class HttpClassifierBackend:
    """POST each row text as a JSON body and hand back status plus raw body.

    Status codes are not interpreted here; retry policy belongs to the caller.
    """

    def __init__(
        self,
        settings: EndpointSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.settings = settings
        base_headers = {"User-Agent": settings.user_agent}
        if headers:
            base_headers.update(headers)
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(None, connect=settings.connect_timeout_seconds),
            headers=base_headers,
            transport=transport,
            follow_redirects=True,
        )

    async def classify(self, request: ClassifyRequest) -> ClassifyResponse:
        if not self.settings.configured:
            raise BackendConfigurationError("Classifier endpoint not configured")

        body = {self.settings.message_field: request.text}
        try:
            response = await self._client.post(
                self.settings.url,
                json=body,
                timeout=httpx.Timeout(
                    request.timeout_seconds,
                    connect=self.settings.connect_timeout_seconds,
                ),
            )
        except httpx.TimeoutException as exc:
            logger.warning("Timeout classifying row %s", request.request_id)
            raise BackendTransportError(f"timeout: {exc}") from exc
        except httpx.HTTPError as exc:
            logger.warning("HTTP error classifying row %s: %s", request.request_id, exc)
            raise BackendTransportError(str(exc) or exc.__class__.__name__) from exc

        return ClassifyResponse(status_code=response.status_code, text=response.text)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> HttpClassifierBackend:
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.aclose()
