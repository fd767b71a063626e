"""Progress events and their delivery to batch consumers."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from enum import Enum

from row_analysis.orchestrator.models import AnalysisOutcome

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    """Progress event discriminator."""

    STATUS = "status"
    ROW_START = "row_start"
    ROW_RETRY = "row_retry"
    ROW_PROCESSING = "row_processing"
    ROW_COMPLETE = "row_complete"
    ROW_ERROR = "row_error"
    COMPLETE = "complete"


ROW_RESULT_KINDS = frozenset(
    {EventKind.ROW_PROCESSING, EventKind.ROW_COMPLETE, EventKind.ROW_ERROR},
)


@dataclass(frozen=True, slots=True)
class StatusEvent:
    message: str
    total: int
    kind: EventKind = field(default=EventKind.STATUS, init=False)

    def to_dict(self) -> dict[str, object]:
        return {"type": self.kind.value, "message": self.message, "total": self.total}


@dataclass(frozen=True, slots=True)
class RowStartEvent:
    id: str
    kind: EventKind = field(default=EventKind.ROW_START, init=False)

    def to_dict(self) -> dict[str, object]:
        return {"type": self.kind.value, "id": self.id}


@dataclass(frozen=True, slots=True)
class RowRetryEvent:
    id: str
    attempt: int
    max_attempts: int
    kind: EventKind = field(default=EventKind.ROW_RETRY, init=False)

    def to_dict(self) -> dict[str, object]:
        return {
            "type": self.kind.value,
            "id": self.id,
            "attempt": self.attempt,
            "max_attempts": self.max_attempts,
        }


@dataclass(frozen=True, slots=True)
class RowResultEvent:
    """Row-level resolution; `kind` is one of the row result kinds."""

    kind: EventKind
    outcome: AnalysisOutcome

    def __post_init__(self) -> None:
        if self.kind not in ROW_RESULT_KINDS:
            raise ValueError(f"Not a row result event kind: {self.kind.value}")

    @property
    def id(self) -> str:
        return self.outcome.id

    def to_dict(self) -> dict[str, object]:
        return {"type": self.kind.value, "data": self.outcome.to_dict()}


@dataclass(frozen=True, slots=True)
class CompleteEvent:
    message: str
    total: int
    kind: EventKind = field(default=EventKind.COMPLETE, init=False)

    def to_dict(self) -> dict[str, object]:
        return {"type": self.kind.value, "message": self.message, "total": self.total}


ProgressEvent = StatusEvent | RowStartEvent | RowRetryEvent | RowResultEvent | CompleteEvent
EventCallback = Callable[[ProgressEvent], None]


class EventDeliveryError(RuntimeError):
    """A subscriber failed while handling a progress event."""

    def __init__(self, event: ProgressEvent, cause: BaseException) -> None:
        super().__init__(f"Failed to deliver {event.kind.value} event: {cause}")
        self.event = event


class EventChannel:
    """Async iterator over events, closed by the producer after the last one."""

    _CLOSED = object()

    def __init__(self) -> None:
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._closed = False

    def send(self, event: ProgressEvent) -> None:
        if self._closed:
            return
        self._queue.put_nowait(event)

    def close(self, error: BaseException | None = None) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(error if error is not None else self._CLOSED)

    def __aiter__(self) -> AsyncIterator[ProgressEvent]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[ProgressEvent]:
        while True:
            item = await self._queue.get()
            if item is self._CLOSED:
                return
            if isinstance(item, BaseException):
                raise item
            yield item  # type: ignore[misc]


class ProgressEmitter:
    """Fan progress events out to callbacks and channels in emission order."""

    def __init__(self, callbacks: list[EventCallback] | None = None) -> None:
        self._callbacks: list[EventCallback] = list(callbacks or [])
        self._channels: list[EventChannel] = []
        self.counts: dict[EventKind, int] = dict.fromkeys(EventKind, 0)

    def subscribe(self, callback: EventCallback) -> None:
        self._callbacks.append(callback)

    def open_channel(self) -> EventChannel:
        channel = EventChannel()
        self._channels.append(channel)
        return channel

    def emit(self, event: ProgressEvent) -> None:
        self.counts[event.kind] += 1
        for channel in self._channels:
            channel.send(event)
        for callback in self._callbacks:
            try:
                callback(event)
            except Exception as exc:
                raise EventDeliveryError(event, exc) from exc

    @property
    def resolved_rows(self) -> int:
        """Rows that reached a terminal state (complete or error)."""

        return self.counts[EventKind.ROW_COMPLETE] + self.counts[EventKind.ROW_ERROR]

    def close(self, error: BaseException | None = None) -> None:
        for channel in self._channels:
            channel.close(error)
