"""Lifecycle event schema and the base iterator driving streamed generations."""

from __future__ import annotations

import abc
import asyncio
import logging
from collections import deque
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, fields, is_dataclass
from datetime import datetime
from enum import Enum
from typing import Any, AsyncIterator, ClassVar, Deque, Generic, List, Protocol, TypeVar, Union

from ..errors import AdapterError
from ..result import CallWarning, FinishReason, ProviderMetadata, Usage

LOGGER = logging.getLogger(__name__)

ChunkT = TypeVar("ChunkT")


@dataclass(slots=True)
class StreamStartEvent:
    """First event of every stream; carries the request-building warnings."""

    type: ClassVar[str] = "stream-start"

    warnings: Sequence[CallWarning] = ()


@dataclass(slots=True)
class ResponseMetadataEvent:
    type: ClassVar[str] = "response-metadata"

    id: str | None = None
    model_id: str | None = None
    timestamp: datetime | None = None


@dataclass(slots=True)
class TextStartEvent:
    type: ClassVar[str] = "text-start"

    id: str
    provider_metadata: ProviderMetadata | None = None


@dataclass(slots=True)
class TextDeltaEvent:
    type: ClassVar[str] = "text-delta"

    id: str
    delta: str


@dataclass(slots=True)
class TextEndEvent:
    type: ClassVar[str] = "text-end"

    id: str
    provider_metadata: ProviderMetadata | None = None


@dataclass(slots=True)
class ReasoningStartEvent:
    type: ClassVar[str] = "reasoning-start"

    id: str
    provider_metadata: ProviderMetadata | None = None


@dataclass(slots=True)
class ReasoningDeltaEvent:
    type: ClassVar[str] = "reasoning-delta"

    id: str
    delta: str
    provider_metadata: ProviderMetadata | None = None


@dataclass(slots=True)
class ReasoningEndEvent:
    type: ClassVar[str] = "reasoning-end"

    id: str
    provider_metadata: ProviderMetadata | None = None


@dataclass(slots=True)
class ToolInputStartEvent:
    type: ClassVar[str] = "tool-input-start"

    id: str
    tool_name: str


@dataclass(slots=True)
class ToolInputDeltaEvent:
    type: ClassVar[str] = "tool-input-delta"

    id: str
    delta: str


@dataclass(slots=True)
class ToolInputEndEvent:
    type: ClassVar[str] = "tool-input-end"

    id: str


@dataclass(slots=True)
class ToolCallEvent:
    """A tool call whose JSON arguments are complete."""

    type: ClassVar[str] = "tool-call"

    tool_call_id: str
    tool_name: str
    input: str


@dataclass(slots=True)
class ErrorEvent:
    type: ClassVar[str] = "error"

    error: BaseException


@dataclass(slots=True)
class FinishEvent:
    """Terminal event; exactly one is emitted per stream, always last."""

    type: ClassVar[str] = "finish"

    finish_reason: FinishReason
    usage: Usage = field(default_factory=Usage)
    provider_metadata: ProviderMetadata | None = None


LifecycleEvent = Union[
    StreamStartEvent,
    ResponseMetadataEvent,
    TextStartEvent,
    TextDeltaEvent,
    TextEndEvent,
    ReasoningStartEvent,
    ReasoningDeltaEvent,
    ReasoningEndEvent,
    ToolInputStartEvent,
    ToolInputDeltaEvent,
    ToolInputEndEvent,
    ToolCallEvent,
    ErrorEvent,
    FinishEvent,
]


class StreamNormalizer(Protocol[ChunkT]):
    """Turns raw provider chunks into lifecycle events for one stream."""

    @property
    def terminated(self) -> bool:
        """Whether the provider signalled that no further chunks matter."""

    async def normalize_chunk(self, chunk: ChunkT) -> List[LifecycleEvent]:
        """Map one provider chunk into lifecycle events."""

    def normalize_failure(self, error: BaseException) -> List[LifecycleEvent]:
        """Report a transport failure that ended the stream early."""

    def finalize(self) -> List[LifecycleEvent]:
        """Close every open item and produce the terminal finish event."""


class BaseStreamIterator(AsyncIterator[LifecycleEvent], Generic[ChunkT], metaclass=abc.ABCMeta):
    """Shared async iterator driving provider-specific streaming adapters.

    Subclasses source raw provider chunks by implementing
    :meth:`_get_next_chunk`. Each chunk is normalized into zero or more
    lifecycle events by a :class:`StreamNormalizer`. The iterator emits a
    :class:`StreamStartEvent` before anything else, and once the chunk source
    is exhausted, cancelled, or terminated by the provider it runs the
    normalizer's finalization exactly once, so every stream ends with a
    single :class:`FinishEvent`.
    """

    def __init__(
        self,
        normalizer: StreamNormalizer[ChunkT],
        *,
        warnings: Sequence[CallWarning] = (),
    ) -> None:
        self._normalizer = normalizer
        self._warnings = tuple(warnings)
        self._buffer: Deque[LifecycleEvent] = deque()
        self._started = False
        self._source_done = False
        self._source_released = False
        self._finalized = False
        self._closed = False
        self._close_lock = asyncio.Lock()

    def __aiter__(self) -> BaseStreamIterator[ChunkT]:
        return self

    async def __anext__(self) -> LifecycleEvent:
        while True:
            if self._buffer:
                return self._buffer.popleft()

            if self._closed:
                raise StopAsyncIteration

            if self._finalized:
                await self.close()
                raise StopAsyncIteration

            if self._source_done or self._normalizer.terminated:
                await self._finish()
                continue

            try:
                chunk = await self._get_next_chunk()
            except StopAsyncIteration:
                self._emit_start()
                self._source_done = True
                continue
            except asyncio.CancelledError:
                await self.close()
                raise
            except AdapterError as exc:
                if not self._started:
                    await self.close()
                    raise
                LOGGER.warning("stream source failed after start: %s", exc)
                self._buffer.extend(self._normalizer.normalize_failure(exc))
                self._source_done = True
                continue

            self._emit_start()
            self._buffer.extend(await self._normalizer.normalize_chunk(chunk))

    @property
    def started(self) -> bool:
        return self._started

    async def cancel(self) -> None:
        """Stop requesting chunks; remaining iteration yields the closing events."""

        if self._source_done:
            return
        self._source_done = True
        self._emit_start()
        await self._release_source_once()

    async def close(self) -> None:
        """Release provider resources and prevent additional iteration."""

        async with self._close_lock:
            if self._closed:
                return

            self._closed = True
            if not self._finalized:
                # Finalization still runs once so the normalizer state is
                # settled; the events are discarded with the buffer.
                self._finalized = True
                self._normalizer.finalize()
            self._buffer.clear()
            await self._release_source_once()

    async def aclose(self) -> None:
        await self.close()

    async def _finish(self) -> None:
        await self._release_source_once()
        if self._finalized:
            return
        self._finalized = True
        self._emit_start()
        self._buffer.extend(self._normalizer.finalize())

    def _emit_start(self) -> None:
        if self._started:
            return
        self._started = True
        self._buffer.append(StreamStartEvent(warnings=self._warnings))

    async def _release_source_once(self) -> None:
        if self._source_released:
            return
        self._source_released = True
        await self._on_close()

    @abc.abstractmethod
    async def _get_next_chunk(self) -> ChunkT:
        """Retrieve the next raw chunk from the provider stream."""

    async def _on_close(self) -> None:
        """Allow subclasses to dispose provider resources when closing."""


async def replay_stream(iterator: AsyncIterator[LifecycleEvent]) -> List[LifecycleEvent]:
    """Collect all events emitted by a stream iterator."""

    events: List[LifecycleEvent] = []
    try:
        async for event in iterator:
            events.append(event)
    finally:
        closer = getattr(iterator, "aclose", None)
        if closer is not None:
            await closer()
    return events


def event_to_dict(event: LifecycleEvent) -> dict[str, Any]:
    """Render a lifecycle event as a JSON-compatible mapping."""

    payload: dict[str, Any] = {"type": event.type}
    for item in fields(event):
        payload[item.name] = _to_jsonable(getattr(event, item.name))
    return payload


def _to_jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, BaseException):
        return {"name": type(value).__name__, "message": str(value)}
    if isinstance(value, datetime):
        return value.isoformat()
    if is_dataclass(value) and not isinstance(value, type):
        return {item.name: _to_jsonable(getattr(value, item.name)) for item in fields(value)}
    if isinstance(value, Mapping):
        return {str(key): _to_jsonable(inner) for key, inner in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_jsonable(inner) for inner in value]
    return value


__all__ = [
    "BaseStreamIterator",
    "ErrorEvent",
    "FinishEvent",
    "LifecycleEvent",
    "ReasoningDeltaEvent",
    "ReasoningEndEvent",
    "ReasoningStartEvent",
    "ResponseMetadataEvent",
    "StreamNormalizer",
    "StreamStartEvent",
    "TextDeltaEvent",
    "TextEndEvent",
    "TextStartEvent",
    "ToolCallEvent",
    "ToolInputDeltaEvent",
    "ToolInputEndEvent",
    "ToolInputStartEvent",
    "event_to_dict",
    "replay_stream",
]
