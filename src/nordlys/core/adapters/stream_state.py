"""Reconstruct lifecycle events from the Responses API wire event stream.

One :class:`ResponsesStreamNormalizer` is created per streaming call and owns
a :class:`StreamSession`. Wire events are handled strictly in arrival order;
each handler mutates the session and returns the lifecycle events to emit.

Identifiers follow these rules:

* text items use the wire item id;
* reasoning summary parts use ``<item id>:<summary index>``; raw reasoning
  text that arrives after every summary part concluded uses ``<item id>:text``;
* tool inputs use the caller-visible call id, while buffers stay keyed by the
  wire item id that argument deltas address.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List

from pydantic import ValidationError

from ...io.schema import (
    ContentPartAddedEvent,
    ContentPartDoneEvent,
    FunctionCallArgumentsDeltaEvent,
    FunctionCallArgumentsDoneEvent,
    FunctionCallItem,
    OutputItemAddedEvent,
    OutputItemDoneEvent,
    OutputMessage,
    OutputTextDeltaEvent,
    ReasoningItem,
    ReasoningSummaryPartAddedEvent,
    ReasoningSummaryPartDoneEvent,
    ReasoningSummaryTextDeltaEvent,
    ReasoningSummaryTextDoneEvent,
    ReasoningTextDeltaEvent,
    ReasoningTextPart,
    RefusalPart,
    ResponseCompletedEvent,
    ResponseCreatedEvent,
    ResponseErrorEvent,
    ResponseInProgressEvent,
    StreamEventModel,
    parse_stream_event,
)
from ..errors import APICallError, StreamParseError
from ..result import FinishReason, FinishReasonType, ProviderMetadata, Usage
from .stream import (
    ErrorEvent,
    FinishEvent,
    LifecycleEvent,
    ReasoningDeltaEvent,
    ReasoningEndEvent,
    ReasoningStartEvent,
    ResponseMetadataEvent,
    TextDeltaEvent,
    TextEndEvent,
    TextStartEvent,
    ToolCallEvent,
    ToolInputDeltaEvent,
    ToolInputEndEvent,
    ToolInputStartEvent,
)
from .utils import PROVIDER_KEY, build_provider_metadata, convert_usage, is_complete_json, map_response_status

LOGGER = logging.getLogger(__name__)

_TERMINAL_STATUS = {
    "response.completed": "completed",
    "response.incomplete": "incomplete",
    "response.failed": "failed",
}


class ItemKind(str, Enum):
    MESSAGE = "message"
    REASONING = "reasoning"
    FUNCTION_CALL = "function_call"
    OTHER = "other"


class SummaryPartStatus(str, Enum):
    """Progress of one reasoning summary part."""

    ACTIVE = "active"
    CAN_CONCLUDE = "can-conclude"
    CONCLUDED = "concluded"


@dataclass(slots=True)
class ToolCallBuffer:
    tool_call_id: str
    tool_name: str
    arguments: str = ""


@dataclass(slots=True)
class ReasoningState:
    """Summary part registry and opaque continuation token of a reasoning item."""

    encrypted_content: str | None = None
    parts: dict[int, SummaryPartStatus] = field(default_factory=dict)
    text_open: bool = False


@dataclass(frozen=True, slots=True)
class WireChunk:
    """One decoded SSE payload: a wire event, an unknown event, or a parse failure."""

    event: StreamEventModel | None = None
    error: StreamParseError | None = None


def decode_chunk(data: str) -> WireChunk:
    """Decode the ``data:`` payload of a single SSE frame."""

    try:
        payload = json.loads(data)
    except ValueError as exc:
        return WireChunk(error=StreamParseError(f"stream chunk is not valid JSON: {exc}", raw=data))

    if not isinstance(payload, dict):
        return WireChunk(error=StreamParseError("stream chunk must be a JSON object", raw=data))

    try:
        event = parse_stream_event(payload)
    except ValidationError as exc:
        msg = f"invalid '{payload.get('type')}' stream event: {exc.error_count()} validation error(s)"
        return WireChunk(error=StreamParseError(msg, raw=data))
    return WireChunk(event=event)


@dataclass(slots=True)
class StreamSession:
    """Mutable state of one streaming call.

    An identifier is present in a buffer mapping once it has ever been
    started, and in the matching active set only while it is open.
    """

    store: bool = True
    text_buffers: dict[str, str] = field(default_factory=dict)
    reasoning_buffers: dict[str, str] = field(default_factory=dict)
    tool_call_buffers: dict[str, ToolCallBuffer] = field(default_factory=dict)
    active_text_items: set[str] = field(default_factory=set)
    active_reasoning_items: set[str] = field(default_factory=set)
    active_tool_calls: set[str] = field(default_factory=set)
    reasoning_items: dict[str, ReasoningState] = field(default_factory=dict)
    item_kinds: dict[str, ItemKind] = field(default_factory=dict)
    finish_reason: FinishReason = field(default_factory=lambda: FinishReason(FinishReasonType.OTHER))
    usage: Usage = field(default_factory=Usage)
    has_function_call: bool = False
    metadata_sent: bool = False
    terminated: bool = False
    response_id: str | None = None
    provider: str | None = None
    service_tier: str | None = None
    system_fingerprint: str | None = None

    def provider_metadata(self) -> ProviderMetadata | None:
        return build_provider_metadata(
            response_id=self.response_id,
            provider=self.provider,
            service_tier=self.service_tier,
            system_fingerprint=self.system_fingerprint,
        )


def reasoning_part_id(item_id: str, index: int) -> str:
    return f"{item_id}:{index}"


def reasoning_text_id(item_id: str) -> str:
    return f"{item_id}:text"


class ResponsesStreamNormalizer:
    """Streaming reconstruction state machine for the Responses API.

    Parameters
    ----------
    store:
        Whether the backend persists reasoning for this turn. When it does not,
        a finished summary part stays open until the next part starts or the
        reasoning item completes, so its final ``reasoning-end`` can carry the
        item's encrypted content.
    """

    def __init__(self, *, store: bool = True) -> None:
        self.session = StreamSession(store=store)

    @property
    def terminated(self) -> bool:
        return self.session.terminated

    async def normalize_chunk(self, chunk: WireChunk) -> List[LifecycleEvent]:
        return self.handle(chunk)

    def handle(self, chunk: WireChunk) -> List[LifecycleEvent]:
        """Process one decoded chunk synchronously."""

        if self.session.terminated:
            return []
        if chunk.error is not None:
            LOGGER.warning("malformed stream chunk: %s", chunk.error)
            self.session.finish_reason = FinishReason(FinishReasonType.ERROR)
            return [ErrorEvent(error=chunk.error)]
        if chunk.event is None:
            LOGGER.debug("skipping unknown stream event")
            return []
        return self.handle_event(chunk.event)

    def handle_event(self, event: StreamEventModel) -> List[LifecycleEvent]:
        if isinstance(event, OutputTextDeltaEvent):
            return self._on_text_delta(event.item_id, event.delta)
        if isinstance(event, ReasoningSummaryTextDeltaEvent):
            return self._on_summary_delta(event)
        if isinstance(event, ReasoningTextDeltaEvent):
            return self._on_reasoning_text(event.item_id, event.delta)
        if isinstance(event, FunctionCallArgumentsDeltaEvent):
            return self._on_arguments_delta(event)
        if isinstance(event, OutputItemAddedEvent):
            return self._on_item_added(event)
        if isinstance(event, OutputItemDoneEvent):
            return self._on_item_done(event)
        if isinstance(event, FunctionCallArgumentsDoneEvent):
            return self._on_arguments_done(event)
        if isinstance(event, ReasoningSummaryPartAddedEvent):
            return self._on_summary_part_added(event)
        if isinstance(event, ReasoningSummaryPartDoneEvent):
            return self._on_summary_part_done(event)
        if isinstance(event, ReasoningSummaryTextDoneEvent):
            return self._on_summary_text_done(event)
        if isinstance(event, ContentPartAddedEvent):
            return self._on_content_part_added(event)
        if isinstance(event, ContentPartDoneEvent):
            return self._on_content_part_done(event)
        if isinstance(event, ResponseCreatedEvent):
            return self._on_created(event)
        if isinstance(event, ResponseCompletedEvent):
            return self._on_completed(event)
        if isinstance(event, ResponseErrorEvent):
            return self._on_error(event)
        if isinstance(event, ResponseInProgressEvent):
            return []
        LOGGER.debug("unhandled stream event type: %s", type(event).__name__)  # pragma: no cover
        return []  # pragma: no cover

    def normalize_failure(self, error: BaseException) -> List[LifecycleEvent]:
        self.session.finish_reason = FinishReason(FinishReasonType.ERROR)
        return [ErrorEvent(error=error)]

    def finalize(self) -> List[LifecycleEvent]:
        """Close every open item and emit the single terminal finish event."""

        session = self.session
        events: List[LifecycleEvent] = []

        for item_id in list(session.text_buffers):
            if item_id in session.active_text_items:
                LOGGER.debug("closing text item %s at end of stream", item_id)
                events.extend(self._end_text(item_id))

        for item_id in list(session.reasoning_items):
            LOGGER.debug("closing reasoning item %s at end of stream", item_id)
            events.extend(self._end_reasoning_item(item_id))
        session.active_reasoning_items.clear()

        for key in list(session.tool_call_buffers):
            events.extend(self._conclude_tool_call(key))

        LOGGER.info(
            "stream finished reason=%s input_tokens=%s output_tokens=%s",
            session.finish_reason.unified.value,
            session.usage.input_tokens.total,
            session.usage.output_tokens.total,
        )
        events.append(
            FinishEvent(
                finish_reason=session.finish_reason,
                usage=session.usage,
                provider_metadata=session.provider_metadata(),
            )
        )
        return events

    # -- response level ---------------------------------------------------

    def _on_created(self, event: ResponseCreatedEvent) -> List[LifecycleEvent]:
        session = self.session
        if session.metadata_sent:
            return []
        session.metadata_sent = True
        response = event.response
        session.response_id = response.id or None
        timestamp = None
        if response.created_at is not None:
            timestamp = datetime.fromtimestamp(response.created_at, tz=timezone.utc)
        return [ResponseMetadataEvent(id=response.id or None, model_id=response.model or None, timestamp=timestamp)]

    def _on_completed(self, event: ResponseCompletedEvent) -> List[LifecycleEvent]:
        session = self.session
        response = event.response
        if any(isinstance(item, FunctionCallItem) for item in response.output):
            session.has_function_call = True

        status = response.status or _TERMINAL_STATUS[event.type]
        incomplete_reason = response.incomplete_details.reason if response.incomplete_details else None
        session.finish_reason = map_response_status(
            status,
            incomplete_reason=incomplete_reason,
            has_function_call=session.has_function_call,
        )
        session.usage = convert_usage(response.usage)
        if response.id:
            session.response_id = response.id
        if response.provider:
            session.provider = response.provider
        if response.service_tier:
            session.service_tier = response.service_tier
        if response.system_fingerprint:
            session.system_fingerprint = response.system_fingerprint

        if response.error is not None:
            return [ErrorEvent(error=APICallError.from_error_payload(response.error.model_dump()))]
        return []

    def _on_error(self, event: ResponseErrorEvent) -> List[LifecycleEvent]:
        session = self.session
        LOGGER.warning("backend reported stream error: %s", event.error.message)
        code = event.error.code
        session.finish_reason = FinishReason(FinishReasonType.ERROR, raw=None if code is None else str(code))
        session.terminated = True
        return [ErrorEvent(error=APICallError.from_error_payload(event.error.model_dump()))]

    # -- output items -----------------------------------------------------

    def _on_item_added(self, event: OutputItemAddedEvent) -> List[LifecycleEvent]:
        item = event.item
        if isinstance(item, OutputMessage):
            self.session.item_kinds[item.id] = ItemKind.MESSAGE
            return self._start_text(item.id)
        if isinstance(item, ReasoningItem):
            self.session.item_kinds[item.id] = ItemKind.REASONING
            return self._start_reasoning_item(item.id, item.encrypted_content)
        if isinstance(item, FunctionCallItem):
            self.session.item_kinds[item.item_id] = ItemKind.FUNCTION_CALL
            return self._start_tool_call(item)
        if item.id:
            self.session.item_kinds[item.id] = ItemKind.OTHER
        LOGGER.debug("ignoring output item of type %s", item.type)
        return []

    def _on_item_done(self, event: OutputItemDoneEvent) -> List[LifecycleEvent]:
        session = self.session
        item_id = event.resolved_item_id
        if not item_id:
            LOGGER.debug("output item done without an identifier")
            return []

        item = event.item
        kind = session.item_kinds.get(item_id)
        if kind is None:
            kind = _kind_of(item)
            if kind is None:
                LOGGER.debug("output item %s done before it was seen; kind unknown", item_id)
                return []
            LOGGER.debug("output item %s done before it was added; treating as %s", item_id, kind.value)
            session.item_kinds[item_id] = kind

        if kind is ItemKind.MESSAGE:
            return self._finish_message(item_id, item if isinstance(item, OutputMessage) else None)
        if kind is ItemKind.REASONING:
            return self._finish_reasoning(item_id, item if isinstance(item, ReasoningItem) else None)
        if kind is ItemKind.FUNCTION_CALL:
            return self._finish_tool_call(item_id, item if isinstance(item, FunctionCallItem) else None)
        return []

    # -- text ---------------------------------------------------------------

    def _start_text(self, item_id: str) -> List[LifecycleEvent]:
        session = self.session
        if item_id in session.text_buffers:
            return []
        session.text_buffers[item_id] = ""
        session.active_text_items.add(item_id)
        session.item_kinds.setdefault(item_id, ItemKind.MESSAGE)
        return [TextStartEvent(id=item_id)]

    def _ensure_text(self, item_id: str) -> List[LifecycleEvent]:
        if item_id in self.session.text_buffers:
            return []
        LOGGER.debug("text for unannounced item %s; synthesizing text-start", item_id)
        return self._start_text(item_id)

    def _append_text(self, item_id: str, delta: str) -> List[LifecycleEvent]:
        session = self.session
        if not delta:
            return []
        if item_id not in session.active_text_items:
            LOGGER.debug("dropping text for closed item %s", item_id)
            return []
        session.text_buffers[item_id] += delta
        return [TextDeltaEvent(id=item_id, delta=delta)]

    def _reconcile_text(self, item_id: str, full_text: str) -> List[LifecycleEvent]:
        current = self.session.text_buffers.get(item_id, "")
        if len(full_text) > len(current) and full_text.startswith(current):
            return self._append_text(item_id, full_text[len(current) :])
        return []

    def _end_text(self, item_id: str) -> List[LifecycleEvent]:
        session = self.session
        if item_id not in session.active_text_items:
            return []
        session.active_text_items.discard(item_id)
        return [TextEndEvent(id=item_id)]

    def _on_text_delta(self, item_id: str, delta: str) -> List[LifecycleEvent]:
        events = self._ensure_text(item_id)
        events.extend(self._append_text(item_id, delta))
        return events

    def _finish_message(self, item_id: str, item: OutputMessage | None) -> List[LifecycleEvent]:
        events = self._ensure_text(item_id)
        if item is not None:
            events.extend(self._reconcile_text(item_id, item.text()))
        events.extend(self._end_text(item_id))
        return events

    def _on_content_part_added(self, event: ContentPartAddedEvent) -> List[LifecycleEvent]:
        part = event.part
        if part is None:
            return []
        if isinstance(part, ReasoningTextPart):
            if not part.text:
                return []
            return self._on_reasoning_text(event.item_id, part.text)
        # refusals surface as ordinary text
        text = part.refusal if isinstance(part, RefusalPart) else part.text
        events = self._ensure_text(event.item_id)
        events.extend(self._append_text(event.item_id, text))
        return events

    def _on_content_part_done(self, event: ContentPartDoneEvent) -> List[LifecycleEvent]:
        part = event.part
        if part is None:
            return []
        if isinstance(part, ReasoningTextPart):
            state = self.session.reasoning_items.get(event.item_id)
            if state is None:
                return []
            if state.text_open:
                current = self.session.reasoning_buffers[reasoning_text_id(event.item_id)]
                if len(part.text) > len(current) and part.text.startswith(current):
                    return self._append_reasoning_text(event.item_id, part.text[len(current) :])
                return []
            index = _latest_open_part(state)
            if index is None:
                return []
            return self._reconcile_reasoning(event.item_id, index, part.text)
        if event.item_id not in self.session.active_text_items:
            return []
        text = part.refusal if isinstance(part, RefusalPart) else part.text
        return self._reconcile_text(event.item_id, text)

    # -- reasoning ------------------------------------------------------------

    def _reasoning_metadata(self, item_id: str) -> ProviderMetadata:
        state = self.session.reasoning_items.get(item_id)
        encrypted = state.encrypted_content if state is not None else None
        return {PROVIDER_KEY: {"item_id": item_id, "reasoning_encrypted_content": encrypted}}

    def _start_reasoning_item(self, item_id: str, encrypted_content: str | None) -> List[LifecycleEvent]:
        session = self.session
        state = session.reasoning_items.get(item_id)
        if state is not None:
            # Registered early by a delta; the announcement still carries the token.
            if state.encrypted_content is None:
                state.encrypted_content = encrypted_content
            return []
        if reasoning_part_id(item_id, 0) in session.reasoning_buffers:
            return []
        session.reasoning_items[item_id] = ReasoningState(encrypted_content=encrypted_content)
        session.item_kinds.setdefault(item_id, ItemKind.REASONING)
        return self._open_part(item_id, 0)

    def _reasoning_state(self, item_id: str) -> ReasoningState | None:
        """Return the registry of an open reasoning item, registering unseen ones."""

        session = self.session
        state = session.reasoning_items.get(item_id)
        if state is not None:
            return state
        if session.item_kinds.get(item_id) is ItemKind.REASONING:
            LOGGER.debug("dropping reasoning for completed item %s", item_id)
            return None
        LOGGER.debug("reasoning for unannounced item %s; registering it", item_id)
        state = ReasoningState()
        session.reasoning_items[item_id] = state
        session.item_kinds[item_id] = ItemKind.REASONING
        return state

    def _open_part(self, item_id: str, index: int) -> List[LifecycleEvent]:
        session = self.session
        state = session.reasoning_items[item_id]
        if index in state.parts:
            return []

        events: List[LifecycleEvent] = []
        for earlier in sorted(state.parts):
            if state.parts[earlier] is SummaryPartStatus.CAN_CONCLUDE:
                events.extend(self._end_part(item_id, earlier))

        part_id = reasoning_part_id(item_id, index)
        state.parts[index] = SummaryPartStatus.ACTIVE
        session.reasoning_buffers.setdefault(part_id, "")
        session.active_reasoning_items.add(part_id)
        events.append(ReasoningStartEvent(id=part_id, provider_metadata=self._reasoning_metadata(item_id)))
        return events

    def _end_part(self, item_id: str, index: int) -> List[LifecycleEvent]:
        session = self.session
        state = session.reasoning_items[item_id]
        if state.parts.get(index) in (None, SummaryPartStatus.CONCLUDED):
            return []
        state.parts[index] = SummaryPartStatus.CONCLUDED
        part_id = reasoning_part_id(item_id, index)
        session.active_reasoning_items.discard(part_id)
        return [ReasoningEndEvent(id=part_id, provider_metadata=self._reasoning_metadata(item_id))]

    def _append_reasoning(self, item_id: str, index: int, delta: str) -> List[LifecycleEvent]:
        session = self.session
        state = session.reasoning_items[item_id]
        if not delta:
            return []
        if state.parts.get(index) is SummaryPartStatus.CONCLUDED:
            LOGGER.debug("dropping reasoning for concluded part %s:%s", item_id, index)
            return []
        part_id = reasoning_part_id(item_id, index)
        session.reasoning_buffers[part_id] += delta
        return [
            ReasoningDeltaEvent(
                id=part_id,
                delta=delta,
                provider_metadata=self._reasoning_metadata(item_id),
            )
        ]

    def _reconcile_reasoning(self, item_id: str, index: int, full_text: str) -> List[LifecycleEvent]:
        current = self.session.reasoning_buffers.get(reasoning_part_id(item_id, index), "")
        if len(full_text) > len(current) and full_text.startswith(current):
            return self._append_reasoning(item_id, index, full_text[len(current) :])
        return []

    def _on_summary_delta(self, event: ReasoningSummaryTextDeltaEvent) -> List[LifecycleEvent]:
        state = self._reasoning_state(event.item_id)
        if state is None:
            return []
        events = self._open_part(event.item_id, event.summary_index)
        events.extend(self._append_reasoning(event.item_id, event.summary_index, event.delta))
        return events

    def _on_reasoning_text(self, item_id: str, delta: str) -> List[LifecycleEvent]:
        state = self._reasoning_state(item_id)
        if state is None:
            return []
        if state.text_open:
            return self._append_reasoning_text(item_id, delta)
        index = _latest_open_part(state)
        if index is not None:
            return self._append_reasoning(item_id, index, delta)
        if not state.parts:
            events = self._open_part(item_id, 0)
            events.extend(self._append_reasoning(item_id, 0, delta))
            return events
        # Every summary part is concluded; raw text gets its own lane so later
        # summary indexes stay free.
        text_id = reasoning_text_id(item_id)
        state.text_open = True
        self.session.reasoning_buffers.setdefault(text_id, "")
        self.session.active_reasoning_items.add(text_id)
        events: List[LifecycleEvent] = [
            ReasoningStartEvent(id=text_id, provider_metadata=self._reasoning_metadata(item_id))
        ]
        events.extend(self._append_reasoning_text(item_id, delta))
        return events

    def _append_reasoning_text(self, item_id: str, delta: str) -> List[LifecycleEvent]:
        if not delta:
            return []
        text_id = reasoning_text_id(item_id)
        self.session.reasoning_buffers[text_id] += delta
        return [ReasoningDeltaEvent(id=text_id, delta=delta, provider_metadata=self._reasoning_metadata(item_id))]

    def _on_summary_text_done(self, event: ReasoningSummaryTextDoneEvent) -> List[LifecycleEvent]:
        state = self.session.reasoning_items.get(event.item_id)
        if state is None or event.summary_index not in state.parts:
            return []
        return self._reconcile_reasoning(event.item_id, event.summary_index, event.text)

    def _on_summary_part_added(self, event: ReasoningSummaryPartAddedEvent) -> List[LifecycleEvent]:
        state = self._reasoning_state(event.item_id)
        if state is None or event.summary_index in state.parts:
            return []
        return self._open_part(event.item_id, event.summary_index)

    def _on_summary_part_done(self, event: ReasoningSummaryPartDoneEvent) -> List[LifecycleEvent]:
        state = self.session.reasoning_items.get(event.item_id)
        if state is None:
            return []
        status = state.parts.get(event.summary_index)
        if status is not SummaryPartStatus.ACTIVE:
            return []
        if self.session.store:
            return self._end_part(event.item_id, event.summary_index)
        state.parts[event.summary_index] = SummaryPartStatus.CAN_CONCLUDE
        return []

    def _finish_reasoning(self, item_id: str, item: ReasoningItem | None) -> List[LifecycleEvent]:
        session = self.session
        events: List[LifecycleEvent] = []
        state = session.reasoning_items.get(item_id)

        if state is None:
            if reasoning_part_id(item_id, 0) in session.reasoning_buffers:
                return []
            # Item concluded without ever being announced; replay its summary.
            events.extend(self._start_reasoning_item(item_id, item.encrypted_content if item else None))
            state = session.reasoning_items[item_id]
            if item is not None:
                for index, summary in enumerate(item.summary):
                    events.extend(self._open_part(item_id, index))
                    events.extend(self._reconcile_reasoning(item_id, index, summary.text))

        if item is not None and item.encrypted_content is not None:
            state.encrypted_content = item.encrypted_content

        events.extend(self._end_reasoning_item(item_id))
        return events

    def _end_reasoning_item(self, item_id: str) -> List[LifecycleEvent]:
        state = self.session.reasoning_items.get(item_id)
        if state is None:
            return []
        events: List[LifecycleEvent] = []
        for index in sorted(state.parts):
            events.extend(self._end_part(item_id, index))
        if state.text_open:
            state.text_open = False
            text_id = reasoning_text_id(item_id)
            self.session.active_reasoning_items.discard(text_id)
            events.append(ReasoningEndEvent(id=text_id, provider_metadata=self._reasoning_metadata(item_id)))
        del self.session.reasoning_items[item_id]
        return events

    # -- tool calls -------------------------------------------------------------

    def _start_tool_call(self, item: FunctionCallItem) -> List[LifecycleEvent]:
        session = self.session
        key = item.item_id
        if key in session.tool_call_buffers:
            return []
        session.has_function_call = True
        buffer = ToolCallBuffer(tool_call_id=item.tool_call_id, tool_name=item.name)
        session.tool_call_buffers[key] = buffer
        session.active_tool_calls.add(key)
        session.item_kinds.setdefault(key, ItemKind.FUNCTION_CALL)
        events: List[LifecycleEvent] = [ToolInputStartEvent(id=buffer.tool_call_id, tool_name=buffer.tool_name)]
        if item.arguments:
            events.extend(self._append_arguments(key, item.arguments))
        return events

    def _resolve_tool_key(self, item_id: str) -> str | None:
        buffers = self.session.tool_call_buffers
        if item_id in buffers:
            return item_id
        for key, buffer in buffers.items():
            if buffer.tool_call_id == item_id:
                return key
        return None

    def _append_arguments(self, key: str, delta: str) -> List[LifecycleEvent]:
        session = self.session
        if not delta or key not in session.active_tool_calls:
            return []
        buffer = session.tool_call_buffers[key]
        buffer.arguments += delta
        events: List[LifecycleEvent] = [ToolInputDeltaEvent(id=buffer.tool_call_id, delta=delta)]
        if is_complete_json(buffer.arguments):
            events.extend(self._conclude_tool_call(key))
        return events

    def _conclude_tool_call(self, key: str) -> List[LifecycleEvent]:
        """Close a tool input once; the call itself is emitted only for complete JSON."""

        session = self.session
        if key not in session.active_tool_calls:
            return []
        session.active_tool_calls.discard(key)
        buffer = session.tool_call_buffers[key]
        events: List[LifecycleEvent] = [ToolInputEndEvent(id=buffer.tool_call_id)]
        if is_complete_json(buffer.arguments):
            events.append(
                ToolCallEvent(
                    tool_call_id=buffer.tool_call_id,
                    tool_name=buffer.tool_name,
                    input=buffer.arguments,
                )
            )
        else:
            LOGGER.debug("tool call %s closed with incomplete arguments", buffer.tool_call_id)
        return events

    def _reconcile_arguments(self, key: str, full_arguments: str | None) -> List[LifecycleEvent]:
        if not full_arguments:
            return []
        current = self.session.tool_call_buffers[key].arguments
        if len(full_arguments) > len(current) and full_arguments.startswith(current):
            return self._append_arguments(key, full_arguments[len(current) :])
        return []

    def _on_arguments_delta(self, event: FunctionCallArgumentsDeltaEvent) -> List[LifecycleEvent]:
        key = self._resolve_tool_key(event.item_id)
        if key is None:
            LOGGER.warning("dropping arguments for unknown tool call item %s", event.item_id)
            return []
        return self._append_arguments(key, event.delta)

    def _on_arguments_done(self, event: FunctionCallArgumentsDoneEvent) -> List[LifecycleEvent]:
        key = self._resolve_tool_key(event.item_id)
        if key is None:
            LOGGER.warning("arguments done for unknown tool call item %s", event.item_id)
            return []
        events = self._reconcile_arguments(key, event.arguments)
        events.extend(self._conclude_tool_call(key))
        return events

    def _finish_tool_call(self, item_id: str, item: FunctionCallItem | None) -> List[LifecycleEvent]:
        events: List[LifecycleEvent] = []
        key = self._resolve_tool_key(item_id)
        if key is None:
            if item is None:
                return []
            events.extend(self._start_tool_call(item))
            key = item.item_id
        if item is not None:
            events.extend(self._reconcile_arguments(key, item.arguments))
        events.extend(self._conclude_tool_call(key))
        return events


def _kind_of(item: Any) -> ItemKind | None:
    if isinstance(item, OutputMessage):
        return ItemKind.MESSAGE
    if isinstance(item, ReasoningItem):
        return ItemKind.REASONING
    if isinstance(item, FunctionCallItem):
        return ItemKind.FUNCTION_CALL
    if item is not None:
        return ItemKind.OTHER
    return None


def _latest_open_part(state: ReasoningState) -> int | None:
    open_parts = [index for index, status in state.parts.items() if status is not SummaryPartStatus.CONCLUDED]
    return max(open_parts) if open_parts else None


__all__ = [
    "ItemKind",
    "ReasoningState",
    "ResponsesStreamNormalizer",
    "StreamSession",
    "SummaryPartStatus",
    "ToolCallBuffer",
    "WireChunk",
    "decode_chunk",
    "reasoning_part_id",
    "reasoning_text_id",
]
