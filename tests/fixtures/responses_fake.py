"""Deterministic Responses API fixtures for offline adapter tests."""

from __future__ import annotations

import asyncio
import json
from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, Iterable, Mapping, Sequence

from nordlys.core.adapters.stream_state import WireChunk, decode_chunk


@dataclass(slots=True)
class RecordedCall:
    path: str
    body: dict[str, Any]
    headers: dict[str, str] | None
    stream: bool


class FakePayloadStream:
    """Async iterator that replays pre-defined SSE ``data:`` payloads.

    When ``error`` is set it is raised instead of the payload at position
    ``fail_at``; ``fail_at=0`` fails before anything is delivered.
    """

    def __init__(
        self,
        payloads: Iterable[str],
        *,
        error: BaseException | None = None,
        fail_at: int | None = None,
    ) -> None:
        self._payloads: Deque[str] = deque(payloads)
        self._error = error
        self._fail_at = fail_at
        self.delivered = 0
        self.closed = False

    def __aiter__(self) -> "FakePayloadStream":
        return self

    async def __anext__(self) -> str:
        await asyncio.sleep(0)
        if self._error is not None and self.delivered == (self._fail_at or 0):
            raise self._error
        if not self._payloads:
            raise StopAsyncIteration
        self.delivered += 1
        return self._payloads.popleft()

    async def aclose(self) -> None:
        self.closed = True


class FakeTransport:
    """Stand-in for :class:`~nordlys.core.adapters.http.HttpTransport` that records calls."""

    def __init__(
        self,
        *,
        response: Mapping[str, Any] | None = None,
        payloads: Sequence[str] = (),
        error: BaseException | None = None,
        stream_error: BaseException | None = None,
        fail_at: int | None = None,
    ) -> None:
        self.response = dict(response or {})
        self.payloads = list(payloads)
        self.error = error
        self.stream_error = stream_error
        self.fail_at = fail_at
        self.calls: list[RecordedCall] = []
        self.streams: list[FakePayloadStream] = []
        self.closed = False

    async def post_json(
        self,
        path: str,
        body: Mapping[str, Any],
        *,
        headers: Mapping[str, str] | None = None,
    ) -> dict[str, Any]:
        self.calls.append(RecordedCall(path, dict(body), dict(headers) if headers else None, stream=False))
        if self.error is not None:
            raise self.error
        return dict(self.response)

    def post_stream(
        self,
        path: str,
        body: Mapping[str, Any],
        *,
        headers: Mapping[str, str] | None = None,
    ) -> FakePayloadStream:
        self.calls.append(RecordedCall(path, dict(body), dict(headers) if headers else None, stream=True))
        stream = FakePayloadStream(self.payloads, error=self.stream_error, fail_at=self.fail_at)
        self.streams.append(stream)
        return stream

    async def aclose(self) -> None:
        self.closed = True


# ---------------------------------------------------------------------------
# Wire event builders
# ---------------------------------------------------------------------------


def _dump(payload: Mapping[str, Any]) -> str:
    return json.dumps(payload)


def message_item(item_id: str, text: str | None = None) -> dict[str, Any]:
    content = [] if text is None else [{"type": "output_text", "text": text}]
    return {"type": "message", "id": item_id, "role": "assistant", "content": content}


def reasoning_item(
    item_id: str,
    *,
    encrypted_content: str | None = None,
    summary: Sequence[str] = (),
) -> dict[str, Any]:
    return {
        "type": "reasoning",
        "id": item_id,
        "encrypted_content": encrypted_content,
        "summary": [{"type": "summary_text", "text": text} for text in summary],
    }


def function_call_item(
    item_id: str,
    *,
    name: str,
    call_id: str | None = None,
    arguments: str = "",
) -> dict[str, Any]:
    item: dict[str, Any] = {"type": "function_call", "id": item_id, "name": name, "arguments": arguments}
    if call_id is not None:
        item["call_id"] = call_id
    return item


def created(response_id: str = "resp_1", model: str = "nordlys/test", created_at: int = 1_700_000_000) -> str:
    return _dump(
        {
            "type": "response.created",
            "response": {"id": response_id, "model": model, "created_at": created_at, "status": "in_progress"},
        }
    )


def item_added(item: Mapping[str, Any]) -> str:
    return _dump({"type": "response.output_item.added", "item": dict(item)})


def item_done(item_id: str | None = None, item: Mapping[str, Any] | None = None) -> str:
    payload: dict[str, Any] = {"type": "response.output_item.done"}
    if item_id is not None:
        payload["item_id"] = item_id
    if item is not None:
        payload["item"] = dict(item)
    return _dump(payload)


def text_delta(item_id: str, delta: str) -> str:
    return _dump({"type": "response.output_text.delta", "item_id": item_id, "delta": delta})


def reasoning_text_delta(item_id: str, delta: str) -> str:
    return _dump({"type": "response.reasoning_text.delta", "item_id": item_id, "delta": delta})


def summary_delta(item_id: str, summary_index: int, delta: str) -> str:
    return _dump(
        {
            "type": "response.reasoning_summary_text.delta",
            "item_id": item_id,
            "summary_index": summary_index,
            "delta": delta,
        }
    )


def summary_text_done(item_id: str, summary_index: int, text: str) -> str:
    return _dump(
        {
            "type": "response.reasoning_summary_text.done",
            "item_id": item_id,
            "summary_index": summary_index,
            "text": text,
        }
    )


def summary_part_added(item_id: str, summary_index: int) -> str:
    return _dump(
        {
            "type": "response.reasoning_summary_part.added",
            "item_id": item_id,
            "summary_index": summary_index,
            "part": {"type": "summary_text", "text": ""},
        }
    )


def summary_part_done(item_id: str, summary_index: int) -> str:
    return _dump(
        {"type": "response.reasoning_summary_part.done", "item_id": item_id, "summary_index": summary_index}
    )


def arguments_delta(item_id: str, delta: str) -> str:
    return _dump({"type": "response.function_call_arguments.delta", "item_id": item_id, "delta": delta})


def arguments_done(item_id: str, arguments: str | None = None) -> str:
    payload: dict[str, Any] = {"type": "response.function_call_arguments.done", "item_id": item_id}
    if arguments is not None:
        payload["arguments"] = arguments
    return _dump(payload)


def content_part_added(item_id: str, part: Mapping[str, Any]) -> str:
    return _dump({"type": "response.content_part.added", "item_id": item_id, "part": dict(part)})


def content_part_done(item_id: str, part: Mapping[str, Any]) -> str:
    return _dump({"type": "response.content_part.done", "item_id": item_id, "part": dict(part)})


def usage(
    input_tokens: int,
    output_tokens: int,
    *,
    cached_tokens: int | None = None,
    reasoning_tokens: int | None = None,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "input_tokens": input_tokens,
        "output_tokens": output_tokens,
        "total_tokens": input_tokens + output_tokens,
    }
    if cached_tokens is not None:
        payload["input_tokens_details"] = {"cached_tokens": cached_tokens}
    if reasoning_tokens is not None:
        payload["output_tokens_details"] = {"reasoning_tokens": reasoning_tokens}
    return payload


def completed(
    *,
    event_type: str = "response.completed",
    status: str | None = "completed",
    usage: Mapping[str, Any] | None = None,
    output: Sequence[Mapping[str, Any]] = (),
    incomplete_reason: str | None = None,
    response_id: str = "resp_1",
    **extra: Any,
) -> str:
    response: dict[str, Any] = {"id": response_id, "output": [dict(item) for item in output], **extra}
    if status is not None:
        response["status"] = status
    if usage is not None:
        response["usage"] = dict(usage)
    if incomplete_reason is not None:
        response["incomplete_details"] = {"reason": incomplete_reason}
    return _dump({"type": event_type, "response": response})


def stream_error(message: str = "backend exploded", code: str | None = "server_error") -> str:
    return _dump({"type": "response.error", "error": {"message": message, "type": "server_error", "code": code}})


def chunks(payloads: Iterable[str]) -> list[WireChunk]:
    """Decode raw payloads the same way the stream iterator does."""

    return [decode_chunk(payload) for payload in payloads]


def response_body(
    *,
    output: Sequence[Mapping[str, Any]] = (),
    status: str = "completed",
    usage: Mapping[str, Any] | None = None,
    **extra: Any,
) -> dict[str, Any]:
    body: dict[str, Any] = {
        "id": "resp_1",
        "model": "nordlys/test",
        "created_at": 1_700_000_000,
        "status": status,
        "output": [dict(item) for item in output],
        **extra,
    }
    if usage is not None:
        body["usage"] = dict(usage)
    return body


__all__ = [
    "FakePayloadStream",
    "FakeTransport",
    "RecordedCall",
    "arguments_delta",
    "arguments_done",
    "chunks",
    "completed",
    "content_part_added",
    "content_part_done",
    "created",
    "function_call_item",
    "item_added",
    "item_done",
    "message_item",
    "reasoning_item",
    "reasoning_text_delta",
    "response_body",
    "stream_error",
    "summary_delta",
    "summary_part_added",
    "summary_part_done",
    "summary_text_done",
    "text_delta",
    "usage",
]
