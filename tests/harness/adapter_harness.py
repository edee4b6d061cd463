"""Reusable harness utilities for validating streamed lifecycle events."""

from __future__ import annotations

import asyncio
import json
from collections import defaultdict
from typing import Any, Iterable, Sequence

from nordlys.core.adapters.base import ModelAdapter
from nordlys.core.adapters.responses import replay_payloads
from nordlys.core.adapters.stream import (
    FinishEvent,
    LifecycleEvent,
    ReasoningDeltaEvent,
    StreamStartEvent,
    TextDeltaEvent,
    ToolCallEvent,
    ToolInputDeltaEvent,
    replay_stream,
)
from nordlys.core.adapters.stream_state import ResponsesStreamNormalizer, decode_chunk
from nordlys.core.message import Message

_FAMILIES = ("text", "reasoning", "tool-input")


async def collect_async(
    adapter: ModelAdapter,
    *,
    prompt: str | None = None,
    messages: Sequence[Message] | None = None,
    system_prompt: str | None = None,
    **options: Any,
) -> list[LifecycleEvent]:
    """Collect streaming events from an adapter using the provided prompt."""

    normalized = _resolve_messages(prompt=prompt, messages=messages, system_prompt=system_prompt)
    iterator = adapter.stream(normalized, **options)
    return await replay_stream(iterator)


def collect(
    adapter: ModelAdapter,
    *,
    prompt: str | None = None,
    messages: Sequence[Message] | None = None,
    system_prompt: str | None = None,
    **options: Any,
) -> list[LifecycleEvent]:
    """Synchronous wrapper around :func:`collect_async`."""

    return asyncio.run(
        collect_async(adapter, prompt=prompt, messages=messages, system_prompt=system_prompt, **options)
    )


def replay(payloads: Iterable[str], *, store: bool = True) -> list[LifecycleEvent]:
    """Run captured payloads through the full stream iterator."""

    return asyncio.run(replay_stream(replay_payloads(list(payloads), store=store)))


def normalize(
    payloads: Iterable[str],
    *,
    store: bool = True,
) -> tuple[list[LifecycleEvent], ResponsesStreamNormalizer]:
    """Drive a normalizer directly, then finalize it; no stream-start is emitted."""

    normalizer = ResponsesStreamNormalizer(store=store)
    events: list[LifecycleEvent] = []
    for payload in payloads:
        events.extend(normalizer.handle(decode_chunk(payload)))
    events.extend(normalizer.finalize())
    return events, normalizer


def event_types(events: Iterable[LifecycleEvent]) -> list[str]:
    return [event.type for event in events]


def check_lifecycle(events: Sequence[LifecycleEvent]) -> list[str]:
    """Return every lifecycle property violation found in ``events``."""

    problems: list[str] = []
    open_ids: dict[str, set[str]] = {family: set() for family in _FAMILIES}
    started: dict[str, set[str]] = {family: set() for family in _FAMILIES}
    deltas: dict[tuple[str, str], list[str]] = defaultdict(list)
    arguments: dict[str, str] = defaultdict(str)

    for position, event in enumerate(events):
        family, _, phase = event.type.rpartition("-")
        if family in _FAMILIES:
            identifier = event.id  # type: ignore[union-attr]
            if phase == "start":
                if identifier in open_ids[family]:
                    problems.append(f"{position}: second {event.type} for open {identifier}")
                open_ids[family].add(identifier)
                started[family].add(identifier)
            elif identifier not in started[family]:
                problems.append(f"{position}: {event.type} for {identifier} before any start")
            elif phase == "end":
                open_ids[family].discard(identifier)

        if isinstance(event, (TextDeltaEvent, ReasoningDeltaEvent)):
            deltas[(family, event.id)].append(event.delta)
        elif isinstance(event, ToolInputDeltaEvent):
            arguments[event.id] += event.delta
        elif isinstance(event, ToolCallEvent):
            if not _parses(event.input):
                problems.append(f"{position}: tool-call {event.tool_call_id} with incomplete input")
            if event.input != arguments[event.tool_call_id]:
                problems.append(f"{position}: tool-call {event.tool_call_id} input differs from its deltas")

    for family, identifiers in open_ids.items():
        for identifier in sorted(identifiers):
            problems.append(f"{family} {identifier} never ended")

    finishes = [index for index, event in enumerate(events) if isinstance(event, FinishEvent)]
    if len(finishes) != 1:
        problems.append(f"expected exactly one finish event, found {len(finishes)}")
    elif finishes[0] != len(events) - 1:
        problems.append("finish event is not last")

    starts = [index for index, event in enumerate(events) if isinstance(event, StreamStartEvent)]
    if len(starts) > 1 or (starts and starts[0] != 0):
        problems.append("stream-start must appear once, first")

    return problems


def joined_deltas(events: Iterable[LifecycleEvent], identifier: str) -> str:
    """Concatenate every text or reasoning delta emitted for ``identifier``."""

    return "".join(
        event.delta
        for event in events
        if isinstance(event, (TextDeltaEvent, ReasoningDeltaEvent)) and event.id == identifier
    )


def _parses(value: str) -> bool:
    try:
        return isinstance(json.loads(value), (dict, list))
    except ValueError:
        return False


def _resolve_messages(
    *,
    prompt: str | None,
    messages: Sequence[Message] | None,
    system_prompt: str | None,
) -> list[Message]:
    if prompt is not None and messages is not None:
        msg = "provide either 'prompt' or 'messages', not both"
        raise ValueError(msg)

    if prompt is None and messages is None:
        msg = "either 'prompt' or 'messages' must be provided"
        raise ValueError(msg)

    if prompt is not None:
        resolved: list[Message] = []
        if system_prompt is not None:
            resolved.append(Message.system(system_prompt))
        resolved.append(Message.user(prompt))
        return resolved

    resolved = list(messages or ())
    for index, message in enumerate(resolved):
        if not isinstance(message, Message):
            msg = f"messages[{index}] must be a Message instance"
            raise TypeError(msg)
    return resolved


__all__ = [
    "check_lifecycle",
    "collect",
    "collect_async",
    "event_types",
    "joined_deltas",
    "normalize",
    "replay",
]
