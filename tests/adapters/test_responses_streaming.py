from __future__ import annotations

import asyncio

import pytest

from nordlys.core.adapters.responses import RESPONSES_PATH, ResponsesAdapter, replay_payloads
from nordlys.core.adapters.stream import StreamStartEvent, TextDeltaEvent, replay_stream
from nordlys.core.errors import APICallError
from nordlys.core.message import Message
from nordlys.core.result import CallWarning, FinishReasonType
from tests.fixtures import responses_fake as fake
from tests.harness.adapter_harness import check_lifecycle, collect, event_types, replay

SIMPLE_STREAM = [
    fake.created(),
    fake.item_added(fake.message_item("m1")),
    fake.text_delta("m1", "Hello"),
    fake.text_delta("m1", ", world"),
    fake.item_done("m1"),
    fake.completed(usage=fake.usage(4, 2)),
]


def _adapter(transport: fake.FakeTransport, **params) -> ResponsesAdapter:
    return ResponsesAdapter(transport, default_model="nordlys/test", default_params=params)


def test_stream_emits_start_first_and_finish_last() -> None:
    transport = fake.FakeTransport(payloads=SIMPLE_STREAM)

    events = collect(_adapter(transport), prompt="Say hello")

    assert event_types(events) == [
        "stream-start",
        "response-metadata",
        "text-start",
        "text-delta",
        "text-delta",
        "text-end",
        "finish",
    ]
    assert events[-1].finish_reason.unified is FinishReasonType.STOP
    assert events[-1].usage.output_tokens.total == 2
    assert check_lifecycle(events) == []
    assert transport.streams[0].closed


def test_stream_request_enables_streaming_and_usage() -> None:
    transport = fake.FakeTransport(payloads=SIMPLE_STREAM)

    collect(_adapter(transport), prompt="Say hello", temperature=0.2)

    call = transport.calls[0]
    assert call.path == RESPONSES_PATH
    assert call.stream
    assert call.body["stream"] is True
    assert call.body["stream_options"] == {"include_usage": True}
    assert call.body["temperature"] == 0.2
    assert call.body["input"] == "Say hello"


def test_stream_start_carries_request_warnings() -> None:
    transport = fake.FakeTransport(payloads=SIMPLE_STREAM)

    events = collect(_adapter(transport), prompt="hi", top_k=5)

    assert events[0] == StreamStartEvent(warnings=(CallWarning(type="unsupported", feature="top_k"),))


def test_network_failure_after_start_is_reported_in_stream() -> None:
    transport = fake.FakeTransport(
        payloads=SIMPLE_STREAM,
        stream_error=APICallError("connection reset"),
        fail_at=3,
    )

    events = collect(_adapter(transport), prompt="hi")

    assert event_types(events) == [
        "stream-start",
        "response-metadata",
        "text-start",
        "text-delta",
        "error",
        "text-end",
        "finish",
    ]
    assert events[-1].finish_reason.unified is FinishReasonType.ERROR
    assert check_lifecycle(events) == []


def test_failure_before_first_event_is_raised() -> None:
    transport = fake.FakeTransport(stream_error=APICallError("rate limited", status_code=429), fail_at=0)

    with pytest.raises(APICallError) as excinfo:
        collect(_adapter(transport), prompt="hi")

    assert excinfo.value.status_code == 429
    assert transport.streams[0].closed


def test_cancel_mid_stream_still_finishes() -> None:
    transport = fake.FakeTransport(payloads=SIMPLE_STREAM)
    adapter = _adapter(transport)

    async def _run() -> list:
        iterator = adapter.stream([Message.user("hi")])
        events = []
        async for event in iterator:
            events.append(event)
            if isinstance(event, TextDeltaEvent):
                await iterator.cancel()
        return events

    events = asyncio.run(_run())

    assert event_types(events) == [
        "stream-start",
        "response-metadata",
        "text-start",
        "text-delta",
        "text-end",
        "finish",
    ]
    assert events[-1].finish_reason.unified is FinishReasonType.OTHER
    assert transport.streams[0].closed


def test_store_option_controls_reasoning_deferral() -> None:
    payloads = [
        fake.item_added(fake.reasoning_item("r1", encrypted_content="enc")),
        fake.summary_delta("r1", 0, "a"),
        fake.summary_part_done("r1", 0),
        fake.item_added(fake.message_item("m1")),
        fake.text_delta("m1", "b"),
    ]
    stored_transport = fake.FakeTransport(payloads=payloads)
    unstored_transport = fake.FakeTransport(payloads=payloads)

    stored = collect(_adapter(stored_transport), prompt="hi")
    unstored = collect(_adapter(unstored_transport), prompt="hi", provider_options={"store": False})

    assert event_types(stored) == [
        "stream-start",
        "reasoning-start",
        "reasoning-delta",
        "reasoning-end",
        "text-start",
        "text-delta",
        "text-end",
        "finish",
    ]
    assert event_types(unstored) == [
        "stream-start",
        "reasoning-start",
        "reasoning-delta",
        "text-start",
        "text-delta",
        "text-end",
        "reasoning-end",
        "finish",
    ]
    assert "store" not in stored_transport.calls[0].body
    assert unstored_transport.calls[0].body["store"] is False


def test_replay_payloads_runs_without_a_transport() -> None:
    events = replay(SIMPLE_STREAM)

    assert events[0] == StreamStartEvent()
    assert "".join(event.delta for event in events if isinstance(event, TextDeltaEvent)) == "Hello, world"


def test_replay_of_parse_error_keeps_streaming() -> None:
    events = asyncio.run(
        replay_stream(
            replay_payloads(
                [
                    fake.item_added(fake.message_item("m1")),
                    fake.text_delta("m1", "a"),
                    fake.text_delta("m1", "b"),
                    "data that is not json",
                    fake.text_delta("m1", "c"),
                ]
            )
        )
    )

    assert event_types(events) == [
        "stream-start",
        "text-start",
        "text-delta",
        "text-delta",
        "error",
        "text-delta",
        "text-end",
        "finish",
    ]
    assert events[-1].finish_reason.unified is FinishReasonType.ERROR


def test_independent_streams_do_not_share_state() -> None:
    async def _run() -> tuple[list, list]:
        first = replay_payloads(SIMPLE_STREAM)
        second = replay_payloads([fake.text_delta("m1", "other")])
        return await asyncio.gather(replay_stream(first), replay_stream(second))

    first, second = asyncio.run(_run())

    assert "".join(e.delta for e in first if isinstance(e, TextDeltaEvent)) == "Hello, world"
    assert "".join(e.delta for e in second if isinstance(e, TextDeltaEvent)) == "other"
