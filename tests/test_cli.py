from __future__ import annotations

import json
from pathlib import Path

import pytest

from nordlys import cli
from nordlys.core.errors import APICallError
from nordlys.provider import create_nordlys
from tests.fixtures import responses_fake as fake


def _sse(payloads: list[str]) -> str:
    return "".join(f"data: {payload}\n\n" for payload in payloads) + "data: [DONE]\n\n"


def _use_transport(monkeypatch: pytest.MonkeyPatch, transport: fake.FakeTransport) -> None:
    monkeypatch.setattr(cli, "create_nordlys", lambda **kwargs: create_nordlys(transport=transport, **kwargs))


def test_parser_requires_a_model_for_generate() -> None:
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args(["generate", "hi"])


def test_replay_prints_one_json_line_per_event(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    transcript = tmp_path / "capture.sse"
    transcript.write_text(
        _sse(
            [
                fake.item_added(fake.message_item("m1")),
                fake.text_delta("m1", "Hi"),
                fake.item_done("m1"),
                fake.completed(usage=fake.usage(1, 1)),
            ]
        ),
        encoding="utf-8",
    )

    exit_code = cli.main(["replay", str(transcript)])

    lines = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
    assert exit_code == 0
    assert [line["type"] for line in lines] == ["stream-start", "text-start", "text-delta", "text-end", "finish"]
    assert lines[2]["delta"] == "Hi"
    assert lines[-1]["finish_reason"] == {"unified": "stop", "raw": "completed"}


def test_replay_without_store_defers_reasoning_end(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    transcript = tmp_path / "reasoning.sse"
    transcript.write_text(
        _sse(
            [
                fake.item_added(fake.reasoning_item("r1")),
                fake.summary_delta("r1", 0, "a"),
                fake.summary_part_done("r1", 0),
            ]
        ),
        encoding="utf-8",
    )

    cli.main(["replay", str(transcript), "--no-store"])

    types = [json.loads(line)["type"] for line in capsys.readouterr().out.splitlines()]
    assert types == ["stream-start", "reasoning-start", "reasoning-delta", "reasoning-end", "finish"]


def test_replay_of_missing_file_fails(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = cli.main(["replay", str(tmp_path / "absent.sse")])

    assert exit_code == 1
    assert capsys.readouterr().err.startswith("error:")


def test_generate_prints_result_text(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    transport = fake.FakeTransport(response=fake.response_body(output=[fake.message_item("m1", "Hello!")]))
    _use_transport(monkeypatch, transport)

    exit_code = cli.main(["generate", "Say hello", "-m", "nordlys/test", "-s", "Be nice", "--temperature", "0.5"])

    assert exit_code == 0
    assert capsys.readouterr().out == "Hello!\n"
    body = transport.calls[0].body
    assert body["model"] == "nordlys/test"
    assert body["instructions"] == "Be nice"
    assert body["temperature"] == 0.5
    assert transport.closed


def test_generate_stream_prints_events(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    transport = fake.FakeTransport(payloads=[fake.text_delta("m1", "Hi"), fake.completed()])
    _use_transport(monkeypatch, transport)

    exit_code = cli.main(["generate", "hi", "--model", "nordlys/test", "--stream"])

    types = [json.loads(line)["type"] for line in capsys.readouterr().out.splitlines()]
    assert exit_code == 0
    assert types == ["stream-start", "text-start", "text-delta", "text-end", "finish"]
    assert transport.calls[0].body["stream"] is True


def test_generate_reports_backend_errors(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    transport = fake.FakeTransport(error=APICallError("invalid api key", status_code=401))
    _use_transport(monkeypatch, transport)

    exit_code = cli.main(["generate", "hi", "-m", "nordlys/test"])

    assert exit_code == 1
    assert capsys.readouterr().err == "error: invalid api key\n"
    assert transport.closed
