"""Command line interface for the Nordlys adapter."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Sequence

from .core.adapters.responses import replay_payloads
from .core.adapters.sse import iter_sse_data
from .core.adapters.stream import LifecycleEvent, event_to_dict
from .core.errors import AdapterError
from .core.message import Message
from .provider import create_nordlys

LOGGER = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s:%(name)s:%(levelname)s:%(message)s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Talk to the Nordlys Responses API")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate_parser = subparsers.add_parser("generate", help="send a prompt to the backend")
    generate_parser.add_argument("prompt", help="User prompt text")
    generate_parser.add_argument("-m", "--model", required=True, help="Backend model identifier")
    generate_parser.add_argument("-s", "--system", help="System instructions")
    generate_parser.add_argument(
        "--stream",
        action="store_true",
        help="Stream the response and print one JSON line per lifecycle event",
    )
    generate_parser.add_argument("--temperature", type=float, help="Sampling temperature")
    generate_parser.add_argument("--max-output-tokens", type=int, help="Upper bound on generated tokens")
    generate_parser.add_argument("--base-url", help="Override the API base URL")

    replay_parser = subparsers.add_parser(
        "replay",
        help="rebuild lifecycle events from a captured SSE transcript",
    )
    replay_parser.add_argument("transcript", type=Path, help="File holding the raw SSE stream")
    replay_parser.add_argument(
        "--store",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Whether the captured request persisted reasoning (default: true)",
    )

    return parser


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING, format=LOG_FORMAT)


def _write_event(event: LifecycleEvent) -> None:
    sys.stdout.write(json.dumps(event_to_dict(event)) + "\n")


async def _generate(args: argparse.Namespace) -> int:
    provider = create_nordlys(base_url=args.base_url)
    try:
        adapter = provider.language_model(args.model)
        messages = []
        if args.system:
            messages.append(Message.system(args.system))
        messages.append(Message.user(args.prompt))
        options = {
            "temperature": args.temperature,
            "max_output_tokens": args.max_output_tokens,
        }

        if args.stream:
            iterator = adapter.stream(messages, **options)
            try:
                async for event in iterator:
                    _write_event(event)
            finally:
                await iterator.aclose()
            return 0

        result = await adapter.generate(messages, **options)
        for warning in result.warnings:
            LOGGER.warning("call warning: %s %s", warning.feature or "", warning.message or "")
        sys.stdout.write(result.text)
        if not result.text.endswith("\n"):
            sys.stdout.write("\n")
        return 0
    finally:
        await provider.aclose()


async def _replay(args: argparse.Namespace) -> int:
    with args.transcript.open(encoding="utf-8") as handle:
        payloads = list(iter_sse_data(handle))
    LOGGER.debug("replaying %d payloads from %s", len(payloads), args.transcript)
    iterator = replay_payloads(payloads, store=args.store)
    async for event in iterator:
        _write_event(event)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)
    try:
        if args.command == "generate":
            return asyncio.run(_generate(args))
        if args.command == "replay":
            return asyncio.run(_replay(args))
    except AdapterError as exc:
        sys.stderr.write(f"error: {exc}\n")
        return 1
    except OSError as exc:
        sys.stderr.write(f"error: {exc}\n")
        return 1
    parser.error("no command provided")
    return 2


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
