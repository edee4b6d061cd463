"""Server-sent events framing for the Responses streaming endpoint."""

from __future__ import annotations

from collections.abc import AsyncIterable, AsyncIterator, Iterable, Iterator

DONE_SENTINEL = "[DONE]"


class SSEDecoder:
    """Incrementally assemble ``data:`` payloads from SSE lines.

    Multiple ``data:`` lines of one frame are joined with newlines, and a
    blank line dispatches the frame. ``event:``, ``id:``, ``retry:`` fields and
    ``:`` comments carry nothing the adapter needs and are skipped.
    """

    def __init__(self) -> None:
        self._data: list[str] = []

    def feed(self, line: str) -> str | None:
        """Consume one line; return a payload when a frame completes."""

        line = line.rstrip("\r\n")
        if not line:
            return self.flush()
        if line.startswith(":"):
            return None

        name, _, value = line.partition(":")
        if name != "data":
            return None
        if value.startswith(" "):
            value = value[1:]
        self._data.append(value)
        return None

    def flush(self) -> str | None:
        if not self._data:
            return None
        payload = "\n".join(self._data)
        self._data = []
        return payload


def iter_sse_data(lines: Iterable[str]) -> Iterator[str]:
    """Yield ``data:`` payloads from an iterable of lines until ``[DONE]``."""

    decoder = SSEDecoder()
    for line in lines:
        payload = decoder.feed(line)
        if payload is None:
            continue
        if payload.strip() == DONE_SENTINEL:
            return
        yield payload

    payload = decoder.flush()
    if payload is not None and payload.strip() != DONE_SENTINEL:
        yield payload


async def aiter_sse_data(lines: AsyncIterable[str]) -> AsyncIterator[str]:
    """Async counterpart of :func:`iter_sse_data` for network streams."""

    decoder = SSEDecoder()
    async for line in lines:
        payload = decoder.feed(line)
        if payload is None:
            continue
        if payload.strip() == DONE_SENTINEL:
            return
        yield payload

    payload = decoder.flush()
    if payload is not None and payload.strip() != DONE_SENTINEL:
        yield payload


__all__ = ["DONE_SENTINEL", "SSEDecoder", "aiter_sse_data", "iter_sse_data"]
