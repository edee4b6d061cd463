"""HTTP transport for the Nordlys Responses endpoint built on ``httpx``."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Mapping
from typing import Any

import httpx

from ...config import ProviderConfig
from ...io.schema import ErrorEnvelope
from ..errors import APICallError
from .sse import aiter_sse_data

LOGGER = logging.getLogger(__name__)


class HttpTransport:
    """POST JSON bodies and stream SSE payloads; never retries.

    A caller supplied :class:`httpx.AsyncClient` is used as-is and left open on
    :meth:`aclose`; otherwise the transport creates and owns one.
    """

    def __init__(self, config: ProviderConfig, *, client: httpx.AsyncClient | None = None) -> None:
        self._config = config
        self._client = client
        self._owns_client = client is None

    @property
    def config(self) -> ProviderConfig:
        return self._config

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._config.timeout)
        return self._client

    async def post_json(
        self,
        path: str,
        body: Mapping[str, Any],
        *,
        headers: Mapping[str, str] | None = None,
    ) -> dict[str, Any]:
        """Send ``body`` and return the decoded JSON response object."""

        url = self._config.url(path)
        LOGGER.debug("POST %s model=%s", url, body.get("model"))
        try:
            response = await self._get_client().post(
                url,
                json=dict(body),
                headers=self._config.request_headers(headers),
            )
        except httpx.HTTPError as exc:
            msg = f"request to {url} failed: {exc}"
            raise APICallError(msg) from exc

        if not response.is_success:
            raise error_from_response(response)

        try:
            payload = response.json()
        except ValueError as exc:
            msg = "Nordlys API returned a response that is not valid JSON"
            raise APICallError(msg, status_code=response.status_code, response_body=response.text) from exc

        if not isinstance(payload, dict):
            msg = "Nordlys API returned a JSON value that is not an object"
            raise APICallError(msg, status_code=response.status_code, response_body=response.text)
        return payload

    async def post_stream(
        self,
        path: str,
        body: Mapping[str, Any],
        *,
        headers: Mapping[str, str] | None = None,
    ) -> AsyncIterator[str]:
        """Send ``body`` and yield each SSE ``data:`` payload until ``[DONE]``.

        The request is issued when the first payload is requested. Non-2xx
        responses and network failures raise :class:`APICallError`.
        """

        url = self._config.url(path)
        LOGGER.debug("POST %s (stream) model=%s", url, body.get("model"))
        try:
            async with self._get_client().stream(
                "POST",
                url,
                json=dict(body),
                headers=self._config.request_headers(headers),
            ) as response:
                if not response.is_success:
                    await response.aread()
                    raise error_from_response(response)
                async for payload in aiter_sse_data(response.aiter_lines()):
                    yield payload
        except httpx.HTTPError as exc:
            msg = f"streaming request to {url} failed: {exc}"
            raise APICallError(msg) from exc

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None


def error_from_response(response: httpx.Response) -> APICallError:
    """Decode a non-2xx response through the ``{"error": {...}}`` envelope."""

    text = response.text
    retry_after = _parse_retry_after(response.headers.get("retry-after"))
    try:
        envelope = ErrorEnvelope.model_validate_json(text)
    except ValueError:
        message = text.strip() or response.reason_phrase or "Nordlys API error"
        LOGGER.debug("HTTP %s without an error envelope", response.status_code)
        return APICallError(
            message,
            status_code=response.status_code,
            retry_after=retry_after,
            response_body=text,
        )
    return APICallError.from_error_payload(
        envelope.error.model_dump(),
        status_code=response.status_code,
        retry_after=retry_after,
        response_body=text,
    )


def _parse_retry_after(value: str | None) -> float | None:
    if value is None:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


__all__ = ["HttpTransport", "error_from_response"]
