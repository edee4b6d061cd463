"""Provider factory producing Nordlys language model adapters."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import httpx

from .config import DEFAULT_TIMEOUT, ProviderConfig
from .core.adapters.http import HttpTransport
from .core.adapters.responses import ResponsesAdapter
from .core.errors import NoSuchModelError

PROVIDER_NAME = "nordlys.chat"


class NordlysProvider:
    """Callable factory for :class:`ResponsesAdapter` instances.

    Configuration is resolved when the first model is requested, so a missing
    API key surfaces as :class:`~nordlys.core.errors.LoadAPIKeyError` at that
    point rather than at construction.
    """

    def __init__(
        self,
        *,
        base_url: str | None = None,
        api_key: str | None = None,
        headers: Mapping[str, str] | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Any | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url
        self._api_key = api_key
        self._headers = dict(headers or {})
        self._timeout = timeout
        self._transport = transport
        self._client = client

    @property
    def name(self) -> str:
        return PROVIDER_NAME

    def __call__(self, model_id: str, **settings: Any) -> ResponsesAdapter:
        return self.language_model(model_id, **settings)

    def language_model(self, model_id: str, **settings: Any) -> ResponsesAdapter:
        """Return an adapter for ``model_id``; ``settings`` become call defaults."""

        return ResponsesAdapter(self._get_transport(), default_model=model_id, default_params=settings)

    def chat(self, model_id: str, **settings: Any) -> ResponsesAdapter:
        return self.language_model(model_id, **settings)

    def embedding_model(self, model_id: str) -> Any:
        raise NoSuchModelError(model_id, "embeddingModel")

    def image_model(self, model_id: str) -> Any:
        raise NoSuchModelError(model_id, "imageModel")

    def _get_transport(self) -> Any:
        if self._transport is None:
            config = ProviderConfig.from_env(
                api_key=self._api_key,
                base_url=self._base_url,
                headers=self._headers,
                timeout=self._timeout,
            )
            self._transport = HttpTransport(config, client=self._client)
        return self._transport

    async def aclose(self) -> None:
        closer = getattr(self._transport, "aclose", None)
        if closer is not None:
            await closer()


def create_nordlys(
    *,
    base_url: str | None = None,
    api_key: str | None = None,
    headers: Mapping[str, str] | None = None,
    timeout: float = DEFAULT_TIMEOUT,
    transport: Any | None = None,
    client: httpx.AsyncClient | None = None,
) -> NordlysProvider:
    """Create a Nordlys provider.

    ``api_key`` defaults to ``NORDLYS_API_KEY`` and ``base_url`` to
    ``NORDLYS_BASE_URL`` or the public endpoint. ``transport`` replaces the
    HTTP layer entirely; ``client`` only swaps the ``httpx`` client.
    """

    return NordlysProvider(
        base_url=base_url,
        api_key=api_key,
        headers=headers,
        timeout=timeout,
        transport=transport,
        client=client,
    )


__all__ = ["NordlysProvider", "PROVIDER_NAME", "create_nordlys"]
