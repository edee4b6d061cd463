"""Configuration helpers shared by the provider factory, adapter and CLI."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict

from .core.errors import LoadAPIKeyError

DEFAULT_BASE_URL = "https://backend.mangoplant-a7a21605.swedencentral.azurecontainerapps.io/v1"
API_KEY_ENV = "NORDLYS_API_KEY"
BASE_URL_ENV = "NORDLYS_BASE_URL"
DEFAULT_TIMEOUT = 600.0


@dataclass(slots=True)
class ProviderConfig:
    """Connection settings for the Nordlys backend.

    Attributes
    ----------
    base_url:
        API prefix without a trailing slash; ``/responses`` is appended to it.
    api_key:
        Bearer token sent with every request.
    headers:
        Extra headers merged after the authentication headers.
    timeout:
        Total request timeout in seconds handed to the HTTP client.
    """

    base_url: str
    api_key: str
    headers: Mapping[str, str] = field(default_factory=dict)
    timeout: float = DEFAULT_TIMEOUT

    @classmethod
    def from_env(
        cls,
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        headers: Mapping[str, str] | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        environ: Mapping[str, str] | None = None,
    ) -> "ProviderConfig":
        """Build a :class:`ProviderConfig`, falling back to environment variables.

        Parameters
        ----------
        api_key:
            Explicit key; when omitted ``NORDLYS_API_KEY`` is consulted.
        base_url:
            Explicit URL prefix; when omitted ``NORDLYS_BASE_URL`` or the
            default endpoint is used.
        environ:
            Mapping used instead of :data:`os.environ`, mainly for tests.
        """

        env = os.environ if environ is None else environ

        resolved_key = api_key if api_key is not None else env.get(API_KEY_ENV)
        if not resolved_key:
            msg = (
                "Nordlys API key is missing. Pass it using the 'api_key' parameter "
                f"or the {API_KEY_ENV} environment variable."
            )
            raise LoadAPIKeyError(msg)

        resolved_url = base_url or env.get(BASE_URL_ENV) or DEFAULT_BASE_URL
        resolved_url = resolved_url.rstrip("/")
        if not resolved_url:
            raise ValueError("base URL must not be empty")

        return cls(
            base_url=resolved_url,
            api_key=resolved_key,
            headers=dict(headers or {}),
            timeout=timeout,
        )

    def request_headers(self, extra: Mapping[str, str] | None = None) -> dict[str, str]:
        """Return the headers for one request, call-level headers applied last."""

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        headers.update(self.headers)
        if extra:
            headers.update(extra)
        return headers

    def url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"


class ReasoningOptions(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    effort: Optional[str] = None
    summary: Optional[str] = None


class ProviderOptions(BaseModel):
    """Backend specific options accepted through ``provider_options``."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    user: Optional[str] = None
    logit_bias: Optional[Dict[str, float]] = None
    logprobs: Optional[bool] = None
    top_logprobs: Optional[int] = None
    max_completion_tokens: Optional[int] = None
    metadata: Optional[Dict[str, str]] = None
    modalities: Optional[List[str]] = None
    parallel_tool_calls: Optional[bool] = None
    reasoning: Optional[ReasoningOptions] = None
    seed: Optional[int] = None
    service_tier: Optional[str] = None
    store: Optional[bool] = None
    max_tool_calls: Optional[int] = None
    strict_json_schema: Optional[bool] = None
    text_verbosity: Optional[Literal["low", "medium", "high"]] = None
    include: Optional[List[str]] = None
    truncation: Optional[Literal["auto", "disabled"]] = None
    audio: Optional[Dict[str, Any]] = None
    prediction: Optional[Dict[str, Any]] = None
    response_format: Optional[Dict[str, Any]] = None
    web_search_options: Optional[Dict[str, Any]] = None

    def wire_fields(self) -> dict[str, Any]:
        """Return only the options that were set, ready for the request body."""

        return self.model_dump(exclude_none=True)
