"""Nordlys Responses API adapter: request assembly, one-shot and streamed calls."""

from __future__ import annotations

import inspect
import logging
from collections.abc import AsyncIterable, AsyncIterator, Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from ...config import ProviderOptions
from ...io.schema import (
    FunctionCallItem,
    OutputMessage,
    OutputItem,
    ReasoningItem,
    Refusal,
    ResponseObject,
    ResponseRequest,
)
from ..errors import AdapterError, APICallError
from ..message import Message
from ..result import (
    CallWarning,
    Content,
    GenerateResult,
    ReasoningContent,
    TextContent,
    ToolCallContent,
)
from .base import ModelAdapter
from .stream import BaseStreamIterator
from .stream_state import ResponsesStreamNormalizer, WireChunk, decode_chunk
from .toolbridge import ProviderToolSpec, ToolChoice, ToolSpec, prepare_tools
from .utils import (
    PROVIDER_KEY,
    build_provider_metadata,
    convert_to_response_input,
    convert_usage,
    map_response_status,
)

LOGGER = logging.getLogger(__name__)

RESPONSES_PATH = "/responses"

_CALL_OPTIONS = {
    "max_output_tokens",
    "temperature",
    "top_p",
    "top_k",
    "frequency_penalty",
    "presence_penalty",
    "stop_sequences",
    "response_format",
    "seed",
    "provider_options",
    "headers",
}
_RESERVED_KEYS = {"input", "stream", "tools", "tool_choice"}


@dataclass(frozen=True, slots=True)
class PreparedRequest:
    """A validated request body plus everything learned while building it."""

    body: dict[str, Any]
    warnings: tuple[CallWarning, ...]
    headers: dict[str, str] | None
    store: bool


class ResponsesAdapter(ModelAdapter):
    """Translate prompts to the Nordlys ``/responses`` endpoint and back.

    ``transport`` is any object exposing the :class:`~.http.HttpTransport`
    coroutine ``post_json`` and async generator ``post_stream``.
    """

    def __init__(
        self,
        transport: Any,
        *,
        default_model: str | None = None,
        default_params: Mapping[str, Any] | None = None,
    ) -> None:
        self._transport = transport
        self._default_model = default_model
        self._default_params = dict(default_params or {})

        if "model" in self._default_params and self._default_model is None:
            model_value = self._default_params.pop("model")
            self._default_model = str(model_value)

        conflict = _RESERVED_KEYS.intersection(self._default_params)
        if conflict:
            joined = ", ".join(sorted(conflict))
            msg = f"default parameters cannot include reserved keys: {joined}"
            raise ValueError(msg)

        unknown = set(self._default_params) - _CALL_OPTIONS
        if unknown:
            joined = ", ".join(sorted(unknown))
            msg = f"unsupported default parameters: {joined}"
            raise ValueError(msg)

    @property
    def model_id(self) -> str:
        return self._default_model or ""

    async def generate(
        self,
        messages: Sequence[Message],
        /,
        *,
        tools: Sequence[ToolSpec | ProviderToolSpec] | None = None,
        tool_choice: ToolChoice | str | None = None,
        **options: Any,
    ) -> GenerateResult:
        prepared = self.build_request(messages, tools=tools, tool_choice=tool_choice, **options)

        payload = await self._transport.post_json(RESPONSES_PATH, prepared.body, headers=prepared.headers)
        try:
            response = ResponseObject.model_validate(payload)
        except ValidationError as exc:
            msg = "failed to parse Nordlys API response"
            raise APICallError(msg) from exc

        if response.error is not None:
            raise APICallError.from_error_payload(response.error.model_dump())

        has_function_call = any(isinstance(item, FunctionCallItem) for item in response.output)
        incomplete_reason = response.incomplete_details.reason if response.incomplete_details else None
        finish_reason = map_response_status(
            response.status,
            incomplete_reason=incomplete_reason,
            has_function_call=has_function_call,
        )
        usage = convert_usage(response.usage)
        LOGGER.info(
            "generate finished reason=%s input_tokens=%s output_tokens=%s",
            finish_reason.unified.value,
            usage.input_tokens.total,
            usage.output_tokens.total,
        )

        timestamp = None
        if response.created_at is not None:
            timestamp = datetime.fromtimestamp(response.created_at, tz=timezone.utc)

        return GenerateResult(
            content=parse_response_output(response.output),
            finish_reason=finish_reason,
            usage=usage,
            warnings=prepared.warnings,
            provider_metadata=build_provider_metadata(
                response_id=response.id or None,
                provider=response.provider,
                service_tier=response.service_tier,
                system_fingerprint=response.system_fingerprint,
            ),
            request_body=prepared.body,
            response_id=response.id or None,
            model_id=response.model or None,
            timestamp=timestamp,
        )

    def stream(
        self,
        messages: Sequence[Message],
        /,
        *,
        tools: Sequence[ToolSpec | ProviderToolSpec] | None = None,
        tool_choice: ToolChoice | str | None = None,
        **options: Any,
    ) -> ResponsesStreamIterator:
        prepared = self.build_request(
            messages,
            tools=tools,
            tool_choice=tool_choice,
            stream=True,
            **options,
        )
        payloads = self._transport.post_stream(RESPONSES_PATH, prepared.body, headers=prepared.headers)
        return ResponsesStreamIterator(
            payloads,
            store=prepared.store,
            warnings=prepared.warnings,
            request_body=prepared.body,
        )

    def build_request(
        self,
        messages: Sequence[Message],
        /,
        *,
        tools: Sequence[ToolSpec | ProviderToolSpec] | None = None,
        tool_choice: ToolChoice | str | None = None,
        stream: bool = False,
        **options: Any,
    ) -> PreparedRequest:
        """Assemble and validate the wire body without touching the network."""

        if not messages:
            msg = "at least one message is required"
            raise AdapterError(msg)

        model_name = self._resolve_model(options)
        merged = self._merge_options(options)
        warnings: list[CallWarning] = []

        if merged.get("top_k") is not None:
            warnings.append(CallWarning(type="unsupported", feature="top_k"))
        if merged.get("response_format") is not None:
            warnings.append(CallWarning(type="unsupported", feature="response_format"))

        provider_options = _parse_provider_options(merged.get("provider_options"), warnings)

        prepared_tools = prepare_tools(tools, tool_choice)
        warnings.extend(prepared_tools.warnings)

        converted = convert_to_response_input(messages)
        warnings.extend(converted.warnings)

        fields: dict[str, Any] = {
            "model": model_name,
            "input": converted.input,
            "instructions": converted.instructions,
            "max_output_tokens": merged.get("max_output_tokens"),
            "temperature": merged.get("temperature"),
            "top_p": merged.get("top_p"),
            "stop": _as_list(merged.get("stop_sequences")),
            "presence_penalty": merged.get("presence_penalty"),
            "frequency_penalty": merged.get("frequency_penalty"),
            "seed": merged.get("seed"),
            "tools": prepared_tools.tools,
            "tool_choice": prepared_tools.tool_choice,
        }
        for key, value in provider_options.wire_fields().items():
            if fields.get(key) is None:
                fields[key] = value
        if stream:
            fields["stream"] = True
            fields["stream_options"] = {"include_usage": True}

        try:
            body = ResponseRequest(**fields).to_body()
        except ValidationError as exc:
            msg = f"invalid request parameters: {exc.error_count()} validation error(s)"
            raise AdapterError(msg) from exc

        store = True if provider_options.store is None else provider_options.store
        headers = merged.get("headers")
        LOGGER.debug("built request model=%s stream=%s warnings=%d", model_name, stream, len(warnings))
        return PreparedRequest(
            body=body,
            warnings=tuple(warnings),
            headers=dict(headers) if headers else None,
            store=store,
        )

    def _resolve_model(self, options: dict[str, Any]) -> str:
        model_option = options.pop("model", None)
        model_name = model_option or self._default_model
        if not model_name:
            msg = "a model name must be provided"
            raise AdapterError(msg)
        return str(model_name)

    def _merge_options(self, options: Mapping[str, Any]) -> dict[str, Any]:
        for key in options:
            if key in _RESERVED_KEYS:
                msg = f"option '{key}' is managed by the adapter"
                raise AdapterError(msg)
            if key not in _CALL_OPTIONS:
                msg = f"unsupported option '{key}'"
                raise AdapterError(msg)

        merged = {**self._default_params}
        for key, value in options.items():
            if value is not None:
                merged[key] = value

        default_provider = self._default_params.get("provider_options")
        call_provider = options.get("provider_options")
        if isinstance(default_provider, Mapping) and isinstance(call_provider, Mapping):
            merged["provider_options"] = {**default_provider, **call_provider}
        return merged


class ResponsesStreamIterator(BaseStreamIterator[WireChunk]):
    """Stream iterator feeding SSE payloads through the reconstruction state machine."""

    def __init__(
        self,
        payloads: AsyncIterable[str],
        *,
        store: bool = True,
        warnings: Sequence[CallWarning] = (),
        request_body: Mapping[str, Any] | None = None,
        normalizer: ResponsesStreamNormalizer | None = None,
    ) -> None:
        self._iterator: AsyncIterator[str] = payloads.__aiter__()
        self.request_body = request_body
        super().__init__(normalizer or ResponsesStreamNormalizer(store=store), warnings=warnings)

    @property
    def normalizer(self) -> ResponsesStreamNormalizer:
        return self._normalizer  # type: ignore[return-value]

    async def _get_next_chunk(self) -> WireChunk:
        data = await self._iterator.__anext__()
        return decode_chunk(data)

    async def _on_close(self) -> None:
        closer = getattr(self._iterator, "aclose", None)
        if closer is None:
            return
        result = closer()
        if inspect.isawaitable(result):
            await result


def replay_payloads(
    payloads: Iterable[str],
    *,
    store: bool = True,
    warnings: Sequence[CallWarning] = (),
) -> ResponsesStreamIterator:
    """Build a stream iterator over already captured SSE ``data:`` payloads."""

    async def _source() -> AsyncIterator[str]:
        for payload in payloads:
            yield payload

    return ResponsesStreamIterator(_source(), store=store, warnings=warnings)


def parse_response_output(output: Sequence[OutputItem]) -> list[Content]:
    """Map the ``output`` items of a complete response onto content items."""

    content: list[Content] = []
    for item in output:
        if isinstance(item, OutputMessage):
            for part in item.content:
                # refusals have no dedicated content type
                text = part.value if isinstance(part, Refusal) else part.text
                content.append(TextContent(text=text))
        elif isinstance(item, ReasoningItem):
            text = "".join(part.text for part in item.content or [])
            if not text:
                text = "".join(part.text for part in item.summary)
            if text:
                content.append(
                    ReasoningContent(
                        text=text,
                        provider_metadata={
                            PROVIDER_KEY: {
                                "item_id": item.id,
                                "reasoning_encrypted_content": item.encrypted_content,
                            }
                        },
                    )
                )
        elif isinstance(item, FunctionCallItem):
            content.append(
                ToolCallContent(
                    tool_call_id=item.tool_call_id,
                    tool_name=item.name,
                    input=item.arguments,
                )
            )
        else:
            LOGGER.debug("skipping output item of type %s", item.type)
    return content


def _parse_provider_options(raw: Any, warnings: list[CallWarning]) -> ProviderOptions:
    if raw is None:
        return ProviderOptions()
    if isinstance(raw, ProviderOptions):
        return raw
    try:
        return ProviderOptions.model_validate(raw)
    except ValidationError as exc:
        LOGGER.warning("ignoring invalid provider options: %s", exc.error_count())
        warnings.append(
            CallWarning(
                type="other",
                feature="provider_options",
                message=f"invalid provider options were ignored ({exc.error_count()} validation error(s))",
            )
        )
        return ProviderOptions()


def _as_list(value: Any) -> list[str] | None:
    if value is None:
        return None
    if isinstance(value, str):
        return [value]
    return list(value)


__all__ = [
    "PreparedRequest",
    "RESPONSES_PATH",
    "ResponsesAdapter",
    "ResponsesStreamIterator",
    "parse_response_output",
    "replay_payloads",
]
