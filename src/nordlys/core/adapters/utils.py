"""Pure conversion helpers shared by the Responses adapter and its stream state."""

from __future__ import annotations

import base64
import json
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from ...io.schema import ResponseUsage
from ..errors import InvalidPromptError, UnsupportedContentError
from ..message import FilePart, Message, MessageRole, ReasoningPart, TextPart, ToolCallPart, ToolOutput
from ..result import CallWarning, FinishReason, FinishReasonType, InputTokens, OutputTokens, ProviderMetadata, Usage

_AUDIO_FORMATS = {"audio/wav": "wav", "audio/mp3": "mp3", "audio/mpeg": "mp3"}
PROVIDER_KEY = "nordlys"
_DEFAULT_PDF_NAME = "document.pdf"
_DENIED_OUTPUT = "Tool execution denied."
_ASSISTANT_PART_KINDS: dict[type, str] = {
    ReasoningPart: "reasoning",
    ToolCallPart: "tool-call",
    FilePart: "file",
}


@dataclass(frozen=True, slots=True)
class ResponseInput:
    """The ``input``/``instructions`` pair derived from a prompt."""

    input: str | list[dict[str, Any]]
    instructions: str | list[dict[str, Any]] | None
    warnings: tuple[CallWarning, ...] = ()


def convert_to_response_input(messages: Sequence[Message]) -> ResponseInput:
    """Convert prompt messages into the Responses API ``input`` shape.

    System messages are lifted into ``instructions``. A prompt made of a single
    user text part is sent as a plain string.
    """

    warnings: list[CallWarning] = []
    items: list[dict[str, Any]] = []
    system_messages: list[str] = []

    for message in messages:
        if message.role is MessageRole.SYSTEM:
            system_messages.append(message.content)  # type: ignore[arg-type]
        elif message.role is MessageRole.USER:
            content_parts: list[dict[str, Any]] = []
            for part in message.content:
                if isinstance(part, TextPart):
                    content_parts.append({"type": "input_text", "text": part.text})
                elif isinstance(part, FilePart):
                    _convert_file_part(part, content_parts, items)
            if content_parts:
                items.append({"role": "user", "content": content_parts})
        elif message.role is MessageRole.ASSISTANT:
            text_chunks: list[str] = []
            for part in message.content:
                if isinstance(part, TextPart):
                    text_chunks.append(part.text)
                else:
                    kind = _ASSISTANT_PART_KINDS.get(type(part), type(part).__name__)
                    warnings.append(
                        CallWarning(
                            type="other",
                            message=f"Assistant message contains {kind} which is not supported in Responses API input",
                        )
                    )
            text = "".join(text_chunks)
            if text:
                warnings.append(
                    CallWarning(
                        type="other",
                        message="Assistant messages in multi-turn conversations are converted to user messages",
                    )
                )
                items.append({"role": "user", "content": [{"type": "input_text", "text": text}]})
        else:
            for result in message.content:
                output = convert_tool_output(result.output)  # type: ignore[union-attr]
                if output:
                    items.append(
                        {
                            "type": "function_call_output",
                            "call_id": result.tool_call_id,  # type: ignore[union-attr]
                            "output": output,
                        }
                    )

    instructions: str | list[dict[str, Any]] | None = None
    if len(system_messages) == 1:
        instructions = system_messages[0]
    elif system_messages:
        instructions = [{"role": "system", "content": text} for text in system_messages]

    if _is_single_user_text(messages):
        only = messages[0].content[0]
        return ResponseInput(input=only.text, instructions=None, warnings=tuple(warnings))  # type: ignore[union-attr]

    return ResponseInput(input=items or "", instructions=instructions, warnings=tuple(warnings))


def _is_single_user_text(messages: Sequence[Message]) -> bool:
    if len(messages) != 1 or messages[0].role is not MessageRole.USER:
        return False
    content = messages[0].content
    return len(content) == 1 and isinstance(content[0], TextPart)


def _convert_file_part(
    part: FilePart,
    content_parts: list[dict[str, Any]],
    items: list[dict[str, Any]],
) -> None:
    if part.data is None and part.url is None:
        msg = "File part data is required but was undefined or null"
        raise InvalidPromptError(msg)

    media_type = part.media_type
    if media_type.startswith("image/"):
        if media_type == "image/*":
            media_type = "image/jpeg"
        if part.url is not None:
            image_url = part.url
        else:
            image_url = f"data:{media_type};base64,{_to_base64(part.data)}"
        content_parts.append({"type": "input_image", "image_url": image_url})
        return

    audio_format = _AUDIO_FORMATS.get(media_type)
    if audio_format is not None:
        if part.url is not None:
            raise UnsupportedContentError("audio file parts with URLs")
        # audio travels as its own input item rather than message content
        items.append({"type": "input_audio", "input_audio": {"data": _to_base64(part.data), "format": audio_format}})
        return

    if media_type == "application/pdf":
        if part.url is not None:
            raise UnsupportedContentError("PDF file parts with URLs")
        content_parts.append(
            {
                "type": "input_file",
                "filename": part.filename or _DEFAULT_PDF_NAME,
                "file_data": f"data:application/pdf;base64,{_to_base64(part.data)}",
            }
        )
        return

    raise UnsupportedContentError(f"file part media type {media_type}")


def _to_base64(data: bytes | str | None) -> str:
    if isinstance(data, str):
        return data
    return base64.b64encode(bytes(data or b"")).decode("ascii")


def convert_tool_output(output: ToolOutput) -> str:
    """Render a tool result as the string carried by ``function_call_output``."""

    if output.type in ("text", "error-text"):
        return "" if output.value is None else str(output.value)
    if output.type in ("json", "error-json", "content"):
        return json.dumps(output.value)
    if output.type == "execution-denied":
        return output.reason or _DENIED_OUTPUT
    return ""


def map_finish_reason(raw: str | None, *, has_function_call: bool) -> FinishReasonType:
    """Map a backend incompleteness reason onto the unified finish reasons."""

    if raw is None:
        return FinishReasonType.TOOL_CALLS if has_function_call else FinishReasonType.STOP
    if raw == "max_output_tokens":
        return FinishReasonType.LENGTH
    if raw == "content_filter":
        return FinishReasonType.CONTENT_FILTER
    return FinishReasonType.TOOL_CALLS if has_function_call else FinishReasonType.OTHER


def map_response_status(
    status: str | None,
    *,
    incomplete_reason: str | None = None,
    has_function_call: bool = False,
) -> FinishReason:
    """Derive the finish reason from a terminal response status."""

    if status == "completed":
        return FinishReason(map_finish_reason(None, has_function_call=has_function_call), raw=status)
    if status == "incomplete":
        unified = map_finish_reason(incomplete_reason, has_function_call=has_function_call)
        return FinishReason(unified, raw=incomplete_reason or status)
    if status == "failed":
        return FinishReason(FinishReasonType.ERROR, raw=status)
    return FinishReason(FinishReasonType.OTHER, raw=status)


def convert_usage(usage: ResponseUsage | None) -> Usage:
    """Convert backend usage into :class:`Usage`.

    Sub-splits are plain differences of the reported numbers and stay ``None``
    when the backend omits the detail; inconsistent numbers are passed through.
    """

    if usage is None:
        return Usage()

    cached = usage.input_tokens_details.cached_tokens if usage.input_tokens_details else None
    reasoning = usage.output_tokens_details.reasoning_tokens if usage.output_tokens_details else None

    input_total = usage.input_tokens
    output_total = usage.output_tokens

    no_cache = None
    if input_total is not None and cached is not None:
        no_cache = input_total - cached
    text = None
    if output_total is not None and reasoning is not None:
        text = output_total - reasoning

    return Usage(
        input_tokens=InputTokens(total=input_total, no_cache=no_cache, cache_read=cached),
        output_tokens=OutputTokens(total=output_total, text=text, reasoning=reasoning),
    )


def build_provider_metadata(
    *,
    response_id: str | None = None,
    provider: str | None = None,
    service_tier: str | None = None,
    system_fingerprint: str | None = None,
) -> ProviderMetadata | None:
    """Collect response level details under the ``nordlys`` key, or ``None``."""

    values = {
        "response_id": response_id,
        "provider": provider,
        "service_tier": service_tier,
        "system_fingerprint": system_fingerprint,
    }
    known = {key: value for key, value in values.items() if value}
    if not known:
        return None
    return {PROVIDER_KEY: known}


def is_complete_json(arguments: str) -> bool:
    """Whether ``arguments`` holds one complete JSON object or array."""

    if not arguments or not arguments.strip():
        return False
    try:
        value = json.loads(arguments)
    except ValueError:
        return False
    return isinstance(value, (dict, list))


__all__ = [
    "PROVIDER_KEY",
    "ResponseInput",
    "build_provider_metadata",
    "convert_to_response_input",
    "convert_tool_output",
    "convert_usage",
    "is_complete_json",
    "map_finish_reason",
    "map_response_status",
]
