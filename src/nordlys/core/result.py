"""Result types returned to callers: content items, usage, finish reasons."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Literal, Union

ProviderMetadata = Mapping[str, Mapping[str, Any]]


class FinishReasonType(str, Enum):
    """Closed set of reasons a generation stopped."""

    STOP = "stop"
    LENGTH = "length"
    CONTENT_FILTER = "content-filter"
    TOOL_CALLS = "tool-calls"
    ERROR = "error"
    OTHER = "other"


@dataclass(frozen=True, slots=True)
class FinishReason:
    """Unified finish reason plus the raw backend value it was derived from."""

    unified: FinishReasonType
    raw: str | None = None


@dataclass(frozen=True, slots=True)
class InputTokens:
    total: int | None = None
    no_cache: int | None = None
    cache_read: int | None = None
    cache_write: int | None = None


@dataclass(frozen=True, slots=True)
class OutputTokens:
    total: int | None = None
    text: int | None = None
    reasoning: int | None = None


@dataclass(frozen=True, slots=True)
class Usage:
    """Token accounting; sub-splits stay ``None`` when the backend omits them."""

    input_tokens: InputTokens = field(default_factory=InputTokens)
    output_tokens: OutputTokens = field(default_factory=OutputTokens)


@dataclass(frozen=True, slots=True)
class CallWarning:
    """Advisory produced while building a request; never fatal."""

    type: Literal["unsupported", "other"]
    feature: str | None = None
    message: str | None = None


@dataclass(frozen=True, slots=True)
class TextContent:
    text: str
    provider_metadata: ProviderMetadata | None = None


@dataclass(frozen=True, slots=True)
class ReasoningContent:
    text: str
    provider_metadata: ProviderMetadata | None = None


@dataclass(frozen=True, slots=True)
class FileContent:
    """Generated file; this backend does not currently emit any."""

    media_type: str
    data: bytes | str
    provider_metadata: ProviderMetadata | None = None


@dataclass(frozen=True, slots=True)
class ToolCallContent:
    tool_call_id: str
    tool_name: str
    input: str
    provider_metadata: ProviderMetadata | None = None


Content = Union[TextContent, ReasoningContent, FileContent, ToolCallContent]


@dataclass(frozen=True, slots=True)
class GenerateResult:
    """Outcome of a one-shot (non-streaming) generation."""

    content: Sequence[Content]
    finish_reason: FinishReason
    usage: Usage
    warnings: Sequence[CallWarning] = ()
    provider_metadata: ProviderMetadata | None = None
    request_body: Mapping[str, Any] | None = None
    response_id: str | None = None
    model_id: str | None = None
    timestamp: datetime | None = None

    @property
    def text(self) -> str:
        """Concatenated text content."""

        return "".join(item.text for item in self.content if isinstance(item, TextContent))


__all__ = [
    "CallWarning",
    "Content",
    "FileContent",
    "FinishReason",
    "FinishReasonType",
    "GenerateResult",
    "InputTokens",
    "OutputTokens",
    "ProviderMetadata",
    "ReasoningContent",
    "TextContent",
    "ToolCallContent",
    "Usage",
]
