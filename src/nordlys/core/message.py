"""Prompt schema accepted by the adapter."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

_TOOL_OUTPUT_TYPES = {
    "text",
    "error-text",
    "json",
    "error-json",
    "content",
    "execution-denied",
}


class MessageRole(str, Enum):
    """Canonical role names accepted in a prompt."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True, slots=True)
class TextPart:
    """Plain text content."""

    text: str

    def __post_init__(self) -> None:
        if not isinstance(self.text, str):
            msg = "text part content must be a string"
            raise TypeError(msg)


@dataclass(frozen=True, slots=True)
class FilePart:
    """Binary or remote file content such as images, audio and PDFs.

    ``data`` holds either raw bytes or an already base64 encoded string;
    ``url`` references remote content. At most one of them may be set. A part
    with neither is accepted here and rejected when the request is built.
    """

    media_type: str
    data: bytes | str | None = None
    url: str | None = None
    filename: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.media_type, str) or not self.media_type:
            msg = "file part media_type must be a non-empty string"
            raise ValueError(msg)
        if self.data is not None and self.url is not None:
            msg = "file part accepts either data or url, not both"
            raise ValueError(msg)
        if self.data is not None and not isinstance(self.data, (bytes, bytearray, str)):
            msg = "file part data must be bytes or a base64 string"
            raise TypeError(msg)


@dataclass(frozen=True, slots=True)
class ReasoningPart:
    """Reasoning text produced by an earlier assistant turn."""

    text: str


@dataclass(frozen=True, slots=True)
class ToolCallPart:
    """A tool invocation produced by an earlier assistant turn."""

    tool_call_id: str
    tool_name: str
    input: Any = None


@dataclass(frozen=True, slots=True)
class ToolOutput:
    """Result payload of a tool execution."""

    type: str
    value: Any = None
    reason: str | None = None

    def __post_init__(self) -> None:
        if self.type not in _TOOL_OUTPUT_TYPES:
            joined = ", ".join(sorted(_TOOL_OUTPUT_TYPES))
            msg = f"tool output type must be one of: {joined}"
            raise ValueError(msg)


@dataclass(frozen=True, slots=True)
class ToolResultPart:
    """The outcome of a tool call, sent back to the model."""

    tool_call_id: str
    tool_name: str
    output: ToolOutput

    def __post_init__(self) -> None:
        if not isinstance(self.tool_call_id, str) or not self.tool_call_id:
            msg = "tool result tool_call_id must be a non-empty string"
            raise ValueError(msg)
        if not isinstance(self.output, ToolOutput):
            msg = "tool result output must be a ToolOutput"
            raise TypeError(msg)


Part = Union[TextPart, FilePart, ReasoningPart, ToolCallPart, ToolResultPart]

_ALLOWED_PARTS: dict[MessageRole, tuple[type, ...]] = {
    MessageRole.USER: (TextPart, FilePart),
    MessageRole.ASSISTANT: (TextPart, FilePart, ReasoningPart, ToolCallPart),
    MessageRole.TOOL: (ToolResultPart,),
}


@dataclass(frozen=True, slots=True)
class Message:
    """A single role-tagged prompt message.

    System messages carry a plain string; every other role carries a sequence
    of parts, which is normalized to a tuple.
    """

    role: MessageRole
    content: str | tuple[Part, ...]

    def __post_init__(self) -> None:
        if not isinstance(self.role, MessageRole):
            object.__setattr__(self, "role", MessageRole(self.role))

        if self.role is MessageRole.SYSTEM:
            if not isinstance(self.content, str):
                msg = "system message content must be a string"
                raise TypeError(msg)
            return

        if isinstance(self.content, str):
            if self.role is MessageRole.TOOL:
                msg = "tool message content must be a sequence of ToolResultPart"
                raise TypeError(msg)
            object.__setattr__(self, "content", (TextPart(self.content),))
            return

        if not isinstance(self.content, Sequence) or isinstance(self.content, (bytes, bytearray)):
            msg = "message content must be a string or a sequence of parts"
            raise TypeError(msg)

        parts = tuple(self.content)
        allowed = _ALLOWED_PARTS[self.role]
        for index, part in enumerate(parts):
            if not isinstance(part, allowed):
                msg = f"{self.role.value} message part {index} has unsupported type {type(part).__name__}"
                raise TypeError(msg)
        object.__setattr__(self, "content", parts)

    @classmethod
    def system(cls, text: str) -> "Message":
        return cls(MessageRole.SYSTEM, text)

    @classmethod
    def user(cls, *parts: Part | str) -> "Message":
        return cls(MessageRole.USER, tuple(_coerce_part(part) for part in parts))

    @classmethod
    def assistant(cls, *parts: Part | str) -> "Message":
        return cls(MessageRole.ASSISTANT, tuple(_coerce_part(part) for part in parts))

    @classmethod
    def tool(cls, *results: ToolResultPart) -> "Message":
        return cls(MessageRole.TOOL, tuple(results))


def _coerce_part(part: Part | str) -> Part:
    if isinstance(part, str):
        return TextPart(part)
    return part


__all__ = [
    "FilePart",
    "Message",
    "MessageRole",
    "Part",
    "ReasoningPart",
    "TextPart",
    "ToolCallPart",
    "ToolOutput",
    "ToolResultPart",
]
