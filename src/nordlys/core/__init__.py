"""Core data structures shared by the Nordlys adapter."""

from __future__ import annotations

from .errors import (
    AdapterError,
    APICallError,
    InvalidPromptError,
    LoadAPIKeyError,
    NoSuchModelError,
    StreamParseError,
    UnsupportedContentError,
)
from .message import FilePart, Message, MessageRole, TextPart, ToolOutput, ToolResultPart
from .result import FinishReason, FinishReasonType, GenerateResult, Usage

__all__ = [
    "APICallError",
    "AdapterError",
    "FilePart",
    "FinishReason",
    "FinishReasonType",
    "GenerateResult",
    "InvalidPromptError",
    "LoadAPIKeyError",
    "Message",
    "MessageRole",
    "NoSuchModelError",
    "StreamParseError",
    "TextPart",
    "ToolOutput",
    "ToolResultPart",
    "UnsupportedContentError",
    "Usage",
]
