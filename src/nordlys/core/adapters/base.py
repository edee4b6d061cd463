"""Adapter interface shared by language model implementations."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

from ..message import Message
from ..result import GenerateResult
from .stream import BaseStreamIterator


class ModelAdapter(ABC):
    """Abstract interface for backend-specific language model adapters."""

    @property
    @abstractmethod
    def model_id(self) -> str:
        """Identifier of the backend model requests are sent to."""

    @abstractmethod
    async def generate(
        self,
        messages: Sequence[Message],
        /,
        *,
        tools: Any | None = None,
        tool_choice: Any | None = None,
        **options: Any,
    ) -> GenerateResult:
        """Run a one-shot generation and return its content items."""

    @abstractmethod
    def stream(
        self,
        messages: Sequence[Message],
        /,
        *,
        tools: Any | None = None,
        tool_choice: Any | None = None,
        **options: Any,
    ) -> BaseStreamIterator:
        """Return an async iterator that yields lifecycle events."""
