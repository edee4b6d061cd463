"""Adapter interface and the Nordlys Responses implementation."""

from __future__ import annotations

from .base import ModelAdapter
from .http import HttpTransport
from .responses import ResponsesAdapter, ResponsesStreamIterator, replay_payloads
from .stream import BaseStreamIterator, FinishEvent, LifecycleEvent, event_to_dict, replay_stream
from .stream_state import ResponsesStreamNormalizer
from .toolbridge import ProviderToolSpec, ToolChoice, ToolSpec

__all__ = [
    "BaseStreamIterator",
    "FinishEvent",
    "HttpTransport",
    "LifecycleEvent",
    "ModelAdapter",
    "ProviderToolSpec",
    "ResponsesAdapter",
    "ResponsesStreamIterator",
    "ResponsesStreamNormalizer",
    "ToolChoice",
    "ToolSpec",
    "event_to_dict",
    "replay_payloads",
    "replay_stream",
]
