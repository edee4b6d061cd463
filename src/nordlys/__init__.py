"""Nordlys Responses API adapter.

The package translates role-tagged prompts and tool definitions into requests
for the Nordlys ``/responses`` endpoint, and rebuilds the backend's
server-sent event stream into ordered start/delta/end lifecycle events.
"""

from __future__ import annotations

from .config import ProviderConfig, ProviderOptions
from .core import AdapterError, APICallError, Message, MessageRole
from .core.adapters import ResponsesAdapter, ToolChoice, ToolSpec
from .provider import NordlysProvider, create_nordlys

__all__ = [
    "APICallError",
    "AdapterError",
    "Message",
    "MessageRole",
    "NordlysProvider",
    "ProviderConfig",
    "ProviderOptions",
    "ResponsesAdapter",
    "ToolChoice",
    "ToolSpec",
    "create_nordlys",
]

__version__ = "0.1.0"
