"""Wire schemas for the Nordlys backend."""

from .schema import (
    ErrorEnvelope,
    ResponseObject,
    ResponseRequest,
    StreamEventModel,
    parse_stream_event,
)

__all__ = [
    "ErrorEnvelope",
    "ResponseObject",
    "ResponseRequest",
    "StreamEventModel",
    "parse_stream_event",
]
