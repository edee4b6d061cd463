"""Test harness utilities for adapter validation."""

from .adapter_harness import check_lifecycle, collect, collect_async, normalize, replay

__all__ = [
    "check_lifecycle",
    "collect",
    "collect_async",
    "normalize",
    "replay",
]
