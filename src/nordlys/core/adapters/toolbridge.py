"""Mapping helpers between tool definitions and the Responses API tool schema."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
import json
import math
import re
from types import MappingProxyType
from typing import Any

from ..errors import AdapterError
from ..result import CallWarning

_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{1,64}$")
_CHOICE_KEYWORDS = {"auto", "none", "required"}


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """A function tool the model may call."""

    name: str
    parameters: Mapping[str, Any]
    description: str | None = None
    strict: bool | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not _NAME_PATTERN.fullmatch(self.name):
            msg = "tool name must match ^[a-zA-Z0-9_-]{1,64}$"
            raise AdapterError(msg)

        normalized_description: str | None = None
        if self.description is not None:
            if not isinstance(self.description, str):
                msg = "tool description must be a string when provided"
                raise AdapterError(msg)
            stripped = self.description.strip()
            if not stripped:
                msg = "tool description cannot be empty"
                raise AdapterError(msg)
            normalized_description = stripped

        if not isinstance(self.parameters, Mapping):
            msg = "tool parameters must be a mapping"
            raise AdapterError(msg)

        raw_parameters = _thaw_json_structure(self.parameters)
        _ensure_json_compatible(raw_parameters, path=f"ToolSpec('{self.name}').parameters")

        try:
            sanitized = json.loads(json.dumps(raw_parameters, allow_nan=False))
        except (TypeError, ValueError) as exc:  # pragma: no cover - defensive
            msg = "tool parameters must be JSON serializable"
            raise AdapterError(msg) from exc

        if sanitized.get("type") != "object":
            msg = "tool parameters must describe a JSON object"
            raise AdapterError(msg)

        properties = sanitized.get("properties", {})
        if not isinstance(properties, dict):
            msg = "tool parameter 'properties' must be a mapping"
            raise AdapterError(msg)

        required = sanitized.get("required")
        if required is not None:
            if not isinstance(required, list):
                msg = "tool parameter 'required' must be a list of strings"
                raise AdapterError(msg)
            for index, item in enumerate(required):
                if not isinstance(item, str) or not item:
                    msg = f"required parameter names must be non-empty strings (index {index})"
                    raise AdapterError(msg)
                if item not in properties:
                    msg = f"required parameter '{item}' is not defined"
                    raise AdapterError(msg)

        if normalized_description is not None:
            object.__setattr__(self, "description", normalized_description)
        object.__setattr__(self, "parameters", _freeze_json_structure(sanitized))


@dataclass(frozen=True, slots=True)
class ProviderToolSpec:
    """A provider-defined tool (e.g. web search) identified as ``provider.tool``."""

    id: str
    name: str
    args: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ToolChoice:
    """Tool choice policy.

    ``type`` is one of ``auto``, ``none``, ``required`` or ``tool``; the latter
    forces the tool called ``tool_name``.
    """

    type: str
    tool_name: str | None = None

    def __post_init__(self) -> None:
        if self.type == "tool":
            if not isinstance(self.tool_name, str) or not self.tool_name:
                msg = "tool choice of type 'tool' requires a tool_name"
                raise AdapterError(msg)
        elif self.type not in _CHOICE_KEYWORDS:
            msg = f"unsupported tool choice type '{self.type}'"
            raise AdapterError(msg)


@dataclass(frozen=True, slots=True)
class PreparedTools:
    """Wire-ready tools plus the warnings produced while preparing them."""

    tools: list[dict[str, Any]] | None
    tool_choice: str | dict[str, Any] | None
    warnings: tuple[CallWarning, ...] = ()


def prepare_tools(
    tools: Sequence[ToolSpec | ProviderToolSpec] | None,
    tool_choice: ToolChoice | str | None = None,
) -> PreparedTools:
    """Convert tool definitions and a choice policy into the backend shapes."""

    if tools is None or (isinstance(tools, Sequence) and not isinstance(tools, (str, bytes, bytearray)) and not tools):
        return PreparedTools(tools=None, tool_choice=None)

    if isinstance(tools, (str, bytes, bytearray, Mapping)) or not isinstance(tools, Sequence):
        msg = "tools must be provided as a sequence of ToolSpec instances"
        raise AdapterError(msg)

    warnings: list[CallWarning] = []
    normalized_tools: list[dict[str, Any]] = []
    seen_names: set[str] = set()

    for index, spec in enumerate(tools):
        if isinstance(spec, ProviderToolSpec):
            warnings.append(CallWarning(type="unsupported", feature=f"provider-defined tool {spec.id}"))
            continue
        if not isinstance(spec, ToolSpec):
            msg = f"tools[{index}] must be a ToolSpec"
            raise AdapterError(msg)
        if spec.name in seen_names:
            msg = f"duplicate tool name '{spec.name}'"
            raise AdapterError(msg)
        seen_names.add(spec.name)
        normalized_tools.append(tool_spec_to_wire(spec))

    if not normalized_tools:
        return PreparedTools(tools=None, tool_choice=None, warnings=tuple(warnings))

    return PreparedTools(
        tools=normalized_tools,
        tool_choice=tool_choice_to_wire(tool_choice),
        warnings=tuple(warnings),
    )


def tool_spec_to_wire(spec: ToolSpec) -> dict[str, Any]:
    """Render one function tool in the flat Responses API layout."""

    payload: dict[str, Any] = {
        "type": "function",
        "name": spec.name,
        "parameters": _thaw_json_structure(spec.parameters),
    }
    if spec.description is not None:
        payload["description"] = spec.description
    if spec.strict is not None:
        payload["strict"] = spec.strict
    return payload


def tool_choice_to_wire(tool_choice: ToolChoice | str | None) -> str | dict[str, Any] | None:
    if tool_choice is None:
        return None
    if isinstance(tool_choice, str):
        tool_choice = ToolChoice(type=tool_choice)
    if not isinstance(tool_choice, ToolChoice):
        msg = "tool_choice must be a ToolChoice or one of 'auto', 'none', 'required'"
        raise AdapterError(msg)
    if tool_choice.type == "tool":
        return {"type": "function", "name": tool_choice.tool_name}
    return tool_choice.type


def _ensure_json_compatible(value: Any, *, path: str) -> None:
    if isinstance(value, Mapping):
        for key, inner in value.items():
            if not isinstance(key, str) or not key:
                msg = f"{path} keys must be non-empty strings"
                raise AdapterError(msg)
            _ensure_json_compatible(inner, path=f"{path}.{key}")
        return

    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        for index, item in enumerate(value):
            _ensure_json_compatible(item, path=f"{path}[{index}]")
        return

    if isinstance(value, (bool, type(None), str)):
        return

    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            msg = f"{path} contains non-finite float values"
            raise AdapterError(msg)
        return

    msg = f"{path} contains unsupported value type {type(value).__name__}"
    raise AdapterError(msg)


def _freeze_json_structure(value: Any) -> Any:
    if isinstance(value, dict):
        return MappingProxyType({key: _freeze_json_structure(inner) for key, inner in value.items()})

    if isinstance(value, list):
        return tuple(_freeze_json_structure(inner) for inner in value)

    return value


def _thaw_json_structure(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {key: _thaw_json_structure(inner) for key, inner in value.items()}

    if isinstance(value, tuple):
        return [_thaw_json_structure(inner) for inner in value]

    return value


__all__ = [
    "PreparedTools",
    "ProviderToolSpec",
    "ToolChoice",
    "ToolSpec",
    "prepare_tools",
    "tool_choice_to_wire",
    "tool_spec_to_wire",
]
