"""Wire schemas for the Nordlys Responses API."""

from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class _WireModel(BaseModel):
    """Base for payloads received from the backend; unknown fields are ignored."""

    model_config = ConfigDict(extra="ignore", frozen=True)


# ---------------------------------------------------------------------------
# Request body
# ---------------------------------------------------------------------------


class ReasoningParam(BaseModel):
    model_config = ConfigDict(extra="forbid")

    effort: Optional[str] = None
    summary: Optional[str] = None


class StreamOptions(BaseModel):
    model_config = ConfigDict(extra="forbid")

    include_usage: bool = True


class ResponseRequest(BaseModel):
    """Body of ``POST /responses``."""

    model_config = ConfigDict(extra="forbid")

    model: str = Field(..., description="Backend model identifier.")
    input: Union[str, List[Dict[str, Any]]] = Field(..., description="Plain prompt or structured input items.")
    instructions: Union[str, List[Dict[str, Any]], None] = Field(None, description="System instructions.")
    max_output_tokens: Optional[int] = None
    max_completion_tokens: Optional[int] = None
    max_tool_calls: Optional[int] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    stop: Union[str, List[str], None] = None
    presence_penalty: Optional[float] = None
    frequency_penalty: Optional[float] = None
    seed: Optional[int] = None
    user: Optional[str] = None
    tools: Optional[List[Dict[str, Any]]] = None
    tool_choice: Union[str, Dict[str, Any], None] = None
    logit_bias: Optional[Dict[str, float]] = None
    logprobs: Optional[bool] = None
    top_logprobs: Optional[int] = None
    audio: Optional[Dict[str, Any]] = None
    metadata: Optional[Dict[str, str]] = None
    modalities: Optional[List[str]] = None
    parallel_tool_calls: Optional[bool] = None
    prediction: Optional[Dict[str, Any]] = None
    reasoning: Optional[ReasoningParam] = None
    response_format: Optional[Dict[str, Any]] = None
    service_tier: Optional[str] = None
    store: Optional[bool] = None
    web_search_options: Optional[Dict[str, Any]] = None
    strict_json_schema: Optional[bool] = None
    text_verbosity: Optional[Literal["low", "medium", "high"]] = None
    include: Optional[List[str]] = None
    truncation: Optional[Literal["auto", "disabled"]] = None
    stream: Optional[bool] = None
    stream_options: Optional[StreamOptions] = None

    def to_body(self) -> Dict[str, Any]:
        """Render the JSON body, omitting unset parameters."""

        return self.model_dump(exclude_none=True)


# ---------------------------------------------------------------------------
# Output items
# ---------------------------------------------------------------------------


class OutputText(_WireModel):
    type: Literal["output_text"]
    text: str = ""


class Refusal(_WireModel):
    """Refusal content; backends place the text in ``text`` or ``refusal``."""

    type: Literal["refusal"]
    text: Optional[str] = None
    refusal: Optional[str] = None

    @property
    def value(self) -> str:
        return self.refusal if self.refusal is not None else (self.text or "")


MessageContent = Annotated[Union[OutputText, Refusal], Field(discriminator="type")]


class SummaryText(_WireModel):
    type: str = "summary_text"
    text: str = ""


class OutputMessage(_WireModel):
    type: Literal["message"]
    id: str
    role: Literal["assistant"] = "assistant"
    status: Optional[str] = None
    content: List[MessageContent] = Field(default_factory=list)

    def text(self) -> str:
        chunks: list[str] = []
        for part in self.content:
            chunks.append(part.value if isinstance(part, Refusal) else part.text)
        return "".join(chunks)


class ReasoningItem(_WireModel):
    type: Literal["reasoning"]
    id: str
    summary: List[SummaryText] = Field(default_factory=list)
    content: Optional[List[SummaryText]] = None
    encrypted_content: Optional[str] = None
    status: Optional[str] = None


class FunctionCallItem(_WireModel):
    type: Literal["function_call"]
    id: Optional[str] = None
    call_id: Optional[str] = None
    name: str
    arguments: str = ""
    status: Optional[str] = None

    @property
    def item_id(self) -> str:
        """Identifier used by delta events to address this call."""

        return self.id or self.call_id or ""

    @property
    def tool_call_id(self) -> str:
        """Caller-visible identifier of the tool call."""

        return self.call_id or self.id or ""


class FileSearchCall(_WireModel):
    type: Literal["file_search"]
    id: str
    status: Optional[str] = None


class WebSearchCall(_WireModel):
    type: Literal["web_search"]
    id: str
    status: Optional[str] = None


class UnknownOutputItem(_WireModel):
    """Output item of a type this adapter does not interpret."""

    model_config = ConfigDict(extra="allow", frozen=True)

    type: str
    id: Optional[str] = None


OutputItem = Annotated[
    Union[OutputMessage, ReasoningItem, FunctionCallItem, FileSearchCall, WebSearchCall, UnknownOutputItem],
    Field(union_mode="left_to_right"),
]


# ---------------------------------------------------------------------------
# Response object
# ---------------------------------------------------------------------------


class InputTokensDetails(_WireModel):
    cached_tokens: Optional[int] = None


class OutputTokensDetails(_WireModel):
    reasoning_tokens: Optional[int] = None


class ResponseUsage(_WireModel):
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    total_tokens: Optional[int] = None
    input_tokens_details: Optional[InputTokensDetails] = None
    output_tokens_details: Optional[OutputTokensDetails] = None


class ErrorDetail(_WireModel):
    message: str
    type: Optional[str] = None
    param: Any = None
    code: Union[str, int, None] = None


class ErrorEnvelope(_WireModel):
    """``{"error": {...}}`` body returned with non-2xx responses."""

    error: ErrorDetail


class IncompleteDetails(_WireModel):
    reason: Optional[str] = None


class ResponseObject(_WireModel):
    id: str = ""
    model: str = ""
    created_at: Optional[float] = None
    status: Optional[str] = None
    output: List[OutputItem] = Field(default_factory=list)
    usage: Optional[ResponseUsage] = None
    provider: Optional[str] = None
    service_tier: Optional[str] = None
    system_fingerprint: Optional[str] = None
    error: Optional[ErrorDetail] = None
    incomplete_details: Optional[IncompleteDetails] = None


# ---------------------------------------------------------------------------
# Stream events
# ---------------------------------------------------------------------------


class ResponseCreatedEvent(_WireModel):
    type: Literal["response.created"]
    response: ResponseObject


class ResponseInProgressEvent(_WireModel):
    type: Literal["response.in_progress"]


class OutputItemAddedEvent(_WireModel):
    type: Literal["response.output_item.added"]
    item: OutputItem
    output_index: Optional[int] = None


class OutputItemDoneEvent(_WireModel):
    """Item conclusion; some backends send only ``item_id``, others the full item."""

    type: Literal["response.output_item.done"]
    item_id: Optional[str] = None
    item: Optional[OutputItem] = None
    output_index: Optional[int] = None

    @property
    def resolved_item_id(self) -> str | None:
        if self.item_id:
            return self.item_id
        if isinstance(self.item, FunctionCallItem):
            return self.item.item_id or None
        if self.item is not None:
            return self.item.id
        return None


class OutputTextDeltaEvent(_WireModel):
    type: Literal["response.output_text.delta"]
    item_id: str
    delta: str
    output_index: Optional[int] = None
    content_index: Optional[int] = None


class ReasoningTextDeltaEvent(_WireModel):
    type: Literal["response.reasoning_text.delta"]
    item_id: str
    delta: str
    output_index: Optional[int] = None


class ReasoningSummaryTextDeltaEvent(_WireModel):
    type: Literal["response.reasoning_summary_text.delta"]
    item_id: str
    summary_index: int
    delta: str
    output_index: Optional[int] = None


class ReasoningSummaryTextDoneEvent(_WireModel):
    type: Literal["response.reasoning_summary_text.done"]
    item_id: str
    summary_index: int
    text: str = ""


class ReasoningSummaryPartAddedEvent(_WireModel):
    type: Literal["response.reasoning_summary_part.added"]
    item_id: str
    summary_index: int
    part: Optional[SummaryText] = None


class ReasoningSummaryPartDoneEvent(_WireModel):
    type: Literal["response.reasoning_summary_part.done"]
    item_id: str
    summary_index: int


class FunctionCallArgumentsDeltaEvent(_WireModel):
    type: Literal["response.function_call_arguments.delta"]
    item_id: str
    delta: str
    output_index: Optional[int] = None


class FunctionCallArgumentsDoneEvent(_WireModel):
    type: Literal["response.function_call_arguments.done"]
    item_id: str
    arguments: Optional[str] = None
    output_index: Optional[int] = None


class OutputTextPart(_WireModel):
    type: Literal["output_text"]
    text: str = ""


class RefusalPart(_WireModel):
    type: Literal["refusal"]
    refusal: str = ""


class ReasoningTextPart(_WireModel):
    type: Literal["reasoning_text"]
    text: str = ""


ContentPart = Annotated[Union[OutputTextPart, RefusalPart, ReasoningTextPart], Field(discriminator="type")]


class ContentPartAddedEvent(_WireModel):
    type: Literal["response.content_part.added"]
    item_id: str
    part: Optional[ContentPart] = None
    output_index: Optional[int] = None
    content_index: Optional[int] = None


class ContentPartDoneEvent(_WireModel):
    type: Literal["response.content_part.done"]
    item_id: str
    part: Optional[ContentPart] = None
    output_index: Optional[int] = None
    content_index: Optional[int] = None


class ResponseCompletedEvent(_WireModel):
    """Terminal event; ``response.incomplete`` and ``response.failed`` share the shape."""

    type: Literal["response.completed", "response.incomplete", "response.failed"]
    response: ResponseObject


class ResponseErrorEvent(_WireModel):
    type: Literal["response.error"]
    error: ErrorDetail


StreamEventModel = Union[
    ResponseCreatedEvent,
    ResponseInProgressEvent,
    OutputItemAddedEvent,
    OutputItemDoneEvent,
    OutputTextDeltaEvent,
    ReasoningTextDeltaEvent,
    ReasoningSummaryTextDeltaEvent,
    ReasoningSummaryTextDoneEvent,
    ReasoningSummaryPartAddedEvent,
    ReasoningSummaryPartDoneEvent,
    FunctionCallArgumentsDeltaEvent,
    FunctionCallArgumentsDoneEvent,
    ContentPartAddedEvent,
    ContentPartDoneEvent,
    ResponseCompletedEvent,
    ResponseErrorEvent,
]

STREAM_EVENT_MODELS: Dict[str, type[BaseModel]] = {
    "response.created": ResponseCreatedEvent,
    "response.in_progress": ResponseInProgressEvent,
    "response.output_item.added": OutputItemAddedEvent,
    "response.output_item.done": OutputItemDoneEvent,
    "response.output_text.delta": OutputTextDeltaEvent,
    "response.reasoning_text.delta": ReasoningTextDeltaEvent,
    "response.reasoning_summary_text.delta": ReasoningSummaryTextDeltaEvent,
    "response.reasoning_summary_text.done": ReasoningSummaryTextDoneEvent,
    "response.reasoning_summary_part.added": ReasoningSummaryPartAddedEvent,
    "response.reasoning_summary_part.done": ReasoningSummaryPartDoneEvent,
    "response.function_call_arguments.delta": FunctionCallArgumentsDeltaEvent,
    "response.function_call_arguments.done": FunctionCallArgumentsDoneEvent,
    "response.content_part.added": ContentPartAddedEvent,
    "response.content_part.done": ContentPartDoneEvent,
    "response.completed": ResponseCompletedEvent,
    "response.incomplete": ResponseCompletedEvent,
    "response.failed": ResponseCompletedEvent,
    "response.error": ResponseErrorEvent,
}


def parse_stream_event(payload: Mapping[str, Any]) -> StreamEventModel | None:
    """Validate one decoded stream payload.

    Returns ``None`` for event types this adapter does not know about and
    raises :class:`pydantic.ValidationError` when a known event is malformed.
    """

    event_type = payload.get("type")
    model = STREAM_EVENT_MODELS.get(event_type) if isinstance(event_type, str) else None
    if model is None:
        return None
    return model.model_validate(payload)


__all__ = [
    "ContentPartAddedEvent",
    "ContentPartDoneEvent",
    "ErrorDetail",
    "ErrorEnvelope",
    "FileSearchCall",
    "FunctionCallArgumentsDeltaEvent",
    "FunctionCallArgumentsDoneEvent",
    "FunctionCallItem",
    "OutputItem",
    "OutputItemAddedEvent",
    "OutputItemDoneEvent",
    "OutputMessage",
    "OutputText",
    "OutputTextDeltaEvent",
    "OutputTextPart",
    "ReasoningItem",
    "ReasoningParam",
    "ReasoningSummaryPartAddedEvent",
    "ReasoningSummaryPartDoneEvent",
    "ReasoningSummaryTextDeltaEvent",
    "ReasoningSummaryTextDoneEvent",
    "ReasoningTextDeltaEvent",
    "ReasoningTextPart",
    "Refusal",
    "RefusalPart",
    "ResponseCompletedEvent",
    "ResponseCreatedEvent",
    "ResponseErrorEvent",
    "ResponseInProgressEvent",
    "ResponseObject",
    "ResponseRequest",
    "ResponseUsage",
    "STREAM_EVENT_MODELS",
    "StreamEventModel",
    "StreamOptions",
    "SummaryText",
    "UnknownOutputItem",
    "WebSearchCall",
    "parse_stream_event",
]
