"""
Model Gateway: the only module that talks to the Anthropic Messages API.

Three call shapes are exposed to the agents:
- call():              blocking, text answer required
- stream():            incremental deltas, tagged by channel
- call_with_tools():   blocking, may end in a tool-use turn instead of text

plus continue_with_tool_results() for the follow-up turn of a tool round trip.
SDK failures are normalised to UpstreamError so callers only handle one type.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

import anthropic
from anthropic import AsyncAnthropic
from prometheus_client import Counter

from .core.config import settings
from .exceptions import UpstreamError
from .models import ToolInvocation, ToolResult
from .tools.registry import ToolSchema

logger = logging.getLogger(__name__)


model_calls_total = Counter(
    "model_calls_total",
    "Calls made to the model API",
    ["kind", "outcome"],
)


class DeltaChannel(str, Enum):
    deliberation = "deliberation"
    answer = "answer"


@dataclass
class TextDelta:
    channel: DeltaChannel
    text: str


@dataclass
class ModelOptions:
    max_output_tokens: int = 4000
    deliberation_budget: Optional[int] = None
    tool_choice_none: bool = False

    @property
    def max_tokens(self) -> int:
        # Thinking tokens count against max_tokens.
        if self.deliberation_budget:
            return self.deliberation_budget + self.max_output_tokens
        return self.max_output_tokens


@dataclass
class ModelResponse:
    text: str = ""
    deliberation: str = ""
    tool_invocations: List[ToolInvocation] = field(default_factory=list)
    stop_reason: Optional[str] = None
    content_blocks: List[Dict[str, Any]] = field(default_factory=list)
    has_text: bool = False
    conversation: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def requested_tools(self) -> bool:
        return self.stop_reason == "tool_use" and bool(self.tool_invocations)


class ModelGateway:
    """Async wrapper over AsyncAnthropic.messages."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[AsyncAnthropic] = None,
    ):
        self.model = model or settings.MODEL_NAME
        self._client = client or AsyncAnthropic(
            api_key=api_key or settings.ANTHROPIC_API_KEY,
            base_url=base_url or settings.ANTHROPIC_BASE_URL,
            timeout=timeout or settings.MODEL_TIMEOUT_SECONDS,
        )

    async def call(
        self,
        system_prompt: str,
        user_content: str,
        options: Optional[ModelOptions] = None,
    ) -> ModelResponse:
        messages = [{"role": "user", "content": user_content}]
        response = await self._create("call", system_prompt, messages, options or ModelOptions())
        if not response.has_text:
            raise UpstreamError("Model response did not contain a text block")
        return response

    async def call_with_tools(
        self,
        system_prompt: str,
        user_content: str,
        tools: Sequence[ToolSchema],
        options: Optional[ModelOptions] = None,
    ) -> ModelResponse:
        messages = [{"role": "user", "content": user_content}]
        return await self._create("call_with_tools", system_prompt, messages, options or ModelOptions(), tools)

    async def continue_with_tool_results(
        self,
        system_prompt: str,
        assistant_turn: ModelResponse,
        results: Sequence[ToolResult],
        tools: Sequence[ToolSchema],
        options: Optional[ModelOptions] = None,
    ) -> ModelResponse:
        """
        Send the follow-up turn of a tool round trip.

        The conversation is the one that produced assistant_turn, then the
        assistant's tool-use turn verbatim (thinking blocks included), then
        one synthetic user turn holding every tool result.
        """
        messages = [
            *assistant_turn.conversation,
            {"role": "assistant", "content": assistant_turn.content_blocks},
            {
                "role": "user",
                "content": [
                    {
                        "type": "tool_result",
                        "tool_use_id": result.invocation_id,
                        "content": result.content,
                        "is_error": result.is_error,
                    }
                    for result in results
                ],
            },
        ]
        return await self._create("follow_up", system_prompt, messages, options or ModelOptions(), tools)

    async def stream(
        self,
        system_prompt: str,
        user_content: str,
        options: Optional[ModelOptions] = None,
    ) -> AsyncIterator[TextDelta]:
        options = options or ModelOptions()
        request = self._build_request(
            system_prompt,
            [{"role": "user", "content": user_content}],
            options,
        )

        logger.debug(f"Opening model stream (model={self.model}, max_tokens={options.max_tokens})")
        try:
            async with self._client.messages.stream(**request) as stream:
                async for event in stream:
                    if event.type != "content_block_delta":
                        continue
                    delta = event.delta
                    if delta.type == "thinking_delta":
                        yield TextDelta(DeltaChannel.deliberation, delta.thinking)
                    elif delta.type == "text_delta":
                        yield TextDelta(DeltaChannel.answer, delta.text)
        except anthropic.APIError as e:
            model_calls_total.labels(kind="stream", outcome="error").inc()
            raise _upstream(e) from e
        model_calls_total.labels(kind="stream", outcome="ok").inc()

    # Internals

    def _build_request(
        self,
        system_prompt: str,
        messages: List[Dict[str, Any]],
        options: ModelOptions,
        tools: Sequence[ToolSchema] = (),
    ) -> Dict[str, Any]:
        request: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": options.max_tokens,
            "system": system_prompt,
            "messages": messages,
        }
        if options.deliberation_budget:
            request["thinking"] = {"type": "enabled", "budget_tokens": options.deliberation_budget}
        if tools:
            request["tools"] = [tool.to_declaration() for tool in tools]
            if options.tool_choice_none:
                request["tool_choice"] = {"type": "none"}
        return request

    async def _create(
        self,
        kind: str,
        system_prompt: str,
        messages: List[Dict[str, Any]],
        options: ModelOptions,
        tools: Sequence[ToolSchema] = (),
    ) -> ModelResponse:
        request = self._build_request(system_prompt, messages, options, tools)
        try:
            message = await self._client.messages.create(**request)
        except anthropic.APIError as e:
            model_calls_total.labels(kind=kind, outcome="error").inc()
            raise _upstream(e) from e

        model_calls_total.labels(kind=kind, outcome="ok").inc()
        response = _from_message(message)
        response.conversation = messages
        logger.debug(
            f"Model {kind} finished: stop_reason={response.stop_reason}, "
            f"tool_calls={len(response.tool_invocations)}"
        )
        return response


def _upstream(error: "anthropic.APIError") -> UpstreamError:
    status_code = getattr(error, "status_code", None)
    logger.warning(f"Model API error ({type(error).__name__}, status={status_code}): {error}")
    return UpstreamError(f"Model API error: {error}", status_code=status_code)


def _from_message(message: Any) -> ModelResponse:
    """Translate an SDK Message into a ModelResponse."""
    content = getattr(message, "content", None)
    if content is None:
        raise UpstreamError("Model response had no content")

    response = ModelResponse(stop_reason=getattr(message, "stop_reason", None))
    texts: List[str] = []
    thoughts: List[str] = []

    for block in content:
        block_type = getattr(block, "type", None)
        if block_type == "text":
            texts.append(block.text)
            response.has_text = True
        elif block_type == "thinking":
            thoughts.append(block.thinking)
        elif block_type == "tool_use":
            response.tool_invocations.append(ToolInvocation(
                id=block.id,
                tool_name=block.name,
                input=block.input if isinstance(block.input, dict) else {},
            ))
        response.content_blocks.append(_block_to_dict(block))

    response.text = "".join(texts)
    response.deliberation = "\n".join(thoughts)
    return response


def _block_to_dict(block: Any) -> Dict[str, Any]:
    if hasattr(block, "model_dump"):
        return block.model_dump(exclude_none=True)
    return dict(block)
