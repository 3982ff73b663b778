"""
Explainer: explains code to the learner, optionally backed by tool use.

explain() runs the tool round trip:

    Sent -> AnswerReceived
    Sent -> ToolUseRequested -> ToolsExecuting -> FollowUpSent -> AnswerReceived

Every tool requested in a turn is executed in order, each failure converted
to error text on its own, and all results go back in one follow-up turn. The
number of round trips is bounded by TOOL_MAX_ROUNDS; the last permitted
follow-up forbids further tool calls so the model has to answer in text.
"""

import logging
from contextlib import aclosing
from dataclasses import replace
from typing import AsyncIterator, Callable, List, Optional, Sequence

from ..core.config import settings
from ..exceptions import UpstreamError
from ..llm_gateway import ModelGateway, ModelOptions, ModelResponse, TextDelta
from ..locales import LocaleContext
from ..models import ExplanationResult, ToolActivity, ToolInvocation, ToolResult
from ..parsing import extract_list, extract_section
from ..tools.registry import ToolRegistry


logger = logging.getLogger(__name__)


ToolActivityCallback = Callable[[ToolActivity], None]

ALTERNATIVES_QUESTION = (
    "Suggest alternative implementations of this code. For each alternative, "
    "explain its trade-offs and when to prefer it."
)

LINE_CONTEXT_RADIUS = 2
PREVIEW_CHARS = 200


def build_explain_turn(code: str, question: str, source_language: Optional[str] = None) -> str:
    header = f"Programming Language: {source_language}\n\n" if source_language else ""
    return f"{header}Code:\n```\n{code}\n```\n\nQuestion: {question}"


def build_line_turn(code: str, line_number: int, source_language: Optional[str] = None) -> str:
    """
    User turn for a single-line explanation.

    Raises:
        ValueError: line_number is outside 1..number of lines
    """
    lines = code.split("\n")
    if line_number < 1 or line_number > len(lines):
        raise ValueError(f"line_number {line_number} is out of range (code has {len(lines)} lines)")

    target = lines[line_number - 1]
    start = max(0, line_number - 1 - LINE_CONTEXT_RADIUS)
    window = "\n".join(lines[start:min(len(lines), line_number + LINE_CONTEXT_RADIUS)])
    header = f"Programming Language: {source_language}\n\n" if source_language else ""
    return (
        f"{header}Code Context:\n```\n{window}\n```\n\n"
        f'Briefly explain line {line_number}: "{target}"\n\n'
        "Provide a concise explanation focusing on what this line does."
    )


def parse_explanation(text: str, extended_deliberation: Optional[str] = None) -> ExplanationResult:
    """Parse a tagged explanation. Without an <explanation> tag the raw text is the explanation."""
    return ExplanationResult(
        deliberation=extract_section(text, "thinking"),
        explanation=extract_section(text, "explanation") or text,
        key_concepts=extract_list(text, "key_concepts"),
        common_mistakes=extract_list(text, "common_mistakes"),
        extended_deliberation=extended_deliberation or None,
    )


class Explainer:
    """Explains code, whole snippets or single lines."""

    def __init__(
        self,
        gateway: ModelGateway,
        registry: Optional[ToolRegistry] = None,
        use_tools: Optional[bool] = None,
        deliberation_budget: Optional[int] = None,
        max_tool_rounds: Optional[int] = None,
    ):
        self.gateway = gateway
        self.registry = registry
        self.use_tools = settings.EXPLAIN_USE_TOOLS if use_tools is None else use_tools
        self.deliberation_budget = (
            settings.DELIBERATION_BUDGET if deliberation_budget is None else deliberation_budget
        )
        self.max_tool_rounds = max_tool_rounds or settings.TOOL_MAX_ROUNDS

    def _options(self) -> ModelOptions:
        return ModelOptions(
            max_output_tokens=settings.EXPLAIN_MAX_TOKENS,
            deliberation_budget=self.deliberation_budget or None,
        )

    def _tools(self):
        if not self.use_tools or self.registry is None:
            return []
        return self.registry.list_declarations()

    async def explain(
        self,
        code: str,
        question: str,
        locale: LocaleContext,
        source_language: Optional[str] = None,
        on_tool_activity: Optional[ToolActivityCallback] = None,
    ) -> ExplanationResult:
        """
        Produce a full explanation, running requested tools when enabled.

        Args:
            code: Code under discussion (may be empty)
            question: The learner's question
            locale: Prompts to use
            source_language: Optional programming language hint
            on_tool_activity: Called with a ToolActivity when each tool starts and finishes

        Returns:
            ExplanationResult parsed from the final text answer

        Raises:
            UpstreamError: model call failed, or the final turn had no text
        """
        system_prompt = locale.explain_prompt
        user_turn = build_explain_turn(code, question, source_language)
        options = self._options()
        tools = self._tools()

        if not tools:
            response = await self.gateway.call(system_prompt, user_turn, options)
            return parse_explanation(response.text, response.deliberation)

        response = await self.gateway.call_with_tools(system_prompt, user_turn, tools, options)
        rounds = 0
        while response.requested_tools and rounds < self.max_tool_rounds:
            rounds += 1
            logger.info(
                f"Tool round {rounds}/{self.max_tool_rounds}: "
                f"{[invocation.tool_name for invocation in response.tool_invocations]}"
            )
            results = await self._run_tools(response.tool_invocations, on_tool_activity)
            follow_up_options = replace(options, tool_choice_none=rounds >= self.max_tool_rounds)
            response = await self.gateway.continue_with_tool_results(
                system_prompt, response, results, tools, follow_up_options
            )

        return self._final(response)

    async def _run_tools(
        self,
        invocations: Sequence[ToolInvocation],
        on_tool_activity: Optional[ToolActivityCallback],
    ) -> List[ToolResult]:
        results: List[ToolResult] = []
        for invocation in invocations:
            _notify(on_tool_activity, ToolActivity(
                invocation_id=invocation.id,
                tool_name=invocation.tool_name,
                status="started",
                input=invocation.input,
            ))
            result = await self.registry.run_invocation(invocation)
            results.append(result)
            _notify(on_tool_activity, ToolActivity(
                invocation_id=invocation.id,
                tool_name=invocation.tool_name,
                status="failed" if result.is_error else "succeeded",
                input=invocation.input,
                preview=result.content[:PREVIEW_CHARS],
            ))
        return results

    @staticmethod
    def _final(response: ModelResponse) -> ExplanationResult:
        if not response.has_text:
            raise UpstreamError("Explanation response did not contain a text block")
        return parse_explanation(response.text, response.deliberation)

    async def explain_stream(
        self,
        code: str,
        question: str,
        locale: LocaleContext,
        source_language: Optional[str] = None,
    ) -> AsyncIterator[TextDelta]:
        """Stream deliberation and answer deltas (no tools)."""
        deltas = self.gateway.stream(
            locale.explain_prompt,
            build_explain_turn(code, question, source_language),
            self._options(),
        )
        async with aclosing(deltas):
            async for delta in deltas:
                yield delta

    async def explain_line(
        self,
        code: str,
        line_number: int,
        locale: LocaleContext,
        source_language: Optional[str] = None,
    ) -> ExplanationResult:
        """Fast path for one line: narrow window, no tools, small token ceiling."""
        user_turn = build_line_turn(code, line_number, source_language)
        options = ModelOptions(
            max_output_tokens=settings.LINE_EXPLAIN_MAX_TOKENS,
            deliberation_budget=settings.LINE_EXPLAIN_DELIBERATION_BUDGET or None,
        )
        response = await self.gateway.call(locale.explain_prompt, user_turn, options)
        return parse_explanation(response.text, response.deliberation)

    async def suggest_alternatives(
        self,
        code: str,
        locale: LocaleContext,
        source_language: Optional[str] = None,
    ) -> ExplanationResult:
        return await self.explain(code, ALTERNATIVES_QUESTION, locale, source_language)


def _notify(callback: Optional[ToolActivityCallback], activity: ToolActivity) -> None:
    if callback is not None:
        callback(activity)
