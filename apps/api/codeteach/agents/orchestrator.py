"""
Orchestration Driver: turns one prompt into an ordered stream of events.

    plan(analyzing) -> plan(WorkflowPlan)
    [generate|review]  plan(generating) -> code deltas... -> code(final)
    [explain|ExplainAgent]  plan(explaining) -> thinking/explanation deltas...
                            -> tool activity... -> explanation(final)
    complete | error

Steps run sequentially, one model call at a time. The stream ends with
exactly one terminal event unless the consumer went away, in which case
the run stops quietly without further model or tool calls.
"""

import asyncio
import logging
from contextlib import aclosing
from typing import AsyncIterator, Awaitable, Callable, List, Optional

from prometheus_client import Counter

from ..exceptions import PlanParseError, UpstreamError
from ..llm_gateway import DeltaChannel
from ..locales import LocaleContext
from ..models import EventType, Intent, StreamEvent, ToolActivity, WorkflowPlan
from .coder import CodeGenerator
from .explainer import Explainer
from .planner import IntentPlanner


logger = logging.getLogger(__name__)


orchestration_runs_total = Counter(
    "orchestration_runs_total",
    "Orchestration runs by planned intent and outcome",
    ["intent", "status"],
)

ORCHESTRATOR = "Orchestrator"
CODEGEN_AGENT = "CodeGenAgent"
EXPLAIN_AGENT = "ExplainAgent"

CODE_INTENTS = {Intent.generate, Intent.review}

StopPredicate = Callable[[], Awaitable[bool]]


class RunStopped(Exception):
    """The consumer is gone; unwind without emitting anything else."""


def step_event(step: str, agent: str) -> StreamEvent:
    return StreamEvent(type=EventType.plan, data={"step": step, "agent": agent}, agent=agent)


def error_event(message: str, kind: str) -> StreamEvent:
    return StreamEvent(type=EventType.error, data={"message": message, "kind": kind, "error": True})


class OrchestrationDriver:
    """Runs planner, code generator and explainer for one request."""

    def __init__(self, planner: IntentPlanner, coder: CodeGenerator, explainer: Explainer):
        self.planner = planner
        self.coder = coder
        self.explainer = explainer

    async def run(
        self,
        prompt: str,
        locale: LocaleContext,
        context_code: Optional[str] = None,
        should_stop: Optional[StopPredicate] = None,
    ) -> AsyncIterator[StreamEvent]:
        """
        Produce the event stream for one prompt.

        Args:
            prompt: The learner's request
            locale: Prompts resolved for the request locale
            context_code: Code the learner supplied, if any
            should_stop: Async predicate checked before every model call and
                between streamed chunks (e.g. request.is_disconnected)

        Yields:
            StreamEvent in emission order
        """
        intent = "unknown"
        status = "complete"
        stop = _Stopper(should_stop)

        try:
            yield step_event("analyzing", ORCHESTRATOR)

            await stop.check()
            plan = await self.planner.analyze(prompt, locale)
            intent = plan.intent.value
            yield StreamEvent(type=EventType.plan, data=plan.to_wire(), agent=ORCHESTRATOR)

            if plan.intent in CODE_INTENTS:
                async with aclosing(self._generate(prompt, locale, context_code, stop)) as events:
                    async for event in events:
                        yield event

            if _wants_explanation(plan):
                async with aclosing(self._explain(prompt, locale, context_code, stop)) as events:
                    async for event in events:
                        yield event

            yield StreamEvent(type=EventType.complete, data={"success": True})

        except RunStopped:
            status = "cancelled"
            logger.info("Client disconnected, orchestration stopped")
        except (GeneratorExit, asyncio.CancelledError):
            status = "cancelled"
            raise
        except PlanParseError as e:
            status = "error"
            logger.warning(f"Plan parse failed: {e}")
            yield error_event(str(e), "plan_parse")
        except UpstreamError as e:
            status = "error"
            logger.warning(f"Model call failed during orchestration: {e}")
            yield error_event(str(e), "upstream")
        except Exception as e:
            status = "error"
            logger.error(f"Orchestration failed: {e}", exc_info=True)
            yield error_event(str(e) or type(e).__name__, "internal")
        finally:
            orchestration_runs_total.labels(intent=intent, status=status).inc()

    async def _generate(
        self,
        prompt: str,
        locale: LocaleContext,
        context_code: Optional[str],
        stop: "_Stopper",
    ) -> AsyncIterator[StreamEvent]:
        yield step_event("generating", CODEGEN_AGENT)

        await stop.check()
        full_response = ""
        async with aclosing(self.coder.generate_stream(prompt, locale, context_code)) as chunks:
            async for chunk in chunks:
                await stop.check()
                full_response += chunk
                yield StreamEvent(
                    type=EventType.code,
                    data={"chunk": chunk, "fullResponse": full_response},
                    agent=CODEGEN_AGENT,
                )

        await stop.check()
        result = await self.coder.generate(prompt, locale, context_code)
        yield StreamEvent(type=EventType.code, data={"final": True, **result.to_wire()}, agent=CODEGEN_AGENT)

    async def _explain(
        self,
        prompt: str,
        locale: LocaleContext,
        context_code: Optional[str],
        stop: "_Stopper",
    ) -> AsyncIterator[StreamEvent]:
        yield step_event("explaining", EXPLAIN_AGENT)

        code = context_code or ""
        running = {DeltaChannel.deliberation: "", DeltaChannel.answer: ""}

        await stop.check()
        async with aclosing(self.explainer.explain_stream(code, prompt, locale)) as deltas:
            async for delta in deltas:
                await stop.check()
                running[delta.channel] += delta.text
                event_type = EventType.thinking if delta.channel == DeltaChannel.deliberation else EventType.explanation
                yield StreamEvent(
                    type=event_type,
                    data={"chunk": delta.text, "fullResponse": running[delta.channel]},
                    agent=EXPLAIN_AGENT,
                )

        await stop.check()
        activities: List[ToolActivity] = []
        result = await self.explainer.explain(code, prompt, locale, on_tool_activity=activities.append)

        for activity in activities:
            yield StreamEvent(type=EventType.tool, data=activity.to_wire(), agent=EXPLAIN_AGENT)
        yield StreamEvent(type=EventType.explanation, data={"final": True, **result.to_wire()}, agent=EXPLAIN_AGENT)


class _Stopper:
    def __init__(self, should_stop: Optional[StopPredicate]):
        self._should_stop = should_stop

    async def check(self) -> None:
        if self._should_stop is not None and await self._should_stop():
            raise RunStopped()


def _wants_explanation(plan: WorkflowPlan) -> bool:
    return plan.intent == Intent.explain or EXPLAIN_AGENT in plan.agents
