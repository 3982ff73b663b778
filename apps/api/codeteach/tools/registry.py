"""
Tool Registry: named capabilities the explainer may invoke through tool use.

Each tool is declared to the model as {name, description, input_schema} and
backed by an async executor taking the model-supplied arguments and returning
text. Tool-level failures never escape run_invocation(): they become error
text fed back to the model.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from prometheus_client import Counter

from ..cache.result_cache import ResultCache, tool_cache_key
from ..exceptions import ToolExecutionError, UnknownTool
from ..models import ToolInvocation, ToolResult

logger = logging.getLogger(__name__)


tool_invocations_total = Counter(
    "tool_invocations_total",
    "Tool executions requested by the model",
    ["tool", "outcome"],
)

ToolExecutor = Callable[[Dict[str, Any]], Awaitable[str]]


@dataclass(frozen=True)
class ToolSchema:
    """Declaration of a tool as the model sees it."""
    name: str
    description: str
    input_schema: Dict[str, Any] = field(default_factory=dict)

    @property
    def required(self) -> List[str]:
        return list(self.input_schema.get("required", []))

    def to_declaration(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }


@dataclass
class RegisteredTool:
    schema: ToolSchema
    executor: ToolExecutor
    cache_ttl: Optional[int] = None
    timeout: Optional[float] = None
    cache_args: Optional[Sequence[str]] = None

    def cache_key(self, args: Dict[str, Any]) -> str:
        """Key on cache_args only when set; otherwise on every argument."""
        if self.cache_args:
            args = {name: args.get(name) for name in self.cache_args}
        return tool_cache_key(self.schema.name, args)


class ToolRegistry:
    """Maps tool names to schemas and executors."""

    def __init__(self, cache: Optional[ResultCache] = None):
        self.cache = cache
        self._tools: Dict[str, RegisteredTool] = {}

    def register(
        self,
        schema: ToolSchema,
        executor: ToolExecutor,
        cache_ttl: Optional[int] = None,
        timeout: Optional[float] = None,
        cache_args: Optional[Sequence[str]] = None,
    ) -> None:
        if schema.input_schema.get("type") != "object":
            raise ValueError(f"Tool '{schema.name}' input schema must be a JSON object schema")
        if schema.name in self._tools:
            logger.warning(f"Tool '{schema.name}' re-registered, replacing previous executor")
        self._tools[schema.name] = RegisteredTool(schema, executor, cache_ttl, timeout, cache_args)

    def list_declarations(self) -> List[ToolSchema]:
        return [tool.schema for tool in self._tools.values()]

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    async def execute(self, name: str, args: Dict[str, Any]) -> str:
        """
        Run a tool and return its text result.

        Raises:
            UnknownTool: nothing is registered under name
            ToolExecutionError: missing required arguments, executor failure or timeout
        """
        tool = self._tools.get(name)
        if tool is None:
            raise UnknownTool(name)

        missing = [key for key in tool.schema.required if key not in args]
        if missing:
            raise ToolExecutionError(name, f"missing required arguments: {', '.join(missing)}")

        key = tool.cache_key(args)
        if tool.cache_ttl and self.cache is not None:
            cached = await self.cache.get(key)
            if cached is not None:
                logger.debug(f"Tool cache hit for {name}")
                return cached

        try:
            if tool.timeout:
                result = await asyncio.wait_for(tool.executor(args), timeout=tool.timeout)
            else:
                result = await tool.executor(args)
        except asyncio.TimeoutError as e:
            raise ToolExecutionError(name, f"timed out after {tool.timeout}s") from e
        except Exception as e:
            raise ToolExecutionError(name, str(e) or type(e).__name__) from e

        if tool.cache_ttl and self.cache is not None:
            await self.cache.set(key, result, ttl=tool.cache_ttl)
        return result

    async def run_invocation(self, invocation: ToolInvocation) -> ToolResult:
        """Execute one model tool request, converting tool failures into error text."""
        try:
            content = await self.execute(invocation.tool_name, invocation.input)
        except (UnknownTool, ToolExecutionError) as e:
            logger.warning(f"Tool invocation {invocation.id} failed: {e}")
            tool_invocations_total.labels(tool=invocation.tool_name, outcome="error").inc()
            return ToolResult(invocation_id=invocation.id, content=f"Error: {e}", is_error=True)

        tool_invocations_total.labels(tool=invocation.tool_name, outcome="ok").inc()
        return ToolResult(invocation_id=invocation.id, content=content)
