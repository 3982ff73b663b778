"""
Tools the explainer can call during a tool-use round trip.

Playground tools (sandbox-backed):
- execute_code, compare_outputs, measure_performance
- explain_error (error classification + Stack Overflow)

Documentation tools (network-backed, cached):
- fetch_docs (DevDocs), search_examples (GitHub code search)
"""

from typing import Optional

import httpx

from ..cache.result_cache import ResultCache
from ..core.config import settings
from ..sandbox import SandboxRunner
from .docs import FETCH_DOCS, SEARCH_EXAMPLES, DocsTools
from .playground import (
    COMPARE_OUTPUTS,
    EXECUTE_CODE,
    EXPLAIN_ERROR,
    MEASURE_PERFORMANCE,
    PlaygroundTools,
)
from .registry import ToolRegistry, ToolSchema


def build_default_registry(
    sandbox: SandboxRunner,
    http_client: httpx.AsyncClient,
    cache: Optional[ResultCache] = None,
) -> ToolRegistry:
    """Register the six built-in tools in their declaration order."""
    registry = ToolRegistry(cache=cache)
    playground = PlaygroundTools(sandbox, http_client)
    docs = DocsTools(http_client)
    # Network tools get one extra second over the HTTP timeout for JSON handling.
    network_timeout = settings.TOOL_TIMEOUT_SECONDS + 1

    registry.register(EXECUTE_CODE, playground.execute_code)
    registry.register(COMPARE_OUTPUTS, playground.compare_outputs)
    registry.register(MEASURE_PERFORMANCE, playground.measure_performance)
    registry.register(
        EXPLAIN_ERROR,
        playground.explain_error,
        cache_ttl=settings.ERROR_ANALYSIS_CACHE_TTL_SECONDS,
        timeout=network_timeout,
        cache_args=("error",),
    )
    registry.register(
        FETCH_DOCS,
        docs.fetch_docs,
        cache_ttl=settings.DOCS_CACHE_TTL_SECONDS,
        timeout=network_timeout,
    )
    registry.register(
        SEARCH_EXAMPLES,
        docs.search_examples,
        cache_ttl=settings.DOCS_CACHE_TTL_SECONDS,
        timeout=network_timeout,
    )
    return registry


__all__ = [
    "ToolRegistry",
    "ToolSchema",
    "PlaygroundTools",
    "DocsTools",
    "build_default_registry",
]
