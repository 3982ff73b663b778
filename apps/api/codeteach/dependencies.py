"""
FastAPI dependency providers.

Each collaborator is built once per process. Tests swap any of them through
app.dependency_overrides.
"""

from functools import lru_cache

import httpx

from .agents import CodeGenerator, Explainer, IntentPlanner, OrchestrationDriver
from .cache.result_cache import cache
from .llm_gateway import ModelGateway
from .notes import NotionNotesClient
from .core.config import settings
from .sandbox import SandboxRunner, sandbox
from .tools import PlaygroundTools, ToolRegistry, build_default_registry


@lru_cache
def get_http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=settings.TOOL_TIMEOUT_SECONDS,
        headers={"User-Agent": "codeteach-api"},
        follow_redirects=True,
    )


@lru_cache
def get_gateway() -> ModelGateway:
    return ModelGateway()


def get_sandbox() -> SandboxRunner:
    return sandbox


@lru_cache
def get_registry() -> ToolRegistry:
    return build_default_registry(get_sandbox(), get_http_client(), cache=cache)


@lru_cache
def get_playground_tools() -> PlaygroundTools:
    return PlaygroundTools(get_sandbox(), get_http_client())


@lru_cache
def get_planner() -> IntentPlanner:
    return IntentPlanner(get_gateway())


@lru_cache
def get_coder() -> CodeGenerator:
    return CodeGenerator(get_gateway())


@lru_cache
def get_explainer() -> Explainer:
    return Explainer(get_gateway(), get_registry())


@lru_cache
def get_driver() -> OrchestrationDriver:
    return OrchestrationDriver(get_planner(), get_coder(), get_explainer())


@lru_cache
def get_notes_client() -> NotionNotesClient:
    return NotionNotesClient(token=settings.NOTION_TOKEN, database_id=settings.NOTION_DATABASE_ID)


async def close_clients() -> None:
    """Close the HTTP clients that were actually created."""
    if get_http_client.cache_info().currsize:
        await get_http_client().aclose()
    if get_notes_client.cache_info().currsize:
        await get_notes_client().aclose()
