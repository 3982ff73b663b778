"""Documentation tools: DevDocs lookups and GitHub code search."""

import json
import logging
from typing import Any, Dict

import httpx

from ..core.config import settings
from .registry import ToolSchema

logger = logging.getLogger(__name__)


FETCH_DOCS = ToolSchema(
    name="fetch_docs",
    description="Fetch official reference documentation for a library or language from DevDocs.",
    input_schema={
        "type": "object",
        "properties": {
            "library": {"type": "string", "description": 'Library slug, e.g. "javascript", "react", "python~3.12"'},
            "query": {"type": "string", "description": "Specific topic path to look up"},
        },
        "required": ["library"],
    },
)

SEARCH_EXAMPLES = ToolSchema(
    name="search_examples",
    description="Search GitHub for real-world code using a pattern, to show how it is used in production.",
    input_schema={
        "type": "object",
        "properties": {
            "query": {"type": "string", "description": "Search query"},
            "language": {"type": "string", "description": "Programming language filter"},
            "limit": {"type": "number", "description": "Maximum number of results (default 5)"},
        },
        "required": ["query"],
    },
)


class DocsTools:
    def __init__(self, http_client: httpx.AsyncClient):
        self.http = http_client

    async def fetch_docs(self, args: Dict[str, Any]) -> str:
        library = args["library"].strip()
        query = (args.get("query") or "").strip()
        path = f"{library}/{query}.json" if query else f"{library}/index.json"

        response = await self.http.get(
            f"{settings.DEVDOCS_BASE_URL}/{path}",
            timeout=settings.TOOL_TIMEOUT_SECONDS,
        )
        if response.status_code == 404:
            return f"Documentation not found for {library}" + (f"/{query}" if query else "")
        response.raise_for_status()
        return json.dumps(response.json(), indent=2, ensure_ascii=False)

    async def search_examples(self, args: Dict[str, Any]) -> str:
        query = args["query"].strip()
        language = args.get("language")
        search = f"{query} language:{language}" if language else query

        headers = {"Accept": "application/vnd.github.v3+json"}
        if settings.GITHUB_TOKEN:
            headers["Authorization"] = f"Bearer {settings.GITHUB_TOKEN}"

        try:
            response = await self.http.get(
                f"{settings.GITHUB_API_URL}/search/code",
                params={"q": search, "per_page": int(args.get("limit") or 5)},
                headers=headers,
                timeout=settings.TOOL_TIMEOUT_SECONDS,
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise RuntimeError(f"GitHub API error: {e}") from e

        examples = [
            {
                "name": item.get("name"),
                "path": item.get("path"),
                "repository": (item.get("repository") or {}).get("full_name"),
                "url": item.get("html_url"),
            }
            for item in response.json().get("items", [])
        ]
        return json.dumps(examples, indent=2, ensure_ascii=False)
