"""
Workspace notes: saves learning notes as Notion pages over the REST API.

When a database is configured, page properties are mapped onto whatever
columns the database actually has (title, Language, Tags, Date). Without a
database the note becomes a plain page under the first page the integration
can see.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from .core.config import settings
from .exceptions import NotesError
from .models import ExecutionResult, LearningNote, SavedNote


logger = logging.getLogger(__name__)


UUID_PATTERN = re.compile(r"(?<![0-9a-f])[0-9a-f]{32}(?![0-9a-f])", re.IGNORECASE)
MAX_TEXT_CHARS = 2000

NOTION_LANGUAGES = {
    "javascript": "javascript",
    "js": "javascript",
    "typescript": "typescript",
    "ts": "typescript",
    "python": "python",
    "py": "python",
    "java": "java",
    "bash": "bash",
}


def extract_database_id(value: Optional[str]) -> Optional[str]:
    """Normalise a raw database id or a Notion URL into hyphenated UUID form."""
    if not value:
        return None
    raw = value.strip()
    # Bare ids may be hyphenated; ids inside URLs never are.
    match = UUID_PATTERN.fullmatch(raw.replace("-", "")) or UUID_PATTERN.search(raw)
    if not match:
        return raw
    hex_id = match.group(0).lower()
    return f"{hex_id[:8]}-{hex_id[8:12]}-{hex_id[12:16]}-{hex_id[16:20]}-{hex_id[20:]}"


def split_text(text: str, max_length: int = MAX_TEXT_CHARS) -> List[str]:
    """Split text into chunks Notion accepts, preferring newline boundaries."""
    if len(text) <= max_length:
        return [text]

    chunks = []
    remaining = text
    while remaining:
        if len(remaining) <= max_length:
            chunks.append(remaining)
            break
        split_at = remaining.rfind("\n", 0, max_length)
        if split_at < max_length // 2:
            split_at = max_length
        chunks.append(remaining[:split_at])
        remaining = remaining[split_at:]
    return chunks


def _rich_text(content: str) -> List[Dict[str, Any]]:
    return [{"type": "text", "text": {"content": content}}]


def _block(block_type: str, content: str, **extra) -> Dict[str, Any]:
    return {"object": "block", "type": block_type, block_type: {"rich_text": _rich_text(content), **extra}}


def _bulleted_section(heading: str, items: List[str]) -> List[Dict[str, Any]]:
    if not items:
        return []
    return [_block("heading_3", heading)] + [_block("bulleted_list_item", item) for item in items]


def _execution_summary(result: ExecutionResult) -> str:
    if result.success:
        return f"Success\nOutput: {result.output}\nDuration: {result.duration_ms}ms"
    return f"Failed\nError: {result.error}"


def build_page_blocks(note: LearningNote) -> List[Dict[str, Any]]:
    language = NOTION_LANGUAGES.get(note.language.lower(), "plain text")
    blocks = [_block("heading_2", "Code")]
    blocks += [_block("code", chunk, language=language) for chunk in split_text(note.code)]
    blocks.append(_block("heading_2", "Explanation"))
    blocks += [_block("paragraph", chunk) for chunk in split_text(note.explanation)]
    blocks += _bulleted_section("Key Concepts", note.key_concepts)
    blocks += _bulleted_section("Warnings", note.warnings)
    if note.execution_result is not None:
        blocks.append(_block("heading_3", "Execution Result"))
        blocks.append(_block("code", _execution_summary(note.execution_result), language="plain text"))
    blocks += _bulleted_section("Next Steps", note.next_steps)
    return blocks


def map_database_properties(schema: Dict[str, Any], note: LearningNote) -> Dict[str, Any]:
    """Fill only the columns the target database defines."""
    properties: Dict[str, Any] = {}
    title_column = next((name for name, prop in schema.items() if prop.get("type") == "title"), None)
    if title_column:
        properties[title_column] = {"title": _rich_text(note.title)}
    if schema.get("Language", {}).get("type") == "select":
        properties["Language"] = {"select": {"name": note.language}}
    if schema.get("Tags", {}).get("type") == "multi_select" and note.tags:
        properties["Tags"] = {"multi_select": [{"name": tag} for tag in note.tags]}
    if schema.get("Date", {}).get("type") == "date":
        properties["Date"] = {"date": {"start": datetime.now(timezone.utc).isoformat()}}
    return properties


class NotionNotesClient:
    """Thin async client for the Notion endpoints the notes feature needs."""

    def __init__(
        self,
        token: Optional[str] = None,
        database_id: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.token = token
        self.database_id = extract_database_id(database_id)
        self.http = http_client or httpx.AsyncClient(base_url=settings.NOTION_API_URL, timeout=10.0)

    @property
    def configured(self) -> bool:
        return bool(self.token)

    def configure(self, token: str, database_id: Optional[str] = None) -> None:
        self.token = token
        self.database_id = extract_database_id(database_id)

    async def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        if not self.token:
            raise NotesError("Notion is not configured. Call /api/notion/configure first.", status_code=400)

        headers = {
            "Authorization": f"Bearer {self.token}",
            "Notion-Version": settings.NOTION_API_VERSION,
        }
        try:
            response = await self.http.request(method, path, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise NotesError(f"Notion request failed: {e}") from e

        if response.status_code >= 400:
            try:
                message = response.json().get("message", response.text)
            except ValueError:
                message = response.text
            raise NotesError(f"Notion API error ({response.status_code}): {message}", status_code=response.status_code)
        return response.json()

    async def verify(self) -> str:
        """Check the token and return the integration's display name."""
        user = await self._request("GET", "/users/me")
        return user.get("name") or (user.get("bot") or {}).get("name") or "Bot"

    async def _default_parent_page(self) -> str:
        found = await self._request(
            "POST",
            "/search",
            {"filter": {"property": "object", "value": "page"}, "page_size": 1},
        )
        results = found.get("results", [])
        if not results:
            raise NotesError(
                "No accessible pages found. Share a Notion page with the integration first.",
                status_code=400,
            )
        return results[0]["id"]

    async def save(self, note: LearningNote, database_id: Optional[str] = None) -> SavedNote:
        target = extract_database_id(database_id or note.database_id) or self.database_id
        children = build_page_blocks(note)

        if target is None:
            logger.info("No Notion database configured, saving note as a plain page")
            payload = {
                "parent": {"type": "page_id", "page_id": await self._default_parent_page()},
                "properties": {"title": {"title": _rich_text(note.title)}},
                "children": children,
            }
        else:
            database = await self._request("GET", f"/databases/{target}")
            schema = database.get("properties")
            if not isinstance(schema, dict):
                raise NotesError("Cannot read the database properties. Check the database id and integration access.")
            payload = {
                "parent": {"database_id": target},
                "properties": map_database_properties(schema, note),
                "children": children,
            }

        page = await self._request("POST", "/pages", payload)
        logger.info(f"Saved learning note '{note.title}' as Notion page {page.get('id')}")
        return SavedNote(page_id=page["id"], page_url=page.get("url", ""))

    async def aclose(self) -> None:
        await self.http.aclose()
