"""
HTTP-level tests. Collaborators are swapped through dependency overrides.
"""

import json

import httpx
import pytest

from codeteach.agents import Explainer
from codeteach.dependencies import (
    get_driver,
    get_explainer,
    get_notes_client,
    get_playground_tools,
    get_registry,
    get_sandbox,
)
from codeteach.exceptions import UpstreamError
from codeteach.main import app
from codeteach.middleware.rate_limit import rate_limiter
from codeteach.models import EventType, ExecutionResult, StreamEvent
from codeteach.notes import NotionNotesClient
from codeteach.tools import PlaygroundTools, build_default_registry

from fakes import FakeSandbox, text_response


class StubDriver:
    """Replays canned events and records what it was asked to run."""

    def __init__(self, events):
        self.events = events
        self.runs = []

    async def run(self, prompt, locale, context_code=None, should_stop=None):
        self.runs.append((prompt, locale.locale_id, context_code))
        for event in self.events:
            yield event


def offline_http() -> httpx.AsyncClient:
    def handler(request):
        raise httpx.ConnectError("offline")

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def sse_frames(body: str):
    frames = []
    for raw in body.strip().split("\n\n"):
        event_line, data_line = raw.split("\n")
        frames.append((event_line[len("event: "):], json.loads(data_line[len("data: "):])))
    return frames


class TestHealth:
    """Test service endpoints."""

    @pytest.mark.asyncio
    async def test_health(self, api_client):
        response = await api_client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["cache"] in ("memory", "redis")

    @pytest.mark.asyncio
    async def test_correlation_id_is_echoed(self, api_client):
        response = await api_client.get("/health", headers={"X-Correlation-ID": "abc-123"})
        assert response.headers["X-Correlation-ID"] == "abc-123"

    @pytest.mark.asyncio
    async def test_correlation_id_is_generated(self, api_client):
        response = await api_client.get("/health")
        assert len(response.headers["X-Correlation-ID"]) == 36

    @pytest.mark.asyncio
    async def test_metrics(self, api_client):
        response = await api_client.get("/metrics")

        assert response.status_code == 200
        assert "http_requests_total" in response.text


class TestGenerate:
    """Test the SSE endpoint."""

    @pytest.mark.asyncio
    async def test_streams_events(self, api_client):
        driver = StubDriver([
            StreamEvent(type=EventType.plan, data={"step": "analyzing", "agent": "Orchestrator"}, agent="Orchestrator"),
            StreamEvent(type=EventType.code, data={"chunk": "x", "fullResponse": "x"}, agent="CodeGenAgent"),
            StreamEvent(type=EventType.complete, data={"success": True}),
        ])
        app.dependency_overrides[get_driver] = lambda: driver

        response = await api_client.post(
            "/api/generate",
            json={"prompt": "Write x", "locale": "ko", "contextCode": "let y;"},
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.headers["cache-control"] == "no-cache"
        assert response.headers["x-accel-buffering"] == "no"
        frames = sse_frames(response.text)
        assert [name for name, _ in frames] == ["plan", "code", "complete"]
        assert frames[1][1] == {"type": "code", "data": {"chunk": "x", "fullResponse": "x"}, "agent": "CodeGenAgent"}
        assert "agent" not in frames[2][1]
        assert driver.runs == [("Write x", "ko", "let y;")]

    @pytest.mark.asyncio
    async def test_blank_prompt(self, api_client):
        driver = StubDriver([])
        app.dependency_overrides[get_driver] = lambda: driver

        response = await api_client.post("/api/generate", json={"prompt": "   "})

        assert response.status_code == 400
        assert response.json()["error"] == "Prompt is required"
        assert driver.runs == []

    @pytest.mark.asyncio
    async def test_missing_prompt(self, api_client):
        app.dependency_overrides[get_driver] = lambda: StubDriver([])

        response = await api_client.post("/api/generate", json={"locale": "en"})

        assert response.status_code == 422
        data = response.json()
        assert data["success"] is False
        assert data["details"][0]["field"] == "prompt"

    @pytest.mark.asyncio
    async def test_unknown_locale(self, api_client):
        app.dependency_overrides[get_driver] = lambda: StubDriver([])

        response = await api_client.post("/api/generate", json={"prompt": "x", "locale": "fr"})

        assert response.status_code == 422


class TestExplainRoutes:
    """Test line explanations and alternatives."""

    @pytest.mark.asyncio
    async def test_explain_line(self, api_client, gateway):
        gateway.responses.append(text_response("<explanation>Adds one.</explanation>"))
        app.dependency_overrides[get_explainer] = lambda: Explainer(gateway)

        response = await api_client.post(
            "/api/explain-line",
            json={"code": "let a = 0;\na += 1;", "lineNumber": 2, "sourceLanguageHint": "javascript"},
        )

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "data": {
                "deliberation": "",
                "explanation": "Adds one.",
                "keyConcepts": [],
                "commonMistakes": [],
                "extendedDeliberation": None,
            },
        }

    @pytest.mark.asyncio
    async def test_line_out_of_range(self, api_client, gateway):
        app.dependency_overrides[get_explainer] = lambda: Explainer(gateway)

        response = await api_client.post("/api/explain-line", json={"code": "one line", "lineNumber": 3})

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid line number"
        assert gateway.calls == []

    @pytest.mark.asyncio
    async def test_line_number_must_be_positive(self, api_client, gateway):
        app.dependency_overrides[get_explainer] = lambda: Explainer(gateway)

        response = await api_client.post("/api/explain-line", json={"code": "x", "lineNumber": 0})

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_upstream_failure_is_502(self, api_client, gateway):
        gateway.responses.append(UpstreamError("Model API error: overloaded", status_code=529))
        app.dependency_overrides[get_explainer] = lambda: Explainer(gateway)

        response = await api_client.post("/api/explain-line", json={"code": "x", "lineNumber": 1})

        assert response.status_code == 502
        assert response.json()["message"] == "Model API error: overloaded"

    @pytest.mark.asyncio
    async def test_alternatives(self, api_client, gateway):
        gateway.responses.append(text_response("<explanation>Use map.</explanation>"))
        app.dependency_overrides[get_explainer] = lambda: Explainer(gateway, use_tools=False)

        response = await api_client.post("/api/alternatives", json={"code": "for (;;) {}"})

        assert response.status_code == 200
        assert response.json()["data"]["explanation"] == "Use map."


class TestPlayground:
    """Test the playground endpoints."""

    @pytest.mark.asyncio
    async def test_execute(self, api_client):
        sandbox = FakeSandbox()
        app.dependency_overrides[get_sandbox] = lambda: sandbox

        response = await api_client.post(
            "/api/playground/execute",
            json={"code": "print(42)", "language": "python", "timeoutMs": 1000},
        )

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "data": {"success": True, "output": "42", "error": None, "durationMs": 1.5},
        }
        assert sandbox.executed == [("print(42)", "python", 1000)]

    @pytest.mark.asyncio
    async def test_execute_failure_is_still_200(self, api_client):
        sandbox = FakeSandbox(ExecutionResult(success=False, error="SyntaxError: bad", duration_ms=3))
        app.dependency_overrides[get_sandbox] = lambda: sandbox

        response = await api_client.post("/api/playground/execute", json={"code": "(("})

        assert response.status_code == 200
        assert response.json()["data"]["error"] == "SyntaxError: bad"

    @pytest.mark.asyncio
    async def test_execute_requires_code(self, api_client):
        response = await api_client.post("/api/playground/execute", json={"code": ""})

        assert response.status_code == 422
        assert response.json()["details"][0]["field"] == "code"

    @pytest.mark.asyncio
    async def test_compare(self, api_client):
        tools = PlaygroundTools(FakeSandbox(), offline_http())
        app.dependency_overrides[get_playground_tools] = lambda: tools

        response = await api_client.post(
            "/api/playground/compare",
            json={"codes": ["a", "b"], "labels": ["loop", "reduce"]},
        )

        data = response.json()["data"]
        assert data["totalImplementations"] == 2
        assert data["fastest"] == "loop"
        assert [row["outputMatch"] for row in data["summary"]] == [True, True]

    @pytest.mark.asyncio
    async def test_compare_length_mismatch(self, api_client):
        tools = PlaygroundTools(FakeSandbox(), offline_http())
        app.dependency_overrides[get_playground_tools] = lambda: tools

        response = await api_client.post("/api/playground/compare", json={"codes": ["a", "b"], "labels": ["one"]})

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_measure(self, api_client):
        app.dependency_overrides[get_sandbox] = lambda: FakeSandbox()

        response = await api_client.post("/api/playground/measure", json={"code": "x", "iterations": 7})

        assert response.json()["data"]["iterations"] == 7

    @pytest.mark.asyncio
    async def test_explain_error(self, api_client):
        registry = build_default_registry(FakeSandbox(), offline_http())
        app.dependency_overrides[get_registry] = lambda: registry

        response = await api_client.post(
            "/api/playground/explain-error",
            json={"error": "TypeError: x is not a function"},
        )

        data = response.json()["data"]
        assert data["errorType"] == "TypeError"
        assert data["solutions"]
        assert data["stackOverflowLinks"] == []


class TestNotion:
    """Test Notion configuration and saving."""

    @staticmethod
    def notes_client(handler, token=None) -> NotionNotesClient:
        http = httpx.AsyncClient(base_url="https://api.notion.com/v1", transport=httpx.MockTransport(handler))
        return NotionNotesClient(token=token, http_client=http)

    @pytest.mark.asyncio
    async def test_configure(self, api_client):
        def handler(request):
            return httpx.Response(200, json={"name": "Learner Bot"})

        client = self.notes_client(handler)
        app.dependency_overrides[get_notes_client] = lambda: client

        response = await api_client.post(
            "/api/notion/configure",
            json={"token": "secret", "databaseId": "0123456789abcdef0123456789abcdef"},
        )

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Connected to Notion",
            "user": "Learner Bot",
            "databaseId": "01234567-89ab-cdef-0123-456789abcdef",
        }
        assert client.token == "secret"

    @pytest.mark.asyncio
    async def test_bad_token_is_502(self, api_client):
        def handler(request):
            return httpx.Response(401, json={"message": "API token is invalid."})

        app.dependency_overrides[get_notes_client] = lambda: self.notes_client(handler)

        response = await api_client.post("/api/notion/configure", json={"token": "wrong"})

        assert response.status_code == 502
        assert "API token is invalid." in response.json()["message"]

    @pytest.mark.asyncio
    async def test_save_without_configuration_is_400(self, api_client):
        def handler(request):
            raise AssertionError("no request expected")

        app.dependency_overrides[get_notes_client] = lambda: self.notes_client(handler)

        response = await api_client.post(
            "/api/notion/save-note",
            json={"title": "t", "code": "x", "language": "javascript", "explanation": "e"},
        )

        assert response.status_code == 400
        assert response.json()["success"] is False

    @pytest.mark.asyncio
    async def test_save_note(self, api_client):
        def handler(request):
            if request.url.path == "/v1/search":
                return httpx.Response(200, json={"results": [{"id": "parent"}]})
            return httpx.Response(200, json={"id": "page-1", "url": "https://www.notion.so/page-1"})

        app.dependency_overrides[get_notes_client] = lambda: self.notes_client(handler, token="secret")

        response = await api_client.post(
            "/api/notion/save-note",
            json={"title": "t", "code": "x", "language": "javascript", "explanation": "e"},
        )

        assert response.json() == {
            "success": True,
            "message": "Saved to Notion",
            "pageId": "page-1",
            "pageUrl": "https://www.notion.so/page-1",
        }


class TestRateLimit:
    """Test per-client throttling."""

    @pytest.mark.asyncio
    async def test_limit_exceeded(self, api_client, monkeypatch):
        monkeypatch.setattr(rate_limiter, "requests_per_minute", 2)
        app.dependency_overrides[get_sandbox] = lambda: FakeSandbox()

        statuses = [
            (await api_client.post("/api/playground/execute", json={"code": "x"})).status_code
            for _ in range(3)
        ]

        assert statuses == [200, 200, 429]

    @pytest.mark.asyncio
    async def test_health_is_exempt(self, api_client, monkeypatch):
        monkeypatch.setattr(rate_limiter, "requests_per_minute", 1)

        statuses = [(await api_client.get("/health")).status_code for _ in range(3)]

        assert statuses == [200, 200, 200]
