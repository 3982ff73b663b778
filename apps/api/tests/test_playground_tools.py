"""
Tests for error classification and implementation comparison.
"""

import httpx
import pytest

from codeteach.models import ExecutionResult
from codeteach.tools.playground import PlaygroundTools, parse_error_type


class SequencedSandbox:
    """Returns one queued result per execute() call."""

    def __init__(self, *results):
        self.results = list(results)

    async def execute(self, source_code, language="javascript", timeout_ms=None):
        return self.results.pop(0)


def stackoverflow(links):
    def handler(request):
        assert request.url.params["tagged"] in ("javascript", "python")
        return httpx.Response(200, json={"items": [{"link": link} for link in links]})

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestParseErrorType:
    """Test error classification."""

    @pytest.mark.parametrize("message,expected", [
        ("TypeError: Cannot read properties of undefined", "TypeError"),
        ("Uncaught ReferenceError: x is not defined", "ReferenceError"),
        ("ModuleNotFoundError: No module named 'numpy'", "ModuleNotFoundError"),
        ("x is not defined", "ReferenceError"),
        ("foo is not a function", "TypeError"),
        ("'NoneType' object has no attribute 'split'", "AttributeError"),
        ("something strange happened", "Error"),
    ])
    def test_classification(self, message, expected):
        assert parse_error_type(message) == expected


class TestAnalyzeError:
    """Test error analysis with Stack Overflow lookups."""

    @pytest.mark.asyncio
    async def test_links_capped_at_three(self):
        links = [f"https://stackoverflow.com/q/{n}" for n in range(6)]
        tools = PlaygroundTools(SequencedSandbox(), stackoverflow(links))

        analysis = await tools.analyze_error("NameError: name 'x' is not defined")

        assert analysis["errorType"] == "NameError"
        assert analysis["stackOverflowLinks"] == links[:3]
        assert analysis["commonCauses"]

    @pytest.mark.asyncio
    async def test_unknown_error_profile(self):
        tools = PlaygroundTools(SequencedSandbox(), stackoverflow([]))

        analysis = await tools.analyze_error("the computer is sad")

        assert analysis["errorType"] == "Error"
        assert analysis["explanation"] == "This error could not be classified automatically."


class TestCompare:
    """Test side-by-side runs."""

    @pytest.mark.asyncio
    async def test_fastest_successful_and_output_match(self):
        sandbox = SequencedSandbox(
            ExecutionResult(success=True, output="6", duration_ms=9.0),
            ExecutionResult(success=True, output="6", duration_ms=2.0),
            ExecutionResult(success=False, error="boom", duration_ms=0.5),
        )
        tools = PlaygroundTools(sandbox, stackoverflow([]))

        comparison = await tools.compare(["a", "b", "c"], ["loop", "reduce", "broken"])

        assert comparison["fastest"] == "reduce"
        assert [row["outputMatch"] for row in comparison["summary"]] == [True, True, False]
        assert comparison["results"][2]["label"] == "broken"

    @pytest.mark.asyncio
    async def test_no_successful_runs(self):
        sandbox = SequencedSandbox(ExecutionResult(success=False, error="boom"))
        tools = PlaygroundTools(sandbox, stackoverflow([]))

        comparison = await tools.compare(["a"], ["only"])

        assert comparison["fastest"] is None

    @pytest.mark.asyncio
    async def test_length_mismatch(self):
        with pytest.raises(ValueError):
            await PlaygroundTools(SequencedSandbox(), stackoverflow([])).compare(["a", "b"], ["one"])
