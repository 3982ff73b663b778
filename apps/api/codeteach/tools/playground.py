"""
Playground tools: run, compare and time code in the sandbox, and analyse
runtime errors for learners.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from ..core.config import settings
from ..models import ExecutionResult
from ..sandbox import SandboxRunner
from .registry import ToolSchema

logger = logging.getLogger(__name__)


EXECUTE_CODE = ToolSchema(
    name="execute_code",
    description=(
        "Run a JavaScript or Python snippet in an isolated sandbox and return its "
        "console output. Use it to show the learner what the code actually prints."
    ),
    input_schema={
        "type": "object",
        "properties": {
            "code": {"type": "string", "description": "Code to execute"},
            "language": {
                "type": "string",
                "enum": ["javascript", "python"],
                "description": "Language of the snippet (default javascript)",
            },
            "timeout": {"type": "number", "description": "Time limit in milliseconds (max 5000)"},
        },
        "required": ["code"],
    },
)

COMPARE_OUTPUTS = ToolSchema(
    name="compare_outputs",
    description=(
        "Run several implementations of the same idea and compare their output and "
        "execution time. Useful when contrasting algorithms or approaches."
    ),
    input_schema={
        "type": "object",
        "properties": {
            "codes": {"type": "array", "items": {"type": "string"}, "description": "Implementations to compare"},
            "labels": {"type": "array", "items": {"type": "string"}, "description": "One label per implementation"},
            "language": {"type": "string", "enum": ["javascript", "python"]},
        },
        "required": ["codes", "labels"],
    },
)

MEASURE_PERFORMANCE = ToolSchema(
    name="measure_performance",
    description="Time repeated executions of a snippet to make algorithmic cost tangible.",
    input_schema={
        "type": "object",
        "properties": {
            "code": {"type": "string", "description": "Code to measure"},
            "iterations": {"type": "number", "description": "Number of runs (default 100)"},
            "language": {"type": "string", "enum": ["javascript", "python"]},
        },
        "required": ["code"],
    },
)

EXPLAIN_ERROR = ToolSchema(
    name="explain_error",
    description=(
        "Classify a JavaScript or Python error message, explain it in beginner-friendly "
        "terms, and find related Stack Overflow answers."
    ),
    input_schema={
        "type": "object",
        "properties": {
            "error": {"type": "string", "description": "Error message or stack trace"},
            "code": {"type": "string", "description": "Code that raised the error (optional)"},
        },
        "required": ["error"],
    },
)


@dataclass(frozen=True)
class ErrorProfile:
    explanation: str
    causes: List[str]
    solutions: List[str]
    tag: str = "javascript"


ERROR_PROFILES: Dict[str, ErrorProfile] = {
    "TypeError": ErrorProfile(
        explanation="A value was used in a way its type does not support, such as calling something that is not a function.",
        causes=[
            "Accessing a property of null or undefined",
            "Calling a value that is not a function",
            "Combining incompatible types in an operation",
        ],
        solutions=[
            "Check for null/undefined first, or use optional chaining: value?.property",
            "Confirm the type before calling: typeof fn === 'function'",
            "Log the actual value right before the failing line",
        ],
    ),
    "ReferenceError": ErrorProfile(
        explanation="The code refers to a variable that does not exist in the current scope.",
        causes=[
            "The variable was never declared",
            "A typo in the variable name",
            "Using a let/const variable before its declaration",
        ],
        solutions=[
            "Declare the variable with const or let",
            "Check the variable is visible from this scope",
            "Compare the spelling with the declaration",
        ],
    ),
    "SyntaxError": ErrorProfile(
        explanation="The code breaks the grammar of the language, so it cannot run at all.",
        causes=[
            "Unbalanced brackets, braces or quotes",
            "A missing comma or operator",
            "Parsing text that is not valid JSON",
        ],
        solutions=[
            "Let an editor or linter highlight the first broken line",
            "Match every opening bracket with its closing pair",
            "Validate JSON input before parsing it",
        ],
    ),
    "RangeError": ErrorProfile(
        explanation="A value is outside the range an operation accepts.",
        causes=[
            "Recursion without a base case (maximum call stack exceeded)",
            "An invalid array length",
            "A number argument outside the allowed range",
        ],
        solutions=[
            "Add or fix the recursion's exit condition",
            "Validate lengths and sizes before using them",
            "Limit the number of iterations",
        ],
    ),
    "NameError": ErrorProfile(
        explanation="Python could not find a variable or function with this name.",
        causes=["A typo in the name", "Using a name before assigning it", "A missing import"],
        solutions=["Check the spelling", "Assign the variable before using it", "Import the module or name first"],
        tag="python",
    ),
    "AttributeError": ErrorProfile(
        explanation="The object does not have the attribute or method that was accessed.",
        causes=["A typo in the attribute name", "The value is None", "The object is a different type than expected"],
        solutions=["Inspect the object with type() and dir()", "Guard against None", "Check the method exists for this type"],
        tag="python",
    ),
    "KeyError": ErrorProfile(
        explanation="A dictionary was asked for a key it does not contain.",
        causes=["The key was never set", "A typo or case difference in the key"],
        solutions=["Use dict.get(key, default)", "Check membership with `key in mapping` first"],
        tag="python",
    ),
    "IndexError": ErrorProfile(
        explanation="A sequence was indexed past its end.",
        causes=["Off-by-one loop bounds", "Indexing an empty list"],
        solutions=["Iterate over the sequence directly", "Check len() before indexing"],
        tag="python",
    ),
    "ZeroDivisionError": ErrorProfile(
        explanation="A number was divided by zero.",
        causes=["A divisor that can be zero", "An empty collection used in an average"],
        solutions=["Check the divisor before dividing", "Handle the empty case separately"],
        tag="python",
    ),
    "ValueError": ErrorProfile(
        explanation="A function received an argument of the right type but an unacceptable value.",
        causes=["Converting text that is not a number", "Unpacking the wrong number of values"],
        solutions=["Validate input before converting it", "Catch ValueError where input comes from users"],
        tag="python",
    ),
    "ModuleNotFoundError": ErrorProfile(
        explanation="Python could not find the module being imported.",
        causes=["The package is not installed", "A typo in the module name"],
        solutions=["Install the package in the active environment", "Check the module name and spelling"],
        tag="python",
    ),
    "IndentationError": ErrorProfile(
        explanation="The indentation of a block is inconsistent, which Python treats as a syntax error.",
        causes=["Mixing tabs and spaces", "A block body that is not indented"],
        solutions=["Use four spaces consistently", "Let the editor re-indent the block"],
        tag="python",
    ),
}

UNKNOWN_PROFILE = ErrorProfile(
    explanation="This error could not be classified automatically.",
    causes=["The cause could not be determined from the message alone."],
    solutions=["Read the full message and the line it points at, then search for the exact text."],
)

# Specific names precede the ones they would otherwise match.
ERROR_TYPE_PATTERN = re.compile(
    r"\b(ModuleNotFoundError|IndentationError|ZeroDivisionError|TypeError|ReferenceError|"
    r"SyntaxError|RangeError|URIError|EvalError|NameError|AttributeError|KeyError|"
    r"IndexError|ValueError)\b"
)

MESSAGE_HINTS = (
    ("is not defined", "ReferenceError"),
    ("is not a function", "TypeError"),
    ("Cannot read propert", "TypeError"),
    ("unexpected token", "SyntaxError"),
    ("object has no attribute", "AttributeError"),
    ("division by zero", "ZeroDivisionError"),
)


def parse_error_type(error: str) -> str:
    match = ERROR_TYPE_PATTERN.search(error)
    if match:
        return match.group(1)

    lowered = error.lower()
    for hint, error_type in MESSAGE_HINTS:
        if hint.lower() in lowered:
            return error_type
    return "Error"


def _to_json(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False)


class PlaygroundTools:
    """Executors for the sandbox-backed tools and error analysis."""

    def __init__(self, sandbox: SandboxRunner, http_client: httpx.AsyncClient):
        self.sandbox = sandbox
        self.http = http_client

    async def execute_code(self, args: Dict[str, Any]) -> str:
        result = await self.sandbox.execute(
            args["code"],
            language=args.get("language") or "javascript",
            timeout_ms=_as_int(args.get("timeout")),
        )
        return _to_json(result.to_wire())

    async def compare_outputs(self, args: Dict[str, Any]) -> str:
        return _to_json(await self.compare(args["codes"], args["labels"], args.get("language") or "javascript"))

    async def compare(self, codes: List[str], labels: List[str], language: str = "javascript") -> Dict[str, Any]:
        """
        Run each implementation in turn and summarise the results.

        Raises:
            ValueError: codes and labels differ in length
        """
        if len(codes) != len(labels):
            raise ValueError("codes and labels must have the same length")

        results: List[Dict[str, Any]] = []
        for code, label in zip(codes, labels):
            execution: ExecutionResult = await self.sandbox.execute(code, language=language)
            results.append({"label": label, **execution.to_wire()})

        baseline = results[0].get("output") if results else None
        successful = [r for r in results if r["success"]]
        fastest = min(successful, key=lambda r: r["durationMs"]) if successful else None
        return {
            "totalImplementations": len(results),
            "results": results,
            "fastest": fastest["label"] if fastest else None,
            "summary": [
                {
                    "label": r["label"],
                    "success": r["success"],
                    "durationMs": r["durationMs"],
                    "outputMatch": r.get("output") == baseline,
                }
                for r in results
            ],
        }

    async def measure_performance(self, args: Dict[str, Any]) -> str:
        stats = await self.sandbox.measure(
            args["code"],
            iterations=_as_int(args.get("iterations")) or 100,
            language=args.get("language") or "javascript",
        )
        return _to_json(stats)

    async def explain_error(self, args: Dict[str, Any]) -> str:
        return _to_json(await self.analyze_error(args["error"]))

    async def analyze_error(self, error: str) -> Dict[str, Any]:
        error_type = parse_error_type(error)
        profile = ERROR_PROFILES.get(error_type, UNKNOWN_PROFILE)
        links = await self.search_stackoverflow(error_type, profile.tag)
        return {
            "errorType": error_type,
            "explanation": profile.explanation,
            "commonCauses": profile.causes,
            "solutions": profile.solutions,
            "stackOverflowLinks": links[:3],
        }

    async def search_stackoverflow(self, query: str, tag: str) -> List[str]:
        """Top-voted question links. Network failures yield an empty list."""
        try:
            response = await self.http.get(
                f"{settings.STACKOVERFLOW_API_URL}/search/advanced",
                params={
                    "order": "desc",
                    "sort": "votes",
                    "q": query,
                    "tagged": tag,
                    "site": "stackoverflow",
                },
                timeout=settings.TOOL_TIMEOUT_SECONDS,
            )
            response.raise_for_status()
            items = response.json().get("items", [])
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Stack Overflow search failed for '{query}': {e}")
            return []
        return [item["link"] for item in items if "link" in item][:5]


def _as_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
