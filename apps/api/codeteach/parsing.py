"""
Tagged-section extraction for model responses.

The prompts ask the model to wrap each part of its answer in XML-like tags
(<thinking>, <code>, <key_decisions>, ...). Absence of a tag is never an
error here: every helper returns an empty value and the callers apply the
per-field fallback rules.
"""

import json
import re
from typing import Any, Dict, List, Optional

from .exceptions import PlanParseError


FENCE_OPEN = re.compile(r"```[ \t]*([\w+#.-]*)[^\n]*\n?")
FENCE_ANY = re.compile(r"```[\w+#.-]*[ \t]*\n?")
FENCED_BLOCK = re.compile(r"```[^\n]*\n?(.*?)```", re.DOTALL)
BULLET = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s*")
LET_DECLARATION = re.compile(r"\blet\s+\w+\s*=")

LANGUAGE_ALIASES = {
    "js": "javascript",
    "jsx": "javascript",
    "mjs": "javascript",
    "node": "javascript",
    "py": "python",
    "python3": "python",
    "ts": "typescript",
    "tsx": "typescript",
    "sh": "bash",
    "shell": "bash",
}

GENERIC_TAGS = {"", "text", "txt", "plaintext", "plain", "code"}

DEFAULT_LANGUAGE = "text"


def extract_section(text: str, tag: str) -> str:
    """Return the stripped body of the first <tag>...</tag>, or ''."""
    match = re.search(rf"<{re.escape(tag)}>(.*?)</{re.escape(tag)}>", text or "", re.DOTALL)
    return match.group(1).strip() if match else ""


def extract_list(text: str, tag: str) -> List[str]:
    """Split a tagged section into items, dropping bullet markers and blanks."""
    section = extract_section(text, tag)
    if not section:
        return []

    items = []
    for line in section.split("\n"):
        item = BULLET.sub("", line, count=1).strip()
        if item:
            items.append(item)
    return items


def strip_code_fences(text: str) -> str:
    return FENCE_ANY.sub("", text or "").strip()


def first_fenced_block(text: str) -> Optional[str]:
    """Return the first ```...``` block including its fences, if any."""
    match = FENCED_BLOCK.search(text or "")
    return match.group(0) if match else None


def fence_language(text: str) -> str:
    match = FENCE_OPEN.search(text or "")
    return match.group(1).lower() if match else ""


def sniff_language(code: str) -> str:
    if any(token in code for token in ("function", "const ", "=>")) or LET_DECLARATION.search(code):
        return "javascript"
    if any(token in code for token in ("def ", "import ", "print(")):
        return "python"
    return DEFAULT_LANGUAGE


def infer_language(block: str) -> str:
    """
    Work out the language of a (possibly fenced) code block.

    The fence tag wins when it is specific; aliases are normalised. Generic or
    missing tags fall back to keyword sniffing, and finally to "text".
    """
    tag = fence_language(block)
    tag = LANGUAGE_ALIASES.get(tag, tag)
    if tag not in GENERIC_TAGS:
        return tag
    return sniff_language(strip_code_fences(block))


def extract_json_object(text: str) -> Dict[str, Any]:
    """
    Parse the first balanced {...} object embedded in free text.

    Braces inside JSON string literals are ignored while balancing.

    Raises:
        PlanParseError: no object found, or the object is not valid JSON
    """
    source = text or ""
    start = source.find("{")
    if start == -1:
        raise PlanParseError("No JSON object found in model response")

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(source)):
        char = source[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                candidate = source[start:index + 1]
                try:
                    parsed = json.loads(candidate)
                except json.JSONDecodeError as e:
                    raise PlanParseError(f"Malformed JSON in model response: {e}") from e
                if not isinstance(parsed, dict):
                    raise PlanParseError("Model response JSON is not an object")
                return parsed

    raise PlanParseError("Unbalanced JSON object in model response")
