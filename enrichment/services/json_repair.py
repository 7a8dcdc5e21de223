"""
Repair of truncated JSON model output.

Generative models sometimes stop mid-stream when they hit the output
token limit. The repair closes whatever was left open so the response
can still be used; it never invents content beyond a `null` for a
dangling key.
"""

import json
import re
from typing import Any, Dict

_FENCE_RE = re.compile(r"^\s*```(?:json)?\s*|\s*```\s*$", re.IGNORECASE)
_TRAILING_COMMA_RE = re.compile(r",\s*$")


class JSONRepairError(ValueError):
    """Raised when text cannot be parsed even after repair."""


def repair_truncated_json(text: str) -> str:
    """
    Close an unterminated string, drop a trailing comma and close open
    brackets in reverse order.

    The scan is string-aware: brackets inside string literals and
    escaped quotes are ignored.

    Args:
        text: Possibly truncated JSON text

    Returns:
        Repaired JSON text (not guaranteed to parse)
    """
    attempt = text.rstrip()

    closers = []
    in_string = False
    escaped = False
    for ch in attempt:
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch == "{":
            closers.append("}")
        elif ch == "[":
            closers.append("]")
        elif ch in "}]" and closers:
            closers.pop()

    if in_string:
        if escaped:
            # Dangling escape character
            attempt = attempt[:-1]
        attempt += '"'
    else:
        attempt = _TRAILING_COMMA_RE.sub("", attempt)
        if attempt.endswith(":"):
            attempt += " null"

    return attempt + "".join(reversed(closers))


def strip_code_fences(text: str) -> str:
    return _FENCE_RE.sub("", text or "").strip()


def parse_json_with_repair(text: str) -> Dict[str, Any]:
    """
    Parse a JSON object, repairing truncation once if needed.

    Raises:
        JSONRepairError: If neither the original nor the repaired text
            parses to a JSON object
    """
    cleaned = strip_code_fences(text)
    try:
        parsed = json.loads(cleaned)
    except ValueError:
        repaired = repair_truncated_json(cleaned)
        try:
            parsed = json.loads(repaired)
        except ValueError as e:
            raise JSONRepairError(
                f"Invalid JSON ({len(cleaned)} chars), repair failed: {cleaned[-100:]!r}"
            ) from e

    if not isinstance(parsed, dict):
        raise JSONRepairError(f"Expected a JSON object, got {type(parsed).__name__}")
    return parsed
