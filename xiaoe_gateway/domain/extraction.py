"""Best-effort extraction of structured results from vendor response text

Vendors are asked to answer with bare JSON but frequently wrap it in prose or
markdown fences, or nest the array we asked for inside an outer object. The
functions here recover the payload heuristically; they are not a guarantee
that a vendor followed its instructions.
"""

import json
import re
from typing import Any, Iterator, List, Optional, Tuple

from xiaoe_gateway.domain.exceptions import MalformedResponseError, SchemaMismatchError
from xiaoe_gateway.domain.models import CommentSection, StudentComment

MAX_SEARCH_DEPTH = 32

_FENCE_PATTERN = re.compile(r"```[a-zA-Z]*\s*([\s\S]*?)\s*```")
_CLOSERS = {"[": "]", "{": "}"}
_COMMENT_KEYS = ("studentName", "intro", "body", "conclusion")


def _matching_close(text: str, start: int) -> Optional[int]:
    """Index of the bracket closing text[start], skipping brackets inside strings"""
    expected: List[str] = []
    in_string = False
    escaped = False

    for i in range(start, len(text)):
        ch = text[i]
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
        elif ch in _CLOSERS:
            expected.append(_CLOSERS[ch])
        elif ch in "]}":
            if not expected or ch != expected[-1]:
                return None
            expected.pop()
            if not expected:
                return i

    return None


def _candidate_spans(text: str) -> Iterator[Tuple[int, int]]:
    """Yield balanced top-level [...] / {...} spans from left to right"""
    pos = 0
    while True:
        starts = [i for i in (text.find("[", pos), text.find("{", pos)) if i != -1]
        if not starts:
            return
        start = min(starts)
        end = _matching_close(text, start)
        if end is None:
            pos = start + 1
            continue
        yield start, end + 1
        pos = end + 1


def extract_json(raw_text: str) -> Any:
    """
    Parse the JSON payload embedded in a vendor's raw text.

    Fenced code blocks win when present; otherwise the first balanced
    array or object that parses is returned.

    Raises:
        MalformedResponseError: No parsable JSON could be found
    """
    if not raw_text or not raw_text.strip():
        raise MalformedResponseError("Empty response text")

    fenced = _FENCE_PATTERN.search(raw_text)
    text = fenced.group(1) if fenced else raw_text

    try:
        return json.loads(text)
    except ValueError:
        pass

    for start, end in _candidate_spans(text):
        try:
            return json.loads(text[start:end])
        except ValueError:
            continue

    raise MalformedResponseError(f"Could not parse JSON from response: {raw_text[:200]!r}")


def find_first_array(value: Any, max_depth: int = MAX_SEARCH_DEPTH) -> Optional[List[Any]]:
    """
    Depth-first search for the first list in a parsed JSON value.

    Object values are visited in insertion order and the first list found
    wins. Freshly parsed JSON cannot be cyclic, the depth bound only caps
    pathological nesting.
    """
    if isinstance(value, list):
        return value
    if isinstance(value, dict) and max_depth > 0:
        for child in value.values():
            found = find_first_array(child, max_depth - 1)
            if found is not None:
                return found
    return None


def extract_array(raw_text: str) -> List[Any]:
    """Parse raw vendor text and return the first array it contains"""
    parsed = extract_json(raw_text)
    items = find_first_array(parsed)
    if items is None:
        raise SchemaMismatchError("Response JSON does not contain an array")
    return items


def parse_string_items(items: List[Any]) -> List[str]:
    """Validate a simple array-of-strings result"""
    if not all(isinstance(item, str) for item in items):
        raise SchemaMismatchError("Expected an array of strings")
    return [item.strip() for item in items if item.strip()]


def parse_comment_items(items: List[Any]) -> List[StudentComment]:
    """Validate per-student comment objects and convert them to domain models"""
    comments = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise SchemaMismatchError(f"Item {index} is not an object")

        missing = [key for key in _COMMENT_KEYS if key not in item]
        if missing:
            raise SchemaMismatchError(f"Item {index} is missing keys: {', '.join(missing)}")

        body = item["body"]
        if not isinstance(body, list):
            raise SchemaMismatchError(f"Item {index} body is not an array")

        sections = []
        for part in body:
            if not isinstance(part, dict) or "source" not in part or "text" not in part:
                raise SchemaMismatchError(f"Item {index} body entries need 'source' and 'text'")
            sections.append(CommentSection(source=str(part["source"]), text=str(part["text"])))

        comments.append(
            StudentComment(
                student_name=str(item["studentName"]),
                intro=str(item["intro"]),
                body=sections,
                conclusion=str(item["conclusion"]),
            )
        )

    return comments
