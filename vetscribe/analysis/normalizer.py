"""Turn free-form model output into a complete AnalysisRecord.

normalize_analysis() never raises: text that cannot be parsed ends up as the
single entry of the catch-all category.
"""

import json
import logging
import re
from typing import Any, Dict, List, Mapping, Optional

from ..errors import ParseError
from ..models.analysis import AnalysisRecord, CATCH_ALL_KEY, CATEGORY_KEYS

logger = logging.getLogger(__name__)

NOT_MENTIONED = "未提及"

_FENCE_OPEN = re.compile(r"^```[a-zA-Z]*[ \t]*\n?")
_FENCE_CLOSE = re.compile(r"\n?```$")


def strip_fence(text: str) -> str:
    """Trim, and remove a surrounding ``` / ```json fence if present."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = _FENCE_OPEN.sub("", cleaned, count=1)
        cleaned = _FENCE_CLOSE.sub("", cleaned, count=1)
    return cleaned.strip()


def extract_json_object(text: str) -> Optional[str]:
    """Substring from the first '{' to its matching '}', or None if unbalanced.

    Braces inside JSON string literals are ignored.
    """
    start = text.find("{")
    if start < 0:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
        elif char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start:index + 1]
    return None


def parse_analysis_object(text: str) -> Dict[str, Any]:
    """Parse model output into a JSON object.

    Raises:
        ParseError: If neither the whole text nor its first balanced object parses
    """
    cleaned = strip_fence(text)
    try:
        data = json.loads(cleaned)
        if isinstance(data, dict):
            return data
    except (ValueError, RecursionError):
        pass

    candidate = extract_json_object(cleaned)
    if candidate is not None:
        try:
            data = json.loads(candidate)
            if isinstance(data, dict):
                return data
        except (ValueError, RecursionError):
            pass

    raise ParseError("No JSON object found in model output")


def _coerce_items(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        items = [str(item).strip() for item in value if item is not None and not isinstance(item, (dict, list))]
    else:
        items = [str(value).strip()]
    items = [item for item in items if item]
    if items == [NOT_MENTIONED]:
        return []
    return items


def normalize_mapping(data: Mapping[str, Any]) -> AnalysisRecord:
    """Keep known categories, fill the missing ones with [], drop the rest."""
    return AnalysisRecord.from_lists({key: _coerce_items(data.get(key)) for key in CATEGORY_KEYS})


def normalize_analysis(text: Optional[str]) -> AnalysisRecord:
    """Normalize raw model output into an AnalysisRecord."""
    if text is None or not str(text).strip():
        return AnalysisRecord()

    text = str(text)
    try:
        data = parse_analysis_object(text)
    except ParseError as e:
        logger.warning(f"Analysis output is not JSON, keeping it as free text: {e}")
        return AnalysisRecord.from_lists({CATCH_ALL_KEY: [text]})

    dropped = sorted(set(data) - set(CATEGORY_KEYS))
    if dropped:
        logger.debug(f"Discarding unknown analysis keys: {dropped}")
    return normalize_mapping(data)
