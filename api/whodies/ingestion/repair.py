"""Repair passes for model output that should be a JSON array of deaths.

Each pass is a pure string -> string function so it can be tested on its own.
They run in order: strip code fences, cut out the array, then fix missing
object braces.
"""

from __future__ import annotations

import html
import json
import re
from typing import Any, Callable

from whodies.ingestion.base import NOT_APPLICABLE, UNKNOWN, ExtractedDeath
from whodies.ingestion.llm import GenerationParseError

RepairPass = Callable[[str], str]

_FENCE_OPEN = re.compile(r"```json\s*", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"```\s*")
_ARRAY = re.compile(r"\[[\s\S]*\]")
# Models sometimes emit `[ "k": v ], [ "k": v ]` instead of `[{...},{...}]`.
_BRACE_FIXES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\]\s*,?\s*\n\s*\["), "},{"),
    (re.compile(r'^\[\s*"(?=\w+"\s*:)'), '[{"'),
    (re.compile(r'"\s*\]$'), '"}]'),
    (re.compile(r"(true|false|\d+)\s*\]$"), r"\1}]"),
)


def strip_code_fences(text: str) -> str:
    return _FENCE_CLOSE.sub("", _FENCE_OPEN.sub("", text)).strip()


def extract_array(text: str) -> str:
    """Keep only the outermost [...] span when the model wrapped it in prose."""
    match = _ARRAY.search(text)
    return match.group(0) if match else text


def repair_missing_braces(text: str) -> str:
    repaired = text.strip()
    if not (repaired.startswith("[") and '"character"' in repaired):
        return repaired
    try:
        json.loads(repaired)
        return repaired
    except json.JSONDecodeError:
        pass
    for pattern, replacement in _BRACE_FIXES:
        repaired = pattern.sub(replacement, repaired)
    return repaired


REPAIR_PASSES: tuple[RepairPass, ...] = (strip_code_fences, extract_array, repair_missing_braces)


def apply_repairs(text: str, passes: tuple[RepairPass, ...] = REPAIR_PASSES) -> str:
    for repair in passes:
        text = repair(text)
    return text


def _text(value: Any, default: str) -> str:
    if value is None:
        return default
    rendered = str(value)
    return html.unescape(rendered) if rendered else default


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"true", "yes", "1"}
    return bool(value)


def normalize_death(item: dict[str, Any]) -> ExtractedDeath:
    """Default and entity-decode one element; a blank killer becomes N/A."""
    killed_by = item.get("killedBy")
    return ExtractedDeath(
        character=_text(item.get("character"), UNKNOWN),
        time_of_death=_text(item.get("timeOfDeath"), UNKNOWN),
        cause=_text(item.get("cause"), UNKNOWN),
        killed_by=html.unescape(str(killed_by)) if killed_by and str(killed_by).strip() else NOT_APPLICABLE,
        context=_text(item.get("context"), ""),
        is_ambiguous=_flag(item.get("isAmbiguous")),
    )


def parse_death_array(raw: str) -> list[ExtractedDeath]:
    cleaned = apply_repairs(raw)
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise GenerationParseError(f"Invalid JSON from model: {exc}") from exc
    if not isinstance(parsed, list):
        raise GenerationParseError("Model response is not a JSON array")
    if not all(isinstance(item, dict) for item in parsed):
        raise GenerationParseError("Model response array contains non-object elements")
    return [normalize_death(item) for item in parsed]
