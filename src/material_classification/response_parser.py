"""Parsing helpers for free-text LLM replies that should contain a JSON object."""
import json
import math
import re
import unicodedata
from dataclasses import dataclass, field
from typing import Any

import json5
from json_repair import repair_json

CODE_FENCE_PATTERN = re.compile(r"```(?:json)?\n?")


@dataclass(frozen=True)
class ParseOk:
    """Successful parse carrying the decoded value."""
    value: Any


@dataclass(frozen=True)
class ParseFailure:
    """Failed parse carrying one error message per attempt."""
    errors: list[str] = field(default_factory=list)


ParseResult = ParseOk | ParseFailure


def strip_code_fences(text: str) -> str:
    """Remove markdown code fence markers and surrounding whitespace."""
    return CODE_FENCE_PATTERN.sub("", text or "").strip()


def extract_json_region(text: str) -> str | None:
    """
    Return the substring between the first '{' and the last '}'.

    Examples:
        'Sure! {"a": 1} Hope that helps' → '{"a": 1}'
        'no braces here' → None
    """
    cleaned = strip_code_fences(text)
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end == -1 or end <= start:
        return None
    return cleaned[start:end + 1]


def parse_llm_json(text: str) -> ParseResult:
    """
    Parse an LLM reply into a JSON value despite formatting noise.

    Attempts, in order:
    1. Strict parse with json.loads
    2. Lenient JSON5 parse (trailing commas, comments, unquoted keys)
    3. Syntax repair with json_repair followed by a strict parse

    Args:
        text: Raw model reply, possibly wrapped in code fences or prose.

    Returns:
        ParseOk with the decoded value, or ParseFailure listing the error
        from every attempt.

    Example:
        >>> parse_llm_json('```json\\n{"category": "News",}\\n```')
        ParseOk(value={'category': 'News'})
    """
    payload = extract_json_region(text)
    if payload is None:
        return ParseFailure(errors=["No JSON object found in response"])

    errors: list[str] = []

    try:
        return ParseOk(value=json.loads(payload))
    except json.JSONDecodeError as e:
        errors.append(f"strict: {e}")

    try:
        return ParseOk(value=json5.loads(payload))
    except ValueError as e:
        errors.append(f"lenient: {e}")

    try:
        repaired = repair_json(payload)
        return ParseOk(value=json.loads(repaired))
    except (json.JSONDecodeError, ValueError, TypeError) as e:
        errors.append(f"repair: {e}")

    return ParseFailure(errors=errors)


def clamp_confidence(value: Any, fallback: float = 0.5) -> float:
    """
    Coerce a model-reported confidence into [0.0, 1.0].

    Numbers and numeric strings are accepted. Anything else (None, bools,
    lists, dicts, NaN, infinities) yields the fallback.

    Examples:
        clamp_confidence(0.82) → 0.82
        clamp_confidence("1.7") → 1.0
        clamp_confidence(None, 0.6) → 0.6
    """
    if isinstance(value, bool):
        return fallback
    if isinstance(value, int):
        try:
            numeric = float(value)
        except OverflowError:
            # Integer too large for a float, clamp by sign
            return 1.0 if value > 0 else 0.0
    elif isinstance(value, float):
        numeric = value
    elif isinstance(value, str):
        try:
            numeric = float(value.strip())
        except ValueError:
            return fallback
    else:
        return fallback

    if not math.isfinite(numeric):
        return fallback
    if numeric < 0:
        return 0.0
    if numeric > 1:
        return 1.0
    return numeric


def normalize_name(value: str | None) -> str:
    """
    Normalize a taxonomy name for comparison: NFKC, trim, lowercase.

    Examples:
        " Ukraine " → "ukraine"
        None → ""
    """
    return unicodedata.normalize("NFKC", value or "").strip().lower()


def sanitize_string(value: Any) -> str:
    """Return a stripped string, or "" for non-string values."""
    return value.strip() if isinstance(value, str) else ""


def sanitize_string_list(value: Any) -> list[str]:
    """
    Clean a list of names: drop non-strings and blanks, dedupe by normalized name.

    The first spelling of each name is kept.
    """
    if not isinstance(value, list):
        return []

    seen: set[str] = set()
    result: list[str] = []
    for item in value:
        trimmed = sanitize_string(item)
        if not trimmed:
            continue
        key = normalize_name(trimmed)
        if key not in seen:
            seen.add(key)
            result.append(trimmed)
    return result
