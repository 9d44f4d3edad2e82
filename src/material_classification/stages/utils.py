"""Helpers shared by the classification stages."""
from typing import Any

from src.material_classification.exceptions import ResponseParseError
from src.material_classification.response_parser import ParseFailure, parse_llm_json


def parse_stage_reply(stage: str, reply: str) -> dict[str, Any]:
    """
    Parse a stage reply that must be a single JSON object.

    Args:
        stage: Stage name used in the error message
        reply: Raw model reply

    Returns:
        The decoded JSON object

    Raises:
        ResponseParseError: If the reply holds no parseable JSON object
    """
    result = parse_llm_json(reply)
    if isinstance(result, ParseFailure):
        raise ResponseParseError(stage, result.errors)
    if not isinstance(result.value, dict):
        raise ResponseParseError(
            stage, [f"expected a JSON object, got {type(result.value).__name__}"]
        )
    return result.value


def title_line(title: str | None) -> str | None:
    """Prompt line for the material title, omitted when there is none."""
    return f"Title: {title}" if title else None
