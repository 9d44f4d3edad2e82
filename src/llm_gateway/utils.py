"""Candidate iteration and error triage for model fallback."""
from collections.abc import Iterable, Iterator

from litellm.exceptions import NotFoundError

MODEL_NOT_FOUND_MARKERS = ("not_found_error", "not found", "model:")


def iter_candidate_models(
    requested_model: str | None,
    preference: Iterable[str],
) -> Iterator[str]:
    """
    Yield the requested model first, then the preference list, without repeats.

    Example:
        >>> list(iter_candidate_models("b", ["a", "b", "c"]))
        ['b', 'a', 'c']
    """
    seen: set[str] = set()
    for candidate in [requested_model, *preference]:
        if not candidate or candidate in seen:
            continue
        seen.add(candidate)
        yield candidate


def _status_code(error: BaseException) -> int | None:
    for attr in ("status_code", "status"):
        value = getattr(error, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(error, "response", None)
    value = getattr(response, "status_code", None)
    return value if isinstance(value, int) else None


def is_model_unavailable(error: BaseException) -> bool:
    """
    Decide whether an error means "this model does not exist, try the next one".

    Matches on error type, HTTP status 404, or a message pattern the
    provider uses for unknown models. Every other error is fatal.
    """
    if isinstance(error, NotFoundError):
        return True

    if _status_code(error) == 404:
        return True

    error_type = getattr(error, "type", None)
    if error_type == "not_found_error":
        return True

    message = str(getattr(error, "message", None) or error).lower()
    return any(marker in message for marker in MODEL_NOT_FOUND_MARKERS)
