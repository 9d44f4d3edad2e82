"""Exceptions raised by the material classification pipeline."""


class ClassificationError(Exception):
    """Base class for classification pipeline failures."""


class MissingCredentialError(ClassificationError):
    """Raised before any stage runs when no provider API key is configured."""


class ProviderError(ClassificationError):
    """Raised when the model provider fails or every candidate model is unavailable."""


class ResponseParseError(ClassificationError):
    """
    Raised by a stage when the model reply cannot be parsed as JSON.

    Carries the error message of every parse attempt so the audit log
    shows why strict, lenient and repaired parsing all failed.
    """

    def __init__(self, stage: str, errors: list[str]):
        self.stage = stage
        self.errors = errors
        super().__init__(
            f"Failed to parse {stage} response: " + "; ".join(errors)
        )
