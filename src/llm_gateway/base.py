"""Base protocol and configuration for the LLM chat-completion gateway."""
import os
from dataclasses import dataclass
from typing import Protocol

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

APP_NAME = "taxonomy_classifier"

# Ordered fallback list (LiteLLM model identifiers)
MODEL_PREFERENCE = [
    "anthropic/claude-sonnet-4-20250514",
    "anthropic/claude-3-5-sonnet-20240620",
    "anthropic/claude-3-haiku-20240307",
]

ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY")
LLM_MODEL = os.getenv("LLM_MODEL", MODEL_PREFERENCE[0])
LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "60"))


@dataclass(frozen=True)
class CompletionOptions:
    """Generation parameters for one completion call."""
    max_tokens: int = 4096
    temperature: float | None = None


class ModelGateway(Protocol):
    """
    Protocol for chat-completion gateways using structural subtyping.

    The classification stages only need "system prompt + user prompt in,
    text out". Anything implementing complete() and require_credentials()
    can back them, which keeps the stages testable with simple fakes.

    Example:
        class EchoGateway:  # No inheritance needed!
            def require_credentials(self) -> None:
                pass

            async def complete(self, system_prompt, user_prompt, options=None, preferred_model=None) -> str:
                return '{"supercategory": "General"}'
    """

    def require_credentials(self) -> None:
        """
        Ensure a provider credential is configured.

        Raises:
            MissingCredentialError: If no API key is available
        """
        ...

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        options: CompletionOptions | None = None,
        preferred_model: str | None = None,
    ) -> str:
        """
        Run one chat completion and return the reply text.

        Args:
            system_prompt: Instructions for the model
            user_prompt: The user turn (article, task, output format)
            options: max_tokens / temperature
            preferred_model: Model to try first (defaults to the configured default)

        Returns:
            Reply text with code fences stripped

        Raises:
            ProviderError: On a fatal provider error or when no candidate model is available
        """
        ...
