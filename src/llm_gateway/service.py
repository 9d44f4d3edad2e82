"""Chat-completion gateway with ordered model fallback, backed by Google ADK + LiteLLM."""
import asyncio
from collections.abc import Callable

from google.adk.agents import LlmAgent
from google.adk.models.lite_llm import LiteLlm
from google.adk.runners import Runner
from google.adk.sessions import BaseSessionService, InMemorySessionService, Session
from google.genai import types
from google.genai.types import Content
from loguru import logger

from src.classification_persistence.base import ModelPreferenceStore
from src.material_classification.exceptions import MissingCredentialError, ProviderError
from src.material_classification.response_parser import strip_code_fences
from .base import (
    ANTHROPIC_API_KEY,
    APP_NAME,
    LLM_MODEL,
    LLM_TIMEOUT_SECONDS,
    MODEL_PREFERENCE,
    CompletionOptions,
)
from .utils import is_model_unavailable, iter_candidate_models

RunnerFactory = Callable[[str, str, CompletionOptions], Runner]


class AdkModelGateway:
    """
    ModelGateway implementation that runs each completion through an ADK LlmAgent.

    For every call the gateway walks an ordered list of candidate models:
    the preferred (or default) model first, then MODEL_PREFERENCE. A
    "model not found" error moves on to the next candidate; any other
    error is fatal and raised as ProviderError. When a fallback candidate
    succeeds it becomes the default for later calls and is persisted
    through the optional ModelPreferenceStore (best-effort).

    Design: one LlmAgent + Runner is built per (candidate, system prompt)
    and each call gets its own session, deleted once the reply is read.
    The system prompt is passed as an instruction provider so that JSON
    braces in it are not treated as session-state placeholders.
    """
    session_service: BaseSessionService

    def __init__(
        self,
        api_key: str | None = None,
        default_model: str | None = None,
        model_preference: list[str] | None = None,
        preference_store: ModelPreferenceStore | None = None,
        session_service: BaseSessionService | None = None,
        runner_factory: RunnerFactory | None = None,
        timeout_seconds: float | None = None,
    ):
        """
        Initialize the gateway.

        Args:
            api_key: Provider API key (defaults to ANTHROPIC_API_KEY)
            default_model: Model tried first when a call names none (defaults to LLM_MODEL)
            model_preference: Ordered fallback list (defaults to MODEL_PREFERENCE)
            preference_store: Where a successful fallback model is persisted
            session_service: Session service (defaults to InMemorySessionService)
            runner_factory: Builds a Runner for (model, system_prompt, options);
                            defaults to an LlmAgent backed by LiteLlm
            timeout_seconds: Per-call timeout (defaults to LLM_TIMEOUT_SECONDS)
        """
        self.api_key = api_key if api_key is not None else ANTHROPIC_API_KEY
        self.default_model = default_model or LLM_MODEL
        self.model_preference = model_preference or list(MODEL_PREFERENCE)
        self.preference_store = preference_store
        self.session_service = session_service or InMemorySessionService()
        self.runner_factory = runner_factory or self._build_runner
        self.timeout_seconds = timeout_seconds or LLM_TIMEOUT_SECONDS

    def require_credentials(self) -> None:
        if not self.api_key:
            raise MissingCredentialError(
                "No API key configured for the model provider (set ANTHROPIC_API_KEY)"
            )

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        options: CompletionOptions | None = None,
        preferred_model: str | None = None,
    ) -> str:
        """
        Run one completion, falling back across candidate models.

        Returns:
            Reply text with code fences stripped

        Raises:
            MissingCredentialError: If no API key is configured
            ProviderError: On a fatal provider error, a timeout, or when
                           every candidate model is unavailable
        """
        self.require_credentials()
        options = options or CompletionOptions()
        requested_model = preferred_model or self.default_model
        unavailable: list[str] = []

        for candidate in iter_candidate_models(requested_model, self.model_preference):
            try:
                text = await asyncio.wait_for(
                    self._run_once(candidate, system_prompt, user_prompt, options),
                    timeout=self.timeout_seconds,
                )
            except asyncio.TimeoutError as e:
                raise ProviderError(
                    f"Model {candidate} did not respond within {self.timeout_seconds:.0f}s"
                ) from e
            except Exception as e:
                if is_model_unavailable(e):
                    logger.warning(f"Model '{candidate}' unavailable, trying next candidate: {e}")
                    unavailable.append(candidate)
                    continue
                if isinstance(e, ProviderError):
                    raise
                raise ProviderError(
                    f"Provider error from {candidate}: {type(e).__name__}: {e}"
                ) from e

            if candidate != requested_model:
                await self._promote_default(candidate)

            return strip_code_fences(text)

        raise ProviderError(
            f"No available models for the request (tried: {', '.join(unavailable) or 'none'})"
        )

    async def _promote_default(self, model: str) -> None:
        """Make model the default; persisting it must never fail the call."""
        self.default_model = model
        if self.preference_store is None:
            return
        try:
            await self.preference_store.set_default_model(model)
        except Exception as e:
            logger.warning(f"Could not persist default model '{model}': {e}")

    async def _run_once(
        self,
        model: str,
        system_prompt: str,
        user_prompt: str,
        options: CompletionOptions,
    ) -> str:
        """Send the prompt to one candidate model and return its final reply text."""
        runner = self.runner_factory(model, system_prompt, options)
        session: Session = await self.session_service.create_session(
            app_name=APP_NAME,
            user_id="model_gateway",
        )

        content: Content = types.Content(
            role='user',
            parts=[types.Part(text=user_prompt)]
        )

        final_response_text = ""
        try:
            async for event in runner.run_async(
                user_id=session.user_id,
                session_id=session.id,
                new_message=content,
            ):
                if not event.is_final_response():
                    continue
                if event.content and event.content.parts:
                    final_response_text = event.content.parts[0].text or ""
                elif getattr(event, "error_message", None):
                    raise ProviderError(
                        f"{getattr(event, 'error_code', None) or 'error'}: {event.error_message}"
                    )
                break
        finally:
            await self.session_service.delete_session(
                app_name=APP_NAME,
                user_id=session.user_id,
                session_id=session.id,
            )

        return final_response_text

    def _build_runner(
        self,
        model: str,
        system_prompt: str,
        options: CompletionOptions,
    ) -> Runner:
        agent = LlmAgent(
            model=LiteLlm(model=model, api_key=self.api_key),
            name="model_gateway",
            description="Plain chat completion for the classification stages",
            instruction=lambda _context: system_prompt,
            generate_content_config=types.GenerateContentConfig(
                temperature=options.temperature,
                max_output_tokens=options.max_tokens,
            ),
        )
        return Runner(
            app_name=APP_NAME,
            agent=agent,
            session_service=self.session_service,
        )
