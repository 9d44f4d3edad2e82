"""Unit tests for AdkModelGateway."""
import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from src.llm_gateway.base import CompletionOptions
from src.llm_gateway.service import AdkModelGateway
from src.material_classification.exceptions import MissingCredentialError, ProviderError

PREFERENCE = ["provider/model-a", "provider/model-b", "provider/model-c"]


class FakeRunner:
    """Runner double: yields one final event with text, or raises."""

    def __init__(self, text: str = "", error: Exception | None = None, delay: float = 0.0):
        self.text = text
        self.error = error
        self.delay = delay
        self.messages = []

    async def run_async(self, user_id, session_id, new_message):
        self.messages.append(new_message)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        event = Mock()
        event.is_final_response.return_value = True
        event.content.parts = [Mock(text=self.text)]
        yield event


def runner_factory_for(outcomes: dict):
    """Build a runner_factory that maps model name → FakeRunner, recording calls."""
    calls = []

    def factory(model: str, system_prompt: str, options: CompletionOptions):
        calls.append((model, system_prompt, options))
        return outcomes[model]

    factory.calls = calls
    return factory


@pytest.fixture
def mock_session_service() -> AsyncMock:
    """Mock InMemorySessionService."""
    session = Mock()
    session.id = "session-1"
    session.user_id = "model_gateway"
    service = AsyncMock()
    service.create_session = AsyncMock(return_value=session)
    service.delete_session = AsyncMock()
    return service


def make_gateway(runner_factory, session_service, **kwargs) -> AdkModelGateway:
    return AdkModelGateway(
        api_key=kwargs.pop("api_key", "test-key"),
        default_model=kwargs.pop("default_model", PREFERENCE[0]),
        model_preference=PREFERENCE,
        session_service=session_service,
        runner_factory=runner_factory,
        **kwargs,
    )


class TestAdkModelGatewayHappyPath:
    """Test successful completions."""

    async def test_complete_returns_text_without_fences(self, mock_session_service):
        # Given: The default model replies with fenced JSON
        factory = runner_factory_for({PREFERENCE[0]: FakeRunner('```json\n{"a": 1}\n```')})
        gateway = make_gateway(factory, mock_session_service)

        # When: Completing
        text = await gateway.complete("system", "user", CompletionOptions(512, 0.2))

        # Then: Fences stripped, runner built for the default model with the options
        assert text == '{"a": 1}'
        assert factory.calls == [(PREFERENCE[0], "system", CompletionOptions(512, 0.2))]

    async def test_session_is_created_and_deleted(self, mock_session_service):
        factory = runner_factory_for({PREFERENCE[0]: FakeRunner("{}")})
        gateway = make_gateway(factory, mock_session_service)

        await gateway.complete("system", "user")

        mock_session_service.create_session.assert_awaited_once_with(
            app_name="taxonomy_classifier",
            user_id="model_gateway",
        )
        mock_session_service.delete_session.assert_awaited_once()

    async def test_preferred_model_is_tried_first(self, mock_session_service):
        factory = runner_factory_for({PREFERENCE[2]: FakeRunner("ok")})
        gateway = make_gateway(factory, mock_session_service)

        text = await gateway.complete("s", "u", preferred_model=PREFERENCE[2])

        assert text == "ok"
        assert [call[0] for call in factory.calls] == [PREFERENCE[2]]


class TestAdkModelGatewayFallback:
    """Test fallback across candidate models."""

    async def test_unavailable_model_falls_back_and_becomes_default(self, mock_session_service):
        # Given: The first model does not exist, the second works
        store = AsyncMock()
        factory = runner_factory_for({
            PREFERENCE[0]: FakeRunner(error=RuntimeError("model: provider/model-a")),
            PREFERENCE[1]: FakeRunner("reply"),
        })
        gateway = make_gateway(factory, mock_session_service, preference_store=store)

        # When: Completing
        text = await gateway.complete("s", "u")

        # Then: Second candidate answered and was promoted and persisted
        assert text == "reply"
        assert gateway.default_model == PREFERENCE[1]
        store.set_default_model.assert_awaited_once_with(PREFERENCE[1])

        # And: The next call starts with the promoted model
        factory.calls.clear()
        await gateway.complete("s", "u")
        assert factory.calls[0][0] == PREFERENCE[1]

    async def test_persist_failure_does_not_fail_the_call(self, mock_session_service):
        # Given: A preference store that fails
        store = AsyncMock()
        store.set_default_model = AsyncMock(side_effect=RuntimeError("db down"))
        factory = runner_factory_for({
            PREFERENCE[0]: FakeRunner(error=RuntimeError("404 Not Found")),
            PREFERENCE[1]: FakeRunner("reply"),
        })
        gateway = make_gateway(factory, mock_session_service, preference_store=store)

        # When: Completing
        text = await gateway.complete("s", "u")

        # Then: Reply returned, default still promoted in memory
        assert text == "reply"
        assert gateway.default_model == PREFERENCE[1]

    async def test_fatal_error_does_not_fall_back(self, mock_session_service):
        # Given: An authentication failure on the first model
        factory = runner_factory_for({
            PREFERENCE[0]: FakeRunner(error=RuntimeError("invalid x-api-key")),
            PREFERENCE[1]: FakeRunner("never used"),
        })
        gateway = make_gateway(factory, mock_session_service)

        # When/Then: ProviderError, no second candidate
        with pytest.raises(ProviderError, match="invalid x-api-key"):
            await gateway.complete("s", "u")
        assert [call[0] for call in factory.calls] == [PREFERENCE[0]]

    async def test_all_models_unavailable_raises(self, mock_session_service):
        factory = runner_factory_for({
            model: FakeRunner(error=RuntimeError("not_found_error")) for model in PREFERENCE
        })
        gateway = make_gateway(factory, mock_session_service)

        with pytest.raises(ProviderError, match="No available models"):
            await gateway.complete("s", "u")
        assert len(factory.calls) == 3

    async def test_timeout_raises_provider_error(self, mock_session_service):
        factory = runner_factory_for({PREFERENCE[0]: FakeRunner("late", delay=1.0)})
        gateway = make_gateway(factory, mock_session_service, timeout_seconds=0.01)

        with pytest.raises(ProviderError, match="did not respond"):
            await gateway.complete("s", "u")


class TestAdkModelGatewayCredentials:
    """Test credential checks."""

    def test_require_credentials_without_key_raises(self):
        gateway = AdkModelGateway(api_key="", session_service=AsyncMock())

        with pytest.raises(MissingCredentialError):
            gateway.require_credentials()

    async def test_complete_without_key_raises_before_calling(self, mock_session_service):
        factory = runner_factory_for({})
        gateway = make_gateway(factory, mock_session_service, api_key="")

        with pytest.raises(MissingCredentialError):
            await gateway.complete("s", "u")
        assert factory.calls == []
