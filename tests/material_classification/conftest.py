"""Shared fixtures for material classification tests."""
import json

import pytest

from src.classification_persistence.in_memory_store import InMemoryTaxonomyStore
from src.llm_gateway.base import CompletionOptions
from src.material_classification.exceptions import MissingCredentialError
from src.taxonomy.models import Category, City, CountryWithCities, TaxonomySnapshot


class ScriptedGateway:
    """
    ModelGateway fake that replays scripted replies in call order.

    A reply may be a dict (sent as JSON), a raw string, or an exception
    instance (raised instead of replying).
    """

    def __init__(self, replies: list, api_key: str | None = "test-key"):
        self.replies = list(replies)
        self.api_key = api_key
        self.default_model = "anthropic/test-model"
        self.calls: list[dict] = []

    def require_credentials(self) -> None:
        if not self.api_key:
            raise MissingCredentialError("No API key configured")

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        options: CompletionOptions | None = None,
        preferred_model: str | None = None,
    ) -> str:
        self.calls.append({
            "system_prompt": system_prompt,
            "user_prompt": user_prompt,
            "options": options,
        })
        if not self.replies:
            raise AssertionError("Gateway called more often than scripted")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, dict):
            return json.dumps(reply, ensure_ascii=False)
        return reply


@pytest.fixture
def scripted_gateway():
    """Factory for ScriptedGateway instances."""
    def _make(*replies, api_key: str | None = "test-key") -> ScriptedGateway:
        return ScriptedGateway(list(replies), api_key=api_key)
    return _make


@pytest.fixture
def taxonomy_snapshot() -> TaxonomySnapshot:
    """Small taxonomy: two categories, Ukraine with Kyiv/Lviv, Poland with Warsaw."""
    return TaxonomySnapshot(
        categories=[
            Category(id=1, name="Economy"),
            Category(id=2, name="Culture"),
        ],
        countries=[
            CountryWithCities(
                id=5,
                name="Ukraine",
                cities=[
                    City(id=10, name="Kyiv", country_id=5),
                    City(id=11, name="Lviv", country_id=5),
                ],
            ),
            CountryWithCities(
                id=6,
                name="Poland",
                cities=[City(id=20, name="Warsaw", country_id=6)],
            ),
        ],
    )


@pytest.fixture
def in_memory_store(taxonomy_snapshot: TaxonomySnapshot) -> InMemoryTaxonomyStore:
    """In-memory store seeded with the sample taxonomy."""
    return InMemoryTaxonomyStore(taxonomy_snapshot)


@pytest.fixture
def domestic_economy_article() -> str:
    """Purely domestic economic news."""
    return (
        "The National Bank of Ukraine raised its key policy rate to 15.5% on Thursday, "
        "citing persistent inflation pressure and the need to stabilize the hryvnia. "
        "Analysts in Kyiv expect lending rates for households and small businesses "
        "to follow within weeks."
    )
