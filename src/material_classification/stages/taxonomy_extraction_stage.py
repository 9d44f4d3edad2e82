"""Taxonomy extraction stage: asks the model for the theme, tags, alliances and places of a material."""
from typing import Any

from src.llm_gateway.base import CompletionOptions, ModelGateway
from src.material_classification.prompts import build_taxonomy_context, join_sections
from src.taxonomy.models import TaxonomySnapshot
from .utils import parse_stage_reply, title_line

STAGE_NAME = "taxonomy extraction"

TAXONOMY_KEYS = ("theme", "tags", "alliances", "country", "city")

instruction = """
You analyze news materials and link them to taxonomy values.
Theme: choose the theme that most precisely reflects the main storyline or issue of the material.
Tags: pick 3-7 relevant tags describing the key aspects of the material.
Alliances: name the international or regional unions, blocs and alliances directly tied to the story.
Country: choose a country if the material is clearly tied to a specific state.
City: name a city if it is explicitly present in the material and matters for the context.
Prefer the spelling of values that already exist. Use null for country or city and an empty
list for the other keys when nothing applies.
""".strip()

OUTPUT_FORMAT = """{
  "theme": ["theme name"],
  "tags": ["tag1", "tag2", ...],
  "alliances": ["alliance name", ...],
  "country": "country name" or null,
  "city": "city name" or null
}"""


class TaxonomyExtractionStage:
    """
    Extracts the theme, tags, alliances, country and city of a material.

    The reply is returned as a dict holding only the keys the model
    actually sent. Key presence is meaningful downstream: an explicit
    null or empty list clears an association, an omitted key leaves it
    untouched.
    """

    def __init__(self, gateway: ModelGateway):
        self.gateway = gateway

    async def extract(
        self,
        article_text: str,
        title: str | None = None,
        taxonomy: TaxonomySnapshot | None = None,
    ) -> dict[str, Any]:
        """
        Ask the model which taxonomy values the article belongs to.

        Returns:
            Subset of TAXONOMY_KEYS present in the reply, values as sent

        Raises:
            ResponseParseError: If the reply holds no parseable JSON object
            ProviderError: If the model call fails
        """
        prompt = join_sections([
            "KNOWN VALUES:\n" + build_taxonomy_context(taxonomy or TaxonomySnapshot()),
            "ARTICLE:",
            title_line(title),
            article_text,
            "Return only a JSON object:",
            OUTPUT_FORMAT,
            "IMPORTANT: return pure JSON, without markdown or extra text.",
        ])

        reply = await self.gateway.complete(
            instruction,
            prompt,
            CompletionOptions(max_tokens=512, temperature=0.2),
        )
        payload = parse_stage_reply(STAGE_NAME, reply)

        return {key: payload[key] for key in TAXONOMY_KEYS if key in payload}
