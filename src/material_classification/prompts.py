"""Prompt fragments shared by the classification stages."""
from src.taxonomy.models import Category, CountryWithCities, TaxonomySnapshot
from .base import EXAMPLE_PREVIEW_LENGTH, MAX_CONTENT_LENGTH, MAX_GUIDELINE_CATEGORIES
from .models import CategoryExample
from .response_parser import sanitize_string


def truncate_content(text: str, limit: int = MAX_CONTENT_LENGTH) -> str:
    """Cut article text to limit characters, marking the cut with '...'."""
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def join_sections(sections: list[str | None]) -> str:
    """Join non-empty prompt sections with blank lines."""
    return "\n\n".join(section for section in sections if section)


def build_category_list(categories: list[Category]) -> str:
    """
    Alphabetized bullet list of category names.

    Falls back to a single placeholder line when no categories exist yet.
    """
    if not categories:
        return "- (No categories defined yet: propose a new name if needed)"
    names = sorted((category.name for category in categories), key=str.casefold)
    return "\n".join(f"- {name}" for name in names)


def build_negative_examples(categories: list[Category]) -> str:
    """
    Discriminative guidance for the first categories of the list.

    Each block tells the model when a material belongs to the category and
    the two typical reasons it does not.
    """
    if not categories:
        return (
            "There are no saved categories. If you create a new category, make sure "
            "it is distinct from existing topics and does not duplicate another section."
        )

    blocks = []
    for category in categories[:MAX_GUIDELINE_CATEGORIES]:
        blocks.append("\n".join([
            f'Category "{category.name}":',
            "BELONGS: the topic is the main subject and most key facts describe it directly.",
            "DOES NOT BELONG: the topic is only mentioned in passing or as background "
            "while the main subject belongs to another section.",
            "DOES NOT BELONG: the material belongs to a different specialization "
            "(for example military action, economy, culture).",
        ]))
    return "\n\n".join(blocks)


def build_category_examples(examples: list[CategoryExample]) -> str:
    """Render labelled example materials for style calibration."""
    if not examples:
        return (
            "No saved examples. Use common sense and map the article content "
            "clearly to one category."
        )

    blocks = []
    for example in examples:
        preview = (
            sanitize_string(example.summary)
            or sanitize_string(example.content)[:EXAMPLE_PREVIEW_LENGTH]
            or "no short description"
        )
        blocks.append("\n".join([
            f"Title: {example.title}",
            f"Category: {example.category}",
            f"Short description: {preview}",
        ]))
    return "\n\n".join(blocks)


def build_place_context(countries: list[CountryWithCities]) -> str:
    """
    One line listing known countries with their cities.

    Example:
        "Poland: Warsaw, Krakow | Ukraine: Kyiv, Lviv | Moldova"
    """
    if not countries:
        return "(no countries saved yet)"

    lines = []
    for country in countries:
        city_names = [city.name for city in country.cities]
        lines.append(
            f"{country.name}: {', '.join(city_names)}" if city_names else country.name
        )
    return " | ".join(lines)


def build_taxonomy_context(taxonomy: TaxonomySnapshot) -> str:
    """Known places and labels, one line per kind."""
    def names(nodes, placeholder: str) -> str:
        return ", ".join(node.name for node in nodes) if nodes else placeholder

    return "\n".join([
        "Countries and cities: " + build_place_context(taxonomy.countries),
        "Themes: " + names(taxonomy.themes, "(no themes yet)"),
        "Tags: " + names(taxonomy.tags, "(no tags yet)"),
        "Political unions and blocs: " + names(taxonomy.alliances, "(no alliances yet)"),
        "If no suitable value exists, propose a new, carefully written name.",
    ])
