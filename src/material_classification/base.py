"""Base protocol and tunables for material classification."""
import os
from typing import Protocol

from dotenv import load_dotenv

from .models import ClassificationOutcome, ClassificationRequest

# Load environment variables from .env file
load_dotenv()

# Category confidence at or above this skips the validation stage
VALIDATION_THRESHOLD = 0.75

# Weight applied to the category-stage confidence when validation disagrees
DISAGREEMENT_CONFIDENCE_FACTOR = 0.9

# Defaults used when the model omits or garbles a confidence value
STAGE_DEFAULT_CONFIDENCE = 0.6
GENERIC_DEFAULT_CONFIDENCE = 0.5

# Region whose presence the category stage checks for (step 2 of the chain of thought)
HOME_REGION = os.getenv("HOME_REGION", "Ukraine")

MAX_CONTENT_LENGTH = 15000
MAX_GUIDELINE_CATEGORIES = 12
EXAMPLE_PREVIEW_LENGTH = 220


class MaterialClassifier(Protocol):
    """
    Protocol for material classification pipelines using structural subtyping.

    Any class that implements classify_material() with this signature can
    be used by callers such as the batch script or an HTTP handler.

    Example:
        class MyClassifier:  # No inheritance needed!
            async def classify_material(
                self, request: ClassificationRequest
            ) -> ClassificationOutcome:
                ...
    """

    async def classify_material(
        self, request: ClassificationRequest
    ) -> ClassificationOutcome:
        """
        Classify one material and reconcile its places against the taxonomy.

        Args:
            request: Material text plus the taxonomy snapshot and few-shot examples.

        Returns:
            ClassificationOutcome with the final result (None on failure),
            the taxonomy mutation payload, and the error message if any.

        Raises:
            MissingCredentialError: If no provider credential is configured
        """
        ...
