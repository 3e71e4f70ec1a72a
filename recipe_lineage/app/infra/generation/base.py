# recipe_lineage/app/infra/generation/base.py
"""
Abstract interface for the external recipe generation service.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence

from recipe_lineage.app.domain.models import RecipeDraft


class RecipeGenerator(ABC):
    """
    Produces a merged recipe from the summaries of its parents.

    Implementations:
    - GeminiRecipeGenerator: Google Gemini with a structured JSON response
    """

    @abstractmethod
    def generate(
        self,
        summaries: Sequence[dict[str, Any]],
        creativity: Optional[float] = None,
    ) -> Optional[RecipeDraft]:
        """
        Generate one recipe combining every summary.

        Args:
            summaries: Parent recipes as {name, description, ingredients, instructions}
            creativity: Sampling temperature, None for the service default

        Returns:
            The draft, or None if the service gave no usable output
        """
        pass
