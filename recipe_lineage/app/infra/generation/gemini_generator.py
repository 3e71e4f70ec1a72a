from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional, Sequence

from recipe_lineage.app.domain.models import RecipeDraft
from recipe_lineage.app.infra.generation.base import RecipeGenerator
from recipe_lineage.services.errors import InvalidGenerationOutputError
from recipe_lineage.services.gemini_client import DEFAULT_MODEL_NAME, GeminiClient
from recipe_lineage.services.merge_prompt import (
    MERGE_SYSTEM_PROMPT,
    MERGED_RECIPE_SCHEMA,
    build_merge_payload,
    parse_merged_recipe,
)

logger = logging.getLogger(__name__)


class GeminiRecipeGenerator(RecipeGenerator):
    def __init__(
        self,
        api_key: str = "",
        model_name: str = DEFAULT_MODEL_NAME,
        client: Optional[GeminiClient] = None,
        system_prompt_path: Path = MERGE_SYSTEM_PROMPT,
    ):
        self._api_key = api_key
        self._model_name = model_name
        self._client = client
        self._system_prompt_path = system_prompt_path

    def _get_client(self) -> GeminiClient:
        # created on first use so a missing key only fails actual generations
        if self._client is None:
            self._client = GeminiClient(api_key=self._api_key, model_name=self._model_name)
        return self._client

    def generate(
        self,
        summaries: Sequence[dict[str, Any]],
        creativity: Optional[float] = None,
    ) -> Optional[RecipeDraft]:
        payload = build_merge_payload(summaries)
        raw_text = self._get_client().generate_json(
            user_prompt=payload,
            system_prompt_path=self._system_prompt_path,
            response_schema=MERGED_RECIPE_SCHEMA,
            temperature=creativity,
        )
        if raw_text is None:
            return None

        try:
            return parse_merged_recipe(raw_text)
        except InvalidGenerationOutputError as exc:
            logger.warning("Discarding merged recipe: %s", exc.reason)
            return None
