# recipe_lineage/app/services/recipe_service.py
from __future__ import annotations

import logging
from typing import Any, Optional

from recipe_lineage.app.domain.errors import (
    InvalidRecipeError,
    NotAuthenticatedError,
    RecipeAccessError,
)
from recipe_lineage.app.domain.models import Difficulty, Recipe, RecipeDraft, RecipeId, UserId
from recipe_lineage.app.infra.db.base import RecipeRepository
from recipe_lineage.services.ingredients import normalize_ingredients

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("name", "description", "ingredients", "instructions", "difficulty")


def _require_user(requester_id: Optional[UserId]) -> UserId:
    if requester_id is None:
        raise NotAuthenticatedError()
    return requester_id


def _clean_changes(changes: dict[str, Any]) -> dict[str, Any]:
    cleaned: dict[str, Any] = {}
    for key, value in changes.items():
        if key not in EDITABLE_FIELDS:
            raise InvalidRecipeError(f"Field cannot be edited: {key}")
        if value is None and key != "difficulty":
            # unset fields keep their stored value
            continue
        if key == "name":
            value = str(value).strip()
            if not value:
                raise InvalidRecipeError("Recipe name is required")
        elif key == "ingredients":
            try:
                value = normalize_ingredients(value)
            except ValueError as exc:
                raise InvalidRecipeError(str(exc)) from exc
        elif key == "difficulty":
            value = Difficulty.parse(value)
        cleaned[key] = value
    return cleaned


class RecipeService:
    def __init__(self, repository: RecipeRepository):
        self._repo = repository

    def create_recipe(self, draft: RecipeDraft, requester_id: Optional[UserId]) -> RecipeId:
        author_id = _require_user(requester_id)
        name = draft.name.strip()
        if not name:
            raise InvalidRecipeError("Recipe name is required")
        draft.name = name
        return self._repo.insert_recipe(draft, author_id)

    def get_recipe(self, recipe_id: RecipeId) -> Recipe:
        recipe = self._repo.get_recipe(recipe_id)
        if recipe is None:
            raise RecipeAccessError(recipe_id)
        return recipe

    def list_recipes(self, requester_id: Optional[UserId]) -> list[Recipe]:
        return self._repo.list_recipes_by_author(_require_user(requester_id))

    def update_recipe(
        self,
        recipe_id: RecipeId,
        requester_id: Optional[UserId],
        changes: dict[str, Any],
    ) -> Recipe:
        author_id = _require_user(requester_id)
        cleaned = _clean_changes(changes)
        if not self._repo.update_recipe(recipe_id, author_id, cleaned):
            raise RecipeAccessError(recipe_id)
        logger.info("Updated recipe %s fields=%s", recipe_id, sorted(cleaned))
        return self.get_recipe(recipe_id)

    def delete_recipe(self, recipe_id: RecipeId, requester_id: Optional[UserId]) -> None:
        author_id = _require_user(requester_id)
        if not self._repo.delete_recipe(recipe_id, author_id):
            raise RecipeAccessError(recipe_id)
