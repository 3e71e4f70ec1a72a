# recipe_lineage/app/infra/db/base.py
"""
Abstract base classes for recipe storage and social lookups.
These interfaces keep the merge and lineage services independent of the backend.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Iterable, Optional

from recipe_lineage.app.domain.models import (
    ProvenanceEdge,
    Recipe,
    RecipeDraft,
    RecipeId,
    UserId,
)


class RecipeRepository(ABC):
    """
    Abstract interface for recipe and provenance persistence.

    Implementations:
    - SupabaseRecipeRepository: Postgres tables behind Supabase
    """

    @abstractmethod
    def get_recipe(self, recipe_id: RecipeId) -> Optional[Recipe]:
        """
        Get a recipe by its ID.

        Returns:
            The recipe, or None if it does not exist
        """
        pass

    @abstractmethod
    def get_recipes_by_ids(self, recipe_ids: Iterable[RecipeId]) -> list[Recipe]:
        """
        Get every existing recipe among the given IDs.
        Missing IDs are skipped; visibility is decided by the caller.

        Args:
            recipe_ids: IDs to look up

        Returns:
            Recipes ordered by ID
        """
        pass

    @abstractmethod
    def list_recipes_by_author(self, author_id: UserId) -> list[Recipe]:
        """
        Get all recipes written by a user, newest first.
        """
        pass

    @abstractmethod
    def insert_recipe(self, draft: RecipeDraft, author_id: UserId) -> RecipeId:
        """
        Persist a new recipe.

        Args:
            draft: Recipe content
            author_id: Owner of the new recipe

        Returns:
            The freshly assigned recipe ID
        """
        pass

    @abstractmethod
    def update_recipe(
        self,
        recipe_id: RecipeId,
        author_id: UserId,
        changes: dict[str, Any],
    ) -> bool:
        """
        Apply changes to a recipe owned by `author_id`.

        Args:
            recipe_id: Recipe to update
            author_id: Must be the author
            changes: Column values keyed by Recipe attribute name

        Returns:
            True if a row was updated
        """
        pass

    @abstractmethod
    def delete_recipe(self, recipe_id: RecipeId, author_id: UserId) -> bool:
        """
        Delete a recipe owned by `author_id` along with any provenance
        edges that reference it.

        Returns:
            True if a row was deleted
        """
        pass

    @abstractmethod
    def insert_provenance_edges(self, edges: Iterable[ProvenanceEdge]) -> None:
        """
        Record parent -> child merge links.
        Idempotent: pairs that already exist are ignored.
        """
        pass

    @abstractmethod
    def get_recipe_name(self, recipe_id: RecipeId) -> Optional[str]:
        """
        Get a recipe's name, or None if it does not exist.
        """
        pass

    @abstractmethod
    def get_immediate_parents(self, recipe_id: RecipeId) -> list[RecipeId]:
        """
        Get the IDs merged directly into `recipe_id` (one hop only).
        """
        pass

    def get_parent_map(self, recipe_ids: Iterable[RecipeId]) -> dict[RecipeId, list[RecipeId]]:
        """
        Batched form of `get_immediate_parents`.
        Backends that can answer in one query should override this.
        """
        return {recipe_id: self.get_immediate_parents(recipe_id) for recipe_id in recipe_ids}

    def get_recipe_names(self, recipe_ids: Iterable[RecipeId]) -> dict[RecipeId, str]:
        """
        Batched form of `get_recipe_name`. Missing recipes are left out.
        """
        names: dict[RecipeId, str] = {}
        for recipe_id in recipe_ids:
            name = self.get_recipe_name(recipe_id)
            if name is not None:
                names[recipe_id] = name
        return names


class SocialGraphRepository(ABC):
    """
    Abstract interface for the profile and friendship lookups
    needed to decide recipe visibility.
    """

    @abstractmethod
    def is_profile_public(self, user_id: UserId) -> bool:
        pass

    @abstractmethod
    def are_friends(self, user_id: UserId, other_id: UserId) -> bool:
        pass
