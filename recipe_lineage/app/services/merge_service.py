# recipe_lineage/app/services/merge_service.py
"""
Merge service.
Combines two or more recipes into a new one through the generation
service and records where the new recipe came from.
"""
from __future__ import annotations

import logging
import math
import time
from typing import Iterable, Optional, Sequence

from recipe_lineage.app.domain.errors import (
    GenerationFailedError,
    InvalidCreativityError,
    NotAuthenticatedError,
    NotEnoughRecipesError,
    RecipeNotFoundError,
    StorageError,
)
from recipe_lineage.app.domain.models import ProvenanceEdge, Recipe, RecipeDraft, RecipeId, UserId
from recipe_lineage.app.infra.db.base import RecipeRepository
from recipe_lineage.app.infra.generation.base import RecipeGenerator
from recipe_lineage.app.services.visibility import VisibilityPredicate

logger = logging.getLogger(__name__)

MIN_PARENTS = 2
MIN_CREATIVITY = 0.0
MAX_CREATIVITY = 2.0
TIMEOUT_MESSAGE = "Recipe generation timed out"


def _past(deadline: Optional[float]) -> bool:
    return deadline is not None and time.monotonic() > deadline


class ProvenanceWriteError(StorageError):
    """The merged recipe exists but its provenance edges were not all written."""

    def __init__(self, child_id: RecipeId, parent_ids: Sequence[RecipeId], reason: str):
        super().__init__("insert_provenance_edges", reason)
        self.child_id = child_id
        self.parent_ids = list(parent_ids)


def distinct_ids(recipe_ids: Iterable[RecipeId]) -> list[RecipeId]:
    """Drop repeated IDs while keeping the caller's order."""
    return list(dict.fromkeys(recipe_ids))


def validate_merge_request(
    parent_ids: Sequence[RecipeId],
    creativity: Optional[float] = None,
) -> list[RecipeId]:
    """
    Validate a merge request without touching storage.

    Returns:
        The distinct parent IDs

    Raises:
        NotEnoughRecipesError: Fewer than two distinct IDs
        InvalidCreativityError: Creativity outside [0, 2]
    """
    ids = distinct_ids(parent_ids)
    if len(ids) < MIN_PARENTS:
        raise NotEnoughRecipesError(provided=len(ids), minimum=MIN_PARENTS)

    if creativity is not None:
        value = float(creativity)
        if math.isnan(value) or not MIN_CREATIVITY <= value <= MAX_CREATIVITY:
            raise InvalidCreativityError(value, MIN_CREATIVITY, MAX_CREATIVITY)

    return ids


class MergeService:
    """
    Service for merging recipes.

    Responsibilities:
    - Validate merge requests before any I/O
    - Fetch the parents the requester is allowed to read
    - Ask the generation service for the merged recipe
    - Persist the new recipe and its provenance edges
    """

    def __init__(
        self,
        repository: RecipeRepository,
        generator: RecipeGenerator,
        visibility: VisibilityPredicate,
    ):
        self._repo = repository
        self._generator = generator
        self._visibility = visibility

    def merge(
        self,
        parent_ids: Sequence[RecipeId],
        requester_id: Optional[UserId],
        creativity: Optional[float] = None,
        deadline: Optional[float] = None,
    ) -> RecipeId:
        """
        Merge recipes into a new recipe owned by the requester.

        Args:
            parent_ids: Recipes to merge, at least two distinct IDs
            requester_id: The calling user, None if not logged in
            creativity: Optional generation temperature in [0, 2]
            deadline: Optional time.monotonic() value after which nothing is persisted

        Returns:
            ID of the new recipe

        Raises:
            NotEnoughRecipesError, InvalidCreativityError: Invalid request
            NotAuthenticatedError: No requester
            RecipeNotFoundError: Fewer than two requested recipes are visible
            GenerationFailedError: The generator failed, returned nothing or missed the deadline
            StorageError: Persistence failed
        """
        ids = validate_merge_request(parent_ids, creativity)
        if requester_id is None:
            raise NotAuthenticatedError()

        parents = self.fetch_parents(ids, requester_id)
        logger.info(
            "Merging recipes: requester=%s, parents=%s, creativity=%s",
            requester_id,
            [parent.id for parent in parents],
            creativity,
        )

        draft = self._generate(parents, creativity)
        if _past(deadline):
            logger.warning("Discarding merged recipe for requester %s: deadline passed", requester_id)
            raise GenerationFailedError(TIMEOUT_MESSAGE)
        return self._persist(draft, parents, requester_id, deadline)

    def fetch_parents(self, parent_ids: Sequence[RecipeId], requester_id: UserId) -> list[Recipe]:
        """
        Get the requested recipes the requester may read.

        Raises:
            RecipeNotFoundError: Fewer than two of them are visible
        """
        found = self._repo.get_recipes_by_ids(parent_ids)
        visible = [recipe for recipe in found if self._visibility.can_view(requester_id, recipe)]

        if len(visible) < MIN_PARENTS:
            # missing and hidden recipes are reported the same way
            raise RecipeNotFoundError(parent_ids)

        skipped = set(parent_ids) - {recipe.id for recipe in visible}
        if skipped:
            logger.warning(
                "Ignoring recipes not visible to requester %s: %s",
                requester_id,
                sorted(skipped),
            )

        by_id = {recipe.id: recipe for recipe in visible}
        return [by_id[recipe_id] for recipe_id in parent_ids if recipe_id in by_id]

    def _generate(self, parents: Sequence[Recipe], creativity: Optional[float]) -> RecipeDraft:
        summaries = [parent.to_summary() for parent in parents]
        try:
            draft = self._generator.generate(summaries, creativity)
        except Exception as exc:
            logger.error("Recipe generation raised: %s", exc)
            raise GenerationFailedError(f"Recipe generation failed: {exc}") from exc

        if draft is None:
            logger.warning("Recipe generation returned no draft for parents %s", [p.id for p in parents])
            raise GenerationFailedError()
        return draft

    def _persist(
        self,
        draft: RecipeDraft,
        parents: Sequence[Recipe],
        requester_id: UserId,
        deadline: Optional[float] = None,
    ) -> RecipeId:
        parent_ids = [parent.id for parent in parents]
        child_id = self._repo.insert_recipe(draft, requester_id)
        if child_id in parent_ids:
            raise StorageError("insert_recipe", f"new recipe id {child_id} is already a merge parent")
        if _past(deadline):
            self._discard_late(child_id, requester_id)

        self.record_provenance(child_id, parent_ids)
        if _past(deadline):
            self._discard_late(child_id, requester_id)
        logger.info("Merged recipe created: id=%s, parents=%s", child_id, parent_ids)
        return child_id

    def _discard_late(self, child_id: RecipeId, requester_id: UserId) -> None:
        """
        Remove a recipe written after the caller gave up, then fail the merge.
        Deleting the recipe also removes any edges already written for it.

        Raises:
            GenerationFailedError: Always
        """
        logger.warning(
            "Merge for requester %s passed its deadline after recipe %s was written, removing it",
            requester_id,
            child_id,
        )
        try:
            self._repo.delete_recipe(child_id, requester_id)
        except StorageError as exc:
            # left behind as an original recipe with no parents
            logger.error("Could not remove late recipe %s: %s", child_id, exc.reason)
        raise GenerationFailedError(TIMEOUT_MESSAGE)

    def record_provenance(self, child_id: RecipeId, parent_ids: Sequence[RecipeId]) -> None:
        """
        Write the parent -> child edges of a merge.
        Safe to call again after a partial failure; existing edges are kept.

        Raises:
            ProvenanceWriteError: The edges could not be written
        """
        edges = [ProvenanceEdge(parent_id=parent_id, child_id=child_id) for parent_id in distinct_ids(parent_ids)]
        try:
            self._repo.insert_provenance_edges(edges)
        except StorageError as exc:
            logger.error(
                "Recipe %s was created but its provenance edges were not written: %s",
                child_id,
                exc.reason,
            )
            raise ProvenanceWriteError(child_id, parent_ids, exc.reason) from exc
