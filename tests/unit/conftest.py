from __future__ import annotations

from typing import Any, Iterable, Optional, Sequence

import pytest

from recipe_lineage.app.domain.errors import StorageError
from recipe_lineage.app.domain.models import (
    Difficulty,
    ProvenanceEdge,
    Recipe,
    RecipeDraft,
    RecipeId,
    UserId,
)
from recipe_lineage.app.infra.db.base import RecipeRepository, SocialGraphRepository
from recipe_lineage.app.infra.generation.base import RecipeGenerator


class RecipeRepositoryStub(RecipeRepository):
    def __init__(self) -> None:
        self.recipes: dict[RecipeId, Recipe] = {}
        self.edges: list[ProvenanceEdge] = []
        self.next_id = 1
        self.fail_on: set[str] = set()
        self.insert_calls = 0
        self.edge_calls = 0
        self.parent_map_calls: list[list[RecipeId]] = []

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.fail_on:
            raise StorageError(operation, "Simulated storage failure")

    def add(
        self,
        name: str,
        author_id: Optional[UserId] = 1,
        parents: Sequence[RecipeId] = (),
        **fields: Any,
    ) -> RecipeId:
        recipe_id = self.next_id
        self.next_id += 1
        self.recipes[recipe_id] = Recipe(id=recipe_id, author_id=author_id, name=name, **fields)
        for parent_id in parents:
            self.edges.append(ProvenanceEdge(parent_id=parent_id, child_id=recipe_id))
        return recipe_id

    def get_recipe(self, recipe_id: RecipeId) -> Optional[Recipe]:
        self._maybe_fail("get_recipe")
        return self.recipes.get(recipe_id)

    def get_recipes_by_ids(self, recipe_ids: Iterable[RecipeId]) -> list[Recipe]:
        self._maybe_fail("get_recipes_by_ids")
        return [self.recipes[i] for i in sorted(set(recipe_ids)) if i in self.recipes]

    def list_recipes_by_author(self, author_id: UserId) -> list[Recipe]:
        return sorted(
            (r for r in self.recipes.values() if r.author_id == author_id),
            key=lambda r: r.id,
            reverse=True,
        )

    def insert_recipe(self, draft: RecipeDraft, author_id: UserId) -> RecipeId:
        self.insert_calls += 1
        self._maybe_fail("insert_recipe")
        return self.add(
            draft.name,
            author_id=author_id,
            description=draft.description,
            ingredients=dict(draft.ingredients),
            instructions=draft.instructions,
            difficulty=draft.difficulty,
        )

    def update_recipe(self, recipe_id: RecipeId, author_id: UserId, changes: dict[str, Any]) -> bool:
        recipe = self.recipes.get(recipe_id)
        if recipe is None or recipe.author_id != author_id:
            return False
        for key, value in changes.items():
            setattr(recipe, key, value)
        return True

    def delete_recipe(self, recipe_id: RecipeId, author_id: UserId) -> bool:
        self._maybe_fail("delete_recipe")
        recipe = self.recipes.get(recipe_id)
        if recipe is None or recipe.author_id != author_id:
            return False
        del self.recipes[recipe_id]
        self.edges = [e for e in self.edges if recipe_id not in (e.parent_id, e.child_id)]
        return True

    def insert_provenance_edges(self, edges: Iterable[ProvenanceEdge]) -> None:
        self.edge_calls += 1
        self._maybe_fail("insert_provenance_edges")
        for edge in edges:
            if edge not in self.edges:
                self.edges.append(edge)

    def get_recipe_name(self, recipe_id: RecipeId) -> Optional[str]:
        recipe = self.recipes.get(recipe_id)
        return recipe.name if recipe else None

    def get_immediate_parents(self, recipe_id: RecipeId) -> list[RecipeId]:
        return sorted(e.parent_id for e in self.edges if e.child_id == recipe_id)

    def get_parent_map(self, recipe_ids: Iterable[RecipeId]) -> dict[RecipeId, list[RecipeId]]:
        ids = list(recipe_ids)
        self.parent_map_calls.append(ids)
        return super().get_parent_map(ids)


class SocialGraphStub(SocialGraphRepository):
    def __init__(self) -> None:
        self.public_users: set[UserId] = set()
        self.friendships: set[frozenset[UserId]] = set()

    def is_profile_public(self, user_id: UserId) -> bool:
        return user_id in self.public_users

    def are_friends(self, user_id: UserId, other_id: UserId) -> bool:
        return frozenset((user_id, other_id)) in self.friendships


class RecipeGeneratorStub(RecipeGenerator):
    def __init__(self) -> None:
        self.calls: list[tuple[list[dict[str, Any]], Optional[float]]] = []
        self.draft: Optional[RecipeDraft] = RecipeDraft(
            name="Pasta Caesar Bowl",
            description="Pasta salad tossed in Caesar dressing.",
            ingredients={"pasta": "200 g", "romaine": "1 head", "parmesan": "30 g"},
            instructions="Cook the pasta, cool it, toss with the rest.",
            difficulty=Difficulty.EASY,
        )
        self.error: Optional[Exception] = None

    def generate(
        self,
        summaries: Sequence[dict[str, Any]],
        creativity: Optional[float] = None,
    ) -> Optional[RecipeDraft]:
        self.calls.append((list(summaries), creativity))
        if self.error is not None:
            raise self.error
        return self.draft


@pytest.fixture
def repo() -> RecipeRepositoryStub:
    return RecipeRepositoryStub()


@pytest.fixture
def social() -> SocialGraphStub:
    return SocialGraphStub()


@pytest.fixture
def generator() -> RecipeGeneratorStub:
    return RecipeGeneratorStub()
