from __future__ import annotations

import logging
import os
from datetime import datetime
from typing import Any, Iterable, Optional

import httpx
from postgrest.exceptions import APIError
from supabase import Client, create_client

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
from recipe_lineage.services.ingredients import normalize_ingredients

logger = logging.getLogger(__name__)

_STORAGE_EXCEPTIONS = (APIError, ConnectionError, TimeoutError, httpx.HTTPError)

# Recipe attribute -> column
_COLUMN_NAMES = {
    "name": "name",
    "description": "description",
    "ingredients": "ingredients",
    "instructions": "instructions",
    "difficulty": "difficulty",
}


def _parse_datetime(value: str | datetime | None) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        return None

    try:
        normalized = value.replace("Z", "+00:00") if value.endswith("Z") else value
        return datetime.fromisoformat(normalized)
    except ValueError:
        return None


def _safe_int(value: object, default: int = 0) -> int:
    return int(value) if value else default


def _row_to_recipe(row: dict[str, Any]) -> Recipe:
    author = row.get("authorid")
    return Recipe(
        id=int(row["id"]),
        author_id=int(author) if author is not None else None,
        name=str(row.get("name") or ""),
        description=str(row.get("description") or ""),
        ingredients=normalize_ingredients(row.get("ingredients")),
        instructions=str(row.get("instructions") or ""),
        difficulty=Difficulty.parse(row.get("difficulty")),
        created_at=_parse_datetime(row.get("createdat")),
        like_count=_safe_int(row.get("likecount")),
    )


def _to_column_values(changes: dict[str, Any]) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    for key, value in changes.items():
        column = _COLUMN_NAMES.get(key)
        if column is None:
            raise ValueError(f"Unknown recipe field: {key}")
        if isinstance(value, Difficulty):
            value = value.value
        payload[column] = value
    return payload


def _execute(operation: str, query: Any) -> list[dict[str, Any]]:
    try:
        result = query.execute()
    except _STORAGE_EXCEPTIONS as error:
        logger.error("Storage error during %s: %s", operation, error)
        raise StorageError(operation, str(error)) from error
    return result.data or []


def _create_supabase_client() -> Client:
    url = os.getenv("SUPABASE_URL")
    key = os.getenv("SUPABASE_SERVICE_ROLE_KEY")
    if not url or not key:
        raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY required")
    return create_client(url, key)


class SupabaseRecipeRepository(RecipeRepository):
    RECIPE_TABLE = "recipe"
    RECIPE_READ_VIEW = "recipewithlikes"
    LINK_TABLE = "recipelink"

    def __init__(self, client: Client | None = None):
        self._client = client or _create_supabase_client()

    def get_recipe(self, recipe_id: RecipeId) -> Optional[Recipe]:
        rows = _execute(
            "get_recipe",
            self._client.table(self.RECIPE_READ_VIEW).select("*").eq("id", recipe_id).limit(1),
        )
        return _row_to_recipe(rows[0]) if rows else None

    def get_recipes_by_ids(self, recipe_ids: Iterable[RecipeId]) -> list[Recipe]:
        ids = sorted(set(recipe_ids))
        if not ids:
            return []
        rows = _execute(
            "get_recipes_by_ids",
            self._client.table(self.RECIPE_READ_VIEW).select("*").in_("id", ids).order("id"),
        )
        return [_row_to_recipe(row) for row in rows]

    def list_recipes_by_author(self, author_id: UserId) -> list[Recipe]:
        rows = _execute(
            "list_recipes_by_author",
            self._client.table(self.RECIPE_READ_VIEW)
            .select("*")
            .eq("authorid", author_id)
            .order("id", desc=True),
        )
        return [_row_to_recipe(row) for row in rows]

    def insert_recipe(self, draft: RecipeDraft, author_id: UserId) -> RecipeId:
        payload = {
            "name": draft.name,
            "authorid": author_id,
            "description": draft.description,
            "ingredients": dict(draft.ingredients),
            "instructions": draft.instructions,
            "difficulty": draft.difficulty.value if draft.difficulty else None,
        }
        rows = _execute("insert_recipe", self._client.table(self.RECIPE_TABLE).insert(payload))
        if not rows:
            raise StorageError("insert_recipe", "insert returned no rows")

        recipe_id = int(rows[0]["id"])
        logger.info("Created recipe: id=%s, author=%s", recipe_id, author_id)
        return recipe_id

    def update_recipe(
        self,
        recipe_id: RecipeId,
        author_id: UserId,
        changes: dict[str, Any],
    ) -> bool:
        payload = _to_column_values(changes)
        if not payload:
            return self._is_owned(recipe_id, author_id)

        rows = _execute(
            "update_recipe",
            self._client.table(self.RECIPE_TABLE)
            .update(payload)
            .eq("id", recipe_id)
            .eq("authorid", author_id),
        )
        return bool(rows)

    def delete_recipe(self, recipe_id: RecipeId, author_id: UserId) -> bool:
        # recipelink rows go with the recipe through ON DELETE CASCADE
        rows = _execute(
            "delete_recipe",
            self._client.table(self.RECIPE_TABLE)
            .delete()
            .eq("id", recipe_id)
            .eq("authorid", author_id),
        )
        if rows:
            logger.info("Deleted recipe: id=%s, author=%s", recipe_id, author_id)
        return bool(rows)

    def _is_owned(self, recipe_id: RecipeId, author_id: UserId) -> bool:
        rows = _execute(
            "check_owner",
            self._client.table(self.RECIPE_TABLE)
            .select("id")
            .eq("id", recipe_id)
            .eq("authorid", author_id)
            .limit(1),
        )
        return bool(rows)

    def insert_provenance_edges(self, edges: Iterable[ProvenanceEdge]) -> None:
        rows = [
            {"parentid": edge.parent_id, "childid": edge.child_id}
            for edge in dict.fromkeys(edges)
        ]
        if not rows:
            return
        _execute(
            "insert_provenance_edges",
            self._client.table(self.LINK_TABLE).upsert(
                rows,
                on_conflict="parentid,childid",
                ignore_duplicates=True,
            ),
        )
        logger.info("Recorded %d provenance edge(s) into recipe %s", len(rows), rows[0]["childid"])

    def get_recipe_name(self, recipe_id: RecipeId) -> Optional[str]:
        rows = _execute(
            "get_recipe_name",
            self._client.table(self.RECIPE_TABLE).select("name").eq("id", recipe_id).limit(1),
        )
        return str(rows[0].get("name") or "") if rows else None

    def get_immediate_parents(self, recipe_id: RecipeId) -> list[RecipeId]:
        return self.get_parent_map([recipe_id]).get(recipe_id, [])

    def get_parent_map(self, recipe_ids: Iterable[RecipeId]) -> dict[RecipeId, list[RecipeId]]:
        ids = sorted(set(recipe_ids))
        parent_map: dict[RecipeId, list[RecipeId]] = {recipe_id: [] for recipe_id in ids}
        if not ids:
            return parent_map

        rows = _execute(
            "get_parent_map",
            self._client.table(self.LINK_TABLE)
            .select("parentid,childid")
            .in_("childid", ids)
            .order("parentid"),
        )
        for row in rows:
            child_id = int(row["childid"])
            parent_id = int(row["parentid"])
            parents = parent_map.setdefault(child_id, [])
            if parent_id not in parents:
                parents.append(parent_id)
        return parent_map

    def get_recipe_names(self, recipe_ids: Iterable[RecipeId]) -> dict[RecipeId, str]:
        ids = sorted(set(recipe_ids))
        if not ids:
            return {}
        rows = _execute(
            "get_recipe_names",
            self._client.table(self.RECIPE_TABLE).select("id,name").in_("id", ids),
        )
        return {int(row["id"]): str(row.get("name") or "") for row in rows}


class SupabaseSocialGraphRepository(SocialGraphRepository):
    USER_TABLE = "appuser"
    FRIEND_TABLE = "friend"

    def __init__(self, client: Client | None = None):
        self._client = client or _create_supabase_client()

    def is_profile_public(self, user_id: UserId) -> bool:
        rows = _execute(
            "is_profile_public",
            self._client.table(self.USER_TABLE).select("ispublic").eq("id", user_id).limit(1),
        )
        return bool(rows and rows[0].get("ispublic"))

    def are_friends(self, user_id: UserId, other_id: UserId) -> bool:
        if user_id == other_id:
            return False
        # friendships are stored once, in either direction
        rows = _execute(
            "are_friends",
            self._client.table(self.FRIEND_TABLE)
            .select("id1")
            .or_(
                f"and(id1.eq.{user_id},id2.eq.{other_id}),"
                f"and(id1.eq.{other_id},id2.eq.{user_id})"
            )
            .limit(1),
        )
        return bool(rows)
