# recipe_lineage/app/services/visibility.py
"""
Rules deciding which recipes a user may read, and therefore merge.
"""
from __future__ import annotations

from abc import ABC, abstractmethod

from recipe_lineage.app.domain.models import Recipe, UserId
from recipe_lineage.app.infra.db.base import SocialGraphRepository

MODE_OWNER = "owner"
MODE_SOCIAL = "social"


class VisibilityPredicate(ABC):
    @abstractmethod
    def can_view(self, requester_id: UserId, recipe: Recipe) -> bool:
        pass


class OwnerOnlyVisibility(VisibilityPredicate):
    """Only the author can see (and merge) a recipe."""

    def can_view(self, requester_id: UserId, recipe: Recipe) -> bool:
        return recipe.author_id is not None and recipe.author_id == requester_id


class SocialVisibility(VisibilityPredicate):
    """
    A recipe is visible to its author, to anyone when the author's
    profile is public, and to the author's friends.
    """

    def __init__(self, social_graph: SocialGraphRepository):
        self._social = social_graph

    def can_view(self, requester_id: UserId, recipe: Recipe) -> bool:
        author_id = recipe.author_id
        if author_id is None:
            return False
        if author_id == requester_id:
            return True
        if self._social.is_profile_public(author_id):
            return True
        return self._social.are_friends(requester_id, author_id)


def visibility_for_mode(mode: str, social_graph: SocialGraphRepository | None = None) -> VisibilityPredicate:
    if mode == MODE_OWNER:
        return OwnerOnlyVisibility()
    if mode == MODE_SOCIAL:
        if social_graph is None:
            raise ValueError("Social visibility requires a social graph repository")
        return SocialVisibility(social_graph)
    raise ValueError(f"Unknown visibility mode: {mode}")
