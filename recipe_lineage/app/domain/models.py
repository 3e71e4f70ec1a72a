# recipe_lineage/app/domain/models.py
"""
Domain models for recipes, merge provenance and lineage graphs.
These are pure data structures with no infrastructure dependencies.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

RecipeId = int
UserId = int


class Difficulty(str, Enum):
    """Difficulty label shown next to a recipe."""
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"

    @classmethod
    def parse(cls, value: object) -> Optional["Difficulty"]:
        """Case-insensitive lookup; unknown or empty values map to None."""
        if value is None:
            return None
        if isinstance(value, Difficulty):
            return value
        text = str(value).strip().lower()
        for member in cls:
            if member.value.lower() == text:
                return member
        return None


@dataclass
class Recipe:
    """
    A recipe owned by its author.
    `like_count` is derived by the storage layer and never written back.
    """
    id: RecipeId
    author_id: Optional[UserId]
    name: str
    description: str = ""
    ingredients: dict[str, str] = field(default_factory=dict)
    instructions: str = ""
    difficulty: Optional[Difficulty] = None
    created_at: Optional[datetime] = None
    like_count: int = 0

    def to_summary(self) -> dict[str, object]:
        """Shape handed to the generation service for a merge."""
        return {
            "name": self.name,
            "description": self.description,
            "ingredients": dict(self.ingredients),
            "instructions": self.instructions,
        }


@dataclass
class RecipeDraft:
    """Recipe content that has not been persisted yet."""
    name: str
    description: str = ""
    ingredients: dict[str, str] = field(default_factory=dict)
    instructions: str = ""
    difficulty: Optional[Difficulty] = None


@dataclass(frozen=True)
class ProvenanceEdge:
    """Records that `parent_id` was merged into `child_id`."""
    parent_id: RecipeId
    child_id: RecipeId


@dataclass
class LineageNode:
    """One recipe in a reconstructed lineage, with its one-hop parents."""
    id: RecipeId
    name: str
    parent_ids: list[RecipeId] = field(default_factory=list)

    @property
    def is_original(self) -> bool:
        return not self.parent_ids


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass
class GraphNode:
    """A positioned lineage node. `x` and `y` are the node's center."""
    id: RecipeId
    label: str
    x: float
    y: float
    width: float
    height: float
    rank: int
    is_original: bool


@dataclass
class GraphEdge:
    from_id: RecipeId
    to_id: RecipeId
    points: list[Point] = field(default_factory=list)


@dataclass(frozen=True)
class CanvasSize:
    width: float
    height: float


@dataclass
class GraphLayout:
    """Result of laying out a lineage graph for rendering."""
    nodes: list[GraphNode]
    edges: list[GraphEdge]
    canvas: CanvasSize
