from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from recipe_lineage.app.domain.models import GraphLayout, LineageNode, Recipe
from recipe_lineage.services.ingredients import normalize_ingredients

DifficultyLabel = Literal["Easy", "Medium", "Hard"]


def _coerce_ingredients(value: Any) -> dict[str, str]:
    # legacy list shapes are accepted and converted here
    return normalize_ingredients(value)


def _coerce_difficulty(value: Any) -> Any:
    if isinstance(value, str):
        text = value.strip()
        return text.capitalize() if text else None
    return value


class RecipeResponse(BaseModel):
    id: int
    authorId: Optional[int] = None
    name: str
    description: str = ""
    ingredients: dict[str, str] = Field(default_factory=dict)
    instructions: str = ""
    difficulty: Optional[DifficultyLabel] = None
    likeCount: int = 0
    createdAt: Optional[str] = None

    @classmethod
    def from_recipe(cls, recipe: Recipe) -> "RecipeResponse":
        return cls(
            id=recipe.id,
            authorId=recipe.author_id,
            name=recipe.name,
            description=recipe.description,
            ingredients=dict(recipe.ingredients),
            instructions=recipe.instructions,
            difficulty=recipe.difficulty.value if recipe.difficulty else None,
            likeCount=recipe.like_count,
            createdAt=recipe.created_at.isoformat() if recipe.created_at else None,
        )


class RecipeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="", max_length=2000)
    ingredients: dict[str, str] = Field(default_factory=dict)
    instructions: str = ""
    difficulty: Optional[DifficultyLabel] = None

    @field_validator("ingredients", mode="before")
    @classmethod
    def normalize_ingredients(cls, value: Any) -> dict[str, str]:
        return _coerce_ingredients(value)

    @field_validator("difficulty", mode="before")
    @classmethod
    def normalize_difficulty(cls, value: Any) -> Any:
        return _coerce_difficulty(value)


class RecipeUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    ingredients: Optional[dict[str, str]] = None
    instructions: Optional[str] = None
    difficulty: Optional[DifficultyLabel] = None

    @field_validator("ingredients", mode="before")
    @classmethod
    def normalize_ingredients(cls, value: Any) -> Any:
        return None if value is None else _coerce_ingredients(value)

    @field_validator("difficulty", mode="before")
    @classmethod
    def normalize_difficulty(cls, value: Any) -> Any:
        return _coerce_difficulty(value)


class RecipeCreated(BaseModel):
    id: int


class MergeRequest(BaseModel):
    recipeIds: list[int] = Field(default_factory=list)
    # range is enforced by the merge service so it reports invalid-creativity
    creativity: Optional[float] = None


class MergeResponse(BaseModel):
    id: int


class LineageNodeResponse(BaseModel):
    id: int
    name: str
    parentIds: list[int] = Field(default_factory=list)

    @classmethod
    def from_node(cls, node: LineageNode) -> "LineageNodeResponse":
        return cls(id=node.id, name=node.name, parentIds=list(node.parent_ids))


class PointResponse(BaseModel):
    x: float
    y: float


class GraphNodeResponse(BaseModel):
    id: int
    label: str
    x: float
    y: float
    width: float
    height: float
    rank: int
    isOriginal: bool


class GraphEdgeResponse(BaseModel):
    from_: int = Field(..., alias="from")
    to: int
    points: list[PointResponse] = Field(default_factory=list)

    model_config = {"populate_by_name": True}


class CanvasSizeResponse(BaseModel):
    width: float
    height: float


class GraphLayoutResponse(BaseModel):
    nodes: list[GraphNodeResponse]
    edges: list[GraphEdgeResponse]
    canvas: CanvasSizeResponse

    @classmethod
    def from_layout(cls, graph: GraphLayout) -> "GraphLayoutResponse":
        return cls(
            nodes=[
                GraphNodeResponse(
                    id=node.id,
                    label=node.label,
                    x=node.x,
                    y=node.y,
                    width=node.width,
                    height=node.height,
                    rank=node.rank,
                    isOriginal=node.is_original,
                )
                for node in graph.nodes
            ],
            edges=[
                GraphEdgeResponse(
                    from_=edge.from_id,
                    to=edge.to_id,
                    points=[PointResponse(x=p.x, y=p.y) for p in edge.points],
                )
                for edge in graph.edges
            ],
            canvas=CanvasSizeResponse(width=graph.canvas.width, height=graph.canvas.height),
        )


class LineageResponse(BaseModel):
    recipeId: int
    hasLineage: bool
    history: list[LineageNodeResponse]
    layout: Optional[GraphLayoutResponse] = None
