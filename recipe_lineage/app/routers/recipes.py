# recipe_lineage/app/routers/recipes.py
from __future__ import annotations

import asyncio
import logging
import time

from fastapi import APIRouter, Depends, HTTPException, Response, status
from starlette.concurrency import run_in_threadpool

from recipe_lineage.app.config import settings
from recipe_lineage.app.deps import (
    CurrentUser,
    get_current_user,
    get_lineage_service,
    get_merge_service,
    get_optional_user,
    get_recipe_service,
)
from recipe_lineage.app.domain.errors import (
    GenerationFailedError,
    InvalidCreativityError,
    InvalidRecipeError,
    LayoutError,
    LineageNotFoundError,
    NotAuthenticatedError,
    NotEnoughRecipesError,
    RecipeAccessError,
    RecipeLineageError,
    RecipeNotFoundError,
    StorageError,
)
from recipe_lineage.app.domain.models import Difficulty, RecipeDraft
from recipe_lineage.app.schemas.recipes import (
    GraphLayoutResponse,
    LineageNodeResponse,
    LineageResponse,
    MergeRequest,
    MergeResponse,
    RecipeCreate,
    RecipeCreated,
    RecipeResponse,
    RecipeUpdate,
)
from recipe_lineage.app.services.layout_service import layout
from recipe_lineage.app.services.lineage_service import LineageService, has_lineage
from recipe_lineage.app.services.merge_service import TIMEOUT_MESSAGE, MergeService
from recipe_lineage.app.services.recipe_service import RecipeService

log = logging.getLogger(__name__)
router = APIRouter(prefix="/recipes", tags=["recipes"])


def _error(status_code: int, exc: Exception) -> HTTPException:
    error_code = getattr(exc, "code", RecipeLineageError.code)
    return HTTPException(status_code=status_code, detail={"error": error_code, "message": str(exc)})


@router.post("/merge", response_model=MergeResponse, status_code=status.HTTP_201_CREATED)
async def merge_recipes(
    payload: MergeRequest,
    user: CurrentUser | None = Depends(get_optional_user),
    service: MergeService = Depends(get_merge_service),
) -> MergeResponse:
    requester_id = user.id if user else None
    # the worker thread is abandoned on timeout, the deadline makes it undo any late write
    deadline = time.monotonic() + settings.MERGE_TIMEOUT_SECONDS
    try:
        new_id = await asyncio.wait_for(
            asyncio.to_thread(service.merge, payload.recipeIds, requester_id, payload.creativity, deadline),
            timeout=settings.MERGE_TIMEOUT_SECONDS,
        )
    except (NotEnoughRecipesError, InvalidCreativityError) as exc:
        raise _error(400, exc)
    except NotAuthenticatedError as exc:
        raise _error(401, exc)
    except RecipeNotFoundError as exc:
        raise _error(404, exc)
    except GenerationFailedError as exc:
        raise _error(502, exc)
    except asyncio.TimeoutError as exc:
        log.warning(
            "Merge for requester %s timed out after %ss",
            requester_id,
            settings.MERGE_TIMEOUT_SECONDS,
        )
        raise _error(504, GenerationFailedError(TIMEOUT_MESSAGE)) from exc
    except StorageError as exc:
        raise _error(500, exc)
    return MergeResponse(id=new_id)


@router.get("/mine", response_model=list[RecipeResponse])
async def list_my_recipes(
    user: CurrentUser = Depends(get_current_user),
    service: RecipeService = Depends(get_recipe_service),
) -> list[RecipeResponse]:
    try:
        recipes = await run_in_threadpool(service.list_recipes, user.id)
    except StorageError as exc:
        raise _error(500, exc)
    return [RecipeResponse.from_recipe(recipe) for recipe in recipes]


@router.post("/", response_model=RecipeCreated, status_code=status.HTTP_201_CREATED)
async def create_recipe(
    payload: RecipeCreate,
    user: CurrentUser = Depends(get_current_user),
    service: RecipeService = Depends(get_recipe_service),
) -> RecipeCreated:
    draft = RecipeDraft(
        name=payload.name,
        description=payload.description,
        ingredients=payload.ingredients,
        instructions=payload.instructions,
        difficulty=Difficulty.parse(payload.difficulty),
    )
    try:
        recipe_id = await run_in_threadpool(service.create_recipe, draft, user.id)
    except InvalidRecipeError as exc:
        raise _error(400, exc)
    except StorageError as exc:
        raise _error(500, exc)
    return RecipeCreated(id=recipe_id)


@router.get("/{recipe_id}", response_model=RecipeResponse)
async def get_recipe(
    recipe_id: int,
    service: RecipeService = Depends(get_recipe_service),
) -> RecipeResponse:
    try:
        recipe = await run_in_threadpool(service.get_recipe, recipe_id)
    except RecipeAccessError as exc:
        raise _error(404, exc)
    except StorageError as exc:
        raise _error(500, exc)
    return RecipeResponse.from_recipe(recipe)


@router.patch("/{recipe_id}", response_model=RecipeResponse)
async def update_recipe(
    recipe_id: int,
    payload: RecipeUpdate,
    user: CurrentUser = Depends(get_current_user),
    service: RecipeService = Depends(get_recipe_service),
) -> RecipeResponse:
    changes = payload.model_dump(exclude_unset=True)
    try:
        recipe = await run_in_threadpool(service.update_recipe, recipe_id, user.id, changes)
    except InvalidRecipeError as exc:
        raise _error(400, exc)
    except RecipeAccessError as exc:
        raise _error(404, exc)
    except StorageError as exc:
        raise _error(500, exc)
    return RecipeResponse.from_recipe(recipe)


@router.delete("/{recipe_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_recipe(
    recipe_id: int,
    user: CurrentUser = Depends(get_current_user),
    service: RecipeService = Depends(get_recipe_service),
) -> Response:
    try:
        await run_in_threadpool(service.delete_recipe, recipe_id, user.id)
    except RecipeAccessError as exc:
        raise _error(404, exc)
    except StorageError as exc:
        raise _error(500, exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{recipe_id}/lineage", response_model=LineageResponse, response_model_by_alias=True)
async def get_recipe_lineage(
    recipe_id: int,
    service: LineageService = Depends(get_lineage_service),
) -> LineageResponse:
    try:
        nodes = await run_in_threadpool(service.get_lineage, recipe_id)
    except LineageNotFoundError as exc:
        raise _error(404, exc)
    except StorageError as exc:
        raise _error(500, exc)

    graph = None
    if has_lineage(nodes):
        try:
            graph = GraphLayoutResponse.from_layout(layout(nodes))
        except LayoutError as exc:
            log.error("Layout failed for recipe %s: %s", recipe_id, exc)
            raise _error(500, exc)

    return LineageResponse(
        recipeId=recipe_id,
        hasLineage=has_lineage(nodes),
        history=[LineageNodeResponse.from_node(node) for node in nodes],
        layout=graph,
    )
