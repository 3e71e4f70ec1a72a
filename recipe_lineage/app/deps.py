# recipe_lineage/app/deps.py

from __future__ import annotations

import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel
from supabase import Client, create_client

from recipe_lineage.app.config import settings
from recipe_lineage.app.infra.db.base import RecipeRepository, SocialGraphRepository
from recipe_lineage.app.infra.db.supabase_recipes_repo import (
    SupabaseRecipeRepository,
    SupabaseSocialGraphRepository,
)
from recipe_lineage.app.infra.generation.base import RecipeGenerator
from recipe_lineage.app.infra.generation.gemini_generator import GeminiRecipeGenerator
from recipe_lineage.app.services.lineage_service import LineageService
from recipe_lineage.app.services.merge_service import MergeService
from recipe_lineage.app.services.recipe_service import RecipeService
from recipe_lineage.app.services.visibility import visibility_for_mode

logger = logging.getLogger(__name__)

_client: Client | None = None


def get_supabase() -> Client:
    global _client
    if _client is None:
        if settings.SUPABASE_URL is None or not settings.SUPABASE_SERVICE_ROLE_KEY:
            raise RuntimeError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be configured")
        _client = create_client(str(settings.SUPABASE_URL),
                                settings.SUPABASE_SERVICE_ROLE_KEY)
    return _client


auth_scheme = HTTPBearer(auto_error=False)


class CurrentUser(BaseModel):
    id: int
    email: str | None = None
    username: str | None = None


def _resolve_user(
    cred: HTTPAuthorizationCredentials | None,
    supa: Client,
) -> CurrentUser | None:
    """
    Resolve a Supabase access token to the application user.
    Returns None when no bearer token was sent.
    """
    if cred is None or cred.scheme.lower() != "bearer":
        return None

    try:
        res = supa.auth.get_user(cred.credentials)
        user = res.user if res else None
    except Exception as exc:
        logger.info("Token validation failed: %s", exc)
        raise HTTPException(status_code=401, detail="Invalid/expired token")
    if not user:
        raise HTTPException(status_code=401, detail="Invalid token")

    # the numeric application id lives in app_metadata
    meta = getattr(user, "app_metadata", None) or {}
    app_user_id = meta.get("app_user_id") if isinstance(meta, dict) else None
    if app_user_id is None:
        raise HTTPException(status_code=401, detail="Token is not linked to an account")

    user_meta = getattr(user, "user_metadata", None) or {}
    username = user_meta.get("username") if isinstance(user_meta, dict) else None
    return CurrentUser(id=int(app_user_id), email=user.email, username=username)


async def get_optional_user(
    cred: HTTPAuthorizationCredentials | None = Depends(auth_scheme),
    supa: Client = Depends(get_supabase),
) -> CurrentUser | None:
    return _resolve_user(cred, supa)


async def get_current_user(
    user: CurrentUser | None = Depends(get_optional_user),
) -> CurrentUser:
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing token")
    return user


def get_recipe_repository(supa: Client = Depends(get_supabase)) -> RecipeRepository:
    return SupabaseRecipeRepository(client=supa)


def get_social_graph(supa: Client = Depends(get_supabase)) -> SocialGraphRepository:
    return SupabaseSocialGraphRepository(client=supa)


def get_recipe_generator() -> RecipeGenerator:
    api_key = settings.GEMINI_API_KEY.get_secret_value() if settings.GEMINI_API_KEY else ""
    return GeminiRecipeGenerator(api_key=api_key, model_name=settings.GEMINI_MODEL)


def get_recipe_service(repo: RecipeRepository = Depends(get_recipe_repository)) -> RecipeService:
    return RecipeService(repo)


def get_lineage_service(repo: RecipeRepository = Depends(get_recipe_repository)) -> LineageService:
    return LineageService(repo)


def get_merge_service(
    repo: RecipeRepository = Depends(get_recipe_repository),
    social: SocialGraphRepository = Depends(get_social_graph),
    generator: RecipeGenerator = Depends(get_recipe_generator),
) -> MergeService:
    visibility = visibility_for_mode(settings.MERGE_VISIBILITY, social)
    return MergeService(repository=repo, generator=generator, visibility=visibility)
