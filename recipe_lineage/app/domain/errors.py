from __future__ import annotations

from typing import Iterable


class RecipeLineageError(Exception):
    code = "server-error"


class NotEnoughRecipesError(RecipeLineageError):
    code = "not-enough-recipes"

    def __init__(self, provided: int, minimum: int = 2):
        super().__init__(f"At least {minimum} distinct recipes are required to merge, got {provided}")
        self.provided = provided
        self.minimum = minimum


class NotAuthenticatedError(RecipeLineageError):
    code = "not-logged-in"

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class RecipeNotFoundError(RecipeLineageError):
    code = "recipe-not-found"

    def __init__(self, recipe_ids: Iterable[int]):
        ids = sorted(set(recipe_ids))
        super().__init__(f"No accessible recipes among: {ids}")
        self.recipe_ids = ids


class InvalidCreativityError(RecipeLineageError):
    code = "invalid-creativity"

    def __init__(self, creativity: float, minimum: float = 0.0, maximum: float = 2.0):
        super().__init__(f"Creativity must be between {minimum} and {maximum}, got {creativity}")
        self.creativity = creativity
        self.minimum = minimum
        self.maximum = maximum


class GenerationFailedError(RecipeLineageError):
    code = "generation-error"

    def __init__(self, message: str = "Recipe generation returned no usable output"):
        super().__init__(message)


class LineageNotFoundError(RecipeLineageError):
    code = "not-found"

    def __init__(self, recipe_id: int):
        super().__init__(f"Recipe not found: {recipe_id}")
        self.recipe_id = recipe_id


class RecipeAccessError(RecipeLineageError):
    """Raised when a recipe is missing or not writable by the requester."""
    code = "not-found"

    def __init__(self, recipe_id: int):
        super().__init__(f"Recipe not found or not owned by requester: {recipe_id}")
        self.recipe_id = recipe_id


class InvalidRecipeError(RecipeLineageError):
    code = "invalid-recipe"


class StorageError(RecipeLineageError):
    code = "server-error"

    def __init__(self, operation: str, reason: str):
        super().__init__(f"Storage error during {operation}: {reason}")
        self.operation = operation
        self.reason = reason


class LayoutError(RecipeLineageError):
    code = "layout-error"
