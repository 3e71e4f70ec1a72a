from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Sequence

from google.genai import types

from recipe_lineage.app.domain.models import Difficulty, RecipeDraft
from recipe_lineage.services.errors import InvalidGenerationOutputError
from recipe_lineage.services.ingredients import normalize_ingredients

MERGE_SYSTEM_PROMPT = Path(__file__).resolve().parent.parent / "prompts" / "MERGE_SYSTEM_PROMPT.txt"

# Gemini rejects OBJECT schemas without properties, so ingredients come back
# as a list of {name, quantity} and are turned into a map afterwards.
MERGED_RECIPE_SCHEMA = types.Schema(
    type=types.Type.OBJECT,
    properties={
        "name": types.Schema(type=types.Type.STRING),
        "description": types.Schema(type=types.Type.STRING),
        "ingredients": types.Schema(
            type=types.Type.ARRAY,
            items=types.Schema(
                type=types.Type.OBJECT,
                properties={
                    "name": types.Schema(type=types.Type.STRING),
                    "quantity": types.Schema(type=types.Type.STRING),
                },
                required=["name", "quantity"],
            ),
        ),
        "instructions": types.Schema(type=types.Type.STRING),
        "difficulty": types.Schema(
            type=types.Type.STRING,
            enum=[member.value for member in Difficulty],
        ),
    },
    required=["name", "ingredients", "instructions"],
    property_ordering=["name", "description", "ingredients", "instructions", "difficulty"],
)


def build_merge_payload(summaries: Sequence[dict[str, Any]]) -> list[dict[str, Any]]:
    return [
        {
            "name": summary.get("name") or "",
            "description": summary.get("description") or "",
            "ingredients": dict(summary.get("ingredients") or {}),
            "instructions": summary.get("instructions") or "",
        }
        for summary in summaries
    ]


def parse_merged_recipe(raw_text: str) -> RecipeDraft:
    """
    Turn the model's JSON answer into a draft.

    Raises:
        InvalidGenerationOutputError: If the text is not a usable recipe
    """
    try:
        data = json.loads(raw_text)
    except ValueError as exc:
        raise InvalidGenerationOutputError("response is not JSON", raw_text) from exc

    if not isinstance(data, dict):
        raise InvalidGenerationOutputError("response is not an object", raw_text)

    name = str(data.get("name") or "").strip()
    if not name:
        raise InvalidGenerationOutputError("missing name", raw_text)

    try:
        ingredients = normalize_ingredients(data.get("ingredients"))
    except ValueError as exc:
        raise InvalidGenerationOutputError(str(exc), raw_text) from exc
    if not ingredients:
        raise InvalidGenerationOutputError("missing ingredients", raw_text)

    instructions = str(data.get("instructions") or "").strip()
    if not instructions:
        raise InvalidGenerationOutputError("missing instructions", raw_text)

    return RecipeDraft(
        name=name,
        description=str(data.get("description") or "").strip(),
        ingredients=ingredients,
        instructions=instructions,
        difficulty=Difficulty.parse(data.get("difficulty")),
    )
