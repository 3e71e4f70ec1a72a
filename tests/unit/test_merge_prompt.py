from __future__ import annotations

import json

import pytest

from recipe_lineage.app.domain.models import Difficulty
from recipe_lineage.services.errors import InvalidGenerationOutputError
from recipe_lineage.services.merge_prompt import (
    MERGE_SYSTEM_PROMPT,
    build_merge_payload,
    parse_merged_recipe,
)


def _answer(**overrides) -> str:
    data = {
        "name": "Pasta Caesar Bowl",
        "description": "Pasta salad in Caesar dressing.",
        "ingredients": [
            {"name": "pasta", "quantity": "200 g"},
            {"name": "romaine", "quantity": "1 head"},
        ],
        "instructions": "Cook, cool, toss.",
        "difficulty": "Easy",
    }
    data.update(overrides)
    return json.dumps(data)


class TestSystemPrompt:
    def test_prompt_file_is_packaged(self) -> None:
        text = MERGE_SYSTEM_PROMPT.read_text(encoding="utf-8")
        assert "ingredients" in text


class TestBuildMergePayload:
    def test_fills_missing_fields(self) -> None:
        payload = build_merge_payload([{"name": "Soup", "ingredients": None}])

        assert payload == [{"name": "Soup", "description": "", "ingredients": {}, "instructions": ""}]

    def test_keeps_order(self) -> None:
        payload = build_merge_payload([{"name": "B"}, {"name": "A"}])
        assert [p["name"] for p in payload] == ["B", "A"]


class TestParseMergedRecipe:
    def test_parses_full_answer(self) -> None:
        draft = parse_merged_recipe(_answer())

        assert draft.name == "Pasta Caesar Bowl"
        assert draft.ingredients == {"pasta": "200 g", "romaine": "1 head"}
        assert draft.instructions == "Cook, cool, toss."
        assert draft.difficulty is Difficulty.EASY

    def test_accepts_ingredient_map(self) -> None:
        draft = parse_merged_recipe(_answer(ingredients={"pasta": "200 g"}))
        assert draft.ingredients == {"pasta": "200 g"}

    def test_unknown_difficulty_is_dropped(self) -> None:
        assert parse_merged_recipe(_answer(difficulty="Legendary")).difficulty is None

    @pytest.mark.parametrize(
        "raw_text",
        [
            "not json",
            "[1, 2]",
            _answer(name=" "),
            _answer(ingredients=[]),
            _answer(ingredients=7),
            _answer(instructions=""),
        ],
    )
    def test_rejects_unusable_answers(self, raw_text: str) -> None:
        with pytest.raises(InvalidGenerationOutputError) as exc_info:
            parse_merged_recipe(raw_text)

        assert exc_info.value.raw_text == raw_text
