from __future__ import annotations

import time
from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from recipe_lineage.app.config import settings
from recipe_lineage.app.deps import (
    CurrentUser,
    get_lineage_service,
    get_merge_service,
    get_optional_user,
    get_recipe_service,
)
from recipe_lineage.app.main import app
from recipe_lineage.app.services.lineage_service import LineageService
from recipe_lineage.app.services.merge_service import MergeService
from recipe_lineage.app.services.recipe_service import RecipeService
from recipe_lineage.app.services.visibility import SocialVisibility


@pytest.fixture
def current_user() -> dict[str, CurrentUser | None]:
    return {"user": CurrentUser(id=1, email="cook@example.com")}


@pytest.fixture
def api(repo, social, generator, current_user) -> Iterator[TestClient]:
    app.dependency_overrides[get_optional_user] = lambda: current_user["user"]
    app.dependency_overrides[get_recipe_service] = lambda: RecipeService(repo)
    app.dependency_overrides[get_lineage_service] = lambda: LineageService(repo)
    app.dependency_overrides[get_merge_service] = lambda: MergeService(
        repository=repo,
        generator=generator,
        visibility=SocialVisibility(social),
    )
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


class TestHealth:
    def test_health(self, api) -> None:
        response = api.get("/health")
        assert response.status_code == 200
        assert response.json()["ok"] is True


class TestMergeEndpoint:
    def test_merge_creates_recipe(self, api, repo) -> None:
        pasta = repo.add("Pasta Salad")
        caesar = repo.add("Caesar Salad")

        response = api.post("/recipes/merge", json={"recipeIds": [pasta, caesar], "creativity": 1.0})

        assert response.status_code == 201
        new_id = response.json()["id"]
        assert set(repo.get_immediate_parents(new_id)) == {pasta, caesar}

    def test_not_enough_recipes(self, api, repo) -> None:
        pasta = repo.add("Pasta Salad")

        response = api.post("/recipes/merge", json={"recipeIds": [pasta]})

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "not-enough-recipes"

    def test_invalid_creativity(self, api) -> None:
        response = api.post("/recipes/merge", json={"recipeIds": [1, 2], "creativity": 3})

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "invalid-creativity"

    def test_anonymous_user(self, api, repo, current_user) -> None:
        a = repo.add("A")
        b = repo.add("B")
        current_user["user"] = None

        response = api.post("/recipes/merge", json={"recipeIds": [a, b]})

        assert response.status_code == 401
        assert response.json()["detail"]["error"] == "not-logged-in"

    def test_unknown_recipes(self, api) -> None:
        response = api.post("/recipes/merge", json={"recipeIds": [41, 42]})

        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "recipe-not-found"

    def test_generation_failure(self, api, repo, generator) -> None:
        a = repo.add("A")
        b = repo.add("B")
        generator.draft = None

        response = api.post("/recipes/merge", json={"recipeIds": [a, b]})

        assert response.status_code == 502
        assert response.json()["detail"]["error"] == "generation-error"
        assert repo.insert_calls == 0

    def test_generation_timeout(self, api, repo, generator, monkeypatch) -> None:
        a = repo.add("A")
        b = repo.add("B")
        original_generate = generator.generate

        def slow_generate(summaries, creativity=None):
            time.sleep(0.3)
            return original_generate(summaries, creativity)

        monkeypatch.setattr(generator, "generate", slow_generate)
        monkeypatch.setattr(settings, "MERGE_TIMEOUT_SECONDS", 0.05)

        response = api.post("/recipes/merge", json={"recipeIds": [a, b]})

        assert response.status_code == 504
        assert response.json()["detail"]["error"] == "generation-error"
        assert response.json()["detail"]["message"] == "Recipe generation timed out"

        # the abandoned merge finishes late and must not persist anything
        time.sleep(0.5)
        assert repo.insert_calls == 0

    def test_slow_insert_is_rolled_back(self, api, repo, monkeypatch) -> None:
        a = repo.add("A")
        b = repo.add("B")
        original_insert = repo.insert_recipe

        def slow_insert(draft, author_id):
            time.sleep(0.3)
            return original_insert(draft, author_id)

        monkeypatch.setattr(repo, "insert_recipe", slow_insert)
        monkeypatch.setattr(settings, "MERGE_TIMEOUT_SECONDS", 0.05)

        response = api.post("/recipes/merge", json={"recipeIds": [a, b]})

        assert response.status_code == 504
        assert response.json()["detail"]["message"] == "Recipe generation timed out"

        time.sleep(0.5)
        assert set(repo.recipes) == {a, b}
        assert repo.edges == []

    def test_storage_failure(self, api, repo) -> None:
        a = repo.add("A")
        b = repo.add("B")
        repo.fail_on.add("insert_recipe")

        response = api.post("/recipes/merge", json={"recipeIds": [a, b]})

        assert response.status_code == 500
        assert response.json()["detail"]["error"] == "server-error"


class TestLineageEndpoint:
    def test_merged_recipe_has_layout(self, api, repo) -> None:
        pasta = repo.add("Pasta Salad")
        caesar = repo.add("Caesar Salad")
        merged = repo.add("Pasta Caesar", parents=[pasta, caesar])

        response = api.get(f"/recipes/{merged}/lineage")

        assert response.status_code == 200
        body = response.json()
        assert body["hasLineage"] is True
        assert [node["id"] for node in body["history"]] == [pasta, caesar, merged]
        assert body["history"][2]["parentIds"] == [pasta, caesar]
        edges = {(edge["from"], edge["to"]) for edge in body["layout"]["edges"]}
        assert edges == {(pasta, merged), (caesar, merged)}
        ranks = {node["id"]: node["rank"] for node in body["layout"]["nodes"]}
        assert ranks == {pasta: 0, caesar: 0, merged: 1}

    def test_original_recipe_has_no_layout(self, api, repo) -> None:
        recipe_id = repo.add("Pasta Salad")

        body = api.get(f"/recipes/{recipe_id}/lineage").json()

        assert body["hasLineage"] is False
        assert body["layout"] is None
        assert body["history"] == [{"id": recipe_id, "name": "Pasta Salad", "parentIds": []}]

    def test_unknown_recipe(self, api) -> None:
        response = api.get("/recipes/404/lineage")

        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "not-found"


class TestRecipeEndpoints:
    def test_create_and_read(self, api, repo) -> None:
        response = api.post(
            "/recipes/",
            json={
                "name": "Tomato Soup",
                "ingredients": [{"name": "tomato", "quantity": "4"}],
                "difficulty": "easy",
            },
        )

        assert response.status_code == 201
        recipe_id = response.json()["id"]

        body = api.get(f"/recipes/{recipe_id}").json()
        assert body["name"] == "Tomato Soup"
        assert body["authorId"] == 1
        assert body["ingredients"] == {"tomato": "4"}
        assert body["difficulty"] == "Easy"

    def test_create_requires_login(self, api, current_user) -> None:
        current_user["user"] = None

        response = api.post("/recipes/", json={"name": "Soup"})

        assert response.status_code == 401

    def test_list_mine(self, api, repo) -> None:
        repo.add("Mine", author_id=1)
        repo.add("Theirs", author_id=2)

        body = api.get("/recipes/mine").json()

        assert [r["name"] for r in body] == ["Mine"]

    def test_update(self, api, repo) -> None:
        recipe_id = repo.add("Soup", instructions="Boil.")

        response = api.patch(f"/recipes/{recipe_id}", json={"name": "Tomato Soup"})

        assert response.status_code == 200
        assert response.json()["name"] == "Tomato Soup"
        assert response.json()["instructions"] == "Boil."

    def test_update_foreign_recipe(self, api, repo) -> None:
        recipe_id = repo.add("Soup", author_id=2)

        response = api.patch(f"/recipes/{recipe_id}", json={"name": "Mine"})

        assert response.status_code == 404

    def test_delete(self, api, repo) -> None:
        recipe_id = repo.add("Soup")

        response = api.delete(f"/recipes/{recipe_id}")

        assert response.status_code == 204
        assert repo.get_recipe(recipe_id) is None

    def test_missing_recipe(self, api) -> None:
        response = api.get("/recipes/77")

        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "not-found"
