# recipe_lineage/app/services/lineage_service.py
"""
Lineage service.
Rebuilds the ancestor graph of a recipe from its provenance edges.
"""
from __future__ import annotations

import logging
from typing import Sequence

from recipe_lineage.app.domain.errors import LineageNotFoundError
from recipe_lineage.app.domain.models import LineageNode, RecipeId
from recipe_lineage.app.infra.db.base import RecipeRepository

logger = logging.getLogger(__name__)


def has_lineage(nodes: Sequence[LineageNode]) -> bool:
    """A lineage holding only the recipe itself has nothing to draw."""
    return len(nodes) > 1


class LineageService:
    def __init__(self, repository: RecipeRepository):
        self._repo = repository

    def get_lineage(self, recipe_id: RecipeId) -> list[LineageNode]:
        """
        Collect the recipe and all of its transitive ancestors.

        Each node carries only its immediate parents. Nodes are ordered by id.

        Raises:
            LineageNotFoundError: The recipe does not exist
        """
        root_name = self._repo.get_recipe_name(recipe_id)
        if root_name is None:
            raise LineageNotFoundError(recipe_id)

        parent_map = self._collect_ancestors(recipe_id)
        names = self._repo.get_recipe_names(parent_map.keys())
        names[recipe_id] = root_name

        nodes: list[LineageNode] = []
        for node_id in sorted(parent_map):
            if node_id not in names:
                # linked but deleted; its children drop the reference below
                continue
            nodes.append(LineageNode(id=node_id, name=names[node_id], parent_ids=[]))

        present = {node.id for node in nodes}
        for node in nodes:
            node.parent_ids = sorted(pid for pid in parent_map[node.id] if pid in present)

        logger.info("Lineage for recipe %s has %d node(s)", recipe_id, len(nodes))
        return nodes

    def _collect_ancestors(self, recipe_id: RecipeId) -> dict[RecipeId, list[RecipeId]]:
        """Worklist expansion, one storage round-trip per generation."""
        parent_map: dict[RecipeId, list[RecipeId]] = {}
        frontier = [recipe_id]

        while frontier:
            found = self._repo.get_parent_map(frontier)
            next_frontier: list[RecipeId] = []
            for child_id in frontier:
                parents = list(dict.fromkeys(found.get(child_id, [])))
                parent_map[child_id] = parents
                for parent_id in parents:
                    if parent_id not in parent_map and parent_id not in next_frontier:
                        next_frontier.append(parent_id)
            frontier = [node_id for node_id in next_frontier if node_id not in parent_map]

        return parent_map
