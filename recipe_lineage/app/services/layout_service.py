# recipe_lineage/app/services/layout_service.py
"""
Layered layout of a lineage graph.

Originals sit on the top rank and every merged recipe sits one rank below
its deepest parent. Positions are a pure function of the input, so the same
lineage always renders the same way.
"""
from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Sequence

from recipe_lineage.app.domain.errors import LayoutError
from recipe_lineage.app.domain.models import (
    CanvasSize,
    GraphEdge,
    GraphLayout,
    GraphNode,
    LineageNode,
    Point,
    RecipeId,
)


@dataclass(frozen=True)
class LayoutConfig:
    rank_sep: float = 80
    node_sep: float = 40
    margin_x: float = 20
    margin_y: float = 20
    node_height: float = 50
    min_node_width: float = 80
    char_width: float = 7
    label_padding: float = 20


DEFAULT_LAYOUT_CONFIG = LayoutConfig()


def node_width(label: str, config: LayoutConfig = DEFAULT_LAYOUT_CONFIG) -> float:
    return max(config.min_node_width, len(label) * config.char_width + config.label_padding)


def _internal_parents(nodes: Sequence[LineageNode]) -> dict[RecipeId, list[RecipeId]]:
    known = {node.id for node in nodes}
    return {
        node.id: sorted({pid for pid in node.parent_ids if pid in known and pid != node.id})
        for node in nodes
    }


def assign_ranks(nodes: Sequence[LineageNode]) -> dict[RecipeId, int]:
    """
    Longest-path layering in topological order.
    Parent ids that are not part of `nodes` are ignored.

    Raises:
        LayoutError: The parent links contain a cycle
    """
    parents = _internal_parents(nodes)
    children: dict[RecipeId, list[RecipeId]] = {node_id: [] for node_id in parents}
    pending = {node_id: len(pids) for node_id, pids in parents.items()}
    for node_id, pids in parents.items():
        for pid in pids:
            children[pid].append(node_id)

    ranks: dict[RecipeId, int] = {}
    queue = deque(sorted(node_id for node_id, count in pending.items() if count == 0))
    while queue:
        node_id = queue.popleft()
        ranks[node_id] = 1 + max((ranks[pid] for pid in parents[node_id]), default=-1)
        for child_id in sorted(children[node_id]):
            pending[child_id] -= 1
            if pending[child_id] == 0:
                queue.append(child_id)

    if len(ranks) != len(parents):
        stuck = sorted(set(parents) - set(ranks))
        raise LayoutError(f"Lineage graph contains a cycle through: {stuck}")
    return ranks


def order_ranks(
    nodes: Sequence[LineageNode],
    ranks: dict[RecipeId, int],
) -> list[list[RecipeId]]:
    """
    Left-to-right order inside each rank.
    The top rank is ordered by id; lower ranks follow the average position of
    their parents in the rank above, ties broken by id.
    """
    parents = _internal_parents(nodes)
    depth = max(ranks.values(), default=-1) + 1
    buckets: list[list[RecipeId]] = [[] for _ in range(depth)]
    for node_id, rank in ranks.items():
        buckets[rank].append(node_id)

    position: dict[RecipeId, int] = {}
    ordered: list[list[RecipeId]] = []
    for rank, bucket in enumerate(buckets):
        if rank == 0:
            bucket = sorted(bucket)
        else:
            def barycenter(node_id: RecipeId) -> float:
                placed = [position[pid] for pid in parents[node_id] if pid in position]
                return sum(placed) / len(placed) if placed else 0.0

            bucket = sorted(bucket, key=lambda node_id: (barycenter(node_id), node_id))
        for index, node_id in enumerate(bucket):
            position[node_id] = index
        ordered.append(bucket)
    return ordered


def layout(
    nodes: Sequence[LineageNode],
    config: LayoutConfig = DEFAULT_LAYOUT_CONFIG,
) -> GraphLayout:
    """
    Position lineage nodes on a top-to-bottom layered canvas.

    Args:
        nodes: Lineage nodes, in any order
        config: Spacing and sizing constants

    Returns:
        Positioned nodes (x, y are centers), parent -> child edges from
        parent bottom-center to child top-center, and the canvas size
    """
    if not nodes:
        return GraphLayout(
            nodes=[],
            edges=[],
            canvas=CanvasSize(width=2 * config.margin_x, height=2 * config.margin_y),
        )

    by_id = {node.id: node for node in nodes}
    if len(by_id) != len(nodes):
        raise LayoutError("Lineage contains duplicate node ids")

    ranks = assign_ranks(nodes)
    rows = order_ranks(nodes, ranks)
    widths = {node.id: node_width(node.name, config) for node in nodes}

    row_widths = [
        sum(widths[node_id] for node_id in row) + config.node_sep * (len(row) - 1)
        for row in rows
    ]
    content_width = max(row_widths)

    graph_nodes: list[GraphNode] = []
    placed: dict[RecipeId, GraphNode] = {}
    for rank, row in enumerate(rows):
        left = config.margin_x + (content_width - row_widths[rank]) / 2
        center_y = config.margin_y + rank * (config.node_height + config.rank_sep) + config.node_height / 2
        for node_id in row:
            width = widths[node_id]
            source = by_id[node_id]
            graph_node = GraphNode(
                id=node_id,
                label=source.name,
                x=left + width / 2,
                y=center_y,
                width=width,
                height=config.node_height,
                rank=rank,
                is_original=source.is_original,
            )
            graph_nodes.append(graph_node)
            placed[node_id] = graph_node
            left += width + config.node_sep

    parents = _internal_parents(nodes)
    edges: list[GraphEdge] = []
    for child in graph_nodes:
        for pid in parents[child.id]:
            parent = placed[pid]
            edges.append(
                GraphEdge(
                    from_id=pid,
                    to_id=child.id,
                    points=[
                        Point(parent.x, parent.y + parent.height / 2),
                        Point(child.x, child.y - child.height / 2),
                    ],
                )
            )

    canvas = CanvasSize(
        width=content_width + 2 * config.margin_x,
        height=len(rows) * config.node_height + (len(rows) - 1) * config.rank_sep + 2 * config.margin_y,
    )
    return GraphLayout(nodes=graph_nodes, edges=edges, canvas=canvas)
