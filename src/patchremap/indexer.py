"""Lookup tables over a graph snapshot."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List

from .model import Graph, GraphShapeError, Node

UNKNOWN_TYPE = "unknown"


@dataclass(slots=True)
class GraphIndex:
    graph: Graph
    by_id: Dict[str, Node] = field(default_factory=dict)
    by_type: Dict[str, List[Node]] = field(default_factory=dict)

    @classmethod
    def build(cls, graph: Graph) -> "GraphIndex":
        index = cls(graph)
        for node in graph.nodes:
            if node.id in index.by_id:
                raise GraphShapeError(f"duplicate node id '{node.id}'")
            index.by_id[node.id] = node
            index.by_type.setdefault(node.type, []).append(node)
        return index

    def type_of(self, node_id: str) -> str:
        """Return the type of ``node_id`` or ``"unknown"`` for dangling ids."""

        node = self.by_id.get(node_id)
        return node.type if node is not None else UNKNOWN_TYPE

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.by_id


__all__ = ["GraphIndex", "UNKNOWN_TYPE"]
