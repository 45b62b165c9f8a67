"""Rewrite a graph's node ids through an id remap."""

from __future__ import annotations

from typing import AbstractSet, Dict, Mapping, Set

from .model import Graph, Node, ParamValue, Reference, Scope


def remap_param_value(
    value: ParamValue,
    id_remap: Mapping[str, str],
    dropped: AbstractSet[str] = frozenset(),
) -> ParamValue:
    """Return a copy of ``value`` with reference targets renamed.

    References to an id in ``dropped`` become ``None``.
    """

    if isinstance(value, Reference):
        target = id_remap.get(value.target)
        if target is None:
            return None if value.target in dropped else value
        return Reference(target=target, port=value.port, channel=value.channel)
    if isinstance(value, dict):
        return {key: remap_param_value(item, id_remap, dropped) for key, item in value.items()}
    if isinstance(value, list):
        return [remap_param_value(item, id_remap, dropped) for item in value]
    return value


def superseded_ids(graph: Graph, id_remap: Mapping[str, str]) -> Set[str]:
    """Ids of nodes that keep their id while another node is renamed onto it."""

    claimed = set(id_remap.values())
    return {node.id for node in graph.nodes if node.id not in id_remap and node.id in claimed}


def apply_remap(graph: Graph, id_remap: Mapping[str, str]) -> Graph:
    """Return a copy of ``graph`` with node ids, references and scopes renamed.

    Typically applied to the *current* graph with the remap returned by
    :func:`patchremap.reconcile`, so the running patch's state can be
    addressed by desired ids.  Renames are simultaneous, so swaps work.

    An unmatched node whose id is taken over by a renamed node is superseded:
    it is left out of the copy together with its scopes, and references to it
    become ``None``.  ``ValueError`` is raised when the remap sends two ids to
    the same target.
    """

    sources: Dict[str, str] = {}
    for old, new in id_remap.items():
        if new in sources:
            raise ValueError(f"remap sends both '{sources[new]}' and '{old}' to node id '{new}'")
        sources[new] = old

    dropped = superseded_ids(graph, id_remap)
    nodes = [
        Node(
            id=id_remap.get(node.id, node.id),
            type=node.type,
            params=remap_param_value(node.params, id_remap, dropped),
            id_is_explicit=node.id_is_explicit,
        )
        for node in graph.nodes
        if node.id not in dropped
    ]
    scopes = [
        Scope(node_id=id_remap.get(scope.node_id, scope.node_id), port=scope.port, extras=dict(scope.extras))
        for scope in graph.scopes
        if scope.node_id not in dropped
    ]
    return Graph(nodes=nodes, scopes=scopes)


__all__ = ["apply_remap", "remap_param_value", "superseded_ids"]
