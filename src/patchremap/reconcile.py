"""Map node ids of a running patch onto a freshly compiled one."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Dict, List

from .anchoring import anchor_identities
from .assignment import match_type
from .config import ReconcileOptions
from .features import extract_graph_features
from .indexer import GraphIndex
from .model import Graph, GraphShapeError, Node
from .similarity import score
from .usage import build_usage_index


@dataclass(slots=True)
class ReconcileResult:
    """Outcome of :func:`reconcile`.

    ``applied_graph`` is always the desired graph object itself; ids are
    never rewritten.  ``id_remap`` maps current ids to desired ids and omits
    identity pairs, so an empty mapping means "nothing was renamed".
    """

    applied_graph: Graph
    id_remap: Dict[str, str]


def _pools(index: GraphIndex, skip: set[str] | frozenset[str]) -> Dict[str, List[Node]]:
    pools: Dict[str, List[Node]] = {}
    for node in index.graph.nodes:
        if node.id in skip:
            continue
        pools.setdefault(node.type, []).append(node)
    return pools


def reconcile(
    desired: Graph,
    current: Graph | None,
    options: ReconcileOptions | None = None,
) -> ReconcileResult:
    """Decide which node of ``current`` each node of ``desired`` continues.

    Nodes that end up unmapped are simply new as far as the audio engine is
    concerned: their state starts fresh.
    """

    if not isinstance(desired, Graph):
        raise GraphShapeError(f"desired graph must be a Graph, got {type(desired).__name__}")
    if current is None:
        return ReconcileResult(applied_graph=desired, id_remap={})
    if not isinstance(current, Graph):
        raise GraphShapeError(f"current graph must be a Graph or None, got {type(current).__name__}")
    options = options or ReconcileOptions()
    started = time.perf_counter()
    reserved = frozenset(options.reserved_ids)

    desired_index = GraphIndex.build(desired)
    current_index = GraphIndex.build(current)
    anchors = anchor_identities(desired_index, current_index, options.reserved_ids)

    desired_usage = build_usage_index(desired)
    current_usage = build_usage_index(current)
    desired_features = extract_graph_features(desired_index)
    current_features = extract_graph_features(current_index)

    def pair_score(old: Node, new: Node) -> float:
        return score(
            old,
            new,
            current_usage.get(old.id),
            desired_usage.get(new.id),
            current_features[old.id],
            desired_features[new.id],
            reserved,
        )

    mapping = dict(anchors.mapping)
    desired_pools = _pools(desired_index, reserved | anchors.anchored_desired)
    current_pools = _pools(current_index, reserved | anchors.used_current)
    for node_type, desired_nodes in desired_pools.items():
        matches = match_type(
            node_type,
            desired_nodes,
            current_pools.get(node_type, []),
            pair_score,
            options,
        )
        for match in matches:
            mapping[match.current_id] = match.desired_id

    id_remap = {old: new for old, new in mapping.items() if old != new}
    elapsed_ms = (time.perf_counter() - started) * 1000.0
    options.debug(f"[patch-remap] elapsed={elapsed_ms:.3f}ms")
    options.debug(f"[patch-remap] done remapped={len(id_remap)}")
    if id_remap:
        pairs = ", ".join(f"{old}->{new}" for old, new in id_remap.items())
        options.debug(f"[patch-remap] remaps {pairs}")
    return ReconcileResult(applied_graph=desired, id_remap=id_remap)


__all__ = ["ReconcileResult", "reconcile"]
