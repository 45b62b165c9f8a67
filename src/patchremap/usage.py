"""Downstream-usage fingerprints: how each producer's output is consumed."""

from __future__ import annotations

from collections import Counter
from typing import Dict

from .model import Graph, Reference, walk_params

UsageIndex = Dict[str, Counter]


def usage_token(consumer_type: str, path: str, port: str) -> str:
    return f"{consumer_type}:{path}:{port}"


def build_usage_index(graph: Graph) -> UsageIndex:
    """Return ``producer id -> Counter(token)`` for every reference in ``graph``.

    Tokens carry the consumer's type, the parameter path holding the
    reference and the referenced port, never an id, so the fingerprint is
    stable when either end of an edge is renamed.
    """

    usage: UsageIndex = {}
    for consumer in graph.nodes:
        for path, leaf in walk_params(consumer.params):
            if not isinstance(leaf, Reference):
                continue
            bag = usage.setdefault(leaf.target, Counter())
            bag[usage_token(consumer.type, path, leaf.port)] += 1
    return usage


__all__ = ["UsageIndex", "build_usage_index", "usage_token"]
