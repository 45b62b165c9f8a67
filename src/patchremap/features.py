"""Flatten node parameters into comparable, path-keyed features."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Mapping

from .indexer import UNKNOWN_TYPE, GraphIndex
from .model import Node, Reference, walk_params


class FeatureKind(str, Enum):
    REFERENCE = "reference"
    NUMBER = "number"
    BOOLEAN = "boolean"
    STRING = "string"
    NULL = "null"
    OTHER = "other"


# Connectivity outweighs incidental constants.
KIND_WEIGHTS: Mapping[FeatureKind, float] = {
    FeatureKind.REFERENCE: 2.0,
    FeatureKind.NUMBER: 1.0,
    FeatureKind.BOOLEAN: 1.0,
    FeatureKind.STRING: 1.0,
    FeatureKind.NULL: 1.0,
    FeatureKind.OTHER: 0.75,
}


@dataclass(frozen=True, slots=True)
class Feature:
    path: str
    kind: FeatureKind
    value: Any
    weight: float


FeatureMap = Dict[str, Feature]


def classify(leaf: Any, type_of: Callable[[str], str]) -> tuple[FeatureKind, Any]:
    """Return the feature kind and comparison value for a parameter leaf."""

    if isinstance(leaf, Reference):
        target_type = type_of(leaf.target) or UNKNOWN_TYPE
        return FeatureKind.REFERENCE, f"{target_type}:{leaf.port}"
    # bool first: it is an int subclass.
    if isinstance(leaf, bool):
        return FeatureKind.BOOLEAN, leaf
    if isinstance(leaf, (int, float)):
        return FeatureKind.NUMBER, float(leaf)
    if isinstance(leaf, str):
        return FeatureKind.STRING, leaf
    if leaf is None:
        return FeatureKind.NULL, None
    return FeatureKind.OTHER, leaf


def extract_features(node: Node, type_of: Callable[[str], str]) -> FeatureMap:
    """Map every leaf of ``node.params`` to a :class:`Feature`.

    ``type_of`` resolves a node id in the node's own graph to its type; it is
    used to canonicalise references so a renamed producer does not change the
    features of its consumers.
    """

    features: FeatureMap = {}
    for path, leaf in walk_params(node.params):
        kind, value = classify(leaf, type_of)
        features[path] = Feature(path=path, kind=kind, value=value, weight=KIND_WEIGHTS[kind])
    return features


def extract_graph_features(index: GraphIndex) -> Dict[str, FeatureMap]:
    return {node.id: extract_features(node, index.type_of) for node in index.graph.nodes}


__all__ = [
    "Feature",
    "FeatureKind",
    "FeatureMap",
    "KIND_WEIGHTS",
    "classify",
    "extract_features",
    "extract_graph_features",
]
