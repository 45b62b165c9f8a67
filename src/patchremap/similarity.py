"""Similarity between an old and a new node of the same type."""

from __future__ import annotations

from collections import Counter
from typing import Collection, Mapping, Tuple

from .anchoring import is_explicit_id
from .features import Feature, FeatureKind
from .model import Node

PARAM_WEIGHT = 0.6
DOWNSTREAM_WEIGHT = 0.4
EXPLICIT_SAME_ID_FLOOR = 0.99
_EPSILON = 1e-6
_EMPTY: Counter = Counter()


def number_similarity(a: float, b: float) -> float:
    """Smooth relative closeness of two numbers, 1.0 when equal."""

    relative = abs(a - b) / (abs(a) + abs(b) + _EPSILON)
    return 1.0 - min(1.0, relative)


def feature_similarity(a: Feature | None, b: Feature | None) -> Tuple[float, float]:
    """Return ``(score, weight)`` for one path present on either side."""

    if a is None or b is None:
        present = a if a is not None else b
        return 0.0, max(_EPSILON, present.weight if present is not None else 0.0)
    weight = (a.weight + b.weight) / 2.0
    if a.kind is not b.kind:
        return 0.0, weight
    if a.kind is FeatureKind.NUMBER:
        return number_similarity(a.value, b.value), weight
    return (1.0 if a.value == b.value else 0.0), weight


def param_similarity(features_a: Mapping[str, Feature], features_b: Mapping[str, Feature]) -> float:
    """Weighted agreement over the union of both nodes' parameter paths."""

    weighted = 0.0
    total = 0.0
    for path in features_a.keys() | features_b.keys():
        score, weight = feature_similarity(features_a.get(path), features_b.get(path))
        weighted += score * weight
        total += weight
    if total <= 0.0:
        return 0.0
    return weighted / total


def downstream_similarity(a: Counter, b: Counter) -> float:
    """Multiset overlap ``sum(min) / sum(max)``; 1.0 when both are empty."""

    low = 0
    high = 0
    for token in a.keys() | b.keys():
        low += min(a[token], b[token])
        high += max(a[token], b[token])
    if high == 0:
        return 1.0
    return low / high


def score(
    old: Node,
    new: Node,
    usage_old: Counter | None,
    usage_new: Counter | None,
    features_old: Mapping[str, Feature],
    features_new: Mapping[str, Feature],
    reserved_ids: Collection[str] = (),
) -> float:
    """Similarity in ``[0, 1]`` of ``old`` (current graph) and ``new`` (desired graph)."""

    if old.type != new.type:
        return 0.0
    params = param_similarity(features_new, features_old)
    downstream = downstream_similarity(usage_new or _EMPTY, usage_old or _EMPTY)
    base = PARAM_WEIGHT * params + DOWNSTREAM_WEIGHT * downstream
    if new.id == old.id and is_explicit_id(new, reserved_ids):
        base = max(base, EXPLICIT_SAME_ID_FLOOR)
    return base


__all__ = [
    "downstream_similarity",
    "feature_similarity",
    "number_similarity",
    "param_similarity",
    "score",
]
