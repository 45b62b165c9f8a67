"""Pin nodes with a strong identity claim before fuzzy matching."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Collection, Dict, Set

from .indexer import GraphIndex
from .model import Node


def is_synthesised_id(node_id: str, node_type: str) -> bool:
    """Return ``True`` for compiler-generated ids of the form ``<type>-<n>``."""

    return re.fullmatch(rf"{re.escape(node_type)}-\d+", node_id) is not None


def is_explicit_id(node: Node, reserved_ids: Collection[str] = ()) -> bool:
    """Return whether ``node``'s id was authored by the user.

    The compiler's ``id_is_explicit`` flag wins when present.  Older graphs
    lack it, in which case reserved ids count as explicit and ids following
    the synthesised ``<type>-<n>`` pattern do not.
    """

    if node.id_is_explicit is not None:
        return node.id_is_explicit
    if node.id in reserved_ids:
        return True
    return not is_synthesised_id(node.id, node.type)


@dataclass(slots=True)
class Anchors:
    # current id -> desired id
    mapping: Dict[str, str] = field(default_factory=dict)
    used_current: Set[str] = field(default_factory=set)
    anchored_desired: Set[str] = field(default_factory=set)

    def pin(self, current_id: str, desired_id: str) -> None:
        self.mapping[current_id] = desired_id
        self.used_current.add(current_id)
        self.anchored_desired.add(desired_id)


def anchor_identities(
    desired: GraphIndex,
    current: GraphIndex,
    reserved_ids: Collection[str],
) -> Anchors:
    """Seed the id mapping with reserved ids and explicit same-id/same-type nodes."""

    anchors = Anchors()
    for reserved in reserved_ids:
        if reserved in current and reserved in desired:
            anchors.pin(reserved, reserved)
    for node in desired.graph.nodes:
        if node.id in reserved_ids or not is_explicit_id(node, reserved_ids):
            continue
        previous = current.by_id.get(node.id)
        if previous is not None and previous.type == node.type:
            anchors.pin(previous.id, node.id)
    return anchors


__all__ = ["Anchors", "anchor_identities", "is_explicit_id", "is_synthesised_id"]
