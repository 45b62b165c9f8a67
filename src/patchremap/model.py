"""Graph snapshots exchanged between the patch compiler and the reconciler."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Sequence, Tuple, Union


class GraphShapeError(ValueError):
    """Raised when a graph does not have the documented wire shape."""


@dataclass(frozen=True, slots=True)
class Reference:
    """Edge from the node holding this value to ``target``'s output ``port``."""

    target: str
    port: str
    channel: int | None = None


ParamValue = Union[
    None, bool, int, float, str, Reference, List["ParamValue"], Dict[str, "ParamValue"]
]


@dataclass(slots=True)
class Node:
    id: str
    type: str
    params: ParamValue = field(default_factory=dict)
    # ``None`` means the compiler did not say; see ``anchoring.is_explicit_id``.
    id_is_explicit: bool | None = None


@dataclass(slots=True)
class Scope:
    """Oscilloscope subscription on a node output.

    Scopes take no part in matching. They are carried so that
    :func:`patchremap.remap.apply_remap` can keep them pointed at the right node.
    """

    node_id: str
    port: str
    extras: Mapping[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class Graph:
    nodes: List[Node] = field(default_factory=list)
    scopes: List[Scope] = field(default_factory=list)

    def __iter__(self) -> Iterator[Node]:
        return iter(self.nodes)

    def __len__(self) -> int:
        return len(self.nodes)


def walk_params(value: ParamValue, path: str = "") -> Iterator[Tuple[str, ParamValue]]:
    """Yield ``(path, leaf)`` pairs for every leaf reachable from ``value``.

    Mapping keys are visited in sorted order and joined with ``.``; list
    items append ``[index]``.  References are leaves.  An empty container
    yields nothing; a bare scalar at the root is reported under ``$``.
    """

    if isinstance(value, dict):
        for key in sorted(value):
            yield from walk_params(value[key], f"{path}.{key}" if path else key)
        return
    if isinstance(value, list):
        for index, item in enumerate(value):
            yield from walk_params(item, f"{path}[{index}]")
        return
    yield (path or "$", value)


def _parse_reference(data: Mapping[str, Any]) -> Reference | None:
    if data.get("kind") == "reference":
        target = data.get("targetNodeId", data.get("target_node_id"))
        port = data.get("port")
    elif data.get("type") == "cable":
        # Legacy cable shape emitted by older patch compilers.
        target = data.get("module")
        port = data.get("port")
    else:
        return None
    if not isinstance(target, str) or not isinstance(port, str):
        return None
    channel = data.get("channel")
    if channel is not None and not isinstance(channel, bool) and isinstance(channel, (int, float)):
        channel = int(channel)
    elif channel is not None:
        channel = None
    return Reference(target=target, port=port, channel=channel)


def parse_param_value(data: Any) -> ParamValue:
    """Convert decoded JSON into the closed :data:`ParamValue` union."""

    if data is None or isinstance(data, (bool, int, float, str, Reference)):
        return data
    if isinstance(data, Mapping):
        reference = _parse_reference(data)
        if reference is not None:
            return reference
        return {str(key): parse_param_value(item) for key, item in data.items()}
    if isinstance(data, (list, tuple)):
        return [parse_param_value(item) for item in data]
    # Anything else is kept as an opaque leaf and compared by equality.
    return data


def _normalise_node(item: Any, index: int) -> Node:
    if not isinstance(item, Mapping):
        raise GraphShapeError(f"nodes[{index}] must be a mapping, got {type(item).__name__}")
    node_id = item.get("id")
    node_type = item.get("type", item.get("moduleType"))
    if not isinstance(node_id, str) or not node_id:
        raise GraphShapeError(f"nodes[{index}].id must be a non-empty string")
    if not isinstance(node_type, str) or not node_type:
        raise GraphShapeError(f"nodes[{index}] ('{node_id}') must declare a string type")
    explicit = item.get("idIsExplicit", item.get("id_is_explicit"))
    if explicit is not None and not isinstance(explicit, bool):
        raise GraphShapeError(f"nodes[{index}].idIsExplicit must be a boolean or null")
    params = item.get("params")
    return Node(
        id=node_id,
        type=node_type,
        params=parse_param_value({} if params is None else params),
        id_is_explicit=explicit,
    )


def _normalise_scope(item: Any, index: int) -> Scope:
    if not isinstance(item, Mapping):
        raise GraphShapeError(f"scopes[{index}] must be a mapping")
    target = item.get("item", item)
    if not isinstance(target, Mapping):
        raise GraphShapeError(f"scopes[{index}].item must be a mapping")
    node_id = target.get("moduleId", target.get("nodeId"))
    port = target.get("portName", target.get("port"))
    if not isinstance(node_id, str) or not isinstance(port, str):
        raise GraphShapeError(f"scopes[{index}] must reference a node id and port name")
    extras = {key: value for key, value in item.items() if key != "item"}
    return Scope(node_id=node_id, port=port, extras=extras)


def graph_from_mapping(data: Any) -> Graph:
    """Build a :class:`Graph` from its JSON wire form.

    Raises :class:`GraphShapeError` for caller contract violations; missing
    ``params`` and dangling references are accepted.
    """

    if not isinstance(data, Mapping):
        raise GraphShapeError(f"graph must be a mapping, got {type(data).__name__}")
    node_items = data.get("nodes", data.get("modules", []))
    if not isinstance(node_items, Sequence) or isinstance(node_items, (str, bytes)):
        raise GraphShapeError("graph.nodes must be a list")
    nodes = [_normalise_node(item, index) for index, item in enumerate(node_items)]
    seen: set[str] = set()
    for node in nodes:
        if node.id in seen:
            raise GraphShapeError(f"duplicate node id '{node.id}'")
        seen.add(node.id)
    scope_items = data.get("scopes", []) or []
    if not isinstance(scope_items, Sequence) or isinstance(scope_items, (str, bytes)):
        raise GraphShapeError("graph.scopes must be a list")
    scopes = [_normalise_scope(item, index) for index, item in enumerate(scope_items)]
    return Graph(nodes=nodes, scopes=scopes)


def _param_to_wire(value: ParamValue) -> Any:
    if isinstance(value, Reference):
        wire: Dict[str, Any] = {"kind": "reference", "targetNodeId": value.target, "port": value.port}
        if value.channel is not None:
            wire["channel"] = value.channel
        return wire
    if isinstance(value, dict):
        return {key: _param_to_wire(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_param_to_wire(item) for item in value]
    return value


def graph_to_mapping(graph: Graph) -> Dict[str, Any]:
    """Serialise ``graph`` back into the wire form accepted by :func:`graph_from_mapping`."""

    nodes = []
    for node in graph.nodes:
        entry: Dict[str, Any] = {"id": node.id, "type": node.type, "params": _param_to_wire(node.params)}
        if node.id_is_explicit is not None:
            entry["idIsExplicit"] = node.id_is_explicit
        nodes.append(entry)
    scopes = [
        {**dict(scope.extras), "item": {"type": "ModuleOutput", "moduleId": scope.node_id, "portName": scope.port}}
        for scope in graph.scopes
    ]
    return {"nodes": nodes, "scopes": scopes}


def load_graph(path: str | Path) -> Graph:
    """Load a :class:`Graph` from a JSON file at ``path``."""

    with open(path, "r", encoding="utf8") as fh:
        raw = json.load(fh)
    return graph_from_mapping(raw)


__all__ = [
    "Graph",
    "GraphShapeError",
    "Node",
    "ParamValue",
    "Reference",
    "Scope",
    "graph_from_mapping",
    "graph_to_mapping",
    "load_graph",
    "parse_param_value",
    "walk_params",
]
