"""Structural reconciliation of live-coded audio patch graphs."""

from __future__ import annotations

from .config import ReconcileOptions, load_options
from .model import Graph, GraphShapeError, Node, Reference, Scope, graph_from_mapping, load_graph
from .reconcile import ReconcileResult, reconcile
from .remap import apply_remap

__all__ = [
    "Graph",
    "GraphShapeError",
    "Node",
    "ReconcileOptions",
    "ReconcileResult",
    "Reference",
    "Scope",
    "apply_remap",
    "graph_from_mapping",
    "load_graph",
    "load_options",
    "reconcile",
]
