"""Configuration for patch reconciliation."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Mapping, Sequence, Tuple

import numpy as np

DEFAULT_MATCH_THRESHOLD = 0.65
DEFAULT_AMBIGUITY_MARGIN = 0.05
# Combined desired + current candidates of one type; the solver is cubic in this.
DEFAULT_MAX_POOL_SIZE = 1024
RESERVED_NODE_IDS: Tuple[str, ...] = ("root", "root_clock")

DebugSink = Callable[[str], None]
AssignmentSolver = Callable[[np.ndarray], np.ndarray]


@dataclass(slots=True)
class ReconcileOptions:
    """Tunables for :func:`patchremap.reconcile`.

    ``solver`` takes a square cost matrix and returns, for every row, the
    column it was assigned; ``None`` selects the built-in solver.
    """

    match_threshold: float = DEFAULT_MATCH_THRESHOLD
    ambiguity_margin: float = DEFAULT_AMBIGUITY_MARGIN
    debug_sink: DebugSink | None = None
    max_pool_size: int = DEFAULT_MAX_POOL_SIZE
    reserved_ids: Tuple[str, ...] = field(default=RESERVED_NODE_IDS)
    solver: AssignmentSolver | None = None

    def __post_init__(self) -> None:
        self.match_threshold = float(self.match_threshold)
        self.ambiguity_margin = float(self.ambiguity_margin)
        self.max_pool_size = int(self.max_pool_size)
        self.reserved_ids = tuple(str(item) for item in self.reserved_ids)
        if not 0.0 <= self.match_threshold <= 1.0:
            raise ValueError(f"match_threshold must lie in [0, 1], got {self.match_threshold}")
        if self.ambiguity_margin < 0.0:
            raise ValueError(f"ambiguity_margin must be non-negative, got {self.ambiguity_margin}")
        if self.max_pool_size <= 0:
            raise ValueError(f"max_pool_size must be positive, got {self.max_pool_size}")

    def debug(self, message: str) -> None:
        if self.debug_sink is not None:
            self.debug_sink(message)


def _lookup(data: Mapping[str, Any], snake: str, camel: str, default: Any) -> Any:
    if snake in data:
        return data[snake]
    return data.get(camel, default)


def _normalise_reserved(value: Any) -> Tuple[str, ...]:
    if value is None:
        return RESERVED_NODE_IDS
    if isinstance(value, str) or not isinstance(value, Sequence):
        raise TypeError("reserved_ids must be a list of node ids")
    return tuple(str(item) for item in value)


def options_from_mapping(data: Mapping[str, Any], **overrides: Any) -> ReconcileOptions:
    """Build :class:`ReconcileOptions` from decoded JSON plus keyword overrides."""

    values = dict(
        match_threshold=float(_lookup(data, "match_threshold", "matchThreshold", DEFAULT_MATCH_THRESHOLD)),
        ambiguity_margin=float(_lookup(data, "ambiguity_margin", "ambiguityMargin", DEFAULT_AMBIGUITY_MARGIN)),
        max_pool_size=int(_lookup(data, "max_pool_size", "maxPoolSize", DEFAULT_MAX_POOL_SIZE)),
        reserved_ids=_normalise_reserved(_lookup(data, "reserved_ids", "reservedIds", None)),
    )
    values.update({key: value for key, value in overrides.items() if value is not None})
    return ReconcileOptions(**values)


def load_options(path: str | Path, **overrides: Any) -> ReconcileOptions:
    """Load :class:`ReconcileOptions` from the JSON file at ``path``."""

    with open(path, "r", encoding="utf8") as fh:
        raw = json.load(fh)
    if not isinstance(raw, Mapping):
        raise ValueError(f"{path}: options file must contain a JSON object")
    return options_from_mapping(raw, **overrides)


__all__ = [
    "AssignmentSolver",
    "DEFAULT_AMBIGUITY_MARGIN",
    "DEFAULT_MATCH_THRESHOLD",
    "DEFAULT_MAX_POOL_SIZE",
    "DebugSink",
    "RESERVED_NODE_IDS",
    "ReconcileOptions",
    "load_options",
    "options_from_mapping",
]
