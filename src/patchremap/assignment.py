"""Per-type optimal assignment between desired and current nodes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Sequence

import numpy as np

from .config import ReconcileOptions
from .model import Node

try:  # pragma: no cover - optional dependency
    from scipy.optimize import linear_sum_assignment
except Exception:  # pragma: no cover - optional dependency
    linear_sum_assignment = None

RAW_DTYPE = np.float64

ScoreFn = Callable[[Node, Node], float]


def _as_square(cost) -> np.ndarray:
    matrix = np.asarray(cost, dtype=RAW_DTYPE)
    if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
        raise ValueError(f"cost matrix must be square, got shape {matrix.shape}")
    if not np.isfinite(matrix).all():
        raise ValueError("cost matrix must contain only finite values")
    return matrix


def solve_min_cost_assignment(cost) -> np.ndarray:
    """Minimum-cost perfect assignment on a square matrix.

    Shortest augmenting path with row/column potentials (O(k^3)).  Returns
    ``row_to_column`` where ``row_to_column[i]`` is the column given to row
    ``i``.  Ties resolve towards the lowest column index.
    """

    matrix = _as_square(cost)
    size = matrix.shape[0]
    # 1-based bookkeeping; column 0 is the virtual source of each augmenting search.
    u = np.zeros(size + 1, dtype=RAW_DTYPE)
    v = np.zeros(size + 1, dtype=RAW_DTYPE)
    owner = np.zeros(size + 1, dtype=np.intp)
    way = np.zeros(size + 1, dtype=np.intp)
    for row in range(1, size + 1):
        owner[0] = row
        col = 0
        minv = np.full(size + 1, np.inf, dtype=RAW_DTYPE)
        used = np.zeros(size + 1, dtype=bool)
        while True:
            used[col] = True
            current_row = owner[col]
            free = ~used
            reduced = matrix[current_row - 1] - u[current_row] - v[1:]
            improve = free[1:] & (reduced < minv[1:])
            minv[1:][improve] = reduced[improve]
            way[1:][improve] = col
            candidates = np.where(free, minv, np.inf)
            next_col = int(np.argmin(candidates))
            delta = candidates[next_col]
            settled = np.flatnonzero(used)
            u[owner[settled]] += delta
            v[settled] -= delta
            minv[free] -= delta
            col = next_col
            if owner[col] == 0:
                break
        while col != 0:
            previous = way[col]
            owner[col] = owner[previous]
            col = previous
    row_to_column = np.full(size, -1, dtype=np.intp)
    columns = np.arange(size, dtype=np.intp)
    assigned = owner[1:] > 0
    row_to_column[owner[1:][assigned] - 1] = columns[assigned]
    return row_to_column


def scipy_assignment(cost) -> np.ndarray:
    """Same contract as :func:`solve_min_cost_assignment`, backed by SciPy."""

    if linear_sum_assignment is None:  # pragma: no cover - depends on optional dependency
        raise RuntimeError("scipy is required for the scipy assignment strategy")
    matrix = _as_square(cost)
    rows, cols = linear_sum_assignment(matrix)
    row_to_column = np.full(matrix.shape[0], -1, dtype=np.intp)
    row_to_column[rows] = cols
    return row_to_column


def build_cost_matrix(scores: np.ndarray, match_threshold: float) -> np.ndarray:
    """Pad an ``(m, n)`` score matrix into the square ``(m + n)`` cost matrix.

    Real cells cost ``1 - score``.  Every other cell costs the price of
    declining a match, ``1 - match_threshold``: the ``m`` dummy columns let a
    desired node stay unmatched, the ``n`` dummy rows let a current node go
    unused.  Dummy rows are not free, otherwise large instances degenerate
    into dummy rows claiming real columns.
    """

    m, n = scores.shape
    decline = 1.0 - float(match_threshold)
    cost = np.full((m + n, m + n), decline, dtype=RAW_DTYPE)
    cost[:m, :n] = 1.0 - scores
    return cost


def _top_two(row: np.ndarray) -> tuple[float, float]:
    if row.size == 1:
        return float(row[0]), -1.0
    top = np.partition(row, row.size - 2)[-2:]
    return float(top[1]), float(top[0])


@dataclass(frozen=True, slots=True)
class Match:
    current_id: str
    desired_id: str
    score: float


def match_type(
    node_type: str,
    desired_nodes: Sequence[Node],
    current_nodes: Sequence[Node],
    score_fn: ScoreFn,
    options: ReconcileOptions,
) -> List[Match]:
    """Optimally pair desired and current candidates of one node type.

    Pairs below ``options.match_threshold`` or whose best score does not beat
    the runner-up by ``options.ambiguity_margin`` are dropped.
    """

    m = len(desired_nodes)
    n = len(current_nodes)
    if m == 0 or n == 0:
        return []
    if m + n > options.max_pool_size:
        options.debug(
            f"[patch-remap] skip type={node_type} pool={m + n} exceeds max_pool_size={options.max_pool_size}"
        )
        return []

    scores = np.empty((m, n), dtype=RAW_DTYPE)
    for i, desired in enumerate(desired_nodes):
        for j, current in enumerate(current_nodes):
            scores[i, j] = score_fn(current, desired)

    solver = options.solver or solve_min_cost_assignment
    row_to_column = solver(build_cost_matrix(scores, options.match_threshold))

    threshold = options.match_threshold
    required = options.ambiguity_margin
    matches: List[Match] = []
    for i, desired in enumerate(desired_nodes):
        col = int(row_to_column[i])
        if col < 0 or col >= n:
            continue
        current = current_nodes[col]
        value = float(scores[i, col])
        best, second = _top_two(scores[i])
        margin = best - second
        options.debug(
            f"[patch-remap] type={node_type} desired={desired.id} candidate={current.id} "
            f"score={value:.4f} best={best:.4f} second={second:.4f} margin={margin:.4f} "
            f"sameId={desired.id == current.id}"
        )
        if value < threshold:
            options.debug(
                f"[patch-remap] reject (below-threshold) desired={desired.id} "
                f"score={value:.4f} threshold={threshold:.4f}"
            )
            continue
        if margin < required:
            options.debug(
                f"[patch-remap] reject (ambiguous) desired={desired.id} best={best:.4f} "
                f"second={second:.4f} margin={margin:.4f} required={required:.4f}"
            )
            continue
        options.debug(f"[patch-remap] accept type={node_type} {current.id} -> {desired.id} score={value:.4f}")
        matches.append(Match(current_id=current.id, desired_id=desired.id, score=value))
    return matches


__all__ = [
    "Match",
    "build_cost_matrix",
    "match_type",
    "scipy_assignment",
    "solve_min_cost_assignment",
]
