"""Command line entry point for offline patch reconciliation."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import List, Sequence

from .config import DebugSink, load_options, options_from_mapping
from .diagnostics import enable_remap_logging, log_remap_event, set_remap_log_path
from .model import graph_to_mapping, load_graph
from .reconcile import reconcile
from .remap import apply_remap


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Match node ids of a running patch graph to a newly compiled one"
    )
    parser.add_argument("--desired", type=Path, required=True, help="Path to the newly compiled graph (JSON)")
    parser.add_argument(
        "--current",
        type=Path,
        help="Path to the currently running graph (JSON); omit on first run",
    )
    parser.add_argument("--options", type=Path, help="Path to a JSON file of reconcile options")
    parser.add_argument("--threshold", type=float, help="Minimum similarity for a match (0-1)")
    parser.add_argument("--margin", type=float, help="Required lead of the best candidate over the runner-up")
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Print every matching decision to stderr",
    )
    parser.add_argument(
        "--log",
        type=Path,
        nargs="?",
        const=Path("logs/patch_remap.log"),
        help="Append matching decisions to a log file (default logs/patch_remap.log)",
    )
    parser.add_argument(
        "--apply",
        action="store_true",
        help="Also print the current graph rewritten into desired ids; superseded nodes are dropped",
    )
    return parser


def _stderr_sink(message: str) -> None:
    sys.stderr.write(f"{message}\n")


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    sinks: List[DebugSink] = []
    if args.verbose:
        sinks.append(_stderr_sink)
    if args.log is not None:
        set_remap_log_path(args.log)
        enable_remap_logging(True)
        sinks.append(log_remap_event)

    def debug_sink(message: str) -> None:
        for sink in sinks:
            sink(message)

    overrides = dict(
        match_threshold=args.threshold,
        ambiguity_margin=args.margin,
        debug_sink=debug_sink if sinks else None,
    )
    if args.options is not None:
        options = load_options(args.options, **overrides)
    else:
        options = options_from_mapping({}, **overrides)

    desired = load_graph(args.desired)
    current = load_graph(args.current) if args.current is not None else None
    result = reconcile(desired, current, options)

    if args.apply:
        applied = apply_remap(current, result.id_remap) if current is not None else desired
        payload = {"idRemap": result.id_remap, "graph": graph_to_mapping(applied)}
    else:
        payload = {"idRemap": result.id_remap}
    print(json.dumps(payload, indent=2, sort_keys=True))
    return 0


__all__ = ["main", "build_parser"]
