"""Command-line tools for inspecting connections over a JSON item dump.

Items are loaded from a JSON file holding either a list of item objects or
``{"items": [...]}``, indexed in an :class:`InMemoryVectorStore`, and run
through the same detector used in production.

Usage::

    python -m connections detect --items items.json
    python -m connections detect --items items.json --id msg-42 --min-score 0.5 --stats
    python -m connections pair --items items.json msg-1 msg-2
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from connections.detector import ConnectionDetector, DetectionOptions
from connections.items import Item
from connections.stats import summarize
from connections.vector_store import InMemoryVectorStore

log = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Loading
# ------------------------------------------------------------------


def load_items(path: Path) -> list[Item]:
    """Read items from *path*.

    Raises
    ------
    ValueError
        If the file is not valid JSON or has an unexpected shape.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"{path}: invalid JSON ({exc})") from exc

    if isinstance(data, dict):
        data = data.get("items")
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a list of items or an 'items' key")

    return [Item.from_dict(entry) for entry in data]


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False))


# ------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="python -m connections")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging on stderr")
    sub = parser.add_subparsers(dest="command", required=True)

    detect = sub.add_parser("detect", help="detect connections for one or all items")
    detect.add_argument("--items", type=Path, required=True)
    detect.add_argument("--id", dest="item_id", help="only this source item")
    detect.add_argument("--min-score", type=float)
    detect.add_argument("--max-connections", type=int)
    detect.add_argument("--window-days", type=float)
    detect.add_argument("--type", dest="item_types", action="append", help="allowed target type (repeatable)")
    detect.add_argument("--stats", action="store_true", help="append aggregate statistics")

    pair = sub.add_parser("pair", help="check whether two items are connected")
    pair.add_argument("--items", type=Path, required=True)
    pair.add_argument("first")
    pair.add_argument("second")
    pair.add_argument("--min-score", type=float, default=0.6)

    return parser


async def _detect(args: argparse.Namespace, items: list[Item]) -> dict[str, Any]:
    store = InMemoryVectorStore()
    store.add_many(items)
    detector = ConnectionDetector(store)

    sources = items
    if args.item_id is not None:
        sources = [i for i in items if i.id == args.item_id]
        if not sources:
            raise ValueError(f"No item with id {args.item_id!r}")

    options = DetectionOptions(
        min_score=args.min_score,
        max_connections=args.max_connections,
        temporal_window_days=args.window_days,
        item_types=args.item_types,
    )
    results = await detector.detect_connections_batch(sources, options)

    payload: dict[str, Any] = {"results": [r.to_dict() for r in results]}
    if args.stats:
        payload["stats"] = summarize(results).to_dict()
    return payload


def run_detect(args: argparse.Namespace) -> None:
    """Run detection and print the results as JSON."""
    items = load_items(args.items)
    _print_json(asyncio.run(_detect(args, items)))


def run_pair(args: argparse.Namespace) -> None:
    """Print whether two items from the file are connected."""
    by_id = {i.id: i for i in load_items(args.items)}
    missing = [x for x in (args.first, args.second) if x not in by_id]
    if missing:
        raise ValueError(f"Unknown item id(s): {', '.join(missing)}")

    detector = ConnectionDetector(InMemoryVectorStore())
    connected = detector.are_items_connected(
        by_id[args.first], by_id[args.second], min_score=args.min_score,
    )
    _print_json({"first": args.first, "second": args.second, "connected": connected})


def dispatch(argv: list[str]) -> None:
    """Main CLI dispatcher.

    Parameters
    ----------
    argv:
        Command-line arguments after ``python -m connections``.
    """
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        if args.command == "detect":
            run_detect(args)
        elif args.command == "pair":
            run_pair(args)
    except (OSError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        sys.exit(1)
