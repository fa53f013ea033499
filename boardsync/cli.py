#!/usr/bin/env python3
"""
boardsync: print a board's filtered view

Fetches one board snapshot from the board service and prints each list with
the tasks that pass the given filters. Tasks waiting on unfinished
dependencies are marked with "⧗".

Usage:
    boardsync --board b1                               # everything
    boardsync --board b1 --search deploy --label red-500
    boardsync --board b1 --member u1 --member u2 --due-soon
    boardsync --board b1 --api http://localhost:5000/api --config ./boardsync.yaml
"""

import argparse
import logging
import sys
from typing import List, Optional

from .api import HttpBoardApi
from .config import SyncConfig, setup_logging
from .dependencies import DependencyGraph
from .errors import BoardError
from .filters import FilterCriteria, visible
from .schema import BoardState

logger = logging.getLogger(__name__)


def render(state: BoardState, criteria: FilterCriteria) -> str:
    """Plain-text rendering of the visible board."""
    graph = DependencyGraph(state)
    shown = visible(state, criteria)
    lines = [f"{state.title or state.id}"]
    if criteria.is_active:
        lines[0] += "  (filtered)"
    for lst in state.ordered_lists():
        ids = shown.get(lst.id, ())
        lines.append("")
        lines.append(f"── {lst.title} ({len(ids)}/{len(lst.task_ids)})")
        for tid in ids:
            task = state.tasks[tid]
            mark = "⧗" if not graph.is_satisfied(tid) else " "
            extra = []
            if task.checklist:
                extra.append(f"[{task.checklist_done}/{len(task.checklist)}]")
            if task.due_date:
                extra.append(f"due {task.due_date.date().isoformat()}")
            if task.labels:
                extra.append(",".join(l.color for l in task.labels))
            lines.append(f"  {mark} {task.title}" + (f"  {' '.join(extra)}" if extra else ""))
    return "\n".join(lines)


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Print a Kanban board's filtered view")
    ap.add_argument("--board", required=True, help="Board id to fetch")
    ap.add_argument("--api", default=None, help="Board service base URL (default from config)")
    ap.add_argument("--config", default=None, help="Path to boardsync.yaml")
    ap.add_argument("--search", default="", help="Case-insensitive title search")
    ap.add_argument("--label", action="append", default=[], help="Label color (repeatable)")
    ap.add_argument("--member", action="append", default=[], help="Member id (repeatable)")
    ap.add_argument("--due-soon", action="store_true", help="Only tasks due within the configured window")
    args = ap.parse_args(argv)

    cfg = SyncConfig.load(args.config)
    if args.api:
        cfg.api_url = args.api
    setup_logging(cfg.log_level)

    criteria = FilterCriteria.build(
        search=args.search,
        labels=args.label,
        members=args.member,
        due_within_days=cfg.due_window_days if args.due_soon else None,
    )

    api = HttpBoardApi(cfg.api_url, token=cfg.api_token, timeout=cfg.request_timeout)
    try:
        state = BoardState.from_dict(api.fetch_board(args.board))
    except (BoardError, ValueError) as e:
        logger.error(f"Cannot load board {args.board}: {e}")
        return 1

    print(render(state, criteria))
    return 0


if __name__ == "__main__":
    sys.exit(main())
