"""
命令行入口：python -m vehiclelister {extract,post,list}
"""

from __future__ import annotations

import argparse
import sys
from typing import Optional, Sequence

from .db.database import init_db
from .core import inventory
from .core.browser_manager import BrowserManager
from .core.poster import MARKETPLACE_CREATE_URL, extract_vehicle, post_vehicle


def _console_log(msg: str, level: str = "info") -> None:
    print(f"[browser] [{level.upper()}] {msg}")


def _cmd_extract(args: argparse.Namespace) -> int:
    vehicle_id = extract_vehicle(args.url)
    if vehicle_id is None:
        print("No vehicle detected or not a vehicle page")
        return 1
    print(f"Vehicle saved to inventory (id={vehicle_id})")
    return 0


def _cmd_post(args: argparse.Namespace) -> int:
    session = BrowserManager(log_fn=_console_log).launch()
    try:
        result = post_vehicle(args.vehicle_id, session=session, target_url=args.url)
        print(f"[{result.outcome}] {result.message}")
        if not args.close:
            # 发布按钮留给用户，确认后再关闭窗口
            input("Review the listing in the browser, then press Enter to close...")
    finally:
        session.close()
    return 0 if result.outcome != "failed" else 1


def _cmd_list(args: argparse.Namespace) -> int:
    rows = inventory.list_vehicles(args.status)
    if not rows:
        print("Inventory is empty")
        return 0
    for row in rows:
        print(
            f"{row['id']:>4}  {row['status']:<8}  "
            f"{row['title'] or '-':<40}  {len(row['images'])} images"
        )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vehiclelister",
        description="Extract vehicle listings and fill marketplace listing forms.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_extract = sub.add_parser("extract", help="extract a vehicle detail page into inventory")
    p_extract.add_argument("url")
    p_extract.set_defaults(func=_cmd_extract)

    p_post = sub.add_parser("post", help="open the listing form and fill it for a vehicle")
    p_post.add_argument("vehicle_id", type=int)
    p_post.add_argument("--url", default=MARKETPLACE_CREATE_URL, help="listing form URL")
    p_post.add_argument(
        "--close", action="store_true", help="close the browser right after filling"
    )
    p_post.set_defaults(func=_cmd_post)

    p_list = sub.add_parser("list", help="list inventory")
    p_list.add_argument(
        "--status", choices=["saved", "posting", "posted", "failed"], default=None
    )
    p_list.set_defaults(func=_cmd_list)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    init_db()
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
