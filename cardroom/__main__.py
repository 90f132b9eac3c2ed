import argparse
import asyncio
import logging

from poker.models import TableConfig

from .server import TableServer
from .store import MemoryPlayerStore, SqlitePlayerStore

logging.basicConfig(level=logging.INFO)


def main() -> None:
    parser = argparse.ArgumentParser(description="Cardroom poker table host")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8765)
    parser.add_argument(
        "--variant",
        default="holdem",
        help="holdem, omaha or five_card_draw",
    )
    parser.add_argument("--seats", type=int, default=6)
    parser.add_argument("--starting-stack", type=int, default=1_000)
    parser.add_argument("--sb", type=int, default=5)
    parser.add_argument("--bb", type=int, default=10)
    parser.add_argument("--ante", type=int, default=5, help="Ante for draw games")
    parser.add_argument(
        "--move-time",
        type=int,
        default=15_000,
        help="Move time in milliseconds before auto-fold (0 disables the timer)",
    )
    parser.add_argument(
        "--cooldown",
        type=int,
        default=3_000,
        help="Minimum milliseconds between commands from one player (0 disables)",
    )
    parser.add_argument("--db", default=None, help="SQLite file for player stacks (in-memory if omitted)")
    args = parser.parse_args()

    config = TableConfig(
        seats=args.seats,
        starting_stack=args.starting_stack,
        variant=args.variant,
        sb=args.sb,
        bb=args.bb,
        ante=args.ante,
        move_time_ms=args.move_time,
        command_cooldown_ms=args.cooldown,
    )

    if args.db:
        store = SqlitePlayerStore(args.db, starting_stack=args.starting_stack)
    else:
        store = MemoryPlayerStore(starting_stack=args.starting_stack)

    server = TableServer(config, store=store)
    try:
        asyncio.run(server.start(host=args.host, port=args.port))
    finally:
        store.close()


if __name__ == "__main__":
    main()
