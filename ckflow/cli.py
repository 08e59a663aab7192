"""CLI for CK-Flow: bootstrap the database, profiles and schedule sync."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys


async def cmd_init_db(args):
    """Create all tables."""
    from ckflow.db.engine import create_tables

    await create_tables()
    print("Tables created")


async def cmd_seed_bays(args):
    """Insert the default bays if none exist."""
    from ckflow.db import crud
    from ckflow.db.engine import async_session_factory, create_tables
    from ckflow.services.bay_tracker import DEFAULT_BAYS

    await create_tables()
    async with async_session_factory() as db:
        rows = await crud.seed_bays(db, DEFAULT_BAYS)
    for n, row in enumerate(rows, start=1):
        print(f"Bay {n}: {row.name} ({row.work_type})")


async def cmd_create_profile(args):
    """Create a profile and print its access token (shown once)."""
    from ckflow.db.engine import async_session_factory, create_tables
    from ckflow.services.auth import issue_token, resolve_role

    role = resolve_role(args.role)
    if args.role and role is None:
        print(f"Unknown role: {args.role} (expected owner, advisor or foreman)")
        sys.exit(1)

    await create_tables()
    async with async_session_factory() as db:
        token, profile = await issue_token(db, role, args.display_name, args.shop)

    print(f"Profile created: {profile.display_name} (id={profile.id}, role={profile.role or 'none'})")
    print(f"Token: {token}")


async def cmd_sync_calendar(args):
    """Run zero-touch calendar sync once against the database."""
    from ckflow.db.engine import async_session_factory, create_tables
    from ckflow.db.sql_backend import SqlOrderBackend
    from ckflow.config import get_settings
    from ckflow.schemas.order import Role, WorkType
    from ckflow.services.reconciler import ShopBoard
    from ckflow.services.timefmt import shop_zone

    await create_tables()
    board = ShopBoard(
        Role.OWNER,
        backend=SqlOrderBackend(async_session_factory),
        work_type=WorkType(args.work_type),
        tz=shop_zone(get_settings().board.timezone),
    )
    await board.start()
    await board.drain()
    await board.close()
    synced = [ro.id for ro in board.orders if ro.calendar_event_id]
    print(f"{len(synced)} calendar-linked orders: {', '.join(synced) or '-'}")


async def cmd_export_snapshot(args):
    """Dump the database board into a local snapshot directory."""
    from ckflow.db.engine import async_session_factory, create_tables
    from ckflow.db.sql_backend import SqlOrderBackend
    from ckflow.schemas.order import Role
    from ckflow.services.local_store import LocalSnapshot, LocalSnapshotStore
    from ckflow.services.reconciler import ShopBoard

    await create_tables()
    board = ShopBoard(Role.OWNER, backend=SqlOrderBackend(async_session_factory))
    await board.refetch()
    store = LocalSnapshotStore(args.out)
    ok = store.save(LocalSnapshot(
        orders=board.orders,
        bays=board.bays,
        calendar_events=board.calendar_events,
        column_orders=board.columns.snapshot(),
    ))
    if not ok:
        sys.exit(1)
    print(json.dumps({"orders": len(board.orders), "bays": len(board.bays), "out": args.out}))


def main():
    parser = argparse.ArgumentParser(description="CK-Flow CLI")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("init-db", help="Create database tables")
    subparsers.add_parser("seed-bays", help="Insert the default bays")

    cp = subparsers.add_parser("create-profile", help="Create a profile and access token")
    cp.add_argument("--role", default="", help="owner | advisor | foreman (empty for no role)")
    cp.add_argument("--display-name", default="", help="Name shown on log entries")
    cp.add_argument("--shop", default="default", help="Shop id")

    sc = subparsers.add_parser("sync-calendar", help="Materialize today's calendar events")
    sc.add_argument("--work-type", default="MECHANIC", choices=["MECHANIC", "BODY"])

    es = subparsers.add_parser("export-snapshot", help="Export the board to local JSON snapshots")
    es.add_argument("--out", default="data/export", help="Output directory")

    args = parser.parse_args()
    if not args.command:
        parser.print_help()
        sys.exit(1)

    commands = {
        "init-db": cmd_init_db,
        "seed-bays": cmd_seed_bays,
        "create-profile": cmd_create_profile,
        "sync-calendar": cmd_sync_calendar,
        "export-snapshot": cmd_export_snapshot,
    }
    asyncio.run(commands[args.command](args))


if __name__ == "__main__":
    main()
