#!/usr/bin/env python3
"""Focus timer CLI.

Runs the focus engine headlessly against the local profile store.

Usage:
    focus-timer run
    focus-timer run --task-id hw-3 --task-title "Essay draft" --cycles 4
    focus-timer run --focus-minutes 1 --break-minutes 1 --recent-logs
    focus-timer profile init --user alice --name "Alice"
    focus-timer profile show --user alice
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Optional

from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from .config import ConfigError, Settings, load_settings
from .engine import FocusTimerEngine
from .log import asyncio_exception_handler, configure_logging, log_buffer
from .points import Profile
from .profile_store import SqliteProfileStore
from .timer import (
    BreakEnded,
    BreakStarted,
    FocusEvent,
    FocusPolicy,
    Notice,
    SessionCompleted,
    TaskRef,
    format_clock,
)

console = Console()


def _describe_event(event: FocusEvent) -> str:
    if isinstance(event, SessionCompleted):
        return (f"[bold green]Focus session complete![/] +{event.points_earned} points "
                f"(cycle {event.total_cycles_so_far})")
    if isinstance(event, BreakStarted):
        kind = "long" if event.is_long_break else "short"
        return f"[cyan]Taking a {kind} break[/] ({event.break_minutes} min)"
    if isinstance(event, BreakEnded):
        return f"[cyan]{event.message}[/]"
    if isinstance(event, Notice):
        return f"[yellow]{event.message}[/]"
    return str(event.to_dict())


def _print_recent_logs() -> None:
    table = Table(title="Recent log entries")
    table.add_column("Time")
    table.add_column("Level")
    table.add_column("Message")
    for entry in log_buffer:
        table.add_row(entry["timestamp"], entry["level"], entry["message"])
    console.print(table)


def _settings_with_overrides(args: argparse.Namespace) -> Settings:
    settings = load_settings()
    updates = {}
    if getattr(args, "focus_minutes", None) is not None:
        updates["focus_minutes"] = args.focus_minutes
    if getattr(args, "break_minutes", None) is not None:
        updates["short_break_minutes"] = args.break_minutes
    if updates:
        try:
            policy = FocusPolicy(**{**settings.policy.model_dump(), **updates})
        except ValidationError as e:
            raise ConfigError(f"Invalid focus policy: {e}") from e
        settings = settings.model_copy(update={"policy": policy})
    if getattr(args, "user", None):
        settings = settings.model_copy(update={"user_id": args.user})
    return settings


async def run_cycles(engine: FocusTimerEngine, task: Optional[TaskRef], cycles: int) -> int:
    """Drive ``cycles`` focus phases, restarting focus after each break."""
    events = engine.events()
    try:
        await engine.start_focus_session(task)
        console.print(f"Focusing for {format_clock(engine.snapshot.total_seconds)}")
        async for event in events:
            console.print(_describe_event(event))
            if isinstance(event, BreakEnded):
                if engine.cycle_count >= cycles:
                    break
                await engine.start_focus_session(task)
                console.print(f"Focusing for {format_clock(engine.snapshot.total_seconds)}")
    finally:
        events.close()
    return engine.cycle_count


async def _run(settings: Settings, task: Optional[TaskRef], cycles: int) -> int:
    asyncio.get_running_loop().set_exception_handler(asyncio_exception_handler)

    store = SqliteProfileStore(settings.db_path, settings.user_id)
    await store.init_db()
    if settings.user_id is None:
        console.print("[yellow]No user configured; points will not be saved.[/]")

    async with FocusTimerEngine(store, settings.policy) as engine:
        completed = await run_cycles(engine, task, cycles)

    if settings.user_id:
        balance = await store.points_for(settings.user_id)
        console.print(f"{completed} cycle(s) done. {settings.user_id} now has {balance} points.")
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    settings = _settings_with_overrides(args)
    configure_logging(settings.log_level)

    task = None
    if args.task_id:
        task = TaskRef(id=args.task_id, title=args.task_title)

    try:
        return asyncio.run(_run(settings, task, args.cycles))
    except KeyboardInterrupt:
        console.print("\nTimer stopped.")
        return 0
    finally:
        if args.recent_logs:
            _print_recent_logs()


async def _profile_init(settings: Settings, args: argparse.Namespace) -> int:
    store = SqliteProfileStore(settings.db_path)
    await store.init_db()
    existing = await store.get_profile(args.user)
    if existing is not None:
        console.print(f"Profile {args.user} already exists ({existing.points} points)")
        return 0
    await store.upsert_profile(Profile(id=args.user, name=args.name or "", email=args.email or ""))
    console.print(f"Created profile {args.user}")
    return 0


async def _profile_show(settings: Settings) -> int:
    if not settings.user_id:
        console.print("Error: no user given (use --user or FOCUS_TIMER_USER)")
        return 1
    store = SqliteProfileStore(settings.db_path, settings.user_id)
    await store.init_db()
    profile = await store.get_current_profile()
    if profile is None:
        console.print(f"Error: no profile for {settings.user_id}")
        return 1

    table = Table(title=f"Profile {profile.id}")
    table.add_column("Field")
    table.add_column("Value")
    for key, value in profile.model_dump().items():
        table.add_row(key, str(value))
    console.print(table)
    return 0


def cmd_profile(args: argparse.Namespace) -> int:
    settings = _settings_with_overrides(args)
    configure_logging(settings.log_level)
    if args.profile_command == "init":
        return asyncio.run(_profile_init(settings, args))
    return asyncio.run(_profile_show(settings))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="focus-timer",
        description="Pomodoro focus sessions with point awards",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run focus sessions in the terminal")
    run_parser.add_argument("--task-id", help="Assignment to link the session to")
    run_parser.add_argument("--task-title", help="Assignment title")
    run_parser.add_argument("--user", help="Profile that earns the points")
    run_parser.add_argument("--focus-minutes", type=int, help="Override focus length")
    run_parser.add_argument("--break-minutes", type=int, help="Override short break length")
    run_parser.add_argument("--cycles", type=int, default=1, help="Focus phases to run (default: 1)")
    run_parser.add_argument("--recent-logs", action="store_true", help="Print recent log entries on exit")
    run_parser.set_defaults(func=cmd_run)

    profile_parser = subparsers.add_parser("profile", help="Manage the local profile store")
    profile_sub = profile_parser.add_subparsers(dest="profile_command", required=True)

    init_parser = profile_sub.add_parser("init", help="Create a profile")
    init_parser.add_argument("--user", required=True)
    init_parser.add_argument("--name")
    init_parser.add_argument("--email")
    init_parser.set_defaults(func=cmd_profile)

    show_parser = profile_sub.add_parser("show", help="Show a profile's points")
    show_parser.add_argument("--user")
    show_parser.set_defaults(func=cmd_profile)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if getattr(args, "cycles", 1) < 1:
        parser.error("--cycles must be at least 1")
    try:
        return args.func(args)
    except ConfigError as e:
        console.print(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
