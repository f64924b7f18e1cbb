"""
Command line interface for PerfKit.

Usage:
    perfkit server [--host HOST] [--port PORT]
    perfkit capture TARGET [--profiles cpu,heap] [--interval 30] [--count 3]
    perfkit session ls
    perfkit session profiles SESSION
    perfkit get SESSION PROFILE_ID [--raw]
"""

import argparse
import asyncio
import json
import sys
from typing import List, Optional

from perfkit.backend.config import Config, load_config
from perfkit.backend.main import configure_logging, run
from perfkit.backend.services import Capturer, CaptureResult, parse_kinds
from perfkit.backend.storage import DatabaseInterface, SQLiteDatabase


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="perfkit",
        description="Collector and viewer for pprof profiles and k6 results",
    )
    parser.add_argument("-c", "--config", help="Config file path")
    subparsers = parser.add_subparsers(dest="command", required=True)

    server = subparsers.add_parser("server", help="Start the collector server")
    server.add_argument("-H", "--host", help="Server host")
    server.add_argument("-p", "--port", type=int, help="Server port")

    capture = subparsers.add_parser(
        "capture", help="Capture profiles from a pprof endpoint"
    )
    capture.add_argument("target", help="Target pprof URL, e.g. http://localhost:6060")
    capture.add_argument(
        "-p",
        "--profiles",
        default="all",
        help="Comma separated profiles (cpu,heap,goroutine,block,mutex,allocs,threadcreate)",
    )
    capture.add_argument(
        "-i", "--interval", type=float, help="Seconds between captures (periodic mode)"
    )
    capture.add_argument(
        "-n", "--count", type=int, default=0, help="Captures in periodic mode (0=infinite)"
    )
    capture.add_argument(
        "--cpu-duration", type=float, default=30.0, help="CPU profile duration in seconds"
    )
    capture.add_argument("-s", "--session", help="Session name for grouping profiles")
    capture.add_argument("--project", help="Project name")
    capture.add_argument(
        "--server", default="http://localhost:8080", help="PerfKit server URL"
    )

    session = subparsers.add_parser("session", help="Inspect stored sessions")
    session_commands = session.add_subparsers(dest="session_command", required=True)
    session_commands.add_parser("ls", help="List sessions")
    session_profiles = session_commands.add_parser(
        "profiles", help="List the profiles of a session"
    )
    session_profiles.add_argument("session", help="Session name")

    get = subparsers.add_parser("get", help="Print a stored profile")
    get.add_argument("session", help="Session the profile belongs to")
    get.add_argument("profile_id", help="Profile ID")
    get.add_argument(
        "--raw", action="store_true", help="Write the uploaded payload to stdout"
    )

    return parser


def _print_results(results: List[CaptureResult]) -> None:
    for result in results:
        if result.ok:
            print(f"  {result.kind.value:<12} {result.size:>10} bytes  {result.profile_id}")
        else:
            print(f"  {result.kind.value:<12} FAILED: {result.error}")


async def _capture(args: argparse.Namespace) -> int:
    kinds = parse_kinds(args.profiles)

    print(f"Capturing from {args.target} -> {args.server}")
    if args.session:
        print(f"Session: {args.session}")

    async with Capturer(
        target_url=args.target,
        server_url=args.server,
        cpu_duration=args.cpu_duration,
        session=args.session,
        project=args.project,
    ) as capturer:
        if not args.interval:
            results = await capturer.capture_all(kinds)
            _print_results(results)
            return 0 if all(r.ok for r in results) else 1

        async def on_round(number: int, results: List[CaptureResult]) -> None:
            print(f"Round {number}:")
            _print_results(results)

        await capturer.run_periodic(kinds, args.interval, args.count, on_round)
        return 0


async def _session_ls(database: DatabaseInterface) -> int:
    sessions = await database.list_sessions()
    if not sessions:
        print("No sessions found.")
        return 0

    for session in sessions:
        print(
            f"{session.name:<24} {session.profile_count:>5} profiles  "
            f"last {session.last_seen:%Y-%m-%d %H:%M:%S}"
        )
    return 0


async def _session_profiles(database: DatabaseInterface, session: str) -> int:
    profiles = await database.list_profiles(session=session, limit=sys.maxsize)
    if not profiles:
        print(f'No profiles found in session "{session}".')
        return 0

    for p in profiles:
        print(
            f"{p.id}  {p.kind.value:<12}  "
            f"{p.created_at:%Y-%m-%d %H:%M:%S}  {p.name}"
        )
    return 0


async def _get(
    database: DatabaseInterface, session: str, profile_id: str, raw: bool
) -> int:
    profile = await database.get_profile(profile_id)
    if profile is None:
        print(f"Error: Profile not found: {profile_id}", file=sys.stderr)
        return 1

    if profile.session != session:
        print(
            f'Error: profile {profile_id} does not belong to session "{session}"',
            file=sys.stderr,
        )
        return 1

    if raw:
        sys.stdout.buffer.write(profile.raw_data)
        sys.stdout.flush()
    else:
        print(json.dumps(profile.to_dict(), indent=2))
    return 0


async def _with_store(config: Config, command, *args) -> int:
    database = SQLiteDatabase(config.db_path)
    try:
        return await command(database, *args)
    finally:
        await database.close()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    configure_logging(config.log_level)

    if args.command == "server":
        run(host=args.host, port=args.port, config_path=args.config)
        return 0

    if args.command == "session":
        if args.session_command == "ls":
            return asyncio.run(_with_store(config, _session_ls))
        return asyncio.run(_with_store(config, _session_profiles, args.session))

    if args.command == "get":
        return asyncio.run(
            _with_store(config, _get, args.session, args.profile_id, args.raw)
        )

    try:
        return asyncio.run(_capture(args))
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        print("\nStopping capture...")
        return 0


if __name__ == "__main__":
    sys.exit(main())
