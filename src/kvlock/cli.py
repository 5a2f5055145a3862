"""Command line entrypoint: run commands under a lock and inspect locks."""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from kvlock.core.exceptions import InvalidArgument, LockUnobtainable, StoreError
from kvlock.core.runner import LockRunner
from kvlock.core.settings import LockSettings, create_runner
from kvlock.utils.logging import get_logger


logger = get_logger("kvlock.cli")

EXIT_STORE_ERROR = 1
EXIT_UNOBTAINABLE = 2
EXIT_INVALID = 3
EXIT_COMMAND_FAILED = 127


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="kvlock", description="Distributed locks on a shared Redis.")
    parser.add_argument("--config", type=Path, default=None, help="Path to settings YAML (defaults to environment)")
    sub = parser.add_subparsers(dest="command", required=True)

    run_p = sub.add_parser(
        "run", help="Run a command while holding a lock", usage="kvlock run RESOURCE [options] -- CMD..."
    )
    run_p.add_argument("resource")
    run_p.add_argument("--ttl", type=int, default=None, help="Lock ttl in milliseconds")
    run_p.add_argument("--attempts", type=int, default=None, help="Maximum acquisition attempts")
    run_p.add_argument("--wait", type=int, default=None, help="Milliseconds between attempts")

    status_p = sub.add_parser("status", help="Show whether a lock is held")
    status_p.add_argument("resource")

    release_p = sub.add_parser("release", help="Release a lock with its ownership token")
    release_p.add_argument("resource")
    release_p.add_argument("token")

    touch_p = sub.add_parser("touch", help="Reset a lock ttl with its ownership token")
    touch_p.add_argument("resource")
    touch_p.add_argument("token")
    touch_p.add_argument("--ttl", type=int, default=None, help="New ttl in milliseconds")
    return parser


def load_settings(path: Optional[Path]) -> LockSettings:
    if path is not None:
        return LockSettings.from_file(path)
    return LockSettings.from_env()


def split_command(argv: Sequence[str]) -> Tuple[List[str], List[str]]:
    """Split ``argv`` at the first ``--`` into kvlock options and the command to run."""
    argv = list(argv)
    if "--" not in argv:
        return argv, []
    index = argv.index("--")
    return argv[:index], argv[index + 1 :]


def _or_default(value: Optional[int], default: int) -> int:
    return default if value is None else value


async def _run_locked(runner: LockRunner, settings: LockSettings, args: argparse.Namespace) -> int:
    cmd = args.cmd

    async def execute() -> int:
        proc = await asyncio.create_subprocess_exec(*cmd)
        return await proc.wait()

    return await runner.acquire_and_run(
        args.resource,
        _or_default(args.ttl, settings.default_ttl_ms),
        execute,
        max_attempts=_or_default(args.attempts, settings.max_attempts),
        wait_ms=_or_default(args.wait, settings.wait_ms),
    )


async def dispatch(runner: LockRunner, settings: LockSettings, args: argparse.Namespace) -> int:
    client = runner.client
    if args.command == "run":
        return await _run_locked(runner, settings, args)
    if args.command == "status":
        key = client.make_key(args.resource)
        if await client.store.exists(key):
            print(f"{key} held, ttl={await client.store.remaining_ttl(key)}ms")
        else:
            print(f"{key} free")
        return 0
    if args.command == "release":
        print(await client.unlock(args.resource, args.token))
        return 0
    if args.command == "touch":
        print(await client.touch(args.resource, args.token, _or_default(args.ttl, settings.default_ttl_ms)))
        return 0
    raise ValueError(f"unknown command {args.command!r}")


async def main(argv: Optional[Sequence[str]] = None, *, runner: Optional[LockRunner] = None) -> int:
    parser = build_parser()
    options, cmd = split_command(sys.argv[1:] if argv is None else argv)
    args = parser.parse_args(options)
    if args.command == "run" and not cmd:
        parser.error("run needs a command after --")
    if args.command != "run" and cmd:
        parser.error(f"{args.command} does not take a command")
    args.cmd = cmd
    settings = load_settings(args.config)
    runner = runner or create_runner(settings)
    try:
        return await dispatch(runner, settings, args)
    except LockUnobtainable as exc:
        logger.error("%s", exc)
        return EXIT_UNOBTAINABLE
    except StoreError as exc:
        logger.error("Store failure: %s", exc)
        return EXIT_STORE_ERROR
    except InvalidArgument as exc:
        logger.error("Invalid argument: %s", exc)
        return EXIT_INVALID
    except OSError as exc:
        logger.error("Cannot run %s: %s", cmd[0] if cmd else "command", exc)
        return EXIT_COMMAND_FAILED
    finally:
        await runner.quit()


def run() -> None:
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        sys.exit(130)


if __name__ == "__main__":
    run()
