"""Entry point for `python -m snooze` / the `snooze` console script."""

from __future__ import annotations

import argparse
import asyncio
import os


def _run() -> None:
    from snooze.app import SnoozeApp

    asyncio.run(SnoozeApp().run())


def main() -> None:
    from snooze import __version__

    parser = argparse.ArgumentParser(
        prog="snooze",
        description="Stop an idle Docker Compose project and wake it on demand",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--log-level",
        help="Override LOGGING__LEVEL (e.g. DEBUG)",
    )
    args = parser.parse_args()

    if args.log_level:
        # before snooze.logger/config are imported, so both pick it up
        os.environ["LOG_LEVEL"] = args.log_level
        os.environ["LOGGING__LEVEL"] = args.log_level

    _run()


if __name__ == "__main__":
    main()
