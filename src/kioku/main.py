"""Kioku entry point."""

import asyncio
import logging
import sys

from dotenv import find_dotenv, load_dotenv

from .cli import print_reminders, run_cli


def main() -> None:
    """Main entry point."""
    load_dotenv(find_dotenv(usecwd=True))
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")

    if len(sys.argv) > 1:
        command = sys.argv[1]

        if command == "reminders":
            print_reminders()
            return

    asyncio.run(run_cli())


if __name__ == "__main__":
    main()
