"""CLI entrypoint for Companion Chat."""

from __future__ import annotations

import argparse
import asyncio
from collections.abc import Sequence
from importlib import metadata
from pathlib import Path
import sys

from .config import ensure_config_dir, load_config
from .exceptions import CompanionChatError
from .logging_utils import configure_logging
from .repl import CompanionRepl
from .session import CompanionSession


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="companion-chat",
        description="Companion Chat - terminal chat with an animated AI companion",
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Print version and exit",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to an alternate config.toml",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    """Ensure configuration exists, handle CLI flags, and run the chat loop."""

    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.version:
        try:
            version = metadata.version("companion-chat")
        except metadata.PackageNotFoundError:
            version = "0.0.0"
        print(f"companion-chat {version}")
        return

    ensure_config_dir()
    config = load_config(Path(args.config) if args.config else None)
    configure_logging(config.logging.model_dump())

    try:
        session = CompanionSession(config)
    except CompanionChatError as exc:
        print(f"companion-chat: {exc}", file=sys.stderr)
        raise SystemExit(2) from exc

    try:
        asyncio.run(CompanionRepl(session).run())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
