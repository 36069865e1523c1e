"""CLI entrypoint for the manufacturing node shell."""

from __future__ import annotations

import argparse
import logging
from logging import getLogger
from pathlib import Path

import logfire
from dotenv import load_dotenv

from manu_node.cli.completion import install_readline, save_history
from manu_node.cli.shell import NodeShell
from manu_node.config import Config
from manu_node.storage import NodeStore

logger = getLogger(__name__)


def _parse_cli_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="manu-node",
        description="Interactive manager for manufacturing node records stored in a JSON file.",
    )
    parser.add_argument(
        "--data-dir",
        default=None,
        help="Directory holding nodes.json and the shell history "
        "(default: $MANU_NODE_DATA_DIR or ./data).",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level name, e.g. INFO or DEBUG (default: $MANU_NODE_LOG_LEVEL or WARNING).",
    )
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> Config:
    """Merge CLI flags over `MANU_NODE_*` settings."""

    overrides: dict[str, object] = {}
    if args.data_dir:
        overrides["data_dir"] = Path(args.data_dir)
    if args.log_level:
        overrides["log_level"] = args.log_level
    return Config(**overrides)  # type: ignore[arg-type]


def configure_logging(config: Config) -> None:
    logfire.configure(
        service_name="manu-node",
        send_to_logfire="if-token-present",
        console=None if config.log_console else False,
    )
    logging.basicConfig(
        level=config.log_level, handlers=[logfire.LogfireLoggingHandler()]
    )


def run(config: Config) -> None:
    """Build the store for `config` and run the shell until the user exits."""

    store = NodeStore.from_config(config)
    logger.info(f"Using nodes file {store.path}")

    try:
        import readline
    except ImportError:
        # No line editing, completion or history on this platform.
        readline = None  # type: ignore[assignment]

    if readline is not None:
        install_readline(readline, store, config.history_path)
    try:
        NodeShell(store).run()
    finally:
        if readline is not None:
            save_history(readline, config.history_path)


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint."""

    load_dotenv()
    config = build_config(_parse_cli_args(argv))
    configure_logging(config)
    run(config)
