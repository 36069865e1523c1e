"""Tab completion and line history for the interactive shell.

Completion works on the whole input line (readline word delimiters are
cleared) so titles containing spaces complete as one unit:

- a line without a space completes to command names;
- `view|update|delete <prefix>` completes to node ids and titles currently in
  the store, matching the prefix case-insensitively.

Candidates are read from the store on every completion request, so they
always reflect the file on disk.
"""

from __future__ import annotations

from logging import getLogger
from pathlib import Path
from types import ModuleType

from manu_node.cli.shell import COMMANDS, NODE_ARG_COMMANDS
from manu_node.storage import NodeStore, NodeStoreError

logger = getLogger(__name__)


def complete_line(line: str, store: NodeStore) -> list[str]:
    """Return full-line completions for `line`."""

    command, sep, rest = line.partition(" ")
    if not sep:
        return [name + " " for name in COMMANDS if name.startswith(command)]
    if command not in NODE_ARG_COMMANDS:
        return []

    try:
        nodes = store.load()
    except NodeStoreError as e:
        logger.debug(f"Completion skipped, store unreadable: {e}")
        return []

    prefix = rest.lstrip().lower()
    candidates: list[str] = []
    for node in nodes:
        for value in (node.id_, node.title):
            if value and value.lower().startswith(prefix) and value not in candidates:
                candidates.append(value)
    return [f"{command} {value}" for value in candidates]


class LineCompleter:
    """`readline` completer callable backed by :func:`complete_line`.

    With empty completer delimiters, `text` is the whole line up to the cursor.
    """

    def __init__(self, store: NodeStore) -> None:
        self.store = store
        self._matches: list[str] = []

    def __call__(self, text: str, state: int) -> str | None:
        if state == 0:
            self._matches = complete_line(text, self.store)
        if state < len(self._matches):
            return self._matches[state]
        return None


def install_readline(
    readline: ModuleType, store: NodeStore, history_path: Path
) -> None:
    """Enable completion and load previous history into `readline`."""

    readline.set_completer_delims("")
    readline.set_completer(LineCompleter(store))
    readline.parse_and_bind("tab: complete")
    try:
        readline.read_history_file(str(history_path))
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Could not read shell history {history_path}: {e}")


def save_history(readline: ModuleType, history_path: Path) -> None:
    try:
        readline.write_history_file(str(history_path))
    except OSError as e:
        logger.warning(f"Could not write shell history {history_path}: {e}")
