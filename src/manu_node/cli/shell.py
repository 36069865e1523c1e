"""Interactive command loop for managing manufacturing nodes.

`NodeShell` reads one command per line, calls into :class:`NodeStore`, and
renders results with `rich`.

Design notes / boundaries:
- Input is read through an injectable `read_line(prompt)` callable. It must
  raise `EOFError` or `KeyboardInterrupt` when the user ends input; the default
  is `Console.input`, which goes through the builtin `input()` and therefore
  through `readline` when it is loaded.
- Prompts and messages are rich markup. Anything that came from the user or
  the store is escaped before it is embedded.
- Title uniqueness is enforced here, before `save_node`/`update_node` are
  called; the store only answers `is_title_unique`.
- Every `NodeStoreError` aborts only the current command; the loop keeps
  going.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from logging import getLogger
from typing import TypeAlias

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from manu_node.cli.inputs import is_valid_input, parse_operations, truncate
from manu_node.node.entities import Node
from manu_node.storage import NodeStore, NodeStoreError

logger = getLogger(__name__)

ReadLine: TypeAlias = Callable[[str], str]

MAIN_PROMPT = "[green]>>> [/green]"

COMMANDS: tuple[str, ...] = (
    "create",
    "list",
    "view",
    "update",
    "delete",
    "clear",
    "cls",
    "help",
    "exit",
    "quit",
)
NODE_ARG_COMMANDS: frozenset[str] = frozenset({"view", "update", "delete"})

_HELP_ROWS: tuple[tuple[str, str], ...] = (
    ("create", "Create a new manufacturing node"),
    ("list", "List all nodes"),
    ("view", "View details of a specific node"),
    ("update", "Update a node"),
    ("delete", "Delete a node"),
    ("clear", "Clear the screen"),
    ("help", "Show this help message"),
    ("exit", "Exit the program"),
)


class _Cancelled(Exception):
    pass


class _InvalidInput(Exception):
    pass


class NodeShell:
    """Line-oriented shell over a :class:`NodeStore`."""

    def __init__(
        self,
        store: NodeStore,
        *,
        console: Console | None = None,
        read_line: ReadLine | None = None,
    ) -> None:
        self.store = store
        self.console = console or Console()
        self._read_line = read_line or self.console.input

    def run(self) -> None:
        """Run until `exit`/`quit`, EOF, or Ctrl+C at the main prompt."""

        self.console.print("[cyan]=== Manufacturing Node Manager CLI ===[/cyan]")
        self.console.print("Type 'help' for available commands")
        self.console.print()

        while True:
            try:
                line = self._read_line(MAIN_PROMPT)
            except (EOFError, KeyboardInterrupt):
                break
            if not self.handle(line):
                break

    def handle(self, line: str) -> bool:
        """Execute one command line. Returns false when the shell should stop."""

        parts = line.split()
        if not parts:
            return True

        command, args = parts[0], " ".join(parts[1:])
        if command in ("exit", "quit"):
            self.console.print("[yellow]Goodbye![/yellow]")
            return False

        handler = self._handlers().get(command)
        if handler is None:
            self.console.print(
                f"Unknown command: {escape(command)}. "
                "Type 'help' for available commands."
            )
            return True

        if command in NODE_ARG_COMMANDS and not args:
            self.console.print(f"[red]Usage: {command} <node-id or title>[/red]")
            return True

        try:
            handler(args)
        except _Cancelled:
            self.console.print("[red]\nCancelled[/red]")
        except _InvalidInput as e:
            self._error(str(e))
        except NodeStoreError as e:
            logger.info(f"Command {command!r} failed: {e}")
            self._error(str(e))
        return True

    def _handlers(self) -> dict[str, Callable[[str], None]]:
        return {
            "help": self._help,
            "create": self._create,
            "list": self._list,
            "view": self._view,
            "update": self._update,
            "delete": self._delete,
            "clear": self._clear,
            "cls": self._clear,
        }

    def _help(self, _args: str) -> None:
        self.console.print("\nAvailable commands:")
        for name, desc in _HELP_ROWS:
            self.console.print(f"  {name:<7} - {desc}")
        self.console.print()

    def _clear(self, _args: str) -> None:
        self.console.clear()

    def _create(self, _args: str) -> None:
        self.console.print("\n[yellow]Creating new node (Press Ctrl+C to cancel)[/yellow]")

        title = self._ask("Node title: ").strip()
        if not title:
            raise _InvalidInput("Title cannot be empty")
        self._require_valid(title, "Title")
        if not self.store.is_title_unique(title):
            raise _InvalidInput(f"A node with title '{title}' already exists")

        description = self._ask("Description: ").strip()
        self._require_valid(description, "Description")

        operations = self._ask_operations("Operations (comma-separated): ")

        address = self._ask("UNS Address (e.g., Site/Area/Line/Cell): ").strip()
        self._require_valid(address, "UNS Address")

        node = Node.create(title, description, operations or [], address)
        self.store.save_node(node)

        self.console.print("\n[green]✓[/green] Node created successfully!")
        self.console.print(f"ID: {escape(node.id_)}")
        self.console.print(f"Title: {escape(node.title)}\n")

    def _list(self, _args: str) -> None:
        nodes = self.store.load()
        if not nodes:
            self.console.print("\nNo nodes found. Create some nodes first!\n")
            return

        table = Table(title="Manufacturing Nodes", title_style="cyan", title_justify="left")
        table.add_column("ID", min_width=20, no_wrap=True)
        table.add_column("Title", min_width=30, no_wrap=True)
        table.add_column("UNS Address", min_width=35, no_wrap=True)
        for node in nodes:
            table.add_row(
                escape(node.id_),
                escape(truncate(node.title, 28)),
                escape(truncate(node.address, 33)),
            )
        self.console.print()
        self.console.print(table)
        self.console.print()

    def _view(self, identifier: str) -> None:
        node = self.store.get_node_by_id_or_title(identifier)

        self.console.print("\n[cyan]Node Details:[/cyan]")
        self.console.print("-" * 60)
        for label, value in (
            ("ID", node.id_),
            ("Title", node.title),
            ("Description", node.description),
            ("UNS Address", node.address),
            ("Operations", ", ".join(node.operations)),
            ("Created", _rfc3339(node.created_at)),
            ("Updated", _rfc3339(node.updated_at)),
        ):
            self.console.print(f"{label + ':':<13}{escape(value)}")
        self.console.print()

    def _update(self, identifier: str) -> None:
        existing = self.store.get_node_by_id_or_title(identifier)

        self.console.print(f"\nUpdating node: {escape(existing.title)}")
        self.console.print("[yellow]Press Enter to keep current value[/yellow]")

        title = self._ask(escape(f"Title [{existing.title}]: ")).strip()
        if not title:
            title = existing.title
        elif title != existing.title:
            self._require_valid(title, "Title")
            if not self.store.is_title_unique(title, existing.id_):
                raise _InvalidInput(f"A node with title '{title}' already exists")

        description = self._ask(escape(f"Description [{existing.description}]: "))
        if not description:
            description = existing.description
        self._require_valid(description, "Description")

        current_ops = ", ".join(existing.operations)
        operations = self._ask_operations(escape(f"Operations [{current_ops}]: "))
        if operations is None:
            operations = existing.operations

        address = self._ask(escape(f"UNS Address [{existing.address}]: "))
        if not address:
            address = existing.address
        self._require_valid(address, "UNS Address")

        # A clock behind the stored `created_at` is clamped by `update_node`.
        updated = existing.model_copy(
            update={
                "title": title,
                "description": description,
                "operations": list(operations),
                "address": address,
                "updated_at": datetime.now().astimezone(),
            }
        )
        self.store.update_node(existing.id_, updated)
        self.console.print("\n[green]✓[/green] Node updated successfully!")

    def _delete(self, identifier: str) -> None:
        node = self.store.get_node_by_id_or_title(identifier)

        confirm = self._ask(
            f"\n[yellow]Warning:[/yellow] Delete node '{escape(node.title)}' "
            f"(ID: {escape(node.id_)})? \\[y/N]: "
        )
        if confirm.strip().lower() not in ("y", "yes"):
            self.console.print("Deletion cancelled.")
            return

        self.store.delete_node(node.id_)
        self.console.print("\n[green]✓[/green] Node deleted successfully!")

    def _ask(self, prompt: str) -> str:
        try:
            return self._read_line(prompt)
        except (EOFError, KeyboardInterrupt) as e:
            raise _Cancelled() from e

    def _ask_operations(self, prompt: str) -> list[str] | None:
        """Return parsed operations, or `None` when the answer was blank."""

        raw = self._ask(prompt).strip()
        if not raw:
            return None
        try:
            return parse_operations(raw)
        except ValueError as e:
            raise _InvalidInput(str(e)) from e

    def _require_valid(self, value: str, label: str) -> None:
        if value and not is_valid_input(value):
            raise _InvalidInput(f"{label} contains invalid characters")

    def _error(self, message: str) -> None:
        self.console.print(f"[red]Error[/red]: {escape(message)}")


def _rfc3339(value: datetime | None) -> str:
    return value.isoformat(timespec="seconds") if value is not None else ""
