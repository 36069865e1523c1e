"""`python -m manu_node` entrypoint."""

from __future__ import annotations

from manu_node.cli.main import main

if __name__ == "__main__":
    main()
