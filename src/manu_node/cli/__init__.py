"""Interactive shell around :class:`manu_node.storage.NodeStore`.

Public entrypoints:
- `NodeShell`: the command loop.
- `manu_node.cli.main.main`: console-script entrypoint (`manu-node`).
"""

from manu_node.cli.shell import NodeShell

__all__ = ["NodeShell"]
