from manu_node.node.entities import Node, node_id_from_created_at

__all__ = ["Node", "node_id_from_created_at"]
