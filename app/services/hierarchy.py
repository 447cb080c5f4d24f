"""
Parent-pointer tree maintenance shared by branches, divisions and positions.

Every node stores ``level`` (depth from its root) and ``path`` (dot-joined
codes from the root down to the node). Descendants are found by path prefix,
so any move of a node rewrites the level and path of its whole subtree.
"""
import logging
import re
from typing import Dict, List, Optional, Tuple

from app.database.db_operations import db_ops
from app.utils.errors import ValidationError

logger = logging.getLogger(__name__)


def compute_placement(parent: Optional[Dict], code: str) -> Tuple[int, str]:
    """Level and path of a node with the given code placed under parent"""
    if parent is None:
        return 0, code
    return parent.get("level", 0) + 1, f"{parent['path']}.{code}"


def descendants_query(path: str) -> Dict:
    return {"path": {"$regex": f"^{re.escape(path)}\\."}}


def build_tree(nodes: List[Dict], parent_field: str = "parent", children_key: str = "children") -> List[Dict]:
    """Nest serialized nodes under their parents.

    Nodes are ordered by (level, code). A node whose parent is not in the
    list is returned as a root.
    """
    ordered = sorted(nodes, key=lambda n: (n.get("level", 0), n.get("code", "")))
    by_id = {}
    for node in ordered:
        node[children_key] = []
        by_id[str(node["_id"])] = node

    roots = []
    for node in ordered:
        parent_id = node.get(parent_field)
        parent = by_id.get(str(parent_id)) if parent_id else None
        if parent is None:
            roots.append(node)
        else:
            parent[children_key].append(node)
    return roots


async def get_children(collection: str, node_id: str, parent_field: str = "parent") -> List[Dict]:
    return await db_ops.get_all(collection, {parent_field: node_id}, limit=0, sort=[("code", 1)])


async def get_descendants(collection: str, node: Dict) -> List[Dict]:
    return await db_ops.get_all(
        collection,
        descendants_query(node["path"]),
        limit=0,
        sort=[("level", 1), ("code", 1)]
    )


async def creates_cycle(collection: str, node_id: str, new_parent_id: str, parent_field: str = "parent") -> bool:
    """True when new_parent is the node itself or sits somewhere below it"""
    visited = set()
    current_id = new_parent_id
    while current_id:
        if str(current_id) == str(node_id):
            return True
        if current_id in visited:
            # pre-existing loop in stored data
            return True
        visited.add(current_id)
        current = await db_ops.get_by_id(collection, current_id)
        if current is None:
            return False
        current_id = current.get(parent_field)
    return False


async def relocate(
    collection: str,
    node: Dict,
    new_parent: Optional[Dict],
    code: Optional[str] = None,
    parent_field: str = "parent",
    extra: Optional[Dict] = None,
) -> Dict:
    """Move node (and its subtree) under new_parent, optionally renaming its code.

    Raises ValidationError when the move would make the node its own ancestor.
    """
    node_id = str(node["_id"])
    new_parent_id = str(new_parent["_id"]) if new_parent else None

    if new_parent_id is not None:
        if new_parent_id == node_id:
            raise ValidationError("A node cannot be its own parent")
        if await creates_cycle(collection, node_id, new_parent_id, parent_field):
            raise ValidationError("This change would create a cycle in the hierarchy")

    old_level, old_path = node.get("level", 0), node["path"]
    new_level, new_path = compute_placement(new_parent, code or node["code"])

    descendants = await get_descendants(collection, node)

    update = {parent_field: new_parent_id, "level": new_level, "path": new_path}
    if code:
        update["code"] = code
    if extra:
        update.update(extra)
    updated = await db_ops.update(collection, node_id, update)

    if new_path != old_path or new_level != old_level:
        shift = new_level - old_level
        for descendant in descendants:
            await db_ops.update(collection, str(descendant["_id"]), {
                "path": new_path + descendant["path"][len(old_path):],
                "level": descendant.get("level", 0) + shift,
            })
        logger.info(
            "Relocated %s %s (%s -> %s), %d descendants rewritten",
            collection, node_id, old_path, new_path, len(descendants)
        )
    return updated
