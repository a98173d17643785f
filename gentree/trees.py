"""Collections of named trees: create, rename, delete, select, import, export."""
from __future__ import annotations

import logging
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Optional, Tuple

from pydantic import ValidationError

from .models import StoredTree, TreeCollection, TreeGraph

logger = logging.getLogger(__name__)

DEFAULT_TREE_NAME = "Untitled Tree"
IMPORTED_TREE_NAME = "Imported Tree"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def clone_tree_data(source: Optional[TreeGraph]) -> TreeGraph:
    if source is None:
        return TreeGraph()
    return source.model_copy(deep=True)


def create_stored_tree(name: str, tree: Optional[TreeGraph] = None) -> StoredTree:
    name = (name or "").strip()
    return StoredTree(
        id=str(uuid.uuid4()),
        name=name or DEFAULT_TREE_NAME,
        tree=clone_tree_data(tree),
        updated_at=_now(),
    )


def get_tree(collection: TreeCollection, tree_id: str) -> Optional[StoredTree]:
    for entry in collection.trees:
        if entry.id == tree_id:
            return entry
    return None


def active_tree(collection: TreeCollection) -> Optional[StoredTree]:
    if collection.active_tree_id is None:
        return None
    return get_tree(collection, collection.active_tree_id)


def add_tree(collection: TreeCollection, name: str, tree: Optional[TreeGraph] = None,
             activate: bool = True) -> Tuple[TreeCollection, StoredTree]:
    stored = create_stored_tree(name, tree)
    update: dict = {"trees": [*collection.trees, stored]}
    if activate:
        update["active_tree_id"] = stored.id
    return collection.model_copy(update=update), stored


def _replace_entry(collection: TreeCollection, entry: StoredTree) -> TreeCollection:
    trees = [entry if item.id == entry.id else item for item in collection.trees]
    return collection.model_copy(update={"trees": trees})


def rename_tree(collection: TreeCollection, tree_id: str, name: str) -> TreeCollection:
    """Rename a tree. Blank or unchanged names leave the collection as it is."""
    entry = get_tree(collection, tree_id)
    if entry is None:
        raise KeyError(tree_id)
    trimmed = (name or "").strip()
    if not trimmed or trimmed == entry.name:
        return collection
    return _replace_entry(collection, entry.model_copy(update={"name": trimmed, "updated_at": _now()}))


def update_tree_graph(collection: TreeCollection, tree_id: str, graph: TreeGraph) -> TreeCollection:
    entry = get_tree(collection, tree_id)
    if entry is None:
        raise KeyError(tree_id)
    return _replace_entry(collection, entry.model_copy(update={"tree": graph, "updated_at": _now()}))


def select_tree(collection: TreeCollection, tree_id: str) -> TreeCollection:
    if get_tree(collection, tree_id) is None:
        raise KeyError(tree_id)
    return collection.model_copy(update={"active_tree_id": tree_id})


def delete_tree(collection: TreeCollection, tree_id: str) -> TreeCollection:
    """
    Remove a tree. Deleting the active tree activates the first remaining one,
    or a fresh empty tree when none remain.
    """
    if get_tree(collection, tree_id) is None:
        raise KeyError(tree_id)
    remaining = [item for item in collection.trees if item.id != tree_id]
    active_id = collection.active_tree_id
    if tree_id == active_id:
        if not remaining:
            remaining.append(create_stored_tree(DEFAULT_TREE_NAME))
        active_id = remaining[0].id
    return collection.model_copy(update={"trees": remaining, "active_tree_id": active_id})


def _is_tree_data(value: Any) -> bool:
    return isinstance(value, dict) and isinstance(value.get("people"), dict)


def normalize_imported_tree(value: Any) -> Optional[Tuple[TreeGraph, Optional[str]]]:
    """
    Accept an exported ``{"name", "tree"}`` payload or a bare graph.
    Returns (graph, name) or None when the value is not a tree.
    """
    if not isinstance(value, dict):
        return None
    try:
        if _is_tree_data(value.get("tree")):
            name = value.get("name")
            return TreeGraph.model_validate(value["tree"]), name if isinstance(name, str) else None
        if _is_tree_data(value):
            return TreeGraph.model_validate(value), None
    except ValidationError as e:
        logger.warning("Rejected imported tree: %s", e)
    return None


def export_payload(entry: StoredTree) -> dict:
    return {"name": entry.name, "tree": entry.tree.to_json_dict()}


def slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower().strip()).strip("-")
    return slug or "family-tree"
