# gentree/importers/family_tree_json.py

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional, Tuple

from ..models import TreeGraph
from ..trees import normalize_imported_tree


def parse_family_tree_json(path: str | Path) -> Tuple[TreeGraph, Optional[str]]:
    """
    Parse a saved tree file (``.gntree`` or ``.json``).

    Accepted shapes:
    {
      "name": str,
      "tree": { "rootPersonId": str | null, "people": { id: Person, ... } }
    }
    or the bare ``{ "rootPersonId": ..., "people": {...} }`` graph.

    Returns (graph, name); name is None for bare graphs.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(str(p))

    with open(p, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"{p.name} is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ValueError("JSON root must be an object")

    imported = normalize_imported_tree(data)
    if imported is None:
        raise ValueError("JSON must contain a 'people' object, either at the root or under 'tree'")
    return imported
