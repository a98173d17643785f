from __future__ import annotations
from typing import Dict, List

from ..models import TreeGraph

SIBLING_PALETTE = [
    "#FFA07A", "#98FB98", "#87CEFA", "#DDA0DD", "#F4A460",
    "#66CDAA", "#FFB6C1", "#E6E6FA", "#20B2AA"
]


def build_node_colors(graph: TreeGraph, person_ids: List[str]) -> List[str]:
    """Siblings share a color keyed on their first parent; everyone else is colored by gender."""
    parent_ids = [pid for pid, person in graph.people.items() if person.children]
    parent_color_map: Dict[str, str] = {
        p: SIBLING_PALETTE[i % len(SIBLING_PALETTE)] for i, p in enumerate(parent_ids)
    }

    node_colors: List[str] = []
    for pid in person_ids:
        person = graph.people.get(pid)
        if person is None:
            node_colors.append("#D3D3D3")
            continue
        if person.parents:
            node_colors.append(parent_color_map.get(person.parents[0], "#D3D3D3"))
            continue
        g = (person.gender or "").strip().upper()
        if g in ("M", "MALE"):
            node_colors.append("#87CEFA")
        elif g in ("F", "FEMALE"):
            node_colors.append("#FFB6C1")
        else:
            node_colors.append("#D3D3D3")
    return node_colors
