from __future__ import annotations

import math
from collections import deque
from typing import Dict, List, Optional, Set, Tuple

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..models import Person, TreeGraph

HORIZONTAL_GAP = 80.0
VERTICAL_GAP = 180.0
CANVAS_PADDING = 160.0

UNION_NODE_SIZE = 24.0

BASE_HEIGHT = 100.0
MIN_WIDTH = 220.0
MAX_WIDTH = 320.0
UNIT_PER_CHARACTER = 7
CHARACTER_WIDTH = 8
LINE_HEIGHT = 24.0
MIN_LINE_CHARS = 18


class _LayoutRecord(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class Point(_LayoutRecord):
    x: float
    y: float


class PersonLayoutNode(_LayoutRecord):
    person: Person
    x: float
    y: float
    width: float
    height: float

    @property
    def center(self) -> Point:
        return Point(x=self.x + self.width / 2, y=self.y + self.height / 2)


class UnionLayoutNode(_LayoutRecord):
    id: str
    partners: Tuple[str, str]
    x: float
    y: float
    children: Tuple[str, ...] = ()


class LayoutEdge(_LayoutRecord):
    id: str
    from_: Point = Field(alias="from")
    to: Point


class TreeLayout(_LayoutRecord):
    person_nodes: Tuple[PersonLayoutNode, ...] = ()
    union_nodes: Tuple[UnionLayoutNode, ...] = ()
    edges: Tuple[LayoutEdge, ...] = ()
    width: float = 0.0
    height: float = 0.0


def estimate_wrapped_lines(content: str, width: float) -> int:
    if not content:
        return 0
    chars_per_line = max(MIN_LINE_CHARS, int(width // CHARACTER_WIDTH))
    return math.ceil(len(content) / chars_per_line)


def measure_person_node(person: Person) -> Tuple[float, float]:
    """
    Estimate (width, height) of a person card from its text alone.
    No glyph measurement: widths come from character counts.
    """
    name_line = person.display_name
    birth_line = f"Born: {person.birth_place}" if person.birth_place else ""
    death_line = f"Died: {person.death_place}" if person.death_place else ""
    longest = max(len(name_line), len(birth_line), len(death_line), MIN_LINE_CHARS)
    width = min(MAX_WIDTH, max(MIN_WIDTH, float(longest * UNIT_PER_CHARACTER)))
    total_lines = 2 + estimate_wrapped_lines(birth_line, width) + estimate_wrapped_lines(death_line, width)
    height = max(BASE_HEIGHT, total_lines * LINE_HEIGHT)
    return width, height


def compute_placement_maps(graph: TreeGraph, root_id: str) -> Tuple[Dict[str, int], Dict[str, int]]:
    """
    Breadth-first depth/order assignment from ``root_id``.
    Children are one level down, parents one up, spouses on the same level.
    A depth, once assigned, is never revised.
    """
    depth_map: Dict[str, int] = {root_id: 0}
    order_map: Dict[str, int] = {root_id: 0}
    counter = 1
    queue = deque([root_id])

    while queue:
        current_id = queue.popleft()
        current_depth = depth_map[current_id]
        person = graph.people.get(current_id)
        if person is None:
            continue

        neighbors: List[Tuple[str, int]] = []
        neighbors.extend((child_id, 1) for child_id in person.children)
        neighbors.extend((parent_id, -1) for parent_id in person.parents)
        neighbors.extend((spouse.spouse_id, 0) for spouse in person.spouses)

        for neighbor_id, delta in neighbors:
            if neighbor_id in order_map:
                continue
            depth_map[neighbor_id] = current_depth + delta
            order_map[neighbor_id] = counter
            counter += 1
            queue.append(neighbor_id)

    for pid in graph.people:
        if pid not in depth_map:
            depth_map[pid] = 0
        if pid not in order_map:
            order_map[pid] = counter
            counter += 1

    return depth_map, order_map


def _order_row(graph: TreeGraph, ids: List[str], level: int,
               depth_map: Dict[str, int], order_map: Dict[str, int]) -> List[str]:
    # one greedy pass: each person is followed by their not-yet-placed spouses on the same row
    ordered: List[str] = []
    taken: Set[str] = set()
    for pid in sorted(ids, key=lambda i: order_map.get(i, 0)):
        if pid in taken:
            continue
        person = graph.people.get(pid)
        if person is None:
            continue
        ordered.append(pid)
        taken.add(pid)
        for spouse in person.spouses:
            partner_id = spouse.spouse_id
            if partner_id not in graph.people or partner_id in taken:
                continue
            if depth_map.get(partner_id, 0) != level:
                continue
            taken.add(partner_id)
            ordered.append(partner_id)
    return ordered


def _find_union_children(graph: TreeGraph, parent_a: str, parent_b: str) -> Tuple[str, ...]:
    return tuple(
        person.id for person in graph.people.values()
        if parent_a in person.parents and parent_b in person.parents
    )


def _root_for_layout(graph: TreeGraph) -> str:
    if graph.root_person_id is not None and graph.root_person_id in graph.people:
        return graph.root_person_id
    # a missing or dangling root falls back to the first person in the mapping
    return next(iter(graph.people))


def compute_tree_layout(graph: TreeGraph) -> TreeLayout:
    """
    Position every person, union marker and connecting edge of ``graph``.
    Dangling references are skipped, so any snapshot yields a renderable layout.
    """
    if not graph.people:
        return TreeLayout()

    sizes = {pid: measure_person_node(person) for pid, person in graph.people.items()}
    depth_map, order_map = compute_placement_maps(graph, _root_for_layout(graph))

    levels: Dict[int, List[str]] = {}
    for pid, depth in depth_map.items():
        levels.setdefault(depth, []).append(pid)

    person_nodes: List[PersonLayoutNode] = []
    positions: Dict[str, PersonLayoutNode] = {}
    current_y = CANVAS_PADDING
    max_row_width = 0.0

    for level in sorted(levels):
        ordered = _order_row(graph, levels[level], level, depth_map, order_map)
        # a row holding only dangling ids is skipped, leaving no empty gap
        if not ordered:
            continue

        current_x = CANVAS_PADDING
        row_height = 0.0
        for pid in ordered:
            width, height = sizes[pid]
            node = PersonLayoutNode(person=graph.people[pid], x=current_x, y=current_y, width=width, height=height)
            person_nodes.append(node)
            positions[pid] = node
            current_x += width + HORIZONTAL_GAP
            row_height = max(row_height, height)

        max_row_width = max(max_row_width, current_x)
        current_y += row_height + VERTICAL_GAP

    union_nodes: List[UnionLayoutNode] = []
    edges: List[LayoutEdge] = []
    processed_unions: Set[str] = set()
    union_child_links: Set[Tuple[str, str]] = set()
    half = UNION_NODE_SIZE / 2

    for person in graph.people.values():
        for spouse in person.spouses:
            if spouse.union_id in processed_unions:
                continue
            person_node = positions.get(person.id)
            partner_node = positions.get(spouse.spouse_id)
            if person_node is None or partner_node is None:
                continue
            processed_unions.add(spouse.union_id)

            centers = (person_node.center, partner_node.center)
            union_center = Point(
                x=(centers[0].x + centers[1].x) / 2,
                y=(centers[0].y + centers[1].y) / 2,
            )
            partners = (person.id, spouse.spouse_id)
            union = UnionLayoutNode(
                id=spouse.union_id,
                partners=partners,
                x=union_center.x - half,
                y=union_center.y - half,
                children=_find_union_children(graph, *partners),
            )
            union_nodes.append(union)

            for index, center in enumerate(centers):
                edges.append(LayoutEdge(id=f"{union.id}-partner-{index}", from_=center, to=union_center))

            for child_id in union.children:
                child_node = positions.get(child_id)
                if child_node is None:
                    continue
                edges.append(LayoutEdge(
                    id=f"{union.id}-child-{child_id}",
                    from_=Point(x=union_center.x, y=union_center.y + half),
                    to=Point(x=child_node.x + child_node.width / 2, y=child_node.y),
                ))
                union_child_links.add((partners[0], child_id))
                union_child_links.add((partners[1], child_id))

    for parent in graph.people.values():
        parent_node = positions.get(parent.id)
        if parent_node is None:
            continue
        for child_id in parent.children:
            if (parent.id, child_id) in union_child_links:
                continue
            child_node = positions.get(child_id)
            if child_node is None:
                continue
            edges.append(LayoutEdge(
                id=f"direct-{parent.id}-{child_id}",
                from_=Point(x=parent_node.x + parent_node.width / 2, y=parent_node.y + parent_node.height),
                to=Point(x=child_node.x + child_node.width / 2, y=child_node.y),
            ))

    max_x = 0.0
    max_y = 0.0
    for node in person_nodes:
        max_x = max(max_x, node.x + node.width)
        max_y = max(max_y, node.y + node.height)
    for union in union_nodes:
        max_x = max(max_x, union.x + UNION_NODE_SIZE)
        max_y = max(max_y, union.y + UNION_NODE_SIZE)

    return TreeLayout(
        person_nodes=tuple(person_nodes),
        union_nodes=tuple(union_nodes),
        edges=tuple(edges),
        width=max(max_row_width, max_x) + CANVAS_PADDING,
        height=max_y + CANVAS_PADDING,
    )


class LayoutCache:
    """Single-slot memo of the last layout, keyed on the snapshot."""

    def __init__(self):
        self._graph: Optional[TreeGraph] = None
        self._layout: Optional[TreeLayout] = None

    def get(self, graph: TreeGraph) -> TreeLayout:
        if self._layout is None or not (graph is self._graph or graph == self._graph):
            self._layout = compute_tree_layout(graph)
            self._graph = graph
        return self._layout

    def clear(self) -> None:
        self._graph = None
        self._layout = None
