"""Read-only queries over a graph snapshot."""
from __future__ import annotations

from collections import deque
from typing import Dict, List

from .models import TreeGraph


def resolve_union_partners(graph: TreeGraph, union_id: str) -> List[str]:
    """
    People taking part in a union, in first-seen order.
    Normally two; empty when the union id is stale.
    """
    partners: Dict[str, None] = {}
    for person in graph.people.values():
        for spouse in person.spouses:
            if spouse.union_id == union_id:
                partners[person.id] = None
                partners[spouse.spouse_id] = None
    return list(partners)


def resolve_default_partner_ids(graph: TreeGraph, person_id: str) -> List[str]:
    """
    Parents to use when a child is added from a single person:
    the person and, if they have exactly one partnership, that spouse.
    """
    person = graph.people.get(person_id)
    if person is None:
        return []
    if len(person.spouses) != 1:
        return [person.id]
    partner = graph.people.get(person.spouses[0].spouse_id)
    if partner is None:
        return [person.id]
    return [person.id, partner.id]


def is_descendant(graph: TreeGraph, ancestor_id: str, candidate_id: str) -> bool:
    ancestor = graph.people.get(ancestor_id)
    queue = deque(ancestor.children if ancestor else ())
    visited = set()
    while queue:
        current_id = queue.popleft()
        if current_id == candidate_id:
            return True
        if current_id in visited:
            continue
        visited.add(current_id)
        current = graph.people.get(current_id)
        if current is None:
            continue
        queue.extend(current.children)
    return False


def check_consistency(graph: TreeGraph) -> List[str]:
    """
    Report broken symmetry and dangling references in a snapshot.
    Nothing is repaired; the store and the layout tolerate all of these.
    """
    warnings: List[str] = []
    people = graph.people

    if graph.root_person_id is not None and graph.root_person_id not in people:
        warnings.append(f"Root person {graph.root_person_id!r} does not exist")

    union_holders: Dict[str, List[str]] = {}
    for key, person in people.items():
        pid = person.id
        if key != pid:
            warnings.append(f"Person {pid!r} is stored under key {key!r}")

        for parent_id in person.parents:
            parent = people.get(parent_id)
            if parent_id == pid:
                warnings.append(f"Person {pid!r} is listed as their own parent")
            elif parent is None:
                warnings.append(f"Person {pid!r} has missing parent {parent_id!r}")
            elif pid not in parent.children:
                warnings.append(f"Parent {parent_id!r} does not list {pid!r} as a child")

        for child_id in person.children:
            child = people.get(child_id)
            if child_id == pid:
                warnings.append(f"Person {pid!r} is listed as their own child")
            elif child is None:
                warnings.append(f"Person {pid!r} has missing child {child_id!r}")
            elif pid not in child.parents:
                warnings.append(f"Child {child_id!r} does not list {pid!r} as a parent")

        for spouse in person.spouses:
            union_holders.setdefault(spouse.union_id, []).append(pid)
            partner = people.get(spouse.spouse_id)
            if partner is None:
                warnings.append(
                    f"Person {pid!r} has missing spouse {spouse.spouse_id!r} in union {spouse.union_id!r}"
                )
            elif not any(s.union_id == spouse.union_id and s.spouse_id == pid for s in partner.spouses):
                warnings.append(
                    f"Spouse {spouse.spouse_id!r} does not mirror union {spouse.union_id!r} with {pid!r}"
                )

    for union_id, holders in union_holders.items():
        if len(holders) != 2:
            warnings.append(f"Union {union_id!r} is held by {len(holders)} people (expected 2)")

    return warnings
