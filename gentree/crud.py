"""User-level editing flows, each expressed as store actions over a snapshot.

Every function takes a snapshot and returns a new one; nothing here keeps
state. Guards that the store deliberately does not perform (cycle checks on
parent reassignment) live here and raise ``ValueError``.
"""
from __future__ import annotations

import uuid
from typing import Iterable, List, Optional, Tuple

from . import store
from .graph import is_descendant, resolve_default_partner_ids, resolve_union_partners
from .models import Person, TreeGraph


def _trim_or_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    trimmed = value.strip()
    return trimmed or None


def _person_fields(first_name: str = "", last_name: str = "",
                   birth_date: Optional[str] = None, birth_place: Optional[str] = "",
                   death_date: Optional[str] = None, death_place: Optional[str] = None,
                   gender: str = "", notes: str = "") -> dict:
    return {
        "first_name": (first_name or "").strip(),
        "last_name": (last_name or "").strip(),
        "birth_date": birth_date,
        "birth_place": (birth_place or "").strip(),
        "death_date": death_date,
        "death_place": _trim_or_none(death_place),
        "gender": (gender or "").strip(),
        "notes": (notes or "").strip(),
    }


def new_person(person_id: Optional[str] = None, **fields) -> Person:
    """Build an unlinked person from form-style fields."""
    return Person(id=person_id or str(uuid.uuid4()), **_person_fields(**fields))


def create_person(graph: TreeGraph, **fields) -> Tuple[TreeGraph, str]:
    """Add a standalone person. The first person of an unrooted tree becomes its root."""
    person = new_person(**fields)
    graph = store.apply(graph, store.UpsertPerson(person=person))
    if not graph.root_person_id:
        graph = store.apply(graph, store.SetRootPerson(person_id=person.id))
    return graph, person.id


def update_person(graph: TreeGraph, person_id: str, **fields) -> TreeGraph:
    """Replace the editable fields of a person, keeping every relationship."""
    existing = graph.people.get(person_id)
    if existing is None:
        raise KeyError(person_id)
    updated = existing.model_copy(update=_person_fields(**fields))
    return store.apply(graph, store.UpsertPerson(person=updated))


def add_parent(graph: TreeGraph, child_id: str, **fields) -> Tuple[TreeGraph, str]:
    if child_id not in graph.people:
        raise KeyError(child_id)
    parent = new_person(**fields)
    graph = store.apply_all(graph, [
        store.UpsertPerson(person=parent),
        store.LinkParentChild(parent_id=parent.id, child_id=child_id),
    ])
    return graph, parent.id


def add_child(graph: TreeGraph, parent_id: str, **fields) -> Tuple[TreeGraph, str]:
    """
    Add a child below ``parent_id``. When the parent has exactly one
    partnership the spouse becomes the second parent.
    """
    if parent_id not in graph.people:
        raise KeyError(parent_id)
    child = new_person(**fields)
    actions = [store.UpsertPerson(person=child)]
    actions += [
        store.LinkParentChild(parent_id=pid, child_id=child.id)
        for pid in resolve_default_partner_ids(graph, parent_id)
    ]
    return store.apply_all(graph, actions), child.id


def add_child_to_union(graph: TreeGraph, union_id: str, **fields) -> Tuple[TreeGraph, str]:
    partners = resolve_union_partners(graph, union_id)
    if not partners:
        raise ValueError(f"Union {union_id!r} has no partners")
    child = new_person(**fields)
    actions = [store.UpsertPerson(person=child)]
    actions += [store.LinkParentChild(parent_id=pid, child_id=child.id) for pid in partners]
    return store.apply_all(graph, actions), child.id


def add_spouse(graph: TreeGraph, person_id: str, marriage_date: Optional[str] = None,
               **fields) -> Tuple[TreeGraph, str, str]:
    """Add a new partner for ``person_id``; returns (graph, spouse_id, union_id)."""
    if person_id not in graph.people:
        raise KeyError(person_id)
    spouse = new_person(**fields)
    union_id = str(uuid.uuid4())
    graph = store.apply_all(graph, [
        store.UpsertPerson(person=spouse),
        store.LinkSpouse(person_id=person_id, spouse_id=spouse.id,
                         marriage_date=marriage_date, union_id=union_id),
    ])
    return graph, spouse.id, union_id


def link_spouses(graph: TreeGraph, person_id: str, spouse_id: str,
                 marriage_date: Optional[str] = None, union_id: Optional[str] = None) -> Tuple[TreeGraph, str]:
    union_id = union_id or str(uuid.uuid4())
    action = store.LinkSpouse(person_id=person_id, spouse_id=spouse_id,
                              marriage_date=marriage_date, union_id=union_id)
    return store.apply(graph, action), union_id


def resolve_new_parents(graph: TreeGraph, child_id: str,
                        parent_ids: Optional[Iterable[str]] = None,
                        union_id: Optional[str] = None) -> List[str]:
    """Validate a parent selection for ``child_id`` and return the ids to assign."""
    if child_id not in graph.people:
        raise KeyError(child_id)

    if union_id:
        next_parent_ids = resolve_union_partners(graph, union_id)
        if not next_parent_ids:
            raise ValueError("Selected union has no partners to assign.")
    else:
        next_parent_ids = list(parent_ids or [])

    if child_id in next_parent_ids:
        raise ValueError("A person cannot be their own parent.")
    if any(is_descendant(graph, child_id, pid) for pid in next_parent_ids):
        raise ValueError("Cannot assign a descendant as a parent.")
    return next_parent_ids


def reassign_parents(graph: TreeGraph, child_id: str,
                     parent_ids: Optional[Iterable[str]] = None,
                     union_id: Optional[str] = None) -> TreeGraph:
    """Guarded parent reassignment: rejects self-parenting and cycles before dispatching."""
    next_parent_ids = resolve_new_parents(graph, child_id, parent_ids, union_id)
    return store.apply(graph, store.ReassignParents(child_id=child_id, parent_ids=next_parent_ids))


def delete_person(graph: TreeGraph, person_id: str) -> TreeGraph:
    if person_id not in graph.people:
        raise KeyError(person_id)
    return store.apply(graph, store.DeletePerson(person_id=person_id))
