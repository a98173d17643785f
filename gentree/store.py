"""Tree graph state transitions.

``apply(state, action)`` is the only way a snapshot changes. It never raises
and never mutates its input: actions naming people that do not exist return
the snapshot unchanged.
"""
from __future__ import annotations

import logging
from typing import Annotated, Dict, Iterable, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .dates import normalize_date_value
from .models import Partnership, Person, TreeGraph

logger = logging.getLogger(__name__)

EMPTY_TREE = TreeGraph()


class _Action(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class ReplaceGraph(_Action):
    type: Literal["SET_TREE"] = "SET_TREE"
    graph: TreeGraph


class UpsertPerson(_Action):
    type: Literal["UPSERT_PERSON"] = "UPSERT_PERSON"
    person: Person


class LinkParentChild(_Action):
    type: Literal["LINK_PARENT_CHILD"] = "LINK_PARENT_CHILD"
    parent_id: str
    child_id: str


class LinkSpouse(_Action):
    type: Literal["LINK_SPOUSE"] = "LINK_SPOUSE"
    person_id: str
    spouse_id: str
    union_id: str
    marriage_date: Optional[str] = None


class SetRootPerson(_Action):
    type: Literal["SET_ROOT_PERSON"] = "SET_ROOT_PERSON"
    person_id: Optional[str] = None


class DeletePerson(_Action):
    type: Literal["DELETE_PERSON"] = "DELETE_PERSON"
    person_id: str


class ReassignParents(_Action):
    type: Literal["REASSIGN_PARENTS"] = "REASSIGN_PARENTS"
    child_id: str
    parent_ids: Tuple[str, ...] = ()


TreeAction = Annotated[
    Union[
        ReplaceGraph,
        UpsertPerson,
        LinkParentChild,
        LinkSpouse,
        SetRootPerson,
        DeletePerson,
        ReassignParents,
    ],
    Field(discriminator="type"),
]


def ensure_unique(items: Iterable[str]) -> Tuple[str, ...]:
    """De-duplicate keeping first-seen order."""
    return tuple(dict.fromkeys(items))


def dedupe_partnerships(spouses: Iterable[Partnership]) -> Tuple[Partnership, ...]:
    # last entry for a union wins, but keeps the slot of the first one
    by_union: Dict[str, Partnership] = {}
    for entry in spouses:
        by_union[entry.union_id] = entry
    return tuple(by_union.values())


def sanitize_person(person: Person) -> Person:
    return person.model_copy(update={
        "birth_date": normalize_date_value(person.birth_date),
        "death_date": normalize_date_value(person.death_date),
        "parents": ensure_unique(person.parents),
        "children": ensure_unique(person.children),
        "spouses": dedupe_partnerships(person.spouses),
    })


def _with_people(state: TreeGraph, updates: Dict[str, Person]) -> TreeGraph:
    people = dict(state.people)
    people.update(updates)
    return state.model_copy(update={"people": people})


def apply(state: TreeGraph, action) -> TreeGraph:
    """Return the snapshot produced by ``action``; unknown actions are no-ops."""
    if isinstance(action, ReplaceGraph):
        return action.graph

    if isinstance(action, UpsertPerson):
        person = sanitize_person(action.person)
        return _with_people(state, {person.id: person})

    if isinstance(action, LinkParentChild):
        return _link_parent_child(state, action.parent_id, action.child_id)

    if isinstance(action, LinkSpouse):
        return _link_spouse(state, action.person_id, action.spouse_id, action.marriage_date, action.union_id)

    if isinstance(action, SetRootPerson):
        return state.model_copy(update={"root_person_id": action.person_id})

    if isinstance(action, DeletePerson):
        return _delete_person(state, action.person_id)

    if isinstance(action, ReassignParents):
        return _reassign_parents(state, action.child_id, action.parent_ids)

    logger.debug("Ignoring unknown tree action %r", action)
    return state


def apply_all(state: TreeGraph, actions: Iterable) -> TreeGraph:
    for action in actions:
        state = apply(state, action)
    return state


tree_reducer = apply


def _link_parent_child(state: TreeGraph, parent_id: str, child_id: str) -> TreeGraph:
    parent = state.people.get(parent_id)
    child = state.people.get(child_id)
    if parent is None or child is None or parent_id == child_id:
        return state

    updated_parent = sanitize_person(parent.model_copy(update={"children": parent.children + (child_id,)}))
    updated_child = sanitize_person(child.model_copy(update={"parents": child.parents + (parent_id,)}))
    return _with_people(state, {parent_id: updated_parent, child_id: updated_child})


def _link_spouse(state: TreeGraph, person_id: str, spouse_id: str,
                 marriage_date: Optional[str], union_id: str) -> TreeGraph:
    person_a = state.people.get(person_id)
    person_b = state.people.get(spouse_id)
    if person_a is None or person_b is None or person_id == spouse_id:
        return state

    for_a = Partnership(spouse_id=spouse_id, marriage_date=marriage_date, union_id=union_id)
    for_b = Partnership(spouse_id=person_id, marriage_date=marriage_date, union_id=union_id)
    return _with_people(state, {
        person_id: sanitize_person(person_a.model_copy(update={"spouses": person_a.spouses + (for_a,)})),
        spouse_id: sanitize_person(person_b.model_copy(update={"spouses": person_b.spouses + (for_b,)})),
    })


def _delete_person(state: TreeGraph, person_id: str) -> TreeGraph:
    if person_id not in state.people:
        return state

    people: Dict[str, Person] = {}
    for pid, person in state.people.items():
        if pid == person_id:
            continue
        people[pid] = sanitize_person(person.model_copy(update={
            "parents": tuple(p for p in person.parents if p != person_id),
            "children": tuple(c for c in person.children if c != person_id),
            "spouses": tuple(s for s in person.spouses if s.spouse_id != person_id),
        }))

    first_remaining = next(iter(people), None)
    if state.root_person_id == person_id:
        next_root = first_remaining
    elif state.root_person_id is not None:
        next_root = state.root_person_id
    else:
        next_root = first_remaining

    return TreeGraph(root_person_id=next_root, people=people)


def _reassign_parents(state: TreeGraph, child_id: str, parent_ids: Iterable[str]) -> TreeGraph:
    child = state.people.get(child_id)
    if child is None:
        return state

    next_parent_ids = ensure_unique(
        pid for pid in parent_ids if pid != child_id and pid in state.people
    )

    # the child's record is re-inserted last
    people: Dict[str, Person] = {}
    for pid, person in state.people.items():
        if pid == child_id:
            continue
        people[pid] = sanitize_person(person.model_copy(update={
            "children": tuple(c for c in person.children if c != child_id),
        }))

    for parent_id in next_parent_ids:
        parent = people[parent_id]
        people[parent_id] = sanitize_person(parent.model_copy(update={
            "children": parent.children + (child_id,),
        }))

    people[child_id] = sanitize_person(child.model_copy(update={"parents": next_parent_ids}))
    return state.model_copy(update={"people": people})
