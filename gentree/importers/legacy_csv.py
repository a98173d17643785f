"""Import of the legacy ``Person 1,Relation,Person 2,Gender,Details`` CSV format."""
from __future__ import annotations

import io
import logging
import uuid
from dataclasses import dataclass
from typing import List, Optional, Tuple

import pandas as pd

from .. import store
from ..models import Person, TreeGraph

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = {"Person 1", "Relation"}
UNION_NAMESPACE = uuid.UUID("6f1c1d8e-8f51-4c1e-9c55-3b1f5e2a7a10")


@dataclass(frozen=True)
class LegacyRow:
    line_no: int
    person1: str
    relation: str
    person2: Optional[str] = None
    gender: Optional[str] = None
    details: Optional[str] = None


def _clean(value) -> Optional[str]:
    if value is None or pd.isna(value):
        return None
    text = str(value).strip()
    if text == "" or text.lower() in ("none", "nan"):
        return None
    return text


def read_legacy_text(text: str) -> List[LegacyRow]:
    """
    Reads CSV text in the legacy export style.
    Supports comment lines starting with '#'.
    """
    df = pd.read_csv(io.StringIO(text), comment="#", dtype=str, keep_default_na=False,
                     skip_blank_lines=True, skipinitialspace=True)
    df.columns = [str(c).strip() for c in df.columns]

    missing = REQUIRED_COLUMNS - set(df.columns)
    if missing:
        raise ValueError(f"Missing required columns: {sorted(missing)}")

    rows: List[LegacyRow] = []
    for idx, r in df.iterrows():
        person1 = _clean(r.get("Person 1"))
        if not person1:
            continue
        rows.append(
            LegacyRow(
                line_no=int(idx) + 2,
                person1=person1,
                relation=_clean(r.get("Relation")) or "",
                person2=_clean(r.get("Person 2")) if "Person 2" in df.columns else None,
                gender=_clean(r.get("Gender")) if "Gender" in df.columns else None,
                details=_clean(r.get("Details")) if "Details" in df.columns else None,
            )
        )
    return rows


def read_legacy_file(path: str) -> List[LegacyRow]:
    with open(path, "r", encoding="utf-8") as f:
        return read_legacy_text(f.read())


def split_name(raw: str) -> Tuple[str, str]:
    """
    Split a raw legacy name into (first_name, last_name).

    - 'Weldeamlak\\n(Geza)' -> ('Weldeamlak', 'Geza')
    - 'John Smith'         -> ('John', 'Smith')
    - 'First Middle Last'  -> ('First Middle', 'Last')
    - 'Single'             -> ('Single', '')
    """
    name = raw.replace("\\n", "\n").strip()
    if "(" in name and ")" in name:
        base = name.split("(", 1)[0].strip()
        nick = name.split("(", 1)[1].split(")", 1)[0].strip()
        return base, nick

    parts = name.split()
    if len(parts) <= 1:
        return name, ""
    return " ".join(parts[:-1]), parts[-1]


def _union_id(a: str, b: str) -> str:
    return str(uuid.uuid5(UNION_NAMESPACE, "|".join(sorted((a, b)))))


def build_graph_from_rows(rows: List[LegacyRow]) -> Tuple[TreeGraph, List[str]]:
    """
    Turn legacy rows into a graph, one store action at a time.
    Person ids are the raw names, so a name used twice is one person.
    Returns (graph, warnings).
    """
    graph = TreeGraph()
    warnings: List[str] = []

    def ensure_person(raw: str) -> str:
        nonlocal graph
        if raw not in graph.people:
            first, last = split_name(raw)
            graph = store.apply(graph, store.UpsertPerson(person=Person(id=raw, first_name=first, last_name=last)))
        return raw

    def annotate(pid: str, gender: Optional[str], details: Optional[str]) -> None:
        nonlocal graph
        person = graph.people[pid]
        update = {}
        if gender and not person.gender:
            update["gender"] = gender.upper()
        if details and not person.notes:
            update["notes"] = details
        if update:
            graph = store.apply(graph, store.UpsertPerson(person=person.model_copy(update=update)))

    siblings: List[Tuple[str, str]] = []

    for row in rows:
        p1 = ensure_person(row.person1)
        annotate(p1, row.gender, row.details)
        p2 = ensure_person(row.person2) if row.person2 else None
        relation = row.relation

        if relation == "Earliest Ancestor":
            if graph.root_person_id is None:
                graph = store.apply(graph, store.SetRootPerson(person_id=p1))
        elif relation == "Child" and p2:
            graph = store.apply(graph, store.LinkParentChild(parent_id=p2, child_id=p1))
        elif relation == "Spouse" and p2:
            graph = store.apply(graph, store.LinkSpouse(
                person_id=p1, spouse_id=p2, marriage_date=None, union_id=_union_id(p1, p2)))
        elif relation == "Sibling" and p2:
            siblings.append((p1, p2))
        else:
            message = f"Line {row.line_no}: Skipped relation {relation!r} for {row.person1!r}"
            logger.warning(message)
            warnings.append(message)

    # siblings take their parents from the other person once every row is in
    for p1, p2 in siblings:
        for parent_id in graph.people[p2].parents:
            graph = store.apply(graph, store.LinkParentChild(parent_id=parent_id, child_id=p1))

    if graph.root_person_id is None and graph.people:
        graph = store.apply(graph, store.SetRootPerson(person_id=next(iter(graph.people))))

    return graph, warnings
