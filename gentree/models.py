from __future__ import annotations

from typing import Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

COLLECTION_VERSION = 2


class _Record(BaseModel):
    # camelCase on the wire, snake_case in Python; snapshots are never mutated in place
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class Partnership(_Record):
    """One side of a union. Both partners carry an entry with the same union_id."""
    spouse_id: str
    union_id: str
    marriage_date: Optional[str] = None


class Person(_Record):
    id: str
    first_name: str = ""
    last_name: str = ""
    birth_date: Optional[str] = None
    birth_place: Optional[str] = None
    death_date: Optional[str] = None
    death_place: Optional[str] = None
    gender: str = ""
    notes: str = ""
    parents: Tuple[str, ...] = ()
    children: Tuple[str, ...] = ()
    spouses: Tuple[Partnership, ...] = ()

    @field_validator("parents", "children", "spouses", mode="before")
    @classmethod
    def _none_as_empty(cls, v):
        return () if v is None else v

    @field_validator("first_name", "last_name", "gender", "notes", mode="before")
    @classmethod
    def _none_as_blank(cls, v):
        return "" if v is None else v

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class TreeGraph(_Record):
    """
    A graph snapshot: every relationship is an id lookup into ``people``.
    Mapping order is insertion order and is significant for root fallback
    and for the placement of disconnected people.
    """
    root_person_id: Optional[str] = None
    people: Dict[str, Person] = Field(default_factory=dict)

    @field_validator("people", mode="before")
    @classmethod
    def _none_as_empty(cls, v):
        return {} if v is None else v


class StoredTree(_Record):
    id: str
    name: str
    tree: TreeGraph = Field(default_factory=TreeGraph)
    updated_at: str


class TreeCollection(_Record):
    version: Literal[2] = COLLECTION_VERSION
    trees: List[StoredTree] = Field(default_factory=list)
    active_tree_id: Optional[str] = None

