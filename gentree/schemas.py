from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel
from typing import Any, List, Optional

from .dates import display_to_iso_date, is_iso_date, normalize_date_value
from .models import TreeGraph
from .store import TreeAction


def _coerce_date(v: Optional[str]) -> Optional[str]:
    # accepts YYYY-MM-DD or DD/MM/YYYY; stored as YYYY-MM-DD
    v = normalize_date_value(v)
    if v is None or is_iso_date(v):
        return v
    iso = display_to_iso_date(v)
    if iso is None:
        raise ValueError("dates must be YYYY-MM-DD or DD/MM/YYYY")
    return iso


class _Body(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TreeCreate(_Body):
    name: str = ""
    tree: Optional[TreeGraph] = None


class TreeRename(_Body):
    name: str


class TreeImport(_Body):
    name: Optional[str] = None
    payload: Any


class TreeSummary(_Body):
    id: str
    name: str
    updated_at: str
    people: int


class TreeList(_Body):
    trees: List[TreeSummary]
    active_tree_id: Optional[str] = None


class PersonIn(_Body):
    first_name: str = ""
    last_name: str = ""
    birth_date: Optional[str] = None
    birth_place: Optional[str] = ""
    death_date: Optional[str] = None
    death_place: Optional[str] = None
    gender: str = ""
    notes: str = ""

    @field_validator("birth_date", "death_date")
    @classmethod
    def validate_date(cls, v):
        return _coerce_date(v)


class SpouseIn(PersonIn):
    marriage_date: Optional[str] = None

    @field_validator("marriage_date")
    @classmethod
    def validate_marriage_date(cls, v):
        return _coerce_date(v)


class ParentSelection(_Body):
    parent_ids: List[str] = []
    union_id: Optional[str] = None


class ActionRequest(_Body):
    action: TreeAction


class PersonCreated(_Body):
    person_id: str
    union_id: Optional[str] = None
    tree: TreeGraph
