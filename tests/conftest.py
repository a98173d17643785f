"""Shared fixtures for the gentree test suite."""
import pytest
import kuzu
from fastapi.testclient import TestClient

from gentree import store
from gentree.db import TreeSession, _init_schema, get_session
from gentree.models import Partnership, Person, TreeGraph


# ── CSV constants for import tests ──

SIMPLE_CSV = """\
Person 1,Relation,Person 2,Gender,Details
Grandpa,Earliest Ancestor,,M,The patriarch
Dad,Child,Grandpa,M,
Mom,Spouse,Dad,F,
Child1,Child,Dad,M,Young one
"""

SIBLING_CSV = """\
Person 1,Relation,Person 2,Gender,Details
Parent1,Earliest Ancestor,,M,
Child1,Child,Parent1,M,
Child2,Sibling,Child1,F,
"""


# ── Graph builders ──

def make_person(pid, first_name=None, **fields):
    return Person(id=pid, first_name=first_name if first_name is not None else pid, **fields)


def graph_of(*people, root=None):
    return TreeGraph(root_person_id=root, people={p.id: p for p in people})


@pytest.fixture
def empty_graph():
    return TreeGraph()


@pytest.fixture
def lineage():
    """Root R with one child C."""
    return graph_of(
        make_person("R", children=("C",)),
        make_person("C", parents=("R",)),
        root="R",
    )


@pytest.fixture
def couple_with_child():
    """A and B share union u1; C is their child."""
    return graph_of(
        make_person("A", children=("C",), spouses=(Partnership(spouse_id="B", union_id="u1"),)),
        make_person("B", children=("C",), spouses=(Partnership(spouse_id="A", union_id="u1"),)),
        make_person("C", parents=("A", "B")),
        root="A",
    )


@pytest.fixture
def family():
    """Grandpa -> Dad; Dad & Mom (union u1) -> Kid; built through the store."""
    graph = store.apply_all(TreeGraph(), [
        store.UpsertPerson(person=make_person("grandpa", last_name="Smith")),
        store.UpsertPerson(person=make_person("dad", last_name="Smith")),
        store.UpsertPerson(person=make_person("mom", last_name="Jones")),
        store.UpsertPerson(person=make_person("kid", last_name="Smith")),
        store.SetRootPerson(person_id="grandpa"),
        store.LinkParentChild(parent_id="grandpa", child_id="dad"),
        store.LinkSpouse(person_id="dad", spouse_id="mom", marriage_date="1990-06-01", union_id="u1"),
        store.LinkParentChild(parent_id="dad", child_id="kid"),
        store.LinkParentChild(parent_id="mom", child_id="kid"),
    ])
    return graph


# ── Database fixtures ──

@pytest.fixture
def db_path(tmp_path):
    """Temp path for a fresh KuzuDB."""
    return tmp_path / "test_db"


@pytest.fixture
def database(db_path):
    """Fresh KuzuDB database with schema initialized."""
    db = kuzu.Database(str(db_path))
    _init_schema(db)
    yield db
    db.close()


@pytest.fixture
def conn(database):
    return kuzu.Connection(database)


@pytest.fixture
def session(database):
    return TreeSession(database)


# ── API fixtures ──

@pytest.fixture
def app_with_session(session):
    """FastAPI app with the session dependency pointing at a temp database."""
    from gentree.main import app

    app.dependency_overrides[get_session] = lambda: session
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app_with_session):
    return TestClient(app_with_session, raise_server_exceptions=False)
