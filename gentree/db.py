"""KuzuDB storage for the tree collection, and the session that owns it."""
import json
import os
import logging
import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import kuzu

from . import store, trees
from .models import Partnership, Person, StoredTree, TreeCollection, TreeGraph
from .render.layout import LayoutCache, TreeLayout

logger = logging.getLogger(__name__)

DB_PATH = Path(os.environ.get("DB_PATH", Path(__file__).resolve().parent.parent / "graph_data"))
_database = None
_session = None

_PERSON_FIELDS = (
    "id", "first_name", "last_name", "birth_date", "birth_place",
    "death_date", "death_place", "gender", "notes",
)


def open_database(path: Path) -> kuzu.Database:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    database = kuzu.Database(str(path))
    _init_schema(database)
    return database


def get_database():
    global _database
    if _database is None:
        _database = open_database(DB_PATH)
    return _database


def _init_schema(db):
    conn = kuzu.Connection(db)

    conn.execute(
        "CREATE NODE TABLE IF NOT EXISTS FamilyTree("
        "id STRING, name STRING, updated_at STRING, root_person_id STRING, "
        "seq INT64, is_active BOOL, "
        "PRIMARY KEY(id))"
    )
    # uid is "<tree id>/<mapping key>"; person ids only need to be unique within a tree
    conn.execute(
        "CREATE NODE TABLE IF NOT EXISTS Person("
        "uid STRING, tree_id STRING, person_key STRING, seq INT64, "
        "id STRING, first_name STRING, last_name STRING, "
        "birth_date STRING, birth_place STRING, death_date STRING, death_place STRING, "
        "gender STRING, notes STRING, dangling STRING, "
        "PRIMARY KEY(uid))"
    )
    # one edge per list entry: listed_by says whose list (the child's parents or the parent's children)
    conn.execute(
        "CREATE REL TABLE IF NOT EXISTS PARENT_OF(FROM Person TO Person, listed_by STRING, seq INT64)"
    )
    conn.execute(
        "CREATE REL TABLE IF NOT EXISTS SPOUSE_OF("
        "FROM Person TO Person, union_id STRING, marriage_date STRING, seq INT64)"
    )


def _uid(tree_id: str, key: str) -> str:
    return f"{tree_id}/{key}"


def _create(conn: kuzu.Connection, pattern: str, props: dict, params: Optional[dict] = None) -> None:
    """Run a CREATE whose property map leaves out None values, so they are stored as NULL."""
    present = {k: v for k, v in props.items() if v is not None}
    fields = ", ".join(f"{k}: ${k}" for k in present)
    conn.execute(pattern.replace("{props}", "{" + fields + "}"), {**present, **(params or {})})


# ── Writing ──

def _write_tree_node(conn: kuzu.Connection, entry: StoredTree, seq: int, active: bool) -> None:
    conn.execute("MATCH (t:FamilyTree) WHERE t.id = $id DELETE t", {"id": entry.id})
    _create(conn, "CREATE (t:FamilyTree {props})", {
        "id": entry.id,
        "name": entry.name,
        "updated_at": entry.updated_at,
        "root_person_id": entry.tree.root_person_id,
        "seq": seq,
        "is_active": active,
    })


def _write_graph(conn: kuzu.Connection, tree_id: str, graph: TreeGraph) -> None:
    """Replace every Person row and relation of a tree with the contents of ``graph``."""
    conn.execute("MATCH (p:Person) WHERE p.tree_id = $tid DETACH DELETE p", {"tid": tree_id})

    for seq, (key, person) in enumerate(graph.people.items()):
        dangling: Dict[str, list] = {}
        for field in ("parents", "children"):
            missing = [[i, ref] for i, ref in enumerate(getattr(person, field)) if ref not in graph.people]
            if missing:
                dangling[field] = missing
        missing_spouses = [
            [i, spouse.model_dump(by_alias=True)]
            for i, spouse in enumerate(person.spouses) if spouse.spouse_id not in graph.people
        ]
        if missing_spouses:
            dangling["spouses"] = missing_spouses

        props = {name: getattr(person, name) for name in _PERSON_FIELDS}
        props.update({
            "uid": _uid(tree_id, key),
            "tree_id": tree_id,
            "person_key": key,
            "seq": seq,
            "dangling": json.dumps(dangling) if dangling else None,
        })
        _create(conn, "CREATE (p:Person {props})", props)

    link = "MATCH (a:Person), (b:Person) WHERE a.uid = $a_uid AND b.uid = $b_uid "
    for key, person in graph.people.items():
        for i, parent_id in enumerate(person.parents):
            if parent_id in graph.people:
                conn.execute(link + "CREATE (a)-[:PARENT_OF {listed_by: 'child', seq: $seq}]->(b)",
                             {"a_uid": _uid(tree_id, parent_id), "b_uid": _uid(tree_id, key), "seq": i})
        for i, child_id in enumerate(person.children):
            if child_id in graph.people:
                conn.execute(link + "CREATE (a)-[:PARENT_OF {listed_by: 'parent', seq: $seq}]->(b)",
                             {"a_uid": _uid(tree_id, key), "b_uid": _uid(tree_id, child_id), "seq": i})
        for i, spouse in enumerate(person.spouses):
            if spouse.spouse_id in graph.people:
                _create(conn, link + "CREATE (a)-[:SPOUSE_OF {props}]->(b)",
                        {"union_id": spouse.union_id, "marriage_date": spouse.marriage_date, "seq": i},
                        {"a_uid": _uid(tree_id, key), "b_uid": _uid(tree_id, spouse.spouse_id)})


def _delete_tree(conn: kuzu.Connection, tree_id: str) -> None:
    conn.execute("MATCH (p:Person) WHERE p.tree_id = $tid DETACH DELETE p", {"tid": tree_id})
    conn.execute("MATCH (t:FamilyTree) WHERE t.id = $tid DELETE t", {"tid": tree_id})


def sync_collection(conn: kuzu.Connection, previous: TreeCollection, collection: TreeCollection) -> None:
    """
    Bring the database from ``previous`` to ``collection``.
    Tree headers are always rewritten; a tree's people are rewritten only
    when its graph snapshot is a different object from the previous one.
    """
    before = {entry.id: entry for entry in previous.trees}
    keep = {entry.id for entry in collection.trees}
    for tree_id in before:
        if tree_id not in keep:
            _delete_tree(conn, tree_id)

    rewritten = 0
    for seq, entry in enumerate(collection.trees):
        _write_tree_node(conn, entry, seq, entry.id == collection.active_tree_id)
        old = before.get(entry.id)
        if old is None or old.tree is not entry.tree:
            _write_graph(conn, entry.id, entry.tree)
            rewritten += 1
    logger.info("Saved %d tree(s), %d graph(s) rewritten", len(collection.trees), rewritten)


def save_collection(conn: kuzu.Connection, collection: TreeCollection) -> None:
    keep = {entry.id for entry in collection.trees}
    for tree_id in _tree_ids(conn):
        if tree_id not in keep:
            _delete_tree(conn, tree_id)
    sync_collection(conn, TreeCollection(), collection)


# ── Reading ──

def _tree_ids(conn: kuzu.Connection) -> List[str]:
    result = conn.execute("MATCH (t:FamilyTree) RETURN t.id ORDER BY t.seq")
    ids = []
    while result.has_next():
        ids.append(result.get_next()[0])
    return ids


def _read_graph(conn: kuzu.Connection, tree_id: str, root_person_id: Optional[str]) -> TreeGraph:
    columns = ", ".join(f"p.{name}" for name in _PERSON_FIELDS)
    result = conn.execute(
        f"MATCH (p:Person) WHERE p.tree_id = $tid RETURN p.person_key, p.dangling, {columns} ORDER BY p.seq",
        {"tid": tree_id},
    )
    fields: Dict[str, dict] = {}
    refs: Dict[str, Dict[str, List[Tuple[int, object]]]] = {}
    while result.has_next():
        row = result.get_next()
        key, dangling = row[0], row[1]
        fields[key] = dict(zip(_PERSON_FIELDS, row[2:]))
        refs[key] = {"parents": [], "children": [], "spouses": []}
        for name, entries in json.loads(dangling or "{}").items():
            for i, ref in entries:
                value = Partnership.model_validate(ref) if name == "spouses" else ref
                refs[key][name].append((i, value))

    result = conn.execute(
        "MATCH (a:Person)-[r:PARENT_OF]->(b:Person) WHERE a.tree_id = $tid "
        "RETURN a.person_key, b.person_key, r.listed_by, r.seq",
        {"tid": tree_id},
    )
    while result.has_next():
        parent_key, child_key, listed_by, seq = result.get_next()
        if listed_by == "child":
            refs[child_key]["parents"].append((seq, parent_key))
        else:
            refs[parent_key]["children"].append((seq, child_key))

    result = conn.execute(
        "MATCH (a:Person)-[r:SPOUSE_OF]->(b:Person) WHERE a.tree_id = $tid "
        "RETURN a.person_key, b.person_key, r.union_id, r.marriage_date, r.seq",
        {"tid": tree_id},
    )
    while result.has_next():
        key, spouse_key, union_id, marriage_date, seq = result.get_next()
        refs[key]["spouses"].append(
            (seq, Partnership(spouse_id=spouse_key, union_id=union_id, marriage_date=marriage_date))
        )

    people = {}
    for key, values in fields.items():
        lists = {name: tuple(v for _, v in sorted(entries, key=lambda e: e[0]))
                 for name, entries in refs[key].items()}
        people[key] = Person(**values, **lists)
    return TreeGraph(root_person_id=root_person_id, people=people)


def load_collection(conn: kuzu.Connection) -> TreeCollection:
    result = conn.execute(
        "MATCH (t:FamilyTree) RETURN t.id, t.name, t.updated_at, t.root_person_id, t.is_active ORDER BY t.seq"
    )
    headers = []
    while result.has_next():
        headers.append(result.get_next())

    entries = []
    active_id = None
    for tree_id, name, updated_at, root_person_id, is_active in headers:
        entries.append(StoredTree(
            id=tree_id, name=name, updated_at=updated_at,
            tree=_read_graph(conn, tree_id, root_person_id),
        ))
        if is_active:
            active_id = tree_id
    return TreeCollection(trees=entries, active_tree_id=active_id)


# ── Session ──

class TreeSession:
    """
    The single dispatch point for a collection of trees.
    Every operation runs under one lock: a change loads the current
    snapshot from the database, applies to it, and writes the result back
    before the next operation starts. Layouts are cached per tree and
    recomputed only when the stored snapshot changes.
    """

    def __init__(self, database=None):
        self.database = database if database is not None else get_database()
        self.conn = kuzu.Connection(self.database)
        self._lock = threading.RLock()
        self._layouts: Dict[str, LayoutCache] = {}

    @property
    def collection(self) -> TreeCollection:
        with self._lock:
            return load_collection(self.conn)

    def change(self, fn: Callable[[TreeCollection], TreeCollection]) -> TreeCollection:
        with self._lock:
            previous = load_collection(self.conn)
            collection = fn(previous)
            if collection is not previous:
                sync_collection(self.conn, previous, collection)
            return collection

    def ensure_active_tree(self) -> str:
        """Make sure there is at least one tree and an active one; returns its id."""
        def _ensure(collection: TreeCollection) -> TreeCollection:
            if trees.active_tree(collection) is not None:
                return collection
            if collection.trees:
                return trees.select_tree(collection, collection.trees[0].id)
            return trees.add_tree(collection, trees.DEFAULT_TREE_NAME)[0]

        return self.change(_ensure).active_tree_id

    def graph(self, tree_id: str) -> TreeGraph:
        entry = trees.get_tree(self.collection, tree_id)
        if entry is None:
            raise KeyError(tree_id)
        return entry.tree

    def dispatch(self, tree_id: str, action) -> TreeGraph:
        return self.edit(tree_id, lambda graph: store.apply(graph, action))

    def edit(self, tree_id: str, fn: Callable):
        """Apply ``fn`` to the stored snapshot of a tree and write the result back.
        ``fn`` returns the new graph, or a tuple whose first item is the new graph;
        its return value is passed through."""
        with self._lock:
            previous = load_collection(self.conn)
            entry = trees.get_tree(previous, tree_id)
            if entry is None:
                raise KeyError(tree_id)
            result = fn(entry.tree)
            updated = result[0] if isinstance(result, tuple) else result
            if updated is not entry.tree:
                sync_collection(self.conn, previous, trees.update_tree_graph(previous, tree_id, updated))
            return result

    def layout(self, tree_id: str) -> TreeLayout:
        with self._lock:
            graph = self.graph(tree_id)
            cache = self._layouts.setdefault(tree_id, LayoutCache())
            return cache.get(graph)

    def close(self) -> None:
        self.conn.close()


def get_session() -> TreeSession:
    global _session
    if _session is None:
        _session = TreeSession(get_database())
    return _session
