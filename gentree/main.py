import logging

from fastapi import FastAPI, Depends, HTTPException
from fastapi.responses import JSONResponse, Response

from .db import TreeSession, get_session
from . import crud, schemas, trees
from .graph import check_consistency
from .models import StoredTree, TreeGraph
from .render import plotly_render, svg_export
from .render.layout import TreeLayout

logger = logging.getLogger(__name__)

app = FastAPI(title="gentree")


def _entry_or_404(session: TreeSession, tree_id: str) -> StoredTree:
    entry = trees.get_tree(session.collection, tree_id)
    if entry is None:
        raise HTTPException(404, f"Tree {tree_id} not found")
    return entry


def _edit(session: TreeSession, tree_id: str, fn):
    """Run an editing flow against a tree, mapping lookup and guard failures to HTTP errors."""
    _entry_or_404(session, tree_id)
    try:
        return session.edit(tree_id, fn)
    except KeyError as e:
        raise HTTPException(404, f"Person {e.args[0]} not found")
    except ValueError as e:
        raise HTTPException(400, str(e))


def _summary(entry: StoredTree) -> schemas.TreeSummary:
    return schemas.TreeSummary(id=entry.id, name=entry.name, updated_at=entry.updated_at,
                               people=len(entry.tree.people))


@app.get("/health")
def health():
    return {"ok": True}


# ── Trees ──

@app.get("/api/trees", response_model=schemas.TreeList)
def list_trees(session: TreeSession = Depends(get_session)):
    collection = session.collection
    return schemas.TreeList(trees=[_summary(t) for t in collection.trees],
                            active_tree_id=collection.active_tree_id)


@app.post("/api/trees", response_model=StoredTree)
def create_tree(body: schemas.TreeCreate, session: TreeSession = Depends(get_session)):
    created = {}

    def _add(collection):
        collection, created["entry"] = trees.add_tree(collection, body.name, body.tree)
        return collection

    session.change(_add)
    return created["entry"]


@app.post("/api/trees/import", response_model=StoredTree)
def import_tree(body: schemas.TreeImport, session: TreeSession = Depends(get_session)):
    imported = trees.normalize_imported_tree(body.payload)
    if imported is None:
        raise HTTPException(400, "The payload is not a valid tree.")
    graph, suggested = imported
    name = body.name or suggested or trees.IMPORTED_TREE_NAME
    created = {}

    def _add(collection):
        collection, created["entry"] = trees.add_tree(collection, name, graph)
        return collection

    session.change(_add)
    logger.info("Imported tree %r with %d people", name, len(graph.people))
    return created["entry"]


@app.get("/api/trees/{tree_id}", response_model=StoredTree)
def get_tree(tree_id: str, session: TreeSession = Depends(get_session)):
    return _entry_or_404(session, tree_id)


@app.put("/api/trees/{tree_id}", response_model=StoredTree)
def rename_tree(tree_id: str, body: schemas.TreeRename, session: TreeSession = Depends(get_session)):
    _entry_or_404(session, tree_id)
    session.change(lambda c: trees.rename_tree(c, tree_id, body.name))
    return _entry_or_404(session, tree_id)


@app.delete("/api/trees/{tree_id}", response_model=schemas.TreeList)
def delete_tree(tree_id: str, session: TreeSession = Depends(get_session)):
    _entry_or_404(session, tree_id)
    session.change(lambda c: trees.delete_tree(c, tree_id))
    return list_trees(session)


@app.post("/api/trees/{tree_id}/activate", response_model=schemas.TreeList)
def activate_tree(tree_id: str, session: TreeSession = Depends(get_session)):
    _entry_or_404(session, tree_id)
    session.change(lambda c: trees.select_tree(c, tree_id))
    return list_trees(session)


# ── Graph editing ──

@app.post("/api/trees/{tree_id}/actions", response_model=TreeGraph)
def dispatch_action(tree_id: str, body: schemas.ActionRequest, session: TreeSession = Depends(get_session)):
    _entry_or_404(session, tree_id)
    return session.dispatch(tree_id, body.action)


@app.post("/api/trees/{tree_id}/people", response_model=schemas.PersonCreated)
def create_person(tree_id: str, body: schemas.PersonIn, session: TreeSession = Depends(get_session)):
    graph, pid = _edit(session, tree_id, lambda g: crud.create_person(g, **body.model_dump()))
    return schemas.PersonCreated(person_id=pid, tree=graph)


@app.put("/api/trees/{tree_id}/people/{person_id}", response_model=TreeGraph)
def update_person(tree_id: str, person_id: str, body: schemas.PersonIn,
                  session: TreeSession = Depends(get_session)):
    return _edit(session, tree_id, lambda g: crud.update_person(g, person_id, **body.model_dump()))


@app.delete("/api/trees/{tree_id}/people/{person_id}", response_model=TreeGraph)
def delete_person(tree_id: str, person_id: str, session: TreeSession = Depends(get_session)):
    return _edit(session, tree_id, lambda g: crud.delete_person(g, person_id))


@app.post("/api/trees/{tree_id}/people/{person_id}/parents", response_model=schemas.PersonCreated)
def add_parent(tree_id: str, person_id: str, body: schemas.PersonIn,
               session: TreeSession = Depends(get_session)):
    graph, pid = _edit(session, tree_id, lambda g: crud.add_parent(g, person_id, **body.model_dump()))
    return schemas.PersonCreated(person_id=pid, tree=graph)


@app.put("/api/trees/{tree_id}/people/{person_id}/parents", response_model=TreeGraph)
def reassign_parents(tree_id: str, person_id: str, body: schemas.ParentSelection,
                     session: TreeSession = Depends(get_session)):
    return _edit(session, tree_id, lambda g: crud.reassign_parents(
        g, person_id, parent_ids=body.parent_ids, union_id=body.union_id))


@app.post("/api/trees/{tree_id}/people/{person_id}/children", response_model=schemas.PersonCreated)
def add_child(tree_id: str, person_id: str, body: schemas.PersonIn,
              session: TreeSession = Depends(get_session)):
    graph, pid = _edit(session, tree_id, lambda g: crud.add_child(g, person_id, **body.model_dump()))
    return schemas.PersonCreated(person_id=pid, tree=graph)


@app.post("/api/trees/{tree_id}/people/{person_id}/spouses", response_model=schemas.PersonCreated)
def add_spouse(tree_id: str, person_id: str, body: schemas.SpouseIn,
               session: TreeSession = Depends(get_session)):
    fields = body.model_dump()
    marriage_date = fields.pop("marriage_date")
    graph, pid, union_id = _edit(
        session, tree_id, lambda g: crud.add_spouse(g, person_id, marriage_date=marriage_date, **fields))
    return schemas.PersonCreated(person_id=pid, union_id=union_id, tree=graph)


@app.post("/api/trees/{tree_id}/unions/{union_id}/children", response_model=schemas.PersonCreated)
def add_union_child(tree_id: str, union_id: str, body: schemas.PersonIn,
                    session: TreeSession = Depends(get_session)):
    graph, pid = _edit(session, tree_id, lambda g: crud.add_child_to_union(g, union_id, **body.model_dump()))
    return schemas.PersonCreated(person_id=pid, union_id=union_id, tree=graph)


# ── Views and exports ──

@app.get("/api/trees/{tree_id}/layout", response_model=TreeLayout)
def get_layout(tree_id: str, session: TreeSession = Depends(get_session)):
    _entry_or_404(session, tree_id)
    return session.layout(tree_id)


@app.get("/api/trees/{tree_id}/consistency")
def get_consistency(tree_id: str, session: TreeSession = Depends(get_session)):
    entry = _entry_or_404(session, tree_id)
    return {"warnings": check_consistency(entry.tree)}


@app.get("/api/trees/{tree_id}/export.svg")
def export_svg(tree_id: str, session: TreeSession = Depends(get_session)):
    entry = _entry_or_404(session, tree_id)
    svg = svg_export.render_layout_to_svg(session.layout(tree_id), name=entry.name)
    return Response(
        content=svg,
        media_type="image/svg+xml",
        headers={"Content-Disposition": f'attachment; filename="{trees.slugify(entry.name)}.svg"'},
    )


@app.get("/api/trees/{tree_id}/export.gntree")
def export_gntree(tree_id: str, session: TreeSession = Depends(get_session)):
    entry = _entry_or_404(session, tree_id)
    return JSONResponse(
        trees.export_payload(entry),
        headers={"Content-Disposition": f'attachment; filename="{trees.slugify(entry.name)}.gntree"'},
    )


@app.get("/api/trees/{tree_id}/plotly")
def get_plotly(tree_id: str, session: TreeSession = Depends(get_session)):
    entry = _entry_or_404(session, tree_id)
    return plotly_render.build_plotly_figure_json(entry.tree)
