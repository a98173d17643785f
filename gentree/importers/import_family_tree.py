from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import List, Optional

from .. import db, trees
from ..graph import check_consistency
from ..render import plotly_render, svg_export
from ..render.layout import compute_tree_layout
from .family_tree_json import parse_family_tree_json
from .legacy_csv import build_graph_from_rows, read_legacy_file

logger = logging.getLogger(__name__)


def load_tree_file(file_path: Path):
    """Returns (graph, suggested_name, warnings) for a .json/.gntree or .csv/.txt file."""
    suffix = file_path.suffix.lower()
    if suffix in (".json", ".gntree"):
        graph, name = parse_family_tree_json(file_path)
        return graph, name, []
    if suffix in (".txt", ".csv"):
        rows = read_legacy_file(str(file_path))
        graph, warnings = build_graph_from_rows(rows)
        return graph, None, warnings
    raise ValueError(f"Unsupported file format: {file_path.suffix}. Use .json, .gntree, .txt or .csv")


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Import a family tree file into a tree collection")
    parser.add_argument("file_path", help="Path to family tree file (.json, .gntree, .txt or .csv)")
    parser.add_argument("--name", default=None, help="Name for the imported tree")
    parser.add_argument("--db", default=str(db.DB_PATH), help="KuzuDB database to import into")
    parser.add_argument("--svg", default=None, help="Also write an SVG render to this path")
    parser.add_argument("--html", default=None, help="Also write an interactive Plotly page to this path")
    parser.add_argument("--dry-run", action="store_true", help="Parse and render without saving")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(levelname)s %(name)s: %(message)s")

    file_path = Path(args.file_path)
    if not file_path.exists():
        raise SystemExit(f"File not found: {file_path}")

    try:
        graph, suggested, warnings = load_tree_file(file_path)
    except ValueError as e:
        raise SystemExit(str(e))

    if warnings:
        print("\n⚠️  IMPORT WARNINGS:")
        for warning in warnings:
            print(f"  - {warning}")
        print()

    problems = check_consistency(graph)
    if problems:
        print("\n⚠️  CONSISTENCY WARNINGS:")
        for problem in problems:
            print(f"  - {problem}")
        print()

    name = args.name or suggested or file_path.stem

    if args.svg:
        Path(args.svg).write_text(svg_export.render_tree_to_svg(graph, name=name), encoding="utf-8")
        print(f"Wrote SVG to {args.svg}")
    if args.html:
        fig = plotly_render.build_plotly_figure(compute_tree_layout(graph), graph)
        plotly_render.write_html(fig, args.html)
        print(f"Wrote HTML to {args.html}")

    if args.dry_run:
        print(f"Parsed {len(graph.people)} people (dry run, nothing saved)")
        return

    database = db.open_database(Path(args.db))
    session = db.TreeSession(database)
    try:
        session.change(lambda c: trees.add_tree(c, name, graph)[0])
    finally:
        session.close()
        database.close()
    logger.info("Imported %s into %s", file_path.name, args.db)
    print(f"Import complete: {len(graph.people)} people into tree {name!r}")


if __name__ == "__main__":
    main()
