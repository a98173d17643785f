"""Static SVG rendering of a tree layout, for download and printing."""
from __future__ import annotations

import xml.etree.ElementTree as ET
from typing import List, Optional

from ..dates import life_span_label
from ..models import TreeGraph
from .layout import UNION_NODE_SIZE, TreeLayout, compute_tree_layout

SVG_MARGIN = 160
NODE_PADDING = 16
FONT_FAMILY = "'Inter', 'Segoe UI', sans-serif"
EDGE_COLOR = "#7f8c8d"
UNION_COLOR = "#95a5a6"


def _fmt(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:g}"


def wrap_text(value: str, max_width: float) -> List[str]:
    """Greedy word wrap using the same average glyph width as the layout estimate."""
    if not value:
        return []
    max_chars = max(18, int(max_width // 8))
    lines: List[str] = []
    current = ""
    for word in value.split():
        candidate = f"{current} {word}" if current else word
        if len(candidate) > max_chars and current:
            lines.append(current)
            current = word
        else:
            current = candidate
    if current:
        lines.append(current)
    return lines


def render_layout_to_svg(layout: TreeLayout, name: Optional[str] = None) -> str:
    content_width = max(layout.width, 1)
    content_height = max(layout.height, 1)
    total_width = content_width + SVG_MARGIN * 2
    total_height = content_height + SVG_MARGIN * 2
    title = (name or "").strip()

    svg = ET.Element("svg", {
        "xmlns": "http://www.w3.org/2000/svg",
        "width": _fmt(total_width),
        "height": _fmt(total_height),
        "viewBox": f"0 0 {_fmt(total_width)} {_fmt(total_height)}",
        "preserveAspectRatio": "xMidYMid meet",
    })
    defs = ET.SubElement(svg, "defs")
    style = ET.SubElement(defs, "style")
    style.text = f"text {{ font-family: {FONT_FAMILY}; }}"
    ET.SubElement(svg, "rect", {
        "x": "0", "y": "0", "width": _fmt(total_width), "height": _fmt(total_height), "fill": "#ffffff",
    })

    if title:
        title_el = ET.SubElement(svg, "text", {
            "x": _fmt(total_width / 2),
            "y": _fmt(SVG_MARGIN / 2),
            "font-size": "28",
            "font-weight": "700",
            "fill": "#22303f",
            "text-anchor": "middle",
        })
        title_el.text = title

    canvas = ET.SubElement(svg, "g", {"transform": f"translate({SVG_MARGIN} {SVG_MARGIN})"})

    edge_group = ET.SubElement(canvas, "g", {"stroke-linecap": "round", "stroke-linejoin": "round"})
    for edge in layout.edges:
        ET.SubElement(edge_group, "line", {
            "id": edge.id,
            "x1": _fmt(edge.from_.x),
            "y1": _fmt(edge.from_.y),
            "x2": _fmt(edge.to.x),
            "y2": _fmt(edge.to.y),
            "stroke": EDGE_COLOR,
            "stroke-width": "2",
            "fill": "none",
        })

    for union in layout.union_nodes:
        cx = union.x + UNION_NODE_SIZE / 2
        cy = union.y + UNION_NODE_SIZE / 2
        ET.SubElement(canvas, "rect", {
            "id": f"union-{union.id}",
            "x": _fmt(union.x),
            "y": _fmt(union.y),
            "width": _fmt(UNION_NODE_SIZE),
            "height": _fmt(UNION_NODE_SIZE),
            "fill": UNION_COLOR,
            "rx": "4",
            "ry": "4",
            "transform": f"rotate(45 {_fmt(cx)} {_fmt(cy)})",
        })

    for node in layout.person_nodes:
        person = node.person
        group = ET.SubElement(canvas, "g", {
            "id": f"person-{person.id}",
            "transform": f"translate({_fmt(node.x)} {_fmt(node.y)})",
        })
        ET.SubElement(group, "rect", {
            "width": _fmt(node.width),
            "height": _fmt(node.height),
            "rx": "12",
            "ry": "12",
            "fill": "rgba(255,255,255,0.95)",
            "stroke": "#c3d0e0",
            "stroke-width": "2",
        })

        detail_lines: List[str] = []
        if person.birth_place:
            detail_lines.extend(wrap_text(f"Born: {person.birth_place}", node.width - NODE_PADDING * 2))
        if person.death_place:
            detail_lines.extend(wrap_text(f"Died: {person.death_place}", node.width - NODE_PADDING * 2))

        current_y = 28
        name_el = ET.SubElement(group, "text", {
            "x": str(NODE_PADDING), "y": str(current_y),
            "font-size": "18", "font-weight": "700", "fill": "#22303f",
        })
        name_el.text = person.display_name

        span = life_span_label(person.birth_date, person.death_date)
        if span:
            current_y += 22
            span_el = ET.SubElement(group, "text", {
                "x": str(NODE_PADDING), "y": str(current_y), "font-size": "14", "fill": "#54657a",
            })
            span_el.text = span

        for line in detail_lines:
            current_y += 20
            line_el = ET.SubElement(group, "text", {
                "x": str(NODE_PADDING), "y": str(current_y), "font-size": "13", "fill": "#5f7289",
            })
            line_el.text = line

    return ET.tostring(svg, encoding="unicode")


def render_tree_to_svg(graph: TreeGraph, name: Optional[str] = None) -> str:
    return render_layout_to_svg(compute_tree_layout(graph), name=name)
