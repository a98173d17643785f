from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from plotly import graph_objects as go

from ..dates import life_span_label
from ..models import TreeGraph
from .colors import build_node_colors
from .layout import UNION_NODE_SIZE, TreeLayout, compute_tree_layout


def build_plotly_figure(layout: TreeLayout, graph: Optional[TreeGraph] = None) -> go.Figure:
    """
    Interactive view of a computed layout. Coordinates are the layout's own,
    with the y axis reversed so the picture matches the SVG export.
    Person ids travel in ``customdata`` so a click can be mapped back to the graph.
    """
    if not layout.person_nodes:
        fig = go.Figure()
        fig.update_layout(title="No family data found")
        return fig

    edge_x: List[Optional[float]] = []
    edge_y: List[Optional[float]] = []
    edge_cd: List[Optional[str]] = []
    for edge in layout.edges:
        edge_x += [edge.from_.x, edge.to.x, None]
        edge_y += [edge.from_.y, edge.to.y, None]
        edge_cd += [edge.id, edge.id, None]

    edge_trace = go.Scatter(
        x=edge_x,
        y=edge_y,
        mode="lines",
        hoverinfo="none",
        line=dict(width=2, color="#7f8c8d"),
        showlegend=False,
        customdata=edge_cd,
    )

    names = {node.person.id: node.person.display_name or node.person.id for node in layout.person_nodes}
    half = UNION_NODE_SIZE / 2
    union_trace = go.Scatter(
        x=[u.x + half for u in layout.union_nodes],
        y=[u.y + half for u in layout.union_nodes],
        mode="markers",
        marker=dict(symbol="diamond", size=UNION_NODE_SIZE, color="#95a5a6"),
        hoverinfo="text",
        hovertext=[" & ".join(names.get(p, "Unknown") for p in u.partners) for u in layout.union_nodes],
        showlegend=False,
        customdata=[u.id for u in layout.union_nodes],
    )

    person_ids = [node.person.id for node in layout.person_nodes]
    if graph is not None:
        fills = build_node_colors(graph, person_ids)
    else:
        fills = ["#FFFFFF"] * len(person_ids)

    texts: List[str] = []
    hover_texts: List[str] = []
    for node in layout.person_nodes:
        person = node.person
        span = life_span_label(person.birth_date, person.death_date)
        label = names[person.id]
        texts.append(f"<b>{label}</b><br>{span}" if span else f"<b>{label}</b>")
        hover = [label, f"ID: {person.id}"]
        if person.birth_place:
            hover.append(f"Born: {person.birth_place}")
        if person.death_place:
            hover.append(f"Died: {person.death_place}")
        hover_texts.append("<br>".join(hover))

    node_trace = go.Scatter(
        x=[node.center.x for node in layout.person_nodes],
        y=[node.center.y for node in layout.person_nodes],
        mode="text",
        text=texts,
        hovertext=hover_texts,
        hoverinfo="text",
        textposition="middle center",
        showlegend=False,
        customdata=person_ids,
    )

    fig = go.Figure(data=[edge_trace, union_trace, node_trace])
    for node, fill in zip(layout.person_nodes, fills):
        fig.add_shape(
            type="rect",
            x0=node.x,
            y0=node.y,
            x1=node.x + node.width,
            y1=node.y + node.height,
            line=dict(width=2, color="#c3d0e0"),
            fillcolor=fill,
            layer="below",
        )

    fig.update_layout(
        showlegend=False,
        hovermode="closest",
        dragmode="pan",
        autosize=True,
        margin=dict(l=20, r=20, t=20, b=20),
        plot_bgcolor="white",
        paper_bgcolor="white",
        xaxis=dict(
            showgrid=False,
            zeroline=False,
            showticklabels=False,
            range=[0, layout.width],
            scaleanchor="y",
            scaleratio=1,
        ),
        yaxis=dict(
            showgrid=False,
            zeroline=False,
            showticklabels=False,
            range=[layout.height, 0],
        ),
    )
    return fig


def build_plotly_figure_json(graph: TreeGraph) -> Dict[str, Any]:
    fig = build_plotly_figure(compute_tree_layout(graph), graph)
    return json.loads(fig.to_json())


def write_html(fig: go.Figure, out_path: str) -> None:
    config = {"scrollZoom": True, "displayModeBar": True, "responsive": True}
    fig.write_html(out_path, include_plotlyjs="cdn", full_html=True, config=config)
