import math
from typing import Iterable, Optional

import networkx as nx
import numpy as np
import pandas as pd
import plotly.graph_objects as go

from config import DEFAULT_SETTINGS, EDGE_COLOR, SELECTED_NODE_COLOR, UNKNOWN_LABEL
from models import MetaboliteSelection, NetworkData
from utils import SERIES_COLUMNS


def position_axis_exponent(positions: Iterable[float]) -> int:
    """Power of ten (a multiple of 3) used to scale the position axis."""
    values = [abs(p) for p in positions if p]
    if not values:
        return 0
    return int(math.floor(math.log10(min(values)) / 3) * 3)


def create_manhattan_plot(
    series_df: pd.DataFrame,
    subclass_colors: dict,
    selected_id: Optional[str] = None,
) -> Optional[go.Figure]:
    """Scatter of LOD against genomic position, one trace per subclass."""
    if series_df is None or series_df.empty:
        return None

    exp = position_axis_exponent(series_df["position"])
    scale = 10 ** exp

    use_gl = len(series_df) > 5000
    scatter_type = go.Scattergl if use_gl else go.Scatter

    fig = go.Figure()

    for subclass, group in series_df.groupby("subclass", sort=False):
        subclass = subclass or UNKNOWN_LABEL
        customdata = np.column_stack([group[c].to_numpy(dtype=object) for c in SERIES_COLUMNS])

        fig.add_trace(scatter_type(
            x=group["position"] / scale,
            y=group["lod"],
            mode="markers",
            marker=dict(color=subclass_colors.get(subclass, "gray"), size=8),
            name=subclass,
            customdata=customdata,
            hovertemplate=(
                "<b>Metabolite:</b><br>"
                "ID: %{customdata[0]}<br>"
                "Name: %{customdata[1]}<br>"
                "LOD: %{customdata[5]:.2f}<br>"
                "Position: %{customdata[4]:,}<br>"
                "SNP: %{customdata[3]}<br>"
                "Subclass: %{customdata[2]}<extra></extra>"
            ),
        ))

    if selected_id:
        selected = series_df[series_df["id"] == selected_id]
        if not selected.empty:
            fig.add_trace(go.Scatter(
                x=selected["position"] / scale,
                y=selected["lod"],
                mode="markers",
                marker=dict(size=14, color="rgba(0,0,0,0)", line=dict(width=2, color=SELECTED_NODE_COLOR)),
                name="Selected",
                hoverinfo="skip",
                showlegend=False,
            ))

    fig.update_layout(
        xaxis_title=f"Genomic Position (10^{exp})",
        yaxis_title="LOD Score",
        hovermode="closest",
        plot_bgcolor="white",
        height=450,
        legend=dict(title=dict(text="Metabolite Subclasses")),
        clickmode="event+select",
    )

    fig.update_xaxes(showgrid=True, gridwidth=1, gridcolor="rgba(0,0,0,0.1)")
    fig.update_yaxes(showgrid=True, gridwidth=1, gridcolor="rgba(0,0,0,0.1)")

    return fig


def build_network_graph(graph: NetworkData) -> nx.MultiGraph:
    """Load nodes and edges into networkx, keeping repeated edges and self-loops."""
    G = nx.MultiGraph()

    for node in graph.nodes:
        G.add_node(node.id, name=node.name, subclass=node.subclass)

    for edge in graph.edges:
        G.add_edge(edge.source, edge.target)

    return G


def plot_network(
    G: nx.MultiGraph,
    subclass_colors: dict,
    selected_id: Optional[str] = None,
    title: str = "Metabolite Correlation Network",
) -> Optional[go.Figure]:
    if G.number_of_nodes() == 0:
        return None

    pos = nx.spring_layout(
        G, iterations=DEFAULT_SETTINGS.layout_iterations, seed=DEFAULT_SETTINGS.layout_seed,
    )

    edge_x = []
    edge_y = []
    for u, v in G.edges():
        x0, y0 = pos[u]
        x1, y1 = pos[v]
        edge_x += [x0, x1, None]
        edge_y += [y0, y1, None]

    edge_trace = go.Scatter(
        x=edge_x,
        y=edge_y,
        mode="lines",
        line=dict(width=1, color=EDGE_COLOR),
        hoverinfo="skip",
        showlegend=False,
    )

    nodes = list(G.nodes())
    node_colors = []
    for n in nodes:
        if selected_id and n == selected_id:
            node_colors.append(SELECTED_NODE_COLOR)
        else:
            node_colors.append(subclass_colors.get(G.nodes[n].get("subclass"), "gray"))

    node_trace = go.Scatter(
        x=[pos[n][0] for n in nodes],
        y=[pos[n][1] for n in nodes],
        mode="markers",
        marker=dict(size=12, color=node_colors, line=dict(width=1, color="white")),
        customdata=[[n, G.nodes[n].get("name"), G.nodes[n].get("subclass")] for n in nodes],
        hovertext=[f"{n} ({G.nodes[n].get('name')})" for n in nodes],
        hoverinfo="text",
        showlegend=False,
    )

    fig = go.Figure(data=[edge_trace, node_trace])

    fig.update_layout(
        title=title,
        showlegend=False,
        hovermode="closest",
        xaxis=dict(showgrid=False, zeroline=False, showticklabels=False),
        yaxis=dict(showgrid=False, zeroline=False, showticklabels=False),
        plot_bgcolor="white",
        height=450,
        clickmode="event+select",
    )

    return fig


def get_network_stats(G: nx.MultiGraph) -> dict:
    if G.number_of_nodes() == 0:
        return {
            "n_nodes": 0, "n_edges": 0, "n_clusters": 0, "largest_cluster": 0,
            "self_loops": 0, "repeated_edges": 0, "density": 0,
        }

    simple = nx.Graph(G)
    components = list(nx.connected_components(simple))

    return {
        "n_nodes": G.number_of_nodes(),
        "n_edges": G.number_of_edges(),
        "n_clusters": len(components),
        "largest_cluster": max(len(c) for c in components),
        "self_loops": nx.number_of_selfloops(G),
        "repeated_edges": G.number_of_edges() - simple.number_of_edges(),
        "density": nx.density(simple),
    }


def _selected_points(event) -> list:
    if not event:
        return []
    selection = event.get("selection") or {}
    return [p for p in selection.get("points", []) if p.get("customdata")]


def selection_from_event(event, view: str) -> Optional[MetaboliteSelection]:
    """Translate a Streamlit plotly selection event into a ``MetaboliteSelection``.

    ``view`` is "manhattan" or "network"; only Manhattan points carry SNP,
    position and LOD.
    """
    points = _selected_points(event)
    if not points:
        return None

    data = list(points[0]["customdata"])

    if view == "manhattan":
        metabolite_id, name, subclass, snp, position, lod = data[:6]
        return MetaboliteSelection(
            id=str(metabolite_id),
            name=name,
            subclass=subclass,
            snp=snp,
            position=float(position),
            lod=float(lod),
        )
    if view == "network":
        metabolite_id, name, subclass = data[:3]
        return MetaboliteSelection(id=str(metabolite_id), name=name, subclass=subclass)

    raise ValueError(f"Unknown view: {view}")


def pick_new_selection(events: dict, last_seen: dict) -> Optional[MetaboliteSelection]:
    """Return the selection of the first view whose own selection changed.

    ``events`` maps view name to its chart event and ``last_seen`` maps view
    name to the selection seen on the previous run; it is updated in place
    for every view. At most one selection is returned per run.
    """
    picked = None
    for view, event in events.items():
        selection = selection_from_event(event, view)
        if selection == last_seen.get(view):
            continue
        last_seen[view] = selection
        if picked is None and selection is not None:
            picked = selection
    return picked
