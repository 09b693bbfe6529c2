import pytest

from config import SELECTED_NODE_COLOR, SUBCLASS_PALETTE
from models import CorrelationEdge, MetaboliteSelection, NetworkData, NetworkNode
from pipeline import process_files
from plots import (
    build_network_graph, create_manhattan_plot, get_network_stats, plot_network,
    pick_new_selection, position_axis_exponent, selection_from_event,
)
from utils import series_to_dataframe


def _graph() -> NetworkData:
    return NetworkData(
        nodes=(
            NetworkNode("M1", "Alpha", "Lipid"),
            NetworkNode("M2", "Beta", "Amino"),
            NetworkNode("M3", "Gamma", "Amino"),
        ),
        edges=(
            CorrelationEdge("M1", "M2"),
            CorrelationEdge("M1", "M2"),
            CorrelationEdge("M3", "M3"),
        ),
    )


def test_position_axis_exponent() -> None:
    assert position_axis_exponent([5000, 6000]) == 3
    assert position_axis_exponent([1_500_000, 9e8]) == 6
    assert position_axis_exponent([999]) == 0
    assert position_axis_exponent([]) == 0


def test_manhattan_plot_has_one_trace_per_subclass(info_csv, correlations_csv, gwas_csv) -> None:
    result = process_files(info_csv, correlations_csv, gwas_csv)
    fig = create_manhattan_plot(series_to_dataframe(result.series), result.subclass_colors)

    assert [t.name for t in fig.data] == ["Lipid", "Unknown"]
    assert fig.data[0].marker.color == result.subclass_colors["Lipid"]
    assert list(fig.data[0].x) == [5.0]
    assert fig.layout.xaxis.title.text == "Genomic Position (10^3)"


def test_manhattan_plot_empty() -> None:
    assert create_manhattan_plot(series_to_dataframe(()), {}) is None


def test_network_graph_keeps_parallel_edges_and_self_loops() -> None:
    G = build_network_graph(_graph())
    stats = get_network_stats(G)

    assert stats["n_nodes"] == 3
    assert stats["n_edges"] == 3
    assert stats["self_loops"] == 1
    assert stats["repeated_edges"] == 1
    assert stats["n_clusters"] == 2
    assert stats["largest_cluster"] == 2


def test_network_stats_empty() -> None:
    assert get_network_stats(build_network_graph(NetworkData()))["n_nodes"] == 0


def test_plot_network_highlights_selected_node() -> None:
    colors = {"Lipid": SUBCLASS_PALETTE[0], "Amino": SUBCLASS_PALETTE[1]}
    fig = plot_network(build_network_graph(_graph()), colors, selected_id="M2")

    node_trace = fig.data[-1]
    assert list(node_trace.marker.color) == [SUBCLASS_PALETTE[0], SELECTED_NODE_COLOR, SUBCLASS_PALETTE[1]]
    assert list(node_trace.hovertext) == ["M1 (Alpha)", "M2 (Beta)", "M3 (Gamma)"]


def test_plot_network_empty() -> None:
    assert plot_network(build_network_graph(NetworkData()), {}) is None


def test_selection_from_manhattan_event() -> None:
    event = {"selection": {"points": [
        {"customdata": ["M1", "Alpha", "Lipid", "rs100", 5000, 4.5], "x": 5.0, "y": 4.5},
    ]}}

    assert selection_from_event(event, "manhattan") == MetaboliteSelection(
        id="M1", name="Alpha", subclass="Lipid", snp="rs100", position=5000.0, lod=4.5,
    )


def test_selection_from_network_event_has_no_gwas_details() -> None:
    event = {"selection": {"points": [{"customdata": ["M2", "Beta", "Amino"]}]}}
    selection = selection_from_event(event, "network")

    assert selection == MetaboliteSelection(id="M2", name="Beta", subclass="Amino")
    assert selection.snp is None and selection.position is None and selection.lod is None


def test_selection_from_empty_event() -> None:
    assert selection_from_event(None, "network") is None
    assert selection_from_event({"selection": {"points": []}}, "manhattan") is None
    assert selection_from_event({"selection": {"points": [{"x": 1, "y": 2}]}}, "network") is None


def test_selection_from_unknown_view() -> None:
    with pytest.raises(ValueError):
        selection_from_event({"selection": {"points": [{"customdata": ["M1"]}]}}, "table")


def test_pick_new_selection_follows_the_view_that_changed() -> None:
    point_a = {"selection": {"points": [
        {"customdata": ["M1", "Alpha", "Lipid", "rs100", 5000, 4.5]},
    ]}}
    node_b = {"selection": {"points": [{"customdata": ["M2", "Beta", "Amino"]}]}}
    last_seen = {}

    first = pick_new_selection({"manhattan": point_a, "network": None}, last_seen)
    assert first.id == "M1"

    second = pick_new_selection({"manhattan": point_a, "network": node_b}, last_seen)
    assert second == MetaboliteSelection(id="M2", name="Beta", subclass="Amino")

    # Rerun with both charts still holding their selections
    assert pick_new_selection({"manhattan": point_a, "network": node_b}, last_seen) is None


def test_pick_new_selection_returns_one_selection_per_run() -> None:
    point_a = {"selection": {"points": [
        {"customdata": ["M1", "Alpha", "Lipid", "rs100", 5000, 4.5]},
    ]}}
    node_b = {"selection": {"points": [{"customdata": ["M2", "Beta", "Amino"]}]}}
    last_seen = {}

    picked = pick_new_selection({"manhattan": point_a, "network": node_b}, last_seen)

    assert picked.id == "M1"
    assert last_seen["network"].id == "M2"
    assert pick_new_selection({"manhattan": point_a, "network": node_b}, last_seen) is None


def test_pick_new_selection_cleared_selection_opens_nothing() -> None:
    node_b = {"selection": {"points": [{"customdata": ["M2", "Beta", "Amino"]}]}}
    last_seen = {}
    pick_new_selection({"network": node_b}, last_seen)

    assert pick_new_selection({"network": {"selection": {"points": []}}}, last_seen) is None
    assert last_seen["network"] is None
    assert pick_new_selection({"network": node_b}, last_seen).id == "M2"
