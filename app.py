import logging
from pathlib import Path

import streamlit as st

from data_layer import BytesFileSource, LocalFileSource, UploadedFileSource
from models import MetaboliteSelection, ProcessedResult
from pipeline import DashboardSession, PipelineError, PipelineState
from plots import (
    build_network_graph, create_manhattan_plot, get_network_stats, plot_network,
    pick_new_selection,
)
from utils import export_network_csv, export_series_csv, filter_series, series_to_dataframe

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("metabolomics_dashboard")

st.set_page_config(
    page_title="Metabolomics Dashboard",
    page_icon="🧪",
    layout="wide",
    initial_sidebar_state="collapsed"
)

st.markdown("""
<style>
    .main-header {
        font-size: 2.5rem;
        font-weight: bold;
        margin-bottom: 0.5rem;
        text-align: center;
    }
    .sub-header {
        font-size: 1.1rem;
        color: #666;
        margin-bottom: 2rem;
        text-align: center;
    }
</style>
""", unsafe_allow_html=True)

SAMPLE_DIR = Path("data")
STEPS = ["Upload CSV Files", "View Interactive Plots"]

FILE_TYPES = [
    {
        "id": "metabolite_info",
        "label": "Metabolite Information (CSV)",
        "description": "Contains metadata about metabolites (metabolite_id, name, subclass)",
        "sample": "metabolite_info.csv",
    },
    {
        "id": "correlations",
        "label": "Metabolite Correlations (CSV)",
        "description": "Contains pairs of strongly correlated metabolites (metabolite_1, metabolite_2)",
        "sample": "correlations.csv",
    },
    {
        "id": "gwas_data",
        "label": "GWAS Data (CSV)",
        "description": "Contains GWAS hits per metabolite (metabolite_id, snp, position, lod)",
        "sample": "gwas_data.csv",
    },
]


@st.cache_data(show_spinner=False)
def load_sample_files() -> dict:
    """Read the bundled sample files, if generate_sample_data.py has been run."""
    files = {}
    for file_type in FILE_TYPES:
        path = SAMPLE_DIR / file_type["sample"]
        if path.exists():
            files[file_type["id"]] = LocalFileSource(path).read_bytes()
    return files


def init_session_state():
    if "dashboard" not in st.session_state:
        st.session_state.dashboard = DashboardSession()
    if "active_step" not in st.session_state:
        st.session_state.active_step = 0
    if "selected_metabolite" not in st.session_state:
        st.session_state.selected_metabolite = None
    if "use_sample_data" not in st.session_state:
        st.session_state.use_sample_data = False
    if "last_selections" not in st.session_state:
        st.session_state.last_selections = {}


def main():
    init_session_state()

    st.markdown('<p class="main-header">Metabolomics Dashboard</p>', unsafe_allow_html=True)
    st.markdown('<p class="sub-header">Explore GWAS hits and correlation networks for your metabolites</p>', unsafe_allow_html=True)

    step = st.session_state.active_step
    st.progress((step + 1) / len(STEPS), text=f"Step {step + 1} of {len(STEPS)}: {STEPS[step]}")

    dashboard: DashboardSession = st.session_state.dashboard

    if step == 0 or dashboard.result is None:
        render_upload_step(dashboard)
    else:
        render_visualization_step(dashboard.result)


def render_upload_step(dashboard: DashboardSession):
    st.header("Upload CSV Files")

    uploads = {}
    cols = st.columns(len(FILE_TYPES))
    for col, file_type in zip(cols, FILE_TYPES):
        with col:
            uploads[file_type["id"]] = st.file_uploader(
                file_type["label"],
                type=["csv"],
                key=f"upload_{file_type['id']}",
                help=file_type["description"],
            )
            st.caption(file_type["description"])

    sample_files = load_sample_files()
    if len(sample_files) == len(FILE_TYPES):
        st.checkbox("Use bundled sample data instead", key="use_sample_data")

    if st.session_state.use_sample_data and len(sample_files) == len(FILE_TYPES):
        sources = {
            file_type["id"]: BytesFileSource(sample_files[file_type["id"]], name=file_type["sample"])
            for file_type in FILE_TYPES
        }
    else:
        sources = {k: UploadedFileSource(v) for k, v in uploads.items() if v is not None}

    st.subheader("Uploaded Files")
    for file_type in FILE_TYPES:
        if file_type["id"] in sources:
            st.markdown(f"✅ {file_type['label']}")
        else:
            st.markdown(f"⬜ {file_type['label']}")

    all_present = len(sources) == len(FILE_TYPES)

    if dashboard.state == PipelineState.FAILED and dashboard.error is not None:
        st.error(f"Error processing files: {dashboard.error}")
        with st.expander("Details"):
            st.code(dashboard.error.describe())

    bcol1, bcol2 = st.columns([1, 1])
    with bcol1:
        st.button("Back", disabled=True, key="back_upload")
    with bcol2:
        if st.button("Next", type="primary", key="next_upload"):
            if not all_present:
                st.warning("Please upload all required files")
                return
            run_pipeline(dashboard, sources)


def run_pipeline(dashboard: DashboardSession, sources: dict):
    with st.spinner("Processing files..."):
        try:
            result = dashboard.run(
                sources["metabolite_info"],
                sources["correlations"],
                sources["gwas_data"],
            )
        except PipelineError as e:
            logger.error("Error processing files: %s", e.describe())
            st.rerun()
            return

    if result is None:
        return

    st.session_state.selected_metabolite = None
    st.session_state.active_step = 1
    st.rerun()


def go_back():
    st.session_state.dashboard.reset()
    st.session_state.selected_metabolite = None
    st.session_state.last_selections = {}
    st.session_state.active_step = 0


def render_visualization_step(result: ProcessedResult):
    st.header("Interactive Metabolomics Visualization")

    selected: MetaboliteSelection = st.session_state.selected_metabolite
    selected_id = selected.id if selected else None

    mcol1, mcol2, mcol3, mcol4 = st.columns(4)
    mcol1.metric("Metabolites", f"{len(result.registry):,}")
    mcol2.metric("GWAS Points", f"{len(result.series):,}")
    mcol3.metric("Network Nodes", f"{len(result.graph.nodes):,}")
    mcol4.metric("Network Edges", f"{len(result.graph.edges):,}")

    events = {}
    pcol1, pcol2 = st.columns(2)
    with pcol1:
        events["manhattan"] = render_manhattan_panel(result, selected_id)
    with pcol2:
        events["network"] = render_network_panel(result, selected_id)

    selection = pick_new_selection(events, st.session_state.last_selections)
    if selection is not None:
        st.session_state.selected_metabolite = selection
        metabolite_details_dialog(selection)

    st.button("Back", on_click=go_back, key="back_visualize")


def render_manhattan_panel(result: ProcessedResult, selected_id):
    st.subheader("Manhattan Plot (GWAS Data)")

    series_df = series_to_dataframe(result.series)
    if series_df.empty:
        st.info("No GWAS points with a position and LOD score to display.")
        return

    fcol1, fcol2 = st.columns(2)
    with fcol1:
        subclasses = st.multiselect(
            "Subclass",
            options=list(dict.fromkeys(series_df["subclass"])),
            key="manhattan_subclass_filter",
        )
    with fcol2:
        max_lod = float(series_df["lod"].max())
        min_lod = st.slider(
            "Min LOD Score",
            min_value=0.0,
            max_value=max(max_lod, 0.1),
            value=0.0,
            step=0.1,
            key="manhattan_min_lod",
        )

    filtered = filter_series(series_df, subclasses=subclasses, min_lod=min_lod or None)
    if filtered.empty:
        st.info("No points match the current filters.")
        return

    st.caption(f"Showing {len(filtered):,} of {len(series_df):,} points")

    fig = create_manhattan_plot(filtered, result.subclass_colors, selected_id=selected_id)
    event = st.plotly_chart(
        fig,
        use_container_width=True,
        on_select="rerun",
        selection_mode="points",
        key="manhattan_chart",
    )

    st.download_button(
        label="Download GWAS Points (CSV)",
        data=export_series_csv(filtered),
        file_name="gwas_points.csv",
        mime="text/csv",
    )
    return event


def render_network_panel(result: ProcessedResult, selected_id):
    st.subheader("Metabolite Correlation Network")

    G = build_network_graph(result.graph)
    if G.number_of_nodes() == 0:
        st.info("No correlation pairs to display.")
        return

    fig = plot_network(G, result.subclass_colors, selected_id=selected_id)
    event = st.plotly_chart(
        fig,
        use_container_width=True,
        on_select="rerun",
        selection_mode="points",
        key="network_chart",
    )

    net_stats = get_network_stats(G)
    ncol1, ncol2, ncol3 = st.columns(3)
    ncol1.metric("Clusters", net_stats["n_clusters"])
    ncol2.metric("Largest Cluster", net_stats["largest_cluster"])
    ncol3.metric("Density", f"{net_stats['density']:.3f}")

    if net_stats["self_loops"] or net_stats["repeated_edges"]:
        st.caption(
            f"{net_stats['self_loops']} self-correlations and "
            f"{net_stats['repeated_edges']} repeated pairs are included as given"
        )

    st.download_button(
        label="Download Network Edges (CSV)",
        data=export_network_csv(result),
        file_name="network_edges.csv",
        mime="text/csv",
    )
    return event


@st.dialog("Metabolite Details")
def metabolite_details_dialog(selection: MetaboliteSelection):
    st.markdown(f"**ID:** {selection.id}")
    st.markdown(f"**Name:** {selection.name or 'Not specified'}")
    st.markdown(f"**Subclass:** {selection.subclass or 'Not specified'}")
    if selection.snp:
        st.markdown(f"**SNP:** {selection.snp}")
    if selection.position:
        st.markdown(f"**Position:** {selection.position:,.0f}")
    if selection.lod:
        st.markdown(f"**LOD Score:** {selection.lod:.2f}")
    if st.button("Close", type="primary"):
        st.rerun()


if __name__ == "__main__":
    main()
