import logging
import math
from typing import Iterable, Optional

import pandas as pd

from config import SUBCLASS_PALETTE, UNKNOWN_LABEL
from models import (
    AssociationPoint, CorrelationEdge, MetaboliteRecord, MetaboliteRegistry,
    NetworkData, NetworkNode, ProcessedResult,
)

logger = logging.getLogger(__name__)

SERIES_COLUMNS = ['id', 'name', 'subclass', 'snp', 'position', 'lod']


def is_missing(value) -> bool:
    """True for None, NaN/NA and blank strings."""
    if value is None or value is pd.NA:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def clean_text(value) -> Optional[str]:
    if is_missing(value):
        return None
    return str(value).strip()


def as_truthy_number(value) -> Optional[float]:
    """Coerce a field to a float, or None when it is missing, non-numeric, NaN or zero."""
    if is_missing(value) or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or number == 0:
        return None
    return number


def _records(df: pd.DataFrame) -> list[dict]:
    if df is None or df.empty:
        return []
    return df.to_dict('records')


def build_metabolite_registry(info_df: pd.DataFrame) -> MetaboliteRegistry:
    """Build the id -> metadata lookup from metabolite-info rows.

    Rows without a metabolite_id are skipped. When an id repeats, the last
    row wins. A missing subclass becomes 'Unknown'.
    """
    records = {}
    skipped = 0

    for row in _records(info_df):
        metabolite_id = clean_text(row.get('metabolite_id'))
        if not metabolite_id:
            skipped += 1
            continue

        records[metabolite_id] = MetaboliteRecord(
            id=metabolite_id,
            name=clean_text(row.get('name')) or UNKNOWN_LABEL,
            subclass=clean_text(row.get('subclass')) or UNKNOWN_LABEL,
        )

    if skipped:
        logger.info("Skipped %d metabolite-info rows without metabolite_id", skipped)
    return MetaboliteRegistry(records)


def build_network_data(correlations_df: pd.DataFrame, registry: MetaboliteRegistry) -> NetworkData:
    """Turn correlation pairs into a node set and an edge list.

    Pairs with an empty endpoint are dropped. Every other pair becomes an
    edge as given, repeats and self-loops included; nodes are unique by id
    in first-seen order.
    """
    node_ids = {}
    edges = []
    dropped = 0

    for row in _records(correlations_df):
        source = clean_text(row.get('metabolite_1'))
        target = clean_text(row.get('metabolite_2'))
        if not source or not target:
            dropped += 1
            continue

        node_ids.setdefault(source, None)
        node_ids.setdefault(target, None)
        edges.append(CorrelationEdge(source=source, target=target))

    nodes = []
    for metabolite_id in node_ids:
        info = registry.resolve(metabolite_id)
        nodes.append(NetworkNode(id=metabolite_id, name=info.name, subclass=info.subclass))

    if dropped:
        logger.info("Dropped %d correlation rows with a missing endpoint", dropped)
    return NetworkData(nodes=tuple(nodes), edges=tuple(edges))


def build_gwas_series(gwas_df: pd.DataFrame, registry: MetaboliteRegistry) -> tuple[AssociationPoint, ...]:
    """Annotate GWAS rows with registry metadata and drop unusable ones.

    A row is kept only if both position and lod are numbers other than
    zero. Source order is preserved.
    """
    points = []
    dropped = 0

    for row in _records(gwas_df):
        position = as_truthy_number(row.get('position'))
        lod = as_truthy_number(row.get('lod'))
        if position is None or lod is None:
            dropped += 1
            continue

        metabolite_id = clean_text(row.get('metabolite_id')) or ''
        info = registry.resolve(metabolite_id)
        points.append(AssociationPoint(
            id=metabolite_id,
            name=info.name,
            subclass=info.subclass,
            snp=clean_text(row.get('snp')) or '',
            position=position,
            lod=lod,
        ))

    if dropped:
        logger.info("Dropped %d GWAS rows with missing or zero position/lod", dropped)
    return tuple(points)


def assign_subclass_colors(subclasses: Iterable[str], palette: tuple = SUBCLASS_PALETTE) -> dict:
    """Map each distinct subclass, in first-seen order, to a palette color.

    The palette index wraps around once every color has been used.
    """
    colors = {}
    for subclass in subclasses:
        key = subclass or UNKNOWN_LABEL
        if key not in colors:
            colors[key] = palette[len(colors) % len(palette)]
    return colors


def get_subclass_colors(series: Iterable[AssociationPoint], graph: NetworkData) -> dict:
    """Get subclass colors shared by both views (plot subclasses first, then network)."""
    ordered = [p.subclass for p in series] + [n.subclass for n in graph.nodes]
    return assign_subclass_colors(ordered)


def series_to_dataframe(series: Iterable[AssociationPoint]) -> pd.DataFrame:
    rows = [
        {
            'id': p.id, 'name': p.name, 'subclass': p.subclass,
            'snp': p.snp, 'position': p.position, 'lod': p.lod,
        }
        for p in series
    ]
    return pd.DataFrame(rows, columns=SERIES_COLUMNS)


def filter_series(
    df: pd.DataFrame,
    subclasses: Optional[list] = None,
    min_lod: Optional[float] = None,
    search_query: Optional[str] = None,
) -> pd.DataFrame:
    """Apply view filters to a series dataframe."""
    if df.empty:
        return df

    filtered = df.copy()

    if subclasses:
        filtered = filtered[filtered['subclass'].isin(subclasses)]

    if min_lod is not None:
        filtered = filtered[filtered['lod'] >= min_lod]

    if search_query:
        query_lower = search_query.lower()
        mask = (
            filtered['id'].str.lower().str.contains(query_lower, na=False, regex=False) |
            filtered['name'].str.lower().str.contains(query_lower, na=False, regex=False) |
            filtered['snp'].str.lower().str.contains(query_lower, na=False, regex=False)
        )
        filtered = filtered[mask]

    return filtered


def export_series_csv(df: pd.DataFrame) -> str:
    """Export the cleaned GWAS series to CSV string."""
    available = [c for c in SERIES_COLUMNS if c in df.columns]
    return df[available].to_csv(index=False)


def export_network_csv(result: ProcessedResult) -> str:
    """Export network edges with both endpoints' metadata to CSV string."""
    rows = []
    for edge in result.graph.edges:
        source = result.registry.resolve(edge.source)
        target = result.registry.resolve(edge.target)
        rows.append({
            'metabolite_1': edge.source,
            'name_1': source.name,
            'subclass_1': source.subclass,
            'metabolite_2': edge.target,
            'name_2': target.name,
            'subclass_2': target.subclass,
        })
    columns = ['metabolite_1', 'name_1', 'subclass_1', 'metabolite_2', 'name_2', 'subclass_2']
    return pd.DataFrame(rows, columns=columns).to_csv(index=False)
