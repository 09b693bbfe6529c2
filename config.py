"""Table schemas and dashboard settings."""

from dataclasses import dataclass
from typing import Optional

UNKNOWN_LABEL = "Unknown"
SELECTED_NODE_COLOR = "#FF0000"
EDGE_COLOR = "rgba(0,0,0,0.2)"

SUBCLASS_PALETTE = (
    "rgba(255, 99, 132, 0.7)",
    "rgba(54, 162, 235, 0.7)",
    "rgba(255, 206, 86, 0.7)",
    "rgba(75, 192, 192, 0.7)",
    "rgba(153, 102, 255, 0.7)",
    "rgba(255, 159, 64, 0.7)",
    "rgba(199, 199, 199, 0.7)",
    "rgba(83, 102, 255, 0.7)",
    "rgba(255, 99, 255, 0.7)",
    "rgba(0, 162, 172, 0.7)",
    "rgba(0, 0, 0, 0.7)",
    "rgba(103, 242, 100, 0.7)",
    "rgba(173, 216, 230, 0.7)",
    "rgba(216, 174, 173, 0.7)",
    "rgba(230, 185, 216, 0.7)",
    "rgba(141, 216, 173, 0.7)",
    "rgba(173, 216, 141, 0.7)",
    "rgba(185, 230, 216, 0.7)",
    "rgba(216, 141, 173, 0.7)",
    "rgba(141, 185, 230, 0.7)",
    "rgba(230, 141, 216, 0.7)",
    "rgba(216, 230, 173, 0.7)",
)


@dataclass(frozen=True)
class TableSchema:
    """Expected header of one of the uploaded CSV files.

    Text columns (identifiers and labels) are always read as strings;
    every other column goes through pandas type inference so numeric
    fields arrive as numbers.
    """

    name: str
    columns: tuple[str, ...]
    text_columns: tuple[str, ...] = ()
    optional_columns: tuple[str, ...] = ()

    @property
    def required_columns(self) -> tuple[str, ...]:
        return tuple(c for c in self.columns if c not in self.optional_columns)


METABOLITE_INFO_SCHEMA = TableSchema(
    name="metabolite_info",
    columns=("metabolite_id", "name", "subclass"),
    text_columns=("metabolite_id", "name", "subclass"),
    optional_columns=("subclass",),
)

CORRELATIONS_SCHEMA = TableSchema(
    name="correlations",
    columns=("metabolite_1", "metabolite_2"),
    text_columns=("metabolite_1", "metabolite_2"),
)

GWAS_SCHEMA = TableSchema(
    name="gwas_data",
    columns=("metabolite_id", "snp", "position", "lod"),
    text_columns=("metabolite_id", "snp"),
)


@dataclass(frozen=True)
class DashboardSettings:
    """Runtime knobs for the processing pipeline."""

    parse_workers: int = 3
    parse_timeout: Optional[float] = None
    layout_seed: int = 42
    layout_iterations: int = 50


DEFAULT_SETTINGS = DashboardSettings()
