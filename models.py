"""Data structures handed from the processing pipeline to the views."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterator, Optional

from config import UNKNOWN_LABEL


@dataclass(frozen=True)
class MetaboliteRecord:
    id: str
    name: str
    subclass: str = UNKNOWN_LABEL


class MetaboliteRegistry(Mapping):
    """Read-only lookup of metabolite metadata keyed by metabolite id.

    ``resolve`` is total: ids that were never registered come back as a
    synthetic record with ``Unknown`` name and subclass.
    """

    def __init__(self, records: Optional[dict] = None):
        self._records = MappingProxyType(dict(records or {}))

    def __getitem__(self, metabolite_id: str) -> MetaboliteRecord:
        return self._records[metabolite_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __repr__(self) -> str:
        return f"MetaboliteRegistry({len(self)} metabolites)"

    def resolve(self, metabolite_id: str) -> MetaboliteRecord:
        record = self._records.get(metabolite_id)
        if record is None:
            return MetaboliteRecord(id=metabolite_id, name=UNKNOWN_LABEL, subclass=UNKNOWN_LABEL)
        return record


@dataclass(frozen=True)
class CorrelationEdge:
    source: str
    target: str


@dataclass(frozen=True)
class NetworkNode:
    id: str
    name: str
    subclass: str


@dataclass(frozen=True)
class NetworkData:
    nodes: tuple[NetworkNode, ...] = ()
    edges: tuple[CorrelationEdge, ...] = ()

    @property
    def node_ids(self) -> set[str]:
        return {node.id for node in self.nodes}


@dataclass(frozen=True)
class AssociationPoint:
    id: str
    name: str
    subclass: str
    snp: str
    position: float
    lod: float


@dataclass(frozen=True)
class ProcessedResult:
    """Everything the dashboard needs to draw both views for one upload."""

    registry: MetaboliteRegistry
    graph: NetworkData
    series: tuple[AssociationPoint, ...]
    subclass_colors: dict = field(default_factory=dict, compare=False)

    def color_for(self, subclass: Optional[str]) -> str:
        return self.subclass_colors.get(subclass or UNKNOWN_LABEL, "gray")


@dataclass(frozen=True)
class MetaboliteSelection:
    """A metabolite picked in either view.

    Only selections made in the Manhattan plot carry ``snp``, ``position``
    and ``lod``.
    """

    id: str
    name: str
    subclass: Optional[str] = None
    snp: Optional[str] = None
    position: Optional[float] = None
    lod: Optional[float] = None

    @classmethod
    def from_point(cls, point: AssociationPoint) -> "MetaboliteSelection":
        return cls(
            id=point.id,
            name=point.name,
            subclass=point.subclass,
            snp=point.snp,
            position=point.position,
            lod=point.lod,
        )

    @classmethod
    def from_node(cls, node: NetworkNode) -> "MetaboliteSelection":
        return cls(id=node.id, name=node.name, subclass=node.subclass)
