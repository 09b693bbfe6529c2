import threading
from pathlib import Path

import pandas as pd
import pytest

import generate_sample_data
from config import DashboardSettings
from data_layer import BytesFileSource, FileSource, MalformedInputError
from models import AssociationPoint, NetworkNode
from pipeline import DashboardSession, PipelineError, PipelineState, process_files


class BlockingSource(FileSource):
    def __init__(self, release: threading.Event):
        self._release = release

    @property
    def name(self) -> str:
        return "slow.csv"

    def read_bytes(self) -> bytes:
        self._release.wait(5)
        return b"metabolite_1,metabolite_2\n"


def test_end_to_end_scenario(info_csv, correlations_csv, gwas_csv) -> None:
    result = process_files(info_csv, correlations_csv, gwas_csv)

    assert set(result.graph.nodes) == {
        NetworkNode(id="M1", name="Alpha", subclass="Lipid"),
        NetworkNode(id="M2", name="Beta", subclass="Amino"),
    }
    assert [(e.source, e.target) for e in result.graph.edges] == [("M1", "M2")]
    assert list(result.series) == [
        AssociationPoint(id="M1", name="Alpha", subclass="Lipid", snp="rs100", position=5000, lod=4.5),
        AssociationPoint(id="M3", name="Unknown", subclass="Unknown", snp="rs200", position=6000, lod=3.1),
    ]
    assert result.subclass_colors["Lipid"] != result.subclass_colors["Unknown"]
    assert result.color_for("Amino") == result.subclass_colors["Amino"]


def test_process_files_from_paths(tmp_path: Path) -> None:
    (tmp_path / "info.csv").write_text("metabolite_id,name,subclass\nM1,Alpha,\n")
    (tmp_path / "corr.csv").write_text("metabolite_1,metabolite_2\nM1,M1\n")
    (tmp_path / "gwas.csv").write_text("metabolite_id,snp,position,lod\nM1,rs1,10,1.0\n")

    result = process_files(tmp_path / "info.csv", tmp_path / "corr.csv", tmp_path / "gwas.csv")

    assert result.registry["M1"].subclass == "Unknown"
    assert len(result.graph.nodes) == 1
    assert len(result.graph.edges) == 1
    assert len(result.series) == 1


def test_malformed_file_fails_whole_pipeline(info_csv, gwas_csv) -> None:
    bad = BytesFileSource("metabolite_1,metabolite_2\nM1,M2,M3\n", name="bad.csv")

    with pytest.raises(PipelineError) as excinfo:
        process_files(info_csv, bad, gwas_csv)

    assert str(excinfo.value) == "Failed to process CSV files"
    assert len(excinfo.value.failures) == 1
    failure = excinfo.value.failures[0]
    assert isinstance(failure, MalformedInputError)
    assert failure.file_name == "bad.csv"
    assert failure.line_numbers == [2]


def test_every_failing_file_is_reported(correlations_csv) -> None:
    bad_info = BytesFileSource('metabolite_id,name,subclass\nM1,"Alpha\n', name="info.csv")
    bad_gwas = BytesFileSource("metabolite_id,snp,position,lod\nM1\n", name="gwas.csv")

    with pytest.raises(PipelineError) as excinfo:
        process_files(bad_info, correlations_csv, bad_gwas)

    assert sorted(f.file_name for f in excinfo.value.failures) == ["gwas.csv", "info.csv"]


def test_parse_timeout_is_reported(info_csv, gwas_csv) -> None:
    release = threading.Event()
    try:
        with pytest.raises(PipelineError) as excinfo:
            process_files(info_csv, BlockingSource(release), gwas_csv,
                          settings=DashboardSettings(parse_timeout=0.05))
    finally:
        release.set()

    assert isinstance(excinfo.value.failures[0], TimeoutError)


def test_session_success_transitions(info_csv, correlations_csv, gwas_csv) -> None:
    session = DashboardSession()
    assert session.state == PipelineState.IDLE

    result = session.run(info_csv, correlations_csv, gwas_csv)

    assert session.state == PipelineState.READY
    assert session.result is result
    session.reset()
    assert session.state == PipelineState.IDLE
    assert session.result is None


def test_session_failure_keeps_previous_result(info_csv, correlations_csv, gwas_csv) -> None:
    session = DashboardSession()
    first = session.run(info_csv, correlations_csv, gwas_csv)

    bad = BytesFileSource("metabolite_1,metabolite_2\nM1\n", name="bad.csv")
    with pytest.raises(PipelineError):
        session.run(info_csv, bad, gwas_csv)

    assert session.state == PipelineState.FAILED
    assert session.error is not None
    assert session.result is first


def test_stale_run_cannot_overwrite_newer_result(info_csv, correlations_csv, gwas_csv) -> None:
    session = DashboardSession()
    old_token = session.begin_run()
    new_token = session.begin_run()

    newer = process_files(info_csv, correlations_csv, gwas_csv)
    assert session.mark_building(new_token)
    assert session.complete(new_token, newer)

    stale = process_files(info_csv, correlations_csv, gwas_csv)
    assert not session.mark_building(old_token)
    assert not session.complete(old_token, stale)
    assert not session.fail(old_token, PipelineError([]))
    assert session.result is newer
    assert session.state == PipelineState.READY


def test_generated_sample_data_processes(tmp_path: Path) -> None:
    generate_sample_data.main(data_dir=tmp_path, seed=7)
    result = process_files(
        tmp_path / "metabolite_info.csv",
        tmp_path / "correlations.csv",
        tmp_path / "gwas_data.csv",
    )

    gwas_rows = len(pd.read_csv(tmp_path / "gwas_data.csv"))
    assert len(result.registry) == 22
    assert result.registry["M022"].subclass == "Unknown"
    assert len(result.series) == gwas_rows - 3
    assert all(p.position and p.lod for p in result.series)
    unknown = {n.id: n for n in result.graph.nodes}["M999"]
    assert unknown.subclass == "Unknown"
    assert all(e.source and e.target for e in result.graph.edges)


def test_na_like_identifiers_are_kept_end_to_end() -> None:
    result = process_files(
        BytesFileSource("metabolite_id,name,subclass\nNA,Sodium,Ion\nM2,None,null\n,Orphan,Ion\n"),
        BytesFileSource("metabolite_1,metabolite_2\nNA,M2\n"),
        BytesFileSource("metabolite_id,snp,position,lod\nNA,rs1,10,2.0\n"),
    )

    assert set(result.registry) == {"NA", "M2"}
    assert result.registry["M2"].name == "None"
    assert result.registry["M2"].subclass == "null"
    assert [(e.source, e.target) for e in result.graph.edges] == [("NA", "M2")]
    assert list(result.series) == [
        AssociationPoint(id="NA", name="Sodium", subclass="Ion", snp="rs1", position=10, lod=2.0),
    ]
