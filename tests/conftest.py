import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from data_layer import BytesFileSource  # noqa: E402


@pytest.fixture
def info_csv() -> BytesFileSource:
    return BytesFileSource("metabolite_id,name,subclass\nM1,Alpha,Lipid\nM2,Beta,Amino\n", name="info.csv")


@pytest.fixture
def correlations_csv() -> BytesFileSource:
    return BytesFileSource("metabolite_1,metabolite_2\nM1,M2\n", name="correlations.csv")


@pytest.fixture
def gwas_csv() -> BytesFileSource:
    return BytesFileSource(
        "metabolite_id,snp,position,lod\nM1,rs100,5000,4.5\nM3,rs200,6000,3.1\n",
        name="gwas.csv",
    )
