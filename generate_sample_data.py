"""Generate sample input files for trying out the dashboard."""
import pandas as pd
import numpy as np
from pathlib import Path

DATA_DIR = Path("data")

SUBCLASSES = {
    "Amino acid": ["Alanine", "Glycine", "Leucine", "Isoleucine", "Valine", "Proline"],
    "Fatty acyl": ["Palmitate", "Oleate", "Linoleate", "Stearate", "Arachidonate"],
    "Glycerophospholipid": ["PC 34:1", "PC 36:2", "PE 38:4", "LPC 16:0"],
    "Sterol": ["Cholesterol", "Lathosterol", "Campesterol"],
    "Carbohydrate": ["Glucose", "Fructose", "Mannose"],
}


def make_metabolite_info() -> pd.DataFrame:
    rows = []
    n = 1
    for subclass, names in SUBCLASSES.items():
        for name in names:
            rows.append({"metabolite_id": f"M{n:03d}", "name": name, "subclass": subclass})
            n += 1

    # A metabolite with no subclass, and a row with no id (skipped on load)
    rows.append({"metabolite_id": f"M{n:03d}", "name": "Unannotated feature", "subclass": ""})
    rows.append({"metabolite_id": "", "name": "Orphan row", "subclass": "Amino acid"})
    return pd.DataFrame(rows)


def make_correlations(info: pd.DataFrame, rng: np.random.Generator) -> pd.DataFrame:
    ids = [i for i in info["metabolite_id"] if i]
    pairs = []

    # Dense pairs inside each subclass, a few across subclasses
    for subclass in SUBCLASSES:
        members = info.loc[info["subclass"] == subclass, "metabolite_id"].tolist()
        for i, a in enumerate(members):
            for b in members[i + 1:]:
                if rng.random() < 0.6:
                    pairs.append((a, b))

    for _ in range(6):
        a, b = rng.choice(ids, size=2, replace=False)
        pairs.append((a, b))

    # Correlated with a metabolite that is missing from the info file
    pairs.append((ids[0], "M999"))
    # Incomplete row, dropped on load
    pairs.append((ids[1], ""))

    return pd.DataFrame(pairs, columns=["metabolite_1", "metabolite_2"])


def make_gwas(info: pd.DataFrame, rng: np.random.Generator) -> pd.DataFrame:
    ids = [i for i in info["metabolite_id"] if i] + ["M999"]
    rows = []
    for metabolite_id in ids:
        for _ in range(rng.integers(2, 6)):
            rows.append({
                "metabolite_id": metabolite_id,
                "snp": f"rs{rng.integers(1000, 9999999)}",
                "position": int(rng.integers(1_000_000, 250_000_000)),
                "lod": round(float(rng.gamma(2.0, 1.5)) + 0.5, 2),
            })

    # Rows dropped on load: zero position, zero lod, missing lod
    rows.append({"metabolite_id": ids[0], "snp": "rs1", "position": 0, "lod": 3.2})
    rows.append({"metabolite_id": ids[1], "snp": "rs2", "position": 1000, "lod": 0})
    rows.append({"metabolite_id": ids[2], "snp": "rs3", "position": 2000, "lod": None})

    return pd.DataFrame(rows)


def main(data_dir: Path = DATA_DIR, seed: int = 42):
    rng = np.random.default_rng(seed)
    data_dir.mkdir(exist_ok=True)

    info = make_metabolite_info()
    correlations = make_correlations(info, rng)
    gwas = make_gwas(info, rng)

    info.to_csv(data_dir / "metabolite_info.csv", index=False)
    correlations.to_csv(data_dir / "correlations.csv", index=False)
    gwas.to_csv(data_dir / "gwas_data.csv", index=False)

    print(f"Wrote {len(info)} metabolites, {len(correlations)} correlations, "
          f"{len(gwas)} GWAS rows to {data_dir}/")


if __name__ == "__main__":
    main()
