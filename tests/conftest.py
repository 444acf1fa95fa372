# tests/conftest.py
from __future__ import annotations

import csv
import sys
from pathlib import Path

import pandas as pd
import pytest

# Repo root = parent of the tests/ directory
REPO_ROOT = Path(__file__).resolve().parents[1]

# Ensure src/ is importable without an editable install
SRC_DIR = REPO_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))


RAW_HEADER = [
    "BOROUGH",
    "NEIGHBORHOOD",
    "BUILDING CLASS CATEGORY",
    "EASE-MENT",
    "BUILDING CLASS AT TIME OF SALE",
    "ADDRESS",
    "GROSS SQUARE FEET",
    "SALE PRICE",
    "SALE DATE",
]

BANNER = [
    "Rolling Sales File.  All Sales From January 2023 - December 2023.",
    "For sales prior to the Final Roll see the Annualized Sales files.",
    "Building Class Category is based on Building Class at Time of Sale.",
    "Coop Sales Files as of 01/01/2024.",
]

MANHATTAN_ROWS = [
    [1, "CHELSEA", "13 CONDOS - ELEVATOR APARTMENTS", "", "R4", "100 WEST 1 STREET", "800", "$1,000,000", "2023-01-05"],
    [1, "CHELSEA", "13 CONDOS - ELEVATOR APARTMENTS", "", "R4", "102 WEST 1 STREET", "1,200", "$1,500,000", "2023-02-10"],
    [1, "SOHO", "13 CONDOS - ELEVATOR APARTMENTS", "", "R4", "5 SPRING STREET", "1,000", "$1,300,000", "2023-03-01"],
    [1, "SOHO", "13 CONDOS - ELEVATOR APARTMENTS", "", "R4", "7 SPRING STREET", "1,500", "$1,800,000", "2023-03-15"],
    [1, "SOHO", "13 CONDOS - ELEVATOR APARTMENTS", "", "R4", "7 SPRING STREET", "1,500", "$1,800,000", "2023-03-15"],
    [1, "TRIBECA", "13 CONDOS - ELEVATOR APARTMENTS", "", "R4", "1 HUDSON STREET", "900", "$0", "2023-04-01"],
    [1, "TRIBECA", "13 CONDOS - ELEVATOR APARTMENTS", "", "R4", "3 HUDSON STREET", "0", "$900,000", "2023-04-02"],
    [1, "TRIBECA", "21 OFFICE BUILDINGS", "", "O4", "5 HUDSON STREET", "1,100", "$1,200,000", "2023-04-03"],
]

BROOKLYN_ROWS = [
    [3, "WILLIAMSBURG", "13 CONDOS - ELEVATOR APARTMENTS", "", "R4", "1 KENT AVENUE", "700", "$700,000", "2023-01-10"],
    [3, "WILLIAMSBURG", "13 CONDOS - ELEVATOR APARTMENTS", "", "R4", "3 KENT AVENUE", "900", "$850,000", "2023-02-01"],
    [3, "PARK SLOPE", "13 CONDOS - ELEVATOR APARTMENTS", "", "R4", "10 5TH AVENUE", "1,000", "$950,000", "2023-02-20"],
    [3, "PARK SLOPE", "13 CONDOS - ELEVATOR APARTMENTS", "", "R4", "12 5TH AVENUE", "1,300", "$1,250,000", "2023-04-02"],
    [3, "DUMBO", "13 CONDOS - ELEVATOR APARTMENTS", "", "R4", "20 WATER STREET, A", "800", "$2,400,000", "2023-05-01"],
    [3, "DUMBO", "13 CONDOS - ELEVATOR APARTMENTS", "", "R4", "20 WATER STREET, B", "850", "$2,400,000", "2023-05-01"],
    [3, "DUMBO", "13 CONDOS - ELEVATOR APARTMENTS", "", "R4", "20 WATER STREET, C", "900", "$2,400,000", "2023-05-01"],
    [3, "DUMBO", "13 CONDOS - ELEVATOR APARTMENTS", "", "R4", "30 FRONT STREET, 1", "750", "$1,100,000", "2023-06-01"],
    [3, "DUMBO", "13 CONDOS - ELEVATOR APARTMENTS", "", "R4", "30 FRONT STREET, 2", "760", "$1,100,000", "2023-06-01"],
]


def write_rolling_csv(path: Path, rows, *, banner=BANNER, header=RAW_HEADER) -> Path:
    """Write a rolling-sales style CSV: banner lines, then header, then rows."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="") as f:
        for line in banner:
            f.write(line + "\n")
        w = csv.writer(f)
        w.writerow(header)
        w.writerows(rows)
    return path


@pytest.fixture
def source_files(tmp_path: Path) -> list[dict]:
    """Two borough files (Manhattan=1, Brooklyn=3) in the raw rolling-sales layout."""
    man = write_rolling_csv(tmp_path / "raw" / "rollingsales_manhattan.csv", MANHATTAN_ROWS)
    bk = write_rolling_csv(tmp_path / "raw" / "rollingsales_brooklyn.csv", BROOKLYN_ROWS)
    return [{"borough": 1, "path": str(man)}, {"borough": 3, "path": str(bk)}]


@pytest.fixture
def normalized_sales() -> pd.DataFrame:
    """A small already-normalized table, as the cleaner receives it."""
    return pd.DataFrame(
        {
            "borough": ["Queens", "Brooklyn", "Brooklyn", "Queens", "Bronx", "Brooklyn"],
            "neighborhood": ["Astoria", "Dumbo", "Bushwick", "Astoria", "Riverdale", "Bushwick"],
            "building_class_at_time_of_sale": ["R4", "R4", "R4", "R4", "R4", "D4"],
            "address": ["1 A St", "2 B St", "3 C St", "4 D St", "5 E St", "6 F St"],
            "gross_square_feet": [900.0, 0.0, 1100.0, None, 800.0, 1000.0],
            "sale_price": [650_000, 900_000, 10_000, 700_000, 9_999, 500_000],
            "sale_date": pd.to_datetime(
                ["2023-01-01", "2023-01-02", "2023-01-03", "2023-01-04", "2023-01-05", "2023-01-06"]
            ),
        }
    )
