from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from nyccondos.errors import UnknownCodeError
from nyccondos.normalize import (
    BOROUGH_NAMES,
    clean_column_name,
    normalize_records,
    recode_borough,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("BOROUGH", "borough"),
        ("BUILDING CLASS AT TIME OF SALE", "building_class_at_time_of_sale"),
        ("EASE-MENT", "ease_ment"),
        ("  SALE\nPRICE ", "sale_price"),
        ("gross_square_feet", "gross_square_feet"),
    ],
)
def test_clean_column_name(raw, expected):
    assert clean_column_name(raw) == expected


def test_recode_borough_is_total_on_known_codes():
    out = recode_borough([1, 2, 3, 4, 5])
    assert out.tolist() == ["Manhattan", "Bronx", "Brooklyn", "Queens", "StatenIsland"]
    # numeric strings and integral floats are the same codes
    assert recode_borough(["3", 4.0]).tolist() == ["Brooklyn", "Queens"]
    assert set(BOROUGH_NAMES) == {1, 2, 3, 4, 5}


def test_recode_borough_keeps_index():
    s = pd.Series([5, 1], index=[10, 20])
    out = recode_borough(s)
    assert list(out.index) == [10, 20]
    assert out.loc[10] == "StatenIsland"


@pytest.mark.parametrize("bad", [0, 6, 2.5, "X", None, np.nan])
def test_recode_borough_rejects_unknown(bad):
    with pytest.raises(UnknownCodeError):
        recode_borough([1, bad, 3])


def test_unknown_code_error_names_values():
    with pytest.raises(UnknownCodeError) as exc:
        recode_borough([1, 7, 7, 9])
    assert exc.value.values == [7, 9]
    assert "7" in str(exc.value) and "9" in str(exc.value)


def _raw_frame() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "BOROUGH": [3, 3, 1],
            "NEIGHBORHOOD": ["PARK SLOPE ", "PARK SLOPE ", "UPPER WEST SIDE (59-79)"],
            "BUILDING CLASS CATEGORY": ["13 CONDOS - ELEVATOR APARTMENTS"] * 3,
            "EASE-MENT": [np.nan, np.nan, np.nan],
            "ADDRESS": ["12 5TH AVENUE, 4B", "12 5TH AVENUE, 4B", "1 WEST 72ND STREET"],
            "GROSS SQUARE FEET": ["1,300", "1,300", "2,100"],
            "SALE PRICE": ["$1,250,000", "$1,250,000", " -  "],
            "SALE DATE": ["2023-04-02", "2023-04-02", "2023-05-10"],
        }
    )


def test_normalize_records_end_to_end():
    out = normalize_records(_raw_frame())

    assert "ease_ment" not in out.columns
    assert {"borough", "neighborhood", "address", "gross_square_feet", "sale_price", "sale_date"} <= set(out.columns)

    # exact duplicate collapsed
    assert len(out) == 2
    assert not out.duplicated().any()

    assert set(out["borough"]) == {"Brooklyn", "Manhattan"}
    assert "Park Slope" in set(out["neighborhood"])
    assert "12 5Th Avenue, 4B" in set(out["address"])

    assert pd.api.types.is_numeric_dtype(out["gross_square_feet"])
    assert pd.api.types.is_numeric_dtype(out["sale_price"])
    assert pd.api.types.is_datetime64_any_dtype(out["sale_date"])
    brooklyn = out[out["borough"] == "Brooklyn"].iloc[0]
    assert brooklyn["sale_price"] == 1_250_000
    assert brooklyn["gross_square_feet"] == 1_300
    # dash placeholder becomes missing, not zero
    assert out.loc[out["borough"] == "Manhattan", "sale_price"].isna().all()


def test_normalize_records_raises_on_unknown_borough():
    raw = _raw_frame()
    raw.loc[2, "BOROUGH"] = 8
    with pytest.raises(UnknownCodeError):
        normalize_records(raw)


def test_normalize_records_is_deterministic():
    a = normalize_records(_raw_frame())
    b = normalize_records(_raw_frame())
    pd.testing.assert_frame_equal(a, b)


def test_normalize_records_only_drops_present_columns():
    raw = _raw_frame().drop(columns=["EASE-MENT"])
    out = normalize_records(raw, drop_columns=("ease_ment", "not_a_column"))
    assert "ease_ment" not in out.columns
