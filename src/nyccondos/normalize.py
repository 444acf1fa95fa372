# src/nyccondos/normalize.py
from __future__ import annotations

from typing import Iterable, Sequence
import re
import warnings

import pandas as pd

from .errors import UnknownCodeError

__all__ = [
    "BOROUGH_NAMES",
    "clean_column_name",
    "clean_column_names",
    "recode_borough",
    "title_case",
    "normalize_records",
]

BOROUGH_NAMES: dict[int, str] = {
    1: "Manhattan",
    2: "Bronx",
    3: "Brooklyn",
    4: "Queens",
    5: "StatenIsland",
}

DEFAULT_TITLE_CASE: tuple[str, ...] = ("neighborhood", "building_class_category", "address")
DEFAULT_DROP_COLUMNS: tuple[str, ...] = ("ease_ment",)
DEFAULT_NUMERIC_COLUMNS: tuple[str, ...] = (
    "residential_units",
    "commercial_units",
    "total_units",
    "land_square_feet",
    "gross_square_feet",
    "year_built",
    "sale_price",
)


# --------------------------------------------------------------------------- #
# Column names
# --------------------------------------------------------------------------- #
def clean_column_name(name: object) -> str:
    """
    Lowercase and underscore a raw header:

      "BUILDING CLASS AT TIME OF SALE" -> "building_class_at_time_of_sale"
      "EASE-MENT"                      -> "ease_ment"
      " SALE\\nPRICE "                 -> "sale_price"
    """
    s = str(name).strip().lower()
    s = re.sub(r"[^0-9a-z]+", "_", s)
    return s.strip("_")


def clean_column_names(df: pd.DataFrame) -> pd.DataFrame:
    new = [clean_column_name(c) for c in df.columns]
    dupes = sorted({c for c in new if new.count(c) > 1})
    if dupes:
        raise ValueError(f"Column names collide after normalization: {dupes}")
    out = df.copy()
    out.columns = new
    return out


# --------------------------------------------------------------------------- #
# Borough recoding
# --------------------------------------------------------------------------- #
def recode_borough(codes: Iterable[object] | pd.Series) -> pd.Series:
    """
    Map numeric borough codes to names via BOROUGH_NAMES.

    Integers, integral floats and numeric strings ("3", "3.0") are accepted.
    Anything else, missing values included, raises UnknownCodeError listing the
    offending values; nothing is dropped or defaulted.
    """
    s = codes if isinstance(codes, pd.Series) else pd.Series(list(codes), dtype="object")
    num = pd.to_numeric(s, errors="coerce")
    known = num.isin(list(BOROUGH_NAMES))
    if not known.all():
        raise UnknownCodeError(pd.unique(s[~known].astype("object")))
    return num.astype(int).map(BOROUGH_NAMES).astype("object")


# --------------------------------------------------------------------------- #
# Text fields
# --------------------------------------------------------------------------- #
def title_case(s: pd.Series) -> pd.Series:
    """Strip and title-case a free-text column, leaving missing values missing."""
    return s.astype("string").str.strip().str.title()


def _strip_text(df: pd.DataFrame) -> pd.DataFrame:
    out = df.copy()
    for col in out.columns:
        if out[col].dtype == "object":
            out[col] = out[col].map(lambda v: v.strip() if isinstance(v, str) else v)
    return out


# --------------------------------------------------------------------------- #
# Type coercion (shared with io)
# --------------------------------------------------------------------------- #
def _coerce_price_to_numeric(s: pd.Series) -> pd.Series:
    """Convert common currency-ish text ("$1,250,000", " - ") to numeric."""
    if pd.api.types.is_numeric_dtype(s):
        return pd.to_numeric(s, errors="coerce")
    cleaned = (
        s.astype(str)
         .str.strip()
         .str.replace(r"[^\d\.\-]", "", regex=True)
    )
    return pd.to_numeric(cleaned, errors="coerce")


def _coerce_datetime_quiet(s: pd.Series) -> pd.Series:
    """Coerce to datetime without 'Could not infer format...' warnings."""
    if pd.api.types.is_datetime64_any_dtype(s):
        return s
    try:
        # pandas >= 2.0
        return pd.to_datetime(s, errors="coerce", format="mixed")
    except TypeError:
        with warnings.catch_warnings():
            warnings.filterwarnings(
                "ignore",
                message="Could not infer format, so each element will be parsed individually",
                category=UserWarning,
                module="pandas",
            )
            return pd.to_datetime(s, errors="coerce")


# --------------------------------------------------------------------------- #
# Public: full normalization pass
# --------------------------------------------------------------------------- #
def normalize_records(
    df: pd.DataFrame,
    *,
    title_case_columns: Sequence[str] = DEFAULT_TITLE_CASE,
    drop_columns: Sequence[str] = DEFAULT_DROP_COLUMNS,
    numeric_columns: Sequence[str] = DEFAULT_NUMERIC_COLUMNS,
) -> pd.DataFrame:
    """
    Standardize a freshly loaded rolling-sales table.

    Steps, in order:
      1) column names -> lowercase/underscored (see clean_column_name)
      2) surrounding whitespace stripped from text cells
      3) money/area columns to numbers, sale_date to datetime64
      4) borough code -> borough name (UnknownCodeError on anything outside 1..5)
      5) title case for the configured free-text columns
      6) drop known-empty columns (only those present)
      7) drop exact duplicate rows

    Output row order is not guaranteed to match the input.
    """
    if "borough" not in {clean_column_name(c) for c in df.columns}:
        raise KeyError("Column 'borough' is required for normalization.")

    out = clean_column_names(df)
    out = _strip_text(out)

    for col in numeric_columns:
        if col in out.columns:
            out[col] = _coerce_price_to_numeric(out[col])
    if "sale_date" in out.columns:
        out["sale_date"] = _coerce_datetime_quiet(out["sale_date"])

    out["borough"] = recode_borough(out["borough"])

    for col in title_case_columns:
        if col in out.columns:
            out[col] = title_case(out[col])

    to_drop = [c for c in drop_columns if c in out.columns]
    if to_drop:
        out = out.drop(columns=to_drop)

    before = len(out)
    out = out.drop_duplicates().reset_index(drop=True)
    removed = before - len(out)
    if removed:
        print(f"[normalize] Dropped {removed} exact duplicate row(s)")
    return out
