# src/nyccondos/clean.py
from __future__ import annotations

from typing import Any, Dict, Optional, Sequence

import pandas as pd

__all__ = ["clean_sales", "cleaning_report", "na_summary"]

SORT_KEYS: tuple[str, ...] = ("borough", "neighborhood")


def _debug_count_delta(step: str, before_len: int, after_df: pd.DataFrame) -> None:
    dropped = int(before_len) - len(after_df)
    if dropped:
        print(f"[clean] {step}: dropped {dropped} row(s), {len(after_df)} remain")


def clean_sales(
    df: pd.DataFrame,
    *,
    min_sale_price: float = 10_000,
    building_classes: Optional[Sequence[str]] = None,
    sqft_col: str = "gross_square_feet",
    price_col: str = "sale_price",
    class_col: str = "building_class_at_time_of_sale",
) -> pd.DataFrame:
    """
    Produce the analysis-ready table.

    Predicate chain (all must hold):
      • price and square footage both present
      • square footage > 0
      • sale price >= min_sale_price   (excludes nominal transfers, e.g. $0 or $10 deeds)
      • building class in `building_classes`   (only when a non-empty list is given)

    The result is de-duplicated and stably sorted by (borough, neighborhood),
    ascending and lexicographic.
    """
    for col in (sqft_col, price_col, *SORT_KEYS):
        if col not in df.columns:
            raise KeyError(f"Column '{col}' is required to clean sales records.")

    out = df.copy()
    out[sqft_col] = pd.to_numeric(out[sqft_col], errors="coerce")
    out[price_col] = pd.to_numeric(out[price_col], errors="coerce")

    before = len(out)
    out = out.dropna(subset=[sqft_col, price_col])
    _debug_count_delta(f"drop_na[{sqft_col},{price_col}]", before, out)

    if building_classes:
        if class_col not in out.columns:
            raise KeyError(f"Column '{class_col}' is required when building_classes is set.")
        wanted = {str(c).strip().upper() for c in building_classes}
        before = len(out)
        out = out[out[class_col].astype("string").str.strip().str.upper().isin(wanted).fillna(False)]
        _debug_count_delta(f"filter[{class_col} in {sorted(wanted)}]", before, out)

    before = len(out)
    out = out[out[sqft_col] > 0]
    _debug_count_delta(f"filter[{sqft_col}>0]", before, out)

    before = len(out)
    out = out[out[price_col] >= float(min_sale_price)]
    _debug_count_delta(f"filter[{price_col}>={min_sale_price}]", before, out)

    before = len(out)
    out = out.drop_duplicates()
    _debug_count_delta("drop_duplicates", before, out)

    out = out.sort_values(list(SORT_KEYS), kind="stable", na_position="last").reset_index(drop=True)
    return out


def na_summary(
    df: pd.DataFrame,
    cols: Sequence[str] | None = None,
) -> Dict[str, Any]:
    """
    Compact NA summary for a given dataframe and column subset.

    Returns:
      {
        "rows": int,
        "cols": int,
        "na_counts": {col: int, ...},
        "na_pct": {col: float, ...}
      }
    """
    if cols is None:
        cols = list(df.columns)
    cols = [c for c in cols if c in df.columns]

    na_counts = {c: int(df[c].isna().sum()) for c in cols}
    n_rows = max(int(len(df)), 1)
    na_pct = {c: (na_counts[c] / n_rows) * 100.0 for c in cols}

    return {
        "rows": int(len(df)),
        "cols": len(cols),
        "na_counts": na_counts,
        "na_pct": na_pct,
    }


def cleaning_report(
    before: pd.DataFrame,
    after: pd.DataFrame,
    *,
    cols: Sequence[str] = ("gross_square_feet", "sale_price", "sale_date"),
) -> Dict[str, Any]:
    """Row counts in/out of the cleaner plus NA summaries of the modelling columns."""
    rows_before = int(len(before))
    rows_after = int(len(after))
    by_borough: Dict[str, int] = {}
    if "borough" in after.columns:
        by_borough = {str(k): int(v) for k, v in after["borough"].value_counts().sort_index().items()}
    return {
        "rows_before": rows_before,
        "rows_after": rows_after,
        "rows_removed": rows_before - rows_after,
        "rows_by_borough": by_borough,
        "na_before": na_summary(before, cols),
        "na_after": na_summary(after, cols),
    }
