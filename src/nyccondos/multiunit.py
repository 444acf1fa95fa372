# src/nyccondos/multiunit.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, Optional, Sequence, Tuple

import pandas as pd

__all__ = [
    "MultiUnitGroup",
    "multi_unit_groups",
    "iter_multi_unit_groups",
    "flag_multi_unit",
    "paired_sales",
    "drop_multi_unit",
]

GROUP_KEYS: tuple[str, ...] = ("sale_price", "sale_date")


@dataclass(frozen=True)
class MultiUnitGroup:
    """Records that share one (sale_price, sale_date) pair."""
    sale_price: float
    sale_date: pd.Timestamp
    size: int
    index: Tuple[object, ...]


def _check_keys(df: pd.DataFrame, keys: Sequence[str]) -> None:
    missing = [k for k in keys if k not in df.columns]
    if missing:
        raise KeyError(f"Columns {missing} are required for multi-unit detection.")


def _group_sizes(df: pd.DataFrame, keys: Sequence[str]) -> pd.Series:
    """
    Size of each row's (price, date) group, aligned to df.index.

    Rows with a missing price or date belong to no group and get size 0, so
    undated sales at one price are never read as a bulk sale.
    """
    sizes = pd.Series(0, index=df.index, dtype="int64")
    complete = df[list(keys)].notna().all(axis=1)
    if complete.any():
        gid = df.loc[complete].groupby(list(keys), sort=False).ngroup()
        sizes.loc[complete] = gid.map(gid.value_counts()).to_numpy()
    return sizes


def multi_unit_groups(
    df: pd.DataFrame,
    *,
    min_size: int = 3,
    max_size: Optional[int] = None,
    keys: Sequence[str] = GROUP_KEYS,
) -> pd.DataFrame:
    """
    One row per (sale_price, sale_date) group whose size lies in [min_size, max_size].

    Columns: sale_price, sale_date, n_records. Sorted by n_records descending,
    then sale_price descending, so the most suspicious bulk sales come first.
    Rows with a missing price or date are not grouped.
    """
    _check_keys(df, keys)
    sizes = df.groupby(list(keys), dropna=True).size().rename("n_records").reset_index()
    mask = sizes["n_records"] >= int(min_size)
    if max_size is not None:
        mask &= sizes["n_records"] <= int(max_size)
    return (
        sizes.loc[mask]
        .sort_values(["n_records", keys[0]], ascending=[False, False], kind="stable")
        .reset_index(drop=True)
    )


def iter_multi_unit_groups(
    df: pd.DataFrame,
    *,
    min_size: int = 3,
    max_size: Optional[int] = None,
    keys: Sequence[str] = GROUP_KEYS,
) -> Iterator[MultiUnitGroup]:
    _check_keys(df, keys)
    for key, g in df.groupby(list(keys), dropna=True, sort=True):
        n = len(g)
        if n < int(min_size) or (max_size is not None and n > int(max_size)):
            continue
        yield MultiUnitGroup(sale_price=key[0], sale_date=key[1], size=n, index=tuple(g.index))


def flag_multi_unit(
    df: pd.DataFrame,
    *,
    min_size: int = 3,
    keys: Sequence[str] = GROUP_KEYS,
) -> pd.Series:
    """Boolean mask: True for every member of a group with `min_size` or more rows."""
    _check_keys(df, keys)
    if df.empty:
        return pd.Series(False, index=df.index, dtype=bool)
    return (_group_sizes(df, keys) >= int(min_size)).astype(bool)


def paired_sales(df: pd.DataFrame, *, keys: Sequence[str] = GROUP_KEYS) -> pd.DataFrame:
    """
    Rows belonging to (price, date) groups of exactly two.

    These are reported for inspection only; drop_multi_unit keeps them unless
    min_size is lowered to 2.
    """
    _check_keys(df, keys)
    if df.empty:
        return df.copy()
    mask = _group_sizes(df, keys) == 2
    return df.loc[mask].sort_values(list(keys), kind="stable").copy()


def drop_multi_unit(
    df: pd.DataFrame,
    *,
    min_size: int = 3,
    exclude_prices: Iterable[float] = (),
    keys: Sequence[str] = GROUP_KEYS,
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Remove disguised multi-unit sales.

    Every member of each flagged group is removed (the whole group, not just the
    surplus rows), plus any row whose price equals one of `exclude_prices`.

    Returns (kept, removed); both keep the input index.
    """
    if int(min_size) < 2:
        raise ValueError(f"min_size must be >= 2, got {min_size}")

    flagged = flag_multi_unit(df, min_size=min_size, keys=keys)
    prices = [float(p) for p in exclude_prices]
    if prices:
        flagged |= pd.to_numeric(df[keys[0]], errors="coerce").isin(prices)

    kept = df.loc[~flagged].copy()
    removed = df.loc[flagged].copy()
    if len(removed):
        n_groups = int(removed.groupby(list(keys), dropna=False).ngroups)
        print(f"[multi-unit] Removed {len(removed)} row(s) in {n_groups} group(s); {len(kept)} remain")
    return kept, removed
