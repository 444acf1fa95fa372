# src/nyccondos/regression.py
from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Any, Dict, Iterable, Mapping

import numpy as np
import pandas as pd
from scipy import stats

from .errors import InsufficientDataError

__all__ = [
    "RegressionResult",
    "fit_ols",
    "fit_by_group",
    "coefficient_table",
    "fit_table",
    "summary_table",
    "rank_results",
    "compare_results",
]

MIN_ROWS = 3
RANKABLE = ("slope", "intercept", "r_squared", "sigma", "n_obs")


# --------------------------------------------------------------------------- #
# Result container
# --------------------------------------------------------------------------- #
@dataclass(frozen=True)
class RegressionResult:
    """
    Bivariate OLS fit `y = intercept + slope * x + error` on one partition.

    Standard errors, t statistics, two-sided p-values (H0: coefficient = 0) and
    confidence bounds all use the t distribution with df_resid = n_obs - 2.
    `sigma` is the residual standard error sqrt(RSS / df_resid).
    """
    group: str
    n_obs: int
    df_resid: int
    intercept: float
    slope: float
    intercept_se: float
    slope_se: float
    intercept_t: float
    slope_t: float
    intercept_p: float
    slope_p: float
    intercept_ci: tuple[float, float]
    slope_ci: tuple[float, float]
    r_squared: float
    sigma: float
    conf_level: float = 0.95
    x: str = "gross_square_feet"
    y: str = "sale_price"

    def tidy(self) -> pd.DataFrame:
        """Coefficient table: one row per term."""
        rows = [
            {
                "term": "(Intercept)",
                "estimate": self.intercept,
                "std_error": self.intercept_se,
                "statistic": self.intercept_t,
                "p_value": self.intercept_p,
                "conf_low": self.intercept_ci[0],
                "conf_high": self.intercept_ci[1],
            },
            {
                "term": self.x,
                "estimate": self.slope,
                "std_error": self.slope_se,
                "statistic": self.slope_t,
                "p_value": self.slope_p,
                "conf_low": self.slope_ci[0],
                "conf_high": self.slope_ci[1],
            },
        ]
        return pd.DataFrame(rows)

    def glance(self) -> Dict[str, Any]:
        """Goodness-of-fit record."""
        return {
            "r_squared": self.r_squared,
            "sigma": self.sigma,
            "df_resid": self.df_resid,
            "n_obs": self.n_obs,
        }

    def predict(self, x: Iterable[float]) -> np.ndarray:
        return self.intercept + self.slope * np.asarray(x, dtype=float)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["intercept_ci"] = list(self.intercept_ci)
        d["slope_ci"] = list(self.slope_ci)
        return d


# --------------------------------------------------------------------------- #
# Fitting
# --------------------------------------------------------------------------- #
def fit_ols(
    df: pd.DataFrame,
    *,
    x: str = "gross_square_feet",
    y: str = "sale_price",
    group: str = "All",
    conf_level: float = 0.95,
) -> RegressionResult:
    """
    Fit `y ~ x` with scipy.stats.linregress and attach classical inference.

    Raises InsufficientDataError when the partition has fewer than 3 complete
    rows (df_resid <= 0) or when `x` has no spread, since neither supports a
    slope with a standard error.
    """
    for col in (x, y):
        if col not in df.columns:
            raise KeyError(f"Column '{col}' not found in dataframe.")
    if not (0.0 < float(conf_level) < 1.0):
        raise ValueError(f"conf_level must be in (0, 1), got {conf_level}")

    data = df[[x, y]].apply(pd.to_numeric, errors="coerce").dropna()
    n = int(len(data))
    if n < MIN_ROWS:
        raise InsufficientDataError(group, n)

    xv = data[x].to_numpy(dtype=float)
    yv = data[y].to_numpy(dtype=float)
    if float(np.ptp(xv)) <= 0.0:
        raise InsufficientDataError(group, n, f"'{x}' has no variation")

    fit = stats.linregress(xv, yv)
    slope = float(fit.slope)
    intercept = float(fit.intercept)
    slope_se = float(fit.stderr)
    intercept_se = float(fit.intercept_stderr)

    dof = n - 2
    resid = yv - (intercept + slope * xv)
    sigma = float(np.sqrt(np.sum(resid ** 2) / dof))

    # A perfect fit has zero standard errors; t is then +-inf and p is 0
    with np.errstate(divide="ignore", invalid="ignore"):
        slope_t = float(np.divide(slope, slope_se))
        intercept_t = float(np.divide(intercept, intercept_se))
    intercept_p = float(2.0 * stats.t.sf(abs(intercept_t), dof))

    t_crit = float(stats.t.ppf(1.0 - (1.0 - float(conf_level)) / 2.0, dof))

    return RegressionResult(
        group=str(group),
        n_obs=n,
        df_resid=dof,
        intercept=intercept,
        slope=slope,
        intercept_se=intercept_se,
        slope_se=slope_se,
        intercept_t=intercept_t,
        slope_t=slope_t,
        intercept_p=intercept_p,
        slope_p=float(fit.pvalue),
        intercept_ci=(intercept - t_crit * intercept_se, intercept + t_crit * intercept_se),
        slope_ci=(slope - t_crit * slope_se, slope + t_crit * slope_se),
        r_squared=float(fit.rvalue ** 2),
        sigma=sigma,
        conf_level=float(conf_level),
        x=x,
        y=y,
    )


def fit_by_group(
    df: pd.DataFrame,
    by: str = "borough",
    *,
    x: str = "gross_square_feet",
    y: str = "sale_price",
    conf_level: float = 0.95,
) -> Dict[str, RegressionResult]:
    """
    One independent fit per value of `by`, keyed by that value (ascending).

    Any partition that cannot be fitted raises InsufficientDataError; no
    partial result is returned.
    """
    if by not in df.columns:
        raise KeyError(f"Partition column '{by}' not found in dataframe.")
    if df[by].isna().any():
        raise ValueError(f"Partition column '{by}' has {int(df[by].isna().sum())} missing value(s).")

    results: Dict[str, RegressionResult] = {}
    for key, part in df.groupby(by, sort=True):
        results[str(key)] = fit_ols(part, x=x, y=y, group=str(key), conf_level=conf_level)
    return results


# --------------------------------------------------------------------------- #
# Reporting tables
# --------------------------------------------------------------------------- #
def _as_list(results: Mapping[str, RegressionResult] | Iterable[RegressionResult]) -> list[RegressionResult]:
    if isinstance(results, RegressionResult):
        return [results]
    if isinstance(results, Mapping):
        return list(results.values())
    return list(results)


def coefficient_table(results) -> pd.DataFrame:
    """Stacked tidy() tables with a leading `group` column."""
    frames = []
    for r in _as_list(results):
        t = r.tidy()
        t.insert(0, "group", r.group)
        frames.append(t)
    if not frames:
        return pd.DataFrame(columns=["group", "term", "estimate", "std_error", "statistic", "p_value", "conf_low", "conf_high"])
    return pd.concat(frames, ignore_index=True)


def fit_table(results) -> pd.DataFrame:
    """One glance() row per group."""
    rows = [{"group": r.group, **r.glance()} for r in _as_list(results)]
    return pd.DataFrame(rows, columns=["group", "r_squared", "sigma", "df_resid", "n_obs"])


def summary_table(results) -> pd.DataFrame:
    rows = [
        {
            "group": r.group,
            "slope": r.slope,
            "slope_conf_low": r.slope_ci[0],
            "slope_conf_high": r.slope_ci[1],
            "intercept": r.intercept,
            "r_squared": r.r_squared,
            "sigma": r.sigma,
            "n_obs": r.n_obs,
        }
        for r in _as_list(results)
    ]
    return pd.DataFrame(
        rows,
        columns=["group", "slope", "slope_conf_low", "slope_conf_high", "intercept", "r_squared", "sigma", "n_obs"],
    )


def rank_results(results, by: str = "slope") -> pd.DataFrame:
    """Summary table ordered ascending by `by` (slope or r_squared, usually)."""
    if by not in RANKABLE:
        raise ValueError(f"Cannot rank by '{by}'; choose one of {RANKABLE}")
    tbl = summary_table(results)
    tbl = tbl.sort_values(by, kind="stable").reset_index(drop=True)
    tbl.insert(0, "rank", np.arange(1, len(tbl) + 1))
    return tbl


def compare_results(
    before,
    after,
    *,
    labels: tuple[str, str] = ("before", "after"),
) -> pd.DataFrame:
    """
    Side-by-side view of two sets of fits over the same groups, e.g. before and
    after multi-unit removal. Groups present on one side only get NaN on the other.
    """
    a, b = labels
    cols = ["group", "slope", "r_squared", "sigma", "n_obs"]
    left = summary_table(before)[cols]
    right = summary_table(after)[cols]
    merged = left.merge(right, on="group", how="outer", suffixes=(f"_{a}", f"_{b}"), sort=True)
    for stat in ("slope", "r_squared", "sigma", "n_obs"):
        merged[f"{stat}_change"] = merged[f"{stat}_{b}"] - merged[f"{stat}_{a}"]
    ordered = ["group"]
    for stat in ("slope", "r_squared", "sigma", "n_obs"):
        ordered += [f"{stat}_{a}", f"{stat}_{b}", f"{stat}_change"]
    return merged[ordered]
