#!/usr/bin/env python3
"""
nyccondos.plots
===============

Figures for the condo sale-price analysis.

Reads the cleaned snapshot from:
    <paths.snapshot_csv>
drops multi-unit sales with the `multi_unit` settings the `fit` stage uses,
and generates:
    - price_vs_sqft_all.png       (citywide scatter with the OLS line)
    - price_vs_sqft_borough.png   (one panel per borough, each with its own OLS line)

All figures are written to:
    <out_dir>/figures
where <out_dir> comes from configs/config.yaml.
"""

from __future__ import annotations

import argparse
import math
from pathlib import Path
from typing import Mapping, Optional

import matplotlib

matplotlib.use("Agg")  # non-GUI backend for script usage

import matplotlib.pyplot as plt
from matplotlib.ticker import StrMethodFormatter
import numpy as np
import pandas as pd

from .regression import RegressionResult, fit_by_group, fit_ols


# ------------------------------------------------------------
# Helpers
# ------------------------------------------------------------
def _currency_formatter():
    # Format ticks as $xxx,xxx
    return StrMethodFormatter("${x:,.0f}")


def _sqft_formatter():
    return StrMethodFormatter("{x:,.0f}")


def _draw_fit(ax, df: pd.DataFrame, res: RegressionResult, *, x: str, y: str, alpha: float = 0.3):
    ax.scatter(df[x], df[y], alpha=alpha, s=12)
    xs = np.linspace(float(df[x].min()), float(df[x].max()), 50)
    ax.plot(xs, res.predict(xs), color="black", linewidth=1)
    ax.xaxis.set_major_formatter(_sqft_formatter())
    ax.yaxis.set_major_formatter(_currency_formatter())


# ------------------------------------------------------------
# Plots
# ------------------------------------------------------------
def plot_citywide(
    df: pd.DataFrame,
    out_path: Path,
    *,
    result: Optional[RegressionResult] = None,
    x: str = "gross_square_feet",
    y: str = "sale_price",
    label: str | None = None,
) -> Path:
    res = result or fit_ols(df, x=x, y=y)

    fig, ax = plt.subplots(figsize=(8, 6))
    _draw_fit(ax, df, res, x=x, y=y)
    ax.set_xlabel("Gross Square Feet")
    ax.set_ylabel("Sale Price (USD)")

    title = (
        f"Sale Price vs Gross Square Feet — NYC  |  "
        f"slope=${res.slope:,.0f}/sqft, R²={res.r_squared:.3f}, n={res.n_obs}"
    )
    if label:
        title += f"  ({label})"
    ax.set_title(title)

    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    fig.tight_layout()
    fig.savefig(out_path, dpi=150)
    plt.close(fig)
    print(f"[plots] Saved {out_path} (n={res.n_obs})")
    return out_path


def plot_by_group(
    df: pd.DataFrame,
    out_path: Path,
    *,
    results: Optional[Mapping[str, RegressionResult]] = None,
    by: str = "borough",
    x: str = "gross_square_feet",
    y: str = "sale_price",
    ncols: int = 3,
    label: str | None = None,
) -> Path:
    """Facet grid, one panel per group; axes are free so each borough keeps its own scale."""
    res_map = results or fit_by_group(df, by, x=x, y=y)
    groups = list(res_map)
    ncols = max(1, min(int(ncols), len(groups)))
    nrows = int(math.ceil(len(groups) / ncols))

    fig, axes = plt.subplots(nrows, ncols, figsize=(5 * ncols, 4 * nrows), squeeze=False)
    for ax, g in zip(axes.flat, groups):
        part = df[df[by].astype(str) == g]
        r = res_map[g]
        _draw_fit(ax, part, r, x=x, y=y, alpha=0.4)
        ax.set_title(f"{g}  |  ${r.slope:,.0f}/sqft, R²={r.r_squared:.2f}, n={r.n_obs}", fontsize=9)
        ax.set_xlabel("Gross Square Feet")
        ax.set_ylabel("Sale Price (USD)")
    for ax in list(axes.flat)[len(groups):]:
        ax.set_visible(False)

    title = f"Sale Price vs Gross Square Feet by {by.replace('_', ' ').title()}"
    if label:
        title += f"  ({label})"
    fig.suptitle(title)

    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    fig.tight_layout()
    fig.savefig(out_path, dpi=150)
    plt.close(fig)
    print(f"[plots] Saved {out_path} (n={sum(r.n_obs for r in res_map.values())})")
    return out_path


# ------------------------------------------------------------
# CLI
# ------------------------------------------------------------
def analysis_frame(df: pd.DataFrame, cfg: Mapping) -> pd.DataFrame:
    """Snapshot rows the models are fitted on: multi-unit groups and excluded prices removed."""
    from .io import _get
    from .multiunit import drop_multi_unit

    mu_cfg = _get(cfg, "multi_unit", {})
    kept, _ = drop_multi_unit(
        df,
        min_size=int(_get(mu_cfg, "min_group_size", 3)),
        exclude_prices=list(_get(mu_cfg, "exclude_prices", [])),
    )
    return kept


def main(argv: list[str] | None = None) -> None:
    from .io import _get, load_config, read_snapshot

    parser = argparse.ArgumentParser(
        description="Generate sale-price vs square-footage plots from the cleaned snapshot."
    )
    parser.add_argument(
        "--cfg", default="configs/config.yaml", help="Path to master config YAML."
    )
    parser.add_argument(
        "--snapshot",
        default=None,
        help="Optional override path to the cleaned CSV (defaults to paths.snapshot_csv).",
    )
    parser.add_argument(
        "--outdir",
        default=None,
        help="Optional override for output figures directory (defaults to <out_dir>/figures).",
    )

    sub = parser.add_subparsers(dest="cmd", required=True)
    sub.add_parser("city", help="Citywide scatter with fitted line.")
    sub.add_parser("facets", help="One panel per borough.")
    sub.add_parser("all", help="Generate all standard figures.")

    args = parser.parse_args(argv)

    cfg = load_config(args.cfg)
    paths = _get(cfg, "paths", {})
    snapshot = Path(args.snapshot or _get(paths, "snapshot_csv", "data/interim/condo_sales.csv"))
    fig_dir = Path(args.outdir) if args.outdir else Path(_get(paths, "out_dir", "outputs")) / "figures"
    model_cfg = _get(cfg, "model", {})
    by = str(_get(model_cfg, "group_by", "borough"))
    conf_level = float(_get(model_cfg, "conf_level", 0.95))

    # Same rows as the 'fit' stage, so these files match what the pipeline draws
    df = analysis_frame(read_snapshot(snapshot), cfg)

    if args.cmd in ("city", "all"):
        plot_citywide(df, fig_dir / "price_vs_sqft_all.png", result=fit_ols(df, conf_level=conf_level))
    if args.cmd in ("facets", "all"):
        plot_by_group(
            df,
            fig_dir / f"price_vs_sqft_{by}.png",
            results=fit_by_group(df, by, conf_level=conf_level),
            by=by,
        )


if __name__ == "__main__":
    main()
