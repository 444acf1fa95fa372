# src/nyccondos/pipeline.py
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Mapping

import pandas as pd
from tqdm.auto import tqdm

from . import io as io_mod
from .io import _get
from .clean import clean_sales, cleaning_report
from .errors import NycCondosError
from .multiunit import drop_multi_unit, multi_unit_groups, paired_sales
from .normalize import DEFAULT_DROP_COLUMNS, DEFAULT_TITLE_CASE, normalize_records
from .plots import plot_by_group, plot_citywide
from .regression import (
    coefficient_table,
    compare_results,
    fit_by_group,
    fit_ols,
    fit_table,
    rank_results,
)

__all__ = ["run_clean", "run_models", "run", "main"]


class Prog:
    """Tiny progress helper."""
    def __init__(self, enabled: bool, total: int, desc: str):
        self.enabled = enabled
        self.t = tqdm(total=total, desc=desc, leave=True) if self.enabled else None

    def step(self, msg: str):
        if self.t:
            # show the latest substep; keep it short so it fits in one line
            self.t.set_postfix_str(msg[:60], refresh=True)
            self.t.update(1)

    def close(self):
        if self.t:
            self.t.close()


# ----------------------------- #
# Config accessors
# ----------------------------- #
def _snapshot_path(cfg: Mapping[str, Any]) -> Path:
    return Path(_get(_get(cfg, "paths", {}), "snapshot_csv", "data/interim/condo_sales.csv"))


def _out_dir(cfg: Mapping[str, Any]) -> Path:
    return Path(_get(_get(cfg, "paths", {}), "out_dir", "outputs"))


def _progress(cfg: Mapping[str, Any]) -> bool:
    return bool(_get(_get(cfg, "run", {}), "progress", True))


# ----------------------------- #
# Stage 1: raw files -> cleaned snapshot
# ----------------------------- #
def run_clean(cfg: Mapping[str, Any]) -> tuple[pd.DataFrame, dict[str, Any]]:
    data_cfg = _get(cfg, "data", {})
    sources = _get(data_cfg, "sources", None)
    if not sources:
        raise KeyError("'data.sources' is missing in the config. List one {borough, path} entry per file.")
    clean_cfg = _get(cfg, "clean", {})

    p = Prog(enabled=_progress(cfg), total=4, desc="Cleaning")
    try:
        raw = io_mod.load_sources(
            sources,
            header_rows=int(_get(data_cfg, "header_rows", 4)),
        )
        p.step(f"Loaded {len(sources)} file(s), {len(raw)} rows")

        norm = normalize_records(
            raw,
            title_case_columns=tuple(_get(clean_cfg, "title_case", DEFAULT_TITLE_CASE)),
            drop_columns=tuple(_get(clean_cfg, "drop_columns", DEFAULT_DROP_COLUMNS)),
        )
        p.step("Normalized fields")

        cleaned = clean_sales(
            norm,
            min_sale_price=float(_get(clean_cfg, "min_sale_price", 10_000)),
            building_classes=_get(clean_cfg, "building_classes", None),
        )
        p.step(f"Cleaned: {len(cleaned)} rows")

        if cleaned.empty:
            raise ValueError(
                "No rows remain after cleaning. "
                "Check 'clean.min_sale_price' and 'clean.building_classes' against your source files."
            )

        io_mod.write_snapshot(cleaned, _snapshot_path(cfg))
        p.step("Wrote snapshot")
    finally:
        p.close()

    report = cleaning_report(norm, cleaned)
    report["rows_loaded"] = int(len(raw))
    return cleaned, report


# ----------------------------- #
# Stage 2: snapshot -> models, tables, figures
# ----------------------------- #
def run_models(cfg: Mapping[str, Any]) -> dict[str, Any]:
    model_cfg = _get(cfg, "model", {})
    mu_cfg = _get(cfg, "multi_unit", {})
    by = str(_get(model_cfg, "group_by", "borough"))
    conf_level = float(_get(model_cfg, "conf_level", 0.95))
    min_size = int(_get(mu_cfg, "min_group_size", 3))
    exclude_prices = list(_get(mu_cfg, "exclude_prices", []))
    plots_on = bool(_get(_get(cfg, "plots", {}), "enabled", True))

    out_dir = _out_dir(cfg)
    tables_dir = out_dir / "tables"
    figures_dir = out_dir / "figures"
    tables_dir.mkdir(parents=True, exist_ok=True)

    p = Prog(enabled=_progress(cfg), total=7 + (1 if plots_on else 0), desc="Modeling")
    try:
        df = io_mod.read_snapshot(_snapshot_path(cfg))
        p.step(f"Read snapshot: {len(df)} rows")

        # Baseline fits on the cleaned snapshot, before multi-unit removal
        city_raw = fit_ols(df, group="All", conf_level=conf_level)
        groups_raw = fit_by_group(df, by, conf_level=conf_level)
        p.step("Fitted snapshot models")

        pairs = paired_sales(df)
        suspects = multi_unit_groups(df, min_size=min_size)
        pairs.to_csv(tables_dir / "paired_sales.csv", index=False, date_format="%Y-%m-%d")
        suspects.to_csv(tables_dir / "multi_unit_groups.csv", index=False, date_format="%Y-%m-%d")
        p.step(f"Multi-unit groups: {len(suspects)}, pairs: {len(pairs) // 2}")

        kept, removed = drop_multi_unit(df, min_size=min_size, exclude_prices=exclude_prices)
        removed.to_csv(tables_dir / "multi_unit_removed.csv", index=False, date_format="%Y-%m-%d")
        kept.to_csv(tables_dir / "analysis_dataset.csv", index=False, date_format="%Y-%m-%d")
        p.step(f"Dropped {len(removed)} multi-unit rows")

        city = fit_ols(kept, group="All", conf_level=conf_level)
        groups = fit_by_group(kept, by, conf_level=conf_level)
        p.step("Fitted final models")

        everything = [city, *groups.values()]
        coefficient_table(everything).to_csv(tables_dir / "coefficients.csv", index=False)
        fit_table(everything).to_csv(tables_dir / "fit.csv", index=False)
        rank_by_slope = rank_results(groups, by="slope")
        rank_by_r2 = rank_results(groups, by="r_squared")
        rank_by_slope.to_csv(tables_dir / "rank_by_slope.csv", index=False)
        rank_by_r2.to_csv(tables_dir / "rank_by_r_squared.csv", index=False)
        compare_results(
            [city_raw, *groups_raw.values()],
            everything,
            labels=("snapshot", "final"),
        ).to_csv(tables_dir / "comparison.csv", index=False)
        p.step("Wrote tables")

        if plots_on:
            plot_citywide(kept, figures_dir / "price_vs_sqft_all.png", result=city)
            plot_by_group(kept, figures_dir / f"price_vs_sqft_{by}.png", results=groups, by=by)
            p.step("Wrote figures")

        summary = {
            "rows_snapshot": int(len(df)),
            "rows_removed_multi_unit": int(len(removed)),
            "rows_final": int(len(kept)),
            "multi_unit_min_group_size": min_size,
            "exclude_prices": exclude_prices,
            "citywide": city.to_dict(),
            "by_group": {k: v.to_dict() for k, v in groups.items()},
            "order_by_slope": rank_by_slope["group"].tolist(),
            "order_by_r_squared": rank_by_r2["group"].tolist(),
        }
        (out_dir / "summary.json").write_text(json.dumps(summary, indent=2, default=io_mod._json_default))
        p.step("Wrote summary")
    finally:
        p.close()

    return summary


def run(cfg_path: str = "configs/config.yaml", cmd: str = "all") -> dict[str, Any]:
    cfg = io_mod.load_config(cfg_path)
    payload: dict[str, Any] = {}
    if cmd in ("clean", "all"):
        _, report = run_clean(cfg)
        payload["cleaning"] = report
    if cmd in ("fit", "all"):
        summary = run_models(cfg)
        payload["models"] = {
            "rows_final": summary["rows_final"],
            "citywide": {k: summary["citywide"][k] for k in ("slope", "intercept", "r_squared", "sigma", "n_obs")},
            "order_by_slope": summary["order_by_slope"],
            "order_by_r_squared": summary["order_by_r_squared"],
        }
    return payload


# ----------------------------- #
# CLI
# ----------------------------- #
def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Clean NYC rolling-sales files and fit sale price ~ gross square feet per borough."
    )
    parser.add_argument(
        "--cfg", default="configs/config.yaml", help="Path to master config YAML."
    )
    sub = parser.add_subparsers(dest="cmd", required=True)
    sub.add_parser("clean", help="Load, normalize and clean the source files; write the snapshot.")
    sub.add_parser("fit", help="Read the snapshot, remove multi-unit sales and fit the models.")
    sub.add_parser("all", help="Run 'clean' then 'fit'.")

    args = parser.parse_args(argv)
    try:
        payload = run(args.cfg, args.cmd)
    except (NycCondosError, FileNotFoundError, KeyError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    print(json.dumps(payload, indent=2, default=io_mod._json_default))
    return 0


if __name__ == "__main__":
    sys.exit(main())
