from __future__ import annotations

import numpy as np
import pandas as pd

from nyccondos.plots import analysis_frame, plot_by_group, plot_citywide


def _frame() -> pd.DataFrame:
    rng = np.random.default_rng(7)
    parts = []
    for borough, slope in (("Bronx", 400.0), ("Brooklyn", 900.0), ("Manhattan", 1_600.0)):
        sqft = rng.uniform(600, 2_000, size=15)
        parts.append(
            pd.DataFrame(
                {
                    "borough": borough,
                    "gross_square_feet": sqft,
                    "sale_price": 50_000 + slope * sqft + rng.normal(0, 50_000, size=15),
                }
            )
        )
    return pd.concat(parts, ignore_index=True)


def test_plots_write_png_files(tmp_path):
    df = _frame()
    city = plot_citywide(df, tmp_path / "figs" / "city.png")
    facets = plot_by_group(df, tmp_path / "figs" / "facets.png", by="borough", ncols=2)
    for p in (city, facets):
        assert p.exists()
        assert p.read_bytes()[:8] == b"\x89PNG\r\n\x1a\n"


def test_analysis_frame_applies_multi_unit_settings():
    df = pd.DataFrame(
        {
            "borough": ["Brooklyn"] * 5,
            "gross_square_feet": [700.0, 750.0, 800.0, 1_000.0, 1_200.0],
            "sale_price": [500_000, 500_000, 500_000, 875_000, 990_000],
            "sale_date": pd.to_datetime(["2023-05-01"] * 3 + ["2023-06-01", "2023-07-01"]),
        }
    )
    assert analysis_frame(df, {})["sale_price"].tolist() == [875_000, 990_000]

    cfg = {"multi_unit": {"min_group_size": 4, "exclude_prices": [990_000]}}
    assert analysis_frame(df, cfg)["sale_price"].tolist() == [500_000, 500_000, 500_000, 875_000]
