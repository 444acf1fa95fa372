# src/nyccondos/io.py
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence

import hashlib
import json
import math
import zipfile

import numpy as np
import pandas as pd
import yaml

from .errors import LoadError
from .normalize import _coerce_datetime_quiet, _coerce_price_to_numeric, clean_column_name, recode_borough

__all__ = [
    "EXPECTED_COLUMNS",
    "ANALYSIS_COLUMNS",
    "load_config",
    "load_sources",
    "read_source",
    "write_snapshot",
    "read_snapshot",
]

# Columns every rolling-sales file must carry once names are normalized.
EXPECTED_COLUMNS: tuple[str, ...] = (
    "borough",
    "neighborhood",
    "building_class_at_time_of_sale",
    "address",
    "gross_square_feet",
    "sale_price",
    "sale_date",
)

# Columns the modelling stages read back from the snapshot.
ANALYSIS_COLUMNS: tuple[str, ...] = ("borough", "neighborhood", "gross_square_feet", "sale_price", "sale_date")


# ----------------------------- #
# Config
# ----------------------------- #

def load_config(path: str | Path) -> dict[str, Any]:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config not found: {p.resolve()}")
    data = yaml.safe_load(p.read_text())
    if data is None or not isinstance(data, dict) or not data:
        raise ValueError(
            f"Config file is empty or invalid YAML: {p.resolve()}\n"
            "Please populate configs/config.yaml (see the example shipped with the repo)."
        )
    return data


# ----------------------------- #
# Record loader
# ----------------------------- #

def read_source(
    path: str | Path,
    *,
    header_rows: int = 4,
    expected_columns: Sequence[str] = EXPECTED_COLUMNS,
) -> pd.DataFrame:
    """
    Read one borough file, skipping `header_rows` banner lines above the real header.

    The header offset is verified by checking that every expected column (after
    name normalization) is present; a wrong offset lands on a banner line or a
    data row and fails that check.
    """
    path = Path(path)
    if not path.exists():
        raise LoadError(f"Source file not found: {path.resolve()}")

    suffix = path.suffix.lower()
    if suffix not in (".xlsx", ".xls", ".csv", ".txt"):
        raise LoadError(f"Unsupported source format '{suffix}' for {path}; expected .csv or .xlsx")
    try:
        if suffix in (".xlsx", ".xls"):
            df = pd.read_excel(path, skiprows=int(header_rows))
        else:
            df = pd.read_csv(path, skiprows=int(header_rows), low_memory=False)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, zipfile.BadZipFile, ValueError) as e:
        raise LoadError(f"Could not parse {path} with header_rows={header_rows}: {e}") from e

    seen = {clean_column_name(c) for c in df.columns}
    missing = [c for c in expected_columns if c not in seen]
    if missing:
        preview = [str(c) for c in list(df.columns)[:6]]
        raise LoadError(
            f"{path.name}: expected columns {missing} not found after skipping {header_rows} header rows. "
            f"First columns seen: {preview}. Check 'data.header_rows' in the config."
        )
    return df


def load_sources(
    sources: Iterable[Mapping[str, Any]],
    *,
    header_rows: int = 4,
    expected_columns: Sequence[str] = EXPECTED_COLUMNS,
) -> pd.DataFrame:
    """
    Read every borough file and stack them into one table.

    Each entry of `sources` is a mapping with `path` and `borough` (the numeric
    borough code the file belongs to). The file's own codes are validated first:
    any value outside 1..5, blanks and non-numeric text included, raises
    UnknownCodeError. After that the declared code is written into every row, so
    a valid but mismatched file code is reported and replaced.
    """
    frames: list[pd.DataFrame] = []
    for i, src in enumerate(sources):
        if "path" not in src or "borough" not in src:
            raise LoadError(f"Source entry #{i} must define both 'path' and 'borough': {dict(src)}")
        df = read_source(src["path"], header_rows=header_rows, expected_columns=expected_columns)

        borough_col = next(c for c in df.columns if clean_column_name(c) == "borough")
        declared = src["borough"]
        declared_name = recode_borough([declared]).iloc[0]
        # Every file code must be a real borough before the declared one is stamped over it
        file_names = recode_borough(df[borough_col])
        disagree = int((file_names != declared_name).sum())
        if disagree:
            print(f"[io] {Path(src['path']).name}: {disagree} row(s) carry a borough code other than {declared}; using {declared}")
        df[borough_col] = declared

        # Align to the first file's header spelling so concat does not split columns
        if frames:
            canon = {clean_column_name(c): c for c in frames[0].columns}
            df = df.rename(columns={c: canon.get(clean_column_name(c), c) for c in df.columns})
        frames.append(df)
        _debug_count_delta(f"load[{Path(src['path']).name}]", 0, df)

    if not frames:
        raise LoadError("No source files configured (data.sources is empty).")
    return pd.concat(frames, ignore_index=True)


# ----------------------------- #
# Snapshot
# ----------------------------- #

def write_snapshot(df: pd.DataFrame, path: str | Path, *, schema: bool = True) -> Path:
    """Persist the cleaned table as CSV and, by default, a schema.snapshot.json beside it."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False, date_format="%Y-%m-%d")
    if schema:
        _write_schema_snapshot(df=df, out_path=path.with_suffix(".schema.json"), csv_path=path)
    print(f"[io] Saved {path} ({len(df)} rows)")
    return path


def read_snapshot(path: str | Path, *, required_columns: Sequence[str] = ANALYSIS_COLUMNS) -> pd.DataFrame:
    path = Path(path)
    if not path.exists():
        raise LoadError(f"Snapshot not found: {path.resolve()}. Run the 'clean' step first.")
    df = pd.read_csv(path, low_memory=False)
    missing = [c for c in required_columns if c not in df.columns]
    if missing:
        raise LoadError(f"Snapshot {path} is missing columns {missing}")
    if "sale_date" in df.columns:
        df["sale_date"] = _coerce_datetime_quiet(df["sale_date"])
    for col in ("gross_square_feet", "sale_price"):
        if col in df.columns:
            df[col] = _coerce_price_to_numeric(df[col])
    return df


# ----------------------------- #
# Helpers (internal)
# ----------------------------- #

def _get(dct: Optional[Mapping[str, Any]], key: str, default: Any) -> Any:
    if isinstance(dct, Mapping) and key in dct and dct[key] is not None:
        return dct[key]
    return default


def _write_schema_snapshot(
    *,
    df: pd.DataFrame,
    out_path: Path,
    csv_path: Path,
) -> None:
    """Compute and write a schema snapshot for reproducibility."""
    out_path.parent.mkdir(parents=True, exist_ok=True)

    cols_meta: Dict[str, Dict[str, Any]] = {}
    for col in df.columns:
        s = df[col]
        meta: Dict[str, Any] = {
            "dtype": str(s.dtype),
            "non_null": int(s.notna().sum()),
            "nulls": int(s.isna().sum()),
        }
        if pd.api.types.is_numeric_dtype(s):
            arr = s.to_numpy(dtype=float)
            arr = arr[np.isfinite(arr)]
            if arr.size == 0:
                meta.update({"min": None, "p50": None, "p99": None, "max": None, "mean": None})
            else:
                meta.update(
                    {
                        "min": _nanfloat(np.min(arr)),
                        "p50": _nanfloat(np.percentile(arr, 50)),
                        "p99": _nanfloat(np.percentile(arr, 99)),
                        "max": _nanfloat(np.max(arr)),
                        "mean": _nanfloat(np.mean(arr)),
                    }
                )
        elif pd.api.types.is_datetime64_any_dtype(s):
            meta.update({"min": _ts_or_none(s.min()), "max": _ts_or_none(s.max())})
        else:
            vc = s.astype("object").value_counts(dropna=True).head(10)
            meta["top_values"] = [{"value": str(idx), "count": int(cnt)} for idx, cnt in vc.items()]
        cols_meta[col] = meta

    snapshot = {
        "snapshot_csv": str(csv_path),
        "data_hash_sha256": _sha256_file(csv_path),
        "num_rows": int(len(df)),
        "num_columns": int(df.shape[1]),
        "columns": cols_meta,
    }
    out_path.write_text(json.dumps(snapshot, indent=2, default=_json_default))


def _sha256_file(path: Path, chunk_size: int = 1 << 20) -> str:
    h = hashlib.sha256()
    with path.open("rb") as f:
        while True:
            b = f.read(chunk_size)
            if not b:
                break
            h.update(b)
    return f"sha256:{h.hexdigest()}"


def _nanfloat(x: float) -> Optional[float]:
    if x is None:
        return None
    x = float(x)
    if math.isnan(x) or math.isinf(x):
        return None
    return x


def _ts_or_none(ts: pd.Timestamp | None) -> Optional[str]:
    if ts is None or pd.isna(ts):
        return None
    return ts.isoformat()


def _json_default(obj: Any) -> Any:
    if isinstance(obj, (np.floating,)):
        return float(obj)
    if isinstance(obj, (np.integer,)):
        return int(obj)
    return str(obj)


def _debug_count_delta(step: str, before_len: int, after_df: pd.DataFrame) -> None:
    delta = len(after_df) - int(before_len)
    sign = "+" if delta >= 0 else ""
    print(f"[io] {step}: {sign}{delta} rows -> {len(after_df)}")
