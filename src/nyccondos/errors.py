# src/nyccondos/errors.py
from __future__ import annotations

__all__ = ["NycCondosError", "LoadError", "UnknownCodeError", "InsufficientDataError"]


class NycCondosError(Exception):
    """Base class for every error the pipeline raises on purpose."""


class LoadError(NycCondosError, ValueError):
    """A source file or snapshot is missing or does not have the expected layout."""


class UnknownCodeError(NycCondosError, ValueError):
    """A borough code outside 1..5 was found during normalization."""

    def __init__(self, values):
        # numpy scalars -> plain Python so the message reads "9", not "np.int64(9)"
        self.values = [v.item() if hasattr(v, "item") else v for v in values]
        shown = ", ".join(repr(v) for v in self.values[:10])
        more = f" (+{len(self.values) - 10} more)" if len(self.values) > 10 else ""
        super().__init__(f"Unknown borough code(s): {shown}{more}. Expected one of 1, 2, 3, 4, 5.")


class InsufficientDataError(NycCondosError, ValueError):
    """A partition cannot support a two-parameter OLS fit with usable inference."""

    def __init__(self, group: str, n_obs: int, reason: str | None = None):
        self.group = group
        self.n_obs = int(n_obs)
        why = reason or "at least 3 rows are required for a two-parameter fit"
        super().__init__(f"Cannot fit partition '{group}' with {self.n_obs} row(s): {why}.")
