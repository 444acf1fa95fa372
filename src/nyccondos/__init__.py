# src/nyccondos/__init__.py
"""
nyccondos: cleaning and per-borough OLS for NYC condominium sales.

Keep this file minimal to avoid circular imports during test discovery.
Do NOT import submodules here.
"""

__all__ = ["errors", "io", "normalize", "clean", "multiunit", "regression", "plots", "pipeline"]
__version__ = "0.1.0"
