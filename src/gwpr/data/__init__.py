"""Data layer: loading the raw panel and geometries, validation, simulation."""

from .ingest import load_panel_raw, load_geometries
from .preprocess import validate_panel
from .simulate import make_synthetic_panel, make_synthetic_geometries

__all__ = ["load_panel_raw", "load_geometries", "validate_panel", "make_synthetic_panel", "make_synthetic_geometries"]
