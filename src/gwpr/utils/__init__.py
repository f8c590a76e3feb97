"""Miscellaneous utilities shared across modules."""

from .io import save_dataframe, export_gwpr_results
from .seed import set_global_seed

__all__ = ["save_dataframe", "export_gwpr_results", "set_global_seed"]
