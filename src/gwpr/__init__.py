"""
Top-level package for the geographically weighted panel regression workflow.
Provides convenient access to global settings and paths.
"""

from .config import settings
from .paths import PATHS

__all__ = ["settings", "PATHS"]
