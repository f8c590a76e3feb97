from dataclasses import dataclass
from datetime import datetime
from pathlib import Path


@dataclass(frozen=True)
class ProjectPaths:
    """Where panel inputs, boundary files and run outputs live."""

    root: Path
    data_raw: Path
    data_geometry: Path
    reports_dir: Path

    def ensure_directories(self) -> None:
        for p in (self.data_raw, self.data_geometry, self.reports_dir):
            p.mkdir(parents=True, exist_ok=True)

    def run_directory(self, label: str = "gwpr", stamp: str | None = None) -> Path:
        """A fresh reports/<timestamp>_<label> directory for one workflow run."""
        stamp = stamp or datetime.now().strftime("%Y%m%d_%H%M%S")
        path = self.reports_dir / f"{stamp}_{label}"
        path.mkdir(parents=True, exist_ok=True)
        return path


ROOT = Path(__file__).resolve().parents[2]

PATHS = ProjectPaths(
    root=ROOT,
    data_raw=ROOT / "data" / "raw",
    data_geometry=ROOT / "data" / "geometry",
    reports_dir=ROOT / "reports",
)

__all__ = ["ProjectPaths", "PATHS", "ROOT"]
