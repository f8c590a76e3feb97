"""Error types raised by the panel validation and local estimation steps."""


class GWPRError(Exception):
    """Base class for workflow errors."""


class MissingDataError(GWPRError):
    """The panel has gaps in its location/time coverage or missing values."""


class CoordinateMismatchError(GWPRError):
    """A location reports different coordinates in different periods."""


class SingularDesignError(GWPRError):
    """The weighted design matrix at a location cannot be inverted."""

    def __init__(self, location, rcond: float | None = None):
        self.location = location
        self.rcond = rcond
        detail = "" if rcond is None else f" (reciprocal condition number {rcond:.3e})"
        super().__init__(f"Weighted design at location {location!r} is singular{detail}.")


class BandwidthSearchExhausted(GWPRError):
    """No bandwidth candidate satisfies the minimum effective-observation constraint."""

    def __init__(self, location, n_candidates: int):
        self.location = location
        self.n_candidates = n_candidates
        super().__init__(
            f"No valid bandwidth among {n_candidates} candidates for location {location!r}."
        )


__all__ = [
    "GWPRError",
    "MissingDataError",
    "CoordinateMismatchError",
    "SingularDesignError",
    "BandwidthSearchExhausted",
]
