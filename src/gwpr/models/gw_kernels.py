import torch
from .gw_base import BaseKernel


class GaussianKernel(BaseKernel):
    """Gaussian kernel: K(u) = exp(-u^2 / 2). Never exactly zero."""

    name = "gaussian"

    def weight(self, u: torch.Tensor) -> torch.Tensor:
        """Computes the kernel weight for a given scaled distance u."""
        return torch.exp(-0.5 * u**2)


class BisquareKernel(BaseKernel):
    """
    Bisquare kernel: K(u) = (1 - u^2)^2 for |u| < 1, exactly 0 otherwise.
    Compact support keeps distant locations out of the local fit.
    """

    name = "bisquare"

    def weight(self, u: torch.Tensor) -> torch.Tensor:
        """Computes the kernel weight for a given scaled distance u."""
        u_abs = torch.abs(u)
        return torch.where(u_abs < 1, (1 - u_abs**2) ** 2, torch.zeros_like(u_abs))


class ExponentialKernel(BaseKernel):
    """Exponential kernel: K(u) = exp(-|u|)."""

    name = "exponential"

    def weight(self, u: torch.Tensor) -> torch.Tensor:
        """Computes the kernel weight for a given scaled distance u."""
        return torch.exp(-torch.abs(u))


KERNELS = {
    GaussianKernel.name: GaussianKernel,
    BisquareKernel.name: BisquareKernel,
    ExponentialKernel.name: ExponentialKernel,
}


def get_kernel(name: str) -> BaseKernel:
    try:
        return KERNELS[name.strip().lower()]()
    except KeyError:
        raise ValueError(f"Unknown kernel '{name}'. Choose from {sorted(KERNELS)}.") from None
