"""Exceptions raised by the varifold curvature estimator.

Degenerate inputs are reported with the offending sample indices attached, so
that callers can decide whether to abort or to drop those samples and retry.
"""

import torch


class VarifoldError(Exception):
    """Base class for all errors raised by varifoldmesh."""


class InvalidRadiusError(VarifoldError, ValueError):
    """The ball radius is not a strictly positive finite number."""

    def __init__(self, radius: float):
        self.radius = radius
        super().__init__(
            f"Ball radius must be a strictly positive finite number, but got {radius=}."
        )


class DegenerateNeighborhoodError(VarifoldError):
    """No sample other than the center carries kernel weight in some ball.

    This happens when the radius is smaller than the local sample spacing.

    Attributes:
        indices: Indices of the offending samples, shape (n_degenerate,).
    """

    def __init__(self, indices: torch.Tensor, radius: float):
        self.indices = indices
        self.radius = radius
        shown = indices[:10].tolist()
        more = f" (and {len(indices) - len(shown)} more)" if len(indices) > 10 else ""
        super().__init__(
            f"No neighbor carries kernel weight for {len(indices)} sample(s) at {radius=}: "
            f"{shown}{more}. Increase the radius or densify the sampling."
        )


class DegenerateDisplacementError(VarifoldError):
    """A distinct neighbor coincides exactly with the center sample.

    Attributes:
        pairs: (center, neighbor) index pairs with zero-length displacement,
            shape (n_pairs, 2).
    """

    def __init__(self, pairs: torch.Tensor):
        self.pairs = pairs
        shown = pairs[:10].tolist()
        more = f" (and {len(pairs) - len(shown)} more)" if len(pairs) > 10 else ""
        super().__init__(
            f"Found {len(pairs)} (center, neighbor) pair(s) of distinct samples at "
            f"identical positions: {shown}{more}. Remove duplicate samples first."
        )
