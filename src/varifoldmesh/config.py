"""Run configuration for varifold curvature estimation.

Everything that was a global tunable (ball radius, kernel, sampling method,
neighborhood backend, chunking) is an explicit, validated field here and is
threaded through `compute_varifolds`.
"""

import math
import numbers
from dataclasses import dataclass

from varifoldmesh.errors import InvalidRadiusError
from varifoldmesh.kernels import KernelKind
from varifoldmesh.methods import Method

_NEIGHBORHOOD_BACKENDS = ("brute_force", "bvh")


@dataclass(frozen=True)
class VarifoldConfig:
    """Parameters of one estimation run.

    Attributes:
        radius: Ball radius R > 0, fixed for the run
        kernel: Kernel kind; strings and legacy codes ('l', 'p', 'e', 'c') are parsed
        method: Sampling method; strings ('tnfc', 'dnfc', 'cnfc') are parsed
        neighborhood: Ball query backend, "brute_force" or "bvh"
        chunk_size: Number of centers processed per vectorized step
        correct_signs: Whether to apply the one-ring sign correction

    Example:
        >>> config = VarifoldConfig(radius=0.5, kernel="p", method="tnfc")
        >>> config.kernel
        <KernelKind.HALF_SPHERE: 'half_sphere'>
    """

    radius: float
    kernel: KernelKind = KernelKind.EXPONENTIAL
    method: Method = Method.CORRECTED_NORMAL_FACE_CENTROID
    neighborhood: str = "brute_force"
    chunk_size: int = 1024
    correct_signs: bool = True

    def __post_init__(self):
        if not (
            isinstance(self.radius, numbers.Real)
            and math.isfinite(self.radius)
            and self.radius > 0
        ):
            raise InvalidRadiusError(self.radius)
        object.__setattr__(self, "radius", float(self.radius))
        object.__setattr__(self, "kernel", KernelKind.parse(self.kernel))
        object.__setattr__(self, "method", Method.parse(self.method))
        if self.neighborhood not in _NEIGHBORHOOD_BACKENDS:
            raise ValueError(
                f"Unknown neighborhood backend {self.neighborhood=}. "
                f"Valid backends are: {list(_NEIGHBORHOOD_BACKENDS)}."
            )
        if self.chunk_size < 1:
            raise ValueError(f"{self.chunk_size=} must be >= 1.")
