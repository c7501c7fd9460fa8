"""Radial weighting kernels for local varifold averages.

A kernel profile is a pure function pair (weight, derivative) of the normalized
distance t = d / R, defined on [0, 1). Profiles never look outside the unit
ball: `RadialKernel` binds a profile to a center and a radius and clips every
sample with t >= 1 to exactly (0, 0).

Profiles are stateless strategy objects registered by `KernelKind`. Adding a
new kernel means subclassing `KernelProfile` and registering an instance with
`register_kernel_profile`.
"""

import math
from dataclasses import dataclass
from enum import Enum

import torch


class KernelKind(str, Enum):
    """Closed family of radial kernel profiles."""

    FLAT_DISC = "flat_disc"
    CONE = "cone"
    HALF_SPHERE = "half_sphere"
    EXPONENTIAL = "exponential"
    CNC = "cnc"

    @classmethod
    def parse(cls, value: "KernelKind | str") -> "KernelKind":
        """Parse a kernel kind from a member, a value, a name, or a legacy code.

        Legacy one-letter codes are 'l' (linear, i.e. cone), 'p' (polynomial,
        i.e. half-sphere), 'e' (exponential) and 'c' (CNC-like).

        Raises:
            ValueError: If the value names no known kernel.
        """
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        if key in _KERNEL_ALIASES:
            return _KERNEL_ALIASES[key]
        for member in cls:
            if key in (member.value, member.name.lower()):
                return member
        valid = sorted({m.value for m in cls} | set(_KERNEL_ALIASES))
        raise ValueError(f"Unknown kernel {value=}. Valid kernels are: {valid}.")


_KERNEL_ALIASES = {
    "l": KernelKind.CONE,
    "linear": KernelKind.CONE,
    "p": KernelKind.HALF_SPHERE,
    "polynomial": KernelKind.HALF_SPHERE,
    "e": KernelKind.EXPONENTIAL,
    "c": KernelKind.CNC,
    "flat": KernelKind.FLAT_DISC,
}


class KernelProfile:
    """Radial weight and its derivative on the open unit interval [0, 1).

    Subclasses implement `weight` and `derivative` elementwise on tensors of
    normalized distances. Neither is required to be meaningful at t >= 1.
    """

    kind: KernelKind

    def weight(self, t: torch.Tensor) -> torch.Tensor:
        raise NotImplementedError

    def derivative(self, t: torch.Tensor) -> torch.Tensor:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class FlatDiscProfile(KernelProfile):
    """Constant weight 3 / (4 pi)."""

    kind = KernelKind.FLAT_DISC

    def weight(self, t: torch.Tensor) -> torch.Tensor:
        return torch.full_like(t, 3.0 / (4.0 * math.pi))

    def derivative(self, t: torch.Tensor) -> torch.Tensor:
        return torch.zeros_like(t)


class ConeProfile(KernelProfile):
    """Linear decay (1 - t) pi / 12."""

    kind = KernelKind.CONE

    def weight(self, t: torch.Tensor) -> torch.Tensor:
        return (1.0 - t) * math.pi / 12.0

    def derivative(self, t: torch.Tensor) -> torch.Tensor:
        return torch.full_like(t, -math.pi / 12.0)


class HalfSphereProfile(KernelProfile):
    """Quadratic decay (1 - t^2) / (2 pi)."""

    kind = KernelKind.HALF_SPHERE

    def weight(self, t: torch.Tensor) -> torch.Tensor:
        return (1.0 - t**2) / (2.0 * math.pi)

    def derivative(self, t: torch.Tensor) -> torch.Tensor:
        return -t / math.pi


class ExponentialProfile(KernelProfile):
    """Smooth bump exp(-t^2 / (1 - t^2)), vanishing with all derivatives at t = 1."""

    kind = KernelKind.EXPONENTIAL

    def weight(self, t: torch.Tensor) -> torch.Tensor:
        return torch.exp(-(t**2) / (1.0 - t**2))

    def derivative(self, t: torch.Tensor) -> torch.Tensor:
        return -2.0 * t / (1.0 - t**2) ** 2 * self.weight(t)


class CNCProfile(KernelProfile):
    """Unit indicator of the ball, as used by corrected normal current measures."""

    kind = KernelKind.CNC

    def weight(self, t: torch.Tensor) -> torch.Tensor:
        return torch.ones_like(t)

    def derivative(self, t: torch.Tensor) -> torch.Tensor:
        return torch.zeros_like(t)


_PROFILES: dict[KernelKind, KernelProfile] = {}


def register_kernel_profile(profile: KernelProfile) -> None:
    """Register a profile instance under its `kind`, replacing any previous one."""
    _PROFILES[profile.kind] = profile


for _profile in (
    FlatDiscProfile(),
    ConeProfile(),
    HalfSphereProfile(),
    ExponentialProfile(),
    CNCProfile(),
):
    register_kernel_profile(_profile)


def get_kernel_profile(kind: "KernelKind | str | KernelProfile") -> KernelProfile:
    """Look up the profile for a kernel kind (profiles are passed through)."""
    if isinstance(kind, KernelProfile):
        return kind
    return _PROFILES[KernelKind.parse(kind)]


def evaluate_profile(
    profile: KernelProfile,
    t: torch.Tensor,
) -> tuple[torch.Tensor, torch.Tensor]:
    """Evaluate a profile on normalized distances, clipping the outside of the ball.

    Args:
        profile: Kernel profile
        t: Normalized distances d / R, any shape

    Returns:
        (weights, derivatives), both with the shape of `t`. Entries with t >= 1
        are exactly zero.
    """
    inside = t < 1.0
    # Keep the profile away from its singularities outside the ball
    t_inside = torch.where(inside, t, torch.zeros_like(t))
    zeros = torch.zeros_like(t)
    weights = torch.where(inside, profile.weight(t_inside), zeros)
    derivatives = torch.where(inside, profile.derivative(t_inside), zeros)
    return weights, derivatives


@dataclass(frozen=True)
class RadialKernel:
    """A kernel profile bound to a center point and a ball radius.

    Attributes:
        center: Kernel center, shape (n_spatial_dims,). A batch of centers of
            shape (n_centers, 1, n_spatial_dims) broadcasts against positions.
        radius: Ball radius R > 0
        profile: Kernel profile (a `KernelKind` or code is resolved on creation)

    Example:
        >>> kernel = RadialKernel(torch.zeros(3), 1.5, KernelKind.CONE)
        >>> weights, derivatives = kernel(positions)
    """

    center: torch.Tensor
    radius: float
    profile: KernelProfile

    def __post_init__(self):
        from varifoldmesh.errors import InvalidRadiusError

        if not (math.isfinite(self.radius) and self.radius > 0):
            raise InvalidRadiusError(self.radius)
        object.__setattr__(self, "profile", get_kernel_profile(self.profile))

    def normalized_distances(self, positions: torch.Tensor) -> torch.Tensor:
        """Euclidean distance from the center to each position, divided by R."""
        return torch.linalg.vector_norm(positions - self.center, dim=-1) / self.radius

    def __call__(
        self,
        positions: torch.Tensor,
        indices: torch.Tensor | None = None,
    ) -> tuple[torch.Tensor, torch.Tensor]:
        """Evaluate (weights, derivatives) at positions, optionally a subset of them.

        Args:
            positions: Candidate positions, shape (n_positions, n_spatial_dims)
            indices: Optional indices into `positions` to evaluate

        Returns:
            (weights, derivatives) aligned with `positions` (or `indices`).
        """
        if indices is not None:
            positions = positions[indices]
        return evaluate_profile(self.profile, self.normalized_distances(positions))


def kernel_field(
    positions: torch.Tensor,
    center_index: int,
    radius: float,
    kind: "KernelKind | str" = KernelKind.EXPONENTIAL,
) -> tuple[torch.Tensor, torch.Tensor]:
    """Evaluate a radial kernel centered at one sample over the whole population.

    Intended for inspecting a kernel's shape on a real sample distribution,
    e.g. to paint weights and derivatives onto mesh faces.

    Args:
        positions: Sample positions, shape (n_samples, n_spatial_dims)
        center_index: Index of the sample used as kernel center
        radius: Ball radius R > 0
        kind: Kernel kind

    Returns:
        (weights, derivatives), each of shape (n_samples,), zero outside the ball.
    """
    from varifoldmesh.neighbors import ball_query

    if not 0 <= center_index < len(positions):
        raise IndexError(f"{center_index=} is out of range for {len(positions)=}.")

    kernel = RadialKernel(positions[center_index], radius, kind)
    neighbors = ball_query(positions, positions[center_index : center_index + 1], radius)
    indices = neighbors.indices

    weights = torch.zeros(len(positions), dtype=positions.dtype, device=positions.device)
    derivatives = torch.zeros_like(weights)
    w, dw = kernel(positions, indices)
    weights[indices] = w
    derivatives[indices] = dw
    return weights, derivatives
