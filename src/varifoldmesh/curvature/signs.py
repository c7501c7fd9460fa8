"""Signed scalar curvature from raw varifold curvature vectors.

The naive sign sign(n . c) is noisy: neighboring samples on a smooth region
can disagree because the projection estimator is first order. The corrected
sign of each sample is the sign of the inclusion-weighted sum of its one-ring
neighbors' naive signed curvatures (the sample itself excluded), keeping the
sample's own magnitude.

A sample whose weighted sum is exactly zero, in particular one with no
one-ring neighbor at all, gets a positive sign.
"""

import torch

from varifoldmesh.neighbors import Adjacency


def naive_signed_curvatures(
    normals: torch.Tensor,
    curvatures: torch.Tensor,
) -> torch.Tensor:
    """|c| signed by the orientation of c against the sample normal.

        naive[f] = |c_f| if n_f . c_f > 0 else -|c_f|

    Args:
        normals: Sample normals, shape (n_samples, n_spatial_dims)
        curvatures: Raw curvature vectors, same shape

    Returns:
        Tensor of shape (n_samples,).
    """
    if normals.shape != curvatures.shape:
        raise ValueError(
            f"`normals` and `curvatures` must be index-aligned, but got "
            f"{normals.shape=} != {curvatures.shape=}."
        )
    magnitudes = torch.linalg.vector_norm(curvatures, dim=-1)
    dots = (normals * curvatures).sum(dim=-1)
    return torch.where(dots > 0, magnitudes, -magnitudes)


def correct_signs(
    naive_signed: torch.Tensor,
    one_ring: Adjacency,
    inclusion_weights: torch.Tensor | None = None,
) -> torch.Tensor:
    """Make signs consistent by majority vote over each sample's one ring.

    Args:
        naive_signed: Signed curvatures, shape (n_samples,)
        one_ring: Topological neighbors of each sample (n_sources == n_samples).
            Self entries are ignored.
        inclusion_weights: Weight of each neighbor entry, aligned with
            one_ring.indices. Defaults to 1 for every entry.

    Returns:
        Tensor of shape (n_samples,) with |naive_signed| and the corrected sign.

    Example:
        >>> naive = torch.tensor([1.0, -1.0, 1.0])
        >>> ring = Adjacency.from_pairs(
        ...     torch.tensor([0, 1, 1, 2]), torch.tensor([1, 0, 2, 1]), n_sources=3
        ... )
        >>> correct_signs(naive, ring)
        tensor([-1., 1., -1.])
    """
    n_samples = len(naive_signed)
    if one_ring.n_sources != n_samples:
        raise ValueError(
            f"One ring must cover every sample, but got {one_ring.n_sources=} != {n_samples=}."
        )
    if inclusion_weights is None:
        inclusion_weights = torch.ones(
            one_ring.n_total_neighbors,
            dtype=naive_signed.dtype,
            device=naive_signed.device,
        )
    elif inclusion_weights.shape != one_ring.indices.shape:
        raise ValueError(
            f"`inclusion_weights` must be aligned with the one-ring indices, but got "
            f"{inclusion_weights.shape=} != {one_ring.indices.shape=}."
        )

    sources = one_ring.source_indices()
    targets = one_ring.indices
    not_self = sources != targets

    neighbor_sums = torch.zeros_like(naive_signed)
    neighbor_sums.index_add_(
        0,
        sources[not_self],
        inclusion_weights[not_self].to(naive_signed.dtype) * naive_signed[targets[not_self]],
    )

    signs = torch.where(
        neighbor_sums < 0,
        -torch.ones_like(naive_signed),
        torch.ones_like(naive_signed),
    )
    return naive_signed.abs() * signs
