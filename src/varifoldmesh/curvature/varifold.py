"""Local curvature vectors from a discrete varifold.

For a sample f at position b, with ball radius R and radial kernel weight w:

    curvature[f] = - sum_{g != f} w_g * P_g(x_g - b) / |x_g - b|
                   ---------------------------------------------
                              R * sum_g w_g

where P_g projects onto the plane orthogonal to the neighbor normal n_g and
both sums run over the samples strictly inside the ball (the center itself
only contributes to the denominator). The center's own normal is not used.

The result is a raw 3D vector; sign and scalar curvature are handled by
`varifoldmesh.curvature.signs`.
"""

import logging
import math
import numbers

import torch

from varifoldmesh.errors import (
    DegenerateDisplacementError,
    DegenerateNeighborhoodError,
    InvalidRadiusError,
)
from varifoldmesh.kernels import KernelKind, KernelProfile, evaluate_profile, get_kernel_profile
from varifoldmesh.neighbors import make_ball_query
from varifoldmesh.neighbors._ball_query import NeighborhoodBackend

logger = logging.getLogger(__name__)


def project_orthogonal(vectors: torch.Tensor, normals: torch.Tensor) -> torch.Tensor:
    """Project each vector onto the hyperplane orthogonal to its paired normal.

        proj(v, n) = v - n (v . n) / |n|^2

    Normals need not be unit length, but must be non-zero.

    Args:
        vectors: Shape (..., n_spatial_dims)
        normals: Shape (..., n_spatial_dims), broadcastable against `vectors`
    """
    dots = (vectors * normals).sum(dim=-1, keepdim=True)
    norms_sq = (normals * normals).sum(dim=-1, keepdim=True)
    return vectors - normals * dots / norms_sq


def _validate_inputs(positions: torch.Tensor, normals: torch.Tensor, radius: float):
    if not (isinstance(radius, numbers.Real) and math.isfinite(radius) and radius > 0):
        raise InvalidRadiusError(radius)
    if positions.ndim != 2:
        raise ValueError(
            f"`positions` must have shape (n_samples, n_spatial_dims), but got {positions.shape=}."
        )
    if normals.shape != positions.shape:
        raise ValueError(
            f"`normals` must be index-aligned with `positions`, but got "
            f"{normals.shape=} != {positions.shape=}."
        )
    if not torch.is_floating_point(positions) or not torch.is_floating_point(normals):
        raise TypeError(
            f"`positions` and `normals` must be floating point, but got "
            f"{positions.dtype=} and {normals.dtype=}."
        )
    zero_normals = torch.nonzero(
        torch.linalg.vector_norm(normals, dim=-1) == 0
    ).flatten()
    if len(zero_normals) > 0:
        raise ValueError(
            f"Found {len(zero_normals)} zero-length normal(s), e.g. at indices "
            f"{zero_normals[:10].tolist()}."
        )


def estimate_curvatures(
    positions: torch.Tensor,
    normals: torch.Tensor,
    radius: float,
    kernel: "KernelKind | str | KernelProfile" = KernelKind.EXPONENTIAL,
    *,
    neighborhood: NeighborhoodBackend = "brute_force",
    chunk_size: int = 1024,
) -> torch.Tensor:
    """Estimate one raw curvature vector per sample.

    Args:
        positions: Sample positions, shape (n_samples, n_spatial_dims)
        normals: Sample normals, index-aligned with `positions`. Only neighbor
            normals enter the formula.
        radius: Ball radius R > 0, constant for the whole run
        kernel: Kernel kind, legacy code, or profile instance
        neighborhood: Ball query backend, "brute_force" or "bvh". Both give the
            same neighbor sets.
        chunk_size: Number of centers processed per vectorized step

    Returns:
        Tensor of shape (n_samples, n_spatial_dims), aligned with `positions`.

    Raises:
        InvalidRadiusError: If radius <= 0, before any computation.
        DegenerateNeighborhoodError: If no sample other than the center carries
            kernel weight in some sample's ball (radius below the local sample
            spacing). All offending samples are listed.
        DegenerateDisplacementError: If two distinct samples share a position.
            All offending pairs are listed.

    Example:
        >>> curvatures = estimate_curvatures(mesh.cell_centroids, mesh.cell_normals, 0.5, "cone")
    """
    _validate_inputs(positions, normals, radius)
    radius = float(radius)
    if chunk_size < 1:
        raise ValueError(f"{chunk_size=} must be >= 1.")

    profile = get_kernel_profile(kernel)
    n_samples, n_spatial_dims = positions.shape
    query = make_ball_query(positions, backend=neighborhood, chunk_size=chunk_size)

    numerator = torch.zeros_like(positions)
    denominator = torch.zeros(n_samples, dtype=positions.dtype, device=positions.device)
    # Weight carried by samples other than the center; zero means a lonely ball
    neighbor_weight = torch.zeros_like(denominator)
    coincident_pairs = []

    n_chunks = math.ceil(n_samples / chunk_size)
    for chunk_idx, start in enumerate(range(0, n_samples, chunk_size)):
        neighbors = query(positions[start : start + chunk_size], radius)
        centers = neighbors.source_indices() + start  # (n_pairs,)
        others = neighbors.indices  # (n_pairs,)

        ### Kernel weights of every (center, neighbor) pair in the ball
        displacements = positions[others] - positions[centers]
        distances = torch.linalg.vector_norm(displacements, dim=-1)
        weights, _ = evaluate_profile(profile, distances / radius)

        contributing = weights > 0
        centers = centers[contributing]
        others = others[contributing]
        displacements = displacements[contributing]
        distances = distances[contributing]
        weights = weights[contributing]

        denominator.index_add_(0, centers, weights)

        ### Projected unit displacements, excluding the center itself
        distinct = centers != others
        coincident = distinct & (distances == 0)
        if coincident.any():
            coincident_pairs.append(
                torch.stack([centers[coincident], others[coincident]], dim=-1)
            )
            distinct = distinct & ~coincident

        projected = project_orthogonal(displacements[distinct], normals[others[distinct]])
        contributions = (weights[distinct] / distances[distinct]).unsqueeze(-1) * projected
        numerator.index_add_(0, centers[distinct], contributions)
        neighbor_weight.index_add_(0, centers[distinct], weights[distinct])

        logger.debug(
            "Varifold curvatures: chunk %d/%d (%d neighbor pairs)",
            chunk_idx + 1,
            n_chunks,
            int(contributing.sum().item()),
        )

    if coincident_pairs:
        pairs = torch.cat(coincident_pairs)
        logger.warning("%d coincident sample pair(s) at radius %g", len(pairs), radius)
        raise DegenerateDisplacementError(pairs)

    # The center always weighs in, so the denominator alone never vanishes; a
    # ball holding no other sample would yield a spurious zero curvature instead
    degenerate = torch.nonzero((denominator <= 0) | (neighbor_weight <= 0)).flatten()
    if len(degenerate) > 0:
        logger.warning(
            "%d sample(s) with no weighted neighbor at radius %g",
            len(degenerate),
            radius,
        )
        raise DegenerateNeighborhoodError(degenerate, radius)

    return -numerator / (denominator.unsqueeze(-1) * radius)
