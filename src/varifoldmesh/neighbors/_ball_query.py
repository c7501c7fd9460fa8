"""Metric neighborhoods: all samples strictly inside a ball around each center.

The brute force query is the reference semantics. The BVH query is a drop-in
substitute returning the same neighbor sets; ties at exactly d == radius are
excluded by both.
"""

import math
from typing import Literal

import torch

from varifoldmesh.errors import InvalidRadiusError
from varifoldmesh.neighbors._adjacency import Adjacency

NeighborhoodBackend = Literal["brute_force", "bvh"]


def _validate_query(positions: torch.Tensor, centers: torch.Tensor, radius: float):
    if not (math.isfinite(radius) and radius > 0):
        raise InvalidRadiusError(radius)
    if positions.ndim != 2 or centers.ndim != 2:
        raise ValueError(
            f"`positions` and `centers` must be 2D, but got {positions.shape=} and {centers.shape=}."
        )
    if positions.shape[1] != centers.shape[1]:
        raise ValueError(
            f"Spatial dimensions differ: {positions.shape[1]=} != {centers.shape[1]=}."
        )


class BruteForceBallQuery:
    """Exhaustive ball query, O(n_centers * n_positions).

    Centers are processed in chunks so that at most chunk_size * n_positions
    distances are materialized at once.
    """

    def __init__(self, positions: torch.Tensor, chunk_size: int = 1024):
        if chunk_size < 1:
            raise ValueError(f"{chunk_size=} must be >= 1.")
        self.positions = positions
        self.chunk_size = chunk_size

    def __call__(self, centers: torch.Tensor, radius: float) -> Adjacency:
        _validate_query(self.positions, centers, radius)

        sources = []
        targets = []
        for start in range(0, len(centers), self.chunk_size):
            chunk = centers[start : start + self.chunk_size]
            distances = torch.linalg.vector_norm(
                self.positions.unsqueeze(0) - chunk.unsqueeze(1), dim=-1
            )  # (n_chunk, n_positions)
            center_idx, position_idx = torch.nonzero(distances < radius, as_tuple=True)
            sources.append(center_idx + start)
            targets.append(position_idx)

        if not sources:
            empty = torch.zeros(0, dtype=torch.int64, device=self.positions.device)
            return Adjacency.from_pairs(empty, empty, n_sources=len(centers))
        return Adjacency.from_pairs(
            torch.cat(sources), torch.cat(targets), n_sources=len(centers)
        )


class BVHBallQuery:
    """Ball query backed by a bounding volume hierarchy over the positions."""

    def __init__(self, positions: torch.Tensor):
        from varifoldmesh.spatial import BVH

        self.positions = positions
        self.bvh = BVH.from_points(positions)

    def __call__(self, centers: torch.Tensor, radius: float) -> Adjacency:
        _validate_query(self.positions, centers, radius)
        return self.bvh.query_ball(centers, radius)


def make_ball_query(
    positions: torch.Tensor,
    backend: NeighborhoodBackend = "brute_force",
    chunk_size: int = 1024,
) -> "BruteForceBallQuery | BVHBallQuery":
    """Build a reusable ball query over `positions` with the given backend."""
    if backend == "brute_force":
        return BruteForceBallQuery(positions, chunk_size=chunk_size)
    if backend == "bvh":
        return BVHBallQuery(positions)
    raise ValueError(f"Unknown {backend=}. Valid backends are: 'brute_force', 'bvh'.")


def ball_query(
    positions: torch.Tensor,
    centers: torch.Tensor,
    radius: float,
    backend: NeighborhoodBackend = "brute_force",
) -> Adjacency:
    """Find all positions strictly within `radius` of each center.

    Args:
        positions: Sample positions, shape (n_positions, n_spatial_dims)
        centers: Query centers, shape (n_centers, n_spatial_dims)
        radius: Ball radius, > 0
        backend: "brute_force" (reference) or "bvh"

    Returns:
        Adjacency where adjacency.to_list()[i] lists, ascending, every j with
        ||positions[j] - centers[i]|| < radius.

    Raises:
        InvalidRadiusError: If radius <= 0.

    Example:
        >>> positions = torch.tensor([[0., 0., 0.], [1., 0., 0.], [3., 0., 0.]])
        >>> ball_query(positions, positions[:1], radius=1.5).to_list()
        [[0, 1]]
    """
    return make_ball_query(positions, backend)(centers, radius)
