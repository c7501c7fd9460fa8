"""Cell-based adjacency relationships in simplicial meshes.

Two simplices share a k-codimension facet iff they share at least
(n_vertices_per_cell - k) vertices, so every cell-to-cell relation here is
derived from one shared-vertex count per pair of cells.
"""

from typing import TYPE_CHECKING

import torch

from varifoldmesh.neighbors._adjacency import Adjacency
from varifoldmesh.neighbors._point_neighbors import get_point_to_cells_adjacency

if TYPE_CHECKING:
    from varifoldmesh.mesh import Mesh


def _expand_ranges(starts: torch.Tensor, counts: torch.Tensor) -> torch.Tensor:
    """Concatenate arange(start, start + count) for each (start, count) pair."""
    total = int(counts.sum().item())
    segment_starts = torch.cumsum(counts, dim=0) - counts
    return (
        torch.arange(total, dtype=torch.int64, device=starts.device)
        - segment_starts.repeat_interleave(counts)
        + starts.repeat_interleave(counts)
    )


def _shared_vertex_counts(
    mesh: "Mesh",
) -> tuple[torch.Tensor, torch.Tensor, torch.Tensor]:
    """Count shared vertices for every ordered pair of distinct cells that touch.

    Returns:
        sources, targets, shared_counts: each of shape (n_pairs,), sorted
        lexicographically by (source, target).
    """
    n_cells, n_vertices_per_cell = mesh.cells.shape
    device = mesh.cells.device
    star = get_point_to_cells_adjacency(mesh)

    ### For each (cell, vertex) entry, enumerate the cells in the vertex star
    cell_ids = torch.arange(n_cells, dtype=torch.int64, device=device)
    cell_ids = cell_ids.repeat_interleave(n_vertices_per_cell)
    vertex_ids = mesh.cells.reshape(-1)

    star_counts = star.counts[vertex_ids]
    sources = cell_ids.repeat_interleave(star_counts)
    targets = star.indices[_expand_ranges(star.offsets[vertex_ids], star_counts)]

    not_self = sources != targets
    sources = sources[not_self]
    targets = targets[not_self]

    ### Each shared vertex yields one duplicate of the (source, target) pair
    keys, shared_counts = torch.unique(
        sources * n_cells + targets, return_counts=True
    )
    return keys // n_cells, keys % n_cells, shared_counts


def get_cell_to_cells_adjacency(
    mesh: "Mesh",
    adjacency_codimension: int = 1,
) -> Adjacency:
    """Compute cell-to-cells adjacency based on shared facets.

    - codimension=1: cells share an (n-1)-facet (triangles sharing an edge)
    - codimension=n: cells share at least one vertex (the cell one-ring)

    Args:
        mesh: Input simplicial mesh.
        adjacency_codimension: Codimension of shared facets defining adjacency.

    Returns:
        Adjacency where adjacency.to_list()[i] contains all cell indices that
        share a k-codimension facet with cell i, ascending.

    Example:
        >>> points = torch.tensor([[0., 0., 0.], [1., 0., 0.], [0., 1., 0.], [1., 1., 0.]])
        >>> cells = torch.tensor([[0, 1, 2], [1, 3, 2]])
        >>> get_cell_to_cells_adjacency(Mesh(points=points, cells=cells)).to_list()
        [[1], [0]]
    """
    n_vertices_per_cell = mesh.cells.shape[1]
    n_shared_required = n_vertices_per_cell - adjacency_codimension
    if adjacency_codimension < 1 or n_shared_required < 1:
        raise ValueError(
            f"{adjacency_codimension=} must be in [1, {n_vertices_per_cell - 1}] "
            f"for cells with {n_vertices_per_cell=}."
        )

    if mesh.n_cells == 0:
        return Adjacency(
            offsets=torch.zeros(1, dtype=torch.int64, device=mesh.cells.device),
            indices=torch.zeros(0, dtype=torch.int64, device=mesh.cells.device),
        )

    sources, targets, shared_counts = _shared_vertex_counts(mesh)
    keep = shared_counts >= n_shared_required
    return Adjacency.from_pairs(sources[keep], targets[keep], n_sources=mesh.n_cells)


def get_cell_one_ring(mesh: "Mesh") -> tuple[Adjacency, torch.Tensor]:
    """Cells sharing at least one vertex with each cell, with inclusion weights.

    The inclusion weight of neighbor j in the ring of cell i is the fraction of
    j's vertices that are also vertices of i, so edge neighbors of a triangle
    weigh 2/3 and vertex neighbors 1/3.

    Returns:
        (adjacency, weights) where weights has shape (adjacency.n_total_neighbors,)
        and is aligned with adjacency.indices.
    """
    n_vertices_per_cell = mesh.cells.shape[1]
    if mesh.n_cells == 0:
        empty = torch.zeros(0, dtype=mesh.points.dtype, device=mesh.points.device)
        return get_cell_to_cells_adjacency(mesh, 1), empty

    sources, targets, shared_counts = _shared_vertex_counts(mesh)
    # Pairs are already sorted by (source, target), matching Adjacency.from_pairs
    adjacency = Adjacency.from_pairs(sources, targets, n_sources=mesh.n_cells)
    weights = shared_counts.to(mesh.points.dtype) / n_vertices_per_cell
    return adjacency, weights
