"""Point-based adjacency relationships in simplicial meshes.

- Point-to-cells adjacency (star of each vertex)
- Point-to-points adjacency (graph edges, i.e. the vertex one-ring)
"""

from itertools import combinations
from typing import TYPE_CHECKING

import torch

from varifoldmesh.neighbors._adjacency import Adjacency

if TYPE_CHECKING:
    from varifoldmesh.mesh import Mesh


def _empty_adjacency(n_sources: int, device: torch.device) -> Adjacency:
    return Adjacency(
        offsets=torch.zeros(n_sources + 1, dtype=torch.int64, device=device),
        indices=torch.zeros(0, dtype=torch.int64, device=device),
    )


def get_point_to_cells_adjacency(mesh: "Mesh") -> Adjacency:
    """Compute the star of each vertex (all cells containing each point).

    Args:
        mesh: Input simplicial mesh.

    Returns:
        Adjacency where adjacency.to_list()[i] contains the indices of all cells
        that contain point i, ascending. Isolated points have empty lists.

    Example:
        >>> points = torch.tensor([[0., 0., 0.], [1., 0., 0.], [0., 1., 0.], [1., 1., 0.]])
        >>> cells = torch.tensor([[0, 1, 2], [1, 3, 2]])
        >>> get_point_to_cells_adjacency(Mesh(points=points, cells=cells)).to_list()
        [[0], [0, 1], [0, 1], [1]]
    """
    if mesh.n_cells == 0 or mesh.n_points == 0:
        return _empty_adjacency(mesh.n_points, mesh.points.device)

    n_cells, n_vertices_per_cell = mesh.cells.shape

    ### One (point, cell) pair per cell vertex
    point_ids = mesh.cells.reshape(-1)
    cell_ids = torch.arange(
        n_cells, dtype=torch.int64, device=mesh.cells.device
    ).repeat_interleave(n_vertices_per_cell)

    return Adjacency.from_pairs(point_ids, cell_ids, n_sources=mesh.n_points)


def get_point_to_points_adjacency(mesh: "Mesh") -> Adjacency:
    """Compute point-to-point adjacency (graph edges of the mesh).

    In a simplicial mesh all vertices of a cell are pairwise connected, so two
    points are neighbors iff they share a cell.

    Args:
        mesh: Input simplicial mesh.

    Returns:
        Adjacency where adjacency.to_list()[i] contains all point indices that
        share an edge with point i, ascending. Isolated points have empty lists.

    Example:
        >>> points = torch.tensor([[0., 0., 0.], [1., 0., 0.], [0.5, 1., 0.]])
        >>> cells = torch.tensor([[0, 1, 2]])
        >>> get_point_to_points_adjacency(Mesh(points=points, cells=cells)).to_list()
        [[1, 2], [0, 2], [0, 1]]
    """
    if mesh.n_cells == 0 or mesh.n_points == 0:
        return _empty_adjacency(mesh.n_points, mesh.points.device)

    n_vertices_per_cell = mesh.cells.shape[1]
    if n_vertices_per_cell < 2:
        return _empty_adjacency(mesh.n_points, mesh.points.device)

    ### All vertex pairs of each cell, in canonical (sorted) order
    pair_indices = torch.tensor(
        list(combinations(range(n_vertices_per_cell), 2)),
        dtype=torch.int64,
        device=mesh.cells.device,
    )
    edges = torch.sort(mesh.cells[:, pair_indices], dim=-1)[0].reshape(-1, 2)
    unique_edges = torch.unique(edges, dim=0)

    ### Both directions of every edge
    sources = torch.cat([unique_edges[:, 0], unique_edges[:, 1]])
    targets = torch.cat([unique_edges[:, 1], unique_edges[:, 0]])

    return Adjacency.from_pairs(sources, targets, n_sources=mesh.n_points)
