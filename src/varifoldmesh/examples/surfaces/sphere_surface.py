"""Icosphere: a subdivided icosahedron projected onto a sphere.

Dimensional: 2D manifold in 3D space (closed, no boundary).
"""

import math

import torch
import torch.nn.functional as F

from varifoldmesh.mesh import Mesh

_PHI = (1.0 + math.sqrt(5.0)) / 2.0

_ICOSAHEDRON_VERTICES = [
    [-1.0, _PHI, 0.0],
    [1.0, _PHI, 0.0],
    [-1.0, -_PHI, 0.0],
    [1.0, -_PHI, 0.0],
    [0.0, -1.0, _PHI],
    [0.0, 1.0, _PHI],
    [0.0, -1.0, -_PHI],
    [0.0, 1.0, -_PHI],
    [_PHI, 0.0, -1.0],
    [_PHI, 0.0, 1.0],
    [-_PHI, 0.0, -1.0],
    [-_PHI, 0.0, 1.0],
]

# Counterclockwise seen from outside
_ICOSAHEDRON_FACES = [
    [0, 11, 5], [0, 5, 1], [0, 1, 7], [0, 7, 10], [0, 10, 11],
    [1, 5, 9], [5, 11, 4], [11, 10, 2], [10, 7, 6], [7, 1, 8],
    [3, 9, 4], [3, 4, 2], [3, 2, 6], [3, 6, 8], [3, 8, 9],
    [4, 9, 5], [2, 4, 11], [6, 2, 10], [8, 6, 7], [9, 8, 1],
]  # fmt: skip


def subdivide_midpoints(points: torch.Tensor, cells: torch.Tensor):
    """Split every triangle into four through its edge midpoints.

    Shared edges get a single midpoint. Cell orientation is preserved.

    Returns:
        (points, cells) of the refined triangulation
    """
    n_points = points.shape[0]

    ### One midpoint per unique undirected edge
    edge_pattern = torch.tensor([[0, 1], [1, 2], [2, 0]], device=cells.device)
    edges = cells[:, edge_pattern]  # (n_cells, 3, 2)
    unique_edges, inverse = torch.unique(
        torch.sort(edges, dim=-1)[0].reshape(-1, 2), dim=0, return_inverse=True
    )
    midpoints = points[unique_edges].mean(dim=1)
    mid = (inverse + n_points).reshape(-1, 3)  # midpoints of edges ab, bc, ca

    a, b, c = cells[:, 0], cells[:, 1], cells[:, 2]
    ab, bc, ca = mid[:, 0], mid[:, 1], mid[:, 2]
    new_cells = torch.cat(
        [
            torch.stack([a, ab, ca], dim=1),
            torch.stack([ab, b, bc], dim=1),
            torch.stack([ca, bc, c], dim=1),
            torch.stack([ab, bc, ca], dim=1),
        ],
        dim=0,
    )
    return torch.cat([points, midpoints], dim=0), new_cells


def load(
    radius: float = 1.0,
    subdivisions: int = 3,
    device: str = "cpu",
    dtype: torch.dtype = torch.float32,
) -> Mesh:
    """Create an icosphere of the given radius centered at the origin.

    Every vertex lies exactly on the sphere, so the exact unit normal at a
    vertex is its position divided by `radius`.

    Args:
        radius: Sphere radius
        subdivisions: Number of midpoint subdivision levels (0 = icosahedron).
            Level k has 10 * 4**k + 2 vertices and 20 * 4**k faces.
        device: Compute device ('cpu' or 'cuda')
        dtype: Floating point dtype of the points

    Returns:
        Mesh with n_manifold_dims=2, n_spatial_dims=3 and outward cell normals
    """
    points = torch.tensor(_ICOSAHEDRON_VERTICES, dtype=dtype, device=device)
    cells = torch.tensor(_ICOSAHEDRON_FACES, dtype=torch.int64, device=device)

    for _ in range(subdivisions):
        points, cells = subdivide_midpoints(points, cells)
        points = F.normalize(points, dim=-1)

    points = F.normalize(points, dim=-1) * radius
    return Mesh(points=points, cells=cells)
