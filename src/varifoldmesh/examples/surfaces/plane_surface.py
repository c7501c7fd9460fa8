"""Flat square grid in the z = 0 plane.

Dimensional: 2D manifold in 3D space (with boundary).
"""

import torch

from varifoldmesh.mesh import Mesh


def load(
    size: float = 2.0,
    n_subdivisions: int = 4,
    device: str = "cpu",
) -> Mesh:
    """Create a triangulated square of side `size` centered at the origin.

    Args:
        size: Side length of the square
        n_subdivisions: The grid has 2**n_subdivisions + 1 points per side
        device: Compute device ('cpu' or 'cuda')

    Returns:
        Mesh with n_manifold_dims=2, n_spatial_dims=3 and +z cell normals
    """
    n = 2**n_subdivisions + 1

    x = torch.linspace(-size / 2, size / 2, n, device=device)
    y = torch.linspace(-size / 2, size / 2, n, device=device)
    xx, yy = torch.meshgrid(x, y, indexing="ij")
    points = torch.stack(
        [xx.flatten(), yy.flatten(), torch.zeros_like(xx.flatten())], dim=1
    )

    ### Two triangles per grid square, counterclockwise seen from +z
    i, j = torch.meshgrid(
        torch.arange(n - 1, device=device),
        torch.arange(n - 1, device=device),
        indexing="ij",
    )
    idx = (i * n + j).flatten()
    cells = torch.cat(
        [
            torch.stack([idx, idx + n, idx + 1], dim=1),
            torch.stack([idx + 1, idx + n, idx + n + 1], dim=1),
        ],
        dim=0,
    )

    return Mesh(points=points, cells=cells)
