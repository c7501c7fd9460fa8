"""Torus of revolution around the z axis.

Dimensional: 2D manifold in 3D space (closed, no boundary).
"""

import math

import torch

from varifoldmesh.mesh import Mesh


def load(
    major_radius: float = 3.0,
    minor_radius: float = 1.0,
    n_major: int = 40,
    n_minor: int = 20,
    device: str = "cpu",
) -> Mesh:
    """Create a triangulated torus.

    A point at angles (theta, phi) sits at
    ((R + r cos phi) cos theta, (R + r cos phi) sin theta, r sin phi).
    Mean curvature ranges over [(R - 2r) / (2r (R - r)), (R + 2r) / (2r (R + r))],
    i.e. [0.25, 0.625] for the defaults.

    Args:
        major_radius: Distance R from the axis to the tube center
        minor_radius: Tube radius r
        n_major: Number of samples around the axis
        n_minor: Number of samples around the tube
        device: Compute device ('cpu' or 'cuda')

    Returns:
        Mesh with n_manifold_dims=2, n_spatial_dims=3 and outward cell normals
    """
    if minor_radius >= major_radius:
        raise ValueError(
            f"A ring torus needs {minor_radius=} < {major_radius=}."
        )

    theta = torch.arange(n_major, device=device) * (2 * math.pi / n_major)
    phi = torch.arange(n_minor, device=device) * (2 * math.pi / n_minor)
    tt, pp = torch.meshgrid(theta, phi, indexing="ij")
    ring = major_radius + minor_radius * torch.cos(pp)
    points = torch.stack(
        [ring * torch.cos(tt), ring * torch.sin(tt), minor_radius * torch.sin(pp)],
        dim=-1,
    ).reshape(-1, 3)

    ### Quads (i, j) -> (i+1, j) -> (i+1, j+1) -> (i, j+1), split in two
    i, j = torch.meshgrid(
        torch.arange(n_major, device=device),
        torch.arange(n_minor, device=device),
        indexing="ij",
    )
    i_next = (i + 1) % n_major
    j_next = (j + 1) % n_minor
    a = (i * n_minor + j).flatten()
    b = (i_next * n_minor + j).flatten()
    c = (i_next * n_minor + j_next).flatten()
    d = (i * n_minor + j_next).flatten()
    cells = torch.cat(
        [torch.stack([a, b, c], dim=1), torch.stack([a, c, d], dim=1)], dim=0
    )

    return Mesh(points=points, cells=cells)
