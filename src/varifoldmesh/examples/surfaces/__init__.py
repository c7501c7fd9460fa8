"""Closed and open triangulated surfaces in 3D space.

Each module exposes a `load(...)` function returning a Mesh with outward
(or +z) oriented cells.
"""

from varifoldmesh.examples.surfaces import plane_surface, sphere_surface, torus_surface

__all__ = [
    "plane_surface",
    "sphere_surface",
    "torus_surface",
]
