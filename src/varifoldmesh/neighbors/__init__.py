"""Neighbor and adjacency computation for point samples and simplicial meshes.

Topological neighborhoods (stars, one-rings, shared-facet adjacency) and metric
neighborhoods (ball queries) are both returned as Adjacency tensorclass objects
using offset-indices encoding.
"""

from varifoldmesh.neighbors._adjacency import Adjacency
from varifoldmesh.neighbors._ball_query import (
    BruteForceBallQuery,
    BVHBallQuery,
    ball_query,
    make_ball_query,
)
from varifoldmesh.neighbors._cell_neighbors import (
    get_cell_one_ring,
    get_cell_to_cells_adjacency,
)
from varifoldmesh.neighbors._point_neighbors import (
    get_point_to_cells_adjacency,
    get_point_to_points_adjacency,
)

__all__ = [
    "Adjacency",
    "BruteForceBallQuery",
    "BVHBallQuery",
    "ball_query",
    "make_ball_query",
    "get_cell_one_ring",
    "get_cell_to_cells_adjacency",
    "get_point_to_cells_adjacency",
    "get_point_to_points_adjacency",
]
