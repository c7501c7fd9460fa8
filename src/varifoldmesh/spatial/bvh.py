"""Bounding Volume Hierarchy (BVH) over point samples for ball queries.

The BVH is stored as flat tensors rather than a pointer-based tree, and is
traversed level-synchronously for all query centers at once. Each leaf holds a
single sample, so the leaf test is the exact strict distance test of the brute
force query, and both return identical neighbor sets.
"""

import torch
from tensordict import tensorclass

from varifoldmesh.neighbors._adjacency import Adjacency


@tensorclass
class BVH:
    """Bounding Volume Hierarchy for ball queries over a fixed point population.

    Attributes:
        node_aabb_min: Minimum corner of each node's axis-aligned bounding box,
            shape (n_nodes, n_spatial_dims)
        node_aabb_max: Maximum corner of each node's AABB,
            shape (n_nodes, n_spatial_dims)
        node_left_child: Index of the left child, shape (n_nodes,). -1 for leaves.
        node_right_child: Index of the right child, shape (n_nodes,). -1 for leaves.
        node_point_idx: Point index for leaf nodes, shape (n_nodes,). -1 for
            internal nodes.

    Example:
        >>> bvh = BVH.from_points(positions)
        >>> neighbors = bvh.query_ball(centers, radius=0.5)
    """

    node_aabb_min: torch.Tensor  # shape: (n_nodes, n_spatial_dims)
    node_aabb_max: torch.Tensor  # shape: (n_nodes, n_spatial_dims)
    node_left_child: torch.Tensor  # shape: (n_nodes,), dtype: int64
    node_right_child: torch.Tensor  # shape: (n_nodes,), dtype: int64
    node_point_idx: torch.Tensor  # shape: (n_nodes,), dtype: int64

    @property
    def n_nodes(self) -> int:
        """Number of nodes in the BVH."""
        return self.node_aabb_min.shape[0]

    @property
    def n_spatial_dims(self) -> int:
        """Dimensionality of the spatial space."""
        return self.node_aabb_min.shape[1]

    @property
    def device(self) -> torch.device:
        """Device where BVH tensors are stored."""
        return self.node_aabb_min.device

    @classmethod
    def from_points(cls, points: torch.Tensor) -> "BVH":
        """Construct a BVH from a point population.

        Nodes are split at the median along the axis of largest extent.

        Args:
            points: Sample positions, shape (n_points, n_spatial_dims)

        Returns:
            Constructed BVH ready for queries
        """
        if points.ndim != 2:
            raise ValueError(
                f"`points` must have shape (n_points, n_spatial_dims), but got {points.shape=}."
            )
        n_points, n_spatial_dims = points.shape
        device = points.device

        ### Worst case for a binary tree with one point per leaf: 2n - 1 nodes
        max_nodes = max(2 * n_points - 1, 0)
        node_aabb_min = torch.zeros(
            (max_nodes, n_spatial_dims), dtype=points.dtype, device=device
        )
        node_aabb_max = torch.zeros_like(node_aabb_min)
        node_left_child = torch.full((max_nodes,), -1, dtype=torch.long, device=device)
        node_right_child = torch.full((max_nodes,), -1, dtype=torch.long, device=device)
        node_point_idx = torch.full((max_nodes,), -1, dtype=torch.long, device=device)

        node_counter = [0]

        def build_node(indices: torch.Tensor) -> int:
            """Recursively build the subtree holding `indices`; return its node index."""
            node_idx = node_counter[0]
            node_counter[0] += 1

            subset = points[indices]
            node_aabb_min[node_idx] = subset.min(dim=0).values
            node_aabb_max[node_idx] = subset.max(dim=0).values

            if len(indices) == 1:
                node_point_idx[node_idx] = indices[0]
                return node_idx

            extent = node_aabb_max[node_idx] - node_aabb_min[node_idx]
            split_axis = extent.argmax().item()
            sorted_indices = indices[subset[:, split_axis].argsort(stable=True)]

            mid = len(sorted_indices) // 2
            node_left_child[node_idx] = build_node(sorted_indices[:mid])
            node_right_child[node_idx] = build_node(sorted_indices[mid:])
            return node_idx

        if n_points > 0:
            build_node(torch.arange(n_points, device=device))

        n_nodes_used = node_counter[0]
        return cls(
            node_aabb_min=node_aabb_min[:n_nodes_used],
            node_aabb_max=node_aabb_max[:n_nodes_used],
            node_left_child=node_left_child[:n_nodes_used],
            node_right_child=node_right_child[:n_nodes_used],
            node_point_idx=node_point_idx[:n_nodes_used],
            batch_size=torch.Size([n_nodes_used]),
        )

    def distance_to_aabb(
        self,
        centers: torch.Tensor,
        node_indices: torch.Tensor,
    ) -> torch.Tensor:
        """Euclidean distance from each center to the AABB of its paired node.

        Zero when the center lies inside the box. For a leaf, whose box is a
        single point, this is exactly the distance to that point.

        Args:
            centers: Query centers, shape (n_pairs, n_spatial_dims)
            node_indices: Node paired with each center, shape (n_pairs,)

        Returns:
            Distances of shape (n_pairs,)
        """
        closest = torch.clamp(
            centers,
            min=self.node_aabb_min[node_indices],
            max=self.node_aabb_max[node_indices],
        )
        return torch.linalg.vector_norm(closest - centers, dim=-1)

    def query_ball(self, centers: torch.Tensor, radius: float) -> Adjacency:
        """Find all points strictly closer than `radius` to each center.

        All centers are traversed together: the frontier is a list of
        (center, node) pairs, pruned whenever the node's box lies at distance
        >= radius from the center.

        Args:
            centers: Query centers, shape (n_centers, n_spatial_dims)
            radius: Ball radius

        Returns:
            Adjacency where adjacency.to_list()[i] lists, ascending, the indices of
            all points p with ||p - centers[i]|| < radius.
        """
        n_centers = centers.shape[0]
        empty = torch.zeros(0, dtype=torch.long, device=self.device)
        if self.n_nodes == 0 or n_centers == 0:
            return Adjacency.from_pairs(empty, empty, n_sources=n_centers)

        frontier_centers = torch.arange(n_centers, dtype=torch.long, device=self.device)
        frontier_nodes = torch.zeros(n_centers, dtype=torch.long, device=self.device)

        hit_centers = []
        hit_points = []
        while len(frontier_nodes) > 0:
            ### Prune subtrees whose bounding box is out of reach
            distances = self.distance_to_aabb(centers[frontier_centers], frontier_nodes)
            reachable = distances < radius
            frontier_centers = frontier_centers[reachable]
            frontier_nodes = frontier_nodes[reachable]

            ### Leaves are hits, internal nodes expand to both children
            point_idx = self.node_point_idx[frontier_nodes]
            is_leaf = point_idx >= 0
            hit_centers.append(frontier_centers[is_leaf])
            hit_points.append(point_idx[is_leaf])

            internal_centers = frontier_centers[~is_leaf]
            internal_nodes = frontier_nodes[~is_leaf]
            frontier_centers = torch.cat([internal_centers, internal_centers])
            frontier_nodes = torch.cat(
                [
                    self.node_left_child[internal_nodes],
                    self.node_right_child[internal_nodes],
                ]
            )

        return Adjacency.from_pairs(
            torch.cat(hit_centers), torch.cat(hit_points), n_sources=n_centers
        )
