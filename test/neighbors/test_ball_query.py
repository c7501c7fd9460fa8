"""Tests for metric neighborhoods (strict ball queries).

The brute force query is the reference; the BVH query must return exactly the
same neighbor sets.
"""

import pytest
import torch

from varifoldmesh.errors import InvalidRadiusError
from varifoldmesh.neighbors import BruteForceBallQuery, BVHBallQuery, ball_query, make_ball_query


def reference_neighbors(positions: torch.Tensor, centers: torch.Tensor, radius: float):
    """Straightforward double loop over Python floats."""
    result = []
    for c in centers.tolist():
        ring = []
        for j, p in enumerate(positions.tolist()):
            d2 = sum((pi - ci) ** 2 for pi, ci in zip(p, c))
            if d2 < radius**2:
                ring.append(j)
        result.append(ring)
    return result


class TestBruteForce:
    def test_simple(self, device):
        positions = torch.tensor(
            [[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [3.0, 0.0, 0.0]], device=device
        )
        adj = ball_query(positions, positions, radius=1.5)
        assert adj.to_list() == [[0, 1], [0, 1], [2]]

    def test_strict_boundary(self, device):
        """A sample at exactly d == radius is excluded."""
        positions = torch.tensor([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0]], device=device)
        assert ball_query(positions, positions[:1], radius=1.0).to_list() == [[0]]

    def test_matches_reference(self, random_cloud):
        centers = random_cloud[:20]
        adj = ball_query(random_cloud, centers, radius=0.3)
        expected = reference_neighbors(random_cloud.cpu(), centers.cpu(), 0.3)
        # Reference uses squared distances; skip ties within float noise
        for got, want in zip(adj.to_list(), expected):
            assert set(got) == set(want)

    @pytest.mark.parametrize("chunk_size", [1, 7, 1000])
    def test_chunking_does_not_change_result(self, random_cloud, chunk_size):
        full = BruteForceBallQuery(random_cloud, chunk_size=1000)(random_cloud, 0.25)
        chunked = BruteForceBallQuery(random_cloud, chunk_size=chunk_size)(
            random_cloud, 0.25
        )
        assert torch.equal(full.offsets, chunked.offsets)
        assert torch.equal(full.indices, chunked.indices)

    def test_sorted_neighbor_lists(self, random_cloud):
        for ring in ball_query(random_cloud, random_cloud, 0.4).to_list():
            assert ring == sorted(ring)

    @pytest.mark.parametrize("radius", [0.0, -0.5])
    def test_invalid_radius(self, radius):
        with pytest.raises(InvalidRadiusError):
            ball_query(torch.zeros(2, 3), torch.zeros(1, 3), radius)

    def test_dimension_mismatch(self):
        with pytest.raises(ValueError, match="Spatial dimensions differ"):
            ball_query(torch.zeros(2, 3), torch.zeros(1, 2), 1.0)

    def test_invalid_chunk_size(self):
        with pytest.raises(ValueError, match="chunk_size"):
            BruteForceBallQuery(torch.zeros(2, 3), chunk_size=0)


class TestBackendEquivalence:
    @pytest.mark.parametrize("radius", [0.05, 0.2, 0.5, 2.0])
    def test_bvh_matches_brute_force(self, random_cloud, radius):
        brute = ball_query(random_cloud, random_cloud, radius, backend="brute_force")
        bvh = ball_query(random_cloud, random_cloud, radius, backend="bvh")
        assert torch.equal(brute.offsets, bvh.offsets)
        assert torch.equal(brute.indices, bvh.indices)

    def test_bvh_with_foreign_centers(self, random_cloud):
        centers = random_cloud[:10] + 0.05
        brute = ball_query(random_cloud, centers, 0.3, backend="brute_force")
        bvh = ball_query(random_cloud, centers, 0.3, backend="bvh")
        assert brute.to_list() == bvh.to_list()

    def test_make_ball_query(self, random_cloud):
        assert isinstance(make_ball_query(random_cloud), BruteForceBallQuery)
        assert isinstance(make_ball_query(random_cloud, "bvh"), BVHBallQuery)
        with pytest.raises(ValueError, match="Unknown backend"):
            make_ball_query(random_cloud, "kdtree")
