"""Tests for the varifold curvature estimator.

Covers the closed-form flat configuration, convergence on spheres, rigid
motion and scale behavior, backend equivalence, and the error contract.
"""

import math

import numpy as np
import pytest
import torch

from varifoldmesh.curvature import estimate_curvatures, project_orthogonal
from varifoldmesh.errors import (
    DegenerateDisplacementError,
    DegenerateNeighborhoodError,
    InvalidRadiusError,
)
from varifoldmesh.examples.surfaces import plane_surface, sphere_surface
from varifoldmesh.kernels import KernelKind, get_kernel_profile
from varifoldmesh.mesh import rotation_matrix


def radial_moment(kind: KernelKind, n: int = 20001) -> float:
    """Ratio int w(t) t^2 dt / int w(t) t dt over [0, 1).

    On a sphere of radius rho sampled uniformly, rho * |curvature| tends to
    this value as the sampling densifies and R / rho shrinks.
    """
    t = torch.linspace(0.0, 1.0, n, dtype=torch.float64)[:-1]
    w = get_kernel_profile(kind).weight(t)
    return (torch.trapezoid(w * t * t, t) / torch.trapezoid(w * t, t)).item()


class TestProjection:
    def test_removes_normal_component(self):
        v = torch.tensor([[1.0, 2.0, 3.0]])
        n = torch.tensor([[0.0, 0.0, 2.0]])
        torch.testing.assert_close(project_orthogonal(v, n), torch.tensor([[1.0, 2.0, 0.0]]))

    def test_result_orthogonal(self, random_cloud):
        normals = torch.randn_like(random_cloud)
        projected = project_orthogonal(random_cloud, normals)
        dots = (projected * normals).sum(dim=-1)
        assert torch.allclose(dots, torch.zeros_like(dots), atol=1e-5)


class TestFlatConfiguration:
    def test_center_sample_vanishes(self, flat_samples):
        positions, normals = flat_samples
        curvatures = estimate_curvatures(positions, normals, 1.5, KernelKind.FLAT_DISC)
        assert curvatures.shape == (5, 3)
        assert torch.equal(curvatures[0], torch.zeros(3, device=positions.device))

    def test_no_out_of_plane_component(self, flat_samples):
        positions, normals = flat_samples
        curvatures = estimate_curvatures(positions, normals, 1.5, KernelKind.FLAT_DISC)
        assert torch.all(curvatures[:, 2] == 0)

    def test_boundary_sample_closed_form(self, flat_samples):
        """(1, 0, 0) sees the origin and both diagonal neighbors, not (-1, 0, 0)."""
        positions, normals = flat_samples
        curvatures = estimate_curvatures(positions, normals, 1.5, KernelKind.FLAT_DISC)
        expected = torch.tensor([(1 + math.sqrt(2)) / 6, 0.0, 0.0], device=positions.device)
        torch.testing.assert_close(curvatures[1], expected)

    @pytest.mark.parametrize("kind", list(KernelKind))
    def test_plane_interior(self, device, kind):
        """Interior grid vertices of a plane get zero curvature for every kernel."""
        mesh = plane_surface.load(size=2.0, n_subdivisions=4, device=device)
        normals = torch.zeros_like(mesh.points)
        normals[:, 2] = 1.0
        curvatures = estimate_curvatures(mesh.points, normals, 0.3, kind)
        interior = torch.all(mesh.points[:, :2].abs() < 0.6, dim=-1)
        assert torch.allclose(
            curvatures[interior], torch.zeros_like(curvatures[interior]), atol=1e-4
        )


class TestSphereConvergence:
    @pytest.mark.parametrize(
        "kind",
        [KernelKind.FLAT_DISC, KernelKind.CONE, KernelKind.HALF_SPHERE, KernelKind.EXPONENTIAL],
    )
    def test_scaled_magnitude(self, kind):
        rho = 1.0
        mesh = sphere_surface.load(radius=rho, subdivisions=4, dtype=torch.float64)
        positions = mesh.points
        normals = positions / rho

        curvatures = estimate_curvatures(positions, normals, 0.3, kind)
        scaled = rho * torch.linalg.vector_norm(curvatures, dim=-1)

        expected = radial_moment(kind)
        assert abs(scaled.median().item() - expected) < 0.1 * expected
        assert torch.all((scaled - expected).abs() < 0.3 * expected)

    def test_direction_along_normal(self):
        mesh = sphere_surface.load(radius=2.0, subdivisions=4, dtype=torch.float64)
        normals = mesh.points / 2.0
        # Small balls see the uneven icosphere density as a tangential bias
        curvatures = estimate_curvatures(mesh.points, normals, 1.2, KernelKind.CONE)
        cosines = torch.nn.functional.cosine_similarity(curvatures, normals, dim=-1)
        assert torch.all(cosines > 0.95)

    @pytest.mark.slow
    def test_error_shrinks_with_density(self):
        """At fixed R, the median of rho * |c| approaches the kernel constant as the sphere is refined."""
        rho = 2.0
        expected = radial_moment(KernelKind.CONE)
        errors = []
        for subdivisions in (3, 4, 5):
            mesh = sphere_surface.load(radius=rho, subdivisions=subdivisions, dtype=torch.float64)
            curvatures = estimate_curvatures(
                mesh.points, mesh.points / rho, 0.6, KernelKind.CONE, chunk_size=256
            )
            scaled = rho * torch.linalg.vector_norm(curvatures, dim=-1)
            errors.append(abs(scaled.median().item() - expected))
        assert errors[0] > errors[1] > errors[2]
        assert errors[2] < 0.01 * expected

    def test_radius_of_sphere(self):
        """Doubling the sphere radius halves the curvature."""
        small = sphere_surface.load(radius=1.0, subdivisions=4, dtype=torch.float64)
        large = sphere_surface.load(radius=2.0, subdivisions=4, dtype=torch.float64)
        c_small = estimate_curvatures(small.points, small.points, 0.3, "cone")
        c_large = estimate_curvatures(large.points, large.points / 2.0, 0.6, "cone")
        torch.testing.assert_close(c_large, c_small / 2.0)


class TestInvariance:
    def test_rigid_motion(self, device):
        generator = torch.Generator().manual_seed(1)
        positions = torch.rand(150, 3, generator=generator, dtype=torch.float64).to(device)
        normals = torch.randn(150, 3, generator=generator, dtype=torch.float64).to(device)

        matrix = rotation_matrix([1.0, 2.0, -0.5], 0.7, dtype=torch.float64).to(device)
        offset = torch.tensor([3.0, -1.0, 0.5], dtype=torch.float64, device=device)

        original = estimate_curvatures(positions, normals, 0.45)
        moved = estimate_curvatures(positions @ matrix.T + offset, normals @ matrix.T, 0.45)
        torch.testing.assert_close(moved, original @ matrix.T)

    def test_scaling(self, random_cloud):
        """Scaling geometry and radius by s scales curvature by 1 / s."""
        positions = random_cloud.double()
        normals = torch.ones_like(positions)
        original = estimate_curvatures(positions, normals, 0.4, "half_sphere")
        scaled = estimate_curvatures(3.0 * positions, normals, 1.2, "half_sphere")
        torch.testing.assert_close(scaled, original / 3.0)

    def test_normal_length_irrelevant(self, random_cloud):
        normals = torch.randn_like(random_cloud)
        unit = estimate_curvatures(random_cloud, normals, 0.4)
        stretched = estimate_curvatures(random_cloud, 5.0 * normals, 0.4)
        torch.testing.assert_close(unit, stretched)


class TestBackends:
    @pytest.mark.parametrize("chunk_size", [1, 33, 1024])
    def test_bvh_matches_brute_force(self, random_cloud, chunk_size):
        normals = torch.randn_like(random_cloud)
        brute = estimate_curvatures(random_cloud, normals, 0.35, "cone", chunk_size=chunk_size)
        bvh = estimate_curvatures(
            random_cloud, normals, 0.35, "cone", neighborhood="bvh", chunk_size=chunk_size
        )
        torch.testing.assert_close(brute, bvh)

    def test_output_on_input_device(self, random_cloud, device):
        curvatures = estimate_curvatures(random_cloud, torch.ones_like(random_cloud), 0.4)
        assert curvatures.device.type == device


class TestErrors:
    @pytest.mark.parametrize("radius", [0.0, -1.0, math.nan, math.inf])
    def test_invalid_radius(self, flat_samples, radius):
        positions, normals = flat_samples
        with pytest.raises(InvalidRadiusError):
            estimate_curvatures(positions, normals, radius)

    @pytest.mark.parametrize("radius", [np.float32(1.5), np.int64(2)])
    def test_numpy_scalar_radius(self, flat_samples, radius):
        positions, normals = flat_samples
        expected = estimate_curvatures(positions, normals, float(radius), KernelKind.FLAT_DISC)
        curvatures = estimate_curvatures(positions, normals, radius, KernelKind.FLAT_DISC)
        torch.testing.assert_close(curvatures, expected)

    def test_degenerate_neighborhood(self, device):
        positions = torch.tensor([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0]], device=device)
        normals = torch.tensor([[0.0, 0.0, 1.0]], device=device).expand(2, 3)
        with pytest.raises(DegenerateNeighborhoodError) as excinfo:
            estimate_curvatures(positions, normals, 0.5)
        assert excinfo.value.indices.tolist() == [0, 1]

    def test_degenerate_neighborhood_is_logged(self, caplog):
        positions = torch.tensor([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0]])
        normals = torch.tensor([[0.0, 0.0, 1.0]]).expand(2, 3)
        with caplog.at_level("WARNING", logger="varifoldmesh"):
            with pytest.raises(DegenerateNeighborhoodError):
                estimate_curvatures(positions, normals, 0.5)
        assert "no weighted neighbor" in caplog.text

    def test_coincident_samples(self, device):
        positions = torch.tensor(
            [[0.0, 0.0, 0.0], [0.0, 0.0, 0.0], [1.0, 0.0, 0.0]], device=device
        )
        normals = torch.tensor([[0.0, 0.0, 1.0]], device=device).expand(3, 3)
        with pytest.raises(DegenerateDisplacementError) as excinfo:
            estimate_curvatures(positions, normals, 2.0)
        pairs = {tuple(p) for p in excinfo.value.pairs.tolist()}
        assert pairs == {(0, 1), (1, 0)}

    def test_zero_normal(self, flat_samples):
        positions, normals = flat_samples
        normals = normals.clone()
        normals[2] = 0.0
        with pytest.raises(ValueError, match="zero-length normal"):
            estimate_curvatures(positions, normals, 1.5)

    def test_misaligned_normals(self, flat_samples):
        positions, normals = flat_samples
        with pytest.raises(ValueError, match="index-aligned"):
            estimate_curvatures(positions, normals[:3], 1.5)

    def test_integer_positions(self):
        with pytest.raises(TypeError, match="floating point"):
            estimate_curvatures(torch.zeros(3, 3, dtype=torch.long), torch.ones(3, 3), 1.0)
