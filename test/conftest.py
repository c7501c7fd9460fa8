"""Pytest configuration and shared fixtures for varifoldmesh tests.

Fixtures defined here are automatically available to all test files without
explicit imports.
"""

import pytest
import torch


### Pytest Hooks ###


def pytest_collection_modifyitems(config, items):
    """Skip tests marked with 'cuda' if CUDA is not available."""
    if torch.cuda.is_available():
        return

    skip_cuda = pytest.mark.skip(reason="CUDA not available")
    for item in items:
        if "cuda" in item.keywords:
            item.add_marker(skip_cuda)


### Sample Generators ###


def create_flat_samples(device: str = "cpu", dtype: torch.dtype = torch.float32):
    """Five coplanar samples: the origin and its four unit-axis neighbors in z = 0.

    Returns:
        (positions, normals), each of shape (5, 3), all normals (0, 0, 1)
    """
    positions = torch.tensor(
        [
            [0.0, 0.0, 0.0],
            [1.0, 0.0, 0.0],
            [0.0, 1.0, 0.0],
            [-1.0, 0.0, 0.0],
            [0.0, -1.0, 0.0],
        ],
        dtype=dtype,
        device=device,
    )
    normals = torch.tensor([0.0, 0.0, 1.0], dtype=dtype, device=device).expand(5, 3)
    return positions, normals.contiguous()


def create_random_cloud(
    n_points: int = 200,
    seed: int = 0,
    device: str = "cpu",
    dtype: torch.dtype = torch.float32,
) -> torch.Tensor:
    """Uniform random points in the unit cube, reproducible by seed."""
    generator = torch.Generator().manual_seed(seed)
    return torch.rand(n_points, 3, generator=generator, dtype=dtype).to(device)


def create_two_triangle_mesh(device: str = "cpu"):
    """Two triangles sharing the edge [1, 2] in the z = 0 plane."""
    from varifoldmesh.mesh import Mesh

    points = torch.tensor(
        [[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [1.0, 1.0, 0.0]],
        device=device,
    )
    cells = torch.tensor([[0, 1, 2], [1, 3, 2]], device=device, dtype=torch.int64)
    return Mesh(points=points, cells=cells)


### Pytest Fixtures ###


@pytest.fixture(
    params=[
        "cpu",
        pytest.param("cuda", marks=pytest.mark.cuda),
    ]
)
def device(request):
    """Parametrize tests over all available devices (CPU, CUDA).

    CUDA tests are automatically skipped if CUDA is not available via
    the pytest_collection_modifyitems hook.
    """
    return request.param


@pytest.fixture
def flat_samples(device):
    """Five coplanar samples with identical +z normals, on every device."""
    return create_flat_samples(device=device)


@pytest.fixture
def random_cloud(device):
    """200 reproducible random points in the unit cube, on every device."""
    return create_random_cloud(device=device)


@pytest.fixture
def two_triangle_mesh(device):
    """Two triangles sharing an edge, on every device."""
    return create_two_triangle_mesh(device=device)
