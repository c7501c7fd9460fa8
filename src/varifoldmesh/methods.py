"""Sampling methods and the end-to-end varifold pipeline.

A sampling method decides which mesh elements are the samples and where their
positions and normals come from. All methods share the same estimator and sign
corrector; only the input arrays differ:

- tnfc (trivial normal, face centroid): faces, centroids, face normals from positions
- dnfc (dual normal, face centroid): vertices, vertex positions, uniform
  averages of incident face normals
- cnfc (corrected normal, face centroid): faces, centroids, an externally
  supplied per-face normal field

Methods are strategy objects registered by `Method`; adding one is a matter of
subclassing `SamplingMethod` and calling `register_sampling_method`.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

import torch
from tensordict import tensorclass

from varifoldmesh.neighbors import Adjacency

if TYPE_CHECKING:
    from varifoldmesh.config import VarifoldConfig
    from varifoldmesh.mesh import Mesh

logger = logging.getLogger(__name__)


class Method(str, Enum):
    """Sampling method feeding the curvature estimator."""

    TRIVIAL_NORMAL_FACE_CENTROID = "tnfc"
    DUAL_NORMAL_FACE_CENTROID = "dnfc"
    CORRECTED_NORMAL_FACE_CENTROID = "cnfc"

    @classmethod
    def parse(cls, value: "Method | str") -> "Method":
        """Parse a method from a member, its short code, or its name.

        Raises:
            ValueError: If the value names no known method.
        """
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        for member in cls:
            if key in (member.value, member.name.lower()):
                return member
        raise ValueError(
            f"Unknown method {value=}. Valid methods are: {[m.value for m in cls]}."
        )


@dataclass(frozen=True)
class SampleSet:
    """Index-aligned sample population of one method run.

    Attributes:
        positions: Shape (n_samples, n_spatial_dims)
        normals: Shape (n_samples, n_spatial_dims)
        one_ring: Topological neighbors of each sample, for sign correction
        inclusion_weights: Weight of each one-ring entry, aligned with
            one_ring.indices, or None for uniform weights
    """

    positions: torch.Tensor
    normals: torch.Tensor
    one_ring: Adjacency
    inclusion_weights: torch.Tensor | None = None

    @property
    def n_samples(self) -> int:
        return self.positions.shape[0]


class SamplingMethod:
    """Chooses the sample population of a mesh for one `Method`."""

    method: Method

    def samples(
        self,
        mesh: "Mesh",
        face_normals: torch.Tensor | None = None,
    ) -> SampleSet:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class TrivialNormalFaceCentroid(SamplingMethod):
    """Face centroids with face normals computed from vertex positions."""

    method = Method.TRIVIAL_NORMAL_FACE_CENTROID

    def samples(self, mesh, face_normals=None):
        one_ring, weights = mesh.get_cell_one_ring()
        return SampleSet(mesh.cell_centroids, mesh.cell_normals, one_ring, weights)


class DualNormalFaceCentroid(SamplingMethod):
    """Mesh vertices with normals averaged from their incident faces."""

    method = Method.DUAL_NORMAL_FACE_CENTROID

    def samples(self, mesh, face_normals=None):
        return SampleSet(
            mesh.points, mesh.point_normals, mesh.get_point_to_points_adjacency()
        )


class CorrectedNormalFaceCentroid(SamplingMethod):
    """Face centroids with an externally estimated per-face normal field."""

    method = Method.CORRECTED_NORMAL_FACE_CENTROID

    def samples(self, mesh, face_normals=None):
        if face_normals is None:
            raise ValueError(
                f"{self.method.value!r} requires externally supplied `face_normals`."
            )
        expected_shape = (mesh.n_cells, mesh.n_spatial_dims)
        if tuple(face_normals.shape) != expected_shape:
            raise ValueError(
                f"`face_normals` must have shape {expected_shape}, but got {face_normals.shape=}."
            )
        one_ring, weights = mesh.get_cell_one_ring()
        face_normals = face_normals.to(
            dtype=mesh.points.dtype, device=mesh.points.device
        )
        return SampleSet(mesh.cell_centroids, face_normals, one_ring, weights)


_METHODS: dict[Method, SamplingMethod] = {}


def register_sampling_method(sampling_method: SamplingMethod) -> None:
    """Register a sampling method under its `method`, replacing any previous one."""
    _METHODS[sampling_method.method] = sampling_method


for _sampling_method in (
    TrivialNormalFaceCentroid(),
    DualNormalFaceCentroid(),
    CorrectedNormalFaceCentroid(),
):
    register_sampling_method(_sampling_method)


def get_sampling_method(method: "Method | str") -> SamplingMethod:
    return _METHODS[Method.parse(method)]


@tensorclass
class Varifolds:
    """Per-sample varifold records: position, normal and curvature.

    All fields are index-aligned with the sample population of the method that
    produced them (faces for tnfc/cnfc, vertices for dnfc).
    """

    positions: torch.Tensor  # shape: (n_samples, n_spatial_dims)
    normals: torch.Tensor  # shape: (n_samples, n_spatial_dims)
    curvatures: torch.Tensor  # shape: (n_samples, n_spatial_dims), raw vectors
    signed_curvatures: torch.Tensor  # shape: (n_samples,)

    @property
    def n_samples(self) -> int:
        return self.positions.shape[0]

    @property
    def curvature_norms(self) -> torch.Tensor:
        """Unsigned magnitude of each raw curvature vector."""
        return torch.linalg.vector_norm(self.curvatures, dim=-1)

    def to_plain_dict(self) -> dict[str, torch.Tensor]:
        """Plain tensors, for reporting and visualization layers."""
        return {
            "positions": self.positions,
            "normals": self.normals,
            "curvatures": self.curvatures,
            "signed_curvatures": self.signed_curvatures,
        }


def compute_varifolds(
    mesh: "Mesh",
    config: "VarifoldConfig",
    face_normals: torch.Tensor | None = None,
) -> Varifolds:
    """Run the whole pipeline for one method: samples, curvatures, signs.

    Args:
        mesh: Codimension-1 simplicial mesh
        config: Radius, kernel, method and backend of the run
        face_normals: Per-face normals, shape (n_cells, n_spatial_dims). Required
            by the corrected-normal method, ignored by the others.

    Returns:
        Varifolds aligned with the method's sample population.

    Example:
        >>> config = VarifoldConfig(radius=0.5, kernel="cone", method="tnfc")
        >>> varifolds = compute_varifolds(mesh, config)
        >>> varifolds.signed_curvatures.shape
        torch.Size([mesh.n_cells])
    """
    from varifoldmesh.curvature import (
        correct_signs,
        estimate_curvatures,
        naive_signed_curvatures,
    )

    sample_set = get_sampling_method(config.method).samples(mesh, face_normals)
    logger.info(
        "Computing varifolds: method=%s kernel=%s radius=%g samples=%d",
        config.method.value,
        config.kernel.value,
        config.radius,
        sample_set.n_samples,
    )

    curvatures = estimate_curvatures(
        sample_set.positions,
        sample_set.normals,
        config.radius,
        config.kernel,
        neighborhood=config.neighborhood,
        chunk_size=config.chunk_size,
    )

    signed = naive_signed_curvatures(sample_set.normals, curvatures)
    if config.correct_signs:
        signed = correct_signs(signed, sample_set.one_ring, sample_set.inclusion_weights)

    logger.info("Computed %d varifolds", sample_set.n_samples)
    return Varifolds(
        positions=sample_set.positions,
        normals=sample_set.normals,
        curvatures=curvatures,
        signed_curvatures=signed,
        batch_size=torch.Size([sample_set.n_samples]),
    )
