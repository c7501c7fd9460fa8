"""Varifold curvature estimation and sign correction."""

from varifoldmesh.curvature.signs import correct_signs, naive_signed_curvatures
from varifoldmesh.curvature.varifold import estimate_curvatures, project_orthogonal

__all__ = [
    "estimate_curvatures",
    "project_orthogonal",
    "naive_signed_curvatures",
    "correct_signs",
]
