"""Procedural example surfaces for exercising the curvature pipeline."""

from varifoldmesh.examples import surfaces

__all__ = ["surfaces"]
