"""Spatial acceleration structures for neighborhood queries."""

from varifoldmesh.spatial.bvh import BVH

__all__ = ["BVH"]
