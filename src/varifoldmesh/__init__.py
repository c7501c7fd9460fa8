import logging

from varifoldmesh.mesh import Mesh, rotation_matrix
from varifoldmesh.kernels import (
    KernelKind,
    KernelProfile,
    RadialKernel,
    get_kernel_profile,
    kernel_field,
)
from varifoldmesh.methods import Method, Varifolds, compute_varifolds
from varifoldmesh.config import VarifoldConfig
from varifoldmesh.curvature import (
    correct_signs,
    estimate_curvatures,
    naive_signed_curvatures,
)
from varifoldmesh.errors import (
    DegenerateDisplacementError,
    DegenerateNeighborhoodError,
    InvalidRadiusError,
    VarifoldError,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())
