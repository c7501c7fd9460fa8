import math

import torch
import torch.nn.functional as F
from tensordict import TensorDict, tensorclass


@tensorclass
class Mesh:
    """Simplicial mesh supplying sample positions, normals and adjacency.

    Derived geometry (centroids, areas, normals) is computed lazily and cached
    under underscore-prefixed keys in `cell_data` / `point_data`. Cached keys are
    never carried over to meshes derived through `translate` / `transform`.
    """

    points: torch.Tensor  # shape: (n_points, n_spatial_dimensions)
    cells: torch.Tensor  # shape: (n_cells, n_manifold_dimensions + 1)
    point_data: TensorDict = None  # accepts dict/None, converted to TensorDict in __post_init__  # ty: ignore
    cell_data: TensorDict = None  # accepts dict/None, converted to TensorDict in __post_init__  # ty: ignore

    def __post_init__(self):
        ### Validate shapes
        if self.points.ndim != 2:
            raise ValueError(
                f"`points` must have shape (n_points, n_spatial_dimensions), but got {self.points.shape=}."
            )
        if self.cells.ndim != 2:
            raise ValueError(
                f"`cells` must have shape (n_cells, n_manifold_dimensions + 1), but got {self.cells.shape=}."
            )
        if self.n_manifold_dims > self.n_spatial_dims:
            raise ValueError(
                f"`n_manifold_dims` must be <= `n_spatial_dims`, but got {self.n_manifold_dims=} > {self.n_spatial_dims=}."
            )

        ### Validate dtypes
        if torch.is_floating_point(self.cells):
            raise TypeError(
                f"`cells` must have an int-like dtype, but got {self.cells.dtype=}."
            )

        ### Initialize data TensorDicts
        if self.point_data is None:
            self.point_data = {}
        if self.cell_data is None:
            self.cell_data = {}

        if not isinstance(self.point_data, TensorDict):
            self.point_data = TensorDict(
                dict(self.point_data),
                batch_size=torch.Size([self.n_points]),
                device=self.points.device,
            )
        if not isinstance(self.cell_data, TensorDict):
            self.cell_data = TensorDict(
                dict(self.cell_data),
                batch_size=torch.Size([self.n_cells]),
                device=self.points.device,
            )

    @property
    def n_spatial_dims(self) -> int:
        return self.points.shape[-1]

    @property
    def n_manifold_dims(self) -> int:
        return self.cells.shape[-1] - 1

    @property
    def codimension(self) -> int:
        """n_spatial_dims - n_manifold_dims; 1 for triangle surfaces in 3D."""
        return self.n_spatial_dims - self.n_manifold_dims

    @property
    def n_points(self) -> int:
        return self.points.shape[0]

    @property
    def n_cells(self) -> int:
        return self.cells.shape[0]

    @property
    def cell_centroids(self) -> torch.Tensor:
        """Arithmetic mean of each cell's vertex positions, shape (n_cells, n_spatial_dims).

        These are the sample positions of the face-centroid methods.
        """
        if "_centroids" not in self.cell_data:
            self.cell_data["_centroids"] = self.points[self.cells].mean(dim=1)
        return self.cell_data["_centroids"]

    @property
    def cell_areas(self) -> torch.Tensor:
        """Volumes (areas) of the n-simplices via the Gram determinant.

        Volume = sqrt(det(E^T E)) / n!, where E holds the edge vectors from the
        first vertex of the cell.

        Returns:
            Tensor of shape (n_cells,).
        """
        if "_areas" not in self.cell_data:
            relative_vectors = (
                self.points[self.cells[:, 1:]] - self.points[self.cells[:, [0]]]
            )  # (n_cells, n_manifold_dims, n_spatial_dims)
            gram_matrix = torch.matmul(
                relative_vectors, relative_vectors.transpose(-2, -1)
            )  # (n_cells, n_manifold_dims, n_manifold_dims)
            self.cell_data["_areas"] = gram_matrix.det().abs().sqrt() / math.factorial(
                self.n_manifold_dims
            )
        return self.cell_data["_areas"]

    def _require_codimension_1(self, what: str) -> None:
        if self.codimension != 1:
            raise ValueError(
                f"{what} are only defined for codimension-1 manifolds.\n"
                f"Got {self.n_manifold_dims=} and {self.n_spatial_dims=}.\n"
                f"Required: n_manifold_dims = n_spatial_dims - 1 (codimension-1)."
            )

    @property
    def cell_normals(self) -> torch.Tensor:
        """Unit normals of codimension-1 cells, derived from vertex positions.

        Uses the generalized cross product: for the (n-1) edge vectors E of a
        cell in R^n, n_i = (-1)^(n-1+i) * det(E with column i removed). In 3D
        this is the usual cross product, oriented by the vertex ordering.

        Returns:
            Tensor of shape (n_cells, n_spatial_dims).

        Raises:
            ValueError: If the mesh is not codimension-1.
        """
        if "_normals" not in self.cell_data:
            self._require_codimension_1("Cell normals")

            relative_vectors = (
                self.points[self.cells[:, 1:]] - self.points[self.cells[:, [0]]]
            )

            normal_components = []
            for i in range(self.n_spatial_dims):
                cols_mask = torch.ones(
                    self.n_spatial_dims, dtype=torch.bool, device=relative_vectors.device
                )
                cols_mask[i] = False
                det = relative_vectors[:, :, cols_mask].det()  # (n_cells,)
                normal_components.append((-1) ** (self.n_manifold_dims + i) * det)

            normals = torch.stack(normal_components, dim=-1)
            self.cell_data["_normals"] = F.normalize(normals, dim=-1, eps=1e-30)

        return self.cell_data["_normals"]

    @property
    def point_normals(self) -> torch.Tensor:
        """Average of incident cell normals at each vertex, each cell counted once.

            point_normal_v = normalize(sum_over_incident_cells(cell_normal))

        Returns:
            Tensor of shape (n_points, n_spatial_dims). Isolated points get a zero
            vector.

        Raises:
            ValueError: If the mesh is not codimension-1.
        """
        if "_normals" not in self.point_data:
            self._require_codimension_1("Point normals")

            n_vertices_per_cell = self.cells.shape[1]

            ### Scatter each cell normal onto all of its vertices
            accumulated = torch.zeros(
                (self.n_points, self.n_spatial_dims),
                dtype=self.points.dtype,
                device=self.points.device,
            )
            accumulated.index_add_(
                0,
                self.cells.reshape(-1),
                self.cell_normals.repeat_interleave(n_vertices_per_cell, dim=0),
            )
            self.point_data["_normals"] = F.normalize(accumulated, dim=-1, eps=1e-12)

        return self.point_data["_normals"]

    def get_point_to_cells_adjacency(self):
        """Star of each vertex: all cells containing each point.

        See `varifoldmesh.neighbors.get_point_to_cells_adjacency`.
        """
        from varifoldmesh.neighbors import get_point_to_cells_adjacency

        return get_point_to_cells_adjacency(self)

    def get_point_to_points_adjacency(self):
        """Vertex one-ring: all points sharing an edge with each point.

        See `varifoldmesh.neighbors.get_point_to_points_adjacency`.
        """
        from varifoldmesh.neighbors import get_point_to_points_adjacency

        return get_point_to_points_adjacency(self)

    def get_cell_to_cells_adjacency(self, adjacency_codimension: int = 1):
        """Cells sharing a k-codimension facet with each cell.

        See `varifoldmesh.neighbors.get_cell_to_cells_adjacency`.
        """
        from varifoldmesh.neighbors import get_cell_to_cells_adjacency

        return get_cell_to_cells_adjacency(
            self, adjacency_codimension=adjacency_codimension
        )

    def get_cell_one_ring(self):
        """Cells sharing at least one vertex with each cell, with inclusion weights.

        See `varifoldmesh.neighbors.get_cell_one_ring`.
        """
        from varifoldmesh.neighbors import get_cell_one_ring

        return get_cell_one_ring(self)

    def _with_points(self, points: torch.Tensor) -> "Mesh":
        """New mesh with the same cells and user data, and no cached geometry."""
        point_data = {
            k: v for k, v in self.point_data.items() if not k.startswith("_")
        }
        cell_data = {k: v for k, v in self.cell_data.items() if not k.startswith("_")}
        return Mesh(
            points=points,
            cells=self.cells,
            point_data=point_data,
            cell_data=cell_data,
        )

    def translate(self, offset: torch.Tensor | list | tuple) -> "Mesh":
        """Translate the mesh by `offset`.

        Args:
            offset: Translation vector, shape (n_spatial_dims,)

        Returns:
            New Mesh with translated points
        """
        offset = torch.as_tensor(offset, dtype=self.points.dtype, device=self.points.device)
        if offset.shape != (self.n_spatial_dims,):
            raise ValueError(
                f"`offset` must have shape ({self.n_spatial_dims},), but got {offset.shape=}."
            )
        return self._with_points(self.points + offset)

    def transform(self, matrix: torch.Tensor | list | tuple) -> "Mesh":
        """Apply a linear map to every point: p -> matrix @ p.

        Args:
            matrix: Square matrix, shape (n_spatial_dims, n_spatial_dims)

        Returns:
            New Mesh with transformed points

        Example:
            >>> rotated = mesh.transform(rotation_matrix([0., 0., 1.], math.pi / 2))
        """
        matrix = torch.as_tensor(matrix, dtype=self.points.dtype, device=self.points.device)
        if matrix.shape != (self.n_spatial_dims, self.n_spatial_dims):
            raise ValueError(
                f"`matrix` must have shape ({self.n_spatial_dims}, {self.n_spatial_dims}), "
                f"but got {matrix.shape=}."
            )
        return self._with_points(self.points @ matrix.T)


def rotation_matrix(
    axis: torch.Tensor | list | tuple,
    angle: float,
    dtype: torch.dtype = torch.float32,
) -> torch.Tensor:
    """3D rotation matrix about `axis` by `angle` radians (Rodrigues' formula).

    Returns:
        Tensor of shape (3, 3).
    """
    axis = F.normalize(torch.as_tensor(axis, dtype=dtype), dim=0)
    x, y, z = axis.tolist()
    cross = torch.tensor([[0.0, -z, y], [z, 0.0, -x], [-y, x, 0.0]], dtype=dtype)
    identity = torch.eye(3, dtype=dtype)
    return (
        identity
        + math.sin(angle) * cross
        + (1.0 - math.cos(angle)) * (cross @ cross)
    )
