"""Ragged neighbor lists stored with offset-indices encoding.

Used for both topological neighborhoods (mesh one-rings) and metric ones
(samples inside a ball), so that every consumer sees the same layout.
"""

import torch
from tensordict import tensorclass


@tensorclass
class Adjacency:
    """Ragged adjacency list stored with offset-indices encoding.

    Attributes:
        offsets: Start of each source's neighbor list in `indices`.
            Shape (n_sources + 1,), dtype int64. The i-th source's neighbors are
            indices[offsets[i]:offsets[i+1]].
        indices: Flattened neighbor indices. Shape (total_neighbors,), dtype int64.

    Example:
        >>> adj = Adjacency(
        ...     offsets=torch.tensor([0, 2, 2, 4]),
        ...     indices=torch.tensor([10, 11, 12, 13]),
        ... )
        >>> adj.to_list()
        [[10, 11], [], [12, 13]]
    """

    offsets: torch.Tensor  # shape: (n_sources + 1,), dtype: int64
    indices: torch.Tensor  # shape: (total_neighbors,), dtype: int64

    def __post_init__(self):
        if not torch.compiler.is_compiling():
            if len(self.offsets) < 1:
                raise ValueError(
                    f"Offsets array must have length >= 1 (n_sources + 1), but got {len(self.offsets)=}."
                )
            if self.offsets[0].item() != 0:
                raise ValueError(
                    f"First offset must be 0, but got {self.offsets[0].item()=}."
                )
            last_offset = self.offsets[-1].item()
            indices_length = len(self.indices)
            if last_offset != indices_length:
                raise ValueError(
                    f"Last offset must equal length of indices, but got "
                    f"{last_offset=} != {indices_length=}."
                )

    @classmethod
    def from_pairs(
        cls,
        sources: torch.Tensor,
        targets: torch.Tensor,
        n_sources: int,
    ) -> "Adjacency":
        """Build an adjacency from (source, target) pairs.

        Pairs are grouped by source; within a source, targets are sorted ascending.
        Duplicate pairs are kept, so deduplicate beforehand if needed.

        Args:
            sources: Source index of each pair, shape (n_pairs,)
            targets: Target index of each pair, shape (n_pairs,)
            n_sources: Total number of sources (sources without pairs get empty lists)
        """
        device = targets.device
        offsets = torch.zeros(n_sources + 1, dtype=torch.int64, device=device)
        if len(sources) == 0:
            return cls(
                offsets=offsets,
                indices=torch.zeros(0, dtype=torch.int64, device=device),
            )

        n_targets = int(targets.max().item()) + 1
        order = torch.argsort(sources.long() * n_targets + targets.long())
        sorted_sources = sources[order].long()

        offsets[1:] = torch.cumsum(
            torch.bincount(sorted_sources, minlength=n_sources), dim=0
        )
        return cls(offsets=offsets, indices=targets[order].long())

    def to_list(self) -> list[list[int]]:
        """Convert adjacency to a ragged list-of-lists, mostly for tests."""
        offsets_np = self.offsets.cpu().numpy()
        indices_np = self.indices.cpu().numpy()
        return [
            indices_np[offsets_np[i] : offsets_np[i + 1]].tolist()
            for i in range(len(offsets_np) - 1)
        ]

    @property
    def n_sources(self) -> int:
        """Number of source elements in the adjacency."""
        return len(self.offsets) - 1

    @property
    def n_total_neighbors(self) -> int:
        """Total number of neighbor relationships across all sources."""
        return len(self.indices)

    @property
    def counts(self) -> torch.Tensor:
        """Number of neighbors of each source, shape (n_sources,)."""
        return self.offsets[1:] - self.offsets[:-1]

    def source_indices(self) -> torch.Tensor:
        """Source index of each entry in `indices`, shape (total_neighbors,)."""
        return torch.arange(
            self.n_sources, dtype=torch.int64, device=self.offsets.device
        ).repeat_interleave(self.counts)
