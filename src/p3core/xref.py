"""
Pairwise shared/unique k-mer counts between the groups of a k-mer database.

Used to estimate how complete one genome is relative to another and how much
foreign content it carries.
"""

import logging
from typing import TYPE_CHECKING, Dict, Iterable, List, Sequence

import numpy as np
import pandas as pd

from .genomic_types import GroupId, XrefTriple

if TYPE_CHECKING:
    from .kmer_database import KmerDb

logger = logging.getLogger(__name__)


def _percent(numerator: int, denominator: int) -> float:
    # Empty groups report 0.0 instead of dividing by zero.
    if denominator == 0:
        return 0.0
    return numerator * 100.0 / denominator


class CrossReferenceMatrix:
    """
    Shared k-mer counts for every pair of groups.

    ``shared[i, j]`` is the number of k-mers owned by both group i and group j;
    the diagonal holds the number of k-mers owned by each group.
    """

    def __init__(self, groups: Sequence[GroupId], shared: np.ndarray) -> None:
        if shared.shape != (len(groups), len(groups)):
            raise ValueError(
                f"Shared matrix shape {shared.shape} does not match {len(groups)} groups."
            )
        self.groups: List[GroupId] = list(groups)
        self.shared: np.ndarray = shared
        self._index: Dict[GroupId, int] = {g: i for i, g in enumerate(self.groups)}

    @classmethod
    def from_entries(
        cls, groups: Sequence[GroupId], kmer_groups: Iterable[Sequence[GroupId]]
    ) -> "CrossReferenceMatrix":
        """Builds the matrix in one pass over the group lists of the stored k-mers."""
        index = {g: i for i, g in enumerate(groups)}
        shared = np.zeros((len(groups), len(groups)), dtype=np.int64)
        for owners in kmer_groups:
            idx = [index[g] for g in owners]
            if len(idx) == 1:
                shared[idx[0], idx[0]] += 1
            else:
                shared[np.ix_(idx, idx)] += 1
        return cls(groups, shared)

    @classmethod
    def from_kmer_db(cls, kmer_db: "KmerDb") -> "CrossReferenceMatrix":
        groups = kmer_db.all_groups()
        logger.info(f"Computing cross-reference matrix for {len(groups)} groups.")
        return cls.from_entries(groups, (owners for _, owners in kmer_db.items()))

    def total(self, group: GroupId) -> int:
        """Number of k-mers owned by a group."""
        i = self._index[group]
        return int(self.shared[i, i])

    def triple(self, a: GroupId, b: GroupId) -> XrefTriple:
        """
        Returns (k-mers only in a, k-mers in both, k-mers only in b).

        Raises:
            KeyError: If either group is unknown.
        """
        i, j = self._index[a], self._index[b]
        both = int(self.shared[i, j])
        return int(self.shared[i, i]) - both, both, int(self.shared[j, j]) - both

    def completeness(self, a: GroupId, b: GroupId) -> float:
        """Percentage of the k-mers of ``b`` that are also found in ``a``."""
        _, both, only_b = self.triple(a, b)
        return _percent(both, both + only_b)

    def contamination(self, a: GroupId, b: GroupId) -> float:
        """Percentage of the k-mers of ``a`` that are not found in ``b``."""
        only_a, both, _ = self.triple(a, b)
        return _percent(only_a, only_a + both)

    def to_dataframe(self, percentages: bool = False) -> pd.DataFrame:
        """
        Renders the matrix with one row and one column per group.

        Cells read ``only_row/both/only_col``; with ``percentages`` the
        completeness and contamination of the column group projected onto the
        row group are appended. The diagonal is ``x``.
        """
        rows = []
        for a in self.groups:
            row = []
            for b in self.groups:
                if a == b:
                    row.append("x")
                    continue
                cell = "/".join(str(n) for n in self.triple(a, b))
                if percentages:
                    cell += f", {self.completeness(a, b):0.1f}/{self.contamination(a, b):0.1f}"
                row.append(cell)
            rows.append(row)
        return pd.DataFrame(
            rows, index=pd.Index(self.groups, name="genome"), columns=self.groups
        )

    def __len__(self) -> int:
        return len(self.groups)
