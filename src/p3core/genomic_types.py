"""
Type definitions for the p3core package.

This module centralizes common type aliases used throughout p3core
to ensure consistency and improve code readability.
"""

from typing import Counter, Dict, List, Tuple

# Type aliases for clarity
Kmer = str  # A k-mer as an upper-case Python string.
GroupId = str  # Identifier of a k-mer group (genome, family or sample).
HitCounts = Dict[GroupId, int]  # Maps a group to the number of k-mer hits.
KmerEntries = Dict[Kmer, List[GroupId]]  # Maps a k-mer to the groups containing it.
XrefTriple = Tuple[int, int, int]  # (only in A, shared, only in B) k-mer counts.
ObjectPair = Tuple[str, str]  # One row of a pair stream for transitive closure.
RolePair = Tuple[int, int]  # Sorted pair of role indices.
PairCounts = Counter[RolePair]  # Maps a role pair to its close-occurrence count.
