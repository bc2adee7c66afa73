"""
Counting roles and categories that sit physically close on a genome.

Two views are provided. ``close_role_pairs`` counts, over all contigs, how often
two roles are found within a gap of each other. ``CoOccurrenceCounter`` works
per genome on categories that occur exactly once and reports how often each
pair is close relative to how often both are present.
"""

import logging
import re
from collections import Counter
from dataclasses import replace
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

import mmh3

from .exceptions import InvalidParameterError
from .genomic_types import PairCounts, RolePair
from .proximity import FeatureLocation

logger = logging.getLogger(__name__)

DEFAULT_MIN_OCC = 4

_COMMENT = re.compile(r"\s*[#!].*$")
_EC_NUMBER = re.compile(r"\s*\((?:EC|TC)\s+[^)]*\)", re.IGNORECASE)
_SPACES = re.compile(r"\s+")
_ROLE_SPLIT = re.compile(r"\s+/\s+|\s+@\s+|\s*;\s+")


def normalize_role(role: str) -> str:
    """Case-folds a role, drops trailing comments and EC/TC numbers, and collapses whitespace."""
    text = _COMMENT.sub("", role)
    text = _EC_NUMBER.sub("", text)
    return _SPACES.sub(" ", text).strip().casefold()


def role_checksum(role: str) -> str:
    """Stable identifier of a role: hex MurmurHash3 of its normalized text."""
    return mmh3.hash_bytes(normalize_role(role).encode("utf-8")).hex()


def roles_of_function(function: str) -> List[str]:
    """Splits a functional assignment into its roles (``a / b``, ``a @ b`` and ``a; b`` forms)."""
    text = _COMMENT.sub("", function).strip()
    if not text:
        return []
    return [role for role in _ROLE_SPLIT.split(text) if role]


class RoleIndex:
    """
    Dense numbering of roles.

    Spellings that normalize to the same checksum share one index; the first
    spelling seen is the one reported back.
    """

    def __init__(self) -> None:
        self._by_checksum: Dict[str, int] = {}
        self._names: List[str] = []

    def index(self, role: str) -> int:
        checksum = role_checksum(role)
        idx = self._by_checksum.get(checksum)
        if idx is None:
            idx = len(self._names)
            self._by_checksum[checksum] = idx
            self._names.append(role)
        return idx

    def name(self, idx: int) -> str:
        return self._names[idx]

    def __contains__(self, role: str) -> bool:
        return role_checksum(role) in self._by_checksum

    def __len__(self) -> int:
        return len(self._names)


def _by_sequence(features: Iterable[FeatureLocation]) -> Dict[Tuple[str, str], List[FeatureLocation]]:
    contigs: Dict[Tuple[str, str], List[FeatureLocation]] = {}
    for feature in features:
        contigs.setdefault((feature.genome_id, feature.sequence_id), []).append(feature)
    return contigs


def count_close_pairs(
    features: Iterable[FeatureLocation],
    max_gap: int = 2000,
    role_index: Optional[RoleIndex] = None,
) -> PairCounts:
    """
    Counts role pairs found close together on the same sequence.

    Within each sequence the features are sorted by start, and each is paired
    with every later feature that starts no further than ``max_gap`` past its
    end. A role can pair with itself.

    Args:
        features: Located features; ``key`` holds the role text.
        max_gap: Largest permitted gap between two close features.
        role_index: Index receiving the role numbering; a fresh one is used if omitted.

    Returns:
        Counter keyed by sorted pairs of role indices.
    """
    if max_gap < 0:
        raise InvalidParameterError("max_gap must not be negative", details={"max_gap": max_gap})
    roles = role_index if role_index is not None else RoleIndex()
    counts: PairCounts = Counter()
    for contig, located in _by_sequence(features).items():
        tuples = sorted(
            ((roles.index(f.key), f.start, f.end) for f in located), key=lambda t: t[1]
        )
        for i, (role1, _, end) in enumerate(tuples):
            limit = end + max_gap
            for role2, start, _ in tuples[i + 1 :]:
                if start > limit:
                    break
                pair: RolePair = (role1, role2) if role1 <= role2 else (role2, role1)
                counts[pair] += 1
        logger.debug(f"Processed {len(tuples)} features on {contig[0]}:{contig[1]}.")
    return counts


def close_role_pairs(
    features: Iterable[FeatureLocation],
    max_gap: int = 2000,
    min_occ: int = DEFAULT_MIN_OCC,
) -> List[Tuple[str, str, int]]:
    """Rows ``(role1, role2, count)`` for pairs seen at least ``min_occ`` times, most frequent first."""
    roles = RoleIndex()
    counts = count_close_pairs(features, max_gap, roles)
    rows = [
        (roles.name(a), roles.name(b), count)
        for (a, b), count in counts.most_common()
        if count >= min_occ
    ]
    logger.info(f"{len(rows)} of {len(counts)} close role pairs kept (min_occ={min_occ}).")
    return rows


class CoOccurrenceCounter:
    """
    Accumulates per-genome co-occurrence of singly-occurring categories.

    For every lexically ordered pair of categories present once in a genome the
    total count goes up; the close count goes up too when the two features are
    on the same sequence and no more than ``gap`` apart.
    """

    def __init__(self, gap: int = 2000) -> None:
        if gap < 0:
            raise InvalidParameterError("gap must not be negative", details={"gap": gap})
        self.gap = gap
        self.total: Counter = Counter()
        self.close: Counter = Counter()
        self.genomes = 0

    def add_genome(self, features: Iterable[FeatureLocation]) -> None:
        """Counts the features of one genome; ``key`` is the category."""
        seen: Counter = Counter()
        locations: Dict[str, FeatureLocation] = {}
        for feature in features:
            seen[feature.key] += 1
            locations[feature.key] = feature
        singles = sorted(cat for cat, n in seen.items() if n == 1)
        for i, cat1 in enumerate(singles):
            loc1 = locations[cat1]
            for cat2 in singles[i + 1 :]:
                pair = (cat1, cat2)
                self.total[pair] += 1
                dist = loc1.distance(locations[cat2])
                if dist is not None and dist <= self.gap:
                    self.close[pair] += 1
        self.genomes += 1

    def add_features(self, features: Iterable[FeatureLocation]) -> None:
        """Splits a multi-genome feature stream by genome and counts each one."""
        by_genome: Dict[str, List[FeatureLocation]] = {}
        for feature in features:
            by_genome.setdefault(feature.genome_id, []).append(feature)
        for genome_id in by_genome:
            self.add_genome(by_genome[genome_id])
        logger.info(f"Co-occurrence counted over {self.genomes} genomes.")

    def rows(self) -> Iterator[Tuple[str, str, int, float]]:
        """Yields ``(cat1, cat2, close_count, percent)`` by descending close count."""
        for (cat1, cat2), count in self.close.most_common():
            yield cat1, cat2, count, round(count * 100 / self.total[(cat1, cat2)], 1)


def split_roles(features: Iterable[FeatureLocation]) -> Iterator[FeatureLocation]:
    """Replaces each feature carrying a functional assignment by one feature per role."""
    for feature in features:
        for role in roles_of_function(feature.key):
            yield replace(feature, key=role, label=feature.key)
