"""
Signature protein families and the families that cluster with them.

A signature family is common in one genome set and rare in another. Repeating
the computation over random samples of both sets, and clustering the
signature features of each sample, yields pairs of families that keep turning
up side by side.
"""

import logging
import random
from collections import Counter
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .exceptions import InvalidParameterError
from .proximity import FeatureLocation, cluster_by_midpoint

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SignatureFamily:
    """Genome counts for one signature family."""

    in_count: int
    out_count: int
    product: Optional[str] = None


def _genome_counts(genome_families: Mapping[str, Iterable[str]]) -> Counter:
    counts: Counter = Counter()
    for families in genome_families.values():
        counts.update(set(families))
    return counts


def signature_families(
    gs1_families: Mapping[str, Iterable[str]],
    gs2_families: Mapping[str, Iterable[str]],
    min_in: float = 1.0,
    max_out: float = 0.0,
    products: Optional[Mapping[str, str]] = None,
) -> Dict[str, SignatureFamily]:
    """
    Finds the families that distinguish genome set 1 from genome set 2.

    Args:
        gs1_families: Genome ID to the families found in it, for the first set.
        gs2_families: The same for the second set.
        min_in: Fraction of set 1 genomes that must contain a family.
        max_out: Fraction of set 2 genomes that may contain a family.
        products: Optional family to functional role lookup.

    Returns:
        Family ID to its in/out genome counts.

    Raises:
        InvalidParameterError: If either genome set is empty or a fraction is outside [0, 1].
    """
    if not gs1_families or not gs2_families:
        raise InvalidParameterError(
            "Both genome sets must be non-empty",
            details={"gs1": len(gs1_families), "gs2": len(gs2_families)},
        )
    for label, value in (("min_in", min_in), ("max_out", max_out)):
        if not 0.0 <= value <= 1.0:
            raise InvalidParameterError(f"{label} must be a fraction", details={label: value})

    inside = _genome_counts(gs1_families)
    outside = _genome_counts(gs2_families)
    size_in, size_out = len(gs1_families), len(gs2_families)
    products = products or {}

    found: Dict[str, SignatureFamily] = {}
    for family in sorted(set(inside) | set(outside)):
        x1, x2 = inside.get(family, 0), outside.get(family, 0)
        if x2 / size_out <= max_out and x1 / size_in >= min_in:
            found[family] = SignatureFamily(x1, x2, products.get(family))
    logger.info(
        f"{len(found)} signature families found for {size_in} genomes against {size_out}."
    )
    return found


def pick_genomes(genomes: Sequence[str], count: int, rng: Optional[random.Random] = None) -> List[str]:
    """
    Random sample of ``count`` genomes (all of them if fewer are available).

    Each of the first ``count`` positions is swapped with a uniformly chosen
    position of the whole list.
    """
    rng = rng or random.Random()
    picked = list(genomes)
    n = len(picked)
    count = min(count, n)
    for i in range(count):
        j = rng.randrange(n)
        picked[i], picked[j] = picked[j], picked[i]
    return picked[:count]


class RelatedFamilyCounter:
    """Counts how often two distinct families share a cluster."""

    def __init__(self) -> None:
        self.pairs: Counter = Counter()
        self.clusters = 0

    def add_cluster(self, families: Sequence[str]) -> None:
        for i, family1 in enumerate(families):
            for family2 in families[i + 1 :]:
                if family1 != family2:
                    self.pairs[tuple(sorted((family1, family2)))] += 1
        self.clusters += 1

    def add_clusters(self, clusters: Iterable[Sequence[FeatureLocation]]) -> None:
        for cluster in clusters:
            self.add_cluster([feature.key for feature in cluster])

    def rows(self) -> List[Tuple[str, str, int]]:
        """Rows ``(family1, family2, count)``, most frequent first."""
        return [(a, b, count) for (a, b), count in self.pairs.most_common()]


def related_by_clusters(
    gs1: Sequence[str],
    gs2: Sequence[str],
    features: Sequence[FeatureLocation],
    sample1: int = 20,
    sample2: int = 20,
    iterations: int = 10,
    min_in: float = 1.0,
    max_out: float = 0.0,
    distance: int = 2000,
    rng: Optional[random.Random] = None,
) -> Tuple[RelatedFamilyCounter, List[List[List[FeatureLocation]]]]:
    """
    Repeats signature detection over random samples and counts co-clustered families.

    ``features`` is a feature table covering both genome sets, with the family
    ID in ``key``. Each iteration samples both sets, finds the signature
    families, clusters the signature features of the set 1 sample by midpoint
    and counts the family pairs of each cluster.

    Returns:
        The pair counter and the clusters found in each iteration.
    """
    if iterations < 1:
        raise InvalidParameterError("iterations must be at least 1", details={"iterations": iterations})
    rng = rng or random.Random()
    by_genome: Dict[str, List[FeatureLocation]] = {}
    for feature in features:
        by_genome.setdefault(feature.genome_id, []).append(feature)
    products = {f.key: f.label for f in features if f.label}

    counter = RelatedFamilyCounter()
    cluster_sets: List[List[List[FeatureLocation]]] = []
    for iteration in range(iterations):
        subset1 = pick_genomes(gs1, sample1, rng)
        subset2 = pick_genomes(gs2, sample2, rng)
        families = signature_families(
            {g: [f.key for f in by_genome.get(g, [])] for g in subset1},
            {g: [f.key for f in by_genome.get(g, [])] for g in subset2},
            min_in,
            max_out,
            products,
        )
        pegs = [f for g in subset1 for f in by_genome.get(g, []) if f.key in families]
        clusters = cluster_by_midpoint(pegs, distance)
        counter.add_clusters(clusters)
        cluster_sets.append(clusters)
        logger.debug(f"Iteration {iteration}: {len(families)} families, {len(clusters)} clusters.")
    return counter, cluster_sets
