"""
Spatial clustering of features on a contig.

Features whose role or family belongs to a functional cluster are grouped into
runs that sit close together on one sequence. A run never spans two sequences.
"""

import logging
import pathlib
from dataclasses import dataclass, field
from operator import attrgetter
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

import pandas as pd

from .exceptions import InvalidParameterError, MissingFileError

logger = logging.getLogger(__name__)

DEFAULT_MAX_GAP = 2000
DEFAULT_MIN_ITEMS = 3
DEFAULT_DELIMITER = "::"


@dataclass(frozen=True)
class FeatureLocation:
    """
    A located feature.

    Attributes:
        feature_id: Feature ID such as ``fig|83333.1.peg.4``.
        genome_id: Genome containing the feature.
        sequence_id: Contig containing the feature.
        start: Left coordinate.
        end: Right coordinate.
        key: Role, family or category used for clustering.
        label: Optional descriptive text (function or product).
        strand: ``+`` or ``-``.
    """

    feature_id: str
    genome_id: str
    sequence_id: str
    start: int
    end: int
    key: str
    label: Optional[str] = None
    strand: str = "+"

    @property
    def midpoint(self) -> float:
        return (self.start + self.end) / 2

    def distance(self, other: "FeatureLocation") -> Optional[int]:
        """Gap between two features on the same sequence (negative when they overlap); None across sequences."""
        if (self.genome_id, self.sequence_id) != (other.genome_id, other.sequence_id):
            return None
        return max(self.start, other.start) - min(self.end, other.end)


@dataclass(frozen=True)
class ProximityTuple:
    identifier: str
    start: int
    end: int
    cluster_key: str
    label: Optional[str] = None


@dataclass
class ProximityCluster:
    """A run of same-key tuples on one sequence."""

    cluster_key: str
    genome_id: str
    sequence_id: str
    start: int
    end: int
    members: List[ProximityTuple] = field(default_factory=list)

    @property
    def identifiers(self) -> List[str]:
        return [m.identifier for m in self.members]

    @property
    def labels(self) -> List[str]:
        return [m.label if m.label is not None else "" for m in self.members]

    def __len__(self) -> int:
        return len(self.members)


class ClusterDefinitions:
    """
    Lookup from a clustered identifier (role or family) to its cluster ID.

    Built from rows whose first column is the cluster ID and whose last column
    holds the delimiter-joined members, the layout written by ``generate-clusters``.
    """

    def __init__(self, mapping: Optional[Dict[str, str]] = None, title: str = "cluster_id") -> None:
        self.mapping: Dict[str, str] = dict(mapping or {})
        self.title = title

    @classmethod
    def from_rows(
        cls,
        rows: Iterable[Sequence[str]],
        delimiter: str = DEFAULT_DELIMITER,
        title: str = "cluster_id",
    ) -> "ClusterDefinitions":
        mapping: Dict[str, str] = {}
        for row in rows:
            if not row:
                continue
            cluster_id, members = str(row[0]), str(row[-1])
            for member in members.split(delimiter):
                if member:
                    mapping[member] = cluster_id
        return cls(mapping, title)

    @classmethod
    def from_file(
        cls,
        path: Union[str, pathlib.Path],
        delimiter: str = DEFAULT_DELIMITER,
        has_header: bool = True,
    ) -> "ClusterDefinitions":
        """
        Reads a tab-delimited cluster file.

        Raises:
            MissingFileError: If the file is missing or empty.
        """
        path = pathlib.Path(path)
        if not path.is_file() or path.stat().st_size == 0:
            raise MissingFileError(
                "Cluster file not found, invalid, or empty", details={"path": str(path)}
            )
        table = pd.read_csv(
            path,
            sep="\t",
            header=0 if has_header else None,
            dtype=str,
            keep_default_na=False,
        )
        title = str(table.columns[0]) if has_header else "cluster_id"
        definitions = cls.from_rows(table.itertuples(index=False, name=None), delimiter, title)
        logger.info(f"{len(definitions)} clustered identifiers read from {path}")
        return definitions

    def cluster_for(self, identifier: str) -> Optional[str]:
        return self.mapping.get(identifier)

    def __contains__(self, identifier: str) -> bool:
        return identifier in self.mapping

    def __len__(self) -> int:
        return len(self.mapping)


class ProximityClusterer:
    """
    Groups same-key features that lie within ``max_gap`` of each other.

    Features passed over because their key differs from the running cluster
    are put back at the front of the pool and reconsidered, so they may seed
    or join a later cluster.
    """

    def __init__(self, max_gap: int = DEFAULT_MAX_GAP, min_items: int = DEFAULT_MIN_ITEMS) -> None:
        if max_gap < 0:
            raise InvalidParameterError("max_gap must not be negative", details={"max_gap": max_gap})
        if min_items < 1:
            raise InvalidParameterError(
                "min_items must be at least 1", details={"min_items": min_items}
            )
        self.max_gap = max_gap
        self.min_items = min_items

    def cluster_sequence(
        self,
        tuples: Iterable[ProximityTuple],
        genome_id: str = "",
        sequence_id: str = "",
    ) -> List[ProximityCluster]:
        """Clusters the tuples of a single sequence; clusters come out in seed order."""
        features = sorted(tuples, key=attrgetter("start"))
        clusters: List[ProximityCluster] = []
        while features:
            seed = features[0]
            end = seed.end
            members = [seed]
            skipped: List[ProximityTuple] = []
            i = 1
            while i < len(features) and features[i].start <= end + self.max_gap:
                feature = features[i]
                i += 1
                if feature.cluster_key == seed.cluster_key:
                    members.append(feature)
                    end = feature.end
                else:
                    skipped.append(feature)
            features = skipped + features[i:]
            if len(members) >= self.min_items:
                clusters.append(
                    ProximityCluster(
                        cluster_key=seed.cluster_key,
                        genome_id=genome_id,
                        sequence_id=sequence_id,
                        start=seed.start,
                        end=end,
                        members=members,
                    )
                )
        return clusters

    def identify(
        self, features: Iterable[FeatureLocation], definitions: ClusterDefinitions
    ) -> List[ProximityCluster]:
        """
        Finds cluster occurrences in a feature table.

        Features whose key is not in ``definitions`` are ignored. Sequences are
        processed in sorted (genome, sequence) order.
        """
        sequences: Dict[Tuple[str, str], List[ProximityTuple]] = {}
        for feature in features:
            cluster_id = definitions.cluster_for(feature.key)
            if cluster_id is None:
                continue
            sequences.setdefault((feature.genome_id, feature.sequence_id), []).append(
                ProximityTuple(feature.feature_id, feature.start, feature.end, cluster_id, feature.key)
            )
        logger.debug(f"Clustered features found on {len(sequences)} sequences.")

        found: List[ProximityCluster] = []
        for genome_id, sequence_id in sorted(sequences):
            found.extend(
                self.cluster_sequence(sequences[(genome_id, sequence_id)], genome_id, sequence_id)
            )
        logger.info(f"{len(found)} cluster occurrences found.")
        return found


def cluster_by_midpoint(
    features: Iterable[FeatureLocation], distance: int, min_size: int = 2
) -> List[List[FeatureLocation]]:
    """
    Clusters features whose midpoints are within ``distance`` of the previous one.

    Each (genome, sequence) is scanned separately. Clusters smaller than
    ``min_size`` are dropped and the rest are returned largest first.
    """
    by_contig: Dict[Tuple[str, str], List[FeatureLocation]] = {}
    for feature in features:
        by_contig.setdefault((feature.genome_id, feature.sequence_id), []).append(feature)

    clusters: List[List[FeatureLocation]] = []
    for contig in sorted(by_contig):
        pegs = sorted(by_contig[contig], key=attrgetter("midpoint"))
        current = [pegs[0]]
        for previous, peg in zip(pegs, pegs[1:]):
            if peg.midpoint - previous.midpoint > distance:
                if len(current) >= min_size:
                    clusters.append(current)
                current = []
            current.append(peg)
        if len(current) >= min_size:
            clusters.append(current)

    clusters.sort(key=len, reverse=True)
    return clusters


def find_in_clusters(
    features: Iterable[FeatureLocation],
    clusters: Iterable[ProximityCluster],
    max_gap: int = DEFAULT_MAX_GAP,
) -> Iterator[Tuple[FeatureLocation, ProximityCluster]]:
    """Yields every (feature, cluster) pair where the feature overlaps the cluster span widened by ``max_gap``."""
    spans: Dict[Tuple[str, str], List[Tuple[int, int, ProximityCluster]]] = {}
    for cluster in clusters:
        spans.setdefault((cluster.genome_id, cluster.sequence_id), []).append(
            (cluster.start - max_gap, cluster.end + max_gap, cluster)
        )
    for feature in features:
        for cl_start, cl_end, cluster in spans.get((feature.genome_id, feature.sequence_id), ()):
            if feature.start < cl_end and feature.end > cl_start:
                yield feature, cluster
