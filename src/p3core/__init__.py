"""
p3core: K-mer signature databases and functional clustering for genome annotations.

This package provides an inverted k-mer index with discriminating-k-mer
selection and genome cross-comparison, transitive clustering of related roles
or families, and proximity clustering of features along contigs.
"""

__version__ = "0.1.0"

# Core classes and functions for easier access
from .clusters import Cluster, ClusterBuilder
from .cooccur import (
    CoOccurrenceCounter,
    RoleIndex,
    close_role_pairs,
    count_close_pairs,
    roles_of_function,
    split_roles,
)
from .kmer_database import HitResult, KmerDb
from .proximity import (
    ClusterDefinitions,
    FeatureLocation,
    ProximityCluster,
    ProximityClusterer,
    ProximityTuple,
    cluster_by_midpoint,
    find_in_clusters,
)
from .sequence import KmerRecord, SequenceTokenizer, extract_kmers, reverse_complement
from .signatures import RelatedFamilyCounter, pick_genomes, related_by_clusters, signature_families
from .utils import open_file_transparently, parse_location
from .xref import CrossReferenceMatrix
from .running import main

__all__ = [
    "Cluster",
    "ClusterBuilder",
    "CoOccurrenceCounter",
    "RoleIndex",
    "close_role_pairs",
    "count_close_pairs",
    "roles_of_function",
    "split_roles",
    "HitResult",
    "KmerDb",
    "ClusterDefinitions",
    "FeatureLocation",
    "ProximityCluster",
    "ProximityClusterer",
    "ProximityTuple",
    "cluster_by_midpoint",
    "find_in_clusters",
    "KmerRecord",
    "SequenceTokenizer",
    "extract_kmers",
    "reverse_complement",
    "RelatedFamilyCounter",
    "pick_genomes",
    "related_by_clusters",
    "signature_families",
    "open_file_transparently",
    "parse_location",
    "CrossReferenceMatrix",
    "main",
    "__version__",
]
