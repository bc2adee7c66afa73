"""
Entry point of the ``p3core`` command.

Each subcommand reads local files, runs one of the core engines and writes a
tab-delimited report. Errors from the p3core hierarchy end the run with exit
status 1.
"""

import argparse
import logging
import pathlib
import random
import time
from typing import Callable, Dict, List, Optional, Sequence

from .clusters import ClusterBuilder
from .cooccur import CoOccurrenceCounter, close_role_pairs, split_roles
from .exceptions import InvalidParameterError, MalformedSequenceError, P3CoreException
from .kmer_database import KmerDb
from .logging_config import PerformanceLogger, setup_logging
from .output import TableWriter
from .parameter_config import (
    ClosePairArgs,
    KmerDbArgs,
    ProximityArgs,
    SignatureArgs,
    default_kmer_size,
    get_cli_parser,
    validate_args,
)
from .proximity import ClusterDefinitions, ProximityClusterer, find_in_clusters
from .sequence import translate_frames
from .signatures import related_by_clusters
from .sources import (
    read_fasta_records,
    read_feature_locations,
    read_id_column,
    read_pairs,
    read_proximity_clusters,
    read_table_records,
)
from .utils import group_id_from_path

logger = logging.getLogger(__name__)


def run_build_kmer_db(args: argparse.Namespace) -> None:
    params = validate_args(
        KmerDbArgs,
        kmer_size=args.kmer_size,
        max_found=args.max_found,
        mirror=args.mirror,
        discriminating=args.discriminating,
    )
    db = KmerDb(params.kmer_size, params.max_found, params.mirror)
    perf = PerformanceLogger()
    for path in args.inputs:
        started = time.perf_counter()
        if args.fasta:
            records = read_fasta_records(path, group_from=args.group_from)
        else:
            records = read_table_records(path, args.id_col, args.seq_col, args.name_col)
        count = db.add_records(records, progress=args.progress)
        perf.log_throughput("index-file", count, time.perf_counter() - started)
    started = time.perf_counter()
    if params.discriminating:
        db.compute_discriminators()
    else:
        db.finalize()
    perf.log_operation_time("prune", time.perf_counter() - started, kmers=db.kmer_count)
    db.save(args.db)
    if args.matrix:
        db.save_matrix(args.matrix)
    logger.info(f"Database stats: {db.stats()}")
    logger.info(f"Timing summary: {perf.get_summary()}")


def run_discriminating_kmers(args: argparse.Namespace) -> None:
    names: List[Optional[str]] = [None] * len(args.inputs)
    if args.groups:
        names = [n.strip() or None for n in args.groups.split(",")]
        if len(names) != len(args.inputs):
            raise InvalidParameterError(
                "One group name is needed per input file",
                details={"names": len(names), "inputs": len(args.inputs)},
            )
    # Files sharing a group name form one group.
    group_ids = [name or group_id_from_path(path) for path, name in zip(args.inputs, names)]
    logger.info(f"{len(set(group_ids))} input groups found in {len(args.inputs)} files.")
    kmer_size = args.kmer_size or default_kmer_size(args.dna)
    params = validate_args(KmerDbArgs, kmer_size=kmer_size, max_found=0, mirror=args.dna)
    db = KmerDb(params.kmer_size, 0, params.mirror)
    for path, group_id, name in zip(args.inputs, group_ids, names):
        if args.fasta:
            records = read_fasta_records(path, group_from="file", group_id=group_id)
        else:
            records = read_table_records(path, id_col=args.seq_col, seq_col=args.seq_col)
        for record in records:
            db.add_sequence(group_id, record.sequence, name)
    db.compute_discriminators()
    db.save(args.db)


def _query_records(args: argparse.Namespace):
    params = validate_args(KmerDbArgs, genetic_code=args.genetic_code)
    db = KmerDb.load(args.db)
    return db, params.genetic_code, read_fasta_records(args.queries)


def run_kmer_hits(args: argparse.Namespace) -> None:
    db, genetic_code, queries = _query_records(args)
    rows = []
    bad = 0
    for record in queries:
        try:
            counts = db.count_hits(record.sequence, genetic_code=genetic_code)
        except MalformedSequenceError as e:
            logger.warning(f"Skipping query {record.group_id}: {e}")
            bad += 1
            continue
        for group, hits in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0])):
            rows.append((record.group_id, group, db.name(group), hits))
    if bad:
        logger.warning(f"{bad} queries could not be processed.")
    TableWriter(["id", "group_id", "group_name", "hits"], args.output).write(rows)


def run_best_group(args: argparse.Namespace) -> None:
    db, genetic_code, queries = _query_records(args)
    rows = []
    unmatched = 0
    for record in queries:
        try:
            result = db.best_group(record.sequence, genetic_code=genetic_code)
        except MalformedSequenceError as e:
            logger.warning(f"Skipping query {record.group_id}: {e}")
            continue
        if result is None:
            unmatched += 1
            continue
        rows.append((record.group_id, result.group_id, db.name(result.group_id), result.score, result.hits))
    logger.info(f"{len(rows)} queries matched, {unmatched} without hits.")
    TableWriter(["id", "group_id", "group_name", "score", "hits"], args.output).write(rows)


def run_kmer_compare(args: argparse.Namespace) -> None:
    if len(args.genomes) < 2:
        raise InvalidParameterError("At least two genomes are needed for a comparison")
    group_ids = [group_id_from_path(path) for path in args.genomes]
    repeated = sorted({g for g in group_ids if group_ids.count(g) > 1})
    if repeated:
        raise InvalidParameterError(
            "Genome files map to the same genome ID", details={"genomes": ",".join(repeated)}
        )
    kmer_size = args.kmer_size or default_kmer_size(args.genetic_code is None, compare=True)
    params = validate_args(KmerDbArgs, kmer_size=kmer_size, max_found=0, genetic_code=args.genetic_code)
    db = KmerDb(params.kmer_size, 0)
    for path, group_id in zip(args.genomes, group_ids):
        name = f"{pathlib.Path(path).name} FASTA file"
        for record in read_fasta_records(path, group_from="file", group_id=group_id):
            if params.genetic_code:
                for protein in translate_frames(record.sequence, params.genetic_code):
                    db.add_sequence(group_id, protein, name)
            else:
                db.add_sequence(group_id, record.sequence, name)
    table = db.xref().to_dataframe(percentages=args.verbose)
    table.insert(0, "name", [db.name(g) for g in table.index])
    TableWriter(list(table.columns), args.output).write_frame(table, index=True)


def run_write_kmers(args: argparse.Namespace) -> None:
    db = KmerDb.load(args.db)
    out_dir = pathlib.Path(args.out_dir)
    if args.clear and out_dir.is_dir():
        for old in out_dir.glob("*.kmer"):
            old.unlink()
    db.write_kmer_files(out_dir, use_names=args.names)


def run_generate_clusters(args: argparse.Namespace) -> None:
    builder = ClusterBuilder()
    builder.add_pairs(read_pairs(args.input, args.col1, args.col2))
    rows = [(c.cluster_id, c.size, c.joined(args.delim)) for c in builder.clusters()]
    TableWriter([f"{args.title}_id", "size", args.title], args.output).write(rows)


def run_identify_clusters(args: argparse.Namespace) -> None:
    params = validate_args(
        ProximityArgs, max_gap=args.max_gap, min_items=args.min_items, delimiter=args.delim
    )
    definitions = ClusterDefinitions.from_file(args.cluster_file, params.delimiter)
    features = read_feature_locations(
        args.input, args.id_col, args.loc_col, args.seq_col, key_col=args.col
    )
    clusterer = ProximityClusterer(params.max_gap, params.min_items)
    found = clusterer.identify(features, definitions)

    columns = [definitions.title, "genome_id", "sequence_id", "start", "end"]
    if args.fids:
        columns.append("features")
    if args.roles:
        columns.append("roles")
    rows = []
    for cluster in found:
        row = [cluster.cluster_key, cluster.genome_id, cluster.sequence_id, cluster.start, cluster.end]
        if args.fids:
            row.append(params.delimiter.join(cluster.identifiers))
        if args.roles:
            row.append(params.delimiter.join(cluster.labels))
        rows.append(row)
    TableWriter(columns, args.output).write(rows)


def run_find_in_clusters(args: argparse.Namespace) -> None:
    clusters = read_proximity_clusters(args.cluster_report)
    features = read_feature_locations(
        args.input, args.id_col, args.loc_col, args.seq_col, key_col=args.col, strict=False
    )
    rows = [
        (
            feature.feature_id, feature.genome_id, feature.sequence_id, feature.start, feature.end,
            feature.key, cluster.cluster_key, cluster.start, cluster.end,
        )
        for feature, cluster in find_in_clusters(features, clusters, args.max_gap)
    ]
    columns = [
        "feature_id", "genome_id", "sequence_id", "start", "end",
        "key", "cluster_id", "cluster_start", "cluster_end",
    ]
    TableWriter(columns, args.output).write(rows)


def run_generate_close_roles(args: argparse.Namespace) -> None:
    params = validate_args(ClosePairArgs, max_gap=args.max_gap, min_occ=args.min_occ)
    features = read_feature_locations(
        args.input,
        id_col=None,
        loc_col=args.loc_col,
        seq_col=args.seq_col,
        key_col=args.role_col,
        genome_col=args.genome_col,
    )
    rows = close_role_pairs(features, params.max_gap, params.min_occ)
    TableWriter(["role1", "role2", "count"], args.output).write(rows)


def run_co_occur(args: argparse.Namespace) -> None:
    params = validate_args(ClosePairArgs, max_gap=args.gap)
    features = read_feature_locations(
        args.input, args.id_col, args.loc_col, args.seq_col, key_col=args.col, strict=False
    )
    counter = CoOccurrenceCounter(params.max_gap)
    counter.add_features(split_roles(features) if args.roles else features)
    TableWriter(["Cat1", "Cat2", "Count", "Percent"], args.output).write(counter.rows())


def run_related_by_clusters(args: argparse.Namespace) -> None:
    params = validate_args(
        SignatureArgs,
        min_in=args.min_in,
        max_out=args.max_out,
        sample1=args.sample1,
        sample2=args.sample2,
        iterations=args.iterations,
        seed=args.seed,
    )
    gs1 = read_id_column(args.gs1)
    gs2 = read_id_column(args.gs2)
    features = list(
        read_feature_locations(
            args.input, args.id_col, args.loc_col, args.seq_col,
            key_col=args.col, label_col=args.label_col, strict=False,
        )
    )
    counter, cluster_sets = related_by_clusters(
        gs1,
        gs2,
        features,
        sample1=params.sample1,
        sample2=params.sample2,
        iterations=params.iterations,
        min_in=params.min_in,
        max_out=params.max_out,
        distance=params.distance,
        rng=random.Random(params.seed),
    )

    cs_dir = pathlib.Path(args.out_dir) / "CS"
    cs_dir.mkdir(parents=True, exist_ok=True)
    for old in cs_dir.iterdir():
        if old.is_file():
            old.unlink()
    for iteration, clusters in enumerate(cluster_sets):
        with open(cs_dir / str(iteration), "w") as fh:
            for cluster in clusters:
                for peg in cluster:
                    fh.write(f"{peg.feature_id}\t{peg.key}\t{peg.label or ''}\n")
                fh.write("//\n")
    TableWriter(
        ["family1", "family2", "count"],
        pathlib.Path(args.out_dir) / "related.signature.families",
        header=False,
    ).write(counter.rows())


COMMANDS: Dict[str, Callable[[argparse.Namespace], None]] = {
    "build-kmer-db": run_build_kmer_db,
    "discriminating-kmers": run_discriminating_kmers,
    "kmer-hits": run_kmer_hits,
    "best-group": run_best_group,
    "kmer-compare": run_kmer_compare,
    "write-kmers": run_write_kmers,
    "generate-clusters": run_generate_clusters,
    "identify-clusters": run_identify_clusters,
    "find-in-clusters": run_find_in_clusters,
    "generate-close-roles": run_generate_close_roles,
    "co-occur": run_co_occur,
    "related-by-clusters": run_related_by_clusters,
}


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Parses the command line, runs one subcommand and returns the exit status."""
    args = get_cli_parser().parse_args(argv)
    setup_logging(args.log_level, args.log_file, args.json_logs)
    logger.debug(f"Running {args.command} with {vars(args)}")
    try:
        COMMANDS[args.command](args)
    except P3CoreException as e:
        logger.error(f"{args.command} failed: {e}")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
