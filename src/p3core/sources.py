"""
File-based sources feeding the k-mer index and the clustering tools.

Tables are tab-delimited with a header row unless told otherwise; columns are
chosen by header name or 1-based index. Gzipped inputs are read transparently.
"""

import logging
import pathlib
from typing import Iterator, List, Optional, Sequence, Union

import pandas as pd
from Bio import SeqIO

from .exceptions import InvalidLocationError, InvalidParameterError, MissingFileError
from .genomic_types import ObjectPair
from .proximity import FeatureLocation, ProximityCluster
from .sequence import KmerRecord
from .utils import genome_id_from_feature, group_id_from_path, open_file_transparently, parse_location

logger = logging.getLogger(__name__)

PathLike = Union[str, pathlib.Path]
ColumnSpec = Union[int, str]


def resolve_column(spec: ColumnSpec, headers: Sequence[str]) -> int:
    """
    Turns a column spec into a 0-based position.

    Integers and digit strings are 1-based indices (``0`` means the last
    column); anything else is matched against the header names.

    Raises:
        InvalidParameterError: If the column does not exist.
    """
    headers = [str(h) for h in headers]
    if isinstance(spec, int) or (isinstance(spec, str) and spec.isdigit()):
        position = int(spec)
        if position == 0:
            position = len(headers)
        if not 1 <= position <= len(headers):
            raise InvalidParameterError(
                "Column index out of range", details={"column": spec, "columns": len(headers)}
            )
        return position - 1
    if spec in headers:
        return headers.index(spec)
    # Qualified names such as ``feature.patric_id`` match on the last component.
    for i, header in enumerate(headers):
        if header.split(".")[-1] == spec:
            return i
    raise InvalidParameterError(
        "Column not found in headers", details={"column": spec, "headers": ",".join(headers)}
    )


def read_table(path: PathLike, has_header: bool = True) -> pd.DataFrame:
    """Loads a tab-delimited file as strings; empty cells stay empty strings."""
    path = pathlib.Path(path)
    if not path.is_file():
        raise MissingFileError("Input file not found", details={"path": str(path)})
    try:
        table = pd.read_csv(
            path,
            sep="\t",
            header=0 if has_header else None,
            dtype=str,
            keep_default_na=False,
            compression="infer",
        )
    except pd.errors.EmptyDataError:
        logger.warning(f"Input file {path} is empty.")
        return pd.DataFrame()
    if not has_header:
        table.columns = [str(i) for i in range(1, len(table.columns) + 1)]
    return table


def _column(table: pd.DataFrame, spec: ColumnSpec) -> pd.Series:
    return table.iloc[:, resolve_column(spec, list(table.columns))]


def read_fasta_records(
    path: PathLike, group_from: str = "id", group_id: Optional[str] = None
) -> Iterator[KmerRecord]:
    """
    Yields one record per FASTA entry.

    With ``group_from="id"`` the record ID names the group and the description
    its display name. With ``group_from="file"`` every record belongs to
    ``group_id`` (the file name without its last extension if not given).
    """
    if group_from not in ("id", "file"):
        raise InvalidParameterError("group_from must be 'id' or 'file'", details={"group_from": group_from})
    path = pathlib.Path(path)
    if not path.is_file():
        raise MissingFileError("FASTA file not found", details={"path": str(path)})
    file_group = group_id or group_id_from_path(path)
    count = 0
    with open_file_transparently(path) as handle:
        for record in SeqIO.parse(handle, "fasta"):
            count += 1
            if group_from == "file":
                yield KmerRecord(file_group, str(record.seq))
                continue
            name = record.description[len(record.id) :].strip() or None
            yield KmerRecord(record.id, str(record.seq), name)
    logger.debug(f"{count} FASTA records read from {path}")


def read_table_records(
    path: PathLike,
    id_col: ColumnSpec = 1,
    seq_col: ColumnSpec = 0,
    name_col: Optional[ColumnSpec] = None,
    has_header: bool = True,
) -> Iterator[KmerRecord]:
    """Yields records from a table of group IDs and sequences (sequence in the last column by default)."""
    table = read_table(path, has_header)
    if table.empty:
        return
    ids = _column(table, id_col)
    sequences = _column(table, seq_col)
    names = _column(table, name_col) if name_col is not None else None
    for i in range(len(table)):
        name = names.iat[i] if names is not None else None
        yield KmerRecord(ids.iat[i], sequences.iat[i], name or None)


def read_pairs(
    path: PathLike, col1: ColumnSpec = 1, col2: ColumnSpec = 2, has_header: bool = True
) -> Iterator[ObjectPair]:
    table = read_table(path, has_header)
    if table.empty:
        return
    first, second = _column(table, col1), _column(table, col2)
    yield from zip(first.tolist(), second.tolist())


def read_id_column(path: PathLike, col: ColumnSpec = 1, has_header: bool = True) -> List[str]:
    """Reads a single column of IDs, such as a genome set."""
    table = read_table(path, has_header)
    if table.empty:
        return []
    return [value for value in _column(table, col).tolist() if value]


def read_feature_locations(
    path: PathLike,
    id_col: Optional[ColumnSpec] = "patric_id",
    loc_col: ColumnSpec = "location",
    seq_col: ColumnSpec = "sequence_id",
    key_col: ColumnSpec = 0,
    genome_col: Optional[ColumnSpec] = None,
    label_col: Optional[ColumnSpec] = None,
    strict: bool = True,
) -> Iterator[FeatureLocation]:
    """
    Yields located features from a feature table.

    The genome is taken from ``genome_col`` when given, otherwise from the
    feature ID. Without ``id_col`` the feature IDs are left empty and
    ``genome_col`` must be given. Rows without a key, and rows whose genome
    cannot be found, are skipped.

    Raises:
        InvalidLocationError: For an unparseable location when ``strict`` is set;
            otherwise such rows are logged and skipped.
    """
    table = read_table(path)
    if table.empty:
        return
    if id_col is None and genome_col is None:
        raise InvalidParameterError("A genome column is needed when there is no feature ID column")
    ids = _column(table, id_col) if id_col is not None else None
    locations = _column(table, loc_col)
    sequences = _column(table, seq_col)
    keys = _column(table, key_col)
    genomes = _column(table, genome_col) if genome_col is not None else None
    labels = _column(table, label_col) if label_col is not None else None

    skipped = 0
    for i in range(len(table)):
        fid = ids.iat[i] if ids is not None else ""
        key = keys.iat[i]
        genome_id = genomes.iat[i] if genomes is not None else genome_id_from_feature(fid)
        if not key or not genome_id:
            skipped += 1
            continue
        try:
            start, end = parse_location(locations.iat[i])
        except InvalidLocationError:
            if strict:
                raise
            logger.warning(f"Skipping feature {fid} with bad location {locations.iat[i]!r}.")
            skipped += 1
            continue
        strand = "-" if "complement" in locations.iat[i] else "+"
        yield FeatureLocation(
            feature_id=fid,
            genome_id=genome_id,
            sequence_id=sequences.iat[i],
            start=start,
            end=end,
            key=key,
            label=labels.iat[i] if labels is not None else None,
            strand=strand,
        )
    if skipped:
        logger.info(f"{skipped} feature rows skipped in {path}.")


def read_proximity_clusters(path: PathLike) -> List[ProximityCluster]:
    """Reads cluster occurrences written by ``identify-clusters`` (first five columns)."""
    table = read_table(path)
    clusters: List[ProximityCluster] = []
    for row in table.itertuples(index=False, name=None):
        if len(row) < 5:
            raise InvalidParameterError(
                "Cluster report needs at least five columns", details={"path": str(path)}
            )
        cluster_id, genome_id, sequence_id, start, end = row[:5]
        try:
            span = int(start), int(end)
        except ValueError as e:
            raise InvalidLocationError(
                "Cluster report row has a non-numeric span",
                details={"path": str(path), "row": " ".join(row[:5])},
            ) from e
        clusters.append(ProximityCluster(cluster_id, genome_id, sequence_id, *span))
    return clusters

