"""
Pytest unit tests for the file readers in p3core.sources.
"""

import gzip
import pathlib

import pytest

from p3core.exceptions import InvalidLocationError, InvalidParameterError, MissingFileError
from p3core.sequence import KmerRecord
from p3core.sources import (
    read_fasta_records,
    read_feature_locations,
    read_id_column,
    read_pairs,
    read_proximity_clusters,
    read_table,
    read_table_records,
    resolve_column,
)

# --- resolve_column ---


@pytest.mark.parametrize(
    "spec, expected",
    [(1, 0), ("2", 1), (0, 2), ("0", 2), ("location", 1), ("patric_id", 0)],
)
def test_resolve_column(spec, expected):
    assert resolve_column(spec, ["feature.patric_id", "location", "product"]) == expected


@pytest.mark.parametrize("spec", [4, "-1", "missing"])
def test_resolve_column_errors(spec):
    with pytest.raises(InvalidParameterError):
        resolve_column(spec, ["a", "b", "c"])


# --- Sequence sources ---


def test_read_fasta_records_by_id(fasta_file: pathlib.Path):
    records = list(read_fasta_records(fasta_file))
    assert records == [
        KmerRecord("G1", "ACGTAC", "Escherichia coli"),
        KmerRecord("G2", "ACGAAA", "Bacillus subtilis"),
    ]


def test_read_fasta_records_by_file(fasta_file: pathlib.Path):
    records = list(read_fasta_records(fasta_file, group_from="file"))
    assert {r.group_id for r in records} == {"genomes"}
    named = list(read_fasta_records(fasta_file, group_from="file", group_id="83333.1"))
    assert named[0].group_id == "83333.1"


def test_read_fasta_records_by_file_keeps_dotted_genome_id(tmp_path: pathlib.Path):
    path = tmp_path / "83333.1.fna"
    path.write_text(">c1\nACGT\n>c2\nTTGA\n")
    assert {r.group_id for r in read_fasta_records(path, group_from="file")} == {"83333.1"}


def test_read_fasta_records_gzip(tmp_path: pathlib.Path):
    path = tmp_path / "seqs.fa.gz"
    with gzip.open(path, "wt") as fh:
        fh.write(">X\nACGT\n")
    assert list(read_fasta_records(path)) == [KmerRecord("X", "ACGT", None)]


def test_read_fasta_records_bad_arguments(tmp_path: pathlib.Path, fasta_file: pathlib.Path):
    with pytest.raises(MissingFileError):
        list(read_fasta_records(tmp_path / "none.fa"))
    with pytest.raises(InvalidParameterError):
        list(read_fasta_records(fasta_file, group_from="description"))


def test_read_table_records(tmp_path: pathlib.Path):
    path = tmp_path / "seqs.tbl"
    path.write_text("genome_id\tgenome_name\tsequence\n1.1\tAlpha\tACGT\n1.2\t\tTTGA\n")
    records = list(read_table_records(path, id_col="genome_id", name_col="genome_name"))
    assert records == [KmerRecord("1.1", "ACGT", "Alpha"), KmerRecord("1.2", "TTGA", None)]


def test_read_table_without_header(tmp_path: pathlib.Path):
    path = tmp_path / "pairs.tbl"
    path.write_text("a\tb\nc\td\n")
    table = read_table(path, has_header=False)
    assert list(table.columns) == ["1", "2"]
    assert list(read_pairs(path, has_header=False)) == [("a", "b"), ("c", "d")]


def test_read_empty_table(tmp_path: pathlib.Path):
    path = tmp_path / "empty.tbl"
    path.write_text("")
    assert list(read_pairs(path)) == []
    assert read_id_column(path) == []


def test_read_pairs_by_name(tmp_path: pathlib.Path):
    path = tmp_path / "pairs.tbl.gz"
    with gzip.open(path, "wt") as fh:
        fh.write("x\tfam1\tfam2\n1\tA\tB\n2\tB\tC\n")
    assert list(read_pairs(path, "fam1", "fam2")) == [("A", "B"), ("B", "C")]


def test_read_id_column(tmp_path: pathlib.Path):
    path = tmp_path / "genomes.tbl"
    path.write_text("genome_id\tname\n83333.1\tE. coli\n\t\n100.2\tOther\n")
    assert read_id_column(path) == ["83333.1", "100.2"]


def test_missing_table(tmp_path: pathlib.Path):
    with pytest.raises(MissingFileError):
        read_table(tmp_path / "absent.tbl")


# --- Feature tables ---


def test_read_feature_locations(feature_table: pathlib.Path):
    features = list(read_feature_locations(feature_table))
    assert len(features) == 6
    first = features[0]
    assert first.feature_id == "fig|83333.1.peg.1"
    assert (first.genome_id, first.sequence_id) == ("83333.1", "c1")
    assert (first.start, first.end) == (1, 101)
    assert first.key == "roleA"
    assert features[-1].genome_id == "100.2"


def test_read_feature_locations_with_genome_column(tmp_path: pathlib.Path):
    path = tmp_path / "roles.tbl"
    path.write_text(
        "genome\tcontig\tloc\trole\n"
        "1.1\tc1\tcomplement(100..200)\tRole A\n"
        "1.1\tc1\t300..400\t\n"
    )
    features = list(
        read_feature_locations(path, id_col=None, loc_col=3, seq_col=2, key_col=4, genome_col=1)
    )
    assert len(features) == 1
    assert features[0].strand == "-"
    assert features[0].feature_id == ""
    assert (features[0].start, features[0].end) == (100, 200)


def test_read_feature_locations_needs_genome(feature_table: pathlib.Path):
    with pytest.raises(InvalidParameterError):
        list(read_feature_locations(feature_table, id_col=None))


def test_bad_location_strict_and_lenient(tmp_path: pathlib.Path):
    path = tmp_path / "bad.tbl"
    path.write_text(
        "patric_id\tsequence_id\tlocation\trole\n"
        "fig|1.1.peg.1\tc1\tnowhere\tA\n"
        "fig|1.1.peg.2\tc1\t5..50\tB\n"
    )
    with pytest.raises(InvalidLocationError):
        list(read_feature_locations(path))
    lenient = list(read_feature_locations(path, strict=False))
    assert [f.key for f in lenient] == ["B"]


def test_read_proximity_clusters(tmp_path: pathlib.Path):
    path = tmp_path / "report.tbl"
    path.write_text("cluster_id\tgenome_id\tsequence_id\tstart\tend\n3\t1.1\tc1\t100\t900\n")
    clusters = read_proximity_clusters(path)
    assert len(clusters) == 1
    assert (clusters[0].cluster_key, clusters[0].start, clusters[0].end) == ("3", 100, 900)


def test_read_proximity_clusters_too_few_columns(tmp_path: pathlib.Path):
    path = tmp_path / "report.tbl"
    path.write_text("cluster_id\tgenome_id\n3\t1.1\n")
    with pytest.raises(InvalidParameterError):
        read_proximity_clusters(path)


def test_read_proximity_clusters_non_numeric_span(tmp_path: pathlib.Path):
    path = tmp_path / "report.tbl"
    path.write_text("cluster_id\tgenome_id\tsequence_id\tstart\tend\nCL1\t83333.1\tc1\tabc\t200\n")
    with pytest.raises(InvalidLocationError) as excinfo:
        read_proximity_clusters(path)
    assert excinfo.value.details["row"] == "CL1 83333.1 c1 abc 200"
