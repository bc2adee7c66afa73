"""
Pytest unit tests for the KmerDb inverted index in p3core.kmer_database.
"""

import gzip
import json
import pathlib

import pandas as pd
import pytest

from p3core.exceptions import (
    DatabaseCorruptedError,
    DatabaseNotFoundError,
    InvalidParameterError,
    MalformedSequenceError,
)
from p3core.kmer_database import KmerDb
from p3core.sequence import KmerRecord

# --- Construction ---


@pytest.mark.parametrize("kmer_size, max_found", [(0, 10), (-3, 10), (3, -1)])
def test_invalid_construction(kmer_size: int, max_found: int):
    with pytest.raises(InvalidParameterError):
        KmerDb(kmer_size=kmer_size, max_found=max_found)


def test_add_sequence_builds_inverted_index(two_group_db: KmerDb):
    assert two_group_db.groups_of("ACG") == ["G1", "G2"]
    assert two_group_db.groups_of("cgt") == ["G1"]
    assert two_group_db.groups_of("TTT") == []
    assert two_group_db.kmer_count == 7
    assert len(two_group_db) == 7
    assert "GAA" in two_group_db
    assert 42 not in two_group_db


def test_group_spanning_several_sequences():
    db = KmerDb(kmer_size=3, max_found=0)
    db.add_sequence("G1", "AAAC")
    db.add_sequence("G1", "AAAG", "Genome one")
    assert db.groups_of("AAA") == ["G1"]
    info = db.group_info("G1")
    assert info.sequences == 2
    assert info.letters == 8
    assert info.kmers == 4
    assert db.name("G1") == "Genome one"


def test_name_falls_back_to_group_id():
    db = KmerDb(kmer_size=3)
    db.add_sequence("G9", "ACGT")
    assert db.name("G9") == "G9"
    assert db.name("unknown") == "unknown"


def test_all_groups_in_insertion_order():
    db = KmerDb(kmer_size=2)
    for group in ("zeta", "alpha", "mid"):
        db.add_sequence(group, "ACGT")
    assert db.all_groups() == ["zeta", "alpha", "mid"]


def test_short_sequence_registers_group_without_kmers():
    db = KmerDb(kmer_size=5)
    db.add_sequence("E", "ACG")
    assert db.all_groups() == ["E"]
    assert db.kmer_count == 0


@pytest.mark.parametrize("group_id, sequence", [("", "ACGT"), ("G1", "AC GT"), ("G1", None)])
def test_malformed_sequences(group_id, sequence):
    db = KmerDb(kmer_size=2)
    with pytest.raises(MalformedSequenceError):
        db.add_sequence(group_id, sequence)


def test_add_records_counts_records():
    db = KmerDb(kmer_size=3)
    count = db.add_records([KmerRecord("A", "ACGT", "a"), KmerRecord("B", "CGTA")])
    assert count == 2
    assert db.groups_of("CGT") == ["A", "B"]


# --- Discriminators and finalization ---


def test_compute_discriminators_drops_shared_kmers(two_group_db: KmerDb):
    two_group_db.compute_discriminators()
    assert "ACG" not in two_group_db
    assert sorted(k for k in two_group_db.kmer_list() if two_group_db.groups_of(k) == ["G1"]) == [
        "CGT",
        "GTA",
        "TAC",
    ]
    assert sorted(k for k in two_group_db.kmer_list() if two_group_db.groups_of(k) == ["G2"]) == [
        "AAA",
        "CGA",
        "GAA",
    ]


def test_compute_discriminators_is_idempotent(two_group_db: KmerDb):
    two_group_db.compute_discriminators()
    first = dict(two_group_db.items())
    two_group_db.compute_discriminators()
    assert dict(two_group_db.items()) == first


def test_finalize_enforces_max_found():
    db = KmerDb(kmer_size=3, max_found=1)
    db.add_sequence("G1", "ACGTAC")
    db.add_sequence("G2", "ACGAAA")
    db.finalize()
    assert all(len(groups) <= 1 for _, groups in db.items())
    assert "ACG" not in db
    # Common k-mers stay out even when a later group contains them.
    db.add_sequence("G3", "ACG")
    assert db.groups_of("ACG") == []


def test_finalize_with_zero_max_found_keeps_everything(two_group_db: KmerDb):
    two_group_db.finalize()
    assert two_group_db.groups_of("ACG") == ["G1", "G2"]
    assert two_group_db.kmer_count == 7


def test_occurrence_counts_until_finalized(two_group_db: KmerDb):
    assert two_group_db.occurrences("ACG") == 2
    assert two_group_db.occurrences("cgt") == 1
    assert two_group_db.occurrences("TTT") == 0
    two_group_db.finalize()
    assert two_group_db.occurrences("ACG") == 0
    assert two_group_db.groups_of("ACG") == ["G1", "G2"]


def test_stats_reports_counts(two_group_db: KmerDb):
    stats = two_group_db.stats()
    assert stats["num_kmers"] == 7
    assert stats["num_groups"] == 2
    assert stats["group_names_preview"] == ["Group one", "Group two"]


# --- Queries ---


def test_count_hits_counts_occurrences(two_group_db: KmerDb):
    assert two_group_db.count_hits("ACGAAAA") == {"G1": 1, "G2": 5}


def test_count_hits_accumulates_into_counts(two_group_db: KmerDb):
    counts = {"G1": 10}
    result = two_group_db.count_hits("CGT", counts)
    assert result is counts
    assert counts == {"G1": 11}


def test_count_hits_does_not_mutate_index(two_group_db: KmerDb):
    before = dict(two_group_db.items())
    two_group_db.count_hits("ACGTACGAAA")
    assert dict(two_group_db.items()) == before


def test_best_group_no_hits(two_group_db: KmerDb):
    assert two_group_db.best_group("TTTTTT") is None


def test_best_group_highest_hits(two_group_db: KmerDb):
    result = two_group_db.best_group("GAAAA")
    assert result.group_id == "G2"
    assert result.hits == 3
    assert result.score == 2


def test_best_group_tie_on_hits_prefers_distinct_kmers():
    db = KmerDb(kmer_size=3, max_found=0)
    db.add_sequence("G1", "AAAA")
    db.add_sequence("G2", "AACC")
    result = db.best_group("AAAACC")
    assert (result.group_id, result.hits, result.score) == ("G2", 2, 2)


def test_best_group_full_tie_prefers_lowest_group_id():
    db = KmerDb(kmer_size=3, max_found=0)
    db.add_sequence("G2", "CGTA")
    db.add_sequence("G1", "ACGT")
    result = db.best_group("ACGTA")
    assert result.group_id == "G1"
    assert result.hits == 2


def test_mirrored_index_matches_either_strand():
    db = KmerDb(kmer_size=3, mirror=True)
    db.add_sequence("G1", "AACG")
    assert db.count_hits("CGTT") == {"G1": 2}
    assert db.groups_of("GTT") == ["G1"]


def test_protein_index_with_genetic_code():
    db = KmerDb(kmer_size=3, max_found=0)
    db.add_sequence("P", "MKV")
    assert db.count_hits("ATGAAAGTT", genetic_code=11) == {"P": 1}
    assert db.count_hits("ATGAAAGTT") == {}


# --- Persistence ---


@pytest.mark.parametrize("filename", ["db.json", "db.json.gz"])
def test_save_load_round_trip(two_group_db: KmerDb, tmp_path: pathlib.Path, filename: str):
    two_group_db.finalize()
    path = two_group_db.save(tmp_path / filename)
    loaded = KmerDb.load(path)
    assert loaded.kmer_size == 3
    assert loaded.max_found == 0
    assert loaded.all_groups() == ["G1", "G2"]
    assert loaded.name("G2") == "Group two"
    for query in ("ACGTAC", "GAAAA", "TTTT"):
        assert loaded.count_hits(query) == two_group_db.count_hits(query)


def test_saved_document_layout(two_group_db: KmerDb, tmp_path: pathlib.Path):
    path = two_group_db.save(tmp_path / "db.json")
    document = json.loads(path.read_text())
    assert document["version"] == 1
    assert document["kmerSize"] == 3
    assert document["entries"]["ACG"] == ["G1", "G2"]
    assert document["groups"]["G1"]["name"] == "Group one"
    assert document["groups"]["G1"]["stats"]["kmers"] == 4


def test_gz_file_is_compressed(two_group_db: KmerDb, tmp_path: pathlib.Path):
    path = two_group_db.save(tmp_path / "db.json.gz")
    with gzip.open(path, "rt") as fh:
        assert json.load(fh)["kmerSize"] == 3


def test_load_missing_file(tmp_path: pathlib.Path):
    with pytest.raises(DatabaseNotFoundError):
        KmerDb.load(tmp_path / "absent.json")


def _valid_document() -> dict:
    return {
        "version": 1,
        "kmerSize": 3,
        "maxFound": 0,
        "mirror": False,
        "entries": {"ACG": ["G1"]},
        "groups": {"G1": {"name": None, "stats": {"sequences": 1, "letters": 3, "kmers": 1}}},
    }


@pytest.mark.parametrize(
    "mutate",
    [
        lambda d: d.update(version=2),
        lambda d: d.pop("entries"),
        lambda d: d.update(kmerSize=0),
        lambda d: d["entries"].update(ACGT=["G1"]),
        lambda d: d["entries"].update(CCC=["G7"]),
        lambda d: d["entries"].update(CCC=[]),
    ],
)
def test_load_rejects_invalid_documents(tmp_path: pathlib.Path, mutate):
    document = _valid_document()
    mutate(document)
    path = tmp_path / "bad.json"
    path.write_text(json.dumps(document))
    with pytest.raises(DatabaseCorruptedError):
        KmerDb.load(path)


def test_load_rejects_unparseable_json(tmp_path: pathlib.Path):
    path = tmp_path / "broken.json"
    path.write_text('{"version": 1, "kmerSize": ')
    with pytest.raises(DatabaseCorruptedError):
        KmerDb.load(path)


def test_load_rejects_truncated_gzip(two_group_db: KmerDb, tmp_path: pathlib.Path):
    path = two_group_db.save(tmp_path / "db.json.gz")
    data = path.read_bytes()
    path.write_bytes(data[: len(data) // 2])
    with pytest.raises(DatabaseCorruptedError):
        KmerDb.load(path)


# --- Export ---


def test_to_dataframe_presence_matrix(two_group_db: KmerDb):
    frame = two_group_db.to_dataframe()
    assert frame.index.name == "kmer"
    assert list(frame.columns) == ["G1", "G2"]
    assert frame.loc["ACG"].tolist() == [True, True]
    assert frame.loc["AAA"].tolist() == [False, True]


def test_save_matrix_parquet(two_group_db: KmerDb, tmp_path: pathlib.Path):
    path = two_group_db.save_matrix(tmp_path / "matrix.parquet")
    frame = pd.read_parquet(path)
    assert frame.shape == (7, 2)
    assert bool(frame.loc["TAC", "G1"]) is True


@pytest.mark.parametrize("use_names, expected", [(False, "G1.kmer"), (True, "Group one.kmer")])
def test_write_kmer_files(two_group_db: KmerDb, tmp_path: pathlib.Path, use_names: bool, expected: str):
    paths = two_group_db.write_kmer_files(tmp_path / "kmers", use_names=use_names)
    assert paths["G1"].name == expected
    assert sorted(paths["G1"].read_text().split()) == ["ACG", "CGT", "GTA", "TAC"]
