import pathlib

import pytest

from p3core.kmer_database import KmerDb
from p3core.proximity import FeatureLocation


@pytest.fixture
def two_group_db() -> KmerDb:
    """
    K-mer database with k=3 over two small groups sharing only ACG.
    """
    db = KmerDb(kmer_size=3, max_found=0)
    db.add_sequence("G1", "ACGTAC", "Group one")
    db.add_sequence("G2", "ACGAAA", "Group two")
    return db


@pytest.fixture
def fasta_file(tmp_path: pathlib.Path) -> pathlib.Path:
    path = tmp_path / "genomes.fasta"
    path.write_text(
        ">G1 Escherichia coli\nACGTAC\n"
        ">G2 Bacillus subtilis\nACGA\nAA\n"
    )
    return path


@pytest.fixture
def feature_table(tmp_path: pathlib.Path) -> pathlib.Path:
    """Feature table with two contigs of genome 83333.1 and one of 100.2."""
    rows = [
        ("fig|83333.1.peg.1", "c1", 1, "roleA"),
        ("fig|83333.1.peg.2", "c1", 150, "roleB"),
        ("fig|83333.1.peg.3", "c1", 300, "roleC"),
        ("fig|83333.1.peg.4", "c1", 9000, "roleA"),
        ("fig|83333.1.peg.5", "c2", 1, "roleA"),
        ("fig|100.2.peg.1", "c9", 500, "roleB"),
    ]
    lines = ["patric_id\tsequence_id\tlocation\tproduct"]
    for fid, contig, start, role in rows:
        lines.append(f"{fid}\t{contig}\t{start}..{start + 100}\t{role}")
    path = tmp_path / "features.tbl"
    path.write_text("\n".join(lines) + "\n")
    return path


def make_feature(fid: str, start: int, end: int, key: str, contig: str = "c1", genome: str = "83333.1") -> FeatureLocation:
    return FeatureLocation(fid, genome, contig, start, end, key)


@pytest.fixture
def feature_factory():
    return make_feature
