"""
Pytest unit tests for helpers in p3core.utils.
"""

import gzip
import pathlib

import pytest

from p3core.exceptions import InvalidLocationError
from p3core.utils import (
    genome_id_from_feature,
    group_id_from_path,
    open_file_transparently,
    parse_location,
)

# --- open_file_transparently ---


def test_open_plain_file(tmp_path: pathlib.Path):
    path = tmp_path / "plain.txt"
    path.write_text("hello\n")
    with open_file_transparently(path) as fh:
        assert fh.read() == "hello\n"


def test_open_gzip_file(tmp_path: pathlib.Path):
    path = tmp_path / "packed.txt.gz"
    with gzip.open(path, "wt") as fh:
        fh.write("packed\n")
    with open_file_transparently(str(path)) as fh:
        assert fh.read() == "packed\n"


def test_write_mode_creates_gzip(tmp_path: pathlib.Path):
    path = tmp_path / "out.tsv.gz"
    with open_file_transparently(path, "wt") as fh:
        fh.write("a\tb\n")
    with gzip.open(path, "rt") as fh:
        assert fh.read() == "a\tb\n"


def test_open_missing_file(tmp_path: pathlib.Path):
    with pytest.raises(FileNotFoundError):
        open_file_transparently(tmp_path / "missing.txt")


def test_open_rejects_bad_path_type():
    with pytest.raises(TypeError):
        open_file_transparently(42)  # type: ignore[arg-type]


# --- parse_location ---


@pytest.mark.parametrize(
    "location, expected",
    [
        ("100..250", (100, 250)),
        ("complement(300..400)", (300, 400)),
        ("join(10..20,50..90)", (10, 90)),
        ("<1..>200", (1, 200)),
        ("complement(join(500..600,100..200))", (100, 600)),
    ],
)
def test_parse_location(location: str, expected):
    assert parse_location(location) == expected


@pytest.mark.parametrize("location", ["", "nowhere", "100-200", None])
def test_parse_location_invalid(location):
    with pytest.raises(InvalidLocationError):
        parse_location(location)


# --- genome_id_from_feature ---


@pytest.mark.parametrize(
    "feature_id, expected",
    [
        ("fig|83333.1.peg.4", "83333.1"),
        ("fig|100.2.rna.1", "100.2"),
        ("peg_without_genome", None),
        ("", None),
    ],
)
def test_genome_id_from_feature(feature_id: str, expected):
    assert genome_id_from_feature(feature_id) == expected


# --- group_id_from_path ---


@pytest.mark.parametrize(
    "path, expected",
    [
        ("83333.1.fna", "83333.1"),
        ("/data/genomes/83333.2.fna.gz", "83333.2"),
        ("proteins.faa", "proteins"),
        ("plain", "plain"),
        (pathlib.Path("dir.d") / "sample", "sample"),
    ],
)
def test_group_id_from_path_strips_last_extension(path, expected):
    assert group_id_from_path(path) == expected
