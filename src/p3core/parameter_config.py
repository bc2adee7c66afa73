"""
Command-line parameters: argparse layout and pydantic validation.
"""

import argparse
import pathlib
from typing import Optional, Type, TypeVar

from Bio.Data import CodonTable
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from .exceptions import InvalidParameterError

ArgsModel = TypeVar("ArgsModel", bound=BaseModel)

DNA_KMER_SIZE = 14
PROTEIN_KMER_SIZE = 8
COMPARE_DNA_KMER_SIZE = 12


# --- Pydantic models for validated parameters ---
class KmerDbArgs(BaseModel):
    kmer_size: int = Field(15, description="Length of k-mers.", gt=0)
    max_found: int = Field(
        10, description="Maximum groups per useful k-mer; 0 keeps every k-mer.", ge=0
    )
    mirror: bool = Field(False, description="Index both strands of DNA.")
    discriminating: bool = Field(False, description="Keep only single-group k-mers.")
    genetic_code: Optional[int] = Field(
        None, description="Translate DNA queries with this genetic code."
    )

    @field_validator("genetic_code")
    @classmethod
    def check_genetic_code(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v not in CodonTable.unambiguous_dna_by_id:
            raise ValueError(f"Unknown genetic code: {v}")
        return v

    @model_validator(mode="after")
    def check_strand_mode(self) -> "KmerDbArgs":
        if self.mirror and self.genetic_code is not None:
            raise ValueError("Protein k-mers from translated queries cannot be mirrored.")
        return self


class ProximityArgs(BaseModel):
    max_gap: int = Field(2000, description="Largest gap between clustered features.", ge=0)
    min_items: int = Field(3, description="Smallest reported cluster.", ge=1)
    delimiter: str = Field("::", description="Member list delimiter.", min_length=1)


class ClosePairArgs(BaseModel):
    max_gap: int = Field(2000, description="Largest gap between close features.", ge=0)
    min_occ: int = Field(4, description="Minimum occurrences of a reported pair.", ge=1)


class SignatureArgs(BaseModel):
    min_in: float = Field(1.0, description="Fraction of set 1 containing a family.", ge=0.0, le=1.0)
    max_out: float = Field(0.0, description="Fraction of set 2 allowed to contain a family.", ge=0.0, le=1.0)
    sample1: int = Field(20, description="Sample size drawn from set 1.", gt=0)
    sample2: int = Field(20, description="Sample size drawn from set 2.", gt=0)
    iterations: int = Field(10, description="Number of random samples.", gt=0)
    distance: int = Field(2000, description="Midpoint distance for clustering.", ge=0)
    seed: Optional[int] = Field(None, description="Random seed.")

    @model_validator(mode="after")
    def check_fractions(self) -> "SignatureArgs":
        if self.min_in < self.max_out:
            raise ValueError("min_in must not be lower than max_out.")
        return self


def validate_args(model: Type[ArgsModel], **values) -> ArgsModel:
    """
    Builds a parameter model, turning validation failures into InvalidParameterError.

    ``None`` values are dropped so model defaults apply.
    """
    try:
        return model(**{k: v for k, v in values.items() if v is not None})
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'args'}: {err['msg']}" for err in e.errors()
        )
        raise InvalidParameterError(
            f"Invalid {model.__name__} parameters", details={"errors": problems}
        ) from e


def default_kmer_size(dna: bool, compare: bool = False) -> int:
    if not dna:
        return PROTEIN_KMER_SIZE
    return COMPARE_DNA_KMER_SIZE if compare else DNA_KMER_SIZE


def _add_output(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-o", "--output", type=pathlib.Path, default=None,
        help="Output file (stdout if omitted; .gz compresses).",
    )


def _add_feature_columns(parser: argparse.ArgumentParser, key_help: str) -> None:
    parser.add_argument("--id-col", default="patric_id", help="Feature ID column.")
    parser.add_argument("--loc-col", default="location", help="Location column.")
    parser.add_argument("--seq-col", default="sequence_id", help="Sequence ID column.")
    parser.add_argument("-c", "--col", default="0", help=key_help)


def get_cli_parser() -> argparse.ArgumentParser:
    """
    Configures and returns the ArgumentParser for the p3core command.
    """
    parser = argparse.ArgumentParser(
        prog="p3core",
        description="K-mer signature databases and functional clustering for genome annotation tables.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--log-level", default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level.",
    )
    parser.add_argument("--log-file", type=pathlib.Path, default=None, help="Also log to this file.")
    parser.add_argument("--json-logs", action="store_true", help="Log as JSON lines.")
    commands = parser.add_subparsers(dest="command", required=True)

    build = commands.add_parser(
        "build-kmer-db", help="Build a k-mer database from grouped sequences.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    build.add_argument("inputs", nargs="+", type=pathlib.Path, help="Sequence table(s) or FASTA file(s).")
    build.add_argument("--db", type=pathlib.Path, required=True, help="Database output file (.json or .json.gz).")
    build.add_argument("--fasta", action="store_true", help="Inputs are FASTA.")
    build.add_argument(
        "--group-from", choices=["id", "file"], default="id",
        help="FASTA group source: record ID or file name.",
    )
    build.add_argument("--id-col", default="1", help="Group ID column.")
    build.add_argument("--seq-col", default="0", help="Sequence column.")
    build.add_argument("--name-col", default=None, help="Group name column.")
    build.add_argument("-k", "--kmer-size", type=int, default=15, help="K-mer size.")
    build.add_argument("-m", "--max", dest="max_found", type=int, default=10, help="Maximum groups per useful k-mer.")
    build.add_argument("-D", "--discriminating", action="store_true", help="Keep discriminating k-mers only.")
    build.add_argument("--mirror", action="store_true", help="Index both DNA strands.")
    build.add_argument("--matrix", type=pathlib.Path, default=None, help="Also write a Parquet presence matrix.")
    build.add_argument("--progress", action="store_true", help="Show a progress bar.")

    discrim = commands.add_parser(
        "discriminating-kmers", help="Find k-mers unique to one input file each.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    discrim.add_argument("inputs", nargs="+", type=pathlib.Path, help="One sequence file per group.")
    discrim.add_argument("--fasta", action="store_true", help="Inputs are FASTA, not tab-delimited.")
    discrim.add_argument("--groups", default=None, help="Comma-separated group names, one per input.")
    discrim.add_argument("-K", "--kmer", dest="kmer_size", type=int, default=None,
                         help="K-mer size (14 for DNA, 8 for protein).")
    discrim.add_argument("--dna", action="store_true", help="Treat sequences as DNA.")
    discrim.add_argument("--seq-col", default="0", help="Sequence column of tabular inputs.")
    discrim.add_argument("--db", type=pathlib.Path, default=pathlib.Path("discrim.json"), help="Database output file.")

    for name, text in (
        ("kmer-hits", "Count database k-mer hits per group for each query."),
        ("best-group", "Report the best-matching group for each query."),
    ):
        query = commands.add_parser(name, help=text, formatter_class=argparse.ArgumentDefaultsHelpFormatter)
        query.add_argument("db", type=pathlib.Path, help="K-mer database file.")
        query.add_argument("queries", type=pathlib.Path, help="FASTA file of query sequences.")
        query.add_argument("--genetic-code", "--gc", type=int, default=None,
                           help="Translate queries with this genetic code.")
        _add_output(query)

    compare = commands.add_parser(
        "kmer-compare", help="Shared and unique k-mer counts between genomes.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    compare.add_argument("genomes", nargs="+", type=pathlib.Path, help="One FASTA file per genome.")
    compare.add_argument("-k", "--kmer-size", type=int, default=None,
                         help="K-mer size (12 for DNA, 8 for protein).")
    compare.add_argument("--genetic-code", "--gc", type=int, default=None,
                         help="Compare protein k-mers from translated contigs.")
    compare.add_argument("-v", "--verbose", action="store_true", help="Include percentages.")
    _add_output(compare)

    write = commands.add_parser("write-kmers", help="Write one k-mer file per group.")
    write.add_argument("db", type=pathlib.Path, help="K-mer database file.")
    write.add_argument("out_dir", type=pathlib.Path, help="Output directory.")
    write.add_argument("--names", action="store_true", help="Name files after group names.")
    write.add_argument("--clear", action="store_true", help="Erase existing .kmer files first.")

    generate = commands.add_parser(
        "generate-clusters", help="Transitive closure of object pairs.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    generate.add_argument("input", type=pathlib.Path, help="Tab-delimited pair file.")
    generate.add_argument("--col1", default="1", help="First object column.")
    generate.add_argument("--col2", default="2", help="Second object column.")
    generate.add_argument("-t", "--title", default="cluster", help="Output column title.")
    generate.add_argument("--delim", default="::", help="Member delimiter.")
    _add_output(generate)

    identify = commands.add_parser(
        "identify-clusters", help="Find cluster occurrences in a feature table.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    identify.add_argument("cluster_file", type=pathlib.Path, help="Output of generate-clusters.")
    identify.add_argument("input", type=pathlib.Path, help="Feature table.")
    _add_feature_columns(identify, "Role column (0 = last).")
    identify.add_argument("--max-gap", type=int, default=2000, help="Largest gap between clustered features.")
    identify.add_argument("--min-items", type=int, default=3, help="Smallest reported cluster.")
    identify.add_argument("--roles", action="store_true", help="Show the roles in each cluster.")
    identify.add_argument("--fids", action="store_true", help="Show the features in each cluster.")
    identify.add_argument("--delim", default="::", help="List delimiter.")
    _add_output(identify)

    find = commands.add_parser(
        "find-in-clusters", help="Match features against reported clusters.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    find.add_argument("cluster_report", type=pathlib.Path, help="Output of identify-clusters.")
    find.add_argument("input", type=pathlib.Path, help="Feature table.")
    _add_feature_columns(find, "Category column (0 = last).")
    find.add_argument("-g", "--max-gap", type=int, default=2000, help="Cluster span extension.")
    _add_output(find)

    close = commands.add_parser(
        "generate-close-roles", help="Count roles found close together.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    close.add_argument("input", type=pathlib.Path, help="Feature table.")
    close.add_argument("--genome-col", default="1", help="Genome ID column.")
    close.add_argument("--seq-col", default="2", help="Sequence ID column.")
    close.add_argument("--loc-col", default="3", help="Location column.")
    close.add_argument("--role-col", default="4", help="Role column.")
    close.add_argument("--max-gap", type=int, default=2000, help="Largest gap between close features.")
    close.add_argument("--min-occ", type=int, default=4, help="Minimum occurrences of a reported pair.")
    _add_output(close)

    cooccur = commands.add_parser(
        "co-occur", help="Close co-occurrence of singly-occurring categories.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    cooccur.add_argument("input", type=pathlib.Path, help="Feature table.")
    _add_feature_columns(cooccur, "Category column (0 = last).")
    cooccur.add_argument("-g", "--gap", type=int, default=2000, help="Largest gap between close features.")
    cooccur.add_argument("--roles", action="store_true", help="Split functional assignments into roles.")
    _add_output(cooccur)

    related = commands.add_parser(
        "related-by-clusters", help="Families that cluster with signature families.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    related.add_argument("input", type=pathlib.Path, help="Feature table with a family column.")
    related.add_argument("--gs1", type=pathlib.Path, required=True, help="Genome set 1 (first column).")
    related.add_argument("--gs2", type=pathlib.Path, required=True, help="Genome set 2 (first column).")
    _add_feature_columns(related, "Family column (0 = last).")
    related.add_argument("--label-col", default=None, help="Function column.")
    related.add_argument("--sz1", dest="sample1", type=int, default=20, help="Sample size from set 1.")
    related.add_argument("--sz2", dest="sample2", type=int, default=20, help="Sample size from set 2.")
    related.add_argument("--min", dest="min_in", type=float, default=1.0, help="Minimum fraction of set 1.")
    related.add_argument("--max", dest="max_out", type=float, default=0.0, help="Maximum fraction of set 2.")
    related.add_argument("-n", "--iterations", type=int, default=10, help="Number of random samples.")
    related.add_argument("--seed", type=int, default=None, help="Random seed.")
    related.add_argument("--out-dir", type=pathlib.Path, required=True, help="Output directory.")
    return parser
