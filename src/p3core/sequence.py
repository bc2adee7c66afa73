"""
Sequence handling and k-mer extraction functionality.
"""

from dataclasses import dataclass
from typing import List, Optional, Set

from Bio.Data import CodonTable
from Bio.Seq import Seq

from .exceptions import InvalidParameterError, MalformedSequenceError

_RC_TABLE = str.maketrans("ACGTacgt", "TGCAtgca")


@dataclass(slots=True, frozen=True)
class KmerRecord:
    """
    One item of a sequence source: a sequence belonging to a k-mer group.

    Attributes:
        group_id: The group (genome, family or sample) that owns the sequence.
        sequence: Plain sequence letters, DNA or protein, no whitespace.
        group_name: Optional display name for the group.

    Example:
        >>> rec = KmerRecord("83333.1", "ACGTAC", "Escherichia coli K-12")
        >>> rec.group_id
        '83333.1'
    """

    group_id: str
    sequence: str
    group_name: Optional[str] = None


def reverse_complement(sequence: str) -> str:
    """Reverse complement of a DNA string; letters other than ACGT pass through unchanged."""
    return sequence.translate(_RC_TABLE)[::-1]


def extract_kmers(sequence: str, kmer_size: int, mirror: bool = False) -> List[str]:
    """
    Extract the k-mers of a sequence with a sliding window of step 1.

    The sequence is upper-cased first. When ``mirror`` is set, the reverse
    complement of each window follows the window itself, so a DNA index sees
    both strands.

    Args:
        sequence: The sequence letters.
        kmer_size: Length of each k-mer.
        mirror: Also emit reverse complements.

    Returns:
        The k-mers in left-to-right order; empty if the sequence is shorter than
        ``kmer_size``.

    Raises:
        InvalidParameterError: If ``kmer_size`` is not a positive integer.
    """
    if not isinstance(kmer_size, int) or kmer_size <= 0:
        raise InvalidParameterError(
            "kmer_size must be a positive integer", details={"kmer_size": kmer_size}
        )
    if not sequence or len(sequence) < kmer_size:
        return []

    normalized = sequence.upper()
    num_kmers = len(normalized) - kmer_size + 1
    if not mirror:
        return [normalized[i : i + kmer_size] for i in range(num_kmers)]

    kmers: List[str] = []
    for i in range(num_kmers):
        kmer = normalized[i : i + kmer_size]
        kmers.append(kmer)
        kmers.append(reverse_complement(kmer))
    return kmers


def translate_frames(
    dna: str, genetic_code: int, both_strands: bool = True
) -> List[str]:
    """
    Translate a DNA sequence in frames 0, 1 and 2, optionally on both strands.

    Partial trailing codons are dropped; stop codons appear as ``*``.

    Raises:
        InvalidParameterError: If ``genetic_code`` is not a known NCBI table.
        MalformedSequenceError: If the sequence contains letters that cannot be translated.
    """
    if genetic_code not in CodonTable.unambiguous_dna_by_id:
        raise InvalidParameterError(
            "Unknown genetic code", details={"genetic_code": genetic_code}
        )
    strands = [dna.upper()]
    if both_strands:
        strands.append(reverse_complement(strands[0]))

    proteins: List[str] = []
    for strand in strands:
        for frame in (0, 1, 2):
            coding = strand[frame:]
            coding = coding[: len(coding) - len(coding) % 3]
            if not coding:
                continue
            try:
                proteins.append(str(Seq(coding).translate(table=genetic_code)))
            except CodonTable.TranslationError as e:
                raise MalformedSequenceError(
                    f"Sequence cannot be translated: {e}",
                    details={"genetic_code": genetic_code},
                ) from e
    return proteins


class SequenceTokenizer:
    """Bundles a k-mer size and strand mode for repeated tokenization."""

    def __init__(self, kmer_size: int, mirror: bool = False) -> None:
        if not isinstance(kmer_size, int) or kmer_size <= 0:
            raise InvalidParameterError(
                "kmer_size must be a positive integer", details={"kmer_size": kmer_size}
            )
        self.kmer_size = kmer_size
        self.mirror = mirror

    def tokenize(self, sequence: str) -> List[str]:
        return extract_kmers(sequence, self.kmer_size, self.mirror)

    def distinct(self, sequence: str) -> Set[str]:
        return set(self.tokenize(sequence))

    def __repr__(self) -> str:
        return f"SequenceTokenizer(kmer_size={self.kmer_size}, mirror={self.mirror})"
