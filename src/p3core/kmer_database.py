"""
In-memory k-mer database: an inverted index from k-mers to the groups containing them.

A group is a genome (one sequence per contig), a protein family, or a sample.
The index is filled with ``add_sequence`` calls, finalized either by dropping
common k-mers (``finalize``) or by keeping only discriminating k-mers
(``compute_discriminators``), and then queried or saved as JSON.
"""

import json
import logging
import pathlib
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Iterable, Iterator, List, Literal, Optional, Set, Tuple, Union

import numpy as np
import pandas as pd
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from tqdm import tqdm

from .exceptions import (
    DatabaseCorruptedError,
    DatabaseNotFoundError,
    InvalidParameterError,
    MalformedSequenceError,
)
from .genomic_types import GroupId, HitCounts, Kmer, KmerEntries
from .sequence import KmerRecord, SequenceTokenizer, extract_kmers, translate_frames
from .utils import open_file_transparently

if TYPE_CHECKING:
    from .xref import CrossReferenceMatrix

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1
_WHITESPACE = re.compile(r"\s")


@dataclass
class GroupInfo:
    """Display name and accumulated statistics of one k-mer group."""

    name: Optional[str] = None
    sequences: int = 0
    letters: int = 0
    kmers: int = 0


@dataclass(frozen=True)
class HitResult:
    """
    Best-matching group for a query sequence.

    Attributes:
        group_id: The winning group.
        score: Number of distinct k-mers of the query owned by the group.
        hits: Number of k-mer occurrences of the query owned by the group.
    """

    group_id: GroupId
    score: int
    hits: int


class GroupStatsDocument(BaseModel):
    sequences: int = Field(0, ge=0)
    letters: int = Field(0, ge=0)
    kmers: int = Field(0, ge=0)


class GroupDocument(BaseModel):
    name: Optional[str] = None
    stats: GroupStatsDocument = Field(default_factory=GroupStatsDocument)


class KmerDbDocument(BaseModel):
    """Schema of the serialized k-mer database."""

    model_config = ConfigDict(populate_by_name=True)

    version: Literal[1]
    kmer_size: int = Field(alias="kmerSize", gt=0)
    max_found: int = Field(alias="maxFound", ge=0)
    mirror: bool = False
    entries: Dict[str, List[str]]
    groups: Dict[str, GroupDocument]


class KmerDb:
    """
    Inverted index mapping each k-mer to the groups that contain it.

    Attributes:
        kmer_size (int): Length of every stored k-mer; fixed at construction.
        max_found (int): A k-mer found in more than this many groups is common
            and dropped. 0 keeps every k-mer.
        mirror (bool): DNA mode; each k-mer is also stored as its reverse complement.
    """

    def __init__(self, kmer_size: int = 15, max_found: int = 10, mirror: bool = False) -> None:
        """
        Creates an empty database.

        Raises:
            InvalidParameterError: If ``kmer_size`` is not positive or
                ``max_found`` is negative.
        """
        if not isinstance(kmer_size, int) or kmer_size <= 0:
            raise InvalidParameterError(
                "kmer_size must be a positive integer", details={"kmer_size": kmer_size}
            )
        if not isinstance(max_found, int) or max_found < 0:
            raise InvalidParameterError(
                "max_found must be a non-negative integer", details={"max_found": max_found}
            )
        self.kmer_size: int = kmer_size
        self.max_found: int = max_found
        self.mirror: bool = bool(mirror)
        self._tokenizer = SequenceTokenizer(kmer_size, self.mirror)
        self._entries: KmerEntries = {}
        self._occurrences: Dict[Kmer, int] = {}
        self._common: Set[Kmer] = set()
        self._groups: Dict[GroupId, GroupInfo] = {}

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def add_sequence(
        self, group_id: GroupId, sequence: str, group_name: Optional[str] = None
    ) -> None:
        """
        Adds the k-mers of one sequence to a group.

        May be called many times for the same group, for example once per contig
        of a genome. A non-empty ``group_name`` replaces the stored name.

        Raises:
            MalformedSequenceError: If the group ID is empty or the sequence is
                not a whitespace-free string.
        """
        if group_id is None or str(group_id) == "":
            raise MalformedSequenceError("Sequence record has no group ID")
        group_id = str(group_id)
        if not isinstance(sequence, str):
            raise MalformedSequenceError(
                "Sequence must be a string", details={"group_id": group_id}
            )
        if _WHITESPACE.search(sequence):
            raise MalformedSequenceError(
                "Sequence contains whitespace", details={"group_id": group_id}
            )

        info = self._groups.get(group_id)
        if info is None:
            info = GroupInfo()
            self._groups[group_id] = info
        if group_name:
            info.name = group_name

        kmers = self._tokenizer.tokenize(sequence)
        info.sequences += 1
        info.letters += len(sequence)
        info.kmers += len(kmers)

        entries = self._entries
        for kmer in kmers:
            if kmer in self._common:
                continue
            self._occurrences[kmer] = self._occurrences.get(kmer, 0) + 1
            groups = entries.get(kmer)
            if groups is None:
                entries[kmer] = [group_id]
            elif groups[-1] != group_id and group_id not in groups:
                groups.append(group_id)
                if self.max_found and len(groups) > self.max_found:
                    del entries[kmer]
                    del self._occurrences[kmer]
                    self._common.add(kmer)

    def add_records(self, records: Iterable[KmerRecord], progress: bool = False) -> int:
        """Feeds every record of a sequence source into the index; returns the record count."""
        count = 0
        for record in tqdm(records, desc="Indexing sequences", unit="seq", disable=not progress):
            self.add_sequence(record.group_id, record.sequence, record.group_name)
            count += 1
        logger.info(f"{count} sequences indexed, {self.kmer_count} k-mers stored.")
        return count

    def finalize(self) -> None:
        """Removes every k-mer found in more than ``max_found`` groups (none when 0)."""
        added = sum(self._occurrences.values())
        if self.max_found:
            common = [k for k, groups in self._entries.items() if len(groups) > self.max_found]
            for kmer in common:
                del self._entries[kmer]
            self._common.update(common)
        self._occurrences.clear()
        logger.info(
            f"Database finalized: {self.kmer_count} k-mers kept from {added} occurrences, "
            f"{len(self._common)} common k-mers discarded."
        )

    def compute_discriminators(self) -> None:
        """Keeps only the k-mers owned by exactly one group; ``max_found`` is ignored."""
        before = len(self._entries)
        self._entries = {k: groups for k, groups in self._entries.items() if len(groups) == 1}
        self._occurrences.clear()
        logger.info(
            f"Discriminators computed: {self.kmer_count} of {before} k-mers are discriminating."
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def _query_kmers(self, sequence: str, genetic_code: Optional[int]) -> Iterator[Kmer]:
        if genetic_code:
            queries = translate_frames(sequence, genetic_code)
        else:
            queries = [sequence]
        for query in queries:
            yield from extract_kmers(query, self.kmer_size)

    def count_hits(
        self,
        sequence: str,
        counts: Optional[HitCounts] = None,
        genetic_code: Optional[int] = None,
    ) -> HitCounts:
        """
        Counts k-mer hits of a query sequence per group.

        Args:
            sequence: The query sequence.
            counts: Mapping to accumulate into; a new dict is created when omitted.
            genetic_code: If given, the query is DNA and is translated in six
                frames before matching a protein index.

        Returns:
            The ``counts`` mapping, incremented once per k-mer occurrence for
            every group owning the k-mer.
        """
        if counts is None:
            counts = {}
        for kmer in self._query_kmers(sequence, genetic_code):
            for group in self._entries.get(kmer, ()):
                counts[group] = counts.get(group, 0) + 1
        return counts

    def best_group(self, sequence: str, genetic_code: Optional[int] = None) -> Optional[HitResult]:
        """
        Finds the group with the most k-mer hits for a query sequence.

        Ties on hits go to the group matching more distinct k-mers, then to the
        lowest group ID. Returns None if no k-mer matches.
        """
        hits: HitCounts = {}
        matched: Dict[GroupId, Set[Kmer]] = {}
        for kmer in self._query_kmers(sequence, genetic_code):
            for group in self._entries.get(kmer, ()):
                hits[group] = hits.get(group, 0) + 1
                matched.setdefault(group, set()).add(kmer)
        if not hits:
            return None
        best = min(hits, key=lambda g: (-hits[g], -len(matched[g]), g))
        return HitResult(group_id=best, score=len(matched[best]), hits=hits[best])

    def groups_of(self, kmer: Kmer) -> List[GroupId]:
        """Returns the groups containing a k-mer (empty if it is not stored)."""
        return list(self._entries.get(kmer.upper(), ()))

    def occurrences(self, kmer: Kmer) -> int:
        """Times a stored k-mer has been added so far; 0 once the index is finalized."""
        return self._occurrences.get(kmer.upper(), 0)

    def kmer_list(self) -> List[Kmer]:
        return list(self._entries)

    def all_groups(self) -> List[GroupId]:
        """Group IDs in the order they were first added."""
        return list(self._groups)

    def name(self, group_id: GroupId) -> str:
        """Display name of a group, falling back to the group ID."""
        info = self._groups.get(str(group_id))
        if info is None or not info.name:
            return str(group_id)
        return info.name

    def group_info(self, group_id: GroupId) -> GroupInfo:
        return self._groups[str(group_id)]

    @property
    def kmer_count(self) -> int:
        """Number of k-mers currently stored."""
        return len(self._entries)

    def items(self) -> Iterator[Tuple[Kmer, List[GroupId]]]:
        return iter(self._entries.items())

    def xref(self) -> "CrossReferenceMatrix":
        """Builds the pairwise shared/unique k-mer matrix over all groups."""
        from .xref import CrossReferenceMatrix

        return CrossReferenceMatrix.from_kmer_db(self)

    def stats(self) -> Dict[str, Any]:
        """Summary of the database for logging."""
        return {
            "kmer_size": self.kmer_size,
            "max_found": self.max_found,
            "mirror": self.mirror,
            "num_kmers": self.kmer_count,
            "num_groups": len(self._groups),
            "num_common_kmers": len(self._common),
            "group_names_preview": [self.name(g) for g in list(self._groups)[:5]],
        }

    def __len__(self) -> int:
        return self.kmer_count

    def __contains__(self, kmer: Kmer) -> bool:
        if not isinstance(kmer, str):
            return False
        return kmer.upper() in self._entries

    # ------------------------------------------------------------------
    # Persistence and export
    # ------------------------------------------------------------------

    def to_document(self) -> Dict[str, Any]:
        """The JSON-compatible document written by ``save``."""
        return {
            "version": FORMAT_VERSION,
            "kmerSize": self.kmer_size,
            "maxFound": self.max_found,
            "mirror": self.mirror,
            "entries": {kmer: list(groups) for kmer, groups in self._entries.items()},
            "groups": {
                group_id: {
                    "name": info.name,
                    "stats": {
                        "sequences": info.sequences,
                        "letters": info.letters,
                        "kmers": info.kmers,
                    },
                }
                for group_id, info in self._groups.items()
            },
        }

    def save(self, path: Union[str, pathlib.Path]) -> pathlib.Path:
        """
        Writes the database as JSON; a ``.gz`` suffix compresses it.

        Occurrence counts are not written, so save a finalized database.
        """
        path = pathlib.Path(path)
        logger.info(f"Saving k-mer database to {path}")
        with open_file_transparently(path, "wt") as fh:
            json.dump(self.to_document(), fh)
        return path

    @classmethod
    def load(cls, path: Union[str, pathlib.Path]) -> "KmerDb":
        """
        Loads a database written by ``save``.

        Raises:
            DatabaseNotFoundError: If the file does not exist.
            DatabaseCorruptedError: If the file is not valid JSON, is truncated,
                has an unknown version or breaks the index invariants.
        """
        path = pathlib.Path(path)
        if not path.is_file():
            raise DatabaseNotFoundError(
                "K-mer database file not found", details={"path": str(path)}
            )
        logger.info(f"Loading k-mer database from {path}")
        try:
            with open_file_transparently(path) as fh:
                raw = json.load(fh)
        except (json.JSONDecodeError, UnicodeDecodeError, EOFError, OSError) as e:
            raise DatabaseCorruptedError(
                f"Could not parse k-mer database: {e}", details={"path": str(path)}
            ) from e
        try:
            document = KmerDbDocument.model_validate(raw)
        except ValidationError as e:
            raise DatabaseCorruptedError(
                f"Invalid k-mer database document: {e.error_count()} problem(s)",
                details={"path": str(path)},
            ) from e

        db = cls(document.kmer_size, document.max_found, document.mirror)
        for group_id, group in document.groups.items():
            db._groups[group_id] = GroupInfo(
                name=group.name,
                sequences=group.stats.sequences,
                letters=group.stats.letters,
                kmers=group.stats.kmers,
            )
        for kmer, groups in document.entries.items():
            if len(kmer) != db.kmer_size:
                raise DatabaseCorruptedError(
                    "K-mer has the wrong length",
                    details={"path": str(path), "kmer": kmer, "kmer_size": db.kmer_size},
                )
            if not groups or any(g not in db._groups for g in groups):
                raise DatabaseCorruptedError(
                    "K-mer references unknown groups",
                    details={"path": str(path), "kmer": kmer},
                )
            db._entries[kmer] = list(groups)
        logger.info(f"Loaded {db.kmer_count} k-mers in {len(db._groups)} groups.")
        return db

    def to_dataframe(self) -> pd.DataFrame:
        """Presence/absence matrix with k-mers as rows and groups as columns."""
        group_ids = self.all_groups()
        column_of = {g: i for i, g in enumerate(group_ids)}
        kmers = self.kmer_list()
        matrix = np.zeros((len(kmers), len(group_ids)), dtype=bool)
        for row, kmer in enumerate(kmers):
            matrix[row, [column_of[g] for g in self._entries[kmer]]] = True
        return pd.DataFrame(matrix, index=pd.Index(kmers, name="kmer"), columns=group_ids)

    def save_matrix(self, path: Union[str, pathlib.Path]) -> pathlib.Path:
        """Saves the presence/absence matrix as a Parquet file."""
        path = pathlib.Path(path)
        logger.info(f"Saving k-mer presence matrix to (Parquet format): {path}")
        self.to_dataframe().to_parquet(path, index=True)
        return path

    def write_kmer_files(
        self, out_dir: Union[str, pathlib.Path], use_names: bool = False
    ) -> Dict[GroupId, pathlib.Path]:
        """
        Writes one ``<group>.kmer`` file per group, one k-mer per line.

        Args:
            out_dir: Output directory, created if needed.
            use_names: Name the files after the group names instead of the IDs.

        Returns:
            Mapping of group ID to the file written for it.
        """
        out_dir = pathlib.Path(out_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
        paths = {
            g: out_dir / f"{self.name(g) if use_names else g}.kmer" for g in self.all_groups()
        }
        handles = {g: open(p, "w") for g, p in paths.items()}
        try:
            for kmer, groups in self._entries.items():
                for group in groups:
                    handles[group].write(f"{kmer}\n")
        finally:
            for fh in handles.values():
                fh.close()
        logger.info(f"Wrote k-mer files for {len(paths)} groups to {out_dir}")
        return paths
