"""
Tab-delimited report output.
"""

import pathlib
import sys
from typing import Any, Iterable, List, Optional, Sequence, TextIO, Union

import pandas as pd

from .utils import open_file_transparently


class TableWriter:
    """
    Writes rows as a tab-delimited table with a header line.

    The destination is a file (gzipped when the name ends in ``.gz``) or
    standard output when no path is given.
    """

    def __init__(
        self,
        columns: Sequence[str],
        path: Optional[Union[str, pathlib.Path]] = None,
        header: bool = True,
    ) -> None:
        if not columns:
            raise ValueError("columns cannot be empty.")
        self.columns: List[str] = list(columns)
        self.path = pathlib.Path(path) if path is not None else None
        self.header = header
        self.rows_written = 0

    def frame(self, rows: Iterable[Sequence[Any]]) -> pd.DataFrame:
        return pd.DataFrame([list(row) for row in rows], columns=self.columns)

    def write(self, rows: Iterable[Sequence[Any]]) -> int:
        """Writes all rows; returns the number written."""
        return self.write_frame(self.frame(rows))

    def write_frame(self, table: pd.DataFrame, index: bool = False) -> int:
        if self.path is None:
            self._to_handle(table, sys.stdout, index)
        else:
            with open_file_transparently(self.path, "wt") as handle:
                self._to_handle(table, handle, index)
        self.rows_written += len(table)
        return len(table)

    def _to_handle(self, table: pd.DataFrame, handle: TextIO, index: bool) -> None:
        table.to_csv(handle, sep="\t", index=index, header=self.header, lineterminator="\n")
