#!/usr/bin/env python

import gzip
import mimetypes
import pathlib
import re
from typing import Optional, TextIO, Tuple, Union

from .exceptions import InvalidLocationError

LOCATION_RANGE = re.compile(r"[<>]?(\d+)[<>]?\.\.[<>]?(\d+)")
GENOME_ID_PATTERN = re.compile(r"(\d+\.\d+)")
FILE_EXTENSION = re.compile(r"\.\w+$")


def open_file_transparently(
    file_path: Union[str, pathlib.Path], mode: str = "rt"
) -> TextIO:
    """Opens a file, transparently handling gzip compression.

    Infers compression from file extension. Defaults to text read mode. Files
    opened for writing do not need to exist.

    Args:
        file_path: Path to the file.
        mode: File open mode (e.g., "rt", "wt"). Defaults to "rt".

    Returns:
        A text file object.

    Raises:
        FileNotFoundError: If the file is opened for reading and does not exist.
        IOError: If an I/O error occurs during opening.
        TypeError: If file_path is not a str or pathlib.Path.
    """
    if not isinstance(file_path, (str, pathlib.Path)):
        raise TypeError(
            f"file_path must be a string or pathlib.Path, not {type(file_path)}"
        )

    file_path = pathlib.Path(file_path)

    if "r" in mode and not file_path.exists():
        raise FileNotFoundError(f"File not found: {file_path}")

    _, encoding = mimetypes.guess_type(str(file_path))

    try:
        if encoding == "gzip":
            return gzip.open(file_path, mode=mode)  # type: ignore
        return open(file_path, mode=mode)
    except (IOError, OSError) as e:
        raise IOError(f"Error opening file {file_path} with mode '{mode}': {e}") from e


def parse_location(location: str) -> Tuple[int, int]:
    """Parses a BV-BRC location string into (left, right) coordinates.

    Accepts ``start..end``, ``complement(left..right)``, ``join(a..b,c..d)`` and
    partial markers such as ``<1..>200``. For joins the outermost bounds are used.

    Raises:
        InvalidLocationError: If no coordinate range is present.
    """
    ranges = LOCATION_RANGE.findall(location or "")
    if not ranges:
        raise InvalidLocationError(
            "Invalid location string", details={"location": location}
        )
    coords = [int(c) for pair in ranges for c in pair]
    return min(coords), max(coords)


def genome_id_from_feature(feature_id: str) -> Optional[str]:
    """Extracts the genome ID (e.g. ``83333.1``) from a feature ID such as ``fig|83333.1.peg.4``."""
    match = GENOME_ID_PATTERN.search(feature_id or "")
    return match.group(1) if match else None


def group_id_from_path(file_path: Union[str, pathlib.Path]) -> str:
    """Group ID of a one-group-per-file input: the file name without ``.gz`` and its last extension.

    ``83333.1.fna`` and ``83333.1.fna.gz`` both give ``83333.1``.
    """
    name = pathlib.Path(file_path).name
    if name.endswith(".gz"):
        name = name[: -len(".gz")]
    return FILE_EXTENSION.sub("", name) or name
