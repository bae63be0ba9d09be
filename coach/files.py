"""
Reading and writing daily entry files.

Entry files are named after their UTC date (YYYY-MM-DD) and always start
with the MAGIC header line.
"""

import logging
import os
import tempfile
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

from coach.entry import Entry, parse, render

logger = logging.getLogger(__name__)

MAGIC = "#coach"

# A typical entry made by hand is around 1-2K
DEFAULT_MAX_ENTRY_SIZE = 8 * 1024


###############################################################################
###############################################################################
#
class EntryFileError(ValueError):
    """An entry file is too large or is not valid UTF-8."""


# =============================================================================
# Paths and Dates
# =============================================================================


###############################################################################
#
def today_utc() -> date:
    """Today's date in UTC, which names the current entry file."""
    return datetime.now(timezone.utc).date()


###############################################################################
#
def entry_path(directory: Path, day: date) -> Path:
    """
    Get the entry file path for a date.

    Args:
        directory: Directory holding entry files
        day: Date of the entry

    Returns:
        Path of the form <directory>/YYYY-MM-DD
    """
    return directory / day.isoformat()


###############################################################################
#
def find_previous_entry(
    directory: Path, day: date, days_back: int
) -> Path | None:
    """
    Find the most recent entry file before a date.

    Args:
        directory: Directory holding entry files
        day: Search strictly before this date
        days_back: How many days back to look

    Returns:
        Path of the newest existing entry file, or None if there is none
        within days_back days
    """
    for i in range(1, days_back + 1):
        candidate = entry_path(directory, day - timedelta(days=i))
        if candidate.exists():
            return candidate
    return None


# =============================================================================
# Reading
# =============================================================================


###############################################################################
#
def read_bounded_text(path: Path, max_size: int) -> str:
    """
    Read a text file that must be smaller than max_size bytes.

    Args:
        path: File to read
        max_size: Size limit in bytes; a file this large or larger is refused

    Returns:
        The file content decoded as UTF-8

    Raises:
        FileNotFoundError: If the file does not exist
        EntryFileError: If the file is too large or is not valid UTF-8
    """
    with open(path, "rb") as f:
        data = f.read(max_size)

    if len(data) >= max_size:
        raise EntryFileError(
            f"{path} is longer than the maximum entry size ({max_size} bytes)"
        )

    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise EntryFileError(f"{path} is not valid UTF-8: {e}") from e


###############################################################################
#
def entry_from_file(path: Path, max_size: int = DEFAULT_MAX_ENTRY_SIZE) -> Entry:
    """
    Read and parse an entry file.

    Raises:
        FileNotFoundError: If the file does not exist
        EntryFileError: If the file can't be read as text
        ParseError: If the file is not a valid entry
    """
    return parse(read_bounded_text(path, max_size), magic=MAGIC)


# =============================================================================
# Writing
# =============================================================================


###############################################################################
#
def new_entry_file(path: Path, entry: Entry) -> None:
    """
    Write an entry to a file that must not exist yet.

    Raises:
        FileExistsError: If the file already exists

    Note:
        Creates parent directories if they don't exist.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "x", encoding="utf-8") as f:
        f.write(render(entry, magic=MAGIC))
        f.flush()
        os.fsync(f.fileno())
    logger.debug("created entry file %s", path)


###############################################################################
#
def entry_to_file(path: Path, entry: Entry) -> None:
    """
    Replace the content of an existing entry file.

    Args:
        path: Existing entry file
        entry: Entry to write

    Raises:
        FileNotFoundError: If the file does not exist (it is never created)

    Note:
        The entry is written to a temporary file in the same directory and
        moved over the original, so readers see either the old or the new
        content.
    """
    if not path.exists():
        raise FileNotFoundError(f"Entry file not found: {path}")

    fd, tmp_name = tempfile.mkstemp(
        dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(render(entry, magic=MAGIC))
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise

    logger.debug("rewrote entry file %s", path)
