"""
Pytest fixtures and factories for testing coach entries and the MCP server.
"""

from datetime import date, timedelta
from pathlib import Path
from typing import TypedDict

import pytest
from pytest_mock import MockerFixture

from coach.files import MAGIC, entry_path, today_utc

# =============================================================================
# Type Definitions
# =============================================================================


class EntryFileInfo(TypedDict):
    """Metadata returned by sample_entry_file fixture."""

    path: Path
    day: date
    task_count: int
    live_task_count: int


# =============================================================================
# Sample Data Factories
# =============================================================================


def make_entry_text(
    label: str,
    observations: list[tuple[str, str]] | None = None,
    tasks: list[str] | None = None,
    events: list[str] | None = None,
    notes: list[str] | None = None,
    magic: bool = False,
) -> str:
    """
    Factory to create entry text in canonical form.

    Args:
        label: First line of the entry
        observations: List of (name, value) tuples
        tasks: Task lines, e.g. "TODO take a break"
        events: Event lines without the "* " prefix
        notes: Note blocks
        magic: Start with the MAGIC header line

    Returns:
        Entry text
    """
    lines: list[str] = [MAGIC] if magic else []
    lines.append(label)
    for name, value in observations or []:
        lines.append(f"{name}: {value}")
    lines.append("")

    if tasks:
        lines.extend(tasks)
        lines.append("")

    if events:
        lines.extend(f"* {event}" for event in events)
        lines.append("")

    for note in notes or []:
        lines.append(note)
        lines.append("")

    return "\n".join(lines) + "\n"


MIXED_ENTRY = """Test
key: value1

TODO take a break
DONE pet the dog

* <2021-10-31 Sun 21:10> in the lab
First note

Second note

"""


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def temp_coach_dir(tmp_path: Path, mocker: MockerFixture) -> Path:
    """
    Create a temporary entry directory and patch the server module to use it.
    """
    coach_dir = tmp_path / "coach"
    coach_dir.mkdir()

    mocker.patch("server.COACH_DIR", coach_dir)

    return coach_dir


@pytest.fixture
def sample_entry_file(temp_coach_dir: Path) -> EntryFileInfo:
    """
    Create today's entry file with observations, tasks, an event and a note.

    Returns dict with entry metadata for assertions.
    """
    day = today_utc()
    path = entry_path(temp_coach_dir, day)
    path.write_text(
        make_entry_text(
            day.isoformat(),
            observations=[("mood", "good")],
            tasks=[
                "TODO write the report",
                "WORKING learn rust",
                "DONE pet the dog",
                "CANCELLED teach the dog rust",
            ],
            events=["<2021-10-31 Sun 21:10> working in the lab late one night"],
            notes=["dogs can't type"],
            magic=True,
        ),
        encoding="utf-8",
    )

    return {
        "path": path,
        "day": day,
        "task_count": 4,
        "live_task_count": 2,
    }


@pytest.fixture
def yesterday_entry_file(temp_coach_dir: Path) -> Path:
    """Create yesterday's entry with one live and one settled task."""
    day = today_utc() - timedelta(days=1)
    path = entry_path(temp_coach_dir, day)
    path.write_text(
        make_entry_text(
            day.isoformat(),
            tasks=["WORKING finish the parser", "DONE write the spec"],
            magic=True,
        ),
        encoding="utf-8",
    )
    return path
