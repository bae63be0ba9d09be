"""Tests for render() and the parse/render round trip."""

from datetime import datetime, timezone

import pytest

from coach.entry import (
    Entry,
    Event,
    Note,
    NoNewlines,
    Observation,
    ObservationName,
    Task,
    TaskState,
    parse,
    render,
)
from tests.conftest import MIXED_ENTRY


def make_full_entry() -> Entry:
    """An entry with every section filled in."""
    entry = Entry(label=NoNewlines("Test"))
    entry.add_observation("key", "value1")
    entry.add_observation("sleep", "7h: restless")
    entry.add_task("take a break")
    entry.tasks.append(Task(TaskState.WORKING, NoNewlines("learn rust")))
    entry.add_event(datetime(2021, 10, 31, 21, 0), "working in the lab")
    entry.add_event(datetime(2021, 10, 31, 22, 10, 33), "an eerie sight")
    entry.add_note("dogs can't type")
    entry.add_note("It's a good thing\nthe dog learned graffiti\nfrom her palm pilot")
    return entry


class TestRender:
    """Tests for the canonical text form."""

    def test_empty_entry(self) -> None:
        assert render(Entry(label=NoNewlines("Test"))) == "Test\n\n"

    def test_pure_label_with_header(self) -> None:
        entry = Entry(label=NoNewlines("Label"))

        assert render(entry, magic="#coach") == "#coach\nLabel\n\n"

    def test_observations(self) -> None:
        entry = Entry(
            label=NoNewlines("Test"),
            observations=[
                Observation(ObservationName("key"), NoNewlines("value1")),
                Observation(ObservationName("key"), NoNewlines("value2")),
            ],
        )

        assert render(entry) == "Test\nkey: value1\nkey: value2\n\n"

    def test_tasks(self) -> None:
        entry = Entry(
            label=NoNewlines("Test"),
            tasks=[
                Task(TaskState.TODO, NoNewlines("take a break")),
                Task(TaskState.WORKING, NoNewlines("learn rust")),
                Task(TaskState.DONE, NoNewlines("pet the dog")),
                Task(TaskState.CANCELLED, NoNewlines("teach the dog rust")),
            ],
        )

        assert render(entry) == (
            "Test\n"
            "\n"
            "TODO take a break\n"
            "WORKING learn rust\n"
            "DONE pet the dog\n"
            "CANCELLED teach the dog rust\n"
            "\n"
        )

    def test_events(self) -> None:
        entry = Entry(
            label=NoNewlines("Test"),
            events=[
                Event(
                    datetime(2021, 10, 31, 21, 0, tzinfo=timezone.utc),
                    NoNewlines("working in the lab late one night"),
                ),
                Event(
                    datetime(2021, 10, 31, 22, 10, tzinfo=timezone.utc),
                    NoNewlines("my eyes beheld an eerie sight"),
                ),
            ],
        )

        assert render(entry) == (
            "Test\n"
            "\n"
            "* <2021-10-31 Sun 21:00> working in the lab late one night\n"
            "* <2021-10-31 Sun 22:10> my eyes beheld an eerie sight\n"
            "\n"
        )

    def test_notes(self) -> None:
        entry = Entry(
            label=NoNewlines("Test"),
            notes=[
                Note("dogs can't type"),
                Note("It's a good thing\nthe dog learned graffiti"),
            ],
        )

        assert render(entry) == (
            "Test\n"
            "\n"
            "dogs can't type\n"
            "\n"
            "It's a good thing\n"
            "the dog learned graffiti\n"
            "\n"
        )

    def test_mixed_body_separates_sections(self) -> None:
        assert render(parse(MIXED_ENTRY)) == (
            "Test\n"
            "key: value1\n"
            "\n"
            "TODO take a break\n"
            "DONE pet the dog\n"
            "\n"
            "* <2021-10-31 Sun 21:10> in the lab\n"
            "\n"
            "First note\n"
            "\n"
            "Second note\n"
            "\n"
        )

    def test_str_is_render(self) -> None:
        entry = make_full_entry()

        assert str(entry) == render(entry)

    def test_render_is_deterministic(self) -> None:
        entry = make_full_entry()

        assert render(entry) == render(entry)


class TestRoundTrip:
    """Tests that parse(render(e)) == e."""

    def test_single_task(self) -> None:
        source = Entry(
            label=NoNewlines("Test"),
            tasks=[Task(TaskState.WORKING, NoNewlines("Task"))],
        )

        assert parse(render(source)) == source

    def test_full_entry(self) -> None:
        source = make_full_entry()

        assert parse(render(source)) == source

    def test_parsed_entry(self) -> None:
        parsed = parse(MIXED_ENTRY)

        assert parse(render(parsed)) == parsed

    def test_full_entry_with_header(self) -> None:
        source = make_full_entry()

        assert parse(render(source, magic="#coach"), magic="#coach") == source

    @pytest.mark.parametrize(
        "note",
        [
            "TODO",
            "first\nTODO not a task here",
            "  indented",
            "trailing spaces  ",
            "line\n \nwhitespace-only middle line",
        ],
    )
    def test_awkward_notes(self, note: str) -> None:
        source = Entry(label=NoNewlines("Label"))
        source.add_note(note)
        source.add_note("another")

        assert parse(render(source)).notes == [note, "another"]

    def test_awkward_event_text(self) -> None:
        source = Entry(label=NoNewlines("Label"))
        source.add_event(datetime(2000, 2, 29, 0, 0), "   <nested> brackets")

        assert parse(render(source)) == source

    def test_awkward_observations(self) -> None:
        source = Entry(label=NoNewlines("Label"))
        source.add_observation("name ", " value")
        source.add_observation("x", "")

        assert parse(render(source)) == source
