"""coach: a plain-text journal and task tracker."""

from coach.entry import (
    Entry,
    Event,
    Note,
    NoNewlines,
    Observation,
    ObservationName,
    ParseError,
    ParseErrorKind,
    Task,
    TaskState,
    as_no_newlines,
    as_note,
    as_observation_name,
    parse,
    render,
)

__all__ = [
    "Entry",
    "Event",
    "Note",
    "NoNewlines",
    "Observation",
    "ObservationName",
    "ParseError",
    "ParseErrorKind",
    "Task",
    "TaskState",
    "as_no_newlines",
    "as_note",
    "as_observation_name",
    "parse",
    "render",
]
