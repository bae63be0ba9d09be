"""
Entry model, parser and serializer for coach journal files.

An entry is a small plain-text document:

    <label>
    <name>: <value>
    ...

    TODO <message>
    * <2021-10-31 Sun 21:10> <event text>
    <note line>
    ...

The parser is single pass and stops at the first structural problem with a
ParseError. render() produces the canonical text, and parse(render(e)) == e
for every entry built from the validating types below.
"""

import enum
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone

# =============================================================================
# Constants
# =============================================================================

PLACEHOLDER_LABEL = "PLACEHOLDER"

WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")

# Format: YYYY-MM-DD Www HH:MM
TIMESTAMP_RE = re.compile(
    r"^([0-9]{4})-([0-9]{2})-([0-9]{2}) ([A-Z][a-z]{2}) ([0-9]{2}):([0-9]{2})$"
)

EVENT_PREFIX = "* "


# =============================================================================
# Constrained Strings
# =============================================================================


###############################################################################
###############################################################################
#
class NoNewlines(str):
    """A string that never contains a newline."""

    __slots__ = ()

    def __new__(cls, value: str = "") -> "NoNewlines":
        if "\n" in value:
            raise ValueError(f"text can't contain newlines: {value!r}")
        return super().__new__(cls, value)


###############################################################################
###############################################################################
#
class ObservationName(str):
    """A non-empty string with no newlines and no colons."""

    __slots__ = ()

    def __new__(cls, value: str) -> "ObservationName":
        if not value or "\n" in value or ":" in value:
            raise ValueError(
                "observation names must contain at least one character, "
                f"and can't contain newlines or colons: {value!r}"
            )
        return super().__new__(cls, value)


###############################################################################
###############################################################################
#
class Note(str):
    """
    A block of free text that can't be mistaken for anything else.

    A note is non-empty, does not start or end with a newline, contains no
    blank line, and its first line is not claimed by the task or event rule.
    """

    __slots__ = ()

    def __new__(cls, value: str) -> "Note":
        if (
            not value
            or "\n\n" in value
            or value.startswith("\n")
            or value.endswith("\n")
        ):
            raise ValueError(f"not a valid note: {value!r}")

        first_line = value.split("\n", 1)[0]
        if _match_task(first_line) is not None:
            raise ValueError(f"note text would be read as a task: {value!r}")
        if first_line.startswith(EVENT_PREFIX):
            raise ValueError(f"note text would be read as an event: {value!r}")

        return super().__new__(cls, value)


###############################################################################
#
def as_no_newlines(s: str) -> NoNewlines | None:
    """Return s as NoNewlines, or None if it contains a newline."""
    try:
        return NoNewlines(s)
    except ValueError:
        return None


###############################################################################
#
def as_observation_name(s: str) -> ObservationName | None:
    """Return s as an ObservationName, or None if it is not a valid name."""
    try:
        return ObservationName(s)
    except ValueError:
        return None


###############################################################################
#
def as_note(s: str) -> Note | None:
    """
    Return s as a Note, or None if it can't be stored as one.

    Args:
        s: Candidate note text

    Returns:
        The Note, or None when s is empty, starts or ends with a newline,
        contains a blank line, or would be parsed as a task or event line.
        In the last case the caller should treat the text as a task or event.
    """
    try:
        return Note(s)
    except ValueError:
        return None


# =============================================================================
# Timestamp Utilities
# =============================================================================


###############################################################################
#
def format_timestamp(when: datetime) -> str:
    """
    Format a datetime as an entry timestamp.

    Args:
        when: The datetime to format (converted to UTC if it is aware)

    Returns:
        Timestamp text without delimiters, e.g. "2021-10-31 Sun 21:10"

    Note:
        Weekday names are always English, independent of the locale.
    """
    if when.tzinfo is not None:
        when = when.astimezone(timezone.utc)
    return (
        f"{when.year:04d}-{when.month:02d}-{when.day:02d} "
        f"{WEEKDAYS[when.weekday()]} {when.hour:02d}:{when.minute:02d}"
    )


###############################################################################
#
def parse_timestamp(text: str) -> datetime:
    """
    Parse entry timestamp text into an aware UTC datetime.

    Args:
        text: Timestamp text without delimiters, e.g. "2021-10-31 Sun 21:10"

    Returns:
        The timestamp as a UTC datetime

    Raises:
        ValueError: If the text does not match the format, names an unknown
            weekday, or the weekday does not agree with the date
    """
    match = TIMESTAMP_RE.match(text)
    if not match:
        raise ValueError(f"Invalid timestamp format: {text!r}")

    year, month, day, weekday, hour, minute = match.groups()
    if weekday not in WEEKDAYS:
        raise ValueError(f"Invalid weekday in timestamp: {text!r}")

    when = datetime(
        int(year),
        int(month),
        int(day),
        int(hour),
        int(minute),
        tzinfo=timezone.utc,
    )
    if WEEKDAYS[when.weekday()] != weekday:
        raise ValueError(f"Weekday does not match date: {text!r}")

    return when


# =============================================================================
# Entry Data Structures
# =============================================================================


###############################################################################
###############################################################################
#
class TaskState(enum.IntEnum):
    """Task lifecycle states, in display order."""

    TODO = 0
    WORKING = 1
    DONE = 2
    CANCELLED = 3

    ###########################################################################
    #
    @property
    def prefix(self) -> str:
        """The line prefix for this state, e.g. "TODO "."""
        return f"{self.name} "


###############################################################################
###############################################################################
#
@dataclass(order=True)
class Task:
    """
    A task line. Tasks sort by state, then by message.

    Both fields are checked on every assignment, not just in __init__.
    """

    state: TaskState
    message: NoNewlines

    def __setattr__(self, name: str, value) -> None:
        match name:
            case "state":
                value = TaskState(value)
            case "message":
                value = NoNewlines(value)
        super().__setattr__(name, value)

    ###########################################################################
    #
    def is_live(self) -> bool:
        """True while the task is TODO or WORKING."""
        return self.state in (TaskState.TODO, TaskState.WORKING)

    def __str__(self) -> str:
        return f"{self.state.prefix}{self.message}"


###############################################################################
###############################################################################
#
@dataclass(frozen=True)
class Observation:
    """A `name: value` line from the entry header."""

    name: ObservationName
    value: NoNewlines

    def __post_init__(self) -> None:
        object.__setattr__(self, "name", ObservationName(self.name))
        object.__setattr__(self, "value", NoNewlines(self.value))

    def __str__(self) -> str:
        return f"{self.name}: {self.value}"


###############################################################################
###############################################################################
#
@dataclass(frozen=True)
class Event:
    """
    A timestamped event.

    `when` is stored in UTC with seconds and microseconds dropped, since the
    text form only has minute precision. Naive datetimes are taken to be UTC.
    Leading whitespace of `text` is dropped, as the parser does.
    """

    when: datetime
    text: NoNewlines

    def __post_init__(self) -> None:
        when = self.when
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        else:
            when = when.astimezone(timezone.utc)
        object.__setattr__(
            self, "when", when.replace(second=0, microsecond=0)
        )
        text = NoNewlines(self.text)
        object.__setattr__(self, "text", NoNewlines(text.lstrip()))

    def __str__(self) -> str:
        return f"<{format_timestamp(self.when)}> {self.text}"


###############################################################################
###############################################################################
#
@dataclass
class Entry:
    """
    A parsed journal entry.

    The label is checked on every assignment. The section lists are plain
    lists; use the add_* methods so that every item is validated.
    """

    label: NoNewlines = NoNewlines(PLACEHOLDER_LABEL)
    observations: list[Observation] = field(default_factory=list)
    tasks: list[Task] = field(default_factory=list)
    events: list[Event] = field(default_factory=list)
    notes: list[Note] = field(default_factory=list)

    def __setattr__(self, name: str, value) -> None:
        if name == "label":
            value = NoNewlines(value)
            if not value:
                raise ValueError("entries must have a nonempty label")
        super().__setattr__(name, value)

    ###########################################################################
    #
    def add_observation(self, name: str, value: str) -> Observation:
        """Append a `name: value` observation."""
        observation = Observation(ObservationName(name), NoNewlines(value))
        self.observations.append(observation)
        return observation

    ###########################################################################
    #
    def add_task(self, message: str) -> Task:
        """Append a new TODO task."""
        task = Task(TaskState.TODO, NoNewlines(message))
        self.tasks.append(task)
        return task

    ###########################################################################
    #
    def update_task(
        self, index: int, state: TaskState, message: str | None = None
    ) -> Task:
        """
        Move the task at index to a new state.

        Args:
            index: 0-based position in the task list
            state: New lifecycle state
            message: Replacement message, or None to keep the current text

        Returns:
            The updated task

        Raises:
            IndexError: If there is no task at index
            ValueError: If state is not a TaskState or message contains a
                newline. The task is left unchanged.
        """
        if not 0 <= index < len(self.tasks):
            raise IndexError(f"no task at index {index}")

        task = self.tasks[index]
        new_state = TaskState(state)
        new_message = task.message if message is None else NoNewlines(message)
        task.state = new_state
        task.message = new_message
        return task

    ###########################################################################
    #
    def add_event(self, when: datetime, text: str) -> Event:
        """Append an event at `when`."""
        event = Event(when, NoNewlines(text))
        self.events.append(event)
        return event

    ###########################################################################
    #
    def add_note(self, text: str) -> Note:
        """
        Append a note.

        Raises:
            ValueError: If the text is not a valid note (see Note)
        """
        note = Note(text)
        self.notes.append(note)
        return note

    ###########################################################################
    #
    def live_tasks(self) -> list[Task]:
        """Tasks that are still TODO or WORKING, in stored order."""
        return [task for task in self.tasks if task.is_live()]

    def __str__(self) -> str:
        return render(self)


# =============================================================================
# Parse Errors
# =============================================================================


###############################################################################
###############################################################################
#
class ParseErrorKind(enum.Enum):
    """Every way parsing can fail."""

    NO_MAGIC_NUMBER = "no_magic_number"
    EMPTY_LABEL = "empty_label"
    MISSING_NEWLINE = "missing_newline"
    EXPECTED_OBSERVATION = "expected_observation"
    MISSING_TIMESTAMP = "missing_timestamp"
    MALFORMED_TIMESTAMP = "malformed_timestamp"


ERROR_MESSAGES = {
    ParseErrorKind.NO_MAGIC_NUMBER: (
        "entry files must begin with a line containing only the header token"
    ),
    ParseErrorKind.EMPTY_LABEL: "entries must contain a nonempty first line",
    ParseErrorKind.MISSING_NEWLINE: (
        "newlines are required after the label and observations in an entry"
    ),
    ParseErrorKind.EXPECTED_OBSERVATION: (
        "there must be a blank line between the entry header and any notes"
    ),
    ParseErrorKind.MISSING_TIMESTAMP: (
        "an event was found, but it was missing a <timestamp>"
    ),
    ParseErrorKind.MALFORMED_TIMESTAMP: (
        "the timestamp for this event was in an unexpected format"
    ),
}


###############################################################################
###############################################################################
#
class ParseError(ValueError):
    """Raised by parse() at the first structural problem in the text."""

    def __init__(self, kind: ParseErrorKind) -> None:
        super().__init__(ERROR_MESSAGES[kind])
        self.kind = kind


# =============================================================================
# Parser
# =============================================================================


###############################################################################
#
def _next_line(text: str, pos: int) -> tuple[str, int]:
    """Return the line starting at pos and the position after its newline."""
    end = text.find("\n", pos)
    if end == -1:
        return text[pos:], len(text)
    return text[pos:end], end + 1


###############################################################################
#
def _match_task(line: str) -> Task | None:
    for state in TaskState:
        if line.startswith(state.prefix):
            return Task(state, NoNewlines(line[len(state.prefix) :]))
    return None


###############################################################################
#
def _match_event(line: str) -> Event | None:
    """
    Read an event line.

    Returns:
        The Event, or None if the line is not an event line

    Raises:
        ParseError: If the line starts like an event but its timestamp is
            missing or malformed
    """
    if not line.startswith(EVENT_PREFIX):
        return None

    rest = line[len(EVENT_PREFIX) :]
    if not rest.startswith("<"):
        raise ParseError(ParseErrorKind.MISSING_TIMESTAMP)

    close = rest.find(">")
    if close == -1:
        raise ParseError(ParseErrorKind.MALFORMED_TIMESTAMP)

    try:
        when = parse_timestamp(rest[1:close].strip())
    except ValueError as e:
        raise ParseError(ParseErrorKind.MALFORMED_TIMESTAMP) from e

    return Event(when, NoNewlines(rest[close + 1 :].lstrip()))


###############################################################################
#
def _consume_observation(text: str, pos: int) -> tuple[Observation, int] | None:
    """
    Read one observation line starting at pos.

    Returns:
        Tuple of (Observation, next position), or None at a blank line or
        end of input

    Raises:
        ParseError: If the line is unterminated or is not `name: value`
    """
    if pos >= len(text) or text[pos] == "\n":
        return None

    end = text.find("\n", pos)
    if end == -1:
        raise ParseError(ParseErrorKind.MISSING_NEWLINE)

    line = text[pos:end]
    split = line.find(": ")
    if split == -1:
        raise ParseError(ParseErrorKind.EXPECTED_OBSERVATION)

    name = as_observation_name(line[:split])
    if name is None:
        raise ParseError(ParseErrorKind.EXPECTED_OBSERVATION)

    return Observation(name, NoNewlines(line[split + 2 :])), end + 1


###############################################################################
#
def _consume_note(text: str, pos: int) -> tuple[Note, int]:
    """
    Read a note starting at pos, up to the next blank line or end of input.

    Returns:
        Tuple of (Note, next position). The next position points at the
        blank line, which the body loop skips.
    """
    end = text.find("\n\n", pos)
    if end == -1:
        body = text[pos:]
        if body.endswith("\n"):
            body = body[:-1]
        return Note(body), len(text)
    return Note(text[pos:end]), end + 1


###############################################################################
#
def parse(text: str, magic: str | None = None) -> Entry:
    """
    Parse entry text into an Entry.

    Args:
        text: Complete entry text
        magic: Header token required as the first line, or None when the
            text has no header line

    Returns:
        The parsed Entry

    Raises:
        ParseError: At the first structural problem. No partial entry is
            ever returned.

    Note:
        Every body line is tried as a task, then as an event, then as the
        start of a note, in that order. A missing final newline is accepted
        after tasks, events and notes, but not after the label or an
        observation.
    """
    pos = 0

    if magic is not None:
        header = f"{magic}\n"
        if not text.startswith(header):
            raise ParseError(ParseErrorKind.NO_MAGIC_NUMBER)
        pos = len(header)

    label_end = text.find("\n", pos)
    if label_end == -1:
        raise ParseError(ParseErrorKind.MISSING_NEWLINE)
    if label_end == pos:
        raise ParseError(ParseErrorKind.EMPTY_LABEL)

    entry = Entry(label=NoNewlines(text[pos:label_end]))
    pos = label_end + 1

    while (found := _consume_observation(text, pos)) is not None:
        observation, pos = found
        entry.observations.append(observation)

    while pos < len(text):
        if text[pos] == "\n":
            pos += 1
            continue

        line, line_end = _next_line(text, pos)

        if (task := _match_task(line)) is not None:
            entry.tasks.append(task)
            pos = line_end
        elif (event := _match_event(line)) is not None:
            entry.events.append(event)
            pos = line_end
        else:
            note, pos = _consume_note(text, pos)
            entry.notes.append(note)

    return entry


# =============================================================================
# Serializer
# =============================================================================


###############################################################################
#
def render(entry: Entry, magic: str | None = None) -> str:
    """
    Render an Entry as canonical entry text.

    Args:
        entry: The entry to render
        magic: Header token to write as the first line, if any

    Returns:
        Entry text, always ending with a blank line
    """
    lines: list[str] = []

    if magic is not None:
        lines.append(magic)
    lines.append(entry.label)
    lines.extend(str(observation) for observation in entry.observations)
    lines.append("")

    if entry.tasks:
        lines.extend(str(task) for task in entry.tasks)
        lines.append("")

    if entry.events:
        lines.extend(f"{EVENT_PREFIX}{event}" for event in entry.events)
        lines.append("")

    for note in entry.notes:
        lines.append(note)
        lines.append("")

    return "\n".join(lines) + "\n"
