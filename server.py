#!/usr/bin/env python3
"""
MCP Server for coach journal entries

Designed for use with Claude CLI/Code/Desktop to manage daily coach files:
- $COACH_DIR/YYYY-MM-DD (one entry per UTC day)

Each entry holds a label, `name: value` observations, a task list
(TODO/WORKING/DONE/CANCELLED), timestamped events and free-form notes.
Parsing and rendering live in coach.entry; this module only reads and writes
files and formats replies.
"""

import asyncio
import difflib
import json
import logging
import os
import sys
from collections.abc import Callable
from datetime import date, datetime, time, timezone
from pathlib import Path
from typing import TypeVar

from mcp.server import InitializationOptions, Server
from mcp.server.lowlevel.helper_types import ReadResourceContents
from mcp.server.stdio import stdio_server
from mcp.types import Resource, ServerCapabilities, TextContent, Tool

from coach.entry import (
    Entry,
    ParseError,
    Task,
    TaskState,
    parse,
    render,
)
from coach.files import (
    MAGIC,
    entry_from_file,
    entry_path,
    entry_to_file,
    find_previous_entry,
    new_entry_file,
    today_utc,
)

# =============================================================================
# Configuration
# =============================================================================

COACH_DIR = Path(os.environ.get("COACH_DIR", Path.home() / "coach"))
MAX_ENTRY_SIZE = int(os.environ.get("COACH_MAX_ENTRY_SIZE", 8 * 1024))
CARRY_DAYS = int(os.environ.get("COACH_CARRY_DAYS", 14))
LOG_LEVEL = os.environ.get("COACH_LOG_LEVEL", "WARNING").upper()

# Names accepted by update_task, mapped to the state they set
#
STATE_NAMES = {
    "todo": TaskState.TODO,
    "working": TaskState.WORKING,
    "done": TaskState.DONE,
    "cancel": TaskState.CANCELLED,
    "cancelled": TaskState.CANCELLED,
}

logger = logging.getLogger(__name__)

server = Server("coach")

T = TypeVar("T")

# =============================================================================
# Plain Text Formatting Utilities
# =============================================================================


###############################################################################
#
def format_simple_diff(old_content: str, new_content: str) -> str:
    """
    Create a simple diff showing only changed lines with − and + markers.

    Args:
        old_content: Original content to compare from
        new_content: New content to compare against

    Returns:
        Formatted diff string with − for removed lines and + for added lines,
        or "(no changes)" if contents are identical
    """
    old_lines = old_content.splitlines()
    new_lines = new_content.splitlines()

    if old_lines == new_lines:
        return "(no changes)"

    matcher = difflib.SequenceMatcher(None, old_lines, new_lines)
    diff_lines: list[str] = []

    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        match tag:
            case "equal":
                continue
            case "replace" | "delete" | "insert":
                diff_lines.extend(f"− {line}" for line in old_lines[i1:i2])
                diff_lines.extend(f"+ {line}" for line in new_lines[j1:j2])

    return "\n".join(diff_lines) if diff_lines else "(no changes)"


###############################################################################
#
def format_entry_create_result(
    target_date: date, entry: Entry, carried: int
) -> str:
    """
    Format the result of creating a day's entry.

    Args:
        target_date: Date of the new entry
        entry: The created entry
        carried: Number of live tasks copied from the previous entry

    Returns:
        Formatted confirmation with entry content
    """
    lines = [f"✓ Entry Created for {target_date.isoformat()}"]
    if carried:
        lines.append(
            f"  Carried over {carried} open task{'s' if carried != 1 else ''}"
        )
    lines.append("")
    lines.append(render(entry).rstrip("\n"))
    return "\n".join(lines)


###############################################################################
#
def format_entry_update_result(
    action: str, target_date: date, old_text: str, new_entry: Entry
) -> str:
    """
    Format the result of an entry modification with diff.

    Args:
        action: What was changed (e.g., "Observation Added")
        target_date: Date of the entry
        old_text: Rendered entry before the change
        new_entry: The entry after the change

    Returns:
        Formatted string with status and diff
    """
    lines = [
        f"✓ {action} for {target_date.isoformat()}",
        "",
        "Changes:",
        format_simple_diff(old_text, render(new_entry)),
    ]
    return "\n".join(lines)


###############################################################################
#
def format_task_list(entry: Entry, target_date: date) -> str:
    """
    Format an entry's tasks as a numbered list.

    Args:
        entry: Entry whose tasks are listed
        target_date: Date of the entry, for the empty message

    Returns:
        One "N: STATE message" line per task, numbered from 1
    """
    if not entry.tasks:
        return f"No tasks for {target_date.isoformat()}"

    return "\n".join(
        f"{number}: {task}" for number, task in enumerate(entry.tasks, 1)
    )


###############################################################################
#
def format_task_update_result(
    number: int, task: Task, old_text: str, new_entry: Entry
) -> str:
    """
    Format the result of a task state change.

    Args:
        number: 1-based task number
        task: The task after the update
        old_text: Rendered entry before the change
        new_entry: The entry after the change

    Returns:
        The updated task line followed by the diff
    """
    lines = [
        f"✓ Task {number} Updated",
        f"  {task}",
        "",
        "Changes:",
        format_simple_diff(old_text, render(new_entry)),
    ]
    return "\n".join(lines)


###############################################################################
#
def format_entry_preview(text: str) -> str:
    """
    Check arbitrary entry text without touching any file.

    Args:
        text: Entry text, with or without the header line

    Returns:
        The parse error, or the canonical form and how it differs from text
    """
    body = text.removeprefix(f"{MAGIC}\n")
    try:
        entry = parse(body)
    except ParseError as e:
        return f"✗ Invalid entry ({e.kind.value}): {e}"

    canonical = render(entry)
    lines = [
        "✓ Valid entry",
        f"  {len(entry.observations)} observations, {len(entry.tasks)} tasks, "
        f"{len(entry.events)} events, {len(entry.notes)} notes",
        "",
        "Canonical changes:",
        format_simple_diff(body, canonical),
    ]
    return "\n".join(lines)


# =============================================================================
# Entry File Operations
# =============================================================================


###############################################################################
#
def get_entry_path(target_date: date) -> Path:
    """Path of the entry file for a date inside COACH_DIR."""
    return entry_path(COACH_DIR, target_date)


###############################################################################
#
def load_entry(target_date: date) -> Entry:
    """
    Read the entry for a date.

    Raises:
        FileNotFoundError: If there is no entry for the date
        ValueError: If the file is too large or does not parse
    """
    return entry_from_file(get_entry_path(target_date), MAX_ENTRY_SIZE)


###############################################################################
#
def modify_entry(
    target_date: date, change: Callable[[Entry], T]
) -> tuple[str, Entry, T]:
    """
    Read an entry, apply a change and write it back.

    Args:
        target_date: Date of the entry to modify
        change: Called with the loaded entry; mutates it in place

    Returns:
        Tuple of (old rendered text, modified entry, change's return value)

    Note:
        Nothing is written if change raises.
    """
    path = get_entry_path(target_date)
    entry = entry_from_file(path, MAX_ENTRY_SIZE)
    old_text = render(entry)

    result = change(entry)

    entry_to_file(path, entry)
    return (old_text, entry, result)


###############################################################################
#
def create_entry(
    target_date: date, carry_over: bool = True
) -> tuple[Entry, int]:
    """
    Create the entry file for a date.

    Args:
        target_date: Date of the new entry; its ISO form becomes the label
        carry_over: Copy live tasks from the most recent earlier entry

    Returns:
        Tuple of (created_entry, number_of_carried_tasks)

    Raises:
        FileExistsError: If the entry already exists

    Note:
        An unreadable previous entry is logged and skipped; it never blocks
        creating the new one.
    """
    entry = Entry(label=target_date.isoformat())
    carried = 0

    if carry_over:
        previous = find_previous_entry(COACH_DIR, target_date, CARRY_DAYS)
        if previous is not None:
            try:
                old_entry = entry_from_file(previous, MAX_ENTRY_SIZE)
            except ValueError as e:
                logger.warning("not carrying tasks from %s: %s", previous, e)
            else:
                for task in old_entry.live_tasks():
                    entry.tasks.append(Task(task.state, task.message))
                carried = len(entry.tasks)

    new_entry_file(get_entry_path(target_date), entry)
    logger.info("created entry for %s", target_date.isoformat())
    return (entry, carried)


###############################################################################
#
def parse_task_state(name: str) -> TaskState:
    """
    Look up a task state by name.

    Raises:
        ValueError: If name is not one of STATE_NAMES
    """
    try:
        return STATE_NAMES[name.strip().lower()]
    except KeyError:
        raise ValueError(
            f"Unknown task state '{name}', expected one of: "
            f"{', '.join(STATE_NAMES)}"
        ) from None


###############################################################################
#
def update_task(
    target_date: date, number: int, state_name: str
) -> tuple[str, Entry, Task]:
    """
    Change the state of a task, keeping its message.

    Args:
        target_date: Date of the entry
        number: 1-based task number, as shown by list_tasks
        state_name: One of todo, working, done, cancel

    Returns:
        Tuple of (old rendered text, modified entry, updated task)

    Raises:
        ValueError: If number is not positive or state_name is unknown
        IndexError: If there is no task with that number
    """
    if number < 1:
        raise ValueError("task numbers start at 1")
    state = parse_task_state(state_name)

    def change(entry: Entry) -> Task:
        if number > len(entry.tasks):
            raise IndexError(f"{number} is too large, no task found")
        return entry.update_task(number - 1, state)

    return modify_entry(target_date, change)


###############################################################################
#
def event_time(target_date: date, time_str: str | None) -> datetime:
    """
    Build the UTC timestamp for a new event.

    Args:
        target_date: Date of the entry
        time_str: Time in HH:MM format, UTC unless it carries an offset
            (e.g. "21:10+02:00"). None means the current time of day.

    Returns:
        Aware UTC datetime
    """
    if time_str is None:
        clock = datetime.now(timezone.utc).time()
    else:
        clock = time.fromisoformat(time_str)
    when = datetime.combine(
        target_date,
        clock.replace(tzinfo=None),
        tzinfo=clock.tzinfo or timezone.utc,
    )
    return when.astimezone(timezone.utc)


# =============================================================================
# Serialization Helpers
# =============================================================================


###############################################################################
#
def task_to_dict(number: int, task: Task) -> dict:
    """
    Convert task to dictionary for JSON output.

    Args:
        number: 1-based task number
        task: Task object to convert

    Returns:
        Dictionary with task fields suitable for JSON serialization
    """
    return {
        "number": number,
        "state": task.state.name,
        "message": task.message,
        "live": task.is_live(),
    }


# =============================================================================
# MCP Tool Definitions
# =============================================================================

DATE_PROPERTY = {
    "type": "string",
    "description": "Date in YYYY-MM-DD format. Defaults to today (UTC).",
}


###############################################################################
#
@server.list_tools()
async def list_tools():
    return [
        Tool(
            name="create_entry",
            description="Create the entry file for a day, labelled with its date. Open tasks from the previous entry are carried over by default.",
            inputSchema={
                "type": "object",
                "properties": {
                    "date": DATE_PROPERTY,
                    "carry_over": {
                        "type": "boolean",
                        "description": "Copy TODO/WORKING tasks from the most recent earlier entry (default true)",
                    },
                },
            },
        ),
        Tool(
            name="show_entry",
            description="Return the full text of a day's entry.",
            inputSchema={
                "type": "object",
                "properties": {"date": DATE_PROPERTY},
            },
        ),
        Tool(
            name="add_observation",
            description="Add a 'name: value' observation to the entry header.",
            inputSchema={
                "type": "object",
                "properties": {
                    "date": DATE_PROPERTY,
                    "name": {
                        "type": "string",
                        "description": "Observation name (no colons or newlines)",
                    },
                    "value": {
                        "type": "string",
                        "description": "Observation value (single line)",
                    },
                },
                "required": ["name", "value"],
            },
        ),
        Tool(
            name="list_tasks",
            description="List the tasks of an entry, numbered from 1.",
            inputSchema={
                "type": "object",
                "properties": {"date": DATE_PROPERTY},
            },
        ),
        Tool(
            name="add_task",
            description="Add a TODO task to an entry.",
            inputSchema={
                "type": "object",
                "properties": {
                    "date": DATE_PROPERTY,
                    "message": {
                        "type": "string",
                        "description": "Task text (single line)",
                    },
                },
                "required": ["message"],
            },
        ),
        Tool(
            name="update_task",
            description="Change a task's state. The task text is kept as is.",
            inputSchema={
                "type": "object",
                "properties": {
                    "date": DATE_PROPERTY,
                    "number": {
                        "type": "integer",
                        "description": "Task number from list_tasks (starts at 1)",
                    },
                    "state": {
                        "type": "string",
                        "enum": ["todo", "working", "done", "cancel"],
                    },
                },
                "required": ["number", "state"],
            },
        ),
        Tool(
            name="add_event",
            description="Add a timestamped event to an entry.",
            inputSchema={
                "type": "object",
                "properties": {
                    "date": DATE_PROPERTY,
                    "text": {
                        "type": "string",
                        "description": "Event text (single line)",
                    },
                    "time": {
                        "type": "string",
                        "description": "Time in HH:MM format (UTC unless an offset is given). Defaults to the current time on the entry's date.",
                    },
                },
                "required": ["text"],
            },
        ),
        Tool(
            name="add_note",
            description="Add a free-form note. Notes may span lines but can't contain blank lines or start like a task or event.",
            inputSchema={
                "type": "object",
                "properties": {
                    "date": DATE_PROPERTY,
                    "text": {"type": "string", "description": "Note text"},
                },
                "required": ["text"],
            },
        ),
        Tool(
            name="preview_entry",
            description="Check entry text WITHOUT writing anything. Reports the parse error, or how the text differs from its canonical form.",
            inputSchema={
                "type": "object",
                "properties": {
                    "text": {"type": "string", "description": "Entry text"},
                },
                "required": ["text"],
            },
        ),
    ]


# =============================================================================
# MCP Tool Handlers
# =============================================================================


###############################################################################
#
@server.call_tool()
async def call_tool(name: str, arguments: dict):
    logger.info("tool call: %s", name)
    try:
        target_date = date.fromisoformat(
            arguments.get("date") or today_utc().isoformat()
        )

        match name:
            case "create_entry":
                entry, carried = create_entry(
                    target_date, arguments.get("carry_over", True)
                )
                output = format_entry_create_result(target_date, entry, carried)
                return [TextContent(type="text", text=output)]

            case "show_entry":
                entry = load_entry(target_date)
                return [TextContent(type="text", text=render(entry))]

            case "add_observation":
                old_text, entry, _ = modify_entry(
                    target_date,
                    lambda e: e.add_observation(
                        arguments["name"], arguments["value"]
                    ),
                )
                output = format_entry_update_result(
                    "Observation Added", target_date, old_text, entry
                )
                return [TextContent(type="text", text=output)]

            case "list_tasks":
                entry = load_entry(target_date)
                output = format_task_list(entry, target_date)
                return [TextContent(type="text", text=output)]

            case "add_task":
                old_text, entry, _ = modify_entry(
                    target_date, lambda e: e.add_task(arguments["message"])
                )
                output = format_entry_update_result(
                    "Task Added", target_date, old_text, entry
                )
                return [TextContent(type="text", text=output)]

            case "update_task":
                number = arguments["number"]
                old_text, entry, task = update_task(
                    target_date, number, arguments["state"]
                )
                output = format_task_update_result(number, task, old_text, entry)
                return [TextContent(type="text", text=output)]

            case "add_event":
                when = event_time(target_date, arguments.get("time"))
                old_text, entry, _ = modify_entry(
                    target_date, lambda e: e.add_event(when, arguments["text"])
                )
                output = format_entry_update_result(
                    "Event Added", target_date, old_text, entry
                )
                return [TextContent(type="text", text=output)]

            case "add_note":
                old_text, entry, _ = modify_entry(
                    target_date, lambda e: e.add_note(arguments["text"])
                )
                output = format_entry_update_result(
                    "Note Added", target_date, old_text, entry
                )
                return [TextContent(type="text", text=output)]

            case "preview_entry":
                output = format_entry_preview(arguments["text"])
                return [TextContent(type="text", text=output)]

            case _:
                return [TextContent(type="text", text=f"Unknown tool: {name}")]

    except FileNotFoundError as e:
        return [TextContent(type="text", text=f"File not found: {e}")]
    except FileExistsError as e:
        return [TextContent(type="text", text=f"Entry already exists: {e}")]
    except ParseError as e:
        return [TextContent(type="text", text=f"Invalid entry file: {e}")]
    except (ValueError, IndexError) as e:
        return [TextContent(type="text", text=f"Error: {e}")]
    except Exception as e:
        logger.exception("tool %s failed", name)
        return [
            TextContent(
                type="text", text=f"Unexpected error: {type(e).__name__}: {e}"
            )
        ]


# =============================================================================
# Resources
# =============================================================================


###############################################################################
#
@server.list_resources()
async def list_resources():
    return [
        Resource(
            uri="coach://entry/today",
            name="Today's Entry",
            description="Full text of today's entry",
            mimeType="text/plain",
        ),
        Resource(
            uri="coach://tasks/today",
            name="Today's Tasks",
            description="Tasks in today's entry",
            mimeType="application/json",
        ),
    ]


###############################################################################
#
@server.read_resource()
async def read_resource(uri):
    match str(uri):
        case "coach://entry/today":
            entry = load_entry(today_utc())
            return [ReadResourceContents(render(entry), "text/plain")]
        case "coach://tasks/today":
            entry = load_entry(today_utc())
            tasks = [
                task_to_dict(number, task)
                for number, task in enumerate(entry.tasks, 1)
            ]
            return [
                ReadResourceContents(
                    json.dumps(tasks, indent=2), "application/json"
                )
            ]
        case _:
            raise ValueError(f"Unknown resource: {uri}")


# =============================================================================
# Main
# =============================================================================


###############################################################################
#
async def main():
    logging.basicConfig(
        level=LOG_LEVEL,
        stream=sys.stderr,
        format="%(levelname)s: %(message)s",
    )
    init_options = InitializationOptions(
        server_name="coach",
        server_version="0.1.0",
        capabilities=ServerCapabilities(
            tools={},
            resources={},
        ),
    )
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, init_options)


###############################################################################
#
def run():
    asyncio.run(main())


###############################################################################
###############################################################################
#
if __name__ == "__main__":
    run()
