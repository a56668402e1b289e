# --- API DOCUMENTATION for modules/session_log.py ---
#
# **Purpose:** Defines the single canonical session log entry shape and the
# helpers used to build, append and export the session log.
#
# **Public Classes:**
#
# class Severity(str, Enum):
#     """I (Info), W (Warning), E (Error)."""
#
# @dataclass(frozen=True)
# class LogEntry:
#     """{timestamp, severity, flag, text}. Immutable."""
#
# **Public Functions:**
#
# def make_log_entry(text, severity=Severity.INFO, flag=0, timestamp=None) -> LogEntry
# def append_log_entries(log, entries) -> tuple
# def export_log_to_csv(entries) -> str | None
#     """Returns None for an empty log so callers can report 'no entries'."""
# def write_log_csv(filepath, csv_text) -> bool
# def log_requirements_csv() -> str
#
# --- END API DOCUMENTATION ---

# modules/session_log.py

import os
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

LOG_CSV_HEADER = "Timestamp,Type,Flag,Text"
NO_LOG_ENTRIES_MESSAGE = "No log entries to export."


class Severity(str, Enum):
    INFO = "I"
    WARNING = "W"
    ERROR = "E"


@dataclass(frozen=True)
class LogEntry:
    timestamp: str
    severity: Severity
    flag: int
    text: str


def current_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def make_log_entry(text: str, severity=Severity.INFO, flag: int = 0,
                   timestamp: Optional[str] = None) -> LogEntry:
    """Builds a LogEntry, normalizing severity ('I'/'W'/'E' or Severity) and flag (0/1)."""
    return LogEntry(
        timestamp=timestamp or current_timestamp(),
        severity=Severity(severity),
        flag=1 if flag else 0,
        text=text,
    )


def append_log_entries(log: Sequence[LogEntry], entries: Iterable[LogEntry]) -> Tuple[LogEntry, ...]:
    """Returns a new log tuple; the input log is never modified."""
    return tuple(log) + tuple(entries)


def _quote_csv_field(value) -> str:
    return '"' + str(value).replace('"', '""') + '"'


def export_log_to_csv(entries: Sequence[LogEntry]) -> Optional[str]:
    """
    Renders log entries as CSV with a `Timestamp,Type,Flag,Text` header.

    Every field is wrapped in double quotes and embedded quotes are doubled.

    Returns:
        The CSV text (header + one line per entry), or None when there are no entries.
    """
    if not entries:
        return None
    lines = [LOG_CSV_HEADER]
    for entry in entries:
        fields = (entry.timestamp, entry.severity.value, entry.flag, entry.text)
        lines.append(",".join(_quote_csv_field(f) for f in fields))
    return "\n".join(lines)


def write_log_csv(filepath: str, csv_text: str) -> bool:
    try:
        directory = os.path.dirname(filepath)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(filepath, 'w', encoding='utf-8') as f:
            f.write(csv_text)
            f.write("\n")
        logger.info(f"Session log exported to {filepath}")
        return True
    except IOError as e:
        logger.error(f"Error writing session log to {filepath}: {e}", exc_info=True)
        return False


# Field documentation shown by `show requirements`
_LOG_FIELD_REQUIREMENTS = (
    ("timestamp", "ISO string timestamp of the log event."),
    ("type", "Type of log event: I (Info), W (Warning), E (Error)."),
    ("flag", "Binary sub-classification of the event: 0 (normal) or 1 (notable, error-adjacent)."),
    ("text", "The descriptive text of the log event."),
)
_LOG_DEFINITION_FILENAME = "modules/session_log.py"


def log_requirements_csv() -> str:
    """Describes the LogEntry fields as `filename,requi_code,requirement` CSV."""
    base_filename = os.path.basename(_LOG_DEFINITION_FILENAME)
    rows = ["filename,requi_code,requirement"]
    for code, requirement in _LOG_FIELD_REQUIREMENTS:
        requirement_csv = _quote_csv_field(requirement) if (',' in requirement or '"' in requirement) else requirement
        rows.append(f"{_LOG_DEFINITION_FILENAME},{base_filename}:{code},{requirement_csv}")
    return "\n".join(rows)
