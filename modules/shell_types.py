# modules/shell_types.py

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from modules.session_log import LogEntry, Severity, append_log_entries, make_log_entry


class Category(str, Enum):
    """The closed set of execution categories a command can be classified into."""
    INTERNAL = "internal"
    PYTHON = "python"
    UNIX = "unix"
    WINDOWS = "windows"
    SQL = "sql"
    EXCEL = "excel"
    TYPESCRIPT = "typescript"


ALL_CATEGORIES: Tuple[str, ...] = tuple(c.value for c in Category)

# Classification outcomes that are not categories
AMBIGUOUS_CATEGORY = "ambiguous"
UNKNOWN_CATEGORY = "unknown"


class OutputType(str, Enum):
    COMMAND = "command"
    OUTPUT = "output"
    ERROR = "error"
    INFO = "info"
    WARNING = "warning"


@dataclass(frozen=True)
class ClassificationResult:
    category: str
    reasoning: Optional[str] = None

    @property
    def is_dispatchable(self) -> bool:
        return self.category in ALL_CATEGORIES


@dataclass(frozen=True)
class OutputLine:
    id: str
    text: str
    type: OutputType
    category: str
    timestamp: Optional[str] = None
    flag: Optional[int] = None


def make_output_line(text: str, line_type=OutputType.OUTPUT, category: str = Category.INTERNAL.value,
                     timestamp: Optional[str] = None, flag: Optional[int] = None) -> OutputLine:
    return OutputLine(
        id=f"{OutputType(line_type).value}-{uuid.uuid4().hex[:12]}",
        text=text,
        type=OutputType(line_type),
        category=str(getattr(category, 'value', category)),
        timestamp=timestamp,
        flag=flag,
    )


@dataclass(frozen=True)
class CustomCommand:
    name: str
    short: str
    description: str
    action: str


@dataclass
class HandlerResult:
    """What a single handler or simulator produced; merged into an ExecutionResult by the caller."""
    output_lines: List[OutputLine] = field(default_factory=list)
    log_entries: List[LogEntry] = field(default_factory=list)
    new_custom_commands: Optional[Dict[str, CustomCommand]] = None
    new_suggestions: List[Tuple[str, str]] = field(default_factory=list)
    variables_changed: bool = False
    clear_screen: bool = False
    log_csv: Optional[str] = None


@dataclass
class ExecutionResult:
    """
    Effects descriptor returned by the dispatcher and executor.

    The caller owns the session state and applies these effects; nothing in
    the dispatch path mutates it directly. `new_custom_commands` is None when
    the registry is unchanged.
    """
    output_lines: List[OutputLine] = field(default_factory=list)
    new_log: Tuple[LogEntry, ...] = ()
    new_custom_commands: Optional[Dict[str, CustomCommand]] = None
    new_suggestions: List[Tuple[str, str]] = field(default_factory=list)
    variables_changed: bool = False
    clear_screen: bool = False
    log_csv: Optional[str] = None


def merge_handler_result(log: Sequence[LogEntry], result: HandlerResult,
                         leading_lines: Sequence[OutputLine] = ()) -> ExecutionResult:
    return ExecutionResult(
        output_lines=list(leading_lines) + list(result.output_lines),
        new_log=append_log_entries(log, result.log_entries),
        new_custom_commands=result.new_custom_commands,
        new_suggestions=list(result.new_suggestions),
        variables_changed=result.variables_changed,
        clear_screen=result.clear_screen,
        log_csv=result.log_csv,
    )


def error_result(message: str, category: str, timestamp: str, flag: int = 0,
                 log_text: Optional[str] = None) -> HandlerResult:
    """One error line plus one E log entry."""
    return HandlerResult(
        output_lines=[make_output_line(message, OutputType.ERROR, category, timestamp, flag)],
        log_entries=[make_log_entry(log_text or message, Severity.ERROR, flag, timestamp)],
    )


def cancelled_result(command: str, category: str, timestamp: str) -> HandlerResult:
    message = f"Operation cancelled: {command}"
    return HandlerResult(
        output_lines=[make_output_line(message, OutputType.WARNING, category, timestamp, 1)],
        log_entries=[make_log_entry(message, Severity.WARNING, 1, timestamp)],
    )
