# modules/formatting.py

import logging
from typing import Any, Dict, Optional, Sequence, Tuple

from modules.shell_types import OutputLine, OutputType

logger = logging.getLogger(__name__)

NULL_DISPLAY = "null"

# OutputLine.type -> UIManager style class
_STYLE_FOR_TYPE = {
    OutputType.COMMAND: "command",
    OutputType.OUTPUT: "default",
    OutputType.ERROR: "error",
    OutputType.INFO: "info",
    OutputType.WARNING: "warning",
}


def _cell(value: Any) -> str:
    return NULL_DISPLAY if value is None else str(value)


def format_results_as_table(rows: Optional[Sequence[Dict[str, Any]]]) -> str:
    """
    Formats result rows as a padded text table.

    Columns are padded to the widest cell (header included), separated by ' | ';
    the separator line joins dashes with '-+-'. A `(N row)`/`(N rows)` footer
    is appended. An empty result is just `(0 rows)`.
    """
    if not rows:
        return "(0 rows)"

    headers = list(rows[0].keys())
    widths = [len(h) for h in headers]
    for row in rows:
        for index, header in enumerate(headers):
            widths[index] = max(widths[index], len(_cell(row.get(header))))

    header_line = " | ".join(h.ljust(widths[i]) for i, h in enumerate(headers))
    separator_line = "-+-".join("-" * w for w in widths)
    data_lines = [
        " | ".join(_cell(row.get(h)).ljust(widths[i]) for i, h in enumerate(headers))
        for row in rows
    ]
    footer = f"({len(rows)} row{'' if len(rows) == 1 else 's'})"
    return "\n".join([header_line, separator_line, *data_lines, footer])


def format_output_line(line: OutputLine, prompt_symbol: str = "> ") -> Tuple[str, str]:
    """Returns (style_class, text) for rendering an OutputLine in the terminal."""
    style_class = _STYLE_FOR_TYPE.get(line.type, "default")
    if line.type == OutputType.COMMAND:
        return style_class, f"{prompt_symbol}[{line.category}] {line.text}"
    if line.timestamp and line.type in (OutputType.ERROR, OutputType.INFO, OutputType.WARNING):
        prefix = {OutputType.ERROR: "❌", OutputType.INFO: "ℹ️", OutputType.WARNING: "⚠️"}[line.type]
        return style_class, f"{prefix} {line.text}"
    return style_class, line.text
