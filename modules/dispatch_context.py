# modules/dispatch_context.py

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, FrozenSet, List, Mapping, Optional, Sequence, Tuple

from modules.cancellation import CancellationToken
from modules.category_manager import CATEGORY_SUGGESTIONS
from modules.config_handler import get_config_value
from modules.session_log import LogEntry, current_timestamp
from modules.shell_types import CustomCommand
from modules.store import SQLiteStore

logger = logging.getLogger(__name__)

# (input_text, tool_context) -> answer
TextGenerator = Callable[[str, str], Awaitable[str]]


@dataclass
class DispatchContext:
    """
    Everything one dispatch may read. Passed in explicitly by the caller;
    handlers treat it as read-only and report changes through their result.
    """
    user_id: int
    store: SQLiteStore
    user_permissions: FrozenSet[str] = frozenset()
    log: Tuple[LogEntry, ...] = ()
    custom_commands: Mapping[str, CustomCommand] = field(default_factory=dict)
    override_all: bool = False
    config: Dict[str, Any] = field(default_factory=dict)
    text_generator: Optional[TextGenerator] = None
    cancel_token: Optional[CancellationToken] = None
    suggestions: Mapping[str, Sequence[str]] = field(default_factory=lambda: CATEGORY_SUGGESTIONS)
    timestamp: str = field(default_factory=current_timestamp)

    def setting(self, key_path: str, default=None):
        return get_config_value(self.config, key_path, default)

    def delay_range(self, key: str, default: Tuple[int, int]) -> Tuple[float, float]:
        """Configured (min_ms, max_ms) for a simulated delay; zero when simulation delays are disabled."""
        if not self.setting("simulation.enabled", True):
            return 0.0, 0.0
        configured = self.setting(f"simulation.delays_ms.{key}", default)
        try:
            low, high = configured
            return float(low), float(high)
        except (TypeError, ValueError):
            logger.warning(f"Invalid delay range for '{key}': {configured!r}. Using {default}.")
            return float(default[0]), float(default[1])


@dataclass
class ParsedCommand:
    """A command split once into tokens, with the matched built-in (if any)."""
    raw: str
    tokens: List[str]
    verb: Optional[str] = None
    args: List[str] = field(default_factory=list)
    arg_text: str = ""

    @property
    def first_token(self) -> str:
        return self.tokens[0].lower() if self.tokens else ""
