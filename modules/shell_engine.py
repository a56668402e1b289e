# --- API DOCUMENTATION for modules/shell_engine.py ---
#
# **Purpose:** Acts as the core orchestrator for the shell. It owns the
# session state (log, custom commands, suggestions, active categories, acting
# user, override flag), classifies each submission, hands it to the command
# executor and applies the returned effects descriptor.
#
# **Public Classes:**
#
# class ShellEngine:
#     """The main class for shell logic."""
#
#     def __init__(self, config, ui_manager, store, ai_handler_module=None, main_exit_app_ref=None):
#         """
#         Args:
#             config (dict): The application configuration.
#             ui_manager (UIManager): The instance of the UI manager.
#             store (SQLiteStore): The session's backing store.
#             ai_handler_module (module): A reference to the ai_handler module. Without
#                 it, only fast-path internal commands can be classified.
#             main_exit_app_ref (callable): Callback to the main application exit function.
#         """
#
#     async def handle_built_in_command(self, user_input: str) -> bool:
#         """
#         Handles the slash commands (/help, /exit, /categories, /user, /override,
#         /sqlscript, /log). This is the first check for any user input.
#
#         Returns:
#             bool: True if the command was a built-in and was handled, False otherwise.
#         """
#
#     async def submit_user_input(self, user_input: str):
#         """
#         The main entry point for everything that isn't a slash command.
#         Rejects the submission while another command is still running.
#         """
#
#     def request_pause(self) -> bool:
#         """Cancels the in-flight command's token (bound to Ctrl+K)."""
#
# --- END API DOCUMENTATION ---

# modules/shell_engine.py

import asyncio
import os
import logging
from datetime import datetime
from typing import Optional

from modules.cancellation import CancellationToken
from modules.category_manager import (
    CATEGORY_DESCRIPTIONS, CATEGORY_SUGGESTIONS, classify_command, normalize_active_categories,
    parse_category_input,
)
from modules.command_executor import execute_command
from modules.config_handler import get_config_value
from modules.dispatch_context import DispatchContext
from modules.formatting import format_output_line
from modules.permissions import (
    DatabaseNotInitializedError, PermissionResolutionError, is_override_active, resolve_user_permissions,
)
from modules.session_log import Severity, append_log_entries, make_log_entry, write_log_csv
from modules.shell_types import ALL_CATEGORIES, AMBIGUOUS_CATEGORY, ExecutionResult, merge_handler_result
from modules.sql_script_runner import list_sql_scripts, run_sql_script

logger = logging.getLogger(__name__)

BUSY_MESSAGE = "A command is already running; wait for it to finish or press Ctrl+K."
DEFAULT_BOOTSTRAP_PERMISSIONS = ["manage_roles_permissions", "use_ai_tools"]

SLASH_HELP_TEXT = """SimShell slash commands:
  /help                              Show this help.
  /exit                              Exit SimShell (also: exit, quit).
  /categories                        List categories and whether they are active.
  /categories enable <c>             Activate a category (name or number).
  /categories disable <c>            Deactivate a category.
  /categories only <c>[,<c>...]      Activate exactly the listed categories.
  /user <id>                         Act as another user id.
  /override on|off                   Bypass (or restore) permission checks for this session.
  /sqlscript list                    List the available SQL scripts.
  /sqlscript run <file.sql>          Run a SQL script against the session database.
  /log [n]                           Show the last n session log entries (default 10).
Type 'help' for the shell's own command language."""


class ShellEngine:
    def __init__(self, config, ui_manager, store, ai_handler_module=None, main_exit_app_ref=None):
        self.config = config
        self.ui_manager = ui_manager
        self.store = store
        self.ai_handler_module = ai_handler_module
        self.main_exit_app_ref = main_exit_app_ref

        self.session_log = ()
        self.custom_commands = {}
        self.suggestions = {category: list(items) for category, items in CATEGORY_SUGGESTIONS.items()}
        self.active_categories = normalize_active_categories(
            get_config_value(config, "categories.active", list(ALL_CATEGORIES)))
        self.user_id = get_config_value(config, "session.user_id", 1)
        self.override_all = bool(get_config_value(config, "session.override_all_permissions", False))

        self._cancel_token: Optional[CancellationToken] = None
        self._dispatch_lock = asyncio.Lock()
        self._bootstrap_warned = False

        logger.info(f"ShellEngine initialized (user {self.user_id}, active categories: {self.active_categories})")

    # --- oracles ---

    async def _classifier_oracle(self, command: str, active_categories):
        return await self.ai_handler_module.classify_command_with_ai(command, active_categories, self.config)

    async def _text_generator(self, input_text: str, tool_context: str) -> str:
        return await self.ai_handler_module.generate_text_with_ai(input_text, self.config, tool_context)

    # --- session state ---

    def _append_log(self, text: str, severity=Severity.INFO, flag: int = 0):
        self.session_log = append_log_entries(self.session_log, [make_log_entry(text, severity, flag)])

    def resolve_permissions(self):
        """Permissions of the acting user; bootstrap permissions while the RBAC schema is missing."""
        try:
            permissions = resolve_user_permissions(self.store, self.user_id)
        except DatabaseNotInitializedError:
            permissions = frozenset(get_config_value(self.config, "session.bootstrap_permissions",
                                                     DEFAULT_BOOTSTRAP_PERMISSIONS))
            if not self._bootstrap_warned:
                self._bootstrap_warned = True
                message = "Database not initialized. Run 'init db' to set up users, roles and permissions."
                self.ui_manager.append_output(f"⚠️ {message}", style_class='warning')
                self._append_log(f"{message} Using bootstrap permissions: {sorted(permissions)}",
                                 Severity.WARNING, 1)
            return permissions
        except PermissionResolutionError as e:
            logger.error(f"Could not resolve permissions for user {self.user_id}: {e}", exc_info=True)
            self._append_log(f"Error resolving permissions for user {self.user_id}: {e}", Severity.ERROR, 1)
            return frozenset()

        if self.store.is_initialized():
            self._bootstrap_warned = False
        return permissions

    def build_context(self, cancel_token: Optional[CancellationToken] = None) -> DispatchContext:
        return DispatchContext(
            user_id=self.user_id,
            store=self.store,
            user_permissions=self.resolve_permissions(),
            log=self.session_log,
            custom_commands=dict(self.custom_commands),
            override_all=self.override_all,
            config=self.config,
            text_generator=self._text_generator if self.ai_handler_module else None,
            cancel_token=cancel_token,
            suggestions=self.suggestions,
        )

    def status_text(self) -> str:
        override = "ON" if self.override_all else "off"
        busy = " | ⏳ running (Ctrl+K to pause)" if self.is_busy() else ""
        return (f" User: {self.user_id} | Override: {override} | "
                f"Categories: {', '.join(self.active_categories) or '(none)'} | "
                f"Log: {len(self.session_log)}{busy}")

    def refresh_status(self):
        style = 'class:status-bar.busy' if self.is_busy() else 'class:status-bar'
        self.ui_manager.update_status_bar(self.status_text(), style)

    def is_busy(self) -> bool:
        return self._dispatch_lock.locked()

    # --- effects ---

    def _write_log_csv(self, csv_text: str):
        data_dir = get_config_value(self.config, "storage.data_dir", "data")
        filename = f"simshell_log_{datetime.now().strftime('%Y%m%d_%H%M%S')}.csv"
        path = os.path.join(data_dir, filename)
        if write_log_csv(path, csv_text):
            self.ui_manager.append_output(f"✅ Session log exported to: {path}", style_class='success')
            self._append_log(f"Session log exported to: {path}")
        else:
            self.ui_manager.append_output(f"❌ Failed to write session log to: {path}", style_class='error')
            self._append_log(f"Failed to write session log to: {path}", Severity.ERROR, 1)

    def apply_result(self, result: ExecutionResult):
        """Applies an effects descriptor to the session state and renders its output lines."""
        self.session_log = result.new_log
        if result.new_custom_commands is not None:
            self.custom_commands = dict(result.new_custom_commands)
        for category, suggestion in result.new_suggestions:
            bucket = self.suggestions.setdefault(category, [])
            if suggestion not in bucket:
                bucket.append(suggestion)
        if result.clear_screen:
            # The echoed command line is dropped along with everything else
            self.ui_manager.clear_output()
        else:
            prompt_symbol = get_config_value(self.config, "ui.prompt_symbol", "> ")
            for line in result.output_lines:
                style_class, text = format_output_line(line, prompt_symbol)
                self.ui_manager.append_output(text, style_class=style_class)

        if result.log_csv:
            self._write_log_csv(result.log_csv)
        if result.variables_changed:
            logger.debug("Variables changed during dispatch.")
        self.refresh_status()

    # --- dispatch ---

    async def process_command(self, command: str, cancel_token: Optional[CancellationToken] = None):
        classification = await classify_command(
            command, self.active_categories,
            self._classifier_oracle if self.ai_handler_module else None,
            custom_command_names=self.custom_commands.keys())

        if not classification.is_dispatchable:
            if classification.category == AMBIGUOUS_CATEGORY:
                self.ui_manager.append_output(f"⚠️ Ambiguous command: {classification.reasoning}",
                                              style_class='warning')
            else:
                self.ui_manager.append_output(f"❌ Unknown command: {classification.reasoning}",
                                              style_class='error')
            self._append_log(f"Command classification failed: {classification.category}. "
                             f"Reason: {classification.reasoning}", Severity.WARNING, 0)
            self.refresh_status()
            return

        context = self.build_context(cancel_token)
        result = await execute_command(context, classification.category, command)
        self.apply_result(result)

    async def submit_user_input(self, user_input: str):
        if not self.ui_manager: logger.error("submit_user_input: UIManager not initialized."); return
        user_input_stripped = user_input.strip()
        if not user_input_stripped:
            return

        if self._dispatch_lock.locked():
            logger.warning(f"Rejected '{user_input_stripped}': another command is in flight.")
            self.ui_manager.append_output(f"⚠️ {BUSY_MESSAGE}", style_class='warning')
            self._append_log(f"Rejected while busy: {user_input_stripped}", Severity.WARNING, 0)
            return

        async with self._dispatch_lock:
            self._cancel_token = CancellationToken()
            self.refresh_status()
            try:
                self.ui_manager.add_interaction_separator()
                await self.process_command(user_input_stripped, self._cancel_token)
            except Exception as e:
                logger.error(f"Unexpected error while processing '{user_input_stripped}': {e}", exc_info=True)
                self.ui_manager.append_output(f"❌ Error: {e}", style_class='error')
                self._append_log(f"Error: {e}", Severity.ERROR, 1)
            finally:
                self._cancel_token = None
        self.refresh_status()

    def request_pause(self) -> bool:
        if self._cancel_token is None or self._cancel_token.cancelled:
            self.ui_manager.append_output("ℹ️ Nothing to pause.", style_class='info')
            return False
        self._cancel_token.cancel("pause requested (Ctrl+K)")
        self.ui_manager.append_output("⏸️ Pause requested. The running command will stop at its next checkpoint.",
                                      style_class='warning')
        return True

    # --- slash commands ---

    def _show_categories(self):
        lines = ["Categories:"]
        for index, category in enumerate(ALL_CATEGORIES, start=1):
            marker = "[x]" if category in self.active_categories else "[ ]"
            lines.append(f"  {index}. {marker} {category:<11} {CATEGORY_DESCRIPTIONS.get(category, '')}")
        self.ui_manager.append_output("\n".join(lines), style_class='help-text')

    def _handle_categories_command(self, args):
        if not args:
            self._show_categories(); return
        action = args[0].lower()
        if action not in ("enable", "disable", "only") or len(args) < 2:
            self.ui_manager.append_output("❌ Usage: /categories [enable|disable|only] <category>", style_class='error')
            return

        requested = [part for arg in args[1:] for part in arg.split(",") if part.strip()]
        resolved = [parse_category_input(part) for part in requested]
        unknown = [part for part, category in zip(requested, resolved) if category is None]
        if unknown:
            self.ui_manager.append_output(f"❌ Unknown category: {', '.join(unknown)}", style_class='error')
            return

        if action == "enable":
            updated = self.active_categories + resolved
        elif action == "disable":
            updated = [c for c in self.active_categories if c not in resolved]
        else:
            updated = resolved
        self.active_categories = normalize_active_categories(updated)
        self.ui_manager.append_output(f"✅ Active categories: {', '.join(self.active_categories) or '(none)'}",
                                      style_class='success')
        self._append_log(f"Active categories changed to: {', '.join(self.active_categories)}")

    def _handle_user_command(self, args):
        if len(args) != 1 or not args[0].isdigit() or int(args[0]) <= 0:
            self.ui_manager.append_output("❌ Usage: /user <positive user id>", style_class='error')
            return
        self.user_id = int(args[0])
        self.ui_manager.append_output(f"✅ Now acting as user {self.user_id}.", style_class='success')
        self._append_log(f"Switched acting user to {self.user_id}")

    def _handle_override_command(self, args):
        if len(args) != 1 or args[0].lower() not in ("on", "off"):
            state = "on" if self.override_all else "off"
            self.ui_manager.append_output(f"ℹ️ Permission override is {state}. Usage: /override on|off",
                                          style_class='info')
            return
        self.override_all = args[0].lower() == "on"
        if self.override_all:
            self.ui_manager.append_output("⚠️ Permission override enabled: all permission checks are bypassed.",
                                          style_class='warning')
            self._append_log(f"Permission override enabled for session (User: {self.user_id})", Severity.WARNING, 1)
        else:
            self.ui_manager.append_output("✅ Permission override disabled.", style_class='success')
            self._append_log(f"Permission override disabled for session (User: {self.user_id})")

    async def _handle_sqlscript_command(self, args):
        scripts_dir = get_config_value(self.config, "storage.sql_scripts_dir", "sql_scripts")
        if args and args[0].lower() == "list":
            scripts = list_sql_scripts(scripts_dir)
            if scripts:
                self.ui_manager.append_output("Available SQL scripts:\n" + "\n".join(f"  - {s}" for s in scripts),
                                              style_class='info')
            else:
                self.ui_manager.append_output(f"ℹ️ No SQL scripts found in {scripts_dir}.", style_class='info')
            return
        if len(args) == 2 and args[0].lower() == "run":
            permissions = self.resolve_permissions()
            if not (is_override_active(permissions, self.override_all) or "execute_sql_modify" in permissions):
                message = "Permission denied: Requires 'execute_sql_modify' permission."
                self.ui_manager.append_output(f"❌ {message}", style_class='error')
                self._append_log(f"{message} (User: {self.user_id})", Severity.ERROR, 1)
                return
            result = run_sql_script(self.store, scripts_dir, args[1])
            self.apply_result(merge_handler_result(self.session_log, result))
            return
        self.ui_manager.append_output("❌ Usage: /sqlscript list | /sqlscript run <file.sql>", style_class='error')

    def _handle_log_command(self, args):
        count = 10
        if args:
            if not args[0].isdigit():
                self.ui_manager.append_output("❌ Usage: /log [n]", style_class='error'); return
            count = int(args[0])
        entries = self.session_log[-count:] if count else ()
        if not entries:
            self.ui_manager.append_output("ℹ️ The session log is empty.", style_class='info'); return
        lines = [f"{e.timestamp} [{e.severity.value}]{'!' if e.flag else ' '} {e.text}" for e in entries]
        self.ui_manager.append_output("\n".join(lines), style_class='help-text')

    async def handle_built_in_command(self, user_input: str) -> bool:
        user_input_stripped = user_input.strip()
        logger.info(f"ShellEngine.handle_built_in_command received: '{user_input_stripped}'")
        if user_input_stripped.lower() in {"exit", "quit", "/exit", "/quit"}:
            self.ui_manager.append_output("Exiting SimShell 🚪", style_class='info')
            logger.info("Exit command received from built-in handler.")
            if self.main_exit_app_ref: self.main_exit_app_ref()
            else:
                app_instance = self.ui_manager.get_app_instance()
                if app_instance and app_instance.is_running: app_instance.exit()
            return True
        if not user_input_stripped.startswith("/"):
            return False

        parts = user_input_stripped.split()
        command, args = parts[0].lower(), parts[1:]
        if command == "/help":
            self.ui_manager.append_output(SLASH_HELP_TEXT, style_class='help-text')
        elif command == "/categories":
            self._handle_categories_command(args)
        elif command == "/user":
            self._handle_user_command(args)
        elif command == "/override":
            self._handle_override_command(args)
        elif command == "/sqlscript":
            if self.is_busy():
                self.ui_manager.append_output(f"⚠️ {BUSY_MESSAGE}", style_class='warning')
            else:
                await self._handle_sqlscript_command(args)
        elif command == "/log":
            self._handle_log_command(args)
        else:
            # Unrecognized slash input is left to the classifier
            return False
        self.refresh_status()
        return True
