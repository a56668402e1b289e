# --- API DOCUMENTATION for modules/internal_dispatcher.py ---
#
# **Purpose:** Parses and dispatches commands classified as 'internal'. This is
# the only place where built-in commands are authorized.
#
# **Public Functions:**
#
# def tokenize_command(command: str) -> list[str]
# def parse_internal_command(command: str) -> ParsedCommand
#     """Tokenizes once and matches the verb against the literal-token grammar."""
#
# async def dispatch_internal_command(context: DispatchContext, command: str) -> ExecutionResult:
#     """
#     Decision chain, first match wins:
#       1. `@bat:` prefix            -> experimental warning
#       2. built-in verb             -> permission gate -> handler (inside a catch-all)
#       3. custom command (any case) -> echo its action after a short delay
#       4. otherwise                 -> 'Internal command not found' (Warning)
#     The result's `new_log` always has at least one more entry than `context.log`.
#     Caller-owned state is never mutated.
#     """
#
# --- END API DOCUMENTATION ---

# modules/internal_dispatcher.py

import re
import shlex
import logging
from typing import List

from modules import builtin_commands
from modules.cancellation import OperationCancelled, simulated_delay
from modules.command_definitions import BAT_PREFIX, get_command_definition, match_verb
from modules.dispatch_context import DispatchContext, ParsedCommand
from modules.permissions import has_permission
from modules.session_log import Severity, make_log_entry
from modules.shell_types import (
    Category, ExecutionResult, HandlerResult, OutputType, cancelled_result, error_result,
    make_output_line, merge_handler_result,
)

logger = logging.getLogger(__name__)

INTERNAL = Category.INTERNAL.value


def tokenize_command(command: str) -> List[str]:
    """shlex tokens; falls back to whitespace splitting when quotes are unbalanced."""
    try:
        return shlex.split(command)
    except ValueError:
        logger.debug(f"shlex could not tokenize '{command}', falling back to whitespace split.")
        return command.split()


def _remainder_after(command: str, verb_tokens) -> str:
    pattern = r'^\s*' + r'\s+'.join(re.escape(t) for t in verb_tokens) + r'(?:\s+|$)'
    match = re.match(pattern, command, re.IGNORECASE)
    return command[match.end():].strip() if match else ""


def parse_internal_command(command: str) -> ParsedCommand:
    raw = command.strip()
    tokens = tokenize_command(raw)
    form, consumed = match_verb([t.lower() for t in tokens])
    if form is None:
        return ParsedCommand(raw=raw, tokens=tokens, args=tokens[1:],
                             arg_text=_remainder_after(raw, tokens[:1]) if tokens else "")
    return ParsedCommand(
        raw=raw,
        tokens=tokens,
        verb=form.name,
        args=tokens[consumed:],
        arg_text=_remainder_after(raw, form.tokens),
    )


def _permission_denied(context: DispatchContext, required: str) -> HandlerResult:
    message = f"Permission denied: Requires '{required}' permission."
    logger.warning(f"{message} (User: {context.user_id})")
    return error_result(message, INTERNAL, context.timestamp, flag=1,
                        log_text=f"{message} (User: {context.user_id})")


def _not_found(context: DispatchContext, parsed: ParsedCommand) -> HandlerResult:
    return HandlerResult(
        output_lines=[make_output_line(f"Internal command not found: {parsed.raw}", OutputType.ERROR,
                                       INTERNAL, context.timestamp, 1)],
        log_entries=[make_log_entry(f"Attempted unknown internal command: {parsed.raw} (User: {context.user_id})",
                                    Severity.WARNING, 1, context.timestamp)],
    )


def _bat_not_implemented(context: DispatchContext, parsed: ParsedCommand) -> HandlerResult:
    logger.warning("Experimental @bat command received, but execution is not yet implemented.")
    return HandlerResult(
        output_lines=[make_output_line("Experimental command @bat: not yet implemented.", OutputType.WARNING,
                                       INTERNAL, context.timestamp, 1)],
        log_entries=[make_log_entry(f"Experimental @bat command not implemented: {parsed.raw} (User: {context.user_id})",
                                    Severity.WARNING, 1, context.timestamp)],
    )


async def _run_custom_command(context: DispatchContext, parsed: ParsedCommand) -> HandlerResult:
    custom = context.custom_commands[parsed.first_token]
    low, high = context.delay_range("custom_command", (500, 500))
    await simulated_delay(low, high, context.cancel_token)
    return HandlerResult(
        output_lines=[make_output_line(custom.action, OutputType.OUTPUT, INTERNAL)],
        log_entries=[make_log_entry(f"Executed custom internal command: {custom.name} (User: {context.user_id})",
                                    Severity.INFO, 0, context.timestamp)],
    )


async def _run_builtin(context: DispatchContext, parsed: ParsedCommand) -> HandlerResult:
    definition = get_command_definition(parsed.verb)
    required = definition.required_permission if definition else None

    if not has_permission(context.user_permissions, required, context.override_all):
        return _permission_denied(context, required)

    leading_entries = []
    if required and required not in context.user_permissions:
        # Gate passed only because of an override
        leading_entries.append(make_log_entry(
            f"Permission check bypassed by override for '{parsed.verb}' (User: {context.user_id})",
            Severity.WARNING, 1, context.timestamp))

    handler = builtin_commands.BUILTIN_HANDLERS[parsed.verb]
    result = await handler(context, parsed)
    result.log_entries = leading_entries + list(result.log_entries)
    return result


async def dispatch_internal_command(context: DispatchContext, command: str) -> ExecutionResult:
    parsed = parse_internal_command(command)
    logger.info(f"Dispatching internal command '{parsed.raw}' (verb: {parsed.verb}, user: {context.user_id})")

    try:
        if parsed.first_token.startswith(BAT_PREFIX):
            result = _bat_not_implemented(context, parsed)
        elif parsed.verb is not None:
            result = await _run_builtin(context, parsed)
        elif parsed.first_token and parsed.first_token in context.custom_commands:
            result = await _run_custom_command(context, parsed)
        else:
            logger.warning(f"Attempted unknown internal command: {parsed.raw} (User: {context.user_id})")
            result = _not_found(context, parsed)
    except OperationCancelled:
        logger.info(f"Internal command cancelled: {parsed.raw}")
        result = cancelled_result(parsed.raw, INTERNAL, context.timestamp)
    except Exception as e:
        logger.error(f"Unhandled error in internal command '{parsed.raw}': {e}", exc_info=True)
        result = error_result(f"Error: {e}", INTERNAL, context.timestamp)

    if not result.log_entries:
        result.log_entries.append(make_log_entry(
            f"Executed internal command: {parsed.verb or parsed.raw} (User: {context.user_id})",
            Severity.INFO, 0, context.timestamp))
    return merge_handler_result(context.log, result)
