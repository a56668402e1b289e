# main.py

from prompt_toolkit import Application
from prompt_toolkit.history import FileHistory

import asyncio
import os
import sys
import logging
import datetime

from modules.config_handler import ConfigurationError, get_config_value, load_configuration
from modules.shell_engine import ShellEngine
from modules.store import SQLiteStore
from modules.ui_manager import UIManager
import modules.ai_handler

LOG_DIR = "logs"
CONFIG_DIR = "config"
HISTORY_FILENAME = ".simshell_history"

SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))
os.makedirs(os.path.join(SCRIPT_DIR, LOG_DIR), exist_ok=True)
LOG_FILE = os.path.join(SCRIPT_DIR, LOG_DIR, "simshell.log")
HISTORY_FILE_PATH = os.path.join(SCRIPT_DIR, HISTORY_FILENAME)

# Logging configuration
logging.basicConfig(
    level=logging.DEBUG,
    format='%(asctime)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s',
    handlers=[logging.FileHandler(LOG_FILE)]
)
logger = logging.getLogger(__name__)

WELCOME_MESSAGE = (
    "Welcome to SimShell 🚀\n"
    "Type a command in any active category (internal, python, unix, windows, sql, excel, typescript).\n"
    "Type 'help' for the command language, 'init db' to set up users and permissions,\n"
    "or '/help' for session commands like /categories, /user and /sqlscript.\n"
)

config = {}
app_instance = None
ui_manager_instance = None
shell_engine_instance = None
store_instance = None


def resolve_storage_paths(config_param: dict, base_dir: str = SCRIPT_DIR) -> dict:
    """Makes the configured data and SQL script directories absolute (relative to the project root)."""
    storage = config_param.setdefault("storage", {})
    for key, default in (("data_dir", "data"), ("sql_scripts_dir", "sql_scripts")):
        path = storage.get(key, default)
        if not os.path.isabs(path):
            path = os.path.join(base_dir, path)
        storage[key] = path
    os.makedirs(storage["data_dir"], exist_ok=True)
    return config_param


def normal_input_accept_handler(buff):
    """
    Handles user input submission from the prompt_toolkit input field.

    Slash commands are tried first; everything else goes through
    classification and dispatch. Processing runs as a task so the UI stays
    responsive (and Ctrl+K can reach the running command).
    """
    user_input_stripped = buff.text.strip()
    logger.info(f"normal_input_accept_handler received: '{user_input_stripped}'")

    async def _handle_input():
        try:
            was_handled_as_builtin = await shell_engine_instance.handle_built_in_command(user_input_stripped)
            if not was_handled_as_builtin:
                await shell_engine_instance.submit_user_input(user_input_stripped)
        except Exception as e:
            logger.error(f"Unhandled error while handling input '{user_input_stripped}': {e}", exc_info=True)
            if ui_manager_instance:
                ui_manager_instance.append_output(f"❌ Unexpected error: {e}", style_class='error')

    asyncio.create_task(_handle_input())


async def main_async_runner():
    """ Main asynchronous runner for the application. """
    global config, app_instance, ui_manager_instance, shell_engine_instance, store_instance

    config = resolve_storage_paths(load_configuration(os.path.join(SCRIPT_DIR, CONFIG_DIR)))
    store_instance = SQLiteStore()

    ui_manager_instance = UIManager(config)
    shell_engine_instance = ShellEngine(config, ui_manager_instance, store_instance,
                                        ai_handler_module=sys.modules['modules.ai_handler'],
                                        main_exit_app_ref=ui_manager_instance.exit)
    ui_manager_instance.shell_engine_instance = shell_engine_instance

    if await modules.ai_handler.is_ollama_server_running():
        ui_manager_instance.append_output("✅ Ollama service is active and ready.", style_class='success')
        logger.info("Ollama service is active.")
    else:
        ui_manager_instance.append_output(
            "⚠️ Ollama service is not available. Only built-in internal commands can be classified.",
            style_class='warning')
        logger.warning("Ollama service check failed.")

    history = FileHistory(HISTORY_FILE_PATH)
    initial_buffer_for_ui = [('class:welcome', WELCOME_MESSAGE)] + list(ui_manager_instance.output_buffer)

    layout = ui_manager_instance.initialize_ui_elements(
        initial_prompt_text=get_config_value(config, "ui.prompt_text", "simshell > "),
        history=history,
        output_buffer_main=initial_buffer_for_ui,
    )
    if ui_manager_instance.input_field:
        ui_manager_instance.input_field.buffer.accept_handler = normal_input_accept_handler
    else:
        logger.critical("UIManager did not create input_field. Cannot set accept_handler.")
        sys.exit(1)
    shell_engine_instance.refresh_status()

    enable_mouse = get_config_value(config, "ui.enable_mouse_support", False)
    logger.info(f"Prompt Toolkit Application mouse_support will be set to: {enable_mouse}")

    app_instance = Application(
        layout=layout,
        key_bindings=ui_manager_instance.get_key_bindings(),
        style=ui_manager_instance.style,
        full_screen=True,
        mouse_support=enable_mouse
    )
    ui_manager_instance.app = app_instance

    logger.info("SimShell application starting.")
    try:
        await app_instance.run_async()
    finally:
        store_instance.close()
    logger.info("SimShell application run_async completed.")


def run_shell():
    """ Main entry point to run the shell application. """
    logger.info("=" * 80)
    logger.info("  SimShell Session Started")
    logger.info(f"  Timestamp: {datetime.datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    logger.info("=" * 80)
    try:
        asyncio.run(main_async_runner())
    except (ConfigurationError, FileNotFoundError, ValueError, IOError) as e:
        print(f"\nFATAL STARTUP ERROR: {e}", file=sys.stderr)
        print("Please ensure 'config/default_config.json' exists and is a valid JSON file.", file=sys.stderr)
        logger.critical(f"Application halting due to fatal configuration error: {e}")
    except (EOFError, KeyboardInterrupt):
        print("\nExiting SimShell. 👋"); logger.info("Exiting due to EOF or KeyboardInterrupt at run_shell level.")
    except SystemExit as e:
        if e.code == 0:
            print("\nExiting SimShell. 👋"); logger.info("Exiting SimShell normally via SystemExit(0).")
        else:
            print(f"\nExiting SimShell due to an issue (Code: {e.code}). Check logs at {LOG_FILE}"); logger.warning(f"Exiting SimShell with code {e.code}.")
    except Exception as e:
        print(f"\nUnexpected critical error: {e}"); logger.critical("Critical error in run_shell or main_async_runner", exc_info=True)
    finally:
        logger.info("SimShell application stopped.")
        logger.info("=" * 80)
        logger.info("  SimShell Session Ended")
        logger.info(f"  Timestamp: {datetime.datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
        logger.info("=" * 80)
        logging.shutdown()

if __name__ == "__main__":
    run_shell()
