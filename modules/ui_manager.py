# modules/ui_manager.py
import logging

from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.layout import HSplit, Window, Layout
from prompt_toolkit.widgets import TextArea
from prompt_toolkit.styles import Style
from prompt_toolkit.document import Document
from prompt_toolkit.layout.controls import FormattedTextControl
from prompt_toolkit.history import FileHistory


logger = logging.getLogger(__name__)

KEY_HELP_TEXT = "Enter: Submit | Ctrl+K: Pause running command | Ctrl+C/D: Exit | ↑/↓: History | PgUp/PgDn: Scroll"


class UIManager:
    """The terminal surface of SimShell.

    Owns the `prompt_toolkit` widgets (output area, status bar, input field
    and key help), the key bindings and the output buffer. It knows nothing
    about commands: the ShellEngine renders output lines into it through
    `append_output` and reports session state through `update_status_bar`.
    """
    def __init__(self, config: dict, shell_engine_instance=None):
        """Initializes the UIManager with the application configuration.

        The Application instance itself is set later via `ui_manager_instance.app = app_instance`.

        Args:
            config: The application configuration.
        """
        self.config = config
        self.shell_engine_instance = shell_engine_instance
        self.app = None # This will be set by main.py
        self.output_field = None
        self.input_field = None
        self.key_help_field = None
        self.status_bar = None
        self.root_container = None
        self.layout = None
        self.style = None
        self.auto_scroll = True
        self.output_buffer = []
        self.max_output_buffer_lines = config.get('ui', {}).get('max_output_buffer_lines', 500)

        self.current_prompt_text = config.get('ui', {}).get('prompt_text', "simshell > ")
        self.status_bar_control = FormattedTextControl("")

        self.kb = KeyBindings()
        self._register_keybindings()

        self.main_exit_app_ref = None

        logger.debug("UIManager initialized with config and keybindings.")

    def _register_keybindings(self):
        @self.kb.add('c-c')
        @self.kb.add('c-d')
        def _handle_exit(event):
            logger.info("Exit keybinding triggered.")
            if self.main_exit_app_ref:
                self.main_exit_app_ref()
            else:
                event.app.exit()

        @self.kb.add('c-k')
        def _handle_pause(event):
            if self.shell_engine_instance:
                logger.info("Ctrl+K pressed, requesting pause of the running command.")
                self.shell_engine_instance.request_pause()
            else:
                logger.info("Ctrl+K pressed, but no shell engine is attached.")

        @self.kb.add('enter')
        def _handle_enter(event):
            buff = event.current_buffer
            buff.validate_and_handle()

        @self.kb.add('pageup')
        def _handle_pageup(event):
            if self.output_field and self.output_field.window.render_info:
                self.output_field.window._scroll_up()
                event.app.invalidate()

        @self.kb.add('pagedown')
        def _handle_pagedown(event):
            if self.output_field and self.output_field.window.render_info:
                self.output_field.window._scroll_down()
                event.app.invalidate()

        @self.kb.add('up')
        def _handle_up_arrow(event):
            buff = event.current_buffer
            if buff.history_backward():
                buff.document = Document(text=buff.text, cursor_position=len(buff.text))
                event.app.invalidate()

        @self.kb.add('down')
        def _handle_down_arrow(event):
            buff = event.current_buffer
            if buff.history_forward():
                buff.document = Document(text=buff.text, cursor_position=len(buff.text))
                event.app.invalidate()

        logger.debug("UIManager: Keybindings registered.")

    def get_key_bindings(self) -> KeyBindings:
        """Returns the configured keybindings for the application."""
        return self.kb

    def exit(self):
        """Tells the prompt_toolkit application to exit gracefully."""
        if self.app and hasattr(self.app, 'exit'):
            logger.info("UIManager: Calling app.exit() to terminate prompt_toolkit loop.")
            self.app.exit()
        else:
            logger.warning("UIManager: exit() called, but self.app is not set or has no exit method.")

    def get_app_instance(self):
        """Returns the application instance if set by the main program."""
        if not self.app:
            logger.debug("UIManager.get_app_instance: self.app is not yet set by the main application.")
        return self.app

    def _get_current_prompt(self) -> str:
        return self.current_prompt_text

    def initialize_ui_elements(self, initial_prompt_text: str, history: FileHistory, output_buffer_main: list) -> Layout:
        """Creates all the prompt_toolkit widgets and constructs the main UI layout.

        Args:
            initial_prompt_text: The text for the input prompt.
            history: The history object for the input field.
            output_buffer_main: A list of (style, text) tuples for initial output.

        Returns:
            The main prompt_toolkit Layout object for the application. """
        logger.info("UIManager: Initializing UI elements...")
        self.style = Style.from_dict({
            'output-field': 'bg:#282c34 #abb2bf', 'input-field': 'bg:#21252b #d19a66',
            'key-help': 'bg:#282c34 #5c6370', 'line': '#3e4451',
            'prompt': 'bg:#21252b #61afef', 'scrollbar.background': 'bg:#282c34',
            'scrollbar.button': 'bg:#3e4451', 'default': '#abb2bf',
            'status-bar': 'bg:#282c34 #abb2bf',
            'status-bar.busy': 'bg:#282c34 #56b6c2',
            'welcome': 'bold #86c07c', 'info': '#61afef',
            'success': '#98c379', 'error': '#e06c75',
            'warning': '#d19a66', 'command': 'bold #c678dd',
            'help-text': '#abb2bf',
        })
        self.output_buffer = list(output_buffer_main)
        for style, content in self.output_buffer:
            logger.info(f"UI_OUTPUT_INITIAL_BUFFER: {content.strip()}")

        self.output_field = TextArea(
            text="".join([text_content for _, text_content in self.output_buffer]),
            style='class:output-field', scrollbar=True, focusable=False,
            wrap_lines=True, read_only=True
        )
        self.current_prompt_text = initial_prompt_text
        self.input_field = TextArea(
            prompt=self._get_current_prompt,
            style='class:input-field',
            multiline=False,
            wrap_lines=False, history=history,
            height=1
        )
        self.key_help_field = Window(
            content=FormattedTextControl(KEY_HELP_TEXT),
            height=1, style='class:key-help'
        )
        self.status_bar = Window(
            content=self.status_bar_control,
            height=1,
            style='class:status-bar'
        )
        self.root_container = HSplit([
            self.output_field,
            self.status_bar,
            Window(height=1, char='─', style='class:line'),
            self.input_field,
            self.key_help_field
        ])
        self.layout = Layout(self.root_container, focused_element=self.input_field)
        logger.info("UIManager: UI elements fully initialized.")
        return self.layout

    def update_status_bar(self, text: str, style: str = 'class:status-bar'):
        self.status_bar_control.text = text
        if self.status_bar:
            self.status_bar.style = style
        self._invalidate()

    def _invalidate(self):
        if self.app and getattr(self.app, 'is_running', False):
            self.app.invalidate()

    def _render_buffer(self):
        if not self.output_field:
            return
        plain_text_output = "".join([content for _, content in self.output_buffer])
        buffer = self.output_field.buffer
        current_cursor_pos = buffer.cursor_position
        buffer.set_document(Document(plain_text_output, cursor_position=len(plain_text_output)), bypass_readonly=True)
        if self.auto_scroll:
            buffer.cursor_position = len(plain_text_output)
        else:
            buffer.cursor_position = min(current_cursor_pos, len(plain_text_output))
        self._invalidate()

    def append_output(self, text: str, style_class: str = 'default'):
        """The primary method for adding text to the main output field."""
        logger.info(f"UI_OUTPUT: {text.rstrip()}")

        if not text.endswith('\n'): text += '\n'
        self.output_buffer.append((style_class, text))

        if len(self.output_buffer) > self.max_output_buffer_lines:
            lines_to_remove = len(self.output_buffer) - self.max_output_buffer_lines + (self.max_output_buffer_lines // 10)
            self.output_buffer = self.output_buffer[lines_to_remove:]
            logger.debug(f"Output buffer trimmed. New size: {len(self.output_buffer)} lines.")

        if not self.output_field:
            logger.debug("UIManager.append_output called before UI initialization. Buffered only.")
            return
        self._render_buffer()

    def clear_output(self):
        """Empties the output area (the session log is unaffected)."""
        logger.info("UI_OUTPUT cleared.")
        self.output_buffer = []
        self._render_buffer()

    def add_interaction_separator(self):
        if not self.config.get("ui", {}).get("enable_output_separator", True):
            return
        if not self.output_buffer or self.output_buffer[-1][0] == 'output-separator':
            return
        separator_char = self.config.get("ui", {}).get("output_separator_character", "─")
        separator_length = self.config.get("ui", {}).get("output_separator_length", 30)
        self.append_output(separator_char * separator_length, style_class='output-separator')
