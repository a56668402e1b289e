# tests/test_ui_manager.py

import pytest
from unittest.mock import MagicMock

from prompt_toolkit.history import InMemoryHistory
from prompt_toolkit.keys import Keys
from prompt_toolkit.layout import Layout

from modules.ui_manager import UIManager

# --- Fixtures ---

@pytest.fixture
def mock_config():
    """Provides a mock configuration dictionary for UIManager tests."""
    return {
        "ui": {
            "max_output_buffer_lines": 20,
            "prompt_text": "simshell > ",
            "enable_output_separator": True,
            "output_separator_character": "=",
            "output_separator_length": 5,
        },
    }

@pytest.fixture
def ui_manager_instance(mock_config):
    """A UIManager with no widgets yet (output is buffered only)."""
    return UIManager(mock_config, shell_engine_instance=MagicMock())

@pytest.fixture
def initialized_ui_manager(ui_manager_instance):
    """A UIManager whose prompt_toolkit widgets exist but no Application is running."""
    ui_manager_instance.initialize_ui_elements("simshell > ", InMemoryHistory(), [('welcome', "Welcome\n")])
    return ui_manager_instance


def binding_for(manager, key):
    matches = [b for b in manager.get_key_bindings().bindings if b.keys == (key,)]
    assert matches, f"No binding registered for {key}"
    return matches[0]

# --- Test Classes ---

class TestUIManagerInitialization:
    def test_initialization_values(self, ui_manager_instance, mock_config):
        assert ui_manager_instance.config == mock_config
        assert ui_manager_instance.kb is not None
        assert ui_manager_instance.auto_scroll is True
        assert ui_manager_instance.output_buffer == []
        assert ui_manager_instance.max_output_buffer_lines == 20
        assert ui_manager_instance.current_prompt_text == "simshell > "
        assert ui_manager_instance.get_app_instance() is None

    def test_initialize_ui_elements_builds_layout(self, initialized_ui_manager):
        assert isinstance(initialized_ui_manager.layout, Layout)
        assert initialized_ui_manager.output_field.text == "Welcome\n"
        assert initialized_ui_manager.layout.has_focus(initialized_ui_manager.input_field)
        assert initialized_ui_manager.style is not None


class TestUIManagerOutput:
    def test_append_output_before_initialization_is_buffered(self, ui_manager_instance):
        ui_manager_instance.append_output("hello", style_class='info')
        assert ui_manager_instance.output_buffer == [('info', "hello\n")]

    def test_append_output_renders_into_output_field(self, initialized_ui_manager):
        initialized_ui_manager.append_output("first")
        initialized_ui_manager.append_output("second\n", style_class='error')
        assert initialized_ui_manager.output_field.text == "Welcome\nfirst\nsecond\n"
        assert initialized_ui_manager.output_buffer[-1] == ('error', "second\n")

    def test_append_output_trims_buffer(self, ui_manager_instance):
        for i in range(21):
            ui_manager_instance.append_output(f"line {i}")
        # 21 lines with a limit of 20: drop the overflow plus a tenth of the limit
        assert len(ui_manager_instance.output_buffer) == 18
        assert ui_manager_instance.output_buffer[0] == ('default', "line 3\n")

    def test_clear_output(self, initialized_ui_manager):
        initialized_ui_manager.append_output("something")
        initialized_ui_manager.clear_output()
        assert initialized_ui_manager.output_buffer == []
        assert initialized_ui_manager.output_field.text == ""

    def test_add_interaction_separator(self, ui_manager_instance):
        ui_manager_instance.add_interaction_separator()
        assert ui_manager_instance.output_buffer == []

        ui_manager_instance.append_output("output")
        ui_manager_instance.add_interaction_separator()
        ui_manager_instance.add_interaction_separator()
        assert ui_manager_instance.output_buffer[-1] == ('output-separator', "=====\n")
        assert len(ui_manager_instance.output_buffer) == 2

    def test_separator_can_be_disabled(self, ui_manager_instance, mock_config):
        mock_config["ui"]["enable_output_separator"] = False
        ui_manager_instance.append_output("output")
        ui_manager_instance.add_interaction_separator()
        assert len(ui_manager_instance.output_buffer) == 1


class TestUIManagerStatusBar:
    def test_update_status_bar(self, initialized_ui_manager):
        app = MagicMock()
        app.is_running = True
        initialized_ui_manager.app = app

        initialized_ui_manager.update_status_bar(" User: 1", 'class:status-bar.busy')

        assert initialized_ui_manager.status_bar_control.text == " User: 1"
        assert initialized_ui_manager.status_bar.style == 'class:status-bar.busy'
        app.invalidate.assert_called()

    def test_update_status_bar_before_initialization(self, ui_manager_instance):
        ui_manager_instance.update_status_bar("ready")
        assert ui_manager_instance.status_bar_control.text == "ready"


class TestUIManagerKeyBindings:
    def test_ctrl_k_requests_pause(self, ui_manager_instance):
        binding_for(ui_manager_instance, Keys.ControlK).handler(MagicMock())
        ui_manager_instance.shell_engine_instance.request_pause.assert_called_once()

    def test_ctrl_c_uses_exit_reference(self, ui_manager_instance):
        ui_manager_instance.main_exit_app_ref = MagicMock()
        binding_for(ui_manager_instance, Keys.ControlC).handler(MagicMock())
        ui_manager_instance.main_exit_app_ref.assert_called_once()

    def test_ctrl_d_falls_back_to_event_app(self, ui_manager_instance):
        event = MagicMock()
        binding_for(ui_manager_instance, Keys.ControlD).handler(event)
        event.app.exit.assert_called_once()

    def test_enter_submits_buffer(self, ui_manager_instance):
        event = MagicMock()
        binding_for(ui_manager_instance, Keys.Enter).handler(event)
        event.current_buffer.validate_and_handle.assert_called_once()

    def test_exit_calls_app_exit(self, ui_manager_instance):
        ui_manager_instance.app = MagicMock()
        ui_manager_instance.exit()
        ui_manager_instance.app.exit.assert_called_once()
