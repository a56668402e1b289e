# tests/test_config_handler.py

import pytest
import sys
import os
import json
from unittest.mock import mock_open, patch, MagicMock

# --- Path Setup ---
# This assumes that conftest.py correctly adds the project root to the path.
from modules import config_handler

# --- Test Cases for load_jsonc_file ---

@patch("os.path.exists", return_value=True)
def test_load_jsonc_with_single_line_comments(mock_exists):
    """Tests loading a JSONC file with // style comments."""
    jsonc_content = """
    {
        // This is a key for the user
        "user": "test_user", // Another comment
        "port": 8080,
        "path": "/usr/local" // Final comment
    }
    """
    expected_dict = {"user": "test_user", "port": 8080, "path": "/usr/local"}
    
    with patch("builtins.open", mock_open(read_data=jsonc_content)) as mock_file:
        result = config_handler.load_jsonc_file("dummy/path.jsonc")
        mock_file.assert_called_once_with("dummy/path.jsonc", 'r', encoding='utf-8')
        assert result == expected_dict

@patch("os.path.exists", return_value=True)
def test_load_jsonc_with_multi_line_comments(mock_exists):
    """Tests loading a JSONC file with /* */ style comments."""
    jsonc_content = """
    {
        /* * Main configuration block for the application
         */
        "host": "localhost",
        "enabled": true /* Enable by default */
    }
    """
    expected_dict = {"host": "localhost", "enabled": True}
    
    with patch("builtins.open", mock_open(read_data=jsonc_content)):
        result = config_handler.load_jsonc_file("dummy/path.jsonc")
        assert result == expected_dict

@patch("os.path.exists", return_value=True)
def test_load_jsonc_without_comments(mock_exists):
    """Tests loading a standard JSON file with no comments."""
    json_content = '{"key": "value", "number": 123}'
    expected_dict = {"key": "value", "number": 123}
    
    with patch("builtins.open", mock_open(read_data=json_content)):
        result = config_handler.load_jsonc_file("dummy/path.json")
        assert result == expected_dict

@patch("os.path.exists", return_value=True)
def test_load_jsonc_with_malformed_json(mock_exists):
    """Tests loading a file with a JSON syntax error."""
    malformed_content = '{"key": "value",}' # Trailing comma
    
    with patch("builtins.open", mock_open(read_data=malformed_content)):
        result = config_handler.load_jsonc_file("dummy/path.jsonc")
        assert result is None

@patch("os.path.exists", return_value=False)
def test_load_jsonc_file_not_found(mock_exists):
    """Tests loading a file that does not exist."""
    result = config_handler.load_jsonc_file("non/existent/path.jsonc")
    assert result is None

# --- Test Cases for merge_configs / load_configuration / get_config_value ---

def test_merge_configs_deep_merges_nested_dicts():
    base = {"session": {"user_id": 1, "override_all_permissions": False}, "ui": {"prompt_text": "> "}}
    override = {"session": {"user_id": 2}}
    merged = config_handler.merge_configs(base, override)
    assert merged == {"session": {"user_id": 2, "override_all_permissions": False}, "ui": {"prompt_text": "> "}}
    # The inputs are left untouched
    assert base["session"]["user_id"] == 1

def test_merge_configs_replaces_lists_and_scalars():
    base = {"categories": {"active": ["internal", "sql"]}, "x": 1}
    merged = config_handler.merge_configs(base, {"categories": {"active": ["unix"]}, "x": {"y": 2}})
    assert merged["categories"]["active"] == ["unix"]
    assert merged["x"] == {"y": 2}

def test_load_configuration_merges_user_over_default(tmp_path):
    (tmp_path / "default_config.json").write_text(
        '// defaults\n{"session": {"user_id": 1}, "simulation": {"enabled": true}}', encoding='utf-8')
    (tmp_path / "user_config.json").write_text('{"simulation": {"enabled": false}}', encoding='utf-8')

    config = config_handler.load_configuration(str(tmp_path))

    assert config == {"session": {"user_id": 1}, "simulation": {"enabled": False}}

def test_load_configuration_without_user_config(tmp_path):
    (tmp_path / "default_config.json").write_text('{"ui": {}}', encoding='utf-8')
    assert config_handler.load_configuration(str(tmp_path)) == {"ui": {}}

def test_load_configuration_missing_default_is_fatal(tmp_path):
    with pytest.raises(config_handler.ConfigurationError):
        config_handler.load_configuration(str(tmp_path))

def test_get_config_value_walks_dotted_paths():
    config = {"simulation": {"delays_ms": {"sql": [50, 250]}}}
    assert config_handler.get_config_value(config, "simulation.delays_ms.sql") == [50, 250]
    assert config_handler.get_config_value(config, "simulation.missing", "fallback") == "fallback"
    assert config_handler.get_config_value(config, "simulation.delays_ms.sql.0", None) is None

def test_shipped_default_config_is_valid():
    """The project's own config/default_config.json parses and carries every top-level section."""
    project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
    config = config_handler.load_configuration(os.path.join(project_root, "config"))
    for section in ("ai_models", "prompts", "categories", "session", "simulation", "storage", "ui"):
        assert section in config
    assert "{command}" in config["prompts"]["classifier"]["user_template"]
    assert "{{" in config["prompts"]["classifier"]["system"]
