"""
Tests for settings loading and validation.

Run: python -m pytest tests/test_settings.py -v
"""

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

import purgeless
from purgeless.config.settings import (
    DEFAULT_EXTRUSION_PATTERN,
    DEFAULT_SETTINGS_PATH,
    DEFAULT_TOOL_PATTERN,
    RegexPatterns,
    Settings,
    SettingsError,
    load_settings,
)


def _write(tmp_path, data):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


class TestLoadSettings:
    """Tests for load_settings."""

    def test_missing_file_uses_defaults(self, tmp_path):
        """Test that a missing file yields the built-in defaults."""
        settings = load_settings(tmp_path / "missing.json")
        assert settings.threshold == 0.0
        assert settings.skip_threshold == 0.0
        assert settings.purge_code is None
        assert settings.regex_patterns.tool == DEFAULT_TOOL_PATTERN

    def test_values_are_loaded(self, tmp_path):
        """Test that every field is read from the file."""
        path = _write(tmp_path, {
            "verbose": True,
            "threshold": 76,
            "skip_threshold": 4.5,
            "purge_code": "G1 E{0:.1f} F300",
            "pre_tool_change_code": "G91",
            "post_tool_change_code": "G90",
        })
        settings = load_settings(path)
        assert settings.verbose
        assert settings.threshold == 76.0
        assert settings.skip_threshold == 4.5
        assert settings.pre_tool_change_code == "G91"
        assert settings.post_tool_change_code == "G90"
        assert settings.regex_patterns.extrusion == DEFAULT_EXTRUSION_PATTERN

    def test_invalid_patterns_fall_back_to_defaults(self, tmp_path):
        """Test that blank or broken patterns are replaced by the defaults."""
        path = _write(tmp_path, {
            "threshold": 10,
            "regex_patterns": {
                "tool": "   ",
                "extrusion": "G1 ([",
                "feature": r"^;TYPE:(?P<name>.*)$",
            },
        })
        patterns = load_settings(path).regex_patterns
        assert patterns.tool == DEFAULT_TOOL_PATTERN
        assert patterns.extrusion == DEFAULT_EXTRUSION_PATTERN
        assert patterns.feature == r"^;TYPE:(?P<name>.*)$"

    def test_null_patterns_section(self, tmp_path):
        """Test that a null patterns section means all defaults."""
        path = _write(tmp_path, {"threshold": 10, "regex_patterns": None})
        assert load_settings(path).regex_patterns.tool == DEFAULT_TOOL_PATTERN

    @pytest.mark.parametrize("data", [
        {"threshold": "abc"},
        {"threshold": -1},
        {"skip_threshold": "lots"},
    ])
    def test_malformed_numbers_are_errors(self, tmp_path, data):
        """Test that non-numeric or negative thresholds are rejected."""
        with pytest.raises(SettingsError):
            load_settings(_write(tmp_path, data))

    def test_invalid_json(self, tmp_path):
        """Test that unparseable JSON is a settings error."""
        path = tmp_path / "settings.json"
        path.write_text("{ not json", encoding="utf-8")
        with pytest.raises(SettingsError):
            load_settings(path)

    def test_non_object_json(self, tmp_path):
        """Test that a JSON array is rejected."""
        with pytest.raises(SettingsError):
            load_settings(_write(tmp_path, [1, 2, 3]))


class TestBundledSettings:
    """The settings file shipped inside the package."""

    def test_bundled_file_lives_in_the_package(self):
        """Test that the default settings path resolves inside the installed package."""
        package_dir = Path(purgeless.__file__).resolve().parent
        assert DEFAULT_SETTINGS_PATH.is_file()
        assert Path(str(DEFAULT_SETTINGS_PATH)).resolve() == package_dir / "configs" / "settings.json"

    def test_bundled_file_is_usable(self):
        """Test that the bundled file has a threshold and a valid purge template."""
        settings = load_settings(DEFAULT_SETTINGS_PATH)
        assert settings.threshold > 0
        assert settings.render_purge_code()

    def test_load_without_path_uses_bundled_file(self):
        """Test that load_settings() with no argument reads the bundled file."""
        assert load_settings() == load_settings(DEFAULT_SETTINGS_PATH)
        assert load_settings().threshold > 0


class TestSettingsHelpers:
    """Tests for the Settings helper methods."""

    def test_require_threshold(self):
        """Test that a zero threshold is refused."""
        assert Settings(threshold=12.5).require_threshold() == 12.5
        with pytest.raises(SettingsError):
            Settings().require_threshold()

    def test_render_purge_code(self):
        """Test both positional and named threshold slots."""
        assert Settings(threshold=76, purge_code="G1 E{0:.1f}").render_purge_code() == "G1 E76.0"
        assert Settings(threshold=5, purge_code="G1 E{threshold}").render_purge_code() == "G1 E5.0"
        assert Settings(threshold=5, purge_code="M83").render_purge_code() == "M83"
        assert Settings(threshold=5).render_purge_code() is None

    @pytest.mark.parametrize("template", ["G1 E{1}", "G1 E{amount}", "G1 E{0:zz}"])
    def test_invalid_purge_template(self, template):
        """Test that unknown slots or bad format specs are settings errors."""
        with pytest.raises(SettingsError):
            Settings(threshold=5, purge_code=template).render_purge_code()

    def test_render_purge_placeholder(self):
        """Test that the placeholder carries the threshold."""
        assert "M83 E4.500 M82" in Settings(threshold=4.5).render_purge_placeholder()

    def test_with_overrides(self):
        """Test that command line values produce a new Settings object."""
        base = Settings(threshold=10, purge_code="M83")
        updated = base.with_overrides(threshold=20, skip_threshold=2, verbose=True)
        assert (updated.threshold, updated.skip_threshold, updated.verbose) == (20, 2, True)
        assert updated.purge_code == "M83"
        assert base.threshold == 10

    def test_with_overrides_noop(self):
        """Test that no overrides return the same object."""
        base = Settings(threshold=10)
        assert base.with_overrides() is base

    def test_with_overrides_rejects_negative(self):
        """Test that a negative override is a settings error."""
        with pytest.raises(SettingsError):
            Settings(threshold=10).with_overrides(threshold=-5)

    def test_settings_are_frozen(self):
        """Test that loaded settings can't be changed."""
        with pytest.raises(ValidationError):
            Settings(threshold=10).threshold = 20

    def test_patterns_are_frozen(self):
        """Test that the nested regex patterns can't be changed either."""
        settings = Settings(threshold=10)
        with pytest.raises(ValidationError):
            settings.regex_patterns.tool = r"^TOOL(.*)$"
        assert settings.regex_patterns.tool == DEFAULT_TOOL_PATTERN

    def test_pattern_defaults_when_unset(self):
        """Test that an empty RegexPatterns holds the defaults."""
        assert RegexPatterns().tool == DEFAULT_TOOL_PATTERN
