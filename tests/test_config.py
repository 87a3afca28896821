"""Tests for configuration loading and validation."""

from __future__ import annotations

import os
from pathlib import Path
import tempfile
import unittest
from unittest.mock import patch

from companion_chat.config import (
    DEFAULT_CONFIG,
    Config,
    MoodConfig,
    load_config,
    resolve_api_key,
)


class ConfigTests(unittest.TestCase):
    """Validate config merge and fallback behavior."""

    def test_missing_config_uses_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            config = load_config(config_path=Path(temp_dir) / "config.toml")

        self.assertEqual(config.app.title, DEFAULT_CONFIG["app"]["title"])
        self.assertEqual(config.provider.model, DEFAULT_CONFIG["provider"]["model"])
        self.assertEqual(config.app.dispatch_delay_seconds, 0.6)
        self.assertEqual(config.app.download_dir, "~/Downloads")
        self.assertEqual(config.mood.success_cooldown_seconds, 3.0)
        self.assertTrue(config.provider.enable_search)
        self.assertEqual(config.logging.level, "INFO")

    def test_partial_config_overrides_selected_values(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            config_path = Path(temp_dir) / "config.toml"
            config_path.write_text(
                """
[provider]
model = "gemini-2.0-pro"
temperature = 0.2

[mood]
success_cooldown_seconds = 1.5

[logging]
level = "debug"
                """.strip(),
                encoding="utf-8",
            )
            config = load_config(config_path=config_path)

        self.assertEqual(config.provider.model, "gemini-2.0-pro")
        self.assertEqual(config.provider.temperature, 0.2)
        self.assertEqual(config.mood.success_cooldown_seconds, 1.5)
        self.assertEqual(config.logging.level, "DEBUG")
        self.assertEqual(config.app.title, DEFAULT_CONFIG["app"]["title"])

    def test_invalid_values_fallback_to_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            config_path = Path(temp_dir) / "config.toml"
            config_path.write_text(
                """
[provider]
base_url = "ftp://example.com"
                """.strip(),
                encoding="utf-8",
            )
            with self.assertLogs("companion_chat.config", level="WARNING"):
                config = load_config(config_path=config_path)

        self.assertEqual(config.provider.base_url, DEFAULT_CONFIG["provider"]["base_url"])

    def test_unparseable_toml_falls_back_to_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            config_path = Path(temp_dir) / "config.toml"
            config_path.write_text("[provider\nmodel = ", encoding="utf-8")
            with self.assertLogs("companion_chat.config", level="WARNING"):
                config = load_config(config_path=config_path)

        self.assertEqual(config, Config())

    @unittest.skipUnless(os.name == "posix", "POSIX permissions only")
    def test_config_file_permissions_are_tightened(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            config_path = Path(temp_dir) / "config.toml"
            config_path.write_text('[provider]\napi_key = "k"\n', encoding="utf-8")
            config_path.chmod(0o644)

            load_config(config_path=config_path)

            self.assertEqual(config_path.stat().st_mode & 0o777, 0o600)

    def test_blink_window_must_be_ordered(self) -> None:
        with self.assertRaises(ValueError):
            MoodConfig(blink_min_seconds=5.0, blink_max_seconds=1.0)

    def test_mood_section_builds_timing(self) -> None:
        timing = MoodConfig(success_cooldown_seconds=1.0).timing()
        self.assertEqual(timing.success_cooldown_seconds, 1.0)
        self.assertEqual(timing.blink_duration_seconds, 0.15)


class ApiKeyTests(unittest.TestCase):
    """Validate API key resolution order."""

    def test_configured_key_wins(self) -> None:
        config = Config.model_validate({"provider": {"api_key": "from-file"}})
        with patch.dict(os.environ, {"GEMINI_API_KEY": "from-env"}):
            self.assertEqual(resolve_api_key(config), "from-file")

    def test_environment_fallback(self) -> None:
        config = Config()
        with patch.dict(os.environ, {"GEMINI_API_KEY": " from-env "}):
            self.assertEqual(resolve_api_key(config), "from-env")
        with patch.dict(os.environ, {}, clear=True):
            self.assertEqual(resolve_api_key(config), "")


if __name__ == "__main__":
    unittest.main()
