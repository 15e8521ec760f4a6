"""
Unit tests for configuration manager module.
"""

import json
import os
import shutil
import tempfile
import unittest
from unittest.mock import patch

from feed_bouncer.config_manager import ConfigManager, merge_dicts


class TestConfigManager(unittest.TestCase):

    def setUp(self):
        """Set up test fixtures."""
        self.test_dir = tempfile.mkdtemp()
        self.settings_path = os.path.join(self.test_dir, 'settings.json')

    def tearDown(self):
        """Clean up test fixtures."""
        shutil.rmtree(self.test_dir)

    def _write_settings(self, settings):
        with open(self.settings_path, 'w', encoding='utf-8') as f:
            json.dump(settings, f)

    def test_defaults_without_settings_file(self):
        config = ConfigManager(load_env=False)

        self.assertEqual(config.get_config_value("networking.retry_attempts"), 5)
        self.assertEqual(config.get_config_value("networking.retry_delay_seconds"), 0.5)
        self.assertEqual(config.get_config_value("storage.base_dir"), "./storage")
        self.assertEqual(config.get_config_value("schedule.interval_minutes"), 60)

    def test_settings_file_overrides_defaults(self):
        self._write_settings({"networking": {"timeout_seconds": 10}, "storage": {"base_dir": "/data"}})

        config = ConfigManager(self.settings_path, load_env=False)

        self.assertEqual(config.get_config_value("networking.timeout_seconds"), 10)
        self.assertEqual(config.get_config_value("networking.max_workers"), 8)
        self.assertEqual(config.get_config_value("storage.base_dir"), "/data")

    def test_get_config_value_default(self):
        config = ConfigManager(load_env=False)
        self.assertEqual(config.get_config_value("nonexistent.key", "default"), "default")
        self.assertEqual(config.get_config_value("storage.base_dir.deeper", 1), 1)

    def test_missing_settings_file(self):
        with self.assertRaises(FileNotFoundError):
            ConfigManager(os.path.join(self.test_dir, 'missing.json'), load_env=False)

    def test_invalid_json(self):
        with open(self.settings_path, 'w', encoding='utf-8') as f:
            f.write('{"networking": ')
        with self.assertRaises(json.JSONDecodeError):
            ConfigManager(self.settings_path, load_env=False)

    def test_invalid_types(self):
        for settings in (
            {"networking": "fast"},
            {"networking": {"retry_attempts": 0}},
            {"networking": {"timeout_seconds": "30"}},
            {"schedule": {"enabled": "yes"}},
            {"storage": {"base_dir": ""}},
        ):
            self._write_settings(settings)
            with self.assertRaises(TypeError, msg=str(settings)):
                ConfigManager(self.settings_path, load_env=False)

    def test_unknown_log_level(self):
        self._write_settings({"logging": {"level": "LOUD"}})
        with self.assertRaises(ValueError):
            ConfigManager(self.settings_path, load_env=False)

    @patch('feed_bouncer.config_manager.load_dotenv')
    def test_environment_overrides(self, mock_load_dotenv):
        env = {
            "FEED_BOUNCER_STORAGE_PATH": "/srv/feeds",
            "FEED_BOUNCER_RETRY_ATTEMPTS": "3",
            "FEED_BOUNCER_SCHEDULE_ENABLED": "false",
        }
        with patch.dict(os.environ, env):
            config = ConfigManager()

        mock_load_dotenv.assert_called_once()
        self.assertEqual(config.get_config_value("storage.base_dir"), "/srv/feeds")
        self.assertEqual(config.get_config_value("networking.retry_attempts"), 3)
        self.assertFalse(config.get_config_value("schedule.enabled"))

    @patch('feed_bouncer.config_manager.load_dotenv')
    def test_invalid_environment_value(self, mock_load_dotenv):
        with patch.dict(os.environ, {"FEED_BOUNCER_MAX_WORKERS": "many"}):
            with self.assertRaises(ValueError):
                ConfigManager()


class TestMergeDicts(unittest.TestCase):

    def test_nested_merge_keeps_existing_values(self):
        source = {"a": {"x": 1}, "b": 2}
        merge_dicts(source, {"a": {"x": 0, "y": 3}, "c": 4})
        self.assertEqual(source, {"a": {"x": 1, "y": 3}, "b": 2, "c": 4})

    def test_defaults_are_copied(self):
        defaults = {"a": {"x": 1}}
        source = merge_dicts({}, defaults)
        source["a"]["x"] = 2
        self.assertEqual(defaults["a"]["x"], 1)


if __name__ == '__main__':
    unittest.main()
