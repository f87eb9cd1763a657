import os
import sys
import unittest

import yaml

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from config import YamlConfig
from db import SettingsRepository
from settings_schema import validate_settings


class SettingsTest(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_settings.db"
        self.yaml_path = "test_settings.yaml"
        for path in (self.db_path, self.yaml_path):
            if os.path.exists(path):
                os.remove(path)

    def tearDown(self) -> None:
        for path in (self.db_path, self.yaml_path):
            if os.path.exists(path):
                os.remove(path)

    def test_defaults_written_to_yaml(self) -> None:
        repo = SettingsRepository(self.db_path, self.yaml_path)
        self.assertEqual(repo.get_float("user_weight", 0.0), 70.0)
        self.assertEqual(repo.get_int("daily_goal", 0), 50)
        self.assertTrue(repo.get_bool("voice_enabled", False))
        with open(self.yaml_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        self.assertEqual(data["difficulty"], "normal")
        self.assertEqual(data["default_exercise"], "left_curl")

    def test_yaml_overrides_database(self) -> None:
        YamlConfig(self.yaml_path).save(
            {"user_weight": 82.5, "voice_enabled": False, "difficulty": "easy"}
        )
        repo = SettingsRepository(self.db_path, self.yaml_path)
        self.assertEqual(repo.get_float("user_weight", 70.0), 82.5)
        self.assertFalse(repo.get_bool("voice_enabled", True))
        self.assertEqual(repo.get_text("difficulty", "normal"), "easy")

    def test_set_updates_yaml(self) -> None:
        repo = SettingsRepository(self.db_path, self.yaml_path)
        repo.set_int("rest_duration", 30)
        repo.set_bool("voice_enabled", False)
        data = YamlConfig(self.yaml_path).load()
        self.assertEqual(data["rest_duration"], 30.0)
        self.assertFalse(data["voice_enabled"])
        self.assertEqual(repo.all_settings()["rest_duration"], 30.0)

    def test_invalid_yaml_rejected(self) -> None:
        YamlConfig(self.yaml_path).save({"user_weight": -3})
        with self.assertRaises(ValueError):
            SettingsRepository(self.db_path, self.yaml_path)
        with open(self.yaml_path, "w", encoding="utf-8") as f:
            f.write("- just\n- a list\n")
        with self.assertRaises(ValueError):
            YamlConfig(self.yaml_path).load()

    def test_bad_number_falls_back(self) -> None:
        repo = SettingsRepository(self.db_path, self.yaml_path)
        repo.set_text("daily_goal", "plenty")
        with self.assertLogs("db", level="WARNING"):
            self.assertEqual(repo.get_int("daily_goal", 50), 50)

    def test_validate_settings(self) -> None:
        validate_settings({"difficulty": "hard", "confidence_threshold": 0.5})
        for bad in (
            {"difficulty": "brutal"},
            {"confidence_threshold": 1.5},
            {"daily_goal": 0},
            {"default_exercise": "burpee"},
        ):
            with self.assertRaises(ValueError, msg=str(bad)):
                validate_settings(bad)


if __name__ == "__main__":
    unittest.main()
