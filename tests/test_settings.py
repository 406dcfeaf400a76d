import os
import sys
import unittest

import keyring
import yaml

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from config import YamlConfig
from db import SettingsRepository
from settings_schema import validate_settings


class DummyKeyring(keyring.backend.KeyringBackend):
    priority = 1

    def __init__(self):
        self.store = {}

    def get_password(self, service, username):
        return self.store.get((service, username))

    def set_password(self, service, username, password):
        self.store[(service, username)] = password

    def delete_password(self, service, username):
        self.store.pop((service, username), None)


class SettingsEncryptionTest(unittest.TestCase):
    def setUp(self) -> None:
        keyring.set_keyring(DummyKeyring())
        os.environ["ENCRYPT_SETTINGS"] = "1"
        self.path = "enc_settings.yaml"
        if os.path.exists(self.path):
            os.remove(self.path)

    def tearDown(self) -> None:
        if os.path.exists(self.path):
            os.remove(self.path)
        os.environ.pop("ENCRYPT_SETTINGS", None)

    def test_encrypt_and_load(self) -> None:
        cfg = YamlConfig(self.path)
        cfg.save({"api_token": "secret", "theme": "light"})
        with open(self.path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
        self.assertIs(raw["api_token"], True)
        data = cfg.load()
        self.assertEqual(data["api_token"], "secret")
        self.assertEqual(data["theme"], "light")

    def test_empty_token_stays_in_file(self) -> None:
        cfg = YamlConfig(self.path)
        cfg.save({"api_token": ""})
        self.assertEqual(cfg.load(), {"api_token": ""})
        self.assertIsNone(keyring.get_password("pitugym", "api_token"))

    def test_missing_keyring_entry(self) -> None:
        with open(self.path, "w", encoding="utf-8") as f:
            yaml.safe_dump({"api_token": True, "theme": "dark"}, f)
        self.assertEqual(YamlConfig(self.path).load(), {"theme": "dark"})

    def test_malformed_file(self) -> None:
        with open(self.path, "w", encoding="utf-8") as f:
            f.write("- just\n- a list\n")
        with self.assertRaises(ValueError):
            YamlConfig(self.path).load()


class SettingsRepositoryTest(unittest.TestCase):
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
        self.assertEqual(repo.get_int("rest_default_seconds", 0), 90)
        self.assertEqual(repo.get_int_list("rest_presets", ""), [15, 30, 45, 90, 120, 180])
        self.assertTrue(repo.get_bool("sound_enabled", False))
        with open(self.yaml_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        self.assertEqual(data["weight_unit"], "kg")

    def test_yaml_edits_win(self) -> None:
        repo = SettingsRepository(self.db_path, self.yaml_path)
        with open(self.yaml_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        data["rest_default_seconds"] = 120
        data["vibration_enabled"] = False
        with open(self.yaml_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f)
        self.assertEqual(repo.get_int("rest_default_seconds", 90), 120)
        self.assertFalse(repo.get_bool("vibration_enabled", True))

    def test_invalid_values_rejected(self) -> None:
        repo = SettingsRepository(self.db_path, self.yaml_path)
        with self.assertRaises(ValueError):
            repo.set_text("weight_unit", "stone")
        with self.assertRaises(ValueError):
            repo.set_int("rest_default_seconds", 0)
        self.assertEqual(repo.get_text("weight_unit", ""), "kg")

    def test_numeric_token_stays_text(self) -> None:
        repo = SettingsRepository(self.db_path, self.yaml_path)
        repo.set_text("api_token", "12345")
        self.assertEqual(repo.all_settings()["api_token"], "12345")

    def test_schema(self) -> None:
        validate_settings({"weight_unit": "lb", "rest_default_seconds": 60})
        with self.assertRaises(ValueError):
            validate_settings({"rest_default_seconds": -5})
        with self.assertRaises(ValueError):
            validate_settings({"rest_presets": "30,abc"})
        with self.assertRaises(ValueError):
            validate_settings({"language": "fr"})


if __name__ == "__main__":
    unittest.main()
