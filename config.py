import logging
import os

import keyring
import yaml

APP_VERSION = "1.0.0"

logger = logging.getLogger(__name__)


class YamlConfig:
    """PituGym settings file; with ``ENCRYPT_SETTINGS=1`` the API token lives in
    the OS keyring and the file only keeps a ``true`` placeholder."""

    SENSITIVE_KEYS = {"api_token"}
    KEYRING_SERVICE = "pitugym"

    def __init__(self, path: str = "settings.yaml") -> None:
        self.path = path
        self.encrypt = os.environ.get("ENCRYPT_SETTINGS") == "1"

    def _read(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ValueError(f"invalid settings file {self.path}: {e}")
        if not isinstance(data, dict):
            raise ValueError(f"settings file {self.path} must contain a mapping")
        return data

    def load(self) -> dict:
        data = self._read()
        if not self.encrypt:
            return data
        for key in self.SENSITIVE_KEYS & data.keys():
            if data[key] is not True:
                continue
            secret = keyring.get_password(self.KEYRING_SERVICE, key)
            if secret is None:
                logger.warning("Keyring has no entry for %s, dropping placeholder", key)
                data.pop(key)
            else:
                data[key] = secret
        return data

    def save(self, data: dict) -> None:
        out = dict(data)
        if self.encrypt:
            for key in self.SENSITIVE_KEYS & out.keys():
                secret = str(out[key])
                if not secret:
                    continue
                keyring.set_password(self.KEYRING_SERVICE, key, secret)
                out[key] = True
        folder = os.path.dirname(self.path)
        if folder:
            os.makedirs(folder, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            yaml.safe_dump(out, f, sort_keys=True)
