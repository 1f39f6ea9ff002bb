"""Storage of the single API key used by the remote assistant."""

from __future__ import annotations

import logging
import os

from PySide6.QtCore import QSettings

from journalmap.constants import (
    API_KEY_SETTING,
    OPENAI_API_KEY_ENV,
    SETTINGS_APPLICATION,
    SETTINGS_ORGANIZATION,
)


class MemoryCredentialStore:
    """Keeps the key in process memory only; used by tests and previews."""

    def __init__(self, value: str | None = None) -> None:
        self._value = value

    def get(self) -> str | None:
        return self._value

    def set(self, value: str) -> None:
        self._value = value

    def delete(self) -> None:
        self._value = None


class SettingsCredentialStore:
    """QSettings-backed key storage with an environment variable fallback.

    The environment variable is only read; ``set`` and ``delete`` touch the
    settings store alone.
    """

    def __init__(
        self,
        settings: QSettings | None = None,
        key: str = API_KEY_SETTING,
        env_var: str = OPENAI_API_KEY_ENV,
    ) -> None:
        self._settings = settings or QSettings(
            SETTINGS_ORGANIZATION, SETTINGS_APPLICATION
        )
        self._key = key
        self._env_var = env_var

    def get(self) -> str | None:
        value = self._settings.value(self._key, None)
        if value:
            return str(value)
        return os.environ.get(self._env_var) or None

    def set(self, value: str) -> None:
        value = value.strip()
        if not value:
            self.delete()
            return
        self._settings.setValue(self._key, value)
        self._settings.sync()
        logging.info("Stored assistant API key in application settings")

    def delete(self) -> None:
        self._settings.remove(self._key)
        self._settings.sync()
