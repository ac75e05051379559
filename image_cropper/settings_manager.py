from __future__ import annotations

import json
import os
from typing import Any

from .logger import get_logger

_logger = get_logger("settings")

_FORMATS = ("jpeg", "png", "webp")


class SettingsManager:
    def __init__(self, settings_path: str):
        self.settings_path = settings_path
        self._settings: dict[str, Any] = {}
        self.load()

    DEFAULTS: dict[str, Any] = {
        "output_format": "jpeg",
        "quality": 100,
        "max_texture_size": 0,
        "handshake_timeout": 10.0,
        "view_width": 1280,
        "view_height": 800,
    }

    def load(self) -> None:
        try:
            if os.path.exists(self.settings_path):
                with open(self.settings_path, encoding="utf-8") as f:
                    data = json.load(f)
                    if isinstance(data, dict):
                        self._settings = data
                        _logger.debug("settings loaded: %s", self.settings_path)
                        return
        except (OSError, ValueError) as e:
            _logger.warning("settings load failed: %s", e)
        self._settings = {}

    def save(self) -> None:
        try:
            parent = os.path.dirname(self.settings_path)
            if parent:
                os.makedirs(parent, exist_ok=True)
            with open(self.settings_path, "w", encoding="utf-8") as f:
                json.dump(self._settings, f, ensure_ascii=False, indent=2)
            _logger.debug("settings saved: %s", self.settings_path)
        except OSError as e:
            _logger.error("settings save failed: %s", e)

    def get(self, key: str, default: Any = None) -> Any:
        if key in self._settings:
            return self._settings[key]
        if default is not None:
            return default
        return self.DEFAULTS.get(key)

    def has(self, key: str) -> bool:
        return key in self._settings

    def set(self, key: str, value: Any) -> None:
        self._settings[key] = value
        self.save()

    @property
    def data(self) -> dict[str, Any]:
        return self._settings

    def _int(self, key: str) -> int:
        try:
            return int(self.get(key))
        except (TypeError, ValueError):
            _logger.warning("invalid %s: %r", key, self.get(key))
            return int(self.DEFAULTS[key])

    @property
    def output_format(self) -> str:
        val = str(self.get("output_format") or "").lower()
        if val not in _FORMATS:
            _logger.warning("unknown output_format %r, using jpeg", val)
            return "jpeg"
        return val

    @property
    def quality(self) -> int:
        return max(1, min(100, self._int("quality")))

    @property
    def max_texture_size(self) -> int:
        return max(0, self._int("max_texture_size"))

    @property
    def handshake_timeout(self) -> float:
        try:
            val = float(self.get("handshake_timeout"))
        except (TypeError, ValueError):
            return float(self.DEFAULTS["handshake_timeout"])
        return val if val > 0 else float(self.DEFAULTS["handshake_timeout"])

    @property
    def view_size(self) -> tuple[int, int]:
        return max(1, self._int("view_width")), max(1, self._int("view_height"))
