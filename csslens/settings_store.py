from __future__ import annotations

import json
import logging
import re
from copy import deepcopy
from pathlib import Path
from typing import Any, Mapping

from csslens.settings_models import OVERWRITTEN_STYLES, default_app_settings, default_settings_path

logger = logging.getLogger(__name__)

_HEX_COLOR_RE = re.compile(r"^#(?:[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$")
_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
MIN_FONT_SIZE = 6
MAX_FONT_SIZE = 72


class SettingsStoreError(RuntimeError):
    """Raised when the settings file cannot be saved."""


def deep_merge_defaults(data: Mapping[str, Any], defaults: Mapping[str, Any]) -> dict[str, Any]:
    """Fill keys missing from ``data`` with defaults; explicit values win."""
    merged = deepcopy(dict(data))
    for key, default_value in defaults.items():
        current = merged.get(key)
        if key not in merged:
            merged[key] = deepcopy(default_value)
        elif isinstance(current, dict) and isinstance(default_value, dict):
            merged[key] = deep_merge_defaults(current, default_value)
    return merged


def dot_get(data: Mapping[str, Any], key: str, default: Any = None) -> Any:
    current: Any = data
    for part in key.split(".") if key else ():
        if not isinstance(current, Mapping) or part not in current:
            return default
        current = current[part]
    return current


def dot_set(data: dict[str, Any], key: str, value: Any) -> None:
    if not key:
        raise ValueError("Key cannot be empty.")
    *parents, leaf = key.split(".")
    current = data
    for part in parents:
        child = current.get(part)
        if not isinstance(child, dict):
            child = {}
            current[part] = child
        current = child
    current[leaf] = value


class JsonSettingsStore:
    """JSON file with defaults, normalization and dot-key access.

    An unreadable or invalid file never stops the app: the error is kept in
    ``last_error`` and defaults are used.
    """

    def __init__(self, path: Path | None = None, defaults: Mapping[str, Any] | None = None) -> None:
        self.path = Path(path) if path is not None else default_settings_path()
        self.defaults: dict[str, Any] = deepcopy(dict(defaults if defaults is not None else default_app_settings()))
        self.data: dict[str, Any] = deepcopy(self.defaults)
        self.dirty = False
        self.last_error: str | None = None

    def load(self) -> dict[str, Any]:
        self.last_error = None
        loaded: dict[str, Any] = {}
        if self.path.exists():
            try:
                raw = json.loads(self.path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as exc:
                raw = None
                self.last_error = f"Could not read settings file '{self.path}': {exc}"
            else:
                if not isinstance(raw, dict):
                    self.last_error = (
                        f"Settings root in '{self.path}' must be a JSON object, found {type(raw).__name__}."
                    )
            if isinstance(raw, dict):
                loaded = raw
        if self.last_error:
            logger.warning(self.last_error)

        self.data = deep_merge_defaults(loaded, self.defaults)
        self.dirty = self._normalize()
        return self.data

    def save(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(self.data, indent=2, sort_keys=True), encoding="utf-8")
        except OSError as exc:
            raise SettingsStoreError(f"Could not write settings file '{self.path}': {exc}") from exc
        self.dirty = False
        self.last_error = None

    def get(self, key: str, default: Any = None) -> Any:
        return dot_get(self.data, key, default)

    def set(self, key: str, value: Any) -> bool:
        if self.get(key) == value:
            return False
        dot_set(self.data, key, value)
        self.dirty = True
        return True

    # -------- typed accessors --------

    def palette(self) -> list[str]:
        return list(self.get("overlay.palette"))

    def log_level(self) -> str:
        return str(self.get("log.level"))

    def _normalize(self) -> bool:
        changed = False
        defaults = self.defaults

        palette = self.get("overlay.palette")
        clean_palette = [str(c) for c in palette if _HEX_COLOR_RE.match(str(c))] if isinstance(palette, list) else []
        if not clean_palette:
            clean_palette = list(dot_get(defaults, "overlay.palette"))
        if clean_palette != palette:
            dot_set(self.data, "overlay.palette", clean_palette)
            changed = True

        try:
            alpha = max(0, min(255, int(self.get("overlay.line_alpha"))))
        except (TypeError, ValueError):
            alpha = int(dot_get(defaults, "overlay.line_alpha"))
        if alpha != self.get("overlay.line_alpha"):
            dot_set(self.data, "overlay.line_alpha", alpha)
            changed = True

        enabled = self.get("overlay.enabled")
        if not isinstance(enabled, bool):
            dot_set(self.data, "overlay.enabled", bool(dot_get(defaults, "overlay.enabled")))
            changed = True

        font_size = self.get("editor.font_size")
        clean_size = int(dot_get(defaults, "editor.font_size"))
        if not isinstance(font_size, bool):
            try:
                clean_size = max(MIN_FONT_SIZE, min(MAX_FONT_SIZE, int(font_size)))
            except (TypeError, ValueError):
                pass
        if clean_size != font_size:
            dot_set(self.data, "editor.font_size", clean_size)
            changed = True

        family = self.get("editor.font_family")
        if not isinstance(family, str):
            dot_set(self.data, "editor.font_family", "")
            changed = True
        elif family != family.strip():
            dot_set(self.data, "editor.font_family", family.strip())
            changed = True

        style = str(self.get("overlay.overwritten_style") or "").strip().lower()
        if style not in OVERWRITTEN_STYLES:
            style = str(dot_get(defaults, "overlay.overwritten_style"))
        if style != self.get("overlay.overwritten_style"):
            dot_set(self.data, "overlay.overwritten_style", style)
            changed = True

        level = str(self.get("log.level") or "").strip().upper()
        if level not in _LOG_LEVELS:
            level = str(dot_get(defaults, "log.level"))
        if level != self.get("log.level"):
            dot_set(self.data, "log.level", level)
            changed = True

        args = self.get("server.args")
        if not isinstance(args, list):
            dot_set(self.data, "server.args", [])
            changed = True
        env = self.get("server.env")
        if not isinstance(env, dict):
            dot_set(self.data, "server.env", {})
            changed = True
        return changed
