from __future__ import annotations

import os
from copy import deepcopy
from pathlib import Path
from typing import TypedDict

from csslens.core.color_assignment import DEFAULT_PALETTE

SETTINGS_ENV_VAR = "CSSLENS_SETTINGS"
OVERWRITTEN_STYLES: tuple[str, ...] = ("strikethrough", "italic")


class ServerSettings(TypedDict, total=False):
    program: str
    args: list[str]
    env: dict[str, str]
    trace: str


class OverlaySettings(TypedDict, total=False):
    enabled: bool
    palette: list[str]
    line_alpha: int
    overwritten_style: str


class EditorSettings(TypedDict, total=False):
    font_size: int
    font_family: str


class LogSettings(TypedDict, total=False):
    level: str


class AppSettings(TypedDict, total=False):
    server: ServerSettings
    overlay: OverlaySettings
    editor: EditorSettings
    log: LogSettings


def default_settings_path() -> Path:
    override = os.environ.get(SETTINGS_ENV_VAR, "").strip()
    if override:
        return Path(override).expanduser()
    return Path.home() / ".csslens" / "settings.json"


def default_app_settings() -> AppSettings:
    defaults: AppSettings = {
        "server": {
            "program": "",
            "args": [],
            "env": {"RUST_LOG": "debug"},
            "trace": "off",
        },
        "overlay": {
            "enabled": True,
            "palette": list(DEFAULT_PALETTE),
            "line_alpha": 56,
            "overwritten_style": "strikethrough",
        },
        "editor": {
            "font_size": 10,
            "font_family": "",
        },
        "log": {
            "level": "INFO",
        },
    }
    return deepcopy(defaults)
