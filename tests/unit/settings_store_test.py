import json
from pathlib import Path

import pytest

from csslens.core.color_assignment import DEFAULT_PALETTE
from csslens.settings_models import SETTINGS_ENV_VAR, default_app_settings, default_settings_path
from csslens.settings_store import (
    MAX_FONT_SIZE,
    JsonSettingsStore,
    SettingsStoreError,
    deep_merge_defaults,
    dot_get,
    dot_set,
)


def _write(path: Path, data: object) -> None:
    path.write_text(json.dumps(data), encoding="utf-8")


def test_deep_merge_keeps_explicit_values() -> None:
    merged = deep_merge_defaults({"a": {"b": 1}}, {"a": {"b": 2, "c": 3}, "d": 4})

    assert merged == {"a": {"b": 1, "c": 3}, "d": 4}


def test_dot_helpers() -> None:
    data: dict = {}
    dot_set(data, "overlay.palette", ["#000000"])

    assert dot_get(data, "overlay.palette") == ["#000000"]
    assert dot_get(data, "overlay.missing", "x") == "x"
    with pytest.raises(ValueError):
        dot_set(data, "", 1)


def test_settings_path_honours_env_override(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv(SETTINGS_ENV_VAR, str(tmp_path / "custom.json"))

    assert default_settings_path() == tmp_path / "custom.json"


class TestJsonSettingsStore:
    def test_missing_file_yields_defaults(self, tmp_path: Path) -> None:
        store = JsonSettingsStore(tmp_path / "settings.json")

        data = store.load()

        assert data == default_app_settings()
        assert store.last_error is None
        assert not store.dirty
        assert store.palette() == list(DEFAULT_PALETTE)
        assert store.log_level() == "INFO"

    def test_invalid_json_falls_back_to_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "settings.json"
        path.write_text("{broken", encoding="utf-8")
        store = JsonSettingsStore(path)

        store.load()

        assert store.last_error is not None
        assert store.get("server.program") == ""
        assert store.get("server.env") == {"RUST_LOG": "debug"}

    def test_non_object_root_is_reported(self, tmp_path: Path) -> None:
        path = tmp_path / "settings.json"
        _write(path, [1, 2])
        store = JsonSettingsStore(path)

        store.load()

        assert "must be a JSON object" in store.last_error

    def test_user_values_override_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "settings.json"
        _write(path, {"server": {"program": "/opt/bhc/server"}, "overlay": {"palette": ["#112233", "#445566"]}})
        store = JsonSettingsStore(path)

        store.load()

        assert store.get("server.program") == "/opt/bhc/server"
        assert store.get("server.env") == {"RUST_LOG": "debug"}
        assert store.palette() == ["#112233", "#445566"]
        assert not store.dirty

    def test_normalizes_invalid_values(self, tmp_path: Path) -> None:
        path = tmp_path / "settings.json"
        _write(
            path,
            {
                "overlay": {
                    "palette": ["red", "#12345"],
                    "line_alpha": 999,
                    "overwritten_style": "Italic",
                    "enabled": "yes",
                },
                "editor": {"font_size": "big", "font_family": 3},
                "log": {"level": "chatty"},
                "server": {"args": "--stdio", "env": ["x"]},
            },
        )
        store = JsonSettingsStore(path)

        store.load()

        assert store.dirty
        assert store.palette() == list(DEFAULT_PALETTE)
        assert store.get("overlay.line_alpha") == 255
        assert store.get("overlay.overwritten_style") == "italic"
        assert store.log_level() == "INFO"
        assert store.get("server.args") == []
        assert store.get("server.env") == {}
        assert store.get("overlay.enabled") is True
        assert store.get("editor.font_size") == 10
        assert store.get("editor.font_family") == ""

    def test_clamps_font_size_and_strips_family(self, tmp_path: Path) -> None:
        path = tmp_path / "settings.json"
        _write(path, {"editor": {"font_size": 500, "font_family": "  Fira Code "}})
        store = JsonSettingsStore(path)

        store.load()

        assert store.dirty
        assert store.get("editor.font_size") == MAX_FONT_SIZE
        assert store.get("editor.font_family") == "Fira Code"

    def test_boolean_font_size_falls_back_to_default(self, tmp_path: Path) -> None:
        path = tmp_path / "settings.json"
        _write(path, {"editor": {"font_size": True}})
        store = JsonSettingsStore(path)

        store.load()

        assert store.get("editor.font_size") == 10

    def test_set_and_save_round_trip(self, tmp_path: Path) -> None:
        path = tmp_path / "nested" / "settings.json"
        store = JsonSettingsStore(path)
        store.load()

        assert store.set("overlay.line_alpha", 80)
        assert not store.set("overlay.line_alpha", 80)
        store.save()

        reloaded = JsonSettingsStore(path)
        reloaded.load()
        assert reloaded.get("overlay.line_alpha") == 80
        assert not store.dirty

    def test_save_failure_raises(self, tmp_path: Path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        store = JsonSettingsStore(blocker / "settings.json")

        with pytest.raises(SettingsStoreError):
            store.save()
