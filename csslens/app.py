from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

from PySide6.QtWidgets import QApplication

from csslens.lsp.lsp_client import LspClient
from csslens.settings_store import JsonSettingsStore
from csslens.ui.main_window import MainWindow

NO_SERVER_ARG = "--no-server"


def _split_startup_args(argv: list[str]) -> tuple[list[str], bool]:
    filtered: list[str] = []
    no_server = False
    for arg in argv:
        if arg == NO_SERVER_ARG:
            no_server = True
            continue
        filtered.append(arg)
    return filtered, no_server


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )


def _start_server(client: LspClient, settings: JsonSettingsStore) -> None:
    client.start(
        program=str(settings.get("server.program", "") or ""),
        args=list(settings.get("server.args", [])),
        env=dict(settings.get("server.env", {})),
        cwd=os.getcwd(),
        trace=str(settings.get("server.trace", "off")),
    )


def main(argv: list[str] | None = None) -> int:
    cli_args, no_server = _split_startup_args(list(sys.argv[1:] if argv is None else argv))

    settings = JsonSettingsStore()
    settings.load()
    configure_logging(settings.log_level())

    app = QApplication([sys.argv[0], *cli_args])
    app.setStyle("Fusion")
    app.setApplicationName(MainWindow.APP_NAME)

    client = None if no_server else LspClient()
    window = MainWindow(settings, client)
    window.open_paths([str(Path(arg).expanduser()) for arg in cli_args])
    if client is not None:
        _start_server(client, settings)
    window.show()
    return app.exec()
