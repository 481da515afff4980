"""Client for the stylesheet backend, spoken over the backend's stdio.

The backend runs as a ``QProcess``. Outgoing messages wait in an outbox until
the ``initialize`` round trip finishes; server-to-client requests are routed
to handlers registered per method.
"""

from __future__ import annotations

import logging
import os
from enum import Enum
from typing import Any, Callable, NamedTuple

from PySide6.QtCore import QObject, QProcess, QProcessEnvironment, QTimer, QUrl, Signal

from csslens.core.attribution import AttributionPayloadError

from .json_rpc import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    METHOD_NOT_FOUND,
    SERVER_NOT_INITIALIZED,
    MessageFramer,
    encode_message,
    error_response,
    is_request,
    is_response,
    response,
)

logger = logging.getLogger(__name__)

DEFAULT_SERVER_PROGRAM = "bhc-language-server"
SERVER_PATH_ENV = "SERVER_PATH"
EXIT_GRACE_MS = 1200

Callback = Callable[[object], None]
RequestHandler = Callable[[object], object]


class ClientState(Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    INITIALIZING = "initializing"
    READY = "ready"
    STOPPING = "stopping"


_QUEUEING = (ClientState.STARTING, ClientState.INITIALIZING)
_ACCEPTING = _QUEUEING + (ClientState.READY,)


class _Awaiting(NamedTuple):
    method: str
    on_result: Callback | None
    on_error: Callback | None


def resolve_server_program(configured: str = "") -> str:
    """Configured program, then ``$SERVER_PATH``, then the stock binary name."""
    for candidate in (configured, os.environ.get(SERVER_PATH_ENV, "")):
        text = str(candidate or "").strip()
        if text:
            return text
    return DEFAULT_SERVER_PROGRAM


class LspClient(QObject):
    ready = Signal()
    stopped = Signal()
    notificationReceived = Signal(str, object)
    statusMessage = Signal(str)

    def __init__(self, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._state = ClientState.STOPPED
        self._framer = MessageFramer()
        self._last_id = 0
        self._awaiting: dict[int, _Awaiting] = {}
        self._outbox: list[dict[str, Any]] = []
        self._versions: dict[str, int] = {}
        self._handlers: dict[str, RequestHandler] = {}
        self._root_path = ""
        self._trace = "off"

        self._process = QProcess(self)
        self._process.started.connect(self._begin_handshake)
        self._process.finished.connect(self._on_exited)
        self._process.errorOccurred.connect(self._on_process_error)
        self._process.readyReadStandardOutput.connect(self._read_stdout)
        self._process.readyReadStandardError.connect(self._read_stderr)

        self._kill_timer = QTimer(self)
        self._kill_timer.setSingleShot(True)
        self._kill_timer.setInterval(EXIT_GRACE_MS)
        self._kill_timer.timeout.connect(self._on_grace_expired)

    @property
    def state(self) -> ClientState:
        return self._state

    def register_request_handler(self, method: str, handler: RequestHandler) -> None:
        self._handlers[str(method)] = handler

    # -------- process lifecycle --------

    def start(
        self,
        *,
        program: str = "",
        args: list[str] | None = None,
        cwd: str = "",
        env: dict[str, str] | None = None,
        trace: str = "off",
    ) -> None:
        if self._process.state() != QProcess.NotRunning:
            self._process.terminate()
            if not self._process.waitForFinished(EXIT_GRACE_MS):
                self._process.kill()
                self._process.waitForFinished(EXIT_GRACE_MS)
        self._forget_session()
        self._root_path = cwd if cwd and os.path.isdir(cwd) else ""
        self._trace = str(trace or "off").strip() or "off"

        environment = QProcessEnvironment.systemEnvironment()
        for key, value in (env or {}).items():
            environment.insert(str(key), str(value))
        executable = resolve_server_program(program)
        self._process.setProcessEnvironment(environment)
        self._process.setProgram(executable)
        self._process.setArguments([str(arg) for arg in args or []])
        if self._root_path:
            self._process.setWorkingDirectory(self._root_path)

        logger.info("Starting stylesheet backend %s", executable)
        self._state = ClientState.STARTING
        self._process.start()

    def stop(self) -> None:
        if self._process.state() == QProcess.NotRunning:
            self._forget_session()
            return
        was_ready = self._state is ClientState.READY
        self._state = ClientState.STOPPING
        if not was_ready:
            self._terminate()
            return
        # Polite shutdown; the timer kills a backend that ignores it.
        self.request("shutdown", on_result=self._send_exit, on_error=self._send_exit)
        self._kill_timer.start()

    def _send_exit(self, _reply: object = None) -> None:
        self._write({"jsonrpc": "2.0", "method": "exit", "params": {}})

    def _terminate(self) -> None:
        if self._process.state() == QProcess.NotRunning:
            return
        self._process.terminate()
        self._kill_timer.start()

    def _on_grace_expired(self) -> None:
        if self._process.state() != QProcess.NotRunning:
            logger.warning("Backend ignored shutdown; killing it")
            self._process.kill()

    def _forget_session(self) -> None:
        self._framer.reset()
        self._awaiting.clear()
        self._outbox.clear()
        self._versions.clear()

    def _begin_handshake(self) -> None:
        self._state = ClientState.INITIALIZING
        root_uri = QUrl.fromLocalFile(self._root_path).toString() if self._root_path else None
        params: dict[str, Any] = {
            "processId": os.getpid(),
            "clientInfo": {"name": "csslens"},
            "rootUri": root_uri,
            "trace": self._trace,
            "capabilities": {
                "textDocument": {"synchronization": {"didSave": False, "willSave": False}},
                "window": {"showDocument": {"support": True}},
            },
        }
        if root_uri:
            params["workspaceFolders"] = [{"uri": root_uri, "name": os.path.basename(self._root_path)}]
        self.request("initialize", params, on_result=self._on_initialized, on_error=self._on_initialize_failed)

    def _on_initialized(self, _result: object) -> None:
        if self._state is not ClientState.INITIALIZING:
            return
        self._state = ClientState.READY
        self._write({"jsonrpc": "2.0", "method": "initialized", "params": {}})
        outbox, self._outbox = self._outbox, []
        for message in outbox:
            self._write(message)
        self.ready.emit()

    def _on_initialize_failed(self, error: object) -> None:
        logger.error("Backend initialize failed: %s", error)
        self.statusMessage.emit(f"Backend initialize failed: {error}")

    def _on_exited(self, exit_code: int, _status: QProcess.ExitStatus) -> None:
        self._kill_timer.stop()
        previous = self._state
        self._state = ClientState.STOPPED
        self._forget_session()
        logger.info("Stylesheet backend exited with code %s", exit_code)
        if previous is not ClientState.STOPPED:
            self.stopped.emit()

    def _on_process_error(self, error: QProcess.ProcessError) -> None:
        if self._state is ClientState.STOPPING and error != QProcess.ProcessError.FailedToStart:
            return
        if error == QProcess.ProcessError.FailedToStart:
            self._state = ClientState.STOPPED
            self._forget_session()
        message = f"Backend process error: {self._process.errorString()}"
        logger.error(message)
        self.statusMessage.emit(message)

    # -------- outgoing --------

    def request(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        *,
        on_result: Callback | None = None,
        on_error: Callback | None = None,
    ) -> int:
        lifecycle = method in ("initialize", "shutdown")
        if not lifecycle and self._state not in _ACCEPTING:
            logger.debug("Not sending %s; backend is %s", method, self._state.value)
            if on_error is not None:
                on_error({"code": SERVER_NOT_INITIALIZED, "message": "Backend is not running"})
            return 0
        self._last_id += 1
        self._awaiting[self._last_id] = _Awaiting(method, on_result, on_error)
        message = {"jsonrpc": "2.0", "id": self._last_id, "method": method, "params": params or {}}
        if lifecycle:
            self._write(message)
        else:
            self._post(message)
        return self._last_id

    def notify(self, method: str, params: dict[str, Any] | None = None) -> None:
        self._post({"jsonrpc": "2.0", "method": method, "params": params or {}})

    def _post(self, message: dict[str, Any]) -> None:
        if self._state in _QUEUEING:
            self._outbox.append(message)
        elif self._state is ClientState.READY:
            self._write(message)

    def _write(self, message: dict[str, Any]) -> None:
        if self._process.state() == QProcess.NotRunning:
            return
        if self._process.write(encode_message(message)) < 0:
            self.statusMessage.emit(f"Backend write failed: {self._process.errorString()}")
            return
        logger.debug("--> %s", message.get("method") or f"reply {message.get('id')}")

    # -------- document sync --------

    def did_open(self, *, uri: str, language_id: str, text: str) -> int:
        if not uri:
            return 0
        if uri in self._versions:
            return self.did_change(uri=uri, text=text)
        self._versions[uri] = 1
        document = {"uri": uri, "languageId": language_id or "html", "version": 1, "text": text or ""}
        self.notify("textDocument/didOpen", {"textDocument": document})
        return 1

    def did_change(self, *, uri: str, text: str) -> int:
        version = self._versions.get(uri)
        if version is None:
            return 0
        version += 1
        self._versions[uri] = version
        self.notify(
            "textDocument/didChange",
            {"textDocument": {"uri": uri, "version": version}, "contentChanges": [{"text": text or ""}]},
        )
        return version

    def did_close(self, *, uri: str) -> None:
        if self._versions.pop(uri, None) is not None:
            self.notify("textDocument/didClose", {"textDocument": {"uri": uri}})

    def is_tracking(self, uri: str) -> bool:
        return uri in self._versions

    # -------- incoming --------

    def _read_stdout(self) -> None:
        for message in self._framer.feed(bytes(self._process.readAllStandardOutput())):
            self.handle_message(message)

    def _read_stderr(self) -> None:
        text = bytes(self._process.readAllStandardError()).decode("utf-8", errors="replace").strip()
        if text:
            logger.debug("backend stderr: %s", text)

    def handle_message(self, message: dict[str, Any]) -> None:
        if is_response(message):
            self._resolve(message)
        elif is_request(message):
            self._answer(message.get("id"), str(message.get("method")), message.get("params"))
        elif message.get("method"):
            self._on_notification(str(message["method"]), message.get("params"))

    def _resolve(self, message: dict[str, Any]) -> None:
        awaiting = self._awaiting.pop(message.get("id"), None)
        if awaiting is None:
            logger.debug("Reply to unknown request id %r", message.get("id"))
            return
        if "error" in message:
            callback, payload = awaiting.on_error, message["error"]
        else:
            callback, payload = awaiting.on_result, message.get("result")
        if callback is not None:
            callback(payload)

    def _answer(self, request_id: object, method: str, params: object) -> None:
        handler = self._handlers.get(method)
        if handler is None:
            reply = error_response(request_id, METHOD_NOT_FOUND, f"Method not supported: {method}")
        else:
            try:
                reply = response(request_id, handler(params))
            except AttributionPayloadError as exc:
                logger.warning("Rejected %s: %s", method, exc)
                reply = error_response(request_id, INVALID_PARAMS, str(exc))
            except Exception as exc:
                logger.exception("Handler for %s failed", method)
                reply = error_response(request_id, INTERNAL_ERROR, str(exc))
        self._write(reply)

    def _on_notification(self, method: str, params: object) -> None:
        if method in ("window/logMessage", "window/showMessage") and isinstance(params, dict):
            text = str(params.get("message") or "").strip()
            if text:
                logger.info("backend: %s", text)
                self.statusMessage.emit(text)
        self.notificationReceived.emit(method, params)
