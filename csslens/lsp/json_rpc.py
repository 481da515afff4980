"""Content-Length framed JSON-RPC 2.0 over a byte stream."""

from __future__ import annotations

import json
import logging
from typing import Any

logger = logging.getLogger(__name__)

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
SERVER_NOT_INITIALIZED = -32002

_HEADER_END = b"\r\n\r\n"


def encode_message(payload: dict[str, Any]) -> bytes:
    body = json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    return f"Content-Length: {len(body)}\r\n\r\n".encode("ascii") + body


def response(request_id: object, result: object = None) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "result": result}


def error_response(request_id: object, code: int, message: str) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "error": {"code": int(code), "message": str(message)}}


def is_response(message: dict[str, Any]) -> bool:
    return "id" in message and "method" not in message


def is_request(message: dict[str, Any]) -> bool:
    return "id" in message and "method" in message


class MessageFramer:
    """Splits an incoming byte stream into decoded JSON-RPC objects.

    Frames with a bad header or an undecodable body are dropped and the
    framer resynchronizes on the next header.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()
        self._body_length: int | None = None

    def reset(self) -> None:
        self._buffer.clear()
        self._body_length = None

    @property
    def pending_bytes(self) -> int:
        return len(self._buffer)

    def feed(self, data: bytes | bytearray) -> list[dict[str, Any]]:
        self._buffer.extend(data or b"")
        out: list[dict[str, Any]] = []
        while self._advance(out):
            pass
        return out

    def _advance(self, out: list[dict[str, Any]]) -> bool:
        if self._body_length is None:
            end = self._buffer.find(_HEADER_END)
            if end < 0:
                return False
            header = bytes(self._buffer[:end])
            del self._buffer[: end + len(_HEADER_END)]
            self._body_length = content_length(header)
            if self._body_length is None:
                logger.warning("Dropping frame with malformed header: %r", header[:80])
            return True

        if len(self._buffer) < self._body_length:
            return False
        body = bytes(self._buffer[: self._body_length])
        del self._buffer[: self._body_length]
        self._body_length = None

        try:
            decoded = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            logger.warning("Dropping undecodable frame: %s", exc)
            return True
        if isinstance(decoded, dict):
            out.append(decoded)
        else:
            logger.warning("Dropping non-object frame of type %s", type(decoded).__name__)
        return True


def content_length(header: bytes) -> int | None:
    text = header.decode("ascii", errors="ignore")
    for line in text.split("\r\n"):
        name, sep, value = line.partition(":")
        if not sep or name.strip().lower() != "content-length":
            continue
        try:
            length = int(value.strip())
        except ValueError:
            return None
        return length if length >= 0 else None
    return None
