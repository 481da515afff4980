import json

from csslens.lsp.json_rpc import (
    MessageFramer,
    content_length,
    encode_message,
    error_response,
    is_request,
    is_response,
    response,
)


def _frame(payload: object) -> bytes:
    body = json.dumps(payload).encode("utf-8")
    return b"Content-Length: " + str(len(body)).encode("ascii") + b"\r\n\r\n" + body


def test_encode_message_counts_utf8_bytes() -> None:
    raw = encode_message({"text": "héllo"})
    header, body = raw.split(b"\r\n\r\n", 1)

    assert header == f"Content-Length: {len(body)}".encode("ascii")
    assert json.loads(body.decode("utf-8")) == {"text": "héllo"}


def test_response_helpers() -> None:
    assert response(4, {"ok": True}) == {"jsonrpc": "2.0", "id": 4, "result": {"ok": True}}
    assert error_response(4, -32601, "nope")["error"] == {"code": -32601, "message": "nope"}
    assert is_request({"id": 1, "method": "x"})
    assert not is_request({"method": "x"})
    assert is_response({"id": 1, "result": None})


def test_content_length_header_is_case_insensitive() -> None:
    assert content_length(b"content-length: 12\r\nContent-Type: x") == 12
    assert content_length(b"Content-Type: x") is None
    assert content_length(b"Content-Length: -1") is None


class TestMessageFramer:
    def test_reassembles_split_frames(self) -> None:
        framer = MessageFramer()
        raw = _frame({"id": 1, "result": None})

        assert framer.feed(raw[:7]) == []
        assert framer.feed(raw[7:20]) == []
        assert framer.feed(raw[20:]) == [{"id": 1, "result": None}]
        assert framer.pending_bytes == 0

    def test_splits_batched_frames(self) -> None:
        framer = MessageFramer()

        messages = framer.feed(_frame({"a": 1}) + _frame({"b": 2}) + _frame({"c": 3})[:5])

        assert messages == [{"a": 1}, {"b": 2}]
        assert framer.pending_bytes == 5

    def test_drops_bad_header_and_resynchronizes(self) -> None:
        framer = MessageFramer()

        messages = framer.feed(b"Content-Length: abc\r\n\r\n" + _frame({"ok": True}))

        assert messages == [{"ok": True}]

    def test_drops_undecodable_and_non_object_bodies(self) -> None:
        framer = MessageFramer()
        garbage = b"{not json"
        bad = b"Content-Length: " + str(len(garbage)).encode() + b"\r\n\r\n" + garbage

        messages = framer.feed(bad + _frame([1, 2]) + _frame({"ok": 1}))

        assert messages == [{"ok": 1}]

    def test_reset_discards_partial_frame(self) -> None:
        framer = MessageFramer()
        framer.feed(_frame({"a": 1})[:-2])

        framer.reset()

        assert framer.pending_bytes == 0
        assert framer.feed(_frame({"b": 2})) == [{"b": 2}]
