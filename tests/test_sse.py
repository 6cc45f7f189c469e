"""
Tests for SSE line buffering and frame helpers.
"""
import json

import pytest

from chat_relay.services.relay.sse import (
    SSELineBuffer,
    encode_content_frame,
    encode_done_frame,
    encode_error_frame,
    extract_delta_content,
    is_done,
    parse_data_line,
)
from chat_relay.services.upstream.exceptions import MalformedFrame, UpstreamRejected


def test_line_buffer_carries_partial_line_forward():
    buffer = SSELineBuffer()

    assert buffer.feed(b'data: {"a"') == []
    assert buffer.pending == 'data: {"a"'
    assert buffer.feed(b': 1}\n\ndata: x') == ['data: {"a": 1}', ""]
    assert buffer.flush() == ["data: x"]
    assert buffer.flush() == []


def test_line_buffer_handles_multibyte_split_across_reads():
    """A UTF-8 character cut in half must not be decoded until complete."""
    encoded = "data: 🌍é\n".encode("utf-8")
    buffer = SSELineBuffer()
    lines = []
    for i in range(len(encoded)):
        lines.extend(buffer.feed(encoded[i:i + 1]))

    assert lines == ["data: 🌍é"]


def test_line_buffer_strips_crlf_even_when_split():
    buffer = SSELineBuffer()

    assert buffer.feed(b"data: one\r") == []
    assert buffer.feed(b"\ndata: two\r\n") == ["data: one", "data: two"]


def test_line_buffer_splits_on_bare_carriage_return():
    buffer = SSELineBuffer()

    assert buffer.feed(b"data: one\rdata: two\r") == ["data: one"]
    assert buffer.pending == "data: two\r"
    assert buffer.feed(b"\rdata: three") == ["data: two", ""]
    assert buffer.feed(b"\r\n") == ["data: three"]
    assert buffer.flush() == []


def test_line_buffer_flushes_line_ending_in_carriage_return():
    buffer = SSELineBuffer()

    assert buffer.feed(b"data: last\r") == []
    assert buffer.flush() == ["data: last"]


def test_parse_data_line():
    assert parse_data_line("data: hello") == "hello"
    assert parse_data_line("data:hello") == "hello"
    assert parse_data_line("data:  two spaces") == " two spaces"
    assert parse_data_line(": OPENROUTER PROCESSING") is None
    assert parse_data_line("event: message") is None
    assert parse_data_line("") is None


def test_done_sentinel_is_plain_string():
    assert is_done("[DONE]")
    assert is_done(" [DONE] ")
    assert not is_done('"[DONE]"')
    assert not is_done('{"content": "[DONE]"}')


def test_extract_delta_content():
    chunk = {"choices": [{"index": 0, "delta": {"content": "Hel"}}]}
    assert extract_delta_content(json.dumps(chunk)) == "Hel"


@pytest.mark.parametrize(
    "payload",
    [
        {"choices": [{"delta": {"role": "assistant"}}]},
        {"choices": [{"delta": {}, "finish_reason": "stop"}]},
        {"choices": [{"delta": {"content": ""}}]},
        {"choices": [{"delta": {"content": None}}]},
        {"choices": []},
        {"id": "gen-1", "object": "chat.completion.chunk"},
        [1, 2, 3],
    ],
)
def test_extract_delta_content_ignores_frames_without_text(payload):
    assert extract_delta_content(json.dumps(payload)) is None


def test_extract_delta_content_rejects_invalid_json():
    with pytest.raises(MalformedFrame) as exc_info:
        extract_delta_content('{"choices": [{"delta": ')

    assert exc_info.value.raw_data == '{"choices": [{"delta": '


def test_extract_delta_content_surfaces_provider_error():
    payload = json.dumps({"error": {"message": "Rate limit exceeded", "code": 429}})

    with pytest.raises(UpstreamRejected) as exc_info:
        extract_delta_content(payload)

    assert exc_info.value.status_code == 429
    assert exc_info.value.message == "Rate limit exceeded"


def test_encoded_frames():
    assert encode_content_frame('a "quoted"\nline') == 'data: {"content": "a \\"quoted\\"\\nline"}\n\n'
    assert encode_content_frame("héllo") == 'data: {"content": "héllo"}\n\n'
    assert encode_done_frame() == "data: [DONE]\n\n"

    error = json.loads(encode_error_frame("upstream_timeout", "slow")[len("data: "):])
    assert error == {"error": {"type": "upstream_timeout", "message": "slow"}}
