"""
Tests for the client-side stream consumer.
"""
import pytest

from chat_relay.client import RelayStreamError, StreamConsumer
from conftest import split_bytes

RELAY_BODY = (
    'data: {"content": "Hel"}\n\n'
    'data: {"content": "lo!"}\n\n'
    "data: [DONE]\n\n"
).encode("utf-8")


def test_fragments_and_completion_callbacks():
    fragments = []
    completed = []
    consumer = StreamConsumer(on_fragment=fragments.append, on_complete=completed.append)

    consumer.feed(RELAY_BODY)
    text = consumer.finish()

    assert fragments == ["Hel", "lo!"]
    assert completed == ["Hello!"]
    assert text == "Hello!"
    assert consumer.saw_sentinel


@pytest.mark.parametrize("chunk_size", [1, 2, 4, 11])
def test_arbitrary_read_boundaries(chunk_size):
    body = 'data: {"content": "ça "}\n\ndata: {"content": "🌍"}\n\ndata: [DONE]\n\n'.encode("utf-8")
    consumer = StreamConsumer()

    for chunk in split_bytes(body, chunk_size):
        consumer.feed(chunk)

    assert consumer.finish() == "ça 🌍"
    assert consumer.fragments == ["ça ", "🌍"]


def test_stream_without_sentinel_finalizes_with_partial_text():
    completed = []
    consumer = StreamConsumer(on_complete=completed.append)

    consumer.feed(b'data: {"content": "cut "}\n\ndata: {"content": "off"}')

    assert consumer.finish() == "cut off"
    assert completed == ["cut off"]
    assert not consumer.saw_sentinel


def test_completion_fires_once():
    completed = []
    consumer = StreamConsumer(on_complete=completed.append)

    consumer.feed(RELAY_BODY)
    consumer.feed(b'data: {"content": "late"}\n\n')
    consumer.finish()
    consumer.finish()

    assert completed == ["Hello!"]


def test_error_frame_fires_error_path():
    errors = []
    completed = []
    consumer = StreamConsumer(on_complete=completed.append, on_error=errors.append)

    consumer.feed(b'data: {"error": {"type": "upstream_timeout", "message": "slow"}}\n\n')
    consumer.finish()

    assert completed == []
    assert len(errors) == 1
    assert errors[0].error_type == "upstream_timeout"
    assert errors[0].message == "slow"
    assert consumer.full_text == ""


def test_error_frame_raises_without_handler():
    consumer = StreamConsumer()
    consumer.feed(b'data: {"content": "Hel"}\n\ndata: {"error": {"type": "upstream_unavailable", "message": "reset"}}\n\n')

    with pytest.raises(RelayStreamError) as exc_info:
        consumer.finish()

    assert exc_info.value.error_type == "upstream_unavailable"


def test_unparsable_frames_and_comments_are_ignored():
    consumer = StreamConsumer()
    consumer.feed(b': keep-alive\n\ndata: {nope\n\ndata: {"content": "ok"}\n\ndata: [DONE]\n\n')

    assert consumer.finish() == "ok"


async def test_consume_async_iterable():
    async def body():
        for chunk in split_bytes(RELAY_BODY, 3):
            yield chunk

    fragments = []
    consumer = StreamConsumer(on_fragment=fragments.append)

    assert await consumer.consume(body()) == "Hello!"
    assert fragments == ["Hel", "lo!"]


@pytest.mark.parametrize(
    "body",
    [b"", b"data: [DONE]\n\n", b": keep-alive\n\n", b'data: {"content": ""}\n\ndata: [DONE]\n\n'],
    ids=["empty", "sentinel-only", "comment-only", "blank-fragment"],
)
def test_stream_without_text_fires_error_not_completion(body):
    completed = []
    errors = []
    consumer = StreamConsumer(on_complete=completed.append, on_error=errors.append)

    consumer.feed(body)
    consumer.finish()

    assert completed == []
    assert len(errors) == 1
    assert errors[0].error_type == "empty_stream"


def test_stream_without_text_raises_without_handler():
    consumer = StreamConsumer()
    consumer.feed(b"data: [DONE]\n\n")

    with pytest.raises(RelayStreamError) as exc_info:
        consumer.finish()

    assert exc_info.value.error_type == "empty_stream"
