"""
Server-Sent Events framing helpers shared by the relay and the client.

Relay wire format (what browsers and `chat_relay.client` read):

    data: {"content": "<fragment>"}\n\n      one per text fragment
    data: {"error": {"type": ..., "message": ...}}\n\n   upstream failure
    data: [DONE]\n\n                          terminal sentinel

The sentinel is always the bare string `[DONE]`, never JSON-wrapped.
"""
import codecs
import json
import re
from typing import Any, Dict, List, Optional

from chat_relay.services.upstream.exceptions import MalformedFrame, UpstreamRejected

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"
LINE_BREAK = re.compile(r"\r\n|\r|\n")


class SSELineBuffer:
    """Turns arbitrarily split bytes into complete text lines.

    Multi-byte characters and lines may straddle reads; the incomplete tail
    is carried into the next `feed` call. Lines end with LF, CRLF or a bare
    CR, as SSE allows.
    """

    def __init__(self):
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    def feed(self, data: bytes) -> List[str]:
        self._buffer += self._decoder.decode(data)
        # A trailing CR may be the first half of a CRLF split across reads.
        held = "\r" if self._buffer.endswith("\r") else ""
        complete = self._buffer[:-1] if held else self._buffer
        lines = LINE_BREAK.split(complete)
        self._buffer = lines.pop() + held
        return lines

    def flush(self) -> List[str]:
        """Return whatever is left once the byte stream has ended."""
        self._buffer += self._decoder.decode(b"", final=True)
        rest, self._buffer = self._buffer, ""
        rest = rest.rstrip("\r")
        return [rest] if rest else []

    @property
    def pending(self) -> str:
        return self._buffer


def parse_data_line(line: str) -> Optional[str]:
    """Return the payload of a `data:` line, or None for any other line."""
    if not line.startswith(DATA_PREFIX):
        return None
    payload = line[len(DATA_PREFIX):]
    if payload.startswith(" "):
        payload = payload[1:]
    return payload


def is_done(payload: str) -> bool:
    return payload.strip() == DONE_SENTINEL


def extract_delta_content(payload: str) -> Optional[str]:
    """
    Pull the text fragment out of an upstream chat-completion chunk.

    Args:
        payload: JSON text following the `data:` prefix

    Returns:
        choices[0].delta.content, or None for role-only, finish-reason-only
        and other frames without text

    Raises:
        MalformedFrame: payload is not valid JSON
        UpstreamRejected: the provider reported an error inside the stream
    """
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        raise MalformedFrame(f"Invalid JSON in SSE frame: {e}", raw_data=payload) from e

    if not isinstance(data, dict):
        return None

    error = data.get("error")
    if error:
        message = error.get("message") if isinstance(error, dict) else str(error)
        code = error.get("code") if isinstance(error, dict) else None
        status_code = code if isinstance(code, int) and 400 <= code < 600 else 502
        raise UpstreamRejected(
            message or "Upstream reported an error mid-stream",
            status_code=status_code,
            response_data=data,
        )

    choices = data.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    choice = choices[0]
    if not isinstance(choice, dict):
        return None
    delta = choice.get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    if not isinstance(content, str) or content == "":
        return None
    return content


def _frame(payload: str) -> str:
    return f"{DATA_PREFIX} {payload}\n\n"


def encode_content_frame(content: str) -> str:
    return _frame(json.dumps({"content": content}, ensure_ascii=False))


def encode_done_frame() -> str:
    return _frame(DONE_SENTINEL)


def encode_error_frame(error_type: str, message: str) -> str:
    body: Dict[str, Any] = {"error": {"type": error_type, "message": message}}
    return _frame(json.dumps(body, ensure_ascii=False))
