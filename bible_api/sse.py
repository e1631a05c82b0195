"""
Server-Sent Events codec

Decoding: OpenAI streams completions as ``data: <json>\\n\\n`` events and
ends with ``data: [DONE]``. Network chunks split events at arbitrary byte
offsets, so SSEDecoder buffers partial lines and only emits an event once
its terminating blank line has arrived.

Encoding: our own clients get the same framing via format_event().
"""

import codecs
import json
from dataclasses import dataclass
from typing import Any, AsyncIterable, AsyncIterator, List, Union

DONE_SENTINEL = "[DONE]"
DONE_EVENT = f"data: {DONE_SENTINEL}\n\n"


@dataclass(frozen=True)
class DataFrame:
    payload: Any


@dataclass(frozen=True)
class DoneFrame:
    pass


@dataclass(frozen=True)
class MalformedFrame:
    """An event whose data could not be decoded; consumers skip it"""

    raw: str
    reason: str


Frame = Union[DataFrame, DoneFrame, MalformedFrame]


class SSEDecoder:
    """Incremental decoder: feed() raw bytes, get back completed frames"""

    def __init__(self):
        self._text = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._data_lines: List[str] = []

    def feed(self, chunk: bytes) -> List[Frame]:
        self._buffer += self._text.decode(chunk)
        frames = []
        while True:
            newline = self._buffer.find("\n")
            if newline < 0:
                break
            line = self._buffer[:newline].rstrip("\r")
            self._buffer = self._buffer[newline + 1:]
            frame = self._process_line(line)
            if frame is not None:
                frames.append(frame)
        return frames

    def flush(self) -> List[Frame]:
        """Emit whatever is left once the byte stream has ended"""
        self._buffer += self._text.decode(b"", final=True)
        frames = []
        if self._buffer:
            frame = self._process_line(self._buffer.rstrip("\r"))
            self._buffer = ""
            if frame is not None:
                frames.append(frame)
        frame = self._dispatch()
        if frame is not None:
            frames.append(frame)
        return frames

    def _process_line(self, line: str):
        if not line:
            return self._dispatch()
        if line.startswith(":"):
            return None  # comment / keep-alive

        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if field == "data":
            self._data_lines.append(value)
        # event:, id: and retry: carry nothing we use
        return None

    def _dispatch(self):
        if not self._data_lines:
            return None
        data = "\n".join(self._data_lines)
        self._data_lines = []

        if data.strip() == DONE_SENTINEL:
            return DoneFrame()
        try:
            return DataFrame(json.loads(data))
        except ValueError as e:
            return MalformedFrame(raw=data, reason=str(e))


async def iter_frames(chunks: AsyncIterable[bytes]) -> AsyncIterator[Frame]:
    """Lazily decode an async byte stream into frames"""
    decoder = SSEDecoder()
    async for chunk in chunks:
        for frame in decoder.feed(chunk):
            yield frame
    for frame in decoder.flush():
        yield frame


def format_event(payload: Any) -> str:
    """Frame one downstream event. json.dumps keeps quotes in messages valid."""
    return f"data: {json.dumps(payload)}\n\n"
