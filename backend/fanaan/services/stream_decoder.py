"""
Incremental decoder for provider Server-Sent-Events response bodies.

Bytes arrive in arbitrary chunks. The decoder carries incomplete UTF-8
sequences and incomplete lines over to the next chunk, so the text it
accumulates does not depend on where the network split the body.

Per-provider differences (line prefix, end sentinel, where the delta text
lives in the JSON payload) are isolated in a DeltaExtractor.
"""

import codecs
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterable, AsyncIterator, Callable, Optional

import orjson

logger = logging.getLogger(__name__)

# Constants
SSE_DATA_PREFIX = "data:"
SSE_DONE_SIGNAL = "[DONE]"


@dataclass(frozen=True)
class StreamEvent:
    """One complete line of an event stream"""

    raw: str
    payload: Optional[Any] = None
    delta: Optional[str] = None
    is_done: bool = False


@dataclass(frozen=True)
class DeltaExtractor:
    """Provider-specific rules for pulling delta text out of event lines.

    Attributes:
        name: Identifier used in logs
        extract: Returns the delta text carried by a parsed payload, if any
        prefix: Marker a line must start with to carry a payload
        done_signal: Literal payload that ends the stream (None to disable)
        done_check: Optional payload predicate that ends the stream
    """

    name: str
    extract: Callable[[Any], Optional[str]]
    prefix: str = SSE_DATA_PREFIX
    done_signal: Optional[str] = SSE_DONE_SIGNAL
    done_check: Optional[Callable[[Any], bool]] = None


def _openai_delta(data: Any) -> Optional[str]:
    """choices[0].delta.content of an OpenAI-compatible chat chunk."""
    try:
        content = data["choices"][0].get("delta", {}).get("content")
    except (KeyError, IndexError, TypeError, AttributeError):
        return None
    return content if isinstance(content, str) else None


def _anthropic_delta(data: Any) -> Optional[str]:
    """delta.text of an Anthropic content_block_delta event."""
    if not isinstance(data, dict) or data.get("type") != "content_block_delta":
        return None
    text = (data.get("delta") or {}).get("text")
    return text if isinstance(text, str) else None


def _anthropic_done(data: Any) -> bool:
    return isinstance(data, dict) and data.get("type") == "message_stop"


OPENAI_CHAT = DeltaExtractor(name="openai-chat", extract=_openai_delta)

ANTHROPIC_MESSAGES = DeltaExtractor(
    name="anthropic-messages",
    extract=_anthropic_delta,
    done_signal=None,
    done_check=_anthropic_done,
)


def parse_line(line: str, extractor: DeltaExtractor) -> Optional[StreamEvent]:
    """
    Parse one complete line.

    Returns None for lines that do not carry the extractor's prefix (blank
    separators, ``event:`` lines, comments). Lines whose JSON fails to parse
    yield an event without payload; a fragment is not an error.
    """
    line = line.rstrip("\r")
    if not line.startswith(extractor.prefix):
        return None

    body = line[len(extractor.prefix):]
    if body.startswith(" "):
        body = body[1:]

    if extractor.done_signal is not None and body.strip() == extractor.done_signal:
        return StreamEvent(raw=line, is_done=True)

    try:
        payload = orjson.loads(body)
    except orjson.JSONDecodeError as e:
        logger.debug(f"JSON parse error in {extractor.name} stream: {e}")
        return StreamEvent(raw=line)

    if extractor.done_check and extractor.done_check(payload):
        return StreamEvent(raw=line, payload=payload, is_done=True)

    return StreamEvent(raw=line, payload=payload, delta=extractor.extract(payload))


class StreamDecoder:
    """Turns a chunked byte stream into a growing text buffer.

    ``feed`` consumes each byte chunk exactly once and returns the deltas it
    completed; ``text`` is their running concatenation. After the end
    sentinel, ``done`` is set and further input is ignored.
    """

    def __init__(self, extractor: DeltaExtractor = OPENAI_CHAT):
        self.extractor = extractor
        self.text = ""
        self.done = False
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    def feed(self, chunk: bytes) -> list[str]:
        """Decode a chunk and process every line it completes."""
        if self.done:
            return []
        self._buffer += self._decoder.decode(chunk)
        lines = self._buffer.split("\n")
        # Last element has no newline yet
        self._buffer = lines.pop()
        return self._process(lines)

    def close(self) -> list[str]:
        """Flush the UTF-8 decoder and process a final unterminated line."""
        if self.done:
            return []
        self._buffer += self._decoder.decode(b"", final=True)
        remainder, self._buffer = self._buffer, ""
        if not remainder:
            return []
        return self._process([remainder])

    def _process(self, lines: list[str]) -> list[str]:
        deltas = []
        for line in lines:
            event = parse_line(line, self.extractor)
            if event is None:
                continue
            if event.is_done:
                self.done = True
                self._buffer = ""
                break
            if event.delta:
                self.text += event.delta
                deltas.append(event.delta)
        return deltas

    def _snapshots(self, deltas: list[str]) -> list[str]:
        """Running text as it stood after each of the given deltas."""
        end = len(self.text) - sum(len(d) for d in deltas)
        snapshots = []
        for delta in deltas:
            end += len(delta)
            snapshots.append(self.text[:end])
        return snapshots

    async def stream(
        self,
        chunks: AsyncIterable[bytes],
        on_complete: Optional[Callable[[str], None]] = None,
    ) -> AsyncIterator[str]:
        """
        Consume a byte stream, yielding the running text after every delta.

        Args:
            chunks: Response body chunks in arrival order
            on_complete: Called once with the full text when the stream ends
                normally (end of body or end sentinel)

        Errors raised by ``chunks`` propagate unchanged; ``self.text`` still
        holds everything received before the failure.
        """
        async for chunk in chunks:
            for text in self._snapshots(self.feed(chunk)):
                yield text
            if self.done:
                break
        for text in self._snapshots(self.close()):
            yield text
        if on_complete:
            on_complete(self.text)
