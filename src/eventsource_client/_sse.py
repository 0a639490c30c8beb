"""
Line-oriented parser for Server-Sent Events (SSE) streams.
Turns the lines of an event stream into Message records, one per blank-line
terminated block that named an event.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator

logger = logging.getLogger(__name__)

FIELD_EVENT = "event"
FIELD_DATA = "data"
FIELD_ID = "id"
FIELD_RETRY = "retry"

_INTEGER_RE = re.compile(r"[+-]?[0-9]+")


@dataclass(frozen=True, slots=True)
class Message:
    """
    Data structure representing a single dispatched Server-Sent Event.

    ``data`` holds the value of the last ``data`` field of the block followed
    by a newline; later ``data`` lines replace earlier ones within a block.
    """

    event: str
    data: str = ""


class StreamParser:
    """
    Stateful decoder fed one line at a time.

    ``id`` and ``retry`` fields are not part of a Message: they are reported
    as soon as they are read through ``on_event_id`` and ``on_retry``.
    """

    def __init__(
        self,
        *,
        on_event_id: Callable[[str], None] | None = None,
        on_retry: Callable[[int], None] | None = None,
        verbose: bool = False,
    ) -> None:
        self._on_event_id = on_event_id
        self._on_retry = on_retry
        self._verbose = verbose
        self._event = ""
        self._data = ""

    def _reset(self) -> None:
        self._event = ""
        self._data = ""

    def _take(self) -> Message | None:
        message = Message(event=self._event, data=self._data) if self._event else None
        self._reset()
        return message

    def feed(self, line: str) -> Message | None:
        """
        Process one line of the stream.

        Args:
            line: A line of the body, with or without its terminator.

        Returns:
            The completed Message when the line closes a block that named an
            event, otherwise None.
        """
        line = line.rstrip("\r\n")
        if self._verbose:
            logger.warning("SSE line=%r", line)

        if not line:
            return self._take()

        if line.startswith(":"):
            return None

        field, sep, value = line.partition(":")
        field = field.strip()
        value = value.strip() if sep else ""

        if self._verbose:
            logger.warning("SSE field=|%s| value=|%s|", field, value)

        if field == FIELD_EVENT:
            self._event = value
        elif field == FIELD_DATA:
            self._data = value + "\n"
        elif field == FIELD_ID:
            if self._on_event_id is not None:
                self._on_event_id(value)
        elif field == FIELD_RETRY:
            # int() también acepta "1_000" y dígitos no ASCII; aquí no.
            if not _INTEGER_RE.fullmatch(value):
                logger.warning("Ignoring malformed retry field: %r", value)
            elif self._on_retry is not None:
                self._on_retry(int(value))
        return None

    def flush(self) -> Message | None:
        """Close the stream; a pending block is dispatched like on a blank line."""
        return self._take()


def iter_messages(lines: Iterable[str], parser: StreamParser | None = None) -> Iterator[Message]:
    """
    Parse SSE messages from an iterable of lines.

    Args:
        lines: The lines of the stream, already split.
        parser: Optional parser to use, e.g. one wired to id/retry handlers.

    Yields:
        Message objects in arrival order, including a trailing block that was
        not terminated by a blank line.
    """
    parser = parser or StreamParser()
    for line in lines:
        message = parser.feed(line)
        if message is not None:
            yield message
    message = parser.flush()
    if message is not None:
        yield message


def iter_messages_from_text(text: str) -> Iterator[Message]:
    """Parse SSE messages from a text block using CR, LF or CRLF line endings."""
    yield from iter_messages(text.splitlines())
