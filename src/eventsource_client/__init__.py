from __future__ import annotations

from eventsource_client._client import (
    HttpxTransport,
    OpenCancellation,
    StreamRequest,
    StreamResponse,
    Transport,
)
from eventsource_client._config import EventSourceConfig
from eventsource_client._errors import (
    EventSourceError,
    HttpStatusError,
    StreamClosed,
    StreamTimedOut,
    TransportError,
)
from eventsource_client._retry import RetryPolicy
from eventsource_client._sse import Message, StreamParser, iter_messages, iter_messages_from_text
from eventsource_client.callbacks import EventSourceCallback, SimpleEventSourceCallback
from eventsource_client.connection import (
    AttemptKind,
    AttemptOutcome,
    ConnectionState,
    EventSourceConnection,
)

__all__ = [
    "AttemptKind",
    "AttemptOutcome",
    "ConnectionState",
    "EventSourceCallback",
    "EventSourceConfig",
    "EventSourceConnection",
    "EventSourceError",
    "HttpStatusError",
    "HttpxTransport",
    "Message",
    "OpenCancellation",
    "RetryPolicy",
    "SimpleEventSourceCallback",
    "StreamClosed",
    "StreamParser",
    "StreamRequest",
    "StreamResponse",
    "StreamTimedOut",
    "Transport",
    "TransportError",
    "iter_messages",
    "iter_messages_from_text",
]

__version__ = "0.1.0"
