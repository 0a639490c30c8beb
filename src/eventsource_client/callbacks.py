"""
Consumer-facing callback surface of an EventSourceConnection.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Protocol, runtime_checkable

from eventsource_client._sse import Message


@runtime_checkable
class EventSourceCallback(Protocol):
    """
    Handlers notified by the connection worker thread.

    All notifications for one connection happen on its worker thread, in the
    order the events occur. ``is_auth_still_valid`` is asked before every
    connection attempt; returning False stops the reconnect loop.
    """

    def on_connected(self) -> None: ...

    def on_new_message(self, message: Message) -> None: ...

    def on_connection_error(self, status_code: int) -> None: ...

    def on_stop_request(self) -> None: ...

    def on_timed_out(self) -> None: ...

    def is_auth_still_valid(self) -> bool: ...


@dataclass(slots=True)
class SimpleEventSourceCallback:
    """
    No-op implementation of EventSourceCallback.

    Pass only the handlers you care about, e.g.
    ``SimpleEventSourceCallback(new_message=print)``.
    """

    connected: Callable[[], None] | None = None
    new_message: Callable[[Message], None] | None = None
    connection_error: Callable[[int], None] | None = None
    stop_request: Callable[[], None] | None = None
    timed_out: Callable[[], None] | None = None
    auth_still_valid: Callable[[], bool] | None = None

    def on_connected(self) -> None:
        if self.connected is not None:
            self.connected()

    def on_new_message(self, message: Message) -> None:
        if self.new_message is not None:
            self.new_message(message)

    def on_connection_error(self, status_code: int) -> None:
        if self.connection_error is not None:
            self.connection_error(status_code)

    def on_stop_request(self) -> None:
        if self.stop_request is not None:
            self.stop_request()

    def on_timed_out(self) -> None:
        if self.timed_out is not None:
            self.timed_out()

    def is_auth_still_valid(self) -> bool:
        if self.auth_still_valid is None:
            return True
        return bool(self.auth_still_valid())
