"""
EventSource connection: reconnect loop, redirects and stop signals on top of a
streaming Transport.

Each connection owns one long-lived worker thread. ``connect`` and
``reconnect_if_not_connected`` post a command to it; ``disconnect`` flips the
reconnect flag, interrupts the backoff sleep and force-closes the active
response so a blocked read returns promptly.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Mapping

import httpx

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
from eventsource_client._sse import StreamParser
from eventsource_client.callbacks import EventSourceCallback, SimpleEventSourceCallback

logger = logging.getLogger(__name__)

REDIRECT_STATUS_CODES = (301, 307)
STOP_STATUS_CODE = 204


class ConnectionState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    STREAMING = "streaming"
    RECONNECTING = "reconnecting"
    STOPPED = "stopped"
    FAILED = "failed"


class AttemptKind(str, Enum):
    """How a single connection attempt ended."""

    REDIRECT = "redirect"
    RECONNECT = "reconnect"
    STREAM_ENDED = "stream_ended"
    STOP_REQUESTED = "stop_requested"
    CONNECTION_ERROR = "connection_error"
    AUTH_INVALID = "auth_invalid"
    DISCONNECTED = "disconnected"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class AttemptOutcome:
    kind: AttemptKind
    status_code: int | None = None
    error: HttpStatusError | BaseException | None = None

    @property
    def continues(self) -> bool:
        """True when the loop goes on with another attempt."""
        return self.kind in (AttemptKind.REDIRECT, AttemptKind.RECONNECT)


class _Command(Enum):
    CONNECT = "connect"
    SHUTDOWN = "shutdown"


def _set_header(headers: dict[str, str], name: str, value: str) -> None:
    for existing in [k for k in headers if k.lower() == name.lower()]:
        del headers[existing]
    headers[name] = value


class EventSourceConnection:
    """
    Client side of one Server-Sent Events stream.

    Callbacks are invoked on the worker thread, synchronously and in arrival
    order. Failure paths never raise out of the worker: each attempt ends in
    an AttemptOutcome, available as ``last_outcome``.
    """

    def __init__(
        self,
        url_or_config: str | EventSourceConfig,
        callback: EventSourceCallback | None = None,
        *,
        headers: Mapping[str, str] | None = None,
        reconnect_delay_ms: int | None = None,
        read_timeout_ms: int | None = None,
        connect_timeout_ms: int | None = None,
        max_redirects: int | None = None,
        verbose: bool | None = None,
        auto_resume_on_failure: bool | None = None,
        transport: Transport | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        overrides: dict[str, Any] = {
            "headers": dict(headers) if headers is not None else None,
            "reconnect_delay_ms": reconnect_delay_ms,
            "read_timeout_ms": read_timeout_ms,
            "connect_timeout_ms": connect_timeout_ms,
            "max_redirects": max_redirects,
            "verbose": verbose,
            "auto_resume_on_failure": auto_resume_on_failure,
        }
        overrides = {k: v for k, v in overrides.items() if v is not None}
        if isinstance(url_or_config, EventSourceConfig):
            config = EventSourceConfig(**{**url_or_config.model_dump(), **overrides})
        else:
            config = EventSourceConfig(url=url_or_config, **overrides)

        self._config = config
        self._callback: EventSourceCallback = callback or SimpleEventSourceCallback()
        self._owns_transport = transport is None
        self._transport: Transport = transport or HttpxTransport()
        self._clock = clock or time.monotonic
        self._retry = RetryPolicy(config.reconnect_delay_ms)
        self._verbose = config.verbose

        # Estado compartido entre el worker y los hilos externos: protegido por _lock.
        self._lock = threading.RLock()
        self._idle = threading.Condition(self._lock)
        self._wakeup = threading.Event()
        self._url = config.url
        self._last_event_id: str | None = None
        self._override_retry_ms: int | None = None
        self._redirects_remaining = config.max_redirects
        self._should_reconnect = True
        self._closing = False
        self._active = False
        self._response: StreamResponse | None = None
        self._pending_open: OpenCancellation | None = None
        self._closed = False
        self._connected_at = 0.0
        self._state = ConnectionState.IDLE
        self._last_outcome: AttemptOutcome | None = None

        self._commands: queue.Queue[_Command] = queue.Queue()
        self._worker: threading.Thread | None = None

    # --------- Estado ---------

    @property
    def config(self) -> EventSourceConfig:
        return self._config

    @property
    def url(self) -> str:
        with self._lock:
            return self._url

    @property
    def last_event_id(self) -> str | None:
        with self._lock:
            return self._last_event_id

    @property
    def redirects_remaining(self) -> int:
        with self._lock:
            return self._redirects_remaining

    @property
    def should_reconnect(self) -> bool:
        with self._lock:
            return self._should_reconnect

    @property
    def state(self) -> ConnectionState:
        with self._lock:
            return self._state

    @property
    def last_outcome(self) -> AttemptOutcome | None:
        with self._lock:
            return self._last_outcome

    # --------- Ciclo de vida ---------

    def connect(self) -> None:
        """Start streaming, or keep the current stream reconnecting."""
        self.reconnect_if_not_connected()

    def reconnect_if_not_connected(self) -> None:
        with self._lock:
            if self._closed:
                raise EventSourceError("Connection is closed; create a new EventSourceConnection")
            self._should_reconnect = True
            self._closing = False
            if self._active:
                return
            self._active = True
            self._state = ConnectionState.CONNECTING
            self._ensure_worker()
            self._commands.put(_Command.CONNECT)

    def set_should_reconnect(self, should_reconnect: bool) -> None:
        with self._lock:
            self._should_reconnect = should_reconnect
        if self._verbose:
            logger.warning("setShouldReconnect %s", should_reconnect)

    def dont_reconnect(self) -> None:
        self.set_should_reconnect(False)

    def disconnect(self) -> None:
        """
        Stop reconnecting and close the active stream, or cancel the attempt
        still waiting for response headers.

        Returns without waiting for the worker; use ``wait_idle`` for that.
        """
        with self._lock:
            self._should_reconnect = False
            self._closing = True
            self._wakeup.set()
            response = self._response
            pending_open = self._pending_open

        if pending_open is not None:
            pending_open.cancel()
        if response is not None:
            response.close()
            if self._verbose:
                logger.warning("Disconnected from %s", self.url)

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until the reconnect loop has stopped. Returns False on timeout."""
        with self._idle:
            return self._idle.wait_for(lambda: not self._active, timeout)

    def close(self, timeout: float | None = 5.0) -> None:
        """
        Disconnect, stop the worker thread and release the transport.

        The connection cannot be reused afterwards. An owned transport is
        closed by the worker itself as it exits, never underneath it.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            worker = self._worker
            self._worker = None
        self.disconnect()

        if worker is None:
            self._release_transport()
            return

        self._commands.put(_Command.SHUTDOWN)
        if worker is not threading.current_thread():
            worker.join(timeout)
        if worker.is_alive():
            logger.warning(
                "EventSource worker still running after close(); the transport is released when it exits"
            )

    def _release_transport(self) -> None:
        if self._owns_transport:
            self._transport.close()

    def __enter__(self) -> EventSourceConnection:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # --------- Worker ---------

    def _ensure_worker(self) -> None:
        if self._worker is not None and self._worker.is_alive():
            return
        self._worker = threading.Thread(target=self._run, name="eventsource-worker", daemon=True)
        self._worker.start()

    def _run(self) -> None:
        while True:
            command = self._commands.get()
            if command is _Command.SHUTDOWN:
                self._release_transport()
                return
            self._run_loop()

    def _run_loop(self) -> None:
        while True:
            outcome = self._attempt()
            with self._lock:
                self._last_outcome = outcome
            if self._verbose:
                logger.warning("Attempt ended: %s status=%s", outcome.kind.value, outcome.status_code)

            if outcome.continues:
                if self._verbose:
                    logger.warning("Reconnecting to %s", self.url)
                continue

            if outcome.kind is AttemptKind.FAILED and self._resume_after_failure():
                continue

            with self._lock:
                # connect() llegó después de disconnect(): se vuelve a abrir el stream.
                if (
                    outcome.kind is AttemptKind.DISCONNECTED
                    and self._should_reconnect
                    and not self._closing
                ):
                    continue
                self._state = (
                    ConnectionState.FAILED if outcome.kind is AttemptKind.FAILED else ConnectionState.STOPPED
                )
                self._active = False
                self._idle.notify_all()
                return

    def _resume_after_failure(self) -> bool:
        if not self._config.auto_resume_on_failure:
            return False
        with self._lock:
            if not self._should_reconnect or self._closing:
                return False
        return self._sleep(self._config.reconnect_delay_ms)

    def _sleep(self, delay_ms: int) -> bool:
        """Backoff sleep interrupted by ``disconnect``. Returns False if interrupted."""
        with self._lock:
            if self._closing:
                return False
            self._state = ConnectionState.RECONNECTING
            self._wakeup.clear()

        if delay_ms > 0:
            if self._verbose:
                logger.warning("Sleeping for: %s ms", delay_ms)
            self._wakeup.wait(delay_ms / 1000)

        with self._lock:
            return not self._closing

    def _build_request(self) -> StreamRequest:
        headers: dict[str, str] = {
            "Accept": "text/event-stream",
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        }
        if self._last_event_id:
            headers["Last-Event-ID"] = self._last_event_id

        # Los headers del usuario se aplican al final y pueden sobrescribir los anteriores.
        for name, value in (self._config.headers or {}).items():
            _set_header(headers, name, value)

        return StreamRequest(
            url=self._url,
            headers=headers,
            read_timeout_s=self._config.read_timeout_s,
            connect_timeout_s=self._config.connect_timeout_s,
        )

    def _attempt(self) -> AttemptOutcome:
        with self._lock:
            if self._closing:
                return AttemptOutcome(AttemptKind.DISCONNECTED)
            self._state = ConnectionState.CONNECTING
            request = self._build_request()

        outcome = self._open_and_handle(request)

        if outcome.kind is AttemptKind.RECONNECT:
            with self._lock:
                delay_ms, consumed = self._retry.next_delay(
                    self._connected_at, self._clock(), self._override_retry_ms
                )
                if consumed:
                    self._override_retry_ms = None
            if not self._sleep(delay_ms):
                return AttemptOutcome(AttemptKind.DISCONNECTED, outcome.status_code)
        return outcome

    def _is_closing(self) -> bool:
        with self._lock:
            return self._closing

    def _open_and_handle(self, request: StreamRequest) -> AttemptOutcome:
        cancellation = OpenCancellation()
        with self._lock:
            if self._closing:
                return AttemptOutcome(AttemptKind.DISCONNECTED)
            self._pending_open = cancellation
        try:
            if not self._callback.is_auth_still_valid():
                logger.info("Authentication no longer valid, not connecting to %s", request.url)
                return AttemptOutcome(AttemptKind.AUTH_INVALID)
            response = self._transport.open(request, cancellation)
        except StreamClosed:
            return AttemptOutcome(AttemptKind.DISCONNECTED)
        except TransportError as e:
            if self._is_closing():
                return AttemptOutcome(AttemptKind.DISCONNECTED, error=e)
            logger.warning("Could not connect to %s: %s", request.url, e)
            return AttemptOutcome(AttemptKind.FAILED, error=e)
        except Exception as e:
            if self._is_closing():
                return AttemptOutcome(AttemptKind.DISCONNECTED, error=e)
            logger.exception("Unexpected error connecting to %s", request.url)
            return AttemptOutcome(AttemptKind.FAILED, error=e)
        finally:
            with self._lock:
                self._pending_open = None

        with self._lock:
            installed = not self._closing
            if installed:
                self._response = response
        if not installed:
            response.close()
            return AttemptOutcome(AttemptKind.DISCONNECTED)

        try:
            return self._handle_response(request, response)
        except StreamClosed:
            return AttemptOutcome(AttemptKind.DISCONNECTED, response.status_code)
        except TransportError as e:
            if self._is_closing():
                return AttemptOutcome(AttemptKind.DISCONNECTED, response.status_code, e)
            logger.warning("Stream from %s failed: %s", request.url, e)
            return AttemptOutcome(AttemptKind.FAILED, response.status_code, e)
        except Exception as e:
            logger.exception("Unexpected error while streaming from %s", request.url)
            return AttemptOutcome(AttemptKind.FAILED, response.status_code, e)
        finally:
            with self._lock:
                if self._response is response:
                    self._response = None
            response.close()

    def _handle_response(self, request: StreamRequest, response: StreamResponse) -> AttemptOutcome:
        status = response.status_code
        if self._verbose:
            logger.warning("Status code: %s", status)

        # "Event stream requests can be redirected using HTTP 301 and 307 redirects"
        if status in REDIRECT_STATUS_CODES:
            location = response.headers.get("location")
            with self._lock:
                follow = bool(location) and self._redirects_remaining > 0
                self._redirects_remaining = max(self._redirects_remaining - 1, 0)
                if follow:
                    self._url = str(httpx.URL(request.url).join(location))
            if follow:
                return AttemptOutcome(AttemptKind.REDIRECT, status)
            self._callback.on_connection_error(status)
            return AttemptOutcome(
                AttemptKind.CONNECTION_ERROR, status, HttpStatusError(status, request.url, location)
            )

        if 200 <= status < 300 and status != STOP_STATUS_CODE:
            return self._consume_stream(response)

        # "a client can be told to stop reconnecting using the HTTP 204 No Content response code"
        if status == STOP_STATUS_CODE:
            self._callback.on_stop_request()
            return AttemptOutcome(AttemptKind.STOP_REQUESTED, status, HttpStatusError(status, request.url))

        self._callback.on_connection_error(status)
        return AttemptOutcome(AttemptKind.CONNECTION_ERROR, status, HttpStatusError(status, request.url))

    def _consume_stream(self, response: StreamResponse) -> AttemptOutcome:
        with self._lock:
            self._connected_at = self._clock()
            self._state = ConnectionState.STREAMING
        self._callback.on_connected()

        parser = StreamParser(
            on_event_id=self._set_last_event_id,
            on_retry=self._set_override_retry,
            verbose=self._verbose,
        )
        try:
            for line in response.iter_lines():
                message = parser.feed(line)
                if message is not None:
                    self._callback.on_new_message(message)
        except StreamTimedOut as e:
            if self._verbose:
                logger.warning("Stream timed out: %s", e)
            self._callback.on_timed_out()

        message = parser.flush()
        if message is not None:
            self._callback.on_new_message(message)

        with self._lock:
            if self._closing:
                return AttemptOutcome(AttemptKind.DISCONNECTED, response.status_code)
            if self._should_reconnect:
                return AttemptOutcome(AttemptKind.RECONNECT, response.status_code)
        return AttemptOutcome(AttemptKind.STREAM_ENDED, response.status_code)

    def _set_last_event_id(self, event_id: str) -> None:
        with self._lock:
            self._last_event_id = event_id

    def _set_override_retry(self, retry_ms: int) -> None:
        with self._lock:
            self._override_retry_ms = retry_ms
