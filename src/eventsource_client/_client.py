from __future__ import annotations

import logging
import os
import socket
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Mapping, Protocol

import httpx

from eventsource_client._errors import StreamClosed, StreamTimedOut, TransportError

logger = logging.getLogger(__name__)

ENV_HTTP_DEBUG = "EVENTSOURCE_HTTP_DEBUG"


@dataclass(frozen=True, slots=True)
class StreamRequest:
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    read_timeout_s: float = 3600.0
    connect_timeout_s: float = 10.0
    method: str = "GET"


class OpenCancellation:
    """
    Cancela un ``Transport.open`` en curso desde otro hilo.

    El transporte registra el socket apenas se establece la conexión TCP;
    ``cancel`` lo apaga para que la espera de los headers retorne de inmediato.
    Si ``cancel`` llega antes que el socket, éste se apaga al registrarse.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._event = threading.Event()
        self._sock: socket.socket | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        return self._event.wait(timeout)

    def attach(self, sock: socket.socket | None) -> None:
        with self._lock:
            self._sock = sock
            cancelled = self._event.is_set()
        if cancelled:
            _shutdown(sock)

    def cancel(self) -> None:
        with self._lock:
            self._event.set()
            sock = self._sock
        _shutdown(sock)


def _shutdown(sock: socket.socket | None) -> None:
    if sock is None:
        return
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError:
        # El peer ya cerró el socket.
        pass


class StreamResponse(Protocol):
    """Respuesta abierta de un stream: status, headers y líneas del body."""

    @property
    def status_code(self) -> int: ...

    @property
    def headers(self) -> Mapping[str, str]: ...

    def iter_lines(self) -> Iterator[str]: ...

    def close(self) -> None: ...


class Transport(Protocol):
    """
    Capacidad externa que abre un GET en streaming.

    ``open`` levanta ``TransportError`` si no se pudo obtener una respuesta,
    o ``StreamClosed`` si ``cancellation`` fue cancelada mientras esperaba.
    ``StreamResponse.iter_lines`` levanta ``StreamTimedOut`` en timeout o fin
    prematuro del body, ``StreamClosed`` si la respuesta fue cerrada desde el
    cliente y ``TransportError`` para cualquier otro fallo de I/O.
    """

    def open(self, request: StreamRequest, cancellation: OpenCancellation | None = None) -> StreamResponse: ...

    def close(self) -> None: ...


def _http_debug_enabled() -> bool:
    return os.getenv(ENV_HTTP_DEBUG, "").lower() in {"1", "true", "yes", "on"}


def _redact_headers(headers: Mapping[str, Any]) -> dict[str, Any]:
    out = dict(headers)
    for k in list(out):
        if k.lower() == "authorization":
            out[k] = "***REDACTED***"
    return out


_CONNECT_TRACE_EVENTS = ("connection.connect_tcp.complete", "connection.start_tls.complete")


def _socket_tracer(cancellation: OpenCancellation) -> Callable[[str, dict[str, Any]], None]:
    """Trace hook de httpcore que registra el socket de la conexión recién abierta."""

    def trace(event_name: str, info: dict[str, Any]) -> None:
        if event_name not in _CONNECT_TRACE_EVENTS:
            return
        network_stream = info.get("return_value")
        if network_stream is not None:
            cancellation.attach(network_stream.get_extra_info("socket"))

    return trace


class HttpxStreamResponse:
    """
    Adaptador de ``httpx.Response`` abierta con ``stream=True``.

    ``close`` puede llamarse desde otro hilo: apaga el socket subyacente para
    que una lectura bloqueada retorne de inmediato.
    """

    def __init__(self, response: httpx.Response) -> None:
        self._response = response
        self._lock = threading.Lock()
        self._closed = False

    @property
    def status_code(self) -> int:
        return self._response.status_code

    @property
    def headers(self) -> httpx.Headers:
        return self._response.headers

    @property
    def closed(self) -> bool:
        return self._closed

    def iter_lines(self) -> Iterator[str]:
        try:
            yield from self._response.iter_lines()
        except (httpx.ReadTimeout, httpx.RemoteProtocolError) as e:
            if self._closed:
                raise StreamClosed("Stream closed by client", cause=e) from e
            raise StreamTimedOut(f"Stream timed out or ended prematurely: {e!r}", cause=e) from e
        except (httpx.HTTPError, httpx.StreamError, OSError) as e:
            if self._closed:
                raise StreamClosed("Stream closed by client", cause=e) from e
            raise TransportError(f"Error reading stream: {e!r}", cause=e) from e

    def _shutdown_socket(self) -> None:
        network_stream = self._response.extensions.get("network_stream")
        if network_stream is None:
            return
        _shutdown(network_stream.get_extra_info("socket"))

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._shutdown_socket()
        try:
            self._response.close()
        except (httpx.HTTPError, httpx.StreamError, OSError) as e:
            logger.debug("Error closing response: %r", e)


class HttpxTransport:
    """
    Transporte HTTPX síncrono para streams SSE:
    - Sin seguir redirects (los maneja EventSourceConnection)
    - Timeouts de conexión y lectura por request
    - Debug logging opcional (EVENTSOURCE_HTTP_DEBUG)
    """

    def __init__(self, *, transport: httpx.BaseTransport | None = None) -> None:
        self._debug_http = _http_debug_enabled()

        def _log_request(request: httpx.Request) -> None:
            if not self._debug_http:
                return
            logger.warning("HTTPX REQUEST %s %s", request.method, request.url)
            logger.warning("HTTPX REQUEST headers=%s", _redact_headers(dict(request.headers)))

        def _log_response(response: httpx.Response) -> None:
            if not self._debug_http:
                return
            req = response.request
            logger.warning("HTTPX RESPONSE %s %s -> %s", req.method, req.url, response.status_code)
            logger.warning("HTTPX RESPONSE headers=%s", dict(response.headers))

        EventHooksDict = dict[str, list[Callable[..., Any]]]
        hooks: EventHooksDict = {"request": [_log_request], "response": [_log_response]}

        # Sin keep-alive: cada intento abre su propia conexión TCP y el trace la ve.
        self._client = httpx.Client(
            follow_redirects=False,
            event_hooks=hooks,
            transport=transport,
            limits=httpx.Limits(max_keepalive_connections=0),
        )

    def open(self, request: StreamRequest, cancellation: OpenCancellation | None = None) -> HttpxStreamResponse:
        timeout = httpx.Timeout(request.connect_timeout_s, read=request.read_timeout_s)
        extensions: dict[str, Any] = {}
        if cancellation is not None:
            extensions["trace"] = _socket_tracer(cancellation)
        try:
            req = self._client.build_request(
                request.method,
                request.url,
                headers=request.headers,
                timeout=timeout,
                extensions=extensions,
            )
            resp = self._client.send(req, stream=True)
        except (httpx.HTTPError, httpx.InvalidURL, OSError) as e:
            if cancellation is not None and cancellation.cancelled:
                raise StreamClosed(f"Open of {request.url} cancelled by client", cause=e) from e
            raise TransportError(f"Could not open {request.url}: {e!r}", cause=e) from e
        return HttpxStreamResponse(resp)

    def close(self) -> None:
        self._client.close()
