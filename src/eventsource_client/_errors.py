from __future__ import annotations
from dataclasses import dataclass
from typing import Any


class EventSourceError(RuntimeError):
    """Error base de la librería."""


class TransportError(EventSourceError):
    """
    Fallo de conexión o de I/O del transporte (DNS, conexión rechazada,
    error de lectura a mitad del stream, respuesta malformada).
    """

    def __init__(self, message: str, *, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class StreamTimedOut(TransportError):
    """The read timed out or the peer ended the body prematurely."""


class StreamClosed(TransportError):
    """The response was closed from the client side while it was being read."""


@dataclass(frozen=True, slots=True)
class HttpStatusError:
    """
    Status HTTP que no abre un stream (redirect agotado, 204, 4xx/5xx).

    No es una excepción: se adjunta a ``AttemptOutcome.error`` para que el
    consumidor pueda inspeccionar el resultado de un intento.
    """
    status_code: int
    url: str
    location: str | None = None

    def __str__(self) -> str:
        parts = [f"HttpStatusError(status_code={self.status_code}, url={self.url!r}"]
        if self.location:
            parts.append(f", location={self.location!r}")
        parts.append(")")
        return "".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Convierte el error a dict para logging estructurado."""
        return {
            "status_code": self.status_code,
            "url": self.url,
            "location": self.location,
        }

    @property
    def is_redirect(self) -> bool:
        """True para los redirects que sigue EventSource (301 y 307)."""
        return self.status_code in (301, 307)

    @property
    def is_stop_request(self) -> bool:
        """True si el servidor pidió no reconectar (204 No Content)."""
        return self.status_code == 204

    @property
    def is_client_error(self) -> bool:
        """True si es un error 4xx (problema del cliente)."""
        return 400 <= self.status_code < 500

    @property
    def is_server_error(self) -> bool:
        """True si es un error 5xx (problema del servidor)."""
        return 500 <= self.status_code < 600

    @property
    def is_auth_error(self) -> bool:
        """True si es un error de autenticación (401) o autorización (403)."""
        return self.status_code in (401, 403)
