"""
Tests unitarios para la jerarquía de errores y HttpStatusError.
"""

import pytest

from eventsource_client._errors import (
    EventSourceError,
    HttpStatusError,
    StreamClosed,
    StreamTimedOut,
    TransportError,
)


class TestExceptionHierarchy:
    def test_transport_errors_share_base(self):
        assert issubclass(TransportError, EventSourceError)
        assert issubclass(StreamTimedOut, TransportError)
        assert issubclass(StreamClosed, TransportError)
        assert issubclass(EventSourceError, RuntimeError)

    def test_transport_error_keeps_cause(self):
        cause = ConnectionRefusedError("refused")
        err = TransportError("could not connect", cause=cause)

        assert err.cause is cause
        assert str(err) == "could not connect"

    def test_cause_defaults_to_none(self):
        assert StreamTimedOut("slow").cause is None


class TestHttpStatusError:
    def test_str_minimal(self):
        s = str(HttpStatusError(status_code=500, url="https://a.example/s"))

        assert "500" in s
        assert "https://a.example/s" in s
        assert "location" not in s

    def test_str_with_location(self):
        s = str(HttpStatusError(301, "https://a.example/s", "https://b.example/s"))

        assert "location='https://b.example/s'" in s

    def test_to_dict(self):
        err = HttpStatusError(307, "https://a.example/s")

        assert err.to_dict() == {"status_code": 307, "url": "https://a.example/s", "location": None}

    @pytest.mark.parametrize(
        "status,redirect,stop,client,server,auth",
        [
            (301, True, False, False, False, False),
            (307, True, False, False, False, False),
            (302, False, False, False, False, False),
            (204, False, True, False, False, False),
            (401, False, False, True, False, True),
            (403, False, False, True, False, True),
            (404, False, False, True, False, False),
            (503, False, False, False, True, False),
        ],
    )
    def test_classification(self, status, redirect, stop, client, server, auth):
        err = HttpStatusError(status, "https://a.example/s")

        assert err.is_redirect is redirect
        assert err.is_stop_request is stop
        assert err.is_client_error is client
        assert err.is_server_error is server
        assert err.is_auth_error is auth
