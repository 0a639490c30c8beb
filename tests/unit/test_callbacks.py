from unittest.mock import MagicMock

from eventsource_client._sse import Message
from eventsource_client.callbacks import EventSourceCallback, SimpleEventSourceCallback


def test_simple_callback_is_a_noop_by_default():
    cb = SimpleEventSourceCallback()

    # Ninguno de estos debe lanzar excepción.
    cb.on_connected()
    cb.on_new_message(Message("e", "x\n"))
    cb.on_connection_error(500)
    cb.on_stop_request()
    cb.on_timed_out()
    assert cb.is_auth_still_valid() is True


def test_simple_callback_satisfies_protocol():
    assert isinstance(SimpleEventSourceCallback(), EventSourceCallback)


def test_simple_callback_dispatches_to_handlers():
    handlers = {name: MagicMock() for name in ("connected", "new_message", "connection_error", "stop_request", "timed_out")}
    cb = SimpleEventSourceCallback(**handlers)
    msg = Message("e", "x\n")

    cb.on_connected()
    cb.on_new_message(msg)
    cb.on_connection_error(404)
    cb.on_stop_request()
    cb.on_timed_out()

    handlers["connected"].assert_called_once_with()
    handlers["new_message"].assert_called_once_with(msg)
    handlers["connection_error"].assert_called_once_with(404)
    handlers["stop_request"].assert_called_once_with()
    handlers["timed_out"].assert_called_once_with()


def test_auth_gate_uses_handler():
    cb = SimpleEventSourceCallback(auth_still_valid=lambda: False)

    assert cb.is_auth_still_valid() is False


def test_custom_class_satisfies_protocol_structurally():
    class Listener:
        def on_connected(self): ...
        def on_new_message(self, message): ...
        def on_connection_error(self, status_code): ...
        def on_stop_request(self): ...
        def on_timed_out(self): ...
        def is_auth_still_valid(self):
            return True

    assert isinstance(Listener(), EventSourceCallback)
