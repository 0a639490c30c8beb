import logging

import dotenv

from eventsource_client import EventSourceConfig, EventSourceConnection, SimpleEventSourceCallback

dotenv.load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s [%(asctime)s] %(name)s - %(message)s",
)

# EVENTSOURCE_URL (y opcionalmente EVENTSOURCE_VERBOSE, EVENTSOURCE_RECONNECT_DELAY_MS) en .env
config = EventSourceConfig.from_env_or_value(None)

callback = SimpleEventSourceCallback(
    connected=lambda: print("[sse] connected"),
    new_message=lambda msg: print(f"[sse] {msg.event}: {msg.data}", end=""),
    connection_error=lambda status: print(f"[sse] connection error, status={status}"),
    stop_request=lambda: print("[sse] server asked us to stop (204)"),
    timed_out=lambda: print("[sse] timed out, reconnecting"),
)

with EventSourceConnection(config, callback) as conn:
    conn.connect()
    try:
        while not conn.wait_idle(0.5):
            pass
    except KeyboardInterrupt:
        print("[sse] interrupted; stopping")

    print("Último resultado:", conn.last_outcome)
