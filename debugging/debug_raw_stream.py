import os

import dotenv

from eventsource_client import HttpxTransport, StreamRequest

dotenv.load_dotenv()

# Activa el logging de request/response de HttpxTransport.
os.environ.setdefault("EVENTSOURCE_HTTP_DEBUG", "1")

url = os.environ["EVENTSOURCE_URL"]

transport = HttpxTransport()
resp = transport.open(
    StreamRequest(
        url=url,
        headers={"Accept": "text/event-stream", "Cache-Control": "no-cache"},
        read_timeout_s=30.0,
    )
)
print("status:", resp.status_code)
print("headers:", dict(resp.headers))

try:
    for i, line in enumerate(resp.iter_lines()):
        print("i=", i, "line=", repr(line))
        if i >= 50:
            break
finally:
    resp.close()
    transport.close()
