import logging
import pathlib
import socket
import sys
import threading

import pytest

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from fastapi.testclient import TestClient  # noqa: E402

from common.config import Settings  # noqa: E402

SECRET = "service-a-secret-key"
UPSTREAM_URL = "http://service-a.test"


def get_free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def settings_a() -> Settings:
    return Settings(service_name="service_a", port="8080", log_level=logging.INFO, auth_key=SECRET)


@pytest.fixture
def settings_b() -> Settings:
    return Settings(
        service_name="service_b",
        port="8081",
        log_level=logging.INFO,
        auth_key=SECRET,
        upstream_url=UPSTREAM_URL,
    )


@pytest.fixture
def client_a(settings_a):
    from service_a.main import create_app

    with TestClient(create_app(settings_a)) as client:
        yield client


@pytest.fixture
def client_b(settings_b):
    from service_b.main import create_app

    with TestClient(create_app(settings_b)) as client:
        yield client


@pytest.fixture
def free_port() -> int:
    return get_free_port()


class DripUpstream:
    """Real TCP upstream that sends a 200 status line at once, then the body one byte at a time."""

    def __init__(self, body: bytes, interval: float):
        self.body = body
        self.interval = interval
        self._listener = socket.create_server(("127.0.0.1", 0))
        self._listener.settimeout(0.1)
        self.url = f"http://127.0.0.1:{self._listener.getsockname()[1]}"
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._accept_loop, daemon=True)

    def start(self):
        self._thread.start()

    def stop(self):
        self._stop.set()
        self._thread.join(timeout=5)
        self._listener.close()

    def _accept_loop(self):
        while not self._stop.is_set():
            try:
                conn, _ = self._listener.accept()
            except socket.timeout:
                continue
            threading.Thread(target=self._drip, args=(conn,), daemon=True).start()

    def _drip(self, conn: socket.socket):
        head = (
            "HTTP/1.1 200 OK\r\n"
            "Content-Type: application/json\r\n"
            f"Content-Length: {len(self.body)}\r\n"
            "\r\n"
        ).encode()
        with conn:
            conn.settimeout(5)
            try:
                conn.recv(65536)
                conn.sendall(head)
                for i in range(len(self.body)):
                    if self._stop.wait(self.interval):
                        return
                    conn.sendall(self.body[i:i + 1])
            except OSError:
                return


DRIP_BODY = b'{"message": "Hello from Service A!", "request_id": "slow", "timestamp": "2024-05-01T12:00:00Z"}'


@pytest.fixture
def drip_upstream():
    upstream = DripUpstream(DRIP_BODY, interval=0.5)
    upstream.start()
    yield upstream
    upstream.stop()
