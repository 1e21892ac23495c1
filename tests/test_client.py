import socket
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from bladeoperator.client import HookClient, HookClientError
from bladeoperator.faults import FaultStore, InjectMessage
from bladeoperator.server import HookServer


@pytest.fixture
def hook_server():
    store = FaultStore()
    server = HookServer("127.0.0.1:0", store)
    server.start()
    yield server, store
    server.stop()


class _FailingHandler(BaseHTTPRequestHandler):
    def _fail(self):
        length = int(self.headers.get("Content-Length") or 0)
        if length:
            self.rfile.read(length)
        payload = b"boom"
        self.send_response(500)
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        self.wfile.write(payload)

    do_GET = _fail
    do_POST = _fail

    def log_message(self, format, *args):
        pass


@pytest.fixture
def failing_address():
    httpd = ThreadingHTTPServer(("127.0.0.1", 0), _FailingHandler)
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()
    host, port = httpd.server_address[:2]
    yield f"{host}:{port}"
    httpd.shutdown()
    httpd.server_close()


def _closed_port():
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def test_inject_fault_reaches_store(hook_server):
    server, store = hook_server
    client = HookClient(server.bound_address, timeout=5)
    message = InjectMessage(methods=["read"], path="/data", delay=3, percent=40, errno=28)
    client.inject_fault(message)
    assert store.get("read") == message


def test_revoke_clears_store(hook_server):
    server, store = hook_server
    client = HookClient(server.bound_address, timeout=5)
    client.inject_fault(InjectMessage(methods=["write", "mkdir"], random=True))
    client.revoke()
    assert store.get("write") is None
    assert store.get("mkdir") is None


def test_inject_fault_error_status_raises_with_body(failing_address):
    client = HookClient(failing_address, timeout=5)
    with pytest.raises(HookClientError, match="^boom$"):
        client.inject_fault(InjectMessage(methods=["read"]))


def test_revoke_error_status_raises_with_body(failing_address):
    client = HookClient(failing_address, timeout=5)
    with pytest.raises(HookClientError, match="^boom$"):
        client.revoke()


def test_unreachable_server_raises():
    client = HookClient(f"127.0.0.1:{_closed_port()}", timeout=5)
    with pytest.raises(HookClientError):
        client.revoke()