"""HTTP server that receives fault injections for the file system hook."""

from __future__ import annotations

import json
import logging
import threading
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Optional
from urllib.parse import urlsplit

from bladeoperator.faults import INJECT_PATH, RECOVER_PATH, FaultStore, InjectMessage

logger = logging.getLogger(__name__)

DECODE_ERROR_TEXT = "Cannot Decode Request Message\n"
SUCCESS_TEXT = "success"
NOT_FOUND_TEXT = "404 page not found\n"


def _parse_address(address: str) -> tuple[str, int]:
    host, sep, port_text = address.rpartition(":")
    if not sep:
        raise ValueError(f"address {address!r} has no port")
    try:
        port = int(port_text)
    except ValueError:
        raise ValueError(f"address {address!r} has an invalid port") from None
    if not 0 <= port <= 65535:
        raise ValueError(f"address {address!r} has a port out of range")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    return host, port


def _make_handler(hook_server: HookServer):
    class _Handler(BaseHTTPRequestHandler):
        def _dispatch(self):
            path = urlsplit(self.path).path
            if path == INJECT_PATH:
                length = int(self.headers.get("Content-Length") or 0)
                body = self.rfile.read(length) if length > 0 else b""
                status, text = hook_server.handle_inject(body)
            elif path == RECOVER_PATH:
                status, text = hook_server.handle_recover()
            else:
                status, text = HTTPStatus.NOT_FOUND, NOT_FOUND_TEXT
            payload = text.encode("utf-8")
            self.send_response(status)
            self.send_header("Content-Type", "text/plain; charset=utf-8")
            self.send_header("Content-Length", str(len(payload)))
            self.end_headers()
            self.wfile.write(payload)

        do_GET = _dispatch
        do_POST = _dispatch
        do_PUT = _dispatch
        do_DELETE = _dispatch

        def log_message(self, format, *args):
            logger.debug("%s - %s", self.address_string(), format % args)

    return _Handler


class HookServer:
    """Serves the inject and recover endpoints over a :class:`FaultStore`."""

    def __init__(self, address: str, store: Optional[FaultStore] = None):
        self.address = address
        self.store = store if store is not None else FaultStore()
        self._httpd: Optional[ThreadingHTTPServer] = None
        self._thread: Optional[threading.Thread] = None

    def handle_inject(self, body: bytes) -> tuple[int, str]:
        """Store the fault described by the JSON ``body``; return status and text."""
        try:
            message = InjectMessage.from_dict(json.loads(body))
        except ValueError as err:
            logger.error("cannot decode request message: %s", err)
            return HTTPStatus.BAD_REQUEST, DECODE_ERROR_TEXT
        logger.info("inject fault %s", message)
        self.store.inject(message)
        return HTTPStatus.OK, SUCCESS_TEXT

    def handle_recover(self) -> tuple[int, str]:
        """Remove every stored fault; return status and text."""
        logger.info("recover all fault")
        self.store.recover()
        return HTTPStatus.OK, SUCCESS_TEXT

    @property
    def bound_address(self) -> str:
        """The ``host:port`` the server listens on once started."""
        if self._httpd is None:
            raise RuntimeError("server is not running")
        host, port = self._httpd.server_address[:2]
        return f"{host}:{port}"

    def start(self) -> None:
        """Listen on the address and serve requests in a background thread."""
        if self._httpd is not None:
            raise RuntimeError("server is already running")
        host, port = _parse_address(self.address)
        httpd = ThreadingHTTPServer((host, port), _make_handler(self))
        httpd.daemon_threads = True
        self._httpd = httpd
        self._thread = threading.Thread(target=httpd.serve_forever, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Shut the server down and wait for it to finish."""
        if self._httpd is None:
            return
        self._httpd.shutdown()
        self._httpd.server_close()
        if self._thread is not None:
            self._thread.join()
        self._httpd = None
        self._thread = None

    def __enter__(self) -> HookServer:
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()