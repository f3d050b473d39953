"""HTTP control server that injects and recovers filesystem faults."""

from __future__ import annotations

import json
import logging
import threading
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any
from urllib.parse import urlsplit

from bladeop.faults import (
    INJECT_PATH,
    RECOVER_PATH,
    FaultRegistry,
    InjectMessage,
    default_registry,
)

log = logging.getLogger(__name__)

_DECODE_ERROR = "Cannot Decode Request Message\n"
_NOT_FOUND = "404 page not found\n"
_SUCCESS = "success"


def _split_address(address: str) -> tuple[str, int]:
    host, sep, port = address.rpartition(":")
    if not sep:
        raise ValueError(f"address {address!r} has no port")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    try:
        return host, int(port)
    except ValueError:
        raise ValueError(f"invalid port in address {address!r}") from None


def _decode_message(body: bytes) -> InjectMessage:
    text = body.decode("utf-8").lstrip()
    value, _ = json.JSONDecoder().raw_decode(text)
    if value is None:
        return InjectMessage()
    return InjectMessage.from_dict(value)


class HookServer:
    """Serves the inject and recover endpoints on ``address`` (``host:port``)."""

    def __init__(self, address: str, registry: FaultRegistry | None = None) -> None:
        self.address = address
        self.registry = registry if registry is not None else default_registry
        self._httpd: ThreadingHTTPServer | None = None
        self._thread: threading.Thread | None = None

    @property
    def server_address(self) -> tuple[str, int]:
        """The bound host and port; only available while running."""
        if self._httpd is None:
            raise RuntimeError("server is not running")
        host, port = self._httpd.server_address[:2]
        return str(host), int(port)

    def handle_inject(self, body: bytes) -> tuple[HTTPStatus, str]:
        """Decode an inject request and register it; return status and body."""
        try:
            message = _decode_message(body)
        except (ValueError, UnicodeDecodeError) as exc:
            log.error("cannot decode request message: %s", exc)
            return HTTPStatus.BAD_REQUEST, _DECODE_ERROR
        log.info("inject fault %s", message)
        self.registry.inject(message)
        return HTTPStatus.OK, _SUCCESS

    def handle_recover(self) -> tuple[HTTPStatus, str]:
        """Remove every injected fault; return status and body."""
        log.info("recover all fault")
        self.registry.recover()
        return HTTPStatus.OK, _SUCCESS

    def _make_handler(self) -> type[BaseHTTPRequestHandler]:
        server = self

        class Handler(BaseHTTPRequestHandler):
            def _reply(self, status: HTTPStatus, text: str) -> None:
                payload = text.encode("utf-8")
                self.send_response(status)
                self.send_header("Content-Type", "text/plain; charset=utf-8")
                self.send_header("Content-Length", str(len(payload)))
                self.end_headers()
                self.wfile.write(payload)

            def _body(self) -> bytes:
                length = int(self.headers.get("Content-Length") or 0)
                return self.rfile.read(length) if length > 0 else b""

            def _dispatch(self) -> None:
                path = urlsplit(self.path).path
                if path == INJECT_PATH:
                    self._reply(*server.handle_inject(self._body()))
                elif path == RECOVER_PATH:
                    self._body()
                    self._reply(*server.handle_recover())
                else:
                    self._reply(HTTPStatus.NOT_FOUND, _NOT_FOUND)

            do_GET = _dispatch
            do_POST = _dispatch
            do_PUT = _dispatch
            do_DELETE = _dispatch

            def log_message(self, format: str, *args: Any) -> None:
                log.debug("%s - %s", self.address_string(), format % args)

        return Handler

    def start(self) -> None:
        """Bind and serve in a background thread."""
        if self._httpd is not None:
            raise RuntimeError("server already started")
        host, port = _split_address(self.address)
        httpd = ThreadingHTTPServer((host, port), self._make_handler())
        httpd.daemon_threads = True
        self._httpd = httpd
        self._thread = threading.Thread(target=httpd.serve_forever, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Shut the server down; does nothing when it is not running."""
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

    def __exit__(self, *exc_info: Any) -> None:
        self.stop()