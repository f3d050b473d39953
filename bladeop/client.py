"""HTTP client for the fault control server running next to a pod."""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.request
from http import HTTPStatus

from bladeop.faults import INJECT_PATH, RECOVER_PATH, InjectMessage

log = logging.getLogger(__name__)


class HookClientError(Exception):
    """A request to the fault server failed or was refused."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class HookClient:
    """Talks to a fault server at ``address`` (``host:port``)."""

    def __init__(self, address: str, timeout: float = 30.0) -> None:
        self.address = address
        self.timeout = timeout
        self._opener = urllib.request.build_opener(urllib.request.ProxyHandler({}))

    def _url(self, path: str) -> str:
        return f"http://{self.address}{path}"

    def _send(self, request: urllib.request.Request) -> str:
        try:
            with self._opener.open(request, timeout=self.timeout) as response:
                status = response.status
                body = response.read()
        except urllib.error.HTTPError as exc:
            status = exc.code
            body = exc.read()
            exc.close()
        except (urllib.error.URLError, OSError) as exc:
            raise HookClientError(str(exc)) from exc
        text = body.decode("utf-8", errors="replace")
        if status != HTTPStatus.OK:
            raise HookClientError(text, status)
        return text

    def inject_fault(self, message: InjectMessage) -> str:
        """Send ``message`` to the server; return its response body."""
        body = json.dumps(message.to_dict(), separators=(",", ":")).encode("utf-8")
        log.info("inject fault %s", message)
        request = urllib.request.Request(
            self._url(INJECT_PATH),
            data=body,
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        result = self._send(request)
        log.info("inject fault %s, response is %s", message, result)
        return result

    def revoke(self) -> str:
        """Ask the server to remove all faults; return its response body."""
        request = urllib.request.Request(
            self._url(RECOVER_PATH),
            headers={"Content-Type": "application/json"},
            method="GET",
        )
        result = self._send(request)
        log.info("revoke fault, response is %s", result)
        return result