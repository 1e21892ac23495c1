"""HTTP client for the fault injection endpoints of the fuse sidecar."""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.request
from http import HTTPStatus

from bladeoperator.faults import INJECT_PATH, RECOVER_PATH, InjectMessage

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class HookClientError(Exception):
    """The sidecar could not be reached or refused the request."""


class HookClient:
    """Talks to the hook server at ``host:port``."""

    def __init__(self, address: str, timeout: float = DEFAULT_TIMEOUT):
        self.address = address
        self.timeout = timeout
        self._opener = urllib.request.build_opener(urllib.request.ProxyHandler({}))

    def _url(self, path: str) -> str:
        return f"http://{self.address}{path}"

    def _send(self, request: urllib.request.Request) -> tuple[int, str]:
        try:
            with self._opener.open(request, timeout=self.timeout) as response:
                return response.status, response.read().decode("utf-8", errors="replace")
        except urllib.error.HTTPError as err:
            with err:
                return err.code, err.read().decode("utf-8", errors="replace")
        except (urllib.error.URLError, OSError) as err:
            raise HookClientError(str(err)) from err

    def inject_fault(self, message: InjectMessage) -> None:
        """Ask the sidecar to inject ``message``; raise on failure."""
        body = json.dumps(message.to_dict()).encode("utf-8")
        request = urllib.request.Request(
            self._url(INJECT_PATH),
            data=body,
            method="POST",
            headers={"Content-Type": "application/json"},
        )
        logger.info("inject fault %s", message)
        status, result = self._send(request)
        logger.info("inject fault %s, response is %s", message, result)
        if status != HTTPStatus.OK:
            raise HookClientError(result)

    def revoke(self) -> None:
        """Ask the sidecar to remove every fault; raise on failure."""
        request = urllib.request.Request(
            self._url(RECOVER_PATH),
            method="GET",
            headers={"Content-Type": "application/json"},
        )
        status, result = self._send(request)
        logger.info("revoke fault, response is %s", result)
        if status != HTTPStatus.OK:
            raise HookClientError(result)