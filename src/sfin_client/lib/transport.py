"""HTTP transport used by the client.

The client only needs "send a prepared request, get a status code and a
body back". Anything implementing Transport.send works, which keeps tests
free of the network.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import requests

DEFAULT_TIMEOUT = 30.0
DEFAULT_USER_AGENT = "sfin-client"


@dataclass(frozen=True)
class HTTPResult:
    status_code: int
    body: bytes


class Transport(Protocol):
    def send(self, request: requests.PreparedRequest) -> HTTPResult:
        """Send the request. Raises on transport-level failure."""
        ...


class RequestsTransport:
    """Transport backed by a requests.Session."""

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: str = DEFAULT_USER_AGENT,
        session: requests.Session | None = None,
    ) -> None:
        self.timeout = timeout
        self.user_agent = user_agent
        self.session = session or requests.Session()

    def send(self, request: requests.PreparedRequest) -> HTTPResult:
        request.headers.setdefault("User-Agent", self.user_agent)
        # Authorization header must stay on the original host
        resp = self.session.send(request, timeout=self.timeout, allow_redirects=False)
        return HTTPResult(status_code=resp.status_code, body=resp.content)

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "RequestsTransport":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
