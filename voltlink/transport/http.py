# voltlink/transport/http.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

import requests
from requests import RequestException

from .errors import TransportIOError


@dataclass(frozen=True)
class HttpReply:
    status: int
    body: bytes = b""

    @property
    def ok(self) -> bool:
        return self.status == 200


class HttpTransport:
    """
    HTTP transport implemented via requests.

    One request per call, no pooled session; callable from several worker threads.
    Timeouts apply to both connect and read.
    """

    def __init__(self, base_url: str = ""):
        self.base_url = base_url.rstrip("/")

    def set_base_url(self, base_url: str) -> None:
        self.base_url = base_url.rstrip("/")

    def url_for(self, path: str) -> str:
        if not self.base_url:
            raise TransportIOError("request while transport has no base URL")
        return f"{self.base_url}/{path.lstrip('/')}"

    def get(self, path: str, *, timeout_s: float) -> HttpReply:
        return self._request("GET", path, timeout_s=timeout_s)

    def post_json(self, path: str, payload: Mapping[str, Any], *, timeout_s: float) -> HttpReply:
        return self._request("POST", path, timeout_s=timeout_s, payload=payload)

    def _request(
        self,
        method: str,
        path: str,
        *,
        timeout_s: float,
        payload: Optional[Mapping[str, Any]] = None,
    ) -> HttpReply:
        url = self.url_for(path)

        try:
            # json= sets Content-Type: application/json
            resp = requests.request(
                method,
                url,
                json=dict(payload) if payload is not None else None,
                timeout=(timeout_s, timeout_s),
            )
        except RequestException as e:
            raise TransportIOError(f"HTTP {method} {url} failed: {e}") from None

        try:
            return HttpReply(status=int(resp.status_code), body=resp.content or b"")
        finally:
            resp.close()
