from __future__ import annotations

import base64
import json
import logging
import time
from collections.abc import Callable, Mapping
from typing import Any

import requests

from mailpilot.client.errors import (
    HTTPStatusError,
    ProtocolError,
    RetryLimitExceeded,
    TransportError,
)
from mailpilot.config import EndpointConfig

REDIRECT_STATUSES = (301, 302)

module_logger = logging.getLogger(__name__)


class RequestClient:
    """Blocking GET/POST against a single endpoint with retry and backoff.

    Backoff before attempt ``n`` (0-based) is ``2 ** (n - 1)`` seconds, so
    three attempts sleep 1s and then 2s. POST never lets ``requests`` follow
    redirects: a 301/302 is re-issued by hand as an authenticated GET to the
    ``Location`` target, since the backend answers writes that way and a
    replayed POST body would be lost.
    """

    def __init__(
        self,
        endpoint: EndpointConfig,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
        *,
        timeout_sec: float = 30.0,
        max_attempts: int = 3,
        max_redirects: int = 10,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.endpoint = endpoint
        self.logger = logger or module_logger
        self.timeout_sec = timeout_sec
        self.max_attempts = max_attempts
        self.session = session or requests.Session()
        self.session.max_redirects = max_redirects
        self._sleep = sleep

    @property
    def base_url(self) -> str:
        return self.endpoint.base_url

    def set_base_url(self, url: str) -> None:
        self.endpoint.base_url = url

    def set_basic_auth(self, auth_id: str, password: str) -> None:
        self.endpoint.auth_id = auth_id
        self.endpoint.auth_password = password

    def get_auth_header(self) -> str:
        if self.endpoint.auth_id == "" and self.endpoint.auth_password == "":
            return ""
        raw = f"{self.endpoint.auth_id}:{self.endpoint.auth_password}"
        return "Basic " + base64.b64encode(raw.encode("utf-8")).decode("ascii")

    def _headers(self, extra: Mapping[str, str] | None = None) -> dict[str, str]:
        headers = dict(extra or {})
        auth_header = self.get_auth_header()
        if auth_header:
            headers["Authorization"] = auth_header
        return headers

    def _backoff(self, attempt: int) -> None:
        if attempt == 0:
            return
        delay = 2 ** (attempt - 1)
        self._sleep(delay)
        self.logger.info("Retry %s/%s after %ss", attempt + 1, self.max_attempts, delay)

    def _read_body(self, response: requests.Response) -> bytes:
        try:
            body = response.content
        except requests.RequestException as exc:
            raise TransportError(f"failed to read response body: {exc}") from exc
        if response.status_code != 200:
            raise HTTPStatusError(response.status_code, body.decode("utf-8", errors="replace"))
        return body

    def _get_once(self, url: str, params: Mapping[str, str] | None) -> bytes:
        try:
            response = self.session.get(
                url,
                params=params,
                headers=self._headers(),
                timeout=self.timeout_sec,
                allow_redirects=True,
            )
        except requests.RequestException as exc:
            raise TransportError(f"GET failed: {exc}") from exc
        try:
            return self._read_body(response)
        finally:
            response.close()

    def _post_once(self, data: bytes) -> bytes:
        try:
            response = self.session.post(
                self.base_url,
                data=data,
                headers=self._headers({"Content-Type": "application/json"}),
                timeout=self.timeout_sec,
                allow_redirects=False,
            )
        except requests.RequestException as exc:
            raise TransportError(f"POST failed: {exc}") from exc

        if response.status_code not in REDIRECT_STATUSES:
            try:
                return self._read_body(response)
            finally:
                response.close()

        location = response.headers.get("Location", "")
        response.close()
        if not location:
            raise ProtocolError("redirect target unknown")

        self.logger.info("Redirect: %s", location)
        return self._get_once(location, None)

    def _with_retries(self, label: str, call: Callable[[], bytes]) -> bytes:
        last_error: Exception | None = None
        for attempt in range(self.max_attempts):
            self._backoff(attempt)
            try:
                return call()
            except (TransportError, ProtocolError) as exc:
                last_error = exc
                self.logger.error("%s attempt %s/%s failed: %s", label, attempt + 1, self.max_attempts, exc)
        raise RetryLimitExceeded(last_error, self.max_attempts) from last_error

    def get(self, params: Mapping[str, str] | None = None) -> bytes:
        return self._with_retries("GET", lambda: self._get_once(self.base_url, params))

    def post(self, payload: Any) -> bytes:
        try:
            data = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        except (TypeError, ValueError) as exc:
            raise ProtocolError(f"failed to encode JSON payload: {exc}") from exc
        return self._with_retries("POST", lambda: self._post_once(data))
