"""Thin HTTP abstraction for talking to the directory management API.

Built on ``requests`` with a single shared ``Session``.

Key behaviors:
- Automatic 429 Too Many Requests retry with Retry-After header support
- ``SSWS`` API-token authentication (the scheme is configurable)
- TLS options: skip verification, custom CA bundle
- Proxy support
- ``redact_auth()`` helper for safe logging of headers
"""

import json
import time
from typing import Any, Dict, Optional

import requests

from .log import get_logger

logger = get_logger(__name__)

# Retry policy for 429 Too Many Requests (RFC 6585)
_MAX_RETRIES = 3
_DEFAULT_RETRY_AFTER = 2  # seconds, used when Retry-After header is missing


class DirectoryResponse:
    """Normalized HTTP response wrapper."""

    def __init__(self, status_code: int, headers: Dict[str, str], body: str):
        self.status_code = status_code
        self.headers = headers
        self.body = body
        self._json = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def json(self) -> Any:
        """Parse and cache the response body as JSON."""
        if self._json is None:
            self._json = json.loads(self.body) if self.body else None
        return self._json

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup."""
        lower = name.lower()
        for k, v in self.headers.items():
            if k.lower() == lower:
                return v
        return None


class DirectoryHTTPClient:
    """HTTP client for directory management API calls.

    Args:
        base_url:       Root URL of the organization (e.g. ``https://acme.example.com``)
        token:          API token sent as ``Authorization: <auth_scheme> <token>``
        auth_scheme:    Authorization scheme, ``SSWS`` by default
        tls_no_verify:  Skip TLS certificate verification (for self-signed certs)
        timeout:        Per-request timeout in seconds
        proxy:          HTTP/HTTPS proxy URL
        ca_bundle:      Path to custom CA certificate bundle file
        api_prefix:     Path prefix prepended to every request path
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        auth_scheme: str = "SSWS",
        tls_no_verify: bool = False,
        timeout: float = 30,
        proxy: Optional[str] = None,
        ca_bundle: Optional[str] = None,
        api_prefix: str = "/api/v1",
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.auth_scheme = auth_scheme
        self.tls_no_verify = tls_no_verify
        self.timeout = timeout
        self.proxy = proxy
        self.ca_bundle = ca_bundle
        self.api_prefix = api_prefix.rstrip("/")
        self.session = requests.Session()

    # -- Public API ----------------------------------------------------------

    def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> DirectoryResponse:
        """Send a GET request."""
        return self._request("GET", path, params=params)

    def post(self, path: str, payload: Optional[Dict[str, Any]] = None,
             params: Optional[Dict[str, Any]] = None) -> DirectoryResponse:
        """Send a POST request with an optional JSON payload."""
        return self._request("POST", path, params=params, payload=payload)

    def put(self, path: str, payload: Optional[Dict[str, Any]] = None,
            params: Optional[Dict[str, Any]] = None) -> DirectoryResponse:
        """Send a PUT request with an optional JSON payload."""
        return self._request("PUT", path, params=params, payload=payload)

    def delete(self, path: str, params: Optional[Dict[str, Any]] = None) -> DirectoryResponse:
        """Send a DELETE request."""
        return self._request("DELETE", path, params=params)

    def close(self):
        self.session.close()

    # -- Internals -----------------------------------------------------------

    def _build_headers(self) -> Dict[str, str]:
        """Build the default request headers with auth credentials."""
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if self.token:
            headers["Authorization"] = f"{self.auth_scheme} {self.token}"
        return headers

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> DirectoryResponse:
        """Execute an HTTP request with automatic 429 retry.

        Retries up to ``_MAX_RETRIES`` times when the server responds with
        429 Too Many Requests, sleeping for the duration specified by the
        ``Retry-After`` header (or ``_DEFAULT_RETRY_AFTER`` if absent).
        Network-level errors propagate as ``requests.RequestException``.
        """
        url = f"{self.base_url}{self.api_prefix}{path}"
        headers = self._build_headers()
        query = {k: v for k, v in (params or {}).items() if v is not None}

        kwargs: Dict[str, Any] = {
            "headers": headers,
            "timeout": self.timeout,
            "params": query,
        }
        if self.ca_bundle:
            kwargs["verify"] = self.ca_bundle
        elif self.tls_no_verify:
            kwargs["verify"] = False
        else:
            kwargs["verify"] = True
        if self.proxy:
            kwargs["proxies"] = {"http": self.proxy, "https": self.proxy}
        if payload is not None:
            kwargs["json"] = payload

        logger.debug("http_request", method=method, path=path,
                     headers=redact_auth(headers))
        for attempt in range(_MAX_RETRIES + 1):
            raw = self.session.request(method, url, **kwargs)
            resp = DirectoryResponse(raw.status_code, dict(raw.headers), raw.text)

            if resp.status_code == 429 and attempt < _MAX_RETRIES:
                retry_after = _parse_retry_after(resp.header("Retry-After"))
                logger.warning("rate_limited", method=method, path=path,
                               retry_after=retry_after, attempt=attempt + 1)
                time.sleep(retry_after)
                continue

            return resp

        return resp  # Return last response if all retries exhausted


def _parse_retry_after(value: Optional[str]) -> float:
    """Parse a Retry-After header value into seconds to wait.

    Handles integer-second values per RFC 7231 Section 7.1.3.
    Returns ``_DEFAULT_RETRY_AFTER`` if the header is missing or unparseable.
    A literal ``0`` is honored so test servers can retry immediately.
    """
    if not value:
        return _DEFAULT_RETRY_AFTER
    try:
        return max(0.0, float(value))
    except ValueError:
        return _DEFAULT_RETRY_AFTER


def redact_auth(headers: Dict[str, str]) -> Dict[str, str]:
    """Return a copy of headers with Authorization values replaced by ``***REDACTED***``.

    Use this when including headers in JSON output, logs, or error messages
    to avoid leaking API tokens.
    """
    redacted = dict(headers)
    for key in list(redacted.keys()):
        if key.lower() == "authorization":
            redacted[key] = "***REDACTED***"
    return redacted
