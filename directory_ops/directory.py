"""Directory client: the capability surface the commands, search and onboarding rely on.

Wraps :class:`~directory_ops.http_client.DirectoryHTTPClient` and turns HTTP
outcomes into the error taxonomy:

- 404                                  -> ``NotFound``
- 400 whose error text names an
  unsupported operator / search syntax -> ``CapabilityUnsupported``
- any other non-2xx, or network error  -> ``TransportFailure``

This is the only module that reads error prose.  Callers branch on the
exception type.
"""

import re
import urllib.parse
from typing import Any, Dict, List, Optional

import requests

from .errors import CapabilityUnsupported, NotFound, TransportFailure
from .http_client import DirectoryHTTPClient, DirectoryResponse

# Phrases the directory uses when it cannot evaluate a search expression
_CAPABILITY_PHRASES = (
    "not supported",
    "unsupported operator",
    "invalid search criteria",
    "invalid filter",
)

_OPERATOR_RE = re.compile(r"\b(eq|sw|ew|co|pr|gt|ge|lt|le)\b")


class DirectoryClient:
    """Typed operations over the directory management API.

    Entity records are returned as plain dicts in the directory's own shape:
    ``{"id", "status", "created", ..., "profile": {attribute: value}}``.

    Args:
        http: Configured HTTP client.  Owned by the caller.
    """

    def __init__(self, http: DirectoryHTTPClient):
        self.http = http

    def close(self):
        """Release the underlying HTTP session."""
        self.http.close()

    # -- Users ---------------------------------------------------------------

    def get(self, entity_key: str) -> Dict[str, Any]:
        """Fetch one user record."""
        return self._call("GET", f"/users/{_quote(entity_key)}")

    def list_users(self, limit: int = 50, filter: Optional[str] = None,
                   search: Optional[str] = None, q: Optional[str] = None,
                   after: Optional[str] = None, sort_by: Optional[str] = None,
                   sort_order: Optional[str] = None) -> List[Dict[str, Any]]:
        """List users with any combination of the directory's query parameters."""
        params = {
            "limit": limit,
            "filter": filter,
            "search": search,
            "q": q,
            "after": after,
            "sortBy": sort_by,
            "sortOrder": sort_order,
        }
        return self._call("GET", "/users", params=params, expression=search or filter) or []

    def list_filtered(self, expression: str, limit: int) -> List[Dict[str, Any]]:
        """Server-side filtered listing using a search expression."""
        return self.list_users(limit=limit, search=expression)

    def list_free_text(self, text: str, limit: int) -> List[Dict[str, Any]]:
        """Best-effort free-text listing (attribute-agnostic)."""
        return self.list_users(limit=limit, q=text)

    def list_all(self, limit: int) -> List[Dict[str, Any]]:
        """Unfiltered listing of up to ``limit`` users."""
        return self.list_users(limit=limit)

    def create(self, record: Dict[str, Any], activate: bool = False) -> Dict[str, Any]:
        """Create a user from ``{"profile": {...}}``; staged unless ``activate``."""
        params = {"activate": "true" if activate else "false"}
        return self._call("POST", "/users", params=params, payload=record)

    def set_activation(self, entity_key: str, notify: bool = True) -> None:
        """Activate a user, optionally sending the activation notification."""
        params = {"sendEmail": "true" if notify else "false"}
        self._call("POST", f"/users/{_quote(entity_key)}/lifecycle/activate", params=params)

    def deactivate(self, entity_key: str) -> None:
        self._call("POST", f"/users/{_quote(entity_key)}/lifecycle/deactivate")

    def suspend(self, entity_key: str) -> None:
        self._call("POST", f"/users/{_quote(entity_key)}/lifecycle/suspend")

    def unsuspend(self, entity_key: str) -> None:
        self._call("POST", f"/users/{_quote(entity_key)}/lifecycle/unsuspend")

    def delete(self, entity_key: str) -> None:
        """Permanently delete a user (the directory requires prior deactivation)."""
        self._call("DELETE", f"/users/{_quote(entity_key)}")

    # -- Groups --------------------------------------------------------------

    def list_groups(self, limit: int = 50, filter: Optional[str] = None,
                    search: Optional[str] = None, after: Optional[str] = None,
                    sort_by: Optional[str] = None,
                    sort_order: Optional[str] = None) -> List[Dict[str, Any]]:
        params = {
            "limit": limit,
            "filter": filter,
            "search": search,
            "after": after,
            "sortBy": sort_by,
            "sortOrder": sort_order,
        }
        return self._call("GET", "/groups", params=params, expression=search or filter) or []

    def get_group(self, group_id: str) -> Dict[str, Any]:
        return self._call("GET", f"/groups/{_quote(group_id)}")

    def create_group(self, name: str, description: str = "") -> Dict[str, Any]:
        payload = {"profile": {"name": name, "description": description}}
        return self._call("POST", "/groups", payload=payload)

    def delete_group(self, group_id: str) -> None:
        self._call("DELETE", f"/groups/{_quote(group_id)}")

    def list_group_users(self, group_id: str, limit: int = 50,
                         after: Optional[str] = None) -> List[Dict[str, Any]]:
        params = {"limit": limit, "after": after}
        return self._call("GET", f"/groups/{_quote(group_id)}/users", params=params) or []

    def assign_to_group(self, group_id: str, entity_key: str) -> None:
        self._call("PUT", f"/groups/{_quote(group_id)}/users/{_quote(entity_key)}")

    def remove_from_group(self, group_id: str, entity_key: str) -> None:
        self._call("DELETE", f"/groups/{_quote(group_id)}/users/{_quote(entity_key)}")

    # -- Applications --------------------------------------------------------

    def grant_application(self, app_id: str, entity_key: str) -> None:
        """Assign a user to an application."""
        self._call("POST", f"/apps/{_quote(app_id)}/users", payload={"id": entity_key})

    # -- System events -------------------------------------------------------

    def list_system_events(self, filter: Optional[str] = None, since: Optional[str] = None,
                           limit: int = 1) -> List[Dict[str, Any]]:
        """Most recent system log events first."""
        params = {"filter": filter, "since": since, "limit": limit, "sortOrder": "DESCENDING"}
        return self._call("GET", "/logs", params=params) or []

    # -- Internals -----------------------------------------------------------

    def _call(self, method: str, path: str, params: Optional[Dict[str, Any]] = None,
              payload: Optional[Dict[str, Any]] = None,
              expression: Optional[str] = None) -> Any:
        """Execute a request and map failures onto the error taxonomy."""
        try:
            if method == "GET":
                resp = self.http.get(path, params=params)
            elif method == "POST":
                resp = self.http.post(path, payload, params=params)
            elif method == "PUT":
                resp = self.http.put(path, payload, params=params)
            elif method == "DELETE":
                resp = self.http.delete(path, params=params)
            else:
                raise ValueError(f"Unsupported method: {method}")
        except requests.RequestException as exc:
            raise TransportFailure(f"{method} {path} failed: {exc}") from exc

        if resp.ok:
            if not resp.body:
                return None
            try:
                return resp.json()
            except ValueError as exc:
                raise TransportFailure(
                    f"{method} {path} returned invalid JSON", status=resp.status_code
                ) from exc

        raise _error_for(method, path, resp, expression)


def _error_for(method: str, path: str, resp: DirectoryResponse,
               expression: Optional[str]) -> Exception:
    """Build the taxonomy exception for a non-2xx response."""
    summary = _error_summary(resp)
    if resp.status_code == 404:
        return NotFound(summary or f"{method} {path}: not found", status=404)
    if resp.status_code == 400 and expression:
        lowered = summary.lower()
        if any(phrase in lowered for phrase in _CAPABILITY_PHRASES):
            match = _OPERATOR_RE.search(expression)
            return CapabilityUnsupported(
                summary, operator=match.group(1) if match else "", status=400,
            )
    message = summary or f"HTTP {resp.status_code}"
    return TransportFailure(f"{method} {path} failed ({resp.status_code}): {message}",
                            status=resp.status_code)


def _error_summary(resp: DirectoryResponse) -> str:
    """Extract ``errorSummary`` plus any cause summaries from an error body."""
    try:
        body = resp.json()
    except ValueError:
        return resp.body.strip()
    if not isinstance(body, dict):
        return resp.body.strip()
    parts = []
    if body.get("errorSummary"):
        parts.append(str(body["errorSummary"]))
    for cause in body.get("errorCauses") or []:
        if isinstance(cause, dict) and cause.get("errorSummary"):
            parts.append(str(cause["errorSummary"]))
    return "; ".join(parts)


def _quote(segment: str) -> str:
    return urllib.parse.quote(str(segment), safe="")
