"""REST catalog client.

Talks to the bespoke JSON API exposed by the ERP's REST module:
``/odoo_connect`` hands out an API key, ``/send_request`` reads, creates and
updates records of one model, and ``/call_method`` runs a model method.
"""

import json
import time
from typing import Any, Callable, Optional

import requests

from ..logging_config import log
from .client import CatalogClient
from .internal.exceptions import RemoteError
from .internal.tools import call_with_retry

RETRYABLE_STATUS = (502, 503, 504)
SERVER_ERROR_DELAY = 1.0
NETWORK_ERROR_DELAY = 1.5


class _TransientHttpError(Exception):
    """A gateway/service-unavailable status worth retrying."""

    def __init__(self, response: requests.Response):
        super().__init__(f"HTTP Error {response.status_code}")
        self.response = response


def _extract_error_message(raw_error: dict[str, Any]) -> str:
    """Digs the meaningful message out of a server error object."""
    message = ""
    data = raw_error.get("data")
    if isinstance(data, str):
        message = data
    elif isinstance(data, dict):
        if data.get("message"):
            msg = data["message"]
            message = json.dumps(msg) if isinstance(msg, (dict, list)) else str(msg)
        elif isinstance(data.get("arguments"), list) and data["arguments"]:
            arg = data["arguments"][0]
            message = json.dumps(arg) if isinstance(arg, (dict, list)) else str(arg)
        else:
            message = json.dumps(data)

    if not message or message.strip() == "Odoo Server Error":
        top = raw_error.get("message")
        if top:
            message = json.dumps(top) if isinstance(top, (dict, list)) else str(top)

    return message or "Unknown Odoo Error"


def _to_remote_error(raw_error: Any) -> RemoteError:
    """Converts the ``error`` member of a response body into a RemoteError."""
    if not isinstance(raw_error, dict):
        return RemoteError(str(raw_error))

    message = _extract_error_message(raw_error)
    code = raw_error.get("code")
    if not code and "No REST API configuration found" in message:
        code = "CONFIG_NOT_FOUND"
    return RemoteError(
        message,
        code=str(code) if code is not None else None,
        title=raw_error.get("title") or "Odoo Error",
    )


class RestCatalogClient(CatalogClient):
    """Catalog client over the REST JSON API, built on a requests Session."""

    def __init__(
        self,
        base_url: str,
        login: str,
        password: str,
        database: str = "",
        timeout: float = 30.0,
        transport_retries: int = 2,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initializes the client.

        Args:
            base_url: The server URL, with or without a trailing slash.
            login: The user login.
            password: The user password.
            database: The database name sent during authentication.
            timeout: Per-request timeout in seconds.
            transport_retries: Extra attempts on 502/503/504 and network errors.
            session: An optional pre-configured requests Session.
            sleep: The sleep function, injectable for tests.
        """
        super().__init__(sleep=sleep)
        if not base_url:
            raise ValueError("Server URL configuration is missing.")
        self.base_url = base_url.rstrip("/")
        self.login = login
        self.password = password
        self.database = database
        self.timeout = timeout
        self.transport_retries = transport_retries
        self.session = session or requests.Session()
        self.api_key: Optional[str] = None

    # --- Transport ---

    def _is_transient(self, error: Exception) -> Optional[float]:
        if isinstance(error, _TransientHttpError):
            return SERVER_ERROR_DELAY
        if isinstance(error, (requests.ConnectionError, requests.Timeout)):
            return NETWORK_ERROR_DELAY
        return None

    def _request(
        self,
        method: str,
        endpoint: str,
        payload: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
        retries: Optional[int] = None,
    ) -> Any:
        """Performs one API call and unwraps its result.

        Raises:
            RemoteError: On network failure, HTTP error or server error body.
        """
        if self.api_key is None and "odoo_connect" not in endpoint:
            self.authenticate()

        all_headers = {
            "login": self.login,
            "password": self.password,
            "api-key": self.api_key or "",
            "Content-Type": "application/json",
        }
        all_headers.update(headers or {})
        url = f"{self.base_url}{endpoint}"

        def attempt() -> requests.Response:
            response = self.session.request(
                method,
                url,
                headers=all_headers,
                data=json.dumps(payload) if payload is not None else None,
                timeout=self.timeout,
            )
            if response.status_code in RETRYABLE_STATUS:
                raise _TransientHttpError(response)
            return response

        try:
            response = call_with_retry(
                attempt,
                self._is_transient,
                self.transport_retries if retries is None else retries,
                sleep=self.sleep,
                description=f"{method} {endpoint}",
            )
        except _TransientHttpError as e:
            raise RemoteError(
                f"HTTP Error {e.response.status_code}: {e.response.reason}"
            ) from e
        except (requests.ConnectionError, requests.Timeout) as e:
            raise RemoteError(
                f"Network Error: Could not reach {self.base_url}. "
                f"Check the server address or your connection. ({e})",
                code="NETWORK_ERROR",
            ) from e

        return self._unwrap(response, endpoint)

    def _unwrap(self, response: requests.Response, endpoint: str) -> Any:
        try:
            data = response.json()
        except ValueError:
            data = None

        if isinstance(data, dict) and data.get("error"):
            log.debug(f"Server error body for {endpoint}: {data['error']}")
            raise _to_remote_error(data["error"])

        if not response.ok:
            message = f"HTTP Error {response.status_code}: {response.reason}"
            if len(response.text) < 200:
                message += f" - {response.text}"
            raise RemoteError(message)

        if data is None:
            raise RemoteError(f"Invalid JSON response from {endpoint}.")

        if isinstance(data, dict) and "call_method" not in endpoint:
            for key in ("records", "new_resource", "updated_resource", "resource_deleted"):
                if key in data:
                    return data[key]
        return data

    # --- Session ---

    def authenticate(self) -> None:
        """Exchanges login and password for an API key."""
        if not self.password:
            raise RemoteError("Password required", code="AUTH_FAILED")
        log.info(f"Authenticating against {self.base_url}...")
        data = self._request(
            "GET",
            "/odoo_connect",
            headers={"login": self.login, "password": self.password, "db": self.database},
            retries=0,
        )
        api_key = data.get("api-key") if isinstance(data, dict) else None
        if not api_key:
            raise RemoteError(
                "Authentication failed: No API Key received.", code="AUTH_FAILED"
            )
        self.api_key = api_key
        log.info("Authentication successful.")

    # --- Primitives ---

    def _search_read(
        self,
        model: str,
        domain: list[Any],
        fields: list[str],
        order: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        payload: dict[str, Any] = {"domain": domain, "fields": fields}
        if order:
            payload["order"] = order
        if limit:
            payload["limit"] = limit
        records = self._request("POST", f"/send_request?model={model}", payload)
        return records if isinstance(records, list) else []

    def _create(self, model: str, values: dict[str, Any]) -> int:
        result = self._request(
            "POST",
            f"/send_request?model={model}",
            {"values": values, "fields": ["id"]},
        )
        if isinstance(result, list) and result:
            return int(result[0]["id"])
        raise RemoteError(f"Server did not return an id for the new {model} record.")

    def _write(self, model: str, record_id: int, values: dict[str, Any]) -> None:
        self._request(
            "PUT",
            f"/send_request?model={model}&Id={record_id}",
            {"values": values, "fields": ["id"]},
        )

    def _call(
        self, model: str, method: str, ids: Optional[list[int]] = None
    ) -> Any:
        payload = {
            "model": model,
            "method": method,
            "ids": ids or [],
            "args": [],
            "kwargs": {},
        }
        result = self._request("PUT", "/call_method", payload)
        if isinstance(result, str):
            try:
                return json.loads(result)
            except ValueError as e:
                raise RemoteError(f"Invalid JSON returned by {method}.") from e
        return result
