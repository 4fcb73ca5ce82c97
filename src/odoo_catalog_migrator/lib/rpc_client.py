"""RPC catalog client.

Implements the catalog surface on top of an odoo-client-lib connection
(XML-RPC or JSON-RPC), for servers that do not expose the REST module.
"""

import socket
import time
from typing import Any, Callable, Optional

from ..logging_config import log
from .client import CatalogClient
from .internal.exceptions import RemoteError
from .internal.tools import call_with_retry

NETWORK_ERROR_DELAY = 1.5


def _format_rpc_error(error: Exception) -> str:
    """Tries to extract the meaningful message from an RPC error."""
    if error.args and isinstance(error.args[0], dict):
        data = error.args[0].get("data", {})
        if isinstance(data, dict) and data.get("message"):
            return str(data["message"])
        if error.args[0].get("message"):
            return str(error.args[0]["message"])
    return str(error).strip().replace("\n", " ")


class RpcCatalogClient(CatalogClient):
    """Catalog client over an odoo-client-lib connection."""

    def __init__(
        self,
        connection: Any,
        transport_retries: int = 2,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initializes the client.

        Args:
            connection: A connection returned by ``odoolib.get_connection``.
            transport_retries: Extra attempts on connection-level failures.
            sleep: The sleep function, injectable for tests.
        """
        super().__init__(sleep=sleep)
        self.connection = connection
        self.transport_retries = transport_retries

    def _is_transient(self, error: Exception) -> Optional[float]:
        if isinstance(error, (ConnectionError, socket.timeout, TimeoutError)):
            return NETWORK_ERROR_DELAY
        return None

    def _execute(self, model: str, method: str, *args: Any, **kwargs: Any) -> Any:
        model_obj = self.connection.get_model(model)

        def attempt() -> Any:
            return getattr(model_obj, method)(*args, **kwargs)

        try:
            return call_with_retry(
                attempt,
                self._is_transient,
                self.transport_retries,
                sleep=self.sleep,
                description=f"{model}.{method}",
            )
        except (ConnectionError, socket.timeout, TimeoutError) as e:
            raise RemoteError(
                f"Network Error: {model}.{method} failed: {e}", code="NETWORK_ERROR"
            ) from e
        except RemoteError:
            raise
        except Exception as e:
            log.debug(f"RPC call {model}.{method} failed: {e!r}")
            raise RemoteError(_format_rpc_error(e)) from e

    def authenticate(self) -> None:
        try:
            self.connection.check_login(force=True)
        except Exception as e:
            raise RemoteError(
                f"Authentication failed: {_format_rpc_error(e)}", code="AUTH_FAILED"
            ) from e

    def _search_read(
        self,
        model: str,
        domain: list[Any],
        fields: list[str],
        order: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        kwargs: dict[str, Any] = {"fields": fields}
        if order:
            kwargs["order"] = order
        if limit:
            kwargs["limit"] = limit
        records = self._execute(model, "search_read", domain, **kwargs)
        return list(records or [])

    def _create(self, model: str, values: dict[str, Any]) -> int:
        result = self._execute(model, "create", values)
        if isinstance(result, list):
            result = result[0] if result else None
        if not result:
            raise RemoteError(f"Server did not return an id for the new {model} record.")
        return int(result)

    def _write(self, model: str, record_id: int, values: dict[str, Any]) -> None:
        self._execute(model, "write", [record_id], values)

    def _call(
        self, model: str, method: str, ids: Optional[list[int]] = None
    ) -> Any:
        return self._execute(model, method, ids or [])
