"""Typed JSON-RPC client for Sui full nodes.

Only the read paths the kiosk commands need are wrapped here: objects by id,
dynamic fields of a parent object, events by Move type and owned objects by
address. The client forwards requests and surfaces errors; it never retries.
Writes go through :mod:`sui_kiosk.signer`.
"""

from __future__ import annotations

import json
import logging
import threading
import uuid
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, Optional

import requests
from requests import RequestException, Response

from .config import KioskConfig
from .errors import ResolutionError

logger = logging.getLogger(__name__)

EVENT_PAGE_SIZE = 50
MULTI_GET_CHUNK = 50


class RPCError(RuntimeError):
    """Raised when the full node responds with a JSON-RPC error."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(f"RPC error {code}: {message}")
        self.code = code
        self.message = message


class RPCTransportError(RuntimeError):
    """Raised when the RPC endpoint is unreachable or returns malformed data."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def response_data(response: Dict[str, Any] | None) -> Dict[str, Any] | None:
    """Return the ``data`` block of an object response, or ``None`` on error."""

    if not response or response.get("error") or not response.get("data"):
        return None
    return response["data"]


class SuiRPCClient:
    """Read-only JSON-RPC client for a Sui full node.

    Each helper maps to one RPC method and returns the parsed ``result``.
    Paginated methods also have ``iter_*`` variants that follow cursors until
    the node reports no further pages.
    """

    def __init__(
        self,
        config: KioskConfig,
        session_factory: Callable[[], requests.Session] = requests.Session,
    ) -> None:
        self.config = config
        self._session_factory = session_factory
        self._local = threading.local()
        self._url = config.rpc_url
        self._timeout = config.timeout

    def _session(self) -> requests.Session:
        # One session per thread; workflows read from a thread pool.
        session = getattr(self._local, "session", None)
        if session is None:
            session = self._session_factory()
            self._local.session = session
        return session

    def call(self, method: str, params: Optional[list[Any]] = None) -> Any:
        """Perform a JSON-RPC request."""

        payload = {
            "jsonrpc": "2.0",
            "id": str(uuid.uuid4()),
            "method": method,
            "params": params or [],
        }
        logger.debug("RPC call %s params=%s", method, params)
        try:
            response = self._session().post(
                self._url,
                data=json.dumps(payload),
                headers={"content-type": "application/json"},
                timeout=self._timeout,
            )
        except RequestException as exc:
            logger.error(
                "RPC connection failed: %s",
                exc,
                exc_info=logger.isEnabledFor(logging.DEBUG),
            )
            raise RPCTransportError(
                f"RPC connection to {self._url} failed. Check the network selection and "
                "SUI_KIOSK_RPC_URL (or rpc.url in ~/.sui-kiosk.yaml)."
            ) from exc
        self._raise_for_status(response)
        try:
            result = response.json()
        except ValueError as exc:
            logger.debug("RPC JSON parse error: %s", response.text, exc_info=True)
            raise RPCTransportError("RPC server returned malformed JSON") from exc
        if result.get("error"):
            error = result["error"]
            raise RPCError(error.get("code", -1), error.get("message", "unknown"))
        return result.get("result")

    def _raise_for_status(self, response: Response) -> None:
        if response.ok:
            return
        # JSON-RPC errors may arrive with a non-200 status; keep the body for debugging.
        logger.error("RPC HTTP error %s from %s", response.status_code, response.url)
        logger.debug("RPC error body: %s", response.text)
        if response.status_code == 429:
            raise RPCTransportError(
                "RPC endpoint is rate limiting requests (429); retry later or configure a private full node.",
                status_code=response.status_code,
            )
        raise RPCTransportError(
            f"RPC server returned HTTP {response.status_code}; check the configured endpoint.",
            status_code=response.status_code,
        )

    # Objects --------------------------------------------------------------

    def get_object(
        self,
        object_id: str,
        *,
        show_type: bool = True,
        show_owner: bool = True,
        show_content: bool = False,
        show_display: bool = False,
    ) -> Dict[str, Any]:
        options = {
            "showType": show_type,
            "showOwner": show_owner,
            "showContent": show_content,
            "showDisplay": show_display,
        }
        return self.call("sui_getObject", [object_id, options])

    def multi_get_objects(
        self,
        object_ids: list[str],
        *,
        show_type: bool = True,
        show_owner: bool = True,
        show_content: bool = True,
    ) -> list[Dict[str, Any]]:
        """Fetch many objects, preserving the order of ``object_ids``."""

        options = {"showType": show_type, "showOwner": show_owner, "showContent": show_content}
        results: list[Dict[str, Any]] = []
        for start in range(0, len(object_ids), MULTI_GET_CHUNK):
            chunk = object_ids[start:start + MULTI_GET_CHUNK]
            results.extend(self.call("sui_multiGetObjects", [chunk, options]) or [])
        return results

    # Dynamic fields -------------------------------------------------------

    def get_dynamic_fields(
        self, parent_id: str, cursor: str | None = None, limit: int | None = None
    ) -> Dict[str, Any]:
        return self.call("suix_getDynamicFields", [parent_id, cursor, limit])

    def iter_dynamic_fields(self, parent_id: str) -> Iterator[Dict[str, Any]]:
        cursor = None
        while True:
            page = self.get_dynamic_fields(parent_id, cursor)
            yield from page.get("data", [])
            if not page.get("hasNextPage"):
                return
            cursor = page.get("nextCursor")

    def get_dynamic_field_object(self, parent_id: str, name: Dict[str, Any]) -> Dict[str, Any]:
        return self.call("suix_getDynamicFieldObject", [parent_id, name])

    # Events ---------------------------------------------------------------

    def query_events(
        self, event_type: str, limit: int = 1000, descending: bool = False
    ) -> list[Dict[str, Any]]:
        """Collect up to ``limit`` events of a Move event type."""

        events: list[Dict[str, Any]] = []
        cursor = None
        while len(events) < limit:
            page_size = min(EVENT_PAGE_SIZE, limit - len(events))
            page = self.call(
                "suix_queryEvents",
                [{"MoveEventType": event_type}, cursor, page_size, descending],
            )
            events.extend(page.get("data", []))
            if not page.get("hasNextPage"):
                break
            cursor = page.get("nextCursor")
        return events[:limit]

    # Owned objects --------------------------------------------------------

    def get_owned_objects(
        self,
        owner: str,
        *,
        struct_type: str | None = None,
        cursor: str | None = None,
        limit: int | None = None,
        show_type: bool = True,
        show_content: bool = False,
        show_display: bool = False,
    ) -> Dict[str, Any]:
        query: Dict[str, Any] = {
            "options": {
                "showType": show_type,
                "showContent": show_content,
                "showDisplay": show_display,
            }
        }
        if struct_type is not None:
            query["filter"] = {"StructType": struct_type}
        return self.call("suix_getOwnedObjects", [owner, query, cursor, limit])

    def iter_owned_objects(self, owner: str, **kwargs: Any) -> Iterator[Dict[str, Any]]:
        cursor = None
        while True:
            page = self.get_owned_objects(owner, cursor=cursor, **kwargs)
            yield from page.get("data", [])
            if not page.get("hasNextPage"):
                return
            cursor = page.get("nextCursor")


@contextmanager
def ledger_read(subject: str | None) -> Iterator[None]:
    """Surface RPC failures inside the block as :class:`ResolutionError`."""

    try:
        yield
    except (RPCError, RPCTransportError) as exc:
        raise ResolutionError(f"Ledger read for {subject} failed: {exc}", subject=subject) from exc
