"""Async client for the ADT (ABAP Development Tools) REST API.

Covers the calls the synchronization pipeline needs: source read/write,
lock/unlock, activation, main program lookup, the server pretty printer
and repository browsing. Modifying requests carry a CSRF token fetched
once per session. Session mode (stateful/stateless) is sent with every
request through the ``X-sap-adt-sessiontype`` header; locks only survive
between calls in a stateful session.

No call is retried here. Remote errors are raised as :class:`AdtError`
with the ADT exception type so callers can classify them.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from enum import Enum
from urllib.parse import quote

import httpx

from abappretty.adt.xml import (
    ClassInclude,
    NodeEntry,
    build_object_references,
    parse_activation_result,
    parse_class_includes,
    parse_exception,
    parse_lock,
    parse_main_programs,
    parse_node_structure,
    parse_object_references,
)
from abappretty.config import ConnectionConfig
from abappretty.models import ActivationResult, AdtLock, MainProgram, ObjectReference

logger = logging.getLogger(__name__)

LOCK_ACCEPT = (
    "application/*,application/vnd.sap.as+xml;charset=UTF-8;"
    "dataname=com.sap.adt.lock.result"
)
CSRF_HEADER = "x-csrf-token"
SESSION_HEADER = "X-sap-adt-sessiontype"


class SessionType(str, Enum):
    """ADT session modes."""

    STATEFUL = "stateful"
    STATELESS = "stateless"


class AdtError(Exception):
    """Raised when the ADT API answers with an error status.

    Attributes:
        type: ADT exception type id, e.g. ``ExceptionResourceNoAccess``.
        message: Message text reported by the server.
        status_code: HTTP status of the response.
    """

    def __init__(self, message: str, type: str = "", status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.type = type
        self.status_code = status_code


class AdtClient:
    """Wrapper around ``httpx.AsyncClient`` for one SAP connection.

    Usage::

        async with AdtClient(config, password) as client:
            source = await client.stateless_clone.get_object_source(url)
            client.stateful = SessionType.STATEFUL
            lock = await client.lock(url)
    """

    def __init__(
        self,
        config: ConnectionConfig,
        password: str,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config
        self._password = password
        self._auth = httpx.BasicAuth(config.user, password)
        self._http = http_client or httpx.AsyncClient(
            verify=config.verify_ssl, timeout=config.timeout
        )
        self._owns_client = http_client is None
        self._csrf_token: str | None = None
        self._stateful = SessionType.STATELESS
        self._stateless_clone: AdtClient | None = None

    # ------------------------------------------------------------------
    # Session handling
    # ------------------------------------------------------------------

    @property
    def stateful(self) -> SessionType:
        return self._stateful

    @stateful.setter
    def stateful(self, value: SessionType) -> None:
        if value != self._stateful:
            logger.debug("Session type %s -> %s", self._stateful.value, value.value)
        self._stateful = SessionType(value)

    @property
    def stateless_clone(self) -> AdtClient:
        """A second client with its own session, always stateless.

        Reads issued through the clone never touch the stateful session
        that holds the locks.
        """
        if self._stateless_clone is None:
            http_client = None if self._owns_client else self._http
            self._stateless_clone = AdtClient(self.config, self._password, http_client)
        return self._stateless_clone

    async def drop_session(self) -> None:
        """Log off the server session and forget its cookies and token."""
        try:
            await self._request("GET", "/sap/public/bc/icf/logoff")
        finally:
            self._http.cookies.clear()
            self._csrf_token = None

    async def close(self) -> None:
        if self._stateless_clone is not None:
            await self._stateless_clone.close()
        if self._owns_client:
            await self._http.aclose()

    async def __aenter__(self) -> AdtClient:
        return self

    async def __aexit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Source and locks
    # ------------------------------------------------------------------

    async def get_object_source(self, url: str) -> str:
        response = await self._request("GET", url, headers={"Accept": "text/plain"})
        return response.text

    async def set_object_source(
        self,
        url: str,
        source: str,
        lock_handle: str,
        transport: str | None = None,
    ) -> None:
        params = {"lockHandle": lock_handle}
        if transport:
            params["corrNr"] = transport
        await self._request(
            "PUT",
            url,
            params=params,
            headers={"Content-Type": "text/plain; charset=utf-8"},
            content=source.encode("utf-8"),
            modifying=True,
        )

    async def lock(self, url: str, access_mode: str = "MODIFY") -> AdtLock:
        response = await self._request(
            "POST",
            url,
            params={"_action": "LOCK", "accessMode": access_mode},
            headers={"Accept": LOCK_ACCEPT},
            modifying=True,
        )
        return parse_lock(response.content)

    async def unlock(self, url: str, lock_handle: str) -> None:
        await self._request(
            "POST",
            url,
            params={"_action": "UNLOCK", "lockHandle": lock_handle},
            modifying=True,
        )

    # ------------------------------------------------------------------
    # Activation
    # ------------------------------------------------------------------

    async def activate(
        self, name: str, url: str, main_include: str | None = None
    ) -> ActivationResult:
        """Activate one object, optionally in the context of a main program."""
        uri = f"{url}?context={quote(main_include, safe='')}" if main_include else url
        return await self.activate_objects([ObjectReference(uri=uri, name=name)])

    async def activate_objects(
        self, references: Iterable[ObjectReference]
    ) -> ActivationResult:
        response = await self._request(
            "POST",
            "/sap/bc/adt/activation",
            params={"method": "activate", "preauditRequested": "true"},
            headers={"Content-Type": "application/xml", "Accept": "application/xml"},
            content=build_object_references(references).encode("utf-8"),
            modifying=True,
        )
        return parse_activation_result(response.content)

    async def main_programs(self, meta_url: str) -> list[MainProgram]:
        response = await self._request(
            "GET", f"{meta_url}/mainprograms", headers={"Accept": "application/*"}
        )
        return parse_main_programs(response.content)

    async def pretty_printer(self, source: str) -> str:
        response = await self._request(
            "POST",
            "/sap/bc/adt/abapsource/prettyprinter",
            headers={"Content-Type": "text/plain; charset=utf-8", "Accept": "text/plain"},
            content=source.encode("utf-8"),
            modifying=True,
        )
        return response.text

    # ------------------------------------------------------------------
    # Repository browsing
    # ------------------------------------------------------------------

    async def node_contents(self, parent_type: str, parent_name: str) -> list[NodeEntry]:
        response = await self._request(
            "POST",
            "/sap/bc/adt/repository/nodestructure",
            params={
                "parent_type": parent_type,
                "parent_name": parent_name,
                "withShortDescriptions": "false",
            },
            headers={"Accept": "application/vnd.sap.as+xml"},
            modifying=True,
        )
        return parse_node_structure(response.content)

    async def search_object(
        self, name: str, object_type: str = "", max_results: int = 100
    ) -> list[ObjectReference]:
        params = {"operation": "quickSearch", "query": name, "maxResults": str(max_results)}
        if object_type:
            params["objectType"] = object_type
        response = await self._request(
            "GET",
            "/sap/bc/adt/repository/informationsystem/search",
            params=params,
            headers={"Accept": "application/xml"},
        )
        return parse_object_references(response.content)

    async def object_includes(self, url: str) -> list[ClassInclude]:
        response = await self._request("GET", url, headers={"Accept": "application/*"})
        return parse_class_includes(response.content)

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _fetch_csrf_token(self) -> str:
        response = await self._send(
            "GET",
            "/sap/bc/adt/core/discovery",
            headers={CSRF_HEADER: "fetch", "Accept": "*/*"},
        )
        token = response.headers.get(CSRF_HEADER, "")
        if response.is_error or not token:
            raise AdtError(
                f"Could not fetch CSRF token (HTTP {response.status_code})",
                status_code=response.status_code,
            )
        logger.debug("Fetched CSRF token")
        return token

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, str] | None = None,
        headers: Mapping[str, str] | None = None,
        content: bytes | None = None,
        modifying: bool = False,
    ) -> httpx.Response:
        all_headers = dict(headers or {})
        if modifying:
            if self._csrf_token is None:
                self._csrf_token = await self._fetch_csrf_token()
            all_headers[CSRF_HEADER] = self._csrf_token

        response = await self._send(
            method, path, params=params, headers=all_headers, content=content
        )
        if response.is_error:
            exc_type, message = parse_exception(response.content)
            raise AdtError(
                message or f"HTTP {response.status_code} for {method} {path}",
                type=exc_type,
                status_code=response.status_code,
            )
        return response

    async def _send(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, str] | None = None,
        headers: Mapping[str, str] | None = None,
        content: bytes | None = None,
    ) -> httpx.Response:
        query = dict(params or {})
        if self.config.client:
            query["sap-client"] = self.config.client
        if self.config.language:
            query["sap-language"] = self.config.language

        all_headers = {SESSION_HEADER: self._stateful.value, **(headers or {})}
        logger.debug("%s %s %s", method, path, self._stateful.value)
        return await self._http.request(
            method,
            f"{self.config.url}{path}",
            params=query,
            headers=all_headers,
            content=content,
            auth=self._auth,
        )
