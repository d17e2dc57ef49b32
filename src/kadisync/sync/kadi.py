"""Kadi4Mat REST client.

A thin async HTTP client for the record endpoints the sync engine needs.

API routes used (relative to ``<host>/api``)
--------------------------------------------
POST  /records          – create a record
PATCH /records/{id}     – update a record
GET   /records/{id}     – fetch a record
GET   /users/me         – current user (connection check)

All endpoints accept/return JSON and authenticate callers through an
``Authorization: Bearer <personal access token>`` header.

The HTTP transport can be injected (``transport=``) so callers route
requests through their own stack, and tests through ``httpx.MockTransport``,
without touching any global state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx
from loguru import logger

from kadisync.errors import RemoteError

if TYPE_CHECKING:
    from kadisync.settings import Settings

logger = logger.bind(module="kadi")


@dataclass
class Record:
    """A Kadi4Mat record as returned by the API."""

    id: int
    identifier: str
    title: str = ""
    state: str = ""
    visibility: str = ""
    license: str | None = None
    description: str = ""
    tags: list[str] = field(default_factory=list)
    extras: list[dict[str, Any]] = field(default_factory=list)
    created_at: str | None = None
    last_modified: str | None = None

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "Record":
        license_ = data.get("license")
        if isinstance(license_, dict):
            license_ = license_.get("name")
        tags = [t["name"] if isinstance(t, dict) else str(t) for t in data.get("tags") or []]
        return cls(
            id=int(data["id"]),
            identifier=str(data["identifier"]),
            title=data.get("title", ""),
            state=data.get("state", ""),
            visibility=data.get("visibility", ""),
            license=license_,
            description=data.get("description", ""),
            tags=tags,
            extras=list(data.get("extras") or []),
            created_at=data.get("created_at"),
            last_modified=data.get("last_modified"),
        )


@dataclass
class User:
    id: int
    username: str
    displayname: str = ""

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "User":
        identity = data.get("identity") or {}
        return cls(
            id=int(data["id"]),
            username=identity.get("username", ""),
            displayname=data.get("displayname") or identity.get("displayname", ""),
        )


class KadiClient:
    """HTTP client for one Kadi4Mat instance."""

    def __init__(
        self,
        host: str,
        pat: str,
        *,
        timeout: float = 60.0,
        verify: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.host = host.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=f"{self.host}/api",
            headers={
                "Authorization": f"Bearer {pat}",
                "Accept": "application/json",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            verify=verify,
            transport=transport,
        )

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            r = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise RemoteError(f"Network error: {exc}") from exc

        if r.is_error:
            try:
                body: Any = r.json()
            except ValueError:
                body = r.text
            message = None
            if isinstance(body, dict):
                message = body.get("description") or body.get("message")
            raise RemoteError(
                message or f"{method} {url} failed",
                status_code=r.status_code,
                response=body,
            )
        if not r.content:
            return None
        return r.json()

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    async def create_record(self, payload: dict[str, Any]) -> Record:
        logger.debug(f"POST /records identifier={payload.get('identifier')}")
        return Record.from_json(await self._request("POST", "/records", json=payload))

    async def update_record(self, record_id: int, payload: dict[str, Any]) -> Record:
        logger.debug(f"PATCH /records/{record_id}")
        return Record.from_json(await self._request("PATCH", f"/records/{record_id}", json=payload))

    async def get_record(self, record_id: int) -> Record:
        return Record.from_json(await self._request("GET", f"/records/{record_id}"))

    def record_url(self, record_id: int) -> str:
        """Web UI address of a record."""
        return f"{self.host}/records/{record_id}"

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def get_current_user(self) -> User:
        return User.from_json(await self._request("GET", "/users/me"))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "KadiClient":
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.aclose()


def build_client(
    settings: "Settings",
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> KadiClient | None:
    """Client for the configured instance, or ``None`` without host and token."""
    if not settings.configured:
        return None
    return KadiClient(
        settings.host,
        settings.pat,
        timeout=settings.timeout_seconds,
        verify=settings.verify_ssl,
        transport=transport,
    )
