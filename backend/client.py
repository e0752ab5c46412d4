"""
backend/client.py — Async HTTP client for the managed backend.

Covers the three surfaces the marketplace uses: REST tables (PostgREST
filters), remote procedures under /rpc and password-grant auth.
Every failure is raised as BackendError; nothing is retried here.
"""
import asyncio
import logging
from typing import Optional, List, Dict, Any

import aiohttp

logger = logging.getLogger(__name__)


class BackendError(Exception):
    """Remote call failed (transport error or non-2xx response)."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class NotFoundError(BackendError):
    pass


def eq(value: Any) -> str:
    return f"eq.{value}"


def neq(value: Any) -> str:
    return f"neq.{value}"


def gt(value: Any) -> str:
    return f"gt.{value}"


def gte(value: Any) -> str:
    return f"gte.{value}"


def is_(value: Optional[bool]) -> str:
    literal = "null" if value is None else str(value).lower()
    return f"is.{literal}"


class BackendClient:
    """
    Client of the managed database/auth service.

    The anon key identifies the project; the access token (once signed in)
    identifies the user for row-level authorization.
    """

    def __init__(self, base_url: str, anon_key: str, timeout: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self.anon_key = anon_key
        self.timeout = timeout
        self.access_token: Optional[str] = None
        self._session: Optional[aiohttp.ClientSession] = None

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #
    async def start(self):
        """Create the HTTP session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout, connect=10)
            self._session = aiohttp.ClientSession(timeout=timeout)
            logger.info("✅ Backend HTTP session created")

    async def stop(self):
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
            logger.info("✅ Backend HTTP session closed")

    async def __aenter__(self) -> "BackendClient":
        await self.start()
        return self

    async def __aexit__(self, *exc_info):
        await self.stop()

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #
    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {self.access_token or self.anon_key}",
            "Content-Type": "application/json",
        }
        if extra:
            headers.update(extra)
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json_body: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        if self._session is None or self._session.closed:
            await self.start()
        url = f"{self.base_url}{path}"
        try:
            async with self._session.request(
                method, url, params=params, json=json_body,
                headers=self._headers(headers)
            ) as resp:
                raw = await resp.text()
                if resp.status == 404:
                    raise NotFoundError(f"{method} {path}: not found", resp.status)
                if resp.status >= 400:
                    logger.warning(f"⚠️ Backend error [{method} {path}] {resp.status}: {raw[:200]}")
                    raise BackendError(f"{method} {path} failed: {raw[:200]}", resp.status)
                if not raw or not raw.strip():
                    return None
                try:
                    return await resp.json(content_type=None)
                except ValueError as e:
                    logger.warning(f"⚠️ Non-JSON body [{method} {path}]: {raw[:200]}")
                    raise BackendError(f"{method} {path}: invalid JSON response", resp.status) from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"⚠️ Network error [{method} {path}]: {e}")
            raise BackendError(f"{method} {path}: {e}") from e

    # ------------------------------------------------------------------ #
    # REST tables
    # ------------------------------------------------------------------ #
    async def select(
        self,
        table: str,
        columns: str = "*",
        filters: Optional[Dict[str, str]] = None,
        order: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Dict]:
        """Read rows; `order` is PostgREST syntax, e.g. "created_at.desc"."""
        params: Dict[str, Any] = {"select": columns}
        if filters:
            params.update(filters)
        if order:
            params["order"] = order
        if limit is not None:
            params["limit"] = str(limit)
        data = await self._request("GET", f"/rest/v1/{table}", params=params)
        return data or []

    async def insert(
        self,
        table: str,
        row: Dict[str, Any],
        returning: str = "*",
    ) -> List[Dict]:
        data = await self._request(
            "POST", f"/rest/v1/{table}",
            params={"select": returning},
            json_body=row,
            headers={"Prefer": "return=representation"},
        )
        return data or []

    async def update(
        self,
        table: str,
        values: Dict[str, Any],
        filters: Dict[str, str],
    ) -> List[Dict]:
        data = await self._request(
            "PATCH", f"/rest/v1/{table}",
            params=dict(filters),
            json_body=values,
            headers={"Prefer": "return=representation"},
        )
        return data or []

    # ------------------------------------------------------------------ #
    # Remote procedures
    # ------------------------------------------------------------------ #
    async def rpc(self, function: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self._request("POST", f"/rest/v1/rpc/{function}", json_body=params or {})

    # ------------------------------------------------------------------ #
    # Auth
    # ------------------------------------------------------------------ #
    async def sign_in_with_password(self, email: str, password: str) -> Dict:
        """Password grant; stores the access token for subsequent calls."""
        data = await self._request(
            "POST", "/auth/v1/token",
            params={"grant_type": "password"},
            json_body={"email": email, "password": password},
        )
        if not isinstance(data, dict) or not data.get("access_token"):
            raise BackendError("Sign-in returned no access token")
        self.access_token = data["access_token"]
        logger.info(f"✅ Signed in as {data.get('user', {}).get('id', '?')}")
        return data

    async def sign_out(self, access_token: Optional[str] = None):
        """Revoke `access_token` (default: the current one); the client forgets it if it was current."""
        token = access_token or self.access_token
        if not token:
            return
        try:
            await self._request(
                "POST", "/auth/v1/logout",
                headers={"Authorization": f"Bearer {token}"},
            )
        finally:
            if token == self.access_token:
                self.access_token = None
