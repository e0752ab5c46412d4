"""
marketplace/session.py — Signed-in user, passed explicitly to every operation.

SessionStore keeps the sessions of this process keyed by user id and owns
their lifecycle: create on sign-in or restore, refresh after profile edits,
clear on sign-out.
"""
import asyncio
import logging
from enum import Enum
from typing import Dict, Optional, TYPE_CHECKING

from pydantic import BaseModel

from backend.client import eq
from backend.types import one

if TYPE_CHECKING:
    from backend.client import BackendClient

logger = logging.getLogger(__name__)


class UserType(str, Enum):
    VA     = "va"
    CLIENT = "client"
    ADMIN  = "admin"


class Session(BaseModel):
    user_id: str
    access_token: str
    email: str = ""
    full_name: Optional[str] = None
    user_type: UserType
    va_id: Optional[str] = None
    client_id: Optional[str] = None
    verification_status: Optional[str] = None

    model_config = {"frozen": True}

    @property
    def display_name(self) -> str:
        return self.full_name or self.email or self.user_id

    @property
    def is_va(self) -> bool:
        return self.user_type == UserType.VA and self.va_id is not None

    @property
    def is_client(self) -> bool:
        return self.user_type == UserType.CLIENT and self.client_id is not None


class SessionStore:
    """
    In-memory session registry. Sessions are lost on restart; the backend
    refresh token is the durable part.

    Table and RPC calls go out with the client's current token, i.e. the
    user who signed in last; sign-out always revokes the token of the
    session being closed.
    """

    def __init__(self, client: "BackendClient"):
        self._client = client
        self._store: Dict[str, Session] = {}
        self._lock = asyncio.Lock()

    async def _load(self, user_id: str, access_token: str) -> Session:
        profile = one(await self._client.select(
            "profiles", "id, email, full_name, user_type", {"id": eq(user_id)}
        ))
        if profile is None:
            raise LookupError(f"No profile for user {user_id}")

        user_type = UserType(profile.get("user_type") or "va")
        va_id = client_id = verification_status = None
        if user_type == UserType.VA:
            va = one(await self._client.select(
                "vas", "id, verification_status", {"user_id": eq(user_id)}
            ))
            if va:
                va_id = va["id"]
                verification_status = va.get("verification_status")
        elif user_type == UserType.CLIENT:
            client = one(await self._client.select(
                "clients", "id", {"user_id": eq(user_id)}
            ))
            if client:
                client_id = client["id"]

        return Session(
            user_id=user_id,
            access_token=access_token,
            email=profile.get("email") or "",
            full_name=profile.get("full_name"),
            user_type=user_type,
            va_id=va_id,
            client_id=client_id,
            verification_status=verification_status,
        )

    async def create(self, auth_payload: Dict) -> Session:
        """Build a session from a sign-in (or restored) auth payload."""
        user_id = str(auth_payload["user"]["id"])
        session = await self._load(user_id, auth_payload["access_token"])
        async with self._lock:
            self._store[user_id] = session
        logger.info(f"✅ Session created for {user_id} ({session.user_type.value})")
        return session

    async def sign_in(self, email: str, password: str) -> Session:
        payload = await self._client.sign_in_with_password(email, password)
        return await self.create(payload)

    async def get(self, user_id: str) -> Optional[Session]:
        async with self._lock:
            return self._store.get(user_id)

    async def refresh(self, user_id: str) -> Optional[Session]:
        """Re-read profile rows, keeping the token."""
        current = await self.get(user_id)
        if current is None:
            return None
        session = await self._load(user_id, current.access_token)
        async with self._lock:
            self._store[user_id] = session
        return session

    async def clear(self, user_id: str) -> None:
        async with self._lock:
            self._store.pop(user_id, None)
        logger.info(f"👋 Session cleared for {user_id}")

    async def sign_out(self, user_id: str) -> None:
        """Revoke this user's own token, whoever signed in last."""
        session = await self.get(user_id)
        try:
            if session is not None:
                await self._client.sign_out(session.access_token)
        finally:
            await self.clear(user_id)

    def user_count(self) -> int:
        return len(self._store)
