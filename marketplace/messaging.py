"""
marketplace/messaging.py — Conversations between a client and a VA.

ConversationWatcher polls for new rows and hands each to a callback in
arrival order. Any polling error backs off exponentially.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional, TYPE_CHECKING

from pydantic import BaseModel

from backend.client import BackendError, eq, neq, gt, is_
from backend.types import many, one
from config.settings import settings

if TYPE_CHECKING:
    from backend.client import BackendClient
    from .notifications import Notifier
    from .session import Session

logger = logging.getLogger(__name__)

MAX_BACKOFF = 60


class Message(BaseModel):
    id: str
    conversation_id: str
    sender_id: str
    content: str
    created_at: datetime
    read_at: Optional[datetime] = None


class Messenger:
    def __init__(self, client: "BackendClient", notifier: Optional["Notifier"] = None):
        self.client = client
        self.notifier = notifier

    async def list_messages(self, conversation_id: str, after: Optional[datetime] = None) -> List[Message]:
        filters = {"conversation_id": eq(conversation_id)}
        if after is not None:
            filters["created_at"] = gt(after.isoformat())
        rows = many(await self.client.select(
            "messages", "*", filters, order="created_at.asc"
        ))
        return [Message.model_validate(r) for r in rows]

    async def mark_read(self, conversation_id: str, reader_id: str):
        await self.client.update(
            "messages",
            {"read_at": datetime.now(timezone.utc).isoformat()},
            {
                "conversation_id": eq(conversation_id),
                "sender_id": neq(reader_id),
                "read_at": is_(None),
            },
        )

    async def send_message(
        self,
        session: "Session",
        conversation_id: str,
        content: str,
        recipient_user_id: Optional[str] = None,
        recipient_name: str = "",
    ) -> Message:
        content = content.strip()
        if not content:
            raise ValueError("Message is empty")
        row = one(await self.client.insert("messages", {
            "conversation_id": conversation_id,
            "sender_id": session.user_id,
            "content": content,
        }))
        if row is None:
            raise BackendError("Message insert returned no row")
        message = Message.model_validate(row)
        if self.notifier is not None and recipient_user_id:
            self.notifier.notify_new_message(
                session, recipient_user_id, recipient_name, content, conversation_id
            )
        return message


class ConversationWatcher:
    def __init__(
        self,
        messenger: Messenger,
        session: "Session",
        conversation_id: str,
        on_message: Callable[[Message], Awaitable[None]],
        poll_interval: Optional[float] = None,
        backoff: float = 1.0,
    ):
        self.messenger = messenger
        self.session = session
        self.conversation_id = conversation_id
        self.on_message = on_message
        self.poll_interval = settings.message_poll_interval if poll_interval is None else poll_interval
        self.backoff = backoff
        self.last_seen: Optional[datetime] = None
        self.task: asyncio.Task | None = None

    async def poll_once(self) -> int:
        """Fetch and deliver messages newer than the last one seen."""
        messages = await self.messenger.list_messages(self.conversation_id, after=self.last_seen)
        incoming = False
        for message in messages:
            self.last_seen = message.created_at
            if message.sender_id != self.session.user_id:
                incoming = True
            await self.on_message(message)
        if incoming:
            await self.messenger.mark_read(self.conversation_id, self.session.user_id)
        return len(messages)

    async def _run(self):
        error_count = 0
        logger.info(f"🚀 Watching conversation {self.conversation_id}")
        while True:
            try:
                await self.poll_once()
                error_count = 0
                await asyncio.sleep(self.poll_interval)
            except asyncio.CancelledError:
                logger.info(f"⚠️ Stopped watching {self.conversation_id}")
                raise
            except Exception as e:
                error_count += 1
                wait = min(self.backoff * 2 ** error_count, MAX_BACKOFF)
                logger.error(
                    f"❌ Polling {self.conversation_id} failed: {e}. Retrying in {wait}s",
                    exc_info=not isinstance(e, BackendError),
                )
                await asyncio.sleep(wait)

    def start(self):
        if self.task is None or self.task.done():
            self.task = asyncio.create_task(self._run())

    async def stop(self):
        if self.task and not self.task.done():
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass
