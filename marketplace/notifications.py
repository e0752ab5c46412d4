"""
marketplace/notifications.py — Best-effort email notifications.

Contract: at most once, no retry. send() reports whether the email function
accepted the message; it never raises. dispatch() schedules a send without
waiting for it, so callers must not assume delivery.
"""
import asyncio
import logging
from enum import Enum
from typing import Any, Dict, Optional, Set, TYPE_CHECKING

import aiohttp

if TYPE_CHECKING:
    from .session import Session

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 200


class EmailType(str, Enum):
    NEW_MESSAGE         = "new_message"
    JOB_APPLICATION     = "job_application"
    INTERVIEW_SCHEDULED = "interview_scheduled"
    ASSESSMENT_PASSED   = "assessment_passed"


def truncate_preview(text: str, limit: int = PREVIEW_LENGTH) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")


class Notifier:
    def __init__(self, api_url: str, timeout: float = 10.0):
        self.api_url = api_url
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None
        self._pending: Set[asyncio.Task] = set()

    async def start(self):
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )

    async def stop(self):
        """Let scheduled sends finish, then close the HTTP session."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        if self._session and not self._session.closed:
            await self._session.close()

    async def send(
        self,
        sender: "Session",
        email_type: EmailType,
        to_user_id: str,
        data: Dict[str, Any],
    ) -> bool:
        payload = {"type": email_type.value, "toUserId": to_user_id, "data": data}
        headers = {"Authorization": f"Bearer {sender.access_token}"}
        try:
            await self.start()
            async with self._session.post(self.api_url, json=payload, headers=headers) as resp:
                if resp.status >= 400:
                    logger.error(f"❌ Email send failed [{email_type.value}]: {await resp.text()}")
                    return False
                body = await resp.json(content_type=None)
                return isinstance(body, dict) and bool(body.get("success"))
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.error(f"❌ Email send error [{email_type.value}]: {e}")
            return False

    def dispatch(
        self,
        sender: "Session",
        email_type: EmailType,
        to_user_id: str,
        data: Dict[str, Any],
    ) -> asyncio.Task:
        task = asyncio.create_task(self.send(sender, email_type, to_user_id, data))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    # ------------------------------------------------------------------ #
    # Typed helpers
    # ------------------------------------------------------------------ #
    def notify_new_message(
        self, sender: "Session", recipient_user_id: str, recipient_name: str,
        preview: str, conversation_id: str,
    ) -> asyncio.Task:
        return self.dispatch(sender, EmailType.NEW_MESSAGE, recipient_user_id, {
            "recipientName": recipient_name,
            "senderName": sender.display_name,
            "preview": truncate_preview(preview),
            "conversationId": conversation_id,
        })

    def notify_job_application(
        self, sender: "Session", client_user_id: str, client_name: str,
        job_title: str, job_id: str, proposed_rate: Optional[float],
    ) -> asyncio.Task:
        return self.dispatch(sender, EmailType.JOB_APPLICATION, client_user_id, {
            "clientName": client_name,
            "applicantName": sender.display_name,
            "jobTitle": job_title,
            "jobId": job_id,
            "proposedRate": proposed_rate or "Not specified",
        })

    def notify_interview_scheduled(
        self, sender: "Session", recipient_user_id: str, recipient_name: str,
        date: str, time: str, duration: int,
    ) -> asyncio.Task:
        return self.dispatch(sender, EmailType.INTERVIEW_SCHEDULED, recipient_user_id, {
            "recipientName": recipient_name,
            "otherPartyName": sender.display_name,
            "date": date,
            "time": time,
            "duration": duration,
        })

    def notify_assessment_passed(
        self, sender: "Session", skill_name: str, score: int,
    ) -> asyncio.Task:
        return self.dispatch(sender, EmailType.ASSESSMENT_PASSED, sender.user_id, {
            "vaName": sender.display_name,
            "skillName": skill_name,
            "score": score,
        })
