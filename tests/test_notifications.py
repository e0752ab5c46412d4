# tests/test_notifications.py
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from marketplace.notifications import EmailType, Notifier, truncate_preview


@pytest.fixture
async def email_api():
    received = []

    async def send_email(request):
        body = await request.json()
        received.append((request.headers.get("Authorization"), body))
        if body["toUserId"] == "broken":
            return web.json_response({"error": "Failed to send email"}, status=500)
        if body["toUserId"] == "rejected":
            return web.json_response({"success": False})
        if body["toUserId"] == "odd-body":
            return web.json_response([True])
        return web.json_response({"success": True, "id": "email-1"})

    app = web.Application()
    app.router.add_post("/api/send-email", send_email)
    async with TestServer(app) as server:
        notifier = Notifier(str(server.make_url("/api/send-email")))
        yield notifier, received
        await notifier.stop()


def test_truncate_preview():
    assert truncate_preview("short") == "short"
    long_text = "x" * 250
    assert truncate_preview(long_text) == "x" * 200 + "..."
    assert truncate_preview("x" * 200) == "x" * 200


async def test_send_success(email_api, va_session):
    notifier, received = email_api
    ok = await notifier.send(va_session, EmailType.ASSESSMENT_PASSED, "user-va", {"score": 90})
    assert ok is True
    auth, body = received[0]
    assert auth == "Bearer token-va"
    assert body == {"type": "assessment_passed", "toUserId": "user-va", "data": {"score": 90}}


async def test_send_server_error_returns_false(email_api, va_session):
    notifier, _ = email_api
    assert await notifier.send(va_session, EmailType.NEW_MESSAGE, "broken", {}) is False


async def test_send_unsuccessful_body_returns_false(email_api, va_session):
    notifier, _ = email_api
    assert await notifier.send(va_session, EmailType.NEW_MESSAGE, "rejected", {}) is False


async def test_send_unreachable_returns_false(va_session):
    notifier = Notifier("http://127.0.0.1:1/api/send-email", timeout=2)
    try:
        assert await notifier.send(va_session, EmailType.NEW_MESSAGE, "user-x", {}) is False
    finally:
        await notifier.stop()


async def test_assessment_passed_goes_to_sender(email_api, va_session):
    notifier, received = email_api
    task = notifier.notify_assessment_passed(va_session, "Bookkeeping", 85)
    assert await task is True
    _, body = received[0]
    assert body["toUserId"] == "user-va"
    assert body["data"] == {"vaName": "Vera Assistant", "skillName": "Bookkeeping", "score": 85}


async def test_job_application_payload(email_api, va_session):
    notifier, received = email_api
    await notifier.notify_job_application(va_session, "user-client", "Carl", "Bookkeeper", "job-7", None)
    _, body = received[0]
    assert body["type"] == "job_application"
    assert body["data"]["proposedRate"] == "Not specified"
    assert body["data"]["applicantName"] == "Vera Assistant"


async def test_new_message_preview_truncated(email_api, client_session):
    notifier, received = email_api
    await notifier.notify_new_message(client_session, "user-va", "Vera", "y" * 300, "conv-1")
    _, body = received[0]
    assert body["data"]["preview"] == "y" * 200 + "..."
    assert body["data"]["senderName"] == "Carl Client"


async def test_stop_waits_for_dispatched_sends(email_api, va_session):
    notifier, received = email_api
    notifier.notify_interview_scheduled(va_session, "user-client", "Carl", "2026-10-20", "09:30", 30)
    await notifier.stop()
    assert len(received) == 1
    assert received[0][1]["data"]["duration"] == 30


async def test_send_non_object_body_returns_false(email_api, va_session):
    notifier, _ = email_api
    assert await notifier.send(va_session, EmailType.NEW_MESSAGE, "odd-body", {}) is False
    task = notifier.dispatch(va_session, EmailType.NEW_MESSAGE, "odd-body", {})
    assert await task is False
