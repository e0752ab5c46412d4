# tests/test_client.py
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from backend.client import BackendClient, BackendError, NotFoundError, eq, gte, is_, neq


def make_app(seen):
    async def select_skills(request):
        seen.append(("GET", request.path, dict(request.query), {
            "apikey": request.headers.get("apikey"),
            "Authorization": request.headers.get("Authorization"),
        }))
        return web.json_response([{"id": "s1", "name": "Excel"}])

    async def insert_attempt(request):
        body = await request.json()
        seen.append(("POST", request.path, dict(request.query), body, request.headers.get("Prefer")))
        return web.json_response([{"id": "attempt-9"}], status=201)

    async def patch_messages(request):
        seen.append(("PATCH", request.path, dict(request.query), await request.json()))
        return web.Response(status=204)

    async def rpc(request):
        body = await request.json()
        seen.append(("RPC", request.match_info["fn"], body))
        if request.match_info["fn"] == "broken":
            return web.json_response({"message": "boom"}, status=500)
        if request.match_info["fn"] == "html":
            return web.Response(text="<html>gateway hiccup</html>", content_type="text/html")
        return web.json_response([{"can_take": True, "reason": None}])

    async def token(request):
        body = await request.json()
        seen.append(("AUTH", dict(request.query), body))
        if body["password"] != "secret":
            return web.json_response({"error": "invalid_grant"}, status=400)
        return web.json_response({
            "access_token": "jwt-123", "refresh_token": "r", "user": {"id": "user-1"},
        })

    async def logout(request):
        seen.append(("LOGOUT", request.headers.get("Authorization")))
        return web.Response(status=204)

    app = web.Application()
    app.router.add_get("/rest/v1/skills", select_skills)
    app.router.add_post("/rest/v1/skill_attempts", insert_attempt)
    app.router.add_patch("/rest/v1/messages", patch_messages)
    app.router.add_post("/rest/v1/rpc/{fn}", rpc)
    app.router.add_post("/auth/v1/token", token)
    app.router.add_post("/auth/v1/logout", logout)
    return app


@pytest.fixture
async def backend():
    seen = []
    async with TestServer(make_app(seen)) as server:
        client = BackendClient(str(server.make_url("")), "anon-key")
        await client.start()
        yield client, seen
        await client.stop()


def test_filter_helpers():
    assert eq("abc") == "eq.abc"
    assert neq(5) == "neq.5"
    assert gte("2026-01-01") == "gte.2026-01-01"
    assert is_(None) == "is.null"
    assert is_(True) == "is.true"


async def test_select_sends_filters_and_keys(backend):
    client, seen = backend
    rows = await client.select("skills", "id, name", {"category": eq("finance")},
                               order="name.asc", limit=5)
    assert rows == [{"id": "s1", "name": "Excel"}]
    method, path, query, headers = seen[0]
    assert query == {"select": "id, name", "category": "eq.finance",
                     "order": "name.asc", "limit": "5"}
    assert headers["apikey"] == "anon-key"
    assert headers["Authorization"] == "Bearer anon-key"


async def test_insert_asks_for_representation(backend):
    client, seen = backend
    rows = await client.insert("skill_attempts", {"va_id": "va-1"}, returning="id")
    assert rows == [{"id": "attempt-9"}]
    _, _, query, body, prefer = seen[0]
    assert query == {"select": "id"}
    assert body == {"va_id": "va-1"}
    assert prefer == "return=representation"


async def test_update_with_empty_response(backend):
    client, seen = backend
    rows = await client.update("messages", {"read_at": "now"}, {"conversation_id": eq("c1")})
    assert rows == []
    assert seen[0][2] == {"conversation_id": "eq.c1"}


async def test_rpc_posts_params(backend):
    client, seen = backend
    data = await client.rpc("can_take_assessment", {"p_va_id": "va-1", "p_skill_id": "s1"})
    assert data == [{"can_take": True, "reason": None}]
    assert seen[0] == ("RPC", "can_take_assessment", {"p_va_id": "va-1", "p_skill_id": "s1"})


async def test_server_error_raises_backend_error(backend):
    client, _ = backend
    with pytest.raises(BackendError) as exc:
        await client.rpc("broken")
    assert exc.value.status == 500


async def test_missing_route_raises_not_found(backend):
    client, _ = backend
    with pytest.raises(NotFoundError):
        await client.select("nope")


async def test_sign_in_stores_token(backend):
    client, seen = backend
    payload = await client.sign_in_with_password("va@example.com", "secret")
    assert payload["user"]["id"] == "user-1"
    assert client.access_token == "jwt-123"
    assert seen[0][1] == {"grant_type": "password"}

    await client.select("skills")
    assert seen[1][3]["Authorization"] == "Bearer jwt-123"

    await client.sign_out()
    assert seen[2] == ("LOGOUT", "Bearer jwt-123")
    assert client.access_token is None


async def test_sign_in_with_wrong_password(backend):
    client, _ = backend
    with pytest.raises(BackendError) as exc:
        await client.sign_in_with_password("va@example.com", "wrong")
    assert exc.value.status == 400
    assert client.access_token is None


async def test_unreachable_backend_raises_backend_error():
    client = BackendClient("http://127.0.0.1:1", "anon-key", timeout=2)
    async with client:
        with pytest.raises(BackendError) as exc:
            await client.select("skills")
    assert exc.value.status is None


async def test_non_json_success_body_raises_backend_error(backend):
    client, _ = backend
    with pytest.raises(BackendError) as exc:
        await client.rpc("html")
    assert exc.value.status == 200


async def test_sign_out_revokes_given_token_only(backend):
    client, seen = backend
    await client.sign_in_with_password("va@example.com", "secret")
    await client.sign_out("older-token")
    assert seen[-1] == ("LOGOUT", "Bearer older-token")
    assert client.access_token == "jwt-123"
