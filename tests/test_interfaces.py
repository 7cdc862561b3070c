"""Tests for identity resolution and the LINE Messaging API client"""

import base64
import hashlib
import hmac
import json

import httpx
import pytest

from line_agent.exceptions import TransportError
from line_agent.interfaces.identity_store import IdentityResolver
from line_agent.interfaces.line_messaging import LineMessagingClient, to_line_messages, verify_signature
from line_agent.interfaces.school_store import InMemorySchoolStore
from line_agent.schemas.agent_schemas import CardReply, IdentityBinding, TextReply, UserRole
from line_agent.utils.text_helpers import sanitize_arguments


def _sign(body: bytes, secret: str) -> str:
    return base64.b64encode(hmac.new(secret.encode(), body, hashlib.sha256).digest()).decode()


# ============================================
# Identity
# ============================================

class TestIdentityResolver:
    @pytest.mark.asyncio
    async def test_binding_document(self):
        store = InMemorySchoolStore()
        store.bindings["U1"] = IdentityBinding(line_user_id="U1", uid="uid-1")
        store.users["uid-1"] = {"email": "tech@school.ac.th", "displayName": "ช่างเอ", "role": "technician"}

        account = await IdentityResolver(store).resolve("U1")

        assert account.uid == "uid-1"
        assert account.role == UserRole.TECHNICIAN
        assert account.display_name == "ช่างเอ"

    @pytest.mark.asyncio
    async def test_line_user_id_on_user_document(self):
        store = InMemorySchoolStore()
        store.users["uid-2"] = {
            "email": "photo@school.ac.th",
            "lineUserId": "U2",
            "role": "superuser",
            "isPhotographer": True,
        }

        account = await IdentityResolver(store).resolve("U2")

        assert account.uid == "uid-2"
        assert account.role == UserRole.USER
        assert account.is_photographer is True

    @pytest.mark.asyncio
    async def test_unbound(self):
        store = InMemorySchoolStore()
        store.bindings["U3"] = IdentityBinding(line_user_id="U3", uid="missing-user")
        assert await IdentityResolver(store).resolve("U3") is None


# ============================================
# LINE Messaging API
# ============================================

class TestSignature:
    def test_valid_signature(self):
        body = b'{"events":[]}'
        assert verify_signature(body, _sign(body, "secret"), "secret") is True

    def test_tampered_body(self):
        signature = _sign(b'{"events":[]}', "secret")
        assert verify_signature(b'{"events":[1]}', signature, "secret") is False

    def test_missing_secret_or_signature(self):
        assert verify_signature(b"{}", None, "secret") is False
        assert verify_signature(b"{}", _sign(b"{}", ""), "") is False


class TestMessages:
    def test_text_is_truncated(self):
        messages = to_line_messages(TextReply(body="ก" * 30), max_chars=10)
        assert messages == [{"type": "text", "text": "ก" * 7 + "..."}]

    def test_card_becomes_flex(self):
        card = CardReply(alt_text="พบ 2 กิจกรรม", payload={"type": "carousel", "contents": []})
        message = to_line_messages(card)[0]
        assert message["type"] == "flex"
        assert message["altText"] == "พบ 2 กิจกรรม"
        assert message["contents"]["type"] == "carousel"


class TestLineMessagingClient:
    @pytest.mark.asyncio
    async def test_reply_posts_to_line(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={})

        client = LineMessagingClient(
            access_token="token", api_base="https://line.test", transport=httpx.MockTransport(handler)
        )
        await client.reply("reply-token", TextReply(body="สวัสดีค่ะ"))

        assert seen["url"] == "https://line.test/v2/bot/message/reply"
        assert seen["auth"] == "Bearer token"
        assert seen["body"] == {
            "replyToken": "reply-token",
            "messages": [{"type": "text", "text": "สวัสดีค่ะ"}],
        }

    @pytest.mark.asyncio
    async def test_rejected_reply_raises_transport_error(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(400, text="Invalid reply token"))
        client = LineMessagingClient(access_token="token", api_base="https://line.test", transport=transport)

        with pytest.raises(TransportError):
            await client.reply("expired", TextReply(body="x"))

    @pytest.mark.asyncio
    async def test_network_error_raises_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        client = LineMessagingClient(
            access_token="token", api_base="https://line.test", transport=httpx.MockTransport(handler)
        )

        with pytest.raises(TransportError):
            await client.push("U1", TextReply(body="x"))

    @pytest.mark.asyncio
    async def test_image_download(self):
        def handler(request):
            assert request.url.path == "/v2/bot/message/m-1/content"
            return httpx.Response(200, content=b"\x89PNG", headers={"content-type": "image/png"})

        client = LineMessagingClient(
            access_token="token", data_api_base="https://data.line.test", transport=httpx.MockTransport(handler)
        )
        image = await client.get_message_content("m-1")

        assert image.data == b"\x89PNG"
        assert image.mime_type == "image/png"


def test_sanitize_arguments_for_logs():
    clean = sanitize_arguments({
        "image_url": "data:image/jpeg;base64,AAAA",
        "email": "somsri@school.ac.th",
        "count": 3,
    })
    assert clean == {"image_url": "<image/jpeg data>", "email": "s***@school.ac.th", "count": 3}
