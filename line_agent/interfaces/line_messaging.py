# interfaces/line_messaging.py
"""
LINE Messaging API client
Signature verification, reply sending and message-content download.
"""

import base64
import hashlib
import hmac
from typing import Any, Dict, List, Optional

import httpx
from loguru import logger

from ..config import settings
from ..exceptions import TransportError
from ..schemas.agent_schemas import CardReply, ImagePayload, OutboundReply, TextReply
from ..utils.text_helpers import truncate_text


def verify_signature(body: bytes, signature: Optional[str], channel_secret: str) -> bool:
    """Check X-Line-Signature: base64(HMAC-SHA256(channel_secret, body))"""
    if not signature or not channel_secret:
        return False
    digest = hmac.new(channel_secret.encode("utf-8"), body, hashlib.sha256).digest()
    expected = base64.b64encode(digest).decode("utf-8")
    return hmac.compare_digest(expected, signature)


def to_line_messages(reply: OutboundReply, max_chars: int = 5000) -> List[Dict[str, Any]]:
    """Convert an OutboundReply to LINE message objects"""
    if isinstance(reply, CardReply):
        return [{
            "type": "flex",
            "altText": truncate_text(reply.alt_text, 400),
            "contents": reply.payload,
        }]
    if isinstance(reply, TextReply):
        return [{"type": "text", "text": truncate_text(reply.body, max_chars)}]
    raise TypeError(f"Unsupported reply type: {type(reply).__name__}")


class LineMessagingClient:
    """
    Thin async wrapper over the LINE Messaging API.
    Network failures are raised as TransportError.
    """

    def __init__(
        self,
        access_token: Optional[str] = None,
        api_base: Optional[str] = None,
        data_api_base: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.access_token = access_token if access_token is not None else settings.LINE_CHANNEL_ACCESS_TOKEN
        self.api_base = (api_base or settings.LINE_API_BASE).rstrip("/")
        self.data_api_base = (data_api_base or settings.LINE_DATA_API_BASE).rstrip("/")
        self.timeout = timeout or settings.LINE_HTTP_TIMEOUT_SECONDS
        self._transport = transport

        if not self.access_token:
            logger.warning("LINE_CHANNEL_ACCESS_TOKEN is missing, replies will fail")

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            transport=self._transport,
            headers={"Authorization": f"Bearer {self.access_token}"},
        )

    async def reply(self, reply_token: str, reply: OutboundReply):
        """Send a reply to a webhook event"""
        payload = {
            "replyToken": reply_token,
            "messages": to_line_messages(reply, settings.LINE_REPLY_MAX_CHARS),
        }
        try:
            async with self._client() as client:
                response = await client.post(f"{self.api_base}/v2/bot/message/reply", json=payload)
        except httpx.HTTPError as e:
            raise TransportError(f"LINE reply failed: {e}") from e

        if response.status_code != 200:
            raise TransportError(f"LINE reply rejected: {response.status_code} {response.text[:200]}")

    async def push(self, to: str, reply: OutboundReply):
        """Push a message outside of a reply window"""
        payload = {"to": to, "messages": to_line_messages(reply, settings.LINE_REPLY_MAX_CHARS)}
        try:
            async with self._client() as client:
                response = await client.post(f"{self.api_base}/v2/bot/message/push", json=payload)
        except httpx.HTTPError as e:
            raise TransportError(f"LINE push failed: {e}") from e

        if response.status_code != 200:
            raise TransportError(f"LINE push rejected: {response.status_code} {response.text[:200]}")

    async def get_message_content(self, message_id: str) -> ImagePayload:
        """Download the binary content of an image message"""
        url = f"{self.data_api_base}/v2/bot/message/{message_id}/content"
        try:
            async with self._client() as client:
                response = await client.get(url)
        except httpx.HTTPError as e:
            raise TransportError(f"LINE content download failed: {e}") from e

        if response.status_code != 200:
            raise TransportError(f"LINE content rejected: {response.status_code}")

        mime_type = response.headers.get("content-type", "image/jpeg").split(";")[0]
        return ImagePayload(data=response.content, mime_type=mime_type)
