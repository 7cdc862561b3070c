"""
LINE Webhook Endpoint
FastAPI route that feeds LINE message events to the Dispatcher
"""

from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from loguru import logger
from pydantic import ValidationError

from ..config import settings
from ..exceptions import TransportError
from ..interfaces.line_messaging import verify_signature
from ..schemas.agent_schemas import ImagePayload, LineEvent, LineWebhookBody, TextReply
from ..agents.reply_renderer import TRY_AGAIN_LATER


# Create router
router = APIRouter(prefix="/api/line", tags=["LINE"])

SUPPORTED_MESSAGE_TYPES = ("text", "image")


# ============================================
# Webhook
# ============================================

@router.post("/webhook")
async def line_webhook(request: Request):
    """
    Receive LINE platform events

    Verifies X-Line-Signature, then handles each text/image message event
    as an independent turn. Send failures are logged, never returned to LINE.

    Returns:
        {"status": "ok"}
    """
    body = await request.body()
    signature = request.headers.get("x-line-signature")
    channel_secret = getattr(request.app.state, "channel_secret", settings.LINE_CHANNEL_SECRET)

    if not verify_signature(body, signature, channel_secret):
        logger.warning("Rejected LINE webhook with invalid signature")
        raise HTTPException(status_code=401, detail="Invalid signature")

    try:
        payload = LineWebhookBody.model_validate_json(body)
    except ValidationError as e:
        logger.error(f"Malformed LINE webhook body: {e}")
        raise HTTPException(status_code=400, detail="Malformed body")

    for event in payload.events:
        await _handle_event(request, event)

    return {"status": "ok"}


async def _handle_event(request: Request, event: LineEvent):
    state = request.app.state

    if event.type != "message" or event.message is None:
        logger.debug(f"Ignoring LINE event type: {event.type}")
        return
    if event.message.type not in SUPPORTED_MESSAGE_TYPES:
        logger.debug(f"Ignoring LINE message type: {event.message.type}")
        return

    user_id = event.source.userId
    if not user_id or not event.replyToken:
        logger.debug("LINE event without userId or replyToken, skipping")
        return

    if event.deliveryContext.isRedelivery:
        logger.info(f"LINE redelivery of event {event.webhookEventId} from {user_id}, processing again")

    try:
        account = await state.identity.resolve(user_id)
        image: Optional[ImagePayload] = None
        if event.message.type == "image":
            image = await state.line_client.get_message_content(event.message.id)
    except TransportError as e:
        logger.error(f"Could not prepare message {event.message.id} from {user_id}: {e}")
        await _send(request, event.replyToken, TextReply(body=TRY_AGAIN_LATER))
        return

    reply = await state.dispatcher.handle_message(
        account,
        event.message.text or "",
        image=image,
        sender_id=user_id,
    )
    await _send(request, event.replyToken, reply)


async def _send(request: Request, reply_token: str, reply):
    try:
        await request.app.state.line_client.reply(reply_token, reply)
    except TransportError as e:
        logger.error(f"Failed to send LINE reply: {e}")
