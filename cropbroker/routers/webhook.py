"""WhatsApp webhook: subscription verification and inbound messages."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import PlainTextResponse

from cropbroker.config import Settings, get_settings
from cropbroker.repositories import Repositories, get_repositories
from cropbroker.schemas.webhook import WebhookEnvelope
from cropbroker.services.chat import handle_incoming_message
from cropbroker.services.whatsapp import WhatsAppNotifier, get_notifier

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/webhook", response_class=PlainTextResponse, summary="Verify webhook")
async def verify_webhook(
    mode: str | None = Query(default=None, alias="hub.mode"),
    token: str | None = Query(default=None, alias="hub.verify_token"),
    challenge: str | None = Query(default=None, alias="hub.challenge"),
    settings: Settings = Depends(get_settings),
) -> PlainTextResponse:
    """Echo the challenge back when the verify token matches."""
    if not mode or not token:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing verification parameters",
        )
    if mode != "subscribe" or token != settings.whatsapp_verify_token:
        logger.warning("Webhook verification failed", extra={"mode": mode})
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Verification failed")

    logger.info("Webhook verified")
    return PlainTextResponse(challenge or "")


@router.post("/webhook", summary="Receive WhatsApp messages")
async def receive_webhook(
    envelope: WebhookEnvelope,
    repos: Repositories = Depends(get_repositories),
    notifier: WhatsAppNotifier = Depends(get_notifier),
    settings: Settings = Depends(get_settings),
) -> dict:
    """Handle each inbound text message and acknowledge the delivery.

    Command failures are answered over WhatsApp; only a failure outside
    command handling returns 500.
    """
    for message in envelope.text_messages():
        await handle_incoming_message(
            repos, notifier, settings, message.sender, message.text.body
        )
    return {"status": "ok"}
