"""
Inbound email webhook.

WHAT: Receives email events from the email provider
WHY: Supplier replies drive procurement tracking
HOW: Acknowledge immediately, process in a background task; never fails
"""

from typing import Any

from fastapi import APIRouter, BackgroundTasks, Request

from ....models.api_schemas import WebhookAck
from ....services.email_ingestion import inbound_email_processor
from ....utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.post("/webhooks/emails", response_model=WebhookAck)
async def receive_email(request: Request, background_tasks: BackgroundTasks):
    """Accept any payload; malformed or unmatched emails are only logged."""
    payload: Any = None
    try:
        payload = await request.json()
    except ValueError:
        logger.warning("Inbound email webhook with a non-JSON body")
        return WebhookAck()

    background_tasks.add_task(inbound_email_processor.process_safely, payload)
    return WebhookAck()
