"""
Inbound email ingestion.

WHAT: Webhook payload -> supplier response -> tracker progress -> session messages
WHY: Supplier replies are the only signal that a procurement request moved
HOW: Tolerant payload parsing (several provider shapes), price extraction,
     latest-wins upsert, then one notification plus one analysis turn per
     affected session. Unrecognized payloads are logged and dropped.
"""

from email.utils import parseaddr
from typing import Any

import html2text

from ..models.procurement import InboundEmail, ProcurementProgress, TrackerNotification
from ..services.email_client import ResendEmailClient, get_email_client
from ..utils.exceptions import EmailDeliveryError, EmailNotConfiguredError
from ..utils.logger import get_logger
from .notifier import SessionNotifier, session_notifier
from .price_extractor import extract_price
from .procurement_tracker import ProcurementTracker, procurement_tracker, response_text
from .supplier_responses import upsert_supplier_response

logger = get_logger(__name__)

INBOUND_EVENT_TYPES = {"email.received", "email.inbound", "inbound.email"}


class InboundEmailProcessor:
    """
    Processes one inbound email webhook at a time.

    Usage:
        processor = InboundEmailProcessor()
        await processor.process_safely(payload)
    """

    def __init__(
        self,
        tracker: ProcurementTracker | None = None,
        notifier: SessionNotifier | None = None,
        email_client: ResendEmailClient | None = None
    ):
        self.tracker = tracker or procurement_tracker
        self.notifier = notifier or session_notifier
        self.email_client = email_client

    def parse_payload(self, payload: Any) -> InboundEmail | None:
        """
        Normalize a provider payload.

        Returns:
            InboundEmail, or None for other event types and payloads
            without a recognizable sender
        """
        if not isinstance(payload, dict):
            logger.info(f"Ignoring non-object webhook payload ({type(payload).__name__})")
            return None

        event_type = payload.get("type")
        if event_type and event_type not in INBOUND_EVENT_TYPES:
            logger.info(f"Ignoring webhook event type {event_type}")
            return None

        data = payload.get("data") if isinstance(payload.get("data"), dict) else {}
        name, address = _parse_sender(data.get("from") or payload.get("from"))
        if not address:
            logger.info("Ignoring inbound email without a recognizable sender")
            return None

        email_id = data.get("email_id") or data.get("id") or payload.get("email_id")
        return InboundEmail(
            sender_email=address,
            sender_name=name,
            subject=str(data.get("subject") or payload.get("subject") or ""),
            body=_extract_body(data) or _extract_body(payload),
            email_id=str(email_id) if email_id else None,
        )

    async def process(self, payload: Any) -> int:
        """
        Ingest one reply.

        Returns:
            Number of procurement requests the reply advanced
        """
        inbound = self.parse_payload(payload)
        if inbound is None:
            return 0

        if not inbound.body and inbound.email_id:
            inbound.body = await self._fetch_body(inbound.email_id)

        price = extract_price(inbound.body)
        if price is None:
            price = extract_price(inbound.subject)

        upsert_supplier_response(
            supplier_email=inbound.sender_email,
            supplier_name=inbound.sender_name,
            price=price,
            response_text=inbound.body or inbound.subject,
        )

        updates = self.tracker.record_response(inbound.sender_email)
        supplier_name = inbound.sender_name or inbound.sender_email
        by_session: dict[str, list[ProcurementProgress]] = {}
        for update in updates:
            if update.session_id:
                by_session.setdefault(update.session_id, []).append(update)

        # One notice and one analysis turn per session, however many of its requests matched
        for session_id, session_updates in by_session.items():
            delivered = self.notifier.deliver(TrackerNotification(
                session_id=session_id,
                request_id=",".join(u.request_id for u in session_updates),
                kind="response",
                text="\n".join(response_text(u, supplier_name, price) for u in session_updates),
            ))
            if delivered:
                parts = list(dict.fromkeys(u.part_description for u in session_updates))
                await self.notifier.request_analysis(session_id, ", ".join(parts))

        logger.info(
            f"Inbound email from {inbound.sender_email} (price: {price}) "
            f"matched {len(updates)} pending request(s)"
        )
        return len(updates)

    async def process_safely(self, payload: Any) -> int:
        """process(), with every failure logged instead of raised."""
        try:
            return await self.process(payload)
        except Exception:
            logger.exception("Inbound email processing failed")
            return 0

    async def _fetch_body(self, email_id: str) -> str:
        client = self.email_client or get_email_client()
        try:
            fetched = await client.get_received_email(email_id)
        except (EmailNotConfiguredError, EmailDeliveryError) as e:
            logger.warning(f"Could not fetch body of inbound email {email_id}: {e}")
            return ""
        return _extract_body(fetched) if isinstance(fetched, dict) else ""


def _parse_sender(sender: Any) -> tuple[str, str]:
    """(display name, lower-cased address) from the shapes providers send."""
    if isinstance(sender, list):
        sender = sender[0] if sender else None
    if isinstance(sender, dict):
        name = str(sender.get("name") or "")
        address = str(sender.get("email") or sender.get("address") or "")
        if "<" in address:
            parsed_name, address = parseaddr(address)
            name = name or parsed_name
    elif isinstance(sender, str):
        name, address = parseaddr(sender)
    else:
        return "", ""

    address = address.strip().lower()
    if "@" not in address:
        return "", ""
    return name.strip(), address


def _extract_body(data: dict[str, Any]) -> str:
    """Plain text body, falling back to stripped HTML."""
    for source in (data, data.get("body") if isinstance(data.get("body"), dict) else None):
        if not source:
            continue
        text = source.get("text")
        if isinstance(text, str) and text.strip():
            return text.strip()
        html = source.get("html")
        if isinstance(html, str) and html.strip():
            return _html_to_text(html)

    body = data.get("body")
    if isinstance(body, str) and body.strip():
        return body.strip()
    return ""


def _html_to_text(html: str) -> str:
    """Markdown-free text with entities decoded, one non-blank line per paragraph."""
    converter = html2text.HTML2Text()
    converter.ignore_images = True
    converter.ignore_links = True
    converter.ignore_emphasis = True
    converter.body_width = 0  # Don't wrap lines
    text = converter.handle(html)
    return "\n".join(" ".join(line.split()) for line in text.splitlines() if line.strip())


# Global processor instance
inbound_email_processor = InboundEmailProcessor()
