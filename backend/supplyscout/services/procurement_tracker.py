"""
Procurement request tracker.

WHAT: Durable state machine for outstanding requests-for-quote
WHY: Supplier replies arrive hours or days after outreach, after the chat
     turn that sent them is long gone
HOW: Rows in procurement_requests; a periodic sweep and per-reply ingestion
     recompute responded vs. contacted suppliers by email. The tracker only
     computes notifications; delivering them is the notifier's job.

Lifecycle: pending -> completed (everyone replied) | pending -> expired (TTL).
"""

from datetime import datetime, timedelta
from typing import Iterable
from uuid import uuid4

from ..core.config import settings
from ..core.database import get_db
from ..core.models import ProcurementRequest, ProcurementStatus
from ..models.procurement import ProcurementProgress, SupplierContact, TrackerNotification
from ..utils.logger import get_logger
from ..utils.text import join_names
from .supplier_responses import latest_response_times, normalize_email

logger = get_logger(__name__)


class ProcurementTracker:
    """
    Open, reconcile and expire procurement requests.

    A supplier counts as responded when a reply from its email was received
    at or after the moment this request contacted it; replies to earlier
    requests do not complete a new one. This narrows the plain by-email
    match: responded + pending still equals contacted, but a reply stored
    before open_request() sits in pending until the supplier writes again.
    """

    def __init__(self, ttl_days: int | None = None):
        self.ttl_days = ttl_days or settings.PROCUREMENT_TTL_DAYS

    def open_request(
        self,
        session_id: str | None,
        part_description: str,
        suppliers: Iterable[SupplierContact],
        now: datetime | None = None
    ) -> ProcurementRequest:
        """
        Record that a set of suppliers was just contacted.

        Raises:
            ValueError: If no suppliers are given
        """
        now = now or datetime.utcnow()
        contacted = []
        seen = set()
        for supplier in suppliers:
            email = normalize_email(supplier.email)
            if email in seen:
                continue
            seen.add(email)
            contacted.append({
                "email": email,
                "name": supplier.name or email,
                "contacted_at": now.isoformat(),
            })
        if not contacted:
            raise ValueError("A procurement request needs at least one supplier")

        with get_db() as db:
            request = ProcurementRequest(
                id=str(uuid4()),
                session_id=session_id,
                part_description=part_description,
                suppliers_contacted=contacted,
                status=ProcurementStatus.PENDING,
                created_at=now,
                expires_at=now + timedelta(days=self.ttl_days),
            )
            db.add(request)

        logger.info(
            f"Opened procurement request {request.id} for '{part_description}' "
            f"({len(contacted)} suppliers, session {session_id}, expires {request.expires_at:%Y-%m-%d})"
        )
        return request

    def get_request(self, request_id: str) -> ProcurementRequest | None:
        with get_db() as db:
            return db.get(ProcurementRequest, request_id)

    def record_response(self, supplier_email: str, now: datetime | None = None) -> list[ProcurementProgress]:
        """
        Progress of every live request that contacted this supplier.

        Status is left alone; completion is the sweep's decision.
        """
        now = now or datetime.utcnow()
        email = normalize_email(supplier_email)

        with get_db() as db:
            live = db.query(ProcurementRequest).filter(
                ProcurementRequest.status == ProcurementStatus.PENDING,
                ProcurementRequest.expires_at >= now,
            ).all()
        matching = [request for request in live if email in request.contacted_emails()]
        if not matching:
            logger.info(f"No pending procurement request references {email}")
            return []

        received = latest_response_times(
            {e for request in matching for e in request.contacted_emails()}
        )
        updates = [self._progress(request, received) for request in matching]
        for update in updates:
            logger.info(
                f"Request {update.request_id}: {update.responded}/{update.contacted} responded "
                f"after reply from {email}"
            )
        return updates

    def run_sweep(self, now: datetime | None = None) -> list[TrackerNotification]:
        """
        Reconcile every pending request.

        WHAT: Complete, expire, or report on each pending request
        WHY: Catch completions and expiries even when no webhook fires
        HOW: One transaction; stamps last_check_at on every request visited.
             Requests already completed or expired are never revisited.

        Returns:
            Notifications to deliver, in request creation order
        """
        now = now or datetime.utcnow()
        notifications: list[TrackerNotification] = []
        counts = {"completed": 0, "expired": 0, "status": 0}

        with get_db() as db:
            pending = db.query(ProcurementRequest).filter(
                ProcurementRequest.status == ProcurementStatus.PENDING
            ).order_by(ProcurementRequest.created_at.asc()).all()
            received = latest_response_times()

            for request in pending:
                request.last_check_at = now
                progress = self._progress(request, received)

                if now > request.expires_at:
                    request.status = ProcurementStatus.EXPIRED
                    kind, text = "expired", expiry_text(progress)
                elif progress.is_complete:
                    request.status = ProcurementStatus.COMPLETED
                    kind, text = "completed", completion_text(progress)
                else:
                    kind, text = "status", status_text(progress)

                counts[kind] += 1
                if request.session_id:
                    notifications.append(TrackerNotification(
                        session_id=request.session_id,
                        request_id=request.id,
                        kind=kind,
                        text=text,
                    ))

        logger.info(
            f"Procurement sweep: {len(pending)} pending, {counts['completed']} completed, "
            f"{counts['expired']} expired, {counts['status']} still waiting"
        )
        return notifications

    @staticmethod
    def _progress(request: ProcurementRequest, received: dict[str, datetime]) -> ProcurementProgress:
        responded = 0
        pending_names = []
        for supplier in request.suppliers_contacted or []:
            email = normalize_email(supplier["email"])
            contacted_at = _parse_timestamp(supplier.get("contacted_at"))
            received_at = received.get(email)
            if received_at is not None and (contacted_at is None or received_at >= contacted_at):
                responded += 1
            else:
                pending_names.append(supplier.get("name") or email)

        return ProcurementProgress(
            request_id=request.id,
            session_id=request.session_id,
            part_description=request.part_description,
            contacted=len(request.suppliers_contacted or []),
            responded=responded,
            pending_suppliers=pending_names,
        )


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def response_text(progress: ProcurementProgress, supplier_name: str, price: float | None) -> str:
    quote = f"quoted ${price:,.2f} per unit" if price is not None else "replied without a clear price"
    text = (
        f"New supplier response: {supplier_name} {quote} for \"{progress.part_description}\". "
        f"{progress.responded}/{progress.contacted} suppliers have responded."
    )
    if progress.pending_suppliers:
        text += f" Still waiting on {join_names(progress.pending_suppliers)}."
    return text


def status_text(progress: ProcurementProgress) -> str:
    return (
        f"Status update for \"{progress.part_description}\": "
        f"{progress.responded}/{progress.contacted} suppliers have responded. "
        f"Still waiting on {join_names(progress.pending_suppliers)}."
    )


def completion_text(progress: ProcurementProgress) -> str:
    return (
        f"All {progress.contacted} suppliers have responded for \"{progress.part_description}\". "
        f"Ask me to compare the quotes or place an order."
    )


def expiry_text(progress: ProcurementProgress) -> str:
    text = (
        f"The quote request for \"{progress.part_description}\" expired with "
        f"{progress.responded}/{progress.contacted} responses."
    )
    if progress.pending_suppliers:
        text += f" No reply from {join_names(progress.pending_suppliers)}."
    return text


# Global tracker instance
procurement_tracker = ProcurementTracker()
