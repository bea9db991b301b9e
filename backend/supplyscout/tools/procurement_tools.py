"""
Procurement tools exposed to the assistant.

WHAT: Supplier discovery, catalog search, outreach, quote analysis, ordering
WHY: These are the only ways the assistant touches the database or sends email
HOW: One Tool subclass per capability; results are JSON-serializable dicts.
     Provider and database failures propagate to the executor, which turns
     them into tagged error results.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from ..core.config import settings
from ..core.database import get_db
from ..core.models import Part, ProcurementRequest, PurchaseOrder, SupplierResponse
from ..models.procurement import Supplier, SupplierContact
from ..services.procurement_tracker import procurement_tracker
from ..services.supplier_responses import rank_responses
from ..utils.exceptions import EmailDeliveryError, EmailNotConfiguredError
from ..utils.logger import get_logger
from .base import EMAIL_PATTERN, Tool, ToolContext, tool_error

logger = get_logger(__name__)

QUOTE_FOOTER = '\n\n---\nReply with your price quote: e.g., "Price: $450 per unit"'


class _ToolArguments(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)


class FindSuppliersTool(Tool):
    name = "find_suppliers"
    description = (
        "Find suppliers who previously sold a part, using purchase order history. "
        "Returns supplier names, emails, last price and last order date."
    )

    class Arguments(_ToolArguments):
        part_description: str = Field(..., min_length=1, description="Part name or description, e.g. 'M8 hex bolt'")

    async def execute(self, args: Arguments, context: ToolContext) -> dict[str, Any]:
        query = args.part_description.lower()
        with get_db() as db:
            parts = db.query(Part).filter(
                func.lower(Part.part_description).like(f"%{query}%")
            ).all()
            if not parts:
                return tool_error(f"No parts found matching '{args.part_description}'.", "not_found")

            descriptions = {part.part_number: part.part_description for part in parts}
            orders = db.query(PurchaseOrder).filter(
                PurchaseOrder.part_number.in_(list(descriptions))
            ).order_by(PurchaseOrder.order_date.desc(), PurchaseOrder.id.desc()).all()

        suppliers: list[Supplier] = []
        seen = set()
        for order in orders:
            key = (order.supplier_email.lower(), order.part_number)
            if key in seen:
                continue
            seen.add(key)
            suppliers.append(Supplier(
                name=order.supplier_name,
                email=order.supplier_email,
                part_number=order.part_number,
                part_description=descriptions[order.part_number],
                last_purchased=order.order_date,
                price=order.price,
            ))

        if not suppliers:
            return tool_error(
                f"Found matching parts ({', '.join(descriptions)}) but no suppliers in purchase history.",
                "not_found",
            )

        return {
            "suppliers": [
                {
                    "name": s.name,
                    "email": s.email,
                    "part_number": s.part_number,
                    "part_description": s.part_description,
                    "last_purchased": s.last_purchased.isoformat() if s.last_purchased else None,
                    "price": s.price,
                    "rating": s.rating,
                }
                for s in suppliers
            ],
            "count": len(suppliers),
        }


class SearchPartsCatalogTool(Tool):
    name = "search_parts_catalog"
    description = "Browse the parts catalog. Without a search term, lists the first catalog entries."

    class Arguments(_ToolArguments):
        search_term: str | None = Field(default=None, description="Optional text to match in part descriptions")

    async def execute(self, args: Arguments, context: ToolContext) -> dict[str, Any]:
        with get_db() as db:
            query = db.query(Part).order_by(Part.part_description.asc())
            if args.search_term:
                query = query.filter(func.lower(Part.part_description).like(f"%{args.search_term.lower()}%"))
            else:
                query = query.limit(settings.CATALOG_PAGE_SIZE)
            parts = query.all()

        listing = [{"part_number": p.part_number, "part_description": p.part_description} for p in parts]
        if not listing:
            content = (
                f"No parts found matching '{args.search_term}'." if args.search_term
                else "The parts catalog is empty."
            )
        else:
            header = (
                f"Parts matching '{args.search_term}':" if args.search_term
                else f"Parts catalog (first {len(listing)}):"
            )
            lines = [f"- {p['part_number']}: {p['part_description']}" for p in listing]
            content = "\n".join([header, *lines])

        return {"content": content, "parts": listing, "count": len(listing)}


class SendSupplierEmailTool(Tool):
    name = "send_supplier_email"
    description = (
        "Send one email to a single supplier and track their reply. "
        "Prefer send_bulk_procurement_request when contacting two or more suppliers."
    )
    injected_fields = ("session_id",)

    class Arguments(_ToolArguments):
        supplier_email: str = Field(..., pattern=EMAIL_PATTERN, description="Recipient email")
        supplier_name: str = Field(default="", description="Recipient display name")
        subject: str = Field(..., min_length=1, description="Subject line; also used as the tracked part description")
        message: str = Field(..., min_length=1, description="Email body")
        session_id: str | None = None

    async def execute(self, args: Arguments, context: ToolContext) -> dict[str, Any]:
        email_id = await context.email_client.send_email(
            args.supplier_email, args.subject, f"{args.message}{QUOTE_FOOTER}"
        )

        request = None
        try:
            request = procurement_tracker.open_request(
                args.session_id or context.session_id,
                args.subject,
                [SupplierContact(email=args.supplier_email, name=args.supplier_name)],
            )
        except SQLAlchemyError as e:
            # The email already went out; report success without tracking
            logger.error(f"Could not track email to {args.supplier_email}: {e}")

        recipient = args.supplier_name or args.supplier_email
        return {
            "success": True,
            "message": f"Email sent to {recipient} <{args.supplier_email}>.",
            "email_id": email_id,
            "procurement_id": request.id if request else None,
            "tracking_enabled": request is not None,
        }


class SendBulkProcurementRequestTool(Tool):
    name = "send_bulk_procurement_request"
    description = (
        "Email a price quote request to several suppliers at once and track every reply. "
        "Use this whenever two or more suppliers should be contacted."
    )
    injected_fields = ("session_id",)

    class Arguments(_ToolArguments):
        part_description: str = Field(..., min_length=1, description="Part being quoted")
        suppliers: list[SupplierContact] = Field(..., min_length=1, description="Suppliers to contact")
        message: str | None = Field(default=None, description="Optional custom email body")
        session_id: str | None = None

    async def execute(self, args: Arguments, context: ToolContext) -> dict[str, Any]:
        subject = f"Price Quote Request: {args.part_description}"
        body = (args.message or default_request_body(args.part_description)) + QUOTE_FOOTER

        sent: list[SupplierContact] = []
        errors: list[dict[str, str]] = []
        for supplier in args.suppliers:
            try:
                await context.email_client.send_email(supplier.email, subject, body)
                sent.append(supplier)
            except EmailNotConfiguredError:
                raise
            except EmailDeliveryError as e:
                logger.warning(f"Procurement email to {supplier.email} failed: {e}")
                errors.append({"email": supplier.email, "error": str(e)})
            except Exception as e:
                # Suppliers already emailed must still be tracked
                logger.exception(f"Procurement email to {supplier.email} failed unexpectedly")
                errors.append({"email": supplier.email, "error": f"{type(e).__name__}: {e}"})

        total = len(args.suppliers)
        if not sent:
            return tool_error(
                f"Failed to send any of the {total} procurement requests.", "upstream", errors=errors
            )

        request = None
        try:
            request = procurement_tracker.open_request(
                args.session_id or context.session_id, args.part_description, sent
            )
        except SQLAlchemyError as e:
            logger.error(f"Could not track procurement request for '{args.part_description}': {e}")

        summary = f"Successfully sent {len(sent)}/{total} procurement requests for \"{args.part_description}\"."
        if request is not None:
            summary += f" Replies will be tracked for {procurement_tracker.ttl_days} days."
        return {
            "success": True,
            "procurement_id": request.id if request else None,
            "tracking_enabled": request is not None,
            "emails_sent": len(sent),
            "total_suppliers": total,
            "errors": errors or None,
            "summary": summary,
        }


def default_request_body(part_description: str) -> str:
    return (
        f"Hello,\n\nWe are requesting a price quote for: {part_description}.\n"
        f"Please reply with your best price per unit, available quantity and lead time.\n\n"
        f"Thank you."
    )


class GetSupplierResponsesTool(Tool):
    name = "get_supplier_responses"
    description = (
        "Read the supplier replies received so far and identify the lowest quoted price. "
        "Optionally limit to suppliers contacted about a given part."
    )

    class Arguments(_ToolArguments):
        part_description: str | None = Field(default=None, description="Optional part to restrict the analysis to")

    async def execute(self, args: Arguments, context: ToolContext) -> dict[str, Any]:
        emails = None
        if args.part_description:
            with get_db() as db:
                requests = db.query(ProcurementRequest).filter(
                    func.lower(ProcurementRequest.part_description).like(f"%{args.part_description.lower()}%")
                ).all()
            if requests:
                emails = {email for request in requests for email in request.contacted_emails()}

        ranked = rank_responses(emails)
        if not ranked:
            return {"message": "No supplier responses received yet.", "total_responses": 0}

        best = ranked[0] if ranked[0].price is not None else None
        result = {
            "total_responses": len(ranked),
            "best_option": _response_view(best) if best else None,
            "current_supplier_prices": [_response_view(r) for r in ranked],
        }
        if best is not None:
            result["analysis"] = (
                f"Best price: ${best.price:,.2f} per unit from {best.supplier_name or best.supplier_email}."
            )
        else:
            result["analysis"] = "Suppliers replied, but none quoted a recognizable price."
        return result


def _response_view(response: SupplierResponse) -> dict[str, Any]:
    return {
        "supplier_name": response.supplier_name,
        "supplier_email": response.supplier_email,
        "price": response.price,
        "received_at": response.created_at.isoformat() if response.created_at else None,
        "response_text": (response.response_text or "")[:500],
    }


class PlaceOrderTool(Tool):
    name = "place_order"
    description = "Place a purchase order with a supplier. Only call after the user confirms."

    class Arguments(_ToolArguments):
        supplier_email: str = Field(..., pattern=EMAIL_PATTERN)
        supplier_name: str = Field(..., min_length=1)
        part_number: str = Field(..., min_length=1)
        quantity: int = Field(..., gt=0)
        price: float = Field(..., ge=0, description="Unit price")

    async def execute(self, args: Arguments, context: ToolContext) -> dict[str, Any]:
        with get_db() as db:
            order = PurchaseOrder(
                supplier_name=args.supplier_name,
                supplier_email=args.supplier_email,
                part_number=args.part_number,
                quantity=args.quantity,
                price=args.price,
            )
            db.add(order)
            db.flush()
            order_id = order.id
            order_date = order.order_date

        total = round(args.quantity * args.price, 2)
        logger.info(f"Order {order_id} placed with {args.supplier_email}: {args.quantity} x {args.part_number}")
        return {
            "success": True,
            "order_id": order_id,
            "message": (
                f"Order placed with {args.supplier_name}: {args.quantity} x {args.part_number} "
                f"at ${args.price:,.2f} per unit (total ${total:,.2f})."
            ),
            "order": {
                "supplier_name": args.supplier_name,
                "supplier_email": args.supplier_email,
                "part_number": args.part_number,
                "quantity": args.quantity,
                "price": args.price,
                "order_date": order_date.isoformat() if order_date else None,
            },
            "total": total,
        }


PROCUREMENT_TOOLS: list[type[Tool]] = [
    FindSuppliersTool,
    SearchPartsCatalogTool,
    SendSupplierEmailTool,
    SendBulkProcurementRequestTool,
    GetSupplierResponsesTool,
    PlaceOrderTool,
]
