"""Bill rendering and chat delivery for orders."""

import logging
from typing import Literal, Optional

from fastapi import APIRouter, Query, Request
from fastapi.responses import HTMLResponse, PlainTextResponse
from pydantic import BaseModel, Field

from tableat.api.deps import Store, WhatsApp
from tableat.core.errors import MessagingError, ValidationError
from tableat.core.rate_limit import limiter
from tableat.services import invoice_service, order_service, restaurant_service
from tableat.services.invoice_service import Invoice
from tableat.services.whatsapp_service import chat_link

logger = logging.getLogger(__name__)

router = APIRouter()


class BillSendRequest(BaseModel):
    phone: Optional[str] = Field(default=None, max_length=20)
    as_document: bool = False
    discount_percentage: float = Field(default=0, ge=0, le=100)


def _invoice(store, restaurant_id: str, order_id: str, discount_percentage: float = 0) -> Invoice:
    restaurant = restaurant_service.require_restaurant(store, restaurant_id)
    order = order_service.require_order(store, restaurant_id, order_id)
    return invoice_service.build_invoice(restaurant, order, discount_percentage=discount_percentage)


@router.get("/{order_id}/bill")
@limiter.limit("30/minute")
def get_bill(
    request: Request,
    store: Store,
    restaurant_id: str,
    order_id: str,
    format: Literal["html", "base64", "text"] = Query("html"),
    discount: float = Query(0, ge=0, le=100),
):
    invoice = _invoice(store, restaurant_id, order_id, discount)
    if format == "text":
        return PlainTextResponse(invoice_service.render_invoice_text(invoice))
    if format == "base64":
        return {
            "bill_number": invoice.bill_number,
            "filename": f"bill_{order_id}.html",
            "content": invoice_service.render_invoice_base64(invoice),
        }
    return HTMLResponse(invoice_service.render_invoice_html(invoice))


@router.post("/{order_id}/bill/send")
@limiter.limit("10/minute")
async def send_bill(
    request: Request,
    store: Store,
    whatsapp: WhatsApp,
    restaurant_id: str,
    order_id: str,
    data: BillSendRequest,
):
    """Send the bill over WhatsApp; a failure answers 502 with a wa.me fallback link."""
    invoice = _invoice(store, restaurant_id, order_id, data.discount_percentage)
    phone = data.phone or invoice.customer_phone
    if not phone:
        raise ValidationError("No phone number to send the bill to")

    text = invoice_service.render_invoice_text(invoice)
    if data.as_document:
        result = await whatsapp.send_document(
            phone,
            caption=f"Bill {invoice.bill_number}",
            document_base64=invoice_service.render_invoice_base64(invoice),
            filename=f"bill_{order_id}.html",
        )
    else:
        result = await whatsapp.send_text(phone, text)

    if not result.success:
        raise MessagingError(
            result.error or "Failed to send bill",
            fallback_url=result.fallback_url or chat_link(phone, text),
        )
    return result.to_dict()
