"""Bill / invoice generation for orders.

Amounts are computed with ``Decimal`` and rounded half-up to two places.
An optional bill discount (a percentage) comes off the subtotal first;
tax is a plain percentage of what remains, applied only when the
restaurant has tax enabled with a positive rate.

Bill numbers look like ``BT/2026-27/007``: restaurant initials, the
calendar year of the order with the next year's last two digits, and the
daily order number (or the last three characters of the order id).
"""

import base64
import html
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path
from typing import List, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from tableat.core.config import settings
from tableat.core.errors import ValidationError
from tableat.schemas.base import as_utc, utcnow
from tableat.schemas.order import Order, OrderType
from tableat.schemas.restaurant import Restaurant

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"
CENT = Decimal("0.01")
DIVIDER = "━━━━━━━━━━━━━━━━"


def money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(value: Decimal) -> str:
    return f"{settings.currency_symbol}{value:.2f}"


def plain(value: Optional[str]) -> str:
    """Stored text is already HTML-escaped; undo it before re-escaping on render."""
    return html.unescape(value or "")


_env = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=select_autoescape(["html"]),
)
_env.filters["money"] = format_money
_env.filters["plain"] = plain


@dataclass(frozen=True)
class InvoiceLine:
    name: str
    quantity: int
    unit_price: Decimal
    total: Decimal
    notes: Optional[str] = None


@dataclass(frozen=True)
class Invoice:
    bill_number: str
    restaurant_name: str
    address: str
    phone: str
    fssai_no: str
    gst_no: Optional[str]
    customer_name: str
    customer_phone: str
    table_number: int
    is_pickup: bool
    notes: str
    issued_at: datetime
    lines: List[InvoiceLine]
    subtotal: Decimal
    discount_percentage: Decimal
    discount_amount: Decimal
    tax_enabled: bool
    tax_rate: Decimal
    tax_amount: Decimal
    total: Decimal

    @property
    def show_discount(self) -> bool:
        return self.discount_amount > 0

    @property
    def discount_label(self) -> str:
        return f"{self.discount_percentage.normalize():f}"

    @property
    def show_tax(self) -> bool:
        return self.tax_enabled and self.tax_rate > 0

    @property
    def tax_rate_label(self) -> str:
        return f"{self.tax_rate.normalize():f}"


def display_name(restaurant_name: str) -> str:
    return restaurant_name.replace("_", " ")


def restaurant_initials(restaurant_name: str) -> str:
    words = display_name(restaurant_name).split()
    return "".join(word[0] for word in words).upper()[:2]


def financial_year(moment: datetime) -> str:
    return f"{moment.year}-{str(moment.year + 1)[-2:]}"


def bill_number(restaurant_name: str, order: Order, issued_at: datetime) -> str:
    if order.daily_order_number:
        sequence = str(order.daily_order_number).zfill(3)
    else:
        sequence = (order.id or "")[-3:]
    return f"{restaurant_initials(restaurant_name)}/{financial_year(issued_at)}/{sequence}"


def build_invoice(
    restaurant: Restaurant,
    order: Order,
    tax_enabled: Optional[bool] = None,
    tax_rate: Optional[float] = None,
    discount_percentage: float = 0,
) -> Invoice:
    """Compute every figure of the bill; tax settings default to the restaurant's."""
    if not 0 <= discount_percentage <= 100:
        raise ValidationError("Discount must be between 0 and 100 percent")
    tax_enabled = restaurant.tax_enabled if tax_enabled is None else tax_enabled
    rate = Decimal(str(restaurant.tax_rate if tax_rate is None else tax_rate))

    lines = []
    for item in order.items:
        unit_price = money(item.price)
        lines.append(InvoiceLine(
            name=item.name,
            quantity=item.quantity,
            unit_price=unit_price,
            total=money(unit_price * item.quantity),
            notes=item.notes,
        ))
    subtotal = money(sum((line.total for line in lines), Decimal("0")))
    discount = Decimal(str(discount_percentage))
    discount_amount = money(subtotal * discount / 100)
    taxable = subtotal - discount_amount
    tax_amount = money(taxable * rate / 100) if tax_enabled and rate > 0 else money(0)

    issued_at = as_utc(order.created_at or utcnow()).astimezone(settings.tzinfo)
    return Invoice(
        bill_number=bill_number(restaurant.name or restaurant.id or "", order, issued_at),
        restaurant_name=display_name(restaurant.name or restaurant.id or ""),
        address=restaurant.address,
        phone=restaurant.phone,
        fssai_no=restaurant.fssai_no,
        gst_no=restaurant.gst_no,
        customer_name=order.customer_name,
        customer_phone=order.customer_phone,
        table_number=order.table_number,
        is_pickup=order.order_type == OrderType.PICKUP,
        notes=order.notes,
        issued_at=issued_at,
        lines=lines,
        subtotal=subtotal,
        discount_percentage=discount,
        discount_amount=discount_amount,
        tax_enabled=bool(tax_enabled),
        tax_rate=rate,
        tax_amount=tax_amount,
        total=money(taxable + tax_amount),
    )


def render_invoice_html(invoice: Invoice) -> str:
    template = _env.get_template("invoice.html")
    return template.render(invoice=invoice, brand_name=settings.brand_name)


def render_invoice_base64(invoice: Invoice) -> str:
    return base64.b64encode(render_invoice_html(invoice).encode("utf-8")).decode("ascii")


def render_invoice_text(invoice: Invoice) -> str:
    """Chat-friendly bill with WhatsApp ``*bold*`` markers."""
    lines = [
        f"🧾 *{plain(invoice.restaurant_name).upper()}*",
        plain(invoice.address),
        f"📞 {invoice.phone}",
        f"🍽️ FSSAI: {invoice.fssai_no}",
    ]
    if invoice.gst_no:
        lines.append(f"💼 GST: {invoice.gst_no}")
    lines += [
        DIVIDER,
        "*INVOICE*",
        DIVIDER,
        f"📅 Date: {invoice.issued_at.strftime('%d/%m/%Y')}",
        f"🕐 Time: {invoice.issued_at.strftime('%I:%M %p')}",
        f"👤 Customer: {plain(invoice.customer_name)}",
        "📦 Order Type: Pickup" if invoice.is_pickup else f"🍽️ Table: {invoice.table_number}",
        f"🆔 Bill No.: {invoice.bill_number}",
        "",
        "📋 *ORDER DETAILS:*",
    ]
    lines += [f"{line.quantity}x {plain(line.name)} - {format_money(line.total)}" for line in invoice.lines]
    lines += [DIVIDER, f"💰 Total Value: {format_money(invoice.subtotal)}"]
    if invoice.show_discount:
        lines.append(f"🎁 Discount ({invoice.discount_label}%): -{format_money(invoice.discount_amount)}")
    if invoice.show_tax:
        lines += [f"🏷️ Tax ({invoice.tax_rate_label}%): {format_money(invoice.tax_amount)}", DIVIDER]
    lines += [
        f"💵 *TOTAL AMOUNT: {format_money(invoice.total)}*",
        "",
        "Thank you for dining with us! 🙏",
        "Visit us again soon! ✨",
        "",
        f"Powered by {settings.brand_name} 🍽️",
    ]
    return "\n".join(lines)
