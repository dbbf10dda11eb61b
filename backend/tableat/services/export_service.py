"""Excel exports of customers and orders."""

import html
import io
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from openpyxl import Workbook, load_workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side

from tableat.core.config import settings
from tableat.schemas.base import as_utc
from tableat.schemas.customer import Customer
from tableat.schemas.order import Order
from tableat.services.customer_service import customer_tier

logger = logging.getLogger(__name__)

CUSTOMER_COLUMNS = [
    ("S.No", 6),
    ("Name", 25),
    ("Phone", 16),
    ("Email", 28),
    ("Total Orders", 13),
    ("Last Visit", 20),
    ("Registration Date", 18),
    ("Favorite Items", 45),
    ("Status", 10),
]

ORDER_COLUMNS = [
    ("Order ID", 22),
    ("Customer Name", 20),
    ("Customer Phone", 15),
    ("Table Number", 8),
    ("Items", 50),
    ("Total Items", 12),
    ("Total Amount", 12),
    ("Order Status", 12),
    ("Order Source", 15),
    ("Notes", 30),
    ("Created", 20),
]


def _local(moment: Optional[datetime]) -> Optional[datetime]:
    if moment is None:
        return None
    return as_utc(moment).astimezone(settings.tzinfo)


def _format_datetime(moment: Optional[datetime]) -> str:
    local = _local(moment)
    return local.strftime("%d/%m/%Y %I:%M %p") if local else ""


def _format_date(moment: Optional[datetime]) -> str:
    local = _local(moment)
    return local.strftime("%d/%m/%Y") if local else ""


def customer_row(index: int, customer: Customer) -> List[Any]:
    return [
        index,
        customer.name,
        customer.phone,
        customer.email or "",
        customer.total_orders,
        _format_datetime(customer.last_visit),
        _format_date(customer.created_at),
        ", ".join(customer.favorite_items) if customer.favorite_items else "None",
        customer_tier(customer.total_orders),
    ]


def order_row(order: Order) -> List[Any]:
    items = "; ".join(
        f"{item.quantity}x {item.name} ({settings.currency_symbol}{item.price:g})" for item in order.items
    )
    return [
        order.id,
        order.customer_name,
        order.customer_phone,
        order.table_number,
        items,
        len(order.items),
        order.total_amount,
        str(order.status).upper(),
        order.order_source or "direct_order",
        order.notes,
        _format_datetime(order.created_at),
    ]


def cell_text(value: str) -> str:
    """Stored text is HTML-escaped; sheets get the plain text minus control characters."""
    return ILLEGAL_CHARACTERS_RE.sub("", html.unescape(value))


def _write_sheet(title: str, columns: List[tuple], rows: List[List[Any]]) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = title

    header_font = Font(bold=True, color="FFFFFF")
    header_fill = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
    border = Border(
        left=Side(style="thin"),
        right=Side(style="thin"),
        top=Side(style="thin"),
        bottom=Side(style="thin"),
    )

    for col, (header, width) in enumerate(columns, 1):
        cell = ws.cell(row=1, column=col, value=header)
        cell.font = header_font
        cell.fill = header_fill
        cell.border = border
        cell.alignment = Alignment(horizontal="center")
        ws.column_dimensions[cell.column_letter].width = width

    for row_idx, values in enumerate(rows, 2):
        for col, value in enumerate(values, 1):
            if isinstance(value, str):
                cell = ws.cell(row=row_idx, column=col, value=cell_text(value))
                # never let user text become a formula
                cell.data_type = "s"
            else:
                cell = ws.cell(row=row_idx, column=col, value=value)
            cell.border = border

    ws.freeze_panes = "A2"
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def export_customers_xlsx(customers: List[Customer]) -> bytes:
    """One row per customer, in the order given."""
    rows = [customer_row(i, customer) for i, customer in enumerate(customers, 1)]
    logger.info(f"Exporting {len(rows)} customers to xlsx")
    return _write_sheet("Customers", CUSTOMER_COLUMNS, rows)


def export_orders_xlsx(orders: List[Order]) -> bytes:
    rows = [order_row(order) for order in orders]
    logger.info(f"Exporting {len(rows)} orders to xlsx")
    return _write_sheet("Orders", ORDER_COLUMNS, rows)


def read_customer_export(content: bytes) -> List[Dict[str, Any]]:
    """Read an exported customer sheet back into one dict per row."""
    wb = load_workbook(io.BytesIO(content), read_only=True)
    try:
        ws = wb["Customers"]
        rows = ws.iter_rows(values_only=True)
        headers = [str(h) for h in next(rows, ())]
        return [dict(zip(headers, row)) for row in rows if any(v is not None for v in row)]
    finally:
        wb.close()
