"""Table management and occupancy.

Tables are stored under ``restaurants/{rid}/tables`` with the table number
as document id, so numbers are unique per restaurant.

Occupancy has two writers: the manual toggle and order placement/clearing.
Nothing links them, so the flag can drift from the set of open orders;
``sync_tables_with_orders`` recomputes it from the orders on demand.
"""

import logging
from typing import Callable, Dict, List, Optional

from tableat.core.errors import NotFoundError, ValidationError
from tableat.db.store import Collection, DocumentStore, Subscription, collection_path
from tableat.schemas.base import utcnow
from tableat.schemas.order import OPEN_ORDER_STATUSES, Order
from tableat.schemas.table import Table, TableCreate
from tableat.services.subscriptions import list_records, subscribe_records

logger = logging.getLogger(__name__)


def _tables_path(restaurant_id: str) -> str:
    return collection_path(restaurant_id, Collection.TABLES)


def table_doc_id(table_number: int) -> str:
    return str(table_number)


def get_table(store: DocumentStore, restaurant_id: str, table_number: int) -> Optional[Table]:
    doc_id = table_doc_id(table_number)
    data = store.get(_tables_path(restaurant_id), doc_id)
    return Table.from_document(doc_id, data) if data is not None else None


def list_tables(store: DocumentStore, restaurant_id: str) -> List[Table]:
    return list_records(store, restaurant_id, Collection.TABLES, Table)


def add_table(store: DocumentStore, restaurant_id: str, data: TableCreate) -> str:
    path = _tables_path(restaurant_id)
    doc_id = table_doc_id(data.table_number)
    if store.get(path, doc_id) is not None:
        raise ValidationError(f"Table {data.table_number} already exists")

    table = Table(
        table_number=data.table_number,
        capacity=data.capacity,
        occupied=False,
        updated_at=utcnow(),
    )
    store.set(path, doc_id, table.to_document())
    logger.info(f"Restaurant {restaurant_id}: table {data.table_number} added")
    return doc_id


def delete_table(store: DocumentStore, restaurant_id: str, table_number: int) -> None:
    path = _tables_path(restaurant_id)
    doc_id = table_doc_id(table_number)
    if store.get(path, doc_id) is None:
        raise NotFoundError(f"Table {table_number} not found")
    store.delete(path, doc_id)


def set_table_occupancy(
    store: DocumentStore,
    restaurant_id: str,
    table_number: int,
    occupied: bool,
    order_id: Optional[str] = None,
) -> None:
    """Set the flag; a freed table also drops its current order link."""
    path = _tables_path(restaurant_id)
    doc_id = table_doc_id(table_number)
    if store.get(path, doc_id) is None:
        raise NotFoundError(f"Table {table_number} not found")
    store.update(path, doc_id, {
        "occupied": occupied,
        "current_order_id": order_id if occupied else None,
        "updated_at": utcnow(),
    })


def toggle_table_occupancy(store: DocumentStore, restaurant_id: str, table_number: int) -> bool:
    """Flip the occupied flag and return the value written."""
    table = get_table(store, restaurant_id, table_number)
    if table is None:
        raise NotFoundError(f"Table {table_number} not found")
    occupied = not table.occupied
    set_table_occupancy(
        store,
        restaurant_id,
        table_number,
        occupied,
        order_id=table.current_order_id if occupied else None,
    )
    return occupied


def mark_table_for_order(
    store: DocumentStore,
    restaurant_id: str,
    table_number: int,
    occupied: bool,
    order_id: Optional[str] = None,
) -> bool:
    """Best-effort occupancy change driven by an order; never raises.

    Orders may reference table numbers that were never created (pickup
    orders use table 0), so a missing table is skipped.
    """
    if table_number <= 0:
        return False
    try:
        set_table_occupancy(store, restaurant_id, table_number, occupied, order_id)
    except NotFoundError:
        logger.debug(f"Restaurant {restaurant_id}: no table {table_number} to update")
        return False
    except Exception:
        logger.exception(f"Restaurant {restaurant_id}: failed to update table {table_number}")
        return False
    return True


def open_orders_by_table(store: DocumentStore, restaurant_id: str, exclude: Optional[str] = None) -> Dict[int, str]:
    """Most recent open order id per table number."""
    open_orders: Dict[int, str] = {}
    # orders arrive newest first
    for order in list_records(store, restaurant_id, Collection.ORDERS, Order):
        if order.id == exclude or order.status not in OPEN_ORDER_STATUSES:
            continue
        open_orders.setdefault(order.table_number, order.id)
    return open_orders


def release_table_for_order(
    store: DocumentStore,
    restaurant_id: str,
    table_number: int,
    order_id: str,
) -> bool:
    """Best-effort: free the table once ``order_id`` closes.

    If another order is still open at the same table, the table stays
    occupied and is relinked to that order instead.
    """
    if table_number <= 0:
        return False
    try:
        remaining = open_orders_by_table(store, restaurant_id, exclude=order_id).get(table_number)
    except Exception:
        logger.exception(f"Restaurant {restaurant_id}: failed to read open orders for table {table_number}")
        return False
    if remaining is not None:
        logger.info(f"Restaurant {restaurant_id}: table {table_number} stays occupied by order {remaining}")
        return mark_table_for_order(store, restaurant_id, table_number, True, remaining)
    return mark_table_for_order(store, restaurant_id, table_number, False)


def sync_tables_with_orders(store: DocumentStore, restaurant_id: str) -> Dict[int, bool]:
    """Recompute occupancy and order links from open orders; write the tables that differ.

    Returns the rewritten table numbers mapped to their occupancy.
    """
    open_orders = open_orders_by_table(store, restaurant_id)

    changed: Dict[int, bool] = {}
    for table in list_tables(store, restaurant_id):
        current_order_id = open_orders.get(table.table_number)
        should_be_occupied = current_order_id is not None
        if table.occupied == should_be_occupied and table.current_order_id == current_order_id:
            continue
        set_table_occupancy(
            store,
            restaurant_id,
            table.table_number,
            should_be_occupied,
            order_id=current_order_id,
        )
        changed[table.table_number] = should_be_occupied

    if changed:
        logger.info(f"Restaurant {restaurant_id}: reconciled occupancy of tables {sorted(changed)}")
    return changed


def subscribe_to_tables(
    store: DocumentStore,
    restaurant_id: str,
    callback: Callable[[List[Table]], None],
) -> Subscription:
    return subscribe_records(store, restaurant_id, Collection.TABLES, Table, callback)
