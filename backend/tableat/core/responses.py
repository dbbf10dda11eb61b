"""Standardized API response helpers.

List endpoints return the derived view model of a collection:
    {"items": [...], "total": <int>, ...aggregates}

Mutation endpoints only report the write outcome:
    {"success": true, "id": <doc id>}
The new state reaches clients through their live subscription.
"""

from typing import Any, Optional


def list_response(
    items: list,
    total: Optional[int] = None,
    **aggregates: Any,
) -> dict:
    """Wrap a list in the standard envelope.

    Args:
        items: The list of serialized items.
        total: Total count (defaults to len(items) when the full list is returned).
        aggregates: Extra counters computed from the same snapshot.

    Returns:
        {"items": items, "total": total, **aggregates}
    """
    body = {
        "items": items,
        "total": total if total is not None else len(items),
    }
    body.update(aggregates)
    return body


def write_response(doc_id: Optional[str] = None, **extra: Any) -> dict:
    """Acknowledge a persisted write."""
    body: dict = {"success": True}
    if doc_id is not None:
        body["id"] = doc_id
    body.update(extra)
    return body
