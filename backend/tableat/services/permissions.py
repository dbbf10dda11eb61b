"""Back-filling of restaurant approval flags.

Restaurants created before a feature existed have no flag for it at all. A
back-fill only writes flags that are absent and never touches a flag that is
already defined, including an explicit ``False``. Running it again is a
no-op.

The decision for each flag is spelled out with explicit types instead of
key presence:

* the current state read from the document is ``Unset`` or a ``bool``
* the planned change is ``Keep(value)`` or ``SetTo(value)``
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Union

from tableat.core.errors import NotFoundError
from tableat.db.store import RESTAURANTS, DocumentStore
from tableat.schemas.base import utcnow

logger = logging.getLogger(__name__)

PERMISSION_DEFAULTS: Dict[str, bool] = {
    "quick_order_approved": False,
    "analytics_approved": False,
    "customer_approved": True,
    "inventory_management_approved": False,
    "staff_management_approved": False,
}


class Unset:
    """The flag is absent from the document."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "Unset"


UNSET = Unset()


@dataclass(frozen=True)
class Keep:
    value: bool


@dataclass(frozen=True)
class SetTo:
    value: bool


FlagState = Union[Unset, bool]
FlagChange = Union[Keep, SetTo]


def read_flag(data: Mapping[str, Any], name: str) -> FlagState:
    value = data.get(name)
    if value is None:
        return UNSET
    return bool(value)


def plan_flag(state: FlagState, default: bool) -> FlagChange:
    if isinstance(state, Unset):
        return SetTo(default)
    return Keep(state)


def plan_permission_defaults(data: Mapping[str, Any]) -> Dict[str, FlagChange]:
    return {
        name: plan_flag(read_flag(data, name), default)
        for name, default in PERMISSION_DEFAULTS.items()
    }


@dataclass
class PermissionUpdateResult:
    restaurant_id: str
    added_fields: Dict[str, bool] = field(default_factory=dict)
    current_permissions: Dict[str, bool] = field(default_factory=dict)

    @property
    def changed(self) -> bool:
        return bool(self.added_fields)


def ensure_permission_defaults(store: DocumentStore, restaurant_id: str) -> PermissionUpdateResult:
    """Write the default for every absent approval flag of one restaurant."""
    data = store.get(RESTAURANTS, restaurant_id)
    if data is None:
        raise NotFoundError(f"Restaurant {restaurant_id} not found")

    plan = plan_permission_defaults(data)
    added = {name: change.value for name, change in plan.items() if isinstance(change, SetTo)}
    result = PermissionUpdateResult(
        restaurant_id=restaurant_id,
        added_fields=added,
        current_permissions={name: change.value for name, change in plan.items()},
    )

    if added:
        store.update(RESTAURANTS, restaurant_id, {**added, "updated_at": utcnow()})
        logger.info(f"Restaurant {restaurant_id}: added permission fields {sorted(added)}")
    else:
        logger.info(f"Restaurant {restaurant_id}: all permission fields already set")
    return result
