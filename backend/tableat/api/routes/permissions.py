"""Permission back-fill endpoint for the flagship restaurant."""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from tableat.api.deps import Store
from tableat.core.config import settings
from tableat.core.errors import NotFoundError, StoreUnavailableError, error_body
from tableat.core.rate_limit import limiter
from tableat.services.permissions import PermissionUpdateResult, ensure_permission_defaults

logger = logging.getLogger(__name__)

router = APIRouter()


def permission_update_body(result: PermissionUpdateResult) -> dict:
    if result.changed:
        message = f"Added {len(result.added_fields)} missing permission field(s)"
    else:
        message = "All permission fields already set"
    return {
        "success": True,
        "message": message,
        "addedFields": result.added_fields,
        "currentPermissions": result.current_permissions,
    }


@router.post("/update-restaurant-permissions")
@limiter.limit("10/minute")
def update_restaurant_permissions(request: Request, store: Store):
    """Write defaults for the configured restaurant's missing approval flags.

    Answers 200, 404 (no restaurant), 503 (no store) or 500 for anything else.
    """
    restaurant_id = settings.permissions_restaurant_id
    try:
        result = ensure_permission_defaults(store, restaurant_id)
    except (NotFoundError, StoreUnavailableError):
        raise
    except Exception:
        logger.exception(f"Updating permissions of {restaurant_id} failed")
        return JSONResponse(
            status_code=500,
            content=error_body("Failed to update restaurant permissions"),
        )
    return permission_update_body(result)
