"""Request dependencies shared by the routes."""

from typing import Annotated

from fastapi import Depends, Request

from tableat.core.errors import StoreUnavailableError
from tableat.db.store import DocumentStore
from tableat.services.whatsapp_service import WhatsAppService, get_whatsapp_service


def get_store(request: Request) -> DocumentStore:
    """The document store built at startup; 503 when it never came up."""
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise StoreUnavailableError()
    return store


Store = Annotated[DocumentStore, Depends(get_store)]
WhatsApp = Annotated[WhatsAppService, Depends(get_whatsapp_service)]
