"""TablEat admin API: routers, middleware, health checks and live collection feeds."""

import asyncio
import logging
import time
from contextlib import asynccontextmanager, suppress
from datetime import datetime, timezone
from typing import Any, Dict, List

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic_core import to_jsonable_python
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.middleware.base import BaseHTTPMiddleware

from tableat.api.routes import api_router, permissions
from tableat.core.config import settings
from tableat.core.errors import StoreUnavailableError, register_exception_handlers
from tableat.core.logging import configure_logging, restaurant_from_path
from tableat.core.rate_limit import limiter
from tableat.db.store import Collection, Snapshot, collection_path, create_store
from tableat.db.streams import SnapshotStream

VERSION = "1.0.0"

configure_logging(settings.log_level, json_output=not settings.debug)
logger = logging.getLogger(__name__)
request_logger = logging.getLogger("tableat.requests")


class ConnectionManager:
    """Tracks open WebSocket feeds per channel."""

    MAX_CONNECTIONS_PER_CHANNEL = 200

    def __init__(self):
        self.active_connections: Dict[str, List[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, channel: str) -> bool:
        """Accept a socket; returns False (and closes it) when the channel is full."""
        if len(self.active_connections.get(channel, [])) >= self.MAX_CONNECTIONS_PER_CHANNEL:
            logger.warning(f"WebSocket connection rejected: channel '{channel}' at capacity")
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return False

        await websocket.accept()
        self.active_connections.setdefault(channel, []).append(websocket)
        logger.debug(f"WebSocket connected to channel '{channel}'")
        return True

    def disconnect(self, websocket: WebSocket, channel: str):
        connections = self.active_connections.get(channel, [])
        if websocket in connections:
            connections.remove(websocket)
        if not connections:
            self.active_connections.pop(channel, None)
        logger.debug(f"WebSocket disconnected from channel '{channel}'")

    def get_connection_count(self, channel: str = None) -> int:
        if channel:
            return len(self.active_connections.get(channel, []))
        return sum(len(conns) for conns in self.active_connections.values())


ws_manager = ConnectionManager()


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every API call with its status, latency and restaurant."""

    async def dispatch(self, request: Request, call_next):
        if request.url.path in ["/health", "/health/ready", "/"]:
            return await call_next(request)

        started = time.perf_counter()
        client_ip = request.client.host if request.client else "unknown"
        extra = {"restaurant_id": restaurant_from_path(request.url.path)}

        try:
            response = await call_next(request)
        except Exception as e:
            request_logger.error(
                f"{request.method} {request.url.path} failed after "
                f"{time.perf_counter() - started:.3f}s ({client_ip}): {e}",
                extra=extra,
            )
            raise

        elapsed = time.perf_counter() - started
        request_logger.log(
            logging.WARNING if response.status_code >= 400 else logging.INFO,
            f"{request.method} {request.url.path} -> {response.status_code} in {elapsed:.3f}s ({client_ip})",
            extra=extra,
        )
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the document store once per process and dispose it on shutdown."""
    logger.info(f"Starting {settings.brand_name} admin API ({settings.store_backend} store)")

    if getattr(app.state, "store", None) is None:
        try:
            app.state.store = create_store(settings)
        except StoreUnavailableError as e:
            # Keep serving: store-backed routes answer 503 until restart
            logger.error(f"Document store unavailable: {e.message}")
            app.state.store = None

    yield

    store = getattr(app.state, "store", None)
    if store is not None:
        store.close()
    logger.info(f"Shutting down {settings.brand_name} admin API")


app = FastAPI(
    title=f"{settings.brand_name} Admin API",
    description="Restaurant administration backend: menu, tables, orders, customers and billing",
    version=VERSION,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# Rate limiting setup
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
register_exception_handlers(app)

app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLoggingMiddleware)

# CORS middleware - added last so it runs first (Starlette LIFO order)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept", "Origin", "X-Requested-With"],
    max_age=600,
)

app.include_router(permissions.router, prefix="/api", tags=["permissions"])
app.include_router(api_router, prefix=settings.api_v1_prefix)


@app.get("/health")
def health_check():
    """Basic liveness check endpoint."""
    return {"status": "healthy", "version": VERSION}


@app.get("/health/ready")
def readiness_check():
    """Readiness check: store reachability and live listener counts."""
    checks = {"store": "unknown", "websocket_manager": "unknown"}
    store = getattr(app.state, "store", None)
    subscriptions = 0

    if store is None:
        checks["store"] = "not initialized"
    else:
        try:
            store.ping()
            checks["store"] = f"healthy ({store.backend})"
            subscriptions = store.active_subscription_count()
        except StoreUnavailableError as e:
            logger.error(f"Store health check failed: {e.message}")
            checks["store"] = "unhealthy"

    checks["websocket_manager"] = f"healthy ({ws_manager.get_connection_count()} connections)"
    all_healthy = all(c.startswith("healthy") for c in checks.values())

    return {
        "status": "ready" if all_healthy else "degraded",
        "version": VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "active_subscriptions": subscriptions,
        "checks": checks,
    }


@app.get("/")
def root():
    """Root endpoint."""
    return {
        "message": f"{settings.brand_name} Admin API",
        "docs": "/docs",
        "health": "/health",
    }


def _snapshot_message(collection: Collection, snapshot: Snapshot) -> Dict[str, Any]:
    return {
        "event": "snapshot",
        "collection": collection.value,
        "items": to_jsonable_python(snapshot.to_dicts()),
        "total": len(snapshot),
    }


async def _pump(websocket: WebSocket, collection: Collection, stream: SnapshotStream) -> None:
    try:
        async for snapshot in stream:
            await websocket.send_json(_snapshot_message(collection, snapshot))
    except (WebSocketDisconnect, RuntimeError) as e:
        logger.debug(f"Stopped pushing {collection.value} snapshots: {e}")


@app.websocket("/ws/restaurants/{restaurant_id}/{collection}")
async def websocket_collection(websocket: WebSocket, restaurant_id: str, collection: str):
    """Push the full ordered collection on connect and after every change.

    The live subscription lives exactly as long as the socket.
    """
    try:
        selected = Collection(collection)
    except ValueError:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    store = getattr(websocket.app.state, "store", None)
    if store is None:
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        return

    channel = f"{restaurant_id}/{selected.value}"
    if not await ws_manager.connect(websocket, channel):
        return

    order_by, descending = selected.ordering
    stream = None
    sender = None
    try:
        stream = SnapshotStream.open(store, collection_path(restaurant_id, selected), order_by, descending)
        sender = asyncio.create_task(_pump(websocket, selected, stream))
        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(f"WebSocket error in {channel}: {e}", exc_info=True)
        with suppress(RuntimeError):
            await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
    finally:
        if stream is not None:
            await stream.aclose()
        if sender is not None:
            sender.cancel()
            with suppress(asyncio.CancelledError):
                await sender
        ws_manager.disconnect(websocket, channel)
