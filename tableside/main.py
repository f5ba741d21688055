"""
FastAPI Application Entry Point

Tableside Ordering - QR table ordering backend.
Guests scan a table's QR code and order; staff move orders through
pending → preparing → served → completed from a polling dashboard.

Endpoints:
    - POST /api/tables: Create table
    - POST /api/tables/{id}/qrcode: Generate / regenerate a table QR code
    - POST /api/qrcodes/global: Generate the global menu QR code
    - POST /api/qrcodes: Ad-hoc QR code
    - DELETE /api/qrcodes/{id}: Delete QR code
    - POST /api/orders: Guest order
    - GET /api/orders: List orders (status / table filters)
    - PUT /api/orders/{id}/status: Status transition
    - PUT /api/orders/{id}/payment: Payment annotation
    - GET /api/orders/board: Dashboard board
    - GET /health: System health check

Author: Khalil_Bannouri
Version: 1.0.0
"""

import asyncio
import sys
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends, Query, Request, Header
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from fastapi.middleware.cors import CORSMiddleware
import redis

# Windows-specific event loop policy
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Internal imports
from tableside.core.config import ArtifactBackend, get_settings, setup_logging
from tableside.entities import AccessCodeKind, Customer, Order, OrderItem, OrderStatus
from tableside.exceptions import TablesideError
from tableside.schemas import (
    AccessCodeResponse,
    AdHocCodeCreate,
    BindRequest,
    ErrorResponse,
    HealthResponse,
    MessageResponse,
    OrderBoardResponse,
    OrderCreate,
    OrderListResponse,
    OrderResponse,
    OrderSummaryResponse,
    PaymentUpdate,
    StatusUpdate,
    TableActiveUpdate,
    TableCreate,
    TableResponse,
)
from tableside.services import (
    AccessCodeBinder,
    OrderLifecycleEngine,
    OrderQueryService,
    TableService,
    get_access_code_binder,
    get_lifecycle_engine,
    get_query_service,
    get_table_service,
)
from tableside.services.artifacts import get_artifact_storage
from tableside.store import get_entity_store
from tableside.tasks import export_order_to_excel

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    # Startup
    logger.info("=" * 60)
    logger.info(f"🚀 Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    store = get_entity_store()
    await store.initialize()
    logger.info(f"✅ Entity Store: {store.backend_name}")

    storage = get_artifact_storage()
    logger.info(f"✅ Artifact Storage: {storage.provider_name}")
    logger.info(f"✅ Lock window: {settings.lock_window_minutes:g} minutes")

    # Validate production config
    if settings.use_real_services:
        missing = settings.validate_production_config()
        if missing:
            logger.warning(f"⚠️ Missing production config: {missing}")

    logger.info("=" * 60)
    logger.info("✅ Application ready!")
    logger.info("=" * 60)

    yield  # Application runs

    # Shutdown
    logger.info("Shutting down...")
    await store.close()
    logger.info("✅ Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description=(
        "QR table ordering: table codes, guest orders, and the order "
        "status / payment lifecycle with its post-completion lock."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Serve locally stored QR images
if settings.resolved_artifact_backend == ArtifactBackend.LOCAL:
    Path(settings.artifact_directory).mkdir(parents=True, exist_ok=True)
    app.mount(
        settings.artifact_public_prefix,
        StaticFiles(directory=settings.artifact_directory),
        name="uploads",
    )


# =============================================================================
# REQUEST CONTEXT
# =============================================================================

@dataclass
class StaffContext:
    """
    Who is acting on this request.

    Authentication happens upstream; this only carries the staff identity
    the gateway forwarded.
    """
    staff_id: Optional[str] = None


def get_staff_context(
    x_staff_id: Optional[str] = Header(None, alias="X-Staff-Id"),
) -> StaffContext:
    return StaffContext(staff_id=x_staff_id or None)


OrderExporter = Callable[[Order], None]


def get_order_exporter() -> OrderExporter:
    """Queue an order for the Excel history export."""

    def export(order: Order) -> None:
        try:
            export_order_to_excel.delay(order.to_export_dict())
        except Exception as e:
            # The transition is already committed; export can be replayed
            logger.error(f"Could not queue export for order #{order.id}: {e}")

    return export


def export_if_finished(order: Order, export: OrderExporter) -> bool:
    """Hand completed and cancelled orders to the exporter when history export is on."""
    if not settings.export_order_history or not order.is_terminal:
        return False
    export(order)
    return True


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def order_response(engine: OrderLifecycleEngine, order: Order) -> OrderResponse:
    """Attach the current lock projection to an order."""
    return OrderResponse.from_entity(order, engine.lock_info(order))


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "message": f"🍽️ Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "health": "/health",
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check() -> HealthResponse:
    """Verify all system components are operational."""

    store_status = "healthy" if await get_entity_store().health_check() else "unhealthy"
    storage_status = "healthy" if await get_artifact_storage().health_check() else "unhealthy"

    # Check Redis
    redis_status = "healthy"
    try:
        r = redis.Redis.from_url(settings.redis_url, socket_timeout=2)
        r.ping()
        r.close()
    except Exception as e:
        redis_status = f"unhealthy: {str(e)}"
        logger.error(f"Redis health check failed: {e}")

    overall = "operational" if all(
        s == "healthy" for s in [store_status, storage_status, redis_status]
    ) else "degraded"

    return HealthResponse(
        status=overall,
        store=store_status,
        artifact_storage=storage_status,
        redis=redis_status,
        timestamp=datetime.now(),
    )


# =============================================================================
# TABLE ENDPOINTS
# =============================================================================

@app.post(
    "/api/tables",
    response_model=TableResponse,
    status_code=201,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    tags=["Tables"],
)
async def create_table(
    payload: TableCreate,
    tables: TableService = Depends(get_table_service),
) -> TableResponse:
    """Create a table."""
    table = await tables.create_table(
        number=payload.number,
        capacity=payload.capacity,
        section=payload.section,
        is_active=payload.is_active,
    )
    return TableResponse.from_entity(table)


@app.get("/api/tables", response_model=list[TableResponse], tags=["Tables"])
async def list_tables(
    tables: TableService = Depends(get_table_service),
) -> list[TableResponse]:
    return [TableResponse.from_entity(t) for t in await tables.list_tables()]


@app.get(
    "/api/tables/{table_id}",
    response_model=TableResponse,
    responses={404: {"model": ErrorResponse}},
    tags=["Tables"],
)
async def get_table(
    table_id: str,
    tables: TableService = Depends(get_table_service),
) -> TableResponse:
    """Public table lookup used by the guest menu after scanning."""
    return TableResponse.from_entity(await tables.get_table(table_id))


@app.patch(
    "/api/tables/{table_id}/active",
    response_model=TableResponse,
    responses={404: {"model": ErrorResponse}},
    tags=["Tables"],
)
async def set_table_active(
    table_id: str,
    payload: TableActiveUpdate,
    tables: TableService = Depends(get_table_service),
) -> TableResponse:
    return TableResponse.from_entity(await tables.set_active(table_id, payload.is_active))


@app.post(
    "/api/tables/{table_id}/qrcode",
    response_model=AccessCodeResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    tags=["QR Codes"],
    summary="Generate Table QR Code",
)
async def bind_table_code(
    table_id: str,
    payload: Optional[BindRequest] = None,
    binder: AccessCodeBinder = Depends(get_access_code_binder),
) -> AccessCodeResponse:
    """
    Generate (or regenerate) the QR code a table's guests scan.

    Calling it again replaces the image and URL without creating a second code.
    """
    base_url = (payload.base_url if payload else None) or settings.public_base_url
    code = await binder.bind_table(table_id, base_url)
    return AccessCodeResponse.from_entity(code)


# =============================================================================
# QR CODE ENDPOINTS
# =============================================================================

@app.post(
    "/api/qrcodes/global",
    response_model=AccessCodeResponse,
    responses={409: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    tags=["QR Codes"],
    summary="Generate Global Menu QR Code",
)
async def bind_global_code(
    payload: Optional[BindRequest] = None,
    binder: AccessCodeBinder = Depends(get_access_code_binder),
) -> AccessCodeResponse:
    base_url = (payload.base_url if payload else None) or settings.public_base_url
    code = await binder.bind_global_menu(base_url)
    return AccessCodeResponse.from_entity(code)


@app.get(
    "/api/qrcodes/global",
    response_model=AccessCodeResponse,
    responses={404: {"model": ErrorResponse}},
    tags=["QR Codes"],
)
async def get_global_code(
    binder: AccessCodeBinder = Depends(get_access_code_binder),
) -> Any:
    code = await binder.find_global_menu()
    if code is None:
        return JSONResponse(
            status_code=404,
            content=ErrorResponse(error="not_found", detail="Global menu QR code not generated").model_dump(),
        )
    return AccessCodeResponse.from_entity(code)


@app.post(
    "/api/qrcodes",
    response_model=AccessCodeResponse,
    status_code=201,
    responses={400: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    tags=["QR Codes"],
)
async def create_ad_hoc_code(
    payload: AdHocCodeCreate,
    binder: AccessCodeBinder = Depends(get_access_code_binder),
) -> AccessCodeResponse:
    """QR code for any destination (social links, feedback forms)."""
    code = await binder.create_ad_hoc_code(payload.section, payload.url)
    return AccessCodeResponse.from_entity(code)


@app.get("/api/qrcodes", response_model=list[AccessCodeResponse], tags=["QR Codes"])
async def list_codes(
    kind: Optional[AccessCodeKind] = Query(None),
    binder: AccessCodeBinder = Depends(get_access_code_binder),
) -> list[AccessCodeResponse]:
    return [AccessCodeResponse.from_entity(c) for c in await binder.list_codes(kind)]


@app.get(
    "/api/qrcodes/{code_id}",
    response_model=AccessCodeResponse,
    responses={404: {"model": ErrorResponse}},
    tags=["QR Codes"],
)
async def get_code(
    code_id: str,
    binder: AccessCodeBinder = Depends(get_access_code_binder),
) -> AccessCodeResponse:
    return AccessCodeResponse.from_entity(await binder.get_code(code_id))


@app.delete(
    "/api/qrcodes/{code_id}",
    response_model=MessageResponse,
    responses={404: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    tags=["QR Codes"],
)
async def delete_code(
    code_id: str,
    binder: AccessCodeBinder = Depends(get_access_code_binder),
) -> MessageResponse:
    await binder.delete_code(code_id)
    return MessageResponse(message="QR code removed")


# =============================================================================
# ORDER API ENDPOINTS
# =============================================================================

@app.post(
    "/api/orders",
    response_model=OrderResponse,
    status_code=201,
    responses={400: {"model": ErrorResponse}},
    tags=["Orders"],
    summary="Place Order (Guest)",
)
async def create_order(
    order_data: OrderCreate,
    engine: OrderLifecycleEngine = Depends(get_lifecycle_engine),
) -> OrderResponse:
    """
    Place an order from a table.

    Public endpoint reached after scanning a table QR code.
    """
    logger.info(f"Creating order for table {order_data.table_id}")

    order = await engine.create_order(
        table_id=order_data.table_id,
        items=[
            OrderItem(
                menu_item_id=item.menu_item_id,
                name=item.name,
                quantity=item.quantity,
                unit_price=item.unit_price,
            )
            for item in order_data.items
        ],
        customer=Customer(
            name=order_data.customer_name or "Guest",
            email=order_data.customer_email,
        ),
        notes=order_data.notes,
    )
    return order_response(engine, order)


@app.get(
    "/api/orders",
    response_model=OrderListResponse,
    tags=["Orders"],
    summary="List Orders",
)
async def list_orders(
    status: Optional[OrderStatus] = Query(None),
    table: Optional[str] = Query(None),
    engine: OrderLifecycleEngine = Depends(get_lifecycle_engine),
) -> OrderListResponse:
    """Orders matching the filters, newest first, each with its lock projection."""
    orders = await engine.list_orders(status=status, table_id=table)
    return OrderListResponse(
        total=len(orders),
        orders=[order_response(engine, order) for order in orders],
    )


@app.get(
    "/api/orders/board",
    response_model=OrderBoardResponse,
    tags=["Dashboard"],
)
async def order_board(
    include_cancelled: bool = Query(False),
    table: Optional[str] = Query(None),
    queries: OrderQueryService = Depends(get_query_service),
    engine: OrderLifecycleEngine = Depends(get_lifecycle_engine),
) -> OrderBoardResponse:
    """Orders grouped into pending / preparing / served / completed."""
    board = await queries.board(include_cancelled=include_cancelled, table_id=table)
    return OrderBoardResponse(columns={
        status.value: [order_response(engine, order) for order in orders]
        for status, orders in board.items()
    })


@app.get(
    "/api/orders/summary",
    response_model=OrderSummaryResponse,
    tags=["Dashboard"],
)
async def order_summary(
    queries: OrderQueryService = Depends(get_query_service),
) -> OrderSummaryResponse:
    return OrderSummaryResponse(**await queries.summary())


@app.get(
    "/api/orders/{order_id}",
    response_model=OrderResponse,
    responses={404: {"model": ErrorResponse}},
    tags=["Orders"],
)
async def get_order(
    order_id: str,
    engine: OrderLifecycleEngine = Depends(get_lifecycle_engine),
) -> OrderResponse:
    """Get a specific order by ID."""
    return order_response(engine, await engine.get_order(order_id))


@app.put(
    "/api/orders/{order_id}/status",
    response_model=OrderResponse,
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
    tags=["Orders"],
)
async def update_order_status(
    order_id: str,
    payload: StatusUpdate,
    staff: StaffContext = Depends(get_staff_context),
    engine: OrderLifecycleEngine = Depends(get_lifecycle_engine),
    export: OrderExporter = Depends(get_order_exporter),
) -> OrderResponse:
    """Move an order to a new status; serving and completing record the staff member."""
    order = await engine.set_status(order_id, payload.status, acting_staff_id=staff.staff_id)
    export_if_finished(order, export)
    return order_response(engine, order)


@app.put(
    "/api/orders/{order_id}/payment",
    response_model=OrderResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    tags=["Orders"],
)
async def update_order_payment(
    order_id: str,
    payload: PaymentUpdate,
    engine: OrderLifecycleEngine = Depends(get_lifecycle_engine),
) -> OrderResponse:
    """Mark an order paid or unpaid."""
    order = await engine.set_payment_status(order_id, payload.payment_status)
    return order_response(engine, order)


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(TablesideError)
async def tableside_exception_handler(request: Request, exc: TablesideError) -> JSONResponse:
    """Map domain errors to their HTTP status."""
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal Server Error",
            "detail": str(exc) if settings.debug else "An unexpected error occurred",
        },
    )

