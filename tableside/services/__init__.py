"""
                        Services Module

Business logic of the ordering core, wired to the configured backends.

Services:
    - lifecycle: order status / payment state machine with the lock rule
    - binder: QR access code generation and table binding
    - queries: dashboard board and summary views
    - tables: table creation and activation
    - artifacts: QR image storage (mock / local / blob)
    - excel_manager: order history export

Each getter is cached so route handlers share one instance per process;
tests swap them through FastAPI dependency overrides.
"""

from functools import lru_cache, partial

from tableside.core.config import get_settings
from tableside.services.artifacts import get_artifact_storage, render_qr_png
from tableside.services.binder import AccessCodeBinder
from tableside.services.excel_manager import ExcelManager
from tableside.services.lifecycle import OrderLifecycleEngine
from tableside.services.queries import OrderQueryService
from tableside.services.tables import TableService
from tableside.store import get_entity_store


@lru_cache()
def get_lifecycle_engine() -> OrderLifecycleEngine:
    return OrderLifecycleEngine(
        get_entity_store(),
        lock_window=get_settings().lock_window,
    )


@lru_cache()
def get_access_code_binder() -> AccessCodeBinder:
    settings = get_settings()
    renderer = partial(render_qr_png, box_size=settings.qr_box_size, border=settings.qr_border)
    return AccessCodeBinder(get_entity_store(), get_artifact_storage(), renderer=renderer)


@lru_cache()
def get_query_service() -> OrderQueryService:
    return OrderQueryService(
        get_entity_store(),
        lock_window=get_settings().lock_window,
    )


@lru_cache()
def get_table_service() -> TableService:
    return TableService(get_entity_store())


__all__ = [
    "ExcelManager",
    "AccessCodeBinder",
    "OrderLifecycleEngine",
    "OrderQueryService",
    "TableService",
    "get_lifecycle_engine",
    "get_access_code_binder",
    "get_query_service",
    "get_table_service",
]
