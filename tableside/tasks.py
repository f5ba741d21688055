"""
Celery Tasks
Background tasks for the order history export.
"""

import logging
import time
from datetime import datetime

from tableside.celery_worker import celery_app
from tableside.services.excel_manager import ExcelManager

logger = logging.getLogger(__name__)


class ExportFailed(Exception):
    """Raised so Celery retries an export that could not take the file lock."""


@celery_app.task(
    bind=True,
    max_retries=3,
    default_retry_delay=5,
    autoretry_for=(Exception,),
    retry_backoff=True
)
def export_order_to_excel(self, order_data: dict) -> dict:
    """
    Append a finished order to the history workbook.

    Args:
        order_data: Output of Order.to_export_dict()

    Returns:
        dict: Result of the export operation
    """
    task_id = self.request.id
    order_id = order_data.get('order_id', 'unknown')

    logger.info(f"📋 Task {task_id}: Exporting order #{order_id}")
    start_time = time.time()

    result = ExcelManager().export_order(order_data)

    elapsed = round(time.time() - start_time, 3)
    result['task_id'] = task_id
    result['processing_time_seconds'] = elapsed

    if not result['success']:
        logger.warning(f"⚠️ Task {task_id}: Order #{order_id} failed - {result['message']}")
        raise ExportFailed(result['message'])

    logger.info(f"✅ Task {task_id}: Order #{order_id} exported in {elapsed}s")
    return result


@celery_app.task
def health_check() -> dict:
    """
    Simple health check task to verify Celery is working.
    """
    return {
        'status': 'healthy',
        'worker': 'celery',
        'timestamp': datetime.now().isoformat()
    }


@celery_app.task
def clear_order_history() -> dict:
    """
    Clear the order history workbook (for testing/reset purposes).
    """
    success = ExcelManager().clear_all()
    return {
        'success': success,
        'message': 'Order history cleared' if success else 'Failed to clear order history',
        'timestamp': datetime.now().isoformat()
    }
