"""
Excel File Manager with Concurrency Control

Appends finished orders (completed or cancelled) to the order history
workbook. Several Celery workers may export at once, so every write holds
a file lock around the read-append-write cycle.

Author: Khalil_Bannouri
Version: 1.0.0
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import pandas as pd
from filelock import FileLock, Timeout

from tableside.core.config import get_settings

logger = logging.getLogger(__name__)


class ExcelManager:
    """
    Process-safe Excel order history writer.

    Args:
        data_dir: Directory holding the workbook (DATA_DIRECTORY by default)
        filename: Workbook name (EXCEL_FILENAME by default)
        lock_timeout: Seconds to wait for the file lock
    """

    ORDER_COLUMNS = [
        "order_id",
        "table_id",
        "date_time",
        "customer_name",
        "customer_email",
        "items",
        "notes",
        "total",
        "order_status",
        "payment_status",
        "served_by",
        "last_updated",
        "exported_at",
    ]

    def __init__(
        self,
        data_dir: Optional[str] = None,
        filename: Optional[str] = None,
        lock_timeout: Optional[int] = None,
    ):
        settings = get_settings()
        self.data_dir = Path(data_dir or settings.data_directory)
        self.orders_file = self.data_dir / (filename or settings.excel_filename)
        self.lock_file = self.data_dir / f"{self.orders_file.name}.lock"
        self.lock_timeout = lock_timeout if lock_timeout is not None else settings.excel_lock_timeout

    def _ensure_data_dir(self) -> None:
        """Create data directory if needed."""
        if not self.data_dir.exists():
            self.data_dir.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created data directory: {self.data_dir}")

    def _load_or_create_df(self) -> pd.DataFrame:
        """Load existing file or create new DataFrame."""
        if self.orders_file.exists():
            return pd.read_excel(self.orders_file, engine="openpyxl")
        return pd.DataFrame(columns=self.ORDER_COLUMNS)

    def export_order(self, order_data: dict[str, Any]) -> dict[str, Any]:
        """
        Append one order to the history workbook.

        Returns:
            dict: success flag, message, order id and export timestamp
        """
        self._ensure_data_dir()

        order_id = order_data.get("order_id", "unknown")
        result = {
            "success": False,
            "message": "",
            "order_id": order_id,
            "exported_at": None,
        }

        try:
            lock = FileLock(str(self.lock_file), timeout=self.lock_timeout)

            with lock:
                logger.debug(f"Lock acquired for Order #{order_id}")

                df = self._load_or_create_df()

                export_time = datetime.now().isoformat()
                items = order_data.get("items")
                new_row = {
                    "order_id": order_id,
                    "table_id": order_data.get("table_id"),
                    "date_time": order_data.get("created_at", export_time),
                    "customer_name": order_data.get("customer_name"),
                    "customer_email": order_data.get("customer_email"),
                    "items": json.dumps(items) if not isinstance(items, str) else items,
                    "notes": order_data.get("notes"),
                    "total": order_data.get("total"),
                    "order_status": order_data.get("status"),
                    "payment_status": order_data.get("payment_status"),
                    "served_by": order_data.get("served_by"),
                    "last_updated": order_data.get("updated_at"),
                    "exported_at": export_time,
                }

                df = pd.concat([df, pd.DataFrame([new_row])], ignore_index=True)
                df.to_excel(str(self.orders_file), index=False, engine="openpyxl")

                logger.info(f"Order #{order_id} exported to Excel")

                result["success"] = True
                result["message"] = f"Order #{order_id} exported"
                result["exported_at"] = export_time

            logger.debug(f"Lock released for Order #{order_id}")

        except Timeout:
            result["message"] = f"Lock timeout ({self.lock_timeout}s)"
            logger.error(f"Lock timeout for Order #{order_id}")

        return result

    def get_all_orders(self) -> list[dict[str, Any]]:
        """Get all exported orders."""
        if not self.orders_file.exists():
            return []

        df = pd.read_excel(self.orders_file, engine="openpyxl")
        return df.to_dict("records")

    def clear_all(self) -> bool:
        """Delete the workbook and its lock file."""
        for f in [self.orders_file, self.lock_file]:
            if f.exists():
                f.unlink()
        logger.info("Order history cleared")
        return True
