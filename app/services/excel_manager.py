"""
Excel Ledger Manager with Concurrency Control

Every payment that becomes paid is appended to an Excel ledger
(data/payments_ledger.xlsx) for the bookkeeping team. Several Celery
workers may append at once, so each write holds a file lock.
"""

from datetime import datetime
from typing import Any
from pathlib import Path

import pandas as pd
from filelock import FileLock, Timeout

from app.core.config import get_settings
import logging

settings = get_settings()
logger = logging.getLogger(__name__)

DATA_DIR = Path(settings.data_directory)
LEDGER_FILE = DATA_DIR / settings.ledger_filename
LEDGER_LOCK = DATA_DIR / f"{settings.ledger_filename}.lock"


class ExcelManager:
    """Thread-safe Excel ledger of paid payments."""

    LOCK_TIMEOUT = settings.excel_lock_timeout

    LEDGER_COLUMNS = [
        "payment_id",
        "order_id",
        "paid_at",
        "table_number",
        "customer_name",
        "order_source",
        "items",
        "order_total",
        "amount",
        "payment_method",
        "provider",
        "provider_ref",
        "provider_status",
        "exported_at",
    ]

    @classmethod
    def _ensure_data_dir(cls) -> None:
        """Create data directory if needed."""
        if not DATA_DIR.exists():
            DATA_DIR.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created data directory: {DATA_DIR}")

    @classmethod
    def _load_or_create_df(cls, file_path: Path, columns: list) -> pd.DataFrame:
        """Load existing file or create new DataFrame."""
        if file_path.exists():
            try:
                return pd.read_excel(file_path, engine="openpyxl")
            except (ValueError, OSError) as e:
                logger.warning(f"Error reading {file_path}: {e}")
                return pd.DataFrame(columns=columns)
        return pd.DataFrame(columns=columns)

    @classmethod
    def export_payment(cls, payment_data: dict[str, Any]) -> dict[str, Any]:
        """
        Append one paid payment to the ledger.

        A payment already present in the ledger is not written twice.
        Raises filelock.Timeout when the ledger stays locked, so the
        export task can retry.
        """
        cls._ensure_data_dir()

        payment_id = payment_data.get("payment_id", 0)
        result = {
            "success": False,
            "message": "",
            "payment_id": payment_id,
            "exported_at": None,
        }

        try:
            lock = FileLock(str(LEDGER_LOCK), timeout=cls.LOCK_TIMEOUT)

            with lock:
                logger.debug(f"Lock acquired for Payment #{payment_id}")

                df = cls._load_or_create_df(LEDGER_FILE, cls.LEDGER_COLUMNS)

                if not df.empty and payment_id in set(df["payment_id"].tolist()):
                    result["success"] = True
                    result["message"] = f"Payment #{payment_id} already in ledger"
                    logger.info(result["message"])
                    return result

                export_time = datetime.now().isoformat()
                new_row = {
                    "payment_id": payment_id,
                    "order_id": payment_data.get("order_id"),
                    "paid_at": payment_data.get("paid_at", export_time),
                    "table_number": payment_data.get("table_number"),
                    "customer_name": payment_data.get("customer_name"),
                    "order_source": payment_data.get("order_source"),
                    "items": payment_data.get("items"),
                    "order_total": payment_data.get("order_total"),
                    "amount": payment_data.get("amount"),
                    "payment_method": payment_data.get("payment_method"),
                    "provider": payment_data.get("provider"),
                    "provider_ref": payment_data.get("provider_ref"),
                    "provider_status": payment_data.get("provider_status"),
                    "exported_at": export_time,
                }

                if df.empty:
                    df = pd.DataFrame([new_row], columns=cls.LEDGER_COLUMNS)
                else:
                    df = pd.concat([df, pd.DataFrame([new_row])], ignore_index=True)
                df.to_excel(str(LEDGER_FILE), index=False, engine="openpyxl")

                logger.info(f"Payment #{payment_id} exported to ledger")

                result["success"] = True
                result["message"] = f"Payment #{payment_id} exported"
                result["exported_at"] = export_time

            logger.debug(f"Lock released for Payment #{payment_id}")

        except Timeout:
            logger.error(f"Lock timeout ({cls.LOCK_TIMEOUT}s) for Payment #{payment_id}")
            raise

        return result

    @classmethod
    def get_all_payments(cls) -> list[dict[str, Any]]:
        """Get all ledger rows."""
        cls._ensure_data_dir()

        if not LEDGER_FILE.exists():
            return []

        try:
            df = pd.read_excel(LEDGER_FILE, engine="openpyxl")
            return df.to_dict("records")
        except (ValueError, OSError) as e:
            logger.error(f"Error reading ledger: {e}")
            return []

    @classmethod
    def clear_all(cls) -> bool:
        """Delete the ledger and its lock file."""
        try:
            for f in [LEDGER_FILE, LEDGER_LOCK]:
                if f.exists():
                    f.unlink()
            logger.info("Payments ledger cleared")
            return True
        except OSError as e:
            logger.error(f"Error clearing files: {e}")
            return False
