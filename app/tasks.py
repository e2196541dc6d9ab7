"""
Celery Tasks
Background tasks for the payments ledger.
"""

import logging
import time
from datetime import datetime

from filelock import Timeout

from app.celery_worker import celery_app
from app.services.excel_manager import ExcelManager

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    max_retries=3,
    default_retry_delay=5,
    autoretry_for=(Timeout, OSError),
    retry_backoff=True
)
def export_payment_to_ledger(self, payment_data: dict) -> dict:
    """
    Append a paid payment to the Excel ledger.
    A held ledger lock (filelock.Timeout) or an I/O error retries the task.
    This task runs asynchronously via Celery worker.

    Args:
        payment_data: Flattened payment and order fields

    Returns:
        dict: Result of the export operation
    """
    task_id = self.request.id
    payment_id = payment_data.get('payment_id', 'unknown')

    logger.info(f"Task {task_id}: Exporting payment #{payment_id}")
    start_time = time.time()

    result = ExcelManager.export_payment(payment_data)

    elapsed = round(time.time() - start_time, 3)
    result['task_id'] = task_id
    result['processing_time_seconds'] = elapsed

    if result['success']:
        logger.info(f"Task {task_id}: Payment #{payment_id} completed in {elapsed}s")
    else:
        logger.warning(f"Task {task_id}: Payment #{payment_id} failed - {result['message']}")

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
