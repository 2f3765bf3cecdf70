import logging
from datetime import datetime, timezone
from typing import Optional

from ..db.memory_store import MemoryStore, utc_now
from ..models.patch_models import FeePatch

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps are taken to be UTC already.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


async def mark_overdue_fees_task(store: MemoryStore, now: Optional[datetime] = None) -> int:
    """
    Periodic sweep: every pending fee whose due date has passed becomes overdue.
    A failure on one fee is logged and the sweep moves on. Returns how many
    fees were updated.
    """
    logger.info("Running mark_overdue_fees_task...")
    now = _as_utc(now or utc_now())
    updated = 0

    for fee in await store.get_all_fees():
        try:
            if fee.status != "pending" or _as_utc(fee.due_date) >= now:
                continue
            await store.update_fee(fee.id, FeePatch(status="overdue"))
            updated += 1
            logger.info(f"Fee {fee.id} for student {fee.student_id} marked overdue.")
        except Exception as e:
            logger.error(f"Failed to process fee {fee.id}: {e}", exc_info=True)

    logger.info(f"mark_overdue_fees_task finished, {updated} fee(s) marked overdue.")
    return updated
