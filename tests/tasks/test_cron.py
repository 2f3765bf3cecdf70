import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import AsyncMock

from app.tutorcenter.tasks.cron import mark_overdue_fees_task
from app.tutorcenter.db.memory_store import MemoryStore
from app.tutorcenter.models.db_models import Fee, FeeCreate

# ===== Helpers =====

def create_fee_payload(due_date: datetime, status: str = "pending") -> FeeCreate:
    return FeeCreate(student_id="s1", class_id="c1", amount=Decimal("250.00"), due_date=due_date, status=status, month="2024-11")


@pytest.mark.asyncio
async def test_past_due_pending_fees_become_overdue(store: MemoryStore):
    now = datetime.now(timezone.utc)
    late = await store.create_fee(create_fee_payload(now - timedelta(days=1)))
    upcoming = await store.create_fee(create_fee_payload(now + timedelta(days=1)))
    paid = await store.create_fee(create_fee_payload(now - timedelta(days=1), status="paid"))

    updated = await mark_overdue_fees_task(store)

    assert updated == 1
    assert (await store.get_fee(late.id)).status == "overdue"
    assert (await store.get_fee(upcoming.id)).status == "pending"
    assert (await store.get_fee(paid.id)).status == "paid"


@pytest.mark.asyncio
async def test_naive_due_dates_are_treated_as_utc(store: MemoryStore):
    fee = await store.create_fee(create_fee_payload(datetime(2024, 11, 30, 12, 0)))

    await mark_overdue_fees_task(store, now=datetime(2024, 12, 1, tzinfo=timezone.utc))

    assert (await store.get_fee(fee.id)).status == "overdue"


@pytest.mark.asyncio
async def test_second_run_changes_nothing(store: MemoryStore):
    await store.create_fee(create_fee_payload(datetime.now(timezone.utc) - timedelta(hours=1)))
    assert await mark_overdue_fees_task(store) == 1
    assert await mark_overdue_fees_task(store) == 0


@pytest.mark.asyncio
async def test_failure_on_one_fee_does_not_stop_the_sweep():
    past = datetime.now(timezone.utc) - timedelta(days=3)
    fees = [
        Fee(id=f"fee-{i}", created_at=past, **create_fee_payload(past).model_dump())
        for i in range(2)
    ]
    mock_store = AsyncMock()
    mock_store.get_all_fees.return_value = fees
    mock_store.update_fee.side_effect = [RuntimeError("store unavailable"), fees[1]]

    updated = await mark_overdue_fees_task(mock_store)

    assert updated == 1
    assert mock_store.update_fee.call_count == 2
