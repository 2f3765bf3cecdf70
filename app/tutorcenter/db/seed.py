import logging
from datetime import timedelta
from decimal import Decimal

from .memory_store import MemoryStore, utc_now
from ..models.db_models import (
    UserCreate, StudentCreate, ClassCreate, ScheduleEntry, FeeCreate, HomeworkCreate
)

logger = logging.getLogger(__name__)

DEMO_ADMIN_EMAIL = "admin@edumanage.com"
DEMO_ADMIN_PASSWORD = "admin123"
DEMO_TUTOR_EMAIL = "tutor@edumanage.com"
DEMO_TUTOR_PASSWORD = "password123"


async def seed_demo_data(store: MemoryStore) -> None:
    """
    Loads the demo accounts and a small sample class into an empty store:
    one admin, one tutor, two students, one class with a paid fee and an
    active homework assignment.
    """
    now = utc_now()

    await store.create_user(UserCreate(
        email=DEMO_ADMIN_EMAIL, password=DEMO_ADMIN_PASSWORD, name="System Administrator",
        role="admin", last_login=now
    ))
    tutor = await store.create_user(UserCreate(
        email=DEMO_TUTOR_EMAIL, password=DEMO_TUTOR_PASSWORD, name="Sarah Johnson",
        role="tutor", last_login=now
    ))

    alex, emma = await store.bulk_create_students([
        StudentCreate(
            name="Alex Chen", email="alex.chen@email.com", roll_number="101",
            grade="Grade 10", subjects=["Mathematics"], tutor_id=tutor.id
        ),
        StudentCreate(
            name="Emma Wilson", email="emma.wilson@email.com", roll_number="102",
            grade="Grade 11", subjects=["Physics"], tutor_id=tutor.id
        ),
    ])

    math_class = await store.create_class(ClassCreate(
        name="Mathematics Grade 10",
        subject="Mathematics",
        grade="Grade 10",
        tutor_id=tutor.id,
        schedule=[ScheduleEntry(day="Monday", time="2:00 PM"), ScheduleEntry(day="Wednesday", time="2:00 PM")],
        student_ids=[alex.id],
        fee_amount=Decimal("250.00"),
    ))

    await store.create_fee(FeeCreate(
        student_id=alex.id,
        class_id=math_class.id,
        amount=Decimal("250.00"),
        due_date=now + timedelta(days=7),
        paid_date=now,
        status="paid",
        month="2024-11",
    ))

    await store.create_homework(HomeworkCreate(
        title="Chapter 5: Quadratic Equations",
        description="Complete exercises 5.1 to 5.5 from the textbook. Show all working steps clearly.",
        class_id=math_class.id,
        tutor_id=tutor.id,
        due_date=now + timedelta(days=7),
        total_students=1,
    ))

    logger.info(f"Demo data seeded: admin '{DEMO_ADMIN_EMAIL}', tutor '{DEMO_TUTOR_EMAIL}', class '{math_class.name}'.")
