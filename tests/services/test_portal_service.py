import pytest
import pytest_asyncio
from datetime import datetime, timezone
from decimal import Decimal

from app.tutorcenter.services.portal_service import PortalService
from app.tutorcenter.services.exceptions import NotFoundError, AuthorizationError
from app.tutorcenter.db.memory_store import MemoryStore
from app.tutorcenter.models.db_models import (
    UserCreate, StudentCreate, ClassCreate, ScheduleEntry, AttendanceCreate, FeeCreate, AnnouncementCreate
)


@pytest_asyncio.fixture
async def portal(store: MemoryStore):
    """
    A parent with one child enrolled in one class, plus an unrelated student.
    Three announcements target that class, one per audience.
    """
    parent = await store.create_user(UserCreate(email="parent@example.com", password="p", name="Parent", role="parent"))
    student_user = await store.create_user(UserCreate(email="alex@example.com", password="p", name="Alex", role="student"))
    alex = await store.create_student(StudentCreate(name="Alex", email="alex@example.com", roll_number="1", grade="10", parent_id=parent.id))
    other = await store.create_student(StudentCreate(name="Other", email="other@example.com", roll_number="2", grade="10"))
    class_ = await store.create_class(ClassCreate(
        name="Algebra", subject="Maths", grade="10", tutor_id="t1",
        schedule=[ScheduleEntry(day="Monday", time="2:00 PM")], student_ids=[alex.id], fee_amount=Decimal("250.00")
    ))
    now = datetime.now(timezone.utc)
    await store.create_attendance(AttendanceCreate(class_id=class_.id, student_id=alex.id, date=now, status="present"))
    await store.create_attendance(AttendanceCreate(class_id=class_.id, student_id=alex.id, date=now, status="absent"))
    await store.create_fee(FeeCreate(student_id=alex.id, class_id=class_.id, amount=Decimal("250.00"), due_date=now, month="2024-11"))
    for audience in ("students", "parents", "all"):
        await store.create_announcement(AnnouncementCreate(
            title=f"For {audience}", message="...", tutor_id="t1", target_audience=audience, class_ids=[class_.id]
        ))
    await store.create_announcement(AnnouncementCreate(
        title="Other class", message="...", tutor_id="t1", target_audience="all", class_ids=["elsewhere"]
    ))
    return PortalService(store=store), parent, student_user, alex, other


@pytest.mark.asyncio
class TestPortalService:

    async def test_parent_sees_only_their_children(self, portal):
        service, parent, _, alex, _ = portal
        assert await service.get_children(parent) == [alex]

    async def test_child_overview_for_parent(self, portal):
        service, parent, _, alex, _ = portal
        overview = await service.get_child_overview(parent, alex.id)

        assert overview.student == alex
        assert [cls.name for cls in overview.classes] == ["Algebra"]
        assert len(overview.fees) == 1
        assert overview.attendance_rate == 50.0
        assert {ann.target_audience for ann in overview.announcements} == {"parents", "all"}

    async def test_parent_cannot_view_someone_elses_child(self, portal):
        service, parent, _, _, other = portal
        with pytest.raises(AuthorizationError):
            await service.get_child_overview(parent, other.id)

    async def test_child_overview_unknown_student(self, portal):
        service, parent, *_ = portal
        with pytest.raises(NotFoundError):
            await service.get_child_overview(parent, "ghost")

    async def test_student_overview_is_resolved_by_email(self, portal):
        service, _, student_user, alex, _ = portal
        overview = await service.get_student_overview(student_user)

        assert overview.student.id == alex.id
        assert {ann.target_audience for ann in overview.announcements} == {"students", "all"}

    async def test_student_without_record(self, portal, store: MemoryStore):
        service, *_ = portal
        orphan = await store.create_user(UserCreate(email="nobody@example.com", password="p", name="Nobody", role="student"))
        with pytest.raises(NotFoundError):
            await service.get_student_overview(orphan)
