import logging
from typing import List

from ..db.memory_store import MemoryStore, attendance_rate
from ..models.db_models import Student, User
from ..models.report_models import StudentOverview
from .exceptions import NotFoundError, AuthorizationError

logger = logging.getLogger(__name__)

# Which announcement audiences each portal role gets to see.
VISIBLE_AUDIENCES = {
    "student": {"students", "all"},
    "parent": {"parents", "all"},
}


class PortalService:
    """
    Read-only views for students and parents.
    """
    def __init__(self, store: MemoryStore):
        self.store = store

    async def get_children(self, parent: User) -> List[Student]:
        return await self.store.get_students_by_parent(parent.id)

    async def get_child_overview(self, parent: User, student_id: str) -> StudentOverview:
        student = await self.store.get_student(student_id)
        if not student:
            raise NotFoundError(f"Student ({student_id}) not found.")
        if student.parent_id != parent.id:
            logger.warning(f"Parent '{parent.id}' requested the overview of student '{student_id}' who is not their child.")
            raise AuthorizationError("You can only view your own children.")
        return await self._build_overview(student, viewer_role=parent.role)

    async def get_student_overview(self, user: User) -> StudentOverview:
        student = await self.store.get_student_by_email(user.email)
        if not student:
            raise NotFoundError(f"No student record is linked to '{user.email}'.")
        return await self._build_overview(student, viewer_role=user.role)

    async def _build_overview(self, student: Student, viewer_role: str) -> StudentOverview:
        classes = await self.store.get_classes_by_student(student.id)
        attendance = await self.store.get_attendance_by_student(student.id)

        audiences = VISIBLE_AUDIENCES.get(viewer_role, {"all"})
        announcements = [
            ann for ann in await self.store.get_announcements_for_classes(cls.id for cls in classes)
            if ann.target_audience in audiences
        ]

        homework = []
        for cls in classes:
            homework.extend(await self.store.get_homework_by_class(cls.id))

        return StudentOverview(
            student=student,
            classes=classes,
            fees=await self.store.get_fees_by_student(student.id),
            attendance=attendance,
            attendance_rate=attendance_rate(attendance),
            homework=homework,
            submissions=await self.store.get_submissions_by_student(student.id),
            announcements=announcements,
        )
