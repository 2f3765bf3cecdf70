import logging
from typing import List, Optional, Sequence, Union
from datetime import date, datetime

from ..db.memory_store import MemoryStore, attendance_rate, current_month, sum_amounts, utc_now
from ..models.db_models import (
    Student, StudentCreate, Class, ClassCreate, Attendance, AttendanceCreate,
    Fee, FeeCreate, Homework, HomeworkCreate, HomeworkSubmission, HomeworkSubmissionCreate,
    Announcement, AnnouncementCreate
)
from ..models.patch_models import (
    StudentPatch, ClassPatch, AttendancePatch, FeePatch, HomeworkPatch,
    HomeworkSubmissionPatch, AnnouncementPatch
)
from ..models.report_models import TutorDashboardStats
from .exceptions import ServiceError, NotFoundError, ConflictError

logger = logging.getLogger(__name__)


class TutorService:
    """
    Service layer for everything a tutor manages day to day: students,
    classes, attendance, fees, homework and announcements.
    """
    def __init__(self, store: MemoryStore):
        self.store = store

    # --- Lookups that must succeed ---

    async def _require_student(self, student_id: str) -> Student:
        student = await self.store.get_student(student_id)
        if not student:
            raise NotFoundError(f"Student ({student_id}) not found.")
        return student

    async def _require_class(self, class_id: str) -> Class:
        class_ = await self.store.get_class(class_id)
        if not class_:
            raise NotFoundError(f"Class ({class_id}) not found.")
        return class_

    async def _require_homework(self, homework_id: str) -> Homework:
        homework = await self.store.get_homework(homework_id)
        if not homework:
            raise NotFoundError(f"Homework ({homework_id}) not found.")
        return homework

    async def _check_student_uniqueness(self, email: Optional[str], roll_number: Optional[str], exclude_id: Optional[str] = None):
        if email is not None:
            owner = await self.store.get_student_by_email(email)
            if owner and owner.id != exclude_id:
                raise ConflictError(f"A student with email '{email}' already exists.")
        if roll_number is not None:
            owner = await self.store.get_student_by_roll_number(roll_number)
            if owner and owner.id != exclude_id:
                raise ConflictError(f"Roll number '{roll_number}' is already assigned.")

    # ===== Students =====

    async def list_students(self, tutor_id: Optional[str] = None) -> List[Student]:
        if tutor_id:
            return await self.store.get_students_by_tutor(tutor_id)
        return await self.store.get_all_students()

    async def get_student(self, student_id: str) -> Student:
        return await self._require_student(student_id)

    async def create_student(self, data: StudentCreate) -> Student:
        await self._check_student_uniqueness(data.email, data.roll_number)
        try:
            student = await self.store.create_student(data)
            logger.info(f"Student {student.id} ('{student.roll_number}') created.")
            return student
        except Exception as e:
            logger.error("Error while creating a student.", exc_info=True)
            raise ServiceError("A server error occurred while creating the student.") from e

    async def update_student(self, student_id: str, patch: StudentPatch) -> Student:
        await self._check_student_uniqueness(patch.email, patch.roll_number, exclude_id=student_id)
        student = await self.store.update_student(student_id, patch)
        if not student:
            raise NotFoundError(f"Student ({student_id}) not found.")
        logger.info(f"Student {student_id} updated: {sorted(patch.model_fields_set)}.")
        return student

    async def delete_student(self, student_id: str) -> None:
        # Fees, attendance and enrolments that point at this student are left as they are.
        if not await self.store.delete_student(student_id):
            raise NotFoundError(f"Student ({student_id}) not found.")
        logger.info(f"Student {student_id} deleted.")

    # ===== Classes =====

    async def list_classes(self, tutor_id: Optional[str] = None) -> List[Class]:
        if tutor_id:
            return await self.store.get_classes_by_tutor(tutor_id)
        return await self.store.get_all_classes()

    async def get_class(self, class_id: str) -> Class:
        return await self._require_class(class_id)

    async def create_class(self, data: ClassCreate) -> Class:
        try:
            class_ = await self.store.create_class(data)
            logger.info(f"Class {class_.id} ('{class_.name}') created with {len(class_.student_ids)} student(s).")
            return class_
        except Exception as e:
            logger.error("Error while creating a class.", exc_info=True)
            raise ServiceError("A server error occurred while creating the class.") from e

    async def update_class(self, class_id: str, patch: ClassPatch) -> Class:
        class_ = await self.store.update_class(class_id, patch)
        if not class_:
            raise NotFoundError(f"Class ({class_id}) not found.")
        logger.info(f"Class {class_id} updated: {sorted(patch.model_fields_set)}.")
        return class_

    async def delete_class(self, class_id: str) -> None:
        if not await self.store.delete_class(class_id):
            raise NotFoundError(f"Class ({class_id}) not found.")
        logger.info(f"Class {class_id} deleted.")

    async def enroll_student(self, class_id: str, student_id: str) -> Class:
        class_ = await self._require_class(class_id)
        await self._require_student(student_id)
        if student_id in class_.student_ids:
            return class_
        logger.info(f"Enrolling student {student_id} in class {class_id}.")
        return await self.store.update_class(class_id, ClassPatch(student_ids=[*class_.student_ids, student_id]))

    async def unenroll_student(self, class_id: str, student_id: str) -> Class:
        class_ = await self._require_class(class_id)
        if student_id not in class_.student_ids:
            raise NotFoundError(f"Student ({student_id}) is not enrolled in class ({class_id}).")
        logger.info(f"Removing student {student_id} from class {class_id}.")
        remaining = [sid for sid in class_.student_ids if sid != student_id]
        return await self.store.update_class(class_id, ClassPatch(student_ids=remaining))

    # ===== Attendance =====

    async def get_class_attendance(self, class_id: str, on: Optional[Union[date, datetime]] = None) -> List[Attendance]:
        """Attendance of a class for one calendar day, today when no day is given."""
        return await self.store.get_attendance_by_class(class_id, on or utc_now())

    async def get_student_attendance(self, student_id: str) -> List[Attendance]:
        return await self.store.get_attendance_by_student(student_id)

    async def record_attendance(self, items: Sequence[AttendanceCreate]) -> List[Attendance]:
        """
        Records a batch of attendance marks.

        Every item is checked against existing classes and students before
        anything is written, so a bad item rejects the whole batch.
        """
        for index, item in enumerate(items):
            if not await self.store.get_class(item.class_id):
                raise NotFoundError(f"Item {index}: class ({item.class_id}) not found.")
            if not await self.store.get_student(item.student_id):
                raise NotFoundError(f"Item {index}: student ({item.student_id}) not found.")
        try:
            created = await self.store.bulk_create_attendance(items)
            logger.info(f"{len(created)} attendance record(s) saved.")
            return created
        except Exception as e:
            logger.error("Error while saving attendance records.", exc_info=True)
            raise ServiceError("A server error occurred while saving attendance.") from e

    async def update_attendance(self, attendance_id: str, patch: AttendancePatch) -> Attendance:
        attendance = await self.store.update_attendance(attendance_id, patch)
        if not attendance:
            raise NotFoundError(f"Attendance record ({attendance_id}) not found.")
        return attendance

    # ===== Fees =====

    async def list_fees(self, month: Optional[str] = None) -> List[Fee]:
        if month:
            return await self.store.get_fees_by_month(month)
        return await self.store.get_all_fees()

    async def get_fee(self, fee_id: str) -> Fee:
        fee = await self.store.get_fee(fee_id)
        if not fee:
            raise NotFoundError(f"Fee ({fee_id}) not found.")
        return fee

    async def create_fee(self, data: FeeCreate) -> Fee:
        try:
            fee = await self.store.create_fee(data)
            logger.info(f"Fee {fee.id} of {fee.amount} created for student {fee.student_id} ({fee.month}).")
            return fee
        except Exception as e:
            logger.error("Error while creating a fee.", exc_info=True)
            raise ServiceError("A server error occurred while creating the fee.") from e

    async def update_fee(self, fee_id: str, patch: FeePatch) -> Fee:
        fee = await self.store.update_fee(fee_id, patch)
        if not fee:
            raise NotFoundError(f"Fee ({fee_id}) not found.")
        logger.info(f"Fee {fee_id} updated: {sorted(patch.model_fields_set)}.")
        return fee

    async def mark_fee_paid(self, fee_id: str, paid_at: Optional[datetime] = None) -> Fee:
        return await self.update_fee(fee_id, FeePatch(status="paid", paid_date=paid_at or utc_now()))

    async def generate_monthly_fees(self, class_id: str, month: str, due_date: datetime) -> List[Fee]:
        """
        Creates one pending fee, at the class fee amount, for every enrolled
        student who has no fee for this class and month yet.
        """
        class_ = await self._require_class(class_id)
        already_billed = {fee.student_id for fee in await self.store.get_fees_by_class(class_id) if fee.month == month}
        to_create = [
            FeeCreate(student_id=student_id, class_id=class_id, amount=class_.fee_amount, due_date=due_date, month=month)
            for student_id in class_.student_ids
            if student_id not in already_billed
        ]
        created = await self.store.bulk_create_fees(to_create)
        logger.info(f"Generated {len(created)} fee(s) for class {class_id}, month {month}.")
        return created

    # ===== Homework =====

    async def list_homework(self, tutor_id: Optional[str] = None, class_id: Optional[str] = None) -> List[Homework]:
        if tutor_id:
            return await self.store.get_homework_by_tutor(tutor_id)
        if class_id:
            return await self.store.get_homework_by_class(class_id)
        return await self.store.get_all_homework()

    async def get_homework(self, homework_id: str) -> Homework:
        return await self._require_homework(homework_id)

    async def create_homework(self, data: HomeworkCreate) -> Homework:
        class_ = await self._require_class(data.class_id)
        if "total_students" not in data.model_fields_set:
            data = data.model_copy(update={"total_students": len(class_.student_ids)})
        homework = await self.store.create_homework(data)
        logger.info(f"Homework {homework.id} ('{homework.title}') assigned to class {class_.id}.")
        return homework

    async def update_homework(self, homework_id: str, patch: HomeworkPatch) -> Homework:
        homework = await self.store.update_homework(homework_id, patch)
        if not homework:
            raise NotFoundError(f"Homework ({homework_id}) not found.")
        return homework

    async def delete_homework(self, homework_id: str) -> None:
        if not await self.store.delete_homework(homework_id):
            raise NotFoundError(f"Homework ({homework_id}) not found.")
        logger.info(f"Homework {homework_id} deleted.")

    async def list_submissions(self, homework_id: str) -> List[HomeworkSubmission]:
        return await self.store.get_submissions_by_homework(homework_id)

    async def submit_homework(self, homework_id: str, data: HomeworkSubmissionCreate) -> HomeworkSubmission:
        """
        Stores a submission. The homework's submitted_count is the number of
        distinct students with a submission, so resubmitting leaves it unchanged.
        """
        await self._require_homework(homework_id)
        if data.homework_id != homework_id:
            data = data.model_copy(update={"homework_id": homework_id})
        try:
            submission = await self.store.create_homework_submission(data)
            submissions = await self.store.get_submissions_by_homework(homework_id)
            submitted = len({sub.student_id for sub in submissions})
            await self.store.update_homework(homework_id, HomeworkPatch(submitted_count=submitted))
            logger.info(f"Submission {submission.id} received for homework {homework_id} from student {submission.student_id}.")
            return submission
        except Exception as e:
            logger.error(f"Error while saving a submission for homework {homework_id}.", exc_info=True)
            raise ServiceError("A server error occurred while saving the submission.") from e

    async def grade_submission(self, submission_id: str, grade: int, feedback: Optional[str] = None) -> HomeworkSubmission:
        changes = {"grade": grade, "status": "graded"}
        if feedback is not None:
            changes["feedback"] = feedback
        submission = await self.store.update_homework_submission(submission_id, HomeworkSubmissionPatch(**changes))
        if not submission:
            raise NotFoundError(f"Submission ({submission_id}) not found.")
        logger.info(f"Submission {submission_id} graded {grade}.")
        return submission

    # ===== Announcements =====

    async def list_announcements(self, tutor_id: Optional[str] = None) -> List[Announcement]:
        if tutor_id:
            return await self.store.get_announcements_by_tutor(tutor_id)
        return await self.store.get_all_announcements()

    async def create_announcement(self, data: AnnouncementCreate) -> Announcement:
        announcement = await self.store.create_announcement(data)
        logger.info(f"Announcement {announcement.id} posted to {len(announcement.class_ids)} class(es).")
        return announcement

    async def update_announcement(self, announcement_id: str, patch: AnnouncementPatch) -> Announcement:
        announcement = await self.store.update_announcement(announcement_id, patch)
        if not announcement:
            raise NotFoundError(f"Announcement ({announcement_id}) not found.")
        return announcement

    async def delete_announcement(self, announcement_id: str) -> None:
        if not await self.store.delete_announcement(announcement_id):
            raise NotFoundError(f"Announcement ({announcement_id}) not found.")

    # ===== Dashboard =====

    async def get_dashboard_stats(self, tutor_id: Optional[str] = None) -> TutorDashboardStats:
        """Headline numbers for the whole centre, or for one tutor's students and classes."""
        students = await self.list_students(tutor_id)
        classes = await self.list_classes(tutor_id)
        if tutor_id:
            class_ids = {cls.id for cls in classes}
            fees = [fee for fee in await self.store.get_all_fees() if fee.class_id in class_ids]
            attendance = [att for att in await self.store.get_all_attendance() if att.class_id in class_ids]
        else:
            fees = await self.store.get_all_fees()
            attendance = await self.store.get_all_attendance()

        month = current_month()
        return TutorDashboardStats(
            total_students=len(students),
            total_classes=len(classes),
            monthly_revenue=sum_amounts(fee for fee in fees if fee.status == "paid" and fee.month == month),
            avg_attendance=attendance_rate(attendance),
        )
