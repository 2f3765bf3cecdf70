import copy
import logging
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Dict, Generic, Iterable, List, Optional, Sequence, Type, TypeVar, Union
from uuid import uuid4

from pydantic import BaseModel

from ..models.db_models import (
    User, UserCreate, Student, StudentCreate, Class, ClassCreate,
    Attendance, AttendanceCreate, Fee, FeeCreate, Homework, HomeworkCreate,
    HomeworkSubmission, HomeworkSubmissionCreate, Announcement, AnnouncementCreate,
    SystemLog, SystemLogCreate, SystemSetting, SystemSettingCreate, UserRole
)
from ..models.patch_models import (
    PatchModel, UserPatch, StudentPatch, ClassPatch, AttendancePatch, FeePatch,
    HomeworkPatch, HomeworkSubmissionPatch, AnnouncementPatch, SystemSettingPatch
)
from ..models.report_models import AdminDashboardStats

logger = logging.getLogger(__name__)

EntityT = TypeVar("EntityT", bound=BaseModel)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def current_month(now: Optional[datetime] = None) -> str:
    """Billing month of `now` (default: the current UTC time) as 'YYYY-MM'."""
    return (now or utc_now()).strftime("%Y-%m")


def calendar_day(value: Union[date, datetime]) -> date:
    """Calendar day of a date or datetime. Aware datetimes are read in UTC."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    return value


def attendance_rate(records: Iterable[Attendance]) -> float:
    """Percentage of records marked present or late, one decimal with ties rounded up; 0 when empty."""
    records = list(records)
    if not records:
        return 0.0
    attended = sum(1 for att in records if att.status in ("present", "late"))
    rate = Decimal(attended * 100) / Decimal(len(records))
    return float(rate.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def sum_amounts(fees: Iterable[Fee]) -> Decimal:
    return sum((fee.amount for fee in fees), Decimal("0"))


class _Collection(Generic[EntityT]):
    """
    One keyed table of the store: id -> frozen record, insertion ordered.

    Records are frozen but their lists are not, so every record leaving the
    table is a deep copy and only `update` replaces what is stored.
    """
    def __init__(self, model: Type[EntityT], timestamp_field: str = "created_at", refresh_timestamp: bool = False):
        self._model = model
        self._timestamp_field = timestamp_field
        self._refresh_timestamp = refresh_timestamp
        self._records: Dict[str, EntityT] = {}

    def __len__(self) -> int:
        return len(self._records)

    @staticmethod
    def _detached(record: Optional[EntityT]) -> Optional[EntityT]:
        return record.model_copy(deep=True) if record is not None else None

    def get(self, record_id: str) -> Optional[EntityT]:
        return self._detached(self._records.get(record_id))

    def all(self) -> List[EntityT]:
        return [self._detached(record) for record in self._records.values()]

    def filter(self, predicate: Callable[[EntityT], bool]) -> List[EntityT]:
        return [self._detached(record) for record in self._records.values() if predicate(record)]

    def find(self, predicate: Callable[[EntityT], bool]) -> Optional[EntityT]:
        return self._detached(next((record for record in self._records.values() if predicate(record)), None))

    def insert(self, data: BaseModel) -> EntityT:
        # id and timestamp always come from here, whatever the payload carried.
        values = data.model_dump()
        values["id"] = str(uuid4())
        values[self._timestamp_field] = utc_now()
        record = self._model.model_validate(values)
        self._records[record.id] = record
        return self._detached(record)

    def bulk_insert(self, items: Sequence[BaseModel]) -> List[EntityT]:
        # Sequential, no rollback: records created before a failure stay.
        return [self.insert(item) for item in items]

    def update(self, record_id: str, patch: PatchModel) -> Optional[EntityT]:
        existing = self._records.get(record_id)
        if existing is None:
            return None
        # The patch keeps its own lists; the stored record gets copies.
        changes = copy.deepcopy(patch.changes())
        if self._refresh_timestamp:
            changes[self._timestamp_field] = utc_now()
        updated = existing.model_copy(update=changes)
        self._records[record_id] = updated
        return self._detached(updated)

    def delete(self, record_id: str) -> bool:
        return self._records.pop(record_id, None) is not None


class MemoryStore:
    """
    In-process store for every entity kind.

    Lookups return None (or False for deletes) instead of raising. The methods
    are coroutines so a database-backed store can replace this one without
    touching call sites; none of them actually suspends.
    """
    def __init__(self):
        self._users = _Collection(User)
        self._students = _Collection(Student)
        self._classes = _Collection(Class)
        self._attendance = _Collection(Attendance)
        self._fees = _Collection(Fee)
        self._homework = _Collection(Homework, timestamp_field="assigned_date")
        self._submissions = _Collection(HomeworkSubmission, timestamp_field="submitted_at")
        self._announcements = _Collection(Announcement)
        self._system_logs = _Collection(SystemLog)
        self._system_settings = _Collection(SystemSetting, timestamp_field="updated_at", refresh_timestamp=True)

    # ===== Users =====

    async def get_user(self, user_id: str) -> Optional[User]:
        return self._users.get(user_id)

    async def get_user_by_email(self, email: str) -> Optional[User]:
        return self._users.find(lambda user: user.email == email)

    async def get_users_by_role(self, role: UserRole) -> List[User]:
        return self._users.filter(lambda user: user.role == role)

    async def get_all_users(self) -> List[User]:
        return self._users.all()

    async def create_user(self, user: UserCreate) -> User:
        return self._users.insert(user)

    async def bulk_create_users(self, users: Sequence[UserCreate]) -> List[User]:
        return self._users.bulk_insert(users)

    async def update_user(self, user_id: str, patch: UserPatch) -> Optional[User]:
        return self._users.update(user_id, patch)

    async def update_user_status(self, user_id: str, is_active: bool) -> Optional[User]:
        return self._users.update(user_id, UserPatch(is_active=is_active))

    async def delete_user(self, user_id: str) -> bool:
        return self._users.delete(user_id)

    # ===== Students =====

    async def get_student(self, student_id: str) -> Optional[Student]:
        return self._students.get(student_id)

    async def get_student_by_email(self, email: str) -> Optional[Student]:
        return self._students.find(lambda student: student.email == email)

    async def get_student_by_roll_number(self, roll_number: str) -> Optional[Student]:
        return self._students.find(lambda student: student.roll_number == roll_number)

    async def get_students_by_tutor(self, tutor_id: str) -> List[Student]:
        return self._students.filter(lambda student: student.tutor_id == tutor_id)

    async def get_students_by_parent(self, parent_id: str) -> List[Student]:
        return self._students.filter(lambda student: student.parent_id == parent_id)

    async def get_all_students(self) -> List[Student]:
        return self._students.all()

    async def create_student(self, student: StudentCreate) -> Student:
        return self._students.insert(student)

    async def bulk_create_students(self, students: Sequence[StudentCreate]) -> List[Student]:
        return self._students.bulk_insert(students)

    async def update_student(self, student_id: str, patch: StudentPatch) -> Optional[Student]:
        return self._students.update(student_id, patch)

    async def delete_student(self, student_id: str) -> bool:
        return self._students.delete(student_id)

    # ===== Classes =====

    async def get_class(self, class_id: str) -> Optional[Class]:
        return self._classes.get(class_id)

    async def get_classes_by_tutor(self, tutor_id: str) -> List[Class]:
        return self._classes.filter(lambda cls: cls.tutor_id == tutor_id)

    async def get_classes_by_student(self, student_id: str) -> List[Class]:
        return self._classes.filter(lambda cls: student_id in cls.student_ids)

    async def get_all_classes(self) -> List[Class]:
        return self._classes.all()

    async def create_class(self, class_data: ClassCreate) -> Class:
        return self._classes.insert(class_data)

    async def bulk_create_classes(self, classes: Sequence[ClassCreate]) -> List[Class]:
        return self._classes.bulk_insert(classes)

    async def update_class(self, class_id: str, patch: ClassPatch) -> Optional[Class]:
        return self._classes.update(class_id, patch)

    async def delete_class(self, class_id: str) -> bool:
        return self._classes.delete(class_id)

    # ===== Attendance =====

    async def get_attendance(self, attendance_id: str) -> Optional[Attendance]:
        return self._attendance.get(attendance_id)

    async def get_attendance_by_class(self, class_id: str, on: Optional[Union[date, datetime]] = None) -> List[Attendance]:
        """Records of a class; with `on`, only those taken on the same calendar day."""
        if on is None:
            return self._attendance.filter(lambda att: att.class_id == class_id)
        day = calendar_day(on)
        return self._attendance.filter(lambda att: att.class_id == class_id and calendar_day(att.date) == day)

    async def get_attendance_by_student(self, student_id: str) -> List[Attendance]:
        return self._attendance.filter(lambda att: att.student_id == student_id)

    async def get_all_attendance(self) -> List[Attendance]:
        return self._attendance.all()

    async def create_attendance(self, attendance: AttendanceCreate) -> Attendance:
        return self._attendance.insert(attendance)

    async def bulk_create_attendance(self, attendance_list: Sequence[AttendanceCreate]) -> List[Attendance]:
        return self._attendance.bulk_insert(attendance_list)

    async def update_attendance(self, attendance_id: str, patch: AttendancePatch) -> Optional[Attendance]:
        return self._attendance.update(attendance_id, patch)

    async def delete_attendance(self, attendance_id: str) -> bool:
        return self._attendance.delete(attendance_id)

    # ===== Fees =====

    async def get_fee(self, fee_id: str) -> Optional[Fee]:
        return self._fees.get(fee_id)

    async def get_fees_by_student(self, student_id: str) -> List[Fee]:
        return self._fees.filter(lambda fee: fee.student_id == student_id)

    async def get_fees_by_class(self, class_id: str) -> List[Fee]:
        return self._fees.filter(lambda fee: fee.class_id == class_id)

    async def get_fees_by_month(self, month: str) -> List[Fee]:
        return self._fees.filter(lambda fee: fee.month == month)

    async def get_all_fees(self) -> List[Fee]:
        return self._fees.all()

    async def create_fee(self, fee: FeeCreate) -> Fee:
        return self._fees.insert(fee)

    async def bulk_create_fees(self, fees: Sequence[FeeCreate]) -> List[Fee]:
        return self._fees.bulk_insert(fees)

    async def update_fee(self, fee_id: str, patch: FeePatch) -> Optional[Fee]:
        return self._fees.update(fee_id, patch)

    async def delete_fee(self, fee_id: str) -> bool:
        return self._fees.delete(fee_id)

    # ===== Homework =====

    async def get_homework(self, homework_id: str) -> Optional[Homework]:
        return self._homework.get(homework_id)

    async def get_homework_by_class(self, class_id: str) -> List[Homework]:
        return self._homework.filter(lambda hw: hw.class_id == class_id)

    async def get_homework_by_tutor(self, tutor_id: str) -> List[Homework]:
        return self._homework.filter(lambda hw: hw.tutor_id == tutor_id)

    async def get_all_homework(self) -> List[Homework]:
        return self._homework.all()

    async def create_homework(self, homework: HomeworkCreate) -> Homework:
        return self._homework.insert(homework)

    async def bulk_create_homework(self, homework_list: Sequence[HomeworkCreate]) -> List[Homework]:
        return self._homework.bulk_insert(homework_list)

    async def update_homework(self, homework_id: str, patch: HomeworkPatch) -> Optional[Homework]:
        return self._homework.update(homework_id, patch)

    async def delete_homework(self, homework_id: str) -> bool:
        return self._homework.delete(homework_id)

    # ===== Homework submissions =====

    async def get_homework_submission(self, submission_id: str) -> Optional[HomeworkSubmission]:
        return self._submissions.get(submission_id)

    async def get_submissions_by_homework(self, homework_id: str) -> List[HomeworkSubmission]:
        return self._submissions.filter(lambda sub: sub.homework_id == homework_id)

    async def get_submissions_by_student(self, student_id: str) -> List[HomeworkSubmission]:
        return self._submissions.filter(lambda sub: sub.student_id == student_id)

    async def get_all_homework_submissions(self) -> List[HomeworkSubmission]:
        return self._submissions.all()

    async def create_homework_submission(self, submission: HomeworkSubmissionCreate) -> HomeworkSubmission:
        return self._submissions.insert(submission)

    async def bulk_create_homework_submissions(self, submissions: Sequence[HomeworkSubmissionCreate]) -> List[HomeworkSubmission]:
        return self._submissions.bulk_insert(submissions)

    async def update_homework_submission(self, submission_id: str, patch: HomeworkSubmissionPatch) -> Optional[HomeworkSubmission]:
        return self._submissions.update(submission_id, patch)

    async def delete_homework_submission(self, submission_id: str) -> bool:
        return self._submissions.delete(submission_id)

    # ===== Announcements =====

    async def get_announcement(self, announcement_id: str) -> Optional[Announcement]:
        return self._announcements.get(announcement_id)

    async def get_announcements_by_tutor(self, tutor_id: str) -> List[Announcement]:
        return self._announcements.filter(lambda ann: ann.tutor_id == tutor_id)

    async def get_announcements_for_classes(self, class_ids: Iterable[str]) -> List[Announcement]:
        wanted = set(class_ids)
        return self._announcements.filter(lambda ann: not wanted.isdisjoint(ann.class_ids))

    async def get_all_announcements(self) -> List[Announcement]:
        return self._announcements.all()

    async def create_announcement(self, announcement: AnnouncementCreate) -> Announcement:
        return self._announcements.insert(announcement)

    async def bulk_create_announcements(self, announcements: Sequence[AnnouncementCreate]) -> List[Announcement]:
        return self._announcements.bulk_insert(announcements)

    async def update_announcement(self, announcement_id: str, patch: AnnouncementPatch) -> Optional[Announcement]:
        return self._announcements.update(announcement_id, patch)

    async def delete_announcement(self, announcement_id: str) -> bool:
        return self._announcements.delete(announcement_id)

    # ===== System logs (append-only) =====

    async def get_system_log(self, log_id: str) -> Optional[SystemLog]:
        return self._system_logs.get(log_id)

    async def get_system_logs_by_admin(self, admin_id: str) -> List[SystemLog]:
        return self._system_logs.filter(lambda log: log.admin_id == admin_id)

    async def get_system_logs_by_action(self, action: str) -> List[SystemLog]:
        return self._system_logs.filter(lambda log: log.action == action)

    async def get_all_system_logs(self) -> List[SystemLog]:
        """Newest first. Entries sharing a timestamp keep reverse insertion order."""
        return sorted(reversed(self._system_logs.all()), key=lambda log: log.created_at, reverse=True)

    async def create_system_log(self, log: SystemLogCreate) -> SystemLog:
        return self._system_logs.insert(log)

    async def bulk_create_system_logs(self, logs: Sequence[SystemLogCreate]) -> List[SystemLog]:
        return self._system_logs.bulk_insert(logs)

    # ===== System settings =====

    async def get_system_setting(self, setting_id: str) -> Optional[SystemSetting]:
        return self._system_settings.get(setting_id)

    async def get_system_setting_by_key(self, key: str) -> Optional[SystemSetting]:
        return self._system_settings.find(lambda setting: setting.key == key)

    async def get_system_settings_by_category(self, category: str) -> List[SystemSetting]:
        return self._system_settings.filter(lambda setting: setting.category == category)

    async def get_all_system_settings(self) -> List[SystemSetting]:
        return self._system_settings.all()

    async def create_system_setting(self, setting: SystemSettingCreate) -> SystemSetting:
        return self._system_settings.insert(setting)

    async def bulk_create_system_settings(self, settings: Sequence[SystemSettingCreate]) -> List[SystemSetting]:
        return self._system_settings.bulk_insert(settings)

    async def update_system_setting(self, setting_id: str, patch: SystemSettingPatch) -> Optional[SystemSetting]:
        """Merges the patch and refreshes `updated_at`."""
        return self._system_settings.update(setting_id, patch)

    async def delete_system_setting(self, setting_id: str) -> bool:
        return self._system_settings.delete(setting_id)

    # ===== Admin dashboard =====

    async def get_admin_dashboard_stats(self) -> AdminDashboardStats:
        users = self._users.all()
        paid_fees = self._fees.filter(lambda fee: fee.status == "paid")
        month = current_month()

        return AdminDashboardStats(
            total_users=len(users),
            active_users=sum(1 for user in users if user.is_active),
            total_students=len(self._students),
            total_tutors=sum(1 for user in users if user.role == "tutor"),
            total_parents=sum(1 for user in users if user.role == "parent"),
            total_classes=len(self._classes),
            total_revenue=sum_amounts(paid_fees),
            monthly_revenue=sum_amounts(fee for fee in paid_fees if fee.month == month),
            avg_attendance=attendance_rate(self._attendance.all()),
        )
