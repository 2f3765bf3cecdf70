# app/tutorcenter/models/db_models.py

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

UserRole = Literal["admin", "tutor", "student", "parent"]
AttendanceStatus = Literal["present", "absent", "late"]
FeeStatus = Literal["pending", "paid", "overdue"]
HomeworkStatus = Literal["active", "completed", "archived"]
SubmissionStatus = Literal["submitted", "graded"]
TargetAudience = Literal["students", "parents", "all"]

Money = Annotated[Decimal, Field(ge=0, max_digits=10, decimal_places=2)]

# Every stored record is frozen; changes go through the store's update_* methods.
_STORED = ConfigDict(frozen=True)


# ===== Users =====

class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1, description="Stored as given; compared in plaintext at login.")
    name: str = Field(..., min_length=1)
    role: UserRole = Field(..., description="Can be admin, tutor, student or parent")
    avatar: Optional[str] = None
    is_active: bool = True
    last_login: Optional[datetime] = None

class User(UserCreate):
    """
    A login account. Students and parents may also have a User row; the
    Student record is looked up separately.
    """
    model_config = _STORED

    id: str
    created_at: datetime


# ===== Students =====

class StudentCreate(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    roll_number: str = Field(..., min_length=1)
    grade: str
    subjects: List[str] = Field(default_factory=list)
    parent_id: Optional[str] = Field(None, description="FK to the parent User")
    tutor_id: Optional[str] = Field(None, description="FK to the tutor User")
    avatar: Optional[str] = None

class Student(StudentCreate):
    model_config = _STORED

    id: str
    created_at: datetime


# ===== Classes =====

class ScheduleEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    day: str = Field(..., description="e.g. 'Monday'")
    time: str = Field(..., description="e.g. '2:00 PM'")

class ClassCreate(BaseModel):
    name: str = Field(..., min_length=1)
    subject: str
    grade: str
    tutor_id: str = Field(..., description="FK to the owning tutor User")
    schedule: List[ScheduleEntry] = Field(..., description="Ordered weekly slots")
    student_ids: List[str] = Field(default_factory=list, description="FKs to enrolled Students")
    fee_amount: Money

class Class(ClassCreate):
    model_config = _STORED

    id: str
    created_at: datetime


# ===== Attendance =====

class AttendanceCreate(BaseModel):
    class_id: str
    student_id: str
    date: datetime
    status: AttendanceStatus
    notes: Optional[str] = None

class Attendance(AttendanceCreate):
    model_config = _STORED

    id: str
    created_at: datetime


# ===== Fees =====

class FeeCreate(BaseModel):
    student_id: str
    class_id: str
    amount: Money
    due_date: datetime
    paid_date: Optional[datetime] = None
    status: FeeStatus = "pending"
    month: str = Field(..., pattern=r"^\d{4}-\d{2}$", description="Billing month, e.g. '2024-11'")

class Fee(FeeCreate):
    model_config = _STORED

    id: str
    created_at: datetime


# ===== Homework =====

class HomeworkCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: str
    class_id: str
    tutor_id: str
    due_date: datetime
    status: HomeworkStatus = "active"
    total_students: int = Field(0, ge=0)
    submitted_count: int = Field(0, ge=0)

class Homework(HomeworkCreate):
    model_config = _STORED

    id: str
    assigned_date: datetime


class HomeworkSubmissionCreate(BaseModel):
    homework_id: str
    student_id: str
    submission_text: Optional[str] = None
    file_url: Optional[str] = None
    grade: Optional[int] = Field(None, ge=0, le=100, description="Percentage")
    feedback: Optional[str] = None
    status: SubmissionStatus = "submitted"

class HomeworkSubmission(HomeworkSubmissionCreate):
    model_config = _STORED

    id: str
    submitted_at: datetime


# ===== Announcements =====

class AnnouncementCreate(BaseModel):
    title: str = Field(..., min_length=1)
    message: str
    tutor_id: str
    target_audience: TargetAudience
    class_ids: List[str] = Field(default_factory=list)
    is_important: bool = False

class Announcement(AnnouncementCreate):
    model_config = _STORED

    id: str
    created_at: datetime


# ===== System logs =====
# Known admin actions carry a typed payload; anything else goes in GenericDetails.

class UserCreatedDetails(BaseModel):
    kind: Literal["user_created"] = "user_created"
    user_name: str
    user_role: UserRole

class UserStatusChangedDetails(BaseModel):
    kind: Literal["user_status_changed"] = "user_status_changed"
    user_name: str
    new_status: bool

class UserDeletedDetails(BaseModel):
    kind: Literal["user_deleted"] = "user_deleted"
    user_name: str
    user_role: UserRole

class SettingCreatedDetails(BaseModel):
    kind: Literal["setting_created"] = "setting_created"
    key: str
    category: str

class SettingUpdatedDetails(BaseModel):
    kind: Literal["setting_updated"] = "setting_updated"
    key: str
    new_value: str

class FeeUpdatedDetails(BaseModel):
    kind: Literal["fee_updated"] = "fee_updated"
    student_id: str
    old_status: FeeStatus
    new_status: FeeStatus

class GenericDetails(BaseModel):
    kind: Literal["generic"] = "generic"
    data: Dict[str, Any] = Field(default_factory=dict)

LogDetails = Annotated[
    Union[
        UserCreatedDetails,
        UserStatusChangedDetails,
        UserDeletedDetails,
        SettingCreatedDetails,
        SettingUpdatedDetails,
        FeeUpdatedDetails,
        GenericDetails,
    ],
    Field(discriminator="kind"),
]

class SystemLogCreate(BaseModel):
    admin_id: str = Field(..., description="FK to the acting admin User")
    action: str = Field(..., min_length=1, description="e.g. 'user_created', 'setting_updated'")
    target_type: str = Field(..., description="e.g. 'user', 'setting', 'fee'")
    target_id: str
    details: LogDetails = Field(default_factory=GenericDetails)
    ip_address: Optional[str] = None

class SystemLog(SystemLogCreate):
    """Append-only audit record."""
    model_config = _STORED

    id: str
    created_at: datetime


# ===== System settings =====

class SystemSettingCreate(BaseModel):
    key: str = Field(..., min_length=1)
    value: str
    description: Optional[str] = None
    category: str = "general"
    updated_by: Optional[str] = Field(None, description="FK to the User who last changed it")

class SystemSetting(SystemSettingCreate):
    model_config = _STORED

    id: str
    updated_at: datetime
