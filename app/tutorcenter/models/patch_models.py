# app/tutorcenter/models/patch_models.py

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator
from datetime import datetime
from typing import Any, ClassVar, Dict, FrozenSet, List, Optional

from .db_models import (
    AttendanceStatus, FeeStatus, HomeworkStatus, Money,
    ScheduleEntry, SubmissionStatus, TargetAudience, UserRole
)


class PatchModel(BaseModel):
    """
    Partial update for one entity kind.

    Only fields the caller actually sent are applied (shallow merge). Unknown
    fields, and the id/timestamp fields, are rejected. An explicit null is only
    accepted for the fields listed in `nullable_fields`.
    """
    model_config = ConfigDict(extra="forbid")

    nullable_fields: ClassVar[FrozenSet[str]] = frozenset()

    @model_validator(mode="after")
    def reject_null_for_required_fields(self):
        for name in self.model_fields_set:
            if getattr(self, name) is None and name not in self.nullable_fields:
                raise ValueError(f"'{name}' cannot be set to null")
        return self

    def changes(self) -> Dict[str, Any]:
        """The fields to merge over the stored record, as model values."""
        return {name: getattr(self, name) for name in self.model_fields_set}


class UserPatch(PatchModel):
    nullable_fields: ClassVar[FrozenSet[str]] = frozenset({"avatar", "last_login"})

    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=1)
    name: Optional[str] = Field(None, min_length=1)
    role: Optional[UserRole] = None
    avatar: Optional[str] = None
    is_active: Optional[bool] = None
    last_login: Optional[datetime] = None


class StudentPatch(PatchModel):
    nullable_fields: ClassVar[FrozenSet[str]] = frozenset({"parent_id", "tutor_id", "avatar"})

    name: Optional[str] = Field(None, min_length=1)
    email: Optional[EmailStr] = None
    roll_number: Optional[str] = Field(None, min_length=1)
    grade: Optional[str] = None
    subjects: Optional[List[str]] = None
    parent_id: Optional[str] = None
    tutor_id: Optional[str] = None
    avatar: Optional[str] = None


class ClassPatch(PatchModel):
    name: Optional[str] = Field(None, min_length=1)
    subject: Optional[str] = None
    grade: Optional[str] = None
    tutor_id: Optional[str] = None
    schedule: Optional[List[ScheduleEntry]] = None
    student_ids: Optional[List[str]] = None
    fee_amount: Optional[Money] = None


class AttendancePatch(PatchModel):
    nullable_fields: ClassVar[FrozenSet[str]] = frozenset({"notes"})

    class_id: Optional[str] = None
    student_id: Optional[str] = None
    date: Optional[datetime] = None
    status: Optional[AttendanceStatus] = None
    notes: Optional[str] = None


class FeePatch(PatchModel):
    nullable_fields: ClassVar[FrozenSet[str]] = frozenset({"paid_date"})

    student_id: Optional[str] = None
    class_id: Optional[str] = None
    amount: Optional[Money] = None
    due_date: Optional[datetime] = None
    paid_date: Optional[datetime] = None
    status: Optional[FeeStatus] = None
    month: Optional[str] = Field(None, pattern=r"^\d{4}-\d{2}$")


class HomeworkPatch(PatchModel):
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    class_id: Optional[str] = None
    tutor_id: Optional[str] = None
    due_date: Optional[datetime] = None
    status: Optional[HomeworkStatus] = None
    total_students: Optional[int] = Field(None, ge=0)
    submitted_count: Optional[int] = Field(None, ge=0)


class HomeworkSubmissionPatch(PatchModel):
    nullable_fields: ClassVar[FrozenSet[str]] = frozenset({"submission_text", "file_url", "grade", "feedback"})

    homework_id: Optional[str] = None
    student_id: Optional[str] = None
    submission_text: Optional[str] = None
    file_url: Optional[str] = None
    grade: Optional[int] = Field(None, ge=0, le=100)
    feedback: Optional[str] = None
    status: Optional[SubmissionStatus] = None


class AnnouncementPatch(PatchModel):
    title: Optional[str] = Field(None, min_length=1)
    message: Optional[str] = None
    tutor_id: Optional[str] = None
    target_audience: Optional[TargetAudience] = None
    class_ids: Optional[List[str]] = None
    is_important: Optional[bool] = None


class SystemSettingPatch(PatchModel):
    nullable_fields: ClassVar[FrozenSet[str]] = frozenset({"description", "updated_by"})

    key: Optional[str] = Field(None, min_length=1)
    value: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    updated_by: Optional[str] = None
