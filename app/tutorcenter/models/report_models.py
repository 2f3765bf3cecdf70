# app/tutorcenter/models/report_models.py

from pydantic import BaseModel, Field
from decimal import Decimal
from typing import Dict, List

from .db_models import Announcement, Attendance, Class, Fee, Homework, HomeworkSubmission, Student


class AdminDashboardStats(BaseModel):
    """Snapshot computed over the whole store on every request."""
    total_users: int
    active_users: int
    total_students: int
    total_tutors: int
    total_parents: int
    total_classes: int
    total_revenue: Decimal = Field(description="Sum of paid fee amounts.")
    monthly_revenue: Decimal = Field(description="Paid fee amounts billed for the current month.")
    avg_attendance: float = Field(description="Present-or-late share of all attendance records, in percent.")


class TutorDashboardStats(BaseModel):
    total_students: int
    total_classes: int
    monthly_revenue: Decimal
    avg_attendance: float


class UserReport(BaseModel):
    total_users: int
    active_users: int
    inactive_users: int
    by_role: Dict[str, int]
    recent_registrations: int = Field(description="Users created in the last 30 days.")


class FinancialReport(BaseModel):
    total_revenue: Decimal
    monthly_revenue: Decimal
    pending_amount: Decimal
    overdue_amount: Decimal
    total_fees: int
    paid_fees: int
    pending_fees: int
    overdue_fees: int


class DanglingReference(BaseModel):
    entity_type: str = Field(description="Kind of the record holding the reference, e.g. 'fee'.")
    entity_id: str
    field: str = Field(description="Name of the reference field, e.g. 'student_id'.")
    missing_id: str


class IntegrityReport(BaseModel):
    """References pointing at ids that no longer exist. Never repaired automatically."""
    dangling_count: int
    dangling: List[DanglingReference]


class StudentOverview(BaseModel):
    """Everything a student or their parent sees on the portal for one student."""
    student: Student
    classes: List[Class]
    fees: List[Fee]
    attendance: List[Attendance]
    attendance_rate: float
    homework: List[Homework]
    submissions: List[HomeworkSubmission]
    announcements: List[Announcement]
