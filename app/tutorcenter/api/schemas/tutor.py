from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional


class GenerateFeesRequest(BaseModel):
    """Bills every enrolled student of a class for one month."""
    class_id: str
    month: str = Field(..., pattern=r"^\d{4}-\d{2}$", description="Billing month, e.g. '2024-11'.")
    due_date: datetime


class PayFeeRequest(BaseModel):
    paid_date: Optional[datetime] = Field(None, description="Defaults to the time of the request.")


class SubmissionRequest(BaseModel):
    """A student's answer to a homework; the homework comes from the URL."""
    student_id: str
    submission_text: Optional[str] = None
    file_url: Optional[str] = None


class GradeRequest(BaseModel):
    grade: int = Field(..., ge=0, le=100, description="Percentage.")
    feedback: Optional[str] = None
