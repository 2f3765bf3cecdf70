from fastapi import APIRouter, Depends, Query, status, Response, Request
from typing import List, Optional
from datetime import date

from ..services.tutor_service import TutorService
from ..services.exceptions import ServiceError
from ..models.db_models import (
    User, Student, StudentCreate, Class, ClassCreate, Attendance, AttendanceCreate,
    Fee, FeeCreate, Homework, HomeworkCreate, HomeworkSubmission, HomeworkSubmissionCreate,
    Announcement, AnnouncementCreate
)
from ..models.patch_models import (
    StudentPatch, ClassPatch, AttendancePatch, FeePatch, HomeworkPatch, AnnouncementPatch
)
from ..models.report_models import TutorDashboardStats
from .schemas.tutor import GenerateFeesRequest, PayFeeRequest, SubmissionRequest, GradeRequest
from .auth import get_current_user, verify_role
from .dependencies import get_tutor_service
from .utilities.errors import to_http_exception
from .utilities.limiter import limiter

router = APIRouter(prefix="/tutor", tags=["Tutor Endpoints"])

# --- Helpers ---

def _verify_tutor_role(user: User):
    verify_role(user, "tutor", "admin")

# === Students ===

@router.get("/students", response_model=List[Student], summary="List students, optionally those of one tutor")
@limiter.limit("60/minute")
async def list_students(request: Request, tutor_id: Optional[str] = None, user: User = Depends(get_current_user), service: TutorService = Depends(get_tutor_service)):
    _verify_tutor_role(user)
    return await service.list_students(tutor_id)

@router.get("/students/{student_id}", response_model=Student, summary="Get a student")
@limiter.limit("60/minute")
async def get_student(request: Request, student_id: str, user: User = Depends(get_current_user), service: TutorService = Depends(get_tutor_service)):
    _verify_tutor_role(user)
    try:
        return await service.get_student(student_id)
    except ServiceError as e:
        raise to_http_exception(e)

@router.post("/students", response_model=Student, status_code=status.HTTP_201_CREATED, summary="Create a student")
@limiter.limit("30/minute")
async def create_student(request: Request, data: StudentCreate, user: User = Depends(get_current_user), service: TutorService = Depends(get_tutor_service)):
    _verify_tutor_role(user)
    try:
        return await service.create_student(data)
    except ServiceError as e:
        raise to_http_exception(e)

@router.put("/students/{student_id}", response_model=Student, summary="Update some fields of a student")
@limiter.limit("30/minute")
async def update_student(request: Request, student_id: str, patch: StudentPatch, user: User = Depends(get_current_user), service: TutorService = Depends(get_tutor_service)):
    _verify_tutor_role(user)
    try:
        return await service.update_student(student_id, patch)
    except ServiceError as e:
        raise to_http_exception(e)

@router.delete("/students/{student_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a student")
@limiter.limit("30/minute")
async def delete_student(request: Request, student_id: str, user: User = Depends(get_current_user), service: TutorService = Depends(get_tutor_service)):
    _verify_tutor_role(user)
    try:
        await service.delete_student(student_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except ServiceError as e:
        raise to_http_exception(e)

# === Classes ===

@router.get("/classes", response_model=List[Class], summary="List classes, optionally those of one tutor")
@limiter.limit("60/minute")
async def list_classes(request: Request, tutor_id: Optional[str] = None, user: User = Depends(get_current_user), service: TutorService = Depends(get_tutor_service)):
    _verify_tutor_role(user)
    return await service.list_classes(tutor_id)

@router.get("/classes/{class_id}", response_model=Class, summary="Get a class")
@limiter.limit("60/minute")
async def get_class(request: Request, class_id: str, user: User = Depends(get_current_user), service: TutorService = Depends(get_tutor_service)):
    _verify_tutor_role(user)
    try:
        return await service.get_class(class_id)
    except ServiceError as e:
        raise to_http_exception(e)

@router.post("/classes", response_model=Class, status_code=status.HTTP_201_CREATED, summary="Create a class")
@limiter.limit("30/minute")
async def create_class(request: Request, data: ClassCreate, user: User = Depends(get_current_user), service: TutorService = Depends(get_tutor_service)):
    _verify_tutor_role(user)
    try:
        return await service.create_class(data)
    except ServiceError as e:
        raise to_http_exception(e)

@router.put("/classes/{class_id}", response_model=Class, summary="Update some fields of a class")
@limiter.limit("30/minute")
async def update_class(request: Request, class_id: str, patch: ClassPatch, user: User = Depends(get_current_user), service: TutorService = Depends(get_tutor_service)):
    _verify_tutor_role(user)
    try:
        return await service.update_class(class_id, patch)
    except ServiceError as e:
        raise to_http_exception(e)

@router.delete("/classes/{class_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a class")
@limiter.limit("30/minute")
async def delete_class(request: Request, class_id: str, user: User = Depends(get_current_user), service: TutorService = Depends(get_tutor_service)):
    _verify_tutor_role(user)
    try:
        await service.delete_class(class_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except ServiceError as e:
        raise to_http_exception(e)

@router.post("/classes/{class_id}/students/{student_id}", response_model=Class, summary="Enrol a student in a class")
@limiter.limit("60/minute")
async def enroll_student(request: Request, class_id: str, student_id: str, user: User = Depends(get_current_user), service: TutorService = Depends(get_tutor_service)):
    _verify_tutor_role(user)
    try:
        return await service.enroll_student(class_id, student_id)
    except ServiceError as e:
        raise to_http_exception(e)

@router.delete("/classes/{class_id}/students/{student_id}", response_model=Class, summary="Remove a student from a class")
@limiter.limit("60/minute")
async def unenroll_student(request: Request, class_id: str, student_id: str, user: User = Depends(get_current_user), service: TutorService = Depends(get_tutor_service)):
    _verify_tutor_role(user)
    try:
        return await service.unenroll_student(class_id, student_id)
    except ServiceError as e:
        raise to_http_exception(e)

# === Attendance ===

@router.get("/attendance/class/{class_id}", response_model=List[Attendance], summary="Attendance of a class on one day")
@limiter.limit("60/minute")
async def get_class_attendance(
    request: Request,
    class_id: str,
    on: Optional[date] = Query(None, alias="date", description="Calendar day (UTC), defaults to today."),
    user: User = Depends(get_current_user),
    service: TutorService = Depends(get_tutor_service)
):
    _verify_tutor_role(user)
    return await service.get_class_attendance(class_id, on)

@router.get("/attendance/student/{student_id}", response_model=List[Attendance], summary="All attendance of a student")
@limiter.limit("60/minute")
async def get_student_attendance(request: Request, student_id: str, user: User = Depends(get_current_user), service: TutorService = Depends(get_tutor_service)):
    _verify_tutor_role(user)
    return await service.get_student_attendance(student_id)

@router.post("/attendance/bulk", response_model=List[Attendance], status_code=status.HTTP_201_CREATED, summary="Record attendance for many students at once")
@limiter.limit("30/minute")
async def record_attendance(request: Request, items: List[AttendanceCreate], user: User = Depends(get_current_user), service: TutorService = Depends(get_tutor_service)):
    _verify_tutor_role(user)
    try:
        return await service.record_attendance(items)
    except ServiceError as e:
        raise to_http_exception(e)

@router.put("/attendance/{attendance_id}", response_model=Attendance, summary="Correct an attendance record")
@limiter.limit("60/minute")
async def update_attendance(request: Request, attendance_id: str, patch: AttendancePatch, user: User = Depends(get_current_user), service: TutorService = Depends(get_tutor_service)):
    _verify_tutor_role(user)
    try:
        return await service.update_attendance(attendance_id, patch)
    except ServiceError as e:
        raise to_http_exception(e)

# === Fees ===

@router.get("/fees", response_model=List[Fee], summary="List fees, optionally for one billing month")
@limiter.limit("60/minute")
async def list_fees(request: Request, month: Optional[str] = Query(None, pattern=r"^\d{4}-\d{2}$"), user: User = Depends(get_current_user), service: TutorService = Depends(get_tutor_service)):
    _verify_tutor_role(user)
    return await service.list_fees(month)

@router.post("/fees", response_model=Fee, status_code=status.HTTP_201_CREATED, summary="Create a fee")
@limiter.limit("30/minute")
async def create_fee(request: Request, data: FeeCreate, user: User = Depends(get_current_user), service: TutorService = Depends(get_tutor_service)):
    _verify_tutor_role(user)
    try:
        return await service.create_fee(data)
    except ServiceError as e:
        raise to_http_exception(e)

@router.post("/fees/generate", response_model=List[Fee], status_code=status.HTTP_201_CREATED, summary="Bill every student of a class for a month")
@limiter.limit("10/minute")
async def generate_fees(request: Request, generate_request: GenerateFeesRequest, user: User = Depends(get_current_user), service: TutorService = Depends(get_tutor_service)):
    _verify_tutor_role(user)
    try:
        return await service.generate_monthly_fees(generate_request.class_id, generate_request.month, generate_request.due_date)
    except ServiceError as e:
        raise to_http_exception(e)

@router.put("/fees/{fee_id}", response_model=Fee, summary="Update some fields of a fee")
@limiter.limit("30/minute")
async def update_fee(request: Request, fee_id: str, patch: FeePatch, user: User = Depends(get_current_user), service: TutorService = Depends(get_tutor_service)):
    _verify_tutor_role(user)
    try:
        return await service.update_fee(fee_id, patch)
    except ServiceError as e:
        raise to_http_exception(e)

@router.post("/fees/{fee_id}/pay", response_model=Fee, summary="Mark a fee as paid")
@limiter.limit("30/minute")
async def pay_fee(request: Request, fee_id: str, pay_request: Optional[PayFeeRequest] = None, user: User = Depends(get_current_user), service: TutorService = Depends(get_tutor_service)):
    _verify_tutor_role(user)
    try:
        return await service.mark_fee_paid(fee_id, pay_request.paid_date if pay_request else None)
    except ServiceError as e:
        raise to_http_exception(e)

# === Homework ===

@router.get("/homework", response_model=List[Homework], summary="List homework by tutor, by class, or all")
@limiter.limit("60/minute")
async def list_homework(request: Request, tutor_id: Optional[str] = None, class_id: Optional[str] = None, user: User = Depends(get_current_user), service: TutorService = Depends(get_tutor_service)):
    _verify_tutor_role(user)
    return await service.list_homework(tutor_id=tutor_id, class_id=class_id)

@router.get("/homework/{homework_id}", response_model=Homework, summary="Get a homework assignment")
@limiter.limit("60/minute")
async def get_homework(request: Request, homework_id: str, user: User = Depends(get_current_user), service: TutorService = Depends(get_tutor_service)):
    _verify_tutor_role(user)
    try:
        return await service.get_homework(homework_id)
    except ServiceError as e:
        raise to_http_exception(e)

@router.post("/homework", response_model=Homework, status_code=status.HTTP_201_CREATED, summary="Assign homework to a class")
@limiter.limit("30/minute")
async def create_homework(request: Request, data: HomeworkCreate, user: User = Depends(get_current_user), service: TutorService = Depends(get_tutor_service)):
    _verify_tutor_role(user)
    try:
        return await service.create_homework(data)
    except ServiceError as e:
        raise to_http_exception(e)

@router.put("/homework/{homework_id}", response_model=Homework, summary="Update some fields of a homework assignment")
@limiter.limit("30/minute")
async def update_homework(request: Request, homework_id: str, patch: HomeworkPatch, user: User = Depends(get_current_user), service: TutorService = Depends(get_tutor_service)):
    _verify_tutor_role(user)
    try:
        return await service.update_homework(homework_id, patch)
    except ServiceError as e:
        raise to_http_exception(e)

@router.delete("/homework/{homework_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a homework assignment")
@limiter.limit("30/minute")
async def delete_homework(request: Request, homework_id: str, user: User = Depends(get_current_user), service: TutorService = Depends(get_tutor_service)):
    _verify_tutor_role(user)
    try:
        await service.delete_homework(homework_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except ServiceError as e:
        raise to_http_exception(e)

@router.get("/homework/{homework_id}/submissions", response_model=List[HomeworkSubmission], summary="List submissions for a homework")
@limiter.limit("60/minute")
async def list_submissions(request: Request, homework_id: str, user: User = Depends(get_current_user), service: TutorService = Depends(get_tutor_service)):
    _verify_tutor_role(user)
    return await service.list_submissions(homework_id)

@router.post("/homework/{homework_id}/submissions", response_model=HomeworkSubmission, status_code=status.HTTP_201_CREATED, summary="Record a student's submission")
@limiter.limit("60/minute")
async def create_submission(request: Request, homework_id: str, submission_request: SubmissionRequest, user: User = Depends(get_current_user), service: TutorService = Depends(get_tutor_service)):
    _verify_tutor_role(user)
    data = HomeworkSubmissionCreate(homework_id=homework_id, **submission_request.model_dump())
    try:
        return await service.submit_homework(homework_id, data)
    except ServiceError as e:
        raise to_http_exception(e)

@router.put("/submissions/{submission_id}/grade", response_model=HomeworkSubmission, summary="Grade a submission")
@limiter.limit("60/minute")
async def grade_submission(request: Request, submission_id: str, grade_request: GradeRequest, user: User = Depends(get_current_user), service: TutorService = Depends(get_tutor_service)):
    _verify_tutor_role(user)
    try:
        return await service.grade_submission(submission_id, grade_request.grade, grade_request.feedback)
    except ServiceError as e:
        raise to_http_exception(e)

# === Announcements ===

@router.get("/announcements", response_model=List[Announcement], summary="List announcements, optionally of one tutor")
@limiter.limit("60/minute")
async def list_announcements(request: Request, tutor_id: Optional[str] = None, user: User = Depends(get_current_user), service: TutorService = Depends(get_tutor_service)):
    _verify_tutor_role(user)
    return await service.list_announcements(tutor_id)

@router.post("/announcements", response_model=Announcement, status_code=status.HTTP_201_CREATED, summary="Post an announcement")
@limiter.limit("30/minute")
async def create_announcement(request: Request, data: AnnouncementCreate, user: User = Depends(get_current_user), service: TutorService = Depends(get_tutor_service)):
    _verify_tutor_role(user)
    try:
        return await service.create_announcement(data)
    except ServiceError as e:
        raise to_http_exception(e)

@router.put("/announcements/{announcement_id}", response_model=Announcement, summary="Update some fields of an announcement")
@limiter.limit("30/minute")
async def update_announcement(request: Request, announcement_id: str, patch: AnnouncementPatch, user: User = Depends(get_current_user), service: TutorService = Depends(get_tutor_service)):
    _verify_tutor_role(user)
    try:
        return await service.update_announcement(announcement_id, patch)
    except ServiceError as e:
        raise to_http_exception(e)

@router.delete("/announcements/{announcement_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete an announcement")
@limiter.limit("30/minute")
async def delete_announcement(request: Request, announcement_id: str, user: User = Depends(get_current_user), service: TutorService = Depends(get_tutor_service)):
    _verify_tutor_role(user)
    try:
        await service.delete_announcement(announcement_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except ServiceError as e:
        raise to_http_exception(e)

# === Dashboard ===

@router.get("/dashboard/stats", response_model=TutorDashboardStats, summary="Headline numbers, for the centre or one tutor")
@limiter.limit("60/minute")
async def get_dashboard_stats(request: Request, tutor_id: Optional[str] = None, user: User = Depends(get_current_user), service: TutorService = Depends(get_tutor_service)):
    _verify_tutor_role(user)
    return await service.get_dashboard_stats(tutor_id)
