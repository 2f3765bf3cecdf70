from fastapi import APIRouter, Depends, Request
from typing import List

from ..services.portal_service import PortalService
from ..services.exceptions import ServiceError
from ..models.db_models import User, Student
from ..models.report_models import StudentOverview
from .auth import get_current_user, verify_role
from .dependencies import get_portal_service
from .utilities.errors import to_http_exception
from .utilities.limiter import limiter

router = APIRouter(prefix="/portal", tags=["Portal Endpoints"])


@router.get("/children", response_model=List[Student], summary="Students linked to the calling parent")
@limiter.limit("60/minute")
async def list_children(request: Request, user: User = Depends(get_current_user), service: PortalService = Depends(get_portal_service)):
    verify_role(user, "parent")
    return await service.get_children(user)


@router.get("/children/{student_id}/overview", response_model=StudentOverview, summary="Classes, fees, attendance and news for one child")
@limiter.limit("60/minute")
async def get_child_overview(request: Request, student_id: str, user: User = Depends(get_current_user), service: PortalService = Depends(get_portal_service)):
    verify_role(user, "parent")
    try:
        return await service.get_child_overview(user, student_id)
    except ServiceError as e:
        raise to_http_exception(e)


@router.get("/me/overview", response_model=StudentOverview, summary="The calling student's own overview")
@limiter.limit("60/minute")
async def get_my_overview(request: Request, user: User = Depends(get_current_user), service: PortalService = Depends(get_portal_service)):
    """The student record is found through the account's email address."""
    verify_role(user, "student")
    try:
        return await service.get_student_overview(user)
    except ServiceError as e:
        raise to_http_exception(e)
