from fastapi import APIRouter, Depends, status, Response, Request
from typing import List, Optional

from ..services.admin_service import AdminService
from ..services.exceptions import ServiceError
from ..models.db_models import User, UserCreate, UserRole, Fee, SystemLog, SystemLogCreate, SystemSetting, SystemSettingCreate
from ..models.patch_models import SystemSettingPatch
from ..models.report_models import AdminDashboardStats, UserReport, FinancialReport, IntegrityReport
from .schemas.user import UserResponse
from .schemas.admin import UserStatusRequest, FeeStatusRequest
from .auth import get_current_user, verify_role
from .dependencies import get_admin_service, get_client_ip
from .utilities.errors import to_http_exception
from .utilities.limiter import limiter

router = APIRouter(prefix="/admin", tags=["Admin Endpoints"])

def _verify_admin_role(user: User):
    verify_role(user, "admin")

# === Dashboard ===

@router.get("/dashboard/stats", response_model=AdminDashboardStats, summary="System-wide headline numbers")
@limiter.limit("60/minute")
async def get_dashboard_stats(request: Request, user: User = Depends(get_current_user), service: AdminService = Depends(get_admin_service)):
    _verify_admin_role(user)
    return await service.get_dashboard_stats()

# === Users ===

@router.get("/users", response_model=List[UserResponse], summary="List users, optionally of one role")
@limiter.limit("60/minute")
async def list_users(request: Request, role: Optional[UserRole] = None, user: User = Depends(get_current_user), service: AdminService = Depends(get_admin_service)):
    _verify_admin_role(user)
    return await service.list_users(role)

@router.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED, summary="Create a user account")
@limiter.limit("30/minute")
async def create_user(request: Request, data: UserCreate, user: User = Depends(get_current_user), service: AdminService = Depends(get_admin_service), client_ip: str = Depends(get_client_ip)):
    _verify_admin_role(user)
    try:
        return await service.create_user(user, data, ip_address=client_ip)
    except ServiceError as e:
        raise to_http_exception(e)

@router.put("/users/{user_id}/status", response_model=UserResponse, summary="Activate or deactivate a user")
@limiter.limit("30/minute")
async def set_user_status(request: Request, user_id: str, status_request: UserStatusRequest, user: User = Depends(get_current_user), service: AdminService = Depends(get_admin_service), client_ip: str = Depends(get_client_ip)):
    _verify_admin_role(user)
    try:
        return await service.set_user_status(user, user_id, status_request.is_active, ip_address=client_ip)
    except ServiceError as e:
        raise to_http_exception(e)

@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a user")
@limiter.limit("30/minute")
async def delete_user(request: Request, user_id: str, user: User = Depends(get_current_user), service: AdminService = Depends(get_admin_service), client_ip: str = Depends(get_client_ip)):
    _verify_admin_role(user)
    try:
        await service.delete_user(user, user_id, ip_address=client_ip)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except ServiceError as e:
        raise to_http_exception(e)

# === Fees ===

@router.put("/fees/{fee_id}/status", response_model=Fee, summary="Override the status of a fee")
@limiter.limit("30/minute")
async def set_fee_status(request: Request, fee_id: str, status_request: FeeStatusRequest, user: User = Depends(get_current_user), service: AdminService = Depends(get_admin_service), client_ip: str = Depends(get_client_ip)):
    _verify_admin_role(user)
    try:
        return await service.set_fee_status(user, fee_id, status_request.status, ip_address=client_ip)
    except ServiceError as e:
        raise to_http_exception(e)

# === System logs ===

@router.get("/logs", response_model=List[SystemLog], summary="Audit trail, newest first")
@limiter.limit("60/minute")
async def list_system_logs(request: Request, admin_id: Optional[str] = None, action: Optional[str] = None, user: User = Depends(get_current_user), service: AdminService = Depends(get_admin_service)):
    _verify_admin_role(user)
    return await service.list_system_logs(admin_id=admin_id, action=action)

@router.post("/logs", response_model=SystemLog, status_code=status.HTTP_201_CREATED, summary="Append a manual audit entry")
@limiter.limit("30/minute")
async def create_system_log(request: Request, data: SystemLogCreate, user: User = Depends(get_current_user), service: AdminService = Depends(get_admin_service), client_ip: str = Depends(get_client_ip)):
    _verify_admin_role(user)
    # The acting admin and address always come from the request itself.
    data = data.model_copy(update={"admin_id": user.id, "ip_address": client_ip})
    return await service.create_system_log(data)

# === System settings ===

@router.get("/settings", response_model=List[SystemSetting], summary="List settings, optionally of one category")
@limiter.limit("60/minute")
async def list_settings(request: Request, category: Optional[str] = None, user: User = Depends(get_current_user), service: AdminService = Depends(get_admin_service)):
    _verify_admin_role(user)
    return await service.list_settings(category)

@router.post("/settings", response_model=SystemSetting, status_code=status.HTTP_201_CREATED, summary="Create a setting")
@limiter.limit("30/minute")
async def create_setting(request: Request, data: SystemSettingCreate, user: User = Depends(get_current_user), service: AdminService = Depends(get_admin_service), client_ip: str = Depends(get_client_ip)):
    _verify_admin_role(user)
    try:
        return await service.create_setting(user, data, ip_address=client_ip)
    except ServiceError as e:
        raise to_http_exception(e)

@router.put("/settings/{setting_id}", response_model=SystemSetting, summary="Update some fields of a setting")
@limiter.limit("30/minute")
async def update_setting(request: Request, setting_id: str, patch: SystemSettingPatch, user: User = Depends(get_current_user), service: AdminService = Depends(get_admin_service), client_ip: str = Depends(get_client_ip)):
    _verify_admin_role(user)
    try:
        return await service.update_setting(user, setting_id, patch, ip_address=client_ip)
    except ServiceError as e:
        raise to_http_exception(e)

@router.delete("/settings/{setting_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a setting")
@limiter.limit("30/minute")
async def delete_setting(request: Request, setting_id: str, user: User = Depends(get_current_user), service: AdminService = Depends(get_admin_service)):
    _verify_admin_role(user)
    try:
        await service.delete_setting(setting_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except ServiceError as e:
        raise to_http_exception(e)

# === Reports ===

@router.get("/reports/users", response_model=UserReport, summary="User counts by status and role")
@limiter.limit("30/minute")
async def get_user_report(request: Request, user: User = Depends(get_current_user), service: AdminService = Depends(get_admin_service)):
    _verify_admin_role(user)
    return await service.get_user_report()

@router.get("/reports/financial", response_model=FinancialReport, summary="Revenue and outstanding fees")
@limiter.limit("30/minute")
async def get_financial_report(request: Request, user: User = Depends(get_current_user), service: AdminService = Depends(get_admin_service)):
    _verify_admin_role(user)
    return await service.get_financial_report()

@router.get("/reports/integrity", response_model=IntegrityReport, summary="References that point at deleted records")
@limiter.limit("10/minute")
async def get_integrity_report(request: Request, user: User = Depends(get_current_user), service: AdminService = Depends(get_admin_service)):
    _verify_admin_role(user)
    return await service.get_integrity_report()
