import logging
from typing import List, Optional
from datetime import datetime, timedelta

from ..db.memory_store import MemoryStore, current_month, sum_amounts, utc_now
from ..models.db_models import (
    User, UserCreate, Fee, FeeStatus, SystemLog, SystemLogCreate, SystemSetting, SystemSettingCreate,
    UserCreatedDetails, UserStatusChangedDetails, UserDeletedDetails,
    SettingCreatedDetails, SettingUpdatedDetails, FeeUpdatedDetails, LogDetails
)
from ..models.patch_models import FeePatch, SystemSettingPatch
from ..models.report_models import (
    AdminDashboardStats, UserReport, FinancialReport, DanglingReference, IntegrityReport
)
from .exceptions import ServiceError, NotFoundError, ConflictError

logger = logging.getLogger(__name__)

USER_ROLES = ("admin", "tutor", "student", "parent")
RECENT_REGISTRATION_WINDOW = timedelta(days=30)


class AdminService:
    """
    Service layer behind the admin panel: user management, system settings,
    the audit trail and the reports.

    Every mutating call records a SystemLog entry naming the acting admin.
    """
    def __init__(self, store: MemoryStore):
        self.store = store

    async def _audit(self, admin: User, action: str, target_type: str, target_id: str,
                     details: LogDetails, ip_address: Optional[str]) -> SystemLog:
        entry = SystemLogCreate(
            admin_id=admin.id, action=action, target_type=target_type,
            target_id=target_id, details=details, ip_address=ip_address
        )
        return await self.store.create_system_log(entry)

    async def get_dashboard_stats(self) -> AdminDashboardStats:
        return await self.store.get_admin_dashboard_stats()

    # ===== Users =====

    async def list_users(self, role: Optional[str] = None) -> List[User]:
        if role:
            return await self.store.get_users_by_role(role)
        return await self.store.get_all_users()

    async def create_user(self, admin: User, data: UserCreate, ip_address: Optional[str] = None) -> User:
        if await self.store.get_user_by_email(data.email):
            logger.warning(f"Admin '{admin.id}' tried to create a second account for '{data.email}'.")
            raise ConflictError(f"A user with email '{data.email}' already exists.")
        try:
            # New accounts always start active and without a login.
            user = await self.store.create_user(data.model_copy(update={"is_active": True, "last_login": None}))
            await self._audit(admin, "user_created", "user", user.id,
                              UserCreatedDetails(user_name=user.name, user_role=user.role), ip_address)
            logger.info(f"User {user.id} ({user.role}) created by admin '{admin.id}'.")
            return user
        except Exception as e:
            logger.error("Error while creating a user.", exc_info=True)
            raise ServiceError("A server error occurred while creating the user.") from e

    async def set_user_status(self, admin: User, user_id: str, is_active: bool, ip_address: Optional[str] = None) -> User:
        user = await self.store.update_user_status(user_id, is_active)
        if not user:
            raise NotFoundError(f"User ({user_id}) not found.")
        action = "user_activated" if is_active else "user_deactivated"
        await self._audit(admin, action, "user", user.id,
                          UserStatusChangedDetails(user_name=user.name, new_status=is_active), ip_address)
        logger.info(f"User {user_id} {'activated' if is_active else 'deactivated'} by admin '{admin.id}'.")
        return user

    async def delete_user(self, admin: User, user_id: str, ip_address: Optional[str] = None) -> None:
        user = await self.store.get_user(user_id)
        if not user or not await self.store.delete_user(user_id):
            raise NotFoundError(f"User ({user_id}) not found.")
        await self._audit(admin, "user_deleted", "user", user_id,
                          UserDeletedDetails(user_name=user.name, user_role=user.role), ip_address)
        logger.info(f"User {user_id} deleted by admin '{admin.id}'.")

    # ===== Fees =====

    async def set_fee_status(self, admin: User, fee_id: str, status: FeeStatus, ip_address: Optional[str] = None) -> Fee:
        """Overrides a fee's status. Any status may follow any other."""
        fee = await self.store.get_fee(fee_id)
        if not fee:
            raise NotFoundError(f"Fee ({fee_id}) not found.")
        patch = FeePatch(status=status, paid_date=utc_now() if status == "paid" else None)
        updated = await self.store.update_fee(fee_id, patch)
        await self._audit(admin, "fee_updated", "fee", fee_id,
                          FeeUpdatedDetails(student_id=fee.student_id, old_status=fee.status, new_status=status), ip_address)
        return updated

    # ===== System logs =====

    async def list_system_logs(self, admin_id: Optional[str] = None, action: Optional[str] = None) -> List[SystemLog]:
        if admin_id:
            return await self.store.get_system_logs_by_admin(admin_id)
        if action:
            return await self.store.get_system_logs_by_action(action)
        return await self.store.get_all_system_logs()

    async def create_system_log(self, data: SystemLogCreate) -> SystemLog:
        return await self.store.create_system_log(data)

    # ===== System settings =====

    async def list_settings(self, category: Optional[str] = None) -> List[SystemSetting]:
        if category:
            return await self.store.get_system_settings_by_category(category)
        return await self.store.get_all_system_settings()

    async def create_setting(self, admin: User, data: SystemSettingCreate, ip_address: Optional[str] = None) -> SystemSetting:
        if await self.store.get_system_setting_by_key(data.key):
            raise ConflictError(f"Setting '{data.key}' already exists.")
        setting = await self.store.create_system_setting(data.model_copy(update={"updated_by": admin.id}))
        await self._audit(admin, "setting_created", "setting", setting.id,
                          SettingCreatedDetails(key=setting.key, category=setting.category), ip_address)
        logger.info(f"Setting '{setting.key}' created by admin '{admin.id}'.")
        return setting

    async def update_setting(self, admin: User, setting_id: str, patch: SystemSettingPatch, ip_address: Optional[str] = None) -> SystemSetting:
        if patch.key is not None:
            owner = await self.store.get_system_setting_by_key(patch.key)
            if owner and owner.id != setting_id:
                raise ConflictError(f"Setting '{patch.key}' already exists.")
        patch = patch.model_copy(update={"updated_by": admin.id})
        setting = await self.store.update_system_setting(setting_id, patch)
        if not setting:
            raise NotFoundError(f"Setting ({setting_id}) not found.")
        await self._audit(admin, "setting_updated", "setting", setting.id,
                          SettingUpdatedDetails(key=setting.key, new_value=setting.value), ip_address)
        logger.info(f"Setting '{setting.key}' updated by admin '{admin.id}'.")
        return setting

    async def delete_setting(self, setting_id: str) -> None:
        if not await self.store.delete_system_setting(setting_id):
            raise NotFoundError(f"Setting ({setting_id}) not found.")

    # ===== Reports =====

    async def get_user_report(self, now: Optional[datetime] = None) -> UserReport:
        users = await self.store.get_all_users()
        cutoff = (now or utc_now()) - RECENT_REGISTRATION_WINDOW
        active = sum(1 for user in users if user.is_active)
        return UserReport(
            total_users=len(users),
            active_users=active,
            inactive_users=len(users) - active,
            by_role={role: sum(1 for user in users if user.role == role) for role in USER_ROLES},
            recent_registrations=sum(1 for user in users if user.created_at > cutoff),
        )

    async def get_financial_report(self) -> FinancialReport:
        fees = await self.store.get_all_fees()
        by_status = {status: [fee for fee in fees if fee.status == status] for status in ("paid", "pending", "overdue")}
        month = current_month()
        return FinancialReport(
            total_revenue=sum_amounts(by_status["paid"]),
            monthly_revenue=sum_amounts(fee for fee in by_status["paid"] if fee.month == month),
            pending_amount=sum_amounts(by_status["pending"]),
            overdue_amount=sum_amounts(by_status["overdue"]),
            total_fees=len(fees),
            paid_fees=len(by_status["paid"]),
            pending_fees=len(by_status["pending"]),
            overdue_fees=len(by_status["overdue"]),
        )

    async def get_integrity_report(self) -> IntegrityReport:
        """
        Lists references to users, students, classes and homework that no
        longer exist. Nothing is repaired.
        """
        user_ids = {user.id for user in await self.store.get_all_users()}
        student_ids = {student.id for student in await self.store.get_all_students()}
        class_ids = {cls.id for cls in await self.store.get_all_classes()}
        homework_ids = {hw.id for hw in await self.store.get_all_homework()}

        dangling: List[DanglingReference] = []

        def check(entity_type: str, entity_id: str, field: str, ref: Optional[str], known: set):
            if ref is not None and ref not in known:
                dangling.append(DanglingReference(entity_type=entity_type, entity_id=entity_id, field=field, missing_id=ref))

        for student in await self.store.get_all_students():
            check("student", student.id, "tutor_id", student.tutor_id, user_ids)
            check("student", student.id, "parent_id", student.parent_id, user_ids)
        for cls in await self.store.get_all_classes():
            check("class", cls.id, "tutor_id", cls.tutor_id, user_ids)
            for sid in cls.student_ids:
                check("class", cls.id, "student_ids", sid, student_ids)
        for att in await self.store.get_all_attendance():
            check("attendance", att.id, "class_id", att.class_id, class_ids)
            check("attendance", att.id, "student_id", att.student_id, student_ids)
        for fee in await self.store.get_all_fees():
            check("fee", fee.id, "student_id", fee.student_id, student_ids)
            check("fee", fee.id, "class_id", fee.class_id, class_ids)
        for hw in await self.store.get_all_homework():
            check("homework", hw.id, "class_id", hw.class_id, class_ids)
            check("homework", hw.id, "tutor_id", hw.tutor_id, user_ids)
        for sub in await self.store.get_all_homework_submissions():
            check("homework_submission", sub.id, "homework_id", sub.homework_id, homework_ids)
            check("homework_submission", sub.id, "student_id", sub.student_id, student_ids)
        for ann in await self.store.get_all_announcements():
            check("announcement", ann.id, "tutor_id", ann.tutor_id, user_ids)
            for cid in ann.class_ids:
                check("announcement", ann.id, "class_ids", cid, class_ids)

        if dangling:
            logger.warning(f"Integrity check found {len(dangling)} dangling reference(s).")
        return IntegrityReport(dangling_count=len(dangling), dangling=dangling)
