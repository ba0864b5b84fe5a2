from typing import List, Set, Optional
import uuid

from app.models.user import User, UserRole


# Lower value = higher authority
LEVEL_ORDER = {
    UserRole.ADMIN.value: 0,
    UserRole.HR.value: 1,
    UserRole.MANAGER.value: 2,
    UserRole.EMPLOYEE.value: 3,
}

ALL_PERMISSIONS: Set[str] = {
    "users:manage",
    "departments:view", "departments:manage",
    "designations:view", "designations:manage",
    "employees:view", "employees:create", "employees:update", "employees:delete",
    "attendance:view", "attendance:manage",
    "advances:view", "advances:manage",
    "loans:view", "loans:manage",
    "payroll:view", "payroll:generate", "payroll:finalize",
    "leaves:view", "leaves:create", "leaves:approve", "leaves:final_approve",
    "letters:view",
    "audit:view",
}

_VIEW_PERMISSIONS: Set[str] = {p for p in ALL_PERMISSIONS if p.endswith(":view")}

ROLE_PERMISSIONS: dict[str, Set[str]] = {
    UserRole.ADMIN.value: ALL_PERMISSIONS,
    UserRole.HR.value: ALL_PERMISSIONS - {"users:manage", "payroll:finalize"},
    UserRole.MANAGER.value: (_VIEW_PERMISSIONS - {"audit:view", "payroll:view"}) | {"leaves:create", "leaves:approve"},
    UserRole.EMPLOYEE.value: {"leaves:view", "leaves:create", "letters:view"},
}


def get_level_value(role: str) -> int:
    """Numeric authority of a role; unknown roles rank lowest."""
    return LEVEL_ORDER.get(str(role), LEVEL_ORDER[UserRole.EMPLOYEE.value])


def permissions_for_role(role: str) -> Set[str]:
    return set(ROLE_PERMISSIONS.get(str(role), set()))


class PermissionChecker:
    """
    Role based permission checks for the current user.

    Roles are ordered ADMIN > HR > MANAGER > EMPLOYEE. ADMIN holds every
    permission; EMPLOYEE is limited to self-service on its own record.
    """

    def __init__(self, user: User, user_permissions: Optional[Set[str]] = None):
        self.user = user
        self.permissions = user_permissions if user_permissions is not None else permissions_for_role(user.role)

    def is_admin(self) -> bool:
        return self.user.role == UserRole.ADMIN.value

    def has_permission(self, permission_code: str) -> bool:
        if self.is_admin():
            return True

        return permission_code in self.permissions

    def has_any_permission(self, permission_codes: List[str]) -> bool:
        if self.is_admin():
            return True

        return bool(self.permissions & set(permission_codes))

    def has_role_level(self, role: UserRole) -> bool:
        """True if the user's role is at or above `role`."""
        return get_level_value(self.user.role) <= get_level_value(role.value)

    def can_access_employee(self, employee_id: uuid.UUID) -> bool:
        """
        Self-service check: MANAGER and above see every employee,
        EMPLOYEE only the record linked to its own account.
        """
        if self.has_role_level(UserRole.MANAGER):
            return True

        return self.user.employee_id is not None and self.user.employee_id == employee_id
