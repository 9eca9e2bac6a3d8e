from typing import List, Optional

from sqlalchemy import or_

from courier.models.role import Role, DataScope, PERMISSION_ACTIONS, PERMISSION_MODULES
from courier.models.user import User


def parse_permission(permission_code: str) -> tuple[str, str]:
    """Split 'booking:view' into ('booking', 'view')."""
    module, _, action = permission_code.partition(":")
    if module not in PERMISSION_MODULES or action not in PERMISSION_ACTIONS:
        raise ValueError(f"Invalid permission code '{permission_code}'")
    return module, action


class PermissionChecker:
    """
    Permission checker utility for role flags.

    Permission codes are '<module>:<action>', e.g. 'booking:add'.
    The Super Admin role passes every check.
    """

    def __init__(self, user: User):
        self.user = user
        self.role: Optional[Role] = user.role

    def is_super_admin(self) -> bool:
        return self.role is not None and self.role.is_super_admin

    def has_permission(self, permission_code: str) -> bool:
        """
        Check if user has a specific permission.

        Args:
            permission_code: The permission code to check (e.g., 'invoicing:edit')

        Returns:
            True if user has the permission
        """
        if self.is_super_admin():
            return True
        if self.role is None or not self.role.is_active:
            return False

        module, action = parse_permission(permission_code)
        return self.role.can(module, action)

    def has_any_permission(self, permission_codes: List[str]) -> bool:
        return any(self.has_permission(code) for code in permission_codes)

    def can_override_status(self) -> bool:
        """Appending past a terminal status (reopening a delivered booking, a closed ticket) is Super Admin only."""
        return self.is_super_admin()

    @property
    def data_scope(self) -> str:
        if self.is_super_admin():
            return DataScope.ALL.value
        if self.role is None:
            return DataScope.OWN.value
        return self.role.data_scope or DataScope.OWN.value

    def scope_filter(self, model, owner_column: str = "created_by"):
        """
        WHERE clause restricting `model` rows to what the user may see.

        own    → rows the user created
        branch → rows of the user's branch (or their own)
        zone   → rows of the user's zone (or their own)
        all    → no restriction (returns None)
        """
        scope = self.data_scope
        if scope == DataScope.ALL.value:
            return None

        owner = getattr(model, owner_column)
        own = owner == self.user.id
        if scope == DataScope.BRANCH.value and self.user.branch:
            return or_(model.branch == self.user.branch, own)
        if scope == DataScope.ZONE.value and self.user.zone:
            return or_(model.zone == self.user.zone, own)
        return own

    def apply_scope(self, query, model, owner_column: str = "created_by"):
        clause = self.scope_filter(model, owner_column)
        if clause is None:
            return query
        return query.where(clause)
