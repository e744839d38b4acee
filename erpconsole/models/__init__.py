"""Permission model and UI gating."""

from erpconsole.models.permissions import (
    ADMIN_ROLE_GRANTS,
    CASCADES,
    Capability,
    PermissionCategory,
    Permissions,
    apply_permission_change,
    apply_role_selection,
)
from erpconsole.models.access import NavItem, RoleLevel, has_capability, visible_navigation

__all__ = [
    "ADMIN_ROLE_GRANTS", "CASCADES", "Capability", "PermissionCategory",
    "Permissions", "apply_permission_change", "apply_role_selection",
    "NavItem", "RoleLevel", "has_capability", "visible_navigation",
]
