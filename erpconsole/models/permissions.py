"""Capability flags, their editor categories, and the cascade rules between them.

Every change to a permission draft goes through one of two pure
transitions, :func:`apply_permission_change` and
:func:`apply_role_selection`. The rules they apply live in the
``CASCADES`` and ``ADMIN_ROLE_GRANTS`` tables so they can be listed and
tested on their own.
"""

import enum
from typing import Dict, Mapping, Optional, Tuple, Union

from pydantic import ConfigDict

from erpconsole.core.config import settings
from erpconsole.core.exceptions import ValidationError
from erpconsole.schemas.schemas import CapabilityFlags, Role


class PermissionCategory(str, enum.Enum):
    GENERAL = "general"
    SYSTEM = "system"
    CRM = "crm"
    FINANCE = "finance"
    DISPATCH = "dispatch"

    @property
    def label(self) -> str:
        return _CATEGORY_LABELS[self]


_CATEGORY_LABELS = {
    PermissionCategory.GENERAL: "General",
    PermissionCategory.SYSTEM: "System Admin",
    PermissionCategory.CRM: "CRM",
    PermissionCategory.FINANCE: "Finance",
    PermissionCategory.DISPATCH: "Dispatch",
}


class Capability(str, enum.Enum):
    """Closed set of capability identifiers; values are the wire names."""

    VIEW_CRM = "canViewCRM"
    EDIT_LEADS = "canEditLeads"
    VIEW_INVOICES = "canViewInvoices"
    APPROVE_PAYROLL = "canApprovePayroll"
    MANAGE_USERS = "canManageUsers"

    SYSTEM_ADMIN = "isSystemAdmin"
    MANAGE_ROLES = "canManageRoles"
    ACCESS_ALL_ORGS = "canAccessAllOrgs"
    MANAGE_SETTINGS = "canManageSettings"
    VIEW_AUDIT_LOG = "canViewAuditLog"

    MANAGE_LEAD_ASSIGNMENTS = "canManageLeadAssignments"
    DELETE_LEADS = "canDeleteLeads"
    EXPORT_LEADS = "canExportLeads"

    CREATE_INVOICES = "canCreateInvoices"
    APPROVE_INVOICES = "canApproveInvoices"
    MANAGE_ACCOUNTING = "canManageAccounting"

    MANAGE_LOADS = "canManageLoads"
    MANAGE_CARRIERS = "canManageCarriers"
    APPROVE_DISPATCH_REPORTS = "canApproveDispatchReports"

    @property
    def field(self) -> str:
        """Attribute name on :class:`CapabilityFlags`."""
        return _FIELD_BY_ALIAS[self.value]

    @property
    def category(self) -> PermissionCategory:
        return CAPABILITY_CATEGORIES[self]

    @property
    def description(self) -> str:
        return CAPABILITY_DESCRIPTIONS[self]

    @classmethod
    def parse(cls, name: Union[str, "Capability"]) -> "Capability":
        """Resolve a capability from its wire name, field name, or member name."""
        if isinstance(name, Capability):
            return name
        if name in _BY_ANY_NAME:
            return _BY_ANY_NAME[name]
        raise ValidationError(f"Unknown capability '{name}'")


_FIELD_BY_ALIAS = {
    field.alias: name for name, field in CapabilityFlags.model_fields.items()
}

_BY_ANY_NAME: Dict[str, Capability] = {}
for _cap in Capability:
    _BY_ANY_NAME[_cap.value] = _cap
    _BY_ANY_NAME[_cap.name] = _cap
    _BY_ANY_NAME[_FIELD_BY_ALIAS[_cap.value]] = _cap


CAPABILITY_CATEGORIES: Dict[Capability, PermissionCategory] = {
    Capability.VIEW_CRM: PermissionCategory.GENERAL,
    Capability.EDIT_LEADS: PermissionCategory.GENERAL,
    Capability.VIEW_INVOICES: PermissionCategory.GENERAL,
    Capability.APPROVE_PAYROLL: PermissionCategory.GENERAL,
    Capability.MANAGE_USERS: PermissionCategory.GENERAL,
    Capability.SYSTEM_ADMIN: PermissionCategory.SYSTEM,
    Capability.MANAGE_ROLES: PermissionCategory.SYSTEM,
    Capability.ACCESS_ALL_ORGS: PermissionCategory.SYSTEM,
    Capability.MANAGE_SETTINGS: PermissionCategory.SYSTEM,
    Capability.VIEW_AUDIT_LOG: PermissionCategory.SYSTEM,
    Capability.MANAGE_LEAD_ASSIGNMENTS: PermissionCategory.CRM,
    Capability.DELETE_LEADS: PermissionCategory.CRM,
    Capability.EXPORT_LEADS: PermissionCategory.CRM,
    Capability.CREATE_INVOICES: PermissionCategory.FINANCE,
    Capability.APPROVE_INVOICES: PermissionCategory.FINANCE,
    Capability.MANAGE_ACCOUNTING: PermissionCategory.FINANCE,
    Capability.MANAGE_LOADS: PermissionCategory.DISPATCH,
    Capability.MANAGE_CARRIERS: PermissionCategory.DISPATCH,
    Capability.APPROVE_DISPATCH_REPORTS: PermissionCategory.DISPATCH,
}

CAPABILITY_DESCRIPTIONS: Dict[Capability, str] = {
    Capability.VIEW_CRM: "View customer relationship data including leads and contacts",
    Capability.EDIT_LEADS: "Create, edit, and manage leads",
    Capability.VIEW_INVOICES: "View invoices and billing information",
    Capability.APPROVE_PAYROLL: "Approve payroll and commissions",
    Capability.MANAGE_USERS: "Manage users and their access",
    Capability.SYSTEM_ADMIN: "Super-admin privileges with full system access",
    Capability.MANAGE_ROLES: "Create, modify, and assign roles",
    Capability.ACCESS_ALL_ORGS: "View and manage data across all organizations",
    Capability.MANAGE_SETTINGS: "Modify system configuration and global settings",
    Capability.VIEW_AUDIT_LOG: "View the audit log of all user actions",
    Capability.MANAGE_LEAD_ASSIGNMENTS: "Assign and reassign leads between team members",
    Capability.DELETE_LEADS: "Permanently delete lead records",
    Capability.EXPORT_LEADS: "Export lead data for external use",
    Capability.CREATE_INVOICES: "Generate new invoices for clients",
    Capability.APPROVE_INVOICES: "Review and approve invoices before sending",
    Capability.MANAGE_ACCOUNTING: "Accounting features and financial reporting",
    Capability.MANAGE_LOADS: "Create, modify, and assign delivery loads",
    Capability.MANAGE_CARRIERS: "Add, modify, and manage carrier relationships",
    Capability.APPROVE_DISPATCH_REPORTS: "Review and approve dispatch reports",
}


# (capability, new value) -> flags forced alongside it.
# Turning system admin off deliberately leaves VIEW_AUDIT_LOG and
# MANAGE_USERS as they were.
CASCADES: Dict[Tuple[Capability, bool], Dict[Capability, bool]] = {
    (Capability.SYSTEM_ADMIN, True): {
        Capability.MANAGE_ROLES: True,
        Capability.ACCESS_ALL_ORGS: True,
        Capability.MANAGE_SETTINGS: True,
        Capability.VIEW_AUDIT_LOG: True,
        Capability.MANAGE_USERS: True,
    },
    (Capability.SYSTEM_ADMIN, False): {
        Capability.MANAGE_ROLES: False,
        Capability.ACCESS_ALL_ORGS: False,
        Capability.MANAGE_SETTINGS: False,
    },
}

ADMIN_ROLE_GRANTS: Dict[Capability, bool] = {
    Capability.SYSTEM_ADMIN: True,
    Capability.MANAGE_ROLES: True,
    Capability.ACCESS_ALL_ORGS: True,
    Capability.MANAGE_SETTINGS: True,
    Capability.VIEW_AUDIT_LOG: True,
}


class Permissions(CapabilityFlags):
    """Immutable permission draft. Transitions return a new instance."""

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_flags(cls, flags: Union[CapabilityFlags, Mapping[str, bool]]) -> "Permissions":
        if isinstance(flags, CapabilityFlags):
            flags = flags.flags()
        return cls.model_validate(dict(flags))

    def get(self, capability: Union[str, Capability]) -> bool:
        return getattr(self, Capability.parse(capability).field)

    def with_flags(self, assignments: Mapping[Capability, bool]) -> "Permissions":
        return self.model_copy(update={cap.field: bool(v) for cap, v in assignments.items()})

    def granted(self) -> list:
        return [cap for cap in Capability if self.get(cap)]

    def diff(self, other: "Permissions") -> Dict[Capability, Tuple[bool, bool]]:
        """Capabilities whose value differs, mapped to ``(self, other)``."""
        return {
            cap: (self.get(cap), other.get(cap))
            for cap in Capability
            if self.get(cap) != other.get(cap)
        }

    def as_payload(self) -> Dict[str, bool]:
        return self.flags()


def apply_permission_change(
    draft: Permissions, capability: Union[str, Capability], value: bool
) -> Permissions:
    """Set one capability and apply its cascade, if it has one."""
    capability = Capability.parse(capability)
    value = bool(value)
    assignments = {capability: value}
    assignments.update(CASCADES.get((capability, value), {}))
    return draft.with_flags(assignments)


def is_admin_role(role: Optional[Role], admin_role_name: Optional[str] = None) -> bool:
    if role is None:
        return False
    return role.name.lower() == (admin_role_name or settings.ADMIN_ROLE_NAME).lower()


def apply_role_selection(
    draft: Permissions, role: Optional[Role], admin_role_name: Optional[str] = None
) -> Permissions:
    """Grant the administrator flags when the administrator role is picked.

    Any other role, or no role at all, leaves the draft untouched.
    """
    if is_admin_role(role, admin_role_name):
        return draft.with_flags(ADMIN_ROLE_GRANTS)
    return draft
