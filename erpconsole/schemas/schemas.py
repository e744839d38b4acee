"""Pydantic schemas for API request/response serialization."""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from typing import Optional, List, Dict, Any

from erpconsole.core.exceptions import ValidationError


def unwrap(data: Any, key: str) -> Any:
    """Return ``data[key]`` for ``{"status": ..., key: ...}`` envelopes, else ``data``."""
    if isinstance(data, dict) and key in data:
        return data[key]
    return data


def parse_model(model, data: Any):
    """Validate ``data`` as ``model``; schema mismatches raise the client's ValidationError."""
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(f"Unexpected {model.__name__} payload: {exc.error_count()} error(s)") from exc


# ---- Permissions ----
class CapabilityFlags(BaseModel):
    """The capability booleans carried on a user record.

    Wire names are camelCase; a missing or null flag reads as ``False``.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    # General
    can_view_crm: bool = Field(False, alias="canViewCRM")
    can_edit_leads: bool = Field(False, alias="canEditLeads")
    can_view_invoices: bool = Field(False, alias="canViewInvoices")
    can_approve_payroll: bool = Field(False, alias="canApprovePayroll")
    can_manage_users: bool = Field(False, alias="canManageUsers")

    # System administration
    is_system_admin: bool = Field(False, alias="isSystemAdmin")
    can_manage_roles: bool = Field(False, alias="canManageRoles")
    can_access_all_orgs: bool = Field(False, alias="canAccessAllOrgs")
    can_manage_settings: bool = Field(False, alias="canManageSettings")
    can_view_audit_log: bool = Field(False, alias="canViewAuditLog")

    # CRM
    can_manage_lead_assignments: bool = Field(False, alias="canManageLeadAssignments")
    can_delete_leads: bool = Field(False, alias="canDeleteLeads")
    can_export_leads: bool = Field(False, alias="canExportLeads")

    # Finance
    can_create_invoices: bool = Field(False, alias="canCreateInvoices")
    can_approve_invoices: bool = Field(False, alias="canApproveInvoices")
    can_manage_accounting: bool = Field(False, alias="canManageAccounting")

    # Dispatch
    can_manage_loads: bool = Field(False, alias="canManageLoads")
    can_manage_carriers: bool = Field(False, alias="canManageCarriers")
    can_approve_dispatch_reports: bool = Field(False, alias="canApproveDispatchReports")

    @field_validator(
        "can_view_crm", "can_edit_leads", "can_view_invoices", "can_approve_payroll",
        "can_manage_users", "is_system_admin", "can_manage_roles", "can_access_all_orgs",
        "can_manage_settings", "can_view_audit_log", "can_manage_lead_assignments",
        "can_delete_leads", "can_export_leads", "can_create_invoices",
        "can_approve_invoices", "can_manage_accounting", "can_manage_loads",
        "can_manage_carriers", "can_approve_dispatch_reports",
        mode="before",
    )
    @classmethod
    def _null_is_false(cls, value: Any) -> Any:
        return False if value is None else value

    def flags(self) -> Dict[str, bool]:
        """All capability flags keyed by wire name."""
        return {
            field.alias: getattr(self, name)
            for name, field in CapabilityFlags.model_fields.items()
        }


# ---- User / Role ----
class Role(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int
    name: str
    department: str
    level: int
    permissions: List[str] = Field(default_factory=list)


class User(CapabilityFlags):
    """User record as returned by the backend."""

    id: int
    username: str = ""
    first_name: str = Field("", alias="firstName")
    last_name: str = Field("", alias="lastName")
    email: Optional[str] = None
    role_id: int = Field(..., alias="roleId")
    org_id: Optional[int] = Field(None, alias="orgId")
    active: bool = True

    @field_validator("username", "first_name", "last_name", mode="before")
    @classmethod
    def _null_is_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip() or self.username


class UserUpdate(CapabilityFlags):
    """Body of ``PATCH /api/users/{id}`` for a permission edit."""

    role_id: int = Field(..., alias="roleId")

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


# ---- Dashboard ----
def _default_commissions() -> Dict[str, Any]:
    return {"monthlyData": {"current": None, "previous": None}}


class DashboardPayload(BaseModel):
    """``GET /api/dashboard/consolidated``; absent sections get empty defaults."""

    model_config = ConfigDict(extra="allow")

    metrics: Dict[str, Any] = Field(default_factory=dict)
    revenue: Dict[str, Any] = Field(default_factory=dict)
    activities: List[Any] = Field(default_factory=list)
    commissions: Dict[str, Any] = Field(default_factory=_default_commissions)

    @field_validator("metrics", "revenue", mode="before")
    @classmethod
    def _null_mapping(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("activities", mode="before")
    @classmethod
    def _null_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("commissions", mode="before")
    @classmethod
    def _null_commissions(cls, value: Any) -> Any:
        return _default_commissions() if value is None else value
