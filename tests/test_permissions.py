from __future__ import annotations

import itertools

import pytest

from erpconsole.core.exceptions import ValidationError
from erpconsole.models.permissions import (
    ADMIN_ROLE_GRANTS,
    CASCADES,
    Capability,
    PermissionCategory,
    Permissions,
    apply_permission_change,
    apply_role_selection,
)
from erpconsole.schemas.schemas import Role, User

ADMIN_DEPENDENTS = (
    Capability.MANAGE_ROLES,
    Capability.ACCESS_ALL_ORGS,
    Capability.MANAGE_SETTINGS,
    Capability.VIEW_AUDIT_LOG,
    Capability.MANAGE_USERS,
)


def _draft(pattern: int) -> Permissions:
    """A draft whose flags follow the bits of ``pattern``."""
    return Permissions.from_flags({cap.value: bool(pattern >> i & 1) for i, cap in enumerate(Capability)})


DRAFTS = [_draft(p) for p in (0, 0b1010101010101010101, 0b0101010101010101010, (1 << 19) - 1)]


def test_nineteen_capabilities_each_in_one_category() -> None:
    assert len(Capability) == 19
    for cap in Capability:
        assert isinstance(cap.category, PermissionCategory)
        assert cap.description
    assert [c for c in Capability if c.category is PermissionCategory.SYSTEM] == [
        Capability.SYSTEM_ADMIN,
        Capability.MANAGE_ROLES,
        Capability.ACCESS_ALL_ORGS,
        Capability.MANAGE_SETTINGS,
        Capability.VIEW_AUDIT_LOG,
    ]


def test_parse_accepts_wire_field_and_member_names() -> None:
    assert Capability.parse("isSystemAdmin") is Capability.SYSTEM_ADMIN
    assert Capability.parse("is_system_admin") is Capability.SYSTEM_ADMIN
    assert Capability.parse("SYSTEM_ADMIN") is Capability.SYSTEM_ADMIN
    assert Capability.parse(Capability.EXPORT_LEADS) is Capability.EXPORT_LEADS
    with pytest.raises(ValidationError):
        Capability.parse("canFly")


def test_only_system_admin_has_cascades() -> None:
    assert set(CASCADES) == {(Capability.SYSTEM_ADMIN, True), (Capability.SYSTEM_ADMIN, False)}


@pytest.mark.parametrize("draft", DRAFTS)
def test_enabling_system_admin_forces_dependents(draft: Permissions) -> None:
    result = apply_permission_change(draft, Capability.SYSTEM_ADMIN, True)
    assert result.is_system_admin
    for cap in ADMIN_DEPENDENTS:
        assert result.get(cap) is True
    changed = set(draft.diff(result))
    assert changed <= {Capability.SYSTEM_ADMIN, *ADMIN_DEPENDENTS}


@pytest.mark.parametrize("draft", DRAFTS)
def test_disabling_system_admin_clears_three_and_keeps_audit_and_users(draft: Permissions) -> None:
    result = apply_permission_change(draft, "isSystemAdmin", False)
    assert not result.is_system_admin
    assert not result.can_manage_roles
    assert not result.can_access_all_orgs
    assert not result.can_manage_settings
    assert result.can_view_audit_log == draft.can_view_audit_log
    assert result.can_manage_users == draft.can_manage_users


@pytest.mark.parametrize(
    "capability,value,draft",
    [
        (cap, value, draft)
        for cap, value, draft in itertools.product(
            [c for c in Capability if c is not Capability.SYSTEM_ADMIN], (True, False), DRAFTS
        )
    ],
)
def test_other_flags_have_no_hidden_cascades(capability: Capability, value: bool, draft: Permissions) -> None:
    result = apply_permission_change(draft, capability, value)
    assert result.get(capability) is value
    assert set(draft.diff(result)) <= {capability}


def test_transitions_do_not_mutate_the_input() -> None:
    draft = Permissions()
    apply_permission_change(draft, Capability.SYSTEM_ADMIN, True)
    assert draft.granted() == []


@pytest.mark.parametrize("name", ["Administrator", "administrator", "ADMINISTRATOR"])
@pytest.mark.parametrize("draft", DRAFTS)
def test_administrator_role_grants_admin_flags(name: str, draft: Permissions) -> None:
    role = Role(id=9, name=name, department="admin", level=5)
    result = apply_role_selection(draft, role)
    for cap in (Capability.MANAGE_ROLES, Capability.ACCESS_ALL_ORGS, Capability.MANAGE_SETTINGS, Capability.VIEW_AUDIT_LOG):
        assert result.get(cap) is True
    assert result.is_system_admin
    assert set(draft.diff(result)) <= set(ADMIN_ROLE_GRANTS)


@pytest.mark.parametrize("draft", DRAFTS)
def test_other_roles_leave_flags_unchanged(draft: Permissions) -> None:
    role = Role(id=2, name="Dispatch Manager", department="dispatch", level=3)
    assert apply_role_selection(draft, role) == draft
    assert apply_role_selection(draft, None) == draft


def test_toggle_scenario_keeps_asymmetric_flags() -> None:
    draft = Permissions.from_flags({"isSystemAdmin": False, "canManageUsers": False, "canViewAuditLog": True})

    on = apply_permission_change(draft, "isSystemAdmin", True)
    assert {k: v for k, v in on.as_payload().items() if v} == {
        "isSystemAdmin": True,
        "canManageRoles": True,
        "canAccessAllOrgs": True,
        "canManageSettings": True,
        "canViewAuditLog": True,
        "canManageUsers": True,
    }

    off = apply_permission_change(on, "isSystemAdmin", False)
    payload = off.as_payload()
    assert payload["isSystemAdmin"] is False
    assert payload["canManageRoles"] is False
    assert payload["canAccessAllOrgs"] is False
    assert payload["canManageSettings"] is False
    assert payload["canViewAuditLog"] is True
    assert payload["canManageUsers"] is True


def test_from_user_treats_missing_and_null_flags_as_false() -> None:
    user = User.model_validate({"id": 5, "roleId": 1, "canViewCRM": True, "canExportLeads": None})
    draft = Permissions.from_flags(user)
    assert draft.granted() == [Capability.VIEW_CRM]
    assert len(draft.as_payload()) == 19
