"""UI gating: which capabilities a user holds and which sections a role sees."""

import enum
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

from erpconsole.models.permissions import Capability
from erpconsole.schemas.schemas import CapabilityFlags, Role


class RoleLevel(enum.IntEnum):
    REP = 1
    TEAM_LEAD = 2
    MANAGER = 3
    HEAD = 4
    SUPER_ADMIN = 5


def has_capability(flags: CapabilityFlags, capability: Union[str, Capability]) -> bool:
    """System admins hold every capability; everyone else needs the flag."""
    if flags.is_system_admin:
        return True
    return bool(getattr(flags, Capability.parse(capability).field))


@dataclass(frozen=True)
class NavItem:
    name: str
    href: str
    section: str = "main"
    show_for: Optional[Tuple[str, ...]] = None
    min_level: Optional[int] = None

    def visible_to(self, role: Role) -> bool:
        if self.show_for and role.department not in self.show_for:
            return False
        if self.min_level and role.level < self.min_level:
            return False
        return True


NAVIGATION: Tuple[NavItem, ...] = (
    NavItem("Dashboard", "/"),
    NavItem("CRM", "/crm", show_for=("sales", "admin")),
    NavItem("Dispatch", "/dispatch", show_for=("dispatch", "admin")),
    NavItem("Invoices", "/invoices", show_for=("sales", "dispatch", "admin"), min_level=RoleLevel.TEAM_LEAD),
    NavItem("Tasks", "/tasks", section="tasks"),
    NavItem("Notifications", "/notifications", section="tasks"),
    NavItem("Time Tracking", "/time-tracking", section="secondary", show_for=("hr", "admin")),
    NavItem("Finance", "/finance", section="secondary", show_for=("finance", "admin"), min_level=RoleLevel.MANAGER),
    NavItem(
        "Client Portal", "/client-portal", section="secondary",
        show_for=("sales", "dispatch", "admin"), min_level=RoleLevel.MANAGER,
    ),
    NavItem(
        "Reports", "/reports", section="secondary",
        show_for=("sales", "dispatch", "finance", "hr", "admin"), min_level=RoleLevel.TEAM_LEAD,
    ),
    NavItem("Settings", "/settings", section="secondary"),
    NavItem("Admin", "/admin", section="admin", show_for=("admin",)),
    NavItem("System", "/admin/settings", section="admin", show_for=("admin",), min_level=RoleLevel.SUPER_ADMIN),
)


def visible_navigation(role: Optional[Role]) -> List[NavItem]:
    """Navigation entries the role may see, in display order."""
    if role is None:
        return []
    return [item for item in NAVIGATION if item.visible_to(role)]
