"""Permission editor: a local draft of one user's role and capability flags."""

import enum
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from erpconsole.models.permissions import (
    Capability,
    PermissionCategory,
    Permissions,
    apply_permission_change,
    apply_role_selection,
)
from erpconsole.schemas.schemas import Role, User, UserUpdate

logger = logging.getLogger("erp_console.permissions")

UpdateUser = Callable[[int, Dict[str, Any]], Any]


class EditorState(str, enum.Enum):
    IDLE = "idle"
    EDITING = "editing"


class PermissionEditor:
    """Edit session over a user's permissions.

    Toggles and role changes only touch the local draft; nothing reaches
    the backend until :meth:`save`. There is no conflict detection, the
    last save wins.
    """

    def __init__(
        self,
        user: User,
        roles: Sequence[Role],
        update_user: UpdateUser,
        on_close: Optional[Callable[[], None]] = None,
    ):
        self.roles: List[Role] = list(roles)
        self._update_user = update_user
        self._on_close = on_close
        self._load(user)

    def _load(self, user: User) -> None:
        self.user = user
        self.snapshot = Permissions.from_flags(user)
        self.permissions = self.snapshot
        self.selected_role_id = user.role_id
        self.state = EditorState.IDLE

    # ---- Queries ----
    def find_role(self, role_id: int) -> Optional[Role]:
        return next((r for r in self.roles if r.id == role_id), None)

    @property
    def selected_role(self) -> Optional[Role]:
        return self.find_role(self.selected_role_id)

    @property
    def is_dirty(self) -> bool:
        return self.selected_role_id != self.user.role_id or self.permissions != self.snapshot

    def changes(self) -> Dict[Capability, Tuple[bool, bool]]:
        """Capabilities changed since the snapshot, as ``(old, new)``."""
        return self.snapshot.diff(self.permissions)

    def by_category(self) -> Dict[PermissionCategory, List[Tuple[Capability, bool]]]:
        tabs: Dict[PermissionCategory, List[Tuple[Capability, bool]]] = {c: [] for c in PermissionCategory}
        for cap in Capability:
            tabs[cap.category].append((cap, self.permissions.get(cap)))
        return tabs

    # ---- Transitions ----
    def select_role(self, role_id: int) -> None:
        self.selected_role_id = int(role_id)
        self.permissions = apply_role_selection(self.permissions, self.find_role(self.selected_role_id))
        self.state = EditorState.EDITING

    def set_permission(self, capability: Union[str, Capability], value: bool) -> None:
        self.permissions = apply_permission_change(self.permissions, capability, value)
        self.state = EditorState.EDITING

    def payload(self) -> Dict[str, Any]:
        update = UserUpdate(role_id=self.selected_role_id, **self.permissions.model_dump())
        return {"id": self.user.id, **update.to_payload()}

    def save(self) -> User:
        """Submit the draft; errors from ``update_user`` propagate unchanged."""
        payload = self.payload()
        result = self._update_user(self.user.id, payload)
        logger.info(
            "Saved permissions for user %s (role %s, %d flags changed)",
            self.user.id, self.selected_role_id, len(self.changes()),
        )
        if isinstance(result, User):
            saved = result
        elif isinstance(result, dict) and result.get("id") is not None:
            saved = User.model_validate(result)
        else:
            saved = self.user.model_copy(
                update={"role_id": self.selected_role_id, **self.permissions.model_dump()}
            )
        self._load(saved)
        self._close()
        return saved

    def cancel(self) -> None:
        self.permissions = self.snapshot
        self.selected_role_id = self.user.role_id
        self.state = EditorState.IDLE
        self._close()

    def _close(self) -> None:
        if self._on_close is not None:
            self._on_close()
