"""User and role management on top of the API client and query cache."""

import logging
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional

from erpconsole.core.exceptions import ResourceNotFoundError
from erpconsole.schemas.schemas import Role, User, parse_model, unwrap
from erpconsole.services.api_client import ApiClient
from erpconsole.services.permission_editor import PermissionEditor
from erpconsole.services.query_cache import DEFAULT, CachePolicy, QueryCache

logger = logging.getLogger("erp_console.users")

USERS_KEY = "/api/users"
ROLES_KEY = "/api/roles"

# user and role lists retry once
LIST_POLICY = replace(DEFAULT, name="list", retry=1)


class UserService:
    """Handles user listing, role listing and user updates."""

    def __init__(self, api: ApiClient, cache: Optional[QueryCache] = None, policy: CachePolicy = LIST_POLICY):
        self.api = api
        self.cache = cache if cache is not None else QueryCache()
        self.policy = policy

    def list_roles(self) -> List[Role]:
        data = self.cache.query(ROLES_KEY, self.api.list_roles, self.policy).fetch()
        return [parse_model(Role, r) for r in unwrap(data, "roles") or []]

    def list_users(self) -> List[User]:
        data = self.cache.query(USERS_KEY, self.api.list_users, self.policy).fetch()
        return [parse_model(User, u) for u in unwrap(data, "users") or []]

    def get_user(self, user_id: int) -> User:
        data = unwrap(self.api.get_user(user_id), "user")
        if not data:
            raise ResourceNotFoundError(f"User {user_id} not found", 404)
        return parse_model(User, data)

    def get_role(self, role_id: int) -> Optional[Role]:
        return next((r for r in self.list_roles() if r.id == role_id), None)

    def update_user(self, user_id: int, payload: Dict[str, Any]) -> User:
        """PATCH the user, then invalidate every cached ``/api/users`` query."""
        body = {k: v for k, v in payload.items() if k != "id"}
        data = unwrap(self.api.update_user(user_id, body), "user")
        logger.info("Updated user %s", user_id)
        self.cache.invalidate_prefix(USERS_KEY)
        if isinstance(data, dict) and data.get("id") is not None:
            return parse_model(User, data)
        return self.get_user(user_id)

    def open_editor(self, user_id: int, on_close: Optional[Callable[[], None]] = None) -> PermissionEditor:
        return PermissionEditor(
            self.get_user(user_id),
            self.list_roles(),
            self.update_user,
            on_close=on_close,
        )
