"""Consolidated dashboard data.

One profile read and one consolidated payload stand in for the separate
profile, KPI, revenue, activity and commission reads. The consolidated
payload is only requested once the profile has loaded, and after that it
is cached for the rest of the session: no refetch on focus, mount or
timer, and no retries. :meth:`DashboardFacade.refetch_all` and the
real-time data events are the only ways to refresh it.
"""

import logging
from typing import Any, Dict, List, Optional

from erpconsole.core.exceptions import ERPConsoleError
from erpconsole.schemas.schemas import DashboardPayload, User, parse_model, unwrap
from erpconsole.services.api_client import ApiClient
from erpconsole.services.query_cache import (
    PROFILE,
    SESSION_FOREVER,
    CachePolicy,
    Query,
    QueryCache,
)

logger = logging.getLogger("erp_console.dashboard")

PROFILE_KEY = "/api/auth/me"
CONSOLIDATED_KEY = "/api/dashboard/consolidated"

INVALIDATING_EVENTS = frozenset({
    "lead:created",
    "lead:updated",
    "lead:deleted",
    "dispatch:created",
    "dispatch:updated",
    "dispatch:deleted",
    "invoice:created",
    "invoice:updated",
    "commission:calculated",
    "policy:created",
    "data:updated",
})


class DashboardFacade:
    """Loading/error/data view over the profile and consolidated queries."""

    def __init__(
        self,
        api: ApiClient,
        cache: Optional[QueryCache] = None,
        profile_policy: CachePolicy = PROFILE,
        consolidated_policy: CachePolicy = SESSION_FOREVER,
    ):
        self.api = api
        self.cache = cache if cache is not None else QueryCache()
        self.profile: Query = self.cache.query(PROFILE_KEY, api.get_me, profile_policy)
        self.consolidated: Query = self.cache.query(
            CONSOLIDATED_KEY, api.get_consolidated_dashboard, consolidated_policy
        )

    # ---- Triggers ----
    def load(self) -> "DashboardFacade":
        """Mount: profile first, then the consolidated payload once a profile exists."""
        self._settle(self.profile.on_mount)
        if self.profile.has_data:
            self._settle(self.consolidated.on_mount)
        return self

    def on_focus(self) -> None:
        self._settle(self.profile.on_focus)
        if self.profile.has_data:
            self._settle(self.consolidated.on_focus)

    def refetch_all(self) -> None:
        """Re-run both queries once each, ignoring freshness and policy."""
        logger.debug("Refetching dashboard queries")
        self._settle(self.profile.refetch)
        self._settle(self.consolidated.refetch)

    def notify(self, event: str) -> bool:
        """Handle a real-time event; returns whether it invalidated the dashboard."""
        if event not in INVALIDATING_EVENTS:
            return False
        logger.debug("Dashboard invalidated by %s", event)
        self.cache.invalidate(CONSOLIDATED_KEY)
        return True

    @staticmethod
    def _settle(trigger) -> None:
        try:
            trigger()
        except ERPConsoleError:
            # recorded on the query state
            pass

    # ---- State ----
    @property
    def is_loading(self) -> bool:
        return self.profile.is_loading or self.consolidated.is_loading

    @property
    def has_timed_out(self) -> bool:
        return self.profile.is_error and self.consolidated.is_error

    @property
    def errors(self) -> List[Exception]:
        return [q.state.error for q in (self.profile, self.consolidated) if q.is_error]

    # ---- Data ----
    @property
    def user_data(self) -> Optional[Dict[str, Any]]:
        """The profile record, unwrapped from the ``{"status", "user"}`` envelope."""
        return unwrap(self.profile.data, "user") or None

    @property
    def user(self) -> Optional[User]:
        data = self.user_data
        if data is None:
            return None
        return parse_model(User, data)

    @property
    def payload(self) -> DashboardPayload:
        return DashboardPayload.model_validate(self.consolidated.data or {})

    @property
    def kpi_data(self) -> Dict[str, Any]:
        return self.payload.metrics

    @property
    def revenue_data(self) -> Dict[str, Any]:
        return self.payload.revenue

    @property
    def activities_data(self) -> List[Any]:
        return self.payload.activities

    @property
    def commission_data(self) -> Dict[str, Any]:
        return self.payload.commissions
