from __future__ import annotations

import pytest

from erpconsole.core.exceptions import AuthenticationError, ServerError, ValidationError
from erpconsole.services.dashboard import CONSOLIDATED_KEY, DashboardFacade
from erpconsole.services.query_cache import SESSION_FOREVER, CachePolicy, QueryCache, QueryStatus

NO_RETRY_PROFILE = CachePolicy(name="profile", stale_after=60, retry=0, refetch_on_focus=False)


@pytest.fixture()
def dash(api, cache) -> DashboardFacade:
    return DashboardFacade(api, cache, profile_policy=NO_RETRY_PROFILE)


def test_load_fetches_profile_then_consolidated(dash: DashboardFacade, backend) -> None:
    dash.load()
    assert backend.calls["me"] == 1
    assert backend.calls["consolidated"] == 1
    assert dash.user.username == "admin"
    assert dash.kpi_data == {"totalLeads": 42, "activeLoads": 7}
    assert dash.revenue_data["current"] == 125000
    assert len(dash.activities_data) == 2
    assert dash.commission_data["monthlyData"]["current"] == 3200
    assert not dash.is_loading
    assert not dash.has_timed_out


def test_consolidated_waits_for_profile(dash: DashboardFacade, backend) -> None:
    backend.fail("me", 500)
    dash.load()
    assert backend.calls["me"] == 1
    assert backend.calls["consolidated"] == 0
    assert dash.consolidated.state.status is QueryStatus.IDLE
    assert dash.user is None
    assert not dash.has_timed_out


def test_consolidated_is_cached_for_the_session(dash: DashboardFacade, backend) -> None:
    dash.load()
    dash.load()
    dash.on_focus()
    dash.consolidated.tick(10 ** 12)
    assert backend.calls["consolidated"] == 1


def test_consolidated_is_not_retried(dash: DashboardFacade, backend) -> None:
    backend.fail("consolidated", 503)
    dash.load()
    assert backend.calls["consolidated"] == 1
    assert dash.consolidated.is_error
    assert isinstance(dash.errors[0], ServerError)
    assert not dash.has_timed_out


def test_missing_sections_default_to_empty(dash: DashboardFacade, backend) -> None:
    backend.dashboard = {"metrics": None}
    dash.load()
    assert dash.kpi_data == {}
    assert dash.revenue_data == {}
    assert dash.activities_data == []
    assert dash.commission_data == {"monthlyData": {"current": None, "previous": None}}


def test_defaults_before_anything_loads(dash: DashboardFacade) -> None:
    assert dash.user_data is None
    assert dash.kpi_data == {}
    assert dash.activities_data == []
    assert not dash.is_loading


def test_timed_out_only_when_both_failed(dash: DashboardFacade, backend) -> None:
    dash.load()
    backend.fail("me", 401)
    dash.refetch_all()
    assert dash.profile.is_error and dash.consolidated.is_success
    assert not dash.has_timed_out

    backend.fail("consolidated", 500)
    dash.refetch_all()
    assert dash.has_timed_out
    assert isinstance(dash.profile.state.error, AuthenticationError)

    backend.recover("me")
    dash.refetch_all()
    assert not dash.has_timed_out


def test_loading_is_either_query_loading(api, cache) -> None:
    seen = []
    dash = DashboardFacade(api, cache, profile_policy=NO_RETRY_PROFILE)
    original = dash.consolidated.fetcher

    def watching():
        seen.append((dash.profile.is_loading, dash.consolidated.is_loading, dash.is_loading))
        return original()

    dash.consolidated.fetcher = watching
    dash.load()
    assert seen == [(False, True, True)]
    assert not dash.is_loading


def test_refetch_all_hits_each_query_once(dash: DashboardFacade, backend) -> None:
    dash.load()
    for n in range(2, 5):
        dash.refetch_all()
        assert backend.calls["me"] == n
        assert backend.calls["consolidated"] == n


def test_refetch_all_runs_consolidated_even_if_profile_fails(dash: DashboardFacade, backend) -> None:
    backend.fail("me", 500)
    dash.refetch_all()
    assert backend.calls["me"] == 1
    assert backend.calls["consolidated"] == 1


def test_data_events_invalidate_consolidated(dash: DashboardFacade, backend) -> None:
    dash.load()
    backend.dashboard["metrics"] = {"totalLeads": 43}
    assert dash.notify("lead:created") is True
    assert backend.calls["consolidated"] == 2
    assert dash.kpi_data == {"totalLeads": 43}

    assert dash.notify("chat:message") is False
    assert backend.calls["consolidated"] == 2
    assert backend.calls["me"] == 1


def test_shared_cache_serves_second_facade(api, backend) -> None:
    cache = QueryCache()
    DashboardFacade(api, cache, profile_policy=NO_RETRY_PROFILE).load()
    again = DashboardFacade(api, cache, profile_policy=NO_RETRY_PROFILE).load()
    assert backend.calls["consolidated"] == 1
    assert again.kpi_data["totalLeads"] == 42
    assert cache.get(CONSOLIDATED_KEY).policy is SESSION_FOREVER


def test_profile_is_unwrapped_from_status_envelope(dash: DashboardFacade, backend) -> None:
    dash.load()
    assert dash.user_data["username"] == "admin"
    assert "status" not in dash.user_data
    assert dash.user.role_id == 3


def test_bare_profile_record_is_accepted(dash: DashboardFacade, backend) -> None:
    backend.me_body = backend.users[2]
    dash.load()
    assert dash.user.username == "rep"


def test_malformed_profile_is_a_validation_error(dash: DashboardFacade, backend) -> None:
    backend.me_body = {"status": "success", "user": {"id": 1, "username": "admin"}}
    dash.load()
    with pytest.raises(ValidationError) as info:
        dash.user
    assert "User payload" in info.value.message
