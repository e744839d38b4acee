"""ERP console CLI tool (erpctl)."""

import logging
from functools import wraps
from typing import List, Optional

import typer

from erpconsole.core.config import settings
from erpconsole.core.exceptions import AuthenticationError, ERPConsoleError, describe_error
from erpconsole.models.access import visible_navigation
from erpconsole.models.permissions import Capability
from erpconsole.services.api_client import ApiClient
from erpconsole.services.dashboard import DashboardFacade
from erpconsole.services.query_cache import QueryCache, make_store
from erpconsole.services.user_service import UserService

logger = logging.getLogger("erp_console")

app = typer.Typer(name="erpctl", help="ERP console CLI")
users_app = typer.Typer(help="User and permission management")
cache_app = typer.Typer(help="Query cache commands")
app.add_typer(users_app, name="users")
app.add_typer(cache_app, name="cache")


class CliContext:
    """Lazily built clients shared by the commands of one invocation."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        debug: bool = False,
        api: Optional[ApiClient] = None,
        cache: Optional[QueryCache] = None,
    ):
        self.base_url = base_url
        self.token = token
        self.debug = debug
        self._api = api
        self._cache = cache

    @property
    def api(self) -> ApiClient:
        if self._api is None:
            self._api = ApiClient(base_url=self.base_url, token=self.token)
        return self._api

    @property
    def cache(self) -> QueryCache:
        if self._cache is None:
            self._cache = QueryCache(store=make_store(self.api.base_url, self.api.token))
        return self._cache

    def users(self) -> UserService:
        return UserService(self.api, self.cache)

    def dashboard(self) -> DashboardFacade:
        return DashboardFacade(self.api, self.cache)


def setup_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def _report(exc: Exception) -> None:
    notice = describe_error(exc)
    typer.secho(f"{notice.title}: {notice.message}", fg=typer.colors.RED, err=True)
    if isinstance(exc, AuthenticationError):
        typer.echo("Set ERP_API_TOKEN (or pass --token) with a fresh session token and retry.", err=True)


def handle_errors(func):
    """Render client errors as a notice and exit 1 instead of a traceback."""

    @wraps(func)
    def wrapper(*args, **kwargs):
        ctx = kwargs.get("ctx")
        if ctx is None:
            ctx = next((a for a in args if isinstance(a, typer.Context)), None)
        try:
            return func(*args, **kwargs)
        except ERPConsoleError as exc:
            if ctx is not None and ctx.obj is not None and ctx.obj.debug:
                raise
            _report(exc)
            raise typer.Exit(code=1)

    return wrapper


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(None, "--base-url", help="Backend URL (default: ERP_API_BASE_URL)"),
    token: Optional[str] = typer.Option(None, "--token", help="Bearer token (default: ERP_API_TOKEN)"),
    debug: bool = typer.Option(False, "--debug", help="Verbose logging and full tracebacks"),
):
    """Operator console for the ERP backend."""
    debug = debug or settings.DEBUG
    setup_logging(debug)
    if ctx.obj is None:
        ctx.obj = CliContext(base_url, token, debug)


@app.command("whoami")
@handle_errors
def whoami(ctx: typer.Context):
    """Show the current user profile."""
    dash = ctx.obj.dashboard()
    dash.profile.fetch()
    user = dash.user
    if user is None:
        typer.echo("No profile returned for this session")
        raise typer.Exit(code=1)
    typer.echo(f"[{user.id}] {user.full_name} <{user.email or '-'}> role={user.role_id}")
    granted = [cap.value for cap in Capability if user.flags()[cap.value]]
    typer.echo("  capabilities: " + (", ".join(granted) if granted else "(none)"))


@app.command("dashboard")
@handle_errors
def dashboard(
    ctx: typer.Context,
    refresh: bool = typer.Option(False, "--refresh", help="Refetch even if cached"),
):
    """Summarize the consolidated dashboard."""
    dash = ctx.obj.dashboard()
    if refresh:
        dash.refetch_all()
    else:
        dash.load()

    if dash.has_timed_out:
        raise dash.profile.state.error
    for err in dash.errors:
        _report(err)
    if dash.user is None:
        raise typer.Exit(code=1)

    typer.echo(f"Dashboard for {dash.user.full_name}")
    typer.echo("  KPIs:")
    for name, value in dash.kpi_data.items():
        typer.echo(f"    {name}: {value}")
    typer.echo("  Revenue:")
    for name, value in dash.revenue_data.items():
        typer.echo(f"    {name}: {value}")
    monthly = dash.commission_data.get("monthlyData") or {}
    typer.echo(f"  Commissions: current={monthly.get('current')} previous={monthly.get('previous')}")
    typer.echo(f"  Recent activities: {len(dash.activities_data)}")


@app.command("roles")
@handle_errors
def roles(ctx: typer.Context):
    """List roles."""
    for role in ctx.obj.users().list_roles():
        typer.echo(f"  [{role.id}] {role.name} ({role.department}, level {role.level})")


@app.command("nav")
@handle_errors
def nav(ctx: typer.Context):
    """Show the navigation visible to the current user's role."""
    dash = ctx.obj.dashboard()
    dash.profile.fetch()
    user = dash.user
    if user is None:
        typer.echo("No profile returned for this session")
        raise typer.Exit(code=1)
    role = ctx.obj.users().get_role(user.role_id)
    if role is None:
        typer.echo(f"Role {user.role_id} not found")
        raise typer.Exit(code=1)
    section = None
    for item in visible_navigation(role):
        if item.section != section:
            section = item.section
            typer.echo(f"{section}:")
        typer.echo(f"  {item.name:<15} {item.href}")


@app.command("health")
@handle_errors
def health(ctx: typer.Context):
    """Check the backend health endpoint."""
    typer.echo(ctx.obj.api.health())


@users_app.command("list")
@handle_errors
def users_list(ctx: typer.Context):
    """List users."""
    for user in ctx.obj.users().list_users():
        flag = "" if user.active else " (inactive)"
        admin = " [system admin]" if user.is_system_admin else ""
        typer.echo(f"  [{user.id}] {user.username} {user.full_name} role={user.role_id}{admin}{flag}")


@users_app.command("permissions")
@handle_errors
def users_permissions(
    ctx: typer.Context,
    user_id: int = typer.Argument(..., help="User ID"),
    role: Optional[int] = typer.Option(None, "--role", help="Assign role ID"),
    grant: List[str] = typer.Option([], "--grant", help="Capability to enable"),
    revoke: List[str] = typer.Option([], "--revoke", help="Capability to disable"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Save without confirmation"),
):
    """Show or edit a user's role and capability flags."""
    editor = ctx.obj.users().open_editor(user_id)

    if role is not None:
        editor.select_role(role)
    for name in grant:
        editor.set_permission(Capability.parse(name), True)
    for name in revoke:
        editor.set_permission(Capability.parse(name), False)

    selected = editor.selected_role
    if selected is not None:
        typer.echo(f"Role: {selected.name} (Level {selected.level}) - {selected.department} department")
    else:
        typer.echo(f"Role: {editor.selected_role_id}")

    changes = editor.changes()
    for category, entries in editor.by_category().items():
        typer.echo(f"{category.label}:")
        for cap, value in entries:
            marker = "*" if cap in changes else " "
            typer.echo(f"  {marker} [{'x' if value else ' '}] {cap.value}")

    if not editor.is_dirty:
        typer.echo("No changes.")
        return
    if not yes and not typer.confirm(f"Save {len(changes)} permission change(s)?"):
        editor.cancel()
        raise typer.Abort()
    editor.save()
    typer.echo("✅ User updated")


@cache_app.command("clear")
def cache_clear(ctx: typer.Context):
    """Drop every cached query."""
    ctx.obj.cache.clear()
    typer.echo("✅ Cache cleared")


if __name__ == "__main__":
    app()
