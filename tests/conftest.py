from __future__ import annotations

import copy
from collections import Counter
from typing import Any

import pytest
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.testclient import TestClient

from erpconsole.services.api_client import ApiClient
from erpconsole.services.query_cache import QueryCache

ROLES = [
    {"id": 1, "name": "Sales Rep", "department": "sales", "level": 1, "permissions": ["View leads"]},
    {"id": 2, "name": "Dispatch Manager", "department": "dispatch", "level": 3, "permissions": ["Manage loads"]},
    {"id": 3, "name": "Administrator", "department": "admin", "level": 5, "permissions": ["Everything"]},
    {"id": 4, "name": "Finance Head", "department": "finance", "level": 4, "permissions": ["Approve invoices"]},
]

USERS = {
    1: {
        "id": 1, "username": "admin", "firstName": "Ada", "lastName": "Admin",
        "email": "ada@example.com", "roleId": 3, "orgId": 1, "active": True,
        "isSystemAdmin": True, "canManageRoles": True, "canAccessAllOrgs": True,
        "canManageSettings": True, "canViewAuditLog": True, "canManageUsers": True,
    },
    2: {
        "id": 2, "username": "rep", "firstName": "Sam", "lastName": "Seller",
        "email": "sam@example.com", "roleId": 1, "orgId": 1, "active": True,
        "canViewCRM": True, "canEditLeads": True, "canViewAuditLog": None,
    },
}

DASHBOARD = {
    "metrics": {"totalLeads": 42, "activeLoads": 7},
    "revenue": {"current": 125000, "previous": 98000},
    "activities": [{"id": 1, "action": "lead:created"}, {"id": 2, "action": "load:updated"}],
    "commissions": {"monthlyData": {"current": 3200, "previous": 2900}},
}


class FakeBackend:
    """In-process stand-in for the ERP REST backend."""

    def __init__(self):
        self.roles = copy.deepcopy(ROLES)
        self.users = copy.deepcopy(USERS)
        self.dashboard: Any = copy.deepcopy(DASHBOARD)
        self.me_id = 1
        self.me_body: Any = None
        self.calls: Counter = Counter()
        self.failures: dict[str, tuple[int, Any]] = {}
        self.patches: list[tuple[int, dict]] = []
        self.app = self._build()

    def fail(self, route: str, status: int = 500, body: Any = None) -> None:
        self.respond(route, body if body is not None else {"message": "boom"}, status)

    def respond(self, route: str, body: Any, status: int = 200) -> None:
        self.failures[route] = (status, body)

    def recover(self, route: str) -> None:
        self.failures.pop(route, None)

    def _hit(self, route: str):
        self.calls[route] += 1
        if route in self.failures:
            status, body = self.failures[route]
            return JSONResponse(status_code=status, content=body)
        return None

    def _build(self) -> FastAPI:
        app = FastAPI()

        @app.get("/api/auth/me")
        async def me():
            failed = self._hit("me")
            if failed:
                return failed
            if self.me_body is not None:
                return self.me_body
            return {"status": "success", "user": self.users[self.me_id]}

        @app.get("/api/dashboard/consolidated")
        async def consolidated():
            return self._hit("consolidated") or self.dashboard

        @app.get("/api/roles")
        async def roles():
            return self._hit("roles") or self.roles

        @app.get("/api/users")
        async def users():
            return self._hit("users") or list(self.users.values())

        @app.get("/api/users/{user_id}")
        async def get_user(user_id: int):
            failed = self._hit("get_user")
            if failed:
                return failed
            if user_id not in self.users:
                return JSONResponse(status_code=404, content={"message": "User not found"})
            return self.users[user_id]

        @app.patch("/api/users/{user_id}")
        async def patch_user(user_id: int, request: Request):
            failed = self._hit("patch_user")
            if failed:
                return failed
            body = await request.json()
            self.patches.append((user_id, body))
            self.users[user_id].update(body)
            return self.users[user_id]

        @app.get("/api/health")
        async def health():
            return self._hit("health") or {"status": "ok"}

        return app


@pytest.fixture()
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture()
def api(backend: FakeBackend) -> ApiClient:
    http = TestClient(backend.app)
    return ApiClient(base_url="http://testserver", token="test-token", http=http)


@pytest.fixture()
def cache() -> QueryCache:
    return QueryCache(sleep=lambda seconds: None)
