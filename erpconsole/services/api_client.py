"""HTTP client for the ERP REST backend."""

import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from erpconsole.core.config import settings
from erpconsole.core.exceptions import APIError, TransportError, error_from_response

logger = logging.getLogger("erp_console.api")


class ApiClient:
    """Thin JSON wrapper over ``httpx.Client``.

    Pass ``http`` to reuse an existing client (tests inject FastAPI's
    ``TestClient`` here); otherwise one is created from ``base_url``.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        http: Optional[httpx.Client] = None,
    ):
        self.base_url = (base_url or settings.API_BASE_URL).rstrip("/")
        self.token = token if token is not None else settings.API_TOKEN
        self.timeout = timeout or settings.REQUEST_TIMEOUT_SECONDS
        self._owns_http = http is None
        self._http = http or httpx.Client(base_url=self.base_url, timeout=self.timeout)

    def __enter__(self) -> "ApiClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def request(
        self,
        method: str,
        path: str,
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        Raises:
            TransportError: If no response was received.
            APIError: (or a subclass) for any non-2xx response, or a
                2xx body that is not JSON.
        """
        start_time = time.time()
        try:
            resp = self._http.request(method, path, json=json, params=params, headers=self._headers())
        except httpx.TransportError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise TransportError(f"Could not reach {self.base_url}: {exc}") from exc

        duration = round((time.time() - start_time) * 1000, 2)
        logger.info("%s %s %s %sms", method, path, resp.status_code, duration)

        if resp.is_error:
            raise error_from_response(resp)
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            content_type = resp.headers.get("content-type", "unknown")
            logger.warning("%s %s returned non-JSON body (%s)", method, path, content_type)
            raise APIError(
                f"Expected JSON from {path}, got {content_type}", resp.status_code
            ) from exc

    # ---- Auth ----
    def get_me(self) -> Dict[str, Any]:
        return self.request("GET", "/api/auth/me")

    # ---- Dashboard ----
    def get_consolidated_dashboard(self) -> Dict[str, Any]:
        return self.request("GET", "/api/dashboard/consolidated")

    # ---- Users / roles ----
    def list_roles(self) -> List[Dict[str, Any]]:
        return self.request("GET", "/api/roles")

    def list_users(self) -> List[Dict[str, Any]]:
        return self.request("GET", "/api/users")

    def get_user(self, user_id: int) -> Dict[str, Any]:
        return self.request("GET", f"/api/users/{int(user_id)}")

    def update_user(self, user_id: int, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self.request("PATCH", f"/api/users/{int(user_id)}", json=payload)

    # ---- System ----
    def health(self) -> Dict[str, Any]:
        return self.request("GET", "/api/health")
