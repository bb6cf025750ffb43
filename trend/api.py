"""
HTTP client for the Trend backend (categories).
"""
import logging
from typing import Any, Optional

import requests

from trend.config import get_settings

logger = logging.getLogger(__name__)


class APIError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class AuthenticationRequired(APIError):
    """The backend rejected the request for lack of a valid token."""


class TrendAPIClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        token: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.API_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.API_TIMEOUT
        self.token = token
        self.session = session or requests.Session()

    def is_authenticated(self) -> bool:
        return bool(self.token)

    def set_token(self, token: Optional[str]) -> None:
        self.token = token

    def request(self, method: str, endpoint: str, body: Any = None, requires_auth: bool = True) -> Any:
        url = f"{self.base_url}{endpoint}"
        headers = {"Content-Type": "application/json"}
        if requires_auth and self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        try:
            response = self.session.request(
                method,
                url,
                json=body if method.upper() in ("POST", "PUT", "PATCH") else None,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error("Request %s %s failed: %s", method, endpoint, e)
            raise APIError(f"Network error: {e}") from e

        if response.status_code == 401:
            raise AuthenticationRequired("Authentication required", 401)

        try:
            data = response.json() if response.content else None
        except ValueError:
            data = None

        if not response.ok:
            message = (data or {}).get("message") if isinstance(data, dict) else None
            raise APIError(message or f"HTTP {response.status_code}", response.status_code)

        # the backend wraps payloads as {"success": ..., "data": ...}
        if isinstance(data, dict) and "data" in data:
            return data["data"]
        return data

    def get_categories(self) -> list:
        return self.request("GET", "/categories") or []

    def create_category(self, payload: dict) -> dict:
        return self.request("POST", "/categories", body=payload)

    def update_category(self, category_id: str, updates: dict) -> dict:
        return self.request("PUT", f"/categories/{category_id}", body=updates)

    def delete_category(self, category_id: str) -> None:
        self.request("DELETE", f"/categories/{category_id}")
