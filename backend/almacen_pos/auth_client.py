# Overview: Thin httpx client for the hosted auth REST API (token verification and admin user operations).

"""
Hosted auth client.

Sessions are issued by the hosted auth service; this client only verifies
bearer tokens and performs the few admin operations the privileged
functions need (delete a user, list users, look a user up by email).

Admin calls authenticate with the service-role key; token verification uses
the anon key as ``apikey`` and the caller's token as bearer.
"""
from __future__ import annotations

from typing import Any

import httpx
from flask import Flask, current_app


class AuthError(Exception):
    """Raised when the hosted auth service rejects or fails a request."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        for key in ("msg", "message", "error_description", "error"):
            if body.get(key):
                return str(body[key])
    return f"HTTP {response.status_code}"


class HostedAuth:
    """Flask extension wrapping the hosted auth API."""

    ADMIN_PAGE_SIZE = 1000

    def __init__(self, app: Flask | None = None):
        # Replaced with httpx.MockTransport in tests
        self.transport: httpx.BaseTransport | None = None
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        app.extensions["hosted_auth"] = self

    def _client(self) -> httpx.Client:
        cfg = current_app.config
        return httpx.Client(
            base_url=cfg["SUPABASE_URL"].rstrip("/") + "/auth/v1",
            timeout=cfg["AUTH_TIMEOUT_SECONDS"],
            transport=self.transport,
        )

    def _admin_headers(self) -> dict[str, str]:
        key = current_app.config["SUPABASE_SERVICE_ROLE_KEY"]
        return {"apikey": key, "Authorization": f"Bearer {key}"}

    def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            with self._client() as client:
                return client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise AuthError(f"Auth service unreachable: {exc}") from exc

    def get_user(self, token: str) -> dict[str, Any] | None:
        """Return the auth user owning ``token``, or None when the token is invalid."""
        headers = {
            "apikey": current_app.config["SUPABASE_ANON_KEY"],
            "Authorization": f"Bearer {token}",
        }
        response = self._send("GET", "/user", headers=headers)
        if response.status_code in (401, 403, 404):
            return None
        if response.is_error:
            raise AuthError(_error_message(response), response.status_code)
        return response.json()

    def delete_user(self, user_id: str) -> None:
        response = self._send("DELETE", f"/admin/users/{user_id}", headers=self._admin_headers())
        if response.is_error:
            raise AuthError(_error_message(response), response.status_code)

    def list_users(self, page: int = 1, per_page: int = ADMIN_PAGE_SIZE) -> list[dict[str, Any]]:
        response = self._send(
            "GET",
            "/admin/users",
            params={"page": page, "per_page": per_page},
            headers=self._admin_headers(),
        )
        if response.is_error:
            raise AuthError(_error_message(response), response.status_code)
        body = response.json()
        if isinstance(body, dict):
            return body.get("users") or []
        return body or []

    def list_all_users(self) -> list[dict[str, Any]]:
        users: list[dict[str, Any]] = []
        page = 1
        while True:
            batch = self.list_users(page=page)
            users.extend(batch)
            if len(batch) < self.ADMIN_PAGE_SIZE:
                return users
            page += 1

    def find_user_by_email(self, email: str) -> dict[str, Any] | None:
        wanted = email.strip().lower()
        for user in self.list_all_users():
            if (user.get("email") or "").lower() == wanted:
                return user
        return None


def display_name_for(auth_user: dict[str, Any], fallback: str = "Usuario") -> str:
    """full_name → name → email local part → fallback."""
    metadata = auth_user.get("user_metadata") or {}
    email = auth_user.get("email") or ""
    return (
        metadata.get("full_name")
        or metadata.get("name")
        or email.split("@")[0]
        or fallback
    )
