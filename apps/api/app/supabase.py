"""Supabase access for the API: PostgREST tables, GoTrue users and caller auth.

End-user requests get a client that forwards the caller's bearer token so
row-level security applies. The reminder scheduler and admin endpoints use
the service-role client from :func:`get_admin_client`.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict, List, Optional
from uuid import UUID

import httpx
import jwt
from fastapi import Depends, Header, HTTPException
from jwt import PyJWKClient

from .config import CONFIG

logger = logging.getLogger(__name__)

REST_TIMEOUT_SECONDS = 15.0
AUTH_TIMEOUT_SECONDS = 10.0
_INVALID_TOKEN = "Invalid or expired token."


@dataclass(frozen=True)
class SupabaseSettings:
    url: str
    anon_key: str
    service_role_key: Optional[str]
    jwks_url: str
    jwt_secret: Optional[str]
    jwt_audience: Optional[str]


@lru_cache
def supabase_settings() -> SupabaseSettings:
    url = os.getenv("SUPABASE_URL")
    anon_key = os.getenv("SUPABASE_ANON_KEY") or os.getenv("SUPABASE_KEY")
    if not url or not anon_key:
        raise RuntimeError("Missing SUPABASE_URL/SUPABASE_ANON_KEY for API access.")
    url = url.rstrip("/")
    return SupabaseSettings(
        url=url,
        anon_key=anon_key,
        service_role_key=os.getenv("SUPABASE_SERVICE_ROLE_KEY"),
        jwks_url=os.getenv("SUPABASE_JWKS_URL") or f"{url}/auth/v1/keys",
        jwt_secret=os.getenv("SUPABASE_JWT_SECRET"),
        jwt_audience=os.getenv("SUPABASE_JWT_AUD", "authenticated") or None,
    )


@lru_cache
def _signing_keys() -> PyJWKClient:
    return PyJWKClient(supabase_settings().jwks_url)


def _parse_bearer_token(authorization: Optional[str]) -> str:
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing authorization token.")
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token or " " in token.strip():
        raise HTTPException(status_code=401, detail="Invalid authorization token.")
    return token.strip()


def _parse_uuid(value: Optional[str], label: str) -> str:
    if not value:
        raise HTTPException(status_code=400, detail=f"Missing {label}.")
    try:
        return str(UUID(value))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid {label}.") from exc


def resolve_optional_uuid(value: Optional[str], label: str) -> Optional[str]:
    return _parse_uuid(value, label) if value else None


def _parse_content_range(value: Optional[str]) -> int:
    # PostgREST answers count=exact with "0-9/42" or "*/0".
    if not value or "/" not in value:
        return 0
    total = value.rsplit("/", 1)[1]
    return int(total) if total.isdigit() else 0


def _supabase_error(resp: httpx.Response, action: str, target: str) -> HTTPException:
    body = resp.text or "<empty response>"
    status = resp.status_code if resp.status_code >= 400 else 500
    return HTTPException(
        status_code=status,
        detail=f"Supabase {action} failed ({target}): status={resp.status_code}, body={body}",
    )


def _decode_with_jwks(token: str, settings: SupabaseSettings) -> Optional[Dict[str, Any]]:
    try:
        signing_key = _signing_keys().get_signing_key_from_jwt(token)
        return jwt.decode(
            token,
            signing_key.key,
            algorithms=["RS256"],
            audience=settings.jwt_audience,
            options={"verify_aud": bool(settings.jwt_audience)},
        )
    except (jwt.PyJWTError, httpx.HTTPError) as exc:
        logger.debug("JWKS verification unavailable: %s", exc)
        return None


def _decode_with_secret(token: str, settings: SupabaseSettings) -> Dict[str, Any]:
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=["HS256"],
            audience=settings.jwt_audience,
            options={"verify_aud": bool(settings.jwt_audience)},
        )
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=401, detail=_INVALID_TOKEN) from exc


async def _fetch_token_user(token: str, settings: SupabaseSettings) -> Dict[str, Any]:
    async with httpx.AsyncClient(timeout=AUTH_TIMEOUT_SECONDS) as client:
        resp = await client.get(
            f"{settings.url}/auth/v1/user",
            headers={"Authorization": f"Bearer {token}", "apikey": settings.anon_key},
        )
    user = resp.json() if resp.status_code < 400 and resp.content else {}
    if not user.get("id"):
        raise HTTPException(status_code=401, detail=_INVALID_TOKEN)
    return {
        "sub": user["id"],
        "email": user.get("email"),
        "user_metadata": user.get("user_metadata") or {},
    }


async def _verify_access_token(token: str) -> Dict[str, Any]:
    """Return the token's claims: JWKS first, then the shared secret, then GoTrue."""
    settings = supabase_settings()
    claims = _decode_with_jwks(token, settings)
    if claims is not None:
        return claims
    if settings.jwt_secret:
        return _decode_with_secret(token, settings)
    return await _fetch_token_user(token, settings)


@dataclass
class SupabaseClient:
    base_url: str
    anon_key: str
    access_token: str

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {self.access_token}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        headers.update(extra or {})
        return headers

    async def request(
        self,
        method: str,
        path: str,
        *,
        action: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
        prefer: Optional[str] = None,
    ) -> httpx.Response:
        """Send one REST call under ``/rest/v1`` and raise ``HTTPException`` on failure."""
        headers = self._headers({"Prefer": prefer} if prefer else None)
        async with httpx.AsyncClient(base_url=self.base_url, timeout=REST_TIMEOUT_SECONDS) as client:
            resp = await client.request(method, f"/rest/v1/{path}", params=params, json=json, headers=headers)
        if resp.status_code >= 400:
            raise _supabase_error(resp, action, f"table={path}")
        return resp

    @staticmethod
    def _rows(resp: httpx.Response) -> List[Dict[str, Any]]:
        return resp.json() if resp.content else []

    async def select(self, table: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        return self._rows(await self.request("GET", table, action="select", params=params))

    async def count(self, table: str, params: Optional[Dict[str, Any]] = None) -> int:
        resp = await self.request(
            "HEAD",
            table,
            action="count",
            params={"select": "id", **(params or {})},
            prefer="count=exact",
        )
        return _parse_content_range(resp.headers.get("content-range"))

    async def insert(
        self,
        table: str,
        payload: Dict[str, Any],
        *,
        params: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        resp = await self.request(
            "POST", table, action="insert", params=params, json=payload, prefer="return=representation"
        )
        return self._rows(resp)

    async def update(
        self,
        table: str,
        payload: Dict[str, Any],
        params: Dict[str, Any],
    ) -> List[Dict[str, Any]]:
        resp = await self.request(
            "PATCH", table, action="update", params=params, json=payload, prefer="return=representation"
        )
        return self._rows(resp)

    async def delete(self, table: str, params: Dict[str, Any]) -> None:
        await self.request("DELETE", table, action="delete", params=params)

    async def get_auth_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Fetch an auth user through the GoTrue admin API (service role only)."""
        async with httpx.AsyncClient(base_url=self.base_url, timeout=AUTH_TIMEOUT_SECONDS) as client:
            resp = await client.get(f"/auth/v1/admin/users/{user_id}", headers=self._headers())
        if resp.status_code == 404:
            return None
        if resp.status_code >= 400:
            raise _supabase_error(resp, "auth user lookup", f"user={user_id}")
        return resp.json() if resp.content else None


@lru_cache
def get_admin_client() -> SupabaseClient:
    settings = supabase_settings()
    if not settings.service_role_key:
        raise RuntimeError("Missing SUPABASE_SERVICE_ROLE_KEY for admin access.")
    key = settings.service_role_key
    return SupabaseClient(base_url=settings.url, anon_key=key, access_token=key)


@dataclass
class AuthContext:
    user_id: str
    user_email: Optional[str]
    access_token: str
    supabase: SupabaseClient
    is_admin: bool = False


def is_admin_claims(payload: Dict[str, Any], admin_email: Optional[str]) -> bool:
    metadata = payload.get("user_metadata") or {}
    if isinstance(metadata, dict) and metadata.get("role") == "admin":
        return True
    email = payload.get("email")
    return bool(email and admin_email) and email.lower() == admin_email.lower()


async def read_token_claims(authorization: Optional[str]) -> Optional[Dict[str, Any]]:
    try:
        return await _verify_access_token(_parse_bearer_token(authorization))
    except HTTPException:
        return None


async def get_auth_context(
    authorization: Optional[str] = Header(None),
) -> AuthContext:
    token = _parse_bearer_token(authorization)
    claims = await _verify_access_token(token)
    settings = supabase_settings()
    return AuthContext(
        user_id=_parse_uuid(claims.get("sub"), "user_id"),
        user_email=claims.get("email"),
        access_token=token,
        supabase=SupabaseClient(base_url=settings.url, anon_key=settings.anon_key, access_token=token),
        is_admin=is_admin_claims(claims, CONFIG.admin_email),
    )


async def get_admin_context(auth: AuthContext = Depends(get_auth_context)) -> AuthContext:
    if not auth.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required.")
    return auth
