"""Accounts, backed by Supabase auth (GoTrue) over its REST api.

Only the session lifecycle lives here. What the rest of the app needs from a
session is a stable `user.id`, used to namespace saved documents, and the
`user.email` for display.
"""

import base64
from dataclasses import dataclass
import hashlib
import logging
import os
import secrets
from typing import Any, Callable
from urllib.parse import urlencode

import httpx


logger = logging.getLogger(__name__)


SUPABASE_URL = os.environ.get("SUPABASE_URL")
SUPABASE_KEY = os.environ.get("SUPABASE_KEY")
TIMEOUT = 30

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"
TOKEN_REFRESHED = "TOKEN_REFRESHED"


class AuthError(Exception):
    pass


@dataclass(frozen=True)
class User:
    id: str
    email: str | None


@dataclass(frozen=True)
class Session:
    access_token: str
    refresh_token: str
    user: User

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Session":
        user = data.get("user") or {}
        return cls(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token", ""),
            user=User(id=user["id"], email=user.get("email")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "user": {"id": self.user.id, "email": self.user.email},
        }


@dataclass(frozen=True)
class OAuthRedirect:
    url: str
    code_verifier: str


type Listener = Callable[[str, Session | None], None]


def code_challenge(verifier: str) -> str:
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def error_message(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return resp.reason_phrase or f"Auth request failed ({resp.status_code})."
    return (
        data.get("error_description")
        or data.get("msg")
        or data.get("message")
        or data.get("error")
        or f"Auth request failed ({resp.status_code})."
    )


class SupabaseAuth:
    def __init__(
        self,
        url: str | None = None,
        key: str | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = TIMEOUT,
    ) -> None:
        url = SUPABASE_URL if url is None else url
        key = SUPABASE_KEY if key is None else key
        if not (url and key):
            raise ValueError("Supabase url and key are required for accounts.")
        self.url = url.rstrip("/")
        self.key = key
        self.client = (
            httpx.AsyncClient(
                base_url=f"{self.url}/auth/v1/",
                headers={"apikey": key, "Authorization": f"Bearer {key}"},
                timeout=timeout,
            )
            if client is None
            else client
        )
        self.listeners: list[Listener] = []

    def on_auth_state_change(self, listener: Listener) -> Callable[[], None]:
        self.listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self.listeners:
                self.listeners.remove(listener)

        return unsubscribe

    def _notify(self, event: str, session: Session | None) -> None:
        logger.info("Auth state change: %s", event)
        for listener in list(self.listeners):
            listener(event, session)

    async def _post(
        self,
        path: str,
        json: dict[str, Any] | None = None,
        *,
        params: dict[str, str] | None = None,
        token: str | None = None,
    ) -> dict[str, Any]:
        headers = {"Authorization": f"Bearer {token}"} if token else None
        try:
            resp = await self.client.post(
                path, json=json, params=params, headers=headers
            )
        except httpx.HTTPError as e:
            raise AuthError(f"Auth service unavailable: {e}") from e
        if resp.is_error:
            raise AuthError(error_message(resp))
        if not resp.content:
            return {}
        return resp.json()

    async def sign_up(self, email: str, password: str) -> Session | None:
        """Create an account.

        Returns `None` when the project requires the email address to be
        confirmed before the first sign in.
        """
        data = await self._post("signup", {"email": email, "password": password})
        if "access_token" not in data:
            return None
        session = Session.from_dict(data)
        self._notify(SIGNED_IN, session)
        return session

    async def sign_in_with_password(self, email: str, password: str) -> Session:
        data = await self._post(
            "token",
            {"email": email, "password": password},
            params={"grant_type": "password"},
        )
        session = Session.from_dict(data)
        self._notify(SIGNED_IN, session)
        return session

    def sign_in_with_oauth(self, provider: str, *, redirect_to: str) -> OAuthRedirect:
        verifier = secrets.token_urlsafe(48)
        query = urlencode(
            {
                "provider": provider,
                "redirect_to": redirect_to,
                "code_challenge": code_challenge(verifier),
                "code_challenge_method": "s256",
            }
        )
        return OAuthRedirect(
            url=f"{self.url}/auth/v1/authorize?{query}", code_verifier=verifier
        )

    async def exchange_code(self, code: str, code_verifier: str) -> Session:
        data = await self._post(
            "token",
            {"auth_code": code, "code_verifier": code_verifier},
            params={"grant_type": "pkce"},
        )
        session = Session.from_dict(data)
        self._notify(SIGNED_IN, session)
        return session

    async def refresh(self, refresh_token: str) -> Session:
        data = await self._post(
            "token",
            {"refresh_token": refresh_token},
            params={"grant_type": "refresh_token"},
        )
        session = Session.from_dict(data)
        self._notify(TOKEN_REFRESHED, session)
        return session

    async def get_session(self, session: Session | None) -> Session | None:
        """Check a stored session is still valid, refreshing it if it expired."""
        if session is None:
            return None
        try:
            resp = await self.client.get(
                "user", headers={"Authorization": f"Bearer {session.access_token}"}
            )
        except httpx.HTTPError as e:
            raise AuthError(f"Auth service unavailable: {e}") from e
        if resp.is_success:
            user = resp.json()
            return Session(
                access_token=session.access_token,
                refresh_token=session.refresh_token,
                user=User(id=user["id"], email=user.get("email")),
            )
        if resp.status_code not in (401, 403) or not session.refresh_token:
            raise AuthError(error_message(resp))
        try:
            return await self.refresh(session.refresh_token)
        except AuthError:
            logger.info("Session for %s expired.", session.user.id)
            return None

    async def sign_out(self, session: Session) -> None:
        try:
            await self._post(
                "logout", params={"scope": "local"}, token=session.access_token
            )
        finally:
            self._notify(SIGNED_OUT, None)

    async def close(self) -> None:
        await self.client.aclose()
