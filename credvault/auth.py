"""
Client for the hosted auth provider (email/password, password reset, OAuth).
"""

import base64
import hashlib
import logging
import secrets
import time
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional, Tuple

from .backend import BackendClient, BackendError
from . import config

logger = logging.getLogger(__name__)


class AuthError(Exception):
    """The auth provider rejected a request or could not be reached."""

    def __init__(self, message: str, status: int = 0):
        super().__init__(message)
        self.message = message
        self.status = status


@dataclass
class Session:
    """An authenticated session bound to one user."""
    access_token: str
    refresh_token: str
    expires_at: float
    user_id: str
    email: str = ""

    def is_expired(self, margin: float = 0) -> bool:
        return time.time() + margin >= self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Session':
        """Create from dictionary."""
        return cls(**data)

    @classmethod
    def from_token_response(cls, body: Dict[str, Any]) -> 'Session':
        """Build a session from a token endpoint response."""
        user = body.get("user") or {}
        expires_at = body.get("expires_at")
        if expires_at is None:
            expires_at = time.time() + int(body.get("expires_in", 3600))
        return cls(
            access_token=body["access_token"],
            refresh_token=body.get("refresh_token", ""),
            expires_at=float(expires_at),
            user_id=user.get("id", ""),
            email=user.get("email", "") or ""
        )


def _code_challenge(verifier: str) -> str:
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


class AuthClient:
    """Email/password and OAuth flows against the provider's REST API."""

    def __init__(self, backend: BackendClient):
        self.backend = backend
        self.last_user_id: Optional[str] = None

    def _call(self, method: str, path: str, **kwargs) -> Any:
        try:
            return self.backend.request(method, f"/auth/v1{path}", **kwargs)
        except BackendError as e:
            raise AuthError(e.message, e.status) from e

    def sign_up(self, email: str, password: str, redirect_to: Optional[str] = None) -> Optional[Session]:
        """
        Register a new account.

        Returns:
            A session if the project confirms accounts immediately, otherwise
            None (the user must follow the verification email first).
        """
        params = {"redirect_to": redirect_to} if redirect_to else None
        body = self._call("POST", "/signup", params=params,
                          json={"email": email, "password": password}) or {}
        user = body.get("user") or body
        self.last_user_id = user.get("id")
        # Providers hide existing accounts behind a user with no identities.
        if user.get("identities") == []:
            raise AuthError("User already exists", 422)
        if body.get("access_token"):
            return Session.from_token_response(body)
        return None

    def sign_in_with_password(self, email: str, password: str) -> Session:
        body = self._call("POST", "/token", params={"grant_type": "password"},
                          json={"email": email, "password": password})
        session = Session.from_token_response(body or {})
        logger.info(f"Signed in user {session.user_id}")
        return session

    def refresh_session(self, refresh_token: str) -> Session:
        body = self._call("POST", "/token", params={"grant_type": "refresh_token"},
                          json={"refresh_token": refresh_token})
        return Session.from_token_response(body or {})

    def reset_password_for_email(self, email: str, redirect_to: Optional[str] = None) -> None:
        params = {"redirect_to": redirect_to} if redirect_to else None
        self._call("POST", "/recover", params=params, json={"email": email})

    def sign_out(self, access_token: str) -> None:
        self._call("POST", "/logout", token=access_token)

    def oauth_authorize_url(self, provider: str, redirect_to: str) -> Tuple[str, str]:
        """
        Build the browser URL that starts an OAuth sign-in (PKCE flow).

        Returns:
            Tuple of (authorize URL, code verifier to keep for the exchange)
        """
        verifier = secrets.token_urlsafe(64)
        params = {
            "provider": provider,
            "redirect_to": redirect_to,
            "code_challenge": _code_challenge(verifier),
            "code_challenge_method": "s256",
        }
        params.update(config.OAUTH_QUERY_PARAMS)
        return self.backend.url_for("/auth/v1/authorize", params), verifier

    def exchange_code_for_session(self, auth_code: str, code_verifier: str) -> Session:
        body = self._call("POST", "/token", params={"grant_type": "pkce"},
                          json={"auth_code": auth_code, "code_verifier": code_verifier})
        return Session.from_token_response(body or {})
