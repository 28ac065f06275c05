"""
Explicit context objects shared between screens.

The session and theme are process-wide, but components receive them as
arguments instead of reaching for module globals.
"""

import json
import logging
from typing import Callable, List, Optional

import keyring
from keyring.errors import KeyringError

from .auth import AuthClient, AuthError, Session
from .preferences import Preferences
from . import config

logger = logging.getLogger(__name__)


class SessionContext:
    """Holds the current session and keeps it in the OS keyring."""

    def __init__(self, auth: Optional[AuthClient] = None,
                 keyring_service: str = config.KEYRING_SERVICE, persist: bool = True):
        self.auth = auth
        self.keyring_service = keyring_service
        self.persist = persist
        self._session: Optional[Session] = None
        self._listeners: List[Callable[[Optional[Session]], None]] = []

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def user_id(self) -> Optional[str]:
        return self._session.user_id if self._session else None

    def subscribe(self, listener: Callable[[Optional[Session]], None]) -> None:
        self._listeners.append(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self._session)

    def set_session(self, session: Session) -> None:
        self._session = session
        self._save()
        self._notify()

    def clear(self) -> None:
        self._session = None
        if self.persist:
            try:
                keyring.delete_password(self.keyring_service, config.KEYRING_SESSION_KEY)
            except KeyringError as e:
                logger.debug(f"No stored session to delete: {e}")
        self._notify()

    def access_token(self) -> Optional[str]:
        """
        Current access token, refreshed first if it is about to expire.

        Raises:
            AuthError: If the refresh is rejected; the session is cleared
        """
        if self._session is None:
            return None
        if self._session.is_expired(config.SESSION_EXPIRY_MARGIN_SECONDS) and self.auth:
            try:
                refreshed = self.auth.refresh_session(self._session.refresh_token)
            except AuthError as e:
                logger.warning(f"Session refresh failed: {e.message}")
                self.clear()
                raise
            self.set_session(refreshed)
        return self._session.access_token

    def restore(self) -> bool:
        """Load a persisted session; returns True if one is usable."""
        if not self.persist:
            return False
        try:
            raw = keyring.get_password(self.keyring_service, config.KEYRING_SESSION_KEY)
        except KeyringError as e:
            logger.warning(f"Keyring unavailable, cannot restore session: {e}")
            return False
        if not raw:
            return False

        try:
            self._session = Session.from_dict(json.loads(raw))
        except (ValueError, TypeError) as e:
            logger.warning(f"Discarding unreadable stored session: {e}")
            self.clear()
            return False

        try:
            self.access_token()
        except AuthError:
            return False
        self._notify()
        return self._session is not None

    def _save(self) -> None:
        if not self.persist or self._session is None:
            return
        try:
            keyring.set_password(self.keyring_service, config.KEYRING_SESSION_KEY,
                                 json.dumps(self._session.to_dict()))
        except KeyringError as e:
            logger.warning(f"Keyring unavailable, session will not survive a restart: {e}")


class ThemeContext:
    """Light/dark theme choice, persisted in preferences."""

    def __init__(self, preferences: Preferences):
        self.preferences = preferences
        self._listeners: List[Callable[[bool], None]] = []

    @property
    def is_dark(self) -> bool:
        return self.preferences.get("theme") == config.THEME_DARK

    def subscribe(self, listener: Callable[[bool], None]) -> None:
        self._listeners.append(listener)

    def toggle(self) -> bool:
        theme = config.THEME_LIGHT if self.is_dark else config.THEME_DARK
        self.preferences.set("theme", theme)
        for listener in list(self._listeners):
            listener(self.is_dark)
        return self.is_dark
