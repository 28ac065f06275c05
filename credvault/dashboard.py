"""
Dashboard view state.

The controller owns the credential list shown to the user, the search filter,
which form (if any) is open and the per-row password visibility. It talks to
the store through an executor so the widgets never block on the network;
tests pass ``run_inline`` and get synchronous behaviour.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from .auth import AuthError
from .context import SessionContext
from .crypto import check_password_strength, generate_strong_password
from .storage import (Credential, CredentialStore, StoreError, ValidationError,
                      validate_fields)
from .utils import log_action
from . import config

logger = logging.getLogger(__name__)

Executor = Callable[[Callable[[], Any], Callable[[Any], None], Callable[[Exception], None]], None]


def run_inline(task: Callable[[], Any], on_success: Callable[[Any], None],
               on_error: Callable[[Exception], None]) -> None:
    """Run ``task`` immediately on the calling thread."""
    try:
        result = task()
    except Exception as e:
        on_error(e)
        return
    on_success(result)


class ViewState(enum.Enum):
    LIST = "list"
    ADD_FORM = "add_form"
    EDIT_FORM = "edit_form"
    PENDING = "pending"


class Notifier:
    """Transient user notifications. The UI overrides both methods."""

    def success(self, message: str) -> None:
        logger.info(message)

    def error(self, message: str) -> None:
        logger.error(message)


@dataclass
class CredentialForm:
    """Values submitted from the add/edit form."""
    platform: str
    username: str
    password: str
    url: str = ""
    notes: str = ""

    @classmethod
    def from_credential(cls, credential: Credential) -> 'CredentialForm':
        return cls(credential.platform, credential.username, credential.password,
                   credential.url or "", credential.notes or "")

    def to_changes(self) -> Dict[str, str]:
        return {
            "platform": self.platform.strip(),
            "username": self.username.strip(),
            "password": self.password,
            "url": self.url.strip(),
            "notes": self.notes.strip(),
        }


def _reason(error: Exception, fallback: str) -> str:
    if isinstance(error, StoreError):
        return error.reason or fallback
    if isinstance(error, (AuthError, ValidationError)):
        return str(error) or fallback
    logger.error(f"Unexpected error: {error}", exc_info=error)
    return fallback


class DashboardController:
    """State machine behind the dashboard window."""

    def __init__(self, store: CredentialStore, session: SessionContext,
                 notifier: Optional[Notifier] = None,
                 confirm: Callable[[str], bool] = lambda message: False,
                 executor: Executor = run_inline,
                 on_signed_out: Optional[Callable[[], None]] = None):
        """
        Args:
            store: Client for the remote credentials table
            session: The signed-in user's session context
            notifier: Receives success/error notifications
            confirm: Asks the user a yes/no question; must return True to proceed
            executor: Runs store requests and reports back on the UI thread
            on_signed_out: Called once the user is signed out, by logout or
                because the session could not be refreshed
        """
        self.store = store
        self.session = session
        self.notifier = notifier or Notifier()
        self.confirm = confirm
        self.executor = executor
        self.on_signed_out = on_signed_out

        self.credentials: List[Credential] = []
        self.state = ViewState.LIST
        self.editing: Optional[Credential] = None
        self.filter_text = ""
        self._password_visible: Dict[str, bool] = {}
        self._listeners: List[Callable[[], None]] = []

    def subscribe(self, listener: Callable[[], None]) -> None:
        """Call ``listener`` whenever anything the view renders changes."""
        self._listeners.append(listener)

    def unsubscribe(self, listener: Callable[[], None]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _changed(self) -> None:
        for listener in list(self._listeners):
            listener()

    def _reset(self) -> None:
        self.credentials = []
        self._password_visible = {}
        self.editing = None
        self.state = ViewState.LIST
        self._changed()

    def _session_lost(self) -> bool:
        """
        Sign the view out if a request found the session gone (its refresh
        was rejected). Runs from result callbacks, so on the UI thread.
        """
        if self.session.session is not None:
            return False
        logger.warning("Session expired, returning to login")
        self._reset()
        self.notifier.error(config.MSG_SESSION_EXPIRED)
        if self.on_signed_out:
            self.on_signed_out()
        return True

    # Fetching

    def refresh(self) -> None:
        """Re-fetch every credential of the signed-in user."""
        user_id = self.session.user_id
        if not user_id:
            return

        def fetched(credentials: List[Credential]) -> None:
            self.credentials = credentials
            present = {c.id for c in credentials}
            self._password_visible = {k: v for k, v in self._password_visible.items() if k in present}
            self._changed()

        def failed(error: Exception) -> None:
            logger.error(f"Error fetching credentials: {_reason(error, 'unknown error')}")
            if self._session_lost():
                return
            self.notifier.error("Error fetching credentials")

        self.executor(lambda: self.store.list_credentials(user_id), fetched, failed)

    # Filtering and visibility

    def set_filter(self, text: str) -> None:
        self.filter_text = text
        self._changed()

    @property
    def visible_credentials(self) -> List[Credential]:
        """Credentials matching the search filter; never re-queries the store."""
        if not self.filter_text:
            return list(self.credentials)
        return [c for c in self.credentials if c.matches(self.filter_text)]

    def is_password_visible(self, credential_id: str) -> bool:
        return self._password_visible.get(credential_id, False)

    def toggle_password_visibility(self, credential_id: str) -> bool:
        visible = not self.is_password_visible(credential_id)
        self._password_visible[credential_id] = visible
        self._changed()
        return visible

    # Forms

    @property
    def is_pending(self) -> bool:
        return self.state is ViewState.PENDING

    def open_add(self) -> None:
        if self.is_pending:
            return
        self.editing = None
        self.state = ViewState.ADD_FORM
        self._changed()

    def open_edit(self, credential_id: str) -> bool:
        if self.is_pending:
            return False
        credential = next((c for c in self.credentials if c.id == credential_id), None)
        if credential is None:
            return False
        self.editing = credential
        self.state = ViewState.EDIT_FORM
        self._changed()
        return True

    def cancel_form(self) -> None:
        if self.is_pending:
            return
        self.editing = None
        self.state = ViewState.LIST
        self._changed()

    def generate_password(self) -> str:
        return generate_strong_password(config.PASSWORD_GENERATOR_DEFAULT_LENGTH)

    def submit(self, form: CredentialForm) -> bool:
        """
        Validate the open form and save it.

        Returns:
            True if a request was issued. Validation failures (no session,
            blank fields, a password scoring below 3) issue nothing.
        """
        if self.state not in (ViewState.ADD_FORM, ViewState.EDIT_FORM):
            return False

        user_id = self.session.user_id
        if not user_id:
            self.notifier.error(config.MSG_NOT_LOGGED_IN)
            return False

        changes = form.to_changes()
        try:
            validate_fields(changes)
        except ValidationError as e:
            self.notifier.error(str(e))
            return False

        strength = check_password_strength(form.password)
        if not strength.is_acceptable:
            self.notifier.error("Please use a stronger password: " + ", ".join(strength.feedback))
            return False

        previous_state = self.state
        editing = self.editing
        self.state = ViewState.PENDING
        self._changed()

        if editing is not None:
            task = lambda: self.store.update(editing.id, user_id, changes)
        else:
            task = lambda: self.store.insert(Credential(user_id=user_id, **changes))

        def saved(result: Any) -> None:
            if editing is not None and result is False:
                self.notifier.error("Credential no longer exists")
            elif editing is not None:
                log_action("Credential Updated", f"platform={changes['platform']}")
                self.notifier.success("Credential updated successfully!")
            else:
                log_action("Credential Added", f"platform={changes['platform']}")
                self.notifier.success("Credential added successfully!")
            self.editing = None
            self.state = ViewState.LIST
            self._changed()
            self.refresh()

        def failed(error: Exception) -> None:
            reason = _reason(error, "Error saving credential")
            logger.error(f"Save error: {reason}")
            if self._session_lost():
                return
            self.state = previous_state
            self._changed()
            self.notifier.error(reason)

        self.executor(task, saved, failed)
        return True

    # Deleting

    def delete(self, credential_id: str) -> bool:
        """
        Delete a credential after the user confirms.

        Returns:
            True if a request was issued
        """
        user_id = self.session.user_id
        if not user_id or self.is_pending:
            return False
        if not self.confirm(config.MSG_DELETE_CONFIRM):
            return False

        previous_state = self.state
        self.state = ViewState.PENDING
        self._changed()

        def deleted(result: bool) -> None:
            if result:
                log_action("Credential Deleted", f"id={credential_id}")
                self.notifier.success("Credential deleted successfully!")
            else:
                self.notifier.error("Credential no longer exists")
            if self.editing is not None and self.editing.id == credential_id:
                self.editing = None
                self.state = ViewState.LIST
            else:
                self.state = previous_state
            self._changed()
            self.refresh()

        def failed(error: Exception) -> None:
            logger.error(f"Delete error: {_reason(error, 'unknown error')}")
            if self._session_lost():
                return
            self.state = previous_state
            self._changed()
            self.notifier.error("Error deleting credential")

        self.executor(lambda: self.store.delete(credential_id, user_id), deleted, failed)
        return True

    # Session

    def logout(self, on_logged_out: Optional[Callable[[], None]] = None) -> None:
        """Sign out at the provider; ``on_logged_out`` defaults to ``on_signed_out``."""
        on_logged_out = on_logged_out or self.on_signed_out
        session = self.session.session
        auth = self.session.auth
        if session is None or auth is None:
            self.session.clear()
            self._reset()
            if on_logged_out:
                on_logged_out()
            return

        def signed_out(_: Any) -> None:
            log_action("Logout", f"user={session.user_id}")
            self.session.clear()
            self._reset()
            self.notifier.success("Logged out successfully!")
            if on_logged_out:
                on_logged_out()

        def failed(error: Exception) -> None:
            logger.error(f"Logout error: {_reason(error, 'unknown error')}")
            self.notifier.error("Error logging out")

        self.executor(lambda: auth.sign_out(session.access_token), signed_out, failed)
