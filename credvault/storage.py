"""
Remote storage of credentials.

Rows live in the hosted `credentials` table. The table's row-level policies
only expose rows whose user_id equals the caller's authenticated id; every
request here is additionally filtered on user_id so a request can never
address another user's row.
"""

import datetime
import logging
from dataclasses import dataclass, asdict, fields
from typing import Any, Dict, List, Optional

from .auth import AuthError
from .backend import BackendClient, BackendError
from .context import SessionContext
from . import config

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("platform", "username", "password", "url", "notes")
REQUIRED_FIELDS = ("platform", "username", "password")


class StoreError(Exception):
    """The remote store rejected a request; ``reason`` is shown to the user."""

    def __init__(self, reason: str, status: int = 0):
        super().__init__(reason)
        self.reason = reason
        self.status = status


class ValidationError(ValueError):
    """Input rejected locally, before any request is made."""


class NotAuthenticatedError(ValidationError):
    """An operation needs a signed-in user and there is none."""

    def __init__(self, message: str = config.MSG_NOT_LOGGED_IN):
        super().__init__(message)


@dataclass
class Credential:
    """Represents a single saved credential."""
    platform: str
    username: str
    password: str
    user_id: Optional[str] = None
    url: Optional[str] = None
    notes: Optional[str] = None
    id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Credential':
        """Create from a table row, ignoring columns this client does not know."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    def matches(self, term: str) -> bool:
        """Case-insensitive substring match on platform, username and notes."""
        term = term.lower()
        return (term in self.platform.lower()
                or term in self.username.lower()
                or bool(self.notes and term in self.notes.lower()))


def validate_fields(data: Dict[str, Any], required=REQUIRED_FIELDS) -> None:
    """Raise ValidationError if a required field is blank."""
    for name in required:
        value = data.get(name)
        if value is None or not str(value).strip():
            raise ValidationError(f"{name.capitalize()} is required")


class CredentialStore:
    """Create/read/update/delete requests against the credentials table."""

    def __init__(self, backend: BackendClient, session: SessionContext,
                 table: str = config.CREDENTIALS_TABLE):
        self.backend = backend
        self.session = session
        self.path = f"/rest/v1/{table}"

    def _request(self, method: str, **kwargs) -> Any:
        try:
            token = self.session.access_token()
            return self.backend.request(method, self.path, token=token, **kwargs)
        except (BackendError, AuthError) as e:
            raise StoreError(e.message, e.status) from e

    @staticmethod
    def _owner_filter(credential_id: str, user_id: str) -> Dict[str, str]:
        return {"id": f"eq.{credential_id}", "user_id": f"eq.{user_id}"}

    def list_credentials(self, user_id: Optional[str]) -> List[Credential]:
        """
        All credentials owned by ``user_id``.
        Without a user id nothing is fetched and an empty list is returned.
        """
        if not user_id:
            return []
        rows = self._request("GET", params={"select": "*", "user_id": f"eq.{user_id}"}) or []
        credentials = [Credential.from_dict(row) for row in rows]
        # Never hand back a row owned by someone else, whatever the server returned.
        return [c for c in credentials if c.user_id == user_id]

    def insert(self, credential: Credential) -> Credential:
        """
        Store a new credential.

        Raises:
            NotAuthenticatedError: If the credential has no owning user id
            ValidationError: If platform, username or password is blank
            StoreError: If the store rejects the row
        """
        if not credential.user_id:
            raise NotAuthenticatedError()
        payload = {name: getattr(credential, name) for name in EDITABLE_FIELDS}
        validate_fields(payload)
        payload["user_id"] = credential.user_id

        rows = self._request("POST", json=[payload],
                             headers={"Prefer": "return=representation"}) or []
        logger.info(f"Inserted credential for platform '{credential.platform}'")
        return Credential.from_dict(rows[0]) if rows else credential

    def update(self, credential_id: str, user_id: Optional[str], changes: Dict[str, Any]) -> bool:
        """
        Apply ``changes`` to the row matching both id and owner.

        Returns:
            True if a row was updated, False if none matched
        """
        if not user_id:
            raise NotAuthenticatedError()
        payload = {k: v for k, v in changes.items() if k in EDITABLE_FIELDS}
        validate_fields(payload, required=[name for name in REQUIRED_FIELDS if name in payload])
        payload["updated_at"] = datetime.datetime.now(datetime.timezone.utc).isoformat()

        rows = self._request("PATCH", params=self._owner_filter(credential_id, user_id), json=payload,
                             headers={"Prefer": "return=representation"}) or []
        logger.info(f"Update of credential {credential_id} matched {len(rows)} row(s)")
        return len(rows) > 0

    def delete(self, credential_id: str, user_id: Optional[str]) -> bool:
        """
        Delete the row matching both id and owner.

        Returns:
            True if a row was deleted, False if none matched
        """
        if not user_id:
            raise NotAuthenticatedError()
        rows = self._request("DELETE", params=self._owner_filter(credential_id, user_id),
                             headers={"Prefer": "return=representation"}) or []
        logger.info(f"Delete of credential {credential_id} matched {len(rows)} row(s)")
        return len(rows) > 0
