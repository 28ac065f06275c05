"""
Shared test fixtures.

Provides an in-process fake of the hosted backend (auth + credentials table
with row-level ownership checks) served through httpx.MockTransport, an
in-memory keyring, and a throwaway home directory for preferences and the
audit log.
"""

import json
import time
import uuid

import httpx
import keyring
import pytest
from keyring.errors import PasswordDeleteError

from credvault.auth import AuthClient
from credvault.backend import BackendClient
from credvault.context import SessionContext
from credvault.dashboard import Notifier
from credvault.storage import CredentialStore

BASE_URL = "https://test-project.supabase.co"
ANON_KEY = "anon-key"


class FakeSupabase:
    """Just enough of the auth and REST APIs to exercise the clients."""

    def __init__(self):
        self.users = {}            # email -> {"id", "password"}
        self.tokens = {}           # access token -> user id
        self.refresh_tokens = {}   # refresh token -> user id
        self.rows = []
        self.requests = []
        self.oauth_codes = {}      # auth code -> email
        self.fail_next = None      # (status, body) returned once for any request
        self.token_lifetime = 3600

    # Helpers

    def create_user(self, email, password="Secret-pass1"):
        user_id = str(uuid.uuid4())
        self.users[email] = {"id": user_id, "password": password}
        return user_id

    def issue_session(self, email):
        user_id = self.users[email]["id"]
        access, refresh = f"access-{uuid.uuid4().hex}", f"refresh-{uuid.uuid4().hex}"
        self.tokens[access] = user_id
        self.refresh_tokens[refresh] = user_id
        return {
            "access_token": access,
            "token_type": "bearer",
            "expires_in": self.token_lifetime,
            "expires_at": int(time.time()) + self.token_lifetime,
            "refresh_token": refresh,
            "user": {"id": user_id, "email": email},
        }

    def add_row(self, user_id, platform, username="user", password="Pw-123456", notes=None):
        row = {
            "id": str(uuid.uuid4()), "user_id": user_id, "platform": platform,
            "username": username, "password": password, "url": None, "notes": notes,
            "created_at": "2025-01-29T13:00:00+00:00", "updated_at": "2025-01-29T13:00:00+00:00",
        }
        self.rows.append(row)
        return row

    def writes(self):
        return [r for r in self.requests if r.url.path.startswith("/rest/") and r.method != "GET"]

    # Transport

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_next is not None:
            status, body = self.fail_next
            self.fail_next = None
            return httpx.Response(status, json=body)

        body = json.loads(request.content) if request.content else None
        path = request.url.path
        if path.startswith("/auth/v1/"):
            return self._auth(request, path[len("/auth/v1"):], body)
        if path == "/rest/v1/credentials":
            return self._credentials(request, body)
        return httpx.Response(404, json={"message": "not found"})

    def _caller(self, request):
        token = request.headers.get("Authorization", "")[len("Bearer "):]
        return self.tokens.get(token)

    def _auth(self, request, path, body):
        params = request.url.params
        if path == "/signup":
            if body["email"] in self.users:
                return httpx.Response(422, json={"code": 422, "msg": "User already registered"})
            user_id = self.create_user(body["email"], body["password"])
            return httpx.Response(200, json={"id": user_id, "email": body["email"],
                                             "identities": [{"provider": "email"}]})
        if path == "/token":
            grant = params.get("grant_type")
            if grant == "password":
                user = self.users.get(body["email"])
                if not user or user["password"] != body["password"]:
                    return httpx.Response(400, json={"error": "invalid_grant",
                                                     "error_description": "Invalid login credentials"})
                return httpx.Response(200, json=self.issue_session(body["email"]))
            if grant == "refresh_token":
                user_id = self.refresh_tokens.pop(body["refresh_token"], None)
                if not user_id:
                    return httpx.Response(400, json={"error_description": "Invalid Refresh Token"})
                email = next(e for e, u in self.users.items() if u["id"] == user_id)
                return httpx.Response(200, json=self.issue_session(email))
            if grant == "pkce":
                email = self.oauth_codes.pop(body["auth_code"], None)
                if not email or not body.get("code_verifier"):
                    return httpx.Response(400, json={"msg": "invalid flow state"})
                return httpx.Response(200, json=self.issue_session(email))
        if path == "/recover":
            return httpx.Response(200, json={})
        if path == "/logout":
            if not self._caller(request):
                return httpx.Response(401, json={"msg": "invalid JWT"})
            token = request.headers["Authorization"][len("Bearer "):]
            self.tokens.pop(token, None)
            return httpx.Response(204)
        return httpx.Response(404, json={"msg": "not found"})

    def _visible_rows(self, request):
        caller = self._caller(request)
        filters = {k: v[len("eq."):] for k, v in request.url.params.items() if v.startswith("eq.")}
        return [r for r in self.rows
                if r["user_id"] == caller and all(str(r.get(k)) == v for k, v in filters.items())]

    def _credentials(self, request, body):
        if request.method == "GET":
            return httpx.Response(200, json=self._visible_rows(request))
        if request.method == "POST":
            caller = self._caller(request)
            created = []
            for item in body:
                if item.get("user_id") != caller:
                    return httpx.Response(403, json={
                        "code": "42501",
                        "message": 'new row violates row-level security policy for table "credentials"'})
                row = {"id": str(uuid.uuid4()), "url": None, "notes": None,
                       "created_at": "2025-02-01T10:00:00+00:00", "updated_at": "2025-02-01T10:00:00+00:00"}
                row.update(item)
                created.append(row)
            self.rows.extend(created)
            return httpx.Response(201, json=created)
        if request.method == "PATCH":
            matched = self._visible_rows(request)
            for row in matched:
                row.update(body)
            return httpx.Response(200, json=matched)
        if request.method == "DELETE":
            matched = self._visible_rows(request)
            self.rows = [r for r in self.rows if r not in matched]
            return httpx.Response(200, json=matched)
        return httpx.Response(405, json={"message": "method not allowed"})


class RecordingNotifier(Notifier):
    def __init__(self):
        self.successes = []
        self.errors = []

    def success(self, message):
        self.successes.append(message)

    def error(self, message):
        self.errors.append(message)


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Keep preferences and the audit log out of the real home directory."""
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("USERPROFILE", str(tmp_path))
    return tmp_path


@pytest.fixture(autouse=True)
def memory_keyring(monkeypatch):
    """Replace the OS keyring with a dict."""
    store = {}

    def get_password(service, username):
        return store.get((service, username))

    def set_password(service, username, password):
        store[(service, username)] = password

    def delete_password(service, username):
        if (service, username) not in store:
            raise PasswordDeleteError("not found")
        del store[(service, username)]

    monkeypatch.setattr(keyring, "get_password", get_password)
    monkeypatch.setattr(keyring, "set_password", set_password)
    monkeypatch.setattr(keyring, "delete_password", delete_password)
    return store


@pytest.fixture
def fake():
    return FakeSupabase()


@pytest.fixture
def backend(fake):
    client = BackendClient(url=BASE_URL, anon_key=ANON_KEY, timeout=None,
                           transport=httpx.MockTransport(fake.handler))
    yield client
    client.close()


@pytest.fixture
def auth_client(backend):
    return AuthClient(backend)


@pytest.fixture
def session(auth_client):
    return SessionContext(auth_client, keyring_service="credvault-test")


@pytest.fixture
def store(backend, session):
    return CredentialStore(backend, session)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def signed_in(fake, auth_client, session):
    """Sign in a fresh user and return their user id."""
    fake.create_user("alice@example.com", "Alice-pass1")
    session.set_session(auth_client.sign_in_with_password("alice@example.com", "Alice-pass1"))
    return session.user_id
