import time
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from credvault.auth import AuthClient, AuthError, Session, _code_challenge
from credvault.backend import BackendClient

from .conftest import ANON_KEY, BASE_URL


def test_sign_in_returns_session_bound_to_user(fake, auth_client):
    user_id = fake.create_user("bob@example.com", "Bob-pass12")
    session = auth_client.sign_in_with_password("bob@example.com", "Bob-pass12")
    assert session.user_id == user_id
    assert session.email == "bob@example.com"
    assert session.access_token in fake.tokens
    assert not session.is_expired()


def test_sign_in_with_wrong_password_raises(fake, auth_client):
    fake.create_user("bob@example.com", "Bob-pass12")
    with pytest.raises(AuthError) as excinfo:
        auth_client.sign_in_with_password("bob@example.com", "nope")
    assert excinfo.value.message == "Invalid login credentials"
    assert excinfo.value.status == 400


def test_sign_up_pending_verification_returns_no_session(fake, auth_client):
    assert auth_client.sign_up("new@example.com", "New-pass12") is None
    assert auth_client.last_user_id == fake.users["new@example.com"]["id"]


def test_sign_up_passes_redirect(fake, auth_client):
    auth_client.sign_up("new@example.com", "New-pass12", redirect_to="https://app.example.com/dashboard")
    assert fake.requests[-1].url.params["redirect_to"] == "https://app.example.com/dashboard"


def test_sign_up_existing_account_raises(fake, auth_client):
    fake.create_user("taken@example.com")
    with pytest.raises(AuthError) as excinfo:
        auth_client.sign_up("taken@example.com", "Whatever-1")
    assert "already" in excinfo.value.message


def test_sign_up_obfuscated_existing_account_raises():
    def handler(request):
        return httpx.Response(200, json={"id": "x", "email": "taken@example.com", "identities": []})

    auth_client = AuthClient(BackendClient(url=BASE_URL, anon_key=ANON_KEY,
                                           transport=httpx.MockTransport(handler)))
    with pytest.raises(AuthError) as excinfo:
        auth_client.sign_up("taken@example.com", "Whatever-1")
    assert "already" in excinfo.value.message


def test_refresh_session_issues_new_tokens(fake, auth_client):
    fake.create_user("bob@example.com", "Bob-pass12")
    first = auth_client.sign_in_with_password("bob@example.com", "Bob-pass12")
    second = auth_client.refresh_session(first.refresh_token)
    assert second.user_id == first.user_id
    assert second.access_token != first.access_token


def test_reset_password_posts_email(fake, auth_client):
    auth_client.reset_password_for_email("bob@example.com")
    request = fake.requests[-1]
    assert request.url.path == "/auth/v1/recover"
    assert b"bob@example.com" in request.content


def test_sign_out_revokes_token(fake, auth_client):
    fake.create_user("bob@example.com", "Bob-pass12")
    session = auth_client.sign_in_with_password("bob@example.com", "Bob-pass12")
    auth_client.sign_out(session.access_token)
    assert session.access_token not in fake.tokens


def test_oauth_url_carries_pkce_challenge_and_google_params(auth_client):
    url, verifier = auth_client.oauth_authorize_url("google", "http://127.0.0.1:54321/callback")
    parsed = urlparse(url)
    query = {k: v[0] for k, v in parse_qs(parsed.query).items()}
    assert parsed.path == "/auth/v1/authorize"
    assert query["provider"] == "google"
    assert query["redirect_to"] == "http://127.0.0.1:54321/callback"
    assert query["code_challenge"] == _code_challenge(verifier)
    assert query["code_challenge_method"] == "s256"
    assert query["access_type"] == "offline"
    assert query["prompt"] == "consent"


def test_exchange_code_for_session(fake, auth_client):
    user_id = fake.create_user("gina@example.com")
    fake.oauth_codes["abc"] = "gina@example.com"
    session = auth_client.exchange_code_for_session("abc", "verifier")
    assert session.user_id == user_id


def test_session_round_trips_through_dict():
    session = Session("a", "r", time.time() + 60, "uid", "e@example.com")
    assert Session.from_dict(session.to_dict()) == session


def test_session_expiry_margin():
    session = Session("a", "r", time.time() + 30, "uid")
    assert not session.is_expired()
    assert session.is_expired(margin=60)


def test_session_computes_expiry_from_expires_in():
    before = time.time()
    session = Session.from_token_response({"access_token": "a", "expires_in": 100,
                                           "user": {"id": "uid"}})
    assert before + 100 <= session.expires_at <= time.time() + 100
