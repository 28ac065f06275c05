import httpx
import pytest

from credvault.backend import BackendClient, BackendError

from .conftest import ANON_KEY, BASE_URL


def make_client(handler):
    return BackendClient(url=BASE_URL, anon_key=ANON_KEY, timeout=None,
                         transport=httpx.MockTransport(handler))


def test_sends_api_key_and_anon_bearer_by_default():
    seen = {}

    def handler(request):
        seen.update(request.headers)
        return httpx.Response(200, json=[])

    make_client(handler).request("GET", "/rest/v1/credentials")
    assert seen["apikey"] == ANON_KEY
    assert seen["authorization"] == f"Bearer {ANON_KEY}"


def test_session_token_replaces_anon_bearer():
    seen = {}

    def handler(request):
        seen.update(request.headers)
        return httpx.Response(200, json=[])

    make_client(handler).request("GET", "/rest/v1/credentials", token="user-token")
    assert seen["authorization"] == "Bearer user-token"


def test_empty_body_returns_none():
    assert make_client(lambda request: httpx.Response(204)).request("POST", "/auth/v1/logout") is None


@pytest.mark.parametrize("body,expected", [
    ({"msg": "User already registered"}, "User already registered"),
    ({"message": "permission denied"}, "permission denied"),
    ({"error": "invalid_grant", "error_description": "Invalid login credentials"}, "Invalid login credentials"),
    ({"error": "invalid_grant"}, "invalid_grant"),
])
def test_error_message_extracted_from_body(body, expected):
    client = make_client(lambda request: httpx.Response(400, json=body))
    with pytest.raises(BackendError) as excinfo:
        client.request("POST", "/auth/v1/token")
    assert excinfo.value.message == expected
    assert excinfo.value.status == 400


def test_error_without_body_falls_back_to_reason_phrase():
    client = make_client(lambda request: httpx.Response(503))
    with pytest.raises(BackendError) as excinfo:
        client.request("GET", "/rest/v1/credentials")
    assert excinfo.value.message == "Service Unavailable"
    assert excinfo.value.status == 503


def test_network_failure_becomes_backend_error_with_status_zero():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(BackendError) as excinfo:
        make_client(handler).request("GET", "/rest/v1/credentials")
    assert excinfo.value.status == 0
    assert "connection refused" in excinfo.value.message


def test_missing_configuration_rejected():
    with pytest.raises(ValueError):
        BackendClient(url="", anon_key="")


def test_url_for_builds_absolute_url_with_query():
    client = make_client(lambda request: httpx.Response(200))
    url = client.url_for("/auth/v1/authorize", {"provider": "google"})
    assert url == f"{BASE_URL}/auth/v1/authorize?provider=google"
