import json
import time

import keyring
import pytest
from keyring.errors import KeyringError

from credvault import config
from credvault.auth import AuthError, Session
from credvault.context import SessionContext, ThemeContext
from credvault.preferences import Preferences

SERVICE = "credvault-test"


def stored(memory_keyring):
    raw = memory_keyring.get((SERVICE, config.KEYRING_SESSION_KEY))
    return json.loads(raw) if raw else None


class TestSessionContext:

    def test_set_session_persists_to_keyring(self, session, signed_in, memory_keyring):
        assert stored(memory_keyring)["user_id"] == signed_in

    def test_clear_removes_persisted_session(self, session, signed_in, memory_keyring):
        session.clear()
        assert session.session is None
        assert stored(memory_keyring) is None

    def test_clear_without_stored_session_is_harmless(self, session):
        session.clear()
        assert session.user_id is None

    def test_restore_picks_up_persisted_session(self, auth_client, signed_in):
        restarted = SessionContext(auth_client, keyring_service=SERVICE)
        assert restarted.restore() is True
        assert restarted.user_id == signed_in

    def test_restore_with_nothing_stored(self, auth_client):
        assert SessionContext(auth_client, keyring_service=SERVICE).restore() is False

    def test_restore_discards_unreadable_entry(self, auth_client, memory_keyring):
        memory_keyring[(SERVICE, config.KEYRING_SESSION_KEY)] = "{not json"
        restarted = SessionContext(auth_client, keyring_service=SERVICE)
        assert restarted.restore() is False
        assert (SERVICE, config.KEYRING_SESSION_KEY) not in memory_keyring

    def test_restore_refreshes_expired_session(self, fake, auth_client, session, signed_in, memory_keyring):
        data = stored(memory_keyring)
        data["expires_at"] = time.time() - 10
        memory_keyring[(SERVICE, config.KEYRING_SESSION_KEY)] = json.dumps(data)

        restarted = SessionContext(auth_client, keyring_service=SERVICE)
        assert restarted.restore() is True
        assert restarted.session.access_token != data["access_token"]
        assert not restarted.session.is_expired()
        assert stored(memory_keyring)["access_token"] == restarted.session.access_token

    def test_rejected_refresh_clears_session(self, fake, auth_client, memory_keyring):
        expired = Session("stale", "revoked-refresh", time.time() - 10, "uid")
        memory_keyring[(SERVICE, config.KEYRING_SESSION_KEY)] = json.dumps(expired.to_dict())

        restarted = SessionContext(auth_client, keyring_service=SERVICE)
        assert restarted.restore() is False
        assert restarted.session is None
        assert (SERVICE, config.KEYRING_SESSION_KEY) not in memory_keyring

    def test_access_token_raises_when_refresh_rejected(self, auth_client):
        context = SessionContext(auth_client, persist=False)
        context.set_session(Session("stale", "revoked-refresh", time.time() - 10, "uid"))
        with pytest.raises(AuthError):
            context.access_token()
        assert context.session is None

    def test_access_token_refreshes_inside_margin(self, fake, auth_client, session, signed_in):
        old = session.session
        session.set_session(Session(old.access_token, old.refresh_token,
                                    time.time() + config.SESSION_EXPIRY_MARGIN_SECONDS / 2,
                                    old.user_id, old.email))
        token = session.access_token()
        assert token != old.access_token
        assert token in fake.tokens

    def test_access_token_without_session(self):
        assert SessionContext(persist=False).access_token() is None

    def test_listeners_see_session_changes(self, auth_client, session, fake):
        seen = []
        session.subscribe(lambda s: seen.append(s.user_id if s else None))
        user_id = fake.create_user("bob@example.com", "Bob-pass12")
        session.set_session(auth_client.sign_in_with_password("bob@example.com", "Bob-pass12"))
        session.clear()
        assert seen == [user_id, None]

    def test_keyring_failure_does_not_break_sign_in(self, auth_client, fake, monkeypatch):
        def broken(*args):
            raise KeyringError("no backend")

        monkeypatch.setattr(keyring, "set_password", broken)
        context = SessionContext(auth_client, keyring_service=SERVICE)
        fake.create_user("bob@example.com", "Bob-pass12")
        context.set_session(auth_client.sign_in_with_password("bob@example.com", "Bob-pass12"))
        assert context.user_id is not None

    def test_no_persistence_when_disabled(self, auth_client, fake, memory_keyring):
        context = SessionContext(auth_client, keyring_service=SERVICE, persist=False)
        fake.create_user("bob@example.com", "Bob-pass12")
        context.set_session(auth_client.sign_in_with_password("bob@example.com", "Bob-pass12"))
        assert memory_keyring == {}
        assert context.restore() is False


class TestThemeContext:

    def test_defaults_to_light(self, tmp_path):
        assert not ThemeContext(Preferences(str(tmp_path / "prefs.json"))).is_dark

    def test_toggle_flips_persists_and_notifies(self, tmp_path):
        path = str(tmp_path / "prefs.json")
        theme = ThemeContext(Preferences(path))
        seen = []
        theme.subscribe(seen.append)
        assert theme.toggle() is True
        assert theme.toggle() is False
        assert seen == [True, False]
        theme.toggle()
        assert ThemeContext(Preferences(path)).is_dark
