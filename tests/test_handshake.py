"""Tests for the two-step HNAP login."""

from unittest.mock import MagicMock

import pytest

from modem_scraper.errors import AuthError, DeadlineExceeded, NetworkError, SessionRejected
from modem_scraper.hnap.crypto import derive_private_key, login_digest
from modem_scraper.hnap.handshake import AuthHandshake, AuthState
from modem_scraper.hnap.session import Credential


def make_send(*responses):
    """send() stub returning responses (or raising exceptions) in order."""
    send = MagicMock(side_effect=list(responses))
    return send


CHALLENGE = {"Challenge": "abc", "PublicKey": "def", "Cookie": "sid1", "LoginResult": "OK"}


class TestHandshake:
    def test_success_yields_session(self):
        send = make_send(CHALLENGE, {"LoginResult": "OK"})
        hs = AuthHandshake(send, Credential(password="password"), clock=lambda: 100.0)
        session = hs.run()
        assert session.cookie == "sid1"
        assert session.private_key == derive_private_key("abc", "def", "password")
        assert session.established_at == 100.0
        assert hs.state is AuthState.AUTHENTICATED

    def test_request_step_sends_empty_password_without_session(self):
        send = make_send(CHALLENGE, {"LoginResult": "OK"})
        AuthHandshake(send, Credential(password="password")).run()
        action, params, session, _ = send.call_args_list[0].args
        assert action == "Login"
        assert params["Action"] == "request"
        assert params["LoginPassword"] == ""
        assert params["Username"] == "admin"
        assert session is None

    def test_login_step_sends_digest_with_candidate_session(self):
        send = make_send(CHALLENGE, {"LoginResult": "OK"})
        session = AuthHandshake(send, Credential(password="password")).run()
        action, params, candidate, _ = send.call_args_list[1].args
        assert params["Action"] == "login"
        assert params["LoginPassword"] == login_digest(session.private_key, "abc")
        assert candidate == session

    def test_password_never_sent(self):
        send = make_send(CHALLENGE, {"LoginResult": "OK"})
        AuthHandshake(send, Credential(password="hunter2")).run()
        for call in send.call_args_list:
            assert "hunter2" not in repr(call.args[1])

    @pytest.mark.parametrize("result", ["FAILED", "LOCKUP", "REBOOT", "OK_CHANGED", "??"])
    def test_non_ok_login_result_fails(self, result):
        send = make_send(CHALLENGE, {"LoginResult": result})
        hs = AuthHandshake(send, Credential(password="password"))
        with pytest.raises(AuthError, match="Login rejected"):
            hs.run()
        assert hs.state is AuthState.UNAUTHENTICATED

    def test_missing_challenge_field_fails(self):
        send = make_send({"PublicKey": "def", "Cookie": "sid1"})
        with pytest.raises(AuthError, match="Malformed"):
            AuthHandshake(send, Credential(password="password")).run()

    def test_empty_challenge_field_fails(self):
        send = make_send({"Challenge": "", "PublicKey": "def", "Cookie": "sid1"})
        with pytest.raises(AuthError, match="empty"):
            AuthHandshake(send, Credential(password="password")).run()

    def test_transport_failure_becomes_auth_error(self):
        send = make_send(NetworkError("connection refused"))
        with pytest.raises(AuthError, match="handshake failed") as exc:
            AuthHandshake(send, Credential(password="password")).run()
        assert isinstance(exc.value.__cause__, NetworkError)

    def test_rejection_during_login_is_plain_auth_error(self):
        send = make_send(SessionRejected("HTTP 404"))
        with pytest.raises(AuthError) as exc:
            AuthHandshake(send, Credential(password="password")).run()
        assert not isinstance(exc.value, SessionRejected)

    def test_deadline_propagates(self):
        send = make_send(CHALLENGE, DeadlineExceeded("late"))
        hs = AuthHandshake(send, Credential(password="password"))
        with pytest.raises(DeadlineExceeded):
            hs.run()
        assert hs.state is AuthState.UNAUTHENTICATED

    def test_retry_uses_fresh_challenge(self):
        second = {"Challenge": "ghi", "PublicKey": "jkl", "Cookie": "sid2"}
        send = make_send(CHALLENGE, {"LoginResult": "FAILED"}, second, {"LoginResult": "OK"})
        hs = AuthHandshake(send, Credential(password="password"))
        with pytest.raises(AuthError):
            hs.run()
        session = hs.run()
        assert session.cookie == "sid2"
        assert session.private_key == derive_private_key("ghi", "jkl", "password")
        assert send.call_count == 4
        assert send.call_args_list[2].args[1]["Action"] == "request"

    def test_credential_repr_hides_password(self):
        assert "hunter2" not in repr(Credential(password="hunter2"))


class TestAgainstSyntheticModem:
    def test_scenario_a_session_established(self, client, modem):
        session = client.login()
        assert session.cookie == "sid1"
        assert session.private_key == derive_private_key("abc", "def", "password")
        assert modem.calls == ["Login", "Login"]
        # The device's own check: it stored the key it derived itself
        assert modem.private_key == session.private_key

    def test_wrong_password_fails(self, modem):
        from unittest.mock import patch
        from modem_scraper.hnap import HNAPClient

        c = HNAPClient("https://192.168.100.1", Credential(password="wrong"))
        with patch.object(c._http, "post", side_effect=modem.post):
            with pytest.raises(AuthError, match="Username or password error"):
                c.login()
        assert c.session is None
