"""Two-step HNAP login: request a challenge, answer it, get a Session."""

import logging
import time
from enum import Enum

from ..errors import AuthError, DeadlineExceeded, ScraperError, SessionRejected
from .crypto import derive_private_key, login_digest
from .session import Challenge, Session

log = logging.getLogger("modem_scraper.hnap")

LOGIN_ACTION = "Login"

_LOGIN_FAILURES = {
    "FAILED": "Username or password error",
    "LOCKUP": "Max number of login attempts reached",
    "REBOOT": "Account locked, reboot required to re-enable account",
    "OK_CHANGED": "Login settings changed on the device, reset required",
}


class AuthState(Enum):
    UNAUTHENTICATED = "unauthenticated"
    CHALLENGE_ISSUED = "challenge_issued"
    AUTHENTICATED = "authenticated"


class AuthHandshake:
    """Runs the login exchange over a ``send`` callable.

    ``send(action, params, session, deadline)`` posts one signed RPC and
    returns the ``<action>Response`` object. The handshake never keeps
    intermediate material: a failure at either step leaves it
    UNAUTHENTICATED, and the next ``run()`` asks for a new challenge.
    """

    def __init__(self, send, credential, clock=time.time):
        self._send = send
        self._credential = credential
        self._clock = clock
        self.state = AuthState.UNAUTHENTICATED

    def _login_params(self, action: str, password: str) -> dict:
        return {
            "Action": action,
            "Username": self._credential.username,
            "LoginPassword": password,
            "Captcha": "",
            "PrivateLogin": "LoginPassword",
        }

    def request_challenge(self, deadline=None) -> Challenge:
        """Step 1: ask the device for challenge, public key and cookie."""
        resp = self._send(LOGIN_ACTION, self._login_params("request", ""), None, deadline)
        try:
            challenge = Challenge(
                challenge=resp["Challenge"],
                public_key=resp["PublicKey"],
                cookie=resp["Cookie"],
            )
        except (KeyError, TypeError) as e:
            raise AuthError(f"Malformed login challenge response: missing {e}") from e
        if not all((challenge.challenge, challenge.public_key, challenge.cookie)):
            raise AuthError("Login challenge response has empty fields")
        return challenge

    def submit_login(self, challenge: Challenge, deadline=None) -> Session:
        """Steps 2-4: derive the private key and prove it to the device."""
        candidate = Session(
            private_key=derive_private_key(
                challenge.challenge, challenge.public_key, self._credential.password
            ),
            cookie=challenge.cookie,
            established_at=self._clock(),
        )
        digest = login_digest(candidate.private_key, challenge.challenge)
        resp = self._send(LOGIN_ACTION, self._login_params("login", digest), candidate, deadline)

        result = resp.get("LoginResult") if isinstance(resp, dict) else None
        if result != "OK":
            reason = _LOGIN_FAILURES.get(result, f"Unknown login result {result!r}")
            raise AuthError(f"Login rejected: {reason}")
        return candidate

    def run(self, deadline=None) -> Session:
        """Perform the full exchange and return the established Session."""
        self.state = AuthState.UNAUTHENTICATED
        try:
            challenge = self.request_challenge(deadline)
            self.state = AuthState.CHALLENGE_ISSUED
            session = self.submit_login(challenge, deadline)
        except DeadlineExceeded:
            self.state = AuthState.UNAUTHENTICATED
            raise
        except SessionRejected as e:
            self.state = AuthState.UNAUTHENTICATED
            raise AuthError(f"Device rejected login request: {e}") from e
        except AuthError:
            self.state = AuthState.UNAUTHENTICATED
            raise
        except ScraperError as e:
            self.state = AuthState.UNAUTHENTICATED
            raise AuthError(f"Login handshake failed: {e}") from e

        self.state = AuthState.AUTHENTICATED
        log.info("HNAP login OK (user: %s)", self._credential.username)
        return session

    def reset(self):
        """Back to UNAUTHENTICATED after the device rejected the session."""
        self.state = AuthState.UNAUTHENTICATED
