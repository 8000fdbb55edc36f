"""Signed HNAP RPC client with session lifetime management."""

import logging
import random
import time

import requests

from ..errors import (
    AuthError,
    DeadlineExceeded,
    NetworkError,
    ProtocolError,
    SessionRejected,
)
from .handshake import AuthHandshake
from .signer import RequestSigner, soap_action_header

log = logging.getLogger("modem_scraper.hnap")

HNAP_PATH = "/HNAP1/"
MULTIPLE_ACTION = "GetMultipleHNAPs"

# HTTP statuses the device answers with when the signature or cookie is stale.
REJECT_STATUSES = {401, 403, 404}
UNAUTH_RESULT = "UN-AUTH"
ERROR_RESULT = "ERROR"

MAX_BACKOFF_SECONDS = 10.0


def _rejected(body) -> bool:
    """True if any result field in the response reports UN-AUTH."""
    if not isinstance(body, dict):
        return False
    for key, value in body.items():
        if key.endswith("Result") and value == UNAUTH_RESULT:
            return True
        if isinstance(value, dict) and _rejected(value):
            return True
    return False


class HNAPClient:
    """Sends signed RPCs to the modem's HNAP endpoint.

    Owns exactly one Session at a time. The session is created lazily by
    the login handshake, replaced after a rejection and never shared with
    another client. Not safe for concurrent use: the device itself
    serialises sessions by cookie, so one scrape at a time per modem.
    """

    def __init__(self, url: str, credential, *, timeout: float = 10,
                 max_retries: int = 3, backoff: float = 0.5, verify: bool = True,
                 session_ttl: float | None = None, clock=time.time,
                 monotonic=time.monotonic, sleep=time.sleep):
        self._url = url.rstrip("/")
        self._endpoint = self._url + HNAP_PATH
        self._timeout = timeout
        self._max_retries = max_retries
        self._backoff = backoff
        self._session_ttl = session_ttl
        self._clock = clock
        self._monotonic = monotonic
        self._sleep = sleep
        self._http = requests.Session()
        self._http.verify = verify
        self._signer = RequestSigner(clock)
        self._handshake = AuthHandshake(self._send, credential, clock)
        self._session = None

    @property
    def session(self):
        """The live Session, or None before login / after invalidation."""
        return self._session

    @property
    def auth_state(self):
        return self._handshake.state

    def invalidate(self):
        """Drop the current session; the next call logs in again."""
        if self._session is not None:
            log.info("Discarding HNAP session (cookie %s...)", self._session.cookie[:6])
        self._session = None
        self._handshake.reset()

    def login(self, deadline=None):
        """Return a live Session, running the handshake if there is none."""
        if self._session is not None and self._session_ttl:
            if self._session.age(self._clock()) >= self._session_ttl:
                log.debug("HNAP session older than %ss, renewing", self._session_ttl)
                self.invalidate()
        if self._session is None:
            # Only assigned once the handshake completed.
            self._session = self._handshake.run(deadline)
        return self._session

    def call(self, action: str, params: dict | None = None, deadline=None) -> dict:
        """Send a signed RPC and return its ``<action>Response`` object.

        A session rejection invalidates the session and retries once
        against a fresh login. A second rejection raises AuthError.
        """
        params = params or {}
        session = self.login(deadline)
        try:
            return self._send(action, params, session, deadline)
        except SessionRejected as e:
            log.warning("%s: session rejected by device (%s), logging in again", action, e)
            self.invalidate()

        session = self.login(deadline)
        try:
            return self._send(action, params, session, deadline)
        except SessionRejected as e:
            self.invalidate()
            raise AuthError(f"{action}: session rejected again after re-login") from e

    def call_multiple(self, sub_actions, deadline=None) -> dict:
        """Batch several parameterless actions into one GetMultipleHNAPs call."""
        return self.call(MULTIPLE_ACTION, {name: "" for name in sub_actions}, deadline)

    def close(self):
        self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    # ── Transport ──────────────────────────────────────────────

    def _remaining(self, deadline):
        if deadline is None:
            return self._timeout
        remaining = deadline - self._monotonic()
        if remaining <= 0:
            raise DeadlineExceeded("Scrape deadline exceeded")
        return min(self._timeout, remaining)

    def _backoff_seconds(self, attempt: int) -> float:
        delay = self._backoff * (2 ** attempt)
        delay += random.uniform(0, delay * 0.1)
        return min(delay, MAX_BACKOFF_SECONDS)

    def _post(self, action: str, params: dict, session, deadline):
        """POST one signed request, retrying transport failures with backoff."""
        body = {action: params}
        cookies = {}
        if session is not None:
            cookies = {"uid": session.cookie, "PrivateKey": session.private_key}

        attempt = 0
        while True:
            timeout = self._remaining(deadline)
            # Fresh signature per attempt: the device checks the timestamp.
            auth = self._signer.sign(session, action)
            headers = {
                "Accept": "application/json",
                "Content-Type": "application/json",
                "SOAPAction": soap_action_header(action),
                "HNAP_AUTH": str(auth),
            }
            try:
                return self._http.post(
                    self._endpoint,
                    json=body,
                    headers=headers,
                    cookies=cookies,
                    timeout=timeout,
                )
            except requests.exceptions.SSLError as e:
                # Certificate failures do not go away on retry.
                raise NetworkError(f"{action}: TLS error talking to {self._url}: {e}") from e
            except (requests.ConnectionError, requests.Timeout) as e:
                if attempt >= self._max_retries:
                    raise NetworkError(
                        f"{action}: {self._url} unreachable after {attempt + 1} attempts: {e}"
                    ) from e
                delay = self._backoff_seconds(attempt)
                if deadline is not None and self._monotonic() + delay >= deadline:
                    raise DeadlineExceeded(f"{action}: deadline exceeded while retrying") from e
                log.info("Retry %d/%d for %s after %.2fs (%s)",
                         attempt + 1, self._max_retries, action, delay, e)
                self._sleep(delay)
                attempt += 1
            except requests.RequestException as e:
                raise NetworkError(f"{action}: request failed: {e}") from e

    def _send(self, action: str, params: dict, session, deadline=None) -> dict:
        r = self._post(action, params, session, deadline)

        if r.status_code in REJECT_STATUSES:
            raise SessionRejected(f"HTTP {r.status_code}")
        if r.status_code != 200:
            raise ProtocolError(f"{action}: unexpected HTTP {r.status_code}")

        try:
            data = r.json()
        except ValueError as e:
            raise ProtocolError(f"{action}: response is not JSON") from e
        log.debug("%s reply: %s", action, data)

        if _rejected(data):
            raise SessionRejected(f"{action} result {UNAUTH_RESULT}")

        resp = data.get(f"{action}Response") if isinstance(data, dict) else None
        if not isinstance(resp, dict):
            raise ProtocolError(f"{action}: {action}Response missing from reply")
        if resp.get(f"{action}Result") == ERROR_RESULT:
            raise ProtocolError(f"{action}: device returned {ERROR_RESULT}")
        return resp
