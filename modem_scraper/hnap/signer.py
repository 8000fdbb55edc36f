"""Per-request HNAP_AUTH signing."""

import time

from .crypto import hex_hmac_md5
from .session import AuthHeader

SOAP_NAMESPACE = "http://purenetworks.com/HNAP1/"

# Key the device expects before a login has produced a private key.
PRELOGIN_KEY = "withoutloginkey"

# The device web UI wraps millisecond timestamps at this modulus.
TIMESTAMP_MODULUS = 2_000_000_000_000


def action_uri(action: str) -> str:
    """Full SOAP action URI for an HNAP action name."""
    return SOAP_NAMESPACE + action


def soap_action_header(action: str) -> str:
    """Quoted SOAPAction header value; must match the signed string exactly."""
    return f'"{action_uri(action)}"'


class RequestSigner:
    """Computes a fresh AuthHeader for every outbound call.

    Pure function of (session, action, clock()); the clock is injected so
    tests can pin the timestamp.
    """

    def __init__(self, clock=time.time):
        self._clock = clock

    def timestamp(self) -> int:
        return int(self._clock() * 1000) % TIMESTAMP_MODULUS

    def sign(self, session, action: str) -> AuthHeader:
        key = session.private_key if session is not None else PRELOGIN_KEY
        ts = self.timestamp()
        message = f"{ts}{soap_action_header(action)}"
        return AuthHeader(digest=hex_hmac_md5(key, message), timestamp=ts)
