"""HNAP (Home Network Administration Protocol) client for Arris S33 modems."""

from .client import HNAPClient
from .crypto import derive_private_key, hex_hmac_md5, login_digest
from .handshake import AuthHandshake, AuthState
from .payloads import LogEntry, StatRecord, parse_channels
from .session import AuthHeader, Challenge, Credential, Session
from .signer import RequestSigner

__all__ = [
    "AuthHandshake",
    "AuthHeader",
    "AuthState",
    "Challenge",
    "Credential",
    "HNAPClient",
    "LogEntry",
    "RequestSigner",
    "Session",
    "StatRecord",
    "derive_private_key",
    "hex_hmac_md5",
    "login_digest",
    "parse_channels",
]
