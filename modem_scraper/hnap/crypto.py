"""Keyed hash used by the HNAP login handshake and request signing."""

import hashlib
import hmac


def _to_bytes(value) -> bytes:
    if isinstance(value, bytes):
        return value
    return value.encode("utf-8")


def hex_hmac_md5(key, message) -> str:
    """HMAC-MD5 of ``message`` under ``key`` as uppercase hex.

    The device compares digests as uppercase strings; lowercase output
    authenticates nothing.
    """
    return hmac.new(_to_bytes(key), _to_bytes(message), hashlib.md5).hexdigest().upper()


def derive_private_key(challenge: str, public_key: str, password: str) -> str:
    """Shared secret for the session: HMAC(public_key + password, challenge)."""
    return hex_hmac_md5(public_key + password, challenge)


def login_digest(private_key: str, challenge: str) -> str:
    """Value sent as LoginPassword in the second login step."""
    return hex_hmac_md5(private_key, challenge)
