"""Value types for HNAP authentication state."""

import time
from dataclasses import dataclass, field


@dataclass(frozen=True)
class Credential:
    """Admin login for the modem. The password never shows up in repr()."""

    password: str = field(repr=False)
    username: str = "admin"


@dataclass(frozen=True)
class Challenge:
    """Server-issued material from the first login step. Single use."""

    challenge: str
    public_key: str
    cookie: str


@dataclass(frozen=True)
class Session:
    """An authenticated HNAP session.

    Sessions are replaced, never mutated: after a rejection the client
    drops its reference and builds a new one from fresh challenge material.
    """

    private_key: str = field(repr=False)
    cookie: str
    established_at: float = field(default_factory=time.time)

    def age(self, now: float | None = None) -> float:
        if now is None:
            now = time.time()
        return now - self.established_at


@dataclass(frozen=True)
class AuthHeader:
    """Per-request proof of possession of the session key."""

    digest: str
    timestamp: int

    def __str__(self) -> str:
        # HNAP_AUTH wire format
        return f"{self.digest} {self.timestamp}"
