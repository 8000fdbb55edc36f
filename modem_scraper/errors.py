"""Error taxonomy shared by the HNAP client, parsers and collectors."""


class ScraperError(RuntimeError):
    """Base class for every failure of a scrape cycle."""


class NetworkError(ScraperError):
    """Transport failure (connection refused, timeout) after retries."""


class DeadlineExceeded(NetworkError):
    """The cycle deadline expired before the call completed."""


class AuthError(ScraperError):
    """Bad credentials or repeated signature rejection."""


class SessionRejected(AuthError):
    """The device refused the current session (bad signature or expired cookie)."""


class ProtocolError(ScraperError):
    """Unexpected response shape or status from the device."""


class ParseError(ScraperError):
    """Malformed payload.

    ``rows`` lists ``(index, reason)`` for every entry that failed to
    decode; it is empty for failures that are not tied to a single entry.
    """

    def __init__(self, message: str, rows=None):
        super().__init__(message)
        self.rows = list(rows or [])

    @property
    def row(self):
        """Index of the first failing entry, or None."""
        return self.rows[0][0] if self.rows else None
