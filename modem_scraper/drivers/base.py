"""Base class for modem drivers."""

from abc import ABC, abstractmethod


class ModemDriver(ABC):
    """Abstract interface the collectors poll.

    The driver owns its authentication state and exposes channel data,
    device info and the event log. ``deadline`` is a ``time.monotonic()``
    value bounding the call, or None for no bound.
    """

    def __init__(self, url: str, user: str, password: str):
        self._url = url
        self._user = user
        self._password = password

    @abstractmethod
    def login(self, deadline=None) -> None:
        """Make sure an authenticated session exists."""
        ...

    @abstractmethod
    def get_docsis_data(self, deadline=None) -> dict:
        """Return ``{"downstream": [StatRecord], "upstream": [StatRecord]}``."""
        ...

    @abstractmethod
    def get_device_info(self, deadline=None) -> dict:
        """Retrieve device model and firmware info."""
        ...

    @abstractmethod
    def get_connection_info(self, deadline=None) -> dict:
        """Retrieve uptime, clock and network access state."""
        ...

    @abstractmethod
    def get_event_log(self, deadline=None) -> list:
        """Retrieve the device event log as LogEntry objects."""
        ...
