"""Ship modem event log entries to Grafana Loki."""

import logging
from collections import deque

import requests

from .errors import NetworkError

log = logging.getLogger("modem_scraper.loki")

DEFAULT_LABELS = {"app": "modem_scraper"}


class SeenLogs:
    """Remembers shipped entries that are still in the device log.

    ``retain()`` forgets entries the device has rotated out, so memory is
    bounded by the device log. ``capacity`` caps what is kept beyond that;
    it never evicts an entry the current log still holds.
    """

    def __init__(self, capacity: int = 256):
        self._capacity = capacity
        self._limit = capacity
        self._order = deque()
        self._members = set()

    def __contains__(self, entry) -> bool:
        return entry in self._members

    def __len__(self) -> int:
        return len(self._order)

    def retain(self, current):
        """Drop entries no longer in ``current`` and size the cache to it."""
        current = set(current)
        self._order = deque(e for e in self._order if e in current)
        self._members &= current
        self._limit = max(self._capacity, len(current))

    def add(self, entry):
        if entry in self._members:
            return
        self._order.append(entry)
        self._members.add(entry)
        while len(self._order) > self._limit:
            self._members.discard(self._order.popleft())


def _ns(entry) -> str:
    return str(int(entry.timestamp.timestamp()) * 1_000_000_000)


def build_streams(entries, labels=None) -> dict:
    """Group entries into one Loki stream per level.

    See https://grafana.com/docs/loki/latest/reference/loki-http-api/#ingest-logs
    """
    buckets = {}
    for entry in entries:
        buckets.setdefault(entry.level, []).append([_ns(entry), entry.message])
    streams = []
    for level, values in buckets.items():
        stream_labels = dict(labels or DEFAULT_LABELS)
        stream_labels["level"] = level
        streams.append({"stream": stream_labels, "values": values})
    return {"streams": streams}


class LokiShipper:
    def __init__(self, url: str, labels=None, capacity: int = 256, timeout: float = 10):
        self.url = url
        self.labels = labels or DEFAULT_LABELS
        self.timeout = timeout
        self._seen = SeenLogs(capacity)
        self._http = requests.Session()

    def ship(self, entries) -> int:
        """Push entries not shipped before. Returns the number pushed."""
        self._seen.retain(entries)
        fresh = [e for e in entries if e not in self._seen]
        if not fresh:
            return 0
        try:
            r = self._http.post(self.url, json=build_streams(fresh, self.labels),
                                timeout=self.timeout)
            r.raise_for_status()
        except requests.RequestException as e:
            raise NetworkError(f"Loki push to {self.url} failed: {e}") from e
        # Only remember entries Loki accepted, so failures are retried.
        for entry in fresh:
            self._seen.add(entry)
        log.debug("Pushed %d entries to Loki", len(fresh))
        return len(fresh)

    def close(self):
        self._http.close()
