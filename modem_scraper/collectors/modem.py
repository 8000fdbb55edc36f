"""Modem collectors: channel statistics to MQTT, event log to Loki."""

import logging
import time

from ..errors import ScraperError
from .base import Collector, CollectorResult

log = logging.getLogger("modem_scraper.collector.modem")


def _stats(values):
    if not values:
        return {"min": None, "max": None, "avg": None}
    return {
        "min": min(values),
        "max": max(values),
        "avg": round(sum(values) / len(values), 2),
    }


def summarize(downstream, upstream) -> dict:
    """Aggregate channel records into the summary values published per cycle."""
    ds_power = _stats([r.power_dbmv for r in downstream])
    ds_snr = _stats([r.snr_db for r in downstream if r.snr_db is not None])
    us_power = _stats([r.power_dbmv for r in upstream])
    return {
        "ds_total": len(downstream),
        "ds_locked": sum(1 for r in downstream if r.locked),
        "ds_power_min": ds_power["min"],
        "ds_power_max": ds_power["max"],
        "ds_power_avg": ds_power["avg"],
        "ds_snr_min": ds_snr["min"],
        "ds_snr_avg": ds_snr["avg"],
        "ds_correctable_errors": sum(r.corrected or 0 for r in downstream),
        "ds_uncorrectable_errors": sum(r.uncorrectables or 0 for r in downstream),
        "us_total": len(upstream),
        "us_locked": sum(1 for r in upstream if r.locked),
        "us_power_min": us_power["min"],
        "us_power_max": us_power["max"],
        "us_power_avg": us_power["avg"],
    }


class ModemCollector(Collector):
    """Scrapes channel tables and hands complete cycles to the publisher.

    A cycle either yields both channel lists fully decoded or fails as a
    whole; nothing is published for a failed cycle.
    """

    name = "modem"

    def __init__(self, driver, publisher, poll_interval, cycle_timeout=60,
                 monotonic=time.monotonic):
        super().__init__(poll_interval)
        self._driver = driver
        self._publisher = publisher
        self._cycle_timeout = cycle_timeout
        self._monotonic = monotonic
        self._device_info = None
        self._discovery_published = False

    def collect(self) -> CollectorResult:
        deadline = self._monotonic() + self._cycle_timeout
        try:
            self._driver.login(deadline)
            if self._device_info is None:
                self._device_info = self._driver.get_device_info(deadline)
                log.info(
                    "Model: %s (%s)",
                    self._device_info.get("model", "?"),
                    self._device_info.get("sw_version", "?"),
                )
            data = self._driver.get_docsis_data(deadline)
            connection = self._driver.get_connection_info(deadline)
        except ScraperError as e:
            log.warning("Modem cycle failed: %s", e)
            return CollectorResult.failure(self.name, str(e))

        downstream = data["downstream"]
        upstream = data["upstream"]
        summary = summarize(downstream, upstream)
        summary["uptime_seconds"] = connection.get("uptime_seconds")

        if self._publisher:
            if not self._discovery_published:
                self._publisher.publish_discovery(self._device_info)
                self._publisher.publish_channel_discovery(downstream, upstream, self._device_info)
                self._discovery_published = True
            self._publisher.publish_data(summary, downstream, upstream)

        log.info(
            "Cycle OK: DS=%d US=%d uptime=%ss",
            len(downstream), len(upstream), summary["uptime_seconds"],
        )
        return CollectorResult.ok(self.name, {
            "summary": summary,
            "downstream": downstream,
            "upstream": upstream,
            "device_info": self._device_info,
            "connection_info": connection,
        })


class EventLogCollector(Collector):
    """Fetches the modem event log and ships entries not sent before."""

    name = "eventlog"

    def __init__(self, driver, shipper, poll_interval, cycle_timeout=60,
                 monotonic=time.monotonic):
        super().__init__(poll_interval)
        self._driver = driver
        self._shipper = shipper
        self._cycle_timeout = cycle_timeout
        self._monotonic = monotonic

    def collect(self) -> CollectorResult:
        deadline = self._monotonic() + self._cycle_timeout
        try:
            entries = self._driver.get_event_log(deadline)
            shipped = self._shipper.ship(entries)
        except ScraperError as e:
            log.warning("Event log cycle failed: %s", e)
            return CollectorResult.failure(self.name, str(e))
        if shipped:
            log.info("Shipped %d new event log entries", shipped)
        return CollectorResult.ok(self.name, {"entries": len(entries), "shipped": shipped})
