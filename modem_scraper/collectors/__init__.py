"""Collector discovery based on runtime configuration."""

import logging

from .base import Collector, CollectorResult
from .modem import EventLogCollector, ModemCollector, summarize

log = logging.getLogger("modem_scraper.collectors")


def discover_collectors(config_mgr, driver, mqtt_pub=None, log_shipper=None):
    """Instantiate the collectors the configuration enables.

    The modem collector always runs (metrics go nowhere without MQTT but
    the cycle is still logged); the event log collector needs a Loki URL.
    """
    config = config_mgr.get_all()
    collectors = [
        ModemCollector(
            driver=driver,
            publisher=mqtt_pub,
            poll_interval=config["poll_interval"],
            cycle_timeout=config["cycle_timeout"],
        )
    ]

    if log_shipper is not None:
        collectors.append(EventLogCollector(
            driver=driver,
            shipper=log_shipper,
            poll_interval=config["log_poll_interval"],
            cycle_timeout=config["cycle_timeout"],
        ))
    else:
        log.info("Loki not configured, event log collection disabled")

    return collectors


__all__ = [
    "Collector",
    "CollectorResult",
    "EventLogCollector",
    "ModemCollector",
    "discover_collectors",
    "summarize",
]
