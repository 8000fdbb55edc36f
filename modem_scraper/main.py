"""Main entrypoint: wire up the S33 driver, sinks and collectors, then poll."""

import logging
import os
import signal
import threading

from .collectors import discover_collectors
from .config import ConfigManager
from .drivers import S33Driver
from .loki import LokiShipper
from .mqtt_publisher import MQTTPublisher

log = logging.getLogger("modem_scraper.main")


def setup_logging(trace=False):
    logging.basicConfig(
        level=logging.DEBUG if trace else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    # urllib3 debug output would echo cookies, which carry the private key.
    logging.getLogger("urllib3").setLevel(logging.INFO)


def build_driver(config):
    return S33Driver(
        config["modem_url"],
        config["modem_user"],
        config["modem_password"],
        verify=not config["accept_invalid_certs"],
        timeout=config["request_timeout"],
        max_retries=config["max_retries"],
        session_ttl=config["session_ttl"] or None,
    )


def connect_mqtt(config_mgr, config):
    """Return a connected MQTTPublisher, or None when MQTT is off or down."""
    if not config_mgr.is_mqtt_configured():
        log.info("MQTT not configured, channel statistics are only logged")
        return None
    mqtt_pub = MQTTPublisher(
        host=config["mqtt_host"],
        port=config["mqtt_port"],
        user=config["mqtt_user"] or None,
        password=config["mqtt_password"] or None,
        topic_prefix=config["mqtt_topic_prefix"],
        ha_prefix=config["mqtt_discovery_prefix"],
        tls_insecure=config["mqtt_tls_insecure"],
    )
    try:
        mqtt_pub.connect()
        log.info("MQTT: %s:%s (prefix: %s)",
                 config["mqtt_host"], config["mqtt_port"], config["mqtt_topic_prefix"])
    except (OSError, ConnectionError) as e:
        log.warning("MQTT connection failed: %s (continuing without MQTT)", e)
        return None
    return mqtt_pub


def run_collectors(collectors, stop_event, tick=1.0):
    """Flat orchestrator: tick, let each collector decide when to poll."""
    while not stop_event.is_set():
        for collector in collectors:
            if stop_event.is_set():
                break
            if not collector.is_enabled() or not collector.should_poll():
                continue
            try:
                result = collector.collect()
            except Exception as e:
                collector.record_failure()
                log.exception("%s error: %s", collector.name, e)
                continue
            if result.success:
                collector.record_success()
            else:
                collector.record_failure()
                log.warning("%s: %s", collector.name, result.error)
        stop_event.wait(tick)


def main():
    data_dir = os.environ.get("DATA_DIR", "/data")
    config_mgr = ConfigManager(data_dir)
    config = config_mgr.get_all()
    setup_logging(config["trace"])

    log.info("modem-scraper starting")
    if not config_mgr.is_configured():
        log.error("MODEM_PASSWORD is not set, nothing to do")
        return 2
    log.info("Config: %s", config_mgr.describe())

    driver = build_driver(config)
    mqtt_pub = connect_mqtt(config_mgr, config)
    shipper = LokiShipper(config["loki_url"]) if config_mgr.is_loki_configured() else None
    collectors = discover_collectors(config_mgr, driver, mqtt_pub, shipper)
    log.info(
        "Collectors: %s",
        ", ".join(f"{c.name} ({c.poll_interval_seconds}s)" for c in collectors),
    )

    stop_event = threading.Event()
    signal.signal(signal.SIGTERM, lambda *_: stop_event.set())
    try:
        run_collectors(collectors, stop_event)
    except KeyboardInterrupt:
        log.info("Shutting down")
    finally:
        if mqtt_pub:
            mqtt_pub.disconnect()
        if shipper:
            shipper.close()
        driver.close()
    log.info("Polling loop stopped")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
