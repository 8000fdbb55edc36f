"""Publish channel statistics over MQTT with Home Assistant auto-discovery."""

import json
import logging
import re
import time

import paho.mqtt.client as mqtt

log = logging.getLogger("modem_scraper.mqtt")

_MQTT_UNSAFE_RE = re.compile(r"[#+\x00]")

DEVICE_ID = "modem_scraper"

# (key, name, unit, icon, enabled_by_default)
SUMMARY_SENSORS = [
    ("ds_total", "Downstream Channels", None, "mdi:arrow-down-bold", False),
    ("ds_locked", "Downstream Channels Locked", None, "mdi:lock", True),
    ("ds_power_min", "DS Power Min", "dBmV", "mdi:signal", False),
    ("ds_power_max", "DS Power Max", "dBmV", "mdi:signal", False),
    ("ds_power_avg", "DS Power Avg", "dBmV", "mdi:signal", True),
    ("ds_snr_min", "DS SNR Min", "dB", "mdi:ear-hearing", True),
    ("ds_snr_avg", "DS SNR Avg", "dB", "mdi:ear-hearing", True),
    ("ds_correctable_errors", "DS Correctable Errors", None, "mdi:alert-circle-check", True),
    ("ds_uncorrectable_errors", "DS Uncorrectable Errors", None, "mdi:alert-circle", True),
    ("us_total", "Upstream Channels", None, "mdi:arrow-up-bold", False),
    ("us_locked", "Upstream Channels Locked", None, "mdi:lock", True),
    ("us_power_min", "US Power Min", "dBmV", "mdi:signal", False),
    ("us_power_max", "US Power Max", "dBmV", "mdi:signal", False),
    ("us_power_avg", "US Power Avg", "dBmV", "mdi:signal", True),
    ("uptime_seconds", "Modem Uptime", "s", "mdi:timer-outline", True),
]


def _sanitize_topic(topic):
    """Remove MQTT wildcard characters and normalize slashes."""
    topic = _MQTT_UNSAFE_RE.sub("", topic)
    topic = re.sub(r"/+", "/", topic).strip("/")
    return topic[:200]


def channel_object_id(record) -> str:
    prefix = "ds" if record.direction == "downstream" else "us"
    return f"{prefix}_ch{record.channel_id}"


def channel_payload(record) -> dict:
    """Per-channel state published as JSON."""
    payload = {
        "power": record.power_dbmv,
        "frequency": record.frequency_hz,
        "modulation": record.modulation,
        "lock_status": record.lock_status,
    }
    if record.direction == "downstream":
        payload["snr"] = record.snr_db
        payload["correctable_errors"] = record.corrected
        payload["uncorrectable_errors"] = record.uncorrectables
    else:
        payload["width"] = record.width_hz
    return payload


class MQTTPublisher:
    def __init__(self, host, port=1883, user=None, password=None,
                 topic_prefix="modem/s33", ha_prefix="homeassistant",
                 tls_insecure=False):
        self.host = host
        self.port = port
        self.topic_prefix = _sanitize_topic(topic_prefix)
        self.ha_prefix = _sanitize_topic(ha_prefix)

        self.client = mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=DEVICE_ID,
        )
        if port == 8883:
            self.client.tls_set()
            if tls_insecure:
                self.client.tls_insecure_set(True)
                log.warning("MQTT TLS certificate verification disabled (insecure mode)")

        if user:
            self.client.username_pw_set(user, password)

        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect
        self._connected = False

    def _on_connect(self, client, userdata, flags, rc, properties=None):
        if rc == 0:
            log.info("MQTT connected to %s:%d", self.host, self.port)
            self._connected = True
        else:
            log.error("MQTT connect failed: rc=%s", rc)

    def _on_disconnect(self, client, userdata, flags, rc, properties=None):
        log.warning("MQTT disconnected (rc=%s)", rc)
        self._connected = False

    @property
    def _status_topic(self):
        return f"{self.topic_prefix}/status"

    def connect(self, wait_seconds=5.0):
        # LWT: broker marks us offline if the connection drops
        self.client.will_set(self._status_topic, "offline", retain=True)
        self.client.connect(self.host, self.port, 60)
        self.client.loop_start()
        waited = 0.0
        while not self._connected and waited < wait_seconds:
            time.sleep(0.25)
            waited += 0.25
        if not self._connected:
            raise ConnectionError(f"Could not connect to MQTT broker {self.host}:{self.port}")
        self.client.publish(self._status_topic, "online", retain=True)

    def disconnect(self):
        self.client.publish(self._status_topic, "offline", retain=True)
        self.client.loop_stop()
        self.client.disconnect()

    def _build_device(self, device_info=None):
        info = device_info or {}
        device = {
            "identifiers": [info.get("serial_number") or DEVICE_ID],
            "name": info.get("model") or "Cable Modem",
            "manufacturer": info.get("manufacturer", "Arris"),
            "model": info.get("model", "S33"),
        }
        if info.get("sw_version"):
            device["sw_version"] = info["sw_version"]
        if info.get("mac_address"):
            device["connections"] = [["mac", info["mac_address"]]]
        return device

    def _availability(self):
        return {
            "availability_topic": self._status_topic,
            "payload_available": "online",
            "payload_not_available": "offline",
        }

    def publish_discovery(self, device_info=None):
        """Publish HA discovery configs for the summary sensors."""
        device = self._build_device(device_info)
        avail = self._availability()

        for key, name, unit, icon, enabled in SUMMARY_SENSORS:
            topic = f"{self.ha_prefix}/sensor/{DEVICE_ID}/{key}/config"
            config = {
                "name": name,
                "unique_id": f"{DEVICE_ID}_{key}",
                "state_topic": f"{self.topic_prefix}/{key}",
                "icon": icon,
                "device": device,
                "entity_category": "diagnostic",
                "enabled_by_default": enabled,
                **avail,
            }
            if unit:
                config["unit_of_measurement"] = unit
                config["state_class"] = "measurement"
            self.client.publish(topic, json.dumps(config), retain=True)

        log.info("Published HA discovery for %d sensors", len(SUMMARY_SENSORS))

    def publish_channel_discovery(self, downstream, upstream, device_info=None):
        """Publish HA discovery configs for one sensor per channel."""
        device = self._build_device(device_info)
        avail = self._availability()

        count = 0
        for record in list(downstream) + list(upstream):
            obj_id = channel_object_id(record)
            label = "DS" if record.direction == "downstream" else "US"
            icon = "mdi:arrow-down-bold" if label == "DS" else "mdi:arrow-up-bold"
            topic = f"{self.ha_prefix}/sensor/{DEVICE_ID}/{obj_id}/config"
            config = {
                "name": f"{label} Channel {record.channel_id}",
                "unique_id": f"{DEVICE_ID}_{obj_id}",
                "state_topic": f"{self.topic_prefix}/channel/{obj_id}",
                "value_template": "{{ value_json.power }}",
                "json_attributes_topic": f"{self.topic_prefix}/channel/{obj_id}",
                "unit_of_measurement": "dBmV",
                "state_class": "measurement",
                "icon": icon,
                "device": device,
                "entity_category": "diagnostic",
                "enabled_by_default": False,
                **avail,
            }
            self.client.publish(topic, json.dumps(config), retain=True)
            count += 1

        log.info("Published HA discovery for %d per-channel sensors", count)

    def publish_data(self, summary, downstream, upstream):
        """Publish summary values and per-channel state for one cycle."""
        for key, value in summary.items():
            if value is None:
                continue
            self.client.publish(f"{self.topic_prefix}/{key}", str(value), retain=True)

        for record in list(downstream) + list(upstream):
            self.client.publish(
                f"{self.topic_prefix}/channel/{channel_object_id(record)}",
                json.dumps(channel_payload(record)),
                retain=True,
            )

        log.info("Published data: DS=%d US=%d", len(downstream), len(upstream))
