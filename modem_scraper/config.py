"""Configuration: config.json in the data directory, env vars override file values."""

import json
import logging
import os

log = logging.getLogger("modem_scraper.config")

POLL_MIN = 10
POLL_MAX = 3600

DEFAULTS = {
    "modem_url": "https://192.168.100.1",
    "modem_user": "admin",
    "modem_password": "",
    "accept_invalid_certs": True,
    "request_timeout": 10,
    "max_retries": 3,
    "session_ttl": 0,
    "cycle_timeout": 60,
    "poll_interval": 60,
    "log_poll_interval": 300,
    "mqtt_host": "",
    "mqtt_port": 1883,
    "mqtt_user": "",
    "mqtt_password": "",
    "mqtt_topic_prefix": "modem/s33",
    "mqtt_discovery_prefix": "homeassistant",
    "mqtt_tls_insecure": False,
    "loki_url": "",
    "trace": False,
}

ENV_MAP = {
    "modem_url": "MODEM_URL",
    "modem_user": "MODEM_USER",
    "modem_password": "MODEM_PASSWORD",
    "accept_invalid_certs": "MODEM_ACCEPT_INVALID_CERTS",
    "request_timeout": "MODEM_REQUEST_TIMEOUT",
    "max_retries": "MODEM_MAX_RETRIES",
    "session_ttl": "MODEM_SESSION_TTL",
    "cycle_timeout": "CYCLE_TIMEOUT",
    "poll_interval": "POLL_INTERVAL",
    "log_poll_interval": "LOG_POLL_INTERVAL",
    "mqtt_host": "MQTT_HOST",
    "mqtt_port": "MQTT_PORT",
    "mqtt_user": "MQTT_USER",
    "mqtt_password": "MQTT_PASSWORD",
    "mqtt_topic_prefix": "MQTT_TOPIC_PREFIX",
    "mqtt_discovery_prefix": "MQTT_DISCOVERY_PREFIX",
    "mqtt_tls_insecure": "MQTT_TLS_INSECURE",
    "loki_url": "LOKI_URL",
    "trace": "TRACE",
}

INT_KEYS = {
    "request_timeout", "max_retries", "session_ttl", "cycle_timeout",
    "poll_interval", "log_poll_interval", "mqtt_port",
}
BOOL_KEYS = {"accept_invalid_certs", "mqtt_tls_insecure", "trace"}

# Never written to the log, not even masked.
SECRET_KEYS = {"modem_password", "mqtt_password"}


def _to_bool(value):
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def _cast(key, value):
    if key in INT_KEYS:
        return int(value)
    if key in BOOL_KEYS:
        return _to_bool(value)
    return value


class ConfigManager:
    """Loads config from config.json, env vars override file values."""

    def __init__(self, data_dir="/data"):
        self.data_dir = data_dir
        self.config_path = os.path.join(data_dir, "config.json")
        self._file_config = {}
        self._load()

    def _load(self):
        """Load config.json if it exists."""
        if not os.path.exists(self.config_path):
            log.info("No config.json found, using defaults/env")
            return
        try:
            with open(self.config_path, "r") as f:
                self._file_config = json.load(f)
            log.info("Loaded config from %s", self.config_path)
        except (OSError, ValueError) as e:
            log.warning("Failed to load config.json: %s", e)
            self._file_config = {}

    def get(self, key, default=None):
        """Get config value: env var > config.json > default."""
        env_name = ENV_MAP.get(key)
        if env_name:
            env_val = os.environ.get(env_name)
            if env_val is not None and env_val != "":
                return self._cast_or_default(key, env_val, env_name, default)

        if key in self._file_config:
            return self._cast_or_default(key, self._file_config[key], "config.json", default)

        if default is not None:
            return default
        return DEFAULTS.get(key)

    def _cast_or_default(self, key, value, source, default):
        try:
            return _cast(key, value)
        except (ValueError, TypeError):
            log.warning("Ignoring invalid value for %s from %s", key, source)
            return default if default is not None else DEFAULTS.get(key)

    def is_configured(self):
        """True if modem_password is set (from env or config.json)."""
        return bool(self.get("modem_password"))

    def is_mqtt_configured(self):
        return bool(self.get("mqtt_host"))

    def is_loki_configured(self):
        return bool(self.get("loki_url"))

    def get_all(self):
        """Return all config values as dict, poll interval clamped."""
        result = {key: self.get(key) for key in DEFAULTS}
        result["poll_interval"] = max(POLL_MIN, min(POLL_MAX, result["poll_interval"]))
        return result

    def describe(self):
        """Config for logging, secrets left out."""
        return {k: v for k, v in self.get_all().items() if k not in SECRET_KEYS}
