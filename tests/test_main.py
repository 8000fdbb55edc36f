"""Tests for entrypoint wiring."""

from unittest.mock import patch

from modem_scraper import main as entry
from modem_scraper.config import ConfigManager
from tests.conftest import write_config


def test_build_driver_from_config(tmp_path):
    config = ConfigManager(str(tmp_path)).get_all()
    config["modem_password"] = "secret"
    config["session_ttl"] = 0
    driver = entry.build_driver(config)
    assert driver._url == "https://192.168.100.1"
    assert driver.client._http.verify is False
    assert driver.client._session_ttl is None


def test_unconfigured_exits(tmp_path, monkeypatch):
    monkeypatch.setenv("DATA_DIR", str(tmp_path))
    monkeypatch.delenv("MODEM_PASSWORD", raising=False)
    with patch.object(entry, "setup_logging"):
        assert entry.main() == 2


def test_mqtt_skipped_when_unconfigured(tmp_path):
    mgr = ConfigManager(str(tmp_path))
    assert entry.connect_mqtt(mgr, mgr.get_all()) is None


def test_mqtt_connection_failure_is_not_fatal(tmp_path):
    mgr = write_config(str(tmp_path), {"mqtt_host": "broker.local"})
    with patch.object(entry, "MQTTPublisher") as pub_cls:
        pub_cls.return_value.connect.side_effect = ConnectionError("refused")
        assert entry.connect_mqtt(mgr, mgr.get_all()) is None
