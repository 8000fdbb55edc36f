"""Shared fixtures: a synthetic HNAP modem that checks every signature it gets."""

import hashlib
import hmac
import json
import os
from unittest.mock import MagicMock, patch

import pytest

from modem_scraper.config import ConfigManager
from modem_scraper.hnap import Credential, HNAPClient

NS = "http://purenetworks.com/HNAP1/"

DS_PAYLOAD = (
    "1^Locked^QAM256^1^579000000^3.0^41^12^0^|+|"
    "2^Locked^QAM256^2^585000000^2.8^40^0^0^|+|"
    "3^Locked^QAM256^3^591000000^-0.5^40^7^1^|+|"
    "4^Locked^OFDM PLC^4^690000000^1.9^39^1024^3^"
)
US_PAYLOAD = (
    "1^Locked^SC-QAM^1^6400000^36100000^44.0^|+|"
    "2^Locked^SC-QAM^2^6400000^29700000^43.5^"
)
EVENT_LOG = (
    "0^13:14:15^17/10/2026^3^Started Unicast Maintenance Ranging - No Response received"
    "}-{0^13:15:00^17/10/2026^6^SW Download INIT - Via Config file"
)


def reference_hmac(key: str, message: str) -> str:
    """Independent HMAC-MD5 used to verify what the client sends."""
    return hmac.new(key.encode(), message.encode(), hashlib.md5).hexdigest().upper()


def write_config(data_dir, data):
    """Write config.json into ``data_dir`` and load it."""
    os.makedirs(data_dir, exist_ok=True)
    with open(os.path.join(data_dir, "config.json"), "w") as f:
        json.dump(data, f)
    return ConfigManager(data_dir)


def default_sub_responses():
    return {
        "GetCustomerStatusDownstreamChannelInfo": {
            "CustomerConnDownstreamChannel": DS_PAYLOAD,
            "GetCustomerStatusDownstreamChannelInfoResult": "OK",
        },
        "GetCustomerStatusUpstreamChannelInfo": {
            "CustomerConnUpstreamChannel": US_PAYLOAD,
            "GetCustomerStatusUpstreamChannelInfoResult": "OK",
        },
        "GetArrisDeviceStatus": {
            "FirmwareVersion": "AB01.02.053.05_051921_193.0A.NSH",
            "InternetConnection": "Connected",
            "DownstreamFrequency": "579000000 Hz",
            "DownstreamSignalPower": "3.0 dBmV",
            "DownstreamSignalSnr": "41 dB",
            "GetArrisDeviceStatusResult": "OK",
        },
        "GetArrisRegisterInfo": {
            "MacAddress": "A4:15:88:00:11:22",
            "SerialNumber": "ABCD12345678",
            "ModelName": "S33",
            "GetArrisRegisterInfoResult": "OK",
        },
        "GetCustomerStatusConnectionInfo": {
            "CustomerConnSystemUpTime": "0 days 13h:14m:15s",
            "CustomerCurSystemTime": "Sat Oct 17 19:15:00 2026",
            "CustomerConnNetworkAccess": "Allowed",
            "GetCustomerStatusConnectionInfoResult": "OK",
        },
        "GetCustomerStatusStartupSequence": {
            "CustomerConnDSFreq": "579000000 Hz",
            "CustomerConnDSComment": "Locked",
            "CustomerConnConnectivityStatus": "OK",
            "CustomerConnConnectivityComment": "Operational",
            "CustomerConnBootStatus": "OK",
            "CustomerConnBootComment": "Operational",
            "CustomerConnConfigurationFileStatus": "OK",
            "CustomerConnConfigurationFileComment": "",
            "CustomerConnSecurityStatus": "Enabled",
            "CustomerConnSecurityComment": "BPI+",
            "GetCustomerStatusStartupSequenceResult": "OK",
        },
        "GetCustomerStatusLog": {
            "CustomerStatusLogList": EVENT_LOG,
            "GetCustomerStatusLogResult": "OK",
        },
    }


class FakeModem:
    """In-memory HNAP device.

    Issues challenges from ``challenges`` (one per login request, the last
    one repeating), accepts ``password``, and answers 404 to any request
    whose HNAP_AUTH does not verify against the current private key.
    ``reject_next`` forces that many post-login calls to be rejected.
    """

    def __init__(self, password="password", challenges=(("abc", "def", "sid1"),)):
        self.password = password
        self.challenges = list(challenges)
        self.sub_responses = default_sub_responses()
        self.calls = []
        self.requests = []
        self.reject_next = 0
        self.login_result = None
        self.issued = None
        self.private_key = None

    @staticmethod
    def _response(status, body=None):
        r = MagicMock()
        r.status_code = status
        r.json.return_value = body
        return r

    def _signature_ok(self, key, headers):
        digest, ts = headers["HNAP_AUTH"].split(" ")
        return digest == reference_hmac(key, ts + headers["SOAPAction"])

    def post(self, url, json=None, headers=None, cookies=None, timeout=None):
        assert url.endswith("/HNAP1/")
        (action, params), = json.items()
        assert headers["SOAPAction"] == f'"{NS}{action}"'
        self.calls.append(action)
        self.requests.append({"action": action, "params": params,
                              "headers": headers, "cookies": cookies})

        if action == "Login":
            return self._login(params, headers, cookies or {})

        if self.reject_next:
            self.reject_next -= 1
            return self._response(404)
        if (self.private_key is None
                or (cookies or {}).get("uid") != self.issued[2]
                or not self._signature_ok(self.private_key, headers)):
            return self._response(404)

        if action == "GetMultipleHNAPs":
            body = {f"{name}Response": self.sub_responses[name] for name in params}
            body["GetMultipleHNAPsResult"] = "OK"
        else:
            body = {f"{action}Result": "OK"}
        return self._response(200, {f"{action}Response": body})

    def _login(self, params, headers, cookies):
        if params["Action"] == "request":
            assert self._signature_ok("withoutloginkey", headers)
            self.issued = self.challenges.pop(0) if len(self.challenges) > 1 else self.challenges[0]
            self.private_key = None
            challenge, public_key, cookie = self.issued
            return self._response(200, {"LoginResponse": {
                "Challenge": challenge,
                "PublicKey": public_key,
                "Cookie": cookie,
                "LoginResult": "OK",
            }})

        challenge, public_key, cookie = self.issued
        expected_key = reference_hmac(public_key + self.password, challenge)
        assert cookies.get("uid") == cookie
        if self.login_result:
            return self._response(200, {"LoginResponse": {"LoginResult": self.login_result}})
        if (params["LoginPassword"] != reference_hmac(expected_key, challenge)
                or not self._signature_ok(expected_key, headers)):
            return self._response(200, {"LoginResponse": {"LoginResult": "FAILED"}})
        self.private_key = expected_key
        return self._response(200, {"LoginResponse": {"LoginResult": "OK"}})


@pytest.fixture
def modem():
    return FakeModem()


@pytest.fixture
def client(modem):
    c = HNAPClient(
        "https://192.168.100.1",
        Credential(password="password"),
        sleep=lambda s: None,
    )
    with patch.object(c._http, "post", side_effect=modem.post):
        yield c
