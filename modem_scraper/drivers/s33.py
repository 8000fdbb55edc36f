"""Arris S33 driver.

The S33 exposes its status pages through HNAP: JSON RPCs POSTed to
/HNAP1/, each signed with an HMAC-MD5 of the timestamp and SOAP action
under a key derived at login. Channel tables, device info and the event
log are fetched with batched GetMultipleHNAPs calls.
"""

import logging

from ..errors import ProtocolError
from ..hnap import Credential, HNAPClient
from ..hnap import payloads
from .base import ModemDriver

log = logging.getLogger("modem_scraper.driver.s33")

DS_INFO = "GetCustomerStatusDownstreamChannelInfo"
US_INFO = "GetCustomerStatusUpstreamChannelInfo"
DEVICE_STATUS = "GetArrisDeviceStatus"
REGISTER_INFO = "GetArrisRegisterInfo"
CONNECTION_INFO = "GetCustomerStatusConnectionInfo"
STARTUP_SEQUENCE = "GetCustomerStatusStartupSequence"
EVENT_LOG = "GetCustomerStatusLog"


def _sub_response(resp: dict, action: str) -> dict:
    """Pick one sub-action out of a GetMultipleHNAPs reply and check its result."""
    sub = resp.get(f"{action}Response")
    if not isinstance(sub, dict):
        raise ProtocolError(f"{action}Response missing from GetMultipleHNAPs reply")
    result = sub.get(f"{action}Result")
    if result != "OK":
        raise ProtocolError(f"{action} returned {result!r}")
    return sub


class S33Driver(ModemDriver):
    """Driver for the Arris SURFboard S33 (DOCSIS 3.1).

    Sessions are created lazily and renewed by the HNAP client when the
    device rejects a signature, so ``login()`` is cheap to call every cycle.
    """

    def __init__(self, url: str, user: str, password: str, *, client=None,
                 verify: bool = True, timeout: float = 10, max_retries: int = 3,
                 session_ttl: float | None = None):
        super().__init__(url, user, password)
        self._client = client or HNAPClient(
            url,
            Credential(password=password, username=user or "admin"),
            timeout=timeout,
            max_retries=max_retries,
            verify=verify,
            session_ttl=session_ttl,
        )

    @property
    def client(self) -> HNAPClient:
        return self._client

    def login(self, deadline=None) -> None:
        self._client.login(deadline)

    def get_docsis_data(self, deadline=None) -> dict:
        """Fetch and decode both channel tables in one batched call."""
        resp = self._client.call_multiple([DS_INFO, US_INFO], deadline)
        ds = _sub_response(resp, DS_INFO).get("CustomerConnDownstreamChannel")
        us = _sub_response(resp, US_INFO).get("CustomerConnUpstreamChannel")
        if ds is None or us is None:
            raise ProtocolError("Channel table missing from channel info reply")

        downstream = payloads.parse_channels(ds, payloads.DOWNSTREAM)
        upstream = payloads.parse_channels(us, payloads.UPSTREAM)
        log.debug("Parsed %d downstream / %d upstream channels", len(downstream), len(upstream))
        return {
            "docsis": "3.1",
            "downstream": downstream,
            "upstream": upstream,
        }

    def get_device_info(self, deadline=None) -> dict:
        resp = self._client.call_multiple([DEVICE_STATUS, REGISTER_INFO], deadline)
        info = payloads.parse_register_info(_sub_response(resp, REGISTER_INFO))
        info.update(payloads.parse_device_status(_sub_response(resp, DEVICE_STATUS)))
        return info

    def get_connection_info(self, deadline=None) -> dict:
        resp = self._client.call_multiple([CONNECTION_INFO, STARTUP_SEQUENCE], deadline)
        info = payloads.parse_connection_info(_sub_response(resp, CONNECTION_INFO))
        info["startup"] = payloads.parse_startup_sequence(
            _sub_response(resp, STARTUP_SEQUENCE)
        )
        return info

    def get_event_log(self, deadline=None) -> list:
        resp = self._client.call_multiple([EVENT_LOG], deadline)
        raw = _sub_response(resp, EVENT_LOG).get("CustomerStatusLogList")
        if raw is None:
            raise ProtocolError("CustomerStatusLogList missing from event log reply")
        return payloads.parse_event_log(raw)

    def close(self):
        self._client.close()
