from __future__ import annotations

import json

import pytest

from voltlink.model.target import ConverterTarget
from voltlink.runtime.device_link import DeviceLink, parse_measurement
from voltlink.transport.errors import TransportIOError
from voltlink.transport.http import HttpReply


class FakeTransport:
    """HttpTransport stub: staged replies per path, records calls."""
    def __init__(self):
        self.base_url = ""
        self.replies: dict[str, HttpReply] = {}
        self.raise_exc: Exception | None = None
        self.calls: list[tuple] = []

    def set_base_url(self, base_url: str) -> None:
        self.base_url = base_url

    def get(self, path, *, timeout_s):
        self.calls.append(("GET", path, None, timeout_s))
        return self._reply(path)

    def post_json(self, path, payload, *, timeout_s):
        self.calls.append(("POST", path, dict(payload), timeout_s))
        return self._reply(path)

    def _reply(self, path):
        if self.raise_exc is not None:
            raise self.raise_exc
        return self.replies.get(path, HttpReply(status=404))


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def link(transport):
    return DeviceLink(target=ConverterTarget("192.168.4.1", 80), transport=transport)


def test_target_sets_base_url(link, transport):
    assert transport.base_url == "http://192.168.4.1:80"
    link.retarget(ConverterTarget("10.1.1.1", 8080))
    assert transport.base_url == "http://10.1.1.1:8080"
    assert link.target == ConverterTarget("10.1.1.1", 8080)


def test_probe_true_on_200(link, transport):
    transport.replies["/status"] = HttpReply(200)
    assert link.probe() is True
    assert transport.calls == [("GET", "/status", None, 5.0)]


@pytest.mark.parametrize("status", [201, 204, 404, 500])
def test_probe_false_on_non_200(link, transport, status):
    transport.replies["/status"] = HttpReply(status)
    assert link.probe() is False


def test_probe_false_on_transport_error(link, transport):
    transport.raise_exc = TransportIOError("refused")
    assert link.probe() is False


def test_probe_false_on_unexpected_error(link, transport):
    transport.raise_exc = RuntimeError("boom")
    assert link.probe() is False


def test_probe_without_target_is_false(transport):
    link = DeviceLink(transport=transport)
    assert link.probe() is False
    assert transport.calls == []


def test_set_voltage_sends_json_body(link, transport):
    transport.replies["/setVoltage"] = HttpReply(200)
    assert link.set_voltage(48.5) is True
    assert transport.calls == [("POST", "/setVoltage", {"voltage": 48.5}, 5.0)]


def test_set_voltage_failure_is_false(link, transport):
    transport.replies["/setVoltage"] = HttpReply(400)
    assert link.set_voltage(48.5) is False
    transport.raise_exc = TransportIOError("timeout")
    assert link.set_voltage(48.5) is False


def test_set_output_sends_state(link, transport):
    transport.replies["/setOutput"] = HttpReply(200)
    assert link.set_output(True) is True
    assert link.set_output(False) is True
    assert [c[2] for c in transport.calls] == [{"state": True}, {"state": False}]


def test_get_measurement_parses_voltage_with_short_timeout(link, transport):
    transport.replies["/getMeasurement"] = HttpReply(200, json.dumps({"voltage": 47.9}).encode())
    assert link.get_measurement() == pytest.approx(47.9)
    assert transport.calls[0][3] == 3.0


def test_get_measurement_non_200_is_none(link, transport):
    transport.replies["/getMeasurement"] = HttpReply(500, b'{"voltage": 12.0}')
    assert link.get_measurement() is None


def test_get_measurement_transport_error_is_none(link, transport):
    transport.raise_exc = TransportIOError("timeout")
    assert link.get_measurement() is None


def test_get_measurement_zero_is_a_real_reading(link, transport):
    transport.replies["/getMeasurement"] = HttpReply(200, b'{"voltage": 0}')
    assert link.get_measurement() == 0.0


@pytest.mark.parametrize(
    "body",
    [
        b"",
        b"not json",
        b"[1, 2]",
        b'{"v": 12.0}',
        b'{"voltage": null}',
        b'{"voltage": true}',
        b'{"voltage": "abc"}',
        b'{"voltage": NaN}',
        b"\xff\xfe",
    ],
)
def test_parse_measurement_malformed_is_none(body):
    assert parse_measurement(body) is None


def test_parse_measurement_accepts_numeric_string():
    assert parse_measurement(b'{"voltage": "24.5"}') == 24.5
