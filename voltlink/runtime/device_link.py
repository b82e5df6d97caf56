# voltlink/runtime/device_link.py
from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from typing import Optional

from voltlink.model.target import ConverterTarget
from voltlink.transport.errors import TransportError
from voltlink.transport.http import HttpReply, HttpTransport

STATUS_PATH = "/status"
SET_VOLTAGE_PATH = "/setVoltage"
SET_OUTPUT_PATH = "/setOutput"
MEASUREMENT_PATH = "/getMeasurement"


@dataclass
class DeviceLink:
    """
    Host/converter link issuing the four control and telemetry requests.

    Contract:
      - every operation is blocking with a bounded timeout
      - no exception escapes: failures become False / None
      - "device rejected" and "device unreachable" are indistinguishable
      - only state held is the current target address
    """

    target: Optional[ConverterTarget] = None
    command_timeout_s: float = 5.0
    measurement_timeout_s: float = 3.0
    transport: HttpTransport = field(default_factory=HttpTransport)
    logger: Optional[logging.Logger] = None

    def __post_init__(self) -> None:
        self._log = self.logger or logging.getLogger(__name__)
        if self.target is not None:
            self.transport.set_base_url(self.target.base_url)

    def retarget(self, target: ConverterTarget) -> None:
        """Point the link at a new converter. Caller guarantees no attempt is outstanding."""
        self.target = target
        self.transport.set_base_url(target.base_url)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------
    def probe(self) -> bool:
        reply = self._send("GET", STATUS_PATH, timeout_s=self.command_timeout_s)
        return reply is not None and reply.ok

    def set_voltage(self, volts: float) -> bool:
        reply = self._send(
            "POST",
            SET_VOLTAGE_PATH,
            timeout_s=self.command_timeout_s,
            payload={"voltage": float(volts)},
        )
        return reply is not None and reply.ok

    def set_output(self, on: bool) -> bool:
        reply = self._send(
            "POST",
            SET_OUTPUT_PATH,
            timeout_s=self.command_timeout_s,
            payload={"state": bool(on)},
        )
        return reply is not None and reply.ok

    def get_measurement(self) -> Optional[float]:
        reply = self._send("GET", MEASUREMENT_PATH, timeout_s=self.measurement_timeout_s)
        if reply is None or not reply.ok:
            return None
        return parse_measurement(reply.body, log=self._log)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------
    def _send(
        self,
        method: str,
        path: str,
        *,
        timeout_s: float,
        payload: Optional[dict] = None,
    ) -> Optional[HttpReply]:
        if self.target is None:
            self._log.warning("LINK_NO_TARGET path=%s", path)
            return None

        try:
            if method == "GET":
                reply = self.transport.get(path, timeout_s=timeout_s)
            else:
                reply = self.transport.post_json(path, payload or {}, timeout_s=timeout_s)
        except TransportError as e:
            self._log.debug("LINK_TRANSPORT_FAILED path=%s err=%s", path, e)
            return None
        except Exception:
            # anything else from the HTTP stack is still a failed request
            self._log.exception("LINK_UNEXPECTED_ERROR path=%s", path)
            return None

        if not reply.ok:
            self._log.debug("LINK_HTTP_STATUS path=%s status=%d", path, reply.status)
        return reply


def parse_measurement(body: bytes, *, log: Optional[logging.Logger] = None) -> Optional[float]:
    """
    Extract the `voltage` field of a measurement reply.

    Returns None for anything that is not a JSON object carrying a finite
    number (numeric strings are accepted). Never defaults to 0.
    """
    log = log or logging.getLogger(__name__)
    try:
        data = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        log.debug("MEASUREMENT_MALFORMED err=%s", e)
        return None

    if not isinstance(data, dict) or "voltage" not in data:
        log.debug("MEASUREMENT_MISSING_FIELD body=%r", data)
        return None

    raw = data["voltage"]
    if isinstance(raw, bool) or not isinstance(raw, (int, float, str)):
        log.debug("MEASUREMENT_BAD_TYPE type=%s", type(raw).__name__)
        return None

    try:
        value = float(raw)
    except ValueError:
        log.debug("MEASUREMENT_NOT_NUMERIC value=%r", raw)
        return None

    if not math.isfinite(value):
        log.debug("MEASUREMENT_NOT_FINITE value=%r", raw)
        return None
    return value
