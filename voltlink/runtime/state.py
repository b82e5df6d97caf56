# voltlink/runtime/state.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from voltlink.model.target import ConverterTarget


class ConnectionPhase(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FAILED = "failed"


_PHASE_LABELS = {
    ConnectionPhase.DISCONNECTED: "Disconnected",
    ConnectionPhase.CONNECTING: "Connecting...",
    ConnectionPhase.CONNECTED: "Connected",
    ConnectionPhase.FAILED: "Connection Failed",
}

MEASUREMENT_TEXT_INITIAL = "----"
MEASUREMENT_TEXT_CLEARED = "--"


@dataclass(frozen=True)
class ConnectionState:
    """
    Connection lifecycle value. `target` is None only when disconnected
    and no attempt was ever made.
    """
    phase: ConnectionPhase = ConnectionPhase.DISCONNECTED
    target: Optional[ConverterTarget] = None

    @property
    def label(self) -> str:
        return _PHASE_LABELS[self.phase]

    @property
    def is_connected(self) -> bool:
        return self.phase is ConnectionPhase.CONNECTED


@dataclass(frozen=True)
class ConverterInfo:
    """
    Static ratings of the converter module (informational only).
    """
    input_voltage: float = 400.0
    min_voltage: float = 20.0
    max_voltage: float = 150.0
    max_output_power_w: float = 1500.0


@dataclass(frozen=True)
class ConverterStatus:
    """
    A snapshot of the full session status, safe to share across threads.
    """
    connection: ConnectionState
    output_on: bool
    applied_voltage: float
    measurement_enabled: bool
    last_measurement: Optional[float]
    measurement_text: str
    sample_count: int
    info: ConverterInfo

    @property
    def sampling(self) -> bool:
        return self.measurement_enabled and self.connection.is_connected
