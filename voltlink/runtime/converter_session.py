# voltlink/runtime/converter_session.py
from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, List, Optional, Protocol

from voltlink.core.errors import PreconditionError, VoltageValidationError
from voltlink.model.sample import Sample
from voltlink.model.target import ConverterTarget
from voltlink.runtime.sample_window import SampleWindow
from voltlink.runtime.sampler import TelemetrySampler
from voltlink.runtime.state import (
    MEASUREMENT_TEXT_CLEARED,
    MEASUREMENT_TEXT_INITIAL,
    ConnectionPhase,
    ConnectionState,
    ConverterInfo,
    ConverterStatus,
)
from voltlink.runtime.validation import (
    can_apply_voltage,
    can_toggle_output,
    format_voltage,
    parse_voltage,
    validate_voltage,
)

StatusCallback = Callable[[ConverterStatus], None]
SampleCallback = Callable[[Sample], None]


class Link(Protocol):
    def retarget(self, target: ConverterTarget) -> None: ...
    def probe(self) -> bool: ...
    def set_voltage(self, volts: float) -> bool: ...
    def set_output(self, on: bool) -> bool: ...
    def get_measurement(self) -> Optional[float]: ...


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class ConverterSession:
    """
    Connection state machine and owner of all mutable converter state.

    Commands validate synchronously (raising CommandNotPermittedError
    subclasses), then run on a worker pool and resolve a Future[bool].
    Results are written back under the session lock; results belonging
    to an earlier connection are discarded.
    """

    def __init__(
        self,
        *,
        link: Link,
        target: Optional[ConverterTarget] = None,
        window_ms: float = 30_000,
        sample_period_ms: float = 100,
        failed_revert_s: float = 2.0,
        info: Optional[ConverterInfo] = None,
        clock: Optional[Callable[[], float]] = None,
        logger: Optional[logging.Logger] = None,
        max_workers: int = 4,
    ):
        self._link = link
        self._info = info or ConverterInfo()
        self._sample_period_s = float(sample_period_ms) / 1000.0
        self._failed_revert_s = float(failed_revert_s)
        self._clock = clock or _monotonic_ms
        self._log = logger or logging.getLogger(__name__)

        self._lock = threading.RLock()
        self._closed = threading.Event()
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="voltlink-cmd")

        self._window = SampleWindow(window_ms=window_ms, period_ms=sample_period_ms)

        self._state = ConnectionState(target=target)
        self._output_on = False
        self._applied_voltage = 0.0
        self._measurement_enabled = False
        self._last_measurement: Optional[float] = None
        self._measurement_text = MEASUREMENT_TEXT_INITIAL

        # bumped on every transition into Connected
        self._epoch = 0
        # bumped on every sampler start/stop
        self._generation = 0
        self._sampler: Optional[TelemetrySampler] = None

        self._status_cbs: List[StatusCallback] = []
        self._sample_cbs: List[SampleCallback] = []

    # ------------------------------------------------------------------
    # Read accessors
    # ------------------------------------------------------------------
    @property
    def connection(self) -> ConnectionState:
        with self._lock:
            return self._state

    @property
    def output_on(self) -> bool:
        with self._lock:
            return self._output_on

    @property
    def applied_voltage(self) -> float:
        with self._lock:
            return self._applied_voltage

    def samples(self) -> List[Sample]:
        return self._window.snapshot()

    def status(self) -> ConverterStatus:
        with self._lock:
            return ConverterStatus(
                connection=self._state,
                output_on=self._output_on,
                applied_voltage=self._applied_voltage,
                measurement_enabled=self._measurement_enabled,
                last_measurement=self._last_measurement,
                measurement_text=self._measurement_text,
                sample_count=len(self._window),
                info=self._info,
            )

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------
    def set_target(self, target: ConverterTarget) -> None:
        with self._lock:
            if self._state.phase is not ConnectionPhase.DISCONNECTED:
                raise PreconditionError(
                    "Converter address can only be changed while disconnected.",
                    details={"phase": self._state.phase.value},
                )
            self._state = ConnectionState(phase=ConnectionPhase.DISCONNECTED, target=target)
        self._notify_status()

    def connect(self, target: Optional[ConverterTarget] = None) -> Optional[Future]:
        """
        Start a connection attempt. Returns the attempt's Future[bool], or None
        when the request was ignored because the session is not Disconnected.
        """
        with self._lock:
            self._require_open()
            if self._state.phase is not ConnectionPhase.DISCONNECTED:
                self._log.info("CONNECT_IGNORED phase=%s", self._state.phase.value)
                return None

            target = target or self._state.target
            if target is None:
                raise PreconditionError(
                    "No converter address set.",
                    hint="Pass a host and port before connecting.",
                )

            self._link.retarget(target)
            self._state = ConnectionState(phase=ConnectionPhase.CONNECTING, target=target)
            self._log.info("CONNECT_START host=%s port=%d", target.host, target.port)
            fut = self._executor.submit(self._run_connect, target)

        self._notify_status()
        return fut

    def disconnect(self) -> bool:
        """
        Leave Connected. Local only, nothing is sent to the converter.
        Returns False when not connected.
        """
        with self._lock:
            if self._state.phase is not ConnectionPhase.CONNECTED:
                self._log.info("DISCONNECT_IGNORED phase=%s", self._state.phase.value)
                return False
            self._reset_locked()
            self._state = ConnectionState(phase=ConnectionPhase.DISCONNECTED, target=self._state.target)
            self._log.info("DISCONNECTED host=%s", self._state.target)

        self._notify_status()
        return True

    def close(self) -> None:
        with self._lock:
            if self._closed.is_set():
                return
            self._closed.set()
            sampler = self._reset_locked()
            self._state = ConnectionState(phase=ConnectionPhase.DISCONNECTED, target=self._state.target)

        self._notify_status()
        self._executor.shutdown(wait=False, cancel_futures=True)
        if sampler is not None and sampler is not threading.current_thread():
            sampler.join(timeout=self._sample_period_s * 2)
        self._log.info("SESSION_CLOSED")

    def __enter__(self) -> "ConverterSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------
    def apply_voltage(self, raw: str) -> Future:
        """
        Validate, quantize to 0.1 V and send a set-point. Future resolves True
        once the converter acknowledged it and AppliedVoltage was updated.
        """
        if not validate_voltage(raw, self._info.min_voltage, self._info.max_voltage):
            raise VoltageValidationError(
                f"Invalid set voltage '{raw}'.",
                hint=f"Enter a number between {self._info.min_voltage:.1f} and {self._info.max_voltage:.1f} V.",
                details={"raw": raw},
            )
        volts = format_voltage(parse_voltage(raw))  # type: ignore[arg-type]

        with self._lock:
            self._require_open()
            if not can_apply_voltage(True, self._state.is_connected):
                raise PreconditionError("Cannot set voltage while disconnected.")
            epoch = self._epoch
            self._log.info("SET_VOLTAGE volts=%.1f", volts)
            return self._executor.submit(self._run_set_voltage, volts, epoch)

    def toggle_output(self) -> Future:
        with self._lock:
            return self._submit_output_locked(not self._output_on)

    def set_output(self, on: bool) -> Future:
        with self._lock:
            return self._submit_output_locked(bool(on))

    def set_measurement_enabled(self, enabled: bool) -> None:
        with self._lock:
            if enabled and not self._state.is_connected:
                raise PreconditionError("Cannot enable measurement while disconnected.")
            if self._measurement_enabled == bool(enabled):
                return
            self._measurement_enabled = bool(enabled)
            self._log.info("MEASUREMENT_ENABLED value=%s", self._measurement_enabled)
            self._reconcile_sampler_locked()
        self._notify_status()

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------
    def subscribe_status(self, cb: StatusCallback) -> Callable[[], None]:
        with self._lock:
            self._status_cbs.append(cb)

        def _unsubscribe() -> None:
            with self._lock:
                if cb in self._status_cbs:
                    self._status_cbs.remove(cb)

        return _unsubscribe

    def subscribe_samples(self, cb: SampleCallback) -> Callable[[], None]:
        with self._lock:
            self._sample_cbs.append(cb)

        def _unsubscribe() -> None:
            with self._lock:
                if cb in self._sample_cbs:
                    self._sample_cbs.remove(cb)

        return _unsubscribe

    # ------------------------------------------------------------------
    # Workers
    # ------------------------------------------------------------------
    def _run_connect(self, target: ConverterTarget) -> bool:
        ok = self._link.probe()

        with self._lock:
            if self._state.phase is not ConnectionPhase.CONNECTING or self._state.target != target:
                # closed while probing
                return False
            if ok:
                self._epoch += 1
                self._window.clear()
                self._state = ConnectionState(phase=ConnectionPhase.CONNECTED, target=target)
                self._log.info("CONNECTED host=%s port=%d", target.host, target.port)
                self._reconcile_sampler_locked()
            else:
                self._state = ConnectionState(phase=ConnectionPhase.FAILED, target=target)
                self._log.warning("PROBE_FAILED host=%s port=%d", target.host, target.port)
                self._executor.submit(self._revert_failed, target)
        self._notify_status()
        return ok

    def _revert_failed(self, target: ConverterTarget) -> None:
        self._closed.wait(self._failed_revert_s)
        with self._lock:
            if self._state.phase is not ConnectionPhase.FAILED:
                return
            self._state = ConnectionState(phase=ConnectionPhase.DISCONNECTED, target=target)
            self._log.info("FAILED_REVERTED host=%s", target)
        self._notify_status()

    def _run_set_voltage(self, volts: float, epoch: int) -> bool:
        with self._lock:
            if not self._is_current_locked(epoch):
                self._log.info("SET_VOLTAGE_DROPPED volts=%.1f", volts)
                return False

        ok = self._link.set_voltage(volts)
        with self._lock:
            if not ok:
                self._log.warning("SET_VOLTAGE_FAILED volts=%.1f", volts)
                return False
            if not self._is_current_locked(epoch):
                self._log.info("SET_VOLTAGE_STALE volts=%.1f", volts)
                return False
            self._applied_voltage = volts
            self._log.info("SET_VOLTAGE_OK volts=%.1f", volts)
        self._notify_status()
        return True

    def _run_set_output(self, on: bool, epoch: int) -> bool:
        with self._lock:
            if not self._is_current_locked(epoch):
                self._log.info("SET_OUTPUT_DROPPED on=%s", on)
                return False

        ok = self._link.set_output(on)
        with self._lock:
            if not ok:
                self._log.warning("SET_OUTPUT_FAILED on=%s", on)
                return False
            if not self._is_current_locked(epoch):
                self._log.info("SET_OUTPUT_STALE on=%s", on)
                return False
            self._output_on = on
            self._log.info("SET_OUTPUT_OK on=%s", on)
        self._notify_status()
        return True

    def _on_sample_value(self, generation: int, value: float) -> None:
        with self._lock:
            if generation != self._generation or self._sampler is None:
                self._log.debug("SAMPLE_DROPPED_STALE generation=%d current=%d", generation, self._generation)
                return
            sample = Sample(ts_ms=self._clock(), value=float(value))
            self._window.append(sample)
            self._last_measurement = sample.value
            self._measurement_text = f"{sample.value:.1f}"
            cbs = list(self._sample_cbs)

        for cb in cbs:
            try:
                cb(sample)
            except Exception:
                self._log.exception("SAMPLE_CALLBACK_ERROR")

    # ------------------------------------------------------------------
    # Internal (call with self._lock held)
    # ------------------------------------------------------------------
    def _submit_output_locked(self, on: bool) -> Future:
        self._require_open()
        if not can_toggle_output(self._state.is_connected, self._applied_voltage):
            raise PreconditionError(
                "Output can only be switched while connected with an applied voltage.",
                hint="Apply a set voltage first.",
                details={"connected": self._state.is_connected, "applied_voltage": self._applied_voltage},
            )
        self._log.info("SET_OUTPUT on=%s", on)
        return self._executor.submit(self._run_set_output, on, self._epoch)

    def _reconcile_sampler_locked(self) -> Optional[TelemetrySampler]:
        """Start or stop the sampler to match (measurement_enabled and connected)."""
        active = self._measurement_enabled and self._state.is_connected and not self._closed.is_set()

        if active and self._sampler is None:
            self._generation += 1
            self._sampler = TelemetrySampler(
                self._link.get_measurement,
                self._on_sample_value,
                generation=self._generation,
                period_s=self._sample_period_s,
                logger=self._log,
            )
            self._sampler.start()
            return None

        if not active and self._sampler is not None:
            old = self._sampler
            self._generation += 1
            self._sampler = None
            old.stop()
            return old

        return None

    def _reset_locked(self) -> Optional[TelemetrySampler]:
        self._measurement_enabled = False
        old = self._reconcile_sampler_locked()
        self._window.clear()
        self._output_on = False
        self._applied_voltage = 0.0
        self._last_measurement = None
        self._measurement_text = MEASUREMENT_TEXT_CLEARED
        return old

    def _is_current_locked(self, epoch: int) -> bool:
        # commands belong to the connection they were issued on
        return epoch == self._epoch and self._state.is_connected

    def _require_open(self) -> None:
        if self._closed.is_set():
            raise RuntimeError("ConverterSession closed")

    def _notify_status(self) -> None:
        with self._lock:
            cbs = list(self._status_cbs)
        if not cbs:
            return
        st = self.status()
        for cb in cbs:
            try:
                cb(st)
            except Exception:
                self._log.exception("STATUS_CALLBACK_ERROR")
