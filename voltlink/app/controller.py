# voltlink/app/controller.py
from __future__ import annotations

import logging
from concurrent.futures import Future
from typing import Callable, List, Optional

from voltlink.app.config import ConverterConfig
from voltlink.core.errors import ConverterNotRespondingError, PreconditionError
from voltlink.interfaces import SampleSink
from voltlink.model.sample import Sample
from voltlink.model.target import ConverterTarget
from voltlink.runtime.converter_session import ConverterSession
from voltlink.runtime.device_link import DeviceLink
from voltlink.runtime.state import ConnectionPhase, ConverterStatus


def build_session(config: ConverterConfig, *, logger: Optional[logging.Logger] = None) -> ConverterSession:
    link = DeviceLink(
        command_timeout_s=config.command_timeout_s,
        measurement_timeout_s=config.measurement_timeout_s,
        logger=logger,
    )
    return ConverterSession(
        link=link,
        target=config.target,
        window_ms=config.window_ms,
        sample_period_ms=config.sample_period_ms,
        failed_revert_s=config.failed_revert_ms / 1000.0,
        info=config.info,
        logger=logger,
    )


class ConverterController:
    """
    App-level controller for one converter module.
    """

    def __init__(
        self,
        config: ConverterConfig,
        *,
        session: Optional[ConverterSession] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self._config = config
        self._log = logger or logging.getLogger(__name__)
        self._session = session or build_session(config, logger=self._log)

        self._sample_sinks: List[SampleSink] = []
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def config(self) -> ConverterConfig:
        return self._config

    @property
    def session(self) -> ConverterSession:
        return self._session

    def add_sink(self, sink: SampleSink) -> None:
        self._subscribe_once()
        if sink not in self._sample_sinks:
            self._sample_sinks.append(sink)

    def remove_sink(self, sink: SampleSink) -> None:
        if sink in self._sample_sinks:
            self._sample_sinks.remove(sink)

    def connect_blocking(self, target: Optional[ConverterTarget] = None) -> None:
        """
        Connect and wait for the probe. Raises ConverterNotRespondingError on failure.
        """
        fut = self._session.connect(target)
        if fut is None:
            st = self._session.status()
            if st.connection.is_connected:
                return
            if st.connection.phase is ConnectionPhase.FAILED:
                raise PreconditionError(
                    "The last connection attempt failed; the session is still in Connection Failed.",
                    hint="Retry once it returns to Disconnected.",
                    details={"phase": st.connection.phase.value},
                )
            raise PreconditionError(
                "A connection attempt is already in progress.",
                details={"phase": st.connection.phase.value},
            )

        # probe is bounded by the link timeouts
        if not fut.result():
            tgt = self._session.connection.target
            raise ConverterNotRespondingError(
                f"Converter at {tgt} is not responding.",
                hint="Check the converter is powered and reachable (GET /status must return 200).",
                details={"target": str(tgt)},
            )

    def close(self) -> None:
        if self._unsubscribe:
            try:
                self._unsubscribe()
            finally:
                self._unsubscribe = None

        for s in list(self._sample_sinks):
            try:
                s.close()
            except Exception:
                self._log.exception("SINK_CLOSE_ERROR")
        self._sample_sinks.clear()

        try:
            self._session.close()
        except Exception:
            self._log.exception("SESSION_CLOSE_ERROR")

    def __enter__(self) -> "ConverterController":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _subscribe_once(self) -> None:
        if self._unsubscribe is not None:
            return

        def _fanout(sample: Sample) -> None:
            for s in list(self._sample_sinks):
                try:
                    s.on_sample(sample)
                except Exception:
                    self._log.exception("SINK_ON_SAMPLE_ERROR")

        self._unsubscribe = self._session.subscribe_samples(_fanout)

    # passthrough ops
    def status(self) -> ConverterStatus:
        return self._session.status()

    def samples(self) -> List[Sample]:
        return self._session.samples()

    def connect(self, target: Optional[ConverterTarget] = None) -> Optional[Future]:
        return self._session.connect(target)

    def disconnect(self) -> bool:
        return self._session.disconnect()

    def apply_voltage(self, raw: str) -> Future:
        return self._session.apply_voltage(raw)

    def toggle_output(self) -> Future:
        return self._session.toggle_output()

    def set_output(self, on: bool) -> Future:
        return self._session.set_output(on)

    def set_measurement_enabled(self, enabled: bool) -> None:
        self._session.set_measurement_enabled(enabled)
