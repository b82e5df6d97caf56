# voltlink/cli/commands.py
from __future__ import annotations

import argparse
import logging
import time
from pathlib import Path
from typing import Optional

from voltlink.app.config import ConverterConfig, load_config
from voltlink.app.controller import ConverterController
from voltlink.core.errors import ConverterNotRespondingError
from voltlink.interfaces import SampleSink
from voltlink.model.sample import Sample
from voltlink.runtime.state import ConverterStatus


# ---------------- Sample sink ----------------

class PrintSampleSink(SampleSink):
    """Print measured voltage to stdout, relative to the first sample."""
    def __init__(self) -> None:
        self._t0: Optional[float] = None
        self.count = 0

    def on_sample(self, sample: Sample) -> None:
        if self._t0 is None:
            self._t0 = sample.ts_ms
        self.count += 1
        print(f"t={(sample.ts_ms - self._t0) / 1000.0:8.2f}s  V={sample.value:7.1f}")

    def close(self) -> None:
        return None

# ---------------- Logging / config ----------------

def configure_logging(*, verbose: bool = False, log_file: Optional[Path] = None) -> None:
    """
    Console handler on the root logger plus an optional file handler (idempotent).
    Kept in CLI (presentation-layer concern).
    """
    root = logging.getLogger()
    level = logging.DEBUG if verbose else logging.WARNING
    fmt = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    if not any(type(h) is logging.StreamHandler for h in root.handlers):
        sh = logging.StreamHandler()
        sh.setFormatter(fmt)
        root.addHandler(sh)
    for h in root.handlers:
        if type(h) is logging.StreamHandler:
            h.setLevel(level)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        target = str(log_file.resolve())
        if not any(
            isinstance(h, logging.FileHandler) and getattr(h, "baseFilename", None) == target
            for h in root.handlers
        ):
            fh = logging.FileHandler(log_file, encoding="utf-8", delay=True)
            fh.setLevel(logging.INFO)
            fh.setFormatter(fmt)
            root.addHandler(fh)

    root.setLevel(logging.DEBUG if verbose else logging.INFO)


def load_cli_config(args: argparse.Namespace) -> ConverterConfig:
    cfg = load_config(args.config)
    return cfg.with_target(host=args.host, port=args.port)

# ---------------- Status printing ----------------

def print_status(st: ConverterStatus) -> None:
    c = st.connection
    print(f"Converter: {c.target or '-'}  [{c.label}]")
    print(
        f"Ratings:   input={st.info.input_voltage:.0f}Vdc "
        f"output={st.info.min_voltage:.1f}-{st.info.max_voltage:.1f}Vdc "
        f"max={st.info.max_output_power_w / 1000.0:.1f}kW"
    )
    applied = f"{st.applied_voltage:.1f}V" if st.applied_voltage > 0 else "-"
    print(f"Set:       applied={applied} output={'ON' if st.output_on else 'off'}")
    print(f"Measured:  {st.measurement_text} V (samples={st.sample_count})")

# ---------------- Commands ----------------

def cmd_status(cfg: ConverterConfig) -> int:
    with ConverterController(cfg) as ctl:
        ctl.connect_blocking()
        print_status(ctl.status())
        ctl.disconnect()
    return 0


def _apply(ctl: ConverterController, volts: str) -> None:
    if not ctl.apply_voltage(volts).result():
        raise ConverterNotRespondingError(
            f"Converter did not accept set voltage {volts}.",
            hint="POST /setVoltage must return 200.",
        )


def cmd_set_voltage(cfg: ConverterConfig, *, volts: str) -> int:
    with ConverterController(cfg) as ctl:
        ctl.connect_blocking()
        _apply(ctl, volts)
        print(f"Applied Set Voltage: {ctl.status().applied_voltage:.1f}V")
        ctl.disconnect()
    return 0


def cmd_output(cfg: ConverterConfig, *, on: bool, voltage: Optional[str] = None) -> int:
    with ConverterController(cfg) as ctl:
        ctl.connect_blocking()
        if voltage is not None:
            _apply(ctl, voltage)
            print(f"Applied Set Voltage: {ctl.status().applied_voltage:.1f}V")

        if not ctl.set_output(on).result():
            raise ConverterNotRespondingError(
                f"Converter did not switch output {'on' if on else 'off'}.",
                hint="POST /setOutput must return 200.",
            )
        print(f"Output: {'ON' if on else 'off'}")
        ctl.disconnect()
    return 0


def cmd_monitor(cfg: ConverterConfig, *, secs: Optional[float] = None) -> int:
    with ConverterController(cfg) as ctl:
        ctl.connect_blocking()
        print_status(ctl.status())

        sink = PrintSampleSink()
        ctl.add_sink(sink)
        ctl.set_measurement_enabled(True)
        print("Measuring... Press Ctrl+C to stop")

        t0 = time.monotonic()
        try:
            while secs is None or time.monotonic() - t0 < secs:
                time.sleep(0.2)
        except KeyboardInterrupt:
            pass

        ctl.set_measurement_enabled(False)
        window = ctl.samples()
        if window:
            values = [s.value for s in window]
            span_s = (window[-1].ts_ms - window[0].ts_ms) / 1000.0
            print(
                f"Window: {len(values)} samples over {span_s:.1f}s "
                f"min={min(values):.1f}V max={max(values):.1f}V last={values[-1]:.1f}V"
            )
        else:
            print("Window: no samples received.")
        print(f"Printed {sink.count} sample(s)")
        ctl.disconnect()
    return 0
