# voltlink/app/config.py
from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from voltlink.core.errors import ConfigError
from voltlink.model.target import ConverterTarget
from voltlink.runtime.state import ConverterInfo

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[1] / "metadata" / "converter.yml"


@dataclass(frozen=True)
class ConverterConfig:
    host: str = "192.168.4.1"
    port: int = 80
    command_timeout_s: float = 5.0
    measurement_timeout_s: float = 3.0
    sample_period_ms: int = 100
    window_ms: int = 30_000
    failed_revert_ms: int = 2_000
    min_voltage: float = 20.0
    max_voltage: float = 150.0
    input_voltage: float = 400.0
    max_output_power_w: float = 1500.0

    @property
    def target(self) -> ConverterTarget:
        return ConverterTarget(host=self.host, port=self.port)

    @property
    def info(self) -> ConverterInfo:
        return ConverterInfo(
            input_voltage=self.input_voltage,
            min_voltage=self.min_voltage,
            max_voltage=self.max_voltage,
            max_output_power_w=self.max_output_power_w,
        )

    def with_target(self, host: Optional[str] = None, port: Union[str, int, None] = None) -> "ConverterConfig":
        """Apply CLI-style overrides (None = keep). Port may be raw operator text."""
        target = ConverterTarget.parse(
            self.host if host is None else host,
            self.port if port is None else port,
        )
        return replace(self, host=target.host, port=target.port)


class ConfigLoader:
    """
    Loads converter settings from YAML into a ConverterConfig.

    Sections (all optional):
        converter:  host, port
        timeouts:   command_ms, measurement_ms
        telemetry:  period_ms, window_ms
        connection: failed_revert_ms
        limits:     min_voltage, max_voltage, input_voltage, max_output_power_w
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _load_yaml(self) -> dict:
        if not self.path.exists():
            raise ConfigError(
                f"Missing config file: {self.path}",
                hint="Pass --config with an existing YAML file.",
                details={"path": str(self.path)},
            )
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(
                "Config file is not valid YAML.",
                hint=str(e),
                details={"path": str(self.path)},
            ) from None

        if not isinstance(data, dict):
            raise ConfigError("Config root must be a mapping.", details={"path": str(self.path)})
        return data

    def load(self) -> ConverterConfig:
        data = self._load_yaml()
        try:
            return self._build(data)
        except (TypeError, ValueError) as e:
            raise ConfigError(
                "Invalid value in config file.",
                hint=str(e),
                details={"path": str(self.path)},
            ) from None

    # ---------------------------------------------------------------------
    # Sections
    # ---------------------------------------------------------------------
    def _build(self, data: Dict[str, Any]) -> ConverterConfig:
        base = ConverterConfig()
        conv = self._section(data, "converter")
        timeouts = self._section(data, "timeouts")
        telem = self._section(data, "telemetry")
        conn = self._section(data, "connection")
        limits = self._section(data, "limits")

        cfg = ConverterConfig(
            host=str(conv.get("host", base.host)),
            port=_as_int(conv.get("port", base.port), "converter.port"),
            command_timeout_s=_ms_to_s(timeouts.get("command_ms"), base.command_timeout_s, "timeouts.command_ms"),
            measurement_timeout_s=_ms_to_s(
                timeouts.get("measurement_ms"), base.measurement_timeout_s, "timeouts.measurement_ms"
            ),
            sample_period_ms=_as_int(telem.get("period_ms", base.sample_period_ms), "telemetry.period_ms"),
            window_ms=_as_int(telem.get("window_ms", base.window_ms), "telemetry.window_ms"),
            failed_revert_ms=_as_int(conn.get("failed_revert_ms", base.failed_revert_ms), "connection.failed_revert_ms"),
            min_voltage=float(limits.get("min_voltage", base.min_voltage)),
            max_voltage=float(limits.get("max_voltage", base.max_voltage)),
            input_voltage=float(limits.get("input_voltage", base.input_voltage)),
            max_output_power_w=float(limits.get("max_output_power_w", base.max_output_power_w)),
        )
        validate_config(cfg)
        return cfg

    @staticmethod
    def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
        section = data.get(name) or {}
        if not isinstance(section, dict):
            raise ConfigError(f"Config section '{name}' must be a mapping.")
        return section


def validate_config(cfg: ConverterConfig) -> None:
    ConverterTarget(host=cfg.host, port=cfg.port)

    for name in ("command_timeout_s", "measurement_timeout_s", "sample_period_ms", "window_ms"):
        if getattr(cfg, name) <= 0:
            raise ConfigError(f"'{name}' must be > 0.", details={name: getattr(cfg, name)})
    if cfg.failed_revert_ms < 0:
        raise ConfigError("'failed_revert_ms' must be >= 0.", details={"failed_revert_ms": cfg.failed_revert_ms})
    if cfg.min_voltage >= cfg.max_voltage:
        raise ConfigError(
            "min_voltage must be below max_voltage.",
            details={"min_voltage": cfg.min_voltage, "max_voltage": cfg.max_voltage},
        )


def load_config(path: str | Path | None = None) -> ConverterConfig:
    """Load a config file, or the bundled defaults when path is None."""
    return ConfigLoader(path if path is not None else DEFAULT_CONFIG_PATH).load()


def _as_int(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name}: expected int, got {type(value).__name__}")
    return value


def _ms_to_s(value: Any, default_s: float, name: str) -> float:
    if value is None:
        return default_s
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"{name}: expected number, got {type(value).__name__}")
    return float(value) / 1000.0
