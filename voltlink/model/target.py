# voltlink/model/target.py
from __future__ import annotations

from dataclasses import dataclass

from voltlink.core.errors import ConfigError


@dataclass(frozen=True)
class ConverterTarget:
    """
    Network address of one converter module.

    Immutable: a new target is built whenever the operator edits host/port,
    which is only allowed while disconnected.
    """

    host: str
    port: int = 80

    def __post_init__(self) -> None:
        host = str(self.host).strip()
        if not host:
            raise ConfigError("Converter host is empty.", hint="Pass an IP address or hostname.")
        if isinstance(self.port, bool) or not isinstance(self.port, int):
            raise ConfigError(
                f"Converter port must be an integer, got {type(self.port).__name__}.",
                details={"port": self.port},
            )
        if not 0 <= self.port <= 65535:
            raise ConfigError(
                f"Converter port {self.port} out of range.",
                hint="Valid ports are 0..65535.",
                details={"port": self.port},
            )
        object.__setattr__(self, "host", host)

    @classmethod
    def parse(cls, host: str, port: str | int) -> "ConverterTarget":
        """Build a target from raw operator input (port may be text)."""
        try:
            port_i = int(str(port).strip())
        except ValueError:
            raise ConfigError(
                f"Invalid port '{port}'.",
                hint="Port must be an integer 0..65535.",
                details={"port": port},
            ) from None
        return cls(host=host, port=port_i)

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"
