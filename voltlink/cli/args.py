# voltlink/cli/args.py
from __future__ import annotations

import argparse
from pathlib import Path
from typing import Optional


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="voltlink", description="DC-DC converter control client")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", type=Path, default=None, help="YAML config (default: bundled converter.yml).")
    common.add_argument("--host", default=None, help="Converter IP address or hostname.")
    common.add_argument("--port", default=None, help="Converter HTTP port.")
    common.add_argument("--log-file", type=Path, default=None, help="Append application log to this file.")
    common.add_argument("-v", "--verbose", action="store_true", help="Debug logging on the console.")

    sub = parser.add_subparsers(dest="cmd", required=True)

    sub.add_parser("status", parents=[common], help="Probe the converter and print status.")

    p_set = sub.add_parser("set-voltage", parents=[common], help="Apply an output set-point.")
    p_set.add_argument("volts", help="Set voltage in V (20.0 - 150.0, 0.1 V resolution).")

    p_out = sub.add_parser("output", parents=[common], help="Switch the output relay.")
    p_out.add_argument("state", choices=("on", "off"))
    p_out.add_argument(
        "--voltage",
        default=None,
        help="Apply this set-point first (output can only be switched with an applied voltage).",
    )

    p_mon = sub.add_parser("monitor", parents=[common], help="Stream measured voltage.")
    p_mon.add_argument("--secs", type=float, default=None, help="Stop after N seconds (default: until Ctrl+C).")

    return parser


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)
