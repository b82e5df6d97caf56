# voltlink/cli/main.py
from __future__ import annotations

import sys
from typing import Optional

from voltlink.core.errors import VoltLinkError

from voltlink.cli.args import parse_args
from voltlink.cli.commands import (
    cmd_monitor,
    cmd_output,
    cmd_set_voltage,
    cmd_status,
    configure_logging,
    load_cli_config,
)


def main(argv: Optional[list[str]] = None) -> int:
    try:
        args = parse_args(argv)
        configure_logging(verbose=args.verbose, log_file=args.log_file)
        cfg = load_cli_config(args)

        if args.cmd == "status":
            return cmd_status(cfg)
        if args.cmd == "set-voltage":
            return cmd_set_voltage(cfg, volts=args.volts)
        if args.cmd == "output":
            return cmd_output(cfg, on=args.state == "on", voltage=args.voltage)
        if args.cmd == "monitor":
            return cmd_monitor(cfg, secs=args.secs)

        return 2
    except VoltLinkError as e:
        print(f"ERROR: {e.message}")
        if e.hint:
            print(f"Hint: {e.hint}")
        return 1


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
