"""Command-line interface printing VirtualBox models as JSON."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import fields, is_dataclass
from enum import Enum
from typing import Any, Optional

from .codec.uart import UARTs
from .manage import ENV_PROGRAM_KEY, get_manage
from .util.logging import ENV_LOG_LEVEL_KEY, setup_logging
from .vbox import VirtualBox

LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vboxconfig",
        description="Inspect VirtualBox machines and networks through VBoxManage",
    )
    parser.add_argument(
        "--vboxmanage",
        help=f"Path to VBoxManage (default: ${ENV_PROGRAM_KEY} or PATH lookup)",
    )
    parser.add_argument(
        "--log-level",
        help=f"Logging level (default: ${ENV_LOG_LEVEL_KEY} or INFO)",
    )
    sub = parser.add_subparsers(dest="command", required=True)
    show = sub.add_parser("show", help="Show one machine by name or UUID")
    show.add_argument("machine")
    sub.add_parser("list", help="Show every registered machine")
    sub.add_parser("dhcpservers", help="Show DHCP servers")
    sub.add_parser("natnets", help="Show NAT networks")
    sub.add_parser("version", help="Show the VirtualBox version")
    return parser


def _jsonable(value: Any) -> Any:
    if isinstance(value, UARTs):
        return [_jsonable(uart) for uart in value]
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: _jsonable(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Enum):
        return value.value if not isinstance(value.value, int) else value.name
    if isinstance(value, dict):
        return {str(key): _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return value


def dump(value: Any) -> str:
    return json.dumps(_jsonable(value), indent=2, default=str)


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    LOGGER.debug("Parsed arguments: %s", args)

    vbox = VirtualBox(get_manage(args.vboxmanage))
    try:
        if args.command == "show":
            result: Any = vbox.get_machine(args.machine)
        elif args.command == "list":
            result = vbox.list_machines()
        elif args.command == "dhcpservers":
            result = vbox.dhcp_servers()
        elif args.command == "natnets":
            result = vbox.nat_networks()
        else:
            result = vbox.version()
    except RuntimeError as exc:
        LOGGER.error("%s", exc)
        return 1

    print(dump(result))
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
