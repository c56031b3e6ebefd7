"""Serial port (UART) decoding and ``modifyvm`` argument generation.

VBoxManage reports each of the four serial ports as::

    uart1="0x03f8,4"
    uartmode1="file,/tmp/ttyS0.log"
    uarttype1="16550A"

and accepts them back as ``--uart1 0x03f8 4 --uartmode1 file /tmp/ttyS0.log
--uarttype1 16550A``. A port whose I/O base and IRQ are both zero is off.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Mapping, Optional, Union

from ..cmdargs import CmdArg, CmdArgs, split_value
from ..errors import AggregateValidationError, ParseError, UnsupportedValueError
from .props import PropMap

_VMINFO_COM_RE = re.compile(r"0x([0-9a-fA-F]+),([0-9]+)")
_IO_BASE_RE = re.compile(r"0[xX]([0-9a-fA-F]+)")
_IRQ_RE = re.compile(r"[0-9]+")


class UARTKey(str, Enum):
    UART1 = "uart1"
    UART2 = "uart2"
    UART3 = "uart3"
    UART4 = "uart4"

    @property
    def rank(self) -> int:
        return int(self.value[-1])

    @classmethod
    def from_rank(cls, rank: int) -> "UARTKey":
        if rank not in (1, 2, 3, 4):
            raise UnsupportedValueError("uart rank", str(rank), ["1", "2", "3", "4"])
        return cls(f"uart{rank}")

    @classmethod
    def parse(cls, value: str) -> "UARTKey":
        try:
            return cls(value)
        except ValueError:
            raise UnsupportedValueError("uart key", value, [k.value for k in cls]) from None


class UARTType(str, Enum):
    # No FIFO.
    U16450 = "16450"
    # 16 byte FIFO.
    U16550A = "16550A"
    # 64 byte FIFO and hardware flow control.
    U16750 = "16750"

    @classmethod
    def parse(cls, value: str, *, key: Optional[str] = None) -> "UARTType":
        try:
            return cls(value)
        except ValueError:
            raise UnsupportedValueError("uart type", value, [t.value for t in cls], key=key) from None


UART_TYPE_DEFAULT = UARTType.U16550A


class UARTMode(str, Enum):
    SERVER = "server"  # host pipe, VirtualBox creates it
    CLIENT = "client"  # host pipe, connect to an existing one
    TCP_SERVER = "tcpserver"  # <port>
    TCP_CLIENT = "tcpclient"  # <hostname:port>
    FILE = "file"  # raw file <path>
    DISCONNECTED = "disconnected"

    @classmethod
    def parse(cls, value: str, *, key: Optional[str] = None) -> "UARTMode":
        try:
            return cls(value)
        except ValueError:
            raise UnsupportedValueError("uart mode", value, [m.value for m in cls], key=key) from None


@dataclass(frozen=True)
class ComConfig:
    """I/O base (``port``) and IRQ of a serial port."""

    port: int = 0
    irq: int = 0

    @property
    def io_base_hex(self) -> str:
        return f"0x{self.port:04x}"

    def is_off(self) -> bool:
        return self.port == 0 and self.irq == 0

    @classmethod
    def from_vminfo(cls, value: str, *, key: Optional[str] = None) -> "ComConfig":
        match = _VMINFO_COM_RE.fullmatch(value.strip())
        if match is None:
            raise ParseError("expected <IO base hex>,<IRQ> such as 0x03f8,4", key=key, value=value)
        return cls(port=int(match.group(1), 16), irq=int(match.group(2)))


COM1 = ComConfig(port=0x3F8, irq=4)
COM2 = ComConfig(port=0x2F8, irq=3)
COM3 = ComConfig(port=0x3E8, irq=4)
COM4 = ComConfig(port=0x2E8, irq=3)


@dataclass
class UART:
    key: UARTKey
    com: ComConfig = field(default_factory=ComConfig)
    type: Optional[UARTType] = None
    mode: Optional[UARTMode] = None
    mode_data: str = ""

    def is_off(self) -> bool:
        return self.com.is_off()

    @property
    def rank(self) -> int:
        return self.key.rank


class UARTs:
    """The four serial port slots of a machine, addressable by key or rank."""

    def __init__(self, uarts: Optional[List[UART]] = None) -> None:
        slots = [UART(key=key) for key in UARTKey]
        for uart in uarts or []:
            slots[uart.rank - 1] = uart
        self._slots = slots

    def __getitem__(self, item: Union[UARTKey, int]) -> UART:
        rank = item.rank if isinstance(item, UARTKey) else item
        return self._slots[UARTKey.from_rank(rank).rank - 1]

    def __setitem__(self, item: Union[UARTKey, int], uart: UART) -> None:
        rank = item.rank if isinstance(item, UARTKey) else item
        if uart.rank != rank:
            raise ValueError(f"cannot place {uart.key.value} in slot {rank}")
        self._slots[rank - 1] = uart

    def __iter__(self) -> Iterator[UART]:
        return iter(self._slots)

    def __len__(self) -> int:
        return len(self._slots)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, UARTs):
            return NotImplemented
        return self._slots == other._slots

    def __repr__(self) -> str:
        return f"UARTs({self._slots!r})"

    def without_off(self) -> List[UART]:
        return [uart for uart in self._slots if not uart.is_off()]

    def cmd_args(self) -> List[CmdArg]:
        args: List[CmdArg] = []
        for uart in self._slots:
            args.extend(uart_cmd_args(uart))
        return args


def parse_uarts(props: PropMap) -> UARTs:
    slots: List[UART] = []
    for key in UARTKey:
        uart = UART(key=key)
        raw = props.get(key.value)
        if raw is not None and raw != "off":
            uart.com = ComConfig.from_vminfo(raw, key=key.value)
            _read_mode(uart, props)
            type_key = f"uarttype{key.rank}"
            if type_key in props:
                uart.type = UARTType.parse(props[type_key], key=type_key)
        slots.append(uart)
    return UARTs(slots)


def _read_mode(uart: UART, props: PropMap) -> None:
    mode_key = f"uartmode{uart.rank}"
    raw = props.get(mode_key)
    if raw is None:
        return
    if raw == UARTMode.DISCONNECTED.value:
        uart.mode = UARTMode.DISCONNECTED
        return
    mode, sep, data = raw.partition(",")
    if not sep:
        raise ParseError("expected disconnected or <mode>,<data>", key=mode_key, value=raw)
    uart.mode = UARTMode.parse(mode, key=mode_key)
    uart.mode_data = data


def uart_cmd_args(uart: UART) -> List[CmdArg]:
    rank = uart.rank
    if uart.is_off():
        return [CmdArg(f"--uart{rank}", "off")]
    args = [CmdArg(f"--uart{rank}", f"{uart.com.io_base_hex} {uart.com.irq}", to_parts=split_value)]
    if uart.mode is UARTMode.DISCONNECTED or (uart.mode is not None and not uart.mode_data):
        args.append(CmdArg(f"--uartmode{rank}", uart.mode.value))
    elif uart.mode is not None:
        args.append(CmdArg(f"--uartmode{rank}", f"{uart.mode.value} {uart.mode_data}", to_parts=split_value))
    if uart.type is not None:
        args.append(CmdArg(f"--uarttype{rank}", uart.type.value))
    return args


def uart_args(uart: UART) -> List[str]:
    cmd_args = CmdArgs()
    cmd_args.append_args(*uart_cmd_args(uart))
    return cmd_args.args()


def new_uart(
    key: str,
    uart_type: str,
    port: str,
    irq: str,
    mode: str,
    mode_data: str = "",
) -> UART:
    """Build a UART from raw strings, reporting every invalid field at once."""
    errors: List[Exception] = []

    def attempt(func, *args):
        try:
            return func(*args)
        except (UnsupportedValueError, ParseError) as exc:
            errors.append(exc)
            return None

    uart_key = attempt(UARTKey.parse, key)
    parsed_mode = attempt(UARTMode.parse, mode)
    parsed_type = attempt(UARTType.parse, uart_type)

    com = ComConfig()
    if port and irq:
        io_base = _IO_BASE_RE.fullmatch(port)
        if io_base is None:
            errors.append(ParseError("expected a 0x prefixed hexadecimal I/O base", key="port", value=port))
        irq_ok = _IRQ_RE.fullmatch(irq) is not None
        if not irq_ok:
            errors.append(ParseError("expected a decimal IRQ", key="irq", value=irq))
        if io_base is not None and irq_ok:
            com = ComConfig(port=int(io_base.group(1), 16), irq=int(irq))
    elif port or irq:
        errors.append(
            ParseError(f"port and irq must both be empty or both be set: port={port!r}, irq={irq!r}")
        )

    if errors:
        raise AggregateValidationError(f"invalid UART {key!r}", errors)
    return UART(key=uart_key, com=com, type=parsed_type, mode=parsed_mode, mode_data=mode_data)


def uarts_from_mapping(mapping: Mapping[Union[UARTKey, str], UART]) -> UARTs:
    """Place the given UARTs in their slots; the remaining slots are off."""
    errors: List[Exception] = []
    placed: Dict[UARTKey, UART] = {}
    for key, uart in mapping.items():
        try:
            uart_key = key if isinstance(key, UARTKey) else UARTKey.parse(key)
        except UnsupportedValueError as exc:
            errors.append(exc)
            continue
        placed[uart_key] = UART(
            key=uart_key, com=uart.com, type=uart.type, mode=uart.mode, mode_data=uart.mode_data
        )
    if errors:
        raise AggregateValidationError("unsupported UART keys", errors)
    return UARTs(list(placed.values()))
