"""Machine snapshot assembled from ``showvminfo --machinereadable`` output."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum, IntFlag
from pathlib import Path
from typing import List, Optional, Tuple

from .cmdargs import CmdArg, CmdArgs
from .codec.nic import MAX_NICS, NIC, nic_cmd_args, parse_nics
from .codec.props import (
    PropMap,
    Stream,
    bool_to_on_off,
    iter_lines,
    on_off,
    parse_machine_readable,
    parse_uint,
)
from .codec.storage import StorageController, parse_storage_controllers
from .codec.uart import UARTs, parse_uarts
from .errors import UnsupportedValueError

LOGGER = logging.getLogger(__name__)

MAX_BOOT_SLOTS = 4
_VM_NAME_UUID_RE = re.compile(r'"(.+)" \{([0-9a-fA-F-]+)\}')


class MachineState(str, Enum):
    POWEROFF = "poweroff"
    RUNNING = "running"
    PAUSED = "paused"
    SAVED = "saved"
    ABORTED = "aborted"

    @classmethod
    def parse(cls, value: str) -> "MachineState":
        try:
            return cls(value)
        except ValueError:
            raise UnsupportedValueError("machine state", value, [s.value for s in cls], key="VMState") from None


class BootDevice(str, Enum):
    NONE = "none"
    FLOPPY = "floppy"
    DVD = "dvd"
    DISK = "disk"
    NET = "net"


class Flag(IntFlag):
    """Independent on/off hardware toggles of a machine."""

    NONE = 0
    ACPI = 1 << 0
    IOAPIC = 1 << 1
    RTCUSEUTC = 1 << 2
    CPUHOTPLUG = 1 << 3
    PAE = 1 << 4
    LONGMODE = 1 << 5
    SYNTHCPU = 1 << 6
    HPET = 1 << 7
    HWVIRTEX = 1 << 8
    TRIPLEFAULTRESET = 1 << 9
    NESTEDPAGING = 1 << 10
    LARGEPAGES = 1 << 11
    VTXVPID = 1 << 12
    VTXUX = 1 << 13
    ACCELERATE3D = 1 << 14
    NESTED_HW_VIRT = 1 << 15
    X2APIC = 1 << 16

    def get(self, other: "Flag") -> str:
        return bool_to_on_off(self & other == other)


# (flag, showvminfo keys, modifyvm option). SYNTHCPU has no modifyvm option.
FLAG_OPTIONS: List[Tuple[Flag, Tuple[str, ...], Optional[str]]] = [
    (Flag.ACPI, ("acpi",), "--acpi"),
    (Flag.IOAPIC, ("ioapic",), "--ioapic"),
    (Flag.RTCUSEUTC, ("rtcuseutc",), "--rtcuseutc"),
    (Flag.CPUHOTPLUG, ("cpuhotplug", "cpu-hotplug"), "--cpuhotplug"),
    (Flag.PAE, ("pae",), "--pae"),
    (Flag.LONGMODE, ("longmode",), "--longmode"),
    (Flag.SYNTHCPU, ("synthcpu",), None),
    (Flag.HPET, ("hpet",), "--hpet"),
    (Flag.HWVIRTEX, ("hwvirtex",), "--hwvirtex"),
    (Flag.TRIPLEFAULTRESET, ("triplefaultreset",), "--triplefaultreset"),
    (Flag.NESTEDPAGING, ("nestedpaging",), "--nestedpaging"),
    (Flag.LARGEPAGES, ("largepages",), "--largepages"),
    (Flag.VTXVPID, ("vtxvpid",), "--vtxvpid"),
    (Flag.VTXUX, ("vtxux",), "--vtxux"),
    (Flag.ACCELERATE3D, ("accelerate3d",), "--accelerate3d"),
    (Flag.NESTED_HW_VIRT, ("nested-hw-virt",), "--nested-hw-virt"),
    (Flag.X2APIC, ("x2apic",), "--x2apic"),
]

# Defaults every modifyvm call starts from; callers override them per call.
MODIFY_DEFAULTS: List[Tuple[str, str]] = [
    ("--firmware", "bios"),
    ("--bioslogofadein", "off"),
    ("--bioslogofadeout", "off"),
    ("--bioslogodisplaytime", "0"),
    ("--biosbootmenu", "disabled"),
]


@dataclass
class Machine:
    name: str = ""
    uuid: str = ""
    state: Optional[MachineState] = None
    cpus: int = 0
    memory: int = 0  # MB
    vram: int = 0  # MB
    cfg_file: str = ""
    base_folder: str = ""
    os_type: str = ""
    flag: Flag = Flag.NONE
    boot_order: List[BootDevice] = field(default_factory=list)
    nics: List[NIC] = field(default_factory=list)
    uarts: UARTs = field(default_factory=UARTs)
    storage_controllers: List[StorageController] = field(default_factory=list)

    @property
    def ident(self) -> str:
        return self.name or self.uuid

    def modify_cmd_args(self, *overrides: CmdArg) -> CmdArgs:
        """Complete ``modifyvm`` option set for this snapshot plus overrides."""
        cmd_args = CmdArgs()
        for key, value in MODIFY_DEFAULTS:
            cmd_args.append(key, value)
        if self.os_type:
            cmd_args.append("--ostype", self.os_type)
        cmd_args.append("--cpus", str(self.cpus))
        cmd_args.append("--memory", str(self.memory))
        cmd_args.append("--vram", str(self.vram))
        for flag, _, option in FLAG_OPTIONS:
            if option is not None:
                cmd_args.append(option, self.flag.get(flag))
        for i, device in enumerate(self.boot_order[:MAX_BOOT_SLOTS], start=1):
            cmd_args.append(f"--boot{i}", device.value)
        for i, nic in enumerate(self.nics[:MAX_NICS], start=1):
            cmd_args.append_args(*nic_cmd_args(i, nic))
        cmd_args.append_args(*self.uarts.cmd_args())
        cmd_args.append_override(*overrides)
        return cmd_args

    def modify_args(self, *overrides: CmdArg) -> List[str]:
        return ["modifyvm", self.ident, *self.modify_cmd_args(*overrides).args()]


def machine_from_vminfo(stream: Stream) -> Machine:
    return machine_from_props(parse_machine_readable(stream))


def machine_from_props(props: PropMap) -> Machine:
    """Build a complete machine or raise; partial machines are never returned."""
    m = Machine(
        name=props.get("name", ""),
        uuid=props.get("UUID", ""),
        state=MachineState.parse(props["VMState"]) if "VMState" in props else None,
        memory=parse_uint(props, "memory"),
        cpus=parse_uint(props, "cpus"),
        vram=parse_uint(props, "vram"),
        cfg_file=props.get("CfgFile", ""),
    )
    if m.cfg_file:
        m.base_folder = str(Path(m.cfg_file).parent)
    m.flag = _parse_flags(props)
    m.boot_order = _parse_boot_order(props)
    m.nics = parse_nics(props)
    m.uarts = parse_uarts(props)
    m.storage_controllers = parse_storage_controllers(props)
    LOGGER.debug(
        "Assembled machine %r: %d NIC(s), %d active UART(s), %d storage controller(s)",
        m.name,
        len(m.nics),
        len(m.uarts.without_off()),
        len(m.storage_controllers),
    )
    return m


def _parse_flags(props: PropMap) -> Flag:
    flag = Flag.NONE
    for member, keys, _ in FLAG_OPTIONS:
        if any(on_off(props.get(key)) for key in keys):
            flag |= member
    return flag


def _parse_boot_order(props: PropMap) -> List[BootDevice]:
    order: List[BootDevice] = []
    for i in range(1, MAX_BOOT_SLOTS + 1):
        key = f"boot{i}"
        raw = props.get(key)
        if raw is None:
            break
        try:
            order.append(BootDevice(raw))
        except ValueError:
            raise UnsupportedValueError("boot device", raw, [d.value for d in BootDevice], key=key) from None
    return order


def parse_vm_list(stream: Stream) -> List[Tuple[str, str]]:
    """``VBoxManage list vms`` lines (``"name" {uuid}``) as (name, uuid) pairs."""
    pairs: List[Tuple[str, str]] = []
    for line in iter_lines(stream):
        match = _VM_NAME_UUID_RE.search(line)
        if match is not None:
            pairs.append((match.group(1), match.group(2)))
    return pairs
