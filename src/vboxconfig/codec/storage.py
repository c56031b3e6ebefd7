"""Storage controller decoding and ``storagectl``/``storageattach`` commands."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from ..errors import UnsupportedValueError, VBoxError
from .props import PropMap, bool_to_on_off, on_off, parse_uint

LOGGER = logging.getLogger(__name__)

MAX_CONTROLLERS = 8
UNKNOWN = "unknown"


class SystemBus(str, Enum):
    IDE = "ide"
    SATA = "sata"
    SCSI = "scsi"
    FLOPPY = "floppy"
    SAS = "sas"
    USB = "usb"
    PCIE = "pcie"
    VIRTIO = "virtio"
    # Reported for NVMe and VirtIO controllers by some VirtualBox releases.
    UNKNOWN = UNKNOWN


class StorageControllerChipset(str, Enum):
    LSI_LOGIC = "LSILogic"
    LSI_LOGIC_SAS = "LSILogicSAS"
    BUS_LOGIC = "BusLogic"
    INTEL_AHCI = "IntelAHCI"
    PIIX3 = "PIIX3"
    PIIX4 = "PIIX4"
    ICH6 = "ICH6"
    I82078 = "I82078"
    USB = "USB"
    NVME = "NVMe"
    VIRTIO_SCSI = "VirtIO"
    UNKNOWN = UNKNOWN


class DriveType(str, Enum):
    DVD = "dvddrive"
    HDD = "hdd"
    FDD = "fdd"


# storagecontrollertype<i> token -> (bus, chipset)
CONTROLLER_TYPES: Dict[str, Tuple[SystemBus, StorageControllerChipset]] = {
    "IntelAhci": (SystemBus.SATA, StorageControllerChipset.INTEL_AHCI),
    "LsiLogic": (SystemBus.SCSI, StorageControllerChipset.LSI_LOGIC),
    "BusLogic": (SystemBus.SCSI, StorageControllerChipset.BUS_LOGIC),
    "PIIX3": (SystemBus.IDE, StorageControllerChipset.PIIX3),
    "PIIX4": (SystemBus.IDE, StorageControllerChipset.PIIX4),
    "ICH6": (SystemBus.IDE, StorageControllerChipset.ICH6),
    "I82078": (SystemBus.FLOPPY, StorageControllerChipset.I82078),
    "LsiLogicSas": (SystemBus.SAS, StorageControllerChipset.LSI_LOGIC_SAS),
    "USB": (SystemBus.USB, StorageControllerChipset.USB),
    "NVMe": (SystemBus.PCIE, StorageControllerChipset.NVME),
    "VirtioSCSI": (SystemBus.VIRTIO, StorageControllerChipset.VIRTIO_SCSI),
    UNKNOWN: (SystemBus.UNKNOWN, StorageControllerChipset.UNKNOWN),
}


@dataclass
class StorageMedium:
    port: int
    device: int
    drive_type: Optional[DriveType] = None
    medium: str = ""  # none|emptydrive|<filename>|host:<drive>|iscsi
    uuid: str = ""

    @property
    def uuid_or_medium(self) -> str:
        return self.uuid or self.medium

    def is_none(self) -> bool:
        return not self.uuid and self.medium == "none"


@dataclass
class StorageController:
    name: str
    bus: Optional[SystemBus] = None
    chipset: Optional[StorageControllerChipset] = None
    ports: int = 0
    host_io_cache: bool = False
    bootable: bool = False
    devices: List[StorageMedium] = field(default_factory=list)


def max_devices_per_port(bus: Optional[SystemBus]) -> int:
    if bus in (SystemBus.IDE, SystemBus.FLOPPY):
        return 2
    return 1


def bus_and_chipset(token: str, *, key: Optional[str] = None) -> Tuple[SystemBus, StorageControllerChipset]:
    try:
        return CONTROLLER_TYPES[token]
    except KeyError:
        raise UnsupportedValueError("storage controller type", token, CONTROLLER_TYPES, key=key) from None


def parse_storage_controllers(props: PropMap) -> List[StorageController]:
    controllers: List[StorageController] = []
    for i in range(MAX_CONTROLLERS):
        name = props.get(f"storagecontrollername{i}")
        if name is None:
            continue
        type_key = f"storagecontrollertype{i}"
        bus, chipset = bus_and_chipset(props.get(type_key, ""), key=type_key)
        if bus is SystemBus.UNKNOWN:
            LOGGER.debug("Controller %r reported with unknown type", name)
        ports = parse_uint(props, f"storagecontrollerportcount{i}")
        controllers.append(
            StorageController(
                name=name,
                bus=bus,
                chipset=chipset,
                ports=ports,
                # showvminfo never reports the host I/O cache setting
                host_io_cache=False,
                bootable=on_off(props.get(f"storagecontrollerbootable{i}")),
                devices=_parse_media(name, bus, ports, props),
            )
        )
    return controllers


def _parse_media(name: str, bus: SystemBus, ports: int, props: PropMap) -> List[StorageMedium]:
    media: List[StorageMedium] = []
    for port in range(ports):
        for device in range(max_devices_per_port(bus)):
            # "SATA-0-0"="/vms/disk.vdi" and "SATA-ImageUUID-0-0"="8c80c269-..."
            medium = props.get(f"{name}-{port}-{device}")
            if medium is None:
                continue
            sm = StorageMedium(
                port=port,
                device=device,
                medium=medium,
                uuid=props.get(f"{name}-ImageUUID-{port}-{device}", ""),
            )
            if not sm.is_none():
                media.append(sm)
    return media


def device_media(controllers: List[StorageController]) -> List[str]:
    """Every non-empty medium attached to any of the controllers."""
    return [d.medium for sc in controllers for d in sc.devices if d.medium]


def storagectl_add_args(vm: str, name: str, ctl: StorageController) -> List[str]:
    args = ["storagectl", vm, "--name", name]
    if ctl.bus is not None:
        args += ["--add", ctl.bus.value]
    if ctl.ports > 0:
        args += ["--portcount", str(ctl.ports)]
    if ctl.chipset is not None:
        args += ["--controller", ctl.chipset.value]
    args += ["--hostiocache", bool_to_on_off(ctl.host_io_cache)]
    args += ["--bootable", bool_to_on_off(ctl.bootable)]
    return args


def storagectl_remove_args(vm: str, name: str) -> List[str]:
    return ["storagectl", vm, "--name", name, "--remove"]


def storageattach_args(vm: str, ctl_name: str, medium: StorageMedium) -> List[str]:
    return _attach_args(vm, ctl_name, medium, medium.uuid_or_medium)


def storagedetach_args(vm: str, ctl_name: str, medium: StorageMedium) -> List[str]:
    return _attach_args(vm, ctl_name, medium, "none")


def _attach_args(vm: str, ctl_name: str, medium: StorageMedium, target: str) -> List[str]:
    if medium.drive_type is None:
        raise VBoxError(f"drive type required to (de)attach port {medium.port} device {medium.device} of {ctl_name}")
    return [
        "storageattach", vm,
        "--storagectl", ctl_name,
        "--port", str(medium.port),
        "--device", str(medium.device),
        "--type", medium.drive_type.value,
        "--medium", target,
    ]
