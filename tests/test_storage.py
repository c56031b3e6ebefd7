from __future__ import annotations

import pytest

from vboxconfig.codec.storage import (
    DriveType,
    StorageController,
    StorageControllerChipset,
    StorageMedium,
    SystemBus,
    device_media,
    parse_storage_controllers,
    storageattach_args,
    storagectl_add_args,
    storagectl_remove_args,
    storagedetach_args,
)
from vboxconfig.errors import ParseError, UnsupportedValueError, VBoxError


def _controller(i: int, name: str, token: str, ports: str, bootable: str = "on") -> dict[str, str]:
    return {
        f"storagecontrollername{i}": name,
        f"storagecontrollertype{i}": token,
        f"storagecontrollerportcount{i}": ports,
        f"storagecontrollerbootable{i}": bootable,
    }


def test_unknown_controller_type_is_data() -> None:
    props = _controller(5, "NVMe", "unknown", "1")

    [ctl] = parse_storage_controllers(props)

    assert ctl.bus == "unknown"
    assert ctl.chipset == "unknown"
    assert ctl.bus is SystemBus.UNKNOWN


def test_unrecognized_controller_type_is_fatal() -> None:
    with pytest.raises(UnsupportedValueError) as excinfo:
        parse_storage_controllers(_controller(0, "Weird", "Ramdisk", "1"))

    assert excinfo.value.key == "storagecontrollertype0"
    assert "IntelAhci" in excinfo.value.supported


def test_unparsable_port_count_is_fatal() -> None:
    with pytest.raises(ParseError, match="storagecontrollerportcount1"):
        parse_storage_controllers(_controller(1, "SATA", "IntelAhci", "many"))


def test_controllers_in_index_order_and_devices_sorted() -> None:
    props = {
        **_controller(3, "SATA", "IntelAhci", "3", bootable="off"),
        **_controller(0, "IDE", "PIIX4", "2"),
        "SATA-2-0": "/vms/data.vdi",
        "SATA-0-0": "/vms/root.vdi",
        "SATA-ImageUUID-0-0": "8c80c269-4a6b-4f8e-b1d2-c3d4e5f60718",
        "SATA-1-0": "none",
        "IDE-1-1": "/iso/tools.iso",
        "IDE-0-1": "emptydrive",
        "IDE-0-0": "none",
    }

    controllers = parse_storage_controllers(props)

    assert [ctl.name for ctl in controllers] == ["IDE", "SATA"]
    ide, sata = controllers
    assert (ide.bus, ide.chipset, ide.ports, ide.bootable) == (
        SystemBus.IDE, StorageControllerChipset.PIIX4, 2, True,
    )
    assert [(d.port, d.device, d.medium) for d in ide.devices] == [(0, 1, "emptydrive"), (1, 1, "/iso/tools.iso")]
    assert [(d.port, d.device) for d in sata.devices] == [(0, 0), (2, 0)]
    assert sata.devices[0].uuid == "8c80c269-4a6b-4f8e-b1d2-c3d4e5f60718"
    assert sata.bootable is False
    assert all(not ctl.host_io_cache for ctl in controllers)
    assert device_media(controllers) == ["emptydrive", "/iso/tools.iso", "/vms/root.vdi", "/vms/data.vdi"]


def test_sata_reads_only_device_zero() -> None:
    props = {**_controller(1, "SATA", "IntelAhci", "1"), "SATA-0-1": "/vms/ignored.vdi"}

    [sata] = parse_storage_controllers(props)

    assert sata.devices == []


def test_storagectl_add_and_remove_args() -> None:
    ctl = StorageController(
        name="SATA", bus=SystemBus.SATA, chipset=StorageControllerChipset.INTEL_AHCI, ports=4, bootable=True
    )

    assert storagectl_add_args("builder", "SATA", ctl) == [
        "storagectl", "builder", "--name", "SATA",
        "--add", "sata", "--portcount", "4", "--controller", "IntelAHCI",
        "--hostiocache", "off", "--bootable", "on",
    ]
    assert storagectl_add_args("builder", "Bare", StorageController(name="Bare")) == [
        "storagectl", "builder", "--name", "Bare", "--hostiocache", "off", "--bootable", "off",
    ]
    assert storagectl_remove_args("builder", "SATA") == ["storagectl", "builder", "--name", "SATA", "--remove"]


def test_attach_prefers_uuid_and_detach_uses_none() -> None:
    medium = StorageMedium(port=1, device=0, drive_type=DriveType.HDD, medium="/vms/a.vdi", uuid="1234")

    assert storageattach_args("builder", "SATA", medium)[-2:] == ["--medium", "1234"]
    assert storagedetach_args("builder", "SATA", medium) == [
        "storageattach", "builder", "--storagectl", "SATA",
        "--port", "1", "--device", "0", "--type", "hdd", "--medium", "none",
    ]


def test_attach_requires_drive_type() -> None:
    with pytest.raises(VBoxError, match="drive type"):
        storageattach_args("builder", "SATA", StorageMedium(port=0, device=0, medium="/vms/a.vdi"))
