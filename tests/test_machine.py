from __future__ import annotations

from pathlib import Path

import pytest

from vboxconfig.cmdargs import CmdArg
from vboxconfig.codec.nic import NICNetwork
from vboxconfig.codec.storage import SystemBus
from vboxconfig.codec.uart import UARTKey, UARTMode, UARTType
from vboxconfig.errors import ParseError, UnsupportedValueError
from vboxconfig.machine import (
    BootDevice,
    Flag,
    Machine,
    MachineState,
    machine_from_props,
    machine_from_vminfo,
    parse_vm_list,
)

FIXTURES = Path(__file__).parent / "fixtures"


def test_machine_from_vminfo_fixture(vminfo_text: str) -> None:
    m = machine_from_vminfo(vminfo_text)

    assert m.name == "builder"
    assert m.uuid == "5d3c7a6e-0c5f-4b8e-9a3b-1f2d3e4c5b6a"
    assert m.state is MachineState.POWEROFF
    assert (m.cpus, m.memory, m.vram) == (2, 2048, 16)
    assert m.base_folder == "/home/ci/VirtualBox VMs/builder"
    assert m.os_type == ""
    assert m.boot_order == [BootDevice.FLOPPY, BootDevice.DVD, BootDevice.DISK, BootDevice.NONE]
    assert Flag.ACPI in m.flag and Flag.X2APIC in m.flag
    assert Flag.HPET not in m.flag and Flag.CPUHOTPLUG not in m.flag
    assert [n.network for n in m.nics] == [NICNetwork.NAT, NICNetwork.HOSTONLY]
    assert m.nics[1].host_interface == "vboxnet0"
    uart1 = m.uarts[UARTKey.UART1]
    assert (uart1.mode, uart1.mode_data, uart1.type) == (UARTMode.FILE, "/tmp/builder-ttyS0.log", UARTType.U16550A)
    assert len(m.uarts.without_off()) == 1
    assert [(c.name, c.bus) for c in m.storage_controllers] == [("IDE", SystemBus.IDE), ("SATA", SystemBus.SATA)]
    assert [d.medium for d in m.storage_controllers[1].devices] == ["/home/ci/VirtualBox VMs/builder/builder.vdi"]


def test_machine_from_file_object() -> None:
    with (FIXTURES / "showvminfo.txt").open() as handle:
        assert machine_from_vminfo(handle).name == "builder"


@pytest.mark.parametrize("key", ["memory", "cpus", "vram"])
def test_sizing_fields_are_required(vminfo_text: str, key: str) -> None:
    lines = [line for line in vminfo_text.splitlines() if not line.startswith(f"{key}=")]

    with pytest.raises(ParseError, match=key):
        machine_from_vminfo(lines)


def test_unknown_state_is_rejected() -> None:
    with pytest.raises(UnsupportedValueError, match="VMState"):
        machine_from_props({"VMState": "teleporting", "memory": "1", "cpus": "1", "vram": "1"})


def test_unknown_boot_device_is_rejected() -> None:
    with pytest.raises(UnsupportedValueError, match="boot1"):
        machine_from_props({"memory": "1", "cpus": "1", "vram": "1", "boot1": "usb"})


def test_modify_args_round_trip_flags(vminfo_text: str) -> None:
    m = machine_from_vminfo(vminfo_text)

    args = m.modify_args()

    assert args[:2] == ["modifyvm", "builder"]
    assert args[2:12] == [
        "--firmware", "bios",
        "--bioslogofadein", "off",
        "--bioslogofadeout", "off",
        "--bioslogodisplaytime", "0",
        "--biosbootmenu", "disabled",
    ]
    assert "--ostype" not in args
    pairs = dict(zip(args[2::2], args[3::2]))
    assert pairs["--cpus"] == "2"
    assert pairs["--acpi"] == "on"
    assert pairs["--hpet"] == "off"
    assert pairs["--x2apic"] == "on"
    assert pairs["--boot4"] == "none"
    assert pairs["--natnet1"] == "default"
    assert "--synthcpu" not in args
    uart = args.index("--uart1")
    assert args[uart:uart + 6] == ["--uart1", "0x03f8", "4", "--uartmode1", "file", "/tmp/builder-ttyS0.log"]
    assert args[-2:] == ["--uart4", "off"]


def test_modify_args_apply_overrides() -> None:
    m = Machine(name="tiny", cpus=1, memory=256, vram=8, os_type="Linux_64")

    args = m.modify_args(CmdArg("--memory", "1024"), CmdArg.deletion("--ostype"), CmdArg("--firmware", "efi"))

    assert args.count("--memory") == 1
    assert args[args.index("--memory") + 1] == "1024"
    assert "--ostype" not in args
    assert args[2:4] == ["--firmware", "efi"]


def test_parse_vm_list() -> None:
    pairs = parse_vm_list((FIXTURES / "list-vms.txt").read_text())

    assert pairs == [
        ("builder", "5d3c7a6e-0c5f-4b8e-9a3b-1f2d3e4c5b6a"),
        ("<inaccessible>", "0b1c2d3e-4f50-6172-8394-a5b6c7d8e9f0"),
        ("runner 2", "a1b2c3d4-e5f6-4789-8abc-def012345678"),
    ]
