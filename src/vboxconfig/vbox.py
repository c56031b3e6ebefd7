"""VirtualBox client: machine lifecycle and configuration on top of the codecs."""
from __future__ import annotations

import logging
import re
import time
from typing import Callable, Dict, List, Optional

from .cmdargs import CmdArg, CmdArgs
from .codec.nic import NIC, PFRule, nic_cmd_args
from .codec.storage import (
    StorageController,
    StorageMedium,
    storageattach_args,
    storagectl_add_args,
    storagectl_remove_args,
    storagedetach_args,
)
from .errors import (
    CommandError,
    MachineExistsError,
    MachineNotFoundError,
    UnsupportedValueError,
    VBoxError,
)
from .machine import Machine, MachineState, machine_from_vminfo, parse_vm_list
from .manage import Manage, version as manage_version
from .networks import DHCP, NATNet, dhcp_add_args, parse_dhcp_servers, parse_nat_networks

LOGGER = logging.getLogger(__name__)

_MACHINE_NOT_FOUND_RES = (
    re.compile(r"Could not find a registered machine named '(.+)'"),
    re.compile(r"Could not find a registered machine with UUID \{.+\}"),
)
NO_EXTRA_DATA = "No value set"
EXTRA_DATA_PREFIX = "Value: "

_STOPPED = (MachineState.POWEROFF, MachineState.ABORTED, MachineState.SAVED)


class VirtualBox:
    """Host-side operations; every read returns a freshly parsed model."""

    def __init__(
        self,
        manage: Manage,
        *,
        poll_interval: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.manage = manage
        self.poll_interval = poll_interval
        self._sleep = sleep

    # Machines

    def get_machine(self, ident: str) -> Machine:
        """Find a machine by name or UUID."""
        try:
            stdout = self.manage.show_vm_info(ident)
        except CommandError as exc:
            if any(regex.search(exc.stderr) for regex in _MACHINE_NOT_FOUND_RES):
                raise MachineNotFoundError(f"machine {ident!r} not found") from exc
            raise
        return machine_from_vminfo(stdout)

    def refresh(self, machine: Machine) -> Machine:
        return self.get_machine(machine.uuid or machine.name)

    def list_machines(self) -> List[Machine]:
        machines: List[Machine] = []
        for name, uuid in parse_vm_list(self.manage.run_out("list", "vms")):
            try:
                machines.append(self.get_machine(name))
            except MachineNotFoundError:
                # Listed but inaccessible machines show up from time to time.
                LOGGER.debug("Skipping listed but unavailable machine %s {%s}", name, uuid)
        return machines

    def create_machine(self, uuid: str, name: str, base_folder: str = "") -> Machine:
        """Create and register a machine; an empty base folder means the default."""
        if not name or not uuid:
            raise VBoxError(f"machine name ({name!r}) or uuid ({uuid!r}) is empty")
        if any(m.name == name for m in self.list_machines()):
            raise MachineExistsError(f"machine {name!r} already exists")
        args = ["createvm", "--uuid", uuid, "--name", name, "--register"]
        if base_folder:
            args += ["--basefolder", base_folder]
        self.manage.run(*args)
        LOGGER.info("Created machine %s {%s}", name, uuid)
        return self.get_machine(name)

    def clone_machine(self, base: str, new_name: str, register: bool = False) -> None:
        args = ["clonevm", base, "--name", new_name]
        if register:
            args.append("--register")
        self.manage.run(*args)

    def modify(self, machine: Machine, *overrides: CmdArg) -> Machine:
        """Write the whole snapshot (plus overrides) with one ``modifyvm`` call."""
        self.manage.run(*machine.modify_args(*overrides))
        return self.refresh(machine)

    # Lifecycle

    def start(self, machine: Machine) -> None:
        if machine.state is MachineState.PAUSED:
            self.manage.run("controlvm", machine.ident, "resume")
        elif machine.state in _STOPPED:
            self.manage.run("startvm", machine.ident, "--type", "headless")

    def save(self, machine: Machine) -> None:
        """Suspend the machine and save its state to disk."""
        if machine.state in _STOPPED:
            return
        if machine.state is MachineState.PAUSED:
            self.start(machine)
        self.manage.run("controlvm", machine.ident, "savestate")

    def pause(self, machine: Machine) -> None:
        if machine.state is MachineState.PAUSED or machine.state in _STOPPED:
            return
        self.manage.run("controlvm", machine.ident, "pause")

    def stop(self, machine: Machine) -> Machine:
        """Press the ACPI power button until the machine is poweroff, aborted or saved."""
        if machine.state in _STOPPED:
            return machine
        if machine.state is MachineState.PAUSED:
            self.start(machine)
        while machine.state not in _STOPPED:
            self.manage.run("controlvm", machine.ident, "acpipowerbutton")
            self._sleep(self.poll_interval)
            machine = self._refresh_settled(machine)
        return machine

    def _refresh_settled(self, machine: Machine) -> Machine:
        # showvminfo reports transient states (stopping, saving...) mid-transition
        while True:
            try:
                return self.refresh(machine)
            except UnsupportedValueError as exc:
                if exc.key != "VMState":
                    raise
                LOGGER.debug("Machine %s in transient state %r", machine.ident, exc.value)
            self._sleep(self.poll_interval)

    def poweroff(self, machine: Machine) -> None:
        """Forceful stop; guest state is lost."""
        if machine.state in _STOPPED:
            return
        self.manage.run("controlvm", machine.ident, "poweroff")

    def restart(self, machine: Machine) -> None:
        if machine.state in (MachineState.PAUSED, MachineState.SAVED):
            self.start(machine)
            machine = self.refresh(machine)
        machine = self.stop(machine)
        self.start(machine)

    def reset(self, machine: Machine) -> None:
        """Forceful restart; guest state is lost."""
        if machine.state in (MachineState.PAUSED, MachineState.SAVED):
            self.start(machine)
        self.manage.run("controlvm", machine.ident, "reset")

    def delete(self, machine: Machine) -> None:
        """Unregister the machine and delete its disk images."""
        self.poweroff(machine)
        self.manage.run("unregistervm", machine.ident, "--delete")

    def unregister(self, machine: Machine) -> None:
        self.poweroff(machine)
        self.manage.run("unregistervm", machine.ident)

    # Hardware

    def disconnect_serial_port(self, machine: Machine, port: int) -> None:
        self.manage.run("modifyvm", machine.ident, f"--uartmode{port}", "disconnected")

    def set_nic(self, machine: Machine, rank: int, nic: NIC) -> None:
        cmd_args = CmdArgs()
        cmd_args.append_args(*nic_cmd_args(rank, nic))
        args = ["modifyvm", machine.ident, *cmd_args.args()]
        LOGGER.debug("set_nic: %s", args)
        self.manage.run(*args)

    def add_natpf(self, machine: Machine, n: int, name: str, rule: PFRule) -> None:
        self.manage.run("controlvm", machine.ident, f"natpf{n}", f"{name},{rule.format()}")

    def del_natpf(self, machine: Machine, n: int, name: str) -> None:
        self.manage.run("controlvm", machine.ident, f"natpf{n}", "delete", name)

    def add_storage_ctl(self, machine: Machine, name: str, ctl: StorageController) -> None:
        self.manage.run(*storagectl_add_args(machine.ident, name, ctl))

    def del_storage_ctl(self, machine: Machine, name: str) -> None:
        self.manage.run(*storagectl_remove_args(machine.ident, name))

    def attach_storage(self, machine: Machine, ctl_name: str, medium: StorageMedium) -> None:
        self.manage.run(*storageattach_args(machine.ident, ctl_name, medium))

    def detach_storage(self, machine: Machine, ctl_name: str, medium: StorageMedium) -> None:
        self.manage.run(*storagedetach_args(machine.ident, ctl_name, medium))

    # Extra data

    def set_extra_data(self, machine: Machine, key: str, value: str) -> None:
        self.manage.run("setextradata", machine.ident, key, value)

    def get_extra_data(self, machine: Machine, key: str) -> Optional[str]:
        """The stored value, or None; ``getextradata`` exits 0 for unknown keys."""
        value = self.manage.run_out("getextradata", machine.ident, key).strip()
        if value.startswith(NO_EXTRA_DATA):
            return None
        return value.removeprefix(EXTRA_DATA_PREFIX)

    def delete_extra_data(self, machine: Machine, key: str) -> None:
        self.manage.run("setextradata", machine.ident, key)

    # Networks

    def dhcp_servers(self) -> Dict[str, DHCP]:
        return parse_dhcp_servers(self.manage.run_out("list", "dhcpservers"))

    def add_internal_dhcp(self, netname: str, dhcp: DHCP) -> None:
        self.manage.run(*dhcp_add_args("--netname", netname, dhcp))

    def add_hostonly_dhcp(self, ifname: str, dhcp: DHCP) -> None:
        self.manage.run(*dhcp_add_args("--ifname", ifname, dhcp))

    def nat_networks(self) -> Dict[str, NATNet]:
        return parse_nat_networks(self.manage.run_out("list", "natnets"))

    # Media

    def unregister_disk(self, ident: str) -> None:
        self._close_medium("disk", ident)

    def unregister_dvd(self, ident: str) -> None:
        self._close_medium("dvd", ident)

    def _close_medium(self, kind: str, ident: str) -> None:
        try:
            self.manage.run("closemedium", kind, ident)
        except CommandError as exc:
            raise VBoxError(f"failed to unregister {kind} {ident!r}: {exc.stderr.strip()}") from exc

    def clone_hd(self, source: str, target: str) -> None:
        self.manage.run("clonehd", source, target)

    def version(self) -> str:
        return manage_version(self.manage)
