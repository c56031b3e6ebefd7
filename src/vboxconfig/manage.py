"""The VBoxManage (host) / VBoxControl (guest) command runner."""
from __future__ import annotations

import logging
import os
import platform
import shutil
import subprocess
import threading
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import List, Optional, Tuple

from .errors import CommandError, CommandNotFoundError
from .util.subprocess import run as run_process

LOGGER = logging.getLogger(__name__)

ENV_PROGRAM_KEY = "VBOXCONFIG_PROGRAM"
ENV_INSTALL_PATH_KEY = "VBOX_INSTALL_PATH"
WINDOWS_INSTALL_DIR = Path("C:\\", "Program Files", "Oracle", "VirtualBox")


@dataclass(frozen=True)
class Manage:
    """Runs one VirtualBox management program with an argument list.

    Instances are cheap to copy; copies made by :meth:`with_sudo` share the
    lock that serializes ``showvminfo``, because concurrent ``showvminfo``
    calls on one VM can fail with ``E_ACCESSDENIED``.
    """

    program: str
    guest: bool = False
    sudoer: bool = False
    sudo: bool = False
    vminfo_lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def is_guest(self) -> bool:
        return self.guest

    def with_sudo(self) -> "Manage":
        return replace(self, sudo=True)

    def argv(self, args: Tuple[str, ...]) -> List[str]:
        if self.sudo and self.sudoer and platform.system() != "Windows":
            return ["sudo", self.program, *args]
        return [self.program, *args]

    def _run(self, args: Tuple[str, ...]) -> subprocess.CompletedProcess:
        argv = self.argv(args)
        try:
            result = run_process(argv)
        except FileNotFoundError as exc:
            raise CommandNotFoundError(f"{self.program} not found") from exc
        except subprocess.CalledProcessError as exc:
            LOGGER.debug("Stdout@%s =>[[ %s ]]", argv, exc.stdout)
            LOGGER.debug("Stderr@%s =>[[ %s ]]", argv, exc.stderr)
            raise CommandError(argv, exc.returncode, exc.stdout or "", exc.stderr or "") from exc
        if result.stderr:
            LOGGER.debug("Stderr@%s =>[[ %s ]]", argv, result.stderr)
        return result

    def run(self, *args: str) -> None:
        self._run(args)

    def run_out(self, *args: str) -> str:
        return self._run(args).stdout

    def run_out_err(self, *args: str) -> Tuple[str, str]:
        result = self._run(args)
        return result.stdout, result.stderr

    def show_vm_info(self, vm: str) -> str:
        with self.vminfo_lock:
            stdout, _ = self.run_out_err("showvminfo", vm, "--machinereadable")
        return stdout

    @classmethod
    def discover(cls) -> "Manage":
        """VBoxManage if installed, else VBoxControl (inside a guest), else ``false``."""
        sudoer = is_sudoer()
        explicit = os.getenv(ENV_PROGRAM_KEY)
        if explicit:
            manage = cls(program=explicit, guest=Path(explicit).stem.lower() == "vboxcontrol", sudoer=sudoer)
        else:
            try:
                manage = cls(program=lookup_program("VBoxManage"), sudoer=sudoer)
            except CommandNotFoundError:
                try:
                    manage = cls(program=lookup_program("VBoxControl"), guest=True, sudoer=sudoer)
                except CommandNotFoundError:
                    LOGGER.warning("Neither VBoxManage nor VBoxControl found; commands will fail")
                    manage = cls(program="false")
        LOGGER.debug("manage: %s", manage)
        return manage


def lookup_program(name: str) -> str:
    """Locate a VirtualBox executable (``VBOX_INSTALL_PATH`` is honoured on Windows)."""
    if platform.system() == "Windows":
        install_path = os.getenv(ENV_INSTALL_PATH_KEY)
        if install_path:
            return str(Path(install_path) / f"{name}.exe")
        candidate = WINDOWS_INSTALL_DIR / f"{name}.exe"
        if candidate.exists():
            return str(candidate)
    found = shutil.which(name)
    if found is None:
        raise CommandNotFoundError(f"{name} not found in PATH")
    return str(Path(found).resolve())


def is_sudoer() -> bool:
    if platform.system() != "Linux":
        return False
    import grp

    try:
        names = {grp.getgrgid(gid).gr_name for gid in os.getgroups()}
    except KeyError as exc:
        LOGGER.debug("Error getting sudoer status: %s", exc)
        return False
    return "sudo" in names


def version(manage: Manage) -> str:
    """VirtualBox version, e.g. ``6.1.34r150636``."""
    stdout, _ = manage.run_out_err("--version")
    return stdout.strip()


def get_manage(explicit: Optional[str] = None) -> Manage:
    if explicit:
        return Manage(program=explicit, sudoer=is_sudoer())
    return Manage.discover()
