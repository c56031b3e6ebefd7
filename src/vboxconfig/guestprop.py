"""Guest properties, from either side of the VM boundary.

On the host the commands go through ``VBoxManage guestproperty <op> <vm> ...``;
inside a guest ``VBoxControl guestproperty <op> ...`` takes no VM argument and
runs through ``sudo``.
"""
from __future__ import annotations

import logging
import queue
import re
import threading
from dataclasses import dataclass
from typing import Iterator, List, Optional

from .errors import ProtocolError, VBoxError
from .manage import Manage

LOGGER = logging.getLogger(__name__)

_GET_RE = re.compile(r"(?m)^Value: ([^,]*)$")
_WAIT_RE = re.compile(r"^Name: ([^,]*), value: ([^,]*), flags:.*$")


@dataclass(frozen=True)
class GuestProperty:
    name: str
    value: str


def _command(manage: Manage, op: str, vm: str, *args: str) -> tuple[Manage, List[str]]:
    if manage.is_guest:
        return manage.with_sudo(), ["guestproperty", op, *args]
    return manage, ["guestproperty", op, vm, *args]


def set_guest_property(manage: Manage, vm: str, prop: str, value: str) -> None:
    runner, args = _command(manage, "set", vm, prop, value)
    runner.run(*args)


def get_guest_property(manage: Manage, vm: str, prop: str) -> str:
    runner, args = _command(manage, "get", vm, prop)
    out = runner.run_out(*args).strip()
    match = _GET_RE.search(out)
    if match is None:
        raise ProtocolError(f"unexpected guestproperty get output for {prop!r}: {out!r}")
    return match.group(1)


def delete_guest_property(manage: Manage, vm: str, prop: str) -> None:
    runner, args = _command(manage, "delete", vm, prop)
    runner.run(*args)


def wait_guest_property(manage: Manage, vm: str, pattern: str) -> GuestProperty:
    """Block until a property matching ``pattern`` changes."""
    runner, args = _command(manage, "wait", vm, pattern)
    out = runner.run_out(*args).strip()
    match = _WAIT_RE.match(out)
    if match is None:
        raise ProtocolError(f"unexpected guestproperty wait output for {pattern!r}: {out!r}")
    return GuestProperty(match.group(1), match.group(2))


class GuestPropertyWatcher:
    """Stream of changes to properties matching a pattern.

    A background thread repeatedly runs ``guestproperty wait`` and hands each
    change to the consumer through a single-slot queue; the next wait starts
    only after the consumer has taken the previous change. The watcher stops
    on :meth:`close` or on the first command failure, which is kept in
    :attr:`error`. A wait already in progress cannot be interrupted, so the
    thread is a daemon and may outlive :meth:`close` until that wait returns.
    """

    def __init__(self, manage: Manage, vm: str, pattern: str, *, poll_interval: float = 0.1) -> None:
        self.manage = manage
        self.vm = vm
        self.pattern = pattern
        self.error: Optional[VBoxError] = None
        self._poll_interval = poll_interval
        self._stop = threading.Event()
        self._done = threading.Event()
        self._ack = threading.Event()
        self._queue: "queue.Queue[GuestProperty]" = queue.Queue(maxsize=1)
        self._thread = threading.Thread(target=self._run, name=f"guestprop-{vm}", daemon=True)
        self._thread.start()

    def _run(self) -> None:
        try:
            while not self._stop.is_set():
                LOGGER.debug("Waiting for %r changes on %s", self.pattern, self.vm)
                try:
                    prop = wait_guest_property(self.manage, self.vm, self.pattern)
                except VBoxError as exc:
                    LOGGER.debug("Guest property watcher stopped: %s", exc)
                    self.error = exc
                    return
                if not self._handoff(prop):
                    return
        finally:
            self._done.set()

    def _handoff(self, prop: GuestProperty) -> bool:
        self._ack.clear()
        while not self._stop.is_set():
            try:
                self._queue.put(prop, timeout=self._poll_interval)
                break
            except queue.Full:
                continue
        else:
            return False
        LOGGER.debug("Queued %s", prop)
        while not self._ack.wait(self._poll_interval):
            if self._stop.is_set():
                return False
        return True

    def __iter__(self) -> Iterator[GuestProperty]:
        while True:
            try:
                prop = self._queue.get(timeout=self._poll_interval)
            except queue.Empty:
                if self._done.is_set() or self._stop.is_set():
                    return
                continue
            if self._stop.is_set():
                return
            yield prop
            self._ack.set()

    def close(self) -> None:
        self._stop.set()

    def join(self, timeout: Optional[float] = None) -> None:
        self._thread.join(timeout)

    def __enter__(self) -> "GuestPropertyWatcher":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
