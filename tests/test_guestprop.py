from __future__ import annotations

import pytest

from conftest import FakeManage
from vboxconfig.errors import CommandError, ProtocolError
from vboxconfig.guestprop import (
    GuestProperty,
    GuestPropertyWatcher,
    delete_guest_property,
    get_guest_property,
    set_guest_property,
    wait_guest_property,
)

WAIT = ("guestproperty", "wait", "builder", "/VM/*")


def test_host_side_commands_name_the_vm(fake_manage) -> None:
    fake_manage.respond(("guestproperty", "get", "builder", "/VM/ip"), "Value: 10.0.2.15\n")

    set_guest_property(fake_manage, "builder", "/VM/ip", "10.0.2.15")
    assert get_guest_property(fake_manage, "builder", "/VM/ip") == "10.0.2.15"
    delete_guest_property(fake_manage, "builder", "/VM/ip")

    assert fake_manage.calls == [
        ("guestproperty", "set", "builder", "/VM/ip", "10.0.2.15"),
        ("guestproperty", "get", "builder", "/VM/ip"),
        ("guestproperty", "delete", "builder", "/VM/ip"),
    ]
    assert fake_manage.sudo_calls == []


def test_guest_side_commands_use_sudo_without_vm() -> None:
    manage = FakeManage(guest=True)

    set_guest_property(manage, "ignored", "/VM/ready", "1")

    assert manage.sudo_calls == [("guestproperty", "set", "/VM/ready", "1")]


def test_get_without_value_line_is_protocol_error(fake_manage) -> None:
    fake_manage.respond(("guestproperty", "get", "builder", "/VM/none"), "No value set!\n")

    with pytest.raises(ProtocolError):
        get_guest_property(fake_manage, "builder", "/VM/none")


def test_wait_parses_name_and_value(fake_manage) -> None:
    fake_manage.respond(WAIT, "Name: /VM/ready, value: yes, flags: TRANSIENT\n")

    assert wait_guest_property(fake_manage, "builder", "/VM/*") == GuestProperty("/VM/ready", "yes")


def test_watcher_yields_changes_until_error(fake_manage) -> None:
    error = CommandError(["VBoxManage"], 1, "", "VM powered off")
    fake_manage.respond(
        WAIT,
        "Name: /VM/a, value: 1, flags: \n",
        "Name: /VM/b, value: 2, flags: TRANSIENT\n",
        error,
    )

    watcher = GuestPropertyWatcher(fake_manage, "builder", "/VM/*", poll_interval=0.01)
    props = list(watcher)
    watcher.join(timeout=5)

    assert props == [GuestProperty("/VM/a", "1"), GuestProperty("/VM/b", "2")]
    assert watcher.error is error


def test_watcher_stops_on_close(fake_manage) -> None:
    fake_manage.respond(WAIT, "Name: /VM/a, value: 1, flags: \n")

    with GuestPropertyWatcher(fake_manage, "builder", "/VM/*", poll_interval=0.01) as watcher:
        first = next(iter(watcher))
    watcher.join(timeout=5)

    assert first == GuestProperty("/VM/a", "1")
    assert watcher.error is None
    assert list(watcher) == []
