from __future__ import annotations

import pytest

from vboxconfig.codec.nic import (
    NIC,
    NICHardware,
    NICNetwork,
    PFProto,
    PFRule,
    nic_cmd_args,
    parse_nics,
)
from vboxconfig.errors import ProtocolError, UnsupportedValueError


def _tokens(n: int, nic: NIC) -> list[str]:
    return [token for arg in nic_cmd_args(n, nic) for token in arg.tokens()]


def test_parse_stops_at_first_absent_nic() -> None:
    props = {
        "nic1": "nat",
        "nictype1": "82540EM",
        "macaddress1": "080027A1B2C3",
        "natnet1": "nat",
        "nic2": "none",
        "nic3": "bridged",
        "nictype3": "virtio",
        "macaddress3": "080027000003",
    }

    nics = parse_nics(props)

    assert nics == [
        NIC(network=NICNetwork.NAT, hardware=NICHardware.INTEL_PRO1000_MT_DESKTOP, mac_addr="080027A1B2C3"),
    ]


def test_parse_reads_mode_specific_names() -> None:
    props = {
        "nic1": "hostonly", "nictype1": "virtio", "macaddress1": "0800270000A1", "hostonlyadapter1": "vboxnet0",
        "nic2": "bridged", "nictype2": "82545EM", "macaddress2": "0800270000A2", "bridgeadapter2": "eth0",
        "nic3": "natnetwork", "nictype3": "Am79C973", "macaddress3": "0800270000A3", "nat-network3": "lab",
        "nic4": "intnet", "nictype4": "82543GC", "macaddress4": "0800270000A4", "intnet4": "backplane",
    }

    nics = parse_nics(props)

    assert [n.host_interface for n in nics] == ["vboxnet0", "eth0", "", ""]
    assert [n.network_name for n in nics] == ["", "", "lab", "backplane"]


def test_missing_paired_keys_are_protocol_errors() -> None:
    with pytest.raises(ProtocolError, match="nictype1"):
        parse_nics({"nic1": "nat", "macaddress1": "080027A1B2C3"})
    with pytest.raises(ProtocolError, match="macaddress1"):
        parse_nics({"nic1": "nat", "nictype1": "virtio"})


def test_unknown_network_mode() -> None:
    with pytest.raises(UnsupportedValueError, match="hostonly"):
        parse_nics({"nic1": "cloud", "nictype1": "virtio", "macaddress1": "080027A1B2C3"})


def test_nat_nic_defaults_network() -> None:
    nic = NIC(network=NICNetwork.NAT, hardware=NICHardware.VIRTIO)

    assert _tokens(1, nic) == [
        "--nic1", "nat", "--nictype1", "virtio", "--cableconnected1", "on", "--natnet1", "default",
    ]


def test_hostonly_nic_args() -> None:
    nic = NIC(
        network=NICNetwork.HOSTONLY,
        hardware=NICHardware.INTEL_PRO1000_MT_DESKTOP,
        mac_addr="080027D4E5F6",
        host_interface="vboxnet0",
    )

    assert _tokens(2, nic) == [
        "--nic2", "hostonly", "--nictype2", "82540EM", "--cableconnected2", "on",
        "--macaddress2", "080027D4E5F6", "--hostonlyadapter2", "vboxnet0",
    ]


def test_internal_nic_without_name_omits_network() -> None:
    assert _tokens(3, NIC(network=NICNetwork.INTERNAL, hardware=NICHardware.VIRTIO))[-2:] == [
        "--cableconnected3", "on",
    ]


def test_port_forwarding_rule_format() -> None:
    rule = PFRule(proto=PFProto.TCP, host_port=2222, guest_port=22, host_ip="127.0.0.1")

    assert rule.format() == "tcp,127.0.0.1,2222,,22"
