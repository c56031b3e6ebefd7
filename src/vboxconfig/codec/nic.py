"""Network adapter decoding and ``modifyvm`` argument generation."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from ..cmdargs import CmdArg
from ..errors import ProtocolError, UnsupportedValueError
from .props import PropMap

MAX_NICS = 4


class NICNetwork(str, Enum):
    ABSENT = "none"
    DISCONNECTED = "null"
    NAT = "nat"
    NAT_NETWORK = "natnetwork"
    BRIDGED = "bridged"
    INTERNAL = "intnet"
    HOSTONLY = "hostonly"
    GENERIC = "generic"

    @classmethod
    def parse(cls, value: str, *, key: Optional[str] = None) -> "NICNetwork":
        try:
            return cls(value)
        except ValueError:
            raise UnsupportedValueError("NIC network mode", value, [n.value for n in cls], key=key) from None


class NICHardware(str, Enum):
    AMD_PCNET_PCI_II = "Am79C970A"
    AMD_PCNET_FAST_III = "Am79C973"
    INTEL_PRO1000_MT_DESKTOP = "82540EM"
    INTEL_PRO1000_T_SERVER = "82543GC"
    INTEL_PRO1000_MT_SERVER = "82545EM"
    VIRTIO = "virtio"

    @classmethod
    def parse(cls, value: str, *, key: Optional[str] = None) -> "NICHardware":
        try:
            return cls(value)
        except ValueError:
            raise UnsupportedValueError("NIC hardware", value, [h.value for h in cls], key=key) from None


@dataclass
class NIC:
    network: NICNetwork
    hardware: NICHardware
    mac_addr: str = ""
    host_interface: str = ""
    network_name: str = ""


class PFProto(str, Enum):
    TCP = "tcp"
    UDP = "udp"


@dataclass
class PFRule:
    """NAT port forwarding rule, ``<proto>,<hostip>,<hostport>,<guestip>,<guestport>``."""

    proto: PFProto
    host_port: int
    guest_port: int
    host_ip: str = ""
    guest_ip: str = ""

    def format(self) -> str:
        return f"{self.proto.value},{self.host_ip},{self.host_port},{self.guest_ip},{self.guest_port}"


def parse_nics(props: PropMap) -> List[NIC]:
    nics: List[NIC] = []
    for i in range(1, MAX_NICS + 1):
        raw = props.get(f"nic{i}")
        if raw is None or raw == NICNetwork.ABSENT.value:
            break
        network = NICNetwork.parse(raw, key=f"nic{i}")
        hardware = props.get(f"nictype{i}")
        if not hardware:
            raise ProtocolError(f"could not find corresponding 'nictype{i}' for nic{i}={raw!r}")
        mac_addr = props.get(f"macaddress{i}")
        if not mac_addr:
            raise ProtocolError(f"could not find corresponding 'macaddress{i}' for nic{i}={raw!r}")
        nic = NIC(network=network, hardware=NICHardware.parse(hardware, key=f"nictype{i}"), mac_addr=mac_addr)
        if network is NICNetwork.HOSTONLY:
            nic.host_interface = props.get(f"hostonlyadapter{i}", "")
        elif network is NICNetwork.BRIDGED:
            nic.host_interface = props.get(f"bridgeadapter{i}", "")
        elif network is NICNetwork.NAT:
            # showvminfo reports the default NAT engine network as natnet<N>="nat"
            natnet = props.get(f"natnet{i}", "")
            nic.network_name = "" if natnet == "nat" else natnet
        elif network is NICNetwork.NAT_NETWORK:
            nic.network_name = props.get(f"nat-network{i}", "")
        elif network is NICNetwork.INTERNAL:
            nic.network_name = props.get(f"intnet{i}", "")
        nics.append(nic)
    return nics


def nic_cmd_args(n: int, nic: NIC) -> List[CmdArg]:
    args = [
        CmdArg(f"--nic{n}", nic.network.value),
        CmdArg(f"--nictype{n}", nic.hardware.value),
        CmdArg(f"--cableconnected{n}", "on"),
    ]
    if nic.mac_addr:
        args.append(CmdArg(f"--macaddress{n}", nic.mac_addr))
    if nic.network is NICNetwork.HOSTONLY:
        args.append(CmdArg(f"--hostonlyadapter{n}", nic.host_interface))
    elif nic.network is NICNetwork.BRIDGED:
        args.append(CmdArg(f"--bridgeadapter{n}", nic.host_interface))
    elif nic.network is NICNetwork.NAT:
        args.append(CmdArg(f"--natnet{n}", nic.network_name or "default"))
    elif nic.network is NICNetwork.NAT_NETWORK and nic.network_name:
        args.append(CmdArg(f"--nat-network{n}", nic.network_name))
    elif nic.network is NICNetwork.INTERNAL and nic.network_name:
        args.append(CmdArg(f"--intnet{n}", nic.network_name))
    return args
