"""DHCP servers and NAT networks from ``VBoxManage list dhcpservers|natnets``.

Both listings are blank-line separated ``Key:   value`` blocks whose key names
changed between VirtualBox releases, e.g. 6.x::

    NetworkName:    sayanat
    IP:             10.12.0.1
    Network:        10.12.0.0/24
    DHCP Enabled:   Yes

and 7.x::

    Name:         sayanat
    Gateway:      10.12.0.1
    Network:      10.12.0.0/24
    DHCP Server:  Yes
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from ipaddress import IPv4Address, IPv4Interface, IPv4Network, IPv6Network
from typing import Dict, List, Optional

from .codec.props import PropMap, Stream, parse_colon_records
from .errors import ParseError, VBoxError

LOGGER = logging.getLogger(__name__)

YES = "yes"

DHCP_NAME_KEYS = ("networkname", "name")
NATNET_NAME_KEYS = ("Name", "NetworkName")


@dataclass
class DHCP:
    network_name: str
    ipv4: Optional[IPv4Interface] = None
    lower_ip: Optional[IPv4Address] = None
    upper_ip: Optional[IPv4Address] = None
    enabled: bool = False

    def __str__(self) -> str:
        return (
            f"DHCP[{self.network_name}, net={self.ipv4}, start={self.lower_ip}, "
            f"stop={self.upper_ip}, enable={self.enabled}]"
        )


@dataclass
class NATNet:
    name: str
    ipv4: Optional[IPv4Interface] = None
    ipv6: Optional[IPv6Network] = None
    ipv6_enabled: bool = False
    dhcp: bool = False
    enabled: bool = False


def _first(record: PropMap, *keys: str) -> Optional[str]:
    for key in keys:
        if key in record:
            return record[key]
    return None


def _ipv4(value: Optional[str], key: str) -> Optional[IPv4Address]:
    if not value:
        return None
    try:
        return IPv4Address(value)
    except ValueError:
        raise ParseError("expected an IPv4 address", key=key, value=value) from None


def _yes(value: Optional[str]) -> bool:
    return (value or "").strip().lower() == YES


def parse_dhcp_servers(stream: Stream) -> Dict[str, DHCP]:
    """DHCP servers keyed by network name."""
    servers: Dict[str, DHCP] = {}
    records = parse_colon_records(stream, DHCP_NAME_KEYS, case_insensitive=True)
    for name, record in records.items():
        # "IP" became "Dhcpd IP" and the case of the range keys changed in 6.1.
        ip = _ipv4(_first(record, "ip", "dhcpd ip"), "ip")
        mask = record.get("networkmask")
        ipv4 = None
        if ip is not None:
            try:
                ipv4 = IPv4Interface(f"{ip}/{mask}" if mask else f"{ip}/32")
            except ValueError:
                raise ParseError("expected an IPv4 netmask", key="networkmask", value=mask) from None
        servers[name] = DHCP(
            network_name=name,
            ipv4=ipv4,
            lower_ip=_ipv4(record.get("loweripaddress"), "loweripaddress"),
            upper_ip=_ipv4(record.get("upperipaddress"), "upperipaddress"),
            enabled=_yes(record.get("enabled")),
        )
    LOGGER.debug("Parsed %d DHCP server(s)", len(servers))
    return servers


def parse_nat_networks(stream: Stream) -> Dict[str, NATNet]:
    """NAT networks keyed by name."""
    natnets: Dict[str, NATNet] = {}
    for name, record in parse_colon_records(stream, NATNET_NAME_KEYS).items():
        natnet = NATNet(
            name=name,
            dhcp=_yes(_first(record, "DHCP Enabled", "DHCP Server")),
            enabled=_yes(record.get("Enabled")),
            ipv6_enabled=_yes(_first(record, "IPv6 Enabled", "IPv6")),
        )
        gateway = _ipv4(_first(record, "IP", "Gateway"), "Gateway")
        network = record.get("Network")
        if network:
            try:
                net = IPv4Network(network, strict=False)
            except ValueError:
                raise ParseError("expected an IPv4 CIDR network", key="Network", value=network) from None
            address = gateway if gateway is not None else net.network_address
            natnet.ipv4 = IPv4Interface(f"{address}/{net.prefixlen}")
        elif gateway is not None:
            natnet.ipv4 = IPv4Interface(f"{gateway}/32")
        prefix = record.get("IPv6 Prefix")
        if prefix:
            try:
                natnet.ipv6 = IPv6Network(prefix, strict=False)
            except ValueError:
                raise ParseError("expected an IPv6 prefix", key="IPv6 Prefix", value=prefix) from None
        natnets[name] = natnet
    LOGGER.debug("Parsed %d NAT network(s)", len(natnets))
    return natnets


def dhcp_add_args(kind: str, name: str, dhcp: DHCP) -> List[str]:
    """``dhcpserver add`` arguments; ``kind`` is ``--netname`` or ``--ifname``."""
    if dhcp.ipv4 is None or dhcp.lower_ip is None or dhcp.upper_ip is None:
        raise VBoxError(f"DHCP server for {name!r} needs an address, netmask and range")
    return [
        "dhcpserver", "add", kind, name,
        "--ip", str(dhcp.ipv4.ip),
        "--netmask", str(dhcp.ipv4.netmask),
        "--lowerip", str(dhcp.lower_ip),
        "--upperip", str(dhcp.upper_ip),
        "--enable" if dhcp.enabled else "--disable",
    ]
