"""Helpers for transparent proxying: original destinations, forwarding knobs, display."""

from __future__ import annotations

import ipaddress
import os
import re
from collections.abc import Iterable
from typing import Union

import dns.name
import dns.rdata
import dns.rdatatype
import dns.rrset

DEFAULT_PROC_ROOT = "/proc/sys"

_SOL_IP = 0
_IP_RECVORIGDSTADDR = 20
_SOL_IPV6 = 41
_IPV6_RECVORIGDSTADDR = 74

_GENERIC_TYPE = re.compile(r"TYPE\d+")

Address = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


def retrieve_original_dest(
    ancillary: Iterable[tuple[int, int, bytes]],
) -> tuple[Address, int] | None:
    """Find the original destination in ancillary data as returned by ``recvmsg``.

    Returns ``(address, port)``, or None when no such message is present.
    """
    for level, msg_type, data in ancillary:
        data = bytes(data)
        if level == _SOL_IP and msg_type == _IP_RECVORIGDSTADDR:
            if len(data) < 8:
                raise ValueError("truncated IPv4 original destination")
            port = int.from_bytes(data[2:4], "big")
            return ipaddress.IPv4Address(data[4:8]), port
        if level == _SOL_IPV6 and msg_type == _IPV6_RECVORIGDSTADDR:
            if len(data) < 24:
                raise ValueError("truncated IPv6 original destination")
            port = int.from_bytes(data[2:4], "big")
            return ipaddress.IPv6Address(data[8:24]), port
    return None


def _conf_path(proc_root: str, version: int, ifname: str, knob: str) -> str:
    return os.path.join(proc_root, "net", f"ipv{version}", "conf", ifname, knob)


def _read_value(path: str) -> str:
    with open(path, encoding="ascii", errors="replace") as f:
        return f.read().strip()


def _write_value(path: str, val: str) -> None:
    with open(path, "w", encoding="ascii") as f:
        f.write(val)


def _check_ip_forward(ifname: str, version: int, proc_root: str) -> None:
    path = _conf_path(proc_root, version, ifname, "forwarding")
    if _read_value(path) != "1":
        raise RuntimeError(f"ipforward on {ifname} is off: {path}; see docs of dae for help")


def check_ip_forward(ifname: str, proc_root: str = DEFAULT_PROC_ROOT) -> None:
    """Raise unless forwarding is on for both IPv4 and IPv6 on ``ifname``."""
    _check_ip_forward(ifname, 4, proc_root)
    _check_ip_forward(ifname, 6, proc_root)


def set_forwarding(ifname: str, val: str, proc_root: str = DEFAULT_PROC_ROOT) -> None:
    """Set IPv4 and IPv6 forwarding on ``ifname``; failures are ignored."""
    for version in (4, 6):
        try:
            _write_value(_conf_path(proc_root, version, ifname, "forwarding"), val)
        except OSError:
            pass


def set_ipv4_forward(val: str, proc_root: str = DEFAULT_PROC_ROOT) -> None:
    """Set the global IPv4 forwarding switch."""
    _write_value(os.path.join(proc_root, "net", "ipv4", "ip_forward"), val)


def check_send_redirects(ifname: str, proc_root: str = DEFAULT_PROC_ROOT) -> None:
    """Raise unless IPv4 ICMP redirects are disabled on ``ifname``."""
    path = _conf_path(proc_root, 4, ifname, "send_redirects")
    if _read_value(path) != "0":
        raise RuntimeError(f"send_directs on {ifname} is on: {path}; see docs of dae for help")


def set_send_redirects(ifname: str, val: str, proc_root: str = DEFAULT_PROC_ROOT) -> None:
    """Set IPv4 send_redirects on ``ifname``; failures are ignored."""
    try:
        _write_value(_conf_path(proc_root, 4, ifname, "send_redirects"), val)
    except OSError:
        pass


def process_name_to_string(pname: bytes) -> str:
    """A NUL-padded process name as text."""
    return bytes(pname).rstrip(b"\x00").decode("utf-8", "replace")


def mac_to_string(mac: bytes) -> str:
    """Colon-separated lower-case hex, as in ``02:00:00:00:00:01``."""
    return ":".join(f"{b:02x}" for b in bytes(mac))


def qtype_to_string(qtype: int) -> str:
    """Mnemonic of a DNS record type, or its number when it has none."""
    text = dns.rdatatype.to_text(qtype)
    if _GENERIC_TYPE.fullmatch(text):
        return str(qtype)
    return text


def format_dns_record(name: Union[str, dns.name.Name], rdata: dns.rdata.Rdata) -> str:
    """Render one record as ``name(TYPE): value``."""
    if rdata.rdtype in (dns.rdatatype.A, dns.rdatatype.AAAA):
        body = str(rdata.address)
    elif rdata.rdtype == dns.rdatatype.CNAME:
        body = rdata.target.to_text()
    else:
        body = rdata.to_text()
    return f"{name}({qtype_to_string(rdata.rdtype)}): {body}"


def format_dns_records(rrsets: Iterable[dns.rrset.RRset]) -> str:
    """Render every record of the given record sets, separated by ``; ``."""
    return "; ".join(
        format_dns_record(rrset.name, rdata) for rrset in rrsets for rdata in rrset
    )