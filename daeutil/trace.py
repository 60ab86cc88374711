"""Kernel symbol lookup and formatting of socket-buffer trace events."""

from __future__ import annotations

import bisect
import ipaddress
import re
import struct
import sys
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

ETH_P_IP = 0x0800
IPPROTO_TCP = 6

_HEX_RE = re.compile(r"[0-9a-fA-F]+")
_EVENT_LAYOUT = "QQQIIII16s32s16s16sHHHBBH"
_TERMINAL_SYMBOLS = ("__kfree_skb", "kfree_skbmem")
_DROP_SYMBOL = "kfree_skb_reason"


def htons(x: int) -> int:
    """Host to network byte order for a 16-bit value."""
    return int.from_bytes(x.to_bytes(2, "big"), sys.byteorder)


def ntohs(x: int) -> int:
    """Network to host byte order for a 16-bit value."""
    return int.from_bytes(x.to_bytes(2, sys.byteorder), "big")


def trim_null(s: str) -> str:
    return s.rstrip("\x00")


def tcp_flags(data: int) -> str:
    """Render TCP flag bits in the style of tcpdump."""
    flags = [
        (0b00100000, "U"),
        (0b00010000, "."),
        (0b00001000, "P"),
        (0b00000100, "R"),
        (0b00000010, "S"),
        (0b00000001, "F"),
    ]
    return "".join(name for bit, name in flags if data & bit)


@dataclass(frozen=True)
class Symbol:
    type: str
    name: str
    addr: int


class Kallsyms:
    """A table of kernel symbols sorted by address."""

    def __init__(self, symbols: Iterable[Symbol]) -> None:
        ordered = list(symbols)
        self._by_name = {s.name: s for s in ordered}
        self._by_addr = {s.addr: s for s in ordered}
        self._symbols = sorted(ordered, key=lambda s: s.addr)
        self._addrs = [s.addr for s in self._symbols]

    @classmethod
    def parse(cls, lines: Iterable[str]) -> "Kallsyms":
        """Build a table from lines of the form ``addr type name``."""
        symbols = []
        for line in lines:
            parts = line.split()
            if len(parts) < 3:
                continue
            if not _HEX_RE.fullmatch(parts[0]):
                continue
            addr = int(parts[0], 16)
            if addr >= 1 << 64:
                continue
            symbols.append(Symbol(parts[1], parts[2], addr))
        return cls(symbols)

    @classmethod
    def load(cls, path: str = "/proc/kallsyms") -> "Kallsyms":
        with open(path, encoding="utf-8", errors="replace") as f:
            return cls.parse(f)

    def __len__(self) -> int:
        return len(self._symbols)

    def by_name(self, name: str) -> Symbol | None:
        return self._by_name.get(name)

    def by_addr(self, addr: int) -> Symbol | None:
        return self._by_addr.get(addr)

    def nearest(self, addr: int) -> Symbol:
        """The symbol at ``addr`` or the closest one below it."""
        if not self._symbols:
            raise LookupError("symbol table is empty")
        idx = bisect.bisect_left(self._addrs, addr)
        if idx == len(self._symbols):
            return self._symbols[-1]
        if self._addrs[idx] == addr:
            return self._symbols[idx]
        if idx == 0:
            return self._symbols[0]
        return self._symbols[idx - 1]


@dataclass
class TraceEvent:
    """One record emitted by the kernel tracing program."""

    pc: int = 0
    skb: int = 0
    second_param: int = 0
    mark: int = 0
    netns: int = 0
    ifindex: int = 0
    pid: int = 0
    ifname: bytes = field(default=b"\x00" * 16)
    pname: bytes = field(default=b"\x00" * 32)
    saddr: bytes = field(default=b"\x00" * 16)
    daddr: bytes = field(default=b"\x00" * 16)
    sport: int = 0
    dport: int = 0
    l3_proto: int = 0
    l4_proto: int = 0
    tcp_flags: int = 0
    payload_len: int = 0

    @classmethod
    def from_bytes(cls, raw: bytes, byteorder: str = sys.byteorder) -> "TraceEvent":
        prefix = "<" if byteorder == "little" else ">"
        try:
            values = struct.unpack_from(prefix + _EVENT_LAYOUT, raw)
        except struct.error as exc:
            raise ValueError(f"bad trace event: {exc}") from exc
        return cls(*values)


def _format_ip(raw: bytes, v4: bool) -> str:
    if v4:
        return str(ipaddress.IPv4Address(raw[:4]))
    addr = ipaddress.IPv6Address(raw[:16])
    if addr.ipv4_mapped is not None:
        return str(addr.ipv4_mapped)
    return str(addr)


def _text(raw: bytes) -> str:
    return trim_null(raw.decode("utf-8", "replace"))


class SkbTracer:
    """Collects events per socket buffer and renders them when the buffer is freed."""

    def __init__(
        self,
        kallsyms: Kallsyms,
        kfree_skb_reasons: Mapping[int, str] | None = None,
        drop_only: bool = False,
    ) -> None:
        self._kallsyms = kallsyms
        self._reasons = dict(kfree_skb_reasons or {})
        self._drop_only = drop_only
        self._events: dict[int, list[TraceEvent]] = {}
        self._names: dict[int, list[str]] = {}

    def feed(self, event: TraceEvent) -> list[str]:
        """Record an event; return the rendered lines once its buffer is freed."""
        events = self._events.setdefault(event.skb, [])
        names = self._names.setdefault(event.skb, [])
        events.append(event)
        sym = self._kallsyms.nearest(event.pc)
        names.append(sym.name)
        if sym.name not in _TERMINAL_SYMBOLS:
            return []
        if self._drop_only and _DROP_SYMBOL not in names:
            return []
        lines = [self._render(ev, event) for ev in events]
        del self._events[event.skb]
        del self._names[event.skb]
        return lines

    def _render(self, ev: TraceEvent, last: TraceEvent) -> str:
        parts = [
            f"{ev.skb:x} mark={ev.mark:x} netns={ev.netns:010d} "
            f"if={ev.ifindex}({_text(ev.ifname)}) proc={ev.pid}({_text(ev.pname)}) "
        ]
        if last.l3_proto == ETH_P_IP:
            parts.append(
                f"{_format_ip(ev.saddr, True)}:{ntohs(ev.sport)} > "
                f"{_format_ip(ev.daddr, True)}:{ntohs(ev.dport)} "
            )
        else:
            parts.append(
                f"[{_format_ip(ev.saddr, False)}]:{ntohs(ev.sport)} > "
                f"[{_format_ip(ev.daddr, False)}]:{ntohs(ev.dport)} "
            )
        if last.l4_proto == IPPROTO_TCP:
            parts.append(f"tcp_flags={tcp_flags(ev.tcp_flags)} ")
        parts.append(f"payload_len={last.payload_len} ")
        name = self._kallsyms.nearest(ev.pc).name
        parts.append(name)
        if name == _DROP_SYMBOL:
            parts.append(f"({self._reasons.get(ev.second_param, '')})")
        return "".join(parts)