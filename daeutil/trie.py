"""Static string set for longest-prefix queries.

Keys are strings over a small alphabet. ``Trie.has_prefix`` reports whether
some key is a prefix of a given word. IP prefixes can be stored as
bit strings so that CIDR membership becomes a prefix query.
"""

from __future__ import annotations

import ipaddress
from collections.abc import Iterable
from typing import Union

PrefixLike = Union[
    str,
    ipaddress.IPv4Network,
    ipaddress.IPv6Network,
    ipaddress.IPv4Interface,
    ipaddress.IPv6Interface,
    ipaddress.IPv4Address,
    ipaddress.IPv6Address,
]

_IPV4_MAPPED_PREFIX = 0xFFFF << 32


class ValidChars:
    """The alphabet a trie accepts, with each character's index."""

    def __init__(self, valid_chars: Iterable[str]) -> None:
        self._table: dict[str, int] = {}
        self._size = 0
        for c in valid_chars:
            self._table[c] = self._size
            self._size += 1

    def size(self) -> int:
        """Number of characters the alphabet was built from."""
        return self._size

    def is_valid_char(self, c: str) -> bool:
        return c in self._table

    def index_of(self, c: str) -> int:
        """Index of ``c`` in the alphabet; raises ValueError if it is not in it."""
        try:
            return self._table[c]
        except KeyError:
            raise ValueError(f"char out of range: {c}") from None


VALID_CIDR_CHARS = ValidChars("01")


def _address_and_bits(
    prefix: PrefixLike,
) -> tuple[ipaddress.IPv4Address | ipaddress.IPv6Address, int]:
    if isinstance(prefix, str):
        if "/" in prefix:
            prefix = ipaddress.ip_interface(prefix)
        else:
            prefix = ipaddress.ip_address(prefix)
    if isinstance(prefix, (ipaddress.IPv4Interface, ipaddress.IPv6Interface)):
        return prefix.ip, prefix.network.prefixlen
    if isinstance(prefix, (ipaddress.IPv4Network, ipaddress.IPv6Network)):
        return prefix.network_address, prefix.prefixlen
    if isinstance(prefix, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
        return prefix, prefix.max_prefixlen
    raise TypeError(f"bad prefix: {prefix!r}")


def prefix_to_bin128(prefix: PrefixLike) -> str:
    """Render a prefix as '0'/'1' characters of its 128-bit form.

    IPv4 prefixes are placed in the IPv4-mapped IPv6 space, so their length
    grows by 96 bits.
    """
    addr, bits = _address_and_bits(prefix)
    if isinstance(addr, ipaddress.IPv4Address):
        value = _IPV4_MAPPED_PREFIX | int(addr)
        bits += 96
    else:
        value = int(addr)
    return format(value, "0128b")[:bits]


class _Node:
    __slots__ = ("children", "leaf")

    def __init__(self) -> None:
        self.children: dict[str, _Node] = {}
        self.leaf = False


class Trie:
    """Sorted, static set of strings answering prefix queries."""

    def __init__(self, keys: Iterable[str], chars: ValidChars = VALID_CIDR_CHARS) -> None:
        unique = sorted(set(keys))
        if not unique:
            raise ValueError("cannot build a trie from no keys")
        for key in unique:
            for c in key:
                if not chars.is_valid_char(c):
                    raise ValueError(f"char out of range: {c}")
        self._chars = chars
        self._root = _Node()
        for key in unique:
            node = self._root
            for c in key:
                node = node.children.setdefault(c, _Node())
            node.leaf = True

    @classmethod
    def from_prefixes(cls, cidrs: Iterable[PrefixLike]) -> "Trie":
        """Build a trie of IP prefixes in their 128-bit string form."""
        return cls((prefix_to_bin128(p) for p in cidrs), VALID_CIDR_CHARS)

    def has_prefix(self, word: str) -> bool:
        """Whether some key of the trie is a prefix of ``word``."""
        node = self._root
        for c in word:
            if node.leaf:
                return True
            if not self._chars.is_valid_char(c):
                return False
            child = node.children.get(c)
            if child is None:
                return False
            node = child
        return node.leaf