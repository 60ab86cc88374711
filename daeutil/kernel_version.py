"""Kernel version numbers and detection of the running kernel's version."""

from __future__ import annotations

import functools
import os
import re
import sys
from dataclasses import dataclass

# Loader placeholder asking for the running kernel's KERNEL_VERSION value.
MAGIC_KERNEL_VERSION = 0xFFFFFFFE

NATIVE_BYTEORDER = sys.byteorder
CLANG_ENDIAN = "el" if sys.byteorder == "little" else "eb"

_U16_MAX = 0xFFFF
_NUMBER = re.compile(r"\s*([+-]?\d+)")


def align(n: int, alignment: int) -> int:
    """Round ``n`` up to a multiple of ``alignment``."""
    return (n + alignment - 1) // alignment * alignment


def _scan_numbers(ver: str) -> list[int]:
    """Read up to three dot-separated 16-bit numbers from the start of ``ver``."""
    values: list[int] = []
    pos = 0
    for position in range(3):
        if position:
            if not ver.startswith(".", pos):
                break
            pos += 1
        match = _NUMBER.match(ver, pos)
        if match is None:
            break
        number = int(match.group(1))
        if not 0 <= number <= _U16_MAX:
            break
        values.append(number)
        pos = match.end()
    return values


@functools.total_ordering
@dataclass(frozen=True)
class Version:
    """A version in the form major.minor.patch."""

    major: int
    minor: int
    patch: int = 0

    def __post_init__(self) -> None:
        for part in (self.major, self.minor, self.patch):
            if not 0 <= part <= _U16_MAX:
                raise ValueError(f"version component out of range: {part}")

    @classmethod
    def parse(cls, ver: str) -> "Version":
        """Parse ``"major.minor[.patch]"``; anything after the numbers is ignored."""
        values = _scan_numbers(ver)
        if len(values) < 2:
            raise ValueError(f"invalid version: {ver}")
        return cls(*values)

    @classmethod
    def from_code(cls, code: int) -> "Version":
        """Build a version from a LINUX_VERSION_CODE value."""
        return cls((code >> 16) & 0xFF, (code >> 8) & 0xFF, code & 0xFF)

    def __str__(self) -> str:
        if self.patch == 0:
            return f"v{self.major}.{self.minor}"
        return f"v{self.major}.{self.minor}.{self.patch}"

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return (self.major, self.minor, self.patch) < (other.major, other.minor, other.patch)

    def unspecified(self) -> bool:
        """Whether every component is zero."""
        return self.major == 0 and self.minor == 0 and self.patch == 0

    def kernel(self) -> int:
        """The single-number form used by the kernel's KERNEL_VERSION macro."""
        sublevel = min(self.patch, 255)
        return ((self.major & 0xFF) << 16) | ((self.minor & 0xFF) << 8) | (sublevel & 0xFF)


def kernel_release() -> str:
    """The release string of the running kernel, such as ``5.15.17-1-lts``."""
    try:
        return os.uname().release
    except AttributeError:
        raise OSError("uname failed: not supported on this platform") from None


@functools.lru_cache(maxsize=None)
def _detect() -> tuple[Version | None, str]:
    from .vdso import VdsoError, vdso_version

    try:
        return Version.from_code(vdso_version()), ""
    except (VdsoError, OSError) as exc:
        first = exc
    try:
        return Version.parse(kernel_release()), ""
    except (OSError, ValueError) as exc:
        return None, f"{first}; {exc}"


def kernel_version() -> Version:
    """The version of the running kernel, detected once and then cached."""
    version, error = _detect()
    if version is None:
        raise OSError(error)
    return version