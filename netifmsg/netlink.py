"""Shared rtnetlink definitions: parse errors, alignment and fixed-layout structures."""

from __future__ import annotations

import enum
import struct
from dataclasses import astuple, dataclass
from typing import Any, ClassVar

__all__ = [
    "NLMSG_ALIGNTO",
    "NlParseError",
    "AddressFamily",
    "AddrCacheInfo",
    "NeighborCacheInfo",
    "RouteCacheInfo",
    "RouteMfcStats",
    "nlmsg_align",
]

NLMSG_ALIGNTO = 4


class NlParseError(ValueError):
    """Raised when netlink data is malformed or truncated."""

    def __init__(self, error: str) -> None:
        super().__init__(error)
        self.error = error


class AddressFamily(enum.IntEnum):
    """Address families used in rtnetlink messages."""

    V4 = 0x02
    V6 = 0x0A


def nlmsg_align(length: int) -> int:
    """Round ``length`` up to the netlink alignment boundary."""
    if length < 0:
        raise ValueError("length must not be negative")
    return (length + NLMSG_ALIGNTO - 1) & ~(NLMSG_ALIGNTO - 1)


def _pack(obj: Any) -> bytes:
    try:
        return obj._layout.pack(*astuple(obj))
    except struct.error as exc:
        raise ValueError(f"{type(obj).__name__} field out of range: {exc}") from exc


def _unpack(cls: Any, data: bytes) -> Any:
    layout: struct.Struct = cls._layout
    if len(data) != layout.size:
        raise NlParseError(f"{cls.__name__} requires {layout.size} bytes, got {len(data)}")
    return cls(*layout.unpack(bytes(data)))


class _PackedStruct:
    """Mixin for dataclasses laid out as a C struct in native byte order."""

    _layout: ClassVar[struct.Struct]

    @classmethod
    def size(cls) -> int:
        return cls._layout.size


@dataclass(frozen=True)
class AddrCacheInfo(_PackedStruct):
    """Address lifetime information (IFA_CACHEINFO)."""

    _layout: ClassVar[struct.Struct] = struct.Struct("=4I")

    preferred: int
    valid: int
    cstamp: int
    tstamp: int

    def to_bytes(self) -> bytes:
        """Encode the structure in native byte order."""
        return _pack(self)

    @classmethod
    def from_bytes(cls, data: bytes) -> AddrCacheInfo:
        """Decode the structure from exactly ``size()`` bytes."""
        return _unpack(cls, data)


@dataclass(frozen=True)
class NeighborCacheInfo(_PackedStruct):
    """Neighbour cache statistics (NDA_CACHEINFO)."""

    _layout: ClassVar[struct.Struct] = struct.Struct("=4I")

    confirmed: int
    used: int
    updated: int
    refcnt: int

    def to_bytes(self) -> bytes:
        """Encode the structure in native byte order."""
        return _pack(self)

    @classmethod
    def from_bytes(cls, data: bytes) -> NeighborCacheInfo:
        """Decode the structure from exactly ``size()`` bytes."""
        return _unpack(cls, data)


@dataclass(frozen=True)
class RouteCacheInfo(_PackedStruct):
    """Route cache information (RTA_CACHEINFO)."""

    _layout: ClassVar[struct.Struct] = struct.Struct("=IIiIIIII")

    rta_clntref: int
    rta_lastuse: int
    rta_expires: int
    rta_error: int
    rta_used: int
    rta_id: int
    rta_ts: int
    rta_tsage: int

    def to_bytes(self) -> bytes:
        """Encode the structure in native byte order."""
        return _pack(self)

    @classmethod
    def from_bytes(cls, data: bytes) -> RouteCacheInfo:
        """Decode the structure from exactly ``size()`` bytes."""
        return _unpack(cls, data)


@dataclass(frozen=True)
class RouteMfcStats(_PackedStruct):
    """Multicast forwarding statistics (RTA_MFC_STATS)."""

    _layout: ClassVar[struct.Struct] = struct.Struct("=3Q")

    mfcs_packets: int
    mfcs_bytes: int
    mfcs_wrong_if: int

    def to_bytes(self) -> bytes:
        """Encode the structure in native byte order."""
        return _pack(self)

    @classmethod
    def from_bytes(cls, data: bytes) -> RouteMfcStats:
        """Decode the structure from exactly ``size()`` bytes."""
        return _unpack(cls, data)