"""Decoding of BSD routing-socket interface lists returned by sysctl."""

from __future__ import annotations

import enum
import ipaddress
import struct
import sys
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Optional, Union

__all__ = [
    "RTM_NEWADDR",
    "SysctlParseError",
    "Platform",
    "SysctlAddrKind",
    "SysctlAddr",
    "SysctlNewAddress",
    "SysctlUnknown",
    "iter_if_list",
    "iter_sysctl_addrs",
]

RTM_NEWADDR = 0xC

AF_UNSPEC = 0
AF_INET = 2

RTAX_DST = 0
RTAX_GATEWAY = 1
RTAX_NETMASK = 2
RTAX_IFA = 5
RTAX_BRD = 7

# The address mask is a C int.
_MASK_BITS = 32

_SOCKADDR_IN6_LEN = 28
_U16 = struct.Struct("=H")

IpAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


class SysctlParseError(ValueError):
    """Raised when sysctl routing data is malformed or truncated."""

    def __init__(self, error: str) -> None:
        super().__init__(error)
        self.error = error


class Platform(enum.Enum):
    """Operating systems whose routing-message layouts are understood."""

    MACOS = "macos"
    FREEBSD = "freebsd"
    OPENBSD = "openbsd"

    @classmethod
    def current(cls) -> Platform:
        """Return the platform this interpreter runs on."""
        name = sys.platform
        if name == "darwin":
            return cls.MACOS
        if name.startswith("freebsd"):
            return cls.FREEBSD
        if name.startswith("openbsd"):
            return cls.OPENBSD
        raise ValueError(f"unsupported platform for sysctl interface lists: {name}")


@dataclass(frozen=True)
class _Header:
    addrs: int
    flags: int
    index: int
    metric: int
    hdrlen: Optional[int]


@dataclass(frozen=True)
class _Spec:
    header: struct.Struct
    af_inet6: int
    # Sockaddr alignment; None means sockaddrs are packed without rounding.
    align: Optional[int]

    def unpack_header(self, data: bytes) -> _Header:
        fields = self.header.unpack_from(data)
        if self.header.size == 24:
            (_len, _ver, _type, hdrlen, index, _table, _p1, _p2,
             addrs, flags, metric) = fields
            return _Header(addrs, flags, index, metric, hdrlen)
        _len, _ver, _type, addrs, flags, index, _spare, metric = fields
        return _Header(addrs, flags, index, metric, None)

    def roundup(self, length: int) -> int:
        if self.align is None:
            return length
        if length == 0:
            return self.align
        return 1 + ((length - 1) | (self.align - 1))


_BSD_HEADER = struct.Struct("=HBBiiHHi")
_OPENBSD_HEADER = struct.Struct("=HBBHHHBBiii")

_SPECS = {
    Platform.MACOS: _Spec(_BSD_HEADER, 30, None),
    Platform.FREEBSD: _Spec(_BSD_HEADER, 28, 8),
    Platform.OPENBSD: _Spec(_OPENBSD_HEADER, 24, 8),
}


def _spec(platform: Optional[Platform]) -> _Spec:
    return _SPECS[platform if platform is not None else Platform.current()]


class SysctlAddrKind(enum.Enum):
    """The role of a sockaddr within a routing message."""

    DESTINATION = "destination"
    GATEWAY = "gateway"
    NETMASK = "netmask"
    ADDRESS = "address"
    BROADCAST = "broadcast"
    OTHER = "other"


_RTAX_KINDS = {
    RTAX_DST: SysctlAddrKind.DESTINATION,
    RTAX_GATEWAY: SysctlAddrKind.GATEWAY,
    RTAX_NETMASK: SysctlAddrKind.NETMASK,
    RTAX_IFA: SysctlAddrKind.ADDRESS,
    RTAX_BRD: SysctlAddrKind.BROADCAST,
}


@dataclass(frozen=True)
class SysctlAddr:
    """A decoded address; ``address`` is None for the OTHER kind."""

    kind: SysctlAddrKind
    address: Optional[IpAddress] = None


def iter_sysctl_addrs(
    data: bytes, addrs_mask: int, platform: Optional[Platform] = None
) -> Iterator[SysctlAddr]:
    """Decode the sockaddrs that follow an address message header.

    ``addrs_mask`` says which RTAX slots are present, in slot order.
    """
    spec = _spec(platform)
    view = bytes(data)
    for rtax in range(_MASK_BITS):
        if not view:
            return
        if not addrs_mask & (1 << rtax):
            continue
        if len(view) < 2:
            raise SysctlParseError(
                "sysctl RTM_NEWADDR had insufficient data for address family field"
            )
        addrlen = view[0]
        family = view[1]
        if addrlen > len(view):
            raise SysctlParseError(
                "sysctl RTM_NEWADDR had insufficient data for sockaddr field"
            )
        addr_data = view[:addrlen]
        view = view[spec.roundup(addrlen):]

        address: IpAddress
        if family == AF_INET and addrlen >= 8:
            address = ipaddress.IPv4Address(addr_data[4:8])
        elif family == spec.af_inet6 and addrlen >= _SOCKADDR_IN6_LEN:
            address = ipaddress.IPv6Address(addr_data[8:24])
        elif family == AF_UNSPEC and addrlen == _SOCKADDR_IN6_LEN:
            address = ipaddress.IPv6Address(addr_data[8:24])
        elif family in (AF_INET, spec.af_inet6):
            raise SysctlParseError("sysctl RTM_NEWADDR has addrlen mismatch")
        else:
            continue

        kind = _RTAX_KINDS.get(rtax, SysctlAddrKind.OTHER)
        if kind is SysctlAddrKind.OTHER:
            yield SysctlAddr(kind)
        else:
            yield SysctlAddr(kind, address)


@dataclass(frozen=True)
class SysctlNewAddress:
    """An RTM_NEWADDR message describing one interface address."""

    index: int
    flags: int
    metric: int
    addrs_mask: int
    addr_data: bytes
    platform: Platform

    def addrs(self) -> Iterator[SysctlAddr]:
        """Iterate over the addresses carried by the message."""
        return iter_sysctl_addrs(self.addr_data, self.addrs_mask, self.platform)


@dataclass(frozen=True)
class SysctlUnknown:
    """A routing message of a type that is not decoded."""

    msg_type: int


SysctlMessage = Union[SysctlNewAddress, SysctlUnknown]


def _parse_new_address(msg: bytes, spec: _Spec, platform: Platform) -> SysctlNewAddress:
    size = spec.header.size
    if len(msg) < size:
        raise SysctlParseError("sysctl RTM_NEWADDR message had insufficient header bytes")
    header = spec.unpack_header(msg)
    addr_data = msg[size:]
    if header.hdrlen is not None:
        padding = header.hdrlen - size
        if padding < 0 or padding > len(addr_data):
            raise SysctlParseError(
                "sysctl RTM_NEWADDR message had insufficient bytes "
                "for OpenBSD header padding"
            )
        addr_data = addr_data[padding:]
    return SysctlNewAddress(
        header.index, header.flags, header.metric, header.addrs, addr_data, platform
    )


def iter_if_list(
    data: bytes, platform: Optional[Platform] = None
) -> Iterator[SysctlMessage]:
    """Iterate over the routing messages in a NET_RT_IFLIST buffer."""
    platform = platform if platform is not None else Platform.current()
    spec = _SPECS[platform]
    view = bytes(data)
    while view:
        if len(view) < 4:
            raise SysctlParseError(
                "sysctl returned RT message header with truncated type/length fields"
            )
        (msg_len,) = _U16.unpack_from(view)
        msg_type = view[3]
        if msg_len > len(view) or msg_len < 4:
            raise SysctlParseError("sysctl returned RT message header with invalid length")
        msg, view = view[:msg_len], view[msg_len:]
        if msg_type == RTM_NEWADDR:
            yield _parse_new_address(msg, spec, platform)
        else:
            yield SysctlUnknown(msg_type)