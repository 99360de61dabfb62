"""Encoding of rtnetlink address requests and the netlink route socket."""

from __future__ import annotations

import enum
import ipaddress
import socket
import struct
from dataclasses import dataclass, field
from typing import Union

from netifmsg.netlink import AddrCacheInfo, nlmsg_align

__all__ = [
    "RTM_NEWADDR",
    "RTM_DELADDR",
    "RTM_GETADDR",
    "AddressAttrKind",
    "AddressAttr",
    "NewAddress",
    "GetAddress",
    "DeleteAddress",
    "NetlinkRequest",
    "RtNetlink",
]

RTM_NEWADDR = 20
RTM_DELADDR = 21
RTM_GETADDR = 22

IFA_UNSPEC = 0
IFA_ADDRESS = 1
IFA_LOCAL = 2
IFA_LABEL = 3
IFA_BROADCAST = 4
IFA_ANYCAST = 5
IFA_CACHEINFO = 6

_AF_NETLINK = getattr(socket, "AF_NETLINK", 16)
_NETLINK_ROUTE = getattr(socket, "NETLINK_ROUTE", 0)

_NLMSGHDR = struct.Struct("=IHHII")
_IFADDRMSG = struct.Struct("=BBBBI")
_RTATTR = struct.Struct("=HH")

IpAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


class AddressAttrKind(enum.Enum):
    """The kinds of attribute carried by an address request."""

    ADDRESS = "address"
    LOCAL = "local"
    LABEL = "label"
    BROADCAST = "broadcast"
    ANYCAST = "anycast"
    CACHE_INFO = "cache_info"
    UNSPECIFIED = "unspecified"
    UNKNOWN = "unknown"


_IP_KINDS = {
    AddressAttrKind.ADDRESS: IFA_ADDRESS,
    AddressAttrKind.LOCAL: IFA_LOCAL,
    AddressAttrKind.BROADCAST: IFA_BROADCAST,
    AddressAttrKind.ANYCAST: IFA_ANYCAST,
}


def _to_ip(ip: object) -> IpAddress:
    if isinstance(ip, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
        return ip
    return ipaddress.ip_address(ip)  # type: ignore[arg-type]


@dataclass(frozen=True)
class AddressAttr:
    """A single routing attribute of an address request."""

    kind: AddressAttrKind
    value: object
    attr_type: int

    @classmethod
    def _ip(cls, kind: AddressAttrKind, ip: object) -> AddressAttr:
        return cls(kind, _to_ip(ip), _IP_KINDS[kind])

    @classmethod
    def address(cls, ip: object) -> AddressAttr:
        """IFA_ADDRESS: a peer-to-peer destination address."""
        return cls._ip(AddressAttrKind.ADDRESS, ip)

    @classmethod
    def local(cls, ip: object) -> AddressAttr:
        """IFA_LOCAL: the address of the interface."""
        return cls._ip(AddressAttrKind.LOCAL, ip)

    @classmethod
    def label(cls, name: str | bytes) -> AddressAttr:
        """IFA_LABEL: the interface name."""
        raw = name.encode() if isinstance(name, str) else bytes(name)
        if b"\0" in raw:
            raise ValueError("label must not contain NUL bytes")
        return cls(AddressAttrKind.LABEL, raw, IFA_LABEL)

    @classmethod
    def broadcast(cls, ip: object) -> AddressAttr:
        """IFA_BROADCAST: the broadcast address of the interface."""
        return cls._ip(AddressAttrKind.BROADCAST, ip)

    @classmethod
    def anycast(cls, ip: object) -> AddressAttr:
        """IFA_ANYCAST: the anycast address of the interface."""
        return cls._ip(AddressAttrKind.ANYCAST, ip)

    @classmethod
    def cache_info(cls, info: AddrCacheInfo) -> AddressAttr:
        """IFA_CACHEINFO: address lifetime information."""
        if not isinstance(info, AddrCacheInfo):
            raise TypeError("cache_info requires an AddrCacheInfo")
        return cls(AddressAttrKind.CACHE_INFO, info, IFA_CACHEINFO)

    @classmethod
    def unspecified(cls, data: bytes) -> AddressAttr:
        """IFA_UNSPEC: an unspecified attribute with raw contents."""
        return cls(AddressAttrKind.UNSPECIFIED, bytes(data), IFA_UNSPEC)

    @classmethod
    def unknown(cls, attr_type: int, data: bytes) -> AddressAttr:
        """An attribute of any other type with raw contents."""
        if not 0 <= attr_type <= 0xFFFF:
            raise ValueError("attribute type must fit in 16 bits")
        return cls(AddressAttrKind.UNKNOWN, bytes(data), attr_type)

    def _payload(self) -> bytes:
        if self.kind in _IP_KINDS:
            return self.value.packed  # type: ignore[attr-defined]
        if self.kind is AddressAttrKind.LABEL:
            return self.value + b"\0"  # type: ignore[operator]
        if self.kind is AddressAttrKind.CACHE_INFO:
            return self.value.to_bytes()  # type: ignore[attr-defined]
        return self.value  # type: ignore[return-value]

    def to_bytes(self) -> bytes:
        """Encode the attribute with its header and alignment padding."""
        payload = self._payload()
        rta_len = _RTATTR.size + len(payload)
        if rta_len > 0xFFFF:
            raise ValueError("attribute too large for a 16-bit length field")
        padding = nlmsg_align(rta_len) - rta_len
        return _RTATTR.pack(rta_len, self.attr_type) + payload + b"\0" * padding


@dataclass(frozen=True)
class _AddressMessage:
    family: int
    prefix_length: int
    flags: int
    scope: int
    iface_idx: int

    def _ifaddrmsg(self) -> bytes:
        try:
            packed = _IFADDRMSG.pack(
                self.family, self.prefix_length, self.flags, self.scope, self.iface_idx
            )
        except struct.error as exc:
            raise ValueError(f"address message field out of range: {exc}") from exc
        return packed + b"\0" * (nlmsg_align(_IFADDRMSG.size) - _IFADDRMSG.size)


@dataclass(frozen=True)
class _AddressMessageWithAttrs(_AddressMessage):
    attrs: tuple[AddressAttr, ...] = field(default=())

    def __post_init__(self) -> None:
        object.__setattr__(self, "attrs", tuple(self.attrs))

    def _body_with_attrs(self) -> bytes:
        return self._ifaddrmsg() + b"".join(attr.to_bytes() for attr in self.attrs)


@dataclass(frozen=True)
class NewAddress(_AddressMessageWithAttrs):
    """Body of an RTM_NEWADDR request."""

    def to_bytes(self) -> bytes:
        """Encode the ifaddrmsg body followed by its attributes."""
        return self._body_with_attrs()


@dataclass(frozen=True)
class DeleteAddress(_AddressMessageWithAttrs):
    """Body of an RTM_DELADDR request."""

    def to_bytes(self) -> bytes:
        """Encode the ifaddrmsg body followed by its attributes."""
        return self._body_with_attrs()


@dataclass(frozen=True)
class GetAddress(_AddressMessage):
    """Body of an RTM_GETADDR request."""

    def to_bytes(self) -> bytes:
        """Encode the ifaddrmsg body."""
        return self._ifaddrmsg()


_MESSAGE_TYPES = {
    NewAddress: RTM_NEWADDR,
    GetAddress: RTM_GETADDR,
    DeleteAddress: RTM_DELADDR,
}


@dataclass(frozen=True)
class NetlinkRequest:
    """A complete netlink request: header fields plus a message body."""

    flags: int
    seq: int
    pid: int
    payload: NewAddress | GetAddress | DeleteAddress

    @property
    def message_type(self) -> int:
        try:
            return _MESSAGE_TYPES[type(self.payload)]
        except KeyError:
            raise TypeError(
                f"unsupported netlink payload: {type(self.payload).__name__}"
            ) from None

    def to_bytes(self) -> bytes:
        """Encode the request, header first, with the total length filled in."""
        msg_type = self.message_type
        body = self.payload.to_bytes()
        header_len = nlmsg_align(_NLMSGHDR.size)
        total = header_len + len(body)
        try:
            header = _NLMSGHDR.pack(total, msg_type, self.flags, self.seq, self.pid)
        except struct.error as exc:
            raise ValueError(f"netlink header field out of range: {exc}") from exc
        return header + b"\0" * (header_len - _NLMSGHDR.size) + body


class RtNetlink:
    """A raw NETLINK_ROUTE socket with a request sequence counter."""

    def __init__(self) -> None:
        self._sock = socket.socket(_AF_NETLINK, socket.SOCK_RAW, _NETLINK_ROUTE)
        self.seq = 1

    def fileno(self) -> int:
        """Return the socket's file descriptor."""
        return self._sock.fileno()

    def close(self) -> None:
        """Close the socket."""
        self._sock.close()

    def __enter__(self) -> RtNetlink:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()