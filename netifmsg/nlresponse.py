"""Decoding of rtnetlink responses: messages, errors and their attributes."""

from __future__ import annotations

import enum
import ipaddress
import struct
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Union

from netifmsg.netlink import (
    AddrCacheInfo,
    NeighborCacheInfo,
    NlParseError,
    RouteCacheInfo,
    RouteMfcStats,
    nlmsg_align,
)
from netifmsg.nlrequest import (
    IFA_ADDRESS,
    IFA_ANYCAST,
    IFA_BROADCAST,
    IFA_CACHEINFO,
    IFA_LABEL,
    IFA_LOCAL,
    IFA_UNSPEC,
    RTM_NEWADDR,
    AddressAttr,
    AddressAttrKind,
)

__all__ = [
    "NLMSG_NOOP",
    "NLMSG_ERROR",
    "NLMSG_DONE",
    "NLMSG_OVERRUN",
    "RTM_NEWROUTE",
    "RTM_NEWNEIGH",
    "ControlMessage",
    "NlmsgError",
    "NetlinkMessage",
    "parse_message",
    "iter_messages",
    "GetAddressResponse",
    "iter_address_attrs",
    "NeighborAttrKind",
    "NeighborAttr",
    "GetNeighborResponse",
    "iter_neighbor_attrs",
    "RouteAttrKind",
    "RouteAttr",
    "GetRouteResponse",
    "iter_route_attrs",
]

NLMSG_NOOP = 1
NLMSG_ERROR = 2
NLMSG_DONE = 3
NLMSG_OVERRUN = 4

RTM_NEWROUTE = 24
RTM_NEWNEIGH = 28

NDA_DST = 1
NDA_LLADDR = 2
NDA_CACHEINFO = 3

RTA_UNSPEC = 0
RTA_DST = 1
RTA_SRC = 2
RTA_IIF = 3
RTA_OIF = 4
RTA_GATEWAY = 5
RTA_PRIORITY = 6
RTA_PREFSRC = 7
RTA_METRICS = 8
RTA_FLOW = 11
RTA_CACHEINFO = 12
RTA_TABLE = 15
RTA_MFC_STATS = 17
RTA_NEWDST = 19
RTA_PREF = 20
RTA_EXPIRES = 23

_NLMSGHDR = struct.Struct("=IHHII")
_IFADDRMSG = struct.Struct("=BBBBI")
_NDMSG = struct.Struct("=BBHiHBB")
_RTMSG = struct.Struct("=BBBBBBBBI")
_RTATTR = struct.Struct("=HH")
_I32 = struct.Struct("=i")

IpAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


class ControlMessage(enum.Enum):
    """Netlink messages that carry no payload of interest."""

    NOOP = "noop"
    DONE = "done"
    OVERRUN = "overrun"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class NlmsgError:
    """An NLMSG_ERROR response; ``errno`` is positive (0 means acknowledgement)."""

    errno: int

    @classmethod
    def parse(cls, data: bytes) -> NlmsgError:
        """Decode the error payload that follows the netlink header."""
        if len(data) < _I32.size:
            raise NlParseError("netlink Error response had truncated errno value")
        (raw,) = _I32.unpack_from(data)
        return cls(-raw)


def _iter_rtattrs(data: bytes, name: str) -> Iterator[tuple[int, bytes]]:
    view = bytes(data)
    while view:
        if len(view) < 2:
            raise NlParseError(f"netlink {name} attribute had truncated length filed")
        if len(view) < 4:
            raise NlParseError(f"netlink {name} attribute had truncated type field")
        attr_len, attr_type = _RTATTR.unpack_from(view)
        if attr_len < _RTATTR.size or attr_len > len(view):
            raise NlParseError(f"netlink {name} attribute had truncated data field")
        payload = view[_RTATTR.size:attr_len]
        # Truncated padding at the end is tolerated.
        view = view[nlmsg_align(attr_len):]
        yield attr_type, payload


def _ip(payload: bytes, error: str) -> IpAddress:
    if len(payload) not in (4, 16):
        raise NlParseError(error)
    return ipaddress.ip_address(payload)


def _i32(payload: bytes, error: str) -> int:
    if len(payload) != _I32.size:
        raise NlParseError(error)
    return _I32.unpack(payload)[0]


# ---------------------------------------------------------------------------
# Addresses
# ---------------------------------------------------------------------------

_ADDRESS_IP_ATTRS = {
    IFA_ADDRESS: (AddressAttrKind.ADDRESS, "IFA_ADDRESS"),
    IFA_LOCAL: (AddressAttrKind.LOCAL, "IFA_LOCAL"),
    IFA_BROADCAST: (AddressAttrKind.BROADCAST, "IFA_BROADCAST"),
    IFA_ANYCAST: (AddressAttrKind.ANYCAST, "IFA_ANYCAST"),
}


def iter_address_attrs(data: bytes) -> Iterator[AddressAttr]:
    """Decode the attributes of an RTM_NEWADDR/RTM_GETADDR message."""
    for attr_type, payload in _iter_rtattrs(data, "RTM_GETADDR"):
        if attr_type in _ADDRESS_IP_ATTRS:
            kind, label = _ADDRESS_IP_ATTRS[attr_type]
            ip = _ip(
                payload,
                f"netlink RTM_GETADDR had {label} attribute with invalid size",
            )
            yield AddressAttr(kind, ip, attr_type)
        elif attr_type == IFA_CACHEINFO:
            if len(payload) != AddrCacheInfo.size():
                raise NlParseError(
                    "netlink RTM_GETADDR had IFA_CACHEINFO attribute with invalid size"
                )
            yield AddressAttr(
                AddressAttrKind.CACHE_INFO, AddrCacheInfo.from_bytes(payload), attr_type
            )
        elif attr_type == IFA_LABEL:
            if not payload.endswith(b"\0") or b"\0" in payload[:-1]:
                raise NlParseError(
                    "netlink RTM_GETADDR had IFA_LABEL attribute with invalid data"
                )
            yield AddressAttr(AddressAttrKind.LABEL, payload[:-1], attr_type)
        elif attr_type == IFA_UNSPEC:
            yield AddressAttr(AddressAttrKind.UNSPECIFIED, payload, attr_type)
        else:
            yield AddressAttr(AddressAttrKind.UNKNOWN, payload, attr_type)


@dataclass(frozen=True)
class GetAddressResponse:
    """An address description returned for an RTM_GETADDR request."""

    family: int
    prefix_length: int
    flags: int
    scope: int
    index: int
    attr_data: bytes

    @classmethod
    def parse(cls, data: bytes) -> GetAddressResponse:
        """Decode an ifaddrmsg body and keep its attribute bytes."""
        if len(data) < _IFADDRMSG.size:
            raise NlParseError("netlink RTM_GETADDR message was truncated")
        family, prefix_length, flags, scope, index = _IFADDRMSG.unpack_from(data)
        rest = bytes(data[nlmsg_align(_IFADDRMSG.size):])
        return cls(family, prefix_length, flags, scope, index, rest)

    def attrs(self) -> Iterator[AddressAttr]:
        """Iterate over the decoded address attributes."""
        return iter_address_attrs(self.attr_data)


# ---------------------------------------------------------------------------
# Neighbours
# ---------------------------------------------------------------------------


class NeighborAttrKind(enum.Enum):
    """The kinds of attribute carried by a neighbour message."""

    DESTINATION_ADDRESS = "destination_address"
    LINK_ADDRESS = "link_address"
    CACHE_INFO = "cache_info"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class NeighborAttr:
    """A decoded neighbour attribute; link addresses are 6 raw bytes."""

    kind: NeighborAttrKind
    value: object
    attr_type: int


def iter_neighbor_attrs(data: bytes) -> Iterator[NeighborAttr]:
    """Decode the attributes of an RTM_NEWNEIGH message."""
    for attr_type, payload in _iter_rtattrs(data, "RTM_GETNEIGH"):
        if attr_type == NDA_DST:
            ip = _ip(
                payload, "netlink RTM_GETNEIGH had NDA_DST attribute with invalid size"
            )
            yield NeighborAttr(NeighborAttrKind.DESTINATION_ADDRESS, ip, attr_type)
        elif attr_type == NDA_LLADDR:
            if len(payload) != 6:
                raise NlParseError(
                    "netlink RTM_GETNEIGH had IFA_LLADDR attribute with invalid size"
                )
            yield NeighborAttr(NeighborAttrKind.LINK_ADDRESS, payload, attr_type)
        elif attr_type == NDA_CACHEINFO:
            if len(payload) != NeighborCacheInfo.size():
                raise NlParseError(
                    "netlink RTM_GETNEIGH had NDA_CACHEINFO attribute with invalid size"
                )
            yield NeighborAttr(
                NeighborAttrKind.CACHE_INFO,
                NeighborCacheInfo.from_bytes(payload),
                attr_type,
            )
        else:
            yield NeighborAttr(NeighborAttrKind.UNKNOWN, payload, attr_type)


@dataclass(frozen=True)
class GetNeighborResponse:
    """A neighbour cache entry returned for an RTM_GETNEIGH request."""

    index: int
    state: int
    flags: int
    arp_type: int
    attr_data: bytes

    @classmethod
    def parse(cls, data: bytes) -> GetNeighborResponse:
        """Decode an ndmsg body and keep its attribute bytes."""
        if len(data) < _NDMSG.size:
            raise NlParseError("netlink RTM_GETNEIGH message was truncated")
        _family, _pad1, _pad2, index, state, flags, arp_type = _NDMSG.unpack_from(data)
        rest = bytes(data[nlmsg_align(_NDMSG.size):])
        return cls(index, state, flags, arp_type, rest)

    def attrs(self) -> Iterator[NeighborAttr]:
        """Iterate over the decoded neighbour attributes."""
        return iter_neighbor_attrs(self.attr_data)


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


class RouteAttrKind(enum.Enum):
    """The kinds of attribute carried by a route message."""

    UNSPEC = "unspec"
    DESTINATION = "destination"
    SOURCE = "source"
    INPUT_INTERFACE = "input_interface"
    OUTPUT_INTERFACE = "output_interface"
    GATEWAY = "gateway"
    PRIORITY = "priority"
    PREFERRED_SOURCE = "preferred_source"
    METRIC = "metric"
    FLOW = "flow"
    CACHE_INFO = "cache_info"
    TABLE_ID = "table_id"
    MFC_STATS = "mfc_stats"
    NEW_DESTINATION = "new_destination"
    IPV6_PREFERENCE = "ipv6_preference"
    EXPIRES = "expires"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class RouteAttr:
    """A decoded route attribute."""

    kind: RouteAttrKind
    value: object
    attr_type: int


_ROUTE_IP_ATTRS = {
    RTA_DST: (RouteAttrKind.DESTINATION, "RTA_DST"),
    RTA_SRC: (RouteAttrKind.SOURCE, "RTA_SRC"),
    RTA_GATEWAY: (RouteAttrKind.GATEWAY, "RTA_GATEWAY"),
    RTA_PREFSRC: (RouteAttrKind.PREFERRED_SOURCE, "RTA_PREFSRC"),
    RTA_NEWDST: (RouteAttrKind.NEW_DESTINATION, "RTA_NEWDST"),
}

_ROUTE_INT_ATTRS = {
    RTA_IIF: (RouteAttrKind.INPUT_INTERFACE, "RTA_IIF"),
    RTA_OIF: (RouteAttrKind.OUTPUT_INTERFACE, "RTA_OIF"),
    RTA_PRIORITY: (RouteAttrKind.PRIORITY, "RTA_PRIORITY"),
    RTA_METRICS: (RouteAttrKind.METRIC, "RTA_METRIC"),
    RTA_FLOW: (RouteAttrKind.FLOW, "RTA_FLOW"),
    RTA_TABLE: (RouteAttrKind.TABLE_ID, "RTA_TABLE"),
    RTA_EXPIRES: (RouteAttrKind.EXPIRES, "RTA_EXPIRES"),
}


def iter_route_attrs(data: bytes) -> Iterator[RouteAttr]:
    """Decode the attributes of an RTM_NEWROUTE message."""
    for attr_type, payload in _iter_rtattrs(data, "RTM_GETROUTE"):
        if attr_type in _ROUTE_IP_ATTRS:
            kind, label = _ROUTE_IP_ATTRS[attr_type]
            ip = _ip(
                payload,
                f"netlink RTM_GETROUTE had {label} attribute with invalid size",
            )
            yield RouteAttr(kind, ip, attr_type)
        elif attr_type in _ROUTE_INT_ATTRS:
            kind, label = _ROUTE_INT_ATTRS[attr_type]
            value = _i32(
                payload,
                f"netlink RTM_GETROUTE had {label} attribute with invalid size",
            )
            yield RouteAttr(kind, value, attr_type)
        elif attr_type == RTA_CACHEINFO:
            if len(payload) != RouteCacheInfo.size():
                raise NlParseError(
                    "netlink RTM_GETNEIGH had NDA_CACHEINFO attribute with invalid size"
                )
            yield RouteAttr(
                RouteAttrKind.CACHE_INFO, RouteCacheInfo.from_bytes(payload), attr_type
            )
        elif attr_type == RTA_MFC_STATS:
            if len(payload) != RouteMfcStats.size():
                raise NlParseError(
                    "netlink RTM_GETROUTE had RTA_MFC_STATS attribute with invalid size"
                )
            yield RouteAttr(
                RouteAttrKind.MFC_STATS, RouteMfcStats.from_bytes(payload), attr_type
            )
        elif attr_type == RTA_PREF:
            if len(payload) != 1:
                raise NlParseError(
                    "netlink RTM_GETROUTE had RTA_PREF attribute with invalid size"
                )
            value = int.from_bytes(payload, "little", signed=True)
            yield RouteAttr(RouteAttrKind.IPV6_PREFERENCE, value, attr_type)
        elif attr_type == RTA_UNSPEC:
            yield RouteAttr(RouteAttrKind.UNSPEC, payload, attr_type)
        else:
            yield RouteAttr(RouteAttrKind.UNKNOWN, payload, attr_type)


@dataclass(frozen=True)
class GetRouteResponse:
    """A route returned for an RTM_GETROUTE request."""

    family: int
    dst_len: int
    src_len: int
    tos: int
    table_id: int
    protocol: int
    scope: int
    route_type: int
    flags: int
    attr_data: bytes

    @classmethod
    def parse(cls, data: bytes) -> GetRouteResponse:
        """Decode an rtmsg body and keep its attribute bytes."""
        if len(data) < _RTMSG.size:
            raise NlParseError("netlink RTM_GETROUTE message was truncated")
        fields = _RTMSG.unpack_from(data)
        rest = bytes(data[nlmsg_align(_RTMSG.size):])
        return cls(*fields, rest)

    def attrs(self) -> Iterator[RouteAttr]:
        """Iterate over the decoded route attributes."""
        return iter_route_attrs(self.attr_data)


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------

Payload = Union[
    ControlMessage, NlmsgError, GetAddressResponse, GetRouteResponse, GetNeighborResponse
]


@dataclass(frozen=True)
class NetlinkMessage:
    """One netlink message from a response: header fields and decoded payload."""

    flags: int
    seq: int
    pid: int
    payload: Payload


_CONTROL_TYPES = {
    NLMSG_NOOP: ControlMessage.NOOP,
    NLMSG_OVERRUN: ControlMessage.OVERRUN,
    NLMSG_DONE: ControlMessage.DONE,
}

_BODY_PARSERS = {
    NLMSG_ERROR: NlmsgError.parse,
    RTM_NEWADDR: GetAddressResponse.parse,
    RTM_NEWROUTE: GetRouteResponse.parse,
    RTM_NEWNEIGH: GetNeighborResponse.parse,
}


def parse_message(data: bytes) -> NetlinkMessage:
    """Decode a single netlink message, header included."""
    if len(data) < _NLMSGHDR.size:
        raise NlParseError("netlink response had truncated nlmsg header")
    _length, msg_type, flags, seq, pid = _NLMSGHDR.unpack_from(data)
    body = bytes(data[nlmsg_align(_NLMSGHDR.size):])
    payload: Payload
    if msg_type in _CONTROL_TYPES:
        payload = _CONTROL_TYPES[msg_type]
    elif msg_type in _BODY_PARSERS:
        payload = _BODY_PARSERS[msg_type](body)
    else:
        payload = ControlMessage.UNKNOWN
    return NetlinkMessage(flags, seq, pid, payload)


def iter_messages(data: bytes) -> Iterator[NetlinkMessage]:
    """Iterate over the netlink messages packed into a response buffer."""
    view = bytes(data)
    while view:
        if len(view) < _NLMSGHDR.size:
            raise NlParseError("netlink response had truncated nlmsg header")
        (length,) = struct.unpack_from("=I", view)
        if length > len(view):
            raise NlParseError("netlink response had truncated nlmsg payload")
        message = view[:length]
        # Truncated padding at the end is tolerated.
        view = view[nlmsg_align(length):]
        yield parse_message(message)