# netifmsg

`netifmsg` builds and parses the binary messages that operating systems use to describe network interfaces and their addresses. It uses only the standard library.

- `netifmsg.netlink` holds what the other netlink modules share. It has the `NlParseError` exception, the `AddressFamily` enum (`V4`, `V6`) and `nlmsg_align()`. It also has the fixed-layout structures `AddrCacheInfo`, `NeighborCacheInfo`, `RouteCacheInfo` and `RouteMfcStats`, each with `to_bytes()` and `from_bytes()`.
- `netifmsg.nlrequest` encodes rtnetlink address requests: `NewAddress` (`RTM_NEWADDR`), `GetAddress` (`RTM_GETADDR`) and `DeleteAddress` (`RTM_DELADDR`), wrapped in a `NetlinkRequest`.
- `netifmsg.nlresponse` decodes rtnetlink replies into address, route and neighbour records, together with their attributes.
- `netifmsg.sysctl` walks a BSD/macOS `NET_RT_IFLIST` buffer and yields the addresses attached to each `RTM_NEWADDR` message.

## Installing

```
pip install netifmsg
```

## Building a netlink request

```python
from ipaddress import IPv4Address
from netifmsg.netlink import AddressFamily
from netifmsg.nlrequest import AddressAttr, NetlinkRequest, NewAddress

payload = NewAddress(
    family=AddressFamily.V4,
    prefix_length=24,
    flags=0,
    scope=0,
    iface_idx=3,
    attrs=[AddressAttr.local(IPv4Address("10.0.0.1"))],
)
request = NetlinkRequest(flags=0x5, seq=1, pid=0, payload=payload)
wire = request.to_bytes()
```

`AddressAttr` has one constructor for each attribute kind:

- `address()`, `local()`, `broadcast()` and `anycast()` take an IP address, either as an object or as a string.
- `label()` takes the interface name.
- `cache_info()` takes an `AddrCacheInfo`.
- `unspecified()` and `unknown()` take raw bytes.

Out-of-range fields raise `ValueError`.

`RtNetlink()` opens a raw `AF_NETLINK`/`NETLINK_ROUTE` socket, which works on Linux only. `fileno()` returns the socket's descriptor and `close()` closes it. It can also be used as a context manager.

## Parsing netlink replies

```python
from netifmsg.nlresponse import GetAddressResponse, NlmsgError, iter_messages

for message in iter_messages(reply_bytes):
    payload = message.payload
    if isinstance(payload, GetAddressResponse):
        for attr in payload.attrs():
            print(attr.kind, attr.value)
    elif isinstance(payload, NlmsgError) and payload.errno:
        print("request failed, errno", payload.errno)
```

Each `NetlinkMessage` carries `flags`, `seq`, `pid` and a `payload`. The payload is one of the following:

- a `ControlMessage` (`NOOP`, `DONE`, `OVERRUN` or `UNKNOWN`);
- an `NlmsgError`, whose `errno` is positive, or 0 for an acknowledgement;
- a `GetAddressResponse`;
- a `GetRouteResponse`;
- a `GetNeighborResponse`.

Neighbour link-layer addresses come back as 6 raw bytes. Malformed or truncated data raises `netifmsg.netlink.NlParseError`.

## Parsing a sysctl interface list

```python
from netifmsg.sysctl import Platform, SysctlNewAddress, iter_if_list

for message in iter_if_list(buffer, Platform.MACOS):
    if isinstance(message, SysctlNewAddress):
        for addr in message.addrs():
            print(addr.kind, addr.address)
```

`Platform` selects the message layout. The choices are `MACOS`, `FREEBSD` and `OPENBSD`. If no platform is given, `Platform.current()` is used, and it raises `ValueError` on other systems. Messages of types that are not decoded come back as `SysctlUnknown`. Malformed buffers raise `netifmsg.sysctl.SysctlParseError`.

## What the package does not do

- It does not send requests or read replies on the netlink socket. `RtNetlink` only opens and closes it.
- It has no encoders for route or neighbour requests.
- It does not obtain the sysctl buffer. You must supply the bytes.
- It does not create or manage TUN/TAP devices.

## Running the tests

```
pip install -e .[test]
pytest
```