import ipaddress
import socket
import struct
from unittest import mock

import pytest

from netifmsg.netlink import AddrCacheInfo, nlmsg_align
from netifmsg.nlrequest import (
    RTM_DELADDR,
    RTM_GETADDR,
    RTM_NEWADDR,
    AddressAttr,
    AddressAttrKind,
    DeleteAddress,
    GetAddress,
    NetlinkRequest,
    NewAddress,
    RtNetlink,
)

HDR = struct.Struct("=IHHII")
RTA = struct.Struct("=HH")
IFA = struct.Struct("=BBBBI")


def test_ipv4_address_attr_wire_layout():
    ip = ipaddress.IPv4Address("10.101.0.1")
    data = AddressAttr.address(ip).to_bytes()
    assert len(data) == 8
    rta_len, rta_type = RTA.unpack_from(data)
    assert rta_len == 8
    assert rta_type == 1
    assert data[4:] == bytes([10, 101, 0, 1])


def test_ipv6_local_attr_layout():
    ip = ipaddress.IPv6Address("20:2:3:4:5:6:7:8")
    attr = AddressAttr.local(str(ip))
    assert attr.kind is AddressAttrKind.LOCAL
    assert attr.value == ip
    data = attr.to_bytes()
    assert RTA.unpack_from(data)[0] == 20
    assert data[4:] == ip.packed


@pytest.mark.parametrize(
    "ctor, kind",
    [
        (AddressAttr.address, AddressAttrKind.ADDRESS),
        (AddressAttr.local, AddressAttrKind.LOCAL),
        (AddressAttr.broadcast, AddressAttrKind.BROADCAST),
        (AddressAttr.anycast, AddressAttrKind.ANYCAST),
    ],
)
def test_ip_attr_types_are_distinct_and_kinded(ctor, kind):
    attr = ctor("192.0.2.1")
    assert attr.kind is kind
    assert RTA.unpack_from(attr.to_bytes())[1] == attr.attr_type


def test_ip_attr_types_differ():
    types = {
        ctor("192.0.2.1").attr_type
        for ctor in (
            AddressAttr.address,
            AddressAttr.local,
            AddressAttr.broadcast,
            AddressAttr.anycast,
        )
    }
    assert len(types) == 4


def test_label_is_nul_terminated_and_padded():
    data = AddressAttr.label("tun0").to_bytes()
    rta_len, _ = RTA.unpack_from(data)
    assert rta_len == 4 + len(b"tun0\0")
    assert len(data) == nlmsg_align(rta_len)
    assert data[4:rta_len] == b"tun0\0"
    assert set(data[rta_len:]) <= {0}


def test_label_with_nul_rejected():
    with pytest.raises(ValueError):
        AddressAttr.label(b"tu\0n")


def test_cache_info_attr_contains_struct():
    info = AddrCacheInfo(preferred=1, valid=2, cstamp=3, tstamp=4)
    data = AddressAttr.cache_info(info).to_bytes()
    assert RTA.unpack_from(data)[0] == 4 + AddrCacheInfo.size()
    assert AddrCacheInfo.from_bytes(data[4:]) == info


def test_unknown_attr_keeps_type_and_data():
    data = AddressAttr.unknown(99, b"\x01\x02\x03").to_bytes()
    rta_len, rta_type = RTA.unpack_from(data)
    assert (rta_len, rta_type) == (7, 99)
    assert data[4:7] == b"\x01\x02\x03"
    assert len(data) % 4 == 0


def test_unspecified_attr():
    attr = AddressAttr.unspecified(b"abcd")
    assert attr.kind is AddressAttrKind.UNSPECIFIED
    assert attr.to_bytes()[4:] == b"abcd"


def test_unknown_attr_type_out_of_range():
    with pytest.raises(ValueError):
        AddressAttr.unknown(0x10000, b"")


def test_oversized_attr_rejected():
    with pytest.raises(ValueError):
        AddressAttr.unspecified(b"\0" * 0xFFFF).to_bytes()


def test_invalid_ip_rejected():
    with pytest.raises(ValueError):
        AddressAttr.address("not an address")


def test_get_address_body_round_trip():
    body = GetAddress(family=2, prefix_length=24, flags=0, scope=0, iface_idx=7).to_bytes()
    assert len(body) == IFA.size
    assert IFA.unpack(body) == (2, 24, 0, 0, 7)


def test_new_address_appends_attrs():
    attrs = [AddressAttr.local("10.0.0.1"), AddressAttr.label("tun0")]
    msg = NewAddress(family=2, prefix_length=8, flags=0, scope=0, iface_idx=3, attrs=attrs)
    body = msg.to_bytes()
    assert body[IFA.size :] == b"".join(a.to_bytes() for a in attrs)
    assert msg.attrs == tuple(attrs)


def test_delete_address_body():
    attr = AddressAttr.address("::1")
    body = DeleteAddress(10, 128, 0, 0, 4, [attr]).to_bytes()
    assert IFA.unpack_from(body) == (10, 128, 0, 0, 4)
    assert body[IFA.size :] == attr.to_bytes()


def test_address_field_out_of_range():
    with pytest.raises(ValueError):
        GetAddress(family=300, prefix_length=0, flags=0, scope=0, iface_idx=0).to_bytes()


@pytest.mark.parametrize(
    "payload, expected_type",
    [
        (NewAddress(2, 24, 0, 0, 1, [AddressAttr.local("10.0.0.1")]), RTM_NEWADDR),
        (GetAddress(2, 0, 0, 0, 0), RTM_GETADDR),
        (DeleteAddress(10, 64, 0, 0, 1, [AddressAttr.address("::1")]), RTM_DELADDR),
    ],
)
def test_request_header(payload, expected_type):
    data = NetlinkRequest(flags=5, seq=42, pid=0, payload=payload).to_bytes()
    length, msg_type, flags, seq, pid = HDR.unpack_from(data)
    assert length == len(data)
    assert msg_type == expected_type
    assert (flags, seq, pid) == (5, 42, 0)
    assert data[HDR.size :] == payload.to_bytes()
    assert len(data) % 4 == 0


def test_rtm_getaddr_value_fixed_by_kernel_abi():
    data = NetlinkRequest(0, 1, 0, GetAddress(2, 0, 0, 0, 0)).to_bytes()
    assert HDR.unpack_from(data)[1] == 22


def test_request_with_unsupported_payload():
    with pytest.raises(TypeError):
        NetlinkRequest(0, 1, 0, payload=b"raw").to_bytes()  # type: ignore[arg-type]


def test_rtnetlink_opens_route_socket():
    with mock.patch("socket.socket") as sock_cls:
        sock_cls.return_value.fileno.return_value = 7
        rt = RtNetlink()
        assert rt.fileno() == 7
        assert rt.seq == 1
        args = sock_cls.call_args[0]
        assert args[1] == socket.SOCK_RAW
        assert args[0] == getattr(socket, "AF_NETLINK", 16)
        rt.close()
        assert sock_cls.return_value.close.call_count == 1


def test_rtnetlink_context_manager_closes():
    with mock.patch("socket.socket") as sock_cls:
        sock_cls.return_value.fileno.return_value = 9
        with RtNetlink() as rt:
            assert rt.fileno() == 9
            assert sock_cls.return_value.close.call_count == 0
        assert sock_cls.return_value.close.call_count == 1