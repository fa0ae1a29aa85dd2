import ipaddress
import struct
from dataclasses import dataclass, field
from typing import Dict, List

BOOTP_FIXED_LEN = 236
DHCP_MAGIC = b"\x63\x82\x53\x63"
_BOOTP_HEADER = struct.Struct("!BBBBIHH4s4s4s4s16s64s128s")

BOOTREQUEST = 1
BOOTREPLY = 2
HTYPE_ETHERNET = 1

DHCP_OPTION_PAD = 0
DHCP_OPTION_SUBNET_MASK = 1
DHCP_OPTION_ROUTER = 3
DHCP_OPTION_MESSAGE_TYPE = 53
DHCP_OPTION_RELAY_AGENT = 82
DHCP_OPTION_END = 255

# RFC 3046 / RFC 3993 / RFC 5107 sub-options of option 82
DHCP_RELAY_SUBOPT_CIRCUIT_ID = 1
DHCP_RELAY_SUBOPT_REMOTE_ID = 2
DHCP_RELAY_SUBOPT_SUBSCRIBER_ID = 6
DHCP_RELAY_SUBOPT_RELAY_ID = 12

DHCP_MSG_DISCOVER = 1
DHCP_MSG_OFFER = 2
DHCP_MSG_REQUEST = 3
DHCP_MSG_ACK = 5

_ZERO = ipaddress.IPv4Address(0)


class MalformedOptionError(ValueError):
    pass


def parse_options(opts: bytes) -> list[tuple[int, bytes]]:
    out = []
    i = 0
    while i < len(opts):
        code = opts[i]
        if code == DHCP_OPTION_PAD:
            i += 1
            continue
        if code == DHCP_OPTION_END:
            break
        if i + 1 >= len(opts):
            break
        ln = opts[i + 1]
        data = opts[i + 2 : i + 2 + ln]
        out.append((code, data))
        i += 2 + ln
    return out


def options_from_bytes(opts: bytes) -> Dict[int, bytes]:
    """Decode an options field, concatenating split options (RFC 3396)."""
    merged: Dict[int, bytes] = {}
    for code, data in parse_options(opts):
        merged[code] = merged.get(code, b"") + data
    return merged


def options_to_bytes(options: Dict[int, bytes]) -> bytes:
    out = bytearray()
    for code, data in options.items():
        if code in (DHCP_OPTION_PAD, DHCP_OPTION_END):
            continue
        # Long values are split across consecutive instances of the option
        chunks = [data[i : i + 255] for i in range(0, len(data), 255)] or [b""]
        for chunk in chunks:
            out.extend(bytes([code, len(chunk)]) + chunk)
    out.append(DHCP_OPTION_END)
    return bytes(out)


def parse_relay_sub_options(data: bytes) -> Dict[int, bytes]:
    """
    Decode the sub-options carried in a relay agent information option.
    If a sub-option appears more than once, the first instance is kept.
    raises: MalformedOptionError when a sub-option overruns the option
    """
    out: Dict[int, bytes] = {}
    i = 0
    while i < len(data):
        if i + 1 >= len(data):
            raise MalformedOptionError(f"truncated sub-option header at offset {i}")
        code = data[i]
        ln = data[i + 1]
        end = i + 2 + ln
        if end > len(data):
            raise MalformedOptionError(
                f"sub-option {code} claims {ln} bytes, only {len(data) - i - 2} left"
            )
        out.setdefault(code, data[i + 2 : end])
        i = end
    return out


def build_relay_sub_options(sub_options: Dict[int, bytes]) -> bytes:
    parts = []
    for code, value in sub_options.items():
        if len(value) > 255:
            raise ValueError(f"sub-option {code} is longer than 255 bytes")
        parts.append(bytes([code, len(value)]) + value)
    data = b"".join(parts)
    if len(data) > 255:
        raise ValueError("relay agent information does not fit in one option")
    return data


@dataclass
class DHCPv4Message:
    op: int = BOOTREQUEST
    htype: int = HTYPE_ETHERNET
    hlen: int = 6
    hops: int = 0
    xid: int = 0
    secs: int = 0
    flags: int = 0
    ciaddr: ipaddress.IPv4Address = _ZERO
    yiaddr: ipaddress.IPv4Address = _ZERO
    siaddr: ipaddress.IPv4Address = _ZERO
    giaddr: ipaddress.IPv4Address = _ZERO
    chaddr: bytes = b""
    sname: bytes = b""
    file: bytes = b""
    options: Dict[int, bytes] = field(default_factory=dict)

    @classmethod
    def from_bytes(cls, payload: bytes) -> "DHCPv4Message":
        if len(payload) < BOOTP_FIXED_LEN + len(DHCP_MAGIC):
            raise ValueError(f"short BOOTP message ({len(payload)} bytes)")
        if payload[BOOTP_FIXED_LEN : BOOTP_FIXED_LEN + len(DHCP_MAGIC)] != DHCP_MAGIC:
            raise ValueError("bad DHCP magic cookie")

        (op, htype, hlen, hops, xid, secs, flags,
         ciaddr, yiaddr, siaddr, giaddr, chaddr, sname, file) = _BOOTP_HEADER.unpack_from(payload)
        return cls(
            op=op,
            htype=htype,
            hlen=hlen,
            hops=hops,
            xid=xid,
            secs=secs,
            flags=flags,
            ciaddr=ipaddress.IPv4Address(ciaddr),
            yiaddr=ipaddress.IPv4Address(yiaddr),
            siaddr=ipaddress.IPv4Address(siaddr),
            giaddr=ipaddress.IPv4Address(giaddr),
            chaddr=chaddr[: min(hlen, 16)],
            sname=sname.rstrip(b"\x00"),
            file=file.rstrip(b"\x00"),
            options=options_from_bytes(payload[BOOTP_FIXED_LEN + len(DHCP_MAGIC) :]),
        )

    def to_bytes(self) -> bytes:
        header = _BOOTP_HEADER.pack(
            self.op, self.htype, self.hlen, self.hops, self.xid, self.secs, self.flags,
            self.ciaddr.packed, self.yiaddr.packed, self.siaddr.packed, self.giaddr.packed,
            self.chaddr, self.sname, self.file,
        )
        return header + DHCP_MAGIC + options_to_bytes(self.options)

    @property
    def client_hw_addr(self) -> bytes:
        return self.chaddr[: self.hlen]

    @property
    def message_type(self) -> int | None:
        data = self.options.get(DHCP_OPTION_MESSAGE_TYPE)
        return data[0] if data else None

    def get_option(self, code: int) -> bytes | None:
        return self.options.get(code)

    def update_option(self, code: int, value: bytes) -> None:
        self.options[code] = value

    def relay_agent_info(self) -> Dict[int, bytes] | None:
        """Sub-options of option 82, or None when the request was not relayed with one."""
        data = self.options.get(DHCP_OPTION_RELAY_AGENT)
        if data is None:
            return None
        return parse_relay_sub_options(data)

    @property
    def subnet_mask(self) -> ipaddress.IPv4Address | None:
        data = self.options.get(DHCP_OPTION_SUBNET_MASK)
        if data is None or len(data) != 4:
            return None
        return ipaddress.IPv4Address(data)

    @subnet_mask.setter
    def subnet_mask(self, mask: ipaddress.IPv4Address) -> None:
        self.options[DHCP_OPTION_SUBNET_MASK] = mask.packed

    @property
    def router(self) -> List[ipaddress.IPv4Address]:
        data = self.options.get(DHCP_OPTION_ROUTER) or b""
        return [ipaddress.IPv4Address(data[i : i + 4]) for i in range(0, len(data) - 3, 4)]

    def set_router(self, *routers: ipaddress.IPv4Address) -> None:
        self.options[DHCP_OPTION_ROUTER] = b"".join(r.packed for r in routers)

