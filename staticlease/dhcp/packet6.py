import ipaddress
import struct
from dataclasses import dataclass, field
from typing import List, Tuple, Union

MSG_SOLICIT = 1
MSG_ADVERTISE = 2
MSG_REQUEST = 3
MSG_REPLY = 7
MSG_RELAY_FORW = 12
MSG_RELAY_REPL = 13

OPTION_CLIENTID = 1
OPTION_SERVERID = 2
OPTION_IA_NA = 3
OPTION_IAADDR = 5
OPTION_RELAY_MSG = 9
OPTION_CLIENT_LINKLAYER_ADDR = 79

DUID_LLT = 1
DUID_LL = 3
HWTYPE_ETHERNET = 1

Option6 = Tuple[int, bytes]


def parse_options6(data: bytes) -> List[Option6]:
    out = []
    i = 0
    while i < len(data):
        if i + 4 > len(data):
            raise ValueError(f"truncated DHCPv6 option header at offset {i}")
        code, ln = struct.unpack("!HH", data[i : i + 4])
        if i + 4 + ln > len(data):
            raise ValueError(f"DHCPv6 option {code} overruns the message")
        out.append((code, data[i + 4 : i + 4 + ln]))
        i += 4 + ln
    return out


def options6_to_bytes(options: List[Option6]) -> bytes:
    return b"".join(struct.pack("!HH", code, len(value)) + value for code, value in options)


class _Options6Mixin:
    options: List[Option6]

    def get_option(self, code: int) -> bytes | None:
        for c, value in self.options:
            if c == code:
                return value
        return None

    def get_options(self, code: int) -> List[bytes]:
        return [value for c, value in self.options if c == code]

    def add_option(self, code: int, value: bytes) -> None:
        self.options.append((code, value))


@dataclass
class DHCPv6Message(_Options6Mixin):
    msg_type: int
    transaction_id: int = 0
    options: List[Option6] = field(default_factory=list)

    is_relay = False

    @classmethod
    def from_bytes(cls, data: bytes) -> "DHCPv6Message":
        if len(data) < 4:
            raise ValueError("short DHCPv6 message")
        xid = int.from_bytes(data[1:4], "big")
        return cls(msg_type=data[0], transaction_id=xid, options=parse_options6(data[4:]))

    def to_bytes(self) -> bytes:
        return bytes([self.msg_type]) + self.transaction_id.to_bytes(3, "big") + options6_to_bytes(self.options)


@dataclass
class DHCPv6RelayMessage(_Options6Mixin):
    msg_type: int
    hop_count: int
    link_address: ipaddress.IPv6Address
    peer_address: ipaddress.IPv6Address
    options: List[Option6] = field(default_factory=list)

    is_relay = True

    @classmethod
    def from_bytes(cls, data: bytes) -> "DHCPv6RelayMessage":
        if len(data) < 34:
            raise ValueError("short DHCPv6 relay message")
        return cls(
            msg_type=data[0],
            hop_count=data[1],
            link_address=ipaddress.IPv6Address(data[2:18]),
            peer_address=ipaddress.IPv6Address(data[18:34]),
            options=parse_options6(data[34:]),
        )

    def to_bytes(self) -> bytes:
        return (
            bytes([self.msg_type, self.hop_count])
            + self.link_address.packed
            + self.peer_address.packed
            + options6_to_bytes(self.options)
        )

    def relay_message(self) -> "AnyDHCPv6Message":
        data = self.get_option(OPTION_RELAY_MSG)
        if data is None:
            raise ValueError("relay message carries no Relay Message option")
        return decode_dhcpv6(data)


AnyDHCPv6Message = Union[DHCPv6Message, DHCPv6RelayMessage]


def decode_dhcpv6(data: bytes) -> AnyDHCPv6Message:
    if data and data[0] in (MSG_RELAY_FORW, MSG_RELAY_REPL):
        return DHCPv6RelayMessage.from_bytes(data)
    return DHCPv6Message.from_bytes(data)


def innermost_relay(msg: AnyDHCPv6Message) -> DHCPv6RelayMessage | None:
    """The relay agent closest to the client, or None for a direct message."""
    relay = None
    while msg.is_relay:
        relay = msg
        msg = msg.relay_message()
    return relay


def inner_message(msg: AnyDHCPv6Message) -> DHCPv6Message:
    while msg.is_relay:
        msg = msg.relay_message()
    return msg


@dataclass
class IAAddress:
    address: ipaddress.IPv6Address
    preferred_lifetime: int
    valid_lifetime: int
    options: List[Option6] = field(default_factory=list)

    @classmethod
    def from_bytes(cls, data: bytes) -> "IAAddress":
        if len(data) < 24:
            raise ValueError("short IA Address option")
        preferred, valid = struct.unpack("!II", data[16:24])
        return cls(
            address=ipaddress.IPv6Address(data[:16]),
            preferred_lifetime=preferred,
            valid_lifetime=valid,
            options=parse_options6(data[24:]),
        )

    def to_bytes(self) -> bytes:
        return (
            self.address.packed
            + struct.pack("!II", self.preferred_lifetime, self.valid_lifetime)
            + options6_to_bytes(self.options)
        )


@dataclass
class IANAOption:
    iaid: int
    t1: int = 0
    t2: int = 0
    addresses: List[IAAddress] = field(default_factory=list)
    options: List[Option6] = field(default_factory=list)

    @classmethod
    def from_bytes(cls, data: bytes) -> "IANAOption":
        if len(data) < 12:
            raise ValueError("short IA_NA option")
        iaid, t1, t2 = struct.unpack("!III", data[:12])
        addresses = []
        others = []
        for code, value in parse_options6(data[12:]):
            if code == OPTION_IAADDR:
                addresses.append(IAAddress.from_bytes(value))
            else:
                others.append((code, value))
        return cls(iaid=iaid, t1=t1, t2=t2, addresses=addresses, options=others)

    def to_bytes(self) -> bytes:
        sub = [(OPTION_IAADDR, a.to_bytes()) for a in self.addresses] + self.options
        return struct.pack("!III", self.iaid, self.t1, self.t2) + options6_to_bytes(sub)

    def __str__(self) -> str:
        addrs = ", ".join(
            f"IP={a.address} PreferredLifetime={a.preferred_lifetime}s ValidLifetime={a.valid_lifetime}s"
            for a in self.addresses
        )
        return f"IA_NA(IAID={self.iaid:#010x} T1={self.t1}s T2={self.t2}s [{addrs}])"


def mac_from_eui64(addr: ipaddress.IPv6Address) -> bytes | None:
    iid = addr.packed[8:]
    if iid[3:5] != b"\xff\xfe":
        return None
    return bytes([iid[0] ^ 0x02]) + iid[1:3] + iid[5:8]


def mac_from_duid(duid: bytes) -> bytes | None:
    if len(duid) < 4:
        return None
    duid_type, hw_type = struct.unpack("!HH", duid[:4])
    if hw_type != HWTYPE_ETHERNET:
        return None
    if duid_type == DUID_LLT:
        lladdr = duid[8:]
    elif duid_type == DUID_LL:
        lladdr = duid[4:]
    else:
        return None
    return lladdr if len(lladdr) == 6 else None


def extract_mac(msg: AnyDHCPv6Message) -> bytes | None:
    """
    Hardware address of the client that sent `msg`.
    Tries, in order: the Client Link-Layer Address option (RFC 6939) of the
    relay nearest the client, the EUI-64 interface ID of that relay's peer
    address, and a DUID-LLT / DUID-LL client identifier.
    raises: ValueError if a relay layer cannot be decoded
    """
    relay = innermost_relay(msg)
    if relay is not None:
        lladdr = relay.get_option(OPTION_CLIENT_LINKLAYER_ADDR)
        if lladdr is not None and len(lladdr) == 8 and struct.unpack("!H", lladdr[:2])[0] == HWTYPE_ETHERNET:
            return lladdr[2:]
        mac = mac_from_eui64(relay.peer_address)
        if mac is not None:
            return mac

    client_id = inner_message(msg).get_option(OPTION_CLIENTID)
    if client_id is None:
        return None
    return mac_from_duid(client_id)
