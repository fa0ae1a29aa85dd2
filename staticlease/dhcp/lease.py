import ipaddress
from dataclasses import dataclass
from typing import Union

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


def format_mac(raw: bytes, delimiter: str = ":") -> str:
    return delimiter.join(f"{b:02x}" for b in raw)


def _quote(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


# Each identity type is its own class so that, e.g., a Circuit-ID and a
# Remote-ID carrying the same bytes are never equal.

@dataclass(frozen=True)
class MACKey:
    address: bytes

    def __post_init__(self) -> None:
        if len(self.address) != 6:
            raise ValueError(f"hardware address must be 6 bytes, got {len(self.address)}")

    def __str__(self) -> str:
        return format_mac(self.address)


@dataclass(frozen=True)
class SubscriberIDKey:
    text: str

    def __str__(self) -> str:
        return "Subscriber-ID:" + _quote(self.text)


@dataclass(frozen=True)
class CircuitIDKey:
    value: bytes

    def __str__(self) -> str:
        return "Circuit-ID:" + _quote(self.value.decode("utf-8", errors="backslashreplace"))


@dataclass(frozen=True)
class RemoteIDKey:
    value: bytes

    def __str__(self) -> str:
        return "Remote-ID:" + _quote(self.value.decode("utf-8", errors="backslashreplace"))


LookupKey = Union[MACKey, SubscriberIDKey, CircuitIDKey, RemoteIDKey]


@dataclass(frozen=True)
class LeaseConfig:
    """
    A static binding. `netmask` and `gateway` only exist for IPv4 leases,
    and a gateway is only allowed alongside a netmask.
    """

    address: IPAddress
    netmask: ipaddress.IPv4Address | None = None
    gateway: ipaddress.IPv4Address | None = None

    def __post_init__(self) -> None:
        if self.address.is_unspecified:
            raise ValueError("lease address must not be the unspecified address")
        if self.gateway is not None and self.netmask is None:
            raise ValueError("gateway requires a netmask")
        if self.address.version == 6 and self.netmask is not None:
            raise ValueError("IPv6 leases carry neither netmask nor gateway")

    @property
    def version(self) -> int:
        return self.address.version
