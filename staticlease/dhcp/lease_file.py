"""
Lease file parsing.

One binding per line::

    <mac-or-id> <ip>[,<netmask>[,<gateway>]]

where the identity is either a hardware address (``aa:bb:cc:dd:ee:ff`` or
``aa-bb-cc-dd-ee-ff``) or one of ``Subscriber-ID:"..."``,
``Circuit-ID:"..."``, ``Remote-ID:"..."``. Blank lines and lines starting
with ``#`` are ignored.
"""
import ipaddress
import re
from typing import Callable, Dict, Tuple

from staticlease.dhcp.lease import (
    CircuitIDKey,
    IPAddress,
    LeaseConfig,
    LookupKey,
    MACKey,
    RemoteIDKey,
    SubscriberIDKey,
)
from staticlease.errors import LoadError, ParseError

LeaseRecords = Dict[LookupKey, LeaseConfig]

_MAC_RE = re.compile(r"^[0-9A-Fa-f]{2}([:-])[0-9A-Fa-f]{2}(?:\1[0-9A-Fa-f]{2}){4}$")

_QUOTED_KEYS: list[Tuple[str, Callable[[str], LookupKey]]] = [
    ("Subscriber-ID:", SubscriberIDKey),
    ("Circuit-ID:", lambda s: CircuitIDKey(s.encode("utf-8"))),
    ("Remote-ID:", lambda s: RemoteIDKey(s.encode("utf-8"))),
]


def parse_mac(text: str) -> bytes:
    if not _MAC_RE.match(text):
        raise ParseError(f"invalid hardware address {text!r}")
    return bytes.fromhex(text.replace(text[2], ""))


def _read_quoted(text: str) -> Tuple[str, str]:
    """Split `"ident" rest` into the unescaped identifier and whatever follows the closing quote."""
    if not text.startswith('"'):
        raise ParseError("identifier must be enclosed in double quotes")

    out = []
    i = 1
    while i < len(text):
        c = text[i]
        if c == '"':
            return "".join(out), text[i + 1 :]
        if c == "\\":
            if i + 1 >= len(text) or text[i + 1] not in ('"', "\\"):
                raise ParseError(f"invalid escape sequence at column {i + 1}")
            out.append(text[i + 1])
            i += 2
            continue
        out.append(c)
        i += 1
    raise ParseError("missing closing quote on identifier")


def _parse_key(line: str) -> Tuple[LookupKey, list[str]]:
    for prefix, make_key in _QUOTED_KEYS:
        if line.startswith(prefix):
            ident, rest = _read_quoted(line[len(prefix) :])
            if rest and not rest[0].isspace():
                raise ParseError("expected whitespace after quoted identifier")
            return make_key(ident), rest.split()

    fields = line.split()
    if len(fields) < 2:
        raise ParseError(f"expected 2 fields, got {len(fields)}")
    return MACKey(parse_mac(fields[0])), fields[1:]


def _parse_address(token: str, version: int) -> IPAddress:
    try:
        addr = ipaddress.ip_address(token)
    except ValueError:
        raise ParseError(f"invalid IP address {token!r}") from None
    if addr.version != version:
        raise ParseError(f"expected an IPv{version} address, got {token!r}")
    if addr.is_unspecified:
        raise ParseError(f"{token!r} is not a usable lease address")
    return addr


def _parse_ipv4(token: str, what: str) -> ipaddress.IPv4Address:
    try:
        return ipaddress.IPv4Address(token)
    except ValueError:
        raise ParseError(f"invalid {what} {token!r}") from None


def is_contiguous_mask(mask: ipaddress.IPv4Address) -> bool:
    host_bits = ~int(mask) & 0xFFFFFFFF
    return host_bits & (host_bits + 1) == 0


def parse_lease_value(text: str, version: int) -> LeaseConfig:
    tokens = text.split(",")
    if len(tokens) > 3:
        raise ParseError(f"too many comma-separated fields in {text!r}")
    if len(tokens) == 3 and not tokens[1]:
        raise ParseError("gateway specified without a netmask")
    if any(not t for t in tokens):
        raise ParseError(f"empty field in {text!r}")

    address = _parse_address(tokens[0], version)
    if len(tokens) == 1:
        return LeaseConfig(address=address)

    if version != 4:
        raise ParseError("netmask and gateway are only valid for IPv4 leases")

    netmask = _parse_ipv4(tokens[1], "netmask")
    if not is_contiguous_mask(netmask):
        raise ParseError(f"netmask {tokens[1]} does not have contiguous bits set")

    gateway = _parse_ipv4(tokens[2], "gateway") if len(tokens) == 3 else None
    return LeaseConfig(address=address, netmask=netmask, gateway=gateway)


def parse_lease_line(line: str, version: int) -> Tuple[LookupKey, LeaseConfig] | None:
    """
    Parse one lease line for the given IP version (4 or 6).
    returns: (key, config), or None for blank and comment lines
    raises: ParseError
    """
    line = line.strip()
    if not line or line.startswith("#"):
        return None

    key, fields = _parse_key(line)
    if not fields:
        raise ParseError("missing address field")
    if len(fields) > 1:
        if any(f.startswith(prefix) for f in fields for prefix, _ in _QUOTED_KEYS):
            raise ParseError("only one identity may be given per line")
        raise ParseError(f"unexpected trailing fields: {' '.join(fields[1:])!r}")

    return key, parse_lease_value(fields[0], version)


def load_lease_file(path: str, version: int) -> LeaseRecords:
    """
    Read a whole lease file. Any bad line or repeated identity fails the
    entire load; no partial result is ever returned.
    """
    records: LeaseRecords = {}
    first_seen: Dict[LookupKey, int] = {}
    try:
        with open(path, encoding="utf-8-sig") as f:
            for line_no, line in enumerate(f, start=1):
                try:
                    parsed = parse_lease_line(line, version)
                except ParseError as e:
                    e.line, e.line_no = line.rstrip("\n"), line_no
                    raise LoadError(f"{path}:{line_no}: {e}", path=path) from e
                if parsed is None:
                    continue

                key, config = parsed
                if key in records:
                    raise LoadError(
                        f"{path}:{line_no}: duplicate lease for {key}, first given on line {first_seen[key]}",
                        path=path,
                    )
                records[key] = config
                first_seen[key] = line_no
    except (OSError, UnicodeDecodeError) as e:
        raise LoadError(f"cannot read lease file {path}: {e}", path=path) from e

    return records


def load_dhcpv4_records(path: str) -> LeaseRecords:
    return load_lease_file(path, 4)


def load_dhcpv6_records(path: str) -> LeaseRecords:
    return load_lease_file(path, 6)
