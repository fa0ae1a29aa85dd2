import struct
import time

import pytest

from staticlease.dhcp.packet6 import (
    DUID_LL,
    HWTYPE_ETHERNET,
    MSG_ADVERTISE,
    MSG_SOLICIT,
    OPTION_CLIENTID,
    OPTION_IA_NA,
    OPTION_SERVERID,
    DHCPv6Message,
    IANAOption,
)

# Option 82 captured from a relay, see test_packet4.py for the breakdown
TEST_PACKET_1 = b"\x52\x15\x02\x0c\x02\x0a\x00\x00\x0a\xff\xc6\x01\x11\x00\x00\x00\x06\x05\x50\x4f\x52\x54\x31\xff"
TEST_PACKET_2 = b"\x52\x11\x01\x07\x01\x05\x4e\x65\x78\x75\x73\x02\x06\x88\xf0\x31\xa4\x46\xc1\xff"


def mac(text: str) -> bytes:
    return bytes.fromhex(text.replace(":", ""))


def duid_ll(hw_addr: bytes) -> bytes:
    return struct.pack("!HH", DUID_LL, HWTYPE_ETHERNET) + hw_addr


def new_solicit(hw_addr: bytes, iaid: int = 0x11223344) -> DHCPv6Message:
    return DHCPv6Message(
        msg_type=MSG_SOLICIT,
        transaction_id=0xABCDEF,
        options=[
            (OPTION_CLIENTID, duid_ll(hw_addr)),
            (OPTION_IA_NA, IANAOption(iaid=iaid).to_bytes()),
        ],
    )


def new_advertise_from_solicit(req: DHCPv6Message) -> DHCPv6Message:
    return DHCPv6Message(
        msg_type=MSG_ADVERTISE,
        transaction_id=req.transaction_id,
        options=[
            (OPTION_CLIENTID, req.get_option(OPTION_CLIENTID)),
            (OPTION_SERVERID, duid_ll(mac("02:00:00:00:00:01"))),
        ],
    )


def wait_for(predicate, timeout: float = 5.0, interval: float = 0.02) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def lease_file(tmp_path):
    """Write lines to a fresh lease file and return its path."""
    def _write(*lines: str, name: str = "leases.txt") -> str:
        path = tmp_path / name
        path.write_text("".join(line + "\n" for line in lines), encoding="utf-8")
        return str(path)
    return _write
