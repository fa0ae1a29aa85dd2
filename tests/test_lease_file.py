import ipaddress

import pytest

from conftest import mac
from staticlease.dhcp.lease import CircuitIDKey, LeaseConfig, MACKey, RemoteIDKey, SubscriberIDKey
from staticlease.dhcp.lease_file import (
    is_contiguous_mask,
    load_dhcpv4_records,
    load_dhcpv6_records,
    parse_lease_line,
)
from staticlease.errors import LoadError, ParseError

IP = ipaddress.ip_address
V4 = ipaddress.IPv4Address


def test_load_dhcpv4_records(lease_file):
    path = lease_file(
        "00:11:22:33:44:55 192.0.2.100",
        "11:22:33:44:55:66 192.0.2.101",
        "# this is a comment",
        "",
        'Subscriber-ID:"Test subscriber 1" 192.0.2.110',
        'Subscriber-ID:"Test subscriber \\"2\\"" 192.0.2.111',
        'Circuit-ID:"circuit1" 192.0.2.111',
        'Remote-ID:"remote1" 192.0.2.111',
        "22:33:44:55:66:77 10.10.10.50,255.255.255.0,10.10.10.1",
        "22:33:44:55:66:78 10.10.10.50,255.255.255.0",
        "22:33:44:55:66:79 10.10.10.50,0.0.0.0",
    )

    records = load_dhcpv4_records(path)

    assert len(records) == 9
    assert records[MACKey(mac("00:11:22:33:44:55"))] == LeaseConfig(IP("192.0.2.100"))
    assert records[MACKey(mac("11:22:33:44:55:66"))] == LeaseConfig(IP("192.0.2.101"))
    assert records[SubscriberIDKey("Test subscriber 1")].address == IP("192.0.2.110")
    assert records[SubscriberIDKey('Test subscriber "2"')].address == IP("192.0.2.111")
    assert records[CircuitIDKey(b"circuit1")].address == IP("192.0.2.111")
    assert records[RemoteIDKey(b"remote1")].address == IP("192.0.2.111")

    full = records[MACKey(mac("22:33:44:55:66:77"))]
    assert full == LeaseConfig(IP("10.10.10.50"), V4("255.255.255.0"), V4("10.10.10.1"))

    no_gw = records[MACKey(mac("22:33:44:55:66:78"))]
    assert no_gw.netmask == V4("255.255.255.0")
    assert no_gw.gateway is None

    assert records[MACKey(mac("22:33:44:55:66:79"))].netmask == V4("0.0.0.0")


def test_load_dhcpv6_records(lease_file):
    path = lease_file(
        "00:11:22:33:44:55 2001:db8::10:1",
        "11:22:33:44:55:66 2001:db8::10:2",
        "# this is a comment",
    )

    records = load_dhcpv6_records(path)

    assert records == {
        MACKey(mac("00:11:22:33:44:55")): LeaseConfig(IP("2001:db8::10:1")),
        MACKey(mac("11:22:33:44:55:66")): LeaseConfig(IP("2001:db8::10:2")),
    }


@pytest.mark.parametrize(
    "line",
    [
        "foo",
        'Subscriber-ID:"Subscriber 3 192.0.2.120',
        "abcd 192.0.2.102",
        "00:11:22:33:44 192.0.2.102",
        "00:11:22:33-44:55 192.0.2.102",
        "22:33:44:55:66:77 bcde",
        "22:33:44:55:66:77 10.10.10.100,255.128.255.0",
        "22:33:44:55:66:77 10.10.10.100,,10.10.10.1",
        "22:33:44:55:66:77 10.10.10.100,255.255.255.0,",
        "22:33:44:55:66:77 10.10.10.100,",
        "22:33:44:55:66:77 10.10.10.100,255.255.255.0,10.10.10.1,10.10.10.2",
        '22:33:44:55:66:77 Subscriber-ID:"testing" 10.10.10.100',
        "00:11:22:33:44:55 2001:db8::10:1",
        "00:11:22:33:44:55 0.0.0.0",
        "00:11:22:33:44:55 192.0.2.1 extra",
        "00:11:22:33:44:55 192.0.2.1,255.255.255.0,bogus",
        'Circuit-ID:"bad\\escape" 192.0.2.1',
        'Remote-ID:"agent1"192.0.2.1',
        'Remote-ID:"agent1"',
        "Remote-ID:agent1 192.0.2.1",
    ],
)
def test_dhcpv4_rejects(line):
    with pytest.raises(ParseError):
        parse_lease_line(line, 4)


@pytest.mark.parametrize(
    "line",
    [
        "foo",
        "abcd 2001:db8::10:3",
        "22:33:44:55:66:77 bcde",
        "00:11:22:33:44:55 192.0.2.100",
        "00:11:22:33:44:55 2001:db8::1,255.255.255.0",
        "00:11:22:33:44:55 ::",
    ],
)
def test_dhcpv6_rejects(line):
    with pytest.raises(ParseError):
        parse_lease_line(line, 6)


def test_blank_and_comment_lines_are_skipped():
    assert parse_lease_line("", 4) is None
    assert parse_lease_line("   \n", 4) is None
    assert parse_lease_line("# 00:11:22:33:44:55 192.0.2.1", 4) is None


def test_mac_spellings_produce_the_same_key():
    colon, _ = parse_lease_line("AA:BB:CC:DD:EE:FF 192.0.2.1", 4)
    dash, _ = parse_lease_line("aa-bb-cc-dd-ee-ff 192.0.2.1", 4)
    assert colon == dash == MACKey(b"\xaa\xbb\xcc\xdd\xee\xff")
    assert str(colon) == "aa:bb:cc:dd:ee:ff"


def test_quoted_identifiers_keep_spaces_and_escapes():
    key, config = parse_lease_line('Circuit-ID:"a \\\\ b \\"c\\""   192.0.2.9,255.255.0.0', 4)
    assert key == CircuitIDKey(b'a \\ b "c"')
    assert config == LeaseConfig(IP("192.0.2.9"), V4("255.255.0.0"))


def test_same_text_under_different_identity_types_is_distinct():
    circuit, _ = parse_lease_line('Circuit-ID:"x" 192.0.2.1', 4)
    remote, _ = parse_lease_line('Remote-ID:"x" 192.0.2.1', 4)
    assert circuit != remote
    assert len({circuit, remote}) == 2


def test_gateway_without_netmask_message():
    with pytest.raises(ParseError, match="without a netmask"):
        parse_lease_line("22:33:44:55:66:77 10.10.10.100,,10.10.10.1", 4)


def test_two_identities_message():
    with pytest.raises(ParseError, match="one identity"):
        parse_lease_line('22:33:44:55:66:77 Subscriber-ID:"testing" 10.10.10.100', 4)


@pytest.mark.parametrize(
    "mask, ok",
    [
        ("255.255.255.255", True),
        ("255.255.255.0", True),
        ("255.255.254.0", True),
        ("128.0.0.0", True),
        ("0.0.0.0", True),
        ("255.128.255.0", False),
        ("0.255.255.255", False),
        ("255.255.255.1", False),
    ],
)
def test_is_contiguous_mask(mask, ok):
    assert is_contiguous_mask(V4(mask)) is ok


def test_duplicate_identity_fails_the_load(lease_file):
    path = lease_file(
        "00:11:22:33:44:55 192.0.2.100",
        "00-11-22-33-44-55 192.0.2.101",
    )
    with pytest.raises(LoadError, match="duplicate"):
        load_dhcpv4_records(path)


def test_bad_line_reports_file_and_line(lease_file):
    path = lease_file(
        "00:11:22:33:44:55 192.0.2.100",
        "# comment",
        "11:22:33:44:55:66 not-an-ip",
    )
    with pytest.raises(LoadError) as excinfo:
        load_dhcpv4_records(path)

    assert excinfo.value.path == path
    assert f"{path}:3:" in str(excinfo.value)
    cause = excinfo.value.__cause__
    assert isinstance(cause, ParseError)
    assert cause.line_no == 3
    assert cause.line == "11:22:33:44:55:66 not-an-ip"


def test_missing_file_is_a_load_error(tmp_path):
    with pytest.raises(LoadError):
        load_dhcpv4_records(str(tmp_path / "nope.txt"))


def test_utf8_bom_is_ignored(tmp_path):
    path = tmp_path / "leases.txt"
    path.write_bytes(b"\xef\xbb\xbf00:11:22:33:44:55 192.0.2.100\n")

    records = load_dhcpv4_records(str(path))

    assert records == {MACKey(mac("00:11:22:33:44:55")): LeaseConfig(IP("192.0.2.100"))}
