from staticlease.config import log
from staticlease.dhcp.lease import (
    CircuitIDKey,
    LookupKey,
    MACKey,
    RemoteIDKey,
    SubscriberIDKey,
    format_mac,
)
from staticlease.dhcp.packet4 import (
    DHCP_RELAY_SUBOPT_CIRCUIT_ID,
    DHCP_RELAY_SUBOPT_REMOTE_ID,
    DHCP_RELAY_SUBOPT_SUBSCRIBER_ID,
    DHCPv4Message,
    MalformedOptionError,
)
from staticlease.dhcp.packet6 import AnyDHCPv6Message, extract_mac

# Candidates are tried in this order and the first hit wins
LOOKUP_PRECEDENCE = (MACKey, SubscriberIDKey, RemoteIDKey, CircuitIDKey)

# Cisco "string" circuit-id: <type=1><len><text>
CIRCUIT_ID_TYPE_STRING = 1


def decode_circuit_id(raw: bytes) -> bytes:
    if len(raw) >= 2 and raw[0] == CIRCUIT_ID_TYPE_STRING and raw[1] == len(raw) - 2:
        return raw[2:]
    return raw


def dhcpv4_candidates(req: DHCPv4Message) -> list[LookupKey]:
    keys: list[LookupKey] = []

    hw_addr = req.client_hw_addr
    if len(hw_addr) == 6:
        keys.append(MACKey(hw_addr))
    else:
        log.debug("unsupported_hw_addr", htype=req.htype, chaddr=hw_addr.hex())

    try:
        sub_options = req.relay_agent_info()
    except MalformedOptionError as e:
        log.warning("malformed_relay_agent_info", mac=format_mac(hw_addr), error=str(e))
        return keys
    if not sub_options:
        return keys

    subscriber_id = sub_options.get(DHCP_RELAY_SUBOPT_SUBSCRIBER_ID)
    if subscriber_id is not None:
        try:
            keys.append(SubscriberIDKey(subscriber_id.decode("utf-8")))
        except UnicodeDecodeError:
            log.debug("subscriber_id_not_utf8", mac=format_mac(hw_addr), subscriber_id=subscriber_id.hex())

    remote_id = sub_options.get(DHCP_RELAY_SUBOPT_REMOTE_ID)
    if remote_id is not None:
        keys.append(RemoteIDKey(remote_id))

    circuit_id = sub_options.get(DHCP_RELAY_SUBOPT_CIRCUIT_ID)
    if circuit_id is not None:
        keys.append(CircuitIDKey(decode_circuit_id(circuit_id)))

    return sorted(keys, key=lambda k: LOOKUP_PRECEDENCE.index(type(k)))


def dhcpv6_candidates(req: AnyDHCPv6Message) -> list[LookupKey]:
    try:
        mac = extract_mac(req)
    except ValueError as e:
        log.warning("undecodable_dhcpv6_relay", error=str(e))
        return []
    if mac is None:
        log.debug("dhcpv6_mac_not_found", msg_type=req.msg_type)
        return []
    return [MACKey(mac)]
