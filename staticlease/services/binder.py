from staticlease.config import V6_PREFERRED_LIFETIME, V6_VALID_LIFETIME
from staticlease.dhcp.lease import LeaseConfig
from staticlease.dhcp.packet4 import DHCPv4Message
from staticlease.dhcp.packet6 import (
    OPTION_IA_NA,
    AnyDHCPv6Message,
    DHCPv6Message,
    IAAddress,
    IANAOption,
    inner_message,
)


def bind_dhcpv4(resp: DHCPv4Message, lease: LeaseConfig) -> None:
    """Write the lease into the offered address, subnet mask and router; nothing else is touched."""
    resp.yiaddr = lease.address
    if lease.netmask is not None:
        resp.subnet_mask = lease.netmask
    if lease.gateway is not None:
        resp.set_router(lease.gateway)


def bind_dhcpv6(
    req: AnyDHCPv6Message,
    resp: DHCPv6Message,
    lease: LeaseConfig,
    preferred_lifetime: int = V6_PREFERRED_LIFETIME,
    valid_lifetime: int = V6_VALID_LIFETIME,
) -> bool:
    """
    Answer the client's IA_NA with the leased address. Any IA_NA already in
    the response for the same IAID is replaced.
    returns: False when the client did not ask for an IA_NA
    raises: ValueError if the request's IA_NA is malformed
    """
    request_iana = inner_message(req).get_option(OPTION_IA_NA)
    if request_iana is None:
        return False

    iaid = IANAOption.from_bytes(request_iana).iaid
    iana = IANAOption(
        iaid=iaid,
        addresses=[IAAddress(lease.address, preferred_lifetime, valid_lifetime)],
    )

    iaid_prefix = iaid.to_bytes(4, "big")
    resp.options = [
        (code, value) for code, value in resp.options
        if not (code == OPTION_IA_NA and value[:4] == iaid_prefix)
    ]
    resp.add_option(OPTION_IA_NA, iana.to_bytes())
    return True
