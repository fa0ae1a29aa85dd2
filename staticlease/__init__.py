from staticlease.dhcp.lease import (
    CircuitIDKey,
    LeaseConfig,
    LookupKey,
    MACKey,
    RemoteIDKey,
    SubscriberIDKey,
)
from staticlease.errors import ConfigError, LoadError, ParseError, StaticLeaseError
from staticlease.services.file_plugin import DHCPPlugin, FilePlugin
from staticlease.services.lease_table import LeaseSnapshot, LeaseTable

__version__ = "0.1.0"

__all__ = [
    "CircuitIDKey",
    "ConfigError",
    "DHCPPlugin",
    "FilePlugin",
    "LeaseConfig",
    "LeaseSnapshot",
    "LeaseTable",
    "LoadError",
    "LookupKey",
    "MACKey",
    "ParseError",
    "RemoteIDKey",
    "StaticLeaseError",
    "SubscriberIDKey",
]
