from abc import ABC, abstractmethod
from typing import Dict, Sequence, Tuple

from staticlease.config import (
    AUTOREFRESH_ARG,
    SETTLE_SECONDS,
    V6_PREFERRED_LIFETIME,
    V6_VALID_LIFETIME,
    log,
)
from staticlease.dhcp.identity import dhcpv4_candidates, dhcpv6_candidates
from staticlease.dhcp.packet4 import DHCPv4Message
from staticlease.dhcp.packet6 import AnyDHCPv6Message, DHCPv6Message
from staticlease.errors import ConfigError, LoadError
from staticlease.services.binder import bind_dhcpv4, bind_dhcpv6
from staticlease.services.lease_table import LeaseSnapshot, LeaseTable
from staticlease.services.lease_watcher import LeaseFileWatcher


class DHCPPlugin(ABC):
    """
    What the host server needs from a plugin. Handlers return the response
    (possibly modified) and whether the host should stop running further
    plugins for this packet.
    """

    name: str

    @abstractmethod
    def configure4(self, *args: str) -> None:
        ...

    @abstractmethod
    def configure6(self, *args: str) -> None:
        ...

    @abstractmethod
    def handle4(self, req: DHCPv4Message, resp: DHCPv4Message) -> Tuple[DHCPv4Message, bool]:
        ...

    @abstractmethod
    def handle6(self, req: AnyDHCPv6Message, resp: DHCPv6Message) -> Tuple[DHCPv6Message, bool]:
        ...


def parse_plugin_args(args: Sequence[str]) -> Tuple[str, bool]:
    """
    Plugin arguments as the host passes them: `<path> [autorefresh]`.
    returns: (path, autorefresh)
    """
    if len(args) < 1:
        raise ConfigError("need a lease file name, got none")
    if len(args) > 2:
        raise ConfigError(f"expected at most 2 arguments, got {len(args)}")

    path = args[0]
    if not path:
        raise ConfigError("lease file name must not be empty")

    autorefresh = False
    if len(args) == 2:
        if args[1] != AUTOREFRESH_ARG:
            raise ConfigError(f"unknown argument {args[1]!r}, only {AUTOREFRESH_ARG!r} is supported")
        autorefresh = True
    return path, autorefresh


class FilePlugin(DHCPPlugin):
    """
    Static leases read from a text file. IPv4 and IPv6 are configured
    separately and each family has its own table (and optional watcher).
    """

    name = "file"

    def __init__(
        self,
        settle_delay: float = SETTLE_SECONDS,
        preferred_lifetime: int = V6_PREFERRED_LIFETIME,
        valid_lifetime: int = V6_VALID_LIFETIME,
    ) -> None:
        self.settle_delay = settle_delay
        self.preferred_lifetime = preferred_lifetime
        self.valid_lifetime = valid_lifetime
        self.tables: Dict[int, LeaseTable] = {4: LeaseTable(4), 6: LeaseTable(6)}
        self._watchers: Dict[int, LeaseFileWatcher] = {}

    @property
    def table4(self) -> LeaseTable:
        return self.tables[4]

    @property
    def table6(self) -> LeaseTable:
        return self.tables[6]

    def configure4(self, *args: str) -> None:
        self._configure(4, args)

    def configure6(self, *args: str) -> None:
        self._configure(6, args)

    def _configure(self, ip_version: int, args: Sequence[str]) -> None:
        """raises: ConfigError, LoadError"""
        path, autorefresh = parse_plugin_args(args)
        table = self.tables[ip_version]

        watcher = None
        if autorefresh:
            # events are collected from before the first read; reloads wait for the first install
            watcher = LeaseFileWatcher(path, table, settle_delay=self.settle_delay)
            try:
                watcher.watch()
            except OSError as e:
                raise LoadError(f"cannot watch lease file {path}: {e}", path=path) from e

        try:
            snapshot = LeaseSnapshot.from_file(path, ip_version)
        except LoadError:
            if watcher is not None:
                watcher.stop()
            raise

        self._stop_watcher(ip_version)
        installed = table.install(snapshot)
        log.info(
            "leases_loaded",
            path=path,
            ip_version=ip_version,
            records=len(installed),
            version=installed.version,
            autorefresh=autorefresh,
        )

        if watcher is not None:
            watcher.start_reloading()
            self._watchers[ip_version] = watcher

    def _stop_watcher(self, ip_version: int) -> None:
        watcher = self._watchers.pop(ip_version, None)
        if watcher is not None:
            watcher.stop()

    def close(self) -> None:
        for ip_version in list(self._watchers):
            self._stop_watcher(ip_version)

    def __enter__(self) -> "FilePlugin":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def handle4(self, req: DHCPv4Message, resp: DHCPv4Message) -> Tuple[DHCPv4Message, bool]:
        candidates = dhcpv4_candidates(req)
        match = self.table4.lookup_first(candidates)
        if match is None:
            log.debug("static_lease_not_found", ip_version=4, candidates=[str(k) for k in candidates])
            return resp, False

        key, lease = match
        bind_dhcpv4(resp, lease)
        log.debug("static_lease_found", ip_version=4, key=str(key), address=str(lease.address))
        return resp, True

    def handle6(self, req: AnyDHCPv6Message, resp: DHCPv6Message) -> Tuple[DHCPv6Message, bool]:
        # IPv6 bindings are additive: the chain always continues
        candidates = dhcpv6_candidates(req)
        match = self.table6.lookup_first(candidates)
        if match is None:
            log.debug("static_lease_not_found", ip_version=6, candidates=[str(k) for k in candidates])
            return resp, False

        key, lease = match
        try:
            bound = bind_dhcpv6(req, resp, lease, self.preferred_lifetime, self.valid_lifetime)
        except ValueError as e:
            log.warning("malformed_ia_na_in_request", key=str(key), error=str(e))
            return resp, False

        if bound:
            log.debug("static_lease_found", ip_version=6, key=str(key), address=str(lease.address))
        else:
            log.debug("static_lease_without_ia_na", ip_version=6, key=str(key))
        return resp, False
