import threading
import time
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Iterable, Mapping, Tuple

from staticlease.dhcp.lease import LeaseConfig, LookupKey
from staticlease.dhcp.lease_file import load_lease_file


@dataclass(frozen=True)
class LeaseSnapshot:
    """
    One fully loaded, read-only version of a lease table.
        - records: identity -> binding, never mutated after construction
        - ip_version: 4 or 6, the family every record in here belongs to
        - version: assigned by LeaseTable.install, 0 until installed
        - source: the file the records came from, if any
    """

    records: Mapping[LookupKey, LeaseConfig]
    ip_version: int = 4
    version: int = 0
    source: str | None = None
    loaded_at: float = field(default_factory=time.time)

    def __post_init__(self) -> None:
        if not isinstance(self.records, MappingProxyType):
            object.__setattr__(self, "records", MappingProxyType(dict(self.records)))

    @classmethod
    def from_file(cls, path: str, ip_version: int) -> "LeaseSnapshot":
        """raises: LoadError"""
        return cls(load_lease_file(path, ip_version), ip_version=ip_version, source=path)

    def __len__(self) -> int:
        return len(self.records)

    def __contains__(self, key: LookupKey) -> bool:
        return key in self.records

    def get(self, key: LookupKey) -> LeaseConfig | None:
        return self.records.get(key)

    def first_match(self, candidates: Iterable[LookupKey]) -> Tuple[LookupKey, LeaseConfig] | None:
        for key in candidates:
            config = self.records.get(key)
            if config is not None:
                return key, config
        return None


class LeaseTable:
    """
    Holds the current snapshot. The lock only guards the reference itself:
    readers grab the reference and search the immutable snapshot unlocked,
    and install() only swaps the reference, so neither side ever waits on a
    file being parsed.
    """

    def __init__(self, ip_version: int = 4) -> None:
        self.ip_version = ip_version
        self._lock = threading.Lock()
        self._snapshot = LeaseSnapshot({}, ip_version=ip_version)

    def snapshot(self) -> LeaseSnapshot:
        with self._lock:
            return self._snapshot

    def lookup(self, key: LookupKey) -> LeaseConfig | None:
        return self.snapshot().get(key)

    def lookup_first(self, candidates: Iterable[LookupKey]) -> Tuple[LookupKey, LeaseConfig] | None:
        return self.snapshot().first_match(candidates)

    def install(self, snapshot: LeaseSnapshot) -> LeaseSnapshot:
        if snapshot.ip_version != self.ip_version:
            raise ValueError(
                f"cannot install an IPv{snapshot.ip_version} snapshot into an IPv{self.ip_version} table"
            )
        with self._lock:
            installed = replace(snapshot, version=self._snapshot.version + 1)
            self._snapshot = installed
        return installed

    def __len__(self) -> int:
        return len(self.snapshot())
