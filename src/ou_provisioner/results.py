from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Union

from .errors import DirectoryServiceError


@dataclass(frozen=True)
class DirectoryEntry:
    dn: str
    attributes: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Found:
    entry: DirectoryEntry


@dataclass(frozen=True)
class NotFound:
    pass


@dataclass(frozen=True)
class LookupFailed:
    error: DirectoryServiceError


# Lookups never raise; callers must handle all three variants.
LookupResult = Union[Found, NotFound, LookupFailed]


@dataclass
class EnsureOutcome:
    kind: str  # "organizationalUnit" or "group"
    name: str
    dn: str
    created: bool


@dataclass
class TenantReport:
    tenant: str
    outcomes: List[EnsureOutcome] = field(default_factory=list)
    error: Optional[str] = None
    error_type: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @property
    def created(self) -> List[str]:
        return [outcome.dn for outcome in self.outcomes if outcome.created]

    @property
    def existed(self) -> List[str]:
        return [outcome.dn for outcome in self.outcomes if not outcome.created]


@dataclass
class BatchReport:
    correlation_id: str
    domain: str
    failure_policy: str
    tenants: List[TenantReport] = field(default_factory=list)

    @property
    def failed_tenants(self) -> List[str]:
        return [report.tenant for report in self.tenants if not report.succeeded]

    @property
    def created_count(self) -> int:
        return sum(len(report.created) for report in self.tenants)

    @property
    def existed_count(self) -> int:
        return sum(len(report.existed) for report in self.tenants)

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["created_count"] = self.created_count
        payload["existed_count"] = self.existed_count
        payload["failed_tenants"] = self.failed_tenants
        return payload
