"""
Pytest configuration and shared fixtures for ou_provisioner tests.
"""

from typing import Dict, List, Optional, Tuple

import pytest

from ou_provisioner.audit import InMemoryAuditStore, JsonAuditLogger
from ou_provisioner.config import ProvisioningConfig
from ou_provisioner.directory_client import group_type
from ou_provisioner.dn import child_dn
from ou_provisioner.errors import AlreadyExistsError, DirectoryServiceError, InvalidParentError
from ou_provisioner.provisioning import Provisioner
from ou_provisioner.results import DirectoryEntry, Found, LookupFailed, NotFound


# =============================================================================
# FAKE DIRECTORY
# =============================================================================


class FakeDirectory:
    """In-memory stand-in for LdapDirectoryClient.

    Entries are keyed by DN. Failures can be injected per DN for lookups and
    creates; every call is recorded in ``calls``.
    """

    def __init__(self, roots: Tuple[str, ...] = ("DC=wiscovitch,DC=org",)):
        self.entries: Dict[str, Dict[str, object]] = {root: {"objectClass": ["domainDNS"]} for root in roots}
        self.lookup_failures: Dict[str, DirectoryServiceError] = {}
        self.create_failures: Dict[str, DirectoryServiceError] = {}
        self.calls: List[Tuple[str, str]] = []
        self.created: List[str] = []

    def find_by_dn(self, dn: str):
        self.calls.append(("find_by_dn", dn))
        if dn in self.lookup_failures:
            return LookupFailed(self.lookup_failures[dn])
        if dn in self.entries:
            return Found(DirectoryEntry(dn=dn, attributes=dict(self.entries[dn])))
        return NotFound()

    def find_group_by_name(self, name: str, search_base: str):
        self.calls.append(("find_group_by_name", name))
        if name in self.lookup_failures:
            return LookupFailed(self.lookup_failures[name])
        for dn, attributes in self.entries.items():
            if attributes.get("sAMAccountName") == name and dn.endswith(search_base):
                return Found(DirectoryEntry(dn=dn, attributes=dict(attributes)))
        return NotFound()

    def _add(self, dn: str, parent_dn: str, attributes: Dict[str, object]) -> str:
        if dn in self.create_failures:
            raise self.create_failures[dn]
        if dn in self.entries:
            raise AlreadyExistsError("add", dn, result_code=68, description="entryAlreadyExists")
        if parent_dn not in self.entries:
            raise InvalidParentError("add", dn, result_code=32, description="noSuchObject")
        self.entries[dn] = attributes
        self.created.append(dn)
        return dn

    def create_organizational_unit(self, name: str, parent_dn: str, description: str) -> str:
        dn = child_dn(parent_dn, name, "OU")
        self.calls.append(("create_organizational_unit", dn))
        return self._add(dn, parent_dn, {"objectClass": ["organizationalUnit"], "description": description})

    def create_group(self, name, sam_account_name, category, parent_dn, description, scope) -> str:
        dn = child_dn(parent_dn, name, "CN")
        self.calls.append(("create_group", dn))
        return self._add(
            dn,
            parent_dn,
            {
                "objectClass": ["group"],
                "sAMAccountName": sam_account_name,
                "groupType": group_type(category, scope),
                "description": description,
            },
        )

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def create_calls(self) -> List[str]:
        return [dn for call, dn in self.calls if call.startswith("create")]


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def domain() -> str:
    return "wiscovitch.org"


@pytest.fixture
def directory() -> FakeDirectory:
    return FakeDirectory()


@pytest.fixture
def audit_store() -> InMemoryAuditStore:
    return InMemoryAuditStore()


@pytest.fixture
def audit_logger(audit_store: InMemoryAuditStore) -> JsonAuditLogger:
    return JsonAuditLogger(name="ou_provisioner.tests", store=audit_store)


@pytest.fixture
def provisioner(directory: FakeDirectory, audit_logger: JsonAuditLogger) -> Provisioner:
    return Provisioner(directory, audit_logger=audit_logger, correlation_id="test-run")


@pytest.fixture
def config_data() -> Dict[str, object]:
    return {
        "domain": "wiscovitch.org",
        "tenants": ["WiscoTECH", "Jaguars", "Census", "CDC"],
        "directory": {
            "host": "dc01.wiscovitch.org",
            "bind_dn": "svc-provisioner@wiscovitch.org",
            "bind_password": {"value": "lab-only"},
        },
    }


@pytest.fixture
def config(config_data: Dict[str, object]) -> ProvisioningConfig:
    return ProvisioningConfig(**config_data)


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================


def tenant_dns(tenant: str, root: str = "DC=wiscovitch,DC=org", customer_root: Optional[str] = "Customers") -> List[str]:
    """The five tenant DNs plus the shared customer root, in creation order."""
    customers = f"OU={customer_root},{root}"
    tenant_dn = f"OU={tenant},{customers}"
    return [customers, tenant_dn] + [
        f"OU={container},{tenant_dn}" for container in ("Computers", "Groups", "Users", "Projects")
    ]
