from __future__ import annotations

from typing import Iterable, Optional, Sequence

from ldap3.core.exceptions import LDAPInvalidDnError
from ldap3.utils.dn import parse_dn

from .audit import JsonAuditLogger
from .config import DEFAULT_CONTAINERS, SAM_ACCOUNT_NAME_MAX, GroupTemplate
from .directory_client import GROUP_SCOPE_BITS, LdapDirectoryClient
from .dn import child_dn, domain_root, validate_name
from .errors import MalformedInputError
from .results import EnsureOutcome, Found, LookupFailed, NotFound, TenantReport

GROUP_CATEGORIES = ("Security", "Distribution")


class Provisioner:
    """Idempotent creation of tenant containers and groups.

    Each ``ensure_*`` call checks for the object first and only creates it
    when the lookup reports it absent. A lookup that fails for any other
    reason is raised and nothing is created.
    """

    def __init__(
        self,
        directory: LdapDirectoryClient,
        audit_logger: Optional[JsonAuditLogger] = None,
        customer_root: str = "Customers",
        containers: Sequence[str] = DEFAULT_CONTAINERS,
        group_templates: Iterable[GroupTemplate] = (),
        correlation_id: Optional[str] = None,
    ):
        self.directory = directory
        self.audit = audit_logger or JsonAuditLogger()
        self.customer_root = customer_root
        self.containers = list(containers)
        self.group_templates = list(group_templates)
        self.correlation_id = correlation_id

    def ensure_container(
        self,
        name: str,
        parent_dn: str,
        description: str,
        tenant: Optional[str] = None,
    ) -> EnsureOutcome:
        dn = child_dn(parent_dn, name, "OU")
        context = {"tenant": tenant, "dn": dn, "correlation_id": self.correlation_id}

        result = self.directory.find_by_dn(dn)
        if isinstance(result, Found):
            self.audit.info(f"ensure_container - existed: {dn}", **context)
            return EnsureOutcome(kind="organizationalUnit", name=name, dn=dn, created=False)
        if isinstance(result, LookupFailed):
            self.audit.error(f"ensure_container - lookup failed: {dn}", error=str(result.error), **context)
            raise result.error
        if not isinstance(result, NotFound):
            raise TypeError(f"Unexpected lookup result {result!r}")

        try:
            created_dn = self.directory.create_organizational_unit(name, parent_dn, description)
        except Exception as exc:
            self.audit.error(f"ensure_container - create failed: {dn}", error=str(exc), **context)
            raise
        self.audit.info(f"ensure_container - created: {created_dn}", description=description, **context)
        return EnsureOutcome(kind="organizationalUnit", name=name, dn=created_dn, created=True)

    def ensure_group(
        self,
        name: str,
        path: str,
        description: str,
        category: str = "Security",
        scope: str = "Global",
        tenant: Optional[str] = None,
        search_base: Optional[str] = None,
    ) -> EnsureOutcome:
        """Ensure a group named ``name`` exists, creating it under ``path``.

        Existence is checked by SAM account name below ``search_base``
        (defaults to the domain part of ``path``), so a group with the same
        name elsewhere in the domain counts as existing.
        """
        validate_name(name, "group name")
        if len(name) > SAM_ACCOUNT_NAME_MAX:
            raise MalformedInputError(
                f"Group name {name!r} exceeds {SAM_ACCOUNT_NAME_MAX} characters"
            )
        if category not in GROUP_CATEGORIES:
            raise MalformedInputError(f"Unknown group category {category!r}")
        if scope not in GROUP_SCOPE_BITS:
            raise MalformedInputError(f"Unknown group scope {scope!r}")

        base = search_base or _domain_component(path)
        intended_dn = child_dn(path, name, "CN")
        context = {"tenant": tenant, "dn": intended_dn, "correlation_id": self.correlation_id}

        result = self.directory.find_group_by_name(name, base)
        if isinstance(result, Found):
            context["dn"] = result.entry.dn
            self.audit.info(f"ensure_group - existed: {name} ({result.entry.dn})", **context)
            return EnsureOutcome(kind="group", name=name, dn=result.entry.dn, created=False)
        if isinstance(result, LookupFailed):
            self.audit.error(f"ensure_group - lookup failed: {name}", error=str(result.error), **context)
            raise result.error
        if not isinstance(result, NotFound):
            raise TypeError(f"Unexpected lookup result {result!r}")

        try:
            created_dn = self.directory.create_group(
                name=name,
                sam_account_name=name,
                category=category,
                parent_dn=path,
                description=description,
                scope=scope,
            )
        except Exception as exc:
            self.audit.error(f"ensure_group - create failed: {name}", error=str(exc), **context)
            raise
        self.audit.info(
            f"ensure_group - created: {name} ({created_dn})",
            category=category,
            scope=scope,
            **context,
        )
        return EnsureOutcome(kind="group", name=name, dn=created_dn, created=True)

    def provision_tenant(
        self,
        tenant_name: str,
        domain: str,
        report: Optional[TenantReport] = None,
    ) -> TenantReport:
        """Ensure the customer root, the tenant OU, its sub-containers and its
        groups exist, in that order.

        Outcomes are appended to ``report`` as they happen, so a caller that
        passes one keeps the partial progress when a later step raises.
        """
        validate_name(tenant_name, "tenant name")
        root_dn = domain_root(domain)
        if report is None:
            report = TenantReport(tenant=tenant_name)

        customers = self.ensure_container(
            self.customer_root, root_dn, "Customer tenants", tenant=tenant_name
        )
        report.outcomes.append(customers)

        tenant_ou = self.ensure_container(
            tenant_name, customers.dn, f"Customer tenant {tenant_name}", tenant=tenant_name
        )
        report.outcomes.append(tenant_ou)

        container_dns = {}
        for container in self.containers:
            outcome = self.ensure_container(
                container, tenant_ou.dn, f"{container} for {tenant_name}", tenant=tenant_name
            )
            container_dns[container] = outcome.dn
            report.outcomes.append(outcome)

        if self.group_templates:
            groups_dn = container_dns.get("Groups", tenant_ou.dn)
            for template in self.group_templates:
                report.outcomes.append(
                    self.ensure_group(
                        template.render(tenant_name),
                        groups_dn,
                        template.description,
                        category=template.category,
                        scope=template.scope,
                        tenant=tenant_name,
                        search_base=root_dn,
                    )
                )

        return report


def _domain_component(dn: str) -> str:
    try:
        components = parse_dn(dn)
    except LDAPInvalidDnError as exc:
        raise MalformedInputError(f"Path {dn!r} is not a valid DN") from exc
    parts = [f"{attr}={value}" for attr, value, _ in components if attr.upper() == "DC"]
    if not parts:
        raise MalformedInputError(f"Path {dn!r} has no DC= components to search from")
    return ",".join(parts)
