from __future__ import annotations

import uuid
from typing import Iterable, List, Optional

from .audit import JsonAuditLogger
from .config import FailurePolicy, ProvisioningConfig
from .directory_client import LdapDirectoryClient
from .errors import ProvisioningError
from .provisioning import Provisioner
from .results import BatchReport, TenantReport


class TenantManager:
    """Runs tenant provisioning over the configured batch, one tenant at a time."""

    def __init__(
        self,
        config: ProvisioningConfig,
        directory: LdapDirectoryClient,
        audit_logger: Optional[JsonAuditLogger] = None,
    ):
        self.config = config
        self.directory = directory
        self.audit = audit_logger or JsonAuditLogger()

    def select_tenants(self, tenants: Optional[Iterable[str]] = None) -> List[str]:
        if tenants is None:
            return list(self.config.tenants)
        selected = list(tenants)
        unknown = [tenant for tenant in selected if tenant not in self.config.tenants]
        if unknown:
            raise KeyError(f"Tenants not configured: {', '.join(unknown)}")
        # configured order wins over the order asked for
        return [tenant for tenant in self.config.tenants if tenant in selected]

    def provisioner(self, correlation_id: Optional[str] = None) -> Provisioner:
        return Provisioner(
            self.directory,
            audit_logger=self.audit,
            customer_root=self.config.customer_root,
            containers=self.config.containers,
            group_templates=self.config.groups,
            correlation_id=correlation_id,
        )

    def run(
        self,
        tenants: Optional[Iterable[str]] = None,
        failure_policy: Optional[FailurePolicy] = None,
        correlation_id: Optional[str] = None,
    ) -> BatchReport:
        """Provision each selected tenant in configured order.

        With the ``abort`` policy the first failure is re-raised unchanged and
        later tenants are not attempted. With ``continue`` the failure is
        recorded on that tenant's report and the batch moves on.
        """
        policy = failure_policy or self.config.failure_policy
        correlation_id = correlation_id or str(uuid.uuid4())
        selected = self.select_tenants(tenants)
        provisioner = self.provisioner(correlation_id)
        batch = BatchReport(
            correlation_id=correlation_id,
            domain=self.config.domain,
            failure_policy=policy,
        )

        self.audit.info(
            f"provision_batch - started: {len(selected)} tenant(s)",
            correlation_id=correlation_id,
            domain=self.config.domain,
            tenants=selected,
            failure_policy=policy,
        )
        for tenant in selected:
            report = TenantReport(tenant=tenant)
            batch.tenants.append(report)
            try:
                provisioner.provision_tenant(tenant, self.config.domain, report=report)
            except ProvisioningError as exc:
                report.error = str(exc)
                report.error_type = type(exc).__name__
                self.audit.error(
                    f"provision_tenant - failed: {tenant}",
                    tenant=tenant,
                    correlation_id=correlation_id,
                    dn=getattr(exc, "dn", None),
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                if policy == "abort":
                    raise
                continue

            self.audit.info(
                f"provision_tenant - completed: {tenant}",
                tenant=tenant,
                correlation_id=correlation_id,
                created=len(report.created),
                existed=len(report.existed),
            )

        self.audit.info(
            f"provision_batch - completed: {len(selected) - len(batch.failed_tenants)} of {len(selected)} tenant(s)",
            correlation_id=correlation_id,
            created=batch.created_count,
            existed=batch.existed_count,
            failed=batch.failed_tenants,
        )
        return batch
