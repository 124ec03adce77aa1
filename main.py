from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

from ou_provisioner.audit import JsonAuditLogger
from ou_provisioner.config import ProvisioningConfig
from ou_provisioner.directory_client import LdapDirectoryClient
from ou_provisioner.errors import ProvisioningError
from ou_provisioner.tenant_manager import TenantManager


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Provision customer tenant OUs in Active Directory")
    parser.add_argument("--config", required=True, help="Path to provisioning configuration YAML")
    parser.add_argument(
        "--tenant",
        action="append",
        dest="tenants",
        help="Only provision this configured tenant (repeatable)",
    )
    parser.add_argument(
        "--failure-policy",
        choices=["abort", "continue"],
        help="Override the configured batch failure policy",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None, directory_factory=LdapDirectoryClient.connect) -> int:
    args = parse_args(argv)
    config = ProvisioningConfig.load(Path(args.config))
    if config.directory is None:
        raise SystemExit("The configuration has no 'directory' section to connect with")

    audit_logger = JsonAuditLogger()
    try:
        with directory_factory(config.directory, audit_logger) as directory:
            manager = TenantManager(config, directory, audit_logger=audit_logger)
            report = manager.run(tenants=args.tenants, failure_policy=args.failure_policy)
    except KeyError as exc:
        raise SystemExit(str(exc.args[0]))
    except ProvisioningError as exc:
        print(json.dumps({"error": str(exc), "error_type": type(exc).__name__}, indent=2))
        return 1

    print(json.dumps(report.to_dict(), indent=2))
    return 1 if report.failed_tenants else 0


if __name__ == "__main__":
    sys.exit(main())
