from __future__ import annotations

import os
from pathlib import Path
from typing import Callable, Optional

from flask import Flask, jsonify, request

from ou_provisioner.audit import InMemoryAuditStore, JsonAuditLogger
from ou_provisioner.config import ProvisioningConfig
from ou_provisioner.directory_client import LdapDirectoryClient
from ou_provisioner.errors import MalformedInputError, ProvisioningError
from ou_provisioner.tenant_manager import TenantManager


def create_app(
    config_path: str | os.PathLike[str] = "config/provisioning.yaml",
    config: Optional[ProvisioningConfig] = None,
    directory_factory: Callable = LdapDirectoryClient.connect,
) -> Flask:
    config = config or ProvisioningConfig.load(Path(config_path))
    audit_store = InMemoryAuditStore()
    audit_logger = JsonAuditLogger(store=audit_store)

    app = Flask(__name__)
    app.config["PROVISIONING_CONFIG"] = config
    app.config["AUDIT_STORE"] = audit_store

    @app.get("/")
    def index():
        return jsonify(
            {
                "domain": config.domain,
                "customer_root": config.customer_root,
                "containers": config.containers,
                "tenants": config.tenants,
                "failure_policy": config.failure_policy,
            }
        )

    @app.post("/provision")
    def provision():
        payload = request.get_json(silent=True) or request.form.to_dict()
        tenant = payload.get("tenant")
        policy = payload.get("failure_policy")
        if policy not in (None, "abort", "continue"):
            return jsonify({"error": f"Unsupported failure policy: {policy}"}), 400
        if config.directory is None:
            return jsonify({"error": "No directory connection configured"}), 500

        try:
            with directory_factory(config.directory, audit_logger) as directory:
                manager = TenantManager(config, directory, audit_logger=audit_logger)
                report = manager.run(
                    tenants=[tenant] if tenant else None,
                    failure_policy=policy,
                )
        except KeyError as exc:
            return jsonify({"error": str(exc.args[0])}), 404
        except MalformedInputError as exc:
            return jsonify({"error": str(exc), "error_type": type(exc).__name__}), 400
        except ProvisioningError as exc:
            return jsonify({"error": str(exc), "error_type": type(exc).__name__}), 502

        status = 207 if report.failed_tenants else 200
        return jsonify(report.to_dict()), status

    @app.get("/audit.json")
    def audit_json():
        limit_param = request.args.get("limit")
        try:
            limit = int(limit_param) if limit_param else 100
        except ValueError:
            limit = 100
        events = audit_store.list(limit=limit)
        payload = [
            {
                "timestamp": event.timestamp,
                "level": event.level,
                "message": event.message,
                "tenant": event.tenant,
                "dn": event.dn,
                "correlation_id": event.correlation_id,
                "extra": event.extra,
            }
            for event in events
        ]
        return jsonify({"events": payload, "count": len(payload)})

    return app


if __name__ == "__main__":
    app = create_app()
    app.run(host="127.0.0.1", port=int(os.getenv("PORT", 5000)))
