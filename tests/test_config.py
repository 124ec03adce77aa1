"""
Tests for YAML configuration loading and validation.
"""

import pytest
import yaml
from pydantic import ValidationError

from ou_provisioner.config import DEFAULT_CONTAINERS, GroupTemplate, ProvisioningConfig, SecretRef


class TestProvisioningConfig:
    def test_defaults(self, config):
        assert config.customer_root == "Customers"
        assert config.containers == DEFAULT_CONTAINERS
        assert config.failure_policy == "abort"
        assert config.groups == []

    def test_tenant_order_preserved(self, config):
        assert config.tenants == ["WiscoTECH", "Jaguars", "Census", "CDC"]

    def test_load_from_yaml(self, tmp_path, config_data):
        path = tmp_path / "provisioning.yaml"
        path.write_text(yaml.safe_dump(config_data), encoding="utf-8")

        loaded = ProvisioningConfig.load(path)

        assert loaded.domain == "wiscovitch.org"
        assert loaded.directory.host == "dc01.wiscovitch.org"
        assert loaded.directory.port == 389

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ProvisioningConfig.load(tmp_path / "absent.yaml")

    @pytest.mark.parametrize("domain", ["localhost", "", "a..b"])
    def test_malformed_domain_rejected(self, config_data, domain):
        config_data["domain"] = domain
        with pytest.raises(ValidationError):
            ProvisioningConfig(**config_data)

    def test_empty_tenant_list_rejected(self, config_data):
        config_data["tenants"] = []
        with pytest.raises(ValidationError):
            ProvisioningConfig(**config_data)

    def test_duplicate_tenants_rejected(self, config_data):
        config_data["tenants"] = ["CDC", "Census", "CDC"]
        with pytest.raises(ValidationError, match="CDC"):
            ProvisioningConfig(**config_data)

    def test_unknown_failure_policy_rejected(self, config_data):
        config_data["failure_policy"] = "retry"
        with pytest.raises(ValidationError):
            ProvisioningConfig(**config_data)

    def test_unknown_keys_forbidden(self, config_data):
        config_data["forest"] = "other.org"
        with pytest.raises(ValidationError):
            ProvisioningConfig(**config_data)

    def test_directory_section_optional(self, config_data):
        del config_data["directory"]
        assert ProvisioningConfig(**config_data).directory is None

    def test_example_config_loads(self):
        from pathlib import Path

        example = Path(__file__).resolve().parent.parent / "config" / "provisioning.example.yaml"
        loaded = ProvisioningConfig.load(example)
        assert loaded.failure_policy == "continue"
        assert loaded.groups[0].render("CDC") == "CDC-Admins"


class TestGroupTemplate:
    def test_defaults(self):
        template = GroupTemplate(name="{tenant}-Users")
        assert template.category == "Security"
        assert template.scope == "Global"

    def test_render(self):
        assert GroupTemplate(name="{tenant}-Admins").render("Jaguars") == "Jaguars-Admins"

    def test_unknown_scope_rejected(self):
        with pytest.raises(ValidationError):
            GroupTemplate(name="x", scope="Forest")


class TestSecretRef:
    def test_env(self, monkeypatch):
        monkeypatch.setenv("OU_PROVISIONER_TEST_SECRET", "s3cret")
        assert SecretRef(env="OU_PROVISIONER_TEST_SECRET").resolve() == "s3cret"

    def test_env_missing(self, monkeypatch):
        monkeypatch.delenv("OU_PROVISIONER_TEST_SECRET", raising=False)
        with pytest.raises(ValueError):
            SecretRef(env="OU_PROVISIONER_TEST_SECRET").resolve()

    def test_inline_value(self):
        assert SecretRef(value="lab-only").resolve() == "lab-only"

    def test_nothing_configured(self):
        with pytest.raises(ValueError):
            SecretRef().resolve()
