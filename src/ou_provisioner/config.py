from __future__ import annotations

import os
from pathlib import Path
from typing import List, Literal, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .dn import domain_labels, validate_name

DEFAULT_CONTAINERS = ["Computers", "Groups", "Users", "Projects"]
SAM_ACCOUNT_NAME_MAX = 20

GroupCategory = Literal["Security", "Distribution"]
GroupScope = Literal["Global", "DomainLocal", "Universal"]
FailurePolicy = Literal["abort", "continue"]


class SecretRef(BaseModel):
    """Reference to a secret source without storing the secret in the config file.

    The bind password should be injected through an environment variable at
    runtime. Inline values exist for local development against a lab domain.
    """

    env: Optional[str] = Field(
        default=None, description="Environment variable name containing the secret"
    )
    value: Optional[str] = Field(
        default=None,
        description="Inline value (use only for local development; avoid in production)",
    )

    model_config = ConfigDict(extra="forbid")

    def resolve(self) -> str:
        if self.env:
            env_value = os.getenv(self.env)
            if env_value:
                return env_value
            raise ValueError(f"Environment variable {self.env} is not set")
        if self.value:
            return self.value
        raise ValueError("No secret reference provided for resolution")


class DirectoryConfig(BaseModel):
    """Connection settings for the domain controller."""

    host: str
    port: int = 389
    use_ssl: bool = False
    starttls: bool = False
    bind_dn: str = Field(description="DN or UPN of the account used to bind")
    bind_password: SecretRef
    connect_timeout: float = Field(default=10.0, gt=0)
    receive_timeout: Optional[float] = Field(default=None, gt=0)

    model_config = ConfigDict(extra="forbid")


class GroupTemplate(BaseModel):
    """Group created in every tenant's Groups OU.

    ``name`` may contain ``{tenant}``; the expanded name is also the SAM
    account name and must stay unique across the domain.
    """

    name: str
    description: str = ""
    category: GroupCategory = "Security"
    scope: GroupScope = "Global"

    model_config = ConfigDict(extra="forbid")

    @field_validator("name")
    @classmethod
    def validate_template(cls, value: str) -> str:
        validate_name(value, "group name")
        return value

    def render(self, tenant: str) -> str:
        return self.name.replace("{tenant}", tenant)


class ProvisioningConfig(BaseModel):
    domain: str
    customer_root: str = "Customers"
    tenants: List[str]
    containers: List[str] = Field(default_factory=lambda: list(DEFAULT_CONTAINERS))
    groups: List[GroupTemplate] = Field(default_factory=list)
    failure_policy: FailurePolicy = Field(
        default="abort",
        description="abort stops the batch at the first failed tenant; continue moves on",
    )
    directory: Optional[DirectoryConfig] = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("domain")
    @classmethod
    def validate_domain(cls, value: str) -> str:
        domain_labels(value)
        return value.strip().rstrip(".")

    @field_validator("customer_root")
    @classmethod
    def validate_customer_root(cls, value: str) -> str:
        return validate_name(value, "customer_root")

    @field_validator("tenants")
    @classmethod
    def validate_tenants(cls, value: List[str]) -> List[str]:
        if not value:
            raise ValueError("At least one tenant must be configured")
        for tenant in value:
            validate_name(tenant, "tenant name")
        duplicates = sorted({tenant for tenant in value if value.count(tenant) > 1})
        if duplicates:
            raise ValueError(f"Duplicate tenant names: {', '.join(duplicates)}")
        return value

    @field_validator("containers")
    @classmethod
    def validate_containers(cls, value: List[str]) -> List[str]:
        for container in value:
            validate_name(container, "container name")
        return value

    @classmethod
    def load(cls, path: Union[str, Path]) -> "ProvisioningConfig":
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with config_path.open("r", encoding="utf-8") as handle:
            raw = yaml.safe_load(handle) or {}

        return cls(**raw)
