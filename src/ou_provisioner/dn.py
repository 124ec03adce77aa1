from __future__ import annotations

import re
from typing import List

from ldap3.utils.dn import escape_rdn

from .errors import MalformedInputError

_DNS_LABEL = re.compile(r"^[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?$")


def domain_labels(domain: str) -> List[str]:
    """Split a dotted domain name into labels, rejecting anything that is not
    at least ``name.tld``."""
    if not isinstance(domain, str) or not domain.strip():
        raise MalformedInputError("Domain name must be a non-empty string")

    labels = domain.strip().rstrip(".").split(".")
    if len(labels) < 2:
        raise MalformedInputError(
            f"Domain {domain!r} must contain at least two dot-separated labels"
        )
    for label in labels:
        if not _DNS_LABEL.match(label):
            raise MalformedInputError(f"Domain {domain!r} has an invalid label {label!r}")
    return labels


def domain_root(domain: str) -> str:
    """``corp.example.com`` -> ``DC=corp,DC=example,DC=com``."""
    return ",".join(f"DC={label}" for label in domain_labels(domain))


def validate_name(name: str, kind: str = "name") -> str:
    if not isinstance(name, str) or not name.strip():
        raise MalformedInputError(f"{kind} must be a non-empty string")
    if any(ord(char) < 32 for char in name):
        raise MalformedInputError(f"{kind} {name!r} contains control characters")
    return name


def rdn(attribute: str, value: str) -> str:
    return f"{attribute}={escape_rdn(validate_name(value))}"


def child_dn(parent_dn: str, name: str, attribute: str = "OU") -> str:
    # parent_dn is taken as already escaped
    if not parent_dn:
        raise MalformedInputError("Parent path must not be empty")
    return f"{rdn(attribute, name)},{parent_dn}"
