from __future__ import annotations

from typing import Optional


class ProvisioningError(Exception):
    """Base class for every failure raised while provisioning tenants."""


class MalformedInputError(ProvisioningError, ValueError):
    """Input rejected before any directory call is made."""


class DirectoryServiceError(ProvisioningError):
    """A directory request completed with a non-success result.

    Carries the request that failed and the LDAP result so a failed run can be
    diagnosed and safely re-run.
    """

    def __init__(
        self,
        operation: str,
        dn: str,
        result_code: Optional[int] = None,
        description: str = "",
        message: str = "",
    ):
        self.operation = operation
        self.dn = dn
        self.result_code = result_code
        self.description = description
        self.message = message
        super().__init__(self._format())

    def _format(self) -> str:
        detail = self.description or "unknown error"
        if self.result_code is not None:
            detail = f"{detail} (result {self.result_code})"
        if self.message:
            detail = f"{detail}: {self.message}"
        return f"{self.operation} failed for {self.dn}: {detail}"


class AlreadyExistsError(DirectoryServiceError):
    """The directory rejected a create because the entry already exists."""


class InvalidParentError(DirectoryServiceError):
    """The parent path of a create request does not exist."""


class TransientServiceError(DirectoryServiceError):
    """Connectivity loss, timeout or an unavailable directory server."""
