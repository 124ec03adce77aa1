from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ldap3 import BASE, SUBTREE, Connection, Server
from ldap3.core.exceptions import LDAPCommunicationError, LDAPException
from ldap3.core.results import (
    RESULT_BUSY,
    RESULT_ENTRY_ALREADY_EXISTS,
    RESULT_NO_SUCH_OBJECT,
    RESULT_SUCCESS,
    RESULT_UNAVAILABLE,
)
from ldap3.utils.conv import escape_filter_chars

from .audit import JsonAuditLogger
from .config import DirectoryConfig
from .dn import child_dn
from .errors import (
    AlreadyExistsError,
    DirectoryServiceError,
    InvalidParentError,
    MalformedInputError,
    TransientServiceError,
)
from .results import DirectoryEntry, Found, LookupFailed, LookupResult, NotFound

logger = logging.getLogger(__name__)

RESULT_SERVER_DOWN = 81
RESULT_TIMEOUT = 85
TRANSIENT_RESULTS = {RESULT_BUSY, RESULT_UNAVAILABLE, RESULT_SERVER_DOWN, RESULT_TIMEOUT}

GROUP_SCOPE_BITS = {
    "Global": 0x00000002,
    "DomainLocal": 0x00000004,
    "Universal": 0x00000008,
}
GROUP_SECURITY_BIT = 0x80000000


def group_type(category: str, scope: str) -> int:
    """Active Directory ``groupType`` value, as the signed 32-bit integer AD stores."""
    if scope not in GROUP_SCOPE_BITS:
        raise MalformedInputError(f"Unknown group scope {scope!r}")
    if category not in ("Security", "Distribution"):
        raise MalformedInputError(f"Unknown group category {category!r}")

    value = GROUP_SCOPE_BITS[scope]
    if category == "Security":
        value |= GROUP_SECURITY_BIT
    if value & GROUP_SECURITY_BIT:
        value -= 1 << 32
    return value


class LdapDirectoryClient:
    """Directory operations over a bound ldap3 connection.

    Lookups return a ``LookupResult`` instead of raising, so "not found" can
    never be confused with a failed request. Creates raise a
    ``DirectoryServiceError`` subclass on any non-success result.
    """

    def __init__(self, connection: Connection, audit_logger: Optional[JsonAuditLogger] = None):
        self.connection = connection
        self.audit = audit_logger or JsonAuditLogger()

    @classmethod
    def connect(
        cls, config: DirectoryConfig, audit_logger: Optional[JsonAuditLogger] = None
    ) -> "LdapDirectoryClient":
        server = Server(
            host=config.host,
            port=config.port,
            use_ssl=config.use_ssl,
            connect_timeout=config.connect_timeout,
        )
        connection = Connection(
            server,
            user=config.bind_dn,
            password=config.bind_password.resolve(),
            auto_bind=False,
            receive_timeout=config.receive_timeout,
        )
        try:
            connection.open()
            if config.starttls:
                connection.start_tls()
            bound = connection.bind()
        except LDAPException as exc:
            raise _translate_exception("bind", config.bind_dn, exc) from exc
        if not bound:
            raise _error_from_result("bind", config.bind_dn, dict(connection.result or {}))

        client = cls(connection, audit_logger)
        client.audit.info(f"bind - succeeded: {config.bind_dn}", host=config.host, port=config.port)
        return client

    def close(self) -> None:
        try:
            self.connection.unbind()
        except LDAPException as exc:
            logger.warning("Failed to unbind cleanly: %s", exc)

    def __enter__(self) -> "LdapDirectoryClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def find_by_dn(self, dn: str) -> LookupResult:
        return self._search(
            operation="search",
            dn=dn,
            search_base=dn,
            search_filter="(objectClass=*)",
            search_scope=BASE,
            attributes=["objectClass", "description"],
            missing_base_is_absent=True,
        )

    def find_group_by_name(self, name: str, search_base: str) -> LookupResult:
        search_filter = f"(&(objectClass=group)(sAMAccountName={escape_filter_chars(name)}))"
        return self._search(
            operation="search",
            dn=search_base,
            search_base=search_base,
            search_filter=search_filter,
            search_scope=SUBTREE,
            attributes=["sAMAccountName", "groupType", "description"],
            missing_base_is_absent=False,
        )

    def create_organizational_unit(self, name: str, parent_dn: str, description: str) -> str:
        dn = child_dn(parent_dn, name, "OU")
        attributes: Dict[str, Any] = {"ou": name}
        if description:
            attributes["description"] = description
        self._add(dn, ["top", "organizationalUnit"], attributes)
        return dn

    def create_group(
        self,
        name: str,
        sam_account_name: str,
        category: str,
        parent_dn: str,
        description: str,
        scope: str,
    ) -> str:
        dn = child_dn(parent_dn, name, "CN")
        attributes: Dict[str, Any] = {
            "cn": name,
            "sAMAccountName": sam_account_name,
            "groupType": group_type(category, scope),
        }
        if description:
            attributes["description"] = description
        self._add(dn, ["top", "group"], attributes)
        return dn

    def _search(
        self,
        operation: str,
        dn: str,
        missing_base_is_absent: bool,
        **search_kwargs: Any,
    ) -> LookupResult:
        try:
            ok = self.connection.search(**search_kwargs)
        except LDAPException as exc:
            return LookupFailed(_translate_exception(operation, dn, exc))

        result = dict(self.connection.result or {})
        code = result.get("result", RESULT_SUCCESS)
        if code == RESULT_NO_SUCH_OBJECT and missing_base_is_absent:
            return NotFound()
        if not ok and code != RESULT_SUCCESS:
            return LookupFailed(_error_from_result(operation, dn, result))

        entries = _entries(self.connection.response)
        if not entries:
            return NotFound()
        entry = entries[0]
        return Found(DirectoryEntry(dn=entry["dn"], attributes=dict(entry.get("attributes") or {})))

    def _add(self, dn: str, object_class: List[str], attributes: Dict[str, Any]) -> None:
        try:
            ok = self.connection.add(dn, object_class, attributes)
        except LDAPException as exc:
            raise _translate_exception("add", dn, exc) from exc

        result = dict(self.connection.result or {})
        if not ok:
            error = _error_from_result("add", dn, result)
            self.audit.error(
                f"add - failed: {dn}",
                dn=dn,
                result_code=error.result_code,
                description=error.description,
            )
            raise error


def _entries(response: Optional[List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    # referrals come back as searchResRef and are ignored
    return [item for item in response or [] if item.get("type") == "searchResEntry"]


def _error_from_result(operation: str, dn: str, result: Dict[str, Any]) -> DirectoryServiceError:
    code = result.get("result")
    kwargs = {
        "result_code": code,
        "description": result.get("description") or "",
        "message": result.get("message") or "",
    }
    if operation == "add" and code == RESULT_ENTRY_ALREADY_EXISTS:
        return AlreadyExistsError(operation, dn, **kwargs)
    if operation == "add" and code == RESULT_NO_SUCH_OBJECT:
        return InvalidParentError(operation, dn, **kwargs)
    if code in TRANSIENT_RESULTS:
        return TransientServiceError(operation, dn, **kwargs)
    return DirectoryServiceError(operation, dn, **kwargs)


def _translate_exception(operation: str, dn: str, exc: LDAPException) -> DirectoryServiceError:
    error_class = TransientServiceError if isinstance(exc, LDAPCommunicationError) else DirectoryServiceError
    error = error_class(operation, dn, description=type(exc).__name__, message=str(exc))
    error.__cause__ = exc
    return error
