"""
Active Directory Connector for the Sweep Engine.

Implements the directory contract against Active Directory over LDAP
using ldap3. Computer objects are read through raw attributes so that
lastLogonTimestamp keeps its FILETIME tick value.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ldap3 import BASE, LEVEL, MODIFY_REPLACE, NONE, SUBTREE, Connection, Server
from ldap3.core.exceptions import LDAPException
from ldap3.utils.dn import escape_rdn

from ..exceptions import QueryFailure
from ..models import DirectoryQuery, MachineAccount, SearchScope, split_distinguished_name
from .base_connector import ConnectorResult, DirectoryConnector

logger = logging.getLogger(__name__)

ACCOUNTDISABLE = 0x0002
TREE_DELETE_OID = "1.2.840.113556.1.4.805"
MATCHING_RULE_BIT_AND = "1.2.840.113556.1.4.803"

COMPUTER_ATTRIBUTES = [
    "cn",
    "lastLogonTimestamp",
    "userAccountControl",
    "whenChanged",
    "description",
]


def build_search_filter(query: DirectoryQuery) -> str:
    """
    Translate a DirectoryQuery into an LDAP filter for computer objects.

    Args:
        query: The attribute predicate

    Returns:
        LDAP filter string
    """
    clauses = ["(objectCategory=computer)"]

    if query.enabled is True:
        clauses.append(f"(!(userAccountControl:{MATCHING_RULE_BIT_AND}:={ACCOUNTDISABLE}))")
    elif query.enabled is False:
        clauses.append(f"(userAccountControl:{MATCHING_RULE_BIT_AND}:={ACCOUNTDISABLE})")

    if query.inactive_since is not None:
        clauses.append(
            f"(|(lastLogonTimestamp<={int(query.inactive_since)})(!(lastLogonTimestamp=*)))"
        )

    return f"(&{''.join(clauses)})"


def _first(raw: Dict[str, Any], name: str) -> Optional[bytes]:
    values = raw.get(name) or []
    return values[0] if values else None


def _parse_generalized_time(value: Optional[bytes]) -> Optional[datetime]:
    if not value:
        return None
    text = value.decode("utf-8") if isinstance(value, bytes) else str(value)
    return datetime.strptime(text[:14], "%Y%m%d%H%M%S").replace(tzinfo=timezone.utc)


def entry_to_account(entry: Dict[str, Any]) -> MachineAccount:
    """Convert a raw ldap3 search response entry into a MachineAccount."""
    dn = entry["dn"]
    raw = entry.get("raw_attributes", {})
    rdns = split_distinguished_name(dn)

    cn = _first(raw, "cn")
    name = cn.decode("utf-8") if cn else rdns[0].split("=", 1)[1]

    uac = _first(raw, "userAccountControl")
    last_logon = _first(raw, "lastLogonTimestamp")
    description = _first(raw, "description")

    return MachineAccount(
        name=name,
        path=",".join(rdns[1:]),
        last_activity_timestamp=int(last_logon) if last_logon else None,
        enabled=not (int(uac) & ACCOUNTDISABLE) if uac else True,
        last_changed_timestamp=_parse_generalized_time(_first(raw, "whenChanged")),
        description=description.decode("utf-8") if description else None,
    )


class LdapDirectoryConnector(DirectoryConnector):
    """
    Active Directory connector backed by ldap3.

    Config keys: server, user, password, use_ssl, page_size.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None, connection: Optional[Connection] = None):
        """
        Initialize the connector.

        Args:
            config: Connection settings
            connection: Pre-built ldap3 Connection (skips binding from config)
        """
        super().__init__(config, mock_mode=False)
        self.system_name = "active_directory"
        self.page_size = int(self.config.get("page_size", 500))
        self._connection = connection

    def validate_config(self) -> bool:
        if self._connection is not None:
            return True
        return all(self.config.get(key) for key in ("server", "user", "password"))

    @property
    def connection(self) -> Connection:
        if self._connection is None:
            if not self.validate_config():
                raise ValueError("LDAP connector requires server, user and password")

            server = Server(self.config["server"], use_ssl=self.config.get("use_ssl", True), get_info=NONE)
            self._connection = Connection(
                server,
                user=self.config["user"],
                password=self.config["password"],
                auto_bind=True,
                raise_exceptions=False,
            )
            logger.info(f"Bound to {self.config['server']} as {self.config['user']}")
        return self._connection

    def query(self, root: str, scope: SearchScope, query: DirectoryQuery) -> List[MachineAccount]:
        search_filter = build_search_filter(query)
        search_scope = LEVEL if scope == SearchScope.ONE_LEVEL else SUBTREE
        logger.debug(f"Searching {root} ({scope.value}) with {search_filter}")

        try:
            response = self.connection.extend.standard.paged_search(
                search_base=root,
                search_filter=search_filter,
                search_scope=search_scope,
                attributes=COMPUTER_ATTRIBUTES,
                paged_size=self.page_size,
                generator=False,
            )
        except LDAPException as e:
            raise QueryFailure(root, str(e), cause=e) from e

        result = self.connection.result or {}
        if result.get("result", 0) not in (0, None):
            raise QueryFailure(root, result.get("description") or "search failed")

        accounts = []
        for entry in response or []:
            if entry.get("type") != "searchResEntry":
                continue
            try:
                accounts.append(entry_to_account(entry))
            except (ValueError, KeyError, IndexError) as e:
                logger.warning(f"Skipping unreadable entry {entry.get('dn')}: {e}")

        return accounts

    def move(self, account: MachineAccount, new_path: str) -> ConnectorResult:
        relative_dn = f"CN={escape_rdn(account.name)}"
        return self._run(
            f"Moved {account.name} to {new_path}",
            lambda conn: conn.modify_dn(account.distinguished_name, relative_dn, new_superior=new_path),
        )

    def set_enabled(self, account: MachineAccount, enabled: bool) -> ConnectorResult:
        dn = account.distinguished_name
        try:
            ok = self.connection.search(dn, "(objectClass=*)", search_scope=BASE,
                                        attributes=["userAccountControl"])
        except LDAPException as e:
            return ConnectorResult(False, f"Could not read {account.name}", error=str(e))

        if not ok or not self.connection.response:
            return ConnectorResult(False, f"Could not read {account.name}",
                                   error=self._last_error())

        raw = self.connection.response[0].get("raw_attributes", {})
        uac = int(_first(raw, "userAccountControl") or 0)
        new_uac = uac & ~ACCOUNTDISABLE if enabled else uac | ACCOUNTDISABLE

        action = "Enabled" if enabled else "Disabled"
        return self._run(
            f"{action} {account.name}",
            lambda conn: conn.modify(dn, {"userAccountControl": [(MODIFY_REPLACE, [new_uac])]}),
        )

    def set_description(self, account: MachineAccount, text: str) -> ConnectorResult:
        return self._run(
            f"Updated description of {account.name}",
            lambda conn: conn.modify(account.distinguished_name, {"description": [(MODIFY_REPLACE, [text])]}),
        )

    def list_children(self, account: MachineAccount) -> List[str]:
        try:
            ok = self.connection.search(account.distinguished_name, "(objectClass=*)",
                                        search_scope=LEVEL, attributes=[])
        except LDAPException as e:
            logger.warning(f"Could not list children of {account.name}: {e}")
            return []

        if not ok:
            return []
        return [entry["dn"] for entry in self.connection.response or []
                if entry.get("type") == "searchResEntry"]

    def delete_object(self, distinguished_name: str, recursive: bool = False) -> ConnectorResult:
        controls = [(TREE_DELETE_OID, True, None)] if recursive else None
        return self._run(
            f"Deleted {distinguished_name}",
            lambda conn: conn.delete(distinguished_name, controls=controls),
        )

    def _run(self, message: str, operation) -> ConnectorResult:
        try:
            ok = operation(self.connection)
        except LDAPException as e:
            logger.error(f"LDAP error: {e}")
            return ConnectorResult(False, message, error=str(e))

        if not ok:
            return ConnectorResult(False, message, error=self._last_error())
        return ConnectorResult(True, message)

    def _last_error(self) -> str:
        result = self._connection.result if self._connection else None
        if not result:
            return "Unknown error"
        return result.get("message") or result.get("description") or "Unknown error"
