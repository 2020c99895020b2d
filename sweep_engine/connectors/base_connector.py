"""
Base Connector Classes for the Sweep Engine.

This module provides the directory connector contract consumed by the
sweep stages, together with an in-memory directory used for tests,
dry runs and development without a domain controller.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple

from ..engine.policy import datetime_to_filetime
from ..exceptions import QueryFailure
from ..models import DirectoryQuery, MachineAccount, SearchScope, is_within

logger = logging.getLogger(__name__)


class ConnectorResult:
    """Result of a connector operation."""

    def __init__(self, success: bool, message: str = "", data: Optional[Any] = None,
                 error: Optional[str] = None):
        self.success = success
        self.message = message
        self.data = data
        self.error = error

    def __bool__(self):
        return self.success

    def __str__(self):
        return f"{'✓' if self.success else '✗'} {self.message}"


class DirectoryConnector(ABC):
    """
    Abstract base class for directory connectors.

    Queries raise QueryFailure when a search root cannot be read.
    Mutations never raise for directory-side errors; they return a
    failed ConnectorResult so callers can record the failure and move on.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None, mock_mode: bool = False):
        """
        Initialize the connector.

        Args:
            config: Configuration dictionary with server, credentials, etc.
            mock_mode: If True, the connector is backed by in-memory state
        """
        self.config = config or {}
        self.mock_mode = mock_mode
        self.system_name = self.__class__.__name__.replace('DirectoryConnector', '').lower() or "directory"

        logger.info(f"Initialized {self.__class__.__name__} (mock_mode={mock_mode})")

    @abstractmethod
    def query(self, root: str, scope: SearchScope, query: DirectoryQuery) -> List[MachineAccount]:
        """
        Find machine accounts under a search root.

        Args:
            root: DN of the container to search
            scope: Whole subtree or immediate children only
            query: Attribute predicate the accounts must satisfy

        Returns:
            Matching accounts in directory order

        Raises:
            QueryFailure: If the root cannot be searched
        """
        pass

    @abstractmethod
    def move(self, account: MachineAccount, new_path: str) -> ConnectorResult:
        """
        Move an account to another container.

        Args:
            account: Account to move
            new_path: DN of the destination container

        Returns:
            ConnectorResult with success status
        """
        pass

    @abstractmethod
    def set_enabled(self, account: MachineAccount, enabled: bool) -> ConnectorResult:
        """
        Enable or disable an account.

        Args:
            account: Account to change
            enabled: New account status

        Returns:
            ConnectorResult with success status
        """
        pass

    @abstractmethod
    def set_description(self, account: MachineAccount, text: str) -> ConnectorResult:
        """
        Replace the description attribute of an account.

        Args:
            account: Account to annotate
            text: New description

        Returns:
            ConnectorResult with success status
        """
        pass

    @abstractmethod
    def list_children(self, account: MachineAccount) -> List[str]:
        """
        List objects nested directly below an account.

        Args:
            account: Parent account

        Returns:
            DNs of the immediate child objects
        """
        pass

    @abstractmethod
    def delete_object(self, distinguished_name: str, recursive: bool = False) -> ConnectorResult:
        """
        Delete a directory object.

        Args:
            distinguished_name: DN of the object to delete
            recursive: Also delete everything nested below the object

        Returns:
            ConnectorResult with success status
        """
        pass

    def validate_config(self) -> bool:
        """
        Validate that the connector has all required configuration.

        Returns:
            True if configuration is valid, False otherwise
        """
        return True

    def get_system_name(self) -> str:
        """Get the name of the directory this connector manages."""
        return self.system_name

    def is_mock_mode(self) -> bool:
        """Check if this connector is running in mock mode."""
        return self.mock_mode


class MockDirectoryConnector(DirectoryConnector):
    """
    In-memory directory.

    Holds machine accounts keyed by DN, bumps last_changed_timestamp on
    every mutation (as the directory's whenChanged would), and lets
    tests inject failures per operation and per account.
    """

    OPERATIONS = ("move", "disable", "enable", "describe", "delete")

    def __init__(self, config: Optional[Dict[str, Any]] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        super().__init__(config, mock_mode=True)
        self.system_name = "mock"
        self.clock = clock or (lambda: datetime.now(timezone.utc))

        # In-memory state for mock operations
        self.accounts: Dict[str, MachineAccount] = {}   # dn (lowercase) -> account
        self.children: Dict[str, List[str]] = {}        # account dn (lowercase) -> child DNs
        self.unreachable_roots: Set[str] = set()
        self.failures: Dict[str, Set[str]] = {}          # operation -> account names / child DNs
        self.operations: List[Tuple[str, str]] = []      # (operation, target) in call order

    @classmethod
    def from_records(cls, records: Iterable[Dict[str, Any]],
                     clock: Optional[Callable[[], datetime]] = None) -> "MockDirectoryConnector":
        """
        Build a directory from plain records (e.g. loaded from YAML).

        Besides the MachineAccount fields, a record may give
        ``inactive_days`` and ``changed_days_ago`` relative to the clock,
        and ``children`` as a list of child object names.
        """
        connector = cls(clock=clock)
        now = connector.clock()

        for record in records:
            data = dict(record)
            children = data.pop("children", None) or []

            inactive_days = data.pop("inactive_days", None)
            if inactive_days is not None:
                data["last_activity_timestamp"] = datetime_to_filetime(
                    now - timedelta(days=inactive_days)
                )

            changed_days_ago = data.pop("changed_days_ago", None)
            if changed_days_ago is not None:
                data["last_changed_timestamp"] = now - timedelta(days=changed_days_ago)

            account = MachineAccount(**data)
            connector.add_account(
                account, children=[f"CN={child},{account.distinguished_name}" for child in children]
            )

        return connector

    def add_account(self, account: MachineAccount, children: Optional[List[str]] = None) -> MachineAccount:
        """Seed an account (and optional child object DNs)."""
        if account.last_changed_timestamp is None:
            account = account.model_copy(update={"last_changed_timestamp": self.clock()})

        key = account.distinguished_name.lower()
        self.accounts[key] = account
        if children:
            self.children[key] = list(children)
        return account

    def get_account(self, name: str) -> Optional[MachineAccount]:
        """Find the first account with the given name, wherever it lives."""
        for account in self.accounts.values():
            if account.name.lower() == name.lower():
                return account
        return None

    def fail_operation(self, operation: str, target: str):
        """Make ``operation`` fail for an account name (or child DN for delete)."""
        if operation not in self.OPERATIONS:
            raise ValueError(f"Unknown operation: {operation}")
        self.failures.setdefault(operation, set()).add(target.lower())

    def clear_failures(self):
        self.failures.clear()
        self.unreachable_roots.clear()

    def query(self, root: str, scope: SearchScope, query: DirectoryQuery) -> List[MachineAccount]:
        self.operations.append(("query", root))
        if root.lower() in {r.lower() for r in self.unreachable_roots}:
            raise QueryFailure(root, "server is unavailable")

        return [
            account.model_copy()
            for account in self.accounts.values()
            if is_within(account.path, root, scope) and query.matches(account)
        ]

    def move(self, account: MachineAccount, new_path: str) -> ConnectorResult:
        self.operations.append(("move", account.name))
        key = account.distinguished_name.lower()
        stored = self.accounts.get(key)
        if stored is None:
            return ConnectorResult(False, f"{account.name} not found", error="No such object")

        if self._should_fail("move", account.name):
            return ConnectorResult(False, f"Move of {account.name} failed", error="Access is denied")

        moved = stored.model_copy(update={"path": new_path, "last_changed_timestamp": self.clock()})
        new_key = moved.distinguished_name.lower()
        if new_key != key and new_key in self.accounts:
            return ConnectorResult(False, f"{moved.distinguished_name} already exists",
                                   error="Entry already exists")

        del self.accounts[key]
        self.accounts[new_key] = moved
        if key in self.children:
            self.children[new_key] = [
                child[:len(child) - len(stored.distinguished_name)] + moved.distinguished_name
                for child in self.children.pop(key)
            ]

        logger.info(f"Mock moved {account.name} to {new_path}")
        return ConnectorResult(True, f"Moved {account.name} to {new_path}", data=moved.model_copy())

    def set_enabled(self, account: MachineAccount, enabled: bool) -> ConnectorResult:
        operation = "enable" if enabled else "disable"
        self.operations.append((operation, account.name))
        return self._update(account, operation, {"enabled": enabled})

    def set_description(self, account: MachineAccount, text: str) -> ConnectorResult:
        self.operations.append(("describe", account.name))
        return self._update(account, "describe", {"description": text})

    def list_children(self, account: MachineAccount) -> List[str]:
        return list(self.children.get(account.distinguished_name.lower(), []))

    def delete_object(self, distinguished_name: str, recursive: bool = False) -> ConnectorResult:
        self.operations.append(("delete", distinguished_name))
        key = distinguished_name.lower()

        if key in self.accounts:
            account = self.accounts[key]
            if self._should_fail("delete", account.name):
                return ConnectorResult(False, f"Delete of {account.name} failed", error="Access is denied")
            if self.children.get(key) and not recursive:
                return ConnectorResult(False, f"{account.name} has child objects",
                                       error="Operation not allowed on a non-leaf object")

            del self.accounts[key]
            self.children.pop(key, None)
            logger.info(f"Mock deleted {account.name}")
            return ConnectorResult(True, f"Deleted {account.name}")

        for parent, child_dns in self.children.items():
            for child in child_dns:
                if child.lower() == key:
                    if self._should_fail("delete", child):
                        return ConnectorResult(False, f"Delete of {child} failed", error="Access is denied")
                    child_dns.remove(child)
                    logger.info(f"Mock deleted child object {child}")
                    return ConnectorResult(True, f"Deleted {child}")

        return ConnectorResult(False, f"{distinguished_name} not found", error="No such object")

    def get_mock_state(self) -> Dict[str, Any]:
        """Get current mock state for inspection."""
        return {
            "accounts": {dn: account.model_dump(mode="json") for dn, account in self.accounts.items()},
            "children": {dn: list(children) for dn, children in self.children.items()},
            "operations": list(self.operations),
        }

    def _should_fail(self, operation: str, target: str) -> bool:
        return target.lower() in self.failures.get(operation, set())

    def _update(self, account: MachineAccount, operation: str, changes: Dict[str, Any]) -> ConnectorResult:
        key = account.distinguished_name.lower()
        stored = self.accounts.get(key)
        if stored is None:
            return ConnectorResult(False, f"{account.name} not found", error="No such object")

        if self._should_fail(operation, account.name):
            return ConnectorResult(False, f"{operation} of {account.name} failed", error="Access is denied")

        changes = dict(changes, last_changed_timestamp=self.clock())
        self.accounts[key] = stored.model_copy(update=changes)
        logger.info(f"Mock {operation} {account.name}")
        return ConnectorResult(True, f"{operation} {account.name}", data=self.accounts[key].model_copy())
