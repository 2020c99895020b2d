"""
Tests for the directory connectors.

The LDAP connector is exercised against a mocked ldap3 Connection;
no directory server is contacted.
"""

from datetime import datetime, timezone
from unittest.mock import Mock

import pytest
from ldap3 import LEVEL, MODIFY_REPLACE
from ldap3.core.exceptions import LDAPSocketOpenError

from sweep_engine.connectors import MockDirectoryConnector, create_connector
from sweep_engine.connectors.ldap_connector import (
    LdapDirectoryConnector,
    build_search_filter,
    entry_to_account,
)
from sweep_engine.exceptions import QueryFailure
from sweep_engine.models import DirectoryQuery, MachineAccount, SearchScope, is_within

from conftest import NOW, QUARANTINE, ROOT_A, make_account


class TestIsWithin:
    """Test cases for container membership."""

    def test_subtree(self):
        assert is_within(ROOT_A, ROOT_A)
        assert is_within(f"OU=Lab,{ROOT_A}", ROOT_A)
        assert not is_within(QUARANTINE, ROOT_A)

    def test_one_level(self):
        assert is_within(ROOT_A, ROOT_A, SearchScope.ONE_LEVEL)
        assert not is_within(f"OU=Lab,{ROOT_A}", ROOT_A, SearchScope.ONE_LEVEL)

    def test_case_and_spacing_insensitive(self):
        assert is_within("ou=workstations, dc=corp, dc=local", ROOT_A)

    def test_escaped_comma(self):
        assert not is_within(r"OU=Sales\, EMEA,DC=corp,DC=local", "OU=Sales,DC=corp,DC=local")


class TestMockDirectoryConnector:
    """Test cases for MockDirectoryConnector."""

    def test_mutations_bump_last_changed(self, directory, clock):
        account = directory.add_account(make_account("PC1", changed_days_ago=100))
        clock.advance(days=1)

        directory.set_enabled(account, False)

        assert directory.get_account("PC1").last_changed_timestamp == clock()

    def test_query_returns_copies(self, directory):
        directory.add_account(make_account("PC1"))

        found = directory.query(ROOT_A, SearchScope.SUBTREE, DirectoryQuery())
        found[0].enabled = False

        assert directory.get_account("PC1").enabled is True

    def test_move_to_existing_name_fails(self, directory):
        account = directory.add_account(make_account("PC1"))
        directory.add_account(make_account("PC1", path=QUARANTINE))

        result = directory.move(account, QUARANTINE)

        assert not result
        assert result.error == "Entry already exists"

    def test_move_carries_children(self, directory):
        account = make_account("PC1")
        directory.add_account(account, children=[f"CN=Child,{account.distinguished_name}"])

        directory.move(account, QUARANTINE)
        moved = directory.get_account("PC1")

        assert directory.list_children(moved) == [f"CN=Child,CN=PC1,{QUARANTINE}"]

    def test_non_recursive_delete_with_children_fails(self, directory):
        account = make_account("PC1")
        directory.add_account(account, children=[f"CN=Child,{account.distinguished_name}"])

        assert not directory.delete_object(account.distinguished_name)
        assert directory.delete_object(account.distinguished_name, recursive=True)

    def test_unknown_operation(self, directory):
        with pytest.raises(ValueError):
            directory.fail_operation("rename", "PC1")

    def test_from_records(self):
        connector = MockDirectoryConnector.from_records(
            [{"name": "PC1", "path": ROOT_A, "inactive_days": 10, "changed_days_ago": 5, "children": ["C1"]}],
            clock=lambda: NOW,
        )
        account = connector.get_account("PC1")

        assert account.last_activity_at == NOW.replace(day=7)
        assert account.last_changed_timestamp == NOW.replace(day=12)
        assert connector.list_children(account) == [f"CN=C1,CN=PC1,{ROOT_A}"]

    def test_create_connector_mock(self):
        connector = create_connector({"mock_mode": True, "mock_accounts": [{"name": "PC1", "path": ROOT_A}]})

        assert connector.is_mock_mode()
        assert connector.get_account("PC1") is not None

    def test_create_connector_ldap(self):
        connector = create_connector({"server": "dc01", "user": "svc", "password": "pw"})

        assert isinstance(connector, LdapDirectoryConnector)
        assert connector.validate_config()


class TestLdapSearchFilter:
    """Test cases for LDAP filter construction."""

    def test_enabled_and_inactive(self):
        search_filter = build_search_filter(DirectoryQuery(enabled=True, inactive_since=1234))

        assert search_filter == (
            "(&(objectCategory=computer)"
            "(!(userAccountControl:1.2.840.113556.1.4.803:=2))"
            "(|(lastLogonTimestamp<=1234)(!(lastLogonTimestamp=*))))"
        )

    def test_disabled(self):
        assert build_search_filter(DirectoryQuery(enabled=False)) == (
            "(&(objectCategory=computer)(userAccountControl:1.2.840.113556.1.4.803:=2))"
        )

    def test_any_status(self):
        assert build_search_filter(DirectoryQuery()) == "(&(objectCategory=computer))"


class TestLdapDirectoryConnector:
    """Test cases for LdapDirectoryConnector with a mocked connection."""

    @pytest.fixture
    def connection(self):
        conn = Mock()
        conn.result = {"result": 0, "description": "success"}
        return conn

    @pytest.fixture
    def connector(self, connection):
        return LdapDirectoryConnector({"page_size": 100}, connection=connection)

    @pytest.fixture
    def raw_entry(self):
        return {
            "type": "searchResEntry",
            "dn": f"CN=PC1,{ROOT_A}",
            "raw_attributes": {
                "cn": [b"PC1"],
                "lastLogonTimestamp": [b"134000000000000000"],
                "userAccountControl": [b"4098"],
                "whenChanged": [b"20261001120000.0Z"],
                "description": [b"Finance laptop"],
            },
        }

    def test_entry_to_account(self, raw_entry):
        account = entry_to_account(raw_entry)

        assert account.name == "PC1"
        assert account.path == ROOT_A
        assert account.last_activity_timestamp == 134000000000000000
        assert account.enabled is False
        assert account.last_changed_timestamp == datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)
        assert account.description == "Finance laptop"

    def test_entry_without_optional_attributes(self):
        account = entry_to_account({"dn": f"CN=PC2,{ROOT_A}", "raw_attributes": {}})

        assert account.name == "PC2"
        assert account.last_activity_timestamp is None
        assert account.enabled is True

    def test_query(self, connector, connection, raw_entry):
        connection.extend.standard.paged_search.return_value = [raw_entry, {"type": "searchResRef"}]

        accounts = connector.query(ROOT_A, SearchScope.ONE_LEVEL, DirectoryQuery(enabled=True))

        assert [a.name for a in accounts] == ["PC1"]
        kwargs = connection.extend.standard.paged_search.call_args.kwargs
        assert kwargs["search_base"] == ROOT_A
        assert kwargs["search_scope"] == LEVEL
        assert kwargs["paged_size"] == 100

    def test_query_failure_on_ldap_error(self, connector, connection):
        connection.extend.standard.paged_search.side_effect = LDAPSocketOpenError("unreachable")

        with pytest.raises(QueryFailure) as exc_info:
            connector.query(ROOT_A, SearchScope.SUBTREE, DirectoryQuery())

        assert exc_info.value.root == ROOT_A

    def test_query_failure_on_result_code(self, connector, connection):
        connection.extend.standard.paged_search.return_value = []
        connection.result = {"result": 32, "description": "noSuchObject"}

        with pytest.raises(QueryFailure, match="noSuchObject"):
            connector.query(ROOT_A, SearchScope.SUBTREE, DirectoryQuery())

    def test_move(self, connector, connection):
        connection.modify_dn.return_value = True
        account = MachineAccount(name="PC1", path=ROOT_A)

        result = connector.move(account, QUARANTINE)

        assert result.success
        connection.modify_dn.assert_called_once_with(
            f"CN=PC1,{ROOT_A}", "CN=PC1", new_superior=QUARANTINE
        )

    def test_move_failure(self, connector, connection):
        connection.modify_dn.return_value = False
        connection.result = {"result": 50, "description": "insufficientAccessRights", "message": "Access denied"}

        result = connector.move(MachineAccount(name="PC1", path=ROOT_A), QUARANTINE)

        assert not result.success
        assert result.error == "Access denied"

    def test_disable_sets_accountdisable_bit(self, connector, connection):
        connection.search.return_value = True
        connection.response = [{"raw_attributes": {"userAccountControl": [b"4096"]}}]
        connection.modify.return_value = True

        result = connector.set_enabled(MachineAccount(name="PC1", path=QUARANTINE), False)

        assert result.success
        connection.modify.assert_called_once_with(
            f"CN=PC1,{QUARANTINE}", {"userAccountControl": [(MODIFY_REPLACE, [4098])]}
        )

    def test_set_description(self, connector, connection):
        connection.modify.return_value = True

        connector.set_description(MachineAccount(name="PC1", path=QUARANTINE), "Disabled on 17.10.2026")

        connection.modify.assert_called_once_with(
            f"CN=PC1,{QUARANTINE}", {"description": [(MODIFY_REPLACE, ["Disabled on 17.10.2026"])]}
        )

    def test_recursive_delete_uses_tree_delete_control(self, connector, connection):
        connection.delete.return_value = True

        connector.delete_object(f"CN=PC1,{QUARANTINE}", recursive=True)

        connection.delete.assert_called_once_with(
            f"CN=PC1,{QUARANTINE}", controls=[("1.2.840.113556.1.4.805", True, None)]
        )

    def test_list_children(self, connector, connection):
        connection.search.return_value = True
        connection.response = [{"type": "searchResEntry", "dn": f"CN=Child,CN=PC1,{QUARANTINE}"}]

        children = connector.list_children(MachineAccount(name="PC1", path=QUARANTINE))

        assert children == [f"CN=Child,CN=PC1,{QUARANTINE}"]
        assert connection.search.call_args.kwargs["search_scope"] == LEVEL

    def test_validate_config_requires_credentials(self):
        assert not LdapDirectoryConnector({"server": "dc01"}).validate_config()
