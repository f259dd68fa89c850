"""Tests for the LDAP directory client."""

import pytest
from unittest.mock import Mock, patch

import ldap3
from ldap3 import MODIFY_ADD, MODIFY_DELETE
from ldap3.core.exceptions import LDAPSocketOpenError

from active_directory_runbooks.core.directory import DirectoryClient
from active_directory_runbooks.config.models import ConnectionConfig, SecurityConfig
from active_directory_runbooks.errors import RemoteOperationError


@pytest.fixture
def directory():
    """Directory client with ldap3 Server patched out."""
    with patch('active_directory_runbooks.core.directory.Server'):
        client = DirectoryClient(
            "dc01.test.local",
            "TEST\\svc-runbook",
            "password123",
            "DC=test,DC=local",
            ConnectionConfig(),
            SecurityConfig(validate_certificate=False)
        )
        yield client


@pytest.fixture
def connection(directory):
    """Bound mock connection attached to the client."""
    mock_connection = Mock()
    mock_connection.bound = True
    mock_connection.result = {'result': 0, 'description': 'success'}
    directory._connection = mock_connection
    return mock_connection


def make_entry(dn, **attributes):
    """Build a mock ldap3 entry."""
    entry = Mock()
    entry.entry_dn = dn
    entry.entry_attributes = list(attributes)
    for name, value in attributes.items():
        attr = Mock()
        attr.value = value
        setattr(entry, name, attr)
    return entry


class TestDirectoryClient:
    """Test directory client functionality."""

    def test_initialization(self):
        """Server is built for the controller with ldaps defaults."""
        with patch('active_directory_runbooks.core.directory.Server') as mock_server:
            client = DirectoryClient("dc01.test.local", "svc@test.local", "pw", "DC=test,DC=local")

            mock_server.assert_called_once()
            args, kwargs = mock_server.call_args
            assert args[0] == "dc01.test.local"
            assert kwargs['port'] == 636
            assert kwargs['use_ssl'] is True
            assert client.base_dn == "DC=test,DC=local"

    def test_authentication_method(self, directory):
        """DOMAIN\\user binds with NTLM, anything else with SIMPLE."""
        assert directory.authentication == ldap3.NTLM

        directory.identity = "svc@test.local"
        assert directory.authentication == ldap3.SIMPLE

    @patch('active_directory_runbooks.core.directory.Connection')
    def test_connect_success(self, mock_connection, directory):
        """Test successful bind."""
        mock_connection_instance = Mock()
        mock_connection_instance.bind.return_value = True
        mock_connection.return_value = mock_connection_instance

        connection = directory.connect()

        assert connection == mock_connection_instance
        assert directory._connection == mock_connection_instance
        mock_connection_instance.bind.assert_called_once()
        assert mock_connection.call_args.kwargs['authentication'] == ldap3.NTLM
        assert mock_connection.call_args.kwargs['user'] == "TEST\\svc-runbook"

    @patch('active_directory_runbooks.core.directory.Connection')
    def test_connect_bind_failure(self, mock_connection, directory):
        """A rejected bind is a remote failure at the connect step, with no retry."""
        mock_connection_instance = Mock()
        mock_connection_instance.bind.return_value = False
        mock_connection_instance.result = {'description': 'invalidCredentials'}
        mock_connection.return_value = mock_connection_instance

        with pytest.raises(RemoteOperationError) as exc_info:
            directory.connect()

        assert exc_info.value.step == "connect"
        assert mock_connection_instance.bind.call_count == 1
        assert directory._connection is None

    @patch('active_directory_runbooks.core.directory.Connection')
    def test_connect_socket_failure(self, mock_connection, directory):
        """Socket errors are wrapped as remote failures."""
        mock_connection.return_value.bind.side_effect = LDAPSocketOpenError("unreachable")

        with pytest.raises(RemoteOperationError, match="unreachable"):
            directory.connect()

    def test_disconnect(self, directory, connection):
        """Test LDAP disconnection."""
        directory.disconnect()

        connection.unbind.assert_called_once()
        assert directory._connection is None

    def test_context_manager_disconnects(self, directory, connection):
        """Leaving the context unbinds the connection."""
        with directory:
            pass

        connection.unbind.assert_called_once()

    def test_search(self, directory, connection):
        """Test LDAP search operation."""
        connection.search.return_value = True
        connection.entries = [
            make_entry("CN=John Doe,OU=Users,DC=test,DC=local",
                       sAMAccountName="john", userAccountControl=512)
        ]

        results = directory.search("(objectClass=user)", attributes=['sAMAccountName'])

        assert len(results) == 1
        assert results[0]['dn'] == "CN=John Doe,OU=Users,DC=test,DC=local"
        assert results[0]['attributes']['sAMAccountName'] == "john"
        assert results[0]['attributes']['userAccountControl'] == 512
        assert connection.search.call_args.kwargs['search_base'] == "DC=test,DC=local"

    def test_search_no_results(self, directory, connection):
        """An empty result set is not an error."""
        connection.search.return_value = False
        connection.entries = []

        assert directory.search("(objectClass=user)") == []

    def test_search_failure(self, directory, connection):
        """A failed search is a remote failure at the lookup step."""
        connection.search.return_value = False
        connection.result = {'result': 32, 'description': 'noSuchObject'}
        connection.entries = []

        with pytest.raises(RemoteOperationError) as exc_info:
            directory.search("(objectClass=user)")
        assert exc_info.value.step == "lookup"

    def test_find_user_by_principal_name_escapes_filter(self, directory, connection):
        """Filter metacharacters in the principal name are escaped."""
        connection.search.return_value = False
        connection.entries = []

        assert directory.find_user_by_principal_name("j*hn)(x@test.local") is None

        search_filter = connection.search.call_args.kwargs['search_filter']
        assert "(userPrincipalName=j\\2ahn\\29\\28x@test.local)" in search_filter
        assert connection.search.call_args.kwargs['size_limit'] == 1

    def test_find_group_by_name(self, directory, connection):
        """Groups are matched on sAMAccountName only, which is unique in the domain."""
        connection.search.return_value = True
        connection.entries = [make_entry("CN=Staff,OU=Groups,DC=test,DC=local", sAMAccountName="Staff")]

        group = directory.find_group_by_name("Staff")

        assert group['dn'] == "CN=Staff,OU=Groups,DC=test,DC=local"
        search_filter = connection.search.call_args.kwargs['search_filter']
        assert search_filter == "(&(objectClass=group)(sAMAccountName=Staff))"
        assert "cn=" not in search_filter
        assert connection.search.call_args.kwargs['size_limit'] == 1

    def test_add(self, directory, connection):
        """Test LDAP add operation."""
        connection.add.return_value = True
        dn = "CN=newuser,OU=Users,DC=test,DC=local"
        attributes = {'objectClass': ['top', 'person', 'organizationalPerson', 'user']}

        assert directory.add(dn, attributes) is True
        connection.add.assert_called_once_with(dn, attributes=attributes)

    def test_add_rejected(self, directory, connection):
        """A rejected add reports the directory's reason."""
        connection.add.return_value = False
        connection.result = {'result': 68, 'description': 'entryAlreadyExists', 'message': ''}

        with pytest.raises(RemoteOperationError, match="entryAlreadyExists") as exc_info:
            directory.add("CN=dup,OU=Users,DC=test,DC=local", {})
        assert exc_info.value.step == "mutate"

    def test_modify(self, directory, connection):
        """Test LDAP modify operation."""
        connection.modify.return_value = True
        changes = {'pwdLastSet': [('MODIFY_REPLACE', [0])]}

        assert directory.modify("CN=john,DC=test,DC=local", changes) is True
        connection.modify.assert_called_once_with("CN=john,DC=test,DC=local", changes)

    def test_delete(self, directory, connection):
        """Test LDAP delete operation."""
        connection.delete.return_value = True

        assert directory.delete("CN=john,DC=test,DC=local") is True
        connection.delete.assert_called_once_with("CN=john,DC=test,DC=local")

    def test_group_membership_changes(self, directory, connection):
        """Membership changes are single member-attribute modifies."""
        connection.modify.return_value = True
        group_dn = "CN=Staff,OU=Groups,DC=test,DC=local"
        user_dn = "CN=John Doe,OU=Users,DC=test,DC=local"

        directory.add_group_member(group_dn, user_dn)
        connection.modify.assert_called_with(group_dn, {'member': [(MODIFY_ADD, [user_dn])]})

        directory.remove_group_member(group_dn, user_dn)
        connection.modify.assert_called_with(group_dn, {'member': [(MODIFY_DELETE, [user_dn])]})

    def test_reset_password(self, directory, connection):
        """Password reset uses the Microsoft extended operation."""
        connection.extend.microsoft.modify_password.return_value = True

        assert directory.reset_password("CN=john,DC=test,DC=local", "N3w-Passw0rd") is True
        connection.extend.microsoft.modify_password.assert_called_once_with(
            "CN=john,DC=test,DC=local", "N3w-Passw0rd"
        )

    def test_reset_password_rejected(self, directory, connection):
        """Password policy rejections surface as remote failures."""
        connection.extend.microsoft.modify_password.return_value = False
        connection.result = {'result': 19, 'description': 'constraintViolation', 'message': ''}

        with pytest.raises(RemoteOperationError, match="constraintViolation"):
            directory.reset_password("CN=john,DC=test,DC=local", "short")

    def test_unlock_account(self, directory, connection):
        """Unlock uses the Microsoft extended operation."""
        connection.extend.microsoft.unlock_account.return_value = True

        assert directory.unlock_account("CN=john,DC=test,DC=local") is True
        connection.extend.microsoft.unlock_account.assert_called_once_with("CN=john,DC=test,DC=local")

    def test_unlock_account_failure(self, directory, connection):
        """ldap3 returns the result dict when unlock fails."""
        failure = {'result': 50, 'description': 'insufficientAccessRights', 'message': ''}
        connection.extend.microsoft.unlock_account.return_value = failure
        connection.result = failure

        with pytest.raises(RemoteOperationError, match="insufficientAccessRights"):
            directory.unlock_account("CN=john,DC=test,DC=local")
