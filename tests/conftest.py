"""Shared fixtures for runbook tests."""

import pytest
from unittest.mock import MagicMock

from active_directory_runbooks.config.models import Config
from active_directory_runbooks.config.store import Credential, ExecutionContext, JsonConfigurationStore

MUTATING_CALLS = {
    "add", "delete", "modify", "reset_password", "unlock_account",
    "add_group_member", "remove_group_member",
}


@pytest.fixture
def config_data():
    """Test configuration data."""
    return {
        "variables": {
            "DomainName": "test.local",
            "DomainController": "dc01.test.local",
            "SyncServerName": "aadc01.test.local"
        },
        "credentials": {
            "DomainCredentials": {
                "identity": "TEST\\svc-runbook",
                "secret": "password123"
            }
        }
    }


@pytest.fixture
def config(config_data):
    return Config(**config_data)


@pytest.fixture
def store(config):
    return JsonConfigurationStore(config)


@pytest.fixture
def context():
    """Resolved execution context for test.local."""
    return ExecutionContext(
        domain_name="test.local",
        domain_controller="dc01.test.local",
        credential=Credential("TEST\\svc-runbook", "password123"),
        sync_server_name="aadc01.test.local",
    )


@pytest.fixture
def mock_directory():
    """Mock directory client usable as a context manager."""
    directory = MagicMock()
    directory.__enter__.return_value = directory
    directory.find_user_by_principal_name.return_value = None
    directory.find_group_by_name.return_value = None
    return directory


@pytest.fixture
def john():
    """Search entry for an enabled, locked-out user."""
    return {
        'dn': 'CN=John Doe,OU=Users,DC=test,DC=local',
        'attributes': {
            'sAMAccountName': 'john',
            'userPrincipalName': 'john@test.local',
            'userAccountControl': 512,
            'lockoutTime': 133500000000000000,
            'objectClass': ['top', 'person', 'organizationalPerson', 'user'],
        }
    }


@pytest.fixture
def staff():
    """Search entry for the Staff group."""
    return {
        'dn': 'CN=Staff,OU=Groups,DC=test,DC=local',
        'attributes': {
            'sAMAccountName': 'Staff',
            'name': 'Staff',
            'objectClass': ['top', 'group'],
        }
    }


@pytest.fixture
def mutations():
    """Return the names of mutating calls made on a mock directory client."""
    def mutation_calls(directory):
        return [name for name, _, _ in directory.method_calls if name in MUTATING_CALLS]
    return mutation_calls
