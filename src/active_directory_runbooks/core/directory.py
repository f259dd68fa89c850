"""LDAP directory client for Active Directory runbooks."""

import logging
import ssl
from typing import Optional, List, Dict, Any, Union

import ldap3
from ldap3 import Server, Connection, SUBTREE, MODIFY_ADD, MODIFY_DELETE
from ldap3.core.exceptions import LDAPException
from ldap3.utils.conv import escape_filter_chars

from ..config.models import ConnectionConfig, SecurityConfig
from ..errors import RemoteOperationError

logger = logging.getLogger(__name__)

USER_ATTRIBUTES = [
    'sAMAccountName', 'userPrincipalName', 'distinguishedName', 'name',
    'objectClass', 'userAccountControl', 'lockoutTime', 'pwdLastSet',
]

GROUP_ATTRIBUTES = [
    'sAMAccountName', 'name', 'distinguishedName', 'objectClass',
    'description', 'groupType',
]


class DirectoryClient:
    """
    Single-connection LDAP client for one runbook invocation.

    One bind attempt is made against the configured domain controller;
    there is no server pool and no retry. Every ldap3 failure surfaces as
    RemoteOperationError.
    """

    def __init__(self,
                 domain_controller: str,
                 identity: str,
                 secret: str,
                 base_dn: str,
                 connection_config: Optional[ConnectionConfig] = None,
                 security_config: Optional[SecurityConfig] = None):
        """
        Initialize directory client.

        Args:
            domain_controller: Host name or address of the domain controller
            identity: Bind identity (DOMAIN\\user binds with NTLM, anything else with SIMPLE)
            secret: Bind password
            base_dn: Naming context searched for users and groups
            connection_config: Connection configuration
            security_config: Security configuration
        """
        self.domain_controller = domain_controller
        self.identity = identity
        self._secret = secret
        self.base_dn = base_dn
        self.connection_config = connection_config or ConnectionConfig()
        self.security_config = security_config or SecurityConfig()

        self._connection: Optional[Connection] = None
        self._server = self._setup_server()

    def _setup_server(self) -> Server:
        tls_config = None
        if self.connection_config.use_ssl:
            tls_config = ldap3.Tls(
                validate=ssl.CERT_REQUIRED if self.security_config.validate_certificate else ssl.CERT_NONE,
                ca_certs_file=self.security_config.ca_cert_file
            )

        return Server(
            self.domain_controller,
            port=self.connection_config.effective_port,
            use_ssl=self.connection_config.use_ssl,
            tls=tls_config,
            get_info=ldap3.NONE,
            connect_timeout=self.connection_config.timeout
        )

    @property
    def authentication(self) -> str:
        return ldap3.NTLM if '\\' in self.identity else ldap3.SIMPLE

    def connect(self) -> Connection:
        """
        Bind to the domain controller.

        Returns:
            Connection: Bound LDAP connection

        Raises:
            RemoteOperationError: If the bind fails
        """
        if self._connection and self._connection.bound:
            return self._connection

        logger.debug(f"Binding to {self.domain_controller} as {self.identity}")

        try:
            connection = Connection(
                self._server,
                user=self.identity,
                password=self._secret,
                authentication=self.authentication,
                receive_timeout=self.connection_config.receive_timeout,
                auto_bind=ldap3.AUTO_BIND_NONE,
                raise_exceptions=False
            )

            if not connection.bind():
                raise RemoteOperationError(
                    f"Failed to bind to {self.domain_controller}: {connection.result}", step="connect"
                )

        except LDAPException as e:
            raise RemoteOperationError(f"Failed to connect to {self.domain_controller}: {e}", step="connect") from e

        self._connection = connection
        logger.debug(f"Connected to {self.domain_controller}")
        return connection

    def disconnect(self) -> None:
        """Unbind from the domain controller."""
        if self._connection:
            try:
                self._connection.unbind()
                logger.debug("Disconnected from LDAP server")
            except LDAPException as e:
                logger.warning(f"Error during disconnect: {e}")
            finally:
                self._connection = None

    def search(self,
               search_filter: str,
               attributes: Union[List[str], str] = ldap3.ALL_ATTRIBUTES,
               search_base: Optional[str] = None,
               size_limit: int = 0) -> List[Dict[str, Any]]:
        """
        Perform LDAP search operation.

        Args:
            search_filter: LDAP filter string (values must already be escaped)
            attributes: Attributes to retrieve
            search_base: Base DN for search (defaults to the naming context)
            size_limit: Maximum number of results (0 = no limit)

        Returns:
            List of entries as {'dn': ..., 'attributes': {...}} dictionaries

        Raises:
            RemoteOperationError: If the search itself fails
        """
        connection = self.connect()
        search_base = search_base or self.base_dn

        logger.debug(f"Searching: base={search_base}, filter={search_filter}")

        try:
            connection.search(
                search_base=search_base,
                search_filter=search_filter,
                search_scope=SUBTREE,
                attributes=attributes,
                size_limit=size_limit
            )
        except LDAPException as e:
            raise RemoteOperationError(f"Search failed: {e}", step="lookup") from e

        # ldap3 reports False for an empty result set, so check the result code
        if connection.result.get('result', 0) != 0:
            raise RemoteOperationError(f"Search failed: {connection.result}", step="lookup")

        entries = []
        for entry in connection.entries:
            entry_dict = {
                'dn': entry.entry_dn,
                'attributes': {}
            }

            for attr_name in entry.entry_attributes:
                attr_value = getattr(entry, attr_name)
                if hasattr(attr_value, 'value'):
                    entry_dict['attributes'][attr_name] = attr_value.value
                else:
                    entry_dict['attributes'][attr_name] = str(attr_value)

            entries.append(entry_dict)

        logger.debug(f"Search returned {len(entries)} entries")
        return entries

    def find_user_by_principal_name(self, principal_name: str) -> Optional[Dict[str, Any]]:
        """Return the user whose userPrincipalName matches, or None."""
        search_filter = (
            f"(&(objectCategory=person)(objectClass=user)"
            f"(userPrincipalName={escape_filter_chars(principal_name)}))"
        )
        results = self.search(search_filter, attributes=USER_ATTRIBUTES, size_limit=1)
        return results[0] if results else None

    def find_group_by_name(self, group_name: str) -> Optional[Dict[str, Any]]:
        """Return the group whose sAMAccountName matches, or None."""
        # sAMAccountName is unique in the domain; cn is only unique per container
        search_filter = f"(&(objectClass=group)(sAMAccountName={escape_filter_chars(group_name)}))"
        results = self.search(search_filter, attributes=GROUP_ATTRIBUTES, size_limit=1)
        return results[0] if results else None

    def _check(self, success: Any, operation: str, dn: str) -> bool:
        if success is True:
            logger.debug(f"{operation} succeeded: {dn}")
            return True
        result = self._connection.result if self._connection else success
        logger.error(f"{operation} failed for {dn}: {result}")
        raise RemoteOperationError(f"{operation} failed for {dn}: {_describe(result)}", step="mutate")

    def add(self, dn: str, attributes: Dict[str, Any]) -> bool:
        """
        Add LDAP entry.

        Raises:
            RemoteOperationError: If the directory rejects the entry (e.g. entryAlreadyExists)
        """
        connection = self.connect()
        logger.debug(f"Adding entry: {dn}")
        try:
            return self._check(connection.add(dn, attributes=attributes), "Add", dn)
        except LDAPException as e:
            raise RemoteOperationError(f"Add failed for {dn}: {e}", step="mutate") from e

    def modify(self, dn: str, changes: Dict[str, Any]) -> bool:
        """Apply an ldap3 change dictionary to an entry."""
        connection = self.connect()
        logger.debug(f"Modifying entry: {dn}")
        try:
            return self._check(connection.modify(dn, changes), "Modify", dn)
        except LDAPException as e:
            raise RemoteOperationError(f"Modify failed for {dn}: {e}", step="mutate") from e

    def delete(self, dn: str) -> bool:
        """Delete LDAP entry."""
        connection = self.connect()
        logger.debug(f"Deleting entry: {dn}")
        try:
            return self._check(connection.delete(dn), "Delete", dn)
        except LDAPException as e:
            raise RemoteOperationError(f"Delete failed for {dn}: {e}", step="mutate") from e

    def add_group_member(self, group_dn: str, member_dn: str) -> bool:
        return self.modify(group_dn, {'member': [(MODIFY_ADD, [member_dn])]})

    def remove_group_member(self, group_dn: str, member_dn: str) -> bool:
        return self.modify(group_dn, {'member': [(MODIFY_DELETE, [member_dn])]})

    def reset_password(self, user_dn: str, new_password: str) -> bool:
        """Administrative password reset (unicodePwd replace)."""
        connection = self.connect()
        logger.debug(f"Resetting password for: {user_dn}")
        try:
            result = connection.extend.microsoft.modify_password(user_dn, new_password)
        except LDAPException as e:
            raise RemoteOperationError(f"Password reset failed for {user_dn}: {e}", step="mutate") from e
        return self._check(result, "Password reset", user_dn)

    def unlock_account(self, user_dn: str) -> bool:
        """Clear lockoutTime on the account."""
        connection = self.connect()
        logger.debug(f"Unlocking account: {user_dn}")
        try:
            result = connection.extend.microsoft.unlock_account(user_dn)
        except LDAPException as e:
            raise RemoteOperationError(f"Unlock failed for {user_dn}: {e}", step="mutate") from e
        return self._check(result, "Unlock", user_dn)

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.disconnect()


def _describe(result: Any) -> str:
    if isinstance(result, dict):
        description = result.get('description', '')
        message = result.get('message', '')
        return f"{description} {message}".strip() or str(result)
    return str(result)
