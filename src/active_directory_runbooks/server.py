"""
MCP server for Active Directory runbooks.

Exposes every runbook as one MCP tool. The server keeps no directory
connection between calls: each tool call re-reads the configuration file,
resolves a fresh execution context and runs the runbook envelope once.
A failed runbook raises, so the MCP layer reports the call as an error
and no partial result is returned.
"""

import os
import sys
import signal
from typing import Any, List, Optional, Annotated

from mcp.server.fastmcp import FastMCP
from mcp.types import TextContent as Content
from pydantic import Field

from .config.loader import CONFIG_ENV_VAR, load_config, validate_config
from .config.store import JsonConfigurationStore
from .core.logging import setup_logging
from .errors import ConfigurationError
from .runbooks import Command, execute


class ActiveDirectoryRunbookServer:
    """Main server class for Active Directory runbooks."""

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize the server.

        Args:
            config_path: Path to configuration file
        """
        self.config_path = config_path or os.getenv(CONFIG_ENV_VAR)

        self.config = load_config(self.config_path)
        validate_config(self.config)

        self.logger = setup_logging(self.config.logging)

        self.mcp = FastMCP("ActiveDirectoryRunbooks")
        self._setup_tools()

    def _store(self) -> JsonConfigurationStore:
        try:
            return JsonConfigurationStore.from_file(self.config_path)
        except (OSError, ValueError) as e:
            raise ConfigurationError(f"Could not load configuration: {e}") from e

    def run_runbook(self, command: Command, **arguments: Any) -> List[Content]:
        """
        Run one runbook and format its projection as MCP content.

        Raises:
            RunbookError: If the runbook fails at any step
        """
        args = {name: value for name, value in arguments.items() if value is not None}
        store = self._store()
        result = execute(command, args, store=store, config=store.config)
        return [Content(type="text", text=result.to_json())]

    def _setup_tools(self) -> None:
        """Register one MCP tool per runbook."""

        @self.mcp.tool(description="Create an enabled user account")
        def create_user(
            username: Annotated[str, Field(description="Username (sAMAccountName)")],
            password: Annotated[str, Field(description="Initial password")],
            firstname: Annotated[str, Field(description="User's first name")],
            lastname: Annotated[str, Field(description="User's last name")],
            path: Annotated[str, Field(description="Container DN to create the user in")],
            display_name: Annotated[Optional[str], Field(description="Display name", default=None)] = None,
            description: Annotated[Optional[str], Field(description="Description", default=None)] = None
        ):
            return self.run_runbook(Command.CREATE_USER, username=username, password=password,
                                    firstname=firstname, lastname=lastname, path=path,
                                    displayName=display_name, description=description)

        @self.mcp.tool(description="Delete a user account")
        def remove_user(
            username: Annotated[str, Field(description="Username (sAMAccountName) to delete")]
        ):
            return self.run_runbook(Command.REMOVE_USER, username=username)

        @self.mcp.tool(description="Create a security group")
        def create_group(
            group_name: Annotated[str, Field(description="Group name")],
            path: Annotated[str, Field(description="Container DN to create the group in")],
            group_scope: Annotated[str, Field(description="Group scope (Universal, Global, DomainLocal)")],
            display_name: Annotated[Optional[str], Field(description="Display name", default=None)] = None,
            description: Annotated[Optional[str], Field(description="Description", default=None)] = None
        ):
            return self.run_runbook(Command.CREATE_GROUP, groupName=group_name, path=path,
                                    groupScope=group_scope, displayName=display_name,
                                    description=description)

        @self.mcp.tool(description="Delete a group")
        def remove_group(
            group_name: Annotated[str, Field(description="Group name to delete")]
        ):
            return self.run_runbook(Command.REMOVE_GROUP, groupName=group_name)

        @self.mcp.tool(description="Add a user to a group")
        def add_group_member(
            username: Annotated[str, Field(description="Username (sAMAccountName) of the member")],
            group_name: Annotated[str, Field(description="Group name")]
        ):
            return self.run_runbook(Command.ADD_GROUP_MEMBER, username=username, groupName=group_name)

        @self.mcp.tool(description="Remove a user from a group")
        def remove_group_member(
            username: Annotated[str, Field(description="Username (sAMAccountName) of the member")],
            group_name: Annotated[str, Field(description="Group name")]
        ):
            return self.run_runbook(Command.REMOVE_GROUP_MEMBER, username=username, groupName=group_name)

        @self.mcp.tool(description="Reset a user's password, or require a change at next logon")
        def set_password(
            username: Annotated[str, Field(description="Username (sAMAccountName)")],
            password: Annotated[Optional[str], Field(description="New password (omit when forcing a change)", default=None)] = None,
            change_password_at_logon: Annotated[bool, Field(description="Require a password change at next logon", default=False)] = False
        ):
            return self.run_runbook(Command.SET_PASSWORD, username=username, password=password,
                                    changePasswordAtLogon=change_password_at_logon)

        @self.mcp.tool(description="Unlock a locked-out user account")
        def unlock_user(
            username: Annotated[str, Field(description="Username (sAMAccountName) to unlock")]
        ):
            return self.run_runbook(Command.UNLOCK_USER, username=username)

        @self.mcp.tool(description="Start an Azure AD Connect sync cycle on the sync server")
        def sync_directory():
            return self.run_runbook(Command.SYNC_DIRECTORY)

    def start(self) -> None:
        """
        Start the MCP server on stdio.

        Runs until terminated by a signal or fatal error.
        """
        import anyio

        def signal_handler(signum, frame):
            self.logger.info("Received signal to shutdown...")
            sys.exit(0)

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

        try:
            self.logger.info("Starting Active Directory runbook MCP server...")
            anyio.run(self.mcp.run_stdio_async)
        except Exception as e:
            self.logger.error(f"Server error: {e}")
            sys.exit(1)


def main():
    """Main entry point for the server."""
    config_path = os.getenv(CONFIG_ENV_VAR)
    if not config_path:
        print(f"{CONFIG_ENV_VAR} environment variable must be set", file=sys.stderr)
        sys.exit(1)

    try:
        server = ActiveDirectoryRunbookServer(config_path)
        server.start()
    except KeyboardInterrupt:
        print("\nShutting down gracefully...", file=sys.stderr)
        sys.exit(0)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
