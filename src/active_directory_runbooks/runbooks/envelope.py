"""
Runbook envelope.

Every invocation goes through ``execute``: validate arguments, resolve the
execution context, open the one connection the runbook needs, run the
single remote operation, and return the projected result with its
duration. Failures are logged with the step that raised them and then
propagate; nothing partial is returned.
"""

import json
import time
from contextlib import ExitStack
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional, Type, Union

from .base import BaseRunbook, Command
from .group import (
    AddGroupMemberRunbook,
    CreateGroupRunbook,
    RemoveGroupMemberRunbook,
    RemoveGroupRunbook,
)
from .sync import SyncDirectoryRunbook
from .user import (
    CreateUserRunbook,
    RemoveUserRunbook,
    SetPasswordRunbook,
    UnlockUserRunbook,
)
from ..config.models import Config
from ..config.store import ConfigurationStore, ExecutionContext, JsonConfigurationStore, resolve_context
from ..core.directory import DirectoryClient
from ..core.logging import get_logger, log_directory_operation
from ..core.remote_shell import RemoteShell
from ..errors import ConfigurationError, RunbookError

logger = get_logger("envelope")

RUNBOOKS: Dict[Command, Type[BaseRunbook]] = {
    runbook.command: runbook
    for runbook in (
        CreateUserRunbook,
        RemoveUserRunbook,
        CreateGroupRunbook,
        RemoveGroupRunbook,
        AddGroupMemberRunbook,
        RemoveGroupMemberRunbook,
        SetPasswordRunbook,
        UnlockUserRunbook,
        SyncDirectoryRunbook,
    )
}


@dataclass
class InvocationContext:
    """Timing and echoed inputs for one invocation; discarded when it ends."""

    command: Command
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    _start: float = field(default_factory=time.perf_counter, repr=False)
    arguments: Dict[str, Any] = field(default_factory=dict)

    def elapsed(self) -> float:
        return time.perf_counter() - self._start


@dataclass(frozen=True)
class OperationResult:
    """Projected output of one successful invocation."""

    command: Command
    output: Dict[str, Any]
    duration_seconds: float

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.output, indent=indent, ensure_ascii=False)


def get_runbook(command: Union[Command, str]) -> Type[BaseRunbook]:
    return RUNBOOKS[Command.parse(command)]


DirectoryFactory = Callable[[ExecutionContext, Config], DirectoryClient]
ShellFactory = Callable[[ExecutionContext, Config], RemoteShell]


def default_directory_factory(context: ExecutionContext, config: Config) -> DirectoryClient:
    return DirectoryClient(
        context.domain_controller,
        context.credential.identity,
        context.credential.secret,
        context.base_dn,
        connection_config=config.connection,
        security_config=config.security,
    )


def default_shell_factory(context: ExecutionContext, config: Config) -> RemoteShell:
    return RemoteShell(
        context.sync_server_name,
        context.credential.identity,
        context.credential.secret,
        sync_config=config.sync,
    )


def execute(command: Union[Command, str],
            args: Optional[Mapping[str, Any]],
            store: Optional[ConfigurationStore] = None,
            config: Optional[Config] = None,
            directory_factory: DirectoryFactory = default_directory_factory,
            shell_factory: ShellFactory = default_shell_factory) -> OperationResult:
    """
    Run one runbook command.

    Args:
        command: Command or command name (``CreateUser``, ``create-user``, ...)
        args: Raw named arguments for the command
        store: Source of DomainName, DomainController, SyncServerName and DomainCredentials.
               Defaults to a store over ``config``.
        config: Connection, security and sync settings
        directory_factory: Builds the directory client for directory runbooks
        shell_factory: Builds the remote shell for the sync runbook

    Returns:
        OperationResult with the command's fixed output projection

    Raises:
        ValidationError: Bad or missing arguments; no remote call was made
        ConfigurationError: Missing configuration or credential
        NotFoundError: Target user or group does not exist
        RemoteOperationError: The directory or sync server call failed
    """
    parsed_command = Command.parse(command)
    invocation = InvocationContext(parsed_command)
    runbook_class = RUNBOOKS[parsed_command]

    try:
        arguments = runbook_class.parse_arguments(args)
        invocation.arguments = arguments.echo()
        logger.info(f"{parsed_command.value} started at {invocation.started_at.isoformat()} with {invocation.arguments}")

        if store is None:
            if config is None:
                raise ConfigurationError("No configuration store available")
            store = JsonConfigurationStore(config)
        config = config or Config()

        context = resolve_context(
            store,
            needs_directory=runbook_class.needs_directory,
            needs_sync_server=runbook_class.needs_sync_server,
        )

        with ExitStack() as stack:
            directory = None
            shell = None
            if runbook_class.needs_directory:
                directory = stack.enter_context(directory_factory(context, config))
            if runbook_class.needs_sync_server:
                shell = stack.enter_context(shell_factory(context, config))

            output = runbook_class(context, directory=directory, shell=shell).run(arguments)

    except RunbookError as e:
        duration = invocation.elapsed()
        logger.error(f"{parsed_command.value} started at {invocation.started_at.isoformat()} "
                     f"failed at step '{e.step}' after {duration:.3f}s: {e}")
        log_directory_operation(parsed_command.value, str(invocation.arguments), False, f"[{e.step}] {e}")
        raise
    except Exception:
        logger.exception(f"{parsed_command.value} failed unexpectedly after {invocation.elapsed():.3f}s")
        raise

    duration = invocation.elapsed()
    logger.info(f"{parsed_command.value} completed in {duration:.3f}s")

    return OperationResult(command=parsed_command, output=output, duration_seconds=duration)
