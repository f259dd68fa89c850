"""Azure AD Connect synchronization runbook."""

from typing import Any, Dict

from .base import BaseRunbook, Command, RunbookArguments
from ..core.logging import log_directory_operation

SYNC_SCRIPT = (
    "$ProgressPreference = 'SilentlyContinue'\n"
    "Import-Module ADSync\n"
    "$result = Start-ADSyncSyncCycle -PolicyType {policy_type}\n"
    "$result.Result"
)


class SyncDirectoryArguments(RunbookArguments):
    pass


class SyncDirectoryRunbook(BaseRunbook):
    """Trigger a sync cycle on the Azure AD Connect server."""

    command = Command.SYNC_DIRECTORY
    arguments = SyncDirectoryArguments
    output_fields = ("ServerName", "PolicyType", "Result")
    needs_directory = False
    needs_sync_server = True

    def run(self, args: SyncDirectoryArguments) -> Dict[str, Any]:
        server_name = self.context.sync_server_name
        policy_type = self.shell.sync_config.policy_type

        self.logger.info(f"Starting {policy_type} sync cycle on {server_name}")

        output = self.shell.run_ps(SYNC_SCRIPT.format(policy_type=policy_type))
        log_directory_operation("sync_directory", server_name, True, f"{policy_type} sync cycle started")

        return self._project(
            ServerName=server_name,
            PolicyType=policy_type,
            Result=output or "Success",
        )
