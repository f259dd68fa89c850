"""Tests for the sync runbook and remote shell."""

import pytest
from unittest.mock import Mock, patch

import requests
import winrm
from winrm import Response
from winrm.exceptions import WinRMTransportError

from active_directory_runbooks.config.models import SyncConfig
from active_directory_runbooks.core.remote_shell import RemoteShell
from active_directory_runbooks.errors import RemoteOperationError, ValidationError
from active_directory_runbooks.runbooks.sync import SYNC_SCRIPT, SyncDirectoryRunbook

PROGRESS_CLIXML = (
    b"#< CLIXML\r\n"
    b'<Objs Version="1.1.0.1" xmlns="http://schemas.microsoft.com/powershell/2004/04">'
    b'<Obj S="progress" RefId="0"><TN RefId="0"><T>System.Management.Automation.PSCustomObject</T>'
    b'<T>System.Object</T></TN><MS><I64 N="SourceId">1</I64><PR N="Record">'
    b'<AV>Preparing modules for first use.</AV><AI>0</AI><Nil /><PI>-1</PI><PC>-1</PC>'
    b'<T>Completed</T><SR>-1</SR><SD> </SD></PR></MS></Obj></Objs>'
)

ERROR_CLIXML = (
    b"#< CLIXML\r\n"
    b'<Objs Version="1.1.0.1" xmlns="http://schemas.microsoft.com/powershell/2004/04">'
    b'<S S="Error">Start-ADSyncSyncCycle : Sync is already running_x000D__x000A_</S></Objs>'
)


def make_response(std_out=b"", std_err=b"", status_code=0):
    response = Mock()
    response.std_out = std_out
    response.std_err = std_err
    response.status_code = status_code
    return response


class TestRemoteShell:
    """Test remote PowerShell execution."""

    def test_endpoint(self):
        """HTTPS on 5986 by default, HTTP on 5985 without SSL."""
        assert RemoteShell("aadc01", "svc", "pw").endpoint == "https://aadc01:5986/wsman"
        shell = RemoteShell("aadc01", "svc", "pw", SyncConfig(use_ssl=False))
        assert shell.endpoint == "http://aadc01:5985/wsman"

    @patch('active_directory_runbooks.core.remote_shell.winrm.Session')
    def test_session_settings(self, mock_session):
        """Session uses the configured transport and certificate policy."""
        mock_session.return_value.run_ps.return_value = make_response(b"Success")
        shell = RemoteShell("aadc01", "TEST\\svc", "pw", SyncConfig(validate_certificate=False))

        shell.run_ps("Get-Date")

        args, kwargs = mock_session.call_args
        assert args[0] == "https://aadc01:5986/wsman"
        assert kwargs['auth'] == ("TEST\\svc", "pw")
        assert kwargs['transport'] == "ntlm"
        assert kwargs['server_cert_validation'] == "ignore"

    @patch('active_directory_runbooks.core.remote_shell.winrm.Session')
    def test_run_ps_success(self, mock_session):
        """Standard output is decoded and stripped."""
        mock_session.return_value.run_ps.return_value = make_response(b"Success\r\n")

        with RemoteShell("aadc01", "svc", "pw") as shell:
            assert shell.run_ps("Get-Date") == "Success"

    @patch('active_directory_runbooks.core.remote_shell.winrm.Session')
    def test_run_ps_error_stream(self, mock_session):
        """Anything on the error stream is a failure, even with exit status 0."""
        mock_session.return_value.run_ps.return_value = make_response(
            b"", b"Start-ADSyncSyncCycle : Sync is already running")

        with pytest.raises(RemoteOperationError, match="already running") as exc_info:
            RemoteShell("aadc01", "svc", "pw").run_ps("Start-ADSyncSyncCycle")
        assert exc_info.value.step == "execute"

    @patch('active_directory_runbooks.core.remote_shell.winrm.Session')
    def test_run_ps_nonzero_status(self, mock_session):
        """A non-zero exit status is a failure."""
        mock_session.return_value.run_ps.return_value = make_response(b"", b"", 1)

        with pytest.raises(RemoteOperationError, match="status 1"):
            RemoteShell("aadc01", "svc", "pw").run_ps("exit 1")

    @pytest.mark.parametrize("error", [
        WinRMTransportError("http", 401, "Unauthorized"),
        requests.exceptions.ConnectionError("connection refused"),
    ])
    @patch('active_directory_runbooks.core.remote_shell.winrm.Session')
    def test_run_ps_transport_failure(self, mock_session, error):
        """Transport and authentication failures are wrapped."""
        mock_session.return_value.run_ps.side_effect = error

        with pytest.raises(RemoteOperationError, match="aadc01"):
            RemoteShell("aadc01", "svc", "pw").run_ps("Get-Date")

    def test_progress_records_are_not_errors(self):
        """A CLIXML stream holding only progress records does not fail the command."""
        script = SYNC_SCRIPT.format(policy_type="Delta")

        with patch.object(winrm.Session, 'run_cmd',
                          return_value=Response((b"Success\r\n", PROGRESS_CLIXML, 0))) as mock_run_cmd:
            assert RemoteShell("aadc01", "svc", "pw").run_ps(script) == "Success"

        mock_run_cmd.assert_called_once()

    def test_clixml_error_records_fail(self):
        """Error records in CLIXML are reported as plain text."""
        with patch.object(winrm.Session, 'run_cmd', return_value=Response((b"", ERROR_CLIXML, 0))):
            with pytest.raises(RemoteOperationError, match="Sync is already running") as exc_info:
                RemoteShell("aadc01", "svc", "pw").run_ps("Start-ADSyncSyncCycle -PolicyType Delta")

        assert "CLIXML" not in str(exc_info.value)

    @patch('active_directory_runbooks.core.remote_shell.winrm.Session')
    def test_unparseable_clixml_is_an_error(self, mock_session):
        mock_session.return_value.run_ps.return_value = make_response(b"", b"#< CLIXML\r\n<Objs")

        with pytest.raises(RemoteOperationError, match="CLIXML"):
            RemoteShell("aadc01", "svc", "pw").run_ps("Get-Date")


class TestSyncDirectory:
    """Test SyncDirectory."""

    def test_sync_delta(self, context):
        """A delta sync cycle is started and its result reported."""
        shell = Mock()
        shell.sync_config = SyncConfig()
        shell.run_ps.return_value = "Success"

        runbook = SyncDirectoryRunbook(context, shell=shell)
        result = runbook.run(SyncDirectoryRunbook.parse_arguments({}))

        script = shell.run_ps.call_args.args[0]
        assert script.startswith("$ProgressPreference = 'SilentlyContinue'")
        assert "Import-Module ADSync" in script
        assert "Start-ADSyncSyncCycle -PolicyType Delta" in script
        assert result == {
            "ServerName": "aadc01.test.local",
            "PolicyType": "Delta",
            "Result": "Success",
        }

    def test_sync_initial(self, context):
        """The configured policy type is passed through."""
        shell = Mock()
        shell.sync_config = SyncConfig(policy_type="Initial")
        shell.run_ps.return_value = ""

        result = SyncDirectoryRunbook(context, shell=shell).run(SyncDirectoryRunbook.parse_arguments(None))

        assert "-PolicyType Initial" in shell.run_ps.call_args.args[0]
        assert result["PolicyType"] == "Initial"
        assert result["Result"] == "Success"

    def test_sync_failure(self, context):
        """Remote failures propagate unchanged."""
        shell = Mock()
        shell.sync_config = SyncConfig()
        shell.run_ps.side_effect = RemoteOperationError("Sync is already running", step="execute")

        with pytest.raises(RemoteOperationError, match="already running"):
            SyncDirectoryRunbook(context, shell=shell).run(SyncDirectoryRunbook.parse_arguments({}))

    def test_sync_takes_no_arguments(self):
        """Unexpected arguments are rejected."""
        with pytest.raises(ValidationError):
            SyncDirectoryRunbook.parse_arguments({"policyType": "Initial"})

    def test_sync_needs_no_directory(self):
        assert SyncDirectoryRunbook.needs_directory is False
        assert SyncDirectoryRunbook.needs_sync_server is True
