"""Remote PowerShell execution over WinRM."""

import logging
from typing import Optional
from xml.etree import ElementTree

import requests
import winrm
from winrm.exceptions import WinRMError, WinRMTransportError

from ..config.models import SyncConfig
from ..errors import RemoteOperationError

logger = logging.getLogger(__name__)

CLIXML_HEADER = "#< CLIXML"


class RemoteShell:
    """
    Runs PowerShell on a single remote host.

    A command succeeds only when it exits with status 0 and writes nothing
    to the error stream.
    """

    def __init__(self, host: str, identity: str, secret: str, sync_config: Optional[SyncConfig] = None):
        self.host = host
        self.identity = identity
        self._secret = secret
        self.sync_config = sync_config or SyncConfig()
        self._session: Optional[winrm.Session] = None

    @property
    def endpoint(self) -> str:
        scheme = "https" if self.sync_config.use_ssl else "http"
        return f"{scheme}://{self.host}:{self.sync_config.endpoint_port}/wsman"

    def _get_session(self) -> winrm.Session:
        if self._session is None:
            self._session = winrm.Session(
                self.endpoint,
                auth=(self.identity, self._secret),
                transport=self.sync_config.transport,
                server_cert_validation='validate' if self.sync_config.validate_certificate else 'ignore'
            )
        return self._session

    def run_ps(self, script: str) -> str:
        """
        Run a PowerShell script on the host.

        Args:
            script: PowerShell source

        Returns:
            Decoded standard output

        Raises:
            RemoteOperationError: On transport failure, non-zero exit or error stream content
        """
        logger.debug(f"Running PowerShell on {self.endpoint}")

        try:
            response = self._get_session().run_ps(script)
        except (WinRMError, WinRMTransportError, requests.exceptions.RequestException) as e:
            raise RemoteOperationError(f"Remote execution on {self.host} failed: {e}", step="execute") from e

        std_out = _decode(response.std_out)
        std_err = _error_records(_decode(response.std_err))

        if std_err:
            raise RemoteOperationError(f"Remote execution on {self.host} reported errors: {std_err}", step="execute")
        if response.status_code != 0:
            raise RemoteOperationError(
                f"Remote execution on {self.host} exited with status {response.status_code}", step="execute"
            )

        return std_out

    def close(self) -> None:
        self._session = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def _decode(stream) -> str:
    if not stream:
        return ""
    if isinstance(stream, bytes):
        return stream.decode('utf-8', errors='replace').strip()
    return str(stream).strip()


def _error_records(std_err: str) -> str:
    """
    Reduce a CLIXML error stream to its error records.

    pywinrm converts CLIXML holding error records to plain text but passes
    through a block of progress or information records unchanged. Such a
    block carries no errors and yields an empty string.
    """
    if not std_err.startswith(CLIXML_HEADER):
        return std_err

    try:
        root = ElementTree.fromstring(std_err[len(CLIXML_HEADER):].strip())
    except ElementTree.ParseError:
        return std_err

    errors = []
    for node in root.iter():
        if node.tag.rsplit('}', 1)[-1] == 'S' and node.get('S') == 'Error':
            errors.append((node.text or "").replace("_x000D__x000A_", "\n").strip())
    return "\n".join(error for error in errors if error)
