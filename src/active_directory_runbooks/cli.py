"""
Command line entry point for the Active Directory runbooks.

Each command runs one runbook and prints its result as a single JSON
object on stdout. On failure the error goes to stderr and the exit code
identifies the category (2 validation, 3 configuration, 4 not found,
5 remote operation).
"""

from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import typer

from .config.loader import CONFIG_ENV_VAR
from .config.models import Config, LoggingConfig
from .config.store import ConfigurationStore, EnvironmentConfigurationStore, JsonConfigurationStore
from .core.logging import setup_logging
from .errors import ConfigurationError, RunbookError, ValidationError
from .runbooks import Command, execute

app = typer.Typer(add_completion=False, help="Active Directory runbooks")


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", envvar=CONFIG_ENV_VAR,
        help="JSON configuration file; without it values come from AD_RUNBOOKS_* environment variables",
    ),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Override the configured log level"),
):
    """Run a single Active Directory operation."""
    ctx.obj = {"config_path": config, "log_level": log_level}


def _load(settings: Dict[str, Any]) -> Tuple[Config, ConfigurationStore]:
    config_path = settings.get("config_path")
    if config_path is None:
        return Config(), EnvironmentConfigurationStore()
    try:
        store = JsonConfigurationStore.from_file(str(config_path))
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"Could not load configuration: {e}") from e
    return store.config, store


def _logging_config(config: Config, log_level: Optional[str]) -> LoggingConfig:
    if not log_level:
        return config.logging
    try:
        return LoggingConfig(**{**config.logging.model_dump(), "level": log_level})
    except ValueError as e:
        raise ValidationError(f"Invalid --log-level '{log_level}'") from e


def _run(ctx: typer.Context, command: Command, **arguments: Any) -> None:
    settings = ctx.obj or {}
    args = {name: value for name, value in arguments.items() if value is not None}

    try:
        config, store = _load(settings)
        setup_logging(_logging_config(config, settings.get("log_level")))

        result = execute(command, args, store=store, config=config)
    except RunbookError as e:
        typer.echo(f"Error [{e.step}]: {e}", err=True)
        raise typer.Exit(code=e.exit_code)

    typer.echo(result.to_json())


@app.command("create-user")
def create_user(
    ctx: typer.Context,
    username: Optional[str] = typer.Option(None, "--username", help="sAMAccountName (required)"),
    password: Optional[str] = typer.Option(None, "--password", help="Initial password (required)"),
    firstname: Optional[str] = typer.Option(None, "--firstname", help="Given name (required)"),
    lastname: Optional[str] = typer.Option(None, "--lastname", help="Surname (required)"),
    path: Optional[str] = typer.Option(None, "--path", help="Container DN, e.g. OU=Users,DC=corp,DC=local (required)"),
    display_name: Optional[str] = typer.Option(None, "--display-name", help="Display name (default: first and last name)"),
    description: Optional[str] = typer.Option(None, "--description", help="Description"),
):
    """Create an enabled user account (New-ADUser)."""
    _run(ctx, Command.CREATE_USER, username=username, password=password, firstname=firstname,
         lastname=lastname, path=path, displayName=display_name, description=description)


@app.command("remove-user")
def remove_user(
    ctx: typer.Context,
    username: Optional[str] = typer.Option(None, "--username", help="sAMAccountName (required)"),
):
    """Delete a user account (Remove-ADUser)."""
    _run(ctx, Command.REMOVE_USER, username=username)


@app.command("create-group")
def create_group(
    ctx: typer.Context,
    group_name: Optional[str] = typer.Option(None, "--group-name", help="Group name (required)"),
    path: Optional[str] = typer.Option(None, "--path", help="Container DN (required)"),
    group_scope: Optional[str] = typer.Option(None, "--group-scope", help="Universal, Global or DomainLocal (required)"),
    display_name: Optional[str] = typer.Option(None, "--display-name", help="Display name"),
    description: Optional[str] = typer.Option(None, "--description", help="Description"),
):
    """Create a security group (New-ADGroup)."""
    _run(ctx, Command.CREATE_GROUP, groupName=group_name, path=path, groupScope=group_scope,
         displayName=display_name, description=description)


@app.command("remove-group")
def remove_group(
    ctx: typer.Context,
    group_name: Optional[str] = typer.Option(None, "--group-name", help="Group name (required)"),
):
    """Delete a group (Remove-ADGroup)."""
    _run(ctx, Command.REMOVE_GROUP, groupName=group_name)


@app.command("add-group-member")
def add_group_member(
    ctx: typer.Context,
    username: Optional[str] = typer.Option(None, "--username", help="sAMAccountName of the member (required)"),
    group_name: Optional[str] = typer.Option(None, "--group-name", help="Group name (required)"),
):
    """Add a user to a group (Add-ADGroupMember)."""
    _run(ctx, Command.ADD_GROUP_MEMBER, username=username, groupName=group_name)


@app.command("remove-group-member")
def remove_group_member(
    ctx: typer.Context,
    username: Optional[str] = typer.Option(None, "--username", help="sAMAccountName of the member (required)"),
    group_name: Optional[str] = typer.Option(None, "--group-name", help="Group name (required)"),
):
    """Remove a user from a group (Remove-ADGroupMember)."""
    _run(ctx, Command.REMOVE_GROUP_MEMBER, username=username, groupName=group_name)


@app.command("set-password")
def set_password(
    ctx: typer.Context,
    username: Optional[str] = typer.Option(None, "--username", help="sAMAccountName (required)"),
    password: Optional[str] = typer.Option(None, "--password", help="New password (required unless forcing a change)"),
    change_password_at_logon: bool = typer.Option(
        False, "--change-password-at-logon", help="Require a password change at next logon instead of resetting"
    ),
):
    """Reset a password or force a change at next logon (Set-ADAccountPassword / Set-ADUser)."""
    _run(ctx, Command.SET_PASSWORD, username=username, password=password,
         changePasswordAtLogon=change_password_at_logon)


@app.command("unlock-user")
def unlock_user(
    ctx: typer.Context,
    username: Optional[str] = typer.Option(None, "--username", help="sAMAccountName (required)"),
):
    """Unlock a locked-out account (Unlock-ADAccount)."""
    _run(ctx, Command.UNLOCK_USER, username=username)


@app.command("sync-directory")
def sync_directory(ctx: typer.Context):
    """Start an Azure AD Connect sync cycle on the configured sync server."""
    _run(ctx, Command.SYNC_DIRECTORY)


if __name__ == "__main__":
    app()
