"""Base classes for Active Directory runbooks."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, ClassVar, Dict, Mapping, Optional, Tuple, Type

import pydantic
from pydantic import BaseModel, ConfigDict, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel
from ldap3.utils.dn import escape_rdn

from ..config.store import ExecutionContext
from ..core.directory import DirectoryClient
from ..core.logging import get_logger
from ..core.remote_shell import RemoteShell
from ..errors import NotFoundError, ValidationError

# userAccountControl flags
ACCOUNTDISABLE = 0x0002
NORMAL_ACCOUNT = 0x0200
DONT_EXPIRE_PASSWORD = 0x10000


class Command(str, Enum):
    """Runbook commands."""

    CREATE_USER = "CreateUser"
    REMOVE_USER = "RemoveUser"
    CREATE_GROUP = "CreateGroup"
    REMOVE_GROUP = "RemoveGroup"
    ADD_GROUP_MEMBER = "AddGroupMember"
    REMOVE_GROUP_MEMBER = "RemoveGroupMember"
    SET_PASSWORD = "SetPassword"
    UNLOCK_USER = "UnlockUser"
    SYNC_DIRECTORY = "SyncDirectory"

    @classmethod
    def parse(cls, name: Any) -> "Command":
        """Accept a Command, its value, or a kebab/snake-case spelling of it."""
        if isinstance(name, cls):
            return name
        normalized = str(name).replace("-", "").replace("_", "").lower()
        for command in cls:
            if command.value.lower() == normalized:
                return command
        raise ValidationError(f"Unknown command '{name}'")


class RunbookArguments(BaseModel):
    """
    Immutable, validated arguments for one invocation.

    Fields are snake_case in Python and camelCase on the wire
    (``group_name`` <-> ``groupName``). Required string fields must be
    non-blank; unknown arguments are rejected.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra='forbid',
    )

    @field_validator('*')
    @classmethod
    def validate_required_not_blank(cls, v, info: ValidationInfo):
        """Reject empty strings in required fields."""
        field = cls.model_fields.get(info.field_name)
        if field is not None and field.is_required() and isinstance(v, str) and not v.strip():
            raise ValueError('Value must not be empty')
        return v

    def echo(self) -> Dict[str, Any]:
        """Arguments safe to log (fields excluded from repr are masked)."""
        echoed = {}
        for name, field in type(self).model_fields.items():
            value = getattr(self, name)
            if not field.repr and value is not None:
                value = "***"
            echoed[field.alias or name] = value
        return echoed


class BaseRunbook(ABC):
    """Base class for all runbooks."""

    command: ClassVar[Command]
    arguments: ClassVar[Type[RunbookArguments]]
    output_fields: ClassVar[Tuple[str, ...]]
    needs_directory: ClassVar[bool] = True
    needs_sync_server: ClassVar[bool] = False

    def __init__(self,
                 context: ExecutionContext,
                 directory: Optional[DirectoryClient] = None,
                 shell: Optional[RemoteShell] = None):
        """
        Initialize runbook.

        Args:
            context: Resolved execution context
            directory: Directory client (directory runbooks)
            shell: Remote shell (sync runbook)
        """
        self.context = context
        self.directory = directory
        self.shell = shell
        self.logger = get_logger(self.__class__.__name__)

    @classmethod
    def parse_arguments(cls, args: Optional[Mapping[str, Any]]) -> RunbookArguments:
        """
        Validate raw invocation arguments.

        Raises:
            ValidationError: If any argument is missing, empty or out of range
        """
        try:
            return cls.arguments.model_validate(dict(args or {}))
        except pydantic.ValidationError as e:
            problems = []
            for error in e.errors():
                location = ".".join(str(part) for part in error['loc']) or "arguments"
                problems.append(f"{location}: {error['msg']}")
            raise ValidationError(f"Invalid arguments for {cls.command.value}: " + "; ".join(problems)) from e

    @abstractmethod
    def run(self, args: RunbookArguments) -> Dict[str, Any]:
        """
        Perform the single remote operation.

        Returns:
            Output projection for this command
        """

    def _project(self, **values: Any) -> Dict[str, Any]:
        """Build the output object in declared field order."""
        missing = set(self.output_fields) - set(values)
        extra = set(values) - set(self.output_fields)
        if missing or extra:
            raise ValueError(f"{self.command.value} projection mismatch: missing={missing}, extra={extra}")
        return {name: values[name] for name in self.output_fields}

    def _require_user(self, username: str) -> Dict[str, Any]:
        principal_name = self.context.principal_name(username)
        self.logger.info(f"Looking up user: {principal_name}")
        entry = self.directory.find_user_by_principal_name(principal_name)
        if entry is None:
            raise NotFoundError(f"User '{principal_name}' not found")
        return entry

    def _require_group(self, group_name: str) -> Dict[str, Any]:
        self.logger.info(f"Looking up group: {group_name}")
        entry = self.directory.find_group_by_name(group_name)
        if entry is None:
            raise NotFoundError(f"Group '{group_name}' not found")
        return entry

    def _build_dn(self, name: str, path: str) -> str:
        """
        Build Distinguished Name from name and container path.

        Args:
            name: Object name (CN)
            path: Container DN (OU or CN)

        Returns:
            Complete DN
        """
        return f"CN={escape_rdn(name)},{path}"


def attribute(entry: Dict[str, Any], name: str, default: Any = None) -> Any:
    """Case-insensitive single-value attribute lookup on a search entry."""
    attributes = entry.get('attributes', {})
    for key, value in attributes.items():
        if key.lower() == name.lower():
            if isinstance(value, (list, tuple)):
                return value[0] if value else default
            return default if value is None else value
    return default


def int_attribute(entry: Dict[str, Any], name: str, default: int = 0) -> int:
    value = attribute(entry, name, default)
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def is_enabled(user_account_control: int) -> bool:
    """Check if account is enabled based on userAccountControl."""
    return not bool(user_account_control & ACCOUNTDISABLE)
