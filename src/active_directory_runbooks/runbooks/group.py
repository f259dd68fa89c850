"""Group runbooks for Active Directory."""

from abc import abstractmethod
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import field_validator

from .base import BaseRunbook, Command, RunbookArguments, attribute
from ..core.logging import log_directory_operation

ADS_GROUP_TYPE_GLOBAL_GROUP = 0x00000002
ADS_GROUP_TYPE_DOMAIN_LOCAL_GROUP = 0x00000004
ADS_GROUP_TYPE_UNIVERSAL_GROUP = 0x00000008
ADS_GROUP_TYPE_SECURITY_ENABLED = 0x80000000


class GroupScope(str, Enum):
    UNIVERSAL = "Universal"
    GLOBAL = "Global"
    DOMAIN_LOCAL = "DomainLocal"


SCOPE_FLAGS = {
    GroupScope.GLOBAL: ADS_GROUP_TYPE_GLOBAL_GROUP,
    GroupScope.DOMAIN_LOCAL: ADS_GROUP_TYPE_DOMAIN_LOCAL_GROUP,
    GroupScope.UNIVERSAL: ADS_GROUP_TYPE_UNIVERSAL_GROUP,
}


def calculate_group_type(scope: GroupScope) -> int:
    """groupType for a security group of the given scope, as AD's signed 32-bit integer."""
    value = SCOPE_FLAGS[scope] | ADS_GROUP_TYPE_SECURITY_ENABLED
    if value >= 2 ** 31:
        value -= 2 ** 32
    return value


class CreateGroupArguments(RunbookArguments):
    group_name: str
    path: str
    group_scope: GroupScope
    display_name: Optional[str] = None
    description: Optional[str] = None

    @field_validator('group_scope', mode='before')
    @classmethod
    def normalize_scope(cls, v):
        """Match scope names case-insensitively."""
        if isinstance(v, str):
            for scope in GroupScope:
                if scope.value.lower() == v.strip().lower():
                    return scope
        return v


class GroupNameArguments(RunbookArguments):
    group_name: str


class GroupMemberArguments(RunbookArguments):
    username: str
    group_name: str


class CreateGroupRunbook(BaseRunbook):
    """Create a security group in the given container."""

    command = Command.CREATE_GROUP
    arguments = CreateGroupArguments
    output_fields = ("Name", "Description", "DistinguishedName")

    def run(self, args: CreateGroupArguments) -> Dict[str, Any]:
        group_dn = self._build_dn(args.group_name, args.path)

        group_attributes = {
            'objectClass': ['top', 'group'],
            'cn': args.group_name,
            'sAMAccountName': args.group_name,
            'groupType': calculate_group_type(args.group_scope),
        }
        if args.display_name:
            group_attributes['displayName'] = args.display_name
        if args.description:
            group_attributes['description'] = args.description

        self.logger.info(f"Creating group: {args.group_name} ({group_dn}, {args.group_scope.value})")

        # No existence check; the directory rejects duplicates
        self.directory.add(group_dn, group_attributes)
        log_directory_operation("create_group", group_dn, True, f"Created group: {args.group_name}")

        return self._project(
            Name=args.group_name,
            Description=args.description or "",
            DistinguishedName=group_dn,
        )


class RemoveGroupRunbook(BaseRunbook):
    """Delete a group."""

    command = Command.REMOVE_GROUP
    arguments = GroupNameArguments
    output_fields = ("Name", "DistinguishedName", "ObjectClass")

    def run(self, args: GroupNameArguments) -> Dict[str, Any]:
        group = self._require_group(args.group_name)
        group_dn = group['dn']

        self.logger.info(f"Deleting group: {args.group_name} ({group_dn})")
        self.directory.delete(group_dn)
        log_directory_operation("remove_group", group_dn, True, f"Deleted group: {args.group_name}")

        object_class = group.get('attributes', {}).get('objectClass') or ['group']
        if isinstance(object_class, (list, tuple)):
            object_class = object_class[-1]

        return self._project(
            Name=attribute(group, 'name', args.group_name),
            DistinguishedName=group_dn,
            ObjectClass=object_class,
        )


class _GroupMembershipRunbook(BaseRunbook):
    arguments = GroupMemberArguments
    output_fields = (
        "GroupName", "GroupDistinguishedName",
        "MemberUserPrincipalName", "MemberDistinguishedName",
    )
    operation = ""

    @abstractmethod
    def _apply(self, group_dn: str, member_dn: str) -> None:
        """Send the single membership modify."""

    def run(self, args: GroupMemberArguments) -> Dict[str, Any]:
        # User first: an unknown user stops the run before the group is touched
        user = self._require_user(args.username)
        group = self._require_group(args.group_name)

        self._apply(group['dn'], user['dn'])

        principal_name = attribute(user, 'userPrincipalName', self.context.principal_name(args.username))
        log_directory_operation(self.operation, group['dn'], True, f"{principal_name} ({user['dn']})")

        return self._project(
            GroupName=attribute(group, 'sAMAccountName', args.group_name),
            GroupDistinguishedName=group['dn'],
            MemberUserPrincipalName=principal_name,
            MemberDistinguishedName=user['dn'],
        )


class AddGroupMemberRunbook(_GroupMembershipRunbook):
    """Add a user to a group."""

    command = Command.ADD_GROUP_MEMBER
    operation = "add_group_member"

    def _apply(self, group_dn: str, member_dn: str) -> None:
        self.logger.info(f"Adding member {member_dn} to group {group_dn}")
        self.directory.add_group_member(group_dn, member_dn)


class RemoveGroupMemberRunbook(_GroupMembershipRunbook):
    """Remove a user from a group."""

    command = Command.REMOVE_GROUP_MEMBER
    operation = "remove_group_member"

    def _apply(self, group_dn: str, member_dn: str) -> None:
        self.logger.info(f"Removing member {member_dn} from group {group_dn}")
        self.directory.remove_group_member(group_dn, member_dn)
