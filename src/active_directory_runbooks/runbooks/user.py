"""User runbooks for Active Directory."""

from typing import Any, Dict, Optional

from ldap3 import MODIFY_REPLACE
from pydantic import Field, model_validator

from .base import (
    BaseRunbook,
    Command,
    DONT_EXPIRE_PASSWORD,
    NORMAL_ACCOUNT,
    RunbookArguments,
    attribute,
    int_attribute,
    is_enabled,
)
from ..core.logging import log_directory_operation


class CreateUserArguments(RunbookArguments):
    username: str
    password: str = Field(..., repr=False)
    firstname: str
    lastname: str
    path: str
    display_name: Optional[str] = None
    description: Optional[str] = None


class UsernameArguments(RunbookArguments):
    username: str


class SetPasswordArguments(RunbookArguments):
    username: str
    password: Optional[str] = Field(default=None, repr=False)
    change_password_at_logon: bool = False

    @model_validator(mode='after')
    def validate_password_path(self):
        """A reset takes a password; forcing change at logon takes none."""
        if self.change_password_at_logon:
            if self.password:
                raise ValueError('password and changePasswordAtLogon are mutually exclusive')
        elif not self.password or not self.password.strip():
            raise ValueError('password is required unless changePasswordAtLogon is set')
        return self


class CreateUserRunbook(BaseRunbook):
    """Create an enabled user account in the given container."""

    command = Command.CREATE_USER
    arguments = CreateUserArguments
    output_fields = ("Name", "SamAccountName", "UserPrincipalName", "DistinguishedName", "Enabled")

    def run(self, args: CreateUserArguments) -> Dict[str, Any]:
        name = args.display_name or f"{args.firstname} {args.lastname}"
        principal_name = self.context.principal_name(args.username)
        user_dn = self._build_dn(name, args.path)

        user_attributes = {
            'objectClass': ['top', 'person', 'organizationalPerson', 'user'],
            'cn': name,
            'sAMAccountName': args.username,
            'userPrincipalName': principal_name,
            'givenName': args.firstname,
            'sn': args.lastname,
            'displayName': name,
            # AD only accepts a quoted UTF-16-LE password, and only over an encrypted connection
            'unicodePwd': f'"{args.password}"'.encode('utf-16-le'),
            'userAccountControl': NORMAL_ACCOUNT,
        }
        if args.description:
            user_attributes['description'] = args.description

        self.logger.info(f"Creating user: {args.username} ({user_dn})")

        # No existence check; the directory rejects duplicates
        self.directory.add(user_dn, user_attributes)
        log_directory_operation("create_user", user_dn, True, f"Created user: {principal_name}")

        return self._project(
            Name=name,
            SamAccountName=args.username,
            UserPrincipalName=principal_name,
            DistinguishedName=user_dn,
            Enabled=True,
        )


class RemoveUserRunbook(BaseRunbook):
    """Delete a user account."""

    command = Command.REMOVE_USER
    arguments = UsernameArguments
    output_fields = ("SamAccountName", "UserPrincipalName", "DistinguishedName")

    def run(self, args: UsernameArguments) -> Dict[str, Any]:
        user = self._require_user(args.username)
        user_dn = user['dn']

        self.logger.info(f"Deleting user: {args.username} ({user_dn})")
        self.directory.delete(user_dn)
        log_directory_operation("remove_user", user_dn, True, f"Deleted user: {args.username}")

        return self._project(
            SamAccountName=attribute(user, 'sAMAccountName', args.username),
            UserPrincipalName=attribute(user, 'userPrincipalName', self.context.principal_name(args.username)),
            DistinguishedName=user_dn,
        )


class SetPasswordRunbook(BaseRunbook):
    """
    Reset a user's password, or force a password change at next logon.

    The two paths are exclusive. Forcing a change first clears
    "password never expires" when it is set; AD will not require a
    change at logon while that flag is on.
    """

    command = Command.SET_PASSWORD
    arguments = SetPasswordArguments
    output_fields = (
        "SamAccountName", "UserPrincipalName", "Enabled",
        "PasswordNeverExpires", "ChangePasswordAtLogon",
    )

    def run(self, args: SetPasswordArguments) -> Dict[str, Any]:
        user = self._require_user(args.username)
        user_dn = user['dn']
        uac = int_attribute(user, 'userAccountControl', NORMAL_ACCOUNT)

        if args.change_password_at_logon:
            if uac & DONT_EXPIRE_PASSWORD:
                uac &= ~DONT_EXPIRE_PASSWORD
                self.logger.info(f"Clearing password-never-expires for: {args.username}")
                self.directory.modify(user_dn, {
                    'userAccountControl': [(MODIFY_REPLACE, [uac])]
                })

            self.logger.info(f"Forcing password change at logon for: {args.username}")
            self.directory.modify(user_dn, {
                'pwdLastSet': [(MODIFY_REPLACE, [0])]
            })
            details = "Password change required at next logon"
        else:
            self.logger.info(f"Resetting password for: {args.username}")
            self.directory.reset_password(user_dn, args.password)
            details = "Password reset"

        log_directory_operation("set_password", user_dn, True, details)

        return self._project(
            SamAccountName=attribute(user, 'sAMAccountName', args.username),
            UserPrincipalName=attribute(user, 'userPrincipalName', self.context.principal_name(args.username)),
            Enabled=is_enabled(uac),
            PasswordNeverExpires=bool(uac & DONT_EXPIRE_PASSWORD),
            ChangePasswordAtLogon=args.change_password_at_logon,
        )


class UnlockUserRunbook(BaseRunbook):
    """Clear the lockout on a user account."""

    command = Command.UNLOCK_USER
    arguments = UsernameArguments
    output_fields = ("SamAccountName", "UserPrincipalName", "Enabled", "LockedOut")

    def run(self, args: UsernameArguments) -> Dict[str, Any]:
        user = self._require_user(args.username)
        user_dn = user['dn']

        was_locked = int_attribute(user, 'lockoutTime') != 0
        self.logger.info(f"Unlocking user: {args.username} (locked: {was_locked})")

        self.directory.unlock_account(user_dn)
        log_directory_operation("unlock_user", user_dn, True, f"Unlocked user: {args.username}")

        return self._project(
            SamAccountName=attribute(user, 'sAMAccountName', args.username),
            UserPrincipalName=attribute(user, 'userPrincipalName', self.context.principal_name(args.username)),
            Enabled=is_enabled(int_attribute(user, 'userAccountControl', NORMAL_ACCOUNT)),
            LockedOut=False,
        )
