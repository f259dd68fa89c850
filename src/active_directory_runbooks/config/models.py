"""Configuration models for Active Directory runbooks."""

from typing import Dict, Optional
from pydantic import BaseModel, Field, field_validator


class CredentialConfig(BaseModel):
    """Named credential (identity + secret) held by the configuration store."""

    identity: str = Field(..., description="Account used to bind, e.g. CORP\\svc-runbook or svc@corp.local")
    secret: str = Field(..., repr=False, description="Account password")

    @field_validator('identity', 'secret')
    @classmethod
    def validate_not_blank(cls, v):
        """Reject blank identity or secret."""
        if not v or not v.strip():
            raise ValueError('Value must not be empty')
        return v


class ConnectionConfig(BaseModel):
    """LDAP connection settings for the domain controller."""

    use_ssl: bool = Field(default=True, description="Connect with ldaps")
    port: Optional[int] = Field(default=None, description="LDAP port (defaults to 636 with SSL, 389 without)")
    timeout: int = Field(default=30, description="Connection timeout in seconds")
    receive_timeout: int = Field(default=10, description="Receive timeout in seconds")

    @field_validator('timeout', 'receive_timeout')
    @classmethod
    def validate_positive_int(cls, v):
        """Validate positive integers."""
        if v <= 0:
            raise ValueError('Value must be positive')
        return v

    @property
    def effective_port(self) -> int:
        if self.port:
            return self.port
        return 636 if self.use_ssl else 389


class SecurityConfig(BaseModel):
    """Security configuration for LDAP connections."""

    validate_certificate: bool = Field(default=True, description="Validate server certificate")
    ca_cert_file: Optional[str] = Field(default=None, description="CA certificate file path")


class SyncConfig(BaseModel):
    """WinRM settings for the Azure AD Connect server."""

    transport: str = Field(default="ntlm", description="WinRM transport")
    use_ssl: bool = Field(default=True, description="Use HTTPS for WinRM")
    port: Optional[int] = Field(default=None, description="WinRM port (defaults to 5986 with SSL, 5985 without)")
    validate_certificate: bool = Field(default=True, description="Validate WinRM server certificate")
    policy_type: str = Field(default="Delta", description="ADSync policy type")

    @field_validator('transport')
    @classmethod
    def validate_transport(cls, v):
        """Validate WinRM transport."""
        valid_transports = ['ntlm', 'kerberos', 'credssp', 'basic']
        if v.lower() not in valid_transports:
            raise ValueError(f'Transport must be one of: {valid_transports}')
        return v.lower()

    @field_validator('policy_type')
    @classmethod
    def validate_policy_type(cls, v):
        """Validate ADSync policy type."""
        if v not in ('Delta', 'Initial'):
            raise ValueError('Policy type must be Delta or Initial')
        return v

    @property
    def endpoint_port(self) -> int:
        if self.port:
            return self.port
        return 5986 if self.use_ssl else 5985


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Logging level")
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log message format"
    )
    file: Optional[str] = Field(default=None, description="Log file path")

    @field_validator('level')
    @classmethod
    def validate_level(cls, v):
        """Validate logging level."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'Level must be one of: {valid_levels}')
        return v.upper()


class Config(BaseModel):
    """Main configuration class."""

    variables: Dict[str, str] = Field(default_factory=dict, description="Named configuration values")
    credentials: Dict[str, CredentialConfig] = Field(default_factory=dict, description="Named credentials")
    connection: ConnectionConfig = Field(default_factory=ConnectionConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
