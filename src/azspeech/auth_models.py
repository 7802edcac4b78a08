"""Authentication data models for azspeech.

This module defines all authentication-related data structures including:
- AuthMethod and LoginStatus enums
- Configuration dataclasses (ServicePrincipalConfig, AuthConfig)
- Runtime handles (Session, LoginStatusInfo)

Security features:
- Frozen dataclasses for immutability
- UUID validation in __post_init__
- No plain text secret storage
- Sessions live in memory only
"""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any
from uuid import UUID

from azure.core.credentials import AccessToken, TokenCredential

# Audience for Azure Resource Manager calls
MANAGEMENT_SCOPE = "https://management.azure.com/.default"
DEFAULT_SCOPES: tuple[str, ...] = (MANAGEMENT_SCOPE,)


def validate_uuid(value: str, field_name: str) -> None:
    """Validate UUID format. Raises ValueError if invalid.

    Args:
        value: The string to validate as UUID
        field_name: Name of the field for error messages

    Raises:
        ValueError: If value is not a valid UUID format
    """
    if not value:
        raise ValueError(f"{field_name} must be valid UUID format, got empty string")

    try:
        UUID(value)
    except (ValueError, AttributeError) as e:
        raise ValueError(f"{field_name} must be valid UUID format, got: {value}") from e


class AuthMethod(StrEnum):
    """Authentication method enumeration.

    - AZURE_CLI: reuse the Azure CLI sign-in (default, never prompts)
    - INTERACTIVE_BROWSER: browser based Microsoft sign-in
    - DEVICE_CODE: device code flow for headless terminals
    - SERVICE_PRINCIPAL_SECRET: service principal with client secret
    """

    AZURE_CLI = "azure_cli"
    INTERACTIVE_BROWSER = "interactive_browser"
    DEVICE_CODE = "device_code"
    SERVICE_PRINCIPAL_SECRET = "sp_secret"  # noqa: S105 - Enum value, not a password

    @property
    def is_interactive(self) -> bool:
        """Check if this method needs the user to complete a sign-in."""
        return self in (AuthMethod.INTERACTIVE_BROWSER, AuthMethod.DEVICE_CODE)

    @property
    def requires_config(self) -> bool:
        """Check if this method requires service principal configuration."""
        return self == AuthMethod.SERVICE_PRINCIPAL_SECRET


class LoginStatus(StrEnum):
    """Process-wide sign-in state."""

    SIGNED_OUT = "SignedOut"
    SIGNING_IN = "SigningIn"
    SIGNED_IN = "SignedIn"


@dataclass(frozen=True)
class ServicePrincipalConfig:
    """Service principal authentication configuration.

    The client secret is never stored here - it must come from the
    AZURE_CLIENT_SECRET environment variable.
    """

    tenant_id: str
    client_id: str

    def __post_init__(self):
        """Validate UUIDs for tenant_id and client_id."""
        validate_uuid(self.tenant_id, "tenant_id")
        validate_uuid(self.client_id, "client_id")


@dataclass(frozen=True)
class AuthConfig:
    """Complete authentication configuration.

    Combines authentication method with method-specific configuration.
    """

    method: AuthMethod = AuthMethod.AZURE_CLI
    tenant_id: str | None = None
    service_principal: ServicePrincipalConfig | None = None

    def __post_init__(self):
        """Validate configuration consistency."""
        if self.method.requires_config and not self.service_principal:
            raise ValueError(f"{self.method.value} requires service_principal configuration")
        if self.tenant_id is not None:
            validate_uuid(self.tenant_id, "tenant_id")


@dataclass
class Session:
    """In-memory authentication session.

    Binds the process credential to a scope set and an optional tenant.
    A Session is itself a TokenCredential: management clients receive it
    directly and every token they request is minted for the bound tenant.
    It has no expiry of its own and is never written to disk.
    """

    credential: TokenCredential
    scopes: tuple[str, ...] = DEFAULT_SCOPES
    tenant_id: str | None = None
    account_info: dict[str, Any] = field(default_factory=dict)

    def get_token(self, *scopes: str, **kwargs: Any) -> AccessToken:
        """Mint a bearer token (defaults to the session's scopes)."""
        if self.tenant_id:
            kwargs.setdefault("tenant_id", self.tenant_id)
        return self.credential.get_token(*(scopes or self.scopes), **kwargs)

    def __repr__(self) -> str:
        return f"Session(scopes={self.scopes!r}, tenant_id={self.tenant_id!r})"


@dataclass(frozen=True)
class LoginStatusInfo:
    """Snapshot returned by SessionProvider.get_status()."""

    status: LoginStatus
    account_info: dict[str, Any] | None = None

    @property
    def email(self) -> str | None:
        """Sign-in name of the account (upn, email or unique_name claim)."""
        if not self.account_info:
            return None
        for claim in ("upn", "email", "unique_name", "preferred_username"):
            value = self.account_info.get(claim)
            if value:
                return str(value)
        return None
