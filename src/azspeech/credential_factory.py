"""Credential factory for Azure authentication.

This module creates Azure Identity SDK credential objects from authentication
configuration. It acts as a bridge between azspeech's configuration models and
Azure SDK credential types.

Supported credential types:
- AzureCliCredential: Delegate to Azure CLI (default, never prompts)
- InteractiveBrowserCredential: Microsoft sign-in in the system browser
- DeviceCodeCredential: Device code sign-in for headless terminals
- ClientSecretCredential: Service principal with client secret

The two interactive credentials only prompt from an explicit
``authenticate()``; ``get_token()`` raises AuthenticationRequiredError
instead of starting a sign-in.

Security:
- No token storage - delegates to Azure Identity SDK, in-memory cache only
- Client secrets from environment variables only
- Log sanitization for all error messages
"""

import os
from typing import Any

import click
from azure.identity import (
    AzureCliCredential,
    ClientSecretCredential,
    DeviceCodeCredential,
    InteractiveBrowserCredential,
)

from azspeech.auth_models import AuthConfig, AuthMethod, ServicePrincipalConfig
from azspeech.log_sanitizer import LogSanitizer

# Sessions for other tenants are minted from the same sign-in
ALL_TENANTS = ["*"]


class CredentialFactoryError(Exception):
    """Raised when credential creation fails."""

    pass


class CredentialFactory:
    """Factory for creating Azure Identity credentials.

    Maps AuthConfig to appropriate Azure Identity SDK credential types. One
    credential is created per sign-in; tokens for a specific tenant are
    requested with ``get_token(..., tenant_id=...)`` on that credential.
    """

    @staticmethod
    def create_credential(auth_config: AuthConfig, tenant_id: str | None = None) -> Any:
        """Create Azure Identity credential from configuration.

        Args:
            auth_config: Authentication configuration
            tenant_id: Tenant to bind the credential to (overrides the
                configured tenant)

        Returns:
            Azure Identity credential object (TokenCredential)

        Raises:
            CredentialFactoryError: If credential creation fails
        """
        tenant = tenant_id or auth_config.tenant_id
        try:
            if auth_config.method == AuthMethod.AZURE_CLI:
                return AzureCliCredential(
                    tenant_id=tenant or "", additionally_allowed_tenants=ALL_TENANTS
                )

            if auth_config.method == AuthMethod.INTERACTIVE_BROWSER:
                return InteractiveBrowserCredential(
                    tenant_id=tenant or "organizations",
                    additionally_allowed_tenants=ALL_TENANTS,
                    disable_automatic_authentication=True,
                )

            if auth_config.method == AuthMethod.DEVICE_CODE:
                return DeviceCodeCredential(
                    tenant_id=tenant or "organizations",
                    prompt_callback=CredentialFactory._show_device_code,
                    additionally_allowed_tenants=ALL_TENANTS,
                    disable_automatic_authentication=True,
                )

            if auth_config.method == AuthMethod.SERVICE_PRINCIPAL_SECRET:
                if not auth_config.service_principal:
                    raise CredentialFactoryError(
                        "SERVICE_PRINCIPAL_SECRET requires service_principal configuration"
                    )
                return CredentialFactory._create_sp_secret_credential(
                    auth_config.service_principal, tenant
                )

            raise CredentialFactoryError(
                f"Unsupported authentication method: {auth_config.method}"
            )

        except CredentialFactoryError:
            raise
        except Exception as e:
            safe_error = LogSanitizer.create_safe_error_message(e, "Credential creation failed")
            raise CredentialFactoryError(safe_error) from e

    @staticmethod
    def _create_sp_secret_credential(
        config: ServicePrincipalConfig, tenant_id: str | None
    ) -> ClientSecretCredential:
        """Create service principal credential with client secret.

        The client secret MUST come from the AZURE_CLIENT_SECRET environment
        variable.

        Raises:
            CredentialFactoryError: If client secret not found in environment
        """
        client_secret = os.getenv("AZURE_CLIENT_SECRET")
        if not client_secret:
            raise CredentialFactoryError(
                "Client secret not found in environment. "
                "Set the AZURE_CLIENT_SECRET environment variable."
            )

        return ClientSecretCredential(
            tenant_id=tenant_id or config.tenant_id,
            client_id=config.client_id,
            client_secret=client_secret,
            additionally_allowed_tenants=ALL_TENANTS,
        )

    @staticmethod
    def _show_device_code(verification_uri: str, user_code: str, expires_on: Any) -> None:
        click.secho(
            f"To sign in, open {verification_uri} and enter the code {user_code}",
            fg="yellow",
            err=True,
        )


__all__ = ["CredentialFactory", "CredentialFactoryError"]
