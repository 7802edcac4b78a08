"""Configuration management module.

This module handles persistent azspeech settings stored in TOML format:
sign-in method, tenant, where the sample project's env file lives and which
account kinds to offer.

Security:
- Config file permissions: 0600 (owner read/write only)
- No secrets: resource keys go to the project env file only, client secrets
  come from the environment only
"""

import logging
import os
import tomllib
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

import tomlkit

from azspeech.auth_models import AuthConfig, AuthMethod, ServicePrincipalConfig
from azspeech.errors import ConfigError
from azspeech.models import ALL_ACCOUNT_TYPES, AccountType

logger = logging.getLogger(__name__)


@dataclass
class SpeechToolkitConfig:
    """azspeech configuration data."""

    auth_method: str = AuthMethod.AZURE_CLI.value
    tenant_id: str | None = None
    client_id: str | None = None
    env_folder: str = "env"
    env_file_name: str = ".env.speech"
    config_json_name: str = "config.json"
    target_account_type: str = AccountType.AI_SERVICES.value
    account_types: list[str] = field(default_factory=lambda: [t.value for t in ALL_ACCOUNT_TYPES])
    last_subscription_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary, excluding None values."""
        data = asdict(self)
        # TOML has no null
        return {k: v for k, v in data.items() if v is not None}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SpeechToolkitConfig":
        """Create from dictionary, ignoring unknown keys."""
        defaults = cls()
        return cls(
            auth_method=data.get("auth_method", defaults.auth_method),
            tenant_id=data.get("tenant_id"),
            client_id=data.get("client_id"),
            env_folder=data.get("env_folder", defaults.env_folder),
            env_file_name=data.get("env_file_name", defaults.env_file_name),
            config_json_name=data.get("config_json_name", defaults.config_json_name),
            target_account_type=data.get("target_account_type", defaults.target_account_type),
            account_types=list(data.get("account_types", defaults.account_types)),
            last_subscription_id=data.get("last_subscription_id"),
        )

    def auth_config(self) -> AuthConfig:
        """Build the AuthConfig, applying environment overrides.

        Environment variables (optional):
            AZSPEECH_AUTH_METHOD: overrides auth_method
            AZSPEECH_TENANT_ID: overrides tenant_id

        Raises:
            ConfigError: If the method or its settings are invalid
        """
        method_value = os.getenv("AZSPEECH_AUTH_METHOD", self.auth_method)
        tenant_id = os.getenv("AZSPEECH_TENANT_ID", self.tenant_id or "") or None
        try:
            method = AuthMethod(method_value)
            service_principal = None
            if method.requires_config:
                if not tenant_id or not self.client_id:
                    raise ConfigError(
                        f"{method.value} requires tenant_id and client_id in the config file"
                    )
                service_principal = ServicePrincipalConfig(
                    tenant_id=tenant_id, client_id=self.client_id
                )
            return AuthConfig(
                method=method, tenant_id=tenant_id, service_principal=service_principal
            )
        except ValueError as e:
            raise ConfigError(f"Invalid authentication settings: {e}") from e

    def target_type(self) -> AccountType:
        """Account kind used when creating new resources."""
        return AccountType.from_kind(self.target_account_type)

    def selectable_types(self) -> list[AccountType]:
        """Account kinds offered when selecting an existing resource."""
        return [AccountType.from_kind(kind) for kind in self.account_types]


class ConfigManager:
    """Manage the azspeech configuration file.

    Configuration is stored at ~/.azspeech/config.toml with secure permissions.
    """

    DEFAULT_CONFIG_DIR = Path.home() / ".azspeech"
    DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.toml"

    @classmethod
    def get_config_path(cls, custom_path: str | None = None) -> Path:
        if custom_path:
            return Path(custom_path).expanduser().resolve()
        return cls.DEFAULT_CONFIG_FILE

    @classmethod
    def load_config(cls, custom_path: str | None = None) -> SpeechToolkitConfig:
        """Load configuration from file.

        A missing file yields the defaults.

        Raises:
            ConfigError: If the file exists but cannot be read or parsed
        """
        config_path = cls.get_config_path(custom_path)

        if not config_path.exists():
            logger.debug("Config file not found, using defaults")
            return SpeechToolkitConfig()

        try:
            mode = config_path.stat().st_mode & 0o777
            if mode & 0o077:
                logger.warning(
                    f"Config file has insecure permissions: {oct(mode)}. Fixing to 0600..."
                )
                os.chmod(config_path, 0o600)

            with open(config_path, "rb") as f:
                data = tomllib.load(f)

            logger.debug(f"Loaded config from: {config_path}")
            return SpeechToolkitConfig.from_dict(data)

        except (OSError, tomllib.TOMLDecodeError) as e:
            raise ConfigError(f"Failed to load config: {e}") from e

    @classmethod
    def save_config(cls, config: SpeechToolkitConfig, custom_path: str | None = None) -> None:
        """Save configuration to file.

        Existing comments and formatting are preserved (tomlkit). The file is
        written to a temporary path and atomically renamed.

        Raises:
            ConfigError: If saving fails
        """
        config_path = cls.get_config_path(custom_path)
        temp_path = config_path.with_suffix(".tmp")
        try:
            config_path.parent.mkdir(parents=True, exist_ok=True)

            if config_path.exists():
                with open(config_path) as f:
                    doc = tomlkit.load(f)
            else:
                doc = tomlkit.document()

            for key, value in asdict(config).items():
                if value is not None:
                    doc[key] = value
                elif key in doc:
                    # TOML has no null; an unset field is removed
                    del doc[key]

            with open(temp_path, "w") as f:
                tomlkit.dump(doc, f)

            os.chmod(temp_path, 0o600)
            temp_path.replace(config_path)

            logger.debug(f"Saved config to: {config_path}")

        except OSError as e:
            if temp_path.exists():
                temp_path.unlink()
            raise ConfigError(f"Failed to save config: {e}") from e

    @classmethod
    def update_config(cls, custom_path: str | None = None, **updates: Any) -> SpeechToolkitConfig:
        """Load, update and save configuration in one step.

        Raises:
            ConfigError: If an unknown field is given or saving fails
        """
        config = cls.load_config(custom_path)
        for key, value in updates.items():
            if not hasattr(config, key):
                raise ConfigError(f"Unknown config field: {key}")
            setattr(config, key, value)
        cls.save_config(config, custom_path)
        return config


__all__ = ["ConfigManager", "SpeechToolkitConfig"]
