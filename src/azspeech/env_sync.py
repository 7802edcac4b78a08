"""Write resource credentials into a sample project.

Two files are kept in sync:

- the env file (``<project>/env/.env.speech`` by default), one ``KEY=VALUE``
  per line. A known key replaces the first line that starts with ``KEY=``;
  an unknown key is appended. Every other line is preserved verbatim.
- ``config.json`` at the project root. Only fields that already exist in
  the file are overwritten; no field is ever added.

The two writes are not transactional: if config.json cannot be updated the
env file keeps its new content and the failure is reported in SyncResult.

Security:
- The env file holds the resource key; it is written with 0600 permissions
- Values are never logged
"""

import json
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path

from azspeech.errors import EnvSyncError
from azspeech.models import AzureResourceInfo, Credentials
from azspeech.resource_manager import region_code

logger = logging.getLogger(__name__)


class EnvKeys:
    """Keys written to the env file."""

    SPEECH_RESOURCE_KEY = "SPEECH_RESOURCE_KEY"
    SERVICE_REGION = "SERVICE_REGION"
    AZURE_SUBSCRIPTION_ID = "AZURE_SUBSCRIPTION_ID"
    TENANT_ID = "TENANT_ID"
    SPEECH_RESOURCE_NAME = "SPEECH_RESOURCE_NAME"
    SPEECH_RESOURCE_SKU = "SPEECH_RESOURCE_SKU"
    CUSTOM_SUBDOMAIN_NAME = "CUSTOM_SUBDOMAIN_NAME"

    # Present in a configured project
    REQUIRED = (SPEECH_RESOURCE_KEY, SERVICE_REGION, TENANT_ID, AZURE_SUBSCRIPTION_ID)


class ConfigJsonFields:
    """Fields of config.json that are updated when present."""

    SUBSCRIPTION_KEY = "SubscriptionKey"
    SERVICE_REGION = "ServiceRegion"
    CUSTOM_SUBDOMAIN_NAME = "CustomSubDomainName"


@dataclass
class SyncResult:
    """Outcome of sync_project()."""

    env_file: Path
    config_file: Path
    updated_config_fields: list[str] = field(default_factory=list)
    config_error: EnvSyncError | None = None

    @property
    def complete(self) -> bool:
        """True when both files were handled without error."""
        return self.config_error is None


class EnvSynchronizer:
    """Read and update env files and config.json of a sample project."""

    ENV_FOLDER = "env"
    ENV_FILE_NAME = ".env.speech"
    CONFIG_JSON_NAME = "config.json"

    _KEY_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

    @classmethod
    def validate_env_key(cls, key: str) -> tuple[bool, str]:
        """Validate environment variable key name.

        Returns:
            Tuple of (is_valid, error_message)
        """
        if not key:
            return False, "Environment variable name cannot be empty"
        if not cls._KEY_PATTERN.match(key):
            return False, (
                f"Invalid environment variable name: {key}. "
                "Must start with letter or underscore, contain only letters, numbers, underscores"
            )
        return True, ""

    @classmethod
    def extract_env_value(cls, content: str, key: str) -> str | None:
        """Value of the first ``KEY=value`` line of ``content``.

        Example:
            >>> EnvSynchronizer.extract_env_value("A=1\\nSERVICE_REGION=eastus\\n", "SERVICE_REGION")
            'eastus'
        """
        match = re.search(rf"^{re.escape(key)}=(.*)$", content, re.MULTILINE)
        if not match:
            return None
        return match.group(1).rstrip("\r") or None

    @classmethod
    def read_env(cls, path: Path) -> dict[str, str]:
        """Parse an env file into a dict; a missing file yields {}.

        Blank lines and ``#`` comments are skipped; the first occurrence of
        a key wins.
        """
        path = Path(path)
        if not path.exists():
            return {}
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            raise EnvSyncError(f"Failed to read {path}: {e}") from e

        values: dict[str, str] = {}
        for line in content.splitlines():
            stripped = line.strip()
            if not stripped or stripped.startswith("#") or "=" not in line:
                continue
            key, value = line.split("=", 1)
            values.setdefault(key.strip(), value)
        return values

    @classmethod
    def write_credentials(cls, path: Path, values: dict[str, str]) -> None:
        """Replace or append each ``KEY=VALUE`` in the env file.

        The file and its parent directory are created if missing.

        Raises:
            EnvSyncError: If a key or value is invalid or writing fails
        """
        path = Path(path)
        for key, value in values.items():
            is_valid, error = cls.validate_env_key(key)
            if not is_valid:
                raise EnvSyncError(error)
            if "\n" in value or "\r" in value:
                raise EnvSyncError(f"Value of {key} must be a single line")

        try:
            if path.exists():
                with open(path, encoding="utf-8", newline="") as f:
                    content = f.read()
            else:
                content = ""
        except OSError as e:
            raise EnvSyncError(f"Failed to read {path}: {e}") from e

        for key, value in values.items():
            content = cls._set_line(content, key, value)

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8", newline="") as f:
                f.write(content)
            os.chmod(path, 0o600)
        except OSError as e:
            raise EnvSyncError(f"Failed to write {path}: {e}") from e

        # SECURITY: only key names are logged
        logger.info(f"Updated {', '.join(values)} in {path}")

    @classmethod
    def update_config_json(cls, path: Path, credentials: Credentials) -> list[str]:
        """Overwrite the credential fields that already exist in config.json.

        A missing file is left alone.

        Returns:
            Names of the fields that were updated

        Raises:
            EnvSyncError: If the file cannot be read, parsed or written
        """
        path = Path(path)
        if not path.exists():
            logger.debug(f"{path} not found, nothing to update")
            return []

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise EnvSyncError(f"Failed to read {path}: {e}") from e
        if not isinstance(data, dict):
            raise EnvSyncError(f"{path} does not contain a JSON object")

        candidates = {
            ConfigJsonFields.SUBSCRIPTION_KEY: credentials.key,
            ConfigJsonFields.SERVICE_REGION: credentials.region,
            ConfigJsonFields.CUSTOM_SUBDOMAIN_NAME: credentials.custom_sub_domain_name,
        }
        updated = [name for name, value in candidates.items() if name in data and value]
        if not updated:
            return []

        for name in updated:
            data[name] = candidates[name]
        try:
            path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
        except OSError as e:
            raise EnvSyncError(f"Failed to write {path}: {e}") from e

        logger.info(f"Updated {', '.join(updated)} in {path}")
        return updated

    @classmethod
    def build_env_values(cls, resource: AzureResourceInfo, credentials: Credentials) -> dict[str, str]:
        """Env file entries for a resource and its credentials."""
        values = {
            EnvKeys.SPEECH_RESOURCE_KEY: credentials.key,
            EnvKeys.SERVICE_REGION: region_code(credentials.region),
            EnvKeys.AZURE_SUBSCRIPTION_ID: resource.subscription_id,
            EnvKeys.TENANT_ID: resource.tenant_id,
            EnvKeys.SPEECH_RESOURCE_NAME: resource.name,
            EnvKeys.SPEECH_RESOURCE_SKU: resource.sku,
        }
        if credentials.custom_sub_domain_name:
            values[EnvKeys.CUSTOM_SUBDOMAIN_NAME] = credentials.custom_sub_domain_name
        return values

    @classmethod
    def env_file_path(
        cls,
        project_dir: Path,
        env_folder: str = ENV_FOLDER,
        env_file_name: str = ENV_FILE_NAME,
    ) -> Path:
        return Path(project_dir) / env_folder / env_file_name

    @classmethod
    def is_resource_configured(
        cls,
        project_dir: Path,
        env_folder: str = ENV_FOLDER,
        env_file_name: str = ENV_FILE_NAME,
    ) -> bool:
        """True when key, region, tenant and subscription are all set."""
        values = cls.read_env(cls.env_file_path(project_dir, env_folder, env_file_name))
        return all(values.get(key, "").strip() for key in EnvKeys.REQUIRED)

    @classmethod
    def sync_project(
        cls,
        project_dir: Path,
        resource: AzureResourceInfo,
        credentials: Credentials,
        env_folder: str = ENV_FOLDER,
        env_file_name: str = ENV_FILE_NAME,
        config_json_name: str = CONFIG_JSON_NAME,
    ) -> SyncResult:
        """Write the env file, then update config.json.

        Raises:
            EnvSyncError: If the env file cannot be written (config.json is
                not touched in that case)
        """
        project_dir = Path(project_dir)
        env_file = cls.env_file_path(project_dir, env_folder, env_file_name)
        config_file = project_dir / config_json_name

        cls.write_credentials(env_file, cls.build_env_values(resource, credentials))

        result = SyncResult(env_file=env_file, config_file=config_file)
        try:
            result.updated_config_fields = cls.update_config_json(config_file, credentials)
        except EnvSyncError as e:
            logger.error(f"Env file updated but {config_file} was not: {e.message}")
            result.config_error = e
        return result

    @staticmethod
    def _set_line(content: str, key: str, value: str) -> str:
        # The line ending is not part of the match, so CRLF files keep theirs
        pattern = re.compile(rf"^{re.escape(key)}=[^\r\n]*", re.MULTILINE)
        line = f"{key}={value}"
        if pattern.search(content):
            return pattern.sub(lambda _: line, content, count=1)
        newline = "\r\n" if "\r\n" in content else "\n"
        if content and not content.endswith("\n"):
            content += newline
        return content + line + newline


__all__ = ["ConfigJsonFields", "EnvKeys", "EnvSynchronizer", "SyncResult"]
