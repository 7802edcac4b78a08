"""Error taxonomy for azspeech.

Every failure raised by the toolkit derives from SpeechToolkitError and
belongs to exactly one of four kinds:

- UserCancelledError: the user declined or cancelled a prompt. Callers must
  not show an error banner for it, only record the outcome.
- NameValidationError: a user supplied name was rejected by local or
  provider naming rules.
- DomainError: an expected failure with a specific remediation message
  (no subscription, no pricing tier in a region, unknown subscription, ...).
- CloudServiceError: network, provider or otherwise unexpected failures.

Each error carries a ``source`` and a ``name``; ``error_code`` is reported as
``"<source>.<name>"`` and ``error_type`` distinguishes user errors from
system errors.
"""


class SpeechToolkitError(Exception):
    """Base exception for all azspeech errors."""

    default_source = "azspeech"
    error_type = "system"

    def __init__(self, message: str, source: str | None = None, name: str | None = None):
        super().__init__(message)
        self.message = message
        self.source = source or self.default_source
        self.name = name or type(self).__name__

    @property
    def error_code(self) -> str:
        """Error code of the form ``source.name``."""
        return f"{self.source}.{self.name}"


class UserCancelledError(SpeechToolkitError):
    """The user cancelled an interactive step."""

    error_type = "user"

    def __init__(self, message: str = "User canceled.", source: str | None = None):
        super().__init__(message, source=source, name="UserCancel")


class NameValidationError(SpeechToolkitError):
    """A resource or resource group name was rejected."""

    default_source = "validation"
    error_type = "user"


class DomainError(SpeechToolkitError):
    """Expected failure mode with a specific remediation message."""

    error_type = "user"


class NotSignedInError(DomainError):
    """An operation other than login was attempted while signed out."""

    default_source = "login"


class NoSubscriptionFoundError(DomainError):
    """The signed-in identity cannot see any subscription."""

    default_source = "login"


class UnknownSubscriptionError(DomainError):
    """The requested subscription is not visible to the signed-in identity."""

    default_source = "login"


class NoPricingTierAvailableError(DomainError):
    """A region offers no SKU for the target account kind."""

    default_source = "provision"


class MissingKeyOrRegionError(DomainError):
    """Key listing returned no key or the resource has no region."""

    default_source = "configure"


class InvalidResourceTypeError(DomainError):
    """An account kind outside the supported set was requested."""

    default_source = "resource"


class InvalidResourceIdError(DomainError):
    """A resource id could not be parsed."""

    default_source = "resource"


class ResourceNotFoundError(DomainError):
    """The resource no longer exists (e.g. deleted concurrently)."""

    default_source = "resource"


class KeyAccessDeniedError(DomainError):
    """The signed-in identity is not allowed to list the resource keys."""

    default_source = "configure"


class CloudServiceError(SpeechToolkitError):
    """Network, provider or unexpected failure."""

    error_type = "system"


class LoginError(CloudServiceError):
    """Sign-in failed for a reason other than user cancellation."""

    default_source = "login"


class ResourceGroupError(CloudServiceError):
    """Resource group listing or creation failed."""

    default_source = "provision"


class ResourceCreationError(CloudServiceError):
    """Creating the resource instance failed."""

    default_source = "provision"


class EnvSyncError(CloudServiceError):
    """Writing the env file or config.json failed."""

    default_source = "configure"


class ConfigError(CloudServiceError):
    """Reading or writing the azspeech settings file failed."""

    default_source = "config"


__all__ = [
    "CloudServiceError",
    "ConfigError",
    "DomainError",
    "EnvSyncError",
    "InvalidResourceIdError",
    "InvalidResourceTypeError",
    "KeyAccessDeniedError",
    "LoginError",
    "MissingKeyOrRegionError",
    "NameValidationError",
    "NoPricingTierAvailableError",
    "NoSubscriptionFoundError",
    "NotSignedInError",
    "ResourceCreationError",
    "ResourceGroupError",
    "ResourceNotFoundError",
    "SpeechToolkitError",
    "UnknownSubscriptionError",
    "UserCancelledError",
]
