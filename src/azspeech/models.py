"""Data model shared by the azspeech clients.

- AccountType: closed set of Cognitive Services account kinds we work with
- SubscriptionInfo / ResourceGroupInfo / AzureResourceInfo: immutable
  snapshots of cloud state
- Credentials: key + region of a resource (CRITICAL: never log the key)
- OptionItem: one entry of an interactive selection

AzureResourceInfo.id is the canonical identity of a resource; the name alone
is not unique across resource groups.
"""

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from azspeech.errors import InvalidResourceIdError, InvalidResourceTypeError


class AccountType(StrEnum):
    """Cognitive Services account kinds.

    Values are the provider's ``kind`` discriminator.
    """

    SPEECH_SERVICES = "SpeechServices"
    AI_SERVICES = "AIServices"
    COGNITIVE_SERVICES = "CognitiveServices"

    @property
    def display_name(self) -> str:
        """Human readable name used in listings."""
        return _DISPLAY_NAMES[self]

    @classmethod
    def from_kind(cls, kind: str | None) -> "AccountType":
        """Map a provider ``kind`` string to an AccountType.

        Raises:
            InvalidResourceTypeError: If kind is not one of the supported kinds
        """
        for member in cls:
            if kind is not None and member.value.lower() == kind.lower():
                return member
        raise InvalidResourceTypeError(
            f"Unsupported resource kind: {kind}. "
            f"Expected one of: {', '.join(m.value for m in cls)}"
        )


_DISPLAY_NAMES = {
    AccountType.SPEECH_SERVICES: "Speech Service",
    AccountType.AI_SERVICES: "Azure AI service",
    AccountType.COGNITIVE_SERVICES: "Azure AI services multi-service account",
}

ALL_ACCOUNT_TYPES: tuple[AccountType, ...] = (
    AccountType.SPEECH_SERVICES,
    AccountType.COGNITIVE_SERVICES,
    AccountType.AI_SERVICES,
)


@dataclass(frozen=True)
class SubscriptionInfo:
    """Subscription visible to the signed-in identity.

    tenant_id must be used for every call scoped to this subscription.
    """

    id: str
    tenant_id: str
    name: str


@dataclass(frozen=True)
class ResourceGroupInfo:
    """Resource group in a subscription."""

    name: str
    location: str | None = None


@dataclass(frozen=True)
class AzureResourceInfo:
    """One provisioned Cognitive Services account."""

    id: str
    name: str
    subscription_id: str
    subscription_name: str
    tenant_id: str
    region: str
    account_type: AccountType
    sku: str

    @property
    def resource_group(self) -> str:
        """Resource group name parsed from the canonical id."""
        return parse_resource_group(self.id)

    def label(self) -> str:
        """Label used when offering this resource in a selection."""
        return f"{self.name} ({self.account_type.display_name}, {self.region}, {self.sku})"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "subscription_id": self.subscription_id,
            "subscription_name": self.subscription_name,
            "tenant_id": self.tenant_id,
            "region": self.region,
            "account_type": self.account_type.value,
            "sku": self.sku,
        }


@dataclass(frozen=True)
class Credentials:
    """Access key and region of a resource (CRITICAL: Never log this object)."""

    key: str
    region: str
    custom_sub_domain_name: str | None = None

    def __repr__(self) -> str:
        """Prevent accidental exposure of the key in logs."""
        return (
            f"Credentials(key=***REDACTED***, region={self.region!r}, "
            f"custom_sub_domain_name={self.custom_sub_domain_name!r})"
        )

    def __str__(self) -> str:
        return f"Credentials(region={self.region}, key redacted for security)"


@dataclass(frozen=True)
class OptionItem:
    """Entry of an interactive single selection."""

    id: str
    label: str
    description: str | None = None


def parse_resource_group(resource_id: str) -> str:
    """Return the resource group segment of an ARM resource id.

    Splits the id on ``/`` and returns the segment following
    ``resourceGroups`` (matched case-insensitively).

    Raises:
        InvalidResourceIdError: If the id has no resource group segment

    Example:
        >>> parse_resource_group(
        ...     "/subscriptions/s1/resourceGroups/rg1/providers/"
        ...     "Microsoft.CognitiveServices/accounts/myspeech"
        ... )
        'rg1'
    """
    segments = [segment for segment in (resource_id or "").split("/") if segment]
    for index, segment in enumerate(segments[:-1]):
        if segment.lower() == "resourcegroups":
            return segments[index + 1]
    raise InvalidResourceIdError(f"Cannot find resource group in resource id: {resource_id}")


def parse_subscription_id(resource_id: str) -> str:
    """Return the subscription segment of an ARM resource id.

    Raises:
        InvalidResourceIdError: If the id has no subscription segment
    """
    segments = [segment for segment in (resource_id or "").split("/") if segment]
    for index, segment in enumerate(segments[:-1]):
        if segment.lower() == "subscriptions":
            return segments[index + 1]
    raise InvalidResourceIdError(f"Cannot find subscription in resource id: {resource_id}")


__all__ = [
    "ALL_ACCOUNT_TYPES",
    "AccountType",
    "AzureResourceInfo",
    "Credentials",
    "OptionItem",
    "ResourceGroupInfo",
    "SubscriptionInfo",
    "parse_resource_group",
    "parse_subscription_id",
]
