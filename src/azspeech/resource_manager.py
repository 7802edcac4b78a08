"""Resource group and provider metadata operations.

- list_resource_groups(): all resource groups of a subscription, page by page
- check_resource_group_exists() / ensure_resource_group(): idempotent
  creation with a bounded visibility poll
- list_available_regions() / list_available_skus(): Cognitive Services
  resource SKUs filtered by account kind and normalized location

Every call is made with a session bound to the subscription's tenant.
"""

import logging
import time
from collections.abc import Callable
from typing import Any

from azure.core.exceptions import AzureError, HttpResponseError
from azure.mgmt.cognitiveservices import CognitiveServicesManagementClient
from azure.mgmt.resource import ResourceManagementClient

from azspeech.errors import CloudServiceError, NoPricingTierAvailableError, ResourceGroupError
from azspeech.log_sanitizer import LogSanitizer
from azspeech.models import AccountType, ResourceGroupInfo, SubscriptionInfo
from azspeech.retry_config import RetryConfig, get_retry_config
from azspeech.retry_handler import call_with_retry, is_transient_error, poll_until
from azspeech.session_provider import SessionProvider

logger = logging.getLogger(__name__)

ACCOUNTS_RESOURCE_TYPE = "accounts"


def normalize_location(location: str) -> str:
    """Provider location code of a region name.

    Example:
        >>> normalize_location("East US")
        'EASTUS'
    """
    return location.replace(" ", "").upper()


def region_code(location: str) -> str:
    """Lower-case region code as used in endpoints and env files.

    Example:
        >>> region_code("East US")
        'eastus'
    """
    return location.replace(" ", "").lower()


def format_sku(sku: Any) -> str:
    """Label of a resource SKU: ``"<name> <tier>"`` (e.g. ``"S0 Standard"``)."""
    return f"{sku.name} {sku.tier}" if sku.tier else sku.name


class ResourceManager:
    """Resource groups, regions and pricing tiers of a subscription."""

    def __init__(
        self,
        session_provider: SessionProvider,
        account_type: AccountType = AccountType.AI_SERVICES,
        resource_client_factory: Callable[..., Any] = ResourceManagementClient,
        cognitive_client_factory: Callable[..., Any] = CognitiveServicesManagementClient,
        retry_config: RetryConfig | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.session_provider = session_provider
        self.account_type = account_type
        self._resource_client_factory = resource_client_factory
        self._cognitive_client_factory = cognitive_client_factory
        self._retry_config = retry_config or get_retry_config()
        self._sleep = sleep
        self._sku_cache: dict[str, list[Any]] = {}

    def list_resource_groups(self, subscription: SubscriptionInfo) -> list[ResourceGroupInfo]:
        """List all resource groups, following pagination to the end.

        Raises:
            ResourceGroupError: If listing fails
        """
        client = self._resource_client(subscription)
        logger.debug(f"Listing resource groups in subscription {subscription.id}")

        def list_all() -> list[ResourceGroupInfo]:
            groups = []
            for page in client.resource_groups.list().by_page():
                for group in page:
                    if group.name:
                        groups.append(ResourceGroupInfo(name=group.name, location=group.location))
            return groups

        try:
            groups = call_with_retry(
                list_all, self._retry_config.api, "List resource groups", sleep=self._sleep
            )
        except AzureError as e:
            safe_error = LogSanitizer.create_safe_error_message(
                e, f"Unable to retrieve resource groups for subscription {subscription.name}"
            )
            raise ResourceGroupError(safe_error) from e

        logger.debug(f"Found {len(groups)} resource group(s)")
        return groups

    def check_resource_group_exists(self, subscription: SubscriptionInfo, name: str) -> bool:
        """Check whether a resource group exists.

        Raises:
            ResourceGroupError: If the check fails (including missing permissions)
        """
        client = self._resource_client(subscription)
        try:
            return bool(
                call_with_retry(
                    lambda: client.resource_groups.check_existence(name),
                    self._retry_config.api,
                    f"Check resource group {name}",
                    sleep=self._sleep,
                )
            )
        except AzureError as e:
            safe_error = LogSanitizer.create_safe_error_message(
                e, f"Unable to check resource group existence: {name}"
            )
            raise ResourceGroupError(safe_error) from e

    def ensure_resource_group(self, subscription: SubscriptionInfo, name: str, location: str) -> None:
        """Create the resource group unless it exists.

        After creation (or a conflicting concurrent creation) the group is
        polled until it becomes visible, per the resource_group_poll policy.

        Raises:
            ResourceGroupError: If creation fails or the group never becomes
                visible within the allowed attempts
        """
        if self.check_resource_group_exists(subscription, name):
            logger.info(f"Resource group {name} already exists")
            return

        client = self._resource_client(subscription)
        create_error: AzureError | None = None
        logger.info(f"Creating resource group {name} in {location}")
        try:
            client.resource_groups.create_or_update(name, {"location": location})
        except AzureError as e:
            if not self._may_become_visible(e):
                safe_error = LogSanitizer.create_safe_error_message(
                    e, f"Unable to create resource group: {name}"
                )
                raise ResourceGroupError(safe_error) from e
            logger.warning(
                f"Creating resource group {name} failed, waiting for it to appear: "
                f"{LogSanitizer.sanitize_exception(e)}"
            )
            create_error = e

        policy = self._retry_config.resource_group_poll
        visible = poll_until(
            lambda: self.check_resource_group_exists(subscription, name),
            policy,
            f"Resource group {name}",
            sleep=self._sleep,
        )
        if not visible:
            raise ResourceGroupError(
                f"Resource group {name} was not available after {policy.max_attempts} attempts",
                name="ResourceGroupNotReady",
            ) from create_error
        logger.info(f"Resource group {name} is ready")

    def list_available_regions(self, subscription: SubscriptionInfo) -> list[str]:
        """Regions offering the target account kind, as sorted lower-case codes."""
        regions = {
            region_code(location)
            for sku in self._target_skus(subscription)
            for location in (sku.locations or [])
        }
        return sorted(regions)

    def list_available_skus(self, subscription: SubscriptionInfo, location: str) -> list[str]:
        """Pricing tiers of the target account kind in ``location``.

        Raises:
            NoPricingTierAvailableError: If the region offers no matching SKU
        """
        target = normalize_location(location)
        skus: list[str] = []
        for sku in self._target_skus(subscription):
            locations = {normalize_location(loc) for loc in (sku.locations or [])}
            if target not in locations or self._is_restricted(sku, target):
                continue
            label = format_sku(sku)
            if label not in skus:
                skus.append(label)

        if not skus:
            raise NoPricingTierAvailableError(
                f"No pricing tier available for the selected region {location}"
            )
        return skus

    def _target_skus(self, subscription: SubscriptionInfo) -> list[Any]:
        cached = self._sku_cache.get(subscription.id)
        if cached is not None:
            return cached

        client = self._cognitive_client(subscription)
        try:
            all_skus = call_with_retry(
                lambda: list(client.resource_skus.list()),
                self._retry_config.api,
                "List resource SKUs",
                sleep=self._sleep,
            )
        except AzureError as e:
            safe_error = LogSanitizer.create_safe_error_message(
                e, "Unable to retrieve available regions and pricing tiers"
            )
            raise CloudServiceError(safe_error, source="provision", name="ListSkus") from e

        kind = self.account_type.value.lower()
        skus = [
            sku
            for sku in all_skus
            if (sku.kind or "").lower() == kind
            and (sku.resource_type or ACCOUNTS_RESOURCE_TYPE).lower() == ACCOUNTS_RESOURCE_TYPE
        ]
        logger.debug(f"{len(skus)} resource SKU(s) of kind {self.account_type.value}")
        self._sku_cache[subscription.id] = skus
        return skus

    @staticmethod
    def _is_restricted(sku: Any, target: str) -> bool:
        """Check if the SKU is blocked for this subscription in ``target``."""
        for restriction in sku.restrictions or []:
            if (restriction.type or "").lower() != "location":
                continue
            if target in {normalize_location(value) for value in (restriction.values or [])}:
                return True
        return False

    @staticmethod
    def _may_become_visible(error: AzureError) -> bool:
        """A conflict or transient failure may still leave the group created."""
        if isinstance(error, HttpResponseError) and error.status_code == 409:
            return True
        return is_transient_error(error)

    def _resource_client(self, subscription: SubscriptionInfo) -> Any:
        session = self.session_provider.require_signed_in(subscription.tenant_id)
        return self._resource_client_factory(session, subscription.id)

    def _cognitive_client(self, subscription: SubscriptionInfo) -> Any:
        session = self.session_provider.require_signed_in(subscription.tenant_id)
        return self._cognitive_client_factory(session, subscription.id)


__all__ = [
    "ResourceManager",
    "format_sku",
    "normalize_location",
    "region_code",
]
