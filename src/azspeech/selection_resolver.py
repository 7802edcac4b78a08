"""Interactive resolution of subscription, resource group, region, name and SKU.

The resolver walks a fixed sequence of decisions:

    Unauthenticated -> SubscriptionChosen -> ResourceGroupChosen
        -> RegionChosen -> NameChosen -> SkuChosen -> Ready

Each step auto-resolves when exactly one candidate exists, otherwise it asks
the InteractionHandler. Resource group and resource selection always offer
"create new" first, so they always prompt. Cancelling any prompt raises
UserCancelledError and aborts the whole resolution; the resolver itself
never mutates cloud state.
"""

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum

from azspeech.account_context import AccountContext
from azspeech.account_directory import AccountDirectory
from azspeech.errors import NoPricingTierAvailableError, NoSubscriptionFoundError
from azspeech.interaction_handler import InteractionHandler
from azspeech.models import AzureResourceInfo, OptionItem, SubscriptionInfo
from azspeech.name_validation import INSTANCE_NAME_MAX_LENGTH, sanitize_instance_name
from azspeech.resource_manager import ResourceManager
from azspeech.speech_resources import SpeechResourceManager

logger = logging.getLogger(__name__)

DEFAULT_USERNAME = "dummy"
NAME_LITERAL = "speechaiproj"


class ResolutionState(StrEnum):
    UNAUTHENTICATED = "Unauthenticated"
    SUBSCRIPTION_CHOSEN = "SubscriptionChosen"
    RESOURCE_GROUP_CHOSEN = "ResourceGroupChosen"
    REGION_CHOSEN = "RegionChosen"
    NAME_CHOSEN = "NameChosen"
    SKU_CHOSEN = "SkuChosen"
    READY = "Ready"


@dataclass(frozen=True)
class ProvisioningPlan:
    """Everything needed to create a new resource."""

    subscription: SubscriptionInfo
    resource_group: str
    region: str
    name: str
    sku: str


def utc_timestamp(now: datetime) -> str:
    """UTC timestamp down to seconds without separators (YYYYMMDDHHMMSS)."""
    return now.astimezone(UTC).strftime("%Y%m%d%H%M%S")


class SelectionResolver:
    """Drive the interactive decisions of the provisioning workflow."""

    def __init__(
        self,
        context: AccountContext,
        directory: AccountDirectory,
        resource_manager: ResourceManager,
        speech_resources: SpeechResourceManager,
        interaction: InteractionHandler,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ):
        self.context = context
        self.directory = directory
        self.resource_manager = resource_manager
        self.speech_resources = speech_resources
        self.interaction = interaction
        self._clock = clock
        self.state = ResolutionState.UNAUTHENTICATED

    def select_subscription(self, reuse_current: bool = True) -> SubscriptionInfo:
        """Return the working subscription, choosing one if needed.

        Raises:
            NotSignedInError: If nobody is signed in
            NoSubscriptionFoundError: If no subscription is visible
            UserCancelledError: If the user cancels the choice
        """
        if reuse_current and self.context.subscription is not None:
            self.state = ResolutionState.SUBSCRIPTION_CHOSEN
            return self.context.subscription

        subscriptions = self.directory.list_subscriptions()
        if not subscriptions:
            raise NoSubscriptionFoundError("We couldn't find a subscription.")

        if len(subscriptions) == 1:
            chosen = subscriptions[0]
            logger.info(f"Using the only subscription: {chosen.name}")
        else:
            options = [
                OptionItem(id=sub.id, label=f"{sub.name} ({sub.id})", description=sub.tenant_id)
                for sub in subscriptions
            ]
            chosen_id = self.interaction.choose_one("Select Subscription", options)
            chosen = next(sub for sub in subscriptions if sub.id == chosen_id)

        self.context.select_subscription(chosen)
        self.state = ResolutionState.SUBSCRIPTION_CHOSEN
        return chosen

    def set_subscription(self, subscription_id: str) -> SubscriptionInfo:
        """Make ``subscription_id`` the working subscription.

        Raises:
            UnknownSubscriptionError: If the subscription is not visible
        """
        subscription = self.directory.get_subscription(subscription_id)
        self.context.select_subscription(subscription)
        self.state = ResolutionState.SUBSCRIPTION_CHOSEN
        return subscription

    def select_resource_group(self, subscription: SubscriptionInfo) -> str:
        """Pick an existing resource group or enter the name of a new one."""
        groups = self.resource_manager.list_resource_groups(subscription)
        options = [OptionItem(id=group.name, label=group.name) for group in groups]
        chosen = self.interaction.choose_or_create(
            "Select a resource group", options, "Create a new Resource Group"
        )
        if chosen is None:
            chosen = self.prompt_resource_group_name(subscription)
        self.state = ResolutionState.RESOURCE_GROUP_CHOSEN
        return chosen

    def prompt_resource_group_name(self, subscription: SubscriptionInfo) -> str:
        """Ask for a new resource group name, offering a generated default.

        The default name is checked up front so a missing permission on the
        subscription fails before the user types anything.
        """
        default = self.default_resource_group_name()
        self.resource_manager.check_resource_group_exists(subscription, default)
        return self.interaction.input_text(
            "Enter a resource group name or use the default one",
            default=default,
            validate=lambda value: self.speech_resources.validate_resource_group_name(
                subscription, value
            ),
        )

    def select_region(self, subscription: SubscriptionInfo) -> str:
        """Pick a region offering the target account kind.

        Raises:
            NoPricingTierAvailableError: If no region offers the account kind
        """
        regions = self.resource_manager.list_available_regions(subscription)
        if not regions:
            raise NoPricingTierAvailableError(
                "No region offers the selected resource type in this subscription",
                name="NoRegionAvailable",
            )
        if len(regions) == 1:
            region = regions[0]
        else:
            options = [OptionItem(id=region, label=region) for region in regions]
            region = self.interaction.choose_one("Select a region", options)
        self.state = ResolutionState.REGION_CHOSEN
        return region

    def prompt_instance_name(self, subscription: SubscriptionInfo) -> str:
        """Ask for the name of the new resource, offering a generated default."""
        name = self.interaction.input_text(
            "Enter a name for the Azure AI Service instance or use the default one",
            default=self.default_instance_name(),
            validate=lambda value: self.speech_resources.validate_instance_name(
                subscription, value
            ),
        )
        self.state = ResolutionState.NAME_CHOSEN
        return name

    def select_sku(self, subscription: SubscriptionInfo, region: str) -> str:
        """Pick a pricing tier available in ``region``.

        Raises:
            NoPricingTierAvailableError: If the region offers no pricing tier
        """
        skus = self.resource_manager.list_available_skus(subscription, region)
        if len(skus) == 1:
            sku = skus[0]
        else:
            options = [OptionItem(id=sku, label=sku) for sku in skus]
            sku = self.interaction.choose_one("Select a pricing tier", options)
        self.state = ResolutionState.SKU_CHOSEN
        return sku

    def select_instance(self, resources: list[AzureResourceInfo]) -> AzureResourceInfo | None:
        """Pick one of ``resources``.

        Returns:
            The chosen resource, or None when "create new" was chosen
        """
        options = [OptionItem(id=resource.id, label=resource.label()) for resource in resources]
        chosen_id = self.interaction.choose_or_create(
            "Select a Speech Resource", options, "Create a new Azure AI Service"
        )
        if chosen_id is None:
            return None
        resource = next(resource for resource in resources if resource.id == chosen_id)
        self.context.select_resource(resource)
        self.state = ResolutionState.READY
        return resource

    def resolve_new_resource_plan(self, subscription: SubscriptionInfo) -> ProvisioningPlan:
        """Resolve resource group, region, name and SKU, in that order."""
        self.state = ResolutionState.SUBSCRIPTION_CHOSEN
        resource_group = self.select_resource_group(subscription)
        region = self.select_region(subscription)
        name = self.prompt_instance_name(subscription)
        sku = self.select_sku(subscription, region)
        self.state = ResolutionState.READY
        return ProvisioningPlan(
            subscription=subscription,
            resource_group=resource_group,
            region=region,
            name=name,
            sku=sku,
        )

    def default_resource_group_name(self) -> str:
        username = re.sub(r"[^\w.()-]", "", self._username()) or DEFAULT_USERNAME
        return f"{username}_{NAME_LITERAL}_rg_{utc_timestamp(self._clock())}"

    def default_instance_name(self) -> str:
        suffix = f"-{NAME_LITERAL}-ais-{utc_timestamp(self._clock())}"
        username = sanitize_instance_name(self._username())
        username = username[: INSTANCE_NAME_MAX_LENGTH - len(suffix)].rstrip("-")
        return f"{username or DEFAULT_USERNAME}{suffix}"

    def _username(self) -> str:
        email = self.context.session_provider.get_status().email
        return email.split("@")[0] if email else DEFAULT_USERNAME


__all__ = ["ProvisioningPlan", "ResolutionState", "SelectionResolver", "utc_timestamp"]
