"""Provisioning orchestrator.

Composes the selection resolver with the resource clients:

- create_new(): resolve resource group -> region -> name -> SKU, then
  ensure the resource group and create the account, strictly in that order
- select_existing(): choose one of the existing accounts, or hand over to
  create_new() when the user asks for a new one
- fetch_credentials(): key, region and custom subdomain of the selection

Cancelling any prompt aborts before the first cloud mutation. A resource
group created by ensure_resource_group() is kept even when the account
creation fails afterwards.
"""

import logging
from collections.abc import Iterable

from azspeech.models import ALL_ACCOUNT_TYPES, AccountType, AzureResourceInfo, Credentials, SubscriptionInfo
from azspeech.resource_manager import ResourceManager
from azspeech.selection_resolver import ProvisioningPlan, SelectionResolver
from azspeech.speech_resources import SpeechResourceManager

logger = logging.getLogger(__name__)


class ProvisioningOrchestrator:
    """Create or select a Speech resource end-to-end."""

    def __init__(
        self,
        resolver: SelectionResolver,
        resource_manager: ResourceManager,
        speech_resources: SpeechResourceManager,
    ):
        self.resolver = resolver
        self.resource_manager = resource_manager
        self.speech_resources = speech_resources

    def create_new(self, subscription: SubscriptionInfo) -> AzureResourceInfo:
        """Resolve a plan interactively and create the resource.

        Raises:
            UserCancelledError: If the user cancels any prompt (nothing is
                created in that case)
            NoPricingTierAvailableError: If the chosen region has no SKU
            ResourceGroupError: If the resource group cannot be ensured
            ResourceCreationError: If the account creation fails
        """
        plan = self.resolver.resolve_new_resource_plan(subscription)
        return self.provision(plan)

    def provision(self, plan: ProvisioningPlan) -> AzureResourceInfo:
        """Ensure the resource group, then create the account."""
        logger.info(
            f"Provisioning {plan.name} ({plan.sku}) in {plan.resource_group}, {plan.region}"
        )
        self.resource_manager.ensure_resource_group(
            plan.subscription, plan.resource_group, plan.region
        )
        resource = self.speech_resources.create_instance(
            plan.subscription, plan.resource_group, plan.region, plan.name, plan.sku
        )
        self.resolver.context.select_resource(resource)
        return resource

    def select_existing(
        self,
        subscription: SubscriptionInfo,
        account_types: Iterable[AccountType] = ALL_ACCOUNT_TYPES,
    ) -> AzureResourceInfo | None:
        """Choose an existing resource, or create one on request.

        Returns:
            The chosen (or newly created) resource, or None when the
            subscription has no matching resource to select
        """
        resources = self.speech_resources.list_instances(subscription, account_types)
        if not resources:
            logger.info(f"No Speech resource found in {subscription.name}")
            return None

        resource = self.resolver.select_instance(resources)
        if resource is None:
            return self.create_new(subscription)
        return resource

    def fetch_credentials(self, resource: AzureResourceInfo) -> Credentials:
        """Retrieve key and region of ``resource`` (never logged)."""
        return self.speech_resources.fetch_keys_and_region(resource)


__all__ = ["ProvisioningOrchestrator"]
