"""Cognitive Services account operations.

This module lists, creates and inspects Speech-capable Cognitive Services
accounts and retrieves their access keys using the Azure SDK
(azure-mgmt-cognitiveservices).

Security:
- Resource keys are CRITICAL secrets
- Never log, print, or expose keys in error messages
- The sign-in is re-validated immediately before keys are listed

Public API:
    SpeechResourceManager: account operations for one target account kind
"""

import logging
import time
from collections.abc import Callable, Iterable
from typing import Any, NoReturn

from azure.core.exceptions import AzureError, ClientAuthenticationError, HttpResponseError
from azure.mgmt.cognitiveservices import CognitiveServicesManagementClient
from azure.mgmt.cognitiveservices.models import Account, AccountProperties, Sku

from azspeech.errors import (
    CloudServiceError,
    InvalidResourceTypeError,
    KeyAccessDeniedError,
    MissingKeyOrRegionError,
    ResourceCreationError,
    ResourceNotFoundError,
)
from azspeech.log_sanitizer import LogSanitizer
from azspeech.models import (
    ALL_ACCOUNT_TYPES,
    AccountType,
    AzureResourceInfo,
    Credentials,
    SubscriptionInfo,
    parse_resource_group,
)
from azspeech.name_validation import check_instance_name, check_resource_group_name
from azspeech.resource_manager import ResourceManager
from azspeech.retry_config import RetryConfig, get_retry_config
from azspeech.retry_handler import call_with_retry
from azspeech.session_provider import SessionProvider

logger = logging.getLogger(__name__)

PORTAL_URL = "https://portal.azure.com"


def sku_name(sku: str) -> str:
    """SKU name of a pricing tier label (``"S0 Standard"`` -> ``"S0"``)."""
    return sku.split()[0] if sku.strip() else sku


class SpeechResourceManager:
    """Manage Speech-capable Cognitive Services accounts of a subscription.

    New accounts are created with ``account_type`` as their kind. Listing
    accepts any subset of the supported kinds.
    """

    def __init__(
        self,
        session_provider: SessionProvider,
        resource_manager: ResourceManager,
        account_type: AccountType = AccountType.AI_SERVICES,
        client_factory: Callable[..., Any] = CognitiveServicesManagementClient,
        retry_config: RetryConfig | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.session_provider = session_provider
        self.resource_manager = resource_manager
        self.account_type = account_type
        self._client_factory = client_factory
        self._retry_config = retry_config or get_retry_config()
        self._sleep = sleep

    def list_instances(
        self,
        subscription: SubscriptionInfo,
        account_types: Iterable[AccountType] = ALL_ACCOUNT_TYPES,
    ) -> list[AzureResourceInfo]:
        """List accounts of the given kinds, sorted by name.

        Raises:
            CloudServiceError: If listing fails
        """
        wanted = set(account_types)
        resources = []
        for account in self._list_accounts(subscription):
            try:
                account_type = AccountType.from_kind(account.kind)
            except InvalidResourceTypeError:
                continue
            if account_type in wanted:
                resources.append(self._to_resource_info(account, subscription))

        resources.sort(key=lambda r: r.name)
        logger.debug(f"Found {len(resources)} matching account(s) in {subscription.name}")
        return resources

    def list_instances_by_type(
        self,
        subscription: SubscriptionInfo,
        account_types: Iterable[AccountType] = ALL_ACCOUNT_TYPES,
    ) -> dict[AccountType, list[AzureResourceInfo]]:
        """Group matching accounts by kind; every requested kind gets an entry."""
        account_types = list(account_types)
        grouped: dict[AccountType, list[AzureResourceInfo]] = {t: [] for t in account_types}
        for resource in self.list_instances(subscription, account_types):
            grouped[resource.account_type].append(resource)
        return grouped

    def create_instance(
        self,
        subscription: SubscriptionInfo,
        resource_group: str,
        region: str,
        name: str,
        sku: str,
    ) -> AzureResourceInfo:
        """Create an account and wait for the provisioning to finish.

        The name must have been validated beforehand: creating a duplicate
        fails on the provider side.

        Raises:
            ResourceCreationError: If creation fails
        """
        client = self._client(subscription)
        account = Account(
            location=region,
            sku=Sku(name=sku_name(sku)),
            kind=self.account_type.value,
            properties=AccountProperties(custom_sub_domain_name=name),
        )

        logger.info(
            f"Creating {self.account_type.display_name} {name} in {resource_group} ({region})"
        )
        try:
            poller = client.accounts.begin_create(resource_group, name, account)
            created = poller.result()
        except AzureError as e:
            safe_error = LogSanitizer.create_safe_error_message(
                e, f"Unable to create {self.account_type.display_name} {name}"
            )
            raise ResourceCreationError(safe_error) from e

        logger.info(f"Created {name}")
        return self._to_resource_info(created, subscription)

    def fetch_keys_and_region(self, resource: AzureResourceInfo) -> Credentials:
        """Retrieve the primary key, region and custom subdomain of an account.

        Keys are never logged.

        Raises:
            InvalidResourceIdError: If the resource id has no resource group
            NotSignedInError: If the sign-in is gone
            KeyAccessDeniedError: If listing keys is not permitted
            ResourceNotFoundError: If the account no longer exists
            MissingKeyOrRegionError: If no key or no region was returned
        """
        resource_group = parse_resource_group(resource.id)
        # Re-validated here, the sign-in may have changed during prompts
        session = self.session_provider.require_signed_in(resource.tenant_id)
        client = self._client_factory(session, resource.subscription_id)

        logger.info(f"Retrieving keys for {resource.name} in resource group {resource_group}")
        try:
            account = client.accounts.get(resource_group, resource.name)
            keys = client.accounts.list_keys(resource_group, resource.name)
        except AzureError as e:
            self._handle_key_exception(e, resource)

        key = keys.key1 if keys else None
        region = account.location if account else None
        if not key or not region:
            raise MissingKeyOrRegionError(
                f"Unable to retrieve key and region for {resource.name}"
            )

        custom_sub_domain = account.properties.custom_sub_domain_name if account.properties else None
        # SECURITY: never log the key itself
        logger.info(f"Retrieved key for {resource.name} ({region})")
        return Credentials(key=key, region=region, custom_sub_domain_name=custom_sub_domain)

    def get_instance(self, resource: AzureResourceInfo) -> dict[str, Any]:
        """Properties of an account (no secrets).

        Raises:
            ResourceNotFoundError: If the account no longer exists
            CloudServiceError: For other failures
        """
        resource_group = parse_resource_group(resource.id)
        client = self._client_for(resource.tenant_id, resource.subscription_id)
        try:
            account = client.accounts.get(resource_group, resource.name)
        except AzureError as e:
            self._handle_get_exception(e, resource)

        properties = account.properties
        return {
            "id": account.id,
            "name": account.name,
            "kind": account.kind,
            "location": account.location,
            "resource_group": resource_group,
            "sku": account.sku.name if account.sku else None,
            "endpoint": properties.endpoint if properties else None,
            "custom_sub_domain_name": properties.custom_sub_domain_name if properties else None,
            "provisioning_state": properties.provisioning_state if properties else None,
        }

    def get_instance_by_id(self, subscription: SubscriptionInfo, resource_id: str) -> AzureResourceInfo:
        """Look up an account of the subscription by its canonical id.

        Raises:
            ResourceNotFoundError: If no account with that id exists
        """
        for resource in self.list_instances(subscription):
            if resource.id.lower() == resource_id.lower():
                return resource
        raise ResourceNotFoundError(f"Resource {resource_id} was not found")

    @staticmethod
    def portal_url(resource: AzureResourceInfo) -> str:
        """Azure portal link of the account overview."""
        return f"{PORTAL_URL}/#@{resource.tenant_id}/resource{resource.id}/overview"

    def validate_instance_name(self, subscription: SubscriptionInfo, name: str) -> str | None:
        """Validate a new account name.

        Syntactic rules are checked first; only a syntactically valid name
        is checked against the accounts of the subscription.

        Returns:
            An error message, or None if the name can be used
        """
        error = check_instance_name(name)
        if error:
            return error
        for account in self._list_accounts(subscription):
            if (account.name or "").lower() == name.lower():
                return f"The name {name} is already in use in this subscription."
        return None

    def validate_resource_group_name(self, subscription: SubscriptionInfo, name: str) -> str | None:
        """Validate a new resource group name.

        Returns:
            An error message, or None if the name can be used
        """
        error = check_resource_group_name(name)
        if error:
            return error
        if self.resource_manager.check_resource_group_exists(subscription, name):
            return f"The resource group {name} already exists."
        return None

    def _list_accounts(self, subscription: SubscriptionInfo) -> list[Any]:
        client = self._client(subscription)
        try:
            return call_with_retry(
                lambda: list(client.accounts.list()),
                self._retry_config.api,
                "List Cognitive Services accounts",
                sleep=self._sleep,
            )
        except AzureError as e:
            safe_error = LogSanitizer.create_safe_error_message(
                e, f"Unable to list resources in subscription {subscription.name}"
            )
            raise CloudServiceError(safe_error, source="resource", name="ListResources") from e

    def _handle_get_exception(self, e: AzureError, resource: AzureResourceInfo) -> NoReturn:
        """Map SDK errors of the property lookup to toolkit errors.

        Raises:
            Always
        """
        if isinstance(e, HttpResponseError) and e.status_code == 404:
            raise ResourceNotFoundError(f"Resource {resource.name} was not found") from e
        safe_error = LogSanitizer.create_safe_error_message(
            e, f"Unable to retrieve properties of {resource.name}"
        )
        raise CloudServiceError(safe_error, source="resource", name="GetResource") from e

    def _handle_key_exception(self, e: AzureError, resource: AzureResourceInfo) -> NoReturn:
        """Map SDK errors of the key retrieval to toolkit errors.

        Raises:
            Always
        """
        status_code = e.status_code if isinstance(e, HttpResponseError) else None
        if status_code == 404:
            raise ResourceNotFoundError(
                f"Resource {resource.name} was not found. It may have been deleted."
            ) from e
        if isinstance(e, ClientAuthenticationError) or status_code in (401, 403):
            raise KeyAccessDeniedError(
                f"Permission denied listing keys of {resource.name}. "
                f"Ask for the 'Cognitive Services Contributor' role on the resource."
            ) from e
        safe_error = LogSanitizer.create_safe_error_message(
            e, f"Unable to retrieve keys and region for {resource.name}"
        )
        raise CloudServiceError(safe_error, source="configure", name="FetchKeys") from e

    def _to_resource_info(self, account: Any, subscription: SubscriptionInfo) -> AzureResourceInfo:
        return AzureResourceInfo(
            id=account.id,
            name=account.name,
            subscription_id=subscription.id,
            subscription_name=subscription.name,
            tenant_id=subscription.tenant_id,
            region=account.location,
            account_type=AccountType.from_kind(account.kind),
            sku=account.sku.name if account.sku else "",
        )

    def _client(self, subscription: SubscriptionInfo) -> Any:
        return self._client_for(subscription.tenant_id, subscription.id)

    def _client_for(self, tenant_id: str, subscription_id: str) -> Any:
        session = self.session_provider.require_signed_in(tenant_id)
        return self._client_factory(session, subscription_id)


__all__ = ["PORTAL_URL", "SpeechResourceManager", "sku_name"]
