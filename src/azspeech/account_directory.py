"""Tenant and subscription listing.

Subscriptions are enumerated per tenant with a session bound to that tenant;
cross-tenant calls are rejected by Azure. A tenant whose enumeration fails
(no consent, conditional access, MFA required) is skipped, so the result
may be partial.
"""

import logging
import time
from collections.abc import Callable
from typing import Any

from azure.core.exceptions import AzureError
from azure.mgmt.resource import SubscriptionClient

from azspeech.errors import CloudServiceError, SpeechToolkitError, UnknownSubscriptionError
from azspeech.log_sanitizer import LogSanitizer
from azspeech.models import SubscriptionInfo
from azspeech.retry_config import RetryPolicy, get_retry_config
from azspeech.retry_handler import call_with_retry
from azspeech.session_provider import SessionProvider

logger = logging.getLogger(__name__)


class AccountDirectory:
    """List tenants and the subscriptions visible to the signed-in identity."""

    def __init__(
        self,
        session_provider: SessionProvider,
        client_factory: Callable[..., Any] = SubscriptionClient,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.session_provider = session_provider
        self._client_factory = client_factory
        self._retry_policy = retry_policy or get_retry_config().api
        self._sleep = sleep

    def list_tenants(self) -> list[str]:
        """List the ids of the tenants the identity belongs to.

        Raises:
            NotSignedInError: If nobody is signed in
            CloudServiceError: If the tenant listing fails
        """
        session = self.session_provider.require_signed_in()
        client = self._client_factory(session)
        try:
            tenants = call_with_retry(
                lambda: list(client.tenants.list()),
                self._retry_policy,
                "List tenants",
                sleep=self._sleep,
            )
        except AzureError as e:
            safe_error = LogSanitizer.create_safe_error_message(e, "Failed to list tenants")
            raise CloudServiceError(safe_error, source="login", name="ListTenants") from e

        tenant_ids: list[str] = []
        for tenant in tenants:
            if tenant.tenant_id and tenant.tenant_id not in tenant_ids:
                tenant_ids.append(tenant.tenant_id)
        logger.debug(f"Found {len(tenant_ids)} tenant(s)")
        return tenant_ids

    def list_subscriptions(self) -> list[SubscriptionInfo]:
        """List subscriptions across all tenants, sorted by name.

        Sorting is case-sensitive so the order is deterministic. Duplicate
        subscription ids are reported once.
        """
        subscriptions: dict[str, SubscriptionInfo] = {}
        for tenant_id in self.list_tenants():
            try:
                found = self._list_tenant_subscriptions(tenant_id)
            except (AzureError, SpeechToolkitError) as e:
                logger.warning(
                    f"Skipping tenant {tenant_id}: {LogSanitizer.sanitize_exception(e)}"
                )
                continue
            for subscription in found:
                subscriptions.setdefault(subscription.id, subscription)

        result = sorted(subscriptions.values(), key=lambda s: s.name)
        logger.info(f"Found {len(result)} subscription(s)")
        return result

    def get_subscription(self, subscription_id: str) -> SubscriptionInfo:
        """Look up one subscription by id.

        Raises:
            UnknownSubscriptionError: If the subscription is not visible
        """
        for subscription in self.list_subscriptions():
            if subscription.id.lower() == subscription_id.lower():
                return subscription
        raise UnknownSubscriptionError(
            f"Subscription {subscription_id} not found or not accessible to the signed-in account"
        )

    def _list_tenant_subscriptions(self, tenant_id: str) -> list[SubscriptionInfo]:
        session = self.session_provider.get_session(tenant_id=tenant_id, silent=True)
        if session is None:
            logger.debug(f"No session for tenant {tenant_id}, skipping")
            return []

        client = self._client_factory(session)
        raw = call_with_retry(
            lambda: list(client.subscriptions.list()),
            self._retry_policy,
            f"List subscriptions in tenant {tenant_id}",
            sleep=self._sleep,
        )
        return [
            SubscriptionInfo(
                id=sub.subscription_id,
                tenant_id=sub.tenant_id or tenant_id,
                name=sub.display_name or sub.subscription_id,
            )
            for sub in raw
            if (sub.tenant_id or tenant_id) == tenant_id
        ]


__all__ = ["AccountDirectory"]
