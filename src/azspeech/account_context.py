"""Session-scoped working state.

AccountContext holds the selected subscription (at most one) and the
selected resource (at most one) of the current process. Re-selecting
replaces the previous value. Signing out clears both.

Readers must not cache these values across prompts: the selection can
change while a prompt is open.
"""

import logging

from azspeech.auth_models import LoginStatus
from azspeech.models import AzureResourceInfo, SubscriptionInfo
from azspeech.session_provider import SessionProvider

logger = logging.getLogger(__name__)


class AccountContext:
    """Working state passed to the selection and provisioning steps."""

    LISTENER_KEY = "account-context"

    def __init__(self, session_provider: SessionProvider):
        self.session_provider = session_provider
        self._subscription: SubscriptionInfo | None = None
        self._resource: AzureResourceInfo | None = None
        session_provider.add_status_listener(self.LISTENER_KEY, self._on_status_changed)

    @property
    def subscription(self) -> SubscriptionInfo | None:
        return self._subscription

    @property
    def resource(self) -> AzureResourceInfo | None:
        return self._resource

    def select_subscription(self, subscription: SubscriptionInfo) -> None:
        if self._subscription is not None and self._subscription.id != subscription.id:
            # A resource belongs to exactly one subscription
            self._resource = None
        self._subscription = subscription
        logger.debug(f"Selected subscription: {subscription.name} ({subscription.id})")

    def select_resource(self, resource: AzureResourceInfo) -> None:
        self._resource = resource
        logger.debug(f"Selected resource: {resource.id}")

    def clear(self) -> None:
        self._subscription = None
        self._resource = None

    def _on_status_changed(self, status: LoginStatus) -> None:
        if status == LoginStatus.SIGNED_OUT:
            self.clear()


__all__ = ["AccountContext"]
