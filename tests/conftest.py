"""
Shared test fixtures for azspeech tests.

This module provides common fixtures used across the unit tests:
- Fake credentials and JWT access tokens
- Sample subscriptions and resources
- Zero-delay retry configuration
- Mocked session provider for client tests
"""

import base64
import json
from types import SimpleNamespace
from unittest.mock import Mock

import pytest
from azure.core.credentials import AccessToken

from azspeech.auth_models import LoginStatus, LoginStatusInfo
from azspeech.models import AccountType, AzureResourceInfo, SubscriptionInfo
from azspeech.retry_config import RetryConfig, RetryPolicy

RESOURCE_ID = (
    "/subscriptions/s1/resourceGroups/rg1/providers/"
    "Microsoft.CognitiveServices/accounts/myspeech"
)


def make_jwt(claims: dict) -> str:
    """Build an unsigned JWT carrying ``claims``."""

    def encode(part: dict) -> str:
        return base64.urlsafe_b64encode(json.dumps(part).encode()).rstrip(b"=").decode()

    return f"{encode({'alg': 'none', 'typ': 'JWT'})}.{encode(claims)}.signature"


def make_account(
    name: str = "myspeech",
    kind: str = "AIServices",
    location: str = "eastus",
    sku: str = "S0",
    resource_group: str = "rg1",
    subscription_id: str = "s1",
) -> SimpleNamespace:
    """Fake azure-mgmt-cognitiveservices Account."""
    return SimpleNamespace(
        id=(
            f"/subscriptions/{subscription_id}/resourceGroups/{resource_group}/providers/"
            f"Microsoft.CognitiveServices/accounts/{name}"
        ),
        name=name,
        kind=kind,
        location=location,
        sku=SimpleNamespace(name=sku),
        properties=SimpleNamespace(
            endpoint=f"https://{name}.cognitiveservices.azure.com/",
            custom_sub_domain_name=name,
            provisioning_state="Succeeded",
        ),
    )


# ============================================================================
# CREDENTIAL FIXTURES
# ============================================================================


@pytest.fixture
def account_claims():
    """Claims of the signed-in test account."""
    return {"upn": "jane.doe@contoso.com", "tid": "t1", "oid": "o1", "aud": "management"}


@pytest.fixture
def fake_credential(account_claims):
    """TokenCredential returning a JWT for the test account.

    Never performs a real sign-in.
    """
    credential = Mock()
    credential.get_token.return_value = AccessToken(make_jwt(account_claims), 9999999999)
    return credential


@pytest.fixture
def credential_factory(fake_credential):
    """Credential factory returning fake_credential."""
    return Mock(return_value=fake_credential)


# ============================================================================
# DOMAIN FIXTURES
# ============================================================================


@pytest.fixture
def subscription():
    """Single subscription in tenant t1."""
    return SubscriptionInfo(id="s1", tenant_id="t1", name="Contoso")


@pytest.fixture
def speech_resource():
    """Existing AI Services account in rg1."""
    return AzureResourceInfo(
        id=RESOURCE_ID,
        name="myspeech",
        subscription_id="s1",
        subscription_name="Contoso",
        tenant_id="t1",
        region="eastus",
        account_type=AccountType.AI_SERVICES,
        sku="S0",
    )


@pytest.fixture
def zero_delay_retry():
    """Retry configuration that never sleeps."""
    return RetryConfig(
        resource_group_poll=RetryPolicy(max_attempts=5, delay=0.0),
        api=RetryPolicy(max_attempts=3, delay=0.0, backoff=2.0),
    )


@pytest.fixture
def mock_session_provider():
    """Session provider that is always signed in.

    require_signed_in() and get_session() return a session bound to the
    requested tenant.
    """
    provider = Mock()
    provider.require_signed_in.side_effect = lambda tenant_id=None: SimpleNamespace(
        tenant_id=tenant_id
    )
    provider.get_session.side_effect = lambda tenant_id=None, **kwargs: SimpleNamespace(
        tenant_id=tenant_id
    )
    provider.get_status.return_value = LoginStatusInfo(
        status=LoginStatus.SIGNED_IN, account_info={"upn": "jane.doe@contoso.com"}
    )
    return provider
