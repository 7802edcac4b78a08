"""Unit tests for selection_resolver module."""

from datetime import UTC, datetime
from unittest.mock import Mock

import pytest

from azspeech.account_context import AccountContext
from azspeech.auth_models import LoginStatus, LoginStatusInfo
from azspeech.errors import (
    NoPricingTierAvailableError,
    NoSubscriptionFoundError,
    UnknownSubscriptionError,
    UserCancelledError,
)
from azspeech.interaction_handler import CANCEL, CREATE_NEW, MockInteractionHandler
from azspeech.models import ResourceGroupInfo, SubscriptionInfo
from azspeech.selection_resolver import ResolutionState, SelectionResolver, utc_timestamp

NOW = datetime(2024, 1, 2, 3, 4, 5, tzinfo=UTC)
TIMESTAMP = "20240102030405"


@pytest.fixture
def directory(subscription):
    directory = Mock()
    directory.list_subscriptions.return_value = [subscription]
    directory.get_subscription.return_value = subscription
    return directory


@pytest.fixture
def resource_manager():
    manager = Mock()
    manager.list_resource_groups.return_value = [ResourceGroupInfo("rg1", "eastus")]
    manager.list_available_regions.return_value = ["eastus", "westus"]
    manager.list_available_skus.return_value = ["S0 Standard", "F0 Free"]
    manager.check_resource_group_exists.return_value = False
    return manager


@pytest.fixture
def speech_resources():
    resources = Mock()
    resources.validate_resource_group_name.return_value = None
    resources.validate_instance_name.return_value = None
    return resources


@pytest.fixture
def make_resolver(mock_session_provider, directory, resource_manager, speech_resources):
    def make(interaction=None):
        return SelectionResolver(
            AccountContext(mock_session_provider),
            directory,
            resource_manager,
            speech_resources,
            interaction or MockInteractionHandler(),
            clock=lambda: NOW,
        )

    return make


class TestUtcTimestamp:
    """Tests for utc_timestamp."""

    def test_format(self):
        assert utc_timestamp(NOW) == TIMESTAMP


class TestSelectSubscription:
    """Tests for select_subscription and set_subscription."""

    def test_single_subscription_auto_selected(self, make_resolver, subscription):
        """Test no prompt when exactly one subscription exists."""
        interaction = MockInteractionHandler()
        resolver = make_resolver(interaction)

        assert resolver.select_subscription() == subscription

        assert interaction.interactions == []
        assert resolver.context.subscription == subscription
        assert resolver.state == ResolutionState.SUBSCRIPTION_CHOSEN

    def test_no_subscription(self, make_resolver, directory):
        directory.list_subscriptions.return_value = []
        resolver = make_resolver()

        with pytest.raises(NoSubscriptionFoundError, match="We couldn't find a subscription."):
            resolver.select_subscription()

    def test_multiple_subscriptions_prompt(self, make_resolver, directory, subscription):
        other = SubscriptionInfo(id="s2", tenant_id="t2", name="Fabrikam")
        directory.list_subscriptions.return_value = [subscription, other]
        interaction = MockInteractionHandler(choice_responses=["s2"])
        resolver = make_resolver(interaction)

        assert resolver.select_subscription() == other

        prompt = interaction.get_interactions_by_type("choice")[0]
        assert prompt["message"] == "Select Subscription"
        assert [o.id for o in prompt["options"]] == ["s1", "s2"]

    def test_reuses_current_selection(self, make_resolver, directory, subscription):
        resolver = make_resolver()
        resolver.context.select_subscription(subscription)

        assert resolver.select_subscription() == subscription
        directory.list_subscriptions.assert_not_called()

    def test_reselect_ignores_current(self, make_resolver, directory, subscription):
        resolver = make_resolver()
        resolver.context.select_subscription(subscription)

        resolver.select_subscription(reuse_current=False)

        directory.list_subscriptions.assert_called_once()

    def test_cancel(self, make_resolver, directory, subscription):
        directory.list_subscriptions.return_value = [
            subscription,
            SubscriptionInfo(id="s2", tenant_id="t1", name="Fabrikam"),
        ]
        resolver = make_resolver(MockInteractionHandler(choice_responses=[CANCEL]))

        with pytest.raises(UserCancelledError):
            resolver.select_subscription()

        assert resolver.context.subscription is None

    def test_set_subscription(self, make_resolver, directory, subscription):
        resolver = make_resolver()

        assert resolver.set_subscription("s1") == subscription

        directory.get_subscription.assert_called_once_with("s1")
        assert resolver.context.subscription == subscription

    def test_set_unknown_subscription(self, make_resolver, directory):
        directory.get_subscription.side_effect = UnknownSubscriptionError("not found")
        resolver = make_resolver()

        with pytest.raises(UnknownSubscriptionError):
            resolver.set_subscription("s9")


class TestSelectResourceGroup:
    """Tests for select_resource_group."""

    def test_existing_group(self, make_resolver, subscription):
        interaction = MockInteractionHandler(choice_responses=["rg1"])
        resolver = make_resolver(interaction)

        assert resolver.select_resource_group(subscription) == "rg1"

        prompt = interaction.interactions[0]
        assert prompt["type"] == "choose_or_create"
        assert prompt["create_label"] == "Create a new Resource Group"

    def test_create_new_group(self, make_resolver, resource_manager, subscription):
        """Test the default name is checked before the user is asked."""
        interaction = MockInteractionHandler(choice_responses=[CREATE_NEW], text_responses=["rg2"])
        resolver = make_resolver(interaction)

        assert resolver.select_resource_group(subscription) == "rg2"

        default = f"jane.doe_speechaiproj_rg_{TIMESTAMP}"
        resource_manager.check_resource_group_exists.assert_called_once_with(subscription, default)
        assert interaction.get_interactions_by_type("text")[0]["default"] == default

    def test_accept_default_name(self, make_resolver, subscription):
        interaction = MockInteractionHandler(choice_responses=[CREATE_NEW], text_responses=[""])
        resolver = make_resolver(interaction)

        assert resolver.select_resource_group(subscription) == (
            f"jane.doe_speechaiproj_rg_{TIMESTAMP}"
        )

    def test_new_name_validated(self, make_resolver, speech_resources, subscription):
        """Test an existing name is rejected and the user asked again."""
        speech_resources.validate_resource_group_name.side_effect = (
            lambda sub, value: "The resource group rg1 already exists." if value == "rg1" else None
        )
        interaction = MockInteractionHandler(
            choice_responses=[CREATE_NEW], text_responses=["rg1", "rg2"]
        )
        resolver = make_resolver(interaction)

        assert resolver.select_resource_group(subscription) == "rg2"
        errors = [t["error"] for t in interaction.get_interactions_by_type("text")]
        assert errors == ["The resource group rg1 already exists.", None]


class TestSelectRegionAndSku:
    """Tests for select_region and select_sku."""

    def test_single_region_auto_selected(self, make_resolver, resource_manager, subscription):
        resource_manager.list_available_regions.return_value = ["eastus"]
        interaction = MockInteractionHandler()
        resolver = make_resolver(interaction)

        assert resolver.select_region(subscription) == "eastus"
        assert interaction.interactions == []

    def test_region_prompt(self, make_resolver, subscription):
        interaction = MockInteractionHandler(choice_responses=["westus"])
        resolver = make_resolver(interaction)

        assert resolver.select_region(subscription) == "westus"
        assert interaction.interactions[0]["message"] == "Select a region"

    def test_no_region(self, make_resolver, resource_manager, subscription):
        resource_manager.list_available_regions.return_value = []
        resolver = make_resolver()

        with pytest.raises(NoPricingTierAvailableError) as exc_info:
            resolver.select_region(subscription)

        assert exc_info.value.error_code == "provision.NoRegionAvailable"

    def test_single_sku_auto_selected(self, make_resolver, resource_manager, subscription):
        resource_manager.list_available_skus.return_value = ["F0 Free"]
        resolver = make_resolver()

        assert resolver.select_sku(subscription, "eastus") == "F0 Free"

    def test_sku_prompt(self, make_resolver, subscription):
        interaction = MockInteractionHandler(choice_responses=["S0 Standard"])
        resolver = make_resolver(interaction)

        assert resolver.select_sku(subscription, "eastus") == "S0 Standard"
        assert interaction.interactions[0]["message"] == "Select a pricing tier"

    def test_no_sku(self, make_resolver, resource_manager, subscription):
        resource_manager.list_available_skus.side_effect = NoPricingTierAvailableError("none")
        resolver = make_resolver()

        with pytest.raises(NoPricingTierAvailableError):
            resolver.select_sku(subscription, "eastus")


class TestDefaultNames:
    """Tests for generated default names."""

    def test_default_instance_name(self, make_resolver):
        """Test the user name is turned into a valid account name."""
        assert make_resolver().default_instance_name() == (
            f"jane-doe-speechaiproj-ais-{TIMESTAMP}"
        )

    def test_default_names_without_account(self, make_resolver, mock_session_provider):
        mock_session_provider.get_status.return_value = LoginStatusInfo(LoginStatus.SIGNED_OUT)
        resolver = make_resolver()

        assert resolver.default_resource_group_name() == f"dummy_speechaiproj_rg_{TIMESTAMP}"
        assert resolver.default_instance_name() == f"dummy-speechaiproj-ais-{TIMESTAMP}"

    def test_long_user_name_truncated(self, make_resolver, mock_session_provider):
        mock_session_provider.get_status.return_value = LoginStatusInfo(
            LoginStatus.SIGNED_IN, {"upn": "a" * 80 + "@contoso.com"}
        )

        name = make_resolver().default_instance_name()

        assert len(name) == 63
        assert name.endswith(f"-speechaiproj-ais-{TIMESTAMP}")


class TestSelectInstance:
    """Tests for select_instance."""

    def test_select_existing(self, make_resolver, speech_resource):
        interaction = MockInteractionHandler(choice_responses=[speech_resource.id])
        resolver = make_resolver(interaction)

        assert resolver.select_instance([speech_resource]) == speech_resource

        assert resolver.context.resource == speech_resource
        assert resolver.state == ResolutionState.READY
        prompt = interaction.interactions[0]
        assert prompt["message"] == "Select a Speech Resource"
        assert prompt["create_label"] == "Create a new Azure AI Service"

    def test_create_new(self, make_resolver, speech_resource):
        resolver = make_resolver(MockInteractionHandler(choice_responses=[CREATE_NEW]))

        assert resolver.select_instance([speech_resource]) is None
        assert resolver.context.resource is None


class TestResolveNewResourcePlan:
    """Tests for resolve_new_resource_plan."""

    def test_order_and_plan(self, make_resolver, subscription):
        """Test resource group, region, name and SKU are asked in that order."""
        interaction = MockInteractionHandler(
            choice_responses=[CREATE_NEW, "eastus", "S0 Standard"],
            text_responses=["rg1", "myspeech"],
        )
        resolver = make_resolver(interaction)

        plan = resolver.resolve_new_resource_plan(subscription)

        assert (plan.resource_group, plan.region, plan.name, plan.sku) == (
            "rg1",
            "eastus",
            "myspeech",
            "S0 Standard",
        )
        assert [i["message"] for i in interaction.interactions] == [
            "Select a resource group",
            "Enter a resource group name or use the default one",
            "Select a region",
            "Enter a name for the Azure AI Service instance or use the default one",
            "Select a pricing tier",
        ]
        assert resolver.state == ResolutionState.READY

    def test_skus_listed_for_chosen_region(self, make_resolver, resource_manager, subscription):
        interaction = MockInteractionHandler(
            choice_responses=["rg1", "westus", "F0 Free"], text_responses=[""]
        )

        make_resolver(interaction).resolve_new_resource_plan(subscription)

        resource_manager.list_available_skus.assert_called_once_with(subscription, "westus")

    def test_cancel_at_name(self, make_resolver, subscription):
        interaction = MockInteractionHandler(
            choice_responses=["rg1", "eastus"], text_responses=[CANCEL]
        )
        resolver = make_resolver(interaction)

        with pytest.raises(UserCancelledError):
            resolver.resolve_new_resource_plan(subscription)

        assert resolver.state == ResolutionState.REGION_CHOSEN
