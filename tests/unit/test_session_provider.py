"""Unit tests for session_provider module."""

from unittest.mock import Mock

import pytest
from azure.core.credentials import AccessToken
from azure.core.exceptions import ClientAuthenticationError, ServiceRequestError
from azure.identity import AuthenticationRequiredError

from azspeech.auth_models import MANAGEMENT_SCOPE, AuthConfig, AuthMethod, LoginStatus
from azspeech.credential_factory import CredentialFactoryError
from azspeech.errors import LoginError, NotSignedInError, UserCancelledError
from azspeech.interaction_handler import MockInteractionHandler
from azspeech.session_provider import SessionProvider, decode_token_claims, is_cancellation
from conftest import make_jwt

INTERACTIVE = AuthConfig(method=AuthMethod.INTERACTIVE_BROWSER)


def record_transitions(provider):
    transitions = []
    provider.add_status_listener("test", transitions.append)
    return transitions


class TestDecodeTokenClaims:
    """Tests for decode_token_claims."""

    def test_keeps_account_claims_only(self):
        token = make_jwt({"upn": "jane@contoso.com", "tid": "t1", "aud": "x", "exp": 1})
        assert decode_token_claims(token) == {"upn": "jane@contoso.com", "tid": "t1"}

    @pytest.mark.parametrize("token", ["opaque-token", "a.!!!.c", ""])
    def test_not_a_jwt(self, token):
        assert decode_token_claims(token) == {}


class TestIsCancellation:
    """Tests for is_cancellation."""

    @pytest.mark.parametrize(
        "message",
        ["AADSTS65004: User did not consent", "access_denied", "User canceled authentication"],
    )
    def test_cancellation_messages(self, message):
        assert is_cancellation(ClientAuthenticationError(message))

    def test_other_failure(self):
        assert not is_cancellation(ClientAuthenticationError("AADSTS50076: MFA required"))


class TestSilentSession:
    """Tests for the silent path."""

    def test_silent_session_signs_in(self, credential_factory, fake_credential):
        """Test an available CLI sign-in is picked up without prompting."""
        provider = SessionProvider(AuthConfig(), credential_factory=credential_factory)
        transitions = record_transitions(provider)

        session = provider.get_session(silent=True)

        assert session is not None
        assert session.credential is fake_credential
        assert provider.status == LoginStatus.SIGNED_IN
        assert transitions == [LoginStatus.SIGNED_IN]
        assert provider.get_status().email == "jane.doe@contoso.com"

    def test_session_cached_per_tenant(self, credential_factory, fake_credential):
        """Test one token request per (tenant, scopes)."""
        provider = SessionProvider(AuthConfig(), credential_factory=credential_factory)

        first = provider.get_session(tenant_id="t1", silent=True)
        second = provider.get_session(tenant_id="t1", silent=True)

        assert first is second
        fake_credential.get_token.assert_called_once_with(MANAGEMENT_SCOPE, tenant_id="t1")

    def test_sessions_share_one_credential(self, credential_factory):
        provider = SessionProvider(AuthConfig(), credential_factory=credential_factory)

        home = provider.get_session(silent=True)
        other = provider.get_session(tenant_id="t2", silent=True)

        assert home.credential is other.credential
        assert other.tenant_id == "t2"
        credential_factory.assert_called_once()

    def test_silent_auth_failure_returns_none(self, credential_factory, fake_credential):
        """Test a missing CLI sign-in yields None, not an error."""
        fake_credential.get_token.side_effect = ClientAuthenticationError("Please run 'az login'")
        provider = SessionProvider(AuthConfig(), credential_factory=credential_factory)
        transitions = record_transitions(provider)

        assert provider.get_session(silent=True) is None
        assert provider.status == LoginStatus.SIGNED_OUT
        assert transitions == []

    def test_silent_factory_failure_returns_none(self):
        factory = Mock(side_effect=CredentialFactoryError("az not installed"))
        provider = SessionProvider(AuthConfig(), credential_factory=factory)

        assert provider.get_session(silent=True) is None

    def test_silent_never_prompts_for_interactive_method(self, credential_factory):
        """Test no browser is opened on the silent path."""
        provider = SessionProvider(INTERACTIVE, credential_factory=credential_factory)

        assert provider.get_session(silent=True) is None
        credential_factory.assert_not_called()

    def test_silent_network_failure_raises(self, credential_factory, fake_credential):
        fake_credential.get_token.side_effect = ServiceRequestError("connection reset")
        provider = SessionProvider(AuthConfig(), credential_factory=credential_factory)

        with pytest.raises(LoginError):
            provider.get_session(silent=True)

    def test_empty_token_is_no_session(self, credential_factory, fake_credential):
        fake_credential.get_token.return_value = AccessToken("", 0)
        provider = SessionProvider(AuthConfig(), credential_factory=credential_factory)

        assert provider.get_session(silent=True) is None


class TestInteractiveSignIn:
    """Tests for the interactive path and login()."""

    def test_interactive_sign_in_transitions(self, credential_factory):
        """Test SignedOut -> SigningIn -> SignedIn, each reported once."""
        provider = SessionProvider(INTERACTIVE, credential_factory=credential_factory)
        transitions = record_transitions(provider)

        session = provider.get_session(create_if_none=True)

        assert session is not None
        assert transitions == [LoginStatus.SIGNING_IN, LoginStatus.SIGNED_IN]

    def test_consent_declined_is_cancellation(self, credential_factory, fake_credential):
        fake_credential.get_token.side_effect = ClientAuthenticationError(
            "AADSTS65004: User did not consent"
        )
        provider = SessionProvider(INTERACTIVE, credential_factory=credential_factory)
        transitions = record_transitions(provider)

        with pytest.raises(UserCancelledError):
            provider.get_session(create_if_none=True)

        assert provider.status == LoginStatus.SIGNED_OUT
        assert transitions == [LoginStatus.SIGNING_IN, LoginStatus.SIGNED_OUT]

    def test_keyboard_interrupt_is_cancellation(self, credential_factory, fake_credential):
        fake_credential.get_token.side_effect = KeyboardInterrupt()
        provider = SessionProvider(INTERACTIVE, credential_factory=credential_factory)

        with pytest.raises(UserCancelledError):
            provider.get_session(create_if_none=True)

    def test_identity_provider_failure(self, credential_factory, fake_credential):
        """Test non-consent failures are login errors with sanitized messages."""
        fake_credential.get_token.side_effect = ClientAuthenticationError(
            "AADSTS50076: MFA required, client_secret=abc123"
        )
        provider = SessionProvider(INTERACTIVE, credential_factory=credential_factory)

        with pytest.raises(LoginError) as exc_info:
            provider.get_session(create_if_none=True)

        assert "abc123" not in exc_info.value.message
        assert provider.status == LoginStatus.SIGNED_OUT

    def test_login_declined(self, credential_factory):
        """Test declining the sign-in prompt cancels without signing in."""
        interaction = MockInteractionHandler(confirm_responses=[False])
        provider = SessionProvider(
            INTERACTIVE, credential_factory=credential_factory, interaction=interaction
        )

        with pytest.raises(UserCancelledError) as exc_info:
            provider.login(confirm=True)

        assert exc_info.value.error_code == "login.UserCancel"
        credential_factory.assert_not_called()

    def test_login_confirmed(self, credential_factory):
        interaction = MockInteractionHandler(confirm_responses=[True])
        provider = SessionProvider(
            INTERACTIVE, credential_factory=credential_factory, interaction=interaction
        )

        provider.login(confirm=True)

        assert provider.is_signed_in()
        assert "won't be charged" in interaction.interactions[0]["message"]

    def test_login_reuses_silent_session(self, credential_factory):
        """Test no prompt when already signed in."""
        interaction = MockInteractionHandler()
        provider = SessionProvider(
            AuthConfig(), credential_factory=credential_factory, interaction=interaction
        )

        provider.login(confirm=True)

        assert interaction.interactions == []

    def test_login_without_token(self, credential_factory, fake_credential):
        fake_credential.get_token.return_value = AccessToken("", 0)
        provider = SessionProvider(INTERACTIVE, credential_factory=credential_factory)

        with pytest.raises(LoginError) as exc_info:
            provider.login(confirm=False)

        assert exc_info.value.error_code == "login.LoginTimeout"

    def test_interactive_sign_in_authenticates_explicitly(
        self, credential_factory, fake_credential
    ):
        provider = SessionProvider(INTERACTIVE, credential_factory=credential_factory)

        provider.login(confirm=False, tenant_id="t1")

        fake_credential.authenticate.assert_called_once_with(
            scopes=[MANAGEMENT_SCOPE], tenant_id="t1"
        )

    def test_silent_session_for_new_tenant_never_prompts(
        self, credential_factory, fake_credential
    ):
        """Test an uncached tenant returns None instead of starting a sign-in."""
        provider = SessionProvider(INTERACTIVE, credential_factory=credential_factory)
        provider.login(confirm=False)
        fake_credential.authenticate.reset_mock()
        fake_credential.get_token.side_effect = AuthenticationRequiredError(
            scopes=[MANAGEMENT_SCOPE]
        )

        assert provider.get_session(tenant_id="other-tenant", silent=True) is None

        fake_credential.authenticate.assert_not_called()
        assert provider.status == LoginStatus.SIGNED_IN

    def test_azure_cli_never_authenticates(self, credential_factory, fake_credential):
        provider = SessionProvider(AuthConfig(), credential_factory=credential_factory)

        provider.get_session(create_if_none=True)

        fake_credential.authenticate.assert_not_called()


class TestSignOut:
    """Tests for logout(), require_signed_in() and refresh_status()."""

    def test_logout(self, credential_factory):
        interaction = MockInteractionHandler(confirm_responses=[True])
        provider = SessionProvider(
            AuthConfig(), credential_factory=credential_factory, interaction=interaction
        )
        provider.get_session(silent=True)
        transitions = record_transitions(provider)

        assert provider.logout() is True

        assert transitions == [LoginStatus.SIGNED_OUT]
        assert provider.get_status().account_info is None
        assert "jane.doe@contoso.com" in interaction.interactions[0]["message"]

    def test_logout_disables_silent_sign_in(self, credential_factory):
        """Test the CLI sign-in is not silently picked up after logout."""
        provider = SessionProvider(AuthConfig(), credential_factory=credential_factory)
        provider.get_session(silent=True)
        provider.logout(confirm=False)

        with pytest.raises(NotSignedInError):
            provider.require_signed_in()

    def test_logout_when_signed_out(self, credential_factory):
        provider = SessionProvider(INTERACTIVE, credential_factory=credential_factory)
        assert provider.logout(confirm=False) is False

    def test_logout_declined(self, credential_factory):
        interaction = MockInteractionHandler(confirm_responses=[False])
        provider = SessionProvider(
            AuthConfig(), credential_factory=credential_factory, interaction=interaction
        )
        provider.get_session(silent=True)

        with pytest.raises(UserCancelledError):
            provider.logout()

        assert provider.status == LoginStatus.SIGNED_IN

    def test_login_after_logout(self, credential_factory):
        provider = SessionProvider(AuthConfig(), credential_factory=credential_factory)
        provider.get_session(silent=True)
        provider.logout(confirm=False)

        provider.login(confirm=False)

        assert provider.require_signed_in() is not None

    def test_require_signed_in_binds_tenant(self, credential_factory):
        provider = SessionProvider(AuthConfig(), credential_factory=credential_factory)
        assert provider.require_signed_in("t1").tenant_id == "t1"

    def test_refresh_detects_external_sign_out(self, credential_factory, fake_credential):
        """Test 'az logout' elsewhere is noticed and reported once."""
        provider = SessionProvider(AuthConfig(), credential_factory=credential_factory)
        provider.get_session(silent=True)
        transitions = record_transitions(provider)
        fake_credential.get_token.side_effect = ClientAuthenticationError("Please run 'az login'")

        assert provider.refresh_status() == LoginStatus.SIGNED_OUT
        assert transitions == [LoginStatus.SIGNED_OUT]

    def test_refresh_when_still_signed_in(self, credential_factory):
        provider = SessionProvider(AuthConfig(), credential_factory=credential_factory)
        provider.get_session(silent=True)
        transitions = record_transitions(provider)

        assert provider.refresh_status() == LoginStatus.SIGNED_IN
        assert transitions == []


class TestStatusListeners:
    """Tests for status listener registration."""

    def test_reregistering_key_replaces_listener(self, credential_factory):
        provider = SessionProvider(AuthConfig(), credential_factory=credential_factory)
        first, second = Mock(), Mock()
        provider.add_status_listener("ui", first)
        provider.add_status_listener("ui", second)

        provider.get_session(silent=True)

        first.assert_not_called()
        second.assert_called_once_with(LoginStatus.SIGNED_IN)

    def test_removed_listener_not_called(self, credential_factory):
        provider = SessionProvider(AuthConfig(), credential_factory=credential_factory)
        listener = Mock()
        provider.add_status_listener("ui", listener)
        provider.remove_status_listener("ui")

        provider.get_session(silent=True)

        listener.assert_not_called()

    def test_failing_listener_does_not_break_sign_in(self, credential_factory):
        provider = SessionProvider(AuthConfig(), credential_factory=credential_factory)
        provider.add_status_listener("broken", Mock(side_effect=RuntimeError("boom")))
        other = Mock()
        provider.add_status_listener("other", other)

        assert provider.get_session(silent=True) is not None
        other.assert_called_once_with(LoginStatus.SIGNED_IN)
