"""Session provider for azspeech.

Owns the process-wide sign-in: one root credential created by the
CredentialFactory, a cache of Sessions keyed by (tenant, scopes) and the
login status (SignedOut / SigningIn / SignedIn).

Status changes are pushed to listeners registered by key, exactly once per
transition. Every privileged call re-validates the sign-in through
``require_signed_in()`` immediately before it runs instead of trusting a
status read earlier in the same operation.

Security:
- Sessions and tokens live in memory only
- Token claims are kept for display; the token itself is dropped
- All error messages pass through LogSanitizer
"""

import base64
import json
import logging
from collections.abc import Callable
from typing import Any

from azure.core.exceptions import AzureError, ClientAuthenticationError
from azure.identity import AuthenticationRequiredError

from azspeech.auth_models import (
    DEFAULT_SCOPES,
    AuthConfig,
    LoginStatus,
    LoginStatusInfo,
    Session,
)
from azspeech.credential_factory import CredentialFactory, CredentialFactoryError
from azspeech.errors import LoginError, NotSignedInError, UserCancelledError
from azspeech.interaction_handler import InteractionHandler
from azspeech.log_sanitizer import LogSanitizer

logger = logging.getLogger(__name__)

StatusListener = Callable[[LoginStatus], None]

# Claims kept from the management token for status display
ACCOUNT_CLAIMS = ("upn", "email", "unique_name", "preferred_username", "name", "tid", "oid")

# Identity provider messages meaning the user backed out of sign-in
CANCELLATION_MARKERS = (
    "did not consent",
    "user canceled",
    "user cancelled",
    "access_denied",
    "authentication_canceled",
)

LOGIN_PROMPT = (
    "Sign in to Azure to select or create an Azure AI Speech resource. "
    "You won't be charged until you confirm the resource creation. Continue?"
)


def decode_token_claims(token: str) -> dict[str, Any]:
    """Decode the account claims of a JWT access token.

    The signature is not verified; the claims are only used for display.

    Returns:
        The subset of ACCOUNT_CLAIMS present in the token, or an empty dict
        if the token is not a JWT
    """
    try:
        payload = token.split(".")[1]
        payload += "=" * (-len(payload) % 4)
        claims = json.loads(base64.urlsafe_b64decode(payload))
    except (IndexError, ValueError):
        return {}
    if not isinstance(claims, dict):
        return {}
    return {claim: claims[claim] for claim in ACCOUNT_CLAIMS if claim in claims}


def is_cancellation(error: BaseException) -> bool:
    """Check whether a sign-in error means the user declined or cancelled."""
    message = str(error).lower()
    return any(marker in message for marker in CANCELLATION_MARKERS)


class SessionProvider:
    """Obtain and cache authentication sessions for the signed-in identity.

    Example:
        >>> provider = SessionProvider(AuthConfig())
        >>> provider.get_session(silent=True)  # never prompts
        >>> session = provider.login(confirm=False)
        >>> tenant_session = provider.require_signed_in("<tenant-id>")
    """

    def __init__(
        self,
        auth_config: AuthConfig | None = None,
        credential_factory: Callable[..., Any] = CredentialFactory.create_credential,
        interaction: InteractionHandler | None = None,
    ):
        self.auth_config = auth_config or AuthConfig()
        self.interaction = interaction
        self._credential_factory = credential_factory
        self._credential: Any = None
        self._sessions: dict[tuple[str | None, tuple[str, ...]], Session] = {}
        self._account_info: dict[str, Any] | None = None
        self._status = LoginStatus.SIGNED_OUT
        self._listeners: dict[str, StatusListener] = {}
        self._signed_out_explicitly = False

    @property
    def status(self) -> LoginStatus:
        return self._status

    def get_session(
        self,
        scopes: tuple[str, ...] = DEFAULT_SCOPES,
        tenant_id: str | None = None,
        create_if_none: bool = False,
        silent: bool = False,
    ) -> Session | None:
        """Return a session for ``scopes`` and ``tenant_id``.

        Args:
            scopes: Token audiences of the session
            tenant_id: Tenant to bind the session to (None: home tenant)
            create_if_none: Sign in interactively if there is no session
            silent: Never prompt, return None instead

        Returns:
            The Session, or None when there is no session and prompting is
            not allowed

        Raises:
            UserCancelledError: If the user declined or cancelled sign-in
            LoginError: If the identity provider failed
        """
        scopes = tuple(scopes)
        cached = self._sessions.get((tenant_id, scopes))
        if cached is not None:
            return cached

        if silent or not create_if_none:
            return self._acquire_silent(scopes, tenant_id)
        return self._acquire_interactive(scopes, tenant_id)

    def login(self, confirm: bool = True, tenant_id: str | None = None) -> Session:
        """Sign in, asking the user first when ``confirm`` is set.

        Raises:
            UserCancelledError: If the user declined the confirmation or the
                sign-in
            LoginError: If sign-in failed or produced no session
        """
        existing = self.get_session(tenant_id=tenant_id, silent=True)
        if existing is not None:
            return existing

        if confirm and self.interaction is not None:
            if not self.interaction.confirm(LOGIN_PROMPT):
                raise UserCancelledError(source="login")

        session = self.get_session(tenant_id=tenant_id, create_if_none=True)
        if session is None:
            raise LoginError("Login took too long. Please try again.", name="LoginTimeout")
        logger.info(f"Signed in as {self.get_status().email or 'unknown account'}")
        return session

    def logout(self, confirm: bool = True) -> bool:
        """Forget the sign-in of this process.

        The Azure CLI's own sign-in is left untouched; after logout the
        silent path stays disabled until ``login()`` is called again.

        Returns:
            False if nobody was signed in, True otherwise

        Raises:
            UserCancelledError: If the user declined the confirmation
        """
        if self._status != LoginStatus.SIGNED_IN:
            return False

        if confirm and self.interaction is not None:
            email = self.get_status().email or "current account"
            if not self.interaction.confirm(f"Sign out of '{email}'?"):
                raise UserCancelledError(source="logout")

        self._signed_out_explicitly = True
        self._forget()
        logger.info("Signed out")
        return True

    def is_signed_in(self) -> bool:
        """Silent check; never prompts."""
        return self.get_session(silent=True) is not None

    def require_signed_in(self, tenant_id: str | None = None) -> Session:
        """Re-validate the sign-in and return a session for ``tenant_id``.

        Call this immediately before a privileged call.

        Raises:
            NotSignedInError: If nobody is signed in
            LoginError: If the identity provider failed
        """
        session = self.get_session(tenant_id=tenant_id, silent=True)
        if session is None:
            raise NotSignedInError("Not signed in. Run 'azspeech login' first.")
        return session

    def get_status(self) -> LoginStatusInfo:
        account_info = dict(self._account_info) if self._account_info else None
        return LoginStatusInfo(status=self._status, account_info=account_info)

    def refresh_status(self) -> LoginStatus:
        """Re-check the identity silently and emit a transition if it changed.

        Cached sessions are dropped first so an external sign-out (for
        example ``az logout``) is noticed.
        """
        if self._signed_out_explicitly:
            return self._status

        self._sessions.clear()
        if self._acquire_silent(DEFAULT_SCOPES, None) is None:
            self._forget()
        return self._status

    def add_status_listener(self, key: str, callback: StatusListener) -> None:
        """Register ``callback`` for status changes; re-registering a key replaces it."""
        self._listeners[key] = callback

    def remove_status_listener(self, key: str) -> None:
        self._listeners.pop(key, None)

    def _acquire_silent(self, scopes: tuple[str, ...], tenant_id: str | None) -> Session | None:
        credential = self._credential
        if credential is None:
            if self._signed_out_explicitly or self.auth_config.method.is_interactive:
                return None
            try:
                credential = self._credential_factory(self.auth_config)
            except CredentialFactoryError as e:
                logger.debug(f"No silent credential available: {e}")
                return None

        try:
            session = self._open_session(credential, scopes, tenant_id)
        except AuthenticationRequiredError:
            logger.debug(f"Tenant {tenant_id or 'home'} needs an interactive sign-in")
            return None
        except ClientAuthenticationError as e:
            logger.debug(
                f"Silent sign-in failed: {LogSanitizer.sanitize_exception(e)}"
            )
            return None
        except AzureError as e:
            safe_error = LogSanitizer.create_safe_error_message(e, "Sign-in check failed")
            raise LoginError(safe_error) from e
        if session is None:
            return None

        self._credential = credential
        self._set_status(LoginStatus.SIGNED_IN)
        return session

    def _acquire_interactive(self, scopes: tuple[str, ...], tenant_id: str | None) -> Session | None:
        signed_in = self._credential is not None
        if not signed_in:
            self._set_status(LoginStatus.SIGNING_IN)

        try:
            credential = self._credential or self._credential_factory(self.auth_config)
            if self.auth_config.method.is_interactive:
                kwargs = {"tenant_id": tenant_id} if tenant_id else {}
                credential.authenticate(scopes=list(scopes), **kwargs)
            session = self._open_session(credential, scopes, tenant_id)
        except KeyboardInterrupt as e:
            self._sign_in_failed(signed_in)
            raise UserCancelledError(source="login") from e
        except ClientAuthenticationError as e:
            self._sign_in_failed(signed_in)
            if is_cancellation(e):
                raise UserCancelledError(source="login") from e
            safe_error = LogSanitizer.create_safe_error_message(e, "Sign-in failed")
            raise LoginError(safe_error) from e
        except (AzureError, CredentialFactoryError) as e:
            self._sign_in_failed(signed_in)
            safe_error = LogSanitizer.create_safe_error_message(e, "Sign-in failed")
            raise LoginError(safe_error) from e

        if session is None:
            self._sign_in_failed(signed_in)
            return None

        self._credential = credential
        self._signed_out_explicitly = False
        self._set_status(LoginStatus.SIGNED_IN)
        return session

    def _open_session(
        self, credential: Any, scopes: tuple[str, ...], tenant_id: str | None
    ) -> Session | None:
        """Mint one token to prove the credential works and cache the session."""
        kwargs = {"tenant_id": tenant_id} if tenant_id else {}
        access_token = credential.get_token(*scopes, **kwargs)
        if not access_token or not access_token.token:
            return None

        claims = decode_token_claims(access_token.token)
        session = Session(
            credential=credential, scopes=scopes, tenant_id=tenant_id, account_info=claims
        )
        self._sessions[(tenant_id, scopes)] = session
        if tenant_id is None or not self._account_info:
            self._account_info = claims
        logger.debug(f"Opened session for tenant {tenant_id or 'home'}")
        return session

    def _sign_in_failed(self, was_signed_in: bool) -> None:
        if not was_signed_in:
            self._set_status(LoginStatus.SIGNED_OUT)

    def _forget(self) -> None:
        self._credential = None
        self._sessions.clear()
        self._account_info = None
        self._set_status(LoginStatus.SIGNED_OUT)

    def _set_status(self, status: LoginStatus) -> None:
        if status == self._status:
            return
        previous, self._status = self._status, status
        logger.debug(f"Login status changed: {previous} -> {status}")
        for key, callback in list(self._listeners.items()):
            try:
                callback(status)
            except Exception as e:
                logger.warning(f"Status listener '{key}' failed: {e}")


__all__ = ["SessionProvider", "StatusListener", "decode_token_claims", "is_cancellation"]
