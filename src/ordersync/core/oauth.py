"""
Wix OAuth token exchange.

Covers both grants Wix supports for apps: the one-time authorization code
received when a site installs the app, and the refresh token that is rotated
on every exchange.
"""

import logging
from urllib.parse import urlencode

import requests
from pydantic import ValidationError

from ordersync.core.credentials import CredentialStore, InstallStateStore
from ordersync.core.errors import NetworkError, NoCredential, ProviderRejected
from ordersync.core.models import Credential, TokenPair
from ordersync.core.settings import WixSettings

logger = logging.getLogger("oauth")


class TokenRefresher:
    """Exchanges grants for token pairs and keeps the credential store current."""

    def __init__(
        self,
        store: CredentialStore,
        http: requests.Session,
        settings: WixSettings,
    ) -> None:
        self.store = store
        self.http = http
        self.settings = settings

    def _exchange(self, grant: dict[str, str]) -> TokenPair:
        payload = {
            "client_id": self.settings.app_id,
            "client_secret": self.settings.app_secret,
            **grant,
        }
        try:
            response = self.http.post(
                self.settings.token_uri, json=payload, timeout=self.settings.timeout
            )
        except requests.RequestException as e:
            logger.error("Token exchange (%s) failed: %s", grant["grant_type"], type(e).__name__)
            raise NetworkError(f"Wix OAuth endpoint unreachable: {type(e).__name__}") from e

        if not response.ok:
            logger.error(
                "Token exchange (%s) rejected with status %s",
                grant["grant_type"],
                response.status_code,
            )
            raise ProviderRejected(
                f"Wix rejected the {grant['grant_type']} exchange",
                status_code=response.status_code,
            )

        try:
            return TokenPair.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise ProviderRejected(
                "Wix returned an unusable token response", status_code=response.status_code
            ) from e

    def exchange_code(self, code: str) -> TokenPair:
        """Exchange the one-time authorization code of an install."""
        return self._exchange({"grant_type": "authorization_code", "code": code})

    def refresh(self, instance_id: str) -> str:
        """
        Get a fresh access token for an instance.

        The refresh token is rotated by Wix; the new pair is stored before
        the access token is returned.

        Args:
            instance_id (str): The instance to get the access token for.

        Returns:
            str: The new access token.

        Raises:
            NoCredential: If no refresh token is stored for the instance.
            NetworkError: If the OAuth endpoint cannot be reached.
            ProviderRejected: If Wix refuses the refresh token.
        """
        credential = self.store.get(instance_id)
        if not credential.refresh_token:
            raise NoCredential(instance_id)

        logger.info("Refreshing access token for instance %s", instance_id)
        pair = self._exchange(
            {"grant_type": "refresh_token", "refresh_token": credential.refresh_token}
        )
        self.store.put(instance_id, pair.refresh_token, pair.access_token)
        return pair.access_token


def build_install_url(settings: WixSettings, token: str, state: str) -> str:
    """Wix installer URL the user is redirected to when the install starts."""
    query = urlencode(
        {
            "token": token,
            "appId": settings.app_id,
            "redirectUrl": settings.grant_redirect_uri,
            "state": state,
        }
    )
    return f"{settings.installer_uri}?{query}"


def start_install(states: InstallStateStore, token: str) -> str:
    """Begin the install flow; returns the state to hand to the Wix installer."""
    if not token:
        raise ValueError("Missing required parameter 'token'")
    state = states.create()
    logger.info("Install started")
    return state


def complete_grant(
    refresher: TokenRefresher,
    states: InstallStateStore,
    code: str,
    state: str,
    instance_id: str,
) -> Credential:
    """
    Finish the install flow for an instance.

    The state is consumed before anything is sent to Wix, so a replayed
    callback is rejected without spending the authorization code.

    Raises:
        InvalidState: If the state is unknown or expired.
        NetworkError: If the OAuth endpoint cannot be reached.
        ProviderRejected: If Wix refuses the code.
    """
    states.consume(state)
    pair = refresher.exchange_code(code)
    credential = refresher.store.put(instance_id, pair.refresh_token, pair.access_token)
    logger.info("Grant completed for instance %s", instance_id)
    return credential


def notify_install_complete(
    http: requests.Session, settings: WixSettings, access_token: str
) -> bool:
    """Tell Wix the app received its tokens. Failures are logged, never raised."""
    try:
        response = http.post(
            settings.token_received_uri,
            headers={"Authorization": access_token},
            timeout=settings.timeout,
        )
    except requests.RequestException as e:
        logger.warning("Could not notify Wix of the finished install: %s", type(e).__name__)
        return False

    if not response.ok:
        logger.warning("Wix token-received call returned status %s", response.status_code)
        return False
    return True
