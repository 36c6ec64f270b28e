"""
Settings for the OrderSync application.
"""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

WIX_TOKEN_URI = "https://www.wix.com/oauth/access"
WIX_ORDERS_QUERY_URI = "https://www.wixapis.com/stores/v2/orders/query"
WIX_INSTALLER_URI = "https://www.wix.com/installer/install"
WIX_TOKEN_RECEIVED_URI = "https://www.wix.com/_api/site-apps/v1/site-apps/token-received"

ORDERS_PAGE_SIZE = 100


class WixSettings(BaseSettings):
    """
    Settings for the Wix API and the ingestion pipeline.

    Loaded once at startup; instances are immutable and passed into each
    component at construction.
    """

    app_id: str = ""
    app_secret: str = ""
    api_host: str = "http://localhost:8000"
    frontend_host: str = "http://localhost:3000"

    token_uri: str = WIX_TOKEN_URI
    orders_query_uri: str = WIX_ORDERS_QUERY_URI
    installer_uri: str = WIX_INSTALLER_URI
    token_received_uri: str = WIX_TOKEN_RECEIVED_URI

    connect_timeout: float = 5.0
    read_timeout: float = 30.0

    page_size: int = ORDERS_PAGE_SIZE
    max_page_attempts: int = 3
    retry_backoff_seconds: float = 0.5

    install_state_ttl_minutes: int = 10
    run_deadline_seconds: Optional[float] = None
    max_concurrent_runs: int = 4

    webhook_public_key: str = ""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="WIX_",
        extra="ignore",
        frozen=True,
    )

    @property
    def timeout(self) -> tuple[float, float]:
        """(connect, read) timeout tuple for requests."""
        return (self.connect_timeout, self.read_timeout)

    @property
    def grant_redirect_uri(self) -> str:
        """Where the installer sends the user back with the authorization code."""
        return f"{self.api_host}/wix/grant"

    @property
    def dashboard_uri(self) -> str:
        """Landing page after a completed install."""
        return f"{self.frontend_host}/static/dashboard.html"
