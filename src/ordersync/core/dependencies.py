"""
Component wiring for the OrderSync application.
"""

import logging
from functools import lru_cache

import requests

from ordersync.core.crawler import OrderCrawler
from ordersync.core.credentials import CredentialStore, InstallStateStore
from ordersync.core.database import SessionLocal
from ordersync.core.oauth import TokenRefresher
from ordersync.core.pipeline import IngestionPipeline
from ordersync.core.runs import RunStore
from ordersync.core.settings import WixSettings
from ordersync.core.writer import IngestionWriter

# Setup logger
logger = logging.getLogger("dependencies")


@lru_cache()
def get_settings() -> WixSettings:
    """
    Get the process-wide settings snapshot.
    """
    settings = WixSettings()  # Reads WIX_* vars from .env
    if not settings.app_id or not settings.app_secret:
        logger.warning("WIX_APP_ID or WIX_APP_SECRET is not set; token exchanges will fail")
    logger.info("get_settings returning WixSettings for api host: %s", settings.api_host)
    return settings


@lru_cache()
def get_http_session() -> requests.Session:
    """
    Shared HTTP session for calls to Wix.
    """
    session = requests.Session()
    session.headers.update({"Content-Type": "application/json"})
    return session


@lru_cache()
def get_install_states() -> InstallStateStore:
    return InstallStateStore(SessionLocal, ttl_minutes=get_settings().install_state_ttl_minutes)


@lru_cache()
def get_refresher() -> TokenRefresher:
    return TokenRefresher(CredentialStore(SessionLocal), get_http_session(), get_settings())


@lru_cache()
def get_run_store() -> RunStore:
    return RunStore(SessionLocal)


@lru_cache()
def get_pipeline() -> IngestionPipeline:
    """
    Injection method to get the ingestion pipeline.
    """
    settings = get_settings()
    logger.info("Creating ingestion pipeline with %s worker(s)", settings.max_concurrent_runs)
    return IngestionPipeline(
        refresher=get_refresher(),
        crawler=OrderCrawler(get_http_session(), settings),
        writer=IngestionWriter(SessionLocal),
        runs=get_run_store(),
        settings=settings,
    )
