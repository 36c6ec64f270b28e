"""Wix plugin module.

This module provides the HTTP endpoints of the Wix integration: the app
install flow (install redirect and OAuth grant callback) and the
`order_created` webhook. Each successful grant and each webhook triggers an
order ingestion run for the instance in the background.
"""

import json
import logging
from typing import Any, Optional

import anyio
import requests
from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import RedirectResponse
from jose import JWTError, jwt

from ordersync.core.credentials import InstallStateStore
from ordersync.core.errors import InvalidState, NetworkError, ProviderRejected
from ordersync.core.oauth import (
    TokenRefresher,
    build_install_url,
    complete_grant,
    notify_install_complete,
    start_install,
)
from ordersync.core.pipeline import IngestionPipeline
from ordersync.core.settings import WixSettings

# Setup module-level logger
logger = logging.getLogger("wix")


def decode_webhook(body: str, public_key: str = "") -> dict[str, Any]:
    """
    Decode the JWT body of a Wix webhook into its event payload.

    The `data` claim is itself a JSON document (sent as a string). The
    signature is verified when a public key is configured.

    Raises:
        ValueError: If the body is not a decodable JWT or the payload is not JSON.
    """
    try:
        if public_key:
            claims = jwt.decode(body, public_key, algorithms=["RS256"])
        else:
            claims = jwt.get_unverified_claims(body)
    except JWTError as e:
        raise ValueError(f"Invalid webhook token: {e}") from e

    data = claims.get("data")
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as e:
            raise ValueError("Webhook data is not valid JSON") from e
    if not isinstance(data, dict):
        raise ValueError("Webhook token has no data payload")
    return data


def webhook_instance_id(payload: dict[str, Any]) -> Optional[str]:
    instance_id = payload.get("instanceId")
    return str(instance_id) if instance_id else None


def create_wix_router(
    settings: WixSettings,
    pipeline: IngestionPipeline,
    states: InstallStateStore,
    refresher: TokenRefresher,
    http: requests.Session,
) -> APIRouter:
    """Create a router for the Wix API."""

    router = APIRouter()

    @router.get("/install")
    async def install(token: str) -> RedirectResponse:
        """Start the install flow and redirect to the Wix installer."""
        try:
            state = await anyio.to_thread.run_sync(start_install, states, token)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        return RedirectResponse(build_install_url(settings, token, state))

    @router.get("/grant")
    async def grant(
        code: str,
        state: str,
        instance_id: str = Query(..., alias="instanceId"),
    ) -> RedirectResponse:
        """
        Handle the OAuth grant callback from Wix.

        - Verifies and consumes the install state
        - Exchanges the authorization code for a token pair and stores it
        - Tells Wix the flow is done
        - Starts an ingestion run for the instance
        """
        logger.info("Grant callback received for instance %s", instance_id)
        try:
            credential = await anyio.to_thread.run_sync(
                complete_grant, refresher, states, code, state, instance_id
            )
        except InvalidState as e:
            logger.warning("Rejected grant for instance %s: %s", instance_id, e)
            raise HTTPException(status_code=401, detail=str(e)) from e
        except (NetworkError, ProviderRejected) as e:
            logger.error("Token exchange failed for instance %s: %s", instance_id, e)
            raise HTTPException(status_code=502, detail="Token exchange with Wix failed") from e

        await anyio.to_thread.run_sync(notify_install_complete, http, settings, credential.access_token)

        run_id = await anyio.to_thread.run_sync(pipeline.trigger_ingestion, instance_id)
        logger.info("Install complete for instance %s, ingestion run %s", instance_id, run_id)
        return RedirectResponse(settings.dashboard_uri)

    @router.post("/webhooks/order_created")
    async def order_created(request: Request) -> dict:
        """Trigger an ingestion run for the instance that received an order."""
        body = (await request.body()).decode("utf-8", errors="replace").strip()
        try:
            payload = decode_webhook(body, settings.webhook_public_key)
        except ValueError as e:
            logger.warning("Rejected order_created webhook: %s", e)
            raise HTTPException(status_code=400, detail=str(e)) from e

        instance_id = webhook_instance_id(payload)
        if instance_id is None:
            logger.warning("order_created webhook without instanceId; ignored")
            return {"run_id": None}

        run_id = await anyio.to_thread.run_sync(pipeline.trigger_ingestion, instance_id)
        return {"run_id": run_id}

    return router
