"""Upstream change-notification webhook."""

import hashlib
import hmac
import json
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, Header, Request
from loguru import logger

from contentcache.app import AppContainer, get_container
from contentcache.datasource.registry import CollectionRegistry
from contentcache.exceptions import BadRequestError, UnauthorizedError

router = APIRouter(prefix="/api/webhook", tags=["webhook"])

PAGE_EVENTS = ("page.content_updated", "page.properties_updated")
SCHEMA_EVENTS = ("data_source.schema_updated", "database.schema_updated")
SUPPORTED_EVENTS = (*PAGE_EVENTS, *SCHEMA_EVENTS, "comment.created")


def verify_signature(body: bytes, signature: str, secret: str) -> bool:
    """Check an ``sha256=<hex hmac>`` signature over the raw body."""
    if not signature.startswith("sha256="):
        return False
    expected = "sha256=" + hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature)


def handle_event(event: dict[str, Any], registry: CollectionRegistry) -> int:
    """Apply cache invalidation for one event. Returns entries removed."""
    event_type = event.get("type", "")
    entity = event.get("entity") or {}
    logger.info(
        f"Received webhook event: {event_type} "
        f"({entity.get('type', 'unknown')} {entity.get('id', 'unknown')})"
    )

    if not entity:
        logger.warning(f"Webhook event missing entity data: {event}")
        return 0

    if event_type in PAGE_EVENTS:
        if entity.get("type") == "page" and entity.get("id"):
            return registry.invalidate_page(entity["id"])
        return 0

    if event_type in SCHEMA_EVENTS:
        return registry.invalidate_schema()

    if event_type == "comment.created":
        logger.info(f"New comment created on: {entity.get('id')}")
        return 0

    logger.info(f"Unhandled webhook event type: {event_type}")
    return 0


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.post("")
async def receive_webhook(
    request: Request,
    x_notion_signature: str | None = Header(default=None),
    container: AppContainer = Depends(get_container),
) -> dict[str, Any]:
    body = await request.body()
    secret = container.settings.webhook_secret

    try:
        payload = json.loads(body)
    except ValueError:
        logger.error("Invalid JSON in webhook payload")
        raise BadRequestError("Invalid JSON")

    if not isinstance(payload, dict):
        raise BadRequestError("Invalid payload")

    if "verification_token" in payload:
        logger.info("Received webhook verification token")
        if secret and x_notion_signature:
            if not verify_signature(body, x_notion_signature, secret):
                logger.error("Invalid webhook signature for verification")
                raise UnauthorizedError("Invalid signature")
        return {
            "success": True,
            "message": "Verification token received",
            "verification_token": payload["verification_token"],
            "timestamp": _now(),
        }

    if secret:
        if not x_notion_signature:
            logger.error("Missing signature header")
            raise UnauthorizedError("Missing signature")
        if not verify_signature(body, x_notion_signature, secret):
            logger.error("Invalid webhook signature")
            raise UnauthorizedError("Invalid signature")
    else:
        logger.warning("Webhook secret not configured, skipping signature verification")

    removed = handle_event(payload, container.registry)
    return {
        "success": True,
        "message": "Webhook processed successfully",
        "eventType": payload.get("type"),
        "invalidated": removed,
        "timestamp": _now(),
    }


@router.get("")
async def webhook_status(
    action: str | None = None,
    container: AppContainer = Depends(get_container),
) -> dict[str, Any]:
    if action != "health":
        raise BadRequestError("Invalid action. Supported actions: health")
    return {
        "status": "healthy",
        "webhook_secret_configured": bool(container.settings.webhook_secret),
        "supported_events": list(SUPPORTED_EVENTS),
        "timestamp": _now(),
    }
