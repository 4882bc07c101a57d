"""
Webhook endpoints: Shopify order events.
"""
import json
import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from retail_hub import config
from retail_hub.db import get_db
from retail_hub.errors import AuthError, InputError
from retail_hub.services.shopify import handle_webhook, verify_signature

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/webhook/shopify")
async def shopify_webhook(request: Request, db: Session = Depends(get_db)):
    """
    Verify X-Shopify-Hmac-Sha256 over the raw body, then upsert the order for
    orders/create and orders/updated topics. Nothing is written on a bad signature.
    """
    body = await request.body()
    signature = request.headers.get("x-shopify-hmac-sha256")
    topic = request.headers.get("x-shopify-topic")

    if not verify_signature(config.shopify_webhook_secret(), body, signature):
        logger.warning("shopify_webhook_rejected", extra={"topic": topic})
        raise AuthError("Unauthorized")

    try:
        payload = json.loads(body)
    except ValueError:
        raise InputError("Invalid JSON body")
    if not isinstance(payload, dict):
        raise InputError("Webhook body must be a JSON object")

    # database work runs in the threadpool, off the event loop
    return await run_in_threadpool(handle_webhook, db, topic, payload)
