# babybites/api/stripe_webhook.py
"""
Stripe webhook endpoint.

The raw request body is handed to the billing service untouched; the
signature is computed over those exact bytes.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request

from babybites.api.deps import get_billing_service
from babybites.services.billing_service import BillingService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    billing: BillingService = Depends(get_billing_service),
):
    payload = await request.body()
    signature = request.headers.get("Stripe-Signature")
    return await billing.handle(payload, signature)
