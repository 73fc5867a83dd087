# babybites/services/billing_service.py
"""
Stripe webhook processing.

Flow per delivery:
 - verify the Stripe-Signature header (nothing else happens on failure)
 - skip events whose id is already in `stripe_events`
 - apply the account change for the event type
 - record the event id only after the change succeeded, so a failed
   delivery is retried by Stripe and reprocessed; a delivery whose record
   cannot be written is answered with 500 as well

Stripe delivers at-least-once. Every handler sets absolute values
(plan, status) rather than incrementing anything, so reprocessing an event
whose record was lost is harmless.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict, Optional

import stripe

from babybites.config.constants import FREE_PLAN
from babybites.config.settings import settings
from babybites.db.client import SupabaseService
from babybites.services.errors import WebhookProcessingFailed, WebhookSignatureError

logger = logging.getLogger(__name__)

SUBSCRIPTION_STATUSES = {"active": "active", "past_due": "past_due"}


def verify_event(payload: bytes, signature: Optional[str], secret: Optional[str] = None) -> Dict[str, Any]:
    """Verified event as a plain dict; raises WebhookSignatureError otherwise."""
    secret = secret or settings.stripe_webhook_secret
    if not signature or not secret:
        logger.warning("webhook rejected: missing signature or webhook secret")
        raise WebhookSignatureError()
    try:
        stripe.Webhook.construct_event(payload, signature, secret)
    except (ValueError, stripe.SignatureVerificationError) as exc:
        logger.warning("webhook signature verification failed: %s", exc)
        raise WebhookSignatureError() from exc
    return json.loads(payload)


def subscription_status(stripe_status: Optional[str]) -> str:
    return SUBSCRIPTION_STATUSES.get(stripe_status or "", "canceled")


class BillingService(SupabaseService):

    def __init__(self, client: Any = None):
        super().__init__(client)
        self.handlers: Dict[str, Callable[[Dict[str, Any]], Any]] = {
            "checkout.session.completed": self.on_checkout_completed,
            "customer.subscription.updated": self.on_subscription_updated,
            "customer.subscription.deleted": self.on_subscription_deleted,
            "invoice.payment_failed": self.on_payment_failed,
        }

    async def is_processed(self, event_id: str) -> bool:
        rows = self._rows_or_raise(
            await self._call_db(
                lambda eid: self.client.table("stripe_events")
                .select("id")
                .eq("event_id", eid)
                .limit(1)
                .execute(),
                event_id,
            ),
            "stripe_events",
        )
        return bool(rows)

    async def mark_processed(self, event: Dict[str, Any]) -> None:
        row = {
            "event_id": event["id"],
            "event_type": event.get("type"),
            "payload": (event.get("data") or {}).get("object"),
        }
        res = await self._call_db(
            lambda r: self.client.table("stripe_events").insert(r).execute(), row
        )
        if res.get("ok"):
            return
        # a unique violation from a concurrent delivery leaves the event recorded
        if await self.is_processed(event["id"]):
            logger.info("stripe event %s recorded by a concurrent delivery", event["id"])
            return
        logger.error(
            "could not record stripe event %s: %s", event["id"], res.get("diagnostics")
        )
        raise WebhookProcessingFailed()

    async def _update_user(self, column: str, value: str, changes: Dict[str, Any]) -> None:
        res = await self._call_db(
            lambda: self.client.table("users").update(changes).eq(column, value).execute()
        )
        if res.get("error") in ("db_exception", "no_supabase_client"):
            raise WebhookProcessingFailed()

    async def _user_id_for_customer(self, customer_id: Optional[str]) -> Optional[str]:
        if not customer_id:
            return None
        rows = self._rows_or_raise(
            await self._call_db(
                lambda cid: self.client.table("users")
                .select("id")
                .eq("stripe_customer_id", cid)
                .limit(1)
                .execute(),
                customer_id,
            ),
            "users",
        )
        return rows[0]["id"] if rows else None

    async def on_checkout_completed(self, obj: Dict[str, Any]) -> None:
        metadata = obj.get("metadata") or {}
        user_id, plan = metadata.get("user_id"), metadata.get("plan")
        if not (user_id and plan):
            logger.info("checkout session without user/plan metadata; ignoring")
            return
        await self._update_user(
            "id",
            user_id,
            {
                "subscription_plan": plan,
                "subscription_status": "active",
                "stripe_customer_id": obj.get("customer"),
            },
        )

    async def on_subscription_updated(self, obj: Dict[str, Any]) -> None:
        user_id = await self._user_id_for_customer(obj.get("customer"))
        if user_id:
            await self._update_user(
                "id", user_id, {"subscription_status": subscription_status(obj.get("status"))}
            )

    async def on_subscription_deleted(self, obj: Dict[str, Any]) -> None:
        user_id = await self._user_id_for_customer(obj.get("customer"))
        if user_id:
            await self._update_user(
                "id", user_id, {"subscription_plan": FREE_PLAN, "subscription_status": None}
            )

    async def on_payment_failed(self, obj: Dict[str, Any]) -> None:
        user_id = await self._user_id_for_customer(obj.get("customer"))
        if user_id:
            await self._update_user("id", user_id, {"subscription_status": "past_due"})

    async def handle(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        event = verify_event(payload, signature)
        event_id, event_type = event.get("id"), event.get("type")

        try:
            if await self.is_processed(event_id):
                logger.info("stripe event %s already processed, skipping", event_id)
                return {"received": True, "skipped": True}

            handler = self.handlers.get(event_type)
            if handler is None:
                logger.info("unhandled stripe event type %s", event_type)
            else:
                await handler((event.get("data") or {}).get("object") or {})
        except WebhookProcessingFailed:
            logger.error("stripe event %s (%s) failed; not recorded", event_id, event_type)
            raise
        except Exception as exc:
            logger.exception("stripe event %s (%s) failed: %s", event_id, event_type, exc)
            raise WebhookProcessingFailed() from exc

        await self.mark_processed(event)
        logger.info("stripe event %s (%s) processed", event_id, event_type)
        return {"received": True}
