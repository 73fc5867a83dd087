# babybites/services/quota_service.py
"""
Weekly generation quota for free-tier accounts.

Two steps, split on purpose:

1. `check()` is a side-effect-free read that rejects an account already at
   its limit before any expensive work happens.
2. `finalize()` runs the `finalize_meal_plan` database function, which in a
   single transaction resets an expired window, increments the counter only
   while it is below the limit, and publishes the draft plan. Two requests
   racing at the limit therefore cannot both succeed, and a generation that
   fails earlier never consumes quota.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from babybites.config.constants import FREE_PLAN
from babybites.config.settings import settings
from babybites.db.client import SupabaseService, run_blocking
from babybites.services.errors import (
    AuthenticationRequired,
    PersistenceFailed,
    QuotaExceeded,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QuotaStatus:
    allowed: bool
    limit: Optional[int]  # None means unlimited
    used: int
    window_expired: bool
    resets_at: Optional[datetime]


def plan_limit_for(subscription_plan: Optional[str]) -> Optional[int]:
    if (subscription_plan or FREE_PLAN) == FREE_PLAN:
        return settings.free_plans_per_week
    return None


def parse_timestamp(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def evaluate_quota(account: Dict[str, Any], now: Optional[datetime] = None) -> QuotaStatus:
    """Decide whether `account` may generate another plan at `now`."""
    now = now or datetime.now(timezone.utc)
    limit = plan_limit_for(account.get("subscription_plan"))
    window = timedelta(days=settings.quota_window_days)

    reset_date = parse_timestamp(account.get("week_reset_date"))
    expired = reset_date is None or now >= reset_date + window
    used = 0 if expired else int(account.get("plans_generated_this_week") or 0)
    resets_at = None if expired else reset_date + window

    if limit is None:
        return QuotaStatus(True, None, used, expired, resets_at)
    return QuotaStatus(used < limit, limit, used, expired, resets_at)


class QuotaService(SupabaseService):

    async def get_account(self, user_id: str) -> Dict[str, Any]:
        def _fn(uid):
            return (
                self.client.table("users")
                .select("id, subscription_plan, plans_generated_this_week, week_reset_date")
                .eq("id", uid)
                .limit(1)
                .execute()
            )

        res = await self._call_db(_fn, user_id)
        rows = self._rows_or_raise(res, "users")
        if not rows:
            # authenticated but no account row: treat like an unknown session
            raise AuthenticationRequired("Account not found")
        return rows[0]

    async def check(self, user_id: str, now: Optional[datetime] = None) -> QuotaStatus:
        account = await self.get_account(user_id)
        status = evaluate_quota(account, now)
        logger.info(
            "quota check user=%s limit=%s used=%s expired=%s allowed=%s",
            user_id,
            status.limit,
            status.used,
            status.window_expired,
            status.allowed,
        )
        if not status.allowed:
            raise QuotaExceeded()
        return status

    async def finalize(self, plan_id: str, user_id: str) -> Dict[str, Any]:
        """
        Publish a staged plan and consume one unit of quota atomically.
        The database function reads the account's plan itself; only the
        free-tier allowance is passed in.

        Raises QuotaExceeded when the conditional increment is refused and
        PersistenceFailed when the call itself fails.
        """
        params = {
            "p_plan_id": plan_id,
            "p_user_id": user_id,
            "p_free_limit": settings.free_plans_per_week,
            "p_window_days": settings.quota_window_days,
        }
        try:
            resp = await run_blocking(
                lambda: self.client.rpc("finalize_meal_plan", params).execute()
            )
        except Exception as exc:
            logger.exception("finalize_meal_plan failed plan=%s: %s", plan_id, exc)
            raise PersistenceFailed() from exc

        result = getattr(resp, "data", None)
        if isinstance(result, list):
            result = result[0] if result else None
        if not isinstance(result, dict):
            logger.error("finalize_meal_plan returned unexpected payload: %r", result)
            raise PersistenceFailed()
        if not result.get("finalized"):
            logger.info(
                "finalize refused plan=%s user=%s reason=%s",
                plan_id,
                user_id,
                result.get("reason"),
            )
            if result.get("reason") == "quota_exceeded":
                raise QuotaExceeded()
            raise PersistenceFailed()
        return result

