# babybites/services/share_service.py
"""
Read-only share links for published plans.

One link per (plan, owner): asking again refreshes its options and expiry
but keeps the token. Anyone holding the token can read the plan until the
link expires; the baby is reduced to a name initial and birthdate.
"""
from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from babybites.config.settings import settings
from babybites.models.requests import ShareCreateRequest
from babybites.services.errors import LinkExpired, NotFound, PersistenceFailed
from babybites.services.meal_access import MealAccess
from babybites.services.quota_service import parse_timestamp

logger = logging.getLogger(__name__)

TOKEN_BYTES = 9  # 12 url-safe characters


def new_share_token() -> str:
    return secrets.token_urlsafe(TOKEN_BYTES)


def share_url(token: str) -> str:
    return f"{settings.app_url.rstrip('/')}/shared/{token}"


def sanitize_baby(baby: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not baby:
        return None
    name = (baby.get("name") or "").strip()
    return {"name": f"{name[0]}." if name else "Baby", "birthdate": baby.get("birthdate")}


class ShareService(MealAccess):

    async def existing_share(self, plan_id: str, user_id: str) -> Dict[str, Any]:
        return await self._one(
            lambda pid, uid: self.client.table("shared_meal_plans")
            .select("*")
            .eq("plan_id", pid)
            .eq("created_by", uid)
            .limit(1)
            .execute(),
            "shared_meal_plans",
            plan_id,
            user_id,
        )

    async def _update(self, share: Dict[str, Any], changes: Dict[str, Any]) -> Dict[str, Any]:
        res = await self._call_db(
            lambda sid: self.client.table("shared_meal_plans").update(changes).eq("id", sid).execute(),
            share["id"],
        )
        if not res.get("ok"):
            logger.error("updating share %s failed: %s", share["id"], res.get("diagnostics"))
            raise PersistenceFailed(error="Failed to update share link")
        data = res["data"]
        return data[0] if isinstance(data, list) and data else dict(share, **changes)

    async def create(
        self,
        plan_id: str,
        user_id: str,
        body: ShareCreateRequest,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        plan = await self.owned_plan(plan_id, user_id)
        now = now or datetime.now(timezone.utc)
        days = body.expires_in_days
        changes = {
            "include_pdf": body.include_pdf,
            "expires_at": (now + timedelta(days=days)).isoformat() if days else None,
        }

        existing = await self.existing_share(plan["id"], user_id)
        if existing:
            share = await self._update(existing, changes)
            return {"share": share, "shareUrl": share_url(share["share_token"]), "isNew": False}

        row = dict(changes, plan_id=plan["id"], created_by=user_id, share_token=new_share_token())
        res = await self._call_db(
            lambda r: self.client.table("shared_meal_plans").insert(r).execute(), row
        )
        if not res.get("ok"):
            # unique(plan_id, created_by): a concurrent request created the link first
            existing = await self.existing_share(plan["id"], user_id)
            if existing:
                share = await self._update(existing, changes)
                return {"share": share, "shareUrl": share_url(share["share_token"]), "isNew": False}
            logger.error("creating share failed plan=%s diagnostics=%s", plan["id"], res.get("diagnostics"))
            raise PersistenceFailed(error="Failed to create share link")

        data = res["data"]
        share = data[0] if isinstance(data, list) and data else row
        logger.info("share link created plan=%s expires_at=%s", plan["id"], share.get("expires_at"))
        return {"share": share, "shareUrl": share_url(share["share_token"]), "isNew": True}

    async def read(self, token: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        share = await self._one(
            lambda t: self.client.table("shared_meal_plans")
            .select("*")
            .eq("share_token", t)
            .limit(1)
            .execute(),
            "shared_meal_plans",
            token,
        )
        if not share:
            raise NotFound(error="Shared plan not found")
        expires_at = parse_timestamp(share.get("expires_at"))
        if expires_at is not None and expires_at < (now or datetime.now(timezone.utc)):
            raise LinkExpired()

        try:
            plan = await self.load_plan(share["plan_id"])
        except NotFound:
            raise NotFound(error="Meal plan not found")
        detailed = await self.plan_with_meals(plan)
        baby = await self._one(
            lambda bid: self.client.table("babies")
            .select("name, birthdate")
            .eq("id", bid)
            .limit(1)
            .execute(),
            "babies",
            plan["baby_id"],
        )

        views = (share.get("view_count") or 0) + 1
        counted = await self._call_db(
            lambda sid: self.client.table("shared_meal_plans")
            .update({"view_count": views})
            .eq("id", sid)
            .execute(),
            share["id"],
        )
        if not counted.get("ok"):
            # the count is informational; the reader still gets the plan
            logger.warning("view count not updated share=%s", share["id"])

        return {
            "plan": dict(detailed, baby=sanitize_baby(baby)),
            "shareInfo": {
                "includePdf": bool(share.get("include_pdf")),
                "viewCount": views,
                "createdAt": share.get("created_at"),
            },
        }
