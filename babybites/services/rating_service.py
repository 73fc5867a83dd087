# babybites/services/rating_service.py
"""Meal ratings: one row per (meal, baby), upserted."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from babybites.models.requests import MealRatingRequest
from babybites.services.errors import PersistenceFailed, SubjectNotFound
from babybites.services.meal_access import MealAccess

logger = logging.getLogger(__name__)


class RatingService(MealAccess):

    async def rate(self, meal_id: str, user_id: str, body: MealRatingRequest) -> Dict[str, Any]:
        owned = await self.owned_meal(meal_id, user_id)
        baby_id = str(body.baby_id)
        baby = await self.load_baby(baby_id)
        if baby.get("user_id") != user_id:
            raise SubjectNotFound("Baby not found or unauthorized")

        row = {
            "meal_id": owned.meal["id"],
            "baby_id": baby_id,
            "user_id": user_id,
            "rating": body.rating,
            "taste_feedback": body.taste_feedback,
            "would_make_again": body.would_make_again,
            "notes": body.notes,
        }
        res = await self._call_db(
            lambda r: self.client.table("meal_ratings")
            .upsert(r, on_conflict="meal_id,baby_id")
            .execute(),
            row,
        )
        if not res.get("ok"):
            logger.error("saving rating failed meal=%s diagnostics=%s", meal_id, res.get("diagnostics"))
            raise PersistenceFailed(error="Failed to save rating")
        data = res["data"]
        saved = data[0] if isinstance(data, list) and data else row
        logger.info(
            "rating saved meal=%s baby=%s rating=%s feedback=%s",
            meal_id,
            baby_id,
            body.rating,
            body.taste_feedback,
        )
        return saved

    async def get_rating(self, meal_id: str, user_id: str, baby_id: str) -> Optional[Dict[str, Any]]:
        def _fn(mid, bid, uid):
            return (
                self.client.table("meal_ratings")
                .select("*")
                .eq("meal_id", mid)
                .eq("baby_id", bid)
                .eq("user_id", uid)
                .limit(1)
                .execute()
            )

        rows = self._rows_or_raise(
            await self._call_db(_fn, str(meal_id), str(baby_id), user_id), "meal_ratings"
        )
        return rows[0] if rows else None
