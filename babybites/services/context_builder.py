# babybites/services/context_builder.py
"""
Gathers everything the prompt needs about a subject (baby profile):
profile, food history outcomes and past meal ratings.

Read-only. The lists handed to the prompt are de-duplicated, keep first-seen
order and are capped so the prompt stays short.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from babybites.db.client import SupabaseService
from babybites.services.age import age_in_months
from babybites.services.errors import SubjectNotFound

logger = logging.getLogger(__name__)

MAX_LIST_ITEMS = 12
LOVED_FEEDBACK = ("loved",)
DISLIKED_FEEDBACK = ("disliked", "rejected")


@dataclass
class GenerationContext:
    subject_id: str
    subject_name: str
    age_months: int
    allergies: List[str] = field(default_factory=list)
    tried_foods: List[str] = field(default_factory=list)
    disliked_foods: List[str] = field(default_factory=list)
    loved_meals: List[str] = field(default_factory=list)
    disliked_meals: List[str] = field(default_factory=list)


def _unique(items: Iterable[Optional[str]], cap: int = MAX_LIST_ITEMS) -> List[str]:
    seen = set()
    out: List[str] = []
    for item in items:
        if not item:
            continue
        key = item.strip().lower()
        if not key or key in seen:
            continue
        seen.add(key)
        out.append(item.strip())
        if len(out) >= cap:
            break
    return out


def classify_rating(rating_row: Dict[str, Any]) -> Optional[str]:
    """'loved', 'disliked' or None for a meal_ratings row."""
    feedback = rating_row.get("taste_feedback")
    stars = rating_row.get("rating")
    if feedback in DISLIKED_FEEDBACK or (stars is not None and stars <= 2):
        return "disliked"
    if feedback in LOVED_FEEDBACK or (stars is not None and stars >= 4):
        return "loved"
    return None


class ContextBuilder(SupabaseService):

    async def load_subject(self, subject_id: str, user_id: str) -> Dict[str, Any]:
        def _fn(sid, uid):
            return (
                self.client.table("babies")
                .select("*")
                .eq("id", sid)
                .eq("user_id", uid)
                .limit(1)
                .execute()
            )

        rows = self._rows_or_raise(await self._call_db(_fn, subject_id, user_id), "babies")
        if not rows:
            raise SubjectNotFound()
        return rows[0]

    async def food_history(self, subject_id: str) -> List[Dict[str, Any]]:
        """baby_foods rows joined with the food name (two queries, no embedding)."""

        def _history(sid):
            return (
                self.client.table("baby_foods")
                .select("food_id, status")
                .eq("baby_id", sid)
                .execute()
            )

        entries = self._rows_or_raise(await self._call_db(_history, subject_id), "baby_foods")
        food_ids = sorted({e["food_id"] for e in entries if e.get("food_id")})
        if not food_ids:
            return []

        def _foods(ids):
            return self.client.table("foods").select("id, name").in_("id", ids).execute()

        foods = self._rows_or_raise(await self._call_db(_foods, food_ids), "foods")
        names = {f["id"]: f.get("name") for f in foods}
        return [
            {"name": names.get(e.get("food_id")), "status": e.get("status")}
            for e in entries
            if names.get(e.get("food_id"))
        ]

    async def meal_feedback(self, subject_id: str) -> List[Dict[str, Any]]:
        """meal_ratings rows with their meal title attached."""

        def _ratings(sid):
            return (
                self.client.table("meal_ratings")
                .select("meal_id, rating, taste_feedback")
                .eq("baby_id", sid)
                .execute()
            )

        ratings = self._rows_or_raise(await self._call_db(_ratings, subject_id), "meal_ratings")
        meal_ids = sorted({r["meal_id"] for r in ratings if r.get("meal_id")})
        if not meal_ids:
            return []

        def _meals(ids):
            return self.client.table("meals").select("id, title").in_("id", ids).execute()

        meals = self._rows_or_raise(await self._call_db(_meals, meal_ids), "meals")
        titles = {m["id"]: m.get("title") for m in meals}
        return [dict(r, title=titles.get(r.get("meal_id"))) for r in ratings]

    async def build(
        self, subject_id: str, user_id: str, today: Optional[date] = None
    ) -> GenerationContext:
        subject = await self.load_subject(subject_id, user_id)
        history = await self.food_history(subject_id)
        feedback = await self.meal_feedback(subject_id)

        allergic = [h["name"] for h in history if h["status"] == "allergic"]
        context = GenerationContext(
            subject_id=str(subject_id),
            subject_name=subject.get("name") or "your baby",
            age_months=age_in_months(subject["birthdate"], today),
            allergies=_unique(list(subject.get("allergies") or []) + allergic),
            tried_foods=_unique(h["name"] for h in history if h["status"] != "allergic"),
            disliked_foods=_unique(h["name"] for h in history if h["status"] == "disliked"),
            loved_meals=_unique(
                r.get("title") for r in feedback if classify_rating(r) == "loved"
            ),
            disliked_meals=_unique(
                r.get("title") for r in feedback if classify_rating(r) == "disliked"
            ),
        )
        logger.info(
            "context built subject=%s age_months=%s tried=%d loved=%d disliked=%d",
            subject_id,
            context.age_months,
            len(context.tried_foods),
            len(context.loved_meals),
            len(context.disliked_meals),
        )
        return context
