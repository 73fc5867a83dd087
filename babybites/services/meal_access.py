# babybites/services/meal_access.py
"""
Read access to published plans and meals, with ownership checks.

Ownership always resolves meal -> plan -> baby -> user. Draft plans are
treated as if they did not exist.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List

from babybites.config.constants import PLAN_STATUS_READY
from babybites.db.client import SupabaseService
from babybites.services.errors import Forbidden, NotFound, SubjectNotFound

logger = logging.getLogger(__name__)


@dataclass
class OwnedMeal:
    meal: Dict[str, Any]
    plan: Dict[str, Any]
    baby: Dict[str, Any]


class MealAccess(SupabaseService):

    async def _one(self, fn, what: str, *args) -> Dict[str, Any]:
        rows = self._rows_or_raise(await self._call_db(fn, *args), what)
        return rows[0] if rows else {}

    async def load_meal(self, meal_id: str) -> Dict[str, Any]:
        meal = await self._one(
            lambda mid: self.client.table("meals")
            .select("id, plan_id, day_index, meal_type, title, summary")
            .eq("id", mid)
            .limit(1)
            .execute(),
            "meals",
            str(meal_id),
        )
        if not meal:
            raise NotFound("Meal not found")
        return meal

    async def load_plan(self, plan_id: str) -> Dict[str, Any]:
        plan = await self._one(
            lambda pid: self.client.table("meal_plans")
            .select("*")
            .eq("id", pid)
            .eq("status", PLAN_STATUS_READY)
            .limit(1)
            .execute(),
            "meal_plans",
            str(plan_id),
        )
        if not plan:
            raise NotFound("Plan not found")
        return plan

    async def load_baby(self, baby_id: str) -> Dict[str, Any]:
        baby = await self._one(
            lambda bid: self.client.table("babies")
            .select("id, user_id, name, birthdate, allergies")
            .eq("id", bid)
            .limit(1)
            .execute(),
            "babies",
            str(baby_id),
        )
        if not baby:
            raise SubjectNotFound()
        return baby

    async def owned_meal(self, meal_id: str, user_id: str) -> OwnedMeal:
        meal = await self.load_meal(meal_id)
        try:
            plan = await self.load_plan(meal["plan_id"])
        except NotFound:
            raise NotFound("Meal not found")
        baby = await self.load_baby(plan["baby_id"])
        if baby.get("user_id") != user_id:
            logger.warning("meal %s requested by non-owner %s", meal_id, user_id)
            raise Forbidden()
        return OwnedMeal(meal=meal, plan=plan, baby=baby)

    async def owned_plan(self, plan_id: str, user_id: str) -> Dict[str, Any]:
        plan = await self.load_plan(plan_id)
        try:
            baby = await self.load_baby(plan["baby_id"])
        except NotFound:
            raise NotFound("Plan not found")
        if baby.get("user_id") != user_id:
            # other users' plans are indistinguishable from missing ones
            raise NotFound("Plan not found")
        return plan

    async def recipes_for(self, meal_ids: List[str]) -> Dict[str, Dict[str, Any]]:
        if not meal_ids:
            return {}
        rows = self._rows_or_raise(
            await self._call_db(
                lambda ids: self.client.table("recipes").select("*").in_("meal_id", ids).execute(),
                meal_ids,
            ),
            "recipes",
        )
        return {r["meal_id"]: r for r in rows}

    async def read_plan(self, plan_id: str, user_id: str) -> Dict[str, Any]:
        """A ready plan owned by `user_id`, see `plan_with_meals`."""
        return await self.plan_with_meals(await self.owned_plan(plan_id, user_id))

    async def plan_with_meals(self, plan: Dict[str, Any]) -> Dict[str, Any]:
        """`plan` with its meals (ordered by day and type) and their recipes."""
        meals = self._rows_or_raise(
            await self._call_db(
                lambda pid: self.client.table("meals")
                .select("*")
                .eq("plan_id", pid)
                .order("day_index")
                .execute(),
                str(plan["id"]),
            ),
            "meals",
        )
        recipes = await self.recipes_for([m["id"] for m in meals])
        plan_types = list(plan.get("meal_types") or [])

        def _slot_order(m):
            mt = m.get("meal_type")
            return (m.get("day_index", 0), plan_types.index(mt) if mt in plan_types else len(plan_types))

        return dict(
            plan,
            meals=[dict(m, recipe=recipes.get(m["id"])) for m in sorted(meals, key=_slot_order)],
        )
