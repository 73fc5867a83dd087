# babybites/services/plan_writer.py
"""
Writes a validated plan to storage as an unpublished draft.

`stage()` inserts the plan row (status "draft"), then every meal in one
bulk insert, then every recipe in one bulk insert. Drafts are invisible to
readers; `QuotaService.finalize` publishes them. If anything fails,
`discard()` removes whatever was written (recipes, meals, plan) so a
failed request never leaves a partial plan behind.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple

from babybites.config.constants import PLAN_STATUS_DRAFT
from babybites.db.client import SupabaseService
from babybites.models.plan_schema import FeatureFlags, extension_field_names
from babybites.services.errors import PersistenceFailed

logger = logging.getLogger(__name__)

BATCH_FIELDS = (
    "make_ahead_notes",
    "storage_instructions",
    "freezable",
    "reheat_instructions",
    "prep_day_tasks",
)


@dataclass
class StagedPlan:
    plan_id: str
    meal_ids: Dict[Tuple[int, str], str] = field(default_factory=dict)
    recipe_count: int = 0


def recipe_row(meal_id: str, meal: Any) -> Dict[str, Any]:
    """Recipe row for one generated meal; optional payloads only when present."""
    row: Dict[str, Any] = {
        "meal_id": meal_id,
        "ingredients": [i.model_dump(exclude_none=True) for i in meal.ingredients],
        "instructions": list(meal.instructions),
        "prep_time_minutes": meal.prep_time_minutes,
        "texture_notes": meal.texture_notes,
        "choking_hazard_notes": (
            f"New food: {meal.new_food_introduced}" if meal.new_food_introduced else None
        ),
    }
    batch_info = {
        name: getattr(meal, name, None)
        for name in BATCH_FIELDS
        if getattr(meal, name, None) is not None
    }
    if batch_info:
        row["batch_info"] = batch_info
    family = getattr(meal, "family_version", None)
    if family is not None:
        row["family_version"] = family.model_dump(exclude_none=True)
    nutrition = getattr(meal, "nutrition", None)
    if nutrition is not None:
        row["nutrition"] = nutrition.model_dump(exclude_none=True)
    return row


class PlanWriter(SupabaseService):

    async def _write(self, fn: Callable, what: str, *args) -> List[Dict[str, Any]]:
        res = await self._call_db(fn, *args)
        if not res.get("ok"):
            logger.error(
                "write %s failed: %s diagnostics=%s",
                what,
                res.get("error"),
                res.get("diagnostics"),
            )
            raise PersistenceFailed()
        data = res.get("data")
        return data if isinstance(data, list) else [data]

    async def stage(
        self,
        subject_id: str,
        request: Any,
        plan: Any,
        today: Optional[date] = None,
    ) -> StagedPlan:
        today = today or date.today()
        plan_row = {
            "baby_id": str(subject_id),
            "start_date": today.isoformat(),
            "end_date": (today + timedelta(days=request.days - 1)).isoformat(),
            "goal": request.goal,
            "days": request.days,
            "meal_types": list(request.meals_per_day),
            "status": PLAN_STATUS_DRAFT,
        }
        created = await self._write(
            lambda row: self.client.table("meal_plans").insert(row).execute(),
            "meal_plans",
            plan_row,
        )
        if not created or not created[0].get("id"):
            logger.error("meal_plans insert returned no row")
            raise PersistenceFailed()
        staged = StagedPlan(plan_id=created[0]["id"])

        try:
            await self._write_slots(staged, plan)
        except Exception:
            await self.discard(staged)
            raise

        logger.info(
            "staged plan=%s meals=%d recipes=%d extensions=%s",
            staged.plan_id,
            len(staged.meal_ids),
            staged.recipe_count,
            extension_field_names(FeatureFlags.from_request(request)),
        )
        return staged

    async def _write_slots(self, staged: StagedPlan, plan: Any) -> None:
        slots = [(day.day_index, meal) for day in plan.days for meal in day.meals]
        meal_rows = [
            {
                "plan_id": staged.plan_id,
                "day_index": day_index,
                "meal_type": meal.meal_type,
                "title": meal.title,
                "summary": meal.summary,
            }
            for day_index, meal in slots
        ]
        inserted = await self._write(
            lambda rows: self.client.table("meals").insert(rows).execute(),
            "meals",
            meal_rows,
        )
        for row in inserted:
            staged.meal_ids[(row["day_index"], row["meal_type"])] = row["id"]
        if len(staged.meal_ids) != len(slots):
            logger.error(
                "meal insert returned %d rows for %d slots", len(staged.meal_ids), len(slots)
            )
            raise PersistenceFailed()

        recipe_rows = [
            recipe_row(staged.meal_ids[(day_index, meal.meal_type)], meal)
            for day_index, meal in slots
        ]
        recipes = await self._write(
            lambda rows: self.client.table("recipes").insert(rows).execute(),
            "recipes",
            recipe_rows,
        )
        staged.recipe_count = len(recipes)

    async def discard(self, staged: StagedPlan) -> None:
        """Best-effort removal of a staged plan and its children."""
        meal_ids = list(staged.meal_ids.values())
        steps = []
        if meal_ids:
            steps.append(
                ("recipes", lambda: self.client.table("recipes").delete().in_("meal_id", meal_ids).execute())
            )
        steps += [
            ("meals", lambda: self.client.table("meals").delete().eq("plan_id", staged.plan_id).execute()),
            ("meal_plans", lambda: self.client.table("meal_plans").delete().eq("id", staged.plan_id).execute()),
        ]
        for what, fn in steps:
            res = await self._call_db(fn)
            if res.get("error") == "db_exception":
                # leftover rows stay as an invisible draft
                logger.error(
                    "cleanup of %s failed plan=%s diagnostics=%s",
                    what,
                    staged.plan_id,
                    res.get("diagnostics"),
                )
        logger.warning("discarded draft plan=%s", staged.plan_id)
