# babybites/services/grocery_service.py
"""
Consolidated grocery list for a published plan. One list per plan; the
ingredients of every recipe are merged by the model and stored as-is.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from babybites.config.settings import settings
from babybites.models.plan_schema import parse_json_response
from babybites.models.suggestions import GroceryList
from babybites.services.errors import Conflict, GenerationFailed, NotFound, PersistenceFailed
from babybites.services.generation_client import GenerationClient
from babybites.services.meal_access import MealAccess
from babybites.services.prompt_builder import GROCERY_SYSTEM_INSTRUCTION, build_grocery_list_prompt

logger = logging.getLogger(__name__)

GROCERY_ERROR = "Failed to generate grocery list"


class GroceryService(MealAccess):

    def __init__(self, client: Any = None, generator: Optional[GenerationClient] = None):
        super().__init__(client)
        self.generator = generator or GenerationClient()

    async def existing_list(self, plan_id: str) -> Optional[Dict[str, Any]]:
        rows = self._rows_or_raise(
            await self._call_db(
                lambda pid: self.client.table("grocery_lists")
                .select("id")
                .eq("plan_id", pid)
                .limit(1)
                .execute(),
                plan_id,
            ),
            "grocery_lists",
        )
        return rows[0] if rows else None

    async def plan_ingredients(self, plan_id: str) -> List[Dict[str, Any]]:
        meals = self._rows_or_raise(
            await self._call_db(
                lambda pid: self.client.table("meals").select("id").eq("plan_id", pid).execute(),
                plan_id,
            ),
            "meals",
        )
        if not meals:
            raise NotFound("No meals found")
        recipes = await self.recipes_for([m["id"] for m in meals])
        ingredients: List[Dict[str, Any]] = []
        for meal in meals:
            recipe = recipes.get(meal["id"]) or {}
            ingredients.extend(recipe.get("ingredients") or [])
        return ingredients

    async def generate(self, plan_id: str, user_id: str) -> Dict[str, Any]:
        plan_id = str(plan_id)
        await self.owned_plan(plan_id, user_id)
        if await self.existing_list(plan_id):
            raise Conflict(error="Grocery list already exists")

        ingredients = await self.plan_ingredients(plan_id)
        try:
            raw = await self.generator.complete_json(
                GROCERY_SYSTEM_INSTRUCTION,
                build_grocery_list_prompt(ingredients),
                settings.openai_grocery_temperature,
            )
            grocery = parse_json_response(raw, GroceryList)
        except GenerationFailed as exc:
            logger.error("grocery generation failed plan=%s reason=%s", plan_id, exc.reason)
            raise GenerationFailed(exc.reason, exc.issues, error=GROCERY_ERROR) from exc

        row = {"plan_id": plan_id, "items": [i.model_dump() for i in grocery.items]}
        res = await self._call_db(
            lambda r: self.client.table("grocery_lists").insert(r).execute(), row
        )
        if not res.get("ok"):
            # a concurrent request may have won the unique(plan_id) race
            logger.error("saving grocery list failed plan=%s diagnostics=%s", plan_id, res.get("diagnostics"))
            raise PersistenceFailed(error=GROCERY_ERROR)
        data = res["data"]
        saved = data[0] if isinstance(data, list) and data else row
        logger.info("grocery list saved plan=%s items=%d", plan_id, len(row["items"]))
        return saved
