# babybites/services/swap_service.py
"""Alternative suggestions for a single meal of a published plan."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from babybites.config.settings import settings
from babybites.models.plan_schema import parse_json_response
from babybites.models.requests import MealSwapRequest
from babybites.models.suggestions import SwapSuggestions
from babybites.services.age import age_in_months
from babybites.services.context_builder import classify_rating
from babybites.services.errors import GenerationFailed
from babybites.services.generation_client import GenerationClient
from babybites.services.meal_access import MealAccess
from babybites.services.prompt_builder import SYSTEM_INSTRUCTION, build_meal_swap_prompt

logger = logging.getLogger(__name__)

SWAP_ERROR = "Failed to generate swap suggestions"


class SwapService(MealAccess):

    def __init__(self, client: Any = None, generator: Optional[GenerationClient] = None):
        super().__init__(client)
        self.generator = generator or GenerationClient()

    async def disliked_patterns(self, baby_id: str) -> List[str]:
        ratings = self._rows_or_raise(
            await self._call_db(
                lambda bid: self.client.table("meal_ratings")
                .select("meal_id, rating, taste_feedback")
                .eq("baby_id", bid)
                .execute(),
                baby_id,
            ),
            "meal_ratings",
        )
        meal_ids = sorted({r["meal_id"] for r in ratings if classify_rating(r) == "disliked"})
        if not meal_ids:
            return []
        meals = self._rows_or_raise(
            await self._call_db(
                lambda ids: self.client.table("meals").select("id, title").in_("id", ids).execute(),
                meal_ids,
            ),
            "meals",
        )
        return [m["title"] for m in meals if m.get("title")]

    async def suggest(self, meal_id: str, user_id: str, body: MealSwapRequest) -> Dict[str, Any]:
        owned = await self.owned_meal(meal_id, user_id)
        recipe = (await self.recipes_for([owned.meal["id"]])).get(owned.meal["id"]) or {}
        prompt = build_meal_swap_prompt(
            original_meal={
                "title": owned.meal.get("title"),
                "summary": owned.meal.get("summary"),
                "meal_type": owned.meal.get("meal_type"),
                "ingredients": recipe.get("ingredients") or [],
            },
            age_months=age_in_months(owned.baby["birthdate"]),
            allergies=owned.baby.get("allergies") or [],
            swap_reason=body.reason,
            custom_reason=body.custom_reason,
            disliked_patterns=await self.disliked_patterns(owned.baby["id"]),
        )
        try:
            raw = await self.generator.complete_json(
                SYSTEM_INSTRUCTION, prompt, settings.openai_swap_temperature
            )
            validated = parse_json_response(raw, SwapSuggestions)
        except GenerationFailed as exc:
            logger.error("swap generation failed meal=%s reason=%s issues=%s", meal_id, exc.reason, exc.issues[:10])
            raise GenerationFailed(exc.reason, exc.issues, error=SWAP_ERROR) from exc

        return {
            "originalMeal": {
                "id": owned.meal["id"],
                "title": owned.meal.get("title"),
                "meal_type": owned.meal.get("meal_type"),
            },
            "suggestions": [s.model_dump(exclude_none=True) for s in validated.suggestions],
        }
