# babybites/services/quick_search_service.py
"""
"What can I make with these?" search over a baby's published recipes,
with optional model-generated recipes for the same ingredients.

A recipe scores matched/total over its own ingredient names (case
insensitive) and is listed when more than MIN_MATCH_SCORE of it is
covered. Recipes containing a known allergen are never listed. With
`filter_by_tried_foods`, every ingredient the parent did not list must be
a food the baby has already tried.

Model suggestions are best effort: a failed or non-conformant generation
leaves `aiSuggestions` empty instead of failing the search.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from babybites.config.constants import PLAN_STATUS_READY
from babybites.config.settings import settings
from babybites.models.plan_schema import parse_json_response
from babybites.models.requests import QuickSearchRequest
from babybites.models.suggestions import QuickSearchRecipes
from babybites.services.age import age_in_months
from babybites.services.context_builder import ContextBuilder
from babybites.services.errors import GenerationFailed, SubjectNotFound
from babybites.services.generation_client import GenerationClient
from babybites.services.meal_access import MealAccess
from babybites.services.prompt_builder import SYSTEM_INSTRUCTION, build_quick_search_prompt

logger = logging.getLogger(__name__)

MIN_MATCH_SCORE = 0.3
MAX_RESULTS = 10
AI_MIN_INGREDIENTS = 2
TRIED_STATUSES = ("tried", "liked")


def ingredient_names(recipe: Dict[str, Any]) -> List[str]:
    names = []
    for item in recipe.get("ingredients") or []:
        name = item.get("name") if isinstance(item, dict) else item
        if isinstance(name, str) and name.strip():
            names.append(name.strip())
    return names


def score_recipe(names: List[str], wanted: Set[str]) -> Tuple[List[str], float]:
    matched = [n.lower() for n in names if n.lower() in wanted]
    return matched, (len(matched) / len(names) if names else 0.0)


def contains_allergen(names: Iterable[str], allergens: Set[str]) -> bool:
    # "peanut" also rules out "peanut butter"
    return any(a in n.lower() for n in names for a in allergens)


class QuickSearchService(MealAccess):

    def __init__(self, client: Any = None, generator: Optional[GenerationClient] = None):
        super().__init__(client)
        self.generator = generator or GenerationClient()
        self.context = ContextBuilder(self.client)

    @staticmethod
    def wants_ai_suggestions(body: QuickSearchRequest) -> bool:
        return body.include_ai_suggestions and len(body.ingredients) >= AI_MIN_INGREDIENTS

    async def owned_baby(self, baby_id: str, user_id: str) -> Dict[str, Any]:
        baby = await self.load_baby(baby_id)
        if baby.get("user_id") != user_id:
            raise SubjectNotFound()
        return baby

    async def published_meals(self, baby_id: str) -> List[Dict[str, Any]]:
        plans = self._rows_or_raise(
            await self._call_db(
                lambda bid: self.client.table("meal_plans")
                .select("id")
                .eq("baby_id", bid)
                .eq("status", PLAN_STATUS_READY)
                .execute(),
                baby_id,
            ),
            "meal_plans",
        )
        plan_ids = [p["id"] for p in plans]
        if not plan_ids:
            return []
        return self._rows_or_raise(
            await self._call_db(
                lambda ids: self.client.table("meals")
                .select("id, plan_id, title, summary, meal_type")
                .in_("plan_id", ids)
                .execute(),
                plan_ids,
            ),
            "meals",
        )

    async def search(
        self, user_id: str, body: QuickSearchRequest, allow_ai: bool = False
    ) -> Dict[str, Any]:
        baby = await self.owned_baby(str(body.baby_id), user_id)
        history = await self.context.food_history(baby["id"])
        tried = {h["name"].lower() for h in history if h.get("status") in TRIED_STATUSES}
        allergens = {a.strip().lower() for a in baby.get("allergies") or [] if a and a.strip()}
        allergens |= {h["name"].lower() for h in history if h.get("status") == "allergic"}
        wanted = {i.lower() for i in body.ingredients}

        meals = await self.published_meals(baby["id"])
        recipes = await self.recipes_for([m["id"] for m in meals])
        matches = []
        for meal in meals:
            recipe = recipes.get(meal["id"])
            if not recipe:
                continue
            names = ingredient_names(recipe)
            if contains_allergen(names, allergens):
                continue
            if body.filter_by_tried_foods and any(
                n.lower() not in wanted and n.lower() not in tried for n in names
            ):
                continue
            matched, score = score_recipe(names, wanted)
            if score <= MIN_MATCH_SCORE:
                continue
            matches.append(
                {
                    "id": recipe["id"],
                    "title": meal.get("title") or "Untitled",
                    "summary": meal.get("summary") or "",
                    "prepTimeMinutes": recipe.get("prep_time_minutes") or 15,
                    "ingredients": names,
                    "matchedIngredients": matched,
                    "matchScore": score,
                    "mealType": meal.get("meal_type") or "meal",
                }
            )
        matches.sort(key=lambda m: m["matchScore"], reverse=True)

        suggestions: List[Dict[str, Any]] = []
        if allow_ai and self.wants_ai_suggestions(body):
            suggestions = await self.suggest_recipes(baby, body.ingredients, allergens)

        logger.info(
            "quick search baby=%s ingredients=%d matches=%d suggestions=%d",
            baby["id"],
            len(body.ingredients),
            len(matches),
            len(suggestions),
        )
        return {
            "existingRecipes": matches[:MAX_RESULTS],
            "aiSuggestions": suggestions,
            "ingredientCount": len(body.ingredients),
        }

    async def suggest_recipes(
        self, baby: Dict[str, Any], ingredients: List[str], allergens: Set[str]
    ) -> List[Dict[str, Any]]:
        prompt = build_quick_search_prompt(
            ingredients=ingredients,
            age_months=age_in_months(baby["birthdate"]),
            allergies=sorted(allergens),
        )
        try:
            raw = await self.generator.complete_json(
                SYSTEM_INSTRUCTION, prompt, settings.openai_quick_search_temperature
            )
            validated = parse_json_response(raw, QuickSearchRecipes)
        except GenerationFailed as exc:
            logger.warning("quick search suggestions skipped baby=%s reason=%s", baby["id"], exc.reason)
            return []

        return [
            {
                "title": r.title,
                "summary": r.summary,
                "ingredients": r.ingredients,
                "instructions": r.instructions,
                "prepTimeMinutes": r.prep_time_minutes,
                "textureNotes": r.texture_notes,
            }
            for r in validated.recipes
            if not contains_allergen(r.ingredients, allergens)
        ]
