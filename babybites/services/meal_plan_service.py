# babybites/services/meal_plan_service.py
"""
Meal plan generation pipeline.

quota check -> context -> prompt -> generation -> validation -> stage ->
finalize (or discard). Each stage either returns its output or raises a
BabyBitesError; nothing is written before the response validated, and quota
is only consumed together with publishing the plan.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Optional

from babybites.config.settings import settings
from babybites.models.plan_schema import FeatureFlags, validate_meal_plan_response
from babybites.models.requests import GenerateMealPlanRequest
from babybites.services.context_builder import ContextBuilder
from babybites.services.errors import GenerationFailed
from babybites.services.generation_client import GenerationClient
from babybites.services.plan_writer import PlanWriter
from babybites.services.prompt_builder import SYSTEM_INSTRUCTION, build_meal_plan_prompt
from babybites.services.quota_service import QuotaService

logger = logging.getLogger(__name__)


@dataclass
class GenerationResult:
    plan_id: str
    plan: Dict[str, Any]
    usage: Dict[str, Any] = field(default_factory=dict)


class MealPlanService:

    def __init__(
        self,
        client: Any = None,
        generator: Optional[GenerationClient] = None,
    ):
        self.quota = QuotaService(client)
        self.context_builder = ContextBuilder(client)
        self.writer = PlanWriter(client)
        self.generator = generator or GenerationClient()

    async def generate(
        self,
        user_id: str,
        request: GenerateMealPlanRequest,
        today: Optional[date] = None,
    ) -> GenerationResult:
        subject_id = str(request.subject_id)
        status = await self.quota.check(user_id)

        context = await self.context_builder.build(subject_id, user_id, today)
        flags = FeatureFlags.from_request(request)
        prompt = build_meal_plan_prompt(
            subject_name=context.subject_name,
            age_months=context.age_months,
            days=request.days,
            meal_types=request.meals_per_day,
            goal=request.goal,
            tried_foods=context.tried_foods,
            allergies=context.allergies,
            disliked_foods=context.disliked_foods,
            loved_meals=context.loved_meals,
            disliked_meals=context.disliked_meals,
            include_new_foods=request.include_new_foods,
            flags=flags,
        )

        diagnostics: Dict[str, Any] = {}
        raw = await self.generator.complete_json(
            SYSTEM_INSTRUCTION, prompt, settings.openai_plan_temperature, diagnostics
        )
        try:
            plan = validate_meal_plan_response(raw, flags, request.days, request.meals_per_day)
        except GenerationFailed as exc:
            logger.error(
                "generated plan rejected user=%s subject=%s reason=%s issues=%s",
                user_id,
                subject_id,
                exc.reason,
                exc.issues[:10],
            )
            raise

        staged = await self.writer.stage(subject_id, request, plan, today)
        try:
            finalized = await self.quota.finalize(staged.plan_id, user_id)
        except Exception:
            await self.writer.discard(staged)
            raise

        logger.info(
            "meal plan ready plan=%s user=%s days=%d meals=%d elapsed=%.2fs",
            staged.plan_id,
            user_id,
            request.days,
            len(staged.meal_ids),
            diagnostics.get("elapsed", 0.0),
        )
        return GenerationResult(
            plan_id=staged.plan_id,
            plan=plan.model_dump(mode="json", exclude_none=True),
            usage={
                "plansGeneratedThisWeek": finalized.get("plans_generated_this_week"),
                "limit": status.limit,
            },
        )
