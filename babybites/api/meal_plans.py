# babybites/api/meal_plans.py
"""Meal plan generation and retrieval endpoints."""
from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Request

from babybites.api.deps import (
    CurrentUser,
    enforce_rate_limit,
    get_current_user,
    get_meal_access,
    get_meal_plan_service,
    json_body,
    success,
)
from babybites.models.requests import GenerateMealPlanRequest
from babybites.services.meal_access import MealAccess
from babybites.services.meal_plan_service import MealPlanService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/generate-meal-plan")
async def generate_meal_plan(
    request: Request,
    user: CurrentUser = Depends(get_current_user),
    service: MealPlanService = Depends(get_meal_plan_service),
):
    enforce_rate_limit(
        user.id,
        "generate-meal-plan",
        message="Please wait before generating another meal plan",
    )
    body = await json_body(request, GenerateMealPlanRequest)
    result = await service.generate(user.id, body)
    return success({"planId": result.plan_id, "data": result.plan, "usage": result.usage})


@router.get("/meal-plans/{plan_id}")
async def get_meal_plan(
    plan_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    access: MealAccess = Depends(get_meal_access),
):
    enforce_rate_limit(user.id, "read-meal-plan", preset="api")
    plan = await access.read_plan(str(plan_id), user.id)
    return {"plan": plan}
