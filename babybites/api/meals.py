# babybites/api/meals.py
"""Per-meal endpoints: ratings and swap suggestions."""
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request

from babybites.api.deps import (
    CurrentUser,
    enforce_rate_limit,
    get_current_user,
    get_rating_service,
    get_swap_service,
    json_body,
    success,
)
from babybites.models.requests import MealRatingRequest, MealSwapRequest
from babybites.services.rating_service import RatingService
from babybites.services.swap_service import SwapService

router = APIRouter()


@router.post("/meals/{meal_id}/rate")
async def rate_meal(
    meal_id: UUID,
    request: Request,
    user: CurrentUser = Depends(get_current_user),
    ratings: RatingService = Depends(get_rating_service),
):
    enforce_rate_limit(user.id, "rate-meal", preset="api")
    body = await json_body(request, MealRatingRequest)
    saved = await ratings.rate(str(meal_id), user.id, body)
    return success({"rating": saved})


@router.get("/meals/{meal_id}/rate")
async def get_meal_rating(
    meal_id: UUID,
    baby_id: UUID = Query(..., alias="babyId"),
    user: CurrentUser = Depends(get_current_user),
    ratings: RatingService = Depends(get_rating_service),
):
    rating = await ratings.get_rating(str(meal_id), user.id, str(baby_id))
    return {"rating": rating}


@router.post("/meals/{meal_id}/swap")
async def swap_meal(
    meal_id: UUID,
    request: Request,
    user: CurrentUser = Depends(get_current_user),
    swaps: SwapService = Depends(get_swap_service),
):
    enforce_rate_limit(user.id, "meal-swap", message="Please wait before requesting more swaps")
    body = await json_body(request, MealSwapRequest)
    result = await swaps.suggest(str(meal_id), user.id, body)
    return success(result)
