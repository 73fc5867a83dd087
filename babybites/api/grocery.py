# babybites/api/grocery.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from babybites.api.deps import (
    CurrentUser,
    enforce_rate_limit,
    get_current_user,
    get_grocery_service,
    json_body,
    success,
)
from babybites.models.requests import GroceryListRequest
from babybites.services.grocery_service import GroceryService

router = APIRouter()


@router.post("/generate-grocery-list")
async def generate_grocery_list(
    request: Request,
    user: CurrentUser = Depends(get_current_user),
    grocery: GroceryService = Depends(get_grocery_service),
):
    enforce_rate_limit(
        user.id,
        "generate-grocery-list",
        message="Please wait before generating another grocery list",
    )
    body = await json_body(request, GroceryListRequest)
    saved = await grocery.generate(str(body.plan_id), user.id)
    return success({"groceryList": saved})
