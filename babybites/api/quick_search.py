# babybites/api/quick_search.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from babybites.api.deps import (
    CurrentUser,
    enforce_rate_limit,
    get_current_user,
    get_quick_search_service,
    json_body,
    rate_limit_allows,
    success,
)
from babybites.models.requests import QuickSearchRequest
from babybites.services.quick_search_service import QuickSearchService

router = APIRouter()


@router.post("/quick-search")
async def quick_search(
    request: Request,
    user: CurrentUser = Depends(get_current_user),
    search: QuickSearchService = Depends(get_quick_search_service),
):
    enforce_rate_limit(user.id, "quick-search", preset="api")
    body = await json_body(request, QuickSearchRequest)
    # model suggestions spend the stricter generation budget
    allow_ai = search.wants_ai_suggestions(body) and rate_limit_allows(user.id, "quick-search-ai")
    result = await search.search(user.id, body, allow_ai=allow_ai)
    return success(result)
