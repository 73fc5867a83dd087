# babybites/api/share.py
"""Share links: the owner creates one, anyone with the token reads it."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Path, Request

from babybites.api.deps import (
    CurrentUser,
    enforce_rate_limit,
    get_current_user,
    get_share_service,
    json_body,
    success,
)
from babybites.models.requests import ShareCreateRequest
from babybites.services.share_service import ShareService

router = APIRouter()


@router.post("/share/create")
async def create_share(
    request: Request,
    user: CurrentUser = Depends(get_current_user),
    shares: ShareService = Depends(get_share_service),
):
    enforce_rate_limit(user.id, "share-create", preset="api")
    body = await json_body(request, ShareCreateRequest)
    result = await shares.create(str(body.plan_id), user.id, body)
    return success(result)


@router.get("/share/{token}")
async def read_share(
    token: str = Path(..., min_length=1, max_length=64),
    shares: ShareService = Depends(get_share_service),
):
    return success(await shares.read(token))
