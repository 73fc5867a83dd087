# babybites/api/deps.py
"""
Shared FastAPI dependencies: bearer-token auth, per-account rate limiting,
JSON body parsing and service singletons.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict, Optional, Type, TypeVar

from fastapi import Request
from pydantic import BaseModel

from babybites.db.client import SupabaseClientNotInitialized, get_supabase_client, run_blocking
from babybites.models.requests import parse_request
from babybites.services.billing_service import BillingService
from babybites.services.errors import (
    AuthenticationRequired,
    RateLimited,
    RequestValidationFailed,
    StorageUnavailable,
)
from babybites.services.grocery_service import GroceryService
from babybites.services.meal_access import MealAccess
from babybites.services.meal_plan_service import MealPlanService
from babybites.services.quick_search_service import QuickSearchService
from babybites.services.rate_limiter import RATE_LIMITS, rate_limit_key, rate_limiter
from babybites.services.rating_service import RatingService
from babybites.services.share_service import ShareService
from babybites.services.swap_service import SwapService

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


@dataclass(frozen=True)
class CurrentUser:
    id: str
    email: Optional[str] = None


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def get_current_user(request: Request) -> CurrentUser:
    token = _bearer_token(request)
    if not token:
        raise AuthenticationRequired()
    try:
        client = get_supabase_client()
        resp = await run_blocking(client.auth.get_user, token)
    except SupabaseClientNotInitialized as exc:
        raise StorageUnavailable() from exc
    except Exception as exc:
        logger.info("token verification failed: %s", exc)
        raise AuthenticationRequired() from exc
    user = getattr(resp, "user", None)
    if user is None or not getattr(user, "id", None):
        raise AuthenticationRequired()
    return CurrentUser(id=str(user.id), email=getattr(user, "email", None))


def enforce_rate_limit(user_id: str, operation: str, preset: str = "ai_generation", message: Optional[str] = None) -> None:
    result = rate_limiter.check(rate_limit_key(user_id, operation), RATE_LIMITS[preset])
    if not result.success:
        logger.info("rate limited user=%s op=%s retry_after=%ss", user_id, operation, result.retry_after)
        raise RateLimited(message, retry_after=result.retry_after, headers=result.headers())


def rate_limit_allows(user_id: str, operation: str, preset: str = "ai_generation") -> bool:
    """Like enforce_rate_limit, for optional work that is skipped instead of refused."""
    result = rate_limiter.check(rate_limit_key(user_id, operation), RATE_LIMITS[preset])
    if not result.success:
        logger.info("optional %s skipped for user=%s retry_after=%ss", operation, user_id, result.retry_after)
    return result.success


async def json_body(request: Request, model: Type[M]) -> M:
    """Decode and validate the JSON body, reporting every failing field."""
    raw = await request.body()
    try:
        body: Any = json.loads(raw) if raw else None
    except ValueError:
        raise RequestValidationFailed(
            details=[{"field": "body", "message": "Request body must be valid JSON"}]
        )
    return parse_request(model, body)


@lru_cache(maxsize=None)
def get_meal_plan_service() -> MealPlanService:
    return MealPlanService()


@lru_cache(maxsize=None)
def get_meal_access() -> MealAccess:
    return MealAccess()


@lru_cache(maxsize=None)
def get_rating_service() -> RatingService:
    return RatingService()


@lru_cache(maxsize=None)
def get_swap_service() -> SwapService:
    return SwapService()


@lru_cache(maxsize=None)
def get_grocery_service() -> GroceryService:
    return GroceryService()


@lru_cache(maxsize=None)
def get_billing_service() -> BillingService:
    return BillingService()


@lru_cache(maxsize=None)
def get_quick_search_service() -> QuickSearchService:
    return QuickSearchService()


@lru_cache(maxsize=None)
def get_share_service() -> ShareService:
    return ShareService()


def success(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {"success": True, **payload}
