# babybites/models/requests.py
"""
Inbound request bodies.

Bodies arrive camelCased from the web client; the models expose
snake_case attributes. Validation never stops at the first problem:
`parse_request` reports every failing field.
"""
from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional, Type, TypeVar
from uuid import UUID

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    StringConstraints,
    ValidationError,
    field_validator,
)

from babybites.config.constants import MAX_PLAN_DAYS
from babybites.services.errors import RequestValidationFailed

MealType = Literal["breakfast", "lunch", "dinner", "snack"]
FeedingGoal = Literal["balanced_nutrition", "weight_gain", "food_variety", "picky_eater"]
TasteFeedback = Literal["loved", "liked", "neutral", "disliked", "rejected"]
SwapReason = Literal["missing_ingredient", "dont_like", "want_variety", "dietary", "other"]

M = TypeVar("M", bound=BaseModel)


class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class GenerateMealPlanRequest(_Body):
    subject_id: UUID = Field(validation_alias=AliasChoices("subjectId", "babyId", "subject_id"))
    days: int = Field(ge=1, le=MAX_PLAN_DAYS)
    meals_per_day: List[MealType] = Field(
        min_length=1, validation_alias=AliasChoices("mealsPerDay", "meals_per_day")
    )
    goal: FeedingGoal
    include_new_foods: bool = Field(
        default=True, validation_alias=AliasChoices("includeNewFoods", "include_new_foods")
    )
    batch_cooking_mode: bool = Field(
        default=False, validation_alias=AliasChoices("batchCookingMode", "batch_cooking_mode")
    )
    include_family_version: bool = Field(
        default=False,
        validation_alias=AliasChoices("includeFamilyVersion", "include_family_version"),
    )

    @field_validator("meals_per_day")
    @classmethod
    def distinct_meal_types(cls, v: List[str]) -> List[str]:
        if len(set(v)) != len(v):
            raise ValueError("meal types must not repeat")
        return v


class MealRatingRequest(_Body):
    baby_id: UUID = Field(validation_alias=AliasChoices("babyId", "baby_id"))
    rating: Optional[int] = Field(default=None, ge=1, le=5)
    taste_feedback: Optional[TasteFeedback] = Field(
        default=None, validation_alias=AliasChoices("tasteFeedback", "taste_feedback")
    )
    would_make_again: Optional[bool] = Field(
        default=None, validation_alias=AliasChoices("wouldMakeAgain", "would_make_again")
    )
    notes: Optional[str] = Field(default=None, max_length=500)


class MealSwapRequest(_Body):
    reason: Optional[SwapReason] = None
    custom_reason: Optional[str] = Field(
        default=None,
        max_length=200,
        validation_alias=AliasChoices("customReason", "custom_reason"),
    )


class GroceryListRequest(_Body):
    plan_id: UUID = Field(validation_alias=AliasChoices("planId", "plan_id"))


class QuickSearchRequest(_Body):
    baby_id: UUID = Field(validation_alias=AliasChoices("babyId", "baby_id"))
    ingredients: List[Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]] = Field(
        min_length=1, max_length=20
    )
    filter_by_tried_foods: bool = Field(
        default=True, validation_alias=AliasChoices("filterByTriedFoods", "filter_by_tried_foods")
    )
    include_ai_suggestions: bool = Field(
        default=False,
        validation_alias=AliasChoices("includeAiSuggestions", "include_ai_suggestions"),
    )


class ShareCreateRequest(_Body):
    plan_id: UUID = Field(validation_alias=AliasChoices("planId", "plan_id"))
    include_pdf: bool = Field(default=False, validation_alias=AliasChoices("includePdf", "include_pdf"))
    # 0 or null: the link never expires
    expires_in_days: Optional[int] = Field(
        default=30, ge=0, le=365, validation_alias=AliasChoices("expiresInDays", "expires_in_days")
    )


def format_validation_errors(exc: ValidationError) -> List[Dict[str, str]]:
    """One {field, message} entry per failing field."""
    details = []
    for err in exc.errors():
        field = ".".join(str(p) for p in err.get("loc", ()))
        details.append({"field": field or "body", "message": err.get("msg", "invalid")})
    return details


def parse_request(model: Type[M], body: Any) -> M:
    """Validate a decoded JSON body or raise RequestValidationFailed with every issue."""
    if not isinstance(body, dict):
        raise RequestValidationFailed(
            details=[{"field": "body", "message": "Request body must be a JSON object"}]
        )
    try:
        return model.model_validate(body)
    except ValidationError as exc:
        raise RequestValidationFailed(details=format_validation_errors(exc)) from exc
