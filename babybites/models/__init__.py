"""Request bodies and model-output schemas."""
from babybites.models.plan_schema import FeatureFlags, build_meal_plan_model, validate_meal_plan_response
from babybites.models.requests import (
    GenerateMealPlanRequest,
    GroceryListRequest,
    MealRatingRequest,
    MealSwapRequest,
)
from babybites.models.suggestions import GroceryList, SwapSuggestions

__all__ = [
    "FeatureFlags",
    "GenerateMealPlanRequest",
    "GroceryList",
    "GroceryListRequest",
    "MealRatingRequest",
    "MealSwapRequest",
    "SwapSuggestions",
    "build_meal_plan_model",
    "validate_meal_plan_response",
]
