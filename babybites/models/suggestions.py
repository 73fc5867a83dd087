# babybites/models/suggestions.py
"""Model output schemas for meal swaps, grocery lists and quick-search recipes."""
from __future__ import annotations

from typing import List, Optional

from pydantic import Field

from babybites.models.plan_schema import AIModel, Ingredient, NonEmptyStr


class SwapSuggestion(AIModel):
    title: NonEmptyStr
    summary: str
    ingredients: List[Ingredient] = Field(min_length=1)
    instructions: List[NonEmptyStr] = Field(min_length=1)
    prep_time_minutes: int = Field(default=15, ge=0)
    texture_notes: Optional[str] = None
    swap_reason: str
    nutritional_comparison: str


class SwapSuggestions(AIModel):
    suggestions: List[SwapSuggestion] = Field(min_length=1)


class GroceryItem(AIModel):
    name: NonEmptyStr
    quantity: str
    unit: str
    category: str
    checked: bool = False


class GroceryList(AIModel):
    items: List[GroceryItem] = Field(min_length=1)


class QuickSearchRecipe(AIModel):
    title: NonEmptyStr
    summary: str
    ingredients: List[NonEmptyStr] = Field(min_length=1)
    instructions: List[NonEmptyStr] = Field(min_length=1)
    prep_time_minutes: int = Field(default=15, ge=0)
    texture_notes: Optional[str] = None


class QuickSearchRecipes(AIModel):
    recipes: List[QuickSearchRecipe] = Field(min_length=1)
