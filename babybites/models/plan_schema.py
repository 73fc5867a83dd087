# babybites/models/plan_schema.py
"""
Schema of a generated meal plan, shared by the prompt builder and the
response validator.

The optional per-meal payloads (nutrition estimate, batch-cooking metadata,
family adaptation) are declared once in MEAL_EXTENSIONS. The prompt renders
its instruction blocks and example output from the active extensions, and
`build_meal_plan_model` accepts exactly the same fields, so asking the model
for a field and accepting it can never diverge.

Model output is untrusted: parsing fails closed. Stray keys the model
adds on its own are dropped, but fields of an extension that was not
requested are rejected.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from functools import lru_cache
from typing import Annotated, Any, Dict, List, Optional, Sequence, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError, create_model, model_validator

from babybites.models.requests import MealType, format_validation_errors
from babybites.services.errors import GenerationFailed

NonEmptyStr = Annotated[str, Field(min_length=1)]


class AIModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class Ingredient(AIModel):
    name: NonEmptyStr
    quantity: str
    unit: str
    category: Optional[str] = None


class Nutrition(AIModel):
    calories: float = Field(ge=0)
    protein_grams: float = Field(ge=0)
    carbs_grams: float = Field(ge=0)
    fat_grams: float = Field(ge=0)
    fiber_grams: float = Field(ge=0)
    iron_mg: float = Field(ge=0)
    calcium_mg: float = Field(ge=0)
    vitamin_a_mcg: float = Field(ge=0)
    vitamin_c_mg: float = Field(ge=0)
    vitamin_d_mcg: float = Field(ge=0)
    serving_size: str
    age_appropriate_notes: Optional[str] = None


class FamilyAdaptation(AIModel):
    title: NonEmptyStr
    modifications: str
    seasonings: List[str]
    additional_ingredients: Optional[List[str]] = None
    portion_multiplier: float = Field(default=3, gt=0)
    cooking_adjustments: Optional[str] = None


class BaseMeal(AIModel):
    meal_type: MealType
    title: NonEmptyStr
    summary: NonEmptyStr
    ingredients: List[Ingredient] = Field(min_length=1)
    instructions: List[NonEmptyStr] = Field(min_length=1)
    prep_time_minutes: int = Field(default=15, ge=0)
    texture_notes: Optional[str] = None
    new_food_introduced: Optional[str] = None


BASE_MEAL_EXAMPLE: Dict[str, Any] = {
    "meal_type": "breakfast",
    "title": "Meal name",
    "summary": "Brief description of the meal",
    "ingredients": [
        {"name": "ingredient", "quantity": "2", "unit": "tablespoons", "category": "fruits"}
    ],
    "instructions": ["Step 1", "Step 2"],
    "prep_time_minutes": 10,
    "texture_notes": "Texture description for this meal",
    "new_food_introduced": "food name or null",
}


@dataclass(frozen=True)
class MealExtension:
    """Optional per-meal payload: prompt text, example and accepted fields."""

    name: str
    fields: Dict[str, Tuple[Any, Any]]
    example: Dict[str, Any]
    instructions: str
    flag: Optional[str] = None  # FeatureFlags attribute; None means always on


MEAL_EXTENSIONS: Tuple[MealExtension, ...] = (
    MealExtension(
        name="nutrition",
        fields={"nutrition": (Optional[Nutrition], None)},
        example={
            "nutrition": {
                "calories": 120,
                "protein_grams": 3.5,
                "carbs_grams": 18,
                "fat_grams": 4,
                "fiber_grams": 2.5,
                "iron_mg": 1.2,
                "calcium_mg": 60,
                "vitamin_a_mcg": 150,
                "vitamin_c_mg": 10,
                "vitamin_d_mcg": 0.5,
                "serving_size": "1/2 cup",
                "age_appropriate_notes": "Good source of iron for this age",
            }
        },
        instructions=(
            "## NUTRITION ESTIMATES\n"
            "For each meal, include a \"nutrition\" object estimating one baby-sized serving:\n"
            "- calories, protein_grams, carbs_grams, fat_grams, fiber_grams\n"
            "- iron_mg, calcium_mg, vitamin_a_mcg, vitamin_c_mg, vitamin_d_mcg\n"
            "- serving_size and optional age_appropriate_notes\n"
            "All numbers must be non-negative."
        ),
    ),
    MealExtension(
        name="batch_cooking",
        flag="batch_cooking",
        fields={
            "make_ahead_notes": (Optional[str], None),
            "storage_instructions": (Optional[str], None),
            "freezable": (Optional[bool], None),
            "reheat_instructions": (Optional[str], None),
            "prep_day_tasks": (Optional[List[str]], None),
        },
        example={
            "make_ahead_notes": "Can be made ahead and stored",
            "storage_instructions": "Fridge: 3 days, Freezer: 2 weeks",
            "freezable": True,
            "reheat_instructions": "Warm gently, stir, check temperature",
            "prep_day_tasks": ["Cook base ingredient", "Portion into containers"],
        },
        instructions=(
            "## BATCH COOKING MODE ENABLED\n"
            "Design recipes optimized for meal prep:\n"
            "- Create recipes that share base ingredients (e.g., same vegetable puree can be used in multiple meals)\n"
            "- Include make-ahead steps that can be done on a \"prep day\" (weekend)\n"
            "- Specify storage instructions (e.g., \"Fridge: 3 days\" or \"Freezer: 2 weeks\")\n"
            "- Mark which recipes are freezable\n"
            "- Include reheating instructions for each meal\n"
            "- Group prep tasks by type (chopping, cooking, blending)\n"
            "For each meal, include: \"make_ahead_notes\", \"storage_instructions\", "
            "\"freezable\" (true/false), \"reheat_instructions\" and \"prep_day_tasks\" (array)."
        ),
    ),
    MealExtension(
        name="family_version",
        flag="family_version",
        fields={"family_version": (Optional[FamilyAdaptation], None)},
        example={
            "family_version": {
                "title": "Adult version of the meal",
                "modifications": "How to adapt the baby meal for adults",
                "seasonings": ["salt", "black pepper"],
                "additional_ingredients": ["olive oil"],
                "portion_multiplier": 3,
                "cooking_adjustments": "Cook adult portions a little longer",
            }
        },
        instructions=(
            "## FAMILY VERSION ENABLED\n"
            "For each meal, include a \"family_version\" object describing how the rest of the family "
            "can eat the same meal: an adult title, the modifications, added seasonings (salt is fine for adults), "
            "optional additional ingredients, a portion_multiplier and optional cooking adjustments. "
            "Always separate the baby portion BEFORE seasoning."
        ),
    ),
)


@dataclass(frozen=True)
class FeatureFlags:
    batch_cooking: bool = False
    family_version: bool = False

    @classmethod
    def from_request(cls, request: Any) -> "FeatureFlags":
        return cls(
            batch_cooking=bool(getattr(request, "batch_cooking_mode", False)),
            family_version=bool(getattr(request, "include_family_version", False)),
        )

    def active_extensions(self) -> Tuple[MealExtension, ...]:
        return tuple(
            ext for ext in MEAL_EXTENSIONS if ext.flag is None or getattr(self, ext.flag)
        )


def meal_example(flags: FeatureFlags) -> Dict[str, Any]:
    example = dict(BASE_MEAL_EXAMPLE)
    for ext in flags.active_extensions():
        example.update(ext.example)
    return example


def extension_field_names(flags: FeatureFlags) -> List[str]:
    names: List[str] = []
    for ext in flags.active_extensions():
        names.extend(ext.fields)
    return names


def _meal_base(disabled: Tuple[str, ...]) -> Type[BaseMeal]:
    class MealWithoutDisabledExtensions(BaseMeal):
        @model_validator(mode="before")
        @classmethod
        def reject_disabled_extensions(cls, data: Any) -> Any:
            if isinstance(data, dict):
                present = [name for name in disabled if data.get(name) is not None]
                if present:
                    raise ValueError(f"fields not requested for this plan: {', '.join(present)}")
            return data

    return MealWithoutDisabledExtensions


@lru_cache(maxsize=None)
def build_meal_plan_model(flags: FeatureFlags) -> Type[BaseModel]:
    extra_fields: Dict[str, Any] = {}
    for ext in flags.active_extensions():
        extra_fields.update(ext.fields)
    disabled = tuple(
        name for ext in MEAL_EXTENSIONS for name in ext.fields if name not in extra_fields
    )
    meal_model = create_model("GeneratedMeal", __base__=_meal_base(disabled), **extra_fields)
    day_model = create_model(
        "GeneratedDay",
        __base__=AIModel,
        day_index=(int, Field(ge=0)),
        meals=(List[meal_model], Field(min_length=1)),
    )
    return create_model(
        "GeneratedMealPlan",
        __base__=AIModel,
        days=(List[day_model], Field(min_length=1)),
        tips=(Optional[List[str]], None),
        notes=(Optional[str], None),
    )


def parse_json_response(raw_text: Optional[str], model: Type[BaseModel]) -> Any:
    """JSON-decode and validate model output; every failure is a GenerationFailed."""
    if not raw_text:
        raise GenerationFailed("empty_response")
    try:
        payload = json.loads(raw_text)
    except (TypeError, ValueError) as exc:
        raise GenerationFailed(
            "invalid_json", [{"field": "body", "message": str(exc)}]
        ) from exc
    if not isinstance(payload, dict):
        raise GenerationFailed(
            "invalid_json", [{"field": "body", "message": "expected a JSON object"}]
        )
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise GenerationFailed("schema_mismatch", format_validation_errors(exc)) from exc


def coverage_issues(plan: Any, days: int, meal_types: Sequence[str]) -> List[Dict[str, str]]:
    """Slots must cover exactly days x meal_types: no gaps, no duplicates."""
    issues: List[Dict[str, str]] = []
    indexes = [d.day_index for d in plan.days]
    if sorted(indexes) != list(range(days)):
        issues.append(
            {
                "field": "days",
                "message": f"expected day_index 0..{days - 1} exactly once, got {indexes}",
            }
        )
    expected = set(meal_types)
    for pos, day in enumerate(plan.days):
        got = [m.meal_type for m in day.meals]
        if len(got) != len(set(got)):
            issues.append(
                {"field": f"days.{pos}.meals", "message": f"duplicate meal types {got}"}
            )
        missing = expected - set(got)
        unexpected = set(got) - expected
        if missing:
            issues.append(
                {"field": f"days.{pos}.meals", "message": f"missing meal types {sorted(missing)}"}
            )
        if unexpected:
            issues.append(
                {
                    "field": f"days.{pos}.meals",
                    "message": f"unexpected meal types {sorted(unexpected)}",
                }
            )
    return issues


def validate_meal_plan_response(
    raw_text: Optional[str],
    flags: FeatureFlags,
    days: int,
    meal_types: Sequence[str],
) -> Any:
    """Accept the whole plan or reject it with every failing field; never partially."""
    plan = parse_json_response(raw_text, build_meal_plan_model(flags))
    issues = coverage_issues(plan, days, meal_types)
    if issues:
        raise GenerationFailed("coverage_mismatch", issues)
    return plan

