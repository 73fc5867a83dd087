# babybites/services/prompt_builder.py
"""
Prompt text for the generative calls (meal plan, meal swap, grocery list,
quick-search recipes). Every builder is a pure function of its arguments.

The meal-plan example output and extension instructions come from
`babybites.models.plan_schema`, the same registry the validator is built
from.
"""
from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Sequence

from babybites.config.constants import FEEDING_GOALS, SWAP_REASONS
from babybites.models.plan_schema import FeatureFlags, meal_example
from babybites.services.age import get_age_range, texture_guideline

SYSTEM_INSTRUCTION = (
    "You are a baby nutrition expert. "
    "Always respond with valid JSON only, no markdown or explanation."
)

GROCERY_SYSTEM_INSTRUCTION = (
    "You are a helpful assistant that consolidates grocery lists. "
    "Always respond with valid JSON only."
)

SAFETY_GUIDELINES = (
    "1. All meals must be age-appropriate and safe",
    "2. Focus on nutrient-dense, whole foods",
    "3. Portions should be baby-sized (1-4 tablespoons per food item)",
    "4. Introduce only ONE new food per day maximum (if including new foods)",
    "5. Avoid honey for babies under 12 months",
    "6. Avoid added salt and sugar",
    "7. Include variety across food groups",
    "8. Textures must match the age guideline above",
)

SWAP_REASON_HINTS = {
    "missing_ingredient": "Use common pantry ingredients, different from the original",
    "dont_like": "Try different flavor profiles and textures",
    "want_variety": "Explore different cuisines or ingredient combinations",
    "dietary": "Focus on alternative ingredients that meet dietary needs",
}


def _join(items: Sequence[str], empty: str) -> str:
    return ", ".join(items) if items else empty


def _feedback_section(loved: Sequence[str], disliked: Sequence[str]) -> str:
    if not loved and not disliked:
        return ""
    lines = ["## PAST FEEDBACK"]
    if loved:
        lines.append(f"- Meals the baby loved (build on these): {', '.join(loved)}")
    if disliked:
        lines.append(f"- Meals the baby disliked (avoid similar): {', '.join(disliked)}")
    return "\n".join(lines) + "\n"


def build_meal_plan_prompt(
    *,
    subject_name: str,
    age_months: int,
    days: int,
    meal_types: Sequence[str],
    goal: str,
    tried_foods: Sequence[str] = (),
    allergies: Sequence[str] = (),
    disliked_foods: Sequence[str] = (),
    loved_meals: Sequence[str] = (),
    disliked_meals: Sequence[str] = (),
    include_new_foods: bool = True,
    flags: FeatureFlags = FeatureFlags(),
) -> str:
    goal_description = FEEDING_GOALS.get(goal, {}).get("description", "balanced nutrition")
    meals_to_include = ", ".join(meal_types)
    extensions = flags.active_extensions()

    sections = [
        f"You are a baby nutrition expert creating a {days}-day meal plan for a "
        f"{age_months}-month-old baby named {subject_name}.",
        "",
        "## Context",
        f"- Baby's age: {age_months} months (age range {get_age_range(age_months)})",
        f"- Feeding goal: {goal_description}",
        f"- Texture guideline for this age: {texture_guideline(age_months)}",
        f"- Known allergies (NEVER use): {_join(allergies, 'none known')}",
        f"- Foods already tried: {_join(tried_foods, 'none yet')}",
        f"- Foods to avoid (disliked): {_join(disliked_foods, 'none')}",
        f"- Include new food introductions: {'Yes' if include_new_foods else 'No'}",
        f"- Meals per day: {meals_to_include}",
        f"- Batch cooking mode: {'ENABLED' if flags.batch_cooking else 'Disabled'}",
        f"- Family version: {'ENABLED' if flags.family_version else 'Disabled'}",
        "",
    ]
    feedback = _feedback_section(loved_meals, disliked_meals)
    if feedback:
        sections.append(feedback)
    for ext in extensions:
        sections.append(ext.instructions)
        sections.append("")

    example = {"days": [{"day_index": 0, "meals": [meal_example(flags)]}]}
    sections += [
        "## Important Guidelines",
        *SAFETY_GUIDELINES,
        "",
        "## Required Output Format",
        "Return ONLY valid JSON in this exact structure:",
        json.dumps(example, indent=2),
        "",
        f"Generate {days} days of meals with day_index 0 to {days - 1}. "
        f"Each day must have exactly these meal types, once each: {meals_to_include}.",
        "Include practical, simple recipes that busy parents can prepare quickly.",
    ]
    return "\n".join(sections)


def build_meal_swap_prompt(
    *,
    original_meal: Dict[str, Any],
    age_months: int,
    allergies: Sequence[str] = (),
    swap_reason: Optional[str] = None,
    custom_reason: Optional[str] = None,
    disliked_patterns: Sequence[str] = (),
) -> str:
    if swap_reason:
        reason = f"Swap reason: {SWAP_REASONS[swap_reason]}"
        if custom_reason:
            reason += f" - {custom_reason}"
    else:
        reason = "User wants alternative options"

    ingredient_names = [i.get("name", "") for i in original_meal.get("ingredients") or []]
    meal_type = original_meal.get("meal_type", "")

    lines = [
        "You are a baby nutrition expert. Generate 3 alternative meal suggestions "
        "to swap with the following meal.",
        "",
        "## ORIGINAL MEAL TO REPLACE",
        f"- Title: {original_meal.get('title', '')}",
        f"- Summary: {original_meal.get('summary', '')}",
        f"- Meal type: {meal_type}",
        f"- Ingredients: {', '.join(n for n in ingredient_names if n)}",
        "",
        "## CONTEXT",
        f"- Baby's age: {age_months} months",
        f"- Texture guideline for this age: {texture_guideline(age_months)}",
        f"- Known allergies: {_join(allergies, 'none known')}",
        f"- {reason}",
    ]
    if disliked_patterns:
        lines += [
            "",
            "## AVOID THESE PATTERNS",
            f"Based on past feedback, avoid meals similar to: {', '.join(disliked_patterns)}",
        ]
    lines += [
        "",
        "## REQUIREMENTS FOR ALTERNATIVES",
        "1. Must maintain similar nutritional value to the original",
        f"2. Must be appropriate for the same meal type ({meal_type})",
        f"3. Must follow texture guidelines for {age_months}-month-old",
        "4. Must avoid known allergens",
        "5. Should address the swap reason",
    ]
    hint = SWAP_REASON_HINTS.get(swap_reason or "")
    if hint:
        lines.append(f"   - {hint}")
    lines += [
        "6. Each alternative should be distinctly different from the others",
        "",
        "## OUTPUT FORMAT (JSON only)",
        json.dumps(
            {
                "suggestions": [
                    {
                        "title": "Alternative meal name",
                        "summary": "Brief description of why this is a good swap",
                        "ingredients": [
                            {"name": "ingredient", "quantity": "2", "unit": "tablespoons", "category": "fruits"}
                        ],
                        "instructions": ["Step 1", "Step 2", "Step 3"],
                        "prep_time_minutes": 10,
                        "texture_notes": "Age-appropriate texture description",
                        "swap_reason": "Why this is a good alternative",
                        "nutritional_comparison": "How nutrition compares to the original",
                    }
                ]
            },
            indent=2,
        ),
        "",
        "Generate exactly 3 alternatives. Each should be practical, simple, and quick to prepare.",
    ]
    return "\n".join(lines)


def build_grocery_list_prompt(ingredients: List[Dict[str, Any]]) -> str:
    return "\n".join(
        [
            "Consolidate this list of baby food ingredients into a shopping list.",
            "Combine duplicates, round up quantities, and organize by grocery store section.",
            "",
            "Ingredients:",
            json.dumps(ingredients, indent=2),
            "",
            "## Output Format (JSON only)",
            json.dumps(
                {
                    "items": [
                        {
                            "name": "ingredient",
                            "quantity": "combined quantity",
                            "unit": "unit",
                            "category": "category",
                            "checked": False,
                        }
                    ]
                },
                indent=2,
            ),
            "",
            "Group by category and combine any duplicate ingredients. Use standard grocery "
            'quantities (e.g., "1 bunch" for herbs, "1 lb" for meats).',
        ]
    )


def build_quick_search_prompt(
    *,
    ingredients: Sequence[str],
    age_months: int,
    allergies: Sequence[str] = (),
) -> str:
    lines = [
        f"Generate 2 simple, healthy baby food recipes for a {age_months}-month-old baby.",
        "",
        f"Available ingredients: {', '.join(ingredients)}",
        "",
        "## Requirements",
        "- Only use the available ingredients listed above",
        f"- Texture guideline for this age: {texture_guideline(age_months)}",
        "- Safe for babies (avoid honey, salt, added sugar, whole nuts)",
    ]
    if allergies:
        lines.append(f"- AVOID these allergens: {', '.join(allergies)}")
    lines += [
        "",
        "## Output Format (JSON only)",
        json.dumps(
            {
                "recipes": [
                    {
                        "title": "Recipe name",
                        "summary": "Brief description",
                        "ingredients": ["ingredient 1", "ingredient 2"],
                        "instructions": ["Step 1", "Step 2"],
                        "prep_time_minutes": 15,
                        "texture_notes": "e.g., Soft mash, Finger food",
                    }
                ]
            },
            indent=2,
        ),
    ]
    return "\n".join(lines)
