# tests/test_prompt_builder.py
import json

from babybites.models.plan_schema import FeatureFlags
from babybites.services.prompt_builder import (
    SYSTEM_INSTRUCTION,
    build_grocery_list_prompt,
    build_meal_plan_prompt,
    build_meal_swap_prompt,
)


def _prompt(**overrides):
    kwargs = dict(
        subject_name="Mia",
        age_months=9,
        days=3,
        meal_types=["breakfast", "lunch"],
        goal="picky_eater",
        tried_foods=["banana", "oats"],
        allergies=["peanut"],
    )
    kwargs.update(overrides)
    return build_meal_plan_prompt(**kwargs)


def test_prompt_is_deterministic():
    assert _prompt() == _prompt()


def test_prompt_contains_context():
    prompt = _prompt()
    assert "3-day meal plan for a 9-month-old baby named Mia" in prompt
    assert "Gentle food exposure strategies" in prompt
    assert "Thicker purees, soft lumps" in prompt
    assert "peanut" in prompt
    assert "banana, oats" in prompt
    assert "breakfast, lunch" in prompt
    assert "day_index 0 to 2" in prompt


def test_empty_lists_have_placeholders():
    prompt = _prompt(tried_foods=[], allergies=[])
    assert "none known" in prompt
    assert "none yet" in prompt
    assert "PAST FEEDBACK" not in prompt


def test_under_six_months_uses_first_stage_textures():
    assert "Smooth purees" in _prompt(age_months=4)
    assert "Smooth purees" in _prompt(age_months=7)
    assert "Modified family foods" in _prompt(age_months=30)


def test_feedback_lists_rendered():
    prompt = _prompt(loved_meals=["Banana oat pancakes"], disliked_meals=["Liver mash"])
    assert "PAST FEEDBACK" in prompt
    assert "loved (build on these): Banana oat pancakes" in prompt
    assert "disliked (avoid similar): Liver mash" in prompt


def test_new_food_switch():
    assert "Include new food introductions: Yes" in _prompt()
    assert "Include new food introductions: No" in _prompt(include_new_foods=False)


def test_example_output_is_valid_json_block():
    prompt = _prompt(flags=FeatureFlags(batch_cooking=True))
    start = prompt.index("{", prompt.index("## Required Output Format"))
    end = prompt.index("\n\nGenerate 3 days")
    example = json.loads(prompt[start:end])
    meal = example["days"][0]["meals"][0]
    assert "nutrition" in meal
    assert "freezable" in meal
    assert "family_version" not in meal


def test_system_instruction_requires_json():
    assert "JSON" in SYSTEM_INSTRUCTION


def test_swap_prompt():
    prompt = build_meal_swap_prompt(
        original_meal={
            "title": "Lentil mash",
            "summary": "Red lentils",
            "meal_type": "dinner",
            "ingredients": [{"name": "red lentils"}, {"name": "carrot"}],
        },
        age_months=10,
        allergies=[],
        swap_reason="dont_like",
        custom_reason="spits it out",
        disliked_patterns=["Liver mash"],
    )
    assert "Lentil mash" in prompt
    assert "red lentils, carrot" in prompt
    assert "Baby didn't like similar meals - spits it out" in prompt
    assert "Try different flavor profiles and textures" in prompt
    assert "avoid meals similar to: Liver mash" in prompt
    assert "exactly 3 alternatives" in prompt


def test_swap_prompt_without_reason():
    prompt = build_meal_swap_prompt(
        original_meal={"title": "Porridge", "summary": "", "meal_type": "breakfast"},
        age_months=8,
    )
    assert "User wants alternative options" in prompt
    assert "AVOID THESE PATTERNS" not in prompt


def test_grocery_prompt_embeds_ingredients():
    ingredients = [{"name": "banana", "quantity": "1", "unit": "piece", "category": "fruits"}]
    prompt = build_grocery_list_prompt(ingredients)
    assert '"banana"' in prompt
    assert '"checked": false' in prompt
