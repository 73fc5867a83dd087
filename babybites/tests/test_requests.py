# tests/test_requests.py
import pytest

from babybites.models.requests import (
    GenerateMealPlanRequest,
    MealRatingRequest,
    MealSwapRequest,
    parse_request,
)
from babybites.services.errors import RequestValidationFailed

SUBJECT = "3f1c2a8e-5b7d-4c1e-9a2b-1d2e3f4a5b6c"


def _body(**overrides):
    body = {
        "subjectId": SUBJECT,
        "days": 3,
        "mealsPerDay": ["breakfast", "lunch"],
        "goal": "balanced_nutrition",
    }
    body.update(overrides)
    return body


def test_valid_request_applies_defaults():
    req = parse_request(GenerateMealPlanRequest, _body())
    assert str(req.subject_id) == SUBJECT
    assert req.days == 3
    assert req.meals_per_day == ["breakfast", "lunch"]
    assert req.include_new_foods is True
    assert req.batch_cooking_mode is False
    assert req.include_family_version is False


def test_baby_id_alias_is_accepted():
    body = _body()
    body["babyId"] = body.pop("subjectId")
    req = parse_request(GenerateMealPlanRequest, body)
    assert str(req.subject_id) == SUBJECT


@pytest.mark.parametrize("days", [0, 15, -1])
def test_days_out_of_range(days):
    with pytest.raises(RequestValidationFailed) as excinfo:
        parse_request(GenerateMealPlanRequest, _body(days=days))
    assert excinfo.value.status_code == 400
    assert [d["field"] for d in excinfo.value.details] == ["days"]


def test_days_boundaries_accepted():
    assert parse_request(GenerateMealPlanRequest, _body(days=1)).days == 1
    assert parse_request(GenerateMealPlanRequest, _body(days=14)).days == 14


def test_every_failing_field_is_reported():
    body = {"subjectId": "not-a-uuid", "days": 30, "mealsPerDay": [], "goal": "keto"}
    with pytest.raises(RequestValidationFailed) as excinfo:
        parse_request(GenerateMealPlanRequest, body)
    fields = {d["field"] for d in excinfo.value.details}
    assert {"subjectId", "days", "mealsPerDay", "goal"} <= fields
    assert all(d["message"] for d in excinfo.value.details)


def test_unknown_meal_type_rejected():
    with pytest.raises(RequestValidationFailed) as excinfo:
        parse_request(GenerateMealPlanRequest, _body(mealsPerDay=["breakfast", "brunch"]))
    assert excinfo.value.details[0]["field"].startswith("mealsPerDay")


def test_duplicate_meal_types_rejected():
    with pytest.raises(RequestValidationFailed):
        parse_request(GenerateMealPlanRequest, _body(mealsPerDay=["lunch", "lunch"]))


@pytest.mark.parametrize("body", [None, [], "days=3", 42])
def test_non_object_body_is_validation_failure(body):
    with pytest.raises(RequestValidationFailed) as excinfo:
        parse_request(GenerateMealPlanRequest, body)
    assert excinfo.value.details == [{"field": "body", "message": "Request body must be a JSON object"}]


def test_error_body_shape():
    with pytest.raises(RequestValidationFailed) as excinfo:
        parse_request(GenerateMealPlanRequest, _body(goal="nope"))
    body = excinfo.value.to_body()
    assert body["error"] == "Validation failed"
    assert body["details"][0]["field"] == "goal"


def test_rating_bounds_and_notes_length():
    ok = parse_request(MealRatingRequest, {"babyId": SUBJECT, "rating": 5, "tasteFeedback": "loved"})
    assert ok.rating == 5 and ok.taste_feedback == "loved"
    with pytest.raises(RequestValidationFailed) as excinfo:
        parse_request(MealRatingRequest, {"babyId": SUBJECT, "rating": 6, "notes": "x" * 501})
    assert {d["field"] for d in excinfo.value.details} == {"rating", "notes"}


def test_swap_reason_optional_but_checked():
    assert parse_request(MealSwapRequest, {}).reason is None
    req = parse_request(MealSwapRequest, {"reason": "other", "customReason": "no blender"})
    assert req.custom_reason == "no blender"
    with pytest.raises(RequestValidationFailed):
        parse_request(MealSwapRequest, {"reason": "bored"})
