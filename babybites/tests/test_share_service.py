# tests/test_share_service.py
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from babybites.config.settings import settings
from babybites.models.requests import ShareCreateRequest, parse_request
from babybites.services.errors import LinkExpired, NotFound, PersistenceFailed, RequestValidationFailed
from babybites.services.share_service import ShareService, sanitize_baby

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def published(fake_db, monkeypatch):
    monkeypatch.setattr(settings, "app_url", "https://app.example.com/", raising=False)
    user = fake_db.add_user()
    baby = fake_db.add_baby(user["id"], name="Mia", allergies=["peanut"])
    plan = fake_db.add("meal_plans", baby_id=baby["id"], status="ready", meal_types=["lunch"], days=1)
    meal = fake_db.add("meals", plan_id=plan["id"], day_index=0, meal_type="lunch", title="Lentil mash", summary="Red lentils")
    fake_db.add("recipes", meal_id=meal["id"], ingredients=[{"name": "red lentils", "quantity": "2", "unit": "tbsp"}], instructions=["Cook"])
    return {"user": user, "baby": baby, "plan": plan}


def _body(plan_id, **extra):
    return parse_request(ShareCreateRequest, dict({"planId": plan_id}, **extra))


@pytest.mark.asyncio
async def test_create_new_link(fake_db, published):
    result = await ShareService().create(published["plan"]["id"], published["user"]["id"], _body(published["plan"]["id"]), now=NOW)

    share = result["share"]
    assert result["isNew"] is True
    assert len(share["share_token"]) == 12
    assert result["shareUrl"] == f"https://app.example.com/shared/{share['share_token']}"
    assert share["expires_at"] == (NOW + timedelta(days=30)).isoformat()
    assert share["include_pdf"] is False
    assert fake_db.rows("shared_meal_plans")[0]["created_by"] == published["user"]["id"]


@pytest.mark.asyncio
async def test_second_create_refreshes_the_same_link(fake_db, published):
    svc, plan_id, user_id = ShareService(), published["plan"]["id"], published["user"]["id"]
    first = await svc.create(plan_id, user_id, _body(plan_id), now=NOW)
    second = await svc.create(plan_id, user_id, _body(plan_id, includePdf=True, expiresInDays=0), now=NOW)

    assert second["isNew"] is False
    assert second["share"]["share_token"] == first["share"]["share_token"]
    assert second["share"]["expires_at"] is None
    assert second["share"]["include_pdf"] is True
    assert len(fake_db.rows("shared_meal_plans")) == 1


@pytest.mark.asyncio
async def test_only_the_owner_can_share(fake_db, published):
    stranger = fake_db.add_user()
    with pytest.raises(NotFound):
        await ShareService().create(published["plan"]["id"], stranger["id"], _body(published["plan"]["id"]))
    draft = fake_db.add("meal_plans", baby_id=published["baby"]["id"], status="draft")
    with pytest.raises(NotFound):
        await ShareService().create(draft["id"], published["user"]["id"], _body(draft["id"]))
    assert fake_db.rows("shared_meal_plans") == []


@pytest.mark.asyncio
async def test_create_losing_a_race_reuses_the_winner(fake_db, published):
    plan_id, user_id = published["plan"]["id"], published["user"]["id"]
    winner = fake_db.add("shared_meal_plans", plan_id=plan_id, created_by=user_id, share_token="winnertoken1", view_count=0)
    svc = ShareService()
    svc.existing_share = AsyncMock(side_effect=[{}, dict(winner)])

    result = await svc.create(plan_id, user_id, _body(plan_id, includePdf=True), now=NOW)

    assert result["isNew"] is False
    assert result["share"]["share_token"] == "winnertoken1"
    assert len(fake_db.rows("shared_meal_plans")) == 1
    assert fake_db.rows("shared_meal_plans")[0]["include_pdf"] is True


@pytest.mark.asyncio
async def test_create_failure_is_persistence_error(fake_db, published):
    fake_db.fail("shared_meal_plans", "insert")
    with pytest.raises(PersistenceFailed) as excinfo:
        await ShareService().create(published["plan"]["id"], published["user"]["id"], _body(published["plan"]["id"]))
    assert excinfo.value.error == "Failed to create share link"


@pytest.mark.asyncio
async def test_read_counts_views_and_hides_the_baby(fake_db, published):
    svc = ShareService()
    created = await svc.create(published["plan"]["id"], published["user"]["id"], _body(published["plan"]["id"]), now=NOW)
    token = created["share"]["share_token"]

    first = await svc.read(token, now=NOW)
    second = await svc.read(token, now=NOW)

    assert first["plan"]["baby"] == {"name": "M.", "birthdate": "2024-01-15"}
    assert first["plan"]["meals"][0]["recipe"]["ingredients"][0]["name"] == "red lentils"
    assert first["shareInfo"] == {"includePdf": False, "viewCount": 1, "createdAt": None}
    assert second["shareInfo"]["viewCount"] == 2
    assert fake_db.rows("shared_meal_plans")[0]["view_count"] == 2


@pytest.mark.asyncio
async def test_read_unknown_token(fake_db, published):
    with pytest.raises(NotFound) as excinfo:
        await ShareService().read("missing")
    assert excinfo.value.to_body() == {"error": "Shared plan not found"}


@pytest.mark.asyncio
async def test_read_expired_link(fake_db, published):
    svc = ShareService()
    created = await svc.create(
        published["plan"]["id"], published["user"]["id"], _body(published["plan"]["id"], expiresInDays=1), now=NOW
    )
    with pytest.raises(LinkExpired) as excinfo:
        await svc.read(created["share"]["share_token"], now=NOW + timedelta(days=2))
    assert excinfo.value.status_code == 410
    assert fake_db.rows("shared_meal_plans")[0].get("view_count") is None


@pytest.mark.asyncio
async def test_link_to_unpublished_plan_is_not_found(fake_db, published):
    svc = ShareService()
    created = await svc.create(published["plan"]["id"], published["user"]["id"], _body(published["plan"]["id"]), now=NOW)
    published["plan"]["status"] = "draft"
    with pytest.raises(NotFound) as excinfo:
        await svc.read(created["share"]["share_token"], now=NOW)
    assert excinfo.value.error == "Meal plan not found"


@pytest.mark.asyncio
async def test_view_count_failure_still_serves_plan(fake_db, published):
    svc = ShareService()
    created = await svc.create(published["plan"]["id"], published["user"]["id"], _body(published["plan"]["id"]), now=NOW)
    fake_db.fail("shared_meal_plans", "update")
    result = await svc.read(created["share"]["share_token"], now=NOW)
    assert result["shareInfo"]["viewCount"] == 1


def test_sanitize_baby():
    assert sanitize_baby({"name": " zoe ", "birthdate": "2024-02-01", "allergies": ["egg"]}) == {"name": "z.", "birthdate": "2024-02-01"}
    assert sanitize_baby({"name": "", "birthdate": None}) == {"name": "Baby", "birthdate": None}
    assert sanitize_baby({}) is None


@pytest.mark.parametrize("days", [-1, 366])
def test_expiry_bounds(days):
    with pytest.raises(RequestValidationFailed):
        parse_request(ShareCreateRequest, {"planId": "3f1c2a8e-5b7d-4c1e-9a2b-1d2e3f4a5b6c", "expiresInDays": days})
