# babybites/tests/conftest.py
import copy
import json
import threading
import uuid
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

import babybites.config.supabase as supabase_mod
from babybites.config.settings import settings
from babybites.services.generation_client import GenerationClient
from babybites.services.rate_limiter import rate_limiter


@pytest.fixture(autouse=True)
def patch_settings(monkeypatch):
    """
    Sane defaults for settings used by services.
    Tests can override with monkeypatch.setattr(settings, ...).
    """
    monkeypatch.setattr(settings, "openai_api_key", None, raising=False)
    monkeypatch.setattr(settings, "openai_model", "gpt-4o-mini", raising=False)
    monkeypatch.setattr(settings, "free_plans_per_week", 1, raising=False)
    monkeypatch.setattr(settings, "quota_window_days", 7, raising=False)
    monkeypatch.setattr(settings, "stripe_webhook_secret", "whsec_test_secret", raising=False)
    return monkeypatch


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    rate_limiter._windows.clear()
    yield
    rate_limiter._windows.clear()


# --- Fake Supabase client ---
UNIQUE_KEYS = {
    "meals": ("plan_id", "day_index", "meal_type"),
    "recipes": ("meal_id",),
    "meal_ratings": ("meal_id", "baby_id"),
    "stripe_events": ("event_id",),
    "grocery_lists": ("plan_id",),
    "shared_meal_plans": ("plan_id", "created_by"),
}


class FakeAPIError(Exception):
    pass


def _parse_ts(value):
    if not value:
        return None
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


class FakeQuery:

    def __init__(self, client, name):
        self._client = client
        self._name = name
        self._op = None
        self._payload = None
        self._columns = "*"
        self._on_conflict = None
        self._filters = []
        self._order = None
        self._limit = None

    @property
    def _rows(self):
        return self._client.tables.setdefault(self._name, [])

    # builders
    def select(self, columns="*", **kwargs):
        self._op = self._op or "select"
        self._columns = columns
        return self

    def insert(self, rows):
        self._op, self._payload = "insert", rows
        return self

    def upsert(self, rows, on_conflict=None):
        self._op, self._payload, self._on_conflict = "upsert", rows, on_conflict
        return self

    def update(self, data):
        self._op, self._payload = "update", data
        return self

    def delete(self):
        self._op = "delete"
        return self

    def eq(self, column, value):
        self._filters.append(lambda r: r.get(column) == value)
        return self

    def neq(self, column, value):
        self._filters.append(lambda r: r.get(column) != value)
        return self

    def in_(self, column, values):
        values = list(values)
        self._filters.append(lambda r: r.get(column) in values)
        return self

    def order(self, column, desc=False):
        self._order = (column, desc)
        return self

    def limit(self, n):
        self._limit = n
        return self

    # execution
    def _matching(self):
        return [r for r in self._rows if all(f(r) for f in self._filters)]

    def _check_unique(self, row, ignore=None):
        key = UNIQUE_KEYS.get(self._name)
        if not key:
            return
        for other in self._rows:
            if other is ignore:
                continue
            if all(other.get(k) == row.get(k) for k in key):
                raise FakeAPIError(f"duplicate key value violates unique constraint on {self._name}{key}")

    def _insert_one(self, row):
        row = copy.deepcopy(row)
        row.setdefault("id", str(uuid.uuid4()))
        self._check_unique(row)
        self._rows.append(row)
        return copy.deepcopy(row)

    def _project(self, row):
        if self._columns in (None, "*"):
            return copy.deepcopy(row)
        cols = [c.strip() for c in self._columns.split(",")]
        return {c: copy.deepcopy(row.get(c)) for c in cols}

    def execute(self):
        self._client.calls.append((self._name, self._op))
        failure = self._client.failures.get((self._name, self._op))
        if failure is not None:
            raise failure

        if self._op == "select":
            rows = self._matching()
            if self._order:
                column, desc = self._order
                rows = sorted(rows, key=lambda r: r.get(column), reverse=desc)
            if self._limit is not None:
                rows = rows[: self._limit]
            return SimpleNamespace(data=[self._project(r) for r in rows], status_code=200)

        if self._op == "insert":
            payload = self._payload if isinstance(self._payload, list) else [self._payload]
            # all-or-nothing like a single PostgREST request
            snapshot = list(self._rows)
            try:
                created = [self._insert_one(r) for r in payload]
            except FakeAPIError:
                self._rows[:] = snapshot
                raise
            return SimpleNamespace(data=created, status_code=201)

        if self._op == "upsert":
            payload = self._payload if isinstance(self._payload, list) else [self._payload]
            keys = [k.strip() for k in (self._on_conflict or "id").split(",")]
            out = []
            for row in payload:
                existing = next(
                    (r for r in self._rows if all(r.get(k) == row.get(k) for k in keys)), None
                )
                if existing is not None:
                    existing.update(copy.deepcopy(row))
                    out.append(copy.deepcopy(existing))
                else:
                    out.append(self._insert_one(row))
            return SimpleNamespace(data=out, status_code=200)

        if self._op == "update":
            rows = self._matching()
            for r in rows:
                r.update(copy.deepcopy(self._payload))
            return SimpleNamespace(data=[copy.deepcopy(r) for r in rows], status_code=200)

        if self._op == "delete":
            rows = self._matching()
            self._rows[:] = [r for r in self._rows if r not in rows]
            return SimpleNamespace(data=rows, status_code=200)

        raise AssertionError(f"unsupported op {self._op}")


class FakeRPC:

    def __init__(self, client, name, params):
        self._client = client
        self._name = name
        self._params = params

    def execute(self):
        self._client.calls.append((self._name, "rpc"))
        failure = self._client.failures.get((self._name, "rpc"))
        if failure is not None:
            raise failure
        if self._name != "finalize_meal_plan":
            raise FakeAPIError(f"unknown function {self._name}")
        # the real function runs in one transaction
        with self._client.rpc_lock:
            data = self._finalize(**self._params)
        return SimpleNamespace(data=data, status_code=200)

    def _finalize(self, p_plan_id, p_user_id, p_free_limit, p_window_days):
        tables = self._client.tables
        user = next((u for u in tables.get("users", []) if u["id"] == p_user_id), None)
        plan = next((p for p in tables.get("meal_plans", []) if p["id"] == p_plan_id), None)
        if user is None or plan is None:
            return {"finalized": False, "reason": "not_found"}

        now = self._client.now()
        reset = _parse_ts(user.get("week_reset_date"))
        if reset is None or now >= reset + timedelta(days=p_window_days):
            user["plans_generated_this_week"] = 0
            user["week_reset_date"] = now.isoformat()
        used = user.get("plans_generated_this_week") or 0
        p_plan_limit = p_free_limit if user.get("subscription_plan", "free") == "free" else None

        if p_plan_limit is not None:
            if used >= p_plan_limit:
                return {"finalized": False, "reason": "quota_exceeded", "plans_generated_this_week": used}
            used += 1
            user["plans_generated_this_week"] = used
        plan["status"] = "ready"
        return {"finalized": True, "plans_generated_this_week": used}


class FakeAuth:

    def __init__(self):
        self.tokens = {}

    def get_user(self, token):
        user = self.tokens.get(token)
        if user is None:
            raise FakeAPIError("invalid JWT")
        return SimpleNamespace(user=user)


class FakeClient:

    def __init__(self):
        self.tables = {}
        self.calls = []
        self.failures = {}
        self.auth = FakeAuth()
        self.rpc_lock = threading.Lock()
        self.rpc_params = {}
        self.now = lambda: datetime.now(timezone.utc)

    def table(self, name):
        return FakeQuery(self, name)

    def rpc(self, name, params=None):
        self.rpc_params = params or {}
        return FakeRPC(self, name, params or {})

    def fail(self, table, op, exc=None):
        self.failures[(table, op)] = exc or FakeAPIError(f"{table}.{op} failed")

    def rows(self, table):
        return self.tables.get(table, [])

    def writes(self):
        return [c for c in self.calls if c[1] in ("insert", "upsert", "update", "delete", "rpc")]

    # seeding helpers
    def add(self, table, **row):
        row.setdefault("id", str(uuid.uuid4()))
        self.tables.setdefault(table, []).append(row)
        return row

    def add_user(self, plan="free", used=0, reset=None, **extra):
        return self.add(
            "users",
            subscription_plan=plan,
            subscription_status="active" if plan != "free" else None,
            plans_generated_this_week=used,
            week_reset_date=reset,
            **extra,
        )

    def add_baby(self, user_id, name="Mia", birthdate="2024-01-15", allergies=None, **extra):
        return self.add(
            "babies",
            user_id=user_id,
            name=name,
            birthdate=birthdate,
            allergies=allergies or [],
            **extra,
        )


@pytest.fixture
def fake_db(monkeypatch):
    client = FakeClient()
    fake = SimpleNamespace(client=client, health_check=lambda: True, diagnostics=lambda: {})
    monkeypatch.setattr(supabase_mod, "supabase_client", fake)
    return client


# --- Dummy OpenAI client (same shape as the SDK: .choices[0].message.content) ---
class DummyOpenAI:

    def __init__(self, content=None, exc=None):
        self.content = content
        self.exc = exc
        self.calls = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    def _create(self, *args, **kwargs):
        self.calls.append(kwargs)
        if self.exc is not None:
            raise self.exc
        content = self.content
        if callable(content):
            content = content(kwargs)
        return SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
            usage=SimpleNamespace(total_tokens=123),
        )


@pytest.fixture
def dummy_openai():
    return DummyOpenAI


def make_meal(meal_type="breakfast", title=None, **extra):
    meal = {
        "meal_type": meal_type,
        "title": title or f"Sweet potato {meal_type}",
        "summary": "Soft and mild",
        "ingredients": [{"name": "sweet potato", "quantity": "2", "unit": "tablespoons", "category": "vegetables"}],
        "instructions": ["Steam until soft", "Mash with a fork"],
        "prep_time_minutes": 10,
        "texture_notes": "Smooth",
        "new_food_introduced": None,
    }
    meal.update(extra)
    return meal


def make_plan_json(days=3, meal_types=("breakfast", "lunch"), **meal_extra):
    plan = {
        "days": [
            {"day_index": d, "meals": [make_meal(mt, title=f"Day {d} {mt}", **meal_extra) for mt in meal_types]}
            for d in range(days)
        ]
    }
    return json.dumps(plan)


@pytest.fixture
def plan_json():
    return make_plan_json


@pytest.fixture
def generator_for(dummy_openai):
    def _build(content=None, exc=None):
        return GenerationClient(client=dummy_openai(content=content, exc=exc), timeout=5)

    return _build
