# main.py
"""
FastAPI entry point for the BabyBites meal planning API.
Startup/readiness checks against Supabase, request-id middleware,
one JSON error handler for the BabyBitesError taxonomy.
"""
import asyncio
import logging
import os
import uuid
from contextlib import asynccontextmanager
from typing import Dict, Optional

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from babybites.api.grocery import router as grocery_router
from babybites.api.meal_plans import router as meal_plans_router
from babybites.api.meals import router as meals_router
from babybites.api.quick_search import router as quick_search_router
from babybites.api.share import router as share_router
from babybites.api.stripe_webhook import router as stripe_router
from babybites.config.settings import settings
from babybites.config import supabase as supabase_config
from babybites.services.errors import BabyBitesError

logger = logging.getLogger("uvicorn.error")


async def _run_sync_in_executor(fn, *args, timeout: float = settings.health_check_timeout):
    """
    Run a blocking sync function in the default threadpool with a timeout.
    Returns the function's result or raises TimeoutError.
    """
    loop = asyncio.get_running_loop()
    return await asyncio.wait_for(loop.run_in_executor(None, fn, *args), timeout=timeout)


async def _supabase_healthy(timeout: float = settings.health_check_timeout) -> bool:
    try:
        return bool(await _run_sync_in_executor(supabase_config.supabase_client.health_check, timeout=timeout))
    except asyncio.TimeoutError:
        logger.warning("Supabase health_check timed out after %.1fs", timeout)
    except Exception as exc:
        logger.exception("Unexpected error calling supabase health_check: %s", exc)
    return False


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting BabyBites API...")
    app.state.supabase_healthy = await _supabase_healthy()
    logger.info(
        "Supabase health: %s diagnostics=%s",
        app.state.supabase_healthy,
        supabase_config.supabase_client.diagnostics(),
    )

    if not app.state.supabase_healthy and settings.fail_on_db_startup:
        logger.error("FAIL_ON_DB_STARTUP enabled and Supabase unhealthy. Aborting startup.")
        raise RuntimeError("Supabase unhealthy on startup")

    yield
    logger.info("Shutting down BabyBites API...")


app = FastAPI(
    title="BabyBites",
    description="AI-generated, age-appropriate meal plans for babies and toddlers",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_request_id_and_log(request: Request, call_next):
    request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
    request.state.request_id = request_id
    logger.info("→ Incoming request %s %s id=%s", request.method, request.url.path, request_id)
    try:
        response: Response = await call_next(request)
    except Exception as exc:
        logger.exception("Handler error for request id=%s: %s", request_id, exc)
        response = JSONResponse({"error": "Internal server error"}, status_code=500)
    logger.info("← Completed request id=%s status=%s", request_id, getattr(response, "status_code", None))
    response.headers["X-Request-Id"] = request_id
    return response


@app.exception_handler(BabyBitesError)
async def babybites_error_handler(request: Request, exc: BabyBitesError):
    if exc.status_code >= 500:
        logger.error(
            "request id=%s failed: %s (%s)",
            getattr(request.state, "request_id", None),
            exc.error,
            exc,
        )
    return JSONResponse(exc.to_body(), status_code=exc.status_code, headers=exc.headers or None)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    # path/query parameters that failed type coercion (e.g. a malformed UUID)
    details = []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p not in ("path", "query", "body")]
        details.append({"field": ".".join(loc) or "body", "message": err.get("msg", "invalid")})
    return JSONResponse({"error": "Validation failed", "details": details}, status_code=400)


app.include_router(meal_plans_router, prefix="/api", tags=["meal-plans"])
app.include_router(meals_router, prefix="/api", tags=["meals"])
app.include_router(grocery_router, prefix="/api", tags=["grocery"])
app.include_router(quick_search_router, prefix="/api", tags=["quick-search"])
app.include_router(share_router, prefix="/api", tags=["share"])
app.include_router(stripe_router, prefix="/api/stripe", tags=["stripe"])


@app.get("/")
async def root() -> Dict[str, str]:
    return {"message": "BabyBites API is running!", "status": "healthy"}


@app.get("/health")
async def health_check():
    """
    Liveness: the process is up. Reports degraded (503) when Supabase does
    not answer its health check in time.
    """
    db_ok = await _supabase_healthy()
    return JSONResponse(
        {
            "status": "healthy" if db_ok else "degraded",
            "service": "babybites-api",
            "database": "connected" if db_ok else "disconnected",
        },
        status_code=200 if db_ok else 503,
    )


@app.get("/ready")
async def readiness_check():
    """Readiness from the cached startup state; one bounded check if never set."""
    supabase_state: Optional[bool] = getattr(app.state, "supabase_healthy", None)
    if supabase_state is None:
        supabase_state = await _supabase_healthy(timeout=2.0)

    if supabase_state:
        return JSONResponse({"ready": True, "database": "connected"}, status_code=200)
    return JSONResponse({"ready": False, "database": "disconnected"}, status_code=503)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", 8000)), reload=True)
