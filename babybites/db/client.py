# babybites/db/client.py
"""
Supabase client accessor plus the small helpers every storage-backed
service shares.

Keep this file focused on returning the already-initialized global
Supabase client (created in babybites.config.supabase) and on normalizing
the supabase-py response shapes into predictable result dicts:

    {"ok": bool, "data": ..., "error": "...", "diagnostics": {...}}

Blocking SDK calls always run in a worker thread so the event loop is
never blocked.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional

from babybites.config import supabase as supabase_config
from babybites.services.errors import StorageUnavailable

logger = logging.getLogger(__name__)


class SupabaseClientNotInitialized(RuntimeError):
    """Raised when the supabase client is not available at runtime."""


def get_supabase_client() -> Any:
    """
    Return the initialized Supabase client.

    Raises:
        SupabaseClientNotInitialized: if SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY
            are missing or the client failed to initialize at import time.
    """
    client = getattr(supabase_config.supabase_client, "client", None)
    if client is None:
        msg = (
            "Supabase client is not initialized. Check SUPABASE_URL and "
            "SUPABASE_SERVICE_ROLE_KEY and the logs of babybites.config.supabase."
        )
        logger.error(msg)
        raise SupabaseClientNotInitialized(msg)
    return client


def parse_supabase_response(resp: Any) -> Dict[str, Any]:
    """
    Turn Supabase SDK responses (object with .data or dict) into a predictable dict.
    Returns {ok, data, status_code, raw}
    """
    if resp is None:
        return {"ok": False, "data": None, "status_code": None, "raw": None}

    if hasattr(resp, "data"):
        data = getattr(resp, "data")
        status_code = getattr(resp, "status_code", None)
        return {
            "ok": data is not None,
            "data": data,
            "status_code": status_code,
            "raw": resp,
        }

    if isinstance(resp, dict):
        data = resp.get("data", resp.get("result", None))
        status_code = resp.get("status_code", resp.get("status", None))
        return {
            "ok": data is not None,
            "data": data,
            "status_code": status_code,
            "raw": resp,
        }

    return {"ok": False, "data": None, "status_code": None, "raw": str(resp)}


async def run_blocking(fn: Callable, *args, **kwargs) -> Any:
    return await asyncio.to_thread(lambda: fn(*args, **kwargs))


def make_result(
    ok: bool,
    data: Any = None,
    error: Optional[str] = None,
    diagnostics: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    res: Dict[str, Any] = {"ok": ok}
    if ok:
        res["data"] = data
    else:
        res["error"] = error or "unknown_error"
    res["diagnostics"] = diagnostics or {}
    return res


class SupabaseService:
    """Base for services that talk to Supabase through `_call_db`."""

    def __init__(self, client: Any = None):
        self.client = client or getattr(supabase_config.supabase_client, "client", None)
        if self.client is None:
            logger.warning(
                "%s: Supabase client not available. DB operations will fail.",
                type(self).__name__,
            )

    async def _call_db(self, fn: Callable, *args, **kwargs) -> Dict[str, Any]:
        """
        Run blocking DB function in a thread and normalize response.
        `fn` should invoke the supabase SDK and return its raw response.
        """
        if self.client is None:
            return make_result(False, error="no_supabase_client")
        name = getattr(fn, "__name__", str(fn))
        try:
            raw = await run_blocking(fn, *args, **kwargs)
        except Exception as exc:
            logger.exception("DB call %s raised exception: %s", name, exc)
            return make_result(
                False,
                error="db_exception",
                diagnostics={"fn": name, "exception": str(exc)},
            )
        parsed = parse_supabase_response(raw)
        return make_result(
            parsed["ok"],
            data=parsed["data"],
            error=None if parsed["ok"] else "db_no_data",
            diagnostics={"called": name},
        )

    def _rows_or_raise(self, res: Dict[str, Any], what: str) -> List[Dict[str, Any]]:
        """
        Rows of a `_call_db` result. "No data" is an empty list; a missing
        client or an SDK exception is a StorageUnavailable.
        """
        if res.get("error") in ("db_exception", "no_supabase_client"):
            logger.error(
                "%s lookup failed: %s diagnostics=%s",
                what,
                res.get("error"),
                res.get("diagnostics"),
            )
            raise StorageUnavailable()
        data = res.get("data")
        if data is None:
            return []
        return data if isinstance(data, list) else [data]
