# babybites/config/supabase.py
"""
Process-wide Supabase client.

The client is built once from settings with the service-role key (row level
security is enforced by the services' explicit ownership checks). A missing
or malformed configuration leaves `.client` as None so the API can still
start and report itself as degraded.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from supabase import Client, create_client

from babybites.config.settings import settings

logger = logging.getLogger(__name__)

# hosted projects, or a local stack started with `supabase start`
_PROJECT_URL_RE = re.compile(
    r"^(https://[A-Za-z0-9\-]+\.supabase\.co|http://(localhost|127\.0\.0\.1)(:\d+)?)/?$"
)

HEALTH_CHECK_TABLE = "users"


def configuration_problem(url: Optional[str], key: Optional[str]) -> Optional[str]:
    """Why the given credentials cannot be used, or None when they look fine."""
    if not url or not key:
        return "missing SUPABASE_URL or SUPABASE_SERVICE_ROLE_KEY"
    if not _PROJECT_URL_RE.match(url):
        return f"unexpected project URL {url!r}"
    return None


class SupabaseClient:
    """
    Holds the supabase-py `Client` for the process.

        from babybites.config import supabase as supabase_config
        client = supabase_config.supabase_client.client  # None when unconfigured
    """

    def __init__(self, url: Optional[str] = None, key: Optional[str] = None) -> None:
        self._url = (url if url is not None else settings.supabase_url or "").strip()
        self._key = key if key is not None else settings.supabase_service_role_key or ""
        self._client: Optional[Client] = None
        self.problem: Optional[str] = configuration_problem(self._url, self._key)

        if self.problem:
            logger.warning("Supabase disabled: %s", self.problem)
            return
        try:
            self._client = create_client(self._url, self._key)
        except Exception as exc:
            self.problem = f"client construction failed: {exc}"
            logger.exception("Could not create Supabase client for host=%s", self.host)
            return
        logger.info("Supabase client ready host=%s", self.host)

    @property
    def host(self) -> Optional[str]:
        return urlparse(self._url).netloc or None

    @property
    def client(self) -> Optional[Client]:
        return self._client

    def diagnostics(self) -> Dict[str, Any]:
        """Structural facts only; never the key."""
        return {
            "configured": bool(self._url and self._key),
            "client_present": self._client is not None,
            "host": self.host,
            "problem": self.problem,
        }

    def health_check(self) -> bool:
        """
        Blocking health check: a one-row select against the accounts table.
        Callers on the event loop run this in a worker thread.
        """
        if self._client is None:
            return False
        try:
            res = self._client.table(HEALTH_CHECK_TABLE).select("id").limit(1).execute()
        except Exception as exc:
            logger.warning("Supabase health check failed: %s", exc)
            return False
        status_code = getattr(res, "status_code", None)
        if isinstance(status_code, int) and status_code >= 400:
            logger.warning("Supabase health check returned HTTP %s", status_code)
            return False
        return getattr(res, "data", None) is not None


supabase_client = SupabaseClient()
