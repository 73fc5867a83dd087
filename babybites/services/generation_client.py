# babybites/services/generation_client.py
"""
Thin wrapper around the OpenAI chat completions API in JSON mode.

- The SDK client is blocking; calls run in a worker thread and are bounded
  by `asyncio.wait_for` on top of the SDK's own timeout.
- No retries: a failed or timed-out call surfaces as GenerationFailed and
  nothing downstream runs.
- The API key is never logged; only a masked form.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, Optional

from openai import OpenAI, OpenAIError

from babybites.config.settings import settings
from babybites.services.errors import GenerationFailed

logger = logging.getLogger(__name__)


def _mask_key(k: Optional[str]) -> str:
    if not k:
        return "(none)"
    if len(k) <= 8:
        return k[:2] + "..."
    return f"{k[:4]}...{k[-4:]}"


def _content_of(resp: Any) -> Optional[str]:
    """First choice's message content, for SDK objects and plain dicts."""
    choices = getattr(resp, "choices", None)
    if choices is None and isinstance(resp, dict):
        choices = resp.get("choices")
    if not choices:
        return None
    choice = choices[0]
    if isinstance(choice, dict):
        return (choice.get("message") or {}).get("content")
    message = getattr(choice, "message", None)
    return getattr(message, "content", None)


class GenerationClient:

    def __init__(
        self,
        client: Any = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.model = model or settings.openai_model
        self.timeout = timeout or settings.openai_timeout_seconds
        self.client = client
        if self.client is None and settings.openai_api_key:
            try:
                self.client = OpenAI(
                    api_key=settings.openai_api_key,
                    timeout=self.timeout,
                    max_retries=0,
                )
                logger.info(
                    "OpenAI client created model=%s key=%s",
                    self.model,
                    _mask_key(settings.openai_api_key),
                )
            except Exception as exc:
                logger.exception("Failed creating OpenAI client: %s", exc)
                self.client = None
        if self.client is None:
            logger.warning("OpenAI client not configured; generation requests will fail.")

    async def complete_json(
        self,
        system: str,
        prompt: str,
        temperature: float,
        diagnostics: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Run one chat completion and return the raw JSON text it produced."""
        diag = diagnostics if diagnostics is not None else {}
        diag["model"] = self.model
        if self.client is None:
            raise GenerationFailed("no_openai_client")

        def _create():
            return self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": prompt},
                ],
                temperature=temperature,
                response_format={"type": "json_object"},
            )

        started = time.monotonic()
        try:
            resp = await asyncio.wait_for(asyncio.to_thread(_create), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            diag["elapsed"] = time.monotonic() - started
            logger.error("OpenAI call timed out after %.1fs", diag["elapsed"])
            raise GenerationFailed("timeout") from exc
        except OpenAIError as exc:
            diag["elapsed"] = time.monotonic() - started
            logger.error("OpenAI call failed: %s", exc)
            raise GenerationFailed("provider_error") from exc
        except Exception as exc:
            diag["elapsed"] = time.monotonic() - started
            logger.exception("Unexpected error calling OpenAI: %s", exc)
            raise GenerationFailed("provider_error") from exc

        diag["elapsed"] = time.monotonic() - started
        usage = getattr(resp, "usage", None)
        if usage is not None:
            diag["total_tokens"] = getattr(usage, "total_tokens", None)

        content = _content_of(resp)
        if not content:
            logger.error("OpenAI returned no content")
            raise GenerationFailed("empty_response")
        logger.info("OpenAI completion ok model=%s elapsed=%.2fs", self.model, diag["elapsed"])
        return content
