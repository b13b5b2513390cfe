# src/flowboard/llm/client.py

from __future__ import annotations

import logging
import os
import time
from collections.abc import Iterable
from typing import Any, Dict, List, Optional

import httpx
import openai
from openai import OpenAI

from ..config import get_settings
from ..core.ports import ChatMessage

logger = logging.getLogger(__name__)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    s = raw.strip()
    if not s:
        return default
    try:
        return float(s)
    except ValueError:
        return default


def _timeouts_from_env() -> dict[str, float]:
    """
    Timeouts are configurable via env so a slow model can't hang the AI breakdown.

    Defaults:
    - connect timeout: 5s
    - read timeout: 30s (no data from server)
    - first token timeout: 20s (no content tokens)
    """
    first_token = _env_float("FLOWBOARD_LLM_FIRST_TOKEN_TIMEOUT_SECONDS", 20.0)
    read_timeout = _env_float("FLOWBOARD_LLM_READ_TIMEOUT_SECONDS", 30.0)
    connect_timeout = _env_float("FLOWBOARD_LLM_CONNECT_TIMEOUT_SECONDS", 5.0)

    read_timeout = max(read_timeout, first_token)

    return {
        "first_token": first_token,
        "read": read_timeout,
        "connect": connect_timeout,
    }


def _is_auth_error(exc: Exception) -> bool:
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return True
    return exc.__class__.__name__ in {"UnauthorizedError"}


def _is_rate_limit_error(exc: Exception) -> bool:
    if isinstance(exc, openai.RateLimitError):
        return True
    return exc.__class__.__name__ in {"TooManyRequestsError"}


def _is_connection_error(exc: Exception) -> bool:
    if isinstance(exc, (openai.APIConnectionError, httpx.TimeoutException, TimeoutError)):
        return True
    return exc.__class__.__name__ in {"Timeout"}


def _is_not_found_error(exc: Exception) -> bool:
    return isinstance(exc, openai.NotFoundError)


def friendly_llm_error_message(err: Exception) -> str:
    msg = str(err).strip() or "LLM error."
    if "LLM API key is not set" in msg:
        return "AI is not configured (missing API key). Set FLOWBOARD_OPENROUTER_API_KEY in .env."
    if "LLM model list is empty" in msg:
        return "AI is not configured (no models). Set FLOWBOARD_LLM_MODELS in .env."
    if "LLM base URL is not set" in msg:
        return "AI is not configured (missing base URL). Set FLOWBOARD_OPENROUTER_BASE_URL in .env."
    return msg


def _close_stream(stream: Any) -> None:
    close = getattr(stream, "close", None)
    if callable(close):
        try:
            close()
        except Exception:
            logger.debug("LLM stream close failed", exc_info=True)


class OpenRouterLLMClient:
    """
    OpenAI-compatible streaming chat client with ordered model fallback.

    Behavior:
    - Tries models in the order from settings (FLOWBOARD_LLM_MODELS).
    - No first content token within the first-token timeout -> next model.
    - 404 (model not available) -> remember for an hour, next model.
    - Rate limit / network issues -> next model.
    - Auth issues -> fail fast.
    Raises RuntimeError with a readable message when every model fails.
    """

    _BAD_MODEL_TTL_SECONDS = 3600.0

    def __init__(self, settings=None) -> None:
        settings = settings or get_settings()

        api_key = getattr(settings, "openrouter_api_key", None)
        base_url = getattr(settings, "openrouter_base_url", "") or ""

        if not api_key or not str(api_key).strip():
            raise RuntimeError("LLM API key is not set. Set FLOWBOARD_OPENROUTER_API_KEY in your .env.")
        if not base_url.strip():
            raise RuntimeError("LLM base URL is not set. Set FLOWBOARD_OPENROUTER_BASE_URL in your .env.")

        self._models: List[str] = [m.strip() for m in (getattr(settings, "llm_models", []) or []) if m and m.strip()]
        self._headers: Dict[str, str] = dict(getattr(settings, "extra_headers", {}) or {})
        self._max_tokens = int(getattr(settings, "llm_max_tokens", 1000))
        self._bad_models: dict[str, float] = {}  # model -> retry_at (monotonic)

        t = _timeouts_from_env()
        self._first_token_timeout = float(t["first_token"])
        self._timeout = httpx.Timeout(connect=t["connect"], read=t["read"], write=10.0, pool=t["connect"])

        # Retries are disabled so fallback to the next model is quick.
        self._client = OpenAI(
            base_url=str(base_url),
            api_key=str(api_key),
            timeout=self._timeout,
            max_retries=0,
        )

    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]:
        if not self._models:
            raise RuntimeError("LLM model list is empty. Set FLOWBOARD_LLM_MODELS in your .env.")

        last_error: Optional[Exception] = None
        now = time.monotonic()

        for model in self._models:
            retry_at = self._bad_models.get(model)
            if retry_at is not None and retry_at > now:
                continue

            logger.info("LLM: trying model=%s (first_token_timeout=%.1fs)", model, self._first_token_timeout)
            t0 = time.monotonic()
            deadline = t0 + self._first_token_timeout

            stream = None
            used_any = False

            try:
                stream = self._client.chat.completions.create(
                    model=model,
                    stream=True,
                    max_tokens=self._max_tokens,
                    extra_headers=self._headers or None,
                    messages=[{"role": "system", "content": system_prompt}, *messages],
                    timeout=self._timeout,
                )

                for chunk in stream:
                    if not used_any and time.monotonic() > deadline:
                        last_error = TimeoutError(f"First token timeout on model: {model}")
                        logger.info("LLM: first token timeout on model=%s -> trying next", model)
                        break

                    content = None
                    if chunk.choices:
                        delta = getattr(chunk.choices[0], "delta", None)
                        content = getattr(delta, "content", None) if delta is not None else None

                    if content:
                        if not used_any:
                            logger.info("LLM: first token from model=%s (%.2fs)", model, time.monotonic() - t0)
                        used_any = True
                        yield content

                if used_any:
                    logger.debug("LLM: completed with model=%s", model)
                    return

                if last_error is None:
                    last_error = RuntimeError(f"Model returned no content: {model}")

            except Exception as e:
                if used_any:
                    # Partial output cannot be retried on another model.
                    raise RuntimeError(f"LLM stream interrupted on model {model}.") from e

                last_error = e

                if _is_auth_error(e):
                    raise RuntimeError(
                        "LLM authentication failed. Check your API key (FLOWBOARD_OPENROUTER_API_KEY)."
                    ) from e

                if _is_not_found_error(e):
                    self._bad_models[model] = time.monotonic() + self._BAD_MODEL_TTL_SECONDS
                    logger.info("LLM: model not available (404): %s", model)
                    continue

                if _is_rate_limit_error(e):
                    logger.info("LLM: rate-limited on model=%s, trying next", model)
                    continue

                if _is_connection_error(e):
                    logger.info("LLM: network/timeout error on model=%s, trying next", model)
                    continue

                logger.info("LLM: error on model=%s (%s), trying next", model, e.__class__.__name__)
                continue

            finally:
                if stream is not None:
                    _close_stream(stream)

        if last_error is not None:
            if _is_rate_limit_error(last_error):
                raise RuntimeError("LLM is rate-limited. Try again later.") from last_error
            if _is_connection_error(last_error):
                raise RuntimeError("LLM network/timeout error. Try again later or change models.") from last_error
            raise RuntimeError("All LLM models failed.") from last_error

        raise RuntimeError("All LLM models failed.")
