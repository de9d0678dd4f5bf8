# src/worksync/llm/client.py

from __future__ import annotations

import logging
import os
import time
from typing import Any, Dict, Iterable, List, Optional

import httpx
import openai
from openai import OpenAI

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
    Timeouts are configurable via env so a slow model can't hang the console.

    Defaults:
    - connect timeout: 5s
    - read timeout: 30s (no data from server)
    - first token timeout: 20s (no content tokens)
    """
    first_token = _env_float("WORKSYNC_LLM_FIRST_TOKEN_TIMEOUT_SECONDS", 20.0)
    read_timeout = _env_float("WORKSYNC_LLM_READ_TIMEOUT_SECONDS", 30.0)
    connect_timeout = _env_float("WORKSYNC_LLM_CONNECT_TIMEOUT_SECONDS", 5.0)

    # keep read >= first_token as a sane baseline
    read_timeout = max(read_timeout, first_token)

    return {
        "first_token": first_token,
        "read": read_timeout,
        "connect": connect_timeout,
    }


def _is_auth_error(exc: Exception) -> bool:
    return isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError))


def _is_rate_limit_error(exc: Exception) -> bool:
    return isinstance(exc, openai.RateLimitError)


def _is_connection_error(exc: Exception) -> bool:
    return isinstance(exc, (openai.APIConnectionError, openai.APITimeoutError, httpx.TimeoutException))


def _is_not_found_error(exc: Exception) -> bool:
    return isinstance(exc, openai.NotFoundError)


class LLMUnavailable(RuntimeError):
    """No configured model produced a reply. `rate_limited` means: back off and retry later."""

    def __init__(self, message: str, *, rate_limited: bool = False) -> None:
        super().__init__(message)
        self.rate_limited = rate_limited


def _close_stream(stream: Any) -> None:
    close = getattr(stream, "close", None)
    if callable(close):
        try:
            close()
        except Exception:
            logger.debug("Stream close failed.", exc_info=True)


class OpenAICompatibleClient:
    """
    Streaming chat client for any OpenAI-compatible endpoint (OpenAI, OpenRouter, ...).

    - Tries models in the configured order.
    - 404 marks a model bad for an hour; rate limits and network errors move on to the next.
    - Auth failures stop immediately.
    - Automatic SDK retries are disabled so fallback across models stays fast.
    """

    def __init__(self, settings: Any) -> None:
        api_key = getattr(settings, "llm_api_key", None)
        base_url = getattr(settings, "llm_base_url", "") or ""
        if not api_key or not str(api_key).strip():
            raise RuntimeError("LLM API key is not set. Set WORKSYNC_LLM_API_KEY in your .env.")
        if not base_url.strip():
            raise RuntimeError("LLM base URL is not set. Set WORKSYNC_LLM_BASE_URL in your .env.")

        self._models: List[str] = [m.strip() for m in getattr(settings, "llm_models", []) if m.strip()]
        if not self._models:
            raise RuntimeError("LLM model list is empty. Set WORKSYNC_LLM_MODELS in your .env.")
        self._headers: Dict[str, str] = dict(getattr(settings, "extra_headers", {}) or {})
        self._bad_models: dict[str, float] = {}  # model -> retry_at (monotonic)

        self._t = _timeouts_from_env()
        self._timeout = httpx.Timeout(
            connect=self._t["connect"],
            read=self._t["read"],
            write=10.0,
            pool=self._t["connect"],
        )
        self._client = OpenAI(
            base_url=str(base_url),
            api_key=str(api_key),
            timeout=self._timeout,
            max_retries=0,
        )

    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]:
        first_token_timeout = float(self._t["first_token"])
        last_error: Optional[Exception] = None
        now = time.monotonic()

        for model in self._models:
            retry_at = self._bad_models.get(model)
            if retry_at is not None and retry_at > now:
                continue

            logger.info("LLM: trying model=%s", model)
            t0 = time.monotonic()
            deadline = t0 + first_token_timeout
            stream = None
            used_any = False

            try:
                stream = self._client.chat.completions.create(
                    model=model,
                    stream=True,
                    extra_headers=self._headers or None,
                    messages=[{"role": "system", "content": system_prompt}, *messages],
                    timeout=self._timeout,
                )

                for chunk in stream:
                    if not used_any and time.monotonic() > deadline:
                        last_error = TimeoutError(f"First token timeout on model: {model}")
                        logger.info("LLM: first token timeout on model=%s -> trying next", model)
                        break

                    content = chunk.choices[0].delta.content if chunk.choices else None
                    if content:
                        if not used_any:
                            logger.info(
                                "LLM: first token from model=%s (%.2fs)", model, time.monotonic() - t0
                            )
                        used_any = True
                        yield content

                if used_any:
                    return

                if last_error is None:
                    last_error = RuntimeError(f"Model returned no content: {model}")

            except Exception as e:
                last_error = e

                if _is_auth_error(e):
                    raise LLMUnavailable(
                        "LLM authentication failed. Check WORKSYNC_LLM_API_KEY."
                    ) from e

                if _is_not_found_error(e):
                    self._bad_models[model] = time.monotonic() + 3600.0
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
                raise LLMUnavailable(
                    "LLM is rate-limited. Try again later.", rate_limited=True
                ) from last_error
            if _is_connection_error(last_error):
                raise LLMUnavailable("LLM network/timeout error. Try again later.") from last_error
            raise LLMUnavailable("All LLM models failed.") from last_error

        raise LLMUnavailable("All LLM models failed.")
