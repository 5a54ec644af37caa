from __future__ import annotations

import json
import logging
import os
import time
from typing import Any, Literal, Protocol
from urllib import error, parse, request

from grid_agent.tools.results import AdapterFailure, AdapterResult, AdapterSuccess

logger = logging.getLogger(__name__)

ResponseFormat = Literal["text", "json"]


class LLMAdapter(Protocol):
    """Interface for free-text and JSON-shaped completions."""

    model: str

    def complete(
        self,
        prompt: str,
        *,
        system_prompt: str = "",
        response_format: ResponseFormat = "text",
        model: str | None = None,
    ) -> AdapterResult[str]: ...


class _ProviderError(Exception):
    """Internal signal carrying an HTTP status out of one request attempt."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class _RetryingJSONClient:
    """Shared POST-with-retry used by the chat adapters."""

    provider = "llm"

    def __init__(self, *, timeout_s: float, max_retries: int, backoff_s: float) -> None:
        self.timeout_s = timeout_s
        self.max_retries = max(0, max_retries)
        self.backoff_s = max(0.0, backoff_s)

    def _post_with_retry(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str],
        *,
        model: str,
    ) -> dict[str, Any]:
        last_error: _ProviderError | None = None
        for attempt in range(self.max_retries + 1):
            try:
                return self._post(url, payload, headers, model=model)
            except _ProviderError as exc:
                last_error = exc
                logger.warning(
                    "%s request failed attempt=%d/%d model=%s reason=%s",
                    self.provider,
                    attempt + 1,
                    self.max_retries + 1,
                    model,
                    exc,
                )
                # Client errors other than rate limiting will not improve on retry.
                if _is_client_error(exc.status_code):
                    break
                if attempt < self.max_retries and self.backoff_s > 0:
                    time.sleep(self.backoff_s)
        if last_error is None:
            raise _ProviderError(f"{self.provider} request failed with unknown error")
        raise last_error

    def _post(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str],
        *,
        model: str,
    ) -> dict[str, Any]:
        if _trace_enabled():
            logger.warning(
                "LLM trace request provider=%s model=%s timeout_s=%s",
                self.provider,
                model,
                self.timeout_s,
            )
        req = request.Request(
            url=url,
            data=json.dumps(payload).encode("utf-8"),
            method="POST",
            headers={"Content-Type": "application/json", **headers},
        )
        try:
            with request.urlopen(req, timeout=self.timeout_s) as response:
                raw_body = response.read()
        except error.HTTPError as exc:
            raw_error = exc.read().decode("utf-8", errors="replace")
            raise _ProviderError(
                f"{self.provider} API error {exc.code}: {raw_error[:400]}",
                status_code=exc.code,
            ) from exc
        except error.URLError as exc:
            raise _ProviderError(f"{self.provider} request failed: {exc.reason}") from exc
        except TimeoutError as exc:
            raise _ProviderError(
                f"{self.provider} request timed out after {self.timeout_s:.2f}s"
            ) from exc
        if _trace_enabled():
            logger.warning(
                "LLM trace response provider=%s model=%s status=ok", self.provider, model
            )
        try:
            data = json.loads(raw_body.decode("utf-8"))
        except UnicodeDecodeError as exc:
            raise _ProviderError(f"{self.provider} returned a non-UTF-8 body") from exc
        except json.JSONDecodeError as exc:
            raise _ProviderError(f"{self.provider} returned a non-JSON body") from exc
        if not isinstance(data, dict):
            raise _ProviderError(f"{self.provider} returned an unexpected payload")
        return data


class OpenRouterChatAdapter(_RetryingJSONClient):
    """OpenAI-compatible chat completions adapter pointed at OpenRouter."""

    provider = "openrouter"

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        base_url: str = "https://openrouter.ai/api/v1",
        max_tokens: int = 1000,
        app_url: str = "",
        app_title: str = "",
        timeout_s: float = 30.0,
        max_retries: int = 1,
        backoff_s: float = 0.2,
    ) -> None:
        super().__init__(timeout_s=timeout_s, max_retries=max_retries, backoff_s=backoff_s)
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.max_tokens = max_tokens
        self.app_url = app_url
        self.app_title = app_title

    def complete(
        self,
        prompt: str,
        *,
        system_prompt: str = "",
        response_format: ResponseFormat = "text",
        model: str | None = None,
    ) -> AdapterResult[str]:
        if not self.api_key:
            return AdapterFailure(reason="missing_api_key")

        model_id = model or self.model
        messages: list[dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})
        payload: dict[str, Any] = {
            "model": model_id,
            "messages": messages,
            "max_tokens": self.max_tokens,
        }
        if response_format == "json":
            payload["response_format"] = {"type": "json_object"}

        headers = {"Authorization": f"Bearer {self.api_key}"}
        if self.app_url:
            headers["HTTP-Referer"] = self.app_url
        if self.app_title:
            headers["X-Title"] = self.app_title

        try:
            response_json = self._post_with_retry(
                f"{self.base_url}/chat/completions", payload, headers, model=model_id
            )
            return AdapterSuccess(self._extract_content(response_json))
        except _ProviderError as exc:
            return AdapterFailure(reason=str(exc), status_code=exc.status_code)

    @staticmethod
    def _extract_content(response_json: dict[str, Any]) -> str:
        choices = response_json.get("choices")
        if not isinstance(choices, list) or not choices:
            raise _ProviderError("openrouter response did not contain choices")

        choice = choices[0]
        message = choice.get("message") if isinstance(choice, dict) else None
        if not isinstance(message, dict):
            raise _ProviderError("openrouter response did not contain a message")
        content = message.get("content", "")
        if isinstance(content, list):
            text_segments: list[str] = []
            for item in content:
                if isinstance(item, dict):
                    text = item.get("text")
                    if isinstance(text, str):
                        text_segments.append(text)
            content = "".join(text_segments)
        if isinstance(content, str) and content.strip():
            return content
        raise _ProviderError("openrouter response content was empty")


class GeminiAdapter(_RetryingJSONClient):
    """Gemini ``generateContent`` adapter with per-category safety settings."""

    provider = "gemini"

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        safety_settings: list[dict[str, str]] | None = None,
        timeout_s: float = 30.0,
        max_retries: int = 1,
        backoff_s: float = 0.2,
    ) -> None:
        super().__init__(timeout_s=timeout_s, max_retries=max_retries, backoff_s=backoff_s)
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.safety_settings = list(safety_settings or [])

    def complete(
        self,
        prompt: str,
        *,
        system_prompt: str = "",
        response_format: ResponseFormat = "text",
        model: str | None = None,
    ) -> AdapterResult[str]:
        if not self.api_key:
            return AdapterFailure(reason="missing_api_key")

        model_id = model or self.model
        payload: dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
        }
        if system_prompt:
            payload["systemInstruction"] = {"parts": [{"text": system_prompt}]}
        # Omitted categories fall back to the provider's own thresholds.
        if self.safety_settings:
            payload["safetySettings"] = self.safety_settings
        if response_format == "json":
            payload["generationConfig"] = {"responseMimeType": "application/json"}

        url = (
            f"{self.base_url}/models/{parse.quote(model_id, safe='')}:generateContent"
            f"?key={parse.quote(self.api_key, safe='')}"
        )
        try:
            response_json = self._post_with_retry(url, payload, {}, model=model_id)
            return AdapterSuccess(self._extract_text(response_json))
        except _ProviderError as exc:
            return AdapterFailure(reason=str(exc), status_code=exc.status_code)

    @staticmethod
    def _extract_text(response_json: dict[str, Any]) -> str:
        feedback = response_json.get("promptFeedback")
        block_reason = feedback.get("blockReason") if isinstance(feedback, dict) else None
        if block_reason:
            raise _ProviderError(f"gemini blocked the prompt: {block_reason}")

        candidates = response_json.get("candidates")
        if not isinstance(candidates, list) or not candidates:
            raise _ProviderError("gemini response did not contain candidates")
        candidate = candidates[0]
        if not isinstance(candidate, dict):
            raise _ProviderError("gemini response candidate was malformed")
        if candidate.get("finishReason") == "SAFETY":
            raise _ProviderError("gemini response was withheld by safety filters")

        content = candidate.get("content")
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list):
            parts = []
        text_segments: list[str] = []
        for part in parts:
            if isinstance(part, dict) and isinstance(part.get("text"), str):
                text_segments.append(part["text"])
        text = "".join(text_segments)
        if not text.strip():
            raise _ProviderError("gemini response content was empty")
        return text


def _is_client_error(status_code: int | None) -> bool:
    return status_code is not None and 400 <= status_code < 500 and status_code != 429


def _trace_enabled() -> bool:
    return os.getenv("GRID_AGENT_LLM_TRACE", "0").strip() == "1"
