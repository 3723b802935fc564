"""Client for OpenAI-compatible chat completion endpoints."""

from __future__ import annotations

import json
import random
import socket
import time
from dataclasses import dataclass
from typing import Callable, List, Optional
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from ..logging import get_logger

RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})
_RETRYABLE_MESSAGES = ("timeout", "timed out", "rate limit", "network", "connection", "temporarily")


class LLMError(RuntimeError):
    """Raised when the model cannot produce a response."""


class RetryableLLMError(LLMError):
    """A transient failure (rate limiting, 5xx, network) worth retrying."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


@dataclass
class LLMRequest:
    """Represents a single chat completion call."""

    prompt: str
    system: Optional[str]
    model: str
    temperature: Optional[float]
    max_tokens: Optional[int]
    base_url: str
    api_key: Optional[str]
    request_timeout: Optional[float]


class LLMRunner:
    """Sends prompts to the configured model, retrying transient failures.

    The primary model gets ``max_retries`` attempts; when it is exhausted the
    fallback model (if any, and different) gets its own budget. Non-retryable
    errors skip the remaining attempts for that model.
    """

    DEFAULT_MODEL = "gpt-4o-mini"
    DEFAULT_FALLBACK_MODEL = "gpt-3.5-turbo"
    DEFAULT_BASE_URL = "https://api.openai.com/v1"

    def __init__(
        self,
        model: str | None = None,
        *,
        fallback_model: str | None = DEFAULT_FALLBACK_MODEL,
        base_url: str | None = None,
        api_key: str | None = None,
        temperature: Optional[float] = 0.3,
        max_tokens: Optional[int] = 4000,
        request_timeout: Optional[float] = 60.0,
        max_retries: int = 3,
        base_delay: float = 1.0,
        runner: Callable[[LLMRequest], str] | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.model = model or self.DEFAULT_MODEL
        self.fallback_model = fallback_model
        self.base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self.api_key = api_key
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.request_timeout = request_timeout
        self.max_retries = max_retries
        self.base_delay = base_delay
        self._runner = runner or self._http_runner
        self._sleep = sleep
        self.logger = get_logger("llm.runner")

    def generate(self, prompt: str, *, system: str | None = None) -> str:
        """Return the model's reply, trying the fallback model after the primary."""
        errors: List[LLMError] = []
        models = self.models()
        for index, model in enumerate(models):
            try:
                return self._generate_with_model(model, prompt, system)
            except LLMError as exc:
                errors.append(exc)
                if index + 1 < len(models):
                    self.logger.warning(
                        "Primary model %s failed (%s); switching to fallback model %s",
                        model,
                        exc,
                        models[index + 1],
                    )
        if len(errors) == 1:
            raise errors[0]
        raise LLMError(
            f"All models failed. Primary: {errors[0]}. Fallback: {errors[-1]}"
        ) from errors[-1]

    def models(self) -> List[str]:
        """Models in the order :meth:`generate` tries them."""
        ordered = [self.model]
        if self.fallback_model and self.fallback_model != self.model:
            ordered.append(self.fallback_model)
        return ordered

    def backoff_delay(self, attempt: int) -> float:
        return self.base_delay * 2 ** (attempt - 1) + random.uniform(0, self.base_delay)

    def _generate_with_model(self, model: str, prompt: str, system: str | None) -> str:
        request = LLMRequest(
            prompt=prompt,
            system=system,
            model=model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            base_url=self.base_url,
            api_key=self.api_key,
            request_timeout=self.request_timeout,
        )
        for attempt in range(1, self.max_retries + 1):
            try:
                return self._runner(request)
            except LLMError as exc:
                if not is_retryable(exc) or attempt == self.max_retries:
                    self.logger.debug(
                        "Model %s failed on attempt %d/%d: %s", model, attempt, self.max_retries, exc
                    )
                    raise LLMError(f"Model {model} failed after {attempt} attempt(s): {exc}") from exc
                delay = self.backoff_delay(attempt)
                self.logger.info(
                    "Model %s attempt %d/%d failed; retrying in %.1fs",
                    model,
                    attempt,
                    self.max_retries,
                    delay,
                )
                self._sleep(delay)
        raise LLMError(f"Model {model} produced no response")  # pragma: no cover - loop always returns or raises

    @staticmethod
    def _http_runner(request: LLMRequest) -> str:
        endpoint = f"{request.base_url}/chat/completions"
        payload: dict[str, object] = {
            "model": request.model,
            "messages": LLMRunner._build_messages(request.system, request.prompt),
        }
        if request.temperature is not None:
            payload["temperature"] = request.temperature
        if request.max_tokens is not None:
            payload["max_tokens"] = request.max_tokens

        data = json.dumps(payload).encode("utf-8")
        headers = {"Content-Type": "application/json"}
        if request.api_key:
            headers["Authorization"] = f"Bearer {request.api_key}"

        http_request = Request(endpoint, data=data, headers=headers, method="POST")
        timeout = request.request_timeout or 60.0

        try:
            with urlopen(http_request, timeout=timeout) as response:  # type: ignore[arg-type]
                raw = response.read()
        except HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="ignore") if hasattr(exc, "read") else ""
            message = f"status {exc.code}: {detail.strip() or exc.reason}"
            if exc.code in RETRYABLE_STATUS:
                raise RetryableLLMError(message, status=exc.code) from exc
            raise LLMError(message) from exc
        except (URLError, socket.timeout, TimeoutError, ConnectionError) as exc:
            reason = getattr(exc, "reason", exc)
            raise RetryableLLMError(f"request failed: {reason}") from exc

        try:
            response_payload = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise LLMError("model endpoint returned invalid JSON") from exc

        content = LLMRunner._extract_content(response_payload)
        if not content:
            raise LLMError("model endpoint returned an empty response")
        return content.strip()

    @staticmethod
    def _build_messages(system: str | None, prompt: str) -> list[dict[str, str]]:
        messages: list[dict[str, str]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        return messages

    @staticmethod
    def _extract_content(payload: object) -> str:
        if not isinstance(payload, dict):
            return ""
        choices = payload.get("choices")
        if not isinstance(choices, list) or not choices:
            return ""
        first = choices[0]
        if not isinstance(first, dict):
            return ""
        message = first.get("message")
        if isinstance(message, dict):
            content = message.get("content")
            if isinstance(content, str):
                return content
        text = first.get("text")
        if isinstance(text, str):
            return text
        return ""


def is_retryable(exc: BaseException) -> bool:
    """Rate limits, 5xx responses and network trouble are retried."""
    if isinstance(exc, RetryableLLMError):
        return True
    message = str(exc).lower()
    return any(marker in message for marker in _RETRYABLE_MESSAGES)


__all__ = ["LLMError", "LLMRequest", "LLMRunner", "RetryableLLMError", "is_retryable"]
