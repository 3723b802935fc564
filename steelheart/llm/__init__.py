"""Hosted model client adapters."""

from .runner import LLMError, LLMRequest, LLMRunner, RetryableLLMError

__all__ = ["LLMError", "LLMRequest", "LLMRunner", "RetryableLLMError"]
