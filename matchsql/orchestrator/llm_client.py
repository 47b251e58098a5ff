"""
Text-Generation Capability.

PURPOSE:
========
A single interface over the two interchangeable providers (Gemini and a
local Ollama server). The pipeline only ever sees TextGenerator, so
tests and alternate providers are a constructor argument.

ARCHITECTURE:
=============
- TextGenerator: abstract capability (generate + embed)
- LiteLLMClient: shared litellm call path, rate limiting, error mapping
- GeminiClient / OllamaClient: provider-specific call arguments
- RateLimiter: sliding-window client-side request budget
- create_llm_client(): ProviderConfig -> client

USAGE:
======
    client = create_llm_client(load_provider_config())
    response = client.generate(prompt)
    vector = client.embed("career_details ...")
"""

import logging
import re
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import litellm

from configs import ProviderConfig, ConfigurationError
from matchsql.models import TokenUsage

logger = logging.getLogger(__name__)

_RATE_LIMIT_PATTERN = re.compile(r"429|quota|rate.?limit|too many requests", re.IGNORECASE)


# ============================================================
# DATA MODELS
# ============================================================

@dataclass
class LLMResponse:
    """Standardized generation response."""
    text: str
    provider: str
    model: str
    usage: Optional[TokenUsage] = None


class LLMError(Exception):
    """Base exception for text-generation errors."""
    pass


class RateLimitError(LLMError):
    """Provider rate limit / quota hit, or the local request budget is spent."""
    pass


def is_rate_limit_error(error: Exception) -> bool:
    """True when a provider exception reports a rate limit or quota."""
    if isinstance(error, (RateLimitError, litellm.exceptions.RateLimitError)):
        return True
    return bool(_RATE_LIMIT_PATTERN.search(str(error)))


# ============================================================
# RATE LIMITER
# ============================================================

class RateLimiter:
    """
    Sliding window rate limiter.
    Allows at most max_requests calls per window_seconds.
    """
    def __init__(self, max_requests: int = 30, window_seconds: int = 60):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.request_times: deque = deque()

    def _evict(self, now: datetime) -> None:
        cutoff = now - timedelta(seconds=self.window_seconds)
        while self.request_times and self.request_times[0] < cutoff:
            self.request_times.popleft()

    def can_proceed(self) -> bool:
        """Check if a request is allowed under the limit."""
        self._evict(datetime.now())
        return len(self.request_times) < self.max_requests

    def record_request(self):
        self.request_times.append(datetime.now())

    def wait_time(self) -> float:
        """Seconds until the next request is allowed."""
        if self.can_proceed():
            return 0.0
        wait_until = self.request_times[0] + timedelta(seconds=self.window_seconds)
        return max(0.0, (wait_until - datetime.now()).total_seconds())

    def get_status(self) -> Dict[str, Any]:
        self._evict(datetime.now())
        used = len(self.request_times)
        return {
            "used": used,
            "limit": self.max_requests,
            "remaining": self.max_requests - used,
            "window_seconds": self.window_seconds,
        }


# ============================================================
# ABSTRACT CAPABILITY
# ============================================================

class TextGenerator(ABC):
    """
    Abstract text-generation/embedding capability.

    Implementations raise RateLimitError for rate limits and LLMError for
    every other provider failure.
    """

    provider: str = "unknown"
    model: str = "unknown"

    @abstractmethod
    def generate(self, prompt: str) -> LLMResponse:
        """Generate a completion for a single user prompt."""

    @abstractmethod
    def embed(self, text: str) -> List[float]:
        """Embed text into a dense vector."""

    def get_stats(self) -> Dict[str, Any]:
        return {"provider": self.provider, "model": self.model}


# ============================================================
# LITELLM CLIENTS
# ============================================================

class LiteLLMClient(TextGenerator):
    """Shared litellm call path for both providers."""

    def __init__(self, config: ProviderConfig):
        self.config = config
        self.provider = config.provider
        self.model = config.model
        self.embedding_model = config.embedding_model
        self.rate_limiter = RateLimiter(max_requests=config.requests_per_minute)
        self.stats = {
            "generate_calls": 0,
            "embed_calls": 0,
            "errors": 0,
            "rate_limited": 0,
            "total_tokens": 0,
        }

    def _call_kwargs(self) -> Dict[str, Any]:
        """Provider-specific arguments passed to every litellm call."""
        return {}

    def _acquire(self) -> None:
        if not self.rate_limiter.can_proceed():
            self.stats["rate_limited"] += 1
            wait = self.rate_limiter.wait_time()
            logger.warning("%s request budget spent, retry in %.1fs", self.provider, wait)
            raise RateLimitError(
                f"Local rate limit reached ({self.rate_limiter.max_requests} requests/min). "
                f"Retry in {wait:.0f}s."
            )
        self.rate_limiter.record_request()

    def _raise_mapped(self, error: Exception, operation: str):
        self.stats["errors"] += 1
        if is_rate_limit_error(error):
            self.stats["rate_limited"] += 1
            logger.warning("%s %s rate limited: %s", self.provider, operation, error)
            raise RateLimitError(f"{self.provider} rate limit: {error}") from error
        logger.error("%s %s failed: %s", self.provider, operation, error)
        raise LLMError(f"{self.provider} API error: {error}") from error

    def generate(self, prompt: str) -> LLMResponse:
        self._acquire()
        logger.debug("Calling %s (%s), prompt length %d", self.provider, self.model, len(prompt))

        try:
            response = litellm.completion(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self.config.temperature,
                max_tokens=self.config.max_tokens,
                **self._call_kwargs(),
            )
        except Exception as e:
            self._raise_mapped(e, "generate")

        self.stats["generate_calls"] += 1
        text = response.choices[0].message.content or ""

        usage = None
        raw_usage = getattr(response, "usage", None)
        if raw_usage is not None:
            usage = TokenUsage(
                input=getattr(raw_usage, "prompt_tokens", 0) or 0,
                output=getattr(raw_usage, "completion_tokens", 0) or 0,
                total=getattr(raw_usage, "total_tokens", 0) or 0,
            )
            self.stats["total_tokens"] += usage.total

        logger.debug("%s call successful (total calls: %d)", self.provider, self.stats["generate_calls"])
        return LLMResponse(text=text, provider=self.provider, model=self.model, usage=usage)

    def embed(self, text: str) -> List[float]:
        self._acquire()
        try:
            response = litellm.embedding(
                model=self.embedding_model,
                input=[text],
                **self._call_kwargs(),
            )
        except Exception as e:
            self._raise_mapped(e, "embed")

        self.stats["embed_calls"] += 1
        item = response.data[0]
        vector = item["embedding"] if isinstance(item, dict) else item.embedding
        return [float(v) for v in vector]

    def get_stats(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "model": self.model,
            **self.stats,
            "rate_limit": self.rate_limiter.get_status(),
        }


class GeminiClient(LiteLLMClient):
    """Gemini through litellm; the API key comes from ProviderConfig."""

    def __init__(self, config: ProviderConfig):
        if not config.api_key:
            raise ConfigurationError("GeminiClient requires an API key")
        super().__init__(config)

    def _call_kwargs(self) -> Dict[str, Any]:
        return {"api_key": self.config.api_key}


class OllamaClient(LiteLLMClient):
    """Local Ollama server through litellm."""

    def _call_kwargs(self) -> Dict[str, Any]:
        return {"api_base": self.config.base_url}


# ============================================================
# FACTORY
# ============================================================

def create_llm_client(config: ProviderConfig) -> TextGenerator:
    """
    Create the text-generation client for a provider configuration.

    Raises:
        ConfigurationError: unknown provider
    """
    if config.provider == "gemini":
        client = GeminiClient(config)
    elif config.provider == "ollama":
        client = OllamaClient(config)
    else:
        raise ConfigurationError(f"Unknown LLM provider: {config.provider}")

    logger.info("LLM client ready: %s (%s)", config.provider, config.model)
    return client
