"""
LLM Client Module
=================

Provider-neutral completion client used by the ``ask`` command.

Key Features:
- OpenAI and Anthropic providers behind one interface
- Structured error mapping to ``LLMError`` subclasses
- Optional retry with exponential backoff (off by default)
"""

import asyncio
import logging
import os
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

import anthropic
import openai

logger = logging.getLogger(__name__)


class LLMProvider(Enum):
    """Supported LLM providers."""
    OPENAI = "openai"
    ANTHROPIC = "anthropic"


@dataclass
class LLMConfig:
    """Configuration for LLM clients."""
    provider: LLMProvider
    model_name: str
    api_key: Optional[str] = None
    api_base: Optional[str] = None
    max_tokens: int = 300
    temperature: float = 0.7
    timeout: float = 30.0
    max_retries: int = 0
    retry_delay: float = 1.0

    @classmethod
    def from_settings(cls, settings: Any) -> "LLMConfig":
        """Build from the ``llm`` section of the application settings."""
        return cls(
            provider=LLMProvider(settings.provider),
            model_name=settings.model_name,
            api_key=settings.api_key or None,
            api_base=settings.api_base,
            max_tokens=settings.max_tokens,
            temperature=settings.temperature,
            timeout=settings.timeout,
            max_retries=settings.max_retries,
        )


@dataclass
class Message:
    """Chat message structure."""
    role: str  # "user", "assistant", "system"
    content: str


@dataclass
class LLMRequest:
    """LLM request structure."""
    messages: List[Message]
    model: Optional[str] = None
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None
    user_id: Optional[str] = None


@dataclass
class LLMResponse:
    """LLM response structure."""
    content: str
    finish_reason: str
    model: str
    usage: Dict[str, int]
    response_time: float
    provider: LLMProvider
    metadata: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class LLMError(Exception):
    """Base exception for LLM operations."""

    def __init__(self, message: str, error_code: str = "UNKNOWN", provider: Optional[LLMProvider] = None, **kwargs):
        super().__init__(message)
        self.error_code = error_code
        self.provider = provider
        self.metadata = kwargs


class RateLimitError(LLMError):
    """Rate limit exceeded error."""

    def __init__(self, message: str, retry_after: Optional[int] = None, **kwargs):
        super().__init__(message, error_code="RATE_LIMIT", **kwargs)
        self.retry_after = retry_after


class SecurityError(LLMError):
    """Authentication or permission failure."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, error_code="SECURITY_VIOLATION", **kwargs)


class ModelError(LLMError):
    """Model-specific error."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, error_code="MODEL_ERROR", **kwargs)


class BaseLLMClient(ABC):
    """Abstract base class for LLM clients."""

    VALID_ROLES = {"system", "user", "assistant"}

    def __init__(self, config: LLMConfig):
        self.config = config

    def _validate_request(self, request: LLMRequest) -> None:
        """Validate request parameters."""
        if not request.messages:
            raise ModelError("Messages cannot be empty", provider=self.config.provider)

        for message in request.messages:
            if message.role not in self.VALID_ROLES:
                raise ModelError(f"Invalid message role: {message.role}", provider=self.config.provider)

    async def _retry_with_backoff(self, func: Callable, *args, **kwargs) -> Any:
        """Retry on rate limits and connection problems with exponential backoff."""
        last_exception: Optional[Exception] = None

        for attempt in range(self.config.max_retries + 1):
            try:
                return await func(*args, **kwargs)
            except (RateLimitError, ConnectionError, asyncio.TimeoutError) as e:
                last_exception = e
                if attempt < self.config.max_retries:
                    delay = self.config.retry_delay * (2 ** attempt)
                    logger.warning(f"Attempt {attempt + 1} failed, retrying in {delay}s: {e}")
                    await asyncio.sleep(delay)

        if last_exception:
            raise last_exception
        raise ModelError("Request failed with unknown error", provider=self.config.provider)

    @abstractmethod
    async def _make_request(self, request: LLMRequest) -> LLMResponse:
        """Make the actual API request (to be implemented by subclasses)."""
        pass

    async def complete(self, request: LLMRequest) -> LLMResponse:
        """Complete a chat request."""
        start_time = time.time()

        try:
            self._validate_request(request)
            response = await self._retry_with_backoff(self._make_request, request)

            logger.info(
                f"LLM request completed in {response.response_time:.2f}s "
                f"({response.model}, {response.usage.get('total_tokens', 0)} tokens)"
            )
            return response

        except Exception as e:
            total_time = time.time() - start_time
            logger.error(f"LLM request failed after {total_time:.2f}s: {e}")
            if isinstance(e, LLMError):
                raise
            raise ModelError(f"Unexpected error: {e}", provider=self.config.provider)

    def get_provider(self) -> LLMProvider:
        """Get the provider type."""
        return self.config.provider

    def get_model_info(self) -> Dict[str, Any]:
        """Get model information."""
        return {
            "provider": self.config.provider.value,
            "model": self.config.model_name,
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.temperature,
            "api_base": self.config.api_base,
        }


class OpenAIClient(BaseLLMClient):
    """OpenAI chat completions client."""

    def __init__(self, config: LLMConfig):
        super().__init__(config)

        api_key = config.api_key or os.getenv('OPENAI_API_KEY')
        if not api_key:
            raise ModelError("OpenAI API key not provided", provider=LLMProvider.OPENAI)

        self.client = openai.AsyncOpenAI(
            api_key=api_key,
            base_url=config.api_base,
            timeout=config.timeout,
            max_retries=0,  # retries are handled by _retry_with_backoff
        )

    async def _make_request(self, request: LLMRequest) -> LLMResponse:
        """Make OpenAI API request."""
        start_time = time.time()

        params = {
            "model": request.model or self.config.model_name,
            "messages": [{"role": msg.role, "content": msg.content} for msg in request.messages],
            "max_tokens": request.max_tokens or self.config.max_tokens,
            "temperature": request.temperature if request.temperature is not None else self.config.temperature,
        }
        if request.user_id:
            params["user"] = request.user_id

        try:
            response = await self.client.chat.completions.create(**params)
        except openai.RateLimitError as e:
            raise RateLimitError(f"OpenAI rate limit exceeded: {e}", provider=LLMProvider.OPENAI)
        except openai.AuthenticationError as e:
            raise SecurityError(f"OpenAI authentication failed: {e}", provider=LLMProvider.OPENAI)
        except openai.APITimeoutError as e:
            raise asyncio.TimeoutError(f"OpenAI request timed out: {e}")
        except openai.APIConnectionError as e:
            raise ConnectionError(f"OpenAI connection failed: {e}")
        except openai.OpenAIError as e:
            raise ModelError(f"OpenAI request failed: {e}", provider=LLMProvider.OPENAI)

        choice = response.choices[0]
        usage = {
            "prompt_tokens": getattr(response.usage, "prompt_tokens", 0),
            "completion_tokens": getattr(response.usage, "completion_tokens", 0),
            "total_tokens": getattr(response.usage, "total_tokens", 0),
        }

        return LLMResponse(
            content=choice.message.content or "",
            finish_reason=choice.finish_reason or "stop",
            model=response.model,
            usage=usage,
            response_time=time.time() - start_time,
            provider=LLMProvider.OPENAI,
            metadata={"request_id": getattr(response, 'id', None)},
        )


class AnthropicClient(BaseLLMClient):
    """Anthropic messages client."""

    def __init__(self, config: LLMConfig):
        super().__init__(config)

        api_key = config.api_key or os.getenv('ANTHROPIC_API_KEY')
        if not api_key:
            raise ModelError("Anthropic API key not provided", provider=LLMProvider.ANTHROPIC)

        self.client = anthropic.AsyncAnthropic(
            api_key=api_key,
            base_url=config.api_base,
            timeout=config.timeout,
            max_retries=0,
        )

    def _convert_messages(self, messages: List[Message]) -> Tuple[str, List[Dict]]:
        """Split out the system prompt, which Anthropic takes separately."""
        system_message = ""
        anthropic_messages = []

        for msg in messages:
            if msg.role == "system":
                system_message = msg.content
            else:
                anthropic_messages.append({"role": msg.role, "content": msg.content})

        return system_message, anthropic_messages

    async def _make_request(self, request: LLMRequest) -> LLMResponse:
        """Make Anthropic API request."""
        start_time = time.time()
        system_message, messages = self._convert_messages(request.messages)

        params = {
            "model": request.model or self.config.model_name,
            "messages": messages,
            "max_tokens": request.max_tokens or self.config.max_tokens,
            "temperature": request.temperature if request.temperature is not None else self.config.temperature,
        }
        if system_message:
            params["system"] = system_message

        try:
            response = await self.client.messages.create(**params)
        except anthropic.RateLimitError as e:
            raise RateLimitError(f"Anthropic rate limit exceeded: {e}", provider=LLMProvider.ANTHROPIC)
        except anthropic.AuthenticationError as e:
            raise SecurityError(f"Anthropic authentication failed: {e}", provider=LLMProvider.ANTHROPIC)
        except anthropic.APITimeoutError as e:
            raise asyncio.TimeoutError(f"Anthropic request timed out: {e}")
        except anthropic.APIConnectionError as e:
            raise ConnectionError(f"Anthropic connection failed: {e}")
        except anthropic.AnthropicError as e:
            raise ModelError(f"Anthropic request failed: {e}", provider=LLMProvider.ANTHROPIC)

        content = " ".join(block.text for block in response.content if hasattr(block, 'text'))
        usage = {
            "prompt_tokens": response.usage.input_tokens,
            "completion_tokens": response.usage.output_tokens,
            "total_tokens": response.usage.input_tokens + response.usage.output_tokens,
        }

        return LLMResponse(
            content=content,
            finish_reason=response.stop_reason or "stop",
            model=response.model,
            usage=usage,
            response_time=time.time() - start_time,
            provider=LLMProvider.ANTHROPIC,
            metadata={"request_id": response.id},
        )


_CLIENTS = {
    LLMProvider.OPENAI: OpenAIClient,
    LLMProvider.ANTHROPIC: AnthropicClient,
}


def create_llm_client(config: LLMConfig) -> BaseLLMClient:
    """Instantiate the client class registered for ``config.provider``."""
    client_class = _CLIENTS.get(config.provider)
    if client_class is None:
        raise ValueError(f"Unsupported LLM provider: {config.provider}")
    return client_class(config)
