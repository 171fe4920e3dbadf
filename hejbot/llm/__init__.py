"""
LLM Module
==========

LLM provider clients and the AI delegate behind the ``ask`` command.

Quick Start:
    from hejbot.llm import AIDelegate, LLMConfig, LLMProvider, create_llm_client

    client = create_llm_client(LLMConfig(
        provider=LLMProvider.OPENAI,
        model_name="gpt-4o-mini",
        api_key="your-api-key",
    ))
    delegate = AIDelegate(client, database.recent_messages, bot_name="HejBot")
    reply = await delegate.answer("alice#twoblade.com", "What is up?")
"""

from .ai_delegate import AI_APOLOGY, AIDelegate, generate_identifier
from .llm_client import (
    # Core classes
    AnthropicClient,
    BaseLLMClient,
    OpenAIClient,
    create_llm_client,

    # Configuration
    LLMConfig,
    LLMRequest,
    LLMResponse,
    Message,

    # Enums
    LLMProvider,

    # Exceptions
    LLMError,
    ModelError,
    RateLimitError,
    SecurityError,
)

__all__ = [
    "AI_APOLOGY",
    "AIDelegate",
    "AnthropicClient",
    "BaseLLMClient",
    "LLMConfig",
    "LLMError",
    "LLMProvider",
    "LLMRequest",
    "LLMResponse",
    "Message",
    "ModelError",
    "OpenAIClient",
    "RateLimitError",
    "SecurityError",
    "create_llm_client",
    "generate_identifier",
]
