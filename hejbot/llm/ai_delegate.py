"""
AI Delegate
===========

Answers ``ask`` questions with the configured LLM, using the recent chat
history as context. Replies are cleaned up for a single-line chat message,
kept within the reply budget and tagged with a short random identifier so
repeated answers are never byte-identical.
"""

import logging
import re
import secrets
from typing import Any, Dict, Iterable, Optional

from ..config.validation import IDENTIFIER_SUFFIX_LENGTH
from ..database.json_store import RecentMessageStore
from .llm_client import BaseLLMClient, LLMRequest, Message

logger = logging.getLogger(__name__)

AI_APOLOGY = "Sorry, I couldn't come up with an answer right now. Please try again later."
ELLIPSIS = "..."

CODE_FENCE_PATTERN = re.compile(r"```[\w+-]*")
ASTERISK_PATTERN = re.compile(r"\*+")
TRAILING_IDENTIFIER_PATTERN = re.compile(r"\s*\[[0-9a-fA-F]{6}\]\s*$")
WHITESPACE_PATTERN = re.compile(r"\s+")
QUOTE_PAIRS = {'"': '"', "'": "'", "“": "”"}


def generate_identifier() -> str:
    """Six random lowercase hex characters."""
    return secrets.token_hex(3)


def fit_to_budget(text: str, limit: int) -> str:
    """Cut ``text`` to at most ``limit`` characters, ending in an ellipsis when cut."""
    if len(text) <= limit:
        return text
    return text[:limit - len(ELLIPSIS)].rstrip() + ELLIPSIS


class AIDelegate:
    """
    Bridge between chat commands and an LLM client.

    The client may be None (no API key configured); every question then gets
    the apology message.
    """

    def __init__(
        self,
        client: Optional[BaseLLMClient],
        recent_store: RecentMessageStore,
        bot_name: str = "HejBot",
        max_reply_chars: int = 500,
    ):
        if max_reply_chars <= IDENTIFIER_SUFFIX_LENGTH + len(ELLIPSIS):
            raise ValueError(f"max_reply_chars too small: {max_reply_chars}")

        self.client = client
        self.recent_store = recent_store
        self.bot_name = bot_name
        self.max_reply_chars = max_reply_chars
        self._label_pattern = re.compile(
            rf"^(?:{re.escape(bot_name)}|Assistant)\s*:\s*", re.IGNORECASE
        )

    def build_prompt(self, user: str, question: str, history: Iterable[Dict[str, Any]]) -> str:
        """Render persona, chat history and the question as one prompt."""
        body_budget = self.max_reply_chars - IDENTIFIER_SUFFIX_LENGTH
        lines = [
            f"You are {self.bot_name}, a friendly bot in a public chat room.",
            f"Answer in plain text on a single line, in at most {body_budget} characters.",
            "Do not use markdown and do not prefix your answer with your name.",
            "",
            "Recent chat messages:",
        ]

        rendered = [
            f"[{entry.get('timestamp', '')}] {entry.get('fromUser')}: {entry.get('text')}"
            for entry in history
        ]
        lines.extend(rendered or ["(no recent messages)"])

        lines.extend([
            "",
            f"{user} asks: {question}",
        ])
        return "\n".join(lines)

    async def answer(self, user: str, question: str) -> str:
        """Ask the model; any failure yields ``AI_APOLOGY``."""
        if self.client is None:
            logger.warning("No LLM client configured; cannot answer questions")
            return fit_to_budget(AI_APOLOGY, self.max_reply_chars)

        prompt = self.build_prompt(user, question, self.recent_store.as_list())
        request = LLMRequest(messages=[Message(role="user", content=prompt)], user_id=user)

        try:
            response = await self.client.complete(request)
        except Exception as e:
            logger.error(f"AI answer for {user} failed: {e}")
            return fit_to_budget(AI_APOLOGY, self.max_reply_chars)

        return self.postprocess(response.content)

    def _strip_outer_quotes(self, text: str) -> str:
        if len(text) >= 2 and QUOTE_PAIRS.get(text[0]) == text[-1]:
            return text[1:-1].strip()
        return text

    def postprocess(self, text: Optional[str]) -> str:
        """
        Clean a raw model reply for the chat.

        The result is never longer than ``max_reply_chars``, identifier
        suffix included.
        """
        cleaned = CODE_FENCE_PATTERN.sub(" ", text or "")
        cleaned = ASTERISK_PATTERN.sub("", cleaned)
        cleaned = WHITESPACE_PATTERN.sub(" ", cleaned).strip()
        cleaned = self._label_pattern.sub("", cleaned)
        cleaned = self._strip_outer_quotes(cleaned)

        # Models like to imitate the identifier they saw in the history
        while TRAILING_IDENTIFIER_PATTERN.search(cleaned):
            cleaned = TRAILING_IDENTIFIER_PATTERN.sub("", cleaned)
        cleaned = cleaned.strip()

        if not cleaned:
            cleaned = AI_APOLOGY

        body = fit_to_budget(cleaned, self.max_reply_chars - IDENTIFIER_SUFFIX_LENGTH)
        return f"{body} [{generate_identifier()}]"
