"""
Chat passthrough to Gemini.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from bazaar_track.errors import UpstreamFailure

logger = logging.getLogger(__name__)

CHAT_MAX_OUTPUT_TOKENS = 1024
SYSTEM_INSTRUCTION = (
    "You are the assistant of a local market price tracker. Answer questions "
    "about products, market prices and how to use the site briefly."
)


class ChatModel(Protocol):
    def reply(self, message: str) -> str:
        ...


class GeminiChatModel:
    def __init__(self, api_key: Optional[str], model: str = "gemini-2.5-flash"):
        self.model = model
        self.client = genai.Client(api_key=api_key) if api_key else None

    def reply(self, message: str) -> str:
        if self.client is None:
            raise UpstreamFailure("Chat model is not configured")

        truncated = (message[:200] + "...") if len(message) > 200 else message
        logger.info("Calling %s with message: %r", self.model, truncated)
        try:
            response = self.client.models.generate_content(
                model=self.model,
                contents=message,
                config=types.GenerateContentConfig(
                    system_instruction=SYSTEM_INSTRUCTION,
                    max_output_tokens=CHAT_MAX_OUTPUT_TOKENS,
                ),
            )
        except genai_errors.APIError as exc:
            logger.exception("Gemini request failed")
            raise UpstreamFailure(getattr(exc, "message", None) or str(exc)) from exc
        if not response.text:
            raise UpstreamFailure("Chat model returned an empty response")
        return response.text
