"""
Prompt enhancement using Google GenAI.

Rewrites a short user prompt into a detailed image-generation prompt.
"""

import logging
import time

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from core.exceptions import ExternalServiceError, GenerationError, ValidationError

logger = logging.getLogger(__name__)


ENHANCE_INSTRUCTION = (
    "You are an expert AI art curator. Rewrite the user's simple prompt into a "
    "detailed, high-quality image generation prompt. Focus on lighting, texture, "
    "and composition. Keep it under 75 words. Output ONLY the new prompt, "
    'no "Here is..." or quotes.'
)


class PromptEnhancer:
    """Async prompt rewriter backed by a Gemini text model."""

    def __init__(self, client: genai.Client | None, model: str = "gemini-1.5-flash"):
        self._client = client
        self.model = model

    @property
    def is_available(self) -> bool:
        return self._client is not None

    async def enhance(self, prompt: str) -> str:
        """
        Rewrite a prompt.

        Args:
            prompt: The user's prompt

        Returns:
            The enhanced prompt, stripped of surrounding quotes and whitespace.

        Raises:
            ValidationError: If the prompt is blank.
            ExternalServiceError: If the model cannot be reached.
            GenerationError: If the model answers with no text.
        """
        if not prompt or not prompt.strip():
            raise ValidationError(message="Prompt is required")
        if self._client is None:
            raise ExternalServiceError(message="Prompt enhancement is not configured")

        logger.info(f"[Enhance] Enhancing prompt: {prompt[:50]}...")
        start_time = time.time()

        config = types.GenerateContentConfig(
            system_instruction=ENHANCE_INSTRUCTION,
            max_output_tokens=150,
            temperature=0.7,
            top_p=0.9,
        )
        try:
            response = await self._client.aio.models.generate_content(
                model=self.model,
                contents=f"User Prompt: {prompt}",
                config=config,
            )
        except (genai_errors.APIError, httpx.HTTPError) as e:
            logger.error(f"[Enhance] Model call failed: {e}")
            raise ExternalServiceError(message=f"Prompt enhancement failed: {e}") from e

        text = (response.text or "").strip().strip('"').strip()
        if not text:
            raise GenerationError(message="Prompt enhancement returned no text")

        logger.info(f"[Enhance] Enhanced in {time.time() - start_time:.2f}s: {text[:50]}...")
        return text
