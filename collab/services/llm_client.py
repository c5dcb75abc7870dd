"""
LLM API Client

The alignment model sits behind an OpenAI-compatible endpoint (Gemini's by
default), so we use the openai library's async client.

USAGE:
- Only the alignment blurb goes through here
- One short prompt in, plain text out
- Timeouts and error mapping live in alignment_service; this class just talks
  to the API
"""
import logging

from openai import AsyncOpenAI

from collab.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


class LLMClient:
    """
    Thin async wrapper around the chat completions endpoint.
    """

    def __init__(self, settings: Settings = None):
        settings = settings or get_settings()
        self.client = AsyncOpenAI(
            api_key=settings.llm_api_key,
            base_url=settings.llm_base_url,
            # The caller enforces its own deadline; no silent SDK retries
            max_retries=0
        )
        self.model = settings.llm_model
        self.max_tokens = settings.llm_max_tokens
        self.temperature = settings.llm_temperature
        self.top_p = settings.llm_top_p

    async def complete(self, prompt: str, max_tokens: int = None) -> str:
        """
        Send a single-turn prompt and return the raw text reply.
        Returns "" when the model produced no content.
        """
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            max_tokens=max_tokens or self.max_tokens,
            temperature=self.temperature,
            top_p=self.top_p
        )
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    async def test_connection(self) -> bool:
        """Test if the LLM API is reachable"""
        try:
            response = await self.complete("Reply with exactly: OK", max_tokens=10)
            return "OK" in response.upper()
        except Exception as e:
            logger.warning("LLM connection failed: %s", e)
            return False


# Singleton instance
_llm_client: LLMClient = None


def get_llm_client() -> LLMClient:
    """Get or create LLM client (singleton pattern)"""
    global _llm_client
    if _llm_client is None:
        _llm_client = LLMClient()
    return _llm_client
