# backend/histquiz/core/gemini_qg.py

import logging
import time
from dataclasses import dataclass
from typing import Optional, Protocol

from openai import AsyncOpenAI

from .config import Settings
from .errors import ConfigurationError, ErrorKind, UpstreamError

logger = logging.getLogger("quiz.qg")

# ------------------------------------------------------------
# Generator interface
# ------------------------------------------------------------
class TextGenerator(Protocol):
    async def generate(self, prompt: str) -> str: ...

    async def aclose(self) -> None: ...


# ------------------------------------------------------------
# Gemini client (OpenAI-compatible endpoint)
# ------------------------------------------------------------
def configure_gemini(settings: Settings) -> AsyncOpenAI:
    """Create an AsyncOpenAI client aimed at Gemini's OpenAI-compatible API."""
    if not settings.api_key:
        raise ConfigurationError("GEMINI_API_KEY missing. Provide via env or secret store.")
    return AsyncOpenAI(api_key=settings.api_key, base_url=settings.base_url)


class GeminiGenerator:
    def __init__(self, client: AsyncOpenAI, model_name: str):
        self._client = client
        self.model_name = model_name

    async def generate(self, prompt: str) -> str:
        """Send one prompt, asking for JSON output, and return the raw text."""
        logger.info(f"Gemini API call started (model={self.model_name})")
        start = time.perf_counter()

        resp = await self._client.chat.completions.create(
            model=self.model_name,
            messages=[{"role": "user", "content": prompt}],
            response_format={"type": "json_object"},
        )
        logger.info(f"Gemini API call succeeded in {time.perf_counter() - start:.2f}s")

        if not resp.choices:
            raise UpstreamError(ErrorKind.UNKNOWN, detail="Empty response from model")
        choice = resp.choices[0]
        if choice.finish_reason == "content_filter":
            raise UpstreamError(ErrorKind.CONTENT_POLICY, detail="Response blocked: SAFETY")

        text = choice.message.content or ""
        if not text:
            raise UpstreamError(ErrorKind.UNKNOWN, detail="Empty response from model")
        logger.info(f"Response size: {len(text)} chars")
        return text

    async def aclose(self) -> None:
        await self._client.close()


# ------------------------------------------------------------
# Initialisation result
# ------------------------------------------------------------
@dataclass(frozen=True)
class ClientInit:
    """Outcome of building the upstream client: a generator or the reason there is none."""

    generator: Optional[TextGenerator] = None
    error: Optional[ConfigurationError] = None

    @classmethod
    def ok(cls, generator: TextGenerator) -> "ClientInit":
        return cls(generator=generator)

    @classmethod
    def failed(cls, error: ConfigurationError) -> "ClientInit":
        return cls(error=error)

    def unwrap(self) -> TextGenerator:
        if self.generator is None:
            raise self.error or ConfigurationError()
        return self.generator

    async def aclose(self) -> None:
        if self.generator is not None:
            await self.generator.aclose()


def init_client(settings: Settings) -> ClientInit:
    logger.info("Client initialisation started...")
    start = time.perf_counter()
    try:
        client = configure_gemini(settings)
    except ConfigurationError as e:
        logger.error(f"Client initialisation failed: {e}")
        return ClientInit.failed(e)
    logger.info(f"Client initialised in {time.perf_counter() - start:.3f}s")
    return ClientInit.ok(GeminiGenerator(client, settings.model))
