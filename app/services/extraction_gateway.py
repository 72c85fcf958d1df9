"""Language model gateway used for note extraction."""

from typing import Optional, Protocol
from openai import OpenAI, OpenAIError

from app.config import settings
from app.core.logging import logger
from app.shared.exceptions import ExtractionGatewayError


class ExtractionGateway(Protocol):
    """Anything that turns a prompt into raw model text."""

    def generate(self, prompt: str) -> str:
        ...


class OpenAIExtractionGateway:
    """Extraction gateway backed by OpenAI chat completions."""

    def __init__(self, client: Optional[OpenAI] = None, model: Optional[str] = None):
        # No retries: failures are surfaced to whoever filed the note
        self.client = client or OpenAI(
            api_key=settings.OPENAI_API_KEY,
            timeout=settings.LLM_TIMEOUT_SECONDS,
            max_retries=0,
        )
        self.model = model or settings.OPENAI_MODEL

    def generate(self, prompt: str) -> str:
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=0.1,  # Lower temperature for more consistent JSON output
            )
        except OpenAIError as e:
            logger.error(f"Extraction request failed: {type(e).__name__}: {e}")
            raise ExtractionGatewayError("Language model request failed", e) from e

        content = response.choices[0].message.content
        logger.debug(f"Extraction raw response: {(content or '')[:500]}")
        return content or ""
