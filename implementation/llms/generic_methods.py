import asyncio
import logging
from typing import Optional

import openai
from openai import AsyncOpenAI

from implementation.misc.errors import ClassificationFailure

logger = logging.getLogger(__name__)


# ===============================
#       Review Classification
# ===============================

class OpenAIReviewClassifier:
    """
    Sends a fully built classification prompt to OpenAI and returns the raw label.

    The client never retries; a failed or timed-out call is reported once.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-5-mini",
        timeout: float = 30.0,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        self._model = model
        self._timeout = timeout
        self._client = client or AsyncOpenAI(api_key=api_key, timeout=timeout, max_retries=0)

    async def classify(self, prompt: str) -> str:
        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=self._model,
                    messages=[{"role": "user", "content": prompt}],
                ),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            raise ClassificationFailure(f"OpenAI did not answer within {self._timeout:.0f}s")
        except openai.OpenAIError as e:
            logger.error("OpenAI classification call failed: %s", e)
            raise ClassificationFailure(f"OpenAI failed to classify review: {e}")

        if not response.choices:
            raise ClassificationFailure("OpenAI returned no choices")
        content = response.choices[0].message.content
        return (content or "").strip()

    async def close(self) -> None:
        await self._client.close()
