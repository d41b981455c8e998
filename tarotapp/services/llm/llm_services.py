# tarotapp/services/llm/llm_services.py
import logging
from typing import Any, Optional, Protocol

from google import genai
from google.genai import types

from tarotapp.models.llm_models import CompletionRequest

logger = logging.getLogger(__name__)


class CompletionServiceUnavailable(RuntimeError):
    pass


class CompletionService(Protocol):
    async def complete(self, request: CompletionRequest) -> Any:
        ...


class GeminiCompletionService:
    """
    Sends a CompletionRequest to Gemini and returns the raw response.
    Pulling the text out of the response is left to the caller.
    """

    def __init__(self, client: Optional[genai.Client]):
        self.client = client

    async def complete(self, request: CompletionRequest) -> types.GenerateContentResponse:
        if self.client is None:
            raise CompletionServiceUnavailable("No Gemini client configured")

        system_instruction = "\n".join(m.content for m in request.messages if m.role == "system") or None
        contents = [
            types.Content(
                role="model" if message.role == "assistant" else "user",
                parts=[types.Part(text=message.content)],
            )
            for message in request.messages
            if message.role != "system"
        ]
        config = types.GenerateContentConfig(
            system_instruction=system_instruction,
            max_output_tokens=request.max_tokens,
            temperature=request.temperature,
        )

        logger.debug(f"Sending completion request to {request.model} ({len(contents)} message(s))")
        return await self.client.aio.models.generate_content(
            model=request.model,
            contents=contents,
            config=config,
        )
