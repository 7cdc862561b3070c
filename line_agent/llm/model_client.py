# llm/model_client.py
"""
Generation Model boundary
Everything the agent needs from a hosted language model goes through
``GenerationModel.complete`` so tests can swap in a scripted fake.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

from loguru import logger
from openai import AsyncOpenAI, OpenAIError

from ..config import settings
from ..exceptions import ExtractionError


@dataclass
class RawModelOutput:
    """Unparsed model output: free text and/or one function call"""
    text: str = ""
    tool_name: Optional[str] = None
    tool_arguments: Optional[str] = None  # JSON string as sent by the model

    @property
    def has_tool_call(self) -> bool:
        return bool(self.tool_name)


class GenerationModel(Protocol):
    async def complete(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]] = None,
    ) -> RawModelOutput:
        ...


class OpenAIGenerationModel:
    """
    Chat completions with function tools.
    Talks to OpenAI when a key is configured, otherwise to Ollama's
    OpenAI-compatible endpoint.
    """

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ):
        self.model = model or settings.llm_model
        self.temperature = settings.LLM_TEMPERATURE if temperature is None else temperature
        self.max_tokens = max_tokens or settings.LLM_MAX_TOKENS
        self.client = client or AsyncOpenAI(
            api_key=settings.OPENAI_API_KEY if settings.use_openai else "ollama",
            base_url=settings.llm_base_url,
            timeout=settings.LLM_TIMEOUT_SECONDS,
            max_retries=0,
        )
        logger.info(f"Generation model: {settings.llm_provider}/{self.model}")

    async def complete(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]] = None,
    ) -> RawModelOutput:
        request: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        if tools:
            request["tools"] = tools
            request["tool_choice"] = "auto"

        try:
            response = await self.client.chat.completions.create(**request)
        except OpenAIError as e:
            raise ExtractionError(f"{settings.llm_provider} request failed: {e}") from e

        if not response.choices:
            raise ExtractionError("model returned no choices")

        message = response.choices[0].message
        output = RawModelOutput(text=message.content or "")
        if message.tool_calls:
            call = message.tool_calls[0]
            output.tool_name = call.function.name
            output.tool_arguments = call.function.arguments
            if len(message.tool_calls) > 1:
                logger.warning(
                    f"Model requested {len(message.tool_calls)} tool calls, using {call.function.name}"
                )
        return output
