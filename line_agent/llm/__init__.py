# llm/__init__.py
"""
LLM Components Package

Contains LLM-powered components:
- prompts: Langchain prompt templates
- model_client: GenerationModel boundary (OpenAI / Ollama)
- intent_extractor: Parse a LINE message into an action invocation
- reply_phraser: Clarifying questions and knowledge-base answers
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .model_client import GenerationModel, OpenAIGenerationModel, RawModelOutput
    from .intent_extractor import IntentExtractor
    from .reply_phraser import ReplyPhraser, clarifying_question

__all__ = [
    "GenerationModel",
    "OpenAIGenerationModel",
    "RawModelOutput",
    "IntentExtractor",
    "ReplyPhraser",
    "clarifying_question",
]
