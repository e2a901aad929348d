"""LLM provider adapters.

OpenAILLMProvider implements ILLMProvider (src/interfaces/llm_provider.py)
for OpenAI and OpenAI-compatible servers.  It is used for per-chunk entity
extraction and the semantic relationship pass of the graph builder.
"""

from src.providers.llm.openai_provider import OpenAILLMProvider

__all__ = ["OpenAILLMProvider"]
