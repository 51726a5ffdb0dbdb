"""LLM provider adapters used for content tagging.

Two concrete implementations of ILLMProvider (src/interfaces/llm_provider.py):
    - OpenAILLMProvider -- gpt-4o-mini (also supports OpenAI-compatible APIs)
    - OllamaLLMProvider -- local models via Ollama server (llama3.1)

At startup, main.py creates the provider matching the available API key
(OPENAI_API_KEY) or Ollama URL.  When neither is reachable the tagger
falls back to keyword tagging.
"""

from src.providers.llm.ollama_provider import OllamaLLMProvider
from src.providers.llm.openai_provider import OpenAILLMProvider

__all__ = ["OpenAILLMProvider", "OllamaLLMProvider"]
