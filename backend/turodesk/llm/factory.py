"""
LLM Factory - Creates the configured chat model and embedding model.
"""

from typing import Optional

from langchain_openai import ChatOpenAI, OpenAIEmbeddings

from ..core import ConfigurationError


def create_chat_model(
    api_key: Optional[str],
    model: str = "gpt-4o-mini",
    base_url: Optional[str] = None,
    temperature: float = 0.2,
    **kwargs
) -> ChatOpenAI:
    """
    Create the chat model used by the agent.

    Args:
        api_key: OpenAI API key
        model: Model name
        base_url: Custom OpenAI-compatible endpoint
        temperature: Sampling temperature
        **kwargs: Additional ChatOpenAI parameters

    Returns:
        ChatOpenAI instance with token streaming enabled

    Raises:
        ConfigurationError: If api_key is not configured
    """
    if not api_key:
        raise ConfigurationError("OPENAI_API_KEY is required")

    params = {"api_key": api_key, "model": model, "temperature": temperature, "streaming": True}
    if base_url:
        params["base_url"] = base_url
    params.update(kwargs)
    return ChatOpenAI(**params)


def create_embeddings(
    api_key: Optional[str],
    model: str = "text-embedding-3-small",
    dimensions: Optional[int] = None,
    base_url: Optional[str] = None,
) -> OpenAIEmbeddings:
    """
    Create the embedding model for long-term memory.

    Raises:
        ConfigurationError: If api_key is not configured
    """
    if not api_key:
        raise ConfigurationError("OPENAI_API_KEY is required for embeddings")

    params = {"api_key": api_key, "model": model}
    # text-embedding-3 models accept a reduced dimension count
    if dimensions and model.startswith("text-embedding-3"):
        params["dimensions"] = dimensions
    if base_url:
        params["base_url"] = base_url
    return OpenAIEmbeddings(**params)
