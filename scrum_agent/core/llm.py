"""
LLM Client Initialization.

Builds the chat and embedding models used throughout the application.
Keeping this separate from config.py avoids mixing configuration parsing
with external-client setup.
"""

from langchain_openai import ChatOpenAI, OpenAIEmbeddings
from pydantic import SecretStr

from scrum_agent.core.config import Settings, settings


def build_chat_model(s: Settings = settings) -> ChatOpenAI:
    """
    Build the chat model.

    Retries are owned by LLMService (with budget accounting), so the
    client-level retry is disabled.
    """
    return ChatOpenAI(
        api_key=SecretStr(s.OPENAI_API_KEY),
        base_url=s.OPENAI_BASE_URL,
        model=s.OPENAI_MODEL,
        temperature=0,
        max_retries=0,
    )


def build_embeddings(s: Settings = settings) -> OpenAIEmbeddings:
    """Build the embedding model used for context retrieval."""
    return OpenAIEmbeddings(
        api_key=SecretStr(s.OPENAI_API_KEY),
        base_url=s.OPENAI_BASE_URL,
        model=s.OPENAI_EMBEDDING_MODEL,
        max_retries=0,
    )
