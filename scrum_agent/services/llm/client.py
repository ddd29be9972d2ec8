"""Model client: structured completions and embeddings behind one interface."""

from typing import Any, List, Optional, Protocol, Type

from langchain_core.embeddings import Embeddings
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.prompts import ChatPromptTemplate
from pydantic import BaseModel


class TokenUsage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0


class Completion(BaseModel):
    """Parsed structured output plus the token usage reported by the provider."""

    parsed: Any
    usage: Optional[TokenUsage] = None


class ModelClient(Protocol):
    """Embedding/completion collaborator consumed by LLMService."""

    model_name: str

    async def complete(
        self, schema: Type[BaseModel], system_prompt: str, user_input: str
    ) -> Completion: ...

    async def embed(self, text: str) -> List[float]: ...


# Persona prompts contain literal JSON braces; pass them as values.
_STRUCTURED_PROMPT = ChatPromptTemplate.from_messages(
    [("system", "{system_prompt}"), ("human", "{user_input}")]
)


class LangChainModelClient:
    """ModelClient backed by a LangChain chat model and embeddings."""

    def __init__(self, chat_model: BaseChatModel, embeddings: Embeddings, model_name: str):
        self.chat_model = chat_model
        self.embeddings = embeddings
        self.model_name = model_name

    async def complete(
        self, schema: Type[BaseModel], system_prompt: str, user_input: str
    ) -> Completion:
        llm = self.chat_model.with_structured_output(schema, include_raw=True)
        chain = _STRUCTURED_PROMPT | llm
        result = await chain.ainvoke(
            {"system_prompt": system_prompt, "user_input": user_input}
        )

        if result.get("parsing_error") is not None:
            raise result["parsing_error"]

        usage = None
        usage_metadata = getattr(result.get("raw"), "usage_metadata", None)
        if usage_metadata:
            usage = TokenUsage(
                prompt_tokens=usage_metadata.get("input_tokens", 0) or 0,
                completion_tokens=usage_metadata.get("output_tokens", 0) or 0,
            )
        return Completion(parsed=result.get("parsed"), usage=usage)

    async def embed(self, text: str) -> List[float]:
        return await self.embeddings.aembed_query(text)
