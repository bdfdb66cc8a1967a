"""Retrieval-augmented chat with streamed answers.

The pipeline is stateless: conversation history belongs to the caller and is
passed in with every question.
"""
from contextlib import aclosing
from typing import AsyncIterator, Iterable, List, Literal, Optional

import structlog
from pydantic import BaseModel, ValidationError, field_validator

from app import config
from app.errors import InvalidInputError, UpstreamError
from app.llm_client import OllamaClient, ollama_client
from app.rag.retriever import Retriever

logger = structlog.get_logger()

DONE_MARKER = "[DONE]"

SYSTEM_PROMPT = """You are a helpful assistant. Answer ONLY on the basis of the document context below.
If the answer is not contained in the context, say plainly that the documents do not provide this information.
Always answer in the language the user asked the question in.

CONTEXT:
{context}"""


class ChatMessage(BaseModel):
    """One turn of a conversation."""

    role: Literal["user", "assistant", "system"]
    content: str


class ChatRequest(BaseModel):
    """Body of a chat request."""

    question: str
    history: List[ChatMessage] = []

    @field_validator("question")
    @classmethod
    def question_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("question must not be empty")
        return value


class ChatService:
    """Answers questions from retrieved document fragments."""

    def __init__(
        self,
        retriever: Optional[Retriever] = None,
        client: Optional[OllamaClient] = None,
        chat_model: str = None,
    ):
        self.retriever = retriever or Retriever()
        self.client = client or ollama_client
        self.chat_model = chat_model or config.CHAT_MODEL

    def answer(
        self,
        question: str,
        history: Optional[Iterable] = None,
    ) -> AsyncIterator[str]:
        """Validate a question and return its answer stream.

        Validation happens eagerly so bad input is rejected before any
        external call. The stream yields text increments and ends with
        DONE_MARKER.

        Raises:
            InvalidInputError: If the question is blank or too long, or the
                history is malformed
        """
        if not question or not question.strip():
            raise InvalidInputError("Question must not be empty")

        if len(question) > config.MAX_QUESTION_LENGTH:
            raise InvalidInputError(
                f"Question too long (max {config.MAX_QUESTION_LENGTH} characters)"
            )

        try:
            messages = [
                m if isinstance(m, ChatMessage) else ChatMessage.model_validate(m)
                for m in (history or [])
            ]
        except ValidationError as e:
            raise InvalidInputError(f"Malformed conversation history: {e}") from e

        return self._stream(question, messages)

    def build_messages(self, question: str, context: str, history: List[ChatMessage]) -> List[dict]:
        """Assemble system instruction, caller history and the question."""
        return (
            [{"role": "system", "content": SYSTEM_PROMPT.format(context=context)}]
            + [m.model_dump() for m in history]
            + [{"role": "user", "content": question}]
        )

    async def _stream(self, question: str, history: List[ChatMessage]) -> AsyncIterator[str]:
        logger.info(
            "chat_question_received",
            question_preview=question[:100],
            history_length=len(history),
        )

        try:
            results = await self.retriever.retrieve(question)

            if not results:
                logger.info("no_relevant_context_found")
                yield config.NO_RESULTS_MESSAGE
                yield DONE_MARKER
                return

            context = self.retriever.format_context(results)
            messages = self.build_messages(question, context, history)

            logger.info(
                "chat_context_built",
                fragments=len(results),
                context_length=len(context),
            )

            # Closing this stream early must also close the Ollama response
            async with aclosing(self.client.chat_stream(messages, model=self.chat_model)) as stream:
                async for text in stream:
                    yield text

        except UpstreamError as e:
            logger.error(
                "chat_upstream_failed",
                error=str(e),
                provider=e.provider_name,
            )
            yield config.UPSTREAM_ERROR_MESSAGE

        yield DONE_MARKER


# Singleton instance for convenience
_chat_instance: Optional[ChatService] = None


def get_chat_service() -> ChatService:
    """Get or create a singleton chat service."""
    global _chat_instance
    if _chat_instance is None:
        _chat_instance = ChatService()
    return _chat_instance
