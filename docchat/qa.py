"""Question answering over the local index."""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import structlog

from docchat.llm_client import OllamaClient, ollama_client
from docchat.rag.prompt import History, build_messages
from docchat.rag.retriever import Retriever

logger = structlog.get_logger()


@dataclass
class ChatAnswer:
    """Generated answer plus the fragments it was grounded on."""

    text: str
    source_documents: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"text": self.text, "sourceDocuments": self.source_documents}


class QAService:
    """Retrieve context for a question and ask the chat model."""

    def __init__(
        self,
        retriever: Optional[Retriever] = None,
        client: Optional[OllamaClient] = None,
        chat_model: str = None,
    ):
        self.retriever = retriever or Retriever()
        self.client = client or ollama_client
        self.chat_model = chat_model

    async def answer(self, question: str, history: History = ()) -> ChatAnswer:
        """Answer a (sanitized) question.

        Errors from retrieval and generation propagate unchanged.
        """
        results, context = await self.retriever.answer_context(question)

        messages = build_messages(question, context, history)
        text = await self.client.chat(messages, model=self.chat_model)

        logger.info(
            "question_answered",
            question_length=len(question),
            history_turns=len(history),
            sources=len(results),
            response_length=len(text),
        )

        return ChatAnswer(
            text=text,
            source_documents=[result.to_source_document() for result in results],
        )
