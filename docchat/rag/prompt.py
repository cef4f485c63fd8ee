"""Prompt assembly for the generation model."""
from typing import Dict, List, Sequence, Tuple

SYSTEM_PROMPT = """You are a helpful AI assistant. Use the provided context to answer the user question.
If you do not know, say you do not know. Do not invent facts.
If the question is unrelated to the context, say you only answer based on the provided context."""

History = Sequence[Tuple[str, str]]


def sanitize_question(question: str) -> str:
    """Trim a question and fold it onto one line."""
    return str(question).strip().replace("\n", " ")


def build_messages(
    question: str,
    context: str,
    history: History = (),
) -> List[Dict[str, str]]:
    """Build chat messages: system, prior turns, then context and question.

    Args:
        question: The current question
        context: Context block from the retriever
        history: Earlier (question, answer) pairs, oldest first

    Returns:
        Role-tagged messages ending in the user turn
    """
    messages = [{"role": "system", "content": SYSTEM_PROMPT}]

    for user_question, assistant_answer in history:
        messages.append({"role": "user", "content": user_question})
        messages.append({"role": "assistant", "content": assistant_answer})

    messages.append({
        "role": "user",
        "content": (
            f"Context:\n{context}\n\n"
            f"Question: {question}\n\n"
            "Helpful answer in markdown:"
        ),
    })

    return messages
