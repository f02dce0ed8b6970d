"""Prompt assembly — one system message, trimmed history, then the user turn."""

from __future__ import annotations

from agentrag.core.config import get_settings
from agentrag.services.language import language_name

REFUSAL_SENTENCE = "I don't have information about that in my knowledge base."

KNOWLEDGE_BASE_PREAMBLE = (
    "You are a knowledge base assistant that ONLY provides information from "
    "the documents provided."
)
GROUNDING_INSTRUCTION = (
    "CRITICAL INSTRUCTION: You MUST ONLY answer based on the information in the "
    f"documents below. If the documents don't contain the answer, say '{REFUSAL_SENTENCE}' "
    "DO NOT make up information or use your general knowledge."
)
NO_CONTEXT_INSTRUCTION = (
    "You only have access to information from uploaded documents. If no document "
    "information is provided, inform the user that you don't have relevant "
    "information in your knowledge base."
)


def build_system_prompt(system_prompt: str, context: str | None, language: str | None = None) -> str:
    parts = [system_prompt.strip()] if system_prompt and system_prompt.strip() else []
    parts.append(KNOWLEDGE_BASE_PREAMBLE)
    if language and language.lower() not in ("en", "eng", "english"):
        parts.append(f"Respond in {language_name(language)} language.")

    if context:
        parts.append(GROUNDING_INSTRUCTION)
        return "\n\n".join(parts) + f"\n\nDOCUMENT KNOWLEDGE:\n{context}"

    parts.append(NO_CONTEXT_INSTRUCTION)
    return "\n\n".join(parts)


def build_messages(
    system_prompt: str,
    context: str | None,
    history: list[dict] | None,
    user_message: str,
    history_limit: int | None = None,
    language: str | None = None,
) -> list[dict]:
    """Assemble the message array for the LLM call.

    System messages already present in ``history`` are dropped; the freshly
    built one replaces them. Only the last ``history_limit`` turns are kept.
    """
    if history_limit is None:
        history_limit = get_settings().history_limit

    messages: list[dict] = [
        {"role": "system", "content": build_system_prompt(system_prompt, context, language)}
    ]

    turns = [
        {"role": msg["role"], "content": msg["content"]}
        for msg in history or []
        if msg.get("role") != "system"
    ]
    if history_limit > 0:
        messages.extend(turns[-history_limit:])

    messages.append({"role": "user", "content": user_message})
    return messages
