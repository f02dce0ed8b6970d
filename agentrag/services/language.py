"""Language detection for user messages.

A word-list heuristic answers most messages without a network call; only
longer text it can't place goes to the LLM. Results are cached per message
prefix.
"""

from __future__ import annotations

import logging
import re

from litellm import acompletion

from agentrag.core.cache import Cache
from agentrag.core.config import get_settings

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGE = "en"
CACHE_PREFIX_CHARS = 50
LLM_SAMPLE_CHARS = 100
# Shorter inconclusive text isn't worth an LLM call
MIN_WORDS_FOR_LLM = 3

LANGUAGE_NAMES = {
    "en": "English",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "it": "Italian",
    "pt": "Portuguese",
    "ar": "Arabic",
    "ru": "Russian",
    "zh": "Chinese",
}

COMMON_WORDS: dict[str, frozenset[str]] = {
    "en": frozenset({
        "the", "is", "are", "and", "what", "how", "does", "do", "it", "you", "to",
        "of", "in", "on", "my", "can", "please", "with", "for", "this", "that",
        "have", "much", "where", "when", "hello",
    }),
    "es": frozenset({
        "el", "los", "las", "es", "y", "que", "por", "para", "cómo", "qué",
        "cuánto", "cuesta", "una", "con", "mi", "está", "hola", "dónde", "gracias",
    }),
    "fr": frozenset({
        "le", "les", "est", "et", "des", "pour", "comment", "combien", "une",
        "avec", "mon", "je", "vous", "bonjour", "quel", "merci", "où", "coûte",
    }),
    "de": frozenset({
        "der", "die", "das", "ist", "und", "was", "wie", "viel", "kostet", "ein",
        "eine", "mit", "mein", "ich", "sie", "für", "nicht", "hallo", "danke",
    }),
    "it": frozenset({
        "il", "lo", "è", "che", "di", "per", "come", "quanto", "costa",
        "mio", "sono", "ciao", "grazie", "dove", "gli",
    }),
    "pt": frozenset({
        "os", "é", "para", "como", "quanto", "custa", "uma", "um", "com",
        "meu", "olá", "não", "obrigado", "onde", "você",
    }),
}

_SCRIPTS = (
    ("ar", re.compile(r"[\u0600-\u06ff]")),
    ("ru", re.compile(r"[\u0400-\u04ff]")),
    ("zh", re.compile(r"[\u4e00-\u9fff]")),
)
_WORD = re.compile(r"[^\W\d_]+")
_LANGUAGE_CODE = re.compile(r"[a-z]{2}")


def language_name(code: str) -> str:
    return LANGUAGE_NAMES.get(code.lower(), code)


def quick_detect_language(text: str) -> str | None:
    """Best guess from script and common words; None when inconclusive."""
    for code, pattern in _SCRIPTS:
        if pattern.search(text):
            return code

    words = _WORD.findall(text.lower())
    hits = sorted(
        ((sum(w in vocab for w in words), code) for code, vocab in COMMON_WORDS.items()),
        reverse=True,
    )
    (best, code), (runner_up, _) = hits[0], hits[1]
    if best == 0 or best == runner_up:
        return None
    return code


async def _llm_detect_language(text: str) -> str:
    settings = get_settings()
    response = await acompletion(
        model=settings.default_llm_model,
        messages=[
            {
                "role": "system",
                "content": "You are a language detection tool. Respond only with the ISO 639-1 language code.",
            },
            {"role": "user", "content": f'Detect language: "{text[:LLM_SAMPLE_CHARS]}"'},
        ],
        temperature=0.1,
        max_tokens=10,
        timeout=settings.llm_timeout_seconds,
    )
    code = (response.choices[0].message.content or "").strip().lower()
    if not _LANGUAGE_CODE.fullmatch(code):
        raise ValueError(f"Unexpected language code {code!r}")
    return code


async def detect_language(text: str, cache: Cache | None = None) -> str:
    """ISO 639-1 code for ``text``, defaulting to English.

    Never raises: a failed LLM lookup logs a warning and returns the
    default, which is not cached.
    """
    if not text or not text.strip():
        return DEFAULT_LANGUAGE

    key = ("language", text[:CACHE_PREFIX_CHARS])
    if cache is not None:
        cached = cache.get(key)
        if cached is not None:
            return cached

    language = quick_detect_language(text)
    if language is None:
        if len(_WORD.findall(text)) < MIN_WORDS_FOR_LLM:
            return DEFAULT_LANGUAGE
        try:
            language = await _llm_detect_language(text)
        except Exception:
            logger.warning("Language detection failed, assuming %s", DEFAULT_LANGUAGE, exc_info=True)
            return DEFAULT_LANGUAGE

    if cache is not None:
        cache.set(key, language)
    return language
