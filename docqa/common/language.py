"""
Question Language Detection

Decides which language the answer should be written in when the caller does
not say. Uses langdetect with a Unicode-script fallback for short questions.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from langdetect import DetectorFactory, LangDetectException, detect_langs

logger = logging.getLogger("docqa.common.language")

# Seed langdetect for deterministic results
DetectorFactory.seed = 0

# Below this many characters langdetect guesses wildly on Latin text
MIN_DETECT_CHARS = 20
LATIN_CONFIDENCE = 0.9

LANGUAGE_NAMES = {
    "en": "English",
    "de": "German",
    "es": "Spanish",
    "fr": "French",
    "it": "Italian",
    "pt": "Portuguese",
    "nl": "Dutch",
    "ru": "Russian",
    "uk": "Ukrainian",
    "ar": "Arabic",
    "hi": "Hindi",
    "ko": "Korean",
    "ja": "Japanese",
    "zh-cn": "Chinese",
    "zh-tw": "Chinese",
    "zh": "Chinese",
}

# (start, end, language) for scripts that identify a language on their own
_SCRIPT_RANGES = [
    (0xAC00, 0xD7AF, "ko"),  # Hangul Syllables
    (0x1100, 0x11FF, "ko"),  # Hangul Jamo
    (0x3040, 0x30FF, "ja"),  # Hiragana + Katakana
    (0x4E00, 0x9FFF, "zh"),  # CJK Unified Ideographs
    (0x0400, 0x04FF, "ru"),  # Cyrillic
    (0x0600, 0x06FF, "ar"),  # Arabic
    (0x0900, 0x097F, "hi"),  # Devanagari
]


@dataclass(frozen=True)
class LanguageInfo:
    """Detected language information"""
    code: str           # ISO 639-1 (langdetect codes, e.g. "zh-cn")
    confidence: float   # 0.0~1.0

    @property
    def is_english(self) -> bool:
        return self.code == "en"

    @property
    def name(self) -> str:
        return LANGUAGE_NAMES.get(self.code, self.code)


def _script_language(text: str) -> Optional[str]:
    """Language implied by the dominant non-Latin script, if any."""
    counts: dict = {}
    for ch in text:
        cp = ord(ch)
        for start, end, lang in _SCRIPT_RANGES:
            if start <= cp <= end:
                counts[lang] = counts.get(lang, 0) + 1
                break
    if not counts:
        return None
    # Kana anywhere means Japanese even when kanji dominate
    if "ja" in counts:
        return "ja"
    return max(counts, key=counts.get)


def detect_language(text: str) -> LanguageInfo:
    """Detect the language of a question.

    Short Latin-script text defaults to English; non-Latin scripts are
    recognised from their Unicode block regardless of length.
    """
    if not text or not text.strip():
        return LanguageInfo(code="en", confidence=1.0)

    cleaned = text.strip()
    script_lang = _script_language(cleaned)

    if len(cleaned) < MIN_DETECT_CHARS:
        if script_lang:
            return LanguageInfo(code=script_lang, confidence=0.6)
        return LanguageInfo(code="en", confidence=0.5)

    try:
        results = detect_langs(cleaned)
    except LangDetectException as e:
        logger.debug("langdetect failed: %s", e)
        results = []

    if results:
        top = results[0]
        # langdetect often mislabels English questions as nl/af/de; only trust
        # a Latin-script non-English guess when it is confident
        if top.lang != "en" and not script_lang and top.prob < LATIN_CONFIDENCE:
            return LanguageInfo(code="en", confidence=0.5)
        return LanguageInfo(code=top.lang, confidence=round(top.prob, 4))

    if script_lang:
        return LanguageInfo(code=script_lang, confidence=0.7)
    return LanguageInfo(code="en", confidence=0.5)


def resolve_answer_language(question: str, language: Optional[str] = None) -> Optional[str]:
    """Language name for the answer instruction, None for English.

    An explicit language from the caller always wins over detection.
    """
    if language:
        return None if language.lower() in ("en", "english") else language
    info = detect_language(question)
    return None if info.is_english else info.name
