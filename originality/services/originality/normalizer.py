"""Text cleanup and segmentation for originality scans.

Two notions of "normalized" text live here:

* ``canonicalize`` produces the canonical scan content. It keeps casing and
  punctuation so sentences can still be found, and it is what the content
  hash and every match offset refer to.
* ``normalize`` produces the comparison form used by the lexical signals:
  lowercase, punctuation folded to spaces and stop words removed.
"""

import re
import unicodedata
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from originality.services.originality.constants import (
    ATTRIBUTION_PATTERNS,
    BIBLIOGRAPHY_HEADING,
    COMMON_ACADEMIC_PHRASES,
    DEFAULT_STOP_WORDS,
    WRAPPED_IN_QUOTES,
)
from originality.utils.logging import get_logger

LOGGER = get_logger(__name__)

_PUNCTUATION = re.compile(r"[^\w\s]", re.UNICODE)
_UNDERSCORE = re.compile(r"_+")
_WHITESPACE = re.compile(r"\s+")
_TRAILING_SPACE = re.compile(r"[ \t\f\v]+$", re.MULTILINE)

# Sentence boundary: terminal punctuation (optionally closed by a quote or
# bracket), whitespace, then a capitalized token or an opening quote. Explicit
# newlines always end a sentence.
_SENTENCE_BOUNDARY = re.compile(
    r"(?<=[.!?])[\"”’')\]]?[ \t]+(?=[A-Z\"“‘'(\[])"
    r"|[ \t]*\n+[ \t]*"
)


@dataclass(frozen=True)
class Sentence:
    """A sentence with its offsets in the text it was segmented from."""

    text: str
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start


def canonicalize(raw_text: str) -> str:
    """Produce the canonical scan content used for hashing and offsets."""
    if raw_text is None:
        return ""
    text = unicodedata.normalize("NFC", raw_text)
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _TRAILING_SPACE.sub("", text)
    return text.strip()


def word_count(text: str) -> int:
    return len(text.split())


def normalize(text: str, stop_words: Optional[Iterable[str]] = None) -> str:
    """Lowercase, fold punctuation to spaces, collapse whitespace, drop stop words.

    Args:
        text: Text to normalize
        stop_words: Words to remove. ``None`` keeps every word.

    Returns:
        Space-separated normalized words
    """
    if not text:
        return ""
    lowered = _PUNCTUATION.sub(" ", text.lower())
    lowered = _UNDERSCORE.sub(" ", lowered)
    words = _WHITESPACE.split(lowered.strip())
    if stop_words is not None:
        stop = stop_words if isinstance(stop_words, (set, frozenset)) else set(stop_words)
        words = [w for w in words if w and w not in stop]
    return " ".join(w for w in words if w)


def segment_sentences(text: str, min_length: int = 20) -> List[Sentence]:
    """Split text into sentences with offsets into ``text``.

    Fragments are stripped; empty fragments and fragments shorter than
    ``min_length`` characters are dropped.
    """
    sentences: List[Sentence] = []
    cursor = 0
    boundaries = [(m.start(), m.end()) for m in _SENTENCE_BOUNDARY.finditer(text)]
    boundaries.append((len(text), len(text)))

    for cut_start, cut_end in boundaries:
        fragment = text[cursor:cut_start]
        # The closing quote or bracket consumed by the boundary belongs to
        # the sentence before it.
        closer = text[cut_start:cut_end].rstrip(" \t\n")
        if closer and closer in "\"”’')]":
            fragment += closer
            cut_start += len(closer)

        stripped = fragment.strip()
        if stripped:
            start = cursor + (len(fragment) - len(fragment.lstrip()))
            end = start + len(stripped)
            if len(stripped) >= min_length:
                sentences.append(Sentence(text=stripped, start=start, end=end))
        cursor = cut_end

    return sentences


def exclude_bibliography(text: str) -> Tuple[str, Optional[Tuple[int, int]]]:
    """Cut a trailing reference list from the text.

    The last whole-line heading naming a reference section starts the
    excluded span, which runs to the end of the document.

    Returns:
        The body before the heading and the excluded ``(start, end)`` span,
        or the untouched text and ``None`` when no heading is found.
    """
    last = None
    for match in BIBLIOGRAPHY_HEADING.finditer(text):
        last = match
    if last is None:
        return text, None

    start = last.start()
    LOGGER.debug(
        "Excluding bibliography section",
        extra={"heading": last.group(1), "start": start, "excluded_chars": len(text) - start},
    )
    return text[:start], (start, len(text))


def is_properly_quoted(sentence: str) -> bool:
    """True when the sentence is a quotation or an attributed quotation."""
    stripped = sentence.strip()
    if WRAPPED_IN_QUOTES.match(stripped):
        return True
    return any(pattern.search(stripped) for pattern in ATTRIBUTION_PATTERNS)


class ContentNormalizer:
    """Text cleanup bound to one scan configuration."""

    def __init__(
        self,
        stop_words: Optional[Iterable[str]] = None,
        min_sentence_length: int = 20,
        short_sentence_words: int = 10,
        common_phrases: Iterable[str] = COMMON_ACADEMIC_PHRASES,
    ):
        self.stop_words = frozenset(w.lower() for w in stop_words) if stop_words else DEFAULT_STOP_WORDS
        self.min_sentence_length = min_sentence_length
        self.short_sentence_words = short_sentence_words
        self.common_phrases = tuple(normalize(p) for p in common_phrases)

    canonicalize = staticmethod(canonicalize)
    exclude_bibliography = staticmethod(exclude_bibliography)
    is_properly_quoted = staticmethod(is_properly_quoted)
    word_count = staticmethod(word_count)

    def normalize(self, text: str, strip_stop_words: bool = True) -> str:
        return normalize(text, self.stop_words if strip_stop_words else None)

    def segment_sentences(self, text: str) -> List[Sentence]:
        return segment_sentences(text, self.min_sentence_length)

    def is_common_academic_phrase(self, sentence: str) -> bool:
        """Membership test against the boilerplate phrase list.

        A sentence is boilerplate when it is one of the phrases, or opens with
        one and is too short to carry content of its own.
        """
        normalized = normalize(sentence)
        if not normalized:
            return False
        if normalized in self.common_phrases:
            return True
        if word_count(normalized) >= self.short_sentence_words:
            return False
        return any(
            normalized == phrase or normalized.startswith(phrase + " ")
            for phrase in self.common_phrases
        )
