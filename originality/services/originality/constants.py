"""Word lists and patterns shared by the originality pipeline."""

import re

# English stop words removed before lexical comparison.
DEFAULT_STOP_WORDS = frozenset({
    "a", "about", "above", "after", "again", "against", "all", "am", "an", "and",
    "any", "are", "as", "at", "be", "because", "been", "before", "being", "below",
    "between", "both", "but", "by", "can", "could", "did", "do", "does", "doing",
    "down", "during", "each", "few", "for", "from", "further", "had", "has", "have",
    "having", "he", "her", "here", "hers", "herself", "him", "himself", "his", "how",
    "i", "if", "in", "into", "is", "it", "its", "itself", "just", "me", "more",
    "most", "my", "myself", "no", "nor", "not", "now", "of", "off", "on", "once",
    "only", "or", "other", "our", "ours", "ourselves", "out", "over", "own", "same",
    "she", "should", "so", "some", "such", "than", "that", "the", "their", "theirs",
    "them", "themselves", "then", "there", "these", "they", "this", "those",
    "through", "to", "too", "under", "until", "up", "very", "was", "we", "were",
    "what", "when", "where", "which", "while", "who", "whom", "why", "will", "with",
    "would", "you", "your", "yours", "yourself", "yourselves",
})

COMMON_ACADEMIC_PHRASES = (
    "in conclusion",
    "on the other hand",
    "for example",
    "in other words",
    "as a result",
    "due to",
    "because of",
    "such as",
    "for instance",
    "in addition",
    "in particular",
    "in fact",
    "in general",
    "in terms of",
    "with regard to",
    "in accordance with",
    "according to",
    "on the basis of",
    "in light of",
    "it is important to note",
)

BIBLIOGRAPHY_HEADING = re.compile(
    r"^[ \t]*(?:#{1,6}[ \t]*)?(?:\d+(?:\.\d+)*\.?[ \t]+)?"
    r"(references|bibliography|works cited|literature cited|reference list)"
    r"[ \t]*:?[ \t]*$",
    re.IGNORECASE | re.MULTILINE,
)

OPEN_QUOTES = "\"“„«"
CLOSE_QUOTES = "\"”»"

WRAPPED_IN_QUOTES = re.compile(
    rf"^[{OPEN_QUOTES}].+[{CLOSE_QUOTES}][.!?,;]?$",
    re.DOTALL,
)

ATTRIBUTION_PATTERNS = (
    re.compile(rf"\baccording to\b[^:{OPEN_QUOTES}]{{1,120}}[:,]?\s*[{OPEN_QUOTES}]", re.IGNORECASE),
    re.compile(
        rf"\b[A-Z][\w'\-]+(?:\s+(?:et al\.|and|&)\s*[A-Z]?[\w'\-]*)?\s*\(\d{{4}}[a-z]?\)\s*"
        rf"(?:states|stated|argues|argued|notes|noted|writes|wrote|claims|claimed|observes|observed|suggests|suggested)"
        rf"\s*(?:that)?[:,]?\s*[{OPEN_QUOTES}]",
    ),
)

CITATION_PATTERN = re.compile(
    r"\([A-Z][A-Za-z'\-]+(?:\s+(?:et al\.?|and|&)\s*[A-Za-z'\-]*)?,?\s*\d{4}[a-z]?(?:,\s*p+\.\s*\d+(?:-\d+)?)?\)"
    r"|\[\d+(?:\s*[,\-–]\s*\d+)*\]"
)

ACADEMIC_LANGUAGE_PATTERNS = (
    re.compile(r"\b(according to|based on|furthermore|however|nevertheless|consequently|therefore|thus|similarly|likewise)\b", re.IGNORECASE),
    re.compile(r"\b(studies show|research indicates|evidence suggests|findings demonstrate)\b", re.IGNORECASE),
    re.compile(r"\b(analyses|evaluations|assessments|investigations)\b", re.IGNORECASE),
    re.compile(r"\b(theory|framework|methodology|approach|model)\b", re.IGNORECASE),
    re.compile(r"\b(significant|substantial|considerable|notable|marked)\b", re.IGNORECASE),
)

PASSIVE_VOICE_PATTERN = re.compile(
    r"\b(is|was|are|were|be|been|being)\s+(\w+ed|\w+en|\w+wn|\w+un|made|done|found|held|built|taught|thought|brought|known|shown)\b",
    re.IGNORECASE,
)

FORMAL_CONNECTOR_PATTERN = re.compile(
    r"\b(in addition|furthermore|moreover|however|nevertheless|nonetheless|consequently|therefore|thus|"
    r"as a result|on the other hand|in contrast|similarly|likewise|alternatively|conversely)\b",
    re.IGNORECASE,
)

ACADEMIC_PHRASE_PATTERN = re.compile(
    r"\b(in the literature|according to recent studies|as mentioned above|as noted by|it has been suggested|"
    r"it can be argued|it should be noted|previous research|current findings|significant implications|"
    r"research methodology|empirical evidence|statistical analysis)\b",
    re.IGNORECASE,
)

# Confidence points each register heuristic adds to the raw similarity.
ACADEMIC_LANGUAGE_BOOST = 5.0
PASSIVE_VOICE_BOOST = 3.0
FORMAL_CONNECTOR_BOOST = 3.0
ACADEMIC_PHRASE_BOOST = 4.0
