"""Keyword-based query analysis.

The classifier is a case-insensitive substring check against fixed keyword
sets, evaluated in a fixed priority order. It has no I/O and no state, so the
same text always yields the same intent.
"""

import re
from dataclasses import dataclass, field
from enum import Enum


class Intent(str, Enum):
    PRODUCT_SEARCH = "product_search"
    POLICY_QUESTION = "policy_question"
    COMPLAINT = "complaint"
    GENERAL_INQUIRY = "general_inquiry"
    OTHER = "other"


# Evaluated top to bottom; first match wins.
INTENT_KEYWORDS: tuple[tuple[Intent, tuple[str, ...]], ...] = (
    (
        Intent.PRODUCT_SEARCH,
        (
            "looking for",
            "find",
            "recommend",
            "suggest",
            "do you have",
            "do you sell",
            "do you carry",
            "in stock",
            "show me",
            "want to buy",
            "under $",
        ),
    ),
    (
        Intent.POLICY_QUESTION,
        (
            "return",
            "refund",
            "shipping",
            "delivery",
            "policy",
            "exchange",
            "warranty",
        ),
    ),
    (
        Intent.COMPLAINT,
        (
            "problem",
            "issue",
            "wrong",
            "complaint",
            "broken",
            "damaged",
            "upset",
            "disappointed",
            "terrible",
        ),
    ),
    (
        Intent.GENERAL_INQUIRY,
        ("how", "what", "when", "where", "why", "who", "can i", "is there"),
    ),
)

STOP_WORDS = frozenset(
    {
        "the", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by",
        "you", "your", "are", "any", "have", "has", "can", "get", "there", "this",
        "that", "what", "how", "does", "did", "was", "were", "will", "would", "could",
        "should", "about", "from", "into", "need", "want", "like", "some", "just",
        "looking", "under", "over", "please",
    }
)

_WORD_RE = re.compile(r"\s+")
_PUNCT_RE = re.compile(r"^[^\w$]+|[^\w]+$")


@dataclass(frozen=True)
class QueryAnalysis:
    intent: Intent
    entities: list[str] = field(default_factory=list)
    keywords: list[str] = field(default_factory=list)


def classify_intent(text: str) -> Intent:
    """Return the first intent whose keyword set matches ``text``."""
    lowered = (text or "").lower()
    for intent, keywords in INTENT_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return intent
    return Intent.OTHER


def _tokens(text: str) -> list[str]:
    words = (_PUNCT_RE.sub("", w) for w in _WORD_RE.split(text or ""))
    return [w for w in words if len(w) > 2]


def extract_keywords(text: str, limit: int | None = None) -> list[str]:
    """Lower-cased, de-duplicated content words in order of appearance."""
    seen: list[str] = []
    for word in _tokens(text):
        lw = word.lower()
        if lw in STOP_WORDS or lw in seen:
            continue
        seen.append(lw)
        if limit is not None and len(seen) >= limit:
            break
    return seen


def extract_entities(text: str) -> list[str]:
    """Capitalised words, prices and anything containing a digit."""
    return [
        w for w in _tokens(text)
        if w[0].isupper() or "$" in w or any(ch.isdigit() for ch in w)
    ]


def analyze_query(text: str) -> QueryAnalysis:
    return QueryAnalysis(
        intent=classify_intent(text),
        entities=extract_entities(text),
        keywords=extract_keywords(text),
    )
