"""Text similarity and polarity heuristics for insight comparison.

Insights arrive as free text from opaque analyzers, so the merge pipeline
compares them with lightweight lexical signals:

1. Token overlap (Jaccard over content words) for near-duplicate detection
2. Topical similarity, which also ignores polarity words so that
   "risk is low" and "risk is high" are recognised as the same subject
3. Polarity opposition via paired negation patterns
4. Scope markers and conclusion extraction for conflict classification

Any callable matching ``SimilarityFunction`` can replace the defaults.
"""

from __future__ import annotations

import re
from typing import Protocol

STOPWORDS = frozenset(
    {
        "a",
        "an",
        "the",
        "is",
        "are",
        "was",
        "were",
        "be",
        "been",
        "to",
        "of",
        "and",
        "or",
        "in",
        "on",
        "for",
        "with",
        "by",
        "at",
        "as",
        "it",
        "its",
        "this",
        "that",
        "these",
        "those",
        "can",
        "will",
        "should",
        "must",
    }
)

# Each pair is (positive pattern, negative pattern). The negative pattern is
# matched first and removed before looking for the positive one, so "is not"
# never counts as "is".
POLARITY_PAIRS: tuple[tuple[re.Pattern[str], re.Pattern[str]], ...] = tuple(
    (re.compile(pos), re.compile(neg))
    for pos, neg in (
        (r"\bis\b", r"\bis not\b|\bisn't\b|\bis never\b"),
        (r"\bare\b", r"\bare not\b|\baren't\b"),
        (r"\bcan\b", r"\bcannot\b|\bcan't\b|\bcan not\b|\bcan never\b"),
        (r"\bwill\b", r"\bwill not\b|\bwon't\b"),
        (r"\bshould\b", r"\bshould not\b|\bshouldn't\b"),
        (r"\bmust\b", r"\bmust not\b|\bmustn't\b"),
        (r"\bdoes\b", r"\bdoes not\b|\bdoesn't\b"),
        (r"\btrue\b", r"\bfalse\b|\buntrue\b"),
        (r"\bcorrect\b", r"\bincorrect\b|\bwrong\b"),
        (r"\byes\b", r"\bno\b"),
        (r"\balways\b", r"\bnever\b"),
        (r"\bincreases?\b|\brises?\b|\bgrows?\b", r"\bdecreases?\b|\bfalls?\b|\bshrinks?\b"),
        (r"\bhigh(?:er)?\b|\blarge(?:r)?\b", r"\blow(?:er)?\b|\bsmall(?:er)?\b"),
        (r"\bpositive\b", r"\bnegative\b"),
        (r"\bsuccess\b|\bsucceeds?\b", r"\bfailure\b|\bfails?\b"),
    )
)

POLARITY_TERMS = frozenset(
    {
        "not",
        "no",
        "never",
        "none",
        "cannot",
        "can't",
        "isn't",
        "aren't",
        "won't",
        "shouldn't",
        "mustn't",
        "doesn't",
        "does",
        "true",
        "false",
        "untrue",
        "correct",
        "incorrect",
        "wrong",
        "yes",
        "always",
        "increase",
        "increases",
        "rise",
        "rises",
        "grow",
        "grows",
        "decrease",
        "decreases",
        "fall",
        "falls",
        "shrink",
        "shrinks",
        "high",
        "higher",
        "large",
        "larger",
        "low",
        "lower",
        "small",
        "smaller",
        "positive",
        "negative",
        "success",
        "succeed",
        "succeeds",
        "failure",
        "fail",
        "fails",
    }
)

BROAD_SCOPE = re.compile(r"\bin general\b|\boverall\b|\btypically\b|\busually\b|\bmost\b|\ball\b")
NARROW_SCOPE = re.compile(
    r"\bspecifically\b|\bin this case\b|\bfor this\b|\bhere\b|\bsome\b|\bfew\b"
)
SCOPE_TERMS = frozenset(
    {"general", "overall", "typically", "usually", "most", "all", "specifically", "case", "here",
     "some", "few"}
)

CONCLUSION_PATTERNS = (
    re.compile(r"therefore[,:]?\s*(.+)", re.IGNORECASE),
    re.compile(r"thus[,:]?\s*(.+)", re.IGNORECASE),
    re.compile(r"hence[,:]?\s*(.+)", re.IGNORECASE),
    re.compile(r"consequently[,:]?\s*(.+)", re.IGNORECASE),
    re.compile(r"as a result[,:]?\s*(.+)", re.IGNORECASE),
    re.compile(r"this means[,:]?\s*(.+)", re.IGNORECASE),
    re.compile(r"we conclude[,:]?\s*(.+)", re.IGNORECASE),
)

_TOKEN = re.compile(r"[a-z0-9]+(?:'[a-z]+)?")


class SimilarityFunction(Protocol):
    """Callable scoring two texts in [0, 1]."""

    def __call__(self, text_a: str, text_b: str) -> float: ...


def normalize(text: str) -> str:
    """Lowercase and collapse whitespace."""
    return " ".join(text.lower().split())


def tokenize(text: str) -> list[str]:
    """Split text into lowercase word tokens."""
    return _TOKEN.findall(text.lower())


def content_terms(text: str, drop_polarity: bool = False) -> frozenset[str]:
    """Content words of ``text`` with stopwords (and optionally polarity words) removed."""
    excluded = STOPWORDS | POLARITY_TERMS if drop_polarity else STOPWORDS
    return frozenset(t for t in tokenize(text) if t not in excluded)


def _jaccard(a: frozenset[str], b: frozenset[str]) -> float:
    union = a | b
    if not union:
        return 0.0
    return len(a & b) / len(union)


def token_overlap(text_a: str, text_b: str) -> float:
    """Normalized token overlap used for near-duplicate detection.

    Args:
        text_a: First text.
        text_b: Second text.

    Returns:
        Jaccard similarity of content words, 1.0 for identical normalized text.

    """
    if normalize(text_a) == normalize(text_b):
        return 1.0
    return _jaccard(content_terms(text_a), content_terms(text_b))


def topical_similarity(text_a: str, text_b: str) -> float:
    """Similarity of subject matter, ignoring polarity words."""
    if normalize(text_a) == normalize(text_b):
        return 1.0
    terms_a = content_terms(text_a, drop_polarity=True)
    terms_b = content_terms(text_b, drop_polarity=True)
    return _jaccard(terms_a, terms_b)


def polarity_signs(text: str) -> tuple[int, ...]:
    """Per negation pair: +1 positive only, -1 negative only, 0 both or neither."""
    lowered = normalize(text)
    signs = []
    for positive, negative in POLARITY_PAIRS:
        has_negative = bool(negative.search(lowered))
        has_positive = bool(positive.search(negative.sub(" ", lowered)))
        if has_positive and not has_negative:
            signs.append(1)
        elif has_negative and not has_positive:
            signs.append(-1)
        else:
            signs.append(0)
    return tuple(signs)


def polarity_opposed(text_a: str, text_b: str) -> bool:
    """Whether the texts assert opposite polarity on at least one negation pair."""
    signs = zip(polarity_signs(text_a), polarity_signs(text_b), strict=True)
    return any(a * b < 0 for a, b in signs)


def extract_conclusion(text: str) -> str | None:
    """Return the clause following a conclusion marker, if any."""
    for pattern in CONCLUSION_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1).strip()
    return None


def is_scope_difference(text_a: str, text_b: str) -> bool:
    """Whether one text generalizes or specializes the other.

    True when the key terms of one are a proper subset of the other's, or
    when one uses broad scope markers and the other narrow ones.
    """
    lowered_a, lowered_b = normalize(text_a), normalize(text_b)
    a_broad, a_narrow = bool(BROAD_SCOPE.search(lowered_a)), bool(NARROW_SCOPE.search(lowered_a))
    b_broad, b_narrow = bool(BROAD_SCOPE.search(lowered_b)), bool(NARROW_SCOPE.search(lowered_b))
    a_only_broad, a_only_narrow = a_broad and not a_narrow, a_narrow and not a_broad
    b_only_broad, b_only_narrow = b_broad and not b_narrow, b_narrow and not b_broad
    if (a_only_broad and b_only_narrow) or (a_only_narrow and b_only_broad):
        return True

    terms_a = content_terms(text_a, drop_polarity=True) - SCOPE_TERMS
    terms_b = content_terms(text_b, drop_polarity=True) - SCOPE_TERMS
    if not terms_a or not terms_b:
        return False
    return terms_a < terms_b or terms_b < terms_a
