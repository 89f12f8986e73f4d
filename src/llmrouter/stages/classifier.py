"""Content classifier – heuristic complexity score and category tags."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping

from llmrouter.models import Classification, ComplexityAnalysis

_LONG_CONTENT_CHARS = 5000
_LONG_CONTENT_WEIGHT = 0.3
_PATTERN_BASE_WEIGHT = 0.1
_PATTERN_MATCH_WEIGHT = 0.05
_TECHNICAL_WEIGHT = 0.2

_COMPLEXITY_PATTERNS = (
    re.compile(r"\b(analysis|strategy|complex|detailed|comprehensive)\b", re.IGNORECASE),
    re.compile(r"\b(arbitrage|trading|financial|investment|market)\b", re.IGNORECASE),
    re.compile(r"\b(data|statistics|calculations|formulas)\b", re.IGNORECASE),
)
_TECHNICAL_RE = re.compile(r"\b(code|programming|technical|algorithm|API)\b", re.IGNORECASE)
_INFORMATIONAL_RE = re.compile(r"\b(news|update|announcement|report)\b", re.IGNORECASE)

TRADING_KEYWORDS = (
    "arbitrage",
    "trading",
    "stock",
    "options",
    "financial",
    "investment",
    "profit",
    "loss",
    "market",
    "tesla",
)
_CLOUD_KEYWORD_THRESHOLD = 2

MULTIMEDIA_TYPES = frozenset({"image", "video"})


def analyze_complexity(content: str, content_type: str = "text") -> ComplexityAnalysis:
    """Additive score over length and keyword-family hits, clamped to [0, 1].

    Every contribution is named in ``factors`` so a score can be explained.
    """
    score = 0.0
    factors: list[str] = []

    if len(content) > _LONG_CONTENT_CHARS:
        score += _LONG_CONTENT_WEIGHT
        factors.append("long_content")

    for index, pattern in enumerate(_COMPLEXITY_PATTERNS):
        matches = pattern.findall(content)
        if matches:
            score += _PATTERN_BASE_WEIGHT + len(matches) * _PATTERN_MATCH_WEIGHT
            factors.append(f"complexity_pattern_{index}")

    if _TECHNICAL_RE.search(content):
        score += _TECHNICAL_WEIGHT
        factors.append("technical_content")

    return ComplexityAnalysis(
        length=len(content),
        complexity_score=min(max(score, 0.0), 1.0),
        factors=factors,
    )


def match_priority_tags(tags: Iterable[str], priority_tags: Iterable[str]) -> list[str]:
    """Priority tags contained in any of the (lowercased) content tags."""
    content_tags = [t.strip().lower() for t in tags]
    return sorted(
        {p for p in (pt.lower() for pt in priority_tags) if any(p in t for t in content_tags)}
    )


def classify_content(
    content: str,
    content_type: str = "text",
    tags: Iterable[str] = (),
    priority_tags: Iterable[str] = (),
) -> Classification:
    classification = Classification(content_type=content_type)
    lowered = content.lower()

    found = [kw for kw in TRADING_KEYWORDS if kw in lowered]
    if found:
        classification.categories.append("trading_content")
        classification.keywords.extend(found)
        classification.priority = "high"
        # Topic density as a proxy for needing deeper analysis
        classification.requires_cloud = len(found) > _CLOUD_KEYWORD_THRESHOLD

    if _TECHNICAL_RE.search(content):
        classification.categories.append("technical_content")

    if _INFORMATIONAL_RE.search(content):
        classification.categories.append("informational_content")

    if content_type in MULTIMEDIA_TYPES:
        classification.categories.append("multimedia_content")
        classification.requires_specialized_model = True

    matched = match_priority_tags(tags, priority_tags)
    if matched:
        classification.categories.append("priority_tagged")
        classification.priority_tags = matched
        classification.priority = "high"

    return classification


def apply_priority_boost(
    analysis: ComplexityAnalysis,
    classification: Classification,
    multipliers: Mapping[str, float],
) -> ComplexityAnalysis:
    """Scale the score by the largest multiplier among matched priority tags."""
    if not classification.priority_tags:
        return analysis
    lowered = {k.lower(): v for k, v in multipliers.items()}
    factor = max(lowered.get(tag, 1.0) for tag in classification.priority_tags)
    if factor <= 1.0:
        return analysis
    return ComplexityAnalysis(
        length=analysis.length,
        complexity_score=min(analysis.complexity_score * factor, 1.0),
        factors=[*analysis.factors, "priority_tag_boost"],
    )
