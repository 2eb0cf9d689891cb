"""Content-to-product relevance scoring.

Detects which outdoor activities and seasons a tripkit talks about, then
scores each candidate product tagged with one of those activities:

    score = 0.3  if the product is local to Utah
          + 0.4  if it is tagged with a detected activity
          + 0.2  per detected season the product is good for
          + 0.1  if it fits the reader's budget
    clamped to [0, 1]

Pure and deterministic: identical inputs always rank identically, ties keep
the candidate pool's order.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Optional

from affiliate_engine.models import CandidateProduct, Content, ProductKind, RecommendationItem

ACTIVITY_KEYWORDS: dict[str, tuple[str, ...]] = {
    "hiking": ("hike", "trail", "mountain", "backpack", "boots", "trekking"),
    "camping": ("camp", "tent", "sleeping", "outdoor", "wilderness"),
    "skiing": ("ski", "snow", "winter", "resort", "powder", "goggles"),
    "golf": ("golf", "course", "tee", "club", "putt"),
    "photography": ("photo", "camera", "lens", "tripod", "shoot"),
    "biking": ("bike", "cycling", "mountain bike", "trail"),
    "water": ("lake", "river", "fishing", "kayak", "paddle"),
    "winter": ("snow", "cold", "winter", "ice", "frozen"),
}

SEASON_KEYWORDS: dict[str, tuple[str, ...]] = {
    "spring": ("spring", "bloom", "wildflower", "march", "april", "may"),
    "summer": ("summer", "hot", "sun", "june", "july", "august"),
    "fall": ("fall", "autumn", "color", "september", "october", "november"),
    "winter": ("winter", "snow", "cold", "december", "january", "february"),
}

LOCAL_WEIGHT = 0.3
CATEGORY_WEIGHT = 0.4
SEASON_WEIGHT = 0.2
BUDGET_WEIGHT = 0.1

TOP_N: dict[ProductKind, int] = {
    ProductKind.GEAR: 6,
    ProductKind.ACTIVITY: 4,
    ProductKind.TRANSPORTATION: 2,
}


@dataclass(frozen=True)
class ContentAnalysis:
    categories: tuple[str, ...]  # taxonomy order
    seasons: tuple[str, ...]


def normalize_text(text: str) -> str:
    """Lower-case and collapse to single-space separated word tokens."""
    return " ".join(re.findall(r"[a-z0-9]+", (text or "").lower()))


def _detect(text: str, taxonomy: dict[str, tuple[str, ...]]) -> tuple[str, ...]:
    return tuple(name for name, keywords in taxonomy.items() if any(k in text for k in keywords))


def analyze_content(content: Content) -> ContentAnalysis:
    text = normalize_text(content.text())
    return ContentAnalysis(
        categories=_detect(text, ACTIVITY_KEYWORDS),
        seasons=_detect(text, SEASON_KEYWORDS),
    )


def _budget(preferences: Optional[dict]) -> Optional[float]:
    if not preferences:
        return None
    raw = preferences.get("budget")
    try:
        return float(raw) if raw is not None else None
    except (TypeError, ValueError):
        return None


def score_candidate(
    candidate: CandidateProduct,
    analysis: ContentAnalysis,
    preferences: Optional[dict] = None,
) -> float:
    score = 0.0
    if candidate.local:
        score += LOCAL_WEIGHT
    if any(c in analysis.categories for c in candidate.categories):
        score += CATEGORY_WEIGHT
    score += SEASON_WEIGHT * sum(1 for s in analysis.seasons if s in candidate.seasons)

    budget = _budget(preferences)
    if budget is not None and candidate.price is not None and candidate.price <= budget:
        score += BUDGET_WEIGHT

    return round(min(1.0, max(0.0, score)), 4)


def score(
    content: Content,
    candidate_pool: Iterable[CandidateProduct],
    preferences: Optional[dict] = None,
    top_n: Optional[dict[ProductKind, int]] = None,
) -> list[RecommendationItem]:
    """Rank the candidates relevant to ``content``, best first."""
    limits = top_n or TOP_N
    analysis = analyze_content(content)
    if not analysis.categories:
        return []

    by_kind: dict[ProductKind, list[tuple[int, RecommendationItem]]] = {}
    for position, candidate in enumerate(candidate_pool):
        matched = next((c for c in analysis.categories if c in candidate.categories), None)
        if matched is None:
            continue
        item = RecommendationItem(
            source_category=matched,
            candidate=candidate,
            relevance_score=score_candidate(candidate, analysis, preferences),
        )
        by_kind.setdefault(candidate.kind, []).append((position, item))

    kept: list[tuple[int, RecommendationItem]] = []
    for kind, items in by_kind.items():
        ranked = sorted(items, key=lambda pair: -pair[1].relevance_score)
        kept.extend(ranked[: limits.get(kind, len(ranked))])

    kept.sort(key=lambda pair: (-pair[1].relevance_score, pair[0]))
    return [item for _, item in kept]
