"""
Candidate Ranking
Orders ambiguous multi-candidate results before they are rendered

Algorithm Components:
1. Keyword Match (70%) - Overlap between the user's query and the candidate text
2. Recency (30%) - Exponential decay on the candidate's timestamp

Ties are broken by most recent timestamp, then by id, so the same
inputs always produce the same order.
"""

from datetime import datetime
from typing import Callable, List, NamedTuple, Optional, Sequence, TypeVar

from loguru import logger

from ..schemas.agent_schemas import KnowledgeEntry, PhotoJob, RepairTicket
from ..utils.text_helpers import char_ngrams, tokenize


T = TypeVar("T")

KEYWORD_WEIGHT = 0.7
RECENCY_WEIGHT = 0.3
RECENCY_HALF_LIFE_DAYS = 30.0
KNOWLEDGE_MIN_SCORE = 0.2


class RankScore(NamedTuple):
    """
    Breakdown of a candidate's rank score
    """
    keyword_score: float   # 0.0-1.0
    recency_score: float   # 0.0-1.0
    total_score: float     # 0.0-1.0

    def __repr__(self) -> str:
        return (
            f"RankScore(total={self.total_score:.3f}, "
            f"keyword={self.keyword_score:.3f}, "
            f"recency={self.recency_score:.3f})"
        )


def keyword_overlap(query: str, text: str) -> float:
    """
    Calculate keyword overlap between a query and a candidate text (0.0-1.0)

    Logic:
    - Token containment (60%): share of query tokens found inside the text
    - Trigram coverage (40%): share of the query's character trigrams
      present in the text, which handles unsegmented Thai

    Args:
        query: User's search phrase
        text: Candidate text (title, location, description...)

    Returns:
        float: Overlap score (0.0-1.0)
    """
    if not query or not text:
        return 0.0

    haystack = text.lower()
    tokens = tokenize(query)
    token_score = (
        sum(1 for token in tokens if token in haystack) / len(tokens) if tokens else 0.0
    )

    query_grams = char_ngrams(query)
    if query_grams:
        gram_score = len(query_grams & char_ngrams(text)) / len(query_grams)
    else:
        gram_score = 0.0

    return round(0.6 * token_score + 0.4 * gram_score, 6)


def recency_score(timestamp: Optional[datetime], now: datetime) -> float:
    """
    Exponential decay with a 30-day half-life (1.0 = now, 0.5 = 30 days ago)
    Missing or naive-vs-aware mismatched timestamps score 0.0.
    """
    if timestamp is None:
        return 0.0
    try:
        age_days = max((now - timestamp).total_seconds(), 0.0) / 86400
    except TypeError:
        return 0.0
    return round(0.5 ** (age_days / RECENCY_HALF_LIFE_DAYS), 6)


def _timestamp_key(timestamp: Optional[datetime]) -> float:
    return timestamp.timestamp() if timestamp is not None else float("-inf")


def rank_candidates(
    items: Sequence[T],
    query: str,
    now: datetime,
    text_of: Callable[[T], str],
    time_of: Callable[[T], Optional[datetime]],
    id_of: Callable[[T], str],
    keyword_weight: float = KEYWORD_WEIGHT,
    recency_weight: float = RECENCY_WEIGHT,
) -> List[T]:
    """
    Rank candidates by keyword overlap and recency.

    Returns a new list; the input order never influences the result.
    """
    scored = []
    for item in items:
        kw = keyword_overlap(query, text_of(item)) if query else 0.0
        rec = recency_score(time_of(item), now)
        total = round(keyword_weight * kw + recency_weight * rec, 6)
        scored.append((RankScore(kw, rec, total), item))

    scored.sort(key=lambda pair: (-pair[0].total_score, -_timestamp_key(time_of(pair[1])), id_of(pair[1])))

    if scored:
        logger.debug(f"Ranked {len(scored)} candidates for '{query}', top: {scored[0][0]}")
    return [item for _, item in scored]


def rank_gallery(items: Sequence[PhotoJob], query: str, now: datetime) -> List[PhotoJob]:
    """Rank photo-gallery matches for a search keyword"""
    return rank_candidates(
        items,
        query,
        now,
        text_of=lambda job: f"{job.title} {job.location} {job.description}",
        time_of=lambda job: job.start_time,
        id_of=lambda job: job.id,
    )


def rank_tickets(
    tickets: Sequence[RepairTicket],
    now: datetime,
    keyword: Optional[str] = None,
) -> List[RepairTicket]:
    """
    Pick the most relevant repair tickets among several.

    Active tickets always come before closed ones; within each group the
    usual keyword + recency ranking applies.
    """
    ranked = rank_candidates(
        tickets,
        keyword or "",
        now,
        text_of=lambda t: f"{t.ticket_id} {t.room} {t.description}",
        time_of=lambda t: t.created_at,
        id_of=lambda t: t.ticket_id,
    )
    return [t for t in ranked if t.is_active] + [t for t in ranked if not t.is_active]


def rank_knowledge(
    entries: Sequence[KnowledgeEntry],
    question: str,
    limit: int = 3,
) -> List[KnowledgeEntry]:
    """Knowledge-base entries relevant to a question, best first"""
    scored = []
    for entry in entries:
        text = f"{entry.question} {' '.join(entry.keywords)} {entry.category}"
        score = max(keyword_overlap(question, text), keyword_overlap(question, entry.answer) * 0.5)
        if score >= KNOWLEDGE_MIN_SCORE:
            scored.append((score, entry))
    scored.sort(key=lambda pair: (-pair[0], pair[1].id))
    return [entry for _, entry in scored[:limit]]
